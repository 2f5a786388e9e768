"""
Session Lifecycle Manager
Owns the session id -> stream list table for every browsing tab.

    Active  -- response events are classified and inserted
    Reset   -- a top-level navigation starts: the list is emptied before the
               next event is accepted, then the session is Active again
    Closed  -- the tab is gone: all state is dropped; the same id later
               starts a brand-new session

One lock guards the table, so events for a session are applied strictly in
the order they are observed. Sessions share no other state.
"""

import queue
import threading

from media_models import ResponseEvent, StreamAddedNotice
from stream_classifier import DEFAULT_MAX_STREAMS, SessionStreamClassifier, SessionStreams
from stream_rules import StreamRuleset


def valid_session_id(session_id):
    return isinstance(session_id, int) and not isinstance(session_id, bool) and session_id >= 0


class SessionLifecycleManager:
    """Keyed store of per-session stream lists."""

    def __init__(self, classifier=None, notify_queue=None, verbose=False):
        """
        Args:
            classifier: SessionStreamClassifier used for every session
            notify_queue: Optional queue.Queue receiving StreamAddedNotice items.
                Delivery is best effort: a full queue drops the notice.
            verbose: Print lifecycle transitions
        """
        self.classifier = classifier or SessionStreamClassifier()
        self.notify_queue = notify_queue
        self.verbose = verbose
        self._sessions = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, settings, ruleset=None, with_queue=True):
        ruleset = ruleset or StreamRuleset.from_config(settings)
        classifier = SessionStreamClassifier(
            ruleset=ruleset,
            max_streams=settings.get('max_streams', DEFAULT_MAX_STREAMS),
            verbose=settings.get('verbose', False),
        )
        notify_queue = queue.Queue(maxsize=settings.get('notify_queue_size', 0)) if with_queue else None
        return cls(classifier=classifier, notify_queue=notify_queue, verbose=settings.get('verbose', False))

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def observe_response(self, event):
        """
        Feed one observed response.

        Args:
            event: ResponseEvent, or a dict with the same fields

        Returns:
            StreamCandidate if the response was accepted as a new stream, else None
        """
        if isinstance(event, dict):
            try:
                event = ResponseEvent(**event)
            except ValueError:
                return None

        if not valid_session_id(event.session_id):
            return None

        with self._lock:
            session = self._sessions.get(event.session_id)
            if session is None:
                session = SessionStreams(event.session_id)
                self._sessions[event.session_id] = session
            stream = self.classifier.process(session, event)

        if stream is not None:
            self._notify(event.session_id, stream)
        return stream

    def observe_navigation(self, session_id, new_url, status='loading'):
        """
        Top-level navigation signal. Only a 'loading' transition that carries
        a URL resets the session.

        Returns:
            bool: True when the session was reset
        """
        if not valid_session_id(session_id) or status != 'loading' or not new_url:
            return False

        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = SessionStreams(session_id)
                self._sessions[session_id] = session
            session.clear()
            session.current_url = new_url

        if self.verbose:
            print(f"[SESSION] {session_id} navigated to {new_url[:80]}, streams cleared")
        return True

    def close_session(self, session_id):
        """Drop all state for a session. Returns True when something was dropped."""
        with self._lock:
            removed = self._sessions.pop(session_id, None)

        if removed is not None and self.verbose:
            print(f"[SESSION] {session_id} closed, {len(removed.streams)} stream(s) discarded")
        return removed is not None

    def clear_streams(self, session_id):
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                session.clear()

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    def get_streams(self, session_id):
        """Current streams of a session in insertion order (empty if unknown)."""
        with self._lock:
            session = self._sessions.get(session_id)
            return session.snapshot() if session is not None else ()

    def session_version(self, session_id):
        """Mutation counter of a session; None when it does not exist."""
        with self._lock:
            session = self._sessions.get(session_id)
            return session.version if session is not None else None

    def current_url(self, session_id):
        with self._lock:
            session = self._sessions.get(session_id)
            return session.current_url if session is not None else None

    def session_ids(self):
        with self._lock:
            return sorted(self._sessions)

    def snapshot(self):
        """All sessions at once (debugging aid)."""
        with self._lock:
            return {sid: s.snapshot() for sid, s in self._sessions.items()}

    def drain_notices(self):
        """Pop every pending StreamAddedNotice without blocking."""
        notices = []
        if self.notify_queue is None:
            return notices
        while True:
            try:
                notices.append(self.notify_queue.get_nowait())
            except queue.Empty:
                return notices

    def _notify(self, session_id, stream):
        if self.notify_queue is None:
            return
        try:
            self.notify_queue.put_nowait(StreamAddedNotice(session_id=session_id, stream=stream))
        except queue.Full:
            # a listener re-reads get_streams(), nothing is lost
            pass
