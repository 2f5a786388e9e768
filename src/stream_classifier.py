"""
Session Stream Classifier
Turns observed HTTP responses into StreamCandidate records and keeps one
session's list ordered, deduplicated and bounded.

The list itself lives in SessionStreams; SessionLifecycleManager owns those
objects and is the only caller of insert().
"""

import time

from media_models import StreamCandidate
from stream_rules import StreamRuleset, infer_quality, strip_query
from utils import format_bytes

DEFAULT_MAX_STREAMS = 30


def parse_content_length(value):
    """content-length header -> int, or None when absent or malformed."""
    if value is None:
        return None
    try:
        size = int(str(value).strip())
    except ValueError:
        return None
    return size if size >= 0 else None


def status_succeeded(status_code):
    """Absent status passes; otherwise only 2xx / 3xx count as succeeded."""
    if status_code is None:
        return True
    return 200 <= status_code < 400


class SessionStreams:
    """Per-session stream list. Mutated only through SessionStreamClassifier."""

    def __init__(self, session_id):
        self.session_id = session_id
        self.streams = []
        self.version = 0
        self.current_url = None

    def clear(self):
        self.streams = []
        self.version += 1

    def snapshot(self):
        return tuple(self.streams)


class SessionStreamClassifier:
    """Applies the ruleset and the duplicate / capacity policy to one session."""

    def __init__(self, ruleset=None, max_streams=DEFAULT_MAX_STREAMS, verbose=False):
        self.ruleset = ruleset or StreamRuleset()
        self.max_streams = max_streams
        self.verbose = verbose

    def build_candidate(self, event):
        """
        Classify a ResponseEvent.

        Returns:
            StreamCandidate or None when any rule rejects the response
        """
        if not status_succeeded(event.status_code):
            return None

        content_type = (event.header('content-type') or '').lower()
        size = parse_content_length(event.header('content-length'))

        result = self.ruleset.classify(event.url, content_type, event.resource_kind, size)
        if not result.accepted:
            return None

        return StreamCandidate(
            url=event.url,
            stream_kind=result.stream_kind,
            size_bytes=size,
            quality_label=infer_quality(event.url),
            content_type=content_type or None,
            observed_at=time.time(),
        )

    def insert(self, session, candidate):
        """
        Append a candidate unless it duplicates an existing entry.

        Exact URL matches are always dropped. Entries sharing a query-less
        base URL and kind are dropped too, except for HLS / DASH where
        same-base requests are distinct segments or variants.

        Returns:
            bool: True when the candidate was appended
        """
        existing = session.streams

        if any(s.url == candidate.url for s in existing):
            return False

        if not candidate.is_segmented:
            base = strip_query(candidate.url)
            if any(strip_query(s.url) == base and s.stream_kind == candidate.stream_kind for s in existing):
                return False

        existing.append(candidate)
        while len(existing) > self.max_streams:
            existing.pop(0)
        session.version += 1

        if self.verbose:
            size = format_bytes(candidate.size_bytes) if candidate.size_bytes else 'unknown'
            print(f"[STREAM] Video detected: session={session.session_id} "
                  f"type={candidate.stream_kind} size={size} url={candidate.url[:80]}...")
        return True

    def process(self, session, event):
        """Classify and insert. Returns the accepted StreamCandidate or None."""
        candidate = self.build_candidate(event)
        if candidate is None:
            return None
        if not self.insert(session, candidate):
            return None
        return candidate
