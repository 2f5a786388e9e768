"""
Live Tab Monitoring
Uses Playwright to open pages in Chromium and feed what the browser sees
into the detector: every response goes to the SessionLifecycleManager,
main-frame navigations reset the tab's session, closed tabs are purged,
and the rendered DOM is scanned once the page has settled.

Requires: pip install playwright && playwright install chromium
This module degrades gracefully if playwright is not installed.
"""

import time

from candidate_aggregator import aggregate, pick_capture_url
from dom_scanner import DomMediaScanner
from media_models import ResponseEvent
from session_manager import SessionLifecycleManager
from utils import dump_models

# Playwright resource types -> browser request kinds used by the ruleset
RESOURCE_KIND_MAP = {
    'fetch': 'xhr',
    'xhr': 'xhr',
    'media': 'media',
    'document': 'main_frame',
    'other': 'other',
}

# Copies what only the live DOM knows onto the <video> elements so the
# serialized snapshot carries it: rendered size, currentSrc, duration.
ANNOTATE_VIDEOS_JS = """
() => {
    document.querySelectorAll('video').forEach((v) => {
        const r = v.getBoundingClientRect();
        v.setAttribute('data-rendered-width', String(r.width));
        v.setAttribute('data-rendered-height', String(r.height));
        if (v.currentSrc) v.setAttribute('data-current-src', v.currentSrc);
        if (isFinite(v.duration)) v.setAttribute('data-duration', String(v.duration));
    });
}
"""


class LiveTabMonitor:
    """Drives Chromium tabs and routes their traffic through the detector."""

    def __init__(self, manager=None, scanner=None, headless=True):
        self.manager = manager or SessionLifecycleManager()
        self.scanner = scanner or DomMediaScanner()
        self.headless = headless
        self._next_session_id = 1
        self._pw = None
        self._browser = None

    def watch(self, urls, seconds=10):
        """
        Open each URL in its own tab, let it play for a while, then report.

        Args:
            urls: Page URLs to open
            seconds: How long each page is observed

        Returns:
            dict: Per-tab results, or available=False with an error
        """
        if isinstance(urls, str):
            urls = [urls]

        if not self._check_playwright_available():
            return {
                'available': False,
                'error': 'Playwright not installed. Run: pip install playwright && playwright install chromium',
                'tabs': [],
            }

        start_time = time.time()
        try:
            from playwright.sync_api import sync_playwright

            print("[NETWORK] Launching Chromium...")
            self._pw = sync_playwright().start()
            self._browser = self._pw.chromium.launch(
                headless=self.headless,
                args=['--autoplay-policy=no-user-gesture-required', '--mute-audio'],
            )
            context = self._browser.new_context()

            tabs = []
            for url in urls:
                tabs.append(self._watch_tab(context, url, seconds))

            return {
                'available': True,
                'tabs': tabs,
                'duration_seconds': round(time.time() - start_time, 1),
            }

        except Exception as e:
            return {
                'available': False,
                'error': str(e),
                'tabs': [],
            }
        finally:
            self._cleanup()

    # ------------------------------------------------------------------
    # Tab handling
    # ------------------------------------------------------------------

    def _watch_tab(self, context, url, seconds):
        session_id = self._next_session_id
        self._next_session_id += 1

        page = context.new_page()
        page.on('request', lambda request: self._on_request(session_id, page, request))
        page.on('response', lambda response: self._on_response(session_id, response))
        page.on('close', lambda _page: self.manager.close_session(session_id))

        result = {'session_id': session_id, 'url': url}
        try:
            print(f"[NETWORK] Browsing {url}...")
            page.goto(url, wait_until='domcontentloaded', timeout=int(max(seconds, 5) * 1000))
            page.wait_for_timeout(int(seconds * 1000))

            page.evaluate(ANNOTATE_VIDEOS_JS)
            title = page.title() or None
            videos = self.scanner.scan(page.content(), page.url, title)
            streams = self.manager.get_streams(session_id)
            entries = aggregate(videos, streams, page_title=title)

            result.update({
                'title': title,
                'videos': dump_models(videos),
                'streams': dump_models(streams),
                'entries': dump_models(entries),
                'capture_url': pick_capture_url(entries),
            })
            print(f"[NETWORK] {url}: {len(videos)} DOM video(s), {len(streams)} stream(s)")
        except Exception as e:
            print(f"[NETWORK] Could not load {url}: {e}")
            result['error'] = str(e)
            result['streams'] = dump_models(self.manager.get_streams(session_id))
        finally:
            page.close()

        return result

    # ------------------------------------------------------------------
    # Playwright event handlers
    # ------------------------------------------------------------------

    def _on_request(self, session_id, page, request):
        try:
            if request.is_navigation_request() and request.frame == page.main_frame:
                self.manager.observe_navigation(session_id, request.url, status='loading')
        except Exception:
            # service-worker requests have no frame
            pass

    def _on_response(self, session_id, response):
        try:
            resource_type = response.request.resource_type
            headers = response.headers
        except Exception:
            return

        self.manager.observe_response(ResponseEvent(
            session_id=session_id,
            url=response.url,
            resource_kind=RESOURCE_KIND_MAP.get(resource_type, resource_type),
            status_code=response.status,
            response_headers=dict(headers),
        ))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_playwright_available(self):
        try:
            import playwright  # noqa: F401
            return True
        except ImportError:
            return False

    def _cleanup(self):
        """Close browser and stop Playwright."""
        try:
            if self._browser:
                self._browser.close()
        except Exception:
            pass
        try:
            if self._pw:
                self._pw.stop()
        except Exception:
            pass
        self._browser = None
        self._pw = None
