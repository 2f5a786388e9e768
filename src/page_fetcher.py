"""
Page Fetcher
Downloads a page's HTML for a one-shot DOM scan.

Static fetches do not run scripts, so player markup injected at runtime is
missed; network_capture.LiveTabMonitor covers that case.
"""

import requests

from detector_config import DEFAULTS
from detector_errors import PageFetchError


class PageFetcher:
    """Fetch HTML documents with a browser-like User-Agent"""

    def __init__(self, user_agent=None, timeout=None):
        self.user_agent = user_agent or DEFAULTS['user_agent']
        self.timeout = timeout or DEFAULTS['request_timeout']
        self.session = requests.Session()
        self.session.headers.update({
            'User-Agent': self.user_agent,
            'Accept-Language': 'en-US,en;q=0.9',
        })

    @classmethod
    def from_config(cls, settings):
        return cls(user_agent=settings.get('user_agent'), timeout=settings.get('request_timeout'))

    def fetch(self, url):
        """
        Fetch a page

        Args:
            url: Page URL

        Returns:
            tuple: (html, final_url) after redirects

        Raises:
            PageFetchError: network failure or non-200 status
        """
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise PageFetchError(url, str(e)) from e

        if response.status_code != 200:
            raise PageFetchError(url, f"status {response.status_code}")

        print(f"[FETCH] {response.url[:80]} ({len(response.text)} chars)")
        return response.text, response.url
