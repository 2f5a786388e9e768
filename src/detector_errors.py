"""
Exception types raised by the media detector.

Classification itself never raises: noisy input is dropped. These are for
configuration and transport problems the caller has to see.
"""


class DetectorError(Exception):
    """Base class for media detector errors."""


class RuleConfigError(DetectorError):
    """Raised when a rule override file cannot be loaded or compiled."""


class PageFetchError(DetectorError):
    """Raised when a page could not be fetched for scanning."""

    def __init__(self, url, reason):
        super().__init__(f"Could not fetch {url}: {reason}")
        self.url = url
        self.reason = reason


class HarFormatError(DetectorError):
    """Raised when a HAR capture file is unreadable or has no log entries."""
