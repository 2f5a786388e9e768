"""
Records exchanged between the detector components.

These are the contract between the network classifier, the DOM scanner and
whatever renders their output. All of them are frozen: a scan or a session
update produces new records, it never edits old ones.
"""

import time
from typing import Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

StreamKind = Literal['mp4', 'webm', 'hls', 'dash', 'flv', 'unknown']
Platform = Literal['youtube', 'vimeo', 'html5', 'unknown']

# Segmented-manifest kinds: many small same-base requests are expected
SEGMENTED_KINDS = frozenset({'hls', 'dash'})


class StreamCandidate(BaseModel):
    """A network-observed resource believed to be a media stream."""

    model_config = ConfigDict(frozen=True)

    url: str
    stream_kind: StreamKind = 'unknown'
    size_bytes: Optional[int] = None
    quality_label: Optional[str] = None
    content_type: Optional[str] = None
    observed_at: float = Field(default_factory=time.time)

    @property
    def is_segmented(self):
        return self.stream_kind in SEGMENTED_KINDS


class VideoCandidate(BaseModel):
    """A media element or player embed found in a document."""

    model_config = ConfigDict(frozen=True)

    platform: Platform
    page_url: str
    external_id: Optional[str] = None
    title: Optional[str] = None
    duration_seconds: Optional[float] = None
    source_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    nested_streams: Tuple[StreamCandidate, ...] = ()

    @property
    def dedup_key(self):
        return self.external_id or self.source_url or self.page_url


class ResponseEvent(BaseModel):
    """One observed HTTP response, as reported by a transport."""

    model_config = ConfigDict(frozen=True)

    session_id: Optional[int] = None
    url: str
    resource_kind: str = 'other'
    status_code: Optional[int] = None
    response_headers: Union[List[Dict[str, Optional[str]]], Dict[str, str]] = Field(default_factory=list)

    def header(self, name):
        """Case-insensitive header lookup; None when absent."""
        name = name.lower()
        if isinstance(self.response_headers, dict):
            for key, value in self.response_headers.items():
                if key.lower() == name:
                    return value
            return None
        for entry in self.response_headers:
            if (entry.get('name') or '').lower() == name:
                return entry.get('value')
        return None


class StreamAddedNotice(BaseModel):
    """Outbound notification for a newly accepted stream."""

    model_config = ConfigDict(frozen=True)

    session_id: int
    stream: StreamCandidate


class MediaEntry(BaseModel):
    """One row of the merged display list."""

    model_config = ConfigDict(frozen=True)

    title: str
    url: str
    origin: Literal['dom', 'network']
    platform: Literal['youtube', 'vimeo', 'html5', 'unknown', 'stream']
    source_url: Optional[str] = None
    external_id: Optional[str] = None
    duration_seconds: Optional[float] = None
    size_bytes: Optional[int] = None
    quality_label: Optional[str] = None
    thumbnail_url: Optional[str] = None
    stream_kind: Optional[StreamKind] = None
