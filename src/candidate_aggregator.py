"""
Candidate Aggregator
Merges DOM scanner output and network streams into one display list.

DOM candidates come first (they carry titles, ids and thumbnails), then
network streams that no DOM candidate already accounts for. This is also
where missing titles become display defaults.
"""

from media_models import MediaEntry

# Kinds a frame-capture helper can open directly (manifests need a player)
CAPTURABLE_KINDS = frozenset({'mp4', 'webm', 'flv', 'unknown'})


def _dom_urls(video):
    urls = {video.page_url}
    if video.source_url:
        urls.add(video.source_url)
    urls.update(s.url for s in video.nested_streams)
    return urls


def aggregate(videos, streams, page_title=None):
    """
    Build the merged list.

    Args:
        videos: VideoCandidate list from DomMediaScanner.scan()
        streams: StreamCandidate sequence from get_streams()
        page_title: Tab title used for untitled entries

    Returns:
        list: MediaEntry records, DOM first, then network
    """
    entries = []
    known_urls = set()

    for index, video in enumerate(videos, start=1):
        known_urls.update(_dom_urls(video))
        entries.append(MediaEntry(
            title=video.title or page_title or f"Video {index}",
            url=video.page_url,
            origin='dom',
            platform=video.platform,
            source_url=video.source_url,
            external_id=video.external_id,
            duration_seconds=video.duration_seconds,
            thumbnail_url=video.thumbnail_url,
            stream_kind=video.nested_streams[0].stream_kind if video.nested_streams else None,
        ))

    new_streams = [s for s in streams if s.url not in known_urls]
    for index, stream in enumerate(new_streams, start=1):
        if page_title:
            title = f"{page_title} ({index})" if len(new_streams) > 1 else page_title
        else:
            title = f"Stream {index}"
        entries.append(MediaEntry(
            title=title,
            url=stream.url,
            origin='network',
            platform='stream',
            size_bytes=stream.size_bytes,
            quality_label=stream.quality_label,
            stream_kind=stream.stream_kind,
        ))

    return entries


def pick_capture_url(entries):
    """
    First URL a frame-capture helper can load directly.

    DOM source URLs are preferred; network streams qualify when their kind is
    a plain file rather than a manifest or segment.
    """
    for entry in entries:
        if entry.origin == 'dom' and entry.source_url:
            return entry.source_url
    for entry in entries:
        if entry.origin == 'network' and entry.stream_kind in CAPTURABLE_KINDS:
            return entry.url
    return None
