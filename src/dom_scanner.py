"""
DOM Media Scanner
Finds playable media in a document snapshot: platform pages, <video>
elements, player iframes and stray <source> declarations.

Scans are pure reads of the parsed document. Every call returns a fresh
list of VideoCandidate records; nothing is cached between calls.
"""

import json
import math
import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from media_models import StreamCandidate, VideoCandidate
from stream_rules import StreamRuleset

DEFAULT_MIN_VIDEO_AREA = 10000  # 100x100 px

YOUTUBE_ID_PATTERNS = [
    re.compile(r'youtube\.com/watch\?(?:[^#]*&)?v=([^&\n?#]+)'),
    re.compile(r'youtu\.be/([^&\n?#/]+)'),
    re.compile(r'youtube(?:-nocookie)?\.com/embed/([^&\n?#/]+)'),
    re.compile(r'youtube\.com/shorts/([^&\n?#/]+)'),
    re.compile(r'youtube\.com/live/([^&\n?#/]+)'),
]

YOUTUBE_TITLE_SELECTORS = [
    'h1.ytd-video-primary-info-renderer',
    'h1.ytd-watch-metadata yt-formatted-string',
    '#title h1 yt-formatted-string',
    'meta[name="title"]',
]

VIMEO_PAGE_ID = re.compile(r'vimeo\.com/(\d+)')
VIMEO_PLAYER_ID = re.compile(r'player\.vimeo\.com/video/(\d+)')
YOUTUBE_EMBED_ID = re.compile(r'youtube(?:-nocookie)?\.com/embed/([^?&#/]+)')

IFRAME_KEYWORDS = ('video', 'player', 'embed')

PLAYER_RESPONSE_MARKER = re.compile(r'ytInitialPlayerResponse\s*=\s*')

STYLE_DIMENSION = {
    'width': re.compile(r'(?:^|;)\s*width\s*:\s*([\d.]+)px', re.I),
    'height': re.compile(r'(?:^|;)\s*height\s*:\s*([\d.]+)px', re.I),
}

# width="640" or width="640px"; percentages, auto and em units are not pixels
PIXEL_VALUE = re.compile(r'\s*(\d+(?:\.\d+)?)\s*(?:px)?\s*$', re.I)


def youtube_thumbnail(video_id):
    return f"https://img.youtube.com/vi/{video_id}/maxresdefault.jpg"


def vimeo_thumbnail(video_id):
    return f"https://vumbnail.com/{video_id}.jpg"


def extract_youtube_id(url):
    """YouTube video id from watch, short link, embed, shorts or live URLs."""
    for pattern in YOUTUBE_ID_PATTERNS:
        match = pattern.search(url or '')
        if match:
            return match.group(1)
    return None


def parse_duration(text):
    """'1:02:03' or '4:05' -> seconds; None when unparsable."""
    parts = (text or '').strip().split(':')
    try:
        numbers = [int(p) for p in parts]
    except ValueError:
        return None
    if len(numbers) == 3:
        return numbers[0] * 3600 + numbers[1] * 60 + numbers[2]
    if len(numbers) == 2:
        return numbers[0] * 60 + numbers[1]
    return None


def _text(element):
    if element is None:
        return ''
    if element.name == 'meta':
        return (element.get('content') or '').strip()
    return ' '.join(element.get_text().split())


def _class_string(element):
    classes = element.get('class') or []
    if isinstance(classes, str):
        return classes
    return ' '.join(classes)


def _to_number(value):
    if value is None:
        return None
    match = re.match(r'\s*([\d.]+)', str(value))
    if not match:
        return None
    try:
        number = float(match.group(1))
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _pixels(value):
    """Pixel length from an attribute value; None for relative or unknown units."""
    if value is None:
        return None
    match = PIXEL_VALUE.match(str(value))
    if not match:
        return None
    return _to_number(match.group(1))


class DomMediaScanner:
    """Extracts VideoCandidate records from HTML."""

    def __init__(self, min_video_area=DEFAULT_MIN_VIDEO_AREA, ruleset=None, verbose=False):
        self.min_video_area = min_video_area
        self.ruleset = ruleset or StreamRuleset()
        self.verbose = verbose

    @classmethod
    def from_config(cls, settings, ruleset=None):
        return cls(
            min_video_area=settings.get('min_video_area', DEFAULT_MIN_VIDEO_AREA),
            ruleset=ruleset,
            verbose=settings.get('verbose', False),
        )

    def scan(self, html, page_url, document_title=None):
        """
        Scan an HTML document.

        Args:
            html: Document markup
            page_url: URL the document was loaded from
            document_title: Title override (the live tab title); defaults to <title>

        Returns:
            list: Deduplicated VideoCandidate records in detection order
        """
        soup = BeautifulSoup(html or '', 'html.parser')
        return self.scan_soup(soup, page_url, document_title)

    def scan_soup(self, soup, page_url, document_title=None):
        if document_title is None and soup.title is not None:
            document_title = _text(soup.title) or None

        candidates = []

        # 1. Platform page
        youtube = self._scan_youtube(soup, page_url, document_title)
        if youtube:
            candidates.append(youtube)
        vimeo = self._scan_vimeo(soup, page_url, document_title)
        if vimeo:
            candidates.append(vimeo)

        # 2. <video> elements
        candidates.extend(self._scan_video_elements(soup, page_url, document_title))

        # 3. Player iframes
        candidates.extend(self._scan_iframes(soup, page_url))

        # 4. <source> declared outside any <video>
        candidates.extend(self._scan_orphan_sources(soup, page_url, document_title))

        videos = self.deduplicate(candidates)
        if self.verbose and videos:
            print(f"[DOM] {len(videos)} video(s) detected on {page_url[:80]}")
        return videos

    @staticmethod
    def deduplicate(candidates):
        """Keep the first candidate per id / source URL / page URL."""
        seen = set()
        unique = []
        for candidate in candidates:
            key = candidate.dedup_key
            if key in seen:
                continue
            seen.add(key)
            unique.append(candidate)
        return unique

    @staticmethod
    def primary(candidates):
        """The highest-confidence candidate, or None."""
        return candidates[0] if candidates else None

    # ------------------------------------------------------------------
    # Platform pages
    # ------------------------------------------------------------------

    def _scan_youtube(self, soup, page_url, document_title):
        if 'youtube.com' not in page_url and 'youtu.be' not in page_url:
            return None

        video_id = extract_youtube_id(page_url)
        if not video_id:
            return None

        player = self._player_response_details(soup)

        title = None
        for selector in YOUTUBE_TITLE_SELECTORS:
            title = _text(soup.select_one(selector))
            if title:
                break
        if not title:
            title = player.get('title')
        if not title and document_title:
            title = document_title.replace(' - YouTube', '').strip() or None

        duration = parse_duration(_text(soup.select_one('.ytp-time-duration')))
        if duration is None:
            duration = _to_number(player.get('lengthSeconds'))

        return VideoCandidate(
            platform='youtube',
            external_id=video_id,
            title=title or None,
            duration_seconds=duration,
            page_url=page_url,
            thumbnail_url=youtube_thumbnail(video_id),
        )

    def _player_response_details(self, soup):
        """videoDetails from an embedded ytInitialPlayerResponse script, or {}."""
        decoder = json.JSONDecoder()
        for script in soup.find_all('script'):
            content = script.string or script.get_text()
            if not content or 'ytInitialPlayerResponse' not in content:
                continue
            match = PLAYER_RESPONSE_MARKER.search(content)
            if not match:
                continue
            try:
                data, _ = decoder.raw_decode(content, match.end())
            except ValueError:
                continue
            if isinstance(data, dict) and isinstance(data.get('videoDetails'), dict):
                return data['videoDetails']
        return {}

    def _scan_vimeo(self, soup, page_url, document_title):
        if 'vimeo.com' not in page_url:
            return None

        match = VIMEO_PAGE_ID.search(page_url)
        if not match:
            return None

        video_id = match.group(1)
        title = _text(soup.find('h1')) or document_title

        return VideoCandidate(
            platform='vimeo',
            external_id=video_id,
            title=title,
            page_url=page_url,
            thumbnail_url=vimeo_thumbnail(video_id),
        )

    # ------------------------------------------------------------------
    # HTML5 video
    # ------------------------------------------------------------------

    def _rendered_area(self, video):
        """Rendered area in px^2, or None when the snapshot carries no geometry."""
        width = _to_number(video.get('data-rendered-width'))
        height = _to_number(video.get('data-rendered-height'))

        if width is None or height is None:
            width = _pixels(video.get('width'))
            height = _pixels(video.get('height'))

        if width is None or height is None:
            style = video.get('style') or ''
            w_match = STYLE_DIMENSION['width'].search(style)
            h_match = STYLE_DIMENSION['height'].search(style)
            if w_match and h_match:
                width = _to_number(w_match.group(1))
                height = _to_number(h_match.group(1))

        if width is None or height is None:
            return None
        return width * height

    def _scan_video_elements(self, soup, page_url, document_title):
        videos = []

        for video in soup.find_all('video'):
            area = self._rendered_area(video)
            if area is not None and area < self.min_video_area:
                continue

            source_url = video.get('src') or video.get('data-current-src')
            if not source_url:
                first_source = video.find('source', src=True)
                source_url = first_source.get('src') if first_source else None

            if source_url and not source_url.startswith('blob:'):
                source_url = urljoin(page_url, source_url)
            else:
                source_url = None

            poster = video.get('poster')

            videos.append(VideoCandidate(
                platform='html5',
                title=self._video_title(video, document_title),
                duration_seconds=_to_number(video.get('duration') or video.get('data-duration')),
                page_url=page_url,
                source_url=source_url,
                thumbnail_url=urljoin(page_url, poster) if poster else None,
                nested_streams=tuple(self._video_sources(video, page_url)),
            ))

        return videos

    def _video_title(self, video, document_title):
        if video.get('title'):
            return video['title']

        if video.get('aria-label'):
            return video['aria-label']

        for parent in video.parents:
            if parent.name in ('article', 'section') or (
                parent.name == 'div' and re.search(r'video|player', _class_string(parent))
            ):
                heading = _text(parent.select_one('h1, h2, h3, h4, [class*="title"]'))
                if heading:
                    return heading
                break

        return document_title

    def _video_sources(self, video, page_url):
        streams = []

        src = video.get('src')
        if src and not src.startswith('blob:'):
            url = urljoin(page_url, src)
            streams.append(self._source_stream(url))

        for source in video.find_all('source'):
            src = source.get('src')
            if not src or src.startswith('blob:'):
                continue
            url = urljoin(page_url, src)
            streams.append(self._source_stream(url, source.get('type')))

        return streams

    def _source_stream(self, url, content_type=None):
        """Declared media source; the type attribute counts as its MIME evidence."""
        return StreamCandidate(
            url=url,
            stream_kind=self.ruleset.resolve_stream_kind(url, content_type or ''),
            content_type=content_type or None,
        )

    # ------------------------------------------------------------------
    # Iframes and orphan sources
    # ------------------------------------------------------------------

    def _scan_iframes(self, soup, page_url):
        videos = []

        for iframe in soup.find_all('iframe'):
            src = iframe.get('src') or iframe.get('data-src') or ''
            if not src:
                continue
            src = urljoin(page_url, src)
            title = iframe.get('title') or None

            yt_match = YOUTUBE_EMBED_ID.search(src)
            if yt_match:
                videos.append(VideoCandidate(
                    platform='youtube',
                    external_id=yt_match.group(1),
                    title=title,
                    page_url=src,
                    thumbnail_url=youtube_thumbnail(yt_match.group(1)),
                ))
                continue

            vimeo_match = VIMEO_PLAYER_ID.search(src)
            if vimeo_match:
                videos.append(VideoCandidate(
                    platform='vimeo',
                    external_id=vimeo_match.group(1),
                    title=title,
                    page_url=src,
                    thumbnail_url=vimeo_thumbnail(vimeo_match.group(1)),
                ))
                continue

            if any(kw in src.lower() for kw in IFRAME_KEYWORDS):
                videos.append(VideoCandidate(platform='html5', title=title, page_url=src))

        return videos

    def _scan_orphan_sources(self, soup, page_url, document_title):
        videos = []

        for source in soup.select('source[src*=".mp4"], source[src*=".webm"], source[src*=".m3u8"]'):
            if source.find_parent('video') is not None:
                continue

            url = urljoin(page_url, source['src'])
            videos.append(VideoCandidate(
                platform='html5',
                title=document_title,
                page_url=page_url,
                source_url=url,
                nested_streams=(self._source_stream(url, source.get('type')),),
            ))

        return videos
