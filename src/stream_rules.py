"""
URL / MIME heuristic ruleset for media stream detection.

Classification is a layered funnel over (url, content_type, resource_kind):

    Stage 1  exclusion       ad / tracking / static assets -> reject outright
    Stage 2  mime            known video, audio or manifest MIME -> accept
    Stage 3  url_pattern     stream extensions, manifests, video CDNs -> accept
    Stage 4  weak_heuristic  keyword fallback for media/xhr/other requests
    Stage 5  size floor      tiny bodies rejected unless HLS / DASH

Exclusion runs first so an ad pixel served as octet-stream never reaches the
allow-lists. Every stage is a plain method and can be called on its own.
"""

import re
from collections import namedtuple
from pathlib import Path

import yaml

from detector_errors import RuleConfigError
from media_models import SEGMENTED_KINDS

# ---------------------------------------------------------------------------
# Default rule tables
# ---------------------------------------------------------------------------

VIDEO_MIME_TYPES = [
    'video/mp4',
    'video/webm',
    'video/ogg',
    'video/x-flv',
    'video/quicktime',
    'video/x-msvideo',
    'video/x-matroska',
    'video/3gpp',
    'video/mpeg',
    'video/mp2t',
    'audio/mp4',
    'audio/mpeg',
    'audio/webm',
    'audio/ogg',
    'audio/aac',
    'application/x-mpegurl',
    'application/vnd.apple.mpegurl',
    'application/dash+xml',
    # some servers send media bodies untyped
    'application/octet-stream',
]

# MIME families that are never media, whatever the URL says
EXCLUDED_MIME_PREFIXES = (
    'image/',
    'font/',
    'text/css',
    'text/javascript',
    'application/javascript',
    'application/x-javascript',
    'application/font',
)

STREAM_EXTENSIONS = ('mp4', 'webm', 'm3u8', 'mpd', 'flv', 'ts', 'm4s', 'm4v', 'mov', 'avi', 'mkv', '3gp')

VIDEO_URL_PATTERNS = [
    re.compile(r'\.(?:' + '|'.join(STREAM_EXTENSIONS) + r')(?:\?|$|#)', re.I),
    re.compile(r'/manifest(?:\.m3u8|\.mpd)?', re.I),
    re.compile(r'/(?:playlist|master|index)\.m3u8', re.I),
    re.compile(r'videoplayback', re.I),
    re.compile(r'googlevideo\.com', re.I),
    re.compile(r'ytimg\.com.*\.webm', re.I),
    re.compile(r'\.akamaihd\.net.*video', re.I),
    re.compile(r'cloudfront.*video', re.I),
    re.compile(r'\.fbcdn\.net.*video', re.I),
    re.compile(r'twimg\.com.*video', re.I),
    re.compile(r'\.tiktokcdn\.com.*video', re.I),
    re.compile(r'\.instagram\.com.*video', re.I),
    re.compile(r'vimeocdn\.com', re.I),
    re.compile(r'player\.vimeo\.com', re.I),
    re.compile(r'dailymotion\.com.*video', re.I),
    re.compile(r'\.brightcove', re.I),
    re.compile(r'\.jwplatform', re.I),
    re.compile(r'\.jwpcdn', re.I),
    re.compile(r'bitmovin', re.I),
    re.compile(r'\.hls\.', re.I),
    re.compile(r'\.dash\.', re.I),
    re.compile(r'streaming', re.I),
    re.compile(r'(?:media|video).*\.mp4', re.I),
    re.compile(r'cdn.*video', re.I),
]

EXCLUDE_PATTERNS = [
    # Ad networks
    re.compile(r'googleads', re.I),
    re.compile(r'doubleclick', re.I),
    re.compile(r'googlesyndication', re.I),
    re.compile(r'googleadservices', re.I),
    # Analytics / telemetry
    re.compile(r'analytics', re.I),
    re.compile(r'tracking', re.I),
    re.compile(r'pixel', re.I),
    re.compile(r'beacon', re.I),
    re.compile(r'telemetry', re.I),
    # Static assets
    re.compile(r'\.(?:gif|png|jpe?g|svg|ico)(?:\?|$)', re.I),
    re.compile(r'\.woff', re.I),
    re.compile(r'\.ttf', re.I),
    re.compile(r'\.css(?:\?|$)', re.I),
    re.compile(r'\.js(?:\?|$)', re.I),
    re.compile(r'favicon', re.I),
    re.compile(r'thumbnail', re.I),
    re.compile(r'preview', re.I),
    re.compile(r'poster', re.I),
]

# Used together with an octet-stream content type
OCTET_STREAM_KEYWORDS = ['video', 'media', 'stream', 'play', 'watch']

# Any one of these in the URL is enough for the weak fallback
WEAK_KEYWORDS = ['video', 'media', 'stream', 'play', 'watch', 'clip', 'movie']

WEAK_RESOURCE_KINDS = frozenset({'media', 'xhr', 'xmlhttprequest', 'other'})

DEFAULT_MIN_SIZE_BYTES = 5000

# YouTube format identifiers
ITAG_QUALITY = {
    18: '360p', 22: '720p', 37: '1080p', 38: '3072p',
    82: '360p 3D', 83: '480p 3D', 84: '720p 3D', 85: '1080p 3D',
    133: '240p', 134: '360p', 135: '480p', 136: '720p', 137: '1080p',
    138: '2160p', 160: '144p', 242: '240p', 243: '360p', 244: '480p',
    247: '720p', 248: '1080p', 271: '1440p', 313: '2160p',
}

QUALITY_REGEX = {
    'P_TOKEN': re.compile(r'(?<!\d)(\d{3,4})p(?![a-z0-9])', re.I),
    'RESOLUTION': re.compile(r'(?<!\d)\d{3,4}x(\d{3,4})(?!\d)', re.I),
    'QUALITY_PARAM': re.compile(r'quality[=_-]?(\w+)', re.I),
    'RES_PARAM': re.compile(r'res[=_](\d+)', re.I),
    'TEXT_TOKEN': re.compile(r'[_-](hd|sd|hq|lq|4k|2k|1080|720|480|360|240|144)[_-]', re.I),
    'ITAG': re.compile(r'itag[=_](\d+)', re.I),
}

# URL evidence, checked before MIME evidence
KIND_BY_EXTENSION = [
    ('m3u8', 'hls'),
    ('mpd', 'dash'),
    ('mp4', 'mp4'),
    ('m4v', 'mp4'),
    ('webm', 'webm'),
    ('flv', 'flv'),
    # segments belong to the manifest family
    ('ts', 'hls'),
    ('m4s', 'hls'),
]

KIND_BY_MIME = [
    ('mpegurl', 'hls'),
    ('dash', 'dash'),
    ('mp4', 'mp4'),
    ('webm', 'webm'),
    ('flv', 'flv'),
    ('mp2t', 'hls'),
]

_EXTENSION_REGEX = {
    ext: re.compile(r'\.' + ext + r'(?![a-z0-9])', re.I) for ext, _ in KIND_BY_EXTENSION
}

STAGE_ACCEPT = 'accept'
STAGE_REJECT = 'reject'

RuleInput = namedtuple('RuleInput', ['url', 'url_lower', 'content_type', 'resource_kind'])

Classification = namedtuple('Classification', ['accepted', 'stream_kind', 'stage'])


def strip_query(url):
    """URL without its query string (fragment kept, as the browser reports it)."""
    return url.split('?', 1)[0]


def stream_kind_from_url(url):
    """Resolve a stream kind from URL evidence alone."""
    for ext, kind in KIND_BY_EXTENSION:
        if _EXTENSION_REGEX[ext].search(url or ''):
            return kind
    return 'unknown'


def resolve_stream_kind(url, content_type=''):
    """
    Resolve the stream kind of an accepted resource.

    URL extensions win over the MIME type because CDNs mislabel bodies often.
    """
    kind = stream_kind_from_url(url)
    if kind != 'unknown':
        return kind

    ct = (content_type or '').lower()
    for token, kind in KIND_BY_MIME:
        if token in ct:
            return kind
    return 'unknown'


def _numeric_label(value):
    return f"{value}p" if value.isdigit() else value


def infer_quality(url):
    """
    Best-effort quality label from a URL.

    Returns:
        str or None: e.g. '1080p', 'hd'; None when nothing matches
    """
    if not url:
        return None

    match = QUALITY_REGEX['P_TOKEN'].search(url)
    if match:
        return f"{match.group(1)}p"

    match = QUALITY_REGEX['RESOLUTION'].search(url)
    if match:
        return f"{match.group(1)}p"

    match = QUALITY_REGEX['QUALITY_PARAM'].search(url)
    if match:
        return _numeric_label(match.group(1))

    match = QUALITY_REGEX['RES_PARAM'].search(url)
    if match:
        return f"{match.group(1)}p"

    match = QUALITY_REGEX['TEXT_TOKEN'].search(url)
    if match:
        return _numeric_label(match.group(1))

    match = QUALITY_REGEX['ITAG'].search(url)
    if match:
        return ITAG_QUALITY.get(int(match.group(1)))

    return None


def _compile_patterns(raw_patterns, key):
    compiled = []
    for raw in raw_patterns or []:
        try:
            compiled.append(re.compile(str(raw), re.I))
        except re.error as e:
            raise RuleConfigError(f"Invalid pattern in '{key}': {raw!r} ({e})") from e
    return compiled


def load_rule_overrides(path):
    """
    Load additional rules from a YAML file.

    Recognised keys: exclude_patterns, url_patterns, mime_types,
    octet_stream_keywords, weak_keywords. Each is a list; entries are
    added to the defaults, never replace them.

    Raises:
        RuleConfigError: unreadable file, bad YAML or bad regex
    """
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise RuleConfigError(f"Cannot read rule file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise RuleConfigError(f"Invalid YAML in rule file {path}: {e}") from e

    if not isinstance(data, dict):
        raise RuleConfigError(f"Rule file {path} must contain a mapping")

    return {
        'exclude_patterns': _compile_patterns(data.get('exclude_patterns'), 'exclude_patterns'),
        'url_patterns': _compile_patterns(data.get('url_patterns'), 'url_patterns'),
        'mime_types': [str(m).lower() for m in data.get('mime_types') or []],
        'octet_stream_keywords': [str(k).lower() for k in data.get('octet_stream_keywords') or []],
        'weak_keywords': [str(k).lower() for k in data.get('weak_keywords') or []],
    }


class StreamRuleset:
    """Ordered classification stages plus the size floor and quality inference."""

    def __init__(self, min_size_bytes=DEFAULT_MIN_SIZE_BYTES, weak_heuristic=True, overrides=None):
        """
        Args:
            min_size_bytes: Size floor for non-segmented kinds
            weak_heuristic: True for the keyword fallback, False to disable it,
                or a callable(RuleInput) -> bool replacing it
            overrides: Output of load_rule_overrides()
        """
        overrides = overrides or {}
        self.min_size_bytes = min_size_bytes
        self.exclude_patterns = EXCLUDE_PATTERNS + overrides.get('exclude_patterns', [])
        self.url_patterns = VIDEO_URL_PATTERNS + overrides.get('url_patterns', [])
        self.mime_types = [m.lower() for m in VIDEO_MIME_TYPES] + overrides.get('mime_types', [])
        self.octet_stream_keywords = OCTET_STREAM_KEYWORDS + overrides.get('octet_stream_keywords', [])
        self.weak_keywords = WEAK_KEYWORDS + overrides.get('weak_keywords', [])

        if callable(weak_heuristic):
            weak_stage = weak_heuristic
        elif weak_heuristic:
            weak_stage = self.looks_like_video
        else:
            weak_stage = None

        self.stages = [
            ('exclusion', self.check_exclusion),
            ('mime', self.check_mime),
            ('url_pattern', self.check_url_pattern),
        ]
        if weak_stage is not None:
            self.stages.append(('weak_heuristic', self._weak_stage(weak_stage)))

    @classmethod
    def from_config(cls, settings):
        overrides = None
        if settings.get('rules_file'):
            overrides = load_rule_overrides(settings['rules_file'])
        return cls(
            min_size_bytes=settings.get('min_size_bytes', DEFAULT_MIN_SIZE_BYTES),
            weak_heuristic=settings.get('weak_heuristic', True),
            overrides=overrides,
        )

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def is_excluded(self, url, content_type=''):
        ct = (content_type or '').lower()
        if ct.startswith(EXCLUDED_MIME_PREFIXES):
            return True
        return any(p.search(url or '') for p in self.exclude_patterns)

    def check_exclusion(self, rule_input):
        if self.is_excluded(rule_input.url, rule_input.content_type):
            return STAGE_REJECT
        return None

    def check_mime(self, rule_input):
        if rule_input.content_type and any(m in rule_input.content_type for m in self.mime_types):
            return STAGE_ACCEPT
        return None

    def check_url_pattern(self, rule_input):
        if any(p.search(rule_input.url) for p in self.url_patterns):
            return STAGE_ACCEPT
        return None

    def looks_like_video(self, rule_input):
        """Keyword fallback. The noisiest stage; tune it here."""
        if 'octet-stream' in rule_input.content_type:
            return any(kw in rule_input.url_lower for kw in self.octet_stream_keywords)
        return any(kw in rule_input.url_lower for kw in self.weak_keywords)

    def _weak_stage(self, predicate):
        def stage(rule_input):
            if rule_input.resource_kind not in WEAK_RESOURCE_KINDS:
                return None
            return STAGE_ACCEPT if predicate(rule_input) else None
        return stage

    def passes_size_floor(self, stream_kind, size_bytes):
        if size_bytes is None or stream_kind in SEGMENTED_KINDS:
            return True
        return size_bytes >= self.min_size_bytes

    # ------------------------------------------------------------------
    # Funnel
    # ------------------------------------------------------------------

    def classify(self, url, content_type='', resource_kind='other', size_bytes=None):
        """
        Run the funnel for one response.

        Returns:
            Classification: (accepted, stream_kind, stage) where stage names
            the deciding stage, 'size_floor' or 'unclassified'
        """
        content_type = (content_type or '').lower()
        rule_input = RuleInput(
            url=url or '',
            url_lower=(url or '').lower(),
            content_type=content_type,
            resource_kind=(resource_kind or 'other').lower(),
        )

        decided_by = None
        for name, stage in self.stages:
            verdict = stage(rule_input)
            if verdict == STAGE_REJECT:
                return Classification(False, None, name)
            if verdict == STAGE_ACCEPT:
                decided_by = name
                break

        if decided_by is None:
            return Classification(False, None, 'unclassified')

        stream_kind = resolve_stream_kind(rule_input.url, content_type)
        if not self.passes_size_floor(stream_kind, size_bytes):
            return Classification(False, stream_kind, 'size_floor')

        return Classification(True, stream_kind, decided_by)

    infer_quality = staticmethod(infer_quality)
    resolve_stream_kind = staticmethod(resolve_stream_kind)
    stream_kind_from_url = staticmethod(stream_kind_from_url)
