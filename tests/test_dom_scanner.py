import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

from dom_scanner import DomMediaScanner, extract_youtube_id, parse_duration

PAGE = 'https://example.com/watch/'


def scan(html, page_url=PAGE, title=None):
    return DomMediaScanner().scan(html, page_url, title)


def test_video_with_src_and_nested_source():
    videos = scan('<html><body><video src="a.mp4"><source src="b.webm" type="video/webm"></video></body></html>')

    assert len(videos) == 1
    video = videos[0]
    assert video.platform == 'html5'
    assert video.source_url == 'https://example.com/watch/a.mp4'
    nested = {s.url: s.stream_kind for s in video.nested_streams}
    assert nested == {
        'https://example.com/watch/a.mp4': 'mp4',
        'https://example.com/watch/b.webm': 'webm',
    }
    assert video.nested_streams[1].content_type == 'video/webm'


def test_source_url_falls_back_to_nested_source():
    videos = scan('<video><source src="/media/clip.m3u8"></video>')
    assert videos[0].source_url == 'https://example.com/media/clip.m3u8'
    assert videos[0].nested_streams[0].stream_kind == 'hls'


def test_source_type_attribute_resolves_kind():
    html = '<video><source src="/live/stream?id=5" type="application/x-mpegURL"></video>'
    video = scan(html, 'https://example.com/')[0]
    assert [s.stream_kind for s in video.nested_streams] == ['hls']
    assert video.nested_streams[0].content_type == 'application/x-mpegURL'

    # the URL extension still wins over a mislabelled type
    html = '<video><source src="/v/clip.webm" type="video/mp4"></video>'
    assert scan(html)[0].nested_streams[0].stream_kind == 'webm'

    html = '<div><source src="/v/clip.mp4?x=1" type="video/mp4"></div>'
    assert scan(html)[0].nested_streams[0].stream_kind == 'mp4'


def test_current_src_snapshot_is_used():
    videos = scan('<video data-current-src="https://cdn.example.com/live.mp4"></video>')
    assert videos[0].source_url == 'https://cdn.example.com/live.mp4'


def test_small_videos_are_skipped():
    assert scan('<video src="a.mp4" width="50" height="50"></video>') == []
    assert scan('<video src="a.mp4" style="width: 40px; height: 30px"></video>') == []
    # rendered geometry from a live snapshot wins over attributes
    kept = scan('<video src="a.mp4" width="10" height="10" data-rendered-width="640" data-rendered-height="360"></video>')
    assert len(kept) == 1
    # no geometry at all is not treated as small
    assert len(scan('<video src="a.mp4"></video>')) == 1


def test_relative_sizes_are_unknown_geometry():
    assert len(scan('<video src="a.mp4" width="100%" height="50%"></video>')) == 1
    assert len(scan('<video src="a.mp4" width="50%" height="50%"></video>')) == 1
    assert len(scan('<video src="a.mp4" width="auto" height="20em"></video>')) == 1
    assert len(scan('<video src="a.mp4" style="width: 100%; height: 40%"></video>')) == 1
    # explicit px units still count as measured
    assert scan('<video src="a.mp4" width="50px" height="50px"></video>') == []


def test_blob_source_keeps_descriptor_without_url():
    videos = scan('<video src="blob:https://example.com/5f1c" width="640" height="360"></video>')
    assert len(videos) == 1
    assert videos[0].source_url is None
    assert videos[0].nested_streams == ()


def test_video_title_priority():
    assert scan('<video src="a.mp4" title="Attr" aria-label="Aria"></video>')[0].title == 'Attr'
    assert scan('<video src="a.mp4" aria-label="Aria"></video>')[0].title == 'Aria'

    html = '<article><h2> Launch   recap </h2><p>text</p><video src="a.mp4"></video></article>'
    assert scan(html)[0].title == 'Launch recap'

    html = '<div class="video-wrapper"><span class="video-title">Episode 4</span><video src="a.mp4"></video></div>'
    assert scan(html)[0].title == 'Episode 4'

    html = '<html><head><title>Page Title</title></head><body><div><video src="a.mp4"></video></div></body></html>'
    assert scan(html)[0].title == 'Page Title'

    assert scan('<video src="a.mp4"></video>')[0].title is None


def test_video_poster_and_duration():
    video = scan('<video src="a.mp4" poster="/img/p.jpg" data-duration="93.5"></video>')[0]
    assert video.thumbnail_url == 'https://example.com/img/p.jpg'
    assert video.duration_seconds == 93.5


def test_youtube_watch_page():
    html = """
    <html><head><title>My Video - YouTube</title></head><body>
      <h1 class="ytd-watch-metadata"><yt-formatted-string>My Video</yt-formatted-string></h1>
      <div class="ytp-time-duration">1:02:03</div>
    </body></html>
    """
    videos = scan(html, 'https://www.youtube.com/watch?v=abc123XYZ&t=5')

    assert len(videos) == 1
    video = videos[0]
    assert video.platform == 'youtube'
    assert video.external_id == 'abc123XYZ'
    assert video.title == 'My Video'
    assert video.duration_seconds == 3723
    assert video.thumbnail_url == 'https://img.youtube.com/vi/abc123XYZ/maxresdefault.jpg'
    assert video.source_url is None


def test_youtube_player_response_script():
    html = """
    <html><head><title>Doc - YouTube</title></head><body>
      <script>var ytInitialPlayerResponse = {"videoDetails": {"title": "From Script", "lengthSeconds": "212"}};</script>
    </body></html>
    """
    video = scan(html, 'https://www.youtube.com/shorts/sh0rt')[0]
    assert video.external_id == 'sh0rt'
    assert video.title == 'From Script'
    assert video.duration_seconds == 212


def test_youtube_title_falls_back_to_document_title():
    html = '<html><head><title>Cats - YouTube</title></head><body></body></html>'
    assert scan(html, 'https://youtu.be/xyz')[0].title == 'Cats'


def test_youtube_home_page_has_no_platform_candidate():
    assert scan('<html><body></body></html>', 'https://www.youtube.com/') == []


def test_vimeo_page():
    html = '<html><head><title>Doc</title></head><body><h1>Vimeo Title</h1></body></html>'
    video = scan(html, 'https://vimeo.com/76979871')[0]
    assert video.platform == 'vimeo'
    assert video.external_id == '76979871'
    assert video.title == 'Vimeo Title'
    assert video.thumbnail_url == 'https://vumbnail.com/76979871.jpg'


def test_iframe_embeds():
    html = """
    <iframe src="//www.youtube.com/embed/XYZ?rel=0" title="Embedded talk"></iframe>
    <iframe data-src="https://player.vimeo.com/video/1234"></iframe>
    <iframe src="https://cdn.example.com/player/1"></iframe>
    <iframe src="https://ads.example.com/frame"></iframe>
    """
    videos = scan(html, 'https://example.com/')

    assert [v.platform for v in videos] == ['youtube', 'vimeo', 'html5']
    assert videos[0].external_id == 'XYZ'
    assert videos[0].title == 'Embedded talk'
    assert videos[0].page_url == 'https://www.youtube.com/embed/XYZ?rel=0'
    assert videos[1].external_id == '1234'
    assert videos[1].title is None
    assert all(v.source_url is None for v in videos)


def test_orphan_sources():
    html = '<div><source src="/media/clip.webm" type="video/webm"></div><video><source src="inner.mp4"></video>'
    videos = scan(html, 'https://example.com/')

    assert len(videos) == 2
    orphan = videos[1]
    assert orphan.source_url == 'https://example.com/media/clip.webm'
    assert orphan.nested_streams[0].stream_kind == 'webm'
    assert orphan.nested_streams[0].content_type == 'video/webm'


def test_deduplication_prefers_earlier_strategies():
    html = '<iframe src="https://www.youtube.com/embed/abc"></iframe>'
    videos = scan(html, 'https://www.youtube.com/watch?v=abc')
    assert len(videos) == 1
    assert videos[0].page_url == 'https://www.youtube.com/watch?v=abc'

    html = '<video src="same.mp4"></video><video src="same.mp4" title="second"></video>'
    videos = scan(html)
    assert len(videos) == 1
    assert videos[0].title is None


def test_scan_is_repeatable():
    html = '<video src="a.mp4"></video><iframe src="https://player.vimeo.com/video/9"></iframe>'
    scanner = DomMediaScanner()
    first = scanner.scan(html, PAGE)
    second = scanner.scan(html, PAGE)
    assert [v.dedup_key for v in first] == [v.dedup_key for v in second]
    assert first is not second


def test_primary_candidate():
    assert DomMediaScanner.primary([]) is None
    videos = scan('<video src="a.mp4"></video>')
    assert DomMediaScanner.primary(videos) is videos[0]


def test_extract_youtube_id_shapes():
    assert extract_youtube_id('https://www.youtube.com/watch?v=aaa') == 'aaa'
    assert extract_youtube_id('https://www.youtube.com/watch?feature=share&v=bbb') == 'bbb'
    assert extract_youtube_id('https://youtu.be/ccc?t=10') == 'ccc'
    assert extract_youtube_id('https://www.youtube.com/embed/ddd') == 'ddd'
    assert extract_youtube_id('https://www.youtube.com/shorts/eee') == 'eee'
    assert extract_youtube_id('https://www.youtube.com/live/fff') == 'fff'
    assert extract_youtube_id('https://www.youtube.com/feed/trending') is None


def test_parse_duration():
    assert parse_duration('4:05') == 245
    assert parse_duration('1:00:00') == 3600
    assert parse_duration('') is None
    assert parse_duration('live') is None
