import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

import json

import pytest

from detector_errors import HarFormatError
from har_import import entry_to_event, read_har_entries, replay_har
from session_manager import SessionLifecycleManager


def har_entry(url, status=200, headers=None, mime=None, size=0, resource_type='media', pageref='page_1'):
    return {
        'pageref': pageref,
        '_resourceType': resource_type,
        'request': {'method': 'GET', 'url': url},
        'response': {
            'status': status,
            'headers': headers or [],
            'content': {'size': size, 'mimeType': mime or ''},
        },
    }


def write_har(tmp_path, entries):
    path = tmp_path / 'capture.har'
    path.write_text(json.dumps({'log': {'version': '1.2', 'entries': entries}}), encoding='utf-8')
    return path


def sample_entries():
    return [
        har_entry('https://cdn.example.com/v/movie.mp4',
                  headers=[{'name': 'Content-Type', 'value': 'video/mp4'},
                           {'name': 'Content-Length', 'value': '2000000'}]),
        har_entry('https://cdn.example.com/img/logo.png', mime='image/png', size=4000, resource_type='image'),
        har_entry('https://cdn.example.com/v/missing.mp4', status=404,
                  headers=[{'name': 'Content-Type', 'value': 'video/mp4'}]),
        har_entry('https://cdn.example.com/live/index.m3u8', mime='application/vnd.apple.mpegurl',
                  size=500, resource_type='xhr', pageref='page_2'),
    ]


def test_replay_follows_page_changes(tmp_path):
    manager = SessionLifecycleManager()
    summary = replay_har(write_har(tmp_path, sample_entries()), manager, session_id=3)

    assert summary == {'entries': 4, 'accepted': 2, 'navigations': 1}
    streams = manager.get_streams(3)
    assert [s.url for s in streams] == ['https://cdn.example.com/live/index.m3u8']
    assert streams[0].stream_kind == 'hls'
    assert streams[0].size_bytes == 500


def test_replay_without_navigation_keeps_everything(tmp_path):
    manager = SessionLifecycleManager()
    replay_har(write_har(tmp_path, sample_entries()), manager, follow_navigation=False)
    assert [s.stream_kind for s in manager.get_streams(1)] == ['mp4', 'hls']


def test_entry_without_response_has_no_status():
    event = entry_to_event(har_entry('https://cdn.example.com/v/a.mp4', status=0), session_id=1)
    assert event.status_code is None
    assert event.resource_kind == 'media'


def test_fetch_entries_map_to_xhr():
    event = entry_to_event(har_entry('https://api.example.com/x', resource_type='fetch'), session_id=1)
    assert event.resource_kind == 'xhr'


def test_bad_har_files(tmp_path):
    broken = tmp_path / 'broken.har'
    broken.write_text('{not json', encoding='utf-8')
    with pytest.raises(HarFormatError):
        read_har_entries(broken)

    empty = tmp_path / 'empty.har'
    empty.write_text(json.dumps({'log': {}}), encoding='utf-8')
    with pytest.raises(HarFormatError):
        read_har_entries(empty)

    with pytest.raises(HarFormatError):
        read_har_entries(tmp_path / 'nope.har')
