"""
HAR Replay
Feeds the responses recorded in a HAR file (DevTools "Save all as HAR")
through a SessionLifecycleManager, in recorded order.
"""

import json
from pathlib import Path

from detector_errors import HarFormatError
from media_models import ResponseEvent

# DevTools resource types -> browser request kinds used by the ruleset
RESOURCE_KIND_MAP = {
    'fetch': 'xhr',
    'xhr': 'xhr',
    'media': 'media',
    'document': 'main_frame',
    'script': 'script',
    'stylesheet': 'stylesheet',
    'image': 'image',
    'font': 'font',
}


def read_har_entries(path):
    """
    Load the entry list of a HAR file.

    Raises:
        HarFormatError: unreadable file, invalid JSON or no log.entries
    """
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except OSError as e:
        raise HarFormatError(f"Cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise HarFormatError(f"{path} is not valid JSON: {e}") from e

    entries = (data.get('log') or {}).get('entries') if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise HarFormatError(f"{path} has no log.entries list")
    return entries


def entry_to_event(entry, session_id):
    """Convert one HAR entry into a ResponseEvent."""
    request = entry.get('request') or {}
    response = entry.get('response') or {}
    headers = [
        {'name': h.get('name', ''), 'value': h.get('value')}
        for h in response.get('headers') or []
    ]
    names = {h['name'].lower() for h in headers}

    content = response.get('content') or {}
    if 'content-type' not in names and content.get('mimeType'):
        headers.append({'name': 'content-type', 'value': content['mimeType']})
    if 'content-length' not in names and (content.get('size') or 0) > 0:
        headers.append({'name': 'content-length', 'value': str(content['size'])})

    resource_type = (entry.get('_resourceType') or 'other').lower()
    status = response.get('status')

    return ResponseEvent(
        session_id=session_id,
        url=request.get('url', ''),
        resource_kind=RESOURCE_KIND_MAP.get(resource_type, 'other'),
        # HAR writes 0 for requests that never got a response
        status_code=status if isinstance(status, int) and status > 0 else None,
        response_headers=headers,
    )


def replay_har(path, manager, session_id=1, follow_navigation=True):
    """
    Replay a HAR file into one session.

    Args:
        path: HAR file path
        manager: SessionLifecycleManager receiving the events
        session_id: Session the capture is attributed to
        follow_navigation: Reset the session when the HAR switches page

    Returns:
        dict: entry, accepted and navigation counts
    """
    entries = read_har_entries(path)
    accepted = 0
    navigations = 0
    current_page = None

    for entry in entries:
        page_ref = entry.get('pageref')
        if follow_navigation and page_ref and page_ref != current_page:
            if current_page is not None:
                url = (entry.get('request') or {}).get('url', '')
                if manager.observe_navigation(session_id, url):
                    navigations += 1
            current_page = page_ref

        if manager.observe_response(entry_to_event(entry, session_id)) is not None:
            accepted += 1

    print(f"[HAR] Replayed {len(entries)} entries from {Path(path).name}: "
          f"{accepted} stream(s) accepted, {navigations} navigation(s)")

    return {
        'entries': len(entries),
        'accepted': accepted,
        'navigations': navigations,
    }
