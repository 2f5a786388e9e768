"""
Media Detector - Web Interface
FastAPI service exposing the stream classifier and DOM scanner over HTTP.
A browser extension (or any traffic observer) posts responses and
lifecycle signals; the UI reads merged candidate lists back.
"""

import sys
import os
from pathlib import Path
from typing import Dict, List, Optional, Union

# Get project root directory
PROJECT_ROOT = Path(__file__).parent.parent.resolve()

# Add src directory to path for imports
sys.path.insert(0, str(PROJECT_ROOT / 'src'))

# Change working directory to project root so the detector finds config.json
os.chdir(PROJECT_ROOT)

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field
import uvicorn

from candidate_aggregator import aggregate, pick_capture_url
from detector_config import load_config
from dom_scanner import DomMediaScanner
from media_models import ResponseEvent
from session_manager import SessionLifecycleManager, valid_session_id
from stream_rules import StreamRuleset
from utils import dump_models

settings = load_config()
ruleset = StreamRuleset.from_config(settings)
manager = SessionLifecycleManager.from_config(settings, ruleset=ruleset)
scanner = DomMediaScanner.from_config(settings, ruleset=ruleset)

app = FastAPI(
    title="Media Stream Detector",
    description="Classify tab traffic and page markup into playable media candidates",
    version="1.0.0"
)


class ResponseObservation(BaseModel):
    url: str
    resource_kind: str = 'other'
    status_code: Optional[int] = None
    response_headers: Union[List[Dict[str, Optional[str]]], Dict[str, str]] = Field(default_factory=list)


class NavigationSignal(BaseModel):
    url: str
    status: str = 'loading'


class DocumentSnapshot(BaseModel):
    html: str
    page_url: str
    title: Optional[str] = None


def validate_session_id(session_id: str) -> int:
    """Session ids are non-negative tab ids"""
    try:
        value = int(session_id)
    except ValueError:
        value = -1
    if not valid_session_id(value):
        raise HTTPException(status_code=400, detail="Invalid session id. Must be a non-negative integer.")
    return value


@app.post("/sessions/{session_id}/responses")
async def observe_response(session_id: str, observation: ResponseObservation):
    """Report one observed HTTP response for a tab"""
    sid = validate_session_id(session_id)
    stream = manager.observe_response(ResponseEvent(session_id=sid, **observation.model_dump()))
    return {
        "accepted": stream is not None,
        "stream": stream.model_dump(mode='json') if stream else None,
    }


@app.post("/sessions/{session_id}/navigation")
async def observe_navigation(session_id: str, signal: NavigationSignal):
    """Report a top-level navigation; a 'loading' transition resets the tab"""
    sid = validate_session_id(session_id)
    reset = manager.observe_navigation(sid, signal.url, status=signal.status)
    return {"reset": reset, "version": manager.session_version(sid)}


@app.delete("/sessions/{session_id}")
async def close_session(session_id: str):
    """Tab closed: drop everything known about it"""
    sid = validate_session_id(session_id)
    return {"closed": manager.close_session(sid)}


@app.get("/sessions/{session_id}/streams")
async def get_streams(session_id: str):
    """Current stream list for a tab, oldest first"""
    sid = validate_session_id(session_id)
    return {
        "session_id": sid,
        "version": manager.session_version(sid),
        "streams": dump_models(manager.get_streams(sid)),
    }


@app.get("/notices")
async def get_notices():
    """Pending 'stream added' notices; each is delivered at most once"""
    return {"notices": dump_models(manager.drain_notices())}


@app.post("/scan")
async def scan_document(snapshot: DocumentSnapshot):
    """Scan a document snapshot for media elements and embeds"""
    videos = scanner.scan(snapshot.html, snapshot.page_url, snapshot.title)
    return {"videos": dump_models(videos)}


@app.post("/sessions/{session_id}/candidates")
async def get_candidates(session_id: str, snapshot: DocumentSnapshot):
    """Merged display list: DOM candidates plus the tab's network streams"""
    sid = validate_session_id(session_id)
    videos = scanner.scan(snapshot.html, snapshot.page_url, snapshot.title)
    entries = aggregate(videos, manager.get_streams(sid), page_title=snapshot.title)
    return {
        "session_id": sid,
        "entries": dump_models(entries),
        "capture_url": pick_capture_url(entries),
    }


if __name__ == "__main__":
    print("\n" + "="*50)
    print("Media Stream Detector - Web Interface")
    print("="*50)
    print(f"\nProject root: {PROJECT_ROOT}")
    print("\nStarting server at http://localhost:8000\n")

    uvicorn.run(app, host="0.0.0.0", port=8000)
