"""Glance HTTP API — backend resolver plus full analysis and chat.

Usage:
    uvicorn glance.api:app --port 3000

/api/resolve is the platform-facing half (metadata, captions, audio).
Point another glance at it with GLANCE_BACKEND_URL=http://host:3000.
"""

from __future__ import annotations

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from .assistant import AssistantSession
from .errors import InvalidReference, SessionNotInitialized, TransportError, UpstreamRejected
from .schemas import VideoRecord

app = FastAPI(title="Glance Service", version="0.1.0")
app.state.session = AssistantSession()


class AnalyzeRequest(BaseModel):
    url: str


class ChatRequest(BaseModel):
    message: str


class ChatResponse(BaseModel):
    reply: str


def _invalid(exc: Exception) -> HTTPException:
    return HTTPException(status_code=400, detail={"error": "invalid_reference", "message": str(exc)})


def _rejected(exc: Exception) -> HTTPException:
    return HTTPException(status_code=422, detail={"error": "upstream_rejected", "message": str(exc)})


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/api/resolve")
def resolve_video(req: AnalyzeRequest):
    from .platforms import identify
    from .service import resolution_to_payload, resolve

    try:
        resolution = resolve(identify(req.url))
    except InvalidReference as exc:
        raise _invalid(exc)
    except UpstreamRejected as exc:
        raise _rejected(exc)
    except TransportError as exc:
        raise HTTPException(status_code=502, detail={"error": "transport", "message": str(exc)})
    return resolution_to_payload(resolution)


@app.post("/api/analyze", response_model=VideoRecord)
def analyze_video(req: AnalyzeRequest):
    from .service import acquire

    try:
        record = acquire(req.url)
    except InvalidReference as exc:
        raise _invalid(exc)
    except UpstreamRejected as exc:
        raise _rejected(exc)

    app.state.session.initialize(record.transcript)
    return record


@app.post("/api/chat", response_model=ChatResponse)
def chat(req: ChatRequest):
    try:
        reply = app.state.session.send(req.message)
    except SessionNotInitialized as exc:
        raise HTTPException(status_code=409, detail={"error": "no_session", "message": str(exc)})
    return ChatResponse(reply=reply)
