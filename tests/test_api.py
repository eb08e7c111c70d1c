"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from glance import api, service
from glance.assistant import AssistantSession
from glance.errors import TransportError, UpstreamRejected
from glance.platforms import VideoReference
from glance.schemas import Platform, Provenance, TranscriptSegment, VideoMetadata, VideoRecord


@pytest.fixture
def client():
    api.app.state.session = AssistantSession()
    return TestClient(api.app)


def _record() -> VideoRecord:
    return VideoRecord(
        platform=Platform.YOUTUBE, external_id="dQw4w9WgXcQ", title="Intro to Testing",
        author="Tester", duration_seconds=600, provenance=Provenance.OFFICIAL,
        transcript=[TranscriptSegment(id="t0", start_time_seconds=0, text="hello")],
    )


def test_health(client) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_analyze_invalid_url_is_400(client) -> None:
    resp = client.post("/api/analyze", json={"url": "not-a-video"})
    assert resp.status_code == 400
    assert resp.json()["detail"]["error"] == "invalid_reference"


def test_analyze_returns_record_and_opens_chat(client, monkeypatch, fake_llm) -> None:
    monkeypatch.setattr(service, "acquire", lambda url: _record())
    fake_llm("It says hello.")

    resp = client.post("/api/analyze", json={"url": "dQw4w9WgXcQ"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["provenance"] == "official"
    assert body["transcript"][0]["display_timestamp"] == "00:00"

    chat = client.post("/api/chat", json={"message": "what does it say?"})
    assert chat.json() == {"reply": "It says hello."}


def test_chat_without_analysis_is_409(client) -> None:
    resp = client.post("/api/chat", json={"message": "hi"})
    assert resp.status_code == 409


def test_resolve_serves_tier_payload(client, monkeypatch) -> None:
    metadata = VideoMetadata(platform=Platform.YOUTUBE, external_id="dQw4w9WgXcQ",
                             title="Intro to Testing", author="Tester", duration_seconds=600)
    monkeypatch.setattr(service, "resolve", lambda ref: service.Resolution(
        ref, metadata, service.Untranscribed("no audio route")))

    body = client.post("/api/resolve", json={"url": "https://youtu.be/dQw4w9WgXcQ"}).json()
    assert body["tier"] == "untranscribed"
    assert body["metadata"]["title"] == "Intro to Testing"
    assert service.resolution_from_payload(
        VideoReference(Platform.YOUTUBE, "dQw4w9WgXcQ"), body).tier == service.Untranscribed("no audio route")


def test_resolve_maps_errors(client, monkeypatch) -> None:
    def rejected(ref):
        raise UpstreamRejected("Private video")

    monkeypatch.setattr(service, "resolve", rejected)
    assert client.post("/api/resolve", json={"url": "dQw4w9WgXcQ"}).status_code == 422

    def unreachable(ref):
        raise TransportError("yt-dlp is not installed")

    monkeypatch.setattr(service, "resolve", unreachable)
    assert client.post("/api/resolve", json={"url": "dQw4w9WgXcQ"}).status_code == 502
