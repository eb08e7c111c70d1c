"""Tests for platform identification and the platform clients."""

import subprocess
from types import SimpleNamespace

import pytest

from glance.errors import InvalidReference, NoCaptions, TransportError, UpstreamRejected
from glance.platforms import identify
from glance.platforms import bilibili, youtube
from glance.schemas import Platform


# ── identify ─────────────────────────────────────────────────

@pytest.mark.parametrize("url, expected", [
    ("https://www.bilibili.com/video/BV1J4411C76B", (Platform.BILIBILI, "BV1J4411C76B")),
    ("https://www.bilibili.com/video/BV1J4411C76B/?spm_id_from=333.999", (Platform.BILIBILI, "BV1J4411C76B")),
    ("BV1J4411C76B", (Platform.BILIBILI, "BV1J4411C76B")),
    ("https://www.youtube.com/watch?v=dQw4w9WgXcQ&t=42s", (Platform.YOUTUBE, "dQw4w9WgXcQ")),
    ("https://youtu.be/dQw4w9WgXcQ", (Platform.YOUTUBE, "dQw4w9WgXcQ")),
    ("https://m.youtube.com/shorts/dQw4w9WgXcQ", (Platform.YOUTUBE, "dQw4w9WgXcQ")),
    ("youtube.com/embed/dQw4w9WgXcQ", (Platform.YOUTUBE, "dQw4w9WgXcQ")),
    ("  dQw4w9WgXcQ  ", (Platform.YOUTUBE, "dQw4w9WgXcQ")),
])
def test_identify_recognizes_urls_and_bare_ids(url, expected) -> None:
    assert tuple(identify(url)) == expected
    assert identify(url) == identify(url)


@pytest.mark.parametrize("url", [
    "not-a-video",
    "Not-A-Video",
    "Hello-World",
    "",
    "https://example.com/watch?v=dQw4w9WgXcQ",
    "https://www.youtube.com/watch?v=short",
    "https://www.bilibili.com/video/av170001",
])
def test_identify_rejects_unknown_references(url) -> None:
    with pytest.raises(InvalidReference):
        identify(url)


# ── Bilibili ─────────────────────────────────────────────────

@pytest.fixture
def bili_api(monkeypatch):
    """Route bilibili's JSON GETs to a dict of canned payloads."""
    bilibili._first_cid.cache_clear()
    requests: list[str] = []
    responses: dict[str, object] = {}

    def fake_get_json(url, params=None, headers=None, timeout=15.0):
        requests.append(url)
        reply = responses[url]
        if isinstance(reply, Exception):
            raise reply
        return reply

    monkeypatch.setattr("glance.platforms._http.get_json", fake_get_json)
    yield responses, requests
    bilibili._first_cid.cache_clear()


def test_bilibili_metadata_checks_domain_code(bili_api) -> None:
    responses, _ = bili_api
    responses[bilibili.VIEW_URL] = {"code": -404, "message": "啥都木有", "data": None}
    with pytest.raises(UpstreamRejected, match="-404"):
        bilibili.fetch_metadata("BV1J4411C76B")


def test_bilibili_metadata_maps_view_payload(bili_api) -> None:
    responses, _ = bili_api
    responses[bilibili.VIEW_URL] = {"code": 0, "data": {
        "bvid": "BV1J4411C76B", "title": "Intro to Testing", "desc": "about tests",
        "pic": "http://i0.hdslb.com/x.jpg", "duration": 600, "owner": {"name": "Tester"},
        "tname": "Knowledge",
    }}
    meta = bilibili.fetch_metadata("BV1J4411C76B")
    assert meta.title == "Intro to Testing"
    assert meta.author == "Tester"
    assert meta.duration_seconds == 600
    assert meta.category == "Knowledge"


def test_bilibili_captions_discover_asset_then_fetch_body(bili_api) -> None:
    responses, requests = bili_api
    responses[bilibili.PAGELIST_URL] = {"code": 0, "data": [{"cid": 123}]}
    responses[bilibili.PLAYER_URL] = {"code": 0, "data": {"subtitle": {"subtitles": [
        {"subtitle_url": "//aisubtitle.hdslb.com/bfs/sub.json"},
    ]}}}
    responses["https://aisubtitle.hdslb.com/bfs/sub.json"] = {"body": [
        {"from": 0.5, "to": 3.0, "content": "大家好"},
        {"from": 3.0, "to": 6.2, "content": "今天讲测试"},
    ]}

    segments = bilibili.fetch_captions("BV1J4411C76B")

    assert requests[-2:] == [bilibili.PLAYER_URL, "https://aisubtitle.hdslb.com/bfs/sub.json"]
    assert [s.text for s in segments] == ["大家好", "今天讲测试"]
    assert [s.id for s in segments] == ["t0", "t1"]
    assert segments[1].start_time_seconds == 3.0
    assert segments[1].display_timestamp == "00:03"


def test_bilibili_captions_missing_asset_is_no_captions(bili_api) -> None:
    responses, requests = bili_api
    responses[bilibili.PAGELIST_URL] = {"code": 0, "data": [{"cid": 123}]}
    responses[bilibili.PLAYER_URL] = {"code": 0, "data": {"subtitle": {"subtitles": []}}}
    with pytest.raises(NoCaptions):
        bilibili.fetch_captions("BV1J4411C76B")
    assert requests.count(bilibili.PLAYER_URL) == 1


def test_bilibili_captions_network_error_is_transport_error(bili_api) -> None:
    responses, _ = bili_api
    responses[bilibili.PAGELIST_URL] = TransportError("connection reset")
    with pytest.raises(TransportError):
        bilibili.fetch_captions("BV1J4411C76B")


def test_bilibili_audio_stream_prefers_base_url(bili_api) -> None:
    responses, _ = bili_api
    responses[bilibili.PAGELIST_URL] = {"code": 0, "data": [{"cid": 123}]}
    responses[bilibili.PLAYURL_URL] = {"code": 0, "data": {"dash": {"audio": [
        {"baseUrl": "https://upos.example/audio.m4s", "backup_url": ["https://backup/audio.m4s"]},
    ]}}}
    assert bilibili.audio_stream_url("BV1J4411C76B") == "https://upos.example/audio.m4s"
    assert bilibili.AUDIO_HEADERS["Referer"] == "https://www.bilibili.com"


# ── YouTube ──────────────────────────────────────────────────

def _fake_yt_dlp(monkeypatch, returncode=0, stdout="", stderr=""):
    calls: list[list[str]] = []

    def fake_run(command, *, capture_output=False, text=False, timeout=60, check=False):
        calls.append(command)
        return subprocess.CompletedProcess(command, returncode, stdout, stderr)

    monkeypatch.setattr("glance.platforms.youtube.shutil.which", lambda name: "/usr/bin/yt-dlp")
    monkeypatch.setattr("glance.platforms.youtube.subprocess.run", fake_run)
    return calls


def test_youtube_metadata_from_dump_json(monkeypatch) -> None:
    calls = _fake_yt_dlp(monkeypatch, stdout=(
        '{"id": "dQw4w9WgXcQ", "title": "Intro to Testing", "uploader": "Tester", '
        '"duration": 600, "thumbnail": "https://i.ytimg.com/x.jpg", '
        '"description": "d", "categories": ["Education"]}'
    ))
    meta = youtube.fetch_metadata("dQw4w9WgXcQ")
    assert "--dump-json" in calls[0]
    assert meta.title == "Intro to Testing"
    assert meta.duration_seconds == 600
    assert meta.category == "Education"


def test_youtube_unavailable_video_is_upstream_rejected(monkeypatch) -> None:
    _fake_yt_dlp(monkeypatch, returncode=1,
                 stderr="ERROR: [youtube] dQw4w9WgXcQ: Private video. Sign in if you've been granted access")
    with pytest.raises(UpstreamRejected):
        youtube.fetch_metadata("dQw4w9WgXcQ")


def test_youtube_missing_yt_dlp_is_transport_error(monkeypatch) -> None:
    monkeypatch.setattr("glance.platforms.youtube.shutil.which", lambda name: None)
    with pytest.raises(TransportError):
        youtube.fetch_metadata("dQw4w9WgXcQ")


class _FakeTranscript:
    language_code = "en"

    def __init__(self, snippets):
        self._snippets = snippets

    def fetch(self):
        return self._snippets


class _FakeTranscriptList:
    def __init__(self, transcripts):
        self._transcripts = transcripts

    def find_transcript(self, languages):
        if not self._transcripts:
            raise youtube.NoTranscriptFound("dQw4w9WgXcQ", languages, self)
        return self._transcripts[0]

    def __iter__(self):
        return iter(self._transcripts)


def test_youtube_captions_map_snippets_verbatim(monkeypatch) -> None:
    snippets = [
        SimpleNamespace(text="never gonna", start=0.0, duration=1.5),
        SimpleNamespace(text="give you up", start=1.5, duration=2.0),
    ]
    api = SimpleNamespace(list=lambda video_id: _FakeTranscriptList([_FakeTranscript(snippets)]))
    monkeypatch.setattr("glance.platforms.youtube.YouTubeTranscriptApi", lambda: api)

    segments = youtube.fetch_captions("dQw4w9WgXcQ")
    assert [s.text for s in segments] == ["never gonna", "give you up"]
    assert segments[1].start_time_seconds == 1.5


def test_youtube_disabled_captions_is_no_captions(monkeypatch) -> None:
    def raise_disabled(video_id):
        raise youtube.TranscriptsDisabled(video_id)

    monkeypatch.setattr("glance.platforms.youtube.YouTubeTranscriptApi",
                        lambda: SimpleNamespace(list=raise_disabled))
    with pytest.raises(NoCaptions):
        youtube.fetch_captions("dQw4w9WgXcQ")


def test_youtube_audio_stream_url_from_yt_dlp(monkeypatch) -> None:
    calls = _fake_yt_dlp(monkeypatch, stdout="https://rr1.googlevideo.com/videoplayback?x=1\n")
    assert youtube.audio_stream_url("dQw4w9WgXcQ").startswith("https://rr1.googlevideo.com/")
    assert "bestaudio" in calls[0]
