"""Bilibili client — metadata, official subtitles and DASH audio via the public web API.

Every response carries a domain ``code`` next to the HTTP status; anything
other than 0 means the platform refused the request.

Subtitles take two sequential calls: the player endpoint lists subtitle
assets, then the chosen asset URL is fetched for the body.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any
from urllib.parse import quote

from . import PlatformCapabilities, _http
from ..errors import NoCaptions, TransportError, UpstreamRejected
from ..schemas import Platform, TranscriptSegment, VideoMetadata

logger = logging.getLogger(__name__)

VIEW_URL = "https://api.bilibili.com/x/web-interface/view"
PAGELIST_URL = "https://api.bilibili.com/x/player/pagelist"
PLAYER_URL = "https://api.bilibili.com/x/player/v2"
PLAYURL_URL = "https://api.bilibili.com/x/player/playurl"

# Stream hosts reject requests that don't look like they come from the site.
AUDIO_HEADERS = {
    "Referer": "https://www.bilibili.com",
    "User-Agent": _http.BROWSER_USER_AGENT,
}

_DASH = 16  # fnval flag: DASH, separate audio and video streams


def _data(payload: Any, endpoint: str) -> Any:
    if not isinstance(payload, dict) or "code" not in payload:
        raise TransportError(f"unexpected {endpoint} payload")
    if payload["code"] != 0:
        raise UpstreamRejected(
            f"Bilibili API error {payload['code']}: {payload.get('message', 'unknown')}"
        )
    return payload.get("data")


def _metadata_from_view(bvid: str, data: Any) -> VideoMetadata:
    if not isinstance(data, dict):
        raise TransportError("view payload has no data")
    return VideoMetadata(
        platform=Platform.BILIBILI,
        external_id=data.get("bvid") or bvid,
        title=data.get("title", ""),
        author=(data.get("owner") or {}).get("name", "Unknown"),
        duration_seconds=int(data.get("duration") or 0),
        thumbnail_url=data.get("pic", ""),
        description=data.get("desc", ""),
        category=data.get("tname") or None,
    )


def fetch_metadata(bvid: str) -> VideoMetadata:
    payload = _http.get_json(VIEW_URL, params={"bvid": bvid})
    return _metadata_from_view(bvid, _data(payload, "view"))


def fetch_metadata_via_relay(bvid: str, relay_url: str) -> VideoMetadata:
    """Same view payload, fetched through a relay instead of directly."""
    target = f"{VIEW_URL}?bvid={bvid}"
    payload = _http.get_json(relay_url + quote(target, safe=""))
    return _metadata_from_view(bvid, _data(payload, "view"))


@lru_cache(maxsize=128)
def _first_cid(bvid: str) -> int:
    pages = _data(_http.get_json(PAGELIST_URL, params={"bvid": bvid}), "pagelist")
    if not pages:
        raise TransportError(f"no pages listed for {bvid}")
    return int(pages[0]["cid"])


def fetch_captions(bvid: str) -> list[TranscriptSegment]:
    cid = _first_cid(bvid)
    player = _data(_http.get_json(PLAYER_URL, params={"bvid": bvid, "cid": cid}), "player")
    subtitles = ((player or {}).get("subtitle") or {}).get("subtitles") or []
    if not subtitles:
        raise NoCaptions(f"{bvid} has no subtitle assets")

    subtitle_url = subtitles[0].get("subtitle_url") or ""
    if not subtitle_url:
        raise NoCaptions(f"{bvid} subtitle asset has no URL")
    if subtitle_url.startswith("//"):
        subtitle_url = "https:" + subtitle_url
    logger.info("Found official subtitles: %s", subtitle_url)

    body = _http.get_json(subtitle_url)
    if not isinstance(body, dict) or not isinstance(body.get("body"), list):
        raise TransportError("subtitle asset is not a subtitle document")

    try:
        return [
            TranscriptSegment(id=f"t{i}", start_time_seconds=float(item["from"]), text=item["content"])
            for i, item in enumerate(body["body"])
        ]
    except (KeyError, TypeError, ValueError) as exc:
        raise TransportError(f"malformed subtitle entry: {exc}") from exc


def audio_stream_url(bvid: str) -> str:
    cid = _first_cid(bvid)
    data = _data(
        _http.get_json(PLAYURL_URL, params={"bvid": bvid, "cid": cid, "fnval": _DASH}),
        "playurl",
    )
    audio = ((data or {}).get("dash") or {}).get("audio") or []
    if not audio:
        raise TransportError("could not retrieve DASH audio stream url")
    best = audio[0]
    url = best.get("baseUrl") or best.get("base_url") or (best.get("backup_url") or [None])[0]
    if not url:
        raise TransportError("DASH audio entry has no url")
    return url


CAPABILITIES = PlatformCapabilities(
    platform=Platform.BILIBILI,
    fetch_metadata=fetch_metadata,
    fetch_captions=fetch_captions,
    audio_stream_url=audio_stream_url,
    audio_headers=AUDIO_HEADERS,
    fetch_metadata_via_relay=fetch_metadata_via_relay,
)
