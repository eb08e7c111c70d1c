"""Platform registry — routes a URL to its platform and platform capabilities."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Mapping, NamedTuple
from urllib.parse import parse_qs, urlparse

from ..errors import InvalidReference
from ..schemas import Platform, TranscriptSegment, VideoMetadata

_BVID_RE = re.compile(r"(BV[0-9A-Za-z]{10})(?![0-9A-Za-z])")
_YOUTUBE_ID_RE = re.compile(r"[A-Za-z0-9_-]{11}")
# The 11th character of a YouTube ID only encodes 2 bits, so it is one of these.
_BARE_YOUTUBE_RE = re.compile(r"[A-Za-z0-9_-]{10}[AEIMQUYcgkosw048]")
_YOUTUBE_HOSTS = ("youtube.com", "youtube-nocookie.com")
_YOUTUBE_PATH_PREFIXES = ("shorts", "embed", "live", "v")


class VideoReference(NamedTuple):
    platform: Platform
    external_id: str


@dataclass(frozen=True, slots=True)
class PlatformCapabilities:
    """Everything the pipeline needs from one platform, selected by platform tag."""

    platform: Platform
    fetch_metadata: Callable[[str], VideoMetadata]
    fetch_captions: Callable[[str], list[TranscriptSegment]]
    audio_stream_url: Callable[[str], str]
    audio_headers: Mapping[str, str]
    fetch_metadata_via_relay: Callable[[str, str], VideoMetadata]


def _youtube_id_from_url(url: str) -> str | None:
    parsed = urlparse(url if "://" in url else f"https://{url}")
    host = (parsed.hostname or "").lower()
    parts = [p for p in parsed.path.split("/") if p]

    candidate = None
    if host == "youtu.be" or host.endswith(".youtu.be"):
        candidate = parts[0] if parts else None
    elif any(host == h or host.endswith("." + h) for h in _YOUTUBE_HOSTS):
        if parts and parts[0] == "watch":
            candidate = (parse_qs(parsed.query).get("v") or [None])[0]
        elif len(parts) >= 2 and parts[0] in _YOUTUBE_PATH_PREFIXES:
            candidate = parts[1]

    if candidate and _YOUTUBE_ID_RE.fullmatch(candidate):
        return candidate
    return None


def _looks_like_bare_youtube_id(token: str) -> bool:
    if not _BARE_YOUTUBE_RE.fullmatch(token):
        return False
    # Word-like tokens ("not-a-video", "Not-A-Video") match the alphabet but
    # carry no digit and no capital inside a word, which real IDs almost always do.
    if any(c.isdigit() for c in token):
        return True
    return any(
        c.isupper() and token[i - 1] not in "-_"
        for i, c in enumerate(token) if i > 0
    )


def identify(url: str) -> VideoReference:
    """Classify a URL or bare ID into (platform, external_id). Pure, no I/O."""
    text = (url or "").strip()
    if not text:
        raise InvalidReference("empty video reference")

    match = _BVID_RE.search(text)
    if match:
        return VideoReference(Platform.BILIBILI, match.group(1))

    video_id = _youtube_id_from_url(text)
    if video_id:
        return VideoReference(Platform.YOUTUBE, video_id)

    if _looks_like_bare_youtube_id(text):
        return VideoReference(Platform.YOUTUBE, text)

    raise InvalidReference(f"not a supported video reference: {url!r}")


def capabilities_for(platform: Platform) -> PlatformCapabilities:
    if platform is Platform.BILIBILI:
        from .bilibili import CAPABILITIES
    elif platform is Platform.YOUTUBE:
        from .youtube import CAPABILITIES
    else:
        raise ValueError(f"no client for platform {platform!r}")
    return CAPABILITIES
