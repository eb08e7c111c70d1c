"""YouTube client — metadata and audio via yt-dlp, captions via youtube-transcript-api.

yt-dlp reports domain errors ("Video unavailable", "Private video") on
stderr with a non-zero exit, which is the YouTube equivalent of a
platform error code.
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
from urllib.parse import quote

from youtube_transcript_api import (
    CouldNotRetrieveTranscript,
    NoTranscriptFound,
    TranscriptsDisabled,
    YouTubeTranscriptApi,
)

from . import PlatformCapabilities, _http
from .. import config
from ..errors import NoCaptions, TransportError, UpstreamRejected
from ..schemas import Platform, TranscriptSegment, VideoMetadata

logger = logging.getLogger(__name__)

WATCH_URL = "https://www.youtube.com/watch?v={video_id}"
OEMBED_URL = "https://www.youtube.com/oembed?format=json&url={watch_url}"

AUDIO_HEADERS = {"User-Agent": _http.BROWSER_USER_AGENT}

_REJECTION_MARKERS = (
    "video unavailable",
    "private video",
    "has been removed",
    "does not exist",
    "not available",
    "members-only",
    "sign in to confirm your age",
)


def _run_yt_dlp(args: list[str], timeout: int = 60) -> str:
    """Run yt-dlp and return stdout; classify failures as rejection or transport."""
    yt_dlp_path = shutil.which("yt-dlp")
    if not yt_dlp_path:
        raise TransportError("yt-dlp is not installed")

    cmd = [yt_dlp_path, "--no-warnings", "--quiet", *args]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout, check=False)
    except (OSError, subprocess.SubprocessError) as exc:
        raise TransportError(f"yt-dlp failed: {exc}") from exc

    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        if any(marker in stderr.lower() for marker in _REJECTION_MARKERS):
            raise UpstreamRejected(stderr.splitlines()[-1] if stderr else "video unavailable")
        raise TransportError(f"yt-dlp exited {result.returncode}: {stderr[:200]}")
    return result.stdout


def fetch_metadata(video_id: str) -> VideoMetadata:
    out = _run_yt_dlp(["--dump-json", "--skip-download", WATCH_URL.format(video_id=video_id)])
    try:
        info = json.loads(out)
    except json.JSONDecodeError as exc:
        raise TransportError("yt-dlp returned unparsable metadata") from exc

    categories = info.get("categories") or []
    return VideoMetadata(
        platform=Platform.YOUTUBE,
        external_id=info.get("id") or video_id,
        title=info.get("title", ""),
        author=info.get("uploader") or info.get("channel") or "Unknown",
        duration_seconds=int(info.get("duration") or 0),
        thumbnail_url=info.get("thumbnail", ""),
        description=info.get("description") or "",
        category=categories[0] if categories else None,
    )


def fetch_metadata_via_relay(video_id: str, relay_url: str) -> VideoMetadata:
    """oEmbed through a relay: title, author and thumbnail only."""
    target = OEMBED_URL.format(watch_url=quote(WATCH_URL.format(video_id=video_id), safe=""))
    info = _http.get_json(relay_url + quote(target, safe=""))
    if not isinstance(info, dict) or not info.get("title"):
        raise TransportError("oEmbed relay returned no title")
    return VideoMetadata(
        platform=Platform.YOUTUBE,
        external_id=video_id,
        title=info["title"],
        author=info.get("author_name") or "Unknown",
        thumbnail_url=info.get("thumbnail_url", ""),
    )


def fetch_captions(video_id: str) -> list[TranscriptSegment]:
    languages = config.get_list("GLANCE_CAPTION_LANGUAGES", config.DEFAULT_CAPTION_LANGUAGES)
    api = YouTubeTranscriptApi()
    try:
        transcripts = api.list(video_id)
        try:
            transcript = transcripts.find_transcript(languages)
        except NoTranscriptFound:
            transcript = next(iter(transcripts), None)
        if transcript is None:
            raise NoCaptions(f"{video_id} lists no caption tracks")
        fetched = transcript.fetch()
    except (TranscriptsDisabled, NoTranscriptFound) as exc:
        raise NoCaptions(f"{video_id} has no captions") from exc
    except CouldNotRetrieveTranscript as exc:
        raise TransportError(f"caption retrieval failed: {exc}") from exc
    except NoCaptions:
        raise
    except Exception as exc:
        raise TransportError(f"caption retrieval failed: {exc}") from exc

    logger.info("Captions for %s: %s (%d snippets)", video_id, transcript.language_code, len(fetched))
    return [
        TranscriptSegment(id=f"t{i}", start_time_seconds=float(snippet.start), text=snippet.text)
        for i, snippet in enumerate(fetched)
    ]


def audio_stream_url(video_id: str) -> str:
    out = _run_yt_dlp(["-g", "-f", "bestaudio", WATCH_URL.format(video_id=video_id)])
    urls = [line.strip() for line in out.splitlines() if line.strip()]
    if not urls:
        raise TransportError("yt-dlp returned no audio url")
    return urls[0]


CAPABILITIES = PlatformCapabilities(
    platform=Platform.YOUTUBE,
    fetch_metadata=fetch_metadata,
    fetch_captions=fetch_captions,
    audio_stream_url=audio_stream_url,
    audio_headers=AUDIO_HEADERS,
    fetch_metadata_via_relay=fetch_metadata_via_relay,
)
