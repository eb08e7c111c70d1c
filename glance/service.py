"""Glance Service — the acquisition entry point.

Callers hand acquire() a URL and always get a VideoRecord back, unless the
URL is unrecognized, the platform rejects the video, or the caller cancels.

Cascade (each step a fallback for the one before):
1. Official captions                       → provenance OFFICIAL
2. Audio download + machine transcription  → provenance MACHINE_TRANSCRIBED
3. Simulated transcript from metadata      → provenance FABRICATED
Tiers 1-2 are followed by highlight synthesis over the transcript.

resolve() is the half that touches platforms (metadata, captions, audio).
It runs in-process, or on a remote glance backend when GLANCE_BACKEND_URL
is set. If it can't be reached at all, acquire() switches to offline mode:
metadata through a relay (or placeholders), then straight to tier 3.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

import httpx

from . import config
from .errors import (
    AcquisitionCancelled,
    GlanceError,
    InvalidReference,
    NoCaptions,
    NoTranscript,
    TransportError,
    UpstreamRejected,
)
from .generator import fabricate, synthesize_highlights
from .platforms import VideoReference, capabilities_for, identify
from .schemas import Highlight, Provenance, TranscriptSegment, VideoMetadata, VideoRecord
from .transcriber import transcribe_from_audio

logger = logging.getLogger(__name__)

SLOW_NOTICE = "Downloading audio & transcribing (this may take 30s)..."

OFFLINE_TITLE = "Video (Offline Mode)"
OFFLINE_AUTHOR = "Unknown"
OFFLINE_DURATION = 600


# ── Tier outcomes ─────────────────────────────────────────────

@dataclass(slots=True)
class OfficialCaptions:
    segments: list[TranscriptSegment]


@dataclass(slots=True)
class MachineTranscript:
    segments: list[TranscriptSegment]
    truncated: bool = False


@dataclass(slots=True)
class Untranscribed:
    reason: str = ""


Tier = Union[OfficialCaptions, MachineTranscript, Untranscribed]


@dataclass(slots=True)
class Resolution:
    reference: VideoReference
    metadata: VideoMetadata
    tier: Tier = field(default_factory=Untranscribed)


def _check_cancel(cancel: Optional[threading.Event]) -> None:
    if cancel is not None and cancel.is_set():
        raise AcquisitionCancelled("request abandoned by caller")


# ── Resolution (platform side) ────────────────────────────────

def resolve(reference: VideoReference, cancel: Optional[threading.Event] = None) -> Resolution:
    """Metadata and captions (concurrently), then audio transcription if needed.

    Raises UpstreamRejected or TransportError when metadata can't be had.
    Caption and audio failures only lower the tier.
    """
    caps = capabilities_for(reference.platform)
    video_id = reference.external_id
    _check_cancel(cancel)

    with ThreadPoolExecutor(max_workers=2) as executor:
        metadata_future = executor.submit(caps.fetch_metadata, video_id)
        captions_future = executor.submit(caps.fetch_captions, video_id)
        metadata = metadata_future.result()
        try:
            captions = captions_future.result()
        except NoCaptions as exc:
            logger.info("No official captions: %s", exc)
            captions = []
        except GlanceError as exc:
            logger.warning("Caption lookup failed for %s, trying audio: %s", video_id, exc)
            captions = []

    logger.info("Resolved %s:%s %r (%ds)", reference.platform.value, video_id,
                metadata.title, metadata.duration_seconds)
    if captions:
        captions = sorted(captions, key=lambda s: s.start_time_seconds)
        return Resolution(reference, metadata, OfficialCaptions(captions))

    _check_cancel(cancel)
    logger.info("No official subtitles. Starting AI audio transcription...")
    try:
        audio = transcribe_from_audio(caps, video_id, metadata.duration_seconds, cancel=cancel)
    except NoTranscript as exc:
        logger.warning("Audio fallback failed for %s: %s", video_id, exc)
        return Resolution(reference, metadata, Untranscribed(str(exc)))
    return Resolution(reference, metadata, MachineTranscript(audio.segments, audio.truncated))


def resolution_to_payload(resolution: Resolution) -> dict[str, Any]:
    """Wire form of a Resolution, served by the backend's /api/resolve."""
    tier = resolution.tier
    payload: dict[str, Any] = {
        "metadata": resolution.metadata.model_dump(mode="json"),
        "tier": "untranscribed",
        "transcript": [],
        "truncated": False,
        "reason": "",
    }
    match tier:
        case OfficialCaptions(segments=segments):
            payload.update(tier="official", transcript=[s.model_dump(mode="json") for s in segments])
        case MachineTranscript(segments=segments, truncated=truncated):
            payload.update(
                tier="machine_transcribed",
                transcript=[s.model_dump(mode="json") for s in segments],
                truncated=truncated,
            )
        case Untranscribed(reason=reason):
            payload["reason"] = reason
    return payload


def resolution_from_payload(reference: VideoReference, payload: dict[str, Any]) -> Resolution:
    try:
        metadata = VideoMetadata.model_validate(payload["metadata"])
        segments = [TranscriptSegment.model_validate(s) for s in payload.get("transcript") or []]
        kind = payload.get("tier")
    except (KeyError, TypeError, ValueError) as exc:
        raise TransportError(f"backend returned a malformed resolution: {exc}") from exc

    if kind == "official" and segments:
        tier: Tier = OfficialCaptions(segments)
    elif kind == "machine_transcribed" and segments:
        tier = MachineTranscript(segments, bool(payload.get("truncated")))
    else:
        tier = Untranscribed(payload.get("reason") or "")
    return Resolution(reference, metadata, tier)


def _resolve_remote(reference: VideoReference, url: str, backend_url: str) -> Resolution:
    endpoint = backend_url.rstrip("/") + "/api/resolve"
    try:
        # Audio transcription can take minutes; only connecting is time-boxed.
        resp = httpx.post(
            endpoint,
            json={"url": url},
            timeout=httpx.Timeout(600.0, connect=10.0),
        )
    except httpx.HTTPError as exc:
        raise TransportError(f"backend unreachable: {exc}") from exc

    if resp.status_code == 400:
        raise InvalidReference(_error_detail(resp))
    if resp.status_code == 422:
        raise UpstreamRejected(_error_detail(resp))
    if resp.status_code != 200:
        raise TransportError(f"backend answered {resp.status_code}")
    try:
        payload = resp.json()
    except ValueError as exc:
        raise TransportError("backend returned invalid JSON") from exc
    return resolution_from_payload(reference, payload)


def _error_detail(resp: httpx.Response) -> str:
    try:
        detail = resp.json().get("detail")
    except (ValueError, AttributeError):
        detail = None
    if isinstance(detail, dict):
        return detail.get("message", "")
    return str(detail or resp.text)


def _resolve_primary(
    reference: VideoReference, url: str, cancel: Optional[threading.Event]
) -> Resolution:
    backend_url = config.get("GLANCE_BACKEND_URL")
    if backend_url:
        logger.info("Resolving %s via backend %s", reference.external_id, backend_url)
        return _resolve_remote(reference, url.strip(), backend_url)
    return resolve(reference, cancel=cancel)


# ── Assembly ──────────────────────────────────────────────────

def _record(
    metadata: VideoMetadata,
    transcript: list[TranscriptSegment],
    highlights: list[Highlight],
    provenance: Provenance,
    truncated: bool = False,
) -> VideoRecord:
    return VideoRecord(
        platform=metadata.platform,
        external_id=metadata.external_id,
        title=metadata.title,
        author=metadata.author,
        category=metadata.category,
        duration_seconds=metadata.duration_seconds,
        thumbnail_url=metadata.thumbnail_url,
        transcript=transcript,
        highlights=highlights,
        provenance=provenance,
        transcript_truncated=truncated,
    )


def _with_highlights(
    metadata: VideoMetadata,
    segments: list[TranscriptSegment],
    provenance: Provenance,
    truncated: bool = False,
) -> VideoRecord:
    highlights = synthesize_highlights(
        metadata.title,
        " ".join(s.text for s in segments),
        metadata.duration_seconds,
        category=metadata.category,
        author=metadata.author,
    )
    return _record(metadata, segments, highlights, provenance, truncated)


def _fabricated(metadata: VideoMetadata) -> VideoRecord:
    logger.info("No transcript available. Using full simulation.")
    transcript, highlights = fabricate(
        metadata.title,
        metadata.description,
        metadata.duration_seconds,
        category=metadata.category,
        author=metadata.author,
    )
    return _record(metadata, transcript, highlights, Provenance.FABRICATED)


def assemble(resolution: Resolution, cancel: Optional[threading.Event] = None) -> VideoRecord:
    """Turn a resolved tier into a VideoRecord; provenance follows the tier reached."""
    _check_cancel(cancel)
    metadata = resolution.metadata
    match resolution.tier:
        case OfficialCaptions(segments=segments):
            return _with_highlights(metadata, segments, Provenance.OFFICIAL)
        case MachineTranscript(segments=segments, truncated=truncated):
            return _with_highlights(metadata, segments, Provenance.MACHINE_TRANSCRIBED, truncated)
        case Untranscribed():
            return _fabricated(metadata)
    raise TypeError(f"unknown tier {resolution.tier!r}")


# ── Offline mode ──────────────────────────────────────────────

def placeholder_metadata(reference: VideoReference) -> VideoMetadata:
    return VideoMetadata(
        platform=reference.platform,
        external_id=reference.external_id,
        title=OFFLINE_TITLE,
        author=OFFLINE_AUTHOR,
        duration_seconds=OFFLINE_DURATION,
        thumbnail_url="",
        description="Could not fetch metadata.",
        category="General",
    )


def acquire_offline(reference: VideoReference, cancel: Optional[threading.Event] = None) -> VideoRecord:
    """Reduced path: relay metadata (or placeholders), then fabrication."""
    caps = capabilities_for(reference.platform)
    relay_url = config.get("GLANCE_RELAY_URL", config.DEFAULT_RELAY_URL)
    try:
        metadata = caps.fetch_metadata_via_relay(reference.external_id, relay_url)
    except GlanceError as exc:
        logger.warning("Relay metadata failed for %s, using placeholders: %s",
                       reference.external_id, exc)
        metadata = placeholder_metadata(reference)

    if not metadata.duration_seconds:
        metadata = metadata.model_copy(update={"duration_seconds": OFFLINE_DURATION})
    _check_cancel(cancel)
    return _fabricated(metadata)


# ── Entry point ───────────────────────────────────────────────

def _log_slow(message: str) -> None:
    logger.info(message)


def acquire(
    url: str,
    on_slow: Optional[Callable[[str], None]] = None,
    cancel: Optional[threading.Event] = None,
) -> VideoRecord:
    """Main entry point: URL in, VideoRecord out.

    Args:
        url: Video URL or bare platform ID (BV..., YouTube ID)
        on_slow: called once with a notice if the request is still running
            after GLANCE_SLOW_NOTICE_SECONDS
        cancel: set it to abandon the request; AcquisitionCancelled is raised
            and nothing is returned

    Raises:
        InvalidReference, UpstreamRejected, AcquisitionCancelled
    """
    reference = identify(url)
    logger.info("Analyzing %s:%s", reference.platform.value, reference.external_id)

    delay = config.get_float("GLANCE_SLOW_NOTICE_SECONDS", config.DEFAULT_SLOW_NOTICE_SECONDS)
    timer = threading.Timer(delay, on_slow or _log_slow, args=(SLOW_NOTICE,))
    timer.daemon = True
    timer.start()
    try:
        try:
            resolution = _resolve_primary(reference, url, cancel)
        except TransportError as exc:
            logger.warning("Acquisition service unreachable, falling back to offline mode: %s", exc)
            record = acquire_offline(reference, cancel=cancel)
        else:
            record = assemble(resolution, cancel=cancel)
    finally:
        timer.cancel()

    _check_cancel(cancel)
    logger.info("Acquired %s:%s as %s (%d segments, %d highlights)",
                record.platform.value, record.external_id, record.provenance.value,
                len(record.transcript), len(record.highlights))
    return record
