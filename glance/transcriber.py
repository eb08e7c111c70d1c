"""Audio transcription fallback — used when a video has no caption track.

Steps, each fatal to this tier:
  1. ask the platform for a direct, time-limited audio stream URL
  2. download it (stopping at 20 MiB; longer audio is cut, not rejected)
  3. send the bytes to an OpenAI-compatible transcription endpoint
  4. map the reply into timed TranscriptSegments
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Any, Optional

from . import config
from .errors import AcquisitionCancelled, GenerativeCallFailed, GlanceError, NoTranscript
from .generator import make_client, parse_json_object, seconds
from .platforms import PlatformCapabilities, _http
from .schemas import TranscriptSegment

logger = logging.getLogger(__name__)

MAX_AUDIO_BYTES = 20 * 1024 * 1024
MIN_SEGMENT_SEC = 5.0
# Assumed audio bitrate when a truncated download did not advertise its size.
FALLBACK_AUDIO_BYTES_PER_SEC = 128_000 // 8

_PROMPT = (
    "Transcribe this video's audio. Segment the text naturally by sentence, "
    "roughly every 5-15 seconds, and keep the speaker's original language."
)


@dataclass(slots=True)
class AudioTranscript:
    segments: list[TranscriptSegment] = field(default_factory=list)
    truncated: bool = False


def _get_stt_config() -> tuple[str | None, str | None, str]:
    """Return (api_key, base_url, model); falls back to the LLM credentials."""
    api_key = (
        config.get("GLANCE_STT_API_KEY")
        or config.get("GLANCE_LLM_API_KEY")
        or config.get("OPENAI_API_KEY")
    )
    base_url = config.get("GLANCE_STT_BASE_URL") or config.get("GLANCE_LLM_BASE_URL") or None
    model = config.get("GLANCE_STT_MODEL", config.DEFAULT_STT_MODEL)
    return api_key, base_url, model


def _regroup(pairs: list[tuple[float, str]]) -> list[tuple[float, str]]:
    """Merge short timed pieces so each segment spans at least 5 seconds."""
    merged: list[tuple[float, str]] = []
    window_start: float | None = None
    texts: list[str] = []
    for start, text in pairs:
        if window_start is not None and texts:
            if start - window_start >= MIN_SEGMENT_SEC:
                merged.append((window_start, " ".join(texts)))
                texts = []
                window_start = None
        if window_start is None:
            window_start = start
        texts.append(text)
    if window_start is not None and texts:
        merged.append((window_start, " ".join(texts)))
    return merged


def _spread_text(text: str, span: float) -> list[tuple[float, str]]:
    """Untimed text: split into sentences and spread them evenly over ``span`` seconds."""
    sentences = [s.strip() for s in re.split(r"(?<=[.!?。！？])\s*", text.strip()) if s.strip()]
    if not sentences:
        return []
    step = max(span, 1.0) / len(sentences)
    return [(round(i * step, 1), s) for i, s in enumerate(sentences)]


def covered_span(duration: float, kept: int, truncated: bool, total: Optional[int]) -> float:
    """Seconds of the video the kept audio bytes cover.

    A truncated download covers the leading ``kept / total`` of the video. Without
    an advertised total, the span is estimated from a 128 kbit/s audio bitrate.
    """
    if not truncated or duration <= 0:
        return duration
    if total and total > kept:
        return duration * kept / total
    return min(duration, kept / FALLBACK_AUDIO_BYTES_PER_SEC)


def _pairs_from_response(response: Any, span: float) -> list[tuple[float, str]]:
    """Accept timed segments, a {"transcript": [...]} JSON reply, or plain text."""
    segments = getattr(response, "segments", None)
    if segments:
        pairs = []
        for seg in segments:
            start = seg.get("start") if isinstance(seg, dict) else getattr(seg, "start", None)
            text = seg.get("text") if isinstance(seg, dict) else getattr(seg, "text", None)
            if not text or not text.strip():
                continue
            try:
                pairs.append((max(seconds(start), 0.0), text.strip()))
            except (TypeError, ValueError):
                continue
        return _regroup(sorted(pairs, key=lambda p: p[0]))

    text = response if isinstance(response, str) else getattr(response, "text", "") or ""
    if text.lstrip().startswith(("{", "```")):
        items = parse_json_object(text).get("transcript")
        if not isinstance(items, list):
            raise GenerativeCallFailed("transcription JSON has no transcript array")
        pairs = []
        for item in items:
            try:
                pairs.append((max(seconds(item["startTimeSeconds"]), 0.0), str(item["text"]).strip()))
            except (KeyError, TypeError, ValueError):
                continue
        return sorted((p for p in pairs if p[1]), key=lambda p: p[0])

    return _spread_text(text, span)


def _transcribe_bytes(audio: bytes, span: float) -> list[tuple[float, str]]:
    api_key, base_url, model = _get_stt_config()
    client = make_client(api_key, base_url)
    kwargs: dict[str, Any] = {
        "model": model,
        "file": ("audio.m4a", audio),
    }
    # whisper reads a prompt as preceding speech, not as instructions.
    if model.startswith("whisper"):
        kwargs["response_format"] = "verbose_json"
        kwargs["timestamp_granularities"] = ["segment"]
    else:
        kwargs["response_format"] = "json"
        kwargs["prompt"] = _PROMPT

    logger.info("Transcribing %.2f MB with %s", len(audio) / 1024 / 1024, model)
    try:
        response = client.audio.transcriptions.create(**kwargs)
    except Exception as exc:
        raise GenerativeCallFailed(f"transcription failed ({model}): {exc}") from exc
    return _pairs_from_response(response, span)


def transcribe_from_audio(
    capabilities: PlatformCapabilities,
    external_id: str,
    duration: int,
    cancel: Optional[threading.Event] = None,
) -> AudioTranscript:
    """Produce machine-transcribed segments, or raise NoTranscript.

    Cancellation propagates as AcquisitionCancelled rather than NoTranscript.
    """
    try:
        stream_url = capabilities.audio_stream_url(external_id)
        logger.info("Audio URL obtained for %s, downloading...", external_id)
        audio, truncated, total = _http.download(
            stream_url, MAX_AUDIO_BYTES, headers=capabilities.audio_headers, cancel=cancel
        )
        if not audio:
            raise NoTranscript("audio download was empty")
        if truncated:
            logger.warning("Audio exceeds %d MiB, transcribing the leading part only",
                           MAX_AUDIO_BYTES // (1024 * 1024))

        if cancel is not None and cancel.is_set():
            raise AcquisitionCancelled("transcription abandoned")

        span = covered_span(float(duration or 0), len(audio), truncated, total)
        pairs = _transcribe_bytes(audio, span)
    except (AcquisitionCancelled, NoTranscript):
        raise
    except GlanceError as exc:
        raise NoTranscript(str(exc)) from exc

    if not pairs:
        raise NoTranscript("transcription returned no text")

    segments = [
        TranscriptSegment(id=f"ai-t{i}", start_time_seconds=start, text=text)
        for i, (start, text) in enumerate(pairs)
    ]
    logger.info("AI transcription complete: %d segments", len(segments))
    return AudioTranscript(segments=segments, truncated=truncated)
