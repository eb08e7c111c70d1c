"""Glance generator — highlights and simulated transcripts from any LLM.

Works with ANY LLM that exposes an OpenAI-compatible API.

Config is read from a .env file (drop it in your project root) or env vars.

Setup — pick ONE provider:

  # OpenAI (direct)
  OPENAI_API_KEY=sk-...

  # OpenRouter (one key, every model)
  GLANCE_LLM_API_KEY=sk-or-v1-your-key-here
  GLANCE_LLM_BASE_URL=https://openrouter.ai/api/v1
  GLANCE_LLM_MODEL=google/gemini-2.5-flash

  # Ollama (local, free)
  GLANCE_LLM_BASE_URL=http://localhost:11434/v1
  GLANCE_LLM_MODEL=llama3
  GLANCE_LLM_API_KEY=ollama

Two calls live here, both under a strict JSON schema:
  fabricate()             metadata only -> simulated transcript + highlights
  synthesize_highlights() real transcript -> highlights only
Neither raises: a failed call degrades to empty sequences.
"""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Optional

from pydantic import ValidationError

from . import config
from .errors import GenerativeCallFailed
from .schemas import Highlight, TranscriptSegment

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_CHARS = 1000
MAX_TRANSCRIPT_CHARS = 15000

PALETTE = ["#FCA5A5", "#FDBA74", "#A7F3D0", "#C4B5FD", "#BAE6FD", "#FDE68A"]

# ── Schemas ──────────────────────────────────────────────────────

_HIGHLIGHT_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "title": {"type": "string"},
        "startTimeSeconds": {"type": "number"},
        "endTimeSeconds": {"type": "number"},
        "color": {"type": "string"},
        "description": {"type": "string"},
    },
    "required": ["id", "title", "startTimeSeconds", "endTimeSeconds", "color", "description"],
    "additionalProperties": False,
}

_SEGMENT_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "text": {"type": "string"},
        "timestamp": {"type": "string"},
        "startTimeSeconds": {"type": "number"},
    },
    "required": ["id", "text", "timestamp", "startTimeSeconds"],
    "additionalProperties": False,
}

FABRICATION_SCHEMA = {
    "type": "object",
    "properties": {
        "highlights": {"type": "array", "items": _HIGHLIGHT_SCHEMA},
        "transcript": {"type": "array", "items": _SEGMENT_SCHEMA},
    },
    "required": ["highlights", "transcript"],
    "additionalProperties": False,
}

HIGHLIGHTS_SCHEMA = {
    "type": "object",
    "properties": {"highlights": {"type": "array", "items": _HIGHLIGHT_SCHEMA}},
    "required": ["highlights"],
    "additionalProperties": False,
}

# ── Prompts ──────────────────────────────────────────────────────

_SYSTEM_PROMPT = (
    "You structure video content into chapters for a learning app. "
    "Respond with JSON only, matching the requested schema exactly."
)

_FABRICATE_PROMPT = """I have a video but NO subtitles. Generate a *simulated* transcript and highlights based on the metadata.

Video Details:
- Title: "{title}"
- Author: "{author}"
- Category: "{category}"
- Duration: {duration} seconds
- Description: "{description}"

Task:
1. Highlights: create 4-6 key chapters with estimated start/end times in seconds (within 0-{duration}) and distinct hex colors.
2. Transcript: create a *simulated* transcript.
   - Break it into segments roughly every 45-90 seconds.
   - Each segment is a high-quality summary of what is likely discussed at that point, based on the title and category.
   - It should read like a spoken script or a detailed summary.
"""

_HIGHLIGHTS_PROMPT = """Split this video into 4-6 key chapters.

Video Details:
- Title: "{title}"
- Author: "{author}"
- Category: "{category}"
- Duration: {duration} seconds

For each chapter give a short title, a one-sentence description, start/end times in seconds (within 0-{duration}) and a distinct hex color.

{text}
"""


# ── LLM plumbing ─────────────────────────────────────────────────

def _get_llm_config() -> tuple[str | None, str | None, str]:
    """Return (api_key, base_url, model) from config (.env file or env vars)."""
    api_key = config.get("GLANCE_LLM_API_KEY") or config.get("OPENAI_API_KEY")
    base_url = config.get("GLANCE_LLM_BASE_URL") or None
    model = config.get("GLANCE_LLM_MODEL", config.DEFAULT_LLM_MODEL)
    return api_key, base_url, model


def make_client(api_key: Optional[str], base_url: Optional[str]):
    """Build an OpenAI client; raises GenerativeCallFailed without a key."""
    if not api_key:
        raise GenerativeCallFailed(
            "No LLM API key configured. Set GLANCE_LLM_API_KEY or OPENAI_API_KEY."
        )
    from openai import OpenAI

    client_kwargs: dict[str, Any] = {"api_key": api_key}
    if base_url:
        client_kwargs["base_url"] = base_url
    return OpenAI(**client_kwargs)


def parse_json_object(raw: str) -> dict[str, Any]:
    """Parse a JSON object reply, tolerating a Markdown code fence around it."""
    raw = (raw or "").strip()
    if raw.startswith("```"):
        raw = raw.split("\n", 1)[-1].rsplit("```", 1)[0].strip()
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise GenerativeCallFailed(f"reply is not JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise GenerativeCallFailed("reply is not a JSON object")
    return parsed


def structured_completion(prompt: str, schema: dict[str, Any], name: str) -> dict[str, Any]:
    """One chat completion constrained to ``schema``. Raises GenerativeCallFailed."""
    api_key, base_url, model = _get_llm_config()
    client = make_client(api_key, base_url)
    messages = [
        {"role": "system", "content": _SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]
    logger.info("Calling LLM: model=%s schema=%s", model, name)

    try:
        try:
            response = client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=0.4,
                response_format={
                    "type": "json_schema",
                    "json_schema": {"name": name, "strict": True, "schema": schema},
                },
            )
        except Exception as fmt_err:
            # Some OpenAI-compatible providers don't support json_schema
            if "400" in str(fmt_err) or "response_format" in str(fmt_err).lower():
                logger.info("Structured output not supported, retrying with schema in prompt")
                response = client.chat.completions.create(
                    model=model,
                    messages=[
                        messages[0],
                        {
                            "role": "user",
                            "content": f"{prompt}\n\nReturn raw JSON matching this schema:\n"
                                       f"{json.dumps(schema)}",
                        },
                    ],
                    temperature=0.4,
                )
            else:
                raise
        raw = response.choices[0].message.content or ""
    except Exception as exc:
        raise GenerativeCallFailed(f"LLM call failed ({model}): {exc}") from exc

    return parse_json_object(raw)


# ── Validation ───────────────────────────────────────────────────

def seconds(value: Any) -> float:
    """A generated time offset as a finite float; ValueError otherwise."""
    result = float(value)
    if not math.isfinite(result):
        raise ValueError(f"non-finite time offset {value!r}")
    return result


def clean_highlights(items: Any, duration: int) -> list[Highlight]:
    """Clamp generated highlights into [0, duration], drop empty ranges, order by start."""
    if not isinstance(items, list):
        return []
    ranges: list[tuple[float, float, dict[str, Any]]] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            start = min(max(seconds(item["startTimeSeconds"]), 0.0), float(duration))
            end = min(max(seconds(item["endTimeSeconds"]), 0.0), float(duration))
        except (KeyError, TypeError, ValueError):
            continue
        if end <= start or not str(item.get("title", "")).strip():
            continue
        ranges.append((start, end, item))

    ranges.sort(key=lambda r: r[0])
    highlights: list[Highlight] = []
    for start, end, item in ranges:
        n = len(highlights)
        try:
            highlights.append(Highlight(
                id=f"h{n + 1}",
                title=str(item["title"]).strip(),
                start_time_seconds=start,
                end_time_seconds=end,
                color=str(item.get("color") or "").strip() or PALETTE[n % len(PALETTE)],
                description=str(item.get("description") or "").strip() or None,
            ))
        except ValidationError as exc:
            logger.debug("Dropping generated highlight %r: %s", item.get("title"), exc)
    return highlights


def clean_segments(items: Any, id_prefix: str) -> list[TranscriptSegment]:
    """Order generated segments by start, clamp negatives, reassign IDs."""
    if not isinstance(items, list):
        return []
    pairs: list[tuple[float, str]] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        text = str(item.get("text") or "").strip()
        try:
            start = max(seconds(item["startTimeSeconds"]), 0.0)
        except (KeyError, TypeError, ValueError):
            continue
        if text:
            pairs.append((start, text))

    pairs.sort(key=lambda p: p[0])
    return [
        TranscriptSegment(id=f"{id_prefix}{i}", start_time_seconds=start, text=text)
        for i, (start, text) in enumerate(pairs)
    ]


# ── Entry points ─────────────────────────────────────────────────

def fabricate(
    title: str,
    description: str,
    duration: int,
    category: Optional[str] = None,
    author: Optional[str] = None,
) -> tuple[list[TranscriptSegment], list[Highlight]]:
    """Simulate a transcript and highlights from metadata alone.

    Returns (transcript, highlights): both populated, or both empty when
    the call fails or its output doesn't survive validation.
    """
    prompt = _FABRICATE_PROMPT.format(
        title=title,
        author=author or "Creator",
        category=category or "General",
        duration=duration,
        description=(description or "")[:MAX_DESCRIPTION_CHARS],
    )
    try:
        parsed = structured_completion(prompt, FABRICATION_SCHEMA, "simulated_video_content")
    except GenerativeCallFailed as exc:
        logger.warning("Fabrication failed: %s", exc)
        return [], []

    transcript = clean_segments(parsed.get("transcript"), "sim-t")
    highlights = clean_highlights(parsed.get("highlights"), duration)
    if not transcript or not highlights:
        logger.warning("Fabrication returned %d segments / %d highlights, discarding both",
                       len(transcript), len(highlights))
        return [], []

    logger.info("Fabricated %d segments and %d highlights", len(transcript), len(highlights))
    return transcript, highlights


def synthesize_highlights(
    title: str,
    transcript_text: str,
    duration: int,
    category: Optional[str] = None,
    author: Optional[str] = None,
) -> list[Highlight]:
    """Chapter a known transcript. Only the first 15k characters are considered."""
    prompt = _HIGHLIGHTS_PROMPT.format(
        title=title,
        author=author or "Creator",
        category=category or "General",
        duration=duration,
        text=f"TRANSCRIPT_CONTEXT: {transcript_text[:MAX_TRANSCRIPT_CHARS]}",
    )
    try:
        parsed = structured_completion(prompt, HIGHLIGHTS_SCHEMA, "video_highlights")
    except GenerativeCallFailed as exc:
        logger.warning("Highlight synthesis failed: %s", exc)
        return []

    highlights = clean_highlights(parsed.get("highlights"), duration)
    logger.info("Synthesized %d highlights", len(highlights))
    return highlights
