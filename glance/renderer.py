"""Glance renderer — VideoRecord to plain text.

The provenance badge is always derived from record.provenance, so a
simulated transcript can never be shown as a real one.
"""

from __future__ import annotations

from .schemas import Provenance, VideoRecord, format_timestamp

BADGES = {
    Provenance.OFFICIAL: "OFFICIAL CAPTIONS",
    Provenance.MACHINE_TRANSCRIBED: "AI TRANSCRIBED",
    Provenance.FABRICATED: "AI SIMULATED",
}

_NOTES = {
    Provenance.MACHINE_TRANSCRIBED: "Transcript generated from the video's audio.",
    Provenance.FABRICATED: "No captions or audio were available; transcript and "
                           "highlights are estimated from the title and description.",
}


def badge(record: VideoRecord) -> str:
    return BADGES[record.provenance]


def render_transcript_lines(record: VideoRecord) -> list[str]:
    """``MM:SS - text`` per segment (the transcript export format)."""
    return [f"{seg.display_timestamp} - {seg.text}" for seg in record.transcript]


def render_record(record: VideoRecord, transcript_limit: int | None = None) -> str:
    """Render a record for a terminal or an agent.

    transcript_limit caps the number of transcript lines shown (None = all).
    """
    header = f"[{badge(record)}] {record.title}"
    meta = f"{record.author} · {format_timestamp(record.duration_seconds)}"
    if record.category:
        meta += f" · {record.category}"
    meta += f" · {record.platform.value}:{record.external_id}"
    parts = [header, meta]

    note = _NOTES.get(record.provenance)
    if note:
        parts.append(note)
    if record.transcript_truncated:
        parts.append("Audio was longer than the upload limit; later parts of the video are missing.")

    if record.highlights:
        lines = ["Highlights:"]
        for h in record.highlights:
            span = f"{format_timestamp(h.start_time_seconds)}-{format_timestamp(h.end_time_seconds)}"
            line = f"  {span} {h.title}"
            if h.description:
                line += f" — {h.description}"
            lines.append(line)
        parts.append("\n".join(lines))
    else:
        parts.append("Highlights: none available")

    transcript = render_transcript_lines(record)
    if transcript:
        shown = transcript if transcript_limit is None else transcript[:transcript_limit]
        lines = ["Transcript:"] + [f"  {line}" for line in shown]
        hidden = len(transcript) - len(shown)
        if hidden > 0:
            lines.append(f"  ... {hidden} more segment(s)")
        parts.append("\n".join(lines))
    else:
        parts.append("Transcript: none available")

    return "\n\n".join(parts)
