"""
Glance — transcripts and highlights for Bilibili and YouTube videos.

Usage:
    from glance import acquire, AssistantSession

    record = acquire("https://www.bilibili.com/video/BV1J4411C76B")
    record.provenance   # OFFICIAL / MACHINE_TRANSCRIBED / FABRICATED
    record.highlights   # chapters with start/end seconds
    record.transcript   # timed segments

    session = AssistantSession()
    session.initialize(record.transcript)
    session.send("What are the main takeaways?")
"""

from .assistant import AssistantSession
from .errors import (
    AcquisitionCancelled,
    GlanceError,
    InvalidReference,
    SessionNotInitialized,
    UpstreamRejected,
)
from .platforms import identify
from .schemas import Highlight, Platform, Provenance, TranscriptSegment, VideoRecord
from .service import acquire

__all__ = [
    "acquire",
    "identify",
    "AssistantSession",
    "VideoRecord",
    "TranscriptSegment",
    "Highlight",
    "Platform",
    "Provenance",
    "GlanceError",
    "InvalidReference",
    "UpstreamRejected",
    "AcquisitionCancelled",
    "SessionNotInitialized",
]
