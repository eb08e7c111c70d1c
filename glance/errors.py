"""Glance error taxonomy.

Terminal for a request: InvalidReference, UpstreamRejected, AcquisitionCancelled.
Everything else narrows the achievable provenance tier instead of failing.
"""

from __future__ import annotations


class GlanceError(Exception):
    """Base class for every error raised by glance."""


class InvalidReference(GlanceError):
    """The input is neither a supported video URL nor a bare platform ID."""


class UpstreamRejected(GlanceError):
    """The platform answered, but reports the video as missing or private."""


class TransportError(GlanceError):
    """Network, subprocess or payload-parsing failure talking to a collaborator."""


class NoCaptions(GlanceError):
    """The video exists but carries no caption track."""


class NoTranscript(GlanceError):
    """Audio transcription could not produce a transcript."""


class GenerativeCallFailed(GlanceError):
    """A generative capability errored or returned malformed structured output."""


class SessionNotInitialized(GlanceError):
    """AssistantSession.send() was called before initialize()."""


class AcquisitionCancelled(GlanceError):
    """The caller abandoned the request; no VideoRecord is produced."""
