"""Assistant session — a chat about one video, seeded with its transcript.

The session is owned by whoever created it (CLI loop, API app, MCP server).
It copies what it needs out of the transcript when initialized and keeps
no reference to the VideoRecord.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Optional, Sequence

from . import config
from .errors import SessionNotInitialized
from .generator import make_client
from .schemas import ChatMessage, TranscriptSegment

logger = logging.getLogger(__name__)

MAX_BRIEFING_SEGMENTS = 300

APOLOGY = "Sorry, I encountered an error while processing your request."
EMPTY_REPLY = "I couldn't generate a response."

_BRIEFING_TEMPLATE = """You are an AI learning assistant for a video.
You have access to the transcript (or a summary) of the video provided below.
Answer the user's questions based primarily on this transcript.
If the answer is not in the transcript, use your general knowledge but mention that it wasn't explicitly in the video.
Keep answers concise, helpful, and encouraging.

TRANSCRIPT/CONTENT SUMMARY:
{context}
"""


def build_briefing(transcript: Sequence[TranscriptSegment]) -> str:
    """System briefing from the first 300 segments, one ``[MM:SS] text`` per line."""
    context = "\n".join(
        f"[{seg.display_timestamp}] {seg.text}" for seg in transcript[:MAX_BRIEFING_SEGMENTS]
    )
    return _BRIEFING_TEMPLATE.format(context=context)


class AssistantSession:
    """One conversation at a time; exchanges are serialized."""

    def __init__(self, model: Optional[str] = None) -> None:
        self._lock = threading.Lock()
        self._model = model
        self._briefing: Optional[str] = None
        self._history: list[ChatMessage] = []

    @property
    def initialized(self) -> bool:
        return self._briefing is not None

    @property
    def briefing(self) -> Optional[str]:
        return self._briefing

    @property
    def history(self) -> tuple[ChatMessage, ...]:
        return tuple(self._history)

    def initialize(self, transcript: Sequence[TranscriptSegment]) -> None:
        """Start a new conversation, discarding any previous one."""
        briefing = build_briefing(transcript)
        with self._lock:
            self._briefing = briefing
            self._history = []
        logger.info("Assistant session initialized (%d segments in briefing)",
                    min(len(transcript), MAX_BRIEFING_SEGMENTS))

    def send(self, message: str) -> str:
        """Relay one user turn. Never raises except when not initialized."""
        with self._lock:
            if self._briefing is None:
                raise SessionNotInitialized("Chat session not initialized")

            self._history.append(self._turn("user", message))
            try:
                reply = self._complete()
            except Exception as exc:
                logger.warning("Assistant call failed: %s", exc)
                return APOLOGY

            reply = reply.strip() or EMPTY_REPLY
            self._history.append(self._turn("model", reply))
            return reply

    def _complete(self) -> str:
        api_key = config.get("GLANCE_LLM_API_KEY") or config.get("OPENAI_API_KEY")
        base_url = config.get("GLANCE_LLM_BASE_URL") or None
        model = self._model or config.get("GLANCE_CHAT_MODEL") or config.get(
            "GLANCE_LLM_MODEL", config.DEFAULT_LLM_MODEL
        )
        client = make_client(api_key, base_url)

        messages = [{"role": "system", "content": self._briefing}]
        messages += [
            {"role": "assistant" if m.role == "model" else "user", "content": m.text}
            for m in self._history
        ]
        response = client.chat.completions.create(model=model, messages=messages, temperature=0.5)
        return response.choices[0].message.content or ""

    @staticmethod
    def _turn(role: str, text: str) -> ChatMessage:
        return ChatMessage(id=uuid.uuid4().hex[:12], role=role, text=text, timestamp=time.time())
