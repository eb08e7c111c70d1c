"""Shared fakes: no test talks to a network, a subprocess or an LLM."""

from __future__ import annotations

import json
from types import SimpleNamespace

import pytest

from glance import config


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for key in (
        "GLANCE_LLM_API_KEY", "OPENAI_API_KEY", "GLANCE_LLM_BASE_URL", "GLANCE_LLM_MODEL",
        "GLANCE_CHAT_MODEL", "GLANCE_STT_API_KEY", "GLANCE_STT_BASE_URL", "GLANCE_STT_MODEL",
        "GLANCE_BACKEND_URL", "GLANCE_RELAY_URL", "GLANCE_SLOW_NOTICE_SECONDS",
        "GLANCE_CAPTION_LANGUAGES",
    ):
        monkeypatch.delenv(key, raising=False)
    config.reset()
    yield
    config.reset()


class FakeLLM:
    """Stands in for an OpenAI client; replies are queued strings or exceptions."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls: list[dict] = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))
        self.audio = SimpleNamespace(transcriptions=SimpleNamespace(create=self._transcribe))

    def _next(self):
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self._next()
        if not isinstance(reply, str):
            reply = json.dumps(reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])

    def _transcribe(self, **kwargs):
        self.calls.append(kwargs)
        return self._next()


@pytest.fixture
def fake_llm(monkeypatch):
    """Install a FakeLLM for every module that builds an OpenAI client."""

    def install(*replies) -> FakeLLM:
        llm = FakeLLM(*replies)
        factory = lambda api_key, base_url: llm  # noqa: E731
        monkeypatch.setattr("glance.generator.make_client", factory)
        monkeypatch.setattr("glance.transcriber.make_client", factory)
        monkeypatch.setattr("glance.assistant.make_client", factory)
        return llm

    return install
