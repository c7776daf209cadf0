"""
Bookineo LLM Client: Local OpenAI-Compatible Chat Completions.

Talks to a locally hosted model server (LM Studio or anything exposing
``/v1/chat/completions``). Callers treat every failure the same way, so
all transport and protocol problems surface as LLMUnavailable.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Optional
import logging
import time

import httpx

from core.observability.otel_setup import traced

logger = logging.getLogger(__name__)


class LLMUnavailable(Exception):
    """The model server could not produce a usable answer."""


@dataclass(frozen=True)
class ChatMessage:
    role: str  # system | user | assistant
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


class LocalLLMClient:
    """Minimal async client for an OpenAI-compatible completion endpoint."""

    def __init__(
        self,
        base_url: str,
        model: str,
        timeout: float = 10.0,
        temperature: float = 0.7,
        max_tokens: int = 200,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._transport = transport

    async def complete(self, messages: list[ChatMessage]) -> str:
        """Send a conversation and return the assistant's text.

        Raises LLMUnavailable on network errors, non-2xx responses,
        unexpected payloads or an empty answer.
        """
        body: dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": False,
        }
        url = f"{self.base_url}/v1/chat/completions"
        start = time.time()

        with traced("llm.complete", model=self.model):
            try:
                async with httpx.AsyncClient(transport=self._transport) as client:
                    resp = await client.post(url, json=body, timeout=self.timeout)
                    resp.raise_for_status()
                    data = resp.json()
            except (httpx.HTTPError, ValueError) as exc:
                raise LLMUnavailable(str(exc)) from exc

        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMUnavailable("Unexpected completion payload") from exc

        text = (text or "").strip()
        if not text:
            raise LLMUnavailable("Empty completion")

        logger.debug("LLM answered in %.0f ms", (time.time() - start) * 1000)
        return text
