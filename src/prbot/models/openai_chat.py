"""Production chat client that speaks the OpenAI Chat Completions API."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Optional

from .llm_client import LLMClient, LLMTransportError

__all__ = ["OpenAIChatClient"]

LOGGER = logging.getLogger(__name__)

Transport = Callable[[Dict[str, Any]], str]


class OpenAIChatClient(LLMClient):
    """Thin adapter around the Chat Completions endpoint."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: str = "https://api.openai.com/v1/chat/completions",
        model: str = "gpt-4o-mini",
        transport: Optional[Transport] = None,
        timeout: float = 60.0,
        max_attempts: int = 3,
        retry_delay: float = 0.5,
    ) -> None:
        super().__init__(model=model, max_attempts=max_attempts, retry_delay=retry_delay)
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport or self._http_transport

        if transport is None and not self._api_key:
            raise ValueError("An API key is required when using the default transport.")

    def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        """Send the request and return the first choice's message content."""
        try:
            raw_response = self._transport(payload)
        except LLMTransportError:
            raise
        except OSError as error:
            raise LLMTransportError(f"Transport rejected the request: {error}") from error

        return self._extract_message_content(raw_response)

    def _http_transport(self, payload: Dict[str, Any]) -> str:
        """Default HTTP transport targeting the Chat Completions API."""
        import urllib.error
        import urllib.request

        LOGGER.debug("Requesting completion from %s (model=%s)", self._base_url, payload.get("model"))
        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(
            self._base_url,
            data=data,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self._api_key}",
            },
            method="POST",
        )

        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                raw = response.read()
                status = getattr(response, "status", 200)
        except TimeoutError as error:  # pragma: no cover - network-dependent
            raise LLMTransportError("Chat completion timed out.") from error
        except urllib.error.HTTPError as error:  # pragma: no cover - network-dependent
            message = error.read().decode("utf-8", errors="ignore")
            raise LLMTransportError(f"HTTP {error.code}: {message}") from error
        except urllib.error.URLError as error:  # pragma: no cover - network-dependent
            raise LLMTransportError(f"Failed to reach chat endpoint: {error.reason}") from error

        if status >= 400:
            raise LLMTransportError(f"Unexpected HTTP status {status}")

        return raw.decode("utf-8")

    @staticmethod
    def _extract_message_content(raw_response: str) -> str:
        """Return ``choices[0].message.content`` or an empty string.

        An envelope that is not JSON is handed back untouched so the caller can
        report it verbatim.
        """
        if not raw_response:
            return ""

        try:
            data = json.loads(raw_response)
        except json.JSONDecodeError:
            return raw_response

        if not isinstance(data, dict):
            return raw_response

        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            if "changes" in data:
                # Transport already unwrapped the message body.
                return raw_response
            return ""

        first = choices[0]
        if not isinstance(first, dict):
            return ""
        message = first.get("message")
        if isinstance(message, dict):
            content = message.get("content")
            if isinstance(content, str):
                return content
        text = first.get("text")
        if isinstance(text, str):
            return text
        return ""
