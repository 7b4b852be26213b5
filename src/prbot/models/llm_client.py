"""Client base class shared by the chat-model integrations."""

from __future__ import annotations

import ast
import json
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

__all__ = [
    "LLMClient",
    "LLMClientError",
    "LLMRequest",
    "LLMResponseFormatError",
    "LLMRetryError",
    "LLMTransportError",
    "parse_json_payload",
]


class LLMClientError(RuntimeError):
    """Base error raised for language-model client failures."""


class LLMTransportError(LLMClientError):
    """Raised when the underlying transport fails to return a response."""


class LLMResponseFormatError(LLMClientError):
    """Raised when the model returns payload that is not valid JSON."""


class LLMRetryError(LLMClientError):
    """Raised after exhausting retries due to repeated transport failures."""


@dataclass(slots=True)
class LLMRequest:
    """Chat request sent to a language model."""

    prompt: str
    system_prompt: Optional[str] = None
    model: Optional[str] = None
    temperature: float = 0.0
    json_output: bool = True

    def to_payload(self, default_model: str) -> Dict[str, Any]:
        """Render a transport-ready payload for the chat completions API."""
        messages: List[Dict[str, str]] = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": self.prompt})

        payload: Dict[str, Any] = {
            "model": self.model or default_model,
            "messages": messages,
            "temperature": self.temperature,
        }
        if self.json_output:
            payload["response_format"] = {"type": "json_object"}
        return payload


class LLMClient:
    """High-level helper that sends chat requests and retries transport failures.

    The client returns the model's raw text. Interpreting that text is left to
    the caller because model output is untrusted and callers need the raw
    payload for diagnostics.
    """

    def __init__(self, model: str, *, max_attempts: int = 3, retry_delay: float = 0.5) -> None:
        self._model = model
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay

    @property
    def model(self) -> str:
        """Return the default model name configured for this client."""
        return self._model

    def complete(self, request: LLMRequest) -> str:
        """Invoke the underlying model and return the raw completion text."""
        attempts = self._max_attempts
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            payload = request.to_payload(self._model)
            try:
                return self._raw_invoke(payload)
            except LLMTransportError as error:
                last_error = error
                if attempt >= attempts:
                    break
                time.sleep(self._retry_delay)

        raise LLMRetryError(
            f"Failed to obtain a completion after {attempts} attempt(s) for model "
            f"{request.model or self._model}"
        ) from last_error

    def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        """Perform the transport call. Subclasses must implement."""
        raise NotImplementedError("Subclasses must implement _raw_invoke().")


def parse_json_payload(raw_response: str) -> Any:
    """Parse a model-produced JSON payload, tolerating fences and stray prose.

    Raises :class:`LLMResponseFormatError` when nothing JSON-like can be
    recovered from ``raw_response``.
    """
    text = (raw_response or "").strip()
    if not text:
        raise LLMResponseFormatError("Model returned an empty response.")

    # Exact text first: normalisation also rewrites characters inside string values.
    for candidate in (text, _repair_json_payload(text)):
        if not candidate:
            continue
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            pass

    text = _normalise_json_string(text)
    candidates = [text]
    repaired = _repair_json_payload(text)
    if repaired and repaired not in candidates:
        candidates.append(_normalise_json_string(repaired))

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            pythonic = _coerce_python_literal(candidate)
            if pythonic is not None:
                return pythonic

    snippet = text[:200]
    raise LLMResponseFormatError(f"Model returned invalid JSON: {snippet}")


def _strip_code_fence(payload: str) -> str:
    """Remove Markdown-style code fences that wrap JSON payloads."""
    if not payload.startswith("```"):
        return payload
    fence_header_match = re.match(r"```(?:json)?", payload[:10], re.IGNORECASE)
    if not fence_header_match:
        return payload
    fence_end = payload.find("```", len(fence_header_match.group(0)))
    if fence_end == -1:
        return payload
    content_start = payload.find("\n", len(fence_header_match.group(0)))
    if content_start == -1:
        return payload
    return payload[content_start + 1 : fence_end].strip()


def _normalise_json_string(payload: str) -> str:
    """Normalise typographic characters that models put around JSON syntax."""
    translation = {
        0x201C: '"',
        0x201D: '"',
        0x00A0: " ",
        0xFEFF: "",
    }
    return payload.translate(str.maketrans(translation))


def _strip_trailing_commas(payload: str) -> str:
    """Remove trailing commas before closing braces/brackets."""
    return re.sub(r",(\s*[}\]])", r"\1", payload)


def _repair_json_payload(raw: str) -> str | None:
    """Attempt to salvage a JSON object embedded in noisy output."""
    stripped = _strip_code_fence(raw.strip())
    if not stripped:
        return None

    try:
        json.loads(stripped)
    except json.JSONDecodeError:
        pass
    else:
        return stripped

    opening_idx = None
    expected: list[str] = []
    for index, char in enumerate(stripped):
        if char in "{[":
            if opening_idx is None:
                opening_idx = index
            expected.append("}" if char == "{" else "]")
        elif expected and char == expected[-1]:
            expected.pop()
            if not expected and opening_idx is not None:
                candidate = stripped[opening_idx : index + 1]
                return _strip_trailing_commas(candidate.strip())
    return None


def _coerce_python_literal(candidate: str) -> Any | None:
    """Fall back to Python literal parsing when JSON decoding fails."""
    try:
        literal = ast.literal_eval(candidate)
    except (SyntaxError, ValueError, MemoryError, RecursionError):
        return None
    return _normalise_literal(literal)


def _normalise_literal(value: Any) -> Any:
    """Convert Python literals into JSON-compatible structures recursively."""
    if isinstance(value, dict):
        return {str(key): _normalise_literal(sub) for key, sub in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_normalise_literal(item) for item in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)
