"""Convenience exports for the language-model client implementations."""

from .llm_client import (
    LLMClient,
    LLMClientError,
    LLMRequest,
    LLMResponseFormatError,
    LLMRetryError,
    LLMTransportError,
    parse_json_payload,
)
from .openai_chat import OpenAIChatClient
from .plan_source import ModelPlanSource

__all__ = [
    "LLMClient",
    "LLMClientError",
    "LLMRequest",
    "LLMResponseFormatError",
    "LLMRetryError",
    "LLMTransportError",
    "ModelPlanSource",
    "OpenAIChatClient",
    "parse_json_payload",
]
