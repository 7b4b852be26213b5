"""Adapter that asks a chat model for an edit plan."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from ..prompts import render_system_prompt, render_user_prompt
from .llm_client import LLMClient, LLMRequest

if TYPE_CHECKING:
    from ..plan import PlanLimits

__all__ = ["ModelPlanSource"]


class ModelPlanSource:
    """Render the editing prompt and return the model's raw plan text."""

    def __init__(
        self,
        client: LLMClient,
        *,
        limits: "PlanLimits",
        temperature: float = 0.2,
        model: Optional[str] = None,
    ) -> None:
        self._client = client
        self._limits = limits
        self._temperature = temperature
        self._model = model

    def propose_plan(self, task: str, *, actor: str, context: str) -> str:
        request = LLMRequest(
            prompt=render_user_prompt(task, actor=actor, context=context),
            system_prompt=render_system_prompt(
                max_files=self._limits.max_files,
                max_lines=self._limits.max_lines,
            ),
            model=self._model,
            temperature=self._temperature,
        )
        return self._client.complete(request)
