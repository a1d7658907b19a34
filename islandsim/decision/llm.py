"""Decision source backed by a language model."""

from __future__ import annotations

import time
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from islandsim.config import Config, DecisionServiceConfig
from islandsim.llm_utils import call_llm_with_retries
from islandsim.logging_utils import log_llm

from .base import DecisionRequest, DecisionResponse, DecisionTelemetry, RawActionCall


class LLMDecisionReply(BaseModel):
    """Schema the model must fill in."""

    tool_calls: List[RawActionCall] = Field(
        default_factory=list, description="Exactly one chosen action"
    )


def _usage(result: Any) -> tuple[Optional[int], Optional[int]]:
    # mirascope attaches the provider response to structured outputs as ``_response``.
    response = getattr(result, "_response", None)
    if response is None:
        return None, None
    return getattr(response, "input_tokens", None), getattr(response, "output_tokens", None)


class LLMDecisionSource:
    """Ask an LLM (remote via mirascope, or local Ollama) for the next action.

    Service errors and timeouts propagate after the configured backoff so the
    adapter can classify them as a failed decision.
    """

    def __init__(self, service: Optional[DecisionServiceConfig] = None) -> None:
        self.service = service or DecisionServiceConfig.from_env()

    def uses_llm(self) -> bool:
        return True

    async def decide(self, request: DecisionRequest) -> DecisionResponse:
        service = self.service
        if Config.DEBUG_LLM:
            print(f"\n{'=' * 80}")
            print(f"[LLM DECISION] Agent: {request.agent_id} | Tick: {request.tick}")
            print(f"{'=' * 80}")
            print("\n[SYSTEM PROMPT]")
            print(request.system_prompt)
            print("\n[USER PROMPT]")
            print(request.user_prompt)

        started = time.perf_counter()
        reply = await call_llm_with_retries(
            system_prompt=request.system_prompt,
            user_prompt=request.user_prompt,
            llm_provider=service.provider,
            llm_model=service.model,
            response_model=LLMDecisionReply,
            max_attempts=service.max_validation_attempts,
            base_url=service.base_url,
            timeout_seconds=service.timeout_seconds,
            temperature=service.temperature,
            max_tokens=service.max_tokens,
            max_service_attempts=service.max_service_attempts,
            backoff_seconds=service.backoff_seconds,
        )
        latency_ms = (time.perf_counter() - started) * 1000.0

        prompt_tokens, completion_tokens = _usage(reply)
        total = None
        if prompt_tokens is not None and completion_tokens is not None:
            total = prompt_tokens + completion_tokens

        if Config.DEBUG_LLM:
            print("\n[LLM RESPONSE]")
            for call in reply.tool_calls:
                print(f"  {call.name}: {call.arguments}")
            print(f"{'=' * 80}\n")
        log_llm(f"{request.agent_id}: {len(reply.tool_calls)} tool call(s) in {latency_ms:.0f}ms")

        return DecisionResponse(
            tool_calls=reply.tool_calls,
            telemetry=DecisionTelemetry(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=total,
                latency_ms=round(latency_ms, 2),
            ),
        )


__all__ = ["LLMDecisionReply", "LLMDecisionSource"]
