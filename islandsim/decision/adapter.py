"""
Decision adapter.

Sits between the tick engine and a ``DecisionSource``. For one agent it:

1. builds the context and prompt, offering only the actions the agent's
   lifecycle status allows;
2. asks the source, bounding each request by the service budget and
   re-asking up to ``max_empty_retries`` times when the reply holds no
   tool calls;
3. repairs malformed argument JSON and validates each call against the
   ``ActionCall`` union, keeping the first one that validates.

``decide`` never raises. Every way a decision can go wrong maps to a
``DecisionStatus`` so the engine can log it and carry on with the tick.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional

from pydantic import ValidationError

from islandsim.actions import UnknownActionError, parse_action_call, tool_schemas
from islandsim.config import DecisionServiceConfig, SimulationConfig
from islandsim.llm_utils import repair_arguments
from islandsim.logging_utils import log_error
from islandsim.schemas import Agent, World

from .base import (
    DecisionOutcome,
    DecisionRequest,
    DecisionResponse,
    DecisionServiceUnavailableError,
    DecisionSource,
    DecisionStatus,
    DecisionTelemetry,
)
from .context import build_decision_context
from .prompts import render_decision_prompt


class DecisionAdapter:
    """Turn a ``DecisionSource`` reply into a typed action or a classified failure."""

    def __init__(self, source: DecisionSource, config: Optional[SimulationConfig] = None) -> None:
        self.source = source
        self.config = config or SimulationConfig()
        self.service = self.config.llm or DecisionServiceConfig()

    def uses_llm(self) -> bool:
        return self.source.uses_llm()

    def build_request(self, agent: Agent, world: World, tick: int) -> DecisionRequest:
        context = build_decision_context(agent, world, self.config, self.service)
        schemas = tool_schemas(agent.status)
        rendered = render_decision_prompt(
            context,
            schemas,
            meals_per_day=self.config.meals_per_day,
            move_range=self.config.agent_move_per_tick,
        )
        return DecisionRequest(
            agent_id=agent.id,
            tick=tick,
            system_prompt=rendered.system,
            user_prompt=rendered.user,
            tool_schemas=schemas,
            context=context.to_payload(),
        )

    async def decide(self, agent: Agent, world: World, tick: int) -> DecisionOutcome:
        request = self.build_request(agent, world, tick)

        response: Optional[DecisionResponse] = None
        requests_made = 0
        budget = self.service.decision_budget_seconds
        for _ in range(self.service.max_empty_retries + 1):
            requests_made += 1
            try:
                response = await asyncio.wait_for(self.source.decide(request), timeout=budget)
            except asyncio.TimeoutError:
                log_error(f"No decision for {agent.id} at tick {tick} within {budget:g}s")
                return DecisionOutcome(
                    agent_id=agent.id,
                    status=DecisionStatus.FAILED,
                    error=f"TimeoutError: no decision within {budget:g}s",
                )
            except Exception as exc:  # noqa: BLE001 - any service failure becomes a FAILED outcome
                unavailable = DecisionServiceUnavailableError(agent.id, tick, exc)
                log_error(str(unavailable).splitlines()[0])
                return DecisionOutcome(
                    agent_id=agent.id,
                    status=DecisionStatus.FAILED,
                    error=f"{type(exc).__name__}: {exc}",
                )
            if response.tool_calls:
                break
            log_error(
                f"Empty decision for {agent.id} at tick {tick} "
                f"(request {requests_made}/{self.service.max_empty_retries + 1})"
            )

        telemetry = (response.telemetry if response else None) or DecisionTelemetry()
        telemetry = telemetry.model_copy(update={"attempts": requests_made})

        if response is None or not response.tool_calls:
            return DecisionOutcome(
                agent_id=agent.id,
                status=DecisionStatus.EMPTY,
                error=f"no tool calls after {requests_made} request(s)",
                telemetry=telemetry,
            )

        problems: List[str] = []
        unknown_names: List[str] = []
        for raw in response.tool_calls:
            arguments = repair_arguments(raw.arguments)
            if arguments is None:
                problems.append(f"{raw.name}: unparseable arguments")
                continue
            try:
                call = parse_action_call(raw.name, arguments, agent.id)
            except UnknownActionError as exc:
                unknown_names.append(exc.name)
                continue
            except ValidationError as exc:
                problems.append(f"{raw.name}: {exc.error_count()} validation error(s)")
                continue
            return DecisionOutcome(
                agent_id=agent.id,
                status=DecisionStatus.ACTION,
                call=call,
                telemetry=telemetry,
                raw_calls=list(response.tool_calls),
            )

        if unknown_names and not problems:
            status = DecisionStatus.UNKNOWN_ACTION
            error = f"unknown action(s): {', '.join(unknown_names)}"
        else:
            status = DecisionStatus.INVALID
            error = "; ".join(problems + [f"{name}: unknown action" for name in unknown_names])
        log_error(f"Rejected decision for {agent.id} at tick {tick}: {error}")
        return DecisionOutcome(
            agent_id=agent.id,
            status=status,
            error=error,
            telemetry=telemetry,
            raw_calls=list(response.tool_calls),
        )


__all__ = ["DecisionAdapter"]
