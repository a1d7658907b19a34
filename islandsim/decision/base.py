"""Decision-source contract and the records exchanged with it."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Union

from pydantic import BaseModel, Field

from islandsim.actions import ActionCall


class RawActionCall(BaseModel):
    """One tool call exactly as the decision service returned it."""

    name: str = Field(..., description="Action name, e.g. 'move' or 'gather'")
    # arguments may be a decoded object or the raw JSON string the service emitted
    arguments: Union[Dict[str, Any], str] = Field(
        default_factory=dict, description="Action arguments as a JSON object"
    )


class DecisionTelemetry(BaseModel):
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    latency_ms: Optional[float] = None
    attempts: int = 1


class DecisionResponse(BaseModel):
    """Structured response of a decision service.

    ``tool_calls`` is ordered; only the first valid call is acted on.
    """

    tool_calls: List[RawActionCall] = Field(
        default_factory=list, description="Chosen action(s); return exactly one"
    )
    telemetry: Optional[DecisionTelemetry] = Field(
        None, description="Filled in by the client, not by the model"
    )


@dataclass
class DecisionRequest:
    """Everything a decision source needs to choose one action for one agent."""

    agent_id: str
    tick: int
    system_prompt: str
    user_prompt: str
    tool_schemas: List[Dict[str, Any]]
    context: Dict[str, Any] = field(default_factory=dict)


class DecisionSource(Protocol):
    """Protocol for anything that can pick actions for agents."""

    async def decide(self, request: DecisionRequest) -> DecisionResponse:
        """Return tool calls for ``request``. May raise on service failure."""
        ...

    def uses_llm(self) -> bool:
        """Return True if this source calls an external model."""
        ...


class DecisionStatus(str, Enum):
    ACTION = "action"
    EMPTY = "empty"
    INVALID = "invalid"
    UNKNOWN_ACTION = "unknown_action"
    FAILED = "failed"


@dataclass
class DecisionOutcome:
    """Result of one adapter round-trip for one agent.

    ``call`` is set only when ``status`` is ACTION. ``error`` carries a short
    human-readable reason for every other status.
    """

    agent_id: str
    status: DecisionStatus
    call: Optional[ActionCall] = None
    error: Optional[str] = None
    telemetry: Optional[DecisionTelemetry] = None
    raw_calls: List[RawActionCall] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == DecisionStatus.ACTION


class DecisionServiceUnavailableError(RuntimeError):
    """Raised inside the adapter when the decision service cannot be reached."""

    def __init__(self, agent_id: str, tick: int, underlying: BaseException) -> None:
        self.agent_id = agent_id
        self.tick = tick
        self.underlying = underlying
        message = (
            f"Decision service unavailable for agent '{agent_id}' at tick {tick}: "
            f"{type(underlying).__name__}: {underlying}\n"
            "\nRemediation tips:\n"
            "  - Check LLM_PROVIDER / LLM_MODEL and the provider API key\n"
            "  - For local models, make sure Ollama is running (LOCAL_LLM_BASE_URL)\n"
            "  - Raise timeout_seconds or max_service_attempts for slow endpoints"
        )
        super().__init__(message)


__all__ = [
    "DecisionOutcome",
    "DecisionRequest",
    "DecisionResponse",
    "DecisionServiceUnavailableError",
    "DecisionSource",
    "DecisionStatus",
    "DecisionTelemetry",
    "RawActionCall",
]
