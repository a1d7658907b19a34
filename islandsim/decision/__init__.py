"""Decision sources for islandsim.

A decision source picks one action per agent per tick. ``LLMDecisionSource``
asks a language model; ``DecisionAdapter`` wraps any source with retries,
argument repair and validation; ``HeuristicPolicy`` is the local fallback.
"""

from .adapter import DecisionAdapter
from .base import (
    DecisionOutcome,
    DecisionRequest,
    DecisionResponse,
    DecisionServiceUnavailableError,
    DecisionSource,
    DecisionStatus,
    DecisionTelemetry,
    RawActionCall,
)
from .context import DecisionContext, build_decision_context
from .heuristic import HeuristicPolicy
from .llm import LLMDecisionSource
from .prompts import PromptTemplate, RenderedPrompt, render_decision_prompt

__all__ = [
    "DecisionAdapter",
    "DecisionContext",
    "DecisionOutcome",
    "DecisionRequest",
    "DecisionResponse",
    "DecisionServiceUnavailableError",
    "DecisionSource",
    "DecisionStatus",
    "DecisionTelemetry",
    "HeuristicPolicy",
    "LLMDecisionSource",
    "PromptTemplate",
    "RawActionCall",
    "RenderedPrompt",
    "build_decision_context",
    "render_decision_prompt",
]
