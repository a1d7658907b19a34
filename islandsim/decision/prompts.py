"""Prompt templates for action selection."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List

from islandsim.schemas import LifecycleStatus

from .context import DecisionContext


@dataclass
class PromptTemplate:
    """A templated prompt with ``{{placeholder}}`` slots."""

    name: str
    system: str
    user: str
    description: str = ""


@dataclass
class RenderedPrompt:
    system: str
    user: str


SURVIVAL_SYSTEM_PROMPT = (
    "You are an agent in a research-focused island survival simulation.\n\n"
    "Your goal is to survive and potentially thrive by:\n"
    "- Gathering resources (wood, stone, water, food)\n"
    "- Crafting tools and building structures\n"
    "- Planting and harvesting crop fields\n"
    "- Communicating and cooperating with other agents\n"
    "- Managing your hunger ({{meals_per_day}} meals per day)\n\n"
    "CRITICAL RULES:\n"
    "1. You can ONLY interact with entities within your visibility radius\n"
    "2. You cannot move into water tiles and may move at most {{move_range}} tile(s) per turn\n"
    "3. Starvation is fatal; keep food in your inventory\n"
    "4. Your actions are logged and may affect relationships with other agents\n"
    "5. Choose the most sensible action given your current state and surroundings\n\n"
    "Respond with ONLY a single tool call representing your chosen action."
)

CHILD_RESTRICTIONS = (
    "\n\nAs a CHILD, you can only:\n"
    "- Move to explore\n"
    "- Communicate with nearby agents\n\n"
    "You must grow up before you can gather, craft, build, or farm."
)

DECIDE_TEMPLATE = PromptTemplate(
    name="decide",
    system=SURVIVAL_SYSTEM_PROMPT,
    user=(
        "Current state JSON:\n{{context_json}}\n\n"
        "{{action_catalog}}\n\n"
        "Reply with JSON of the form:\n"
        "{\"tool_calls\": [{\"name\": \"<action name>\", \"arguments\": {...}}]}\n"
        "Return JSON only."
    ),
    description="Chooses one action for the current tick.",
)


def format_action_catalog(schemas: List[Dict[str, Any]]) -> str:
    lines = ["Available actions (choose one):"]
    for schema in schemas:
        function = schema.get("function", schema)
        lines.append(f"- {function['name']}: {function.get('description', '')}".rstrip())
        lines.append("  Arguments: " + json.dumps(function.get("parameters", {}), separators=(",", ":")))
    return "\n".join(lines)


def render_decision_prompt(
    context: DecisionContext,
    schemas: List[Dict[str, Any]],
    *,
    meals_per_day: int = 3,
    move_range: int = 1,
    template: PromptTemplate = DECIDE_TEMPLATE,
) -> RenderedPrompt:
    """Fill ``template`` for one agent. Children get the restricted system prompt."""
    replacements = {
        "{{context_json}}": context.to_json(),
        "{{action_catalog}}": format_action_catalog(schemas),
        "{{meals_per_day}}": str(meals_per_day),
        "{{move_range}}": str(move_range),
    }
    system = template.system
    user = template.user
    for placeholder, value in replacements.items():
        system = system.replace(placeholder, value)
        user = user.replace(placeholder, value)

    if context.agent.get("status") == LifecycleStatus.CHILD.value:
        system += CHILD_RESTRICTIONS
    return RenderedPrompt(system=system, user=user)


__all__ = [
    "CHILD_RESTRICTIONS",
    "DECIDE_TEMPLATE",
    "PromptTemplate",
    "RenderedPrompt",
    "format_action_catalog",
    "render_decision_prompt",
]
