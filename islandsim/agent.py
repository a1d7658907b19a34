"""
Agent model transitions.

Pure-ish functions over ``Agent`` records: construction with defaults, aging,
relationship and happiness bookkeeping, and bounded memory/conversation logs.
Every function mutates the agent it receives and returns it, so callers can
chain them and the Orchestrator keeps single ownership of the World.

Randomness always comes from the injected ``SeededRandom``; the number and
order of draws per call is documented on each function because it is part of
the determinism contract.
"""

from __future__ import annotations

from typing import Any, Dict, Literal

from pydantic import ValidationError

from .logging_utils import log_error
from .rng import SeededRandom
from .schemas import (
    Agent,
    ChatMessage,
    Gender,
    LifecycleStatus,
    MemoryEntry,
    Personality,
    Relationship,
    RelationshipType,
)

RelationshipEvent = Literal["communicate", "give", "procreate", "steal", "attack"]
HappinessEvent = Literal["communicate", "give", "procreate", "starve", "death"]

RELATIONSHIP_DELTAS: Dict[str, int] = {
    "communicate": 2,
    "give": 3,
    "procreate": 5,
    "steal": -5,
    "attack": -5,
}

HAPPINESS_DELTAS: Dict[str, int] = {
    "communicate": 2,
    "give": 3,
    "procreate": 5,
    "starve": -10,
    "death": -20,
}

CONVERSATION_HISTORY_LIMIT = 10
PERSONALITY_TRAITS = (
    "openness",
    "conscientiousness",
    "extraversion",
    "agreeableness",
    "neuroticism",
)


def generate_personality(rng: SeededRandom) -> Personality:
    """Five independent uniform draws in [0, 100], in trait order."""
    return Personality(**{trait: round(rng.random_float(0, 100), 2) for trait in PERSONALITY_TRAITS})


def create_agent(rng: SeededRandom, **overrides: Any) -> Agent:
    """Build an agent, filling every unspecified field with a default.

    Draw order (only for fields not overridden): id token, gender, five
    personality traits.

    Fails soft: override values that do not validate are discarded (and
    reported) so the caller always gets a valid agent.
    """
    data: Dict[str, Any] = {}
    if "id" not in overrides:
        data["id"] = f"agent_{rng.base36_token()}"
    if "gender" not in overrides:
        data["gender"] = Gender.MALE if rng.random_bool(0.5) else Gender.FEMALE
    if "personality" not in overrides:
        data["personality"] = generate_personality(rng)
    data.update(overrides)
    data.setdefault("name", data.get("id"))

    try:
        return Agent.model_validate(data)
    except ValidationError as exc:
        bad_fields = {str(err["loc"][0]) for err in exc.errors(include_url=False) if err.get("loc")}
        log_error(f"[Agent] Discarding invalid overrides for {data.get('id')}: {sorted(bad_fields)}")
        for field_name in bad_fields:
            data.pop(field_name, None)
        # Required fields dropped above get safe defaults again.
        data.setdefault("id", f"agent_{rng.base36_token()}")
        data.setdefault("name", data["id"])
        data.setdefault("gender", Gender.FEMALE)
        return Agent.model_validate(data)


def tick_age(
    agent: Agent,
    child_duration: int,
    elder_age_threshold: int,
    rng: SeededRandom,
    elder_death_probability: float = 0.01,
) -> Agent:
    """Advance one agent by one tick of aging.

    Status only moves forward. Elders consume exactly one rng draw per tick
    for mortality; nobody else draws.
    """
    if not agent.alive:
        return agent

    agent.age += 1
    if agent.status == LifecycleStatus.CHILD and agent.age >= child_duration:
        agent.status = LifecycleStatus.ADULT
    if agent.status == LifecycleStatus.ADULT and agent.age >= elder_age_threshold:
        agent.status = LifecycleStatus.ELDER

    if agent.status == LifecycleStatus.ELDER and rng.random() < elder_death_probability:
        agent.alive = False
    return agent


def relationship_note(value: int) -> str:
    if value > 20:
        return "very trustworthy"
    if value > 10:
        return "trustworthy"
    if value >= 0:
        return "neutral"
    if value >= -10:
        return "wary"
    return "cannot be trusted"


def update_relationship(agent: Agent, other_id: str, event_kind: RelationshipEvent) -> Agent:
    """Apply the fixed delta for ``event_kind`` to the relationship with ``other_id``."""
    if other_id == agent.id:
        return agent
    delta = RELATIONSHIP_DELTAS.get(event_kind)
    if delta is None:
        return agent

    relationship = agent.relationships.get(other_id)
    if relationship is None:
        relationship = Relationship(agent_id=other_id, type=RelationshipType.TRUST)
        agent.relationships[other_id] = relationship
    relationship.value += delta
    relationship.notes = relationship_note(relationship.value)
    return agent


def update_happiness(agent: Agent, event_kind: HappinessEvent) -> Agent:
    delta = HAPPINESS_DELTAS.get(event_kind, 0)
    agent.happiness = max(0, min(100, agent.happiness + delta))
    return agent


def add_memory(agent: Agent, entry: MemoryEntry, limit: int = 100) -> Agent:
    """Append a memory, keeping only the newest ``limit`` entries."""
    agent.memory.append(entry)
    if len(agent.memory) > limit:
        del agent.memory[: len(agent.memory) - limit]
    return agent


def record_conversation(
    agent: Agent,
    partner_id: str,
    message: ChatMessage,
    limit: int = CONVERSATION_HISTORY_LIMIT,
) -> Agent:
    history = agent.conversation_history.setdefault(partner_id, [])
    history.append(message)
    if len(history) > limit:
        del history[: len(history) - limit]
    return agent


def top_relationships(agent: Agent, limit: int) -> list[Relationship]:
    """Strongest relationships first (by absolute value, then id for stability)."""
    ranked = sorted(
        agent.relationships.values(),
        key=lambda rel: (-abs(rel.value), rel.agent_id),
    )
    return ranked[:limit]


__all__ = [
    "RELATIONSHIP_DELTAS",
    "HAPPINESS_DELTAS",
    "CONVERSATION_HISTORY_LIMIT",
    "create_agent",
    "generate_personality",
    "tick_age",
    "relationship_note",
    "update_relationship",
    "update_happiness",
    "add_memory",
    "record_conversation",
    "top_relationships",
]
