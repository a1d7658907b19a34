"""Context assembly for decision prompts.

Collects what one agent knows at the start of its turn: its own state, a
window of recent memories, its strongest relationships, recent
conversations, ranked spatial memory, and what it can currently see.
Visibility uses the Chebyshev square of the agent's radius, the same rule
the engine uses to validate interactions.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from islandsim.agent import top_relationships
from islandsim.config import DecisionServiceConfig, SimulationConfig
from islandsim.schemas import Agent, World
from islandsim.spatial_memory import ranked_memories

CONVERSATION_PARTNERS = 5
MESSAGES_PER_PARTNER = 3
SPATIAL_MEMORY_LIMIT = 10


@dataclass
class DecisionContext:
    """Structured context passed to the decision prompt."""

    agent: Dict[str, Any]
    world: Dict[str, Any]
    memories: List[Dict[str, Any]] = field(default_factory=list)
    relationships: List[Dict[str, Any]] = field(default_factory=list)
    conversations: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    spatial_memory: List[Dict[str, Any]] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        agent = dict(self.agent)
        agent["recentMemory"] = self.memories
        agent["relationships"] = self.relationships
        agent["recentConversations"] = self.conversations
        agent["knownLocations"] = self.spatial_memory
        return {"agent": agent, "world": self.world}

    def to_json(self) -> str:
        return json.dumps(self.to_payload(), separators=(",", ":"))

    def summary(self) -> str:
        lines = [
            f"{self.agent['name']} ({self.agent['status']}, age {self.agent['ageInDays']} days)"
            f" at ({self.agent['location']['x']}, {self.agent['location']['y']})",
            f"Hour {self.world['hour']} of day {self.world['day']}, {self.world['weather']}",
        ]
        if self.world["visibleAgents"]:
            names = ", ".join(other["name"] for other in self.world["visibleAgents"])
            lines.append(f"Nearby: {names}")
        return "\n".join(lines)


def _visible_tiles(agent: Agent, world: World) -> List[Dict[str, Any]]:
    tiles = []
    for tile in world.tiles_within(agent.location, agent.visibility_radius):
        tiles.append(
            {
                "x": tile.x,
                "y": tile.y,
                "terrain": tile.terrain.value,
                "resources": {resource.value: qty for resource, qty in tile.resources.items()},
                "hasCropField": tile.crop_field is not None and not tile.crop_field.harvested,
                "hasStructure": tile.structure is not None,
            }
        )
    return tiles


def _visible_agents(agent: Agent, world: World) -> List[Dict[str, Any]]:
    return [
        {
            "id": other.id,
            "name": other.name,
            "location": other.location.model_dump(),
            "status": other.status.value,
        }
        for other in world.agents
        if other.alive and other.id != agent.id and agent.can_see(other.location)
    ]


def build_decision_context(
    agent: Agent,
    world: World,
    config: Optional[SimulationConfig] = None,
    service: Optional[DecisionServiceConfig] = None,
) -> DecisionContext:
    config = config or SimulationConfig()
    service = service or config.llm or DecisionServiceConfig()

    window = agent.memory[-service.memory_window:] if service.memory_window else []
    memories = [{"tick": entry.tick, "description": entry.description} for entry in window]

    relationships = [
        {"agentId": rel.agent_id, "type": rel.type.value, "value": rel.value, "notes": rel.notes}
        for rel in top_relationships(agent, service.relationship_limit)
    ]

    # Most recently active partners first.
    partners = sorted(
        agent.conversation_history.items(),
        key=lambda item: (-(item[1][-1].tick if item[1] else -1), item[0]),
    )[:CONVERSATION_PARTNERS]
    conversations = {
        partner_id: [
            {"tick": msg.tick, "from": msg.sender_name, "message": msg.message}
            for msg in history[-MESSAGES_PER_PARTNER:]
        ]
        for partner_id, history in partners
    }

    spatial = [
        {
            "category": entry.category,
            "location": entry.location.model_dump(),
            "quantity": entry.quantity,
            "lastSeenTick": entry.last_seen_tick,
            "importance": entry.tier.value,
        }
        for entry in ranked_memories(agent, SPATIAL_MEMORY_LIMIT)
    ]

    agent_state = {
        "id": agent.id,
        "name": agent.name,
        "gender": agent.gender.value,
        "age": agent.age,
        "ageInDays": agent.age // 24,
        "status": agent.status.value,
        "happiness": agent.happiness,
        "inventory": agent.inventory.as_dict(),
        "mealsEaten": agent.meals_eaten,
        "starving": agent.starving,
        "pregnant": agent.pregnancy is not None,
        "location": agent.location.model_dump(),
    }
    world_state = {
        "time": world.time,
        "hour": world.hour,
        "day": world.day,
        "dayNight": world.day_night.value,
        "weather": world.weather.value,
        "visibleTiles": _visible_tiles(agent, world),
        "visibleAgents": _visible_agents(agent, world),
    }
    return DecisionContext(
        agent=agent_state,
        world=world_state,
        memories=memories,
        relationships=relationships,
        conversations=conversations,
        spatial_memory=spatial,
    )


__all__ = ["DecisionContext", "build_decision_context"]
