"""Deterministic fallback policy used when no decision service is available."""

from __future__ import annotations

from typing import Optional

from islandsim.actions import (
    ActionCall,
    CommunicateCall,
    CreateCropFieldCall,
    HarvestCropCall,
    MoveCall,
    allowed_actions,
)
from islandsim.config import SimulationConfig
from islandsim.rng import SeededRandom
from islandsim.schemas import Agent, Location, TerrainType, World

CARDINAL_STEPS = ((-1, 0), (1, 0), (0, -1), (0, 1))


def nearest_visible_agent(agent: Agent, world: World) -> Optional[Agent]:
    candidates = [
        other
        for other in world.agents
        if other.alive and other.id != agent.id and agent.can_see(other.location)
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda other: (agent.location.chebyshev(other.location), other.id))


class HeuristicPolicy:
    """Pick a plausible action without calling out to a model.

    Preference order: greet the nearest visible agent, harvest a ready crop
    underfoot, plant a field underfoot, otherwise wander one cardinal step.
    Only the wander step draws from the rng (one draw).
    """

    def uses_llm(self) -> bool:
        return False

    def choose(self, agent: Agent, world: World, rng: SeededRandom, config: SimulationConfig) -> ActionCall:
        allowed = allowed_actions(agent.status)

        neighbour = nearest_visible_agent(agent, world)
        if neighbour is not None:
            return CommunicateCall(
                agent_id=agent.id,
                message=f"Hello from tick {world.time}",
                recipients=[neighbour.id],
            )

        here = agent.location.model_copy()
        tile = world.tile_at(here.x, here.y)
        if tile is not None and "harvest_crop" in allowed:
            field = tile.crop_field
            if field is not None and field.is_ready(world.time, config.crop_watering_required):
                return HarvestCropCall(agent_id=agent.id, location=here)
        if (
            tile is not None
            and "create_crop_field" in allowed
            and tile.terrain == TerrainType.GRASS
            and tile.structure is None
            and (tile.crop_field is None or tile.crop_field.harvested)
        ):
            return CreateCropFieldCall(agent_id=agent.id, location=here)

        dx, dy = rng.choice(CARDINAL_STEPS)
        max_x = max(world.width - 1, 0)
        max_y = max(world.height - 1, 0)
        target = Location(
            x=max(0, min(max_x, here.x + dx)),
            y=max(0, min(max_y, here.y + dy)),
        )
        return MoveCall(agent_id=agent.id, to=target)


__all__ = ["CARDINAL_STEPS", "HeuristicPolicy", "nearest_visible_agent"]
