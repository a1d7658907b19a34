"""Spatial memory: an agent's bounded recollection of notable map locations.

Agents remember tiles they have seen that carry a notable amount of a
resource, an unharvested crop field or a structure. Memory stays small in
resource-dense regions through two rules:

- deduplication: a new point is ignored if the agent already remembers the
  same category within ``spatial_dedup_radius`` (Manhattan distance);
- per-category pruning: each category keeps its top N entries ranked by
  importance tier (derived from what the agent is currently short of) and
  then by recency.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple

from .config import SimulationConfig
from .schemas import (
    Agent,
    ImportanceTier,
    ResourceType,
    SpatialMemoryEntry,
    Tile,
    World,
)

CROP_CATEGORY = "crop"
RESOURCE_PREFIX = "resource:"
STRUCTURE_PREFIX = "structure:"


def resource_category(resource: ResourceType | str) -> str:
    return f"{RESOURCE_PREFIX}{ResourceType(resource).value}"


def _category_resource(category: str) -> Optional[ResourceType]:
    if category == CROP_CATEGORY:
        return ResourceType.FOOD
    if category.startswith(RESOURCE_PREFIX):
        return ResourceType(category[len(RESOURCE_PREFIX):])
    return None


def importance_tier(agent: Agent, category: str) -> ImportanceTier:
    """Tier for a category based on how scarce its resource is in the agent's inventory."""
    resource = _category_resource(category)
    if resource is None:
        return ImportanceTier.MEDIUM
    held = agent.inventory.get(resource)
    if held == 0:
        return ImportanceTier.CRITICAL
    if held <= 2:
        return ImportanceTier.HIGH
    if held <= 5:
        return ImportanceTier.MEDIUM
    return ImportanceTier.LOW


def notable_points(tile: Tile, threshold: int) -> List[Tuple[str, int]]:
    """(category, quantity) pairs worth remembering on this tile."""
    points: List[Tuple[str, int]] = []
    for resource, quantity in sorted(tile.resources.items(), key=lambda item: item[0].value):
        if quantity > threshold:
            points.append((resource_category(resource), quantity))
    if tile.crop_field is not None and not tile.crop_field.harvested:
        points.append((CROP_CATEGORY, 1))
    if tile.structure is not None:
        points.append((f"{STRUCTURE_PREFIX}{tile.structure.type.value}", 1))
    return points


def remember_point(
    agent: Agent,
    category: str,
    tile: Tile,
    quantity: int,
    tick: int,
    dedup_radius: int,
) -> bool:
    """Record one point of interest. Returns True if a new entry was created."""
    location = tile.location
    for entry in agent.spatial_memory:
        if entry.category != category:
            continue
        if entry.location == location:
            entry.quantity = quantity
            entry.last_seen_tick = tick
            return False
        if entry.location.manhattan(location) <= dedup_radius:
            return False

    agent.spatial_memory.append(
        SpatialMemoryEntry(
            category=category,
            location=location,
            quantity=quantity,
            first_seen_tick=tick,
            last_seen_tick=tick,
            tier=importance_tier(agent, category),
        )
    )
    return True


def _sort_key(entry: SpatialMemoryEntry) -> Tuple[int, int]:
    return (-entry.tier.rank, -entry.last_seen_tick)


def prune(agent: Agent, per_category: int) -> Agent:
    """Re-tier every entry, then keep the top ``per_category`` per category."""
    grouped: Dict[str, List[SpatialMemoryEntry]] = defaultdict(list)
    for entry in agent.spatial_memory:
        entry.tier = importance_tier(agent, entry.category)
        grouped[entry.category].append(entry)

    kept: List[SpatialMemoryEntry] = []
    for category in sorted(grouped):
        kept.extend(sorted(grouped[category], key=_sort_key)[:per_category])
    agent.spatial_memory = kept
    return agent


def observe_tiles(
    agent: Agent,
    tiles: Iterable[Tile],
    tick: int,
    config: SimulationConfig,
) -> Agent:
    """Update spatial memory from a set of tiles the agent can currently see."""
    seen: Dict[Tuple[int, int], List[str]] = {}
    for tile in tiles:
        points = notable_points(tile, config.notable_resource_threshold)
        seen[(tile.x, tile.y)] = [category for category, _ in points]
        for category, quantity in points:
            remember_point(agent, category, tile, quantity, tick, config.spatial_dedup_radius)

    # Forget remembered points that are in view but no longer there.
    agent.spatial_memory = [
        entry
        for entry in agent.spatial_memory
        if entry.location.as_tuple() not in seen
        or entry.category in seen[entry.location.as_tuple()]
    ]
    return prune(agent, config.spatial_memory_per_category)


def observe_surroundings(agent: Agent, world: World, config: SimulationConfig) -> Agent:
    if not agent.alive:
        return agent
    visible = world.tiles_within(agent.location, agent.visibility_radius)
    return observe_tiles(agent, visible, world.time, config)


def ranked_memories(agent: Agent, limit: int = 10) -> List[SpatialMemoryEntry]:
    """All categories merged, most important and most recent first."""
    return sorted(agent.spatial_memory, key=_sort_key)[:limit]


__all__ = [
    "CROP_CATEGORY",
    "resource_category",
    "importance_tier",
    "notable_points",
    "remember_point",
    "prune",
    "observe_tiles",
    "observe_surroundings",
    "ranked_memories",
]
