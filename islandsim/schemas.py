"""
Core data models for islandsim.

All simulation state is expressed as pydantic models so that:
- snapshots are a single ``model_copy(deep=True)`` away,
- the persisted world document is ``model_dump(mode="json")``,
- persisted documents load back through ``model_validate``/``model_validate_json``.

Model hierarchy:
- World (aggregate root): tile grid, agents, dropped items, weather, time
  - Tile: terrain, sparse resources, optional CropField / Structure
  - Agent: lifecycle, survival, social state, inventory, memory
- Event: immutable record appended to the event log (see ``islandsim.events``)
- SimulationRun: run metadata for persistence backends

Mutation discipline: the Orchestrator owns the World during a tick. Agent
model functions and resolvers mutate the objects they are handed and return
them; nothing retains a reference across ticks.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# =============================
# Enumerations
# =============================


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class LifecycleStatus(str, Enum):
    """Lifecycle stage. Transitions only move forward: child -> adult -> elder."""

    CHILD = "child"
    ADULT = "adult"
    ELDER = "elder"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    LifecycleStatus.CHILD: 0,
    LifecycleStatus.ADULT: 1,
    LifecycleStatus.ELDER: 2,
}


class ResourceType(str, Enum):
    WOOD = "wood"
    STONE = "stone"
    WATER = "water"
    FOOD = "food"
    TOOLS = "tools"


class TerrainType(str, Enum):
    WATER = "water"
    BEACH = "beach"
    GRASS = "grass"
    FOREST = "forest"
    ROCKY = "rocky"


class StructureType(str, Enum):
    SHELTER = "shelter"
    FENCE = "fence"
    WORKBENCH = "workbench"
    STORAGE = "storage"


class Weather(str, Enum):
    SUN = "sun"
    RAIN = "rain"


class DayPhase(str, Enum):
    DAY = "day"
    NIGHT = "night"


class MemoryCategory(str, Enum):
    INTERACTION = "interaction"
    RESOURCE = "resource"
    SURVIVAL = "survival"
    BIRTH = "birth"
    DEATH = "death"
    GOD = "god"
    OTHER = "other"


class RelationshipType(str, Enum):
    TRUST = "trust"
    FRIENDSHIP = "friendship"
    RIVALRY = "rivalry"


class ImportanceTier(str, Enum):
    """Spatial memory priority, derived from the owner's inventory scarcity."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        # Higher rank sorts first.
        return _TIER_RANK[self]


_TIER_RANK = {
    ImportanceTier.CRITICAL: 3,
    ImportanceTier.HIGH: 2,
    ImportanceTier.MEDIUM: 1,
    ImportanceTier.LOW: 0,
}


# =============================
# Small value types
# =============================


class Location(BaseModel):
    """Integer grid coordinate. ``x`` is the column, ``y`` the row."""

    x: int
    y: int

    def chebyshev(self, other: "Location") -> int:
        return max(abs(self.x - other.x), abs(self.y - other.y))

    def manhattan(self, other: "Location") -> int:
        return abs(self.x - other.x) + abs(self.y - other.y)

    def as_tuple(self) -> tuple[int, int]:
        return (self.x, self.y)


class Inventory(BaseModel):
    """Per-agent resource counts. Counts are never negative."""

    wood: int = Field(0, ge=0)
    stone: int = Field(0, ge=0)
    water: int = Field(0, ge=0)
    food: int = Field(0, ge=0)
    tools: int = Field(0, ge=0)

    def get(self, resource: ResourceType | str) -> int:
        return getattr(self, ResourceType(resource).value)

    def add(self, resource: ResourceType | str, amount: int = 1) -> None:
        key = ResourceType(resource).value
        setattr(self, key, getattr(self, key) + amount)

    def take(self, resource: ResourceType | str, amount: int = 1) -> bool:
        """Remove ``amount`` if available. Returns False (unchanged) otherwise."""
        key = ResourceType(resource).value
        current = getattr(self, key)
        if amount < 0 or current < amount:
            return False
        setattr(self, key, current - amount)
        return True

    def covers(self, bundle: Mapping[ResourceType, int]) -> bool:
        return all(self.get(resource) >= amount for resource, amount in bundle.items())

    def is_empty(self) -> bool:
        return not any(self.as_dict().values())

    def as_dict(self) -> Dict[str, int]:
        return {resource.value: self.get(resource) for resource in ResourceType}

    def clear(self) -> None:
        for resource in ResourceType:
            setattr(self, resource.value, 0)


class Personality(BaseModel):
    """Big-five traits, each in [0, 100]. Fixed at creation."""

    openness: float = Field(50.0, ge=0, le=100)
    conscientiousness: float = Field(50.0, ge=0, le=100)
    extraversion: float = Field(50.0, ge=0, le=100)
    agreeableness: float = Field(50.0, ge=0, le=100)
    neuroticism: float = Field(50.0, ge=0, le=100)


class MemoryEntry(BaseModel):
    """One remembered experience."""

    tick: int = Field(..., ge=0)
    # event_id links the memory to the event that produced it (None for ambient notes)
    event_id: Optional[str] = None
    description: str
    category: MemoryCategory = MemoryCategory.OTHER
    # importance 0-10: 8+ reserved for life events and GOD messages
    importance: int = Field(5, ge=0, le=10)
    participants: List[str] = Field(default_factory=list)


class Relationship(BaseModel):
    agent_id: str
    type: RelationshipType = RelationshipType.TRUST
    # value is an unbounded running total of interaction deltas
    value: int = 0
    notes: str = ""


class Pregnancy(BaseModel):
    start_tick: int = Field(..., ge=0)
    duration: int = Field(..., ge=1)
    partner_id: str


class ChatMessage(BaseModel):
    tick: int
    sender_id: str
    sender_name: str
    message: str


class SpatialMemoryEntry(BaseModel):
    """A remembered point of interest on the map."""

    # category: "resource:<kind>", "crop" or "structure:<type>"
    category: str
    location: Location
    quantity: int = 0
    first_seen_tick: int
    last_seen_tick: int
    tier: ImportanceTier = ImportanceTier.LOW


# =============================
# Agents
# =============================


class Agent(BaseModel):
    """A living or dead island inhabitant."""

    id: str
    name: str
    gender: Gender
    # age in whole ticks; never decreases while alive
    age: int = Field(0, ge=0)
    status: LifecycleStatus = LifecycleStatus.CHILD
    happiness: int = Field(100, ge=0, le=100)
    personality: Personality = Field(default_factory=Personality)
    memory: List[MemoryEntry] = Field(default_factory=list)
    # relationships keyed by the other agent's id
    relationships: Dict[str, Relationship] = Field(default_factory=dict)
    inventory: Inventory = Field(default_factory=Inventory)
    # nutrition bookkeeping for the daily check at hour 23
    meals_eaten: int = Field(0, ge=0)
    last_meal_tick: Optional[int] = None
    starving: bool = False
    # consecutive underfed days while starving; death once it exceeds the grace period
    underfed_days: int = Field(0, ge=0)
    alive: bool = True
    pregnancy: Optional[Pregnancy] = None
    location: Location = Field(default_factory=lambda: Location(x=0, y=0))
    visibility_radius: int = Field(3, ge=0)
    # per-partner chat excerpts, newest last, keyed by partner id
    conversation_history: Dict[str, List[ChatMessage]] = Field(default_factory=dict)
    spatial_memory: List[SpatialMemoryEntry] = Field(default_factory=list)

    def can_see(self, location: Location) -> bool:
        return self.location.chebyshev(location) <= self.visibility_radius


# =============================
# Map
# =============================


class CropField(BaseModel):
    id: str
    location: Location
    planted_tick: int = Field(..., ge=0)
    watered: int = Field(0, ge=0)
    mature_tick: int
    harvested: bool = False

    def is_ready(self, tick: int, watering_required: int) -> bool:
        return (
            not self.harvested
            and tick >= self.mature_tick
            and self.watered >= watering_required
        )


class Structure(BaseModel):
    id: str
    type: StructureType
    location: Location
    durability: int = Field(100, ge=0)
    built_by: str


class Tile(BaseModel):
    """One grid cell. Water tiles are never walkable and never host crops/structures."""

    x: int
    y: int
    elevation: float = 0.0
    terrain: TerrainType = TerrainType.GRASS
    # sparse: a missing key means none of that resource
    resources: Dict[ResourceType, int] = Field(default_factory=dict)
    resource_limits: Dict[ResourceType, int] = Field(default_factory=dict)
    crop_field: Optional[CropField] = None
    structure: Optional[Structure] = None

    @property
    def location(self) -> Location:
        return Location(x=self.x, y=self.y)

    @property
    def walkable(self) -> bool:
        return self.terrain != TerrainType.WATER


class DroppedItems(BaseModel):
    """Resources left on the ground when an agent dies."""

    location: Location
    inventory: Inventory
    tick: int = 0
    source_agent_id: Optional[str] = None


class World(BaseModel):
    """Aggregate root of all mutable simulation state."""

    # map[y][x]
    map: List[List[Tile]] = Field(default_factory=list)
    agents: List[Agent] = Field(default_factory=list)
    dropped_items: List[DroppedItems] = Field(default_factory=list)
    weather: Weather = Weather.SUN
    # time is the tick counter; one tick is one simulated hour
    time: int = Field(0, ge=0)
    day_night: DayPhase = DayPhase.NIGHT

    @property
    def width(self) -> int:
        return len(self.map[0]) if self.map else 0

    @property
    def height(self) -> int:
        return len(self.map)

    @property
    def hour(self) -> int:
        return self.time % 24

    @property
    def day(self) -> int:
        return self.time // 24

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= y < self.height and 0 <= x < len(self.map[y])

    def tile_at(self, x: int, y: int) -> Optional[Tile]:
        if not self.in_bounds(x, y):
            return None
        return self.map[y][x]

    def iter_tiles(self) -> Iterator[Tile]:
        for row in self.map:
            yield from row

    def find_agent(self, agent_id: str) -> Optional[Agent]:
        for agent in self.agents:
            if agent.id == agent_id:
                return agent
        return None

    def living_agents(self) -> List[Agent]:
        return [agent for agent in self.agents if agent.alive]

    def tiles_within(self, center: Location, radius: int) -> List[Tile]:
        """Tiles inside the Chebyshev square of ``radius`` around ``center``, row-major."""
        tiles: List[Tile] = []
        for y in range(center.y - radius, center.y + radius + 1):
            for x in range(center.x - radius, center.x + radius + 1):
                tile = self.tile_at(x, y)
                if tile is not None:
                    tiles.append(tile)
        return tiles


# =============================
# Events
# =============================


class EventType(str, Enum):
    """Closed set of event kinds written to the event log."""

    MOVE = "move"
    COMMUNICATE = "communicate"
    CRAFT = "craft"
    GATHER = "gather"
    BUILD = "build"
    PROCREATE = "procreate"
    GIVE = "give"
    CREATE_CROP_FIELD = "create_crop_field"
    HARVEST_CROP = "harvest_crop"
    WEATHER_CHANGE = "weather_change"
    BIRTH = "birth"
    DEATH = "death"
    RESOURCE_DROP = "resource_drop"
    GOD_MESSAGE = "god_message"
    DECISION_ERROR = "decision_error"
    DECISION_FALLBACK = "decision_fallback"
    STATUS_CHANGE = "status_change"


class Event(BaseModel):
    """Immutable record of one world mutation.

    ``parent_event_id`` forms the causal chain: it is the id of the event
    appended immediately before this one unless set explicitly.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    type: EventType
    tick: int = Field(..., ge=0)
    agents_involved: List[str] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)
    parent_event_id: Optional[str] = None


# =============================
# Persistence records
# =============================


class SimulationRun(BaseModel):
    """Metadata tracking for a single simulation run (persistence record)."""

    id: UUID = Field(..., description="Unique run identifier")
    start_time: datetime = Field(..., description="When simulation started (wall-clock)")
    end_time: Optional[datetime] = Field(None, description="When simulation ended (wall-clock)")
    num_ticks: int = Field(..., ge=0, description="Number of ticks requested")
    num_agents: int = Field(..., ge=0, description="Living agents at start")
    seed: int = Field(..., description="RNG seed, for reproduction")
    # status tracks execution state: "running", "completed", "failed"
    status: str = Field(..., description="Run status (running, completed, failed)")
    config: Dict[str, Any] = Field(default_factory=dict, description="SimulationConfig dump")
