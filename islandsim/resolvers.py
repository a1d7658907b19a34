"""
Action resolvers.

One resolver per ``ActionCall`` variant. Each takes the World and a typed call
(plus tick/config where needed), applies the action, and returns the World.

Resolvers do not check distance, bounds or lifecycle status; the Orchestrator
validates those before dispatch. They do check the structural and resource
preconditions of their own action and return the World untouched when any
fails (missing agent, missing tile, insufficient resources, occupied tile).
``check_preconditions`` exposes those same checks without mutating anything
so the engine can drop an action before logging it.
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional

from .actions import (
    ActionCall,
    BuildCall,
    CommunicateCall,
    CraftCall,
    CraftRecipe,
    CreateCropFieldCall,
    GatherCall,
    GiveResourceCall,
    HarvestCropCall,
    MoveCall,
    UnknownActionError,
)
from .agent import (
    add_memory,
    record_conversation,
    update_happiness,
    update_relationship,
)
from .config import SimulationConfig
from .schemas import (
    Agent,
    ChatMessage,
    CropField,
    MemoryCategory,
    MemoryEntry,
    ResourceType,
    Structure,
    StructureType,
    TerrainType,
    Tile,
    World,
)

Bundle = Mapping[ResourceType, int]

RECIPES: Dict[CraftRecipe, Dict[str, Bundle]] = {
    CraftRecipe.WOODEN_TOOL: {
        "ingredients": {ResourceType.WOOD: 2},
        "output": {ResourceType.TOOLS: 1},
    },
    CraftRecipe.STONE_TOOL: {
        "ingredients": {ResourceType.STONE: 2, ResourceType.WOOD: 1},
        "output": {ResourceType.TOOLS: 1},
    },
    CraftRecipe.WOODEN_PICKAXE: {
        "ingredients": {ResourceType.WOOD: 5, ResourceType.TOOLS: 1},
        "output": {ResourceType.TOOLS: 2},
    },
    CraftRecipe.STONE_PICKAXE: {
        "ingredients": {ResourceType.STONE: 5, ResourceType.WOOD: 3, ResourceType.TOOLS: 1},
        "output": {ResourceType.TOOLS: 3},
    },
}

STRUCTURE_COSTS: Dict[StructureType, Bundle] = {
    StructureType.SHELTER: {ResourceType.WOOD: 10, ResourceType.STONE: 5},
    StructureType.FENCE: {ResourceType.WOOD: 3},
    StructureType.WORKBENCH: {ResourceType.WOOD: 5, ResourceType.STONE: 2},
    StructureType.STORAGE: {ResourceType.WOOD: 8},
}

STRUCTURE_DURABILITY = 100


def visible_recipients(world: World, sender: Agent, recipient_ids: list[str]) -> list[Agent]:
    """Living recipients (not the sender) inside the sender's visibility square."""
    recipients: list[Agent] = []
    for recipient_id in dict.fromkeys(recipient_ids):
        recipient = world.find_agent(recipient_id)
        if recipient is None or not recipient.alive or recipient.id == sender.id:
            continue
        if sender.can_see(recipient.location):
            recipients.append(recipient)
    return recipients


def _living(world: World, agent_id: str) -> Optional[Agent]:
    agent = world.find_agent(agent_id)
    if agent is None or not agent.alive:
        return None
    return agent


def _can_host_field(tile: Optional[Tile]) -> bool:
    if tile is None or tile.terrain != TerrainType.GRASS or tile.structure is not None:
        return False
    return tile.crop_field is None or tile.crop_field.harvested


# =============================
# Preconditions
# =============================


def check_preconditions(world: World, call: ActionCall, *, tick: int, config: SimulationConfig) -> bool:
    """True if applying ``call`` would change the World."""
    agent = _living(world, call.agent_id)
    if agent is None:
        return False

    if isinstance(call, MoveCall):
        return world.tile_at(call.to.x, call.to.y) is not None
    if isinstance(call, CommunicateCall):
        return bool(call.message.strip()) and bool(visible_recipients(world, agent, call.recipients))
    if isinstance(call, GatherCall):
        tile = world.tile_at(call.location.x, call.location.y)
        return tile is not None and tile.resources.get(call.resource, 0) > 0
    if isinstance(call, CraftCall):
        return agent.inventory.covers(RECIPES[call.recipe]["ingredients"])
    if isinstance(call, BuildCall):
        tile = world.tile_at(call.location.x, call.location.y)
        return (
            tile is not None
            and tile.walkable
            and tile.structure is None
            and agent.inventory.covers(STRUCTURE_COSTS[call.structure_type])
        )
    if isinstance(call, CreateCropFieldCall):
        return _can_host_field(world.tile_at(call.location.x, call.location.y))
    if isinstance(call, HarvestCropCall):
        tile = world.tile_at(call.location.x, call.location.y)
        return (
            tile is not None
            and tile.crop_field is not None
            and tile.crop_field.is_ready(tick, config.crop_watering_required)
        )
    if isinstance(call, GiveResourceCall):
        recipient = _living(world, call.to_agent_id)
        return (
            recipient is not None
            and recipient.id != agent.id
            and agent.inventory.get(call.resource) >= call.quantity
        )
    raise UnknownActionError(getattr(call, "name", type(call).__name__))


# =============================
# Resolvers
# =============================


def resolve_move(world: World, call: MoveCall) -> World:
    agent = _living(world, call.agent_id)
    if agent is None:
        return world
    agent.location = call.to.model_copy()
    return world


def resolve_communicate(world: World, call: CommunicateCall, tick: int, memory_limit: int = 100) -> World:
    sender = _living(world, call.agent_id)
    if sender is None:
        return world
    recipients = visible_recipients(world, sender, call.recipients)
    if not recipients:
        return world

    participants = [sender.id] + [recipient.id for recipient in recipients]
    chat = ChatMessage(tick=tick, sender_id=sender.id, sender_name=sender.name, message=call.message)
    text = f"[CHAT] {sender.name}: {call.message}"

    for agent in [sender] + recipients:
        add_memory(
            agent,
            MemoryEntry(
                tick=tick,
                description=text,
                category=MemoryCategory.INTERACTION,
                importance=3,
                participants=participants,
            ),
            memory_limit,
        )
        update_happiness(agent, "communicate")

    for recipient in recipients:
        update_relationship(sender, recipient.id, "communicate")
        update_relationship(recipient, sender.id, "communicate")
        record_conversation(sender, recipient.id, chat)
        record_conversation(recipient, sender.id, chat)
    return world


def resolve_gather(world: World, call: GatherCall) -> World:
    agent = _living(world, call.agent_id)
    tile = world.tile_at(call.location.x, call.location.y)
    if agent is None or tile is None:
        return world
    available = tile.resources.get(call.resource, 0)
    if available <= 0:
        return world

    agent.inventory.add(call.resource, 1)
    if available - 1 <= 0:
        del tile.resources[call.resource]
    else:
        tile.resources[call.resource] = available - 1
    return world


def resolve_craft(world: World, call: CraftCall) -> World:
    agent = _living(world, call.agent_id)
    if agent is None:
        return world
    recipe = RECIPES[call.recipe]
    if not agent.inventory.covers(recipe["ingredients"]):
        return world
    for resource, amount in recipe["ingredients"].items():
        agent.inventory.take(resource, amount)
    for resource, amount in recipe["output"].items():
        agent.inventory.add(resource, amount)
    return world


def resolve_build(world: World, call: BuildCall, tick: int) -> World:
    agent = _living(world, call.agent_id)
    tile = world.tile_at(call.location.x, call.location.y)
    if agent is None or tile is None or not tile.walkable or tile.structure is not None:
        return world
    cost = STRUCTURE_COSTS[call.structure_type]
    if not agent.inventory.covers(cost):
        return world
    for resource, amount in cost.items():
        agent.inventory.take(resource, amount)
    tile.structure = Structure(
        id=f"{call.structure_type.value}_{tile.x}_{tile.y}_{tick}",
        type=call.structure_type,
        location=tile.location,
        durability=STRUCTURE_DURABILITY,
        built_by=agent.id,
    )
    return world


def resolve_create_crop_field(world: World, call: CreateCropFieldCall, tick: int, crop_growth_time: int) -> World:
    tile = world.tile_at(call.location.x, call.location.y)
    if _living(world, call.agent_id) is None or not _can_host_field(tile):
        return world
    tile.crop_field = CropField(
        id=f"crop_{tile.x}_{tile.y}_{tick}",
        location=tile.location,
        planted_tick=tick,
        watered=0,
        mature_tick=tick + crop_growth_time,
    )
    return world


def resolve_harvest_crop(
    world: World,
    call: HarvestCropCall,
    tick: int,
    crop_watering_required: int,
    harvest_food: int = 2,
) -> World:
    agent = _living(world, call.agent_id)
    tile = world.tile_at(call.location.x, call.location.y)
    if agent is None or tile is None or tile.crop_field is None:
        return world
    if not tile.crop_field.is_ready(tick, crop_watering_required):
        return world
    tile.crop_field.harvested = True
    agent.inventory.add(ResourceType.FOOD, harvest_food)
    return world


def resolve_give_resource(world: World, call: GiveResourceCall) -> World:
    giver = _living(world, call.agent_id)
    recipient = _living(world, call.to_agent_id)
    if giver is None or recipient is None or giver.id == recipient.id:
        return world
    if not giver.inventory.take(call.resource, call.quantity):
        return world
    recipient.inventory.add(call.resource, call.quantity)

    update_relationship(giver, recipient.id, "give")
    update_relationship(recipient, giver.id, "give")
    update_happiness(giver, "give")
    update_happiness(recipient, "give")
    return world


def apply_action(world: World, call: ActionCall, *, tick: int, config: SimulationConfig) -> World:
    """Dispatch ``call`` to its resolver.

    Raises:
        UnknownActionError: If ``call`` is not an ``ActionCall`` variant.
    """
    if isinstance(call, MoveCall):
        return resolve_move(world, call)
    if isinstance(call, CommunicateCall):
        return resolve_communicate(world, call, tick, config.memory_limit)
    if isinstance(call, GatherCall):
        return resolve_gather(world, call)
    if isinstance(call, CraftCall):
        return resolve_craft(world, call)
    if isinstance(call, BuildCall):
        return resolve_build(world, call, tick)
    if isinstance(call, CreateCropFieldCall):
        return resolve_create_crop_field(world, call, tick, config.crop_growth_time)
    if isinstance(call, HarvestCropCall):
        return resolve_harvest_crop(
            world, call, tick, config.crop_watering_required, config.crop_harvest_food
        )
    if isinstance(call, GiveResourceCall):
        return resolve_give_resource(world, call)
    raise UnknownActionError(getattr(call, "name", type(call).__name__))


__all__ = [
    "RECIPES",
    "STRUCTURE_COSTS",
    "STRUCTURE_DURABILITY",
    "visible_recipients",
    "check_preconditions",
    "resolve_move",
    "resolve_communicate",
    "resolve_gather",
    "resolve_craft",
    "resolve_build",
    "resolve_create_crop_field",
    "resolve_harvest_crop",
    "resolve_give_resource",
    "apply_action",
]
