import pytest

from islandsim.actions import (
    BuildCall,
    CommunicateCall,
    CraftCall,
    CraftRecipe,
    CreateCropFieldCall,
    GatherCall,
    GiveResourceCall,
    HarvestCropCall,
    MoveCall,
)
from islandsim.config import SimulationConfig
from islandsim.resolvers import (
    apply_action,
    check_preconditions,
    resolve_build,
    resolve_communicate,
    resolve_craft,
    resolve_create_crop_field,
    resolve_gather,
    resolve_give_resource,
    resolve_harvest_crop,
    resolve_move,
)
from islandsim.schemas import (
    CropField,
    Inventory,
    Location,
    MemoryCategory,
    ResourceType,
    StructureType,
    TerrainType,
)


@pytest.fixture
def pair(make_agent, make_world):
    alice = make_agent("alice", x=1, y=1)
    bob = make_agent("bob", x=2, y=2)
    return make_world(agents=[alice, bob]), alice, bob


def test_move_relocates_without_checks(pair):
    world, alice, _ = pair

    resolve_move(world, MoveCall(agent_id="alice", to=Location(x=4, y=4)))

    assert alice.location == Location(x=4, y=4)


def test_communicate_updates_both_sides(pair):
    world, alice, bob = pair

    resolve_communicate(world, CommunicateCall(agent_id="alice", message="hi", recipients=["bob"]), tick=3)

    for agent in (alice, bob):
        assert agent.memory[-1].description == "[CHAT] Alice: hi"
        assert agent.memory[-1].category == MemoryCategory.INTERACTION
    assert alice.relationships["bob"].value == 2
    assert bob.relationships["alice"].value == 2
    assert alice.conversation_history["bob"][0].message == "hi"
    assert bob.conversation_history["alice"][0].sender_id == "alice"


def test_communicate_ignores_out_of_range_recipients(pair, make_agent):
    world, alice, _ = pair
    far = make_agent("far", x=4, y=4, visibility_radius=1)
    alice.visibility_radius = 1
    world.agents.append(far)

    resolve_communicate(world, CommunicateCall(agent_id="alice", message="hi", recipients=["far"]), tick=0)

    assert alice.memory == []
    assert far.memory == []


def test_gather_takes_one_unit_and_prunes_empty_keys(pair):
    world, alice, _ = pair
    tile = world.tile_at(1, 1)
    tile.resources[ResourceType.WOOD] = 1

    resolve_gather(world, GatherCall(agent_id="alice", resource=ResourceType.WOOD, location=Location(x=1, y=1)))

    assert alice.inventory.wood == 1
    assert ResourceType.WOOD not in tile.resources


def test_gather_on_empty_tile_is_noop(pair):
    world, alice, _ = pair

    resolve_gather(world, GatherCall(agent_id="alice", resource=ResourceType.STONE, location=Location(x=1, y=1)))

    assert alice.inventory.stone == 0


def test_craft_consumes_ingredients(pair):
    world, alice, _ = pair
    alice.inventory = Inventory(wood=2, stone=2)

    resolve_craft(world, CraftCall(agent_id="alice", recipe=CraftRecipe.STONE_TOOL))

    assert alice.inventory.as_dict() == {"wood": 1, "stone": 0, "water": 0, "food": 0, "tools": 1}


def test_craft_without_ingredients_is_noop(pair):
    world, alice, _ = pair
    alice.inventory = Inventory(wood=4, tools=0)

    resolve_craft(world, CraftCall(agent_id="alice", recipe=CraftRecipe.WOODEN_PICKAXE))

    assert alice.inventory.wood == 4
    assert alice.inventory.tools == 0


def test_build_places_structure_and_charges_cost(pair):
    world, alice, _ = pair
    alice.inventory = Inventory(wood=10, stone=5)

    resolve_build(world, BuildCall(agent_id="alice", structure_type=StructureType.SHELTER, location=Location(x=1, y=1)), tick=7)

    structure = world.tile_at(1, 1).structure
    assert structure is not None
    assert structure.type == StructureType.SHELTER
    assert structure.built_by == "alice"
    assert structure.durability == 100
    assert alice.inventory.wood == 0 and alice.inventory.stone == 0


def test_build_on_occupied_tile_is_noop(pair):
    world, alice, _ = pair
    alice.inventory = Inventory(wood=10)
    call = BuildCall(agent_id="alice", structure_type=StructureType.FENCE, location=Location(x=1, y=1))

    resolve_build(world, call, tick=1)
    resolve_build(world, call, tick=2)

    assert alice.inventory.wood == 7


def test_create_crop_field_requires_free_grass(pair, make_world, make_agent):
    world, alice, _ = pair

    resolve_create_crop_field(world, CreateCropFieldCall(agent_id="alice", location=Location(x=1, y=1)), tick=5, crop_growth_time=72)

    field = world.tile_at(1, 1).crop_field
    assert field is not None
    assert field.planted_tick == 5
    assert field.mature_tick == 77
    assert field.watered == 0

    forest = make_world(terrain=TerrainType.FOREST, agents=[make_agent("carol")])
    resolve_create_crop_field(forest, CreateCropFieldCall(agent_id="carol", location=Location(x=0, y=0)), tick=5, crop_growth_time=72)
    assert forest.tile_at(0, 0).crop_field is None


def test_harvest_requires_maturity_and_watering(pair):
    world, alice, _ = pair
    tile = world.tile_at(1, 1)
    tile.crop_field = CropField(id="crop", location=tile.location, planted_tick=0, watered=2, mature_tick=10)
    call = HarvestCropCall(agent_id="alice", location=Location(x=1, y=1))

    resolve_harvest_crop(world, call, tick=12, crop_watering_required=3)
    assert alice.inventory.food == 0

    tile.crop_field.watered = 3
    resolve_harvest_crop(world, call, tick=9, crop_watering_required=3)
    assert alice.inventory.food == 0

    resolve_harvest_crop(world, call, tick=10, crop_watering_required=3, harvest_food=2)
    assert alice.inventory.food == 2
    assert tile.crop_field.harvested

    resolve_harvest_crop(world, call, tick=11, crop_watering_required=3, harvest_food=2)
    assert alice.inventory.food == 2


def test_give_transfers_and_rewards_both(pair):
    world, alice, bob = pair
    alice.inventory = Inventory(food=5)
    alice.happiness = bob.happiness = 50

    resolve_give_resource(world, GiveResourceCall(agent_id="alice", to_agent_id="bob", resource=ResourceType.FOOD, quantity=3))

    assert alice.inventory.food == 2
    assert bob.inventory.food == 3
    assert alice.relationships["bob"].value == 3
    assert bob.relationships["alice"].value == 3
    assert alice.happiness == 53 and bob.happiness == 53


def test_give_more_than_owned_is_noop(pair):
    world, alice, bob = pair
    alice.inventory = Inventory(food=1)

    resolve_give_resource(world, GiveResourceCall(agent_id="alice", to_agent_id="bob", resource=ResourceType.FOOD, quantity=2))

    assert alice.inventory.food == 1
    assert bob.inventory.food == 0
    assert "bob" not in alice.relationships


def test_check_preconditions_mirrors_resolvers(pair):
    world, alice, _ = pair
    config = SimulationConfig()

    assert check_preconditions(world, MoveCall(agent_id="alice", to=Location(x=0, y=0)), tick=0, config=config)
    assert not check_preconditions(world, MoveCall(agent_id="alice", to=Location(x=9, y=9)), tick=0, config=config)
    assert not check_preconditions(world, CraftCall(agent_id="alice", recipe=CraftRecipe.WOODEN_TOOL), tick=0, config=config)
    assert not check_preconditions(world, MoveCall(agent_id="ghost", to=Location(x=0, y=0)), tick=0, config=config)

    alice.inventory = Inventory(wood=2)
    assert check_preconditions(world, CraftCall(agent_id="alice", recipe=CraftRecipe.WOODEN_TOOL), tick=0, config=config)


def test_apply_action_dispatches_by_variant(pair):
    world, alice, _ = pair
    config = SimulationConfig(crop_growth_time=0, crop_watering_required=0)

    apply_action(world, CreateCropFieldCall(agent_id="alice", location=Location(x=1, y=1)), tick=0, config=config)
    apply_action(world, HarvestCropCall(agent_id="alice", location=Location(x=1, y=1)), tick=0, config=config)

    assert alice.inventory.food == config.crop_harvest_food
