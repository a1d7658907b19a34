from islandsim.config import SimulationConfig
from islandsim.schemas import (
    CropField,
    ImportanceTier,
    Inventory,
    ResourceType,
    Structure,
    StructureType,
    Tile,
)
from islandsim.spatial_memory import (
    CROP_CATEGORY,
    importance_tier,
    notable_points,
    observe_surroundings,
    observe_tiles,
    prune,
    ranked_memories,
    remember_point,
    resource_category,
)


def test_importance_tier_tracks_scarcity(make_agent):
    agent = make_agent("a", inventory=Inventory(wood=0, stone=2, water=5, food=9))

    assert importance_tier(agent, resource_category("wood")) == ImportanceTier.CRITICAL
    assert importance_tier(agent, resource_category("stone")) == ImportanceTier.HIGH
    assert importance_tier(agent, resource_category("water")) == ImportanceTier.MEDIUM
    assert importance_tier(agent, CROP_CATEGORY) == ImportanceTier.LOW
    assert importance_tier(agent, "structure:shelter") == ImportanceTier.MEDIUM


def test_notable_points_respect_threshold():
    tile = Tile(x=0, y=0, resources={ResourceType.WOOD: 3, ResourceType.STONE: 1})
    tile.crop_field = CropField(id="c", location=tile.location, planted_tick=0, mature_tick=5)
    tile.structure = Structure(id="s", type=StructureType.FENCE, location=tile.location, built_by="a")

    points = notable_points(tile, threshold=1)

    assert points == [("resource:wood", 3), (CROP_CATEGORY, 1), ("structure:fence", 1)]


def test_remember_point_dedups_nearby_same_category(make_agent):
    agent = make_agent("a")
    first = Tile(x=0, y=0)
    near = Tile(x=2, y=1)
    far = Tile(x=9, y=9)

    assert remember_point(agent, "resource:wood", first, 3, tick=1, dedup_radius=8)
    assert not remember_point(agent, "resource:wood", near, 3, tick=1, dedup_radius=8)
    assert remember_point(agent, "resource:stone", near, 3, tick=1, dedup_radius=8)
    assert remember_point(agent, "resource:wood", far, 3, tick=1, dedup_radius=8)
    assert len(agent.spatial_memory) == 3


def test_remember_point_refreshes_same_location(make_agent):
    agent = make_agent("a")
    tile = Tile(x=1, y=1)

    remember_point(agent, "resource:wood", tile, 3, tick=1, dedup_radius=0)
    remember_point(agent, "resource:wood", tile, 5, tick=4, dedup_radius=0)

    assert len(agent.spatial_memory) == 1
    entry = agent.spatial_memory[0]
    assert entry.quantity == 5
    assert entry.first_seen_tick == 1
    assert entry.last_seen_tick == 4


def test_prune_keeps_most_recent_per_category(make_agent):
    agent = make_agent("a")
    for tick in range(6):
        remember_point(agent, "resource:wood", Tile(x=tick * 10, y=0), 3, tick=tick, dedup_radius=0)

    prune(agent, per_category=2)

    assert [entry.last_seen_tick for entry in agent.spatial_memory] == [5, 4]


def test_observe_tiles_forgets_vanished_points(make_agent):
    agent = make_agent("a")
    config = SimulationConfig()
    tile = Tile(x=0, y=0, resources={ResourceType.WOOD: 3})

    observe_tiles(agent, [tile], tick=0, config=config)
    assert [entry.category for entry in agent.spatial_memory] == ["resource:wood"]

    tile.resources.clear()
    observe_tiles(agent, [tile], tick=1, config=config)
    assert agent.spatial_memory == []


def test_observe_surroundings_uses_visibility_square(make_agent, make_world):
    agent = make_agent("a", x=0, y=0, visibility_radius=1)
    world = make_world(agents=[agent])
    world.tile_at(1, 1).resources[ResourceType.STONE] = 4
    world.tile_at(3, 3).resources[ResourceType.WOOD] = 4

    observe_surroundings(agent, world, SimulationConfig())

    assert [(entry.category, entry.location.as_tuple()) for entry in agent.spatial_memory] == [
        ("resource:stone", (1, 1))
    ]


def test_ranked_memories_prefers_critical_needs(make_agent):
    agent = make_agent("a", inventory=Inventory(wood=10, food=0))
    remember_point(agent, "resource:wood", Tile(x=0, y=0), 3, tick=9, dedup_radius=0)
    remember_point(agent, CROP_CATEGORY, Tile(x=5, y=5), 1, tick=1, dedup_radius=0)

    ranked = ranked_memories(agent, limit=1)

    assert ranked[0].category == CROP_CATEGORY
    assert ranked[0].tier == ImportanceTier.CRITICAL
