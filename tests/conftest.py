"""Shared builders for small hand-made islands."""

from __future__ import annotations

from typing import Iterable, Optional

import pytest

from islandsim.schemas import (
    Agent,
    Gender,
    LifecycleStatus,
    Location,
    TerrainType,
    Tile,
    World,
)


def build_agent(
    agent_id: str,
    *,
    x: int = 0,
    y: int = 0,
    gender: Gender = Gender.FEMALE,
    status: LifecycleStatus = LifecycleStatus.ADULT,
    age: int = 500,
    **fields,
) -> Agent:
    return Agent(
        id=agent_id,
        name=agent_id.title(),
        gender=gender,
        status=status,
        age=age,
        location=Location(x=x, y=y),
        **fields,
    )


def build_world(
    size: int = 5,
    *,
    agents: Optional[Iterable[Agent]] = None,
    terrain: TerrainType = TerrainType.GRASS,
    water: Iterable[tuple[int, int]] = (),
) -> World:
    """A ``size`` x ``size`` island of one terrain, with optional water tiles at (x, y)."""
    water_cells = set(water)
    tiles = [
        [
            Tile(x=x, y=y, terrain=TerrainType.WATER if (x, y) in water_cells else terrain)
            for x in range(size)
        ]
        for y in range(size)
    ]
    return World(map=tiles, agents=list(agents or []))


@pytest.fixture
def make_agent():
    return build_agent


@pytest.fixture
def make_world():
    return build_world
