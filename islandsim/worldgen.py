"""Island terrain generation.

``generate_island`` is the reference map producer: four octaves of value
noise shaped by a radial mask so the coast falls away to water at the map
edges. Terrain comes from elevation thresholds and resources are scattered
per terrain from the simulation rng.

Any producer may replace it as long as the result is a square ``map[y][x]``
grid of Tiles with coordinates, elevation and terrain set, no crop fields or
structures on water, and resource quantities within their tile limits.
"""

from __future__ import annotations

import math
from typing import Dict, List, Tuple

from .config import SimulationConfig
from .rng import SeededRandom
from .schemas import ResourceType, TerrainType, Tile

NOISE_SCALE = 5.0
# (frequency multiplier, amplitude) per octave
OCTAVES: Tuple[Tuple[float, float], ...] = ((1.0, 1.0), (2.5, 0.5), (5.0, 0.25), (10.0, 0.125))
MASK_MULTIPLIER = math.pi * 0.45

# Upper elevation bound for each terrain, checked in order; rocky is the rest.
TERRAIN_THRESHOLDS: Tuple[Tuple[float, TerrainType], ...] = (
    (0.25, TerrainType.WATER),
    (0.32, TerrainType.BEACH),
    (0.45, TerrainType.GRASS),
    (0.55, TerrainType.FOREST),
)

_TABLE_SIZE = 256


def _fade(t: float) -> float:
    return t * t * t * (t * (t * 6 - 15) + 10)


def _lerp(a: float, b: float, t: float) -> float:
    return a + t * (b - a)


class ValueNoise:
    """Seeded 2D value noise in roughly [-1, 1]."""

    def __init__(self, seed: int) -> None:
        source = SeededRandom(seed)
        self._perm = source.shuffle(list(range(_TABLE_SIZE)))
        self._values = [source.random_float(-1.0, 1.0) for _ in range(_TABLE_SIZE)]

    def _lattice(self, ix: int, iy: int) -> float:
        index = self._perm[(self._perm[ix % _TABLE_SIZE] + iy) % _TABLE_SIZE]
        return self._values[index]

    def sample(self, x: float, y: float) -> float:
        x0 = math.floor(x)
        y0 = math.floor(y)
        sx = _fade(x - x0)
        sy = _fade(y - y0)
        top = _lerp(self._lattice(x0, y0), self._lattice(x0 + 1, y0), sx)
        bottom = _lerp(self._lattice(x0, y0 + 1), self._lattice(x0 + 1, y0 + 1), sx)
        return _lerp(top, bottom, sy)


def terrain_for(elevation: float) -> TerrainType:
    for bound, terrain in TERRAIN_THRESHOLDS:
        if elevation < bound:
            return terrain
    return TerrainType.ROCKY


def elevation_grid(size: int, seed: int) -> List[List[float]]:
    """Masked fractal elevation in [0, 1], indexed ``[y][x]``."""
    layers = [ValueNoise(seed + index) for index in range(len(OCTAVES))]
    total_amplitude = sum(amplitude for _, amplitude in OCTAVES)
    center = (size - 1) / 2
    max_dist = center or 1.0

    grid: List[List[float]] = []
    for y in range(size):
        row: List[float] = []
        for x in range(size):
            raw = 0.0
            for layer, (frequency, amplitude) in zip(layers, OCTAVES):
                scale = NOISE_SCALE * frequency / size
                raw += layer.sample(x * scale, y * scale) * amplitude
            base = (raw / total_amplitude) * 0.5 + 0.5

            dist = math.hypot((x - center) / max_dist, (y - center) / max_dist)
            mask = max(0.0, math.cos(dist * MASK_MULTIPLIER))
            row.append(min(1.0, max(0.0, base * mask)))
        grid.append(row)
    return grid


def _place_resources(terrain: TerrainType, rng: SeededRandom) -> Tuple[Dict[ResourceType, int], Dict[ResourceType, int]]:
    resources: Dict[ResourceType, int] = {}
    limits: Dict[ResourceType, int] = {}

    if terrain == TerrainType.FOREST and rng.random_bool(0.2):
        wood = 1 + rng.random_int(0, 3)
        resources[ResourceType.WOOD] = wood
        limits[ResourceType.WOOD] = wood + 3
    if terrain == TerrainType.ROCKY:
        if rng.random_bool(0.5):
            stone = 2 + rng.random_int(0, 3)
            resources[ResourceType.STONE] = stone
            limits[ResourceType.STONE] = stone
    elif terrain == TerrainType.FOREST and rng.random_bool(0.08):
        stone = 1 + rng.random_int(0, 2)
        resources[ResourceType.STONE] = stone
        limits[ResourceType.STONE] = stone
    if terrain == TerrainType.BEACH and rng.random_bool(0.05):
        resources[ResourceType.FOOD] = 1
        limits[ResourceType.FOOD] = 1
    if terrain == TerrainType.GRASS and rng.random_bool(0.1):
        resources[ResourceType.WATER] = 1
        limits[ResourceType.WATER] = 3
    return resources, limits


def generate_island(config: SimulationConfig, rng: SeededRandom) -> List[List[Tile]]:
    """Produce a ``map_size`` x ``map_size`` island, row-major (``map[y][x]``).

    Elevation depends on ``config.seed`` only; resource placement consumes
    ``rng`` in row-major tile order.
    """
    size = config.map_size
    elevations = elevation_grid(size, config.seed)
    tiles: List[List[Tile]] = []
    for y in range(size):
        row: List[Tile] = []
        for x in range(size):
            elevation = elevations[y][x]
            terrain = terrain_for(elevation)
            resources, limits = _place_resources(terrain, rng)
            row.append(
                Tile(
                    x=x,
                    y=y,
                    elevation=round(elevation, 4),
                    terrain=terrain,
                    resources=resources,
                    resource_limits=limits,
                )
            )
        tiles.append(row)
    return tiles


def is_walkable(tile: Tile) -> bool:
    return tile.terrain != TerrainType.WATER


def walkable_tiles(tiles: List[List[Tile]]) -> List[Tile]:
    return [tile for row in tiles for tile in row if is_walkable(tile)]


__all__ = [
    "TERRAIN_THRESHOLDS",
    "ValueNoise",
    "elevation_grid",
    "generate_island",
    "is_walkable",
    "terrain_for",
    "walkable_tiles",
]
