"""
Scenario loading and population seeding for island simulations.

A scenario is a JSON file describing the starting conditions of a run:
- Config overrides (map size, seed, durations, decision service)
- Either an explicit agent list or a population size to seed randomly
- Optional starting weather

The island itself is always generated from the (possibly overridden) seed, so
a scenario file stays small and the same file reproduces the same world.

Scenario file structure:
```json
{
  "name": "Castaways",
  "description": "...",
  "config": {"mapSize": 24, "seed": 7},
  "weather": "sun",
  "agents": [
    {"name": "Alice", "gender": "female", "age": 1200, "location": {"x": 10, "y": 11}},
    {"name": "Bob", "gender": "male", "inventory": {"food": 12}}
  ]
}
```

or, for a random cast:
```json
{"name": "Crowd", "description": "...", "population": 10}
```

Usage:
    loader = ScenarioLoader()
    world, config = loader.load("island_demo")
    orchestrator = Orchestrator(world, config, rng=SeededRandom(config.seed))
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from .agent import create_agent
from .config import Config, ConfigError, SimulationConfig
from .logging_utils import log_info
from .rng import SeededRandom
from .schemas import (
    Agent,
    DayPhase,
    Gender,
    Inventory,
    LifecycleStatus,
    Location,
    Weather,
    World,
)
from .worldgen import generate_island, walkable_tiles

DEFAULT_ROSTER: Tuple[Tuple[str, Gender], ...] = (
    ("Alice", Gender.FEMALE),
    ("Bob", Gender.MALE),
    ("Carol", Gender.FEMALE),
    ("David", Gender.MALE),
    ("Eve", Gender.FEMALE),
    ("Frank", Gender.MALE),
    ("Grace", Gender.FEMALE),
    ("Henry", Gender.MALE),
    ("Ivy", Gender.FEMALE),
    ("Jack", Gender.MALE),
    ("Kate", Gender.FEMALE),
    ("Liam", Gender.MALE),
    ("Mia", Gender.FEMALE),
    ("Noah", Gender.MALE),
    ("Olivia", Gender.FEMALE),
    ("Peter", Gender.MALE),
    ("Quinn", Gender.FEMALE),
    ("Ryan", Gender.MALE),
    ("Sophia", Gender.FEMALE),
    ("Thomas", Gender.MALE),
)

ADULT_AGE_RANGE = (1000, 1500)
CHILD_AGE_RANGE = (50, 150)


def build_world(config: SimulationConfig, rng: SeededRandom) -> World:
    """Generate an empty island at time 0 (night, sunny)."""
    return World(
        map=generate_island(config, rng),
        agents=[],
        dropped_items=[],
        weather=Weather.SUN,
        time=0,
        day_night=DayPhase.NIGHT,
    )


def random_walkable_location(world: World, rng: SeededRandom) -> Location:
    """Pick a random non-water tile, or the map centre if the island is all water."""
    candidates = walkable_tiles(world.map)
    if not candidates:
        center = world.width // 2
        return Location(x=center, y=center)
    return candidates[rng.random_int(0, len(candidates))].location


def seed_population(
    world: World,
    rng: SeededRandom,
    names: Sequence[Tuple[str, Gender]] = DEFAULT_ROSTER,
    adult_ratio: float = 0.7,
    config: Optional[SimulationConfig] = None,
) -> List[Agent]:
    """Create one agent per ``(name, gender)`` and add them to ``world``.

    Adults are aged 1000-1500 ticks, children 50-150. Everyone starts with
    10-20 food and a full day of meals, on a random walkable tile.

    Returns:
        The newly created agents, in roster order.
    """
    config = config or SimulationConfig()
    start_index = len(world.agents)
    created: List[Agent] = []

    for offset, (name, gender) in enumerate(names):
        location = random_walkable_location(world, rng)
        adult = rng.random_bool(adult_ratio)
        age = rng.random_int(*ADULT_AGE_RANGE) if adult else rng.random_int(*CHILD_AGE_RANGE)
        happiness = rng.random_int(70, 101)
        inventory = Inventory(
            wood=rng.random_int(0, 6),
            stone=rng.random_int(0, 4),
            water=rng.random_int(0, 5),
            food=rng.random_int(10, 21),
            tools=1 if rng.random_bool(0.5) else 0,
        )
        agent = create_agent(
            rng,
            id=f"agent_{start_index + offset + 1:03d}",
            name=name,
            gender=gender,
            age=age,
            status=LifecycleStatus.ADULT if adult else LifecycleStatus.CHILD,
            happiness=happiness,
            inventory=inventory,
            meals_eaten=config.meals_per_day,
            last_meal_tick=0,
            location=location,
            visibility_radius=config.visibility_radius,
        )
        created.append(agent)

    world.agents.extend(created)
    return created


class ScenarioLoader:
    """Load and validate island scenarios from JSON files.

    Directory structure:
    - Default: ``Config.SCENARIOS_DIR`` ({PROJECT_ROOT}/examples/scenarios/)
    - Override via constructor: ScenarioLoader(Path("/custom/scenarios"))
    - Scenario files: {scenario_name}.json

    Validation:
    - Required fields: name, description
    - Either a non-empty ``agents`` list or a positive ``population``
    - Explicit locations must be walkable tiles on the generated island
    - Raises ValueError if validation fails (ConfigError for bad config blocks)
    """

    def __init__(self, scenarios_dir: Optional[Path] = None):
        self.scenarios_dir = Path(scenarios_dir) if scenarios_dir else Config.SCENARIOS_DIR

    def load(self, scenario_name: str) -> Tuple[World, SimulationConfig]:
        """Load a scenario by name and build its starting world.

        Raises:
            FileNotFoundError: If the scenario file does not exist
            ValueError: If the scenario is missing required fields or malformed
            json.JSONDecodeError: If the file contains invalid JSON
        """
        scenario_path = self.scenarios_dir / f"{scenario_name}.json"
        if not scenario_path.exists():
            raise FileNotFoundError(f"Scenario '{scenario_name}' not found at {scenario_path}")

        data = json.loads(scenario_path.read_text("utf-8"))
        self._validate_scenario(data)

        config = self._parse_config(data.get("config", {}), str(scenario_path))
        rng = SeededRandom(config.seed)
        world = build_world(config, rng)
        if "weather" in data:
            world.weather = Weather(data["weather"])

        if data.get("agents"):
            for index, entry in enumerate(data["agents"]):
                world.agents.append(self._parse_agent(entry, index, world, rng, config))
        else:
            count = int(data["population"])
            roster = [DEFAULT_ROSTER[i % len(DEFAULT_ROSTER)] for i in range(count)]
            seed_population(world, rng, roster, config=config)

        log_info(
            f"[Scenario] Loaded '{data['name']}': {config.map_size}x{config.map_size} island, "
            f"{len(world.agents)} agents"
        )
        return world, config

    def _validate_scenario(self, data: Any) -> None:
        if not isinstance(data, dict):
            raise ValueError("Scenario file must contain a JSON object")

        required = ["name", "description"]
        missing = [field for field in required if field not in data]
        if missing:
            raise ValueError(f"Scenario missing required fields: {missing}")

        agents = data.get("agents")
        population = data.get("population")
        if not agents and not population:
            raise ValueError("Scenario must define a non-empty 'agents' list or a positive 'population'")
        if agents is not None and not isinstance(agents, list):
            raise ValueError("'agents' must be a list")
        for entry in agents or []:
            if not isinstance(entry, dict) or "name" not in entry:
                raise ValueError("Each agent entry must be an object with a 'name'")

    def _parse_config(self, raw: Dict[str, Any], source: str) -> SimulationConfig:
        try:
            return SimulationConfig.model_validate(raw)
        except ValidationError as exc:
            raise ConfigError(f"Invalid scenario config: {exc}", source=source) from exc

    def _parse_agent(
        self,
        entry: Dict[str, Any],
        index: int,
        world: World,
        rng: SeededRandom,
        config: SimulationConfig,
    ) -> Agent:
        if "location" in entry:
            location = Location.model_validate(entry["location"])
            tile = world.tile_at(location.x, location.y)
            if tile is None or not tile.walkable:
                raise ValueError(
                    f"Agent '{entry['name']}' starts at ({location.x}, {location.y}), "
                    "which is not a walkable tile"
                )
        else:
            location = random_walkable_location(world, rng)

        overrides: Dict[str, Any] = {
            "id": entry.get("id", f"agent_{index + 1:03d}"),
            "name": entry["name"],
            "location": location,
            "visibility_radius": config.visibility_radius,
            "meals_eaten": config.meals_per_day,
            "last_meal_tick": 0,
        }
        if "gender" in entry:
            overrides["gender"] = Gender(entry["gender"])
        age = int(entry.get("age", ADULT_AGE_RANGE[0]))
        overrides["age"] = age
        if "status" in entry:
            overrides["status"] = LifecycleStatus(entry["status"])
        else:
            overrides["status"] = (
                LifecycleStatus.ADULT if age >= config.child_duration else LifecycleStatus.CHILD
            )
        if "inventory" in entry:
            overrides["inventory"] = Inventory.model_validate(entry["inventory"])
        if "happiness" in entry:
            overrides["happiness"] = entry["happiness"]
        return create_agent(rng, **overrides)


def load_scenario(scenario_name: str, scenarios_dir: Optional[Path] = None) -> Tuple[World, SimulationConfig]:
    """Convenience function to load a scenario from the default directory."""
    loader = ScenarioLoader(scenarios_dir)
    return loader.load(scenario_name)


__all__ = [
    "ADULT_AGE_RANGE",
    "CHILD_AGE_RANGE",
    "DEFAULT_ROSTER",
    "ScenarioLoader",
    "build_world",
    "load_scenario",
    "random_walkable_location",
    "seed_population",
]
