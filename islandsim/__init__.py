"""
islandsim - deterministic island survival simulation with LLM-driven agents.

Agents live on a generated island, gather, craft, farm, talk, procreate and
die. Each tick every living agent picks one action from a decision source
(a language model by default, a local heuristic as fallback).

All state lives in a World value; randomness comes from one injected
SeededRandom, so a seed plus a decision source reproduces a run.
"""

__version__ = "0.1.0"

# Main simulation components
from .orchestrator import Orchestrator, SimulationMode, SimulationModeError
from .events import EventLog, UnknownEventError
from .rng import SeededRandom

# Configuration
from .config import (
    Config,
    ConfigError,
    DecisionServiceConfig,
    SimulationConfig,
    load_simulation_config,
)

# Persistence backends
from .persistence import PersistenceStrategy, InMemoryPersistence, JsonPersistence

# Decision sources
from .decision import (
    DecisionAdapter,
    DecisionOutcome,
    DecisionServiceUnavailableError,
    DecisionSource,
    DecisionStatus,
    HeuristicPolicy,
    LLMDecisionSource,
    RawActionCall,
)

# Actions
from .actions import ActionCall, UnknownActionError, parse_action_call, tool_schemas

# Core schemas
from .schemas import (
    Agent,
    Event,
    EventType,
    Inventory,
    LifecycleStatus,
    Location,
    SimulationRun,
    Tile,
    World,
)

# World building
from .worldgen import generate_island
from .scenario import ScenarioLoader, build_world, load_scenario, seed_population

__all__ = [
    # Main class
    "Orchestrator",
    "SimulationMode",
    "SimulationModeError",
    "EventLog",
    "UnknownEventError",
    "SeededRandom",
    # Configuration
    "Config",
    "ConfigError",
    "DecisionServiceConfig",
    "SimulationConfig",
    "load_simulation_config",
    # Persistence
    "PersistenceStrategy",
    "InMemoryPersistence",
    "JsonPersistence",
    # Decisions
    "DecisionAdapter",
    "DecisionOutcome",
    "DecisionServiceUnavailableError",
    "DecisionSource",
    "DecisionStatus",
    "HeuristicPolicy",
    "LLMDecisionSource",
    "RawActionCall",
    # Actions
    "ActionCall",
    "UnknownActionError",
    "parse_action_call",
    "tool_schemas",
    # Schemas
    "Agent",
    "Event",
    "EventType",
    "Inventory",
    "LifecycleStatus",
    "Location",
    "SimulationRun",
    "Tile",
    "World",
    # World building
    "generate_island",
    "ScenarioLoader",
    "build_world",
    "load_scenario",
    "seed_population",
]
