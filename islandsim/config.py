"""
islandsim Configuration

Two layers:

- ``Config``: process-level settings loaded from environment variables (and a
  ``.env`` file when present). LLM provider credentials, debug flags, paths.
- ``SimulationConfig``: the simulation's tunable constants. Loaded from
  ``config.json`` with environment overrides and validated by pydantic so the
  engine never has to defend against negative durations or probabilities > 1.
"""

import json
import os
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

# Load .env file if it exists
load_dotenv()


class ConfigError(ValueError):
    """Raised when simulation configuration cannot be loaded or fails validation."""

    def __init__(self, message: str, *, source: Optional[str] = None) -> None:
        self.source = source
        lines = [message]
        if source:
            lines.append(f"  Source: {source}")
        lines.extend(
            [
                "\nRemediation tips:",
                "  - Durations, map size and radii must be positive integers",
                "  - Probabilities must lie in [0, 1]",
                "  - Environment overrides are parsed as JSON (e.g. MAP_SIZE=32)",
            ]
        )
        super().__init__("\n".join(lines))


class Config:
    """Application configuration loaded from environment variables."""

    # LLM Provider Configuration
    LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "openai")
    LLM_MODEL: str = os.getenv("LLM_MODEL", "gpt-4o-mini")

    # API Keys
    ANTHROPIC_API_KEY: str | None = os.getenv("ANTHROPIC_API_KEY")
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")

    # Local LLM Configuration (Ollama)
    # Example: http://localhost:11434
    LOCAL_LLM_BASE_URL: str | None = os.getenv("LOCAL_LLM_BASE_URL")
    LOCAL_LLM_API_KEY: str | None = os.getenv("LOCAL_LLM_API_KEY", "not-needed")

    # Simulation files
    CONFIG_PATH: Path = Path(os.getenv("ISLANDSIM_CONFIG_PATH", "config.json"))
    RUNS_DIR: Path = Path(os.getenv("ISLANDSIM_RUNS_DIR", "simulation_runs"))

    # Debugging
    DEBUG_LLM: bool = os.getenv("DEBUG_LLM", "false").lower() == "true"
    VERBOSE: bool = os.getenv("ISLANDSIM_VERBOSE", "false").lower() == "true"

    # Project Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent
    SCENARIOS_DIR: Path = PROJECT_ROOT / "examples" / "scenarios"

    @classmethod
    def validate(cls) -> None:
        """Validate configuration and raise errors if required values are missing."""
        if cls.LLM_PROVIDER == "ollama":
            # Ollama runs locally; base URL falls back to the default port.
            return

        if cls.LLM_PROVIDER == "anthropic" and not cls.ANTHROPIC_API_KEY:
            raise ValueError(
                "ANTHROPIC_API_KEY is required when using the 'anthropic' provider"
            )

        if cls.LLM_PROVIDER == "openai" and not cls.OPENAI_API_KEY:
            raise ValueError(
                "OPENAI_API_KEY is required when using the 'openai' provider. "
                "For local models, set LLM_PROVIDER=ollama instead."
            )

    @classmethod
    def display(cls) -> str:
        """Return a formatted string showing current configuration."""
        lines = [
            "islandsim Configuration:",
            f"  LLM Provider: {cls.LLM_PROVIDER}",
            f"  LLM Model: {cls.LLM_MODEL}",
            f"  Config file: {cls.CONFIG_PATH}",
            f"  Runs dir: {cls.RUNS_DIR}",
            f"  Debug LLM: {cls.DEBUG_LLM}",
        ]
        return "\n".join(lines)


class _CamelModel(BaseModel):
    # config.json files use camelCase keys; Python callers use snake_case.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class DecisionServiceConfig(_CamelModel):
    """Connection and budget parameters for the external decision service."""

    provider: str = Field("openai", description="mirascope provider name, or 'ollama' for local models")
    model: str = Field("gpt-4o-mini", description="Model identifier passed to the provider")
    base_url: Optional[str] = Field(None, alias="endpoint", description="Base URL for local (Ollama) servers")
    api_key: Optional[str] = Field(None, description="Unused for mirascope providers (they read env keys)")
    temperature: Optional[float] = Field(0.3, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(256, ge=1)
    max_service_attempts: int = Field(3, ge=1, description="Attempts before a service failure is final")
    max_empty_retries: int = Field(2, ge=0, description="Re-requests after an empty decision")
    max_validation_attempts: int = Field(2, ge=1, description="Schema-correction attempts per request")
    timeout_seconds: float = Field(30.0, gt=0)
    backoff_seconds: float = Field(1.0, ge=0, description="Base delay; attempt n waits base * 2**n")
    memory_window: int = Field(20, ge=0, description="Most recent memories included in context")
    relationship_limit: int = Field(10, ge=0)

    @property
    def decision_budget_seconds(self) -> float:
        """Upper bound on one decision request, retries and backoff included."""
        calls = self.max_service_attempts * self.max_validation_attempts
        backoff = self.backoff_seconds * (2 ** (self.max_service_attempts - 1) - 1)
        return calls * self.timeout_seconds + backoff

    @classmethod
    def from_env(cls) -> "DecisionServiceConfig":
        """Build a decision-service config from the process ``Config``."""
        return cls(
            provider=Config.LLM_PROVIDER,
            model=Config.LLM_MODEL,
            base_url=Config.LOCAL_LLM_BASE_URL,
            api_key=Config.LOCAL_LLM_API_KEY if Config.LLM_PROVIDER == "ollama" else None,
        )


class SimulationConfig(_CamelModel):
    """Tunable constants consumed by the tick engine."""

    tick_duration_ms: int = Field(100, ge=1, description="Wall-clock interval between ticks when started")
    map_size: int = Field(20, ge=2)
    child_duration: int = Field(168, ge=1, description="Ticks until a child becomes an adult")
    pregnancy_duration: int = Field(216, ge=1)
    crop_growth_time: int = Field(72, ge=0)
    crop_watering_required: int = Field(3, ge=0)
    agent_move_per_tick: int = Field(1, ge=1, description="Max Chebyshev distance per move")
    meals_per_day: int = Field(3, ge=0)
    visibility_radius: int = Field(3, ge=0)
    seed: int = 42

    # Lifecycle constants
    elder_age_offset: int = Field(2000, ge=0, description="Elder threshold = child_duration + offset")
    elder_death_probability: float = Field(0.01, ge=0.0, le=1.0)

    # World constants
    weather_change_probability: float = Field(0.1, ge=0.0, le=1.0)
    crop_harvest_food: int = Field(2, ge=0)

    # Agent memory
    memory_limit: int = Field(100, ge=1)
    spatial_memory_per_category: int = Field(5, ge=1)
    spatial_dedup_radius: int = Field(8, ge=0)
    notable_resource_threshold: int = Field(1, ge=0)

    # Dispatch
    decision_batch_size: int = Field(5, ge=1)
    llm: Optional[DecisionServiceConfig] = None

    @property
    def elder_age(self) -> int:
        return self.child_duration + self.elder_age_offset


# Environment overrides, parsed as JSON values.
ENV_OVERRIDES = {
    "TICK_DURATION_MS": "tick_duration_ms",
    "MAP_SIZE": "map_size",
    "CHILD_DURATION": "child_duration",
    "PREGNANCY_DURATION": "pregnancy_duration",
    "CROP_GROWTH_TIME": "crop_growth_time",
    "CROP_WATERING_REQUIRED": "crop_watering_required",
    "AGENT_MOVE_PER_TICK": "agent_move_per_tick",
    "MEALS_PER_DAY": "meals_per_day",
    "VISIBILITY_RADIUS": "visibility_radius",
    "SEED": "seed",
}


def load_simulation_config(
    path: Optional[Path | str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> SimulationConfig:
    """Load ``SimulationConfig`` from a JSON file plus environment overrides.

    A missing file is not an error (defaults apply). Environment values win
    over file values.

    Raises:
        ConfigError: If the file is not valid JSON, an override is not valid
            JSON, or the merged values fail validation.
    """
    env = os.environ if env is None else env
    config_path = Path(path) if path is not None else Config.CONFIG_PATH

    data: dict[str, Any] = {}
    if config_path.exists():
        try:
            data = json.loads(config_path.read_text("utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in config file: {exc}", source=str(config_path)) from exc
        if not isinstance(data, dict):
            raise ConfigError("Config file must contain a JSON object", source=str(config_path))

    for env_key, field_name in ENV_OVERRIDES.items():
        raw = env.get(env_key)
        if raw is None:
            continue
        try:
            value = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"{env_key} is not valid JSON: {raw!r}", source="environment") from exc
        # Drop any camelCase spelling from the file so the override is unambiguous.
        data.pop(to_camel(field_name), None)
        data[field_name] = value

    try:
        return SimulationConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid simulation configuration: {exc}", source=str(config_path)) from exc


__all__ = [
    "Config",
    "ConfigError",
    "DecisionServiceConfig",
    "SimulationConfig",
    "load_simulation_config",
    "ENV_OVERRIDES",
]
