"""Tests for simulation config loading and validation."""

import json

import pytest

from islandsim.config import (
    Config,
    ConfigError,
    DecisionServiceConfig,
    SimulationConfig,
    load_simulation_config,
)


def test_defaults():
    config = SimulationConfig()

    assert config.map_size == 20
    assert config.child_duration == 168
    assert config.pregnancy_duration == 216
    assert config.meals_per_day == 3
    assert config.elder_age == 168 + 2000
    assert config.llm is None


def test_missing_file_uses_defaults(tmp_path):
    config = load_simulation_config(tmp_path / "absent.json", env={})

    assert config == SimulationConfig()


def test_file_values_use_camel_case(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "mapSize": 32,
                "childDuration": 50,
                "cropWateringRequired": 1,
                "llm": {"provider": "ollama", "model": "llama3.1", "endpoint": "http://localhost:11434"},
            }
        ),
        "utf-8",
    )

    config = load_simulation_config(path, env={})

    assert config.map_size == 32
    assert config.elder_age == 2050
    assert config.crop_watering_required == 1
    assert config.llm.provider == "ollama"
    assert config.llm.base_url == "http://localhost:11434"


def test_environment_overrides_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"mapSize": 32, "seed": 1}), "utf-8")

    config = load_simulation_config(path, env={"MAP_SIZE": "12", "MEALS_PER_DAY": "2"})

    assert config.map_size == 12
    assert config.meals_per_day == 2
    assert config.seed == 1


@pytest.mark.parametrize(
    ("contents", "env"),
    [
        ("{not json", {}),
        ("[1, 2]", {}),
        ("{}", {"MAP_SIZE": "big"}),
        ("{}", {"MAP_SIZE": "0"}),
        ('{"weatherChangeProbability": 1.5}', {}),
        ('{"childDuration": -1}', {}),
    ],
)
def test_invalid_configuration_raises(tmp_path, contents, env):
    path = tmp_path / "config.json"
    path.write_text(contents, "utf-8")

    with pytest.raises(ConfigError) as info:
        load_simulation_config(path, env=env)
    assert "Remediation tips" in str(info.value)


def test_decision_service_from_env(monkeypatch):
    monkeypatch.setattr(Config, "LLM_PROVIDER", "ollama")
    monkeypatch.setattr(Config, "LLM_MODEL", "qwen2.5")
    monkeypatch.setattr(Config, "LOCAL_LLM_BASE_URL", "http://gpu:11434")

    service = DecisionServiceConfig.from_env()

    assert service.provider == "ollama"
    assert service.model == "qwen2.5"
    assert service.base_url == "http://gpu:11434"
    assert service.max_empty_retries == 2


def test_validate_requires_provider_keys(monkeypatch):
    monkeypatch.setattr(Config, "LLM_PROVIDER", "anthropic")
    monkeypatch.setattr(Config, "ANTHROPIC_API_KEY", None)

    with pytest.raises(ValueError):
        Config.validate()

    monkeypatch.setattr(Config, "LLM_PROVIDER", "ollama")
    Config.validate()
