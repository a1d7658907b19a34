"""Tests for truthful logging tags ([AI] vs [•]) in orchestrator output.

These tests assert that:
- Decision-service lines are tagged [AI] only when an LLM-backed source runs
- Engine lines (lifecycle, weather, GOD messages) use the deterministic/info tags
"""

from __future__ import annotations

import contextlib
import io

import pytest

from islandsim.config import DecisionServiceConfig, SimulationConfig
from islandsim.decision import LLMDecisionSource, RawActionCall
from islandsim.decision.llm import LLMDecisionReply
from islandsim.logging_utils import LOG_TAG_DETERMINISTIC, LOG_TAG_INFO, LOG_TAG_LLM, colored, Color
from islandsim.orchestrator import Orchestrator
from islandsim.rng import SeededRandom
from islandsim.schemas import Inventory


def _orchestrator(world, source=None, **config) -> Orchestrator:
    config.setdefault("weather_change_probability", 1.0)
    return Orchestrator(
        world,
        SimulationConfig(**config),
        rng=SeededRandom(1),
        decision_source=source,
        verbose=True,
    )


@pytest.mark.asyncio
async def test_heuristic_tick_has_no_ai_tag(make_agent, make_world, monkeypatch):
    monkeypatch.setenv("ISLANDSIM_NO_COLOR", "1")
    world = make_world(agents=[make_agent("alice", inventory=Inventory(food=3))])

    buf = io.StringIO()
    with contextlib.redirect_stdout(buf):
        await _orchestrator(world).tick()
    out = buf.getvalue()

    assert f"{LOG_TAG_DETERMINISTIC} [Weather] Now rain" in out
    assert LOG_TAG_LLM not in out


@pytest.mark.asyncio
async def test_llm_source_is_tagged_ai(make_agent, make_world, monkeypatch):
    monkeypatch.setenv("ISLANDSIM_NO_COLOR", "1")

    async def fake_call_llm_with_retries(**kwargs):
        return LLMDecisionReply(tool_calls=[RawActionCall(name="move", arguments={"to": {"x": 1, "y": 0}})])

    monkeypatch.setattr("islandsim.decision.llm.call_llm_with_retries", fake_call_llm_with_retries)
    world = make_world(agents=[make_agent("alice", inventory=Inventory(food=3))])
    source = LLMDecisionSource(DecisionServiceConfig(provider="openai", model="gpt-4o-mini"))

    buf = io.StringIO()
    with contextlib.redirect_stdout(buf):
        events = await _orchestrator(world, source).tick()
    out = buf.getvalue()

    assert f"{LOG_TAG_LLM} alice: 1 tool call(s)" in out
    assert events[0].details["source"] == "llm"


def test_god_message_is_logged_as_info(make_agent, make_world, monkeypatch):
    monkeypatch.setenv("ISLANDSIM_NO_COLOR", "1")
    world = make_world(agents=[make_agent("alice"), make_agent("bob")])

    buf = io.StringIO()
    with contextlib.redirect_stdout(buf):
        _orchestrator(world).send_god_message("Look up")

    assert f"{LOG_TAG_INFO} [GOD] Message delivered to 2 agent(s)" in buf.getvalue()


def test_colors_can_be_disabled(monkeypatch):
    monkeypatch.delenv("ISLANDSIM_NO_COLOR", raising=False)
    assert colored("x", Color.RED) == f"{Color.RED.value}x{Color.RESET.value}"

    monkeypatch.setenv("ISLANDSIM_NO_COLOR", "1")
    assert colored("x", Color.RED, bold=True) == "x"
