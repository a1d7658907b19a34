"""Tests for the decision adapter: retries, repair and failure classification."""

from __future__ import annotations

import asyncio

import pytest

from islandsim.actions import GatherCall, MoveCall
from islandsim.config import DecisionServiceConfig, SimulationConfig
from islandsim.decision import (
    DecisionAdapter,
    DecisionResponse,
    DecisionStatus,
    DecisionTelemetry,
    RawActionCall,
)
from islandsim.schemas import LifecycleStatus


class ScriptedSource:
    """Replays canned responses (or raises canned errors) in order."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.requests = []

    async def decide(self, request):
        self.requests.append(request)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    def uses_llm(self) -> bool:
        return False


def _reply(*calls, telemetry=None) -> DecisionResponse:
    return DecisionResponse(
        tool_calls=[RawActionCall(name=name, arguments=arguments) for name, arguments in calls],
        telemetry=telemetry,
    )


def _config(**service) -> SimulationConfig:
    return SimulationConfig(llm=DecisionServiceConfig(**service))


@pytest.fixture
def scene(make_agent, make_world):
    alice = make_agent("alice", x=1, y=1)
    kid = make_agent("kid", x=2, y=2, status=LifecycleStatus.CHILD, age=10)
    return make_world(agents=[alice, kid]), alice, kid


@pytest.mark.asyncio
async def test_first_valid_call_wins(scene):
    world, alice, _ = scene
    source = ScriptedSource(
        _reply(
            ("move", {"to": {"x": 2, "y": 1}}),
            ("gather", {"resource": "wood", "location": {"x": 1, "y": 1}}),
        )
    )

    outcome = await DecisionAdapter(source, _config()).decide(alice, world, tick=0)

    assert outcome.ok
    assert isinstance(outcome.call, MoveCall)
    assert outcome.call.agent_id == "alice"
    assert len(outcome.raw_calls) == 2


@pytest.mark.asyncio
async def test_malformed_arguments_are_repaired(scene):
    world, alice, _ = scene
    source = ScriptedSource(
        _reply(("gather", '{"resource": "wood",\n "location": {"x": 1, "y": 1},}'))
    )

    outcome = await DecisionAdapter(source, _config()).decide(alice, world, tick=0)

    assert outcome.status == DecisionStatus.ACTION
    assert isinstance(outcome.call, GatherCall)


@pytest.mark.asyncio
async def test_invalid_call_is_skipped_for_a_later_valid_one(scene):
    world, alice, _ = scene
    source = ScriptedSource(
        _reply(
            ("move", {"to": "nowhere"}),
            ("fly", {}),
            ("move", {"to": {"x": 1, "y": 2}}),
        )
    )

    outcome = await DecisionAdapter(source, _config()).decide(alice, world, tick=0)

    assert outcome.ok
    assert outcome.call.to.y == 2


@pytest.mark.asyncio
async def test_empty_replies_are_retried_then_reported(scene):
    world, alice, _ = scene
    source = ScriptedSource(_reply())

    outcome = await DecisionAdapter(source, _config(max_empty_retries=2)).decide(alice, world, tick=3)

    assert outcome.status == DecisionStatus.EMPTY
    assert len(source.requests) == 3
    assert outcome.telemetry.attempts == 3
    assert outcome.call is None


@pytest.mark.asyncio
async def test_empty_then_valid_reply(scene):
    world, alice, _ = scene
    source = ScriptedSource(
        _reply(),
        _reply(("move", {"to": {"x": 0, "y": 1}}), telemetry=DecisionTelemetry(prompt_tokens=10)),
    )

    outcome = await DecisionAdapter(source, _config(max_empty_retries=2)).decide(alice, world, tick=0)

    assert outcome.ok
    assert outcome.telemetry.attempts == 2
    assert outcome.telemetry.prompt_tokens == 10


@pytest.mark.asyncio
async def test_only_unknown_names_is_unknown_action(scene):
    world, alice, _ = scene
    source = ScriptedSource(_reply(("teleport", {}), ("fly", {})))

    outcome = await DecisionAdapter(source, _config()).decide(alice, world, tick=0)

    assert outcome.status == DecisionStatus.UNKNOWN_ACTION
    assert "teleport" in outcome.error and "fly" in outcome.error
    assert [raw.name for raw in outcome.raw_calls] == ["teleport", "fly"]


@pytest.mark.asyncio
async def test_bad_arguments_are_invalid(scene):
    world, alice, _ = scene
    source = ScriptedSource(_reply(("craft", {"recipe": "laser"}), ("move", "not json")))

    outcome = await DecisionAdapter(source, _config()).decide(alice, world, tick=0)

    assert outcome.status == DecisionStatus.INVALID
    assert "craft" in outcome.error
    assert "unparseable" in outcome.error


@pytest.mark.asyncio
async def test_service_failure_is_failed_and_never_raises(scene):
    world, alice, _ = scene
    source = ScriptedSource(ConnectionError("boom"))

    outcome = await DecisionAdapter(source, _config()).decide(alice, world, tick=0)

    assert outcome.status == DecisionStatus.FAILED
    assert "ConnectionError" in outcome.error
    assert len(source.requests) == 1


@pytest.mark.asyncio
async def test_children_are_offered_only_child_actions(scene):
    world, _, kid = scene
    source = ScriptedSource(_reply(("move", {"to": {"x": 2, "y": 3}})))
    adapter = DecisionAdapter(source, _config())

    await adapter.decide(kid, world, tick=0)

    request = source.requests[0]
    offered = {schema["function"]["name"] for schema in request.tool_schemas}
    assert offered == {"move", "communicate"}
    assert "As a CHILD, you can only:" in request.system_prompt
    assert request.agent_id == "kid"


def test_build_request_carries_context(scene):
    world, alice, _ = scene
    adapter = DecisionAdapter(ScriptedSource(_reply()), _config())

    request = adapter.build_request(alice, world, tick=5)

    assert request.tick == 5
    assert request.context["agent"]["id"] == "alice"
    assert request.context["world"]["visibleAgents"][0]["id"] == "kid"
    assert "Available actions (choose one):" in request.user_prompt
    assert "3 meals per day" in request.system_prompt


class HangingSource:
    """Never answers."""

    def __init__(self):
        self.requests = []

    async def decide(self, request):
        self.requests.append(request)
        await asyncio.Event().wait()

    def uses_llm(self) -> bool:
        return False


@pytest.mark.asyncio
async def test_unanswered_request_fails_after_the_service_budget(scene):
    world, alice, _ = scene
    source = HangingSource()
    adapter = DecisionAdapter(
        source,
        _config(timeout_seconds=0.05, max_service_attempts=1, max_validation_attempts=1, backoff_seconds=0),
    )

    outcome = await asyncio.wait_for(adapter.decide(alice, world, tick=0), timeout=2.0)

    assert outcome.status == DecisionStatus.FAILED
    assert outcome.error.startswith("TimeoutError")
    assert len(source.requests) == 1


def test_budget_covers_retries_and_backoff():
    service = DecisionServiceConfig(
        timeout_seconds=10, max_service_attempts=3, max_validation_attempts=2, backoff_seconds=1.0
    )

    assert service.decision_budget_seconds == 3 * 2 * 10 + 1.0 + 2.0
