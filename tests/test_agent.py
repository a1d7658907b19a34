from islandsim.agent import (
    add_memory,
    create_agent,
    record_conversation,
    relationship_note,
    tick_age,
    top_relationships,
    update_happiness,
    update_relationship,
)
from islandsim.rng import SeededRandom
from islandsim.schemas import ChatMessage, Gender, LifecycleStatus, MemoryEntry


def test_create_agent_is_deterministic_per_seed():
    first = create_agent(SeededRandom(42))
    second = create_agent(SeededRandom(42))

    assert first.id == second.id
    assert first.id.startswith("agent_")
    assert first.gender == second.gender
    assert first.personality == second.personality
    for value in first.personality.model_dump().values():
        assert 0 <= value <= 100


def test_create_agent_defaults():
    agent = create_agent(SeededRandom(1), name="Robin")

    assert agent.name == "Robin"
    assert agent.age == 0
    assert agent.status == LifecycleStatus.CHILD
    assert agent.happiness == 100
    assert agent.alive
    assert agent.inventory.is_empty()
    assert agent.memory == []


def test_create_agent_discards_invalid_overrides():
    agent = create_agent(SeededRandom(1), id="a1", gender=Gender.MALE, happiness=500)

    assert agent.id == "a1"
    assert agent.gender == Gender.MALE
    assert agent.happiness == 100


def test_tick_age_promotes_child_at_threshold(make_agent):
    agent = make_agent("kid", status=LifecycleStatus.CHILD, age=9)

    tick_age(agent, child_duration=10, elder_age_threshold=100, rng=SeededRandom(1))

    assert agent.age == 10
    assert agent.status == LifecycleStatus.ADULT


def test_tick_age_promotes_adult_to_elder(make_agent):
    agent = make_agent("old", age=99)

    tick_age(agent, child_duration=10, elder_age_threshold=100, rng=SeededRandom(1), elder_death_probability=0.0)

    assert agent.status == LifecycleStatus.ELDER
    assert agent.alive


def test_tick_age_elder_mortality(make_agent):
    agent = make_agent("old", status=LifecycleStatus.ELDER, age=500)

    tick_age(agent, child_duration=10, elder_age_threshold=100, rng=SeededRandom(1), elder_death_probability=1.0)

    assert not agent.alive


def test_tick_age_only_elders_draw(make_agent):
    rng = SeededRandom(3)
    reference = SeededRandom(3)
    agent = make_agent("adult", age=20)

    tick_age(agent, child_duration=10, elder_age_threshold=100, rng=rng)

    assert rng.random() == reference.random()


def test_tick_age_ignores_dead_agents(make_agent):
    agent = make_agent("gone", age=20, alive=False)

    tick_age(agent, child_duration=10, elder_age_threshold=100, rng=SeededRandom(1))

    assert agent.age == 20


def test_relationship_deltas_and_notes(make_agent):
    agent = make_agent("a")

    update_relationship(agent, "b", "procreate")
    update_relationship(agent, "b", "give")
    update_relationship(agent, "b", "give")

    relationship = agent.relationships["b"]
    assert relationship.value == 11
    assert relationship.notes == "trustworthy"

    update_relationship(agent, "a", "give")
    assert "a" not in agent.relationships


def test_relationship_note_bands():
    assert relationship_note(21) == "very trustworthy"
    assert relationship_note(0) == "neutral"
    assert relationship_note(-5) == "wary"
    assert relationship_note(-11) == "cannot be trusted"


def test_happiness_is_clamped(make_agent):
    agent = make_agent("a", happiness=95)

    update_happiness(agent, "procreate")
    assert agent.happiness == 100

    agent.happiness = 15
    update_happiness(agent, "death")
    assert agent.happiness == 0


def test_memory_is_bounded(make_agent):
    agent = make_agent("a")

    for tick in range(5):
        add_memory(agent, MemoryEntry(tick=tick, description=f"m{tick}"), limit=3)

    assert [entry.description for entry in agent.memory] == ["m2", "m3", "m4"]


def test_conversation_history_is_bounded(make_agent):
    agent = make_agent("a")

    for tick in range(4):
        message = ChatMessage(tick=tick, sender_id="b", sender_name="B", message=str(tick))
        record_conversation(agent, "b", message, limit=2)

    assert [message.message for message in agent.conversation_history["b"]] == ["2", "3"]


def test_top_relationships_ranks_by_strength(make_agent):
    agent = make_agent("a")
    update_relationship(agent, "b", "communicate")
    update_relationship(agent, "c", "procreate")
    update_relationship(agent, "d", "steal")

    ranked = top_relationships(agent, 2)

    assert [rel.agent_id for rel in ranked] == ["c", "d"]
