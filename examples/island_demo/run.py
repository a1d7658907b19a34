"""Island survival demo.

Run deterministically (heuristic agents, no LLM):

    python -m examples.island_demo.run --ticks 48

Enable LLM decisions (requires provider/model + API key, or LLM_PROVIDER=ollama):

    python -m examples.island_demo.run --llm --ticks 24

Persist the run to ./simulation_runs and send a GOD message before starting:

    python -m examples.island_demo.run --persist --god "A storm is coming."
"""

from __future__ import annotations

import argparse
import asyncio
from collections import Counter
from pathlib import Path

from islandsim import (
    Config,
    DecisionServiceConfig,
    JsonPersistence,
    LLMDecisionSource,
    Orchestrator,
    ScenarioLoader,
    SeededRandom,
    World,
)


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Island survival simulation")
    parser.add_argument("--llm", action="store_true", help="Let a language model choose actions")
    parser.add_argument("--ticks", type=int, default=48, help="Number of ticks (hours) to simulate")
    parser.add_argument("--seed", type=int, help="Override the scenario's rng seed for the run")
    parser.add_argument("--scenario", default="island_demo", help="Scenario name in examples/scenarios")
    parser.add_argument("--persist", action="store_true", help="Write run data under ISLANDSIM_RUNS_DIR")
    parser.add_argument("--god", help="Broadcast a GOD message to every agent before the first tick")
    parser.add_argument("--verbose", action="store_true", help="Print per-phase log lines")
    return parser.parse_args()


async def run_simulation(args: argparse.Namespace) -> dict:
    """Load the scenario, wire the orchestrator and run it."""
    loader = ScenarioLoader(scenarios_dir=Path(__file__).parent.parent / "scenarios")
    world, config = loader.load(args.scenario)

    decision_source = None
    if args.llm:
        Config.validate()
        service = config.llm or DecisionServiceConfig.from_env()
        config = config.model_copy(update={"llm": service})
        decision_source = LLMDecisionSource(service)

    persistence = None
    if args.persist:
        persistence = JsonPersistence(Config.RUNS_DIR)
        await persistence.initialize()

    seed = args.seed if args.seed is not None else config.seed
    orchestrator = Orchestrator(
        world,
        config,
        rng=SeededRandom(seed),
        decision_source=decision_source,
        persistence=persistence,
        verbose=args.verbose,
    )

    if args.god:
        orchestrator.send_god_message(args.god)

    print(f"\n{'=' * 80}")
    print(f"ISLAND SIMULATION - {'LLM Mode' if args.llm else 'Heuristic Mode'} (seed {seed})")
    print(f"{'=' * 80}\n")

    result = await orchestrator.run(num_ticks=args.ticks)

    final_world: World = result["final_state"]
    counts = Counter(event.type.value for event in result["events"])
    print(f"\n{'=' * 80}")
    print("FINAL ISLAND SUMMARY")
    print(f"{'=' * 80}")
    print(f"  Day {final_world.day}, hour {final_world.hour} ({final_world.weather.value})")
    for agent in final_world.agents:
        state = "alive" if agent.alive else "dead"
        print(
            f"  {agent.name:<8} {agent.status.value:<6} {state:<5} "
            f"happiness={agent.happiness:<3} food={agent.inventory.food}"
        )
    print("\n  Events:")
    for event_type, count in sorted(counts.items()):
        print(f"    {event_type}: {count}")
    if args.persist:
        print(f"\n  Run saved to {Config.RUNS_DIR / str(result['run_id'])}")
    print(f"\n{'=' * 80}\n")
    return result


async def main(args: argparse.Namespace) -> None:
    """Main entry point."""
    try:
        await run_simulation(args)
    except ValueError as exc:
        print(f"[Error] {exc}")
        if args.llm:
            print("[Info] Falling back to heuristic mode")
            args.llm = False
            await run_simulation(args)


if __name__ == "__main__":
    asyncio.run(main(parse_args()))
