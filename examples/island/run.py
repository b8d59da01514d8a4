"""Island run demonstrating rule-based and LLM castaways.

By default the example runs with the built-in survival rules (no LLM calls):

    uv run python examples/island/run.py --ticks 240

To let an LLM choose goals, answer trades and come up with inventions
(requires provider, model and API key), pass `--llm`:

    uv run python examples/island/run.py --llm --ticks 72

Environment variables expected when `--llm` is used:
- `LLM_PROVIDER` (default `google`)
- `LLM_MODEL` (default `gemini-2.5-flash`)
- Provider-specific API key (e.g., `GOOGLE_API_KEY`)

`--scenario` takes a path or the name of a file in `examples/scenarios/`.
"""

from __future__ import annotations

import argparse
import asyncio

from castaway import FallbackReasoner, LLMReasoner, Simulation, SimulationSnapshot
from castaway.config import Config, default_config
from castaway.logging_utils import Color, colored
from castaway.scenario import default_scenario, load_scenario


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Castaway island simulation")
    parser.add_argument("--llm", action="store_true", help="Use the LLM reasoner")
    parser.add_argument("--ticks", type=int, default=Config.DEFAULT_TICK_COUNT, help="Number of ticks to simulate")
    parser.add_argument("--seed", type=int, default=Config.RANDOM_SEED, help="Random seed for a reproducible island")
    parser.add_argument("--scenario", type=str, default=None, help="Scenario file path or name")
    parser.add_argument("--verbose", action="store_true", help="Echo the event log while running")
    parser.add_argument("--map", action="store_true", help="Print the island map at the end")
    return parser.parse_args()


def print_summary(snapshot: SimulationSnapshot, show_map: bool) -> None:
    print(colored(f"\n=== {snapshot.time_label} ({snapshot.season.value}) ===", Color.CYAN, bold=True))
    for actor in snapshot.actors:
        inventory = ", ".join(f"{amount} {resource.value}" for resource, amount in actor.inventory.items()) or "nothing"
        print(
            f"{actor.name}: energy {actor.stats.energy:.0f}, hunger {actor.stats.hunger:.0f}, "
            f"{actor.long_term_memory.housing_status}, {actor.long_term_memory.tool_status}; carrying {inventory}"
        )
        print(f"  goal: {actor.goal} | doing: {actor.action.label}")
    if snapshot.trades:
        print(colored("\nTrades:", Color.MAGENTA))
        for trade in snapshot.trades:
            offer = trade.latest_offer
            terms = offer.describe() if offer else "no terms"
            print(f"  {trade.id}: {trade.initiator_id} -> {trade.recipient_id}, {terms} [{trade.status.value}]")
    if snapshot.inventions:
        print(colored("\nInventions:", Color.GREEN))
        for invention in snapshot.inventions:
            owners = ", ".join(invention.owner_ids) or "not built yet"
            print(f"  {invention.name} ({invention.category.value}): {owners}")
    print(colored("\nRecent events:", Color.BLUE))
    for entry in snapshot.log[-10:]:
        repeat = f" (x{entry.count})" if entry.count > 1 else ""
        print(f"  [{entry.time}] {entry.message}{repeat}")
    if show_map:
        print()
        print("\n".join(snapshot.island))


async def main(args: argparse.Namespace) -> None:
    if args.llm:
        Config.validate()
        print(Config.display())
        reasoner = LLMReasoner()
    else:
        reasoner = FallbackReasoner()

    scenario = load_scenario(args.scenario) if args.scenario else default_scenario()
    simulation = Simulation(
        default_config(),
        scenario,
        reasoner,
        seed=args.seed,
        echo_log=True if args.verbose else None,
    )
    print(f"Starting {scenario.name}: {len(scenario.actors)} castaways, {args.ticks} ticks\n")
    try:
        snapshot = await simulation.run(args.ticks, settle=not args.llm)
        if args.llm:
            await simulation.settle()
            snapshot = simulation.snapshot()
    finally:
        await simulation.close()
    print_summary(snapshot, args.map)


if __name__ == "__main__":
    asyncio.run(main(parse_args()))
