#!/usr/bin/env python3
"""Run the counter task end to end (programmatic example).

This demonstrates wiring the orchestrator components directly:

* load settings from `.env` (MAKER_* variables)
* pick an oracle: the configured LLM, or the seeded simulated oracle
* checkpoint to `<storage_path>/checkpoint.json` and resume on re-run

Target and oracle selection are passed as arguments (not read from `.env`).
"""

from __future__ import annotations

import argparse
from typing import Sequence

from maker_orchestrator import FatalTaskError, MakerConfig, Orchestrator
from maker_orchestrator.llm.simulated import NoisyOracle
from maker_orchestrator.tasks import counter


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Count to a target one voted step at a time.")
    parser.add_argument("--target", type=int, default=25, help="Value to count up to")
    parser.add_argument(
        "--simulate",
        type=float,
        default=None,
        metavar="ACCURACY",
        help="Use the simulated oracle with this single-attempt accuracy instead of the LLM",
    )
    parser.add_argument("--fresh", action="store_true", help="Ignore any existing checkpoint")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    config = MakerConfig()
    config.setup_logging()

    oracle = None
    if args.simulate is not None:
        oracle = NoisyOracle(counter.solve, accuracy=args.simulate, seed=7)

    orchestrator = Orchestrator.from_config(
        config,
        decomposer=counter.CounterDecomposer(target=args.target),
        initial_state=counter.initial_state(),
        dispatcher=counter.build_dispatcher(),
        oracle=oracle,
    )

    with orchestrator:
        try:
            result = orchestrator.run(resume=not args.fresh)
        except FatalTaskError as exc:
            print(f"Aborted at step {exc.step_number}: {exc.reason}")
            if exc.checkpoint is not None:
                print(f"Last checkpoint: cursor {exc.checkpoint.cursor}")
            return 1

    print(f"Counter reached {result.state.data['value']} in {result.steps_applied} steps")
    print(f"Retries: {result.totals.get('retries', 0)}")
    print(f"Checkpoint: {config.checkpoint.checkpoint_file}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
