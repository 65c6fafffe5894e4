"""
Headless simulation runner: replay the timers on a virtual clock, print a summary.

Every job (transaction while running, decay, layout, categorize) fires at its
configured period on a ManualClock, earliest first, so a seeded run is fully
reproducible and finishes as fast as the CPU allows. With --no-layout a pulse
expiry job takes over reaping arrived pulses.

Usage:
  py -m trustflow.tools.run_simulation --duration-ms 60000 --seed 7
  py -m trustflow.tools.run_simulation --speed 2000 --no-layout --json
"""

from __future__ import annotations

import argparse
import json
import random
import sys
from dataclasses import replace
from typing import Any, Callable

from trustflow.config import Settings, get_settings
from trustflow.scheduler.engine import SimulationScheduler
from trustflow.simulation.clock import ManualClock
from trustflow.simulation.world import World
from trustflow.trustflow_logging import get_logger

logger = get_logger(__name__)

_SEP = "=" * 60


def run(
    settings: Settings,
    duration_ms: float,
    *,
    layout: bool = True,
) -> dict[str, Any]:
    """Run for duration_ms of virtual time. Returns the final snapshot."""
    clock = ManualClock()
    world = World(rng=random.Random(settings.seed), clock=clock)
    scheduler = SimulationScheduler(world, settings)
    scheduler.start()

    jobs: list[tuple[str, Callable[[], float], Callable[[], Any]]] = [
        ("transaction", lambda: scheduler.interval_ms, scheduler.transaction_tick),
        ("decay", lambda: settings.decay_interval_ms, scheduler.decay_tick),
        ("categorize", lambda: settings.categorize_interval_ms, scheduler.categorize_tick),
    ]
    if layout:
        jobs.append(("layout", lambda: settings.frame_ms, scheduler.layout_tick))
    else:
        # without frames nothing else reaps arrived pulses
        jobs.append(("expire", lambda: settings.decay_interval_ms, scheduler.expire_tick))

    # transaction fires immediately on start; the others after one period
    next_due = {name: (0.0 if name == "transaction" else float(period())) for name, period, _ in jobs}
    while True:
        name, period, fn = min(jobs, key=lambda j: next_due[j[0]])
        due = next_due[name]
        if due > duration_ms:
            break
        clock.set(due)
        fn()
        next_due[name] = due + float(period())

    if not layout:
        scheduler.expire_tick()
    scheduler.categorize_tick()
    scheduler.stop()
    snap = scheduler.snapshot()
    logger.info(
        "headless_run_done",
        duration_ms=duration_ms,
        transactions=world.transaction_count,
        edges=len(world.ledger),
    )
    return snap


def _print_summary(snap: dict[str, Any]) -> None:
    m = snap["metrics"]
    print(_SEP)
    print(
        f"transactions={m['transaction_count']} edges={m['edge_count']} "
        f"mean_uncertainty={m['mean_uncertainty']:.3f}"
    )
    print(_SEP)
    for a in snap["agents"]:
        ev = a["evidence"]
        label = a["effective_label"]["handle"]
        print(
            f"{a['id']:>4} {a['role']:<9} rel={a['reliability']:.2f} "
            f"r={ev['r']:7.2f} s={ev['s']:7.2f} u={ev['u']:.3f} "
            f"cat={a['category_id']} {label}"
        )
    print(_SEP)
    for entry in snap["log"][:10]:
        print(f"[{entry['kind']}] {entry['message']}")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the trust simulation headless on a virtual clock.")
    parser.add_argument("--duration-ms", type=float, default=60_000.0, help="Virtual run time (ms).")
    parser.add_argument("--speed", type=float, default=None, help="Speed slider 100..2000 (default from env).")
    parser.add_argument("--seed", type=int, default=None, help="RNG seed (default TRUSTFLOW_SEED).")
    parser.add_argument("--no-layout", action="store_true", help="Skip the per-frame layout job.")
    parser.add_argument("--json", action="store_true", help="Print the final snapshot as JSON.")
    args = parser.parse_args(argv)

    settings = get_settings()
    if args.speed is not None:
        settings = replace(settings, speed=int(args.speed))
    if args.seed is not None:
        settings = replace(settings, seed=args.seed)
    if args.duration_ms <= 0:
        parser.error("--duration-ms must be positive")

    snap = run(settings, args.duration_ms, layout=not args.no_layout)
    if args.json:
        print(json.dumps(snap, indent=2))
    else:
        _print_summary(snap)
    return 0


if __name__ == "__main__":
    sys.exit(main())
