"""
Command line entry point running one of the reliability models.

Prints the truncation error, the resource counters and the occupancy
table of every state. ``--tree`` additionally dumps the proxels of the
last generation and ``--json`` replaces the text report with a JSON
document.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional, Sequence

from ..core.config import SolverConfig
from ..core.driver import ProxelSimulator, SimulationResult
from ..core.model import Model
from ..domains.reliability import build_machine_model, build_repair_model

logger = logging.getLogger(__name__)

MODELS = ("machine", "repair")


def build_model(name: str, config: SolverConfig) -> Model:
    if name == "machine":
        return build_machine_model()
    if name == "repair":
        return build_repair_model(config)
    raise ValueError(f"unknown model {name!r}, expected one of {', '.join(MODELS)}")


def format_report(result: SimulationResult, model: Model, tree: bool = False) -> str:
    lines = [
        f"error = {result.error:.5e}",
        f"ccpx = {result.peak_live}",
        f"count = {result.total_processed}",
        "",
        result.format_table(),
    ]
    if tree:
        lines.append("")
        for p in result.final_generation:
            lines.append(
                f"ID: {p.pid:6d} - {model.state_name(p.state)} - "
                f"Tau: ({p.age1:3d},{p.age2:3d}) - Prob.: {p.mass:.5e}"
            )
    return "\n".join(lines)


def main(argv: Optional[Sequence[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Run a proxel-based transient analysis.")
    ap.add_argument("--model", choices=MODELS, default="machine", help="Model to simulate.")
    ap.add_argument("--total-time", type=float, default=None, help="Simulated time span.")
    ap.add_argument("--step-size", type=float, default=None, help="Time step size.")
    ap.add_argument("--min-prob", type=float, default=None, help="Truncation threshold.")
    ap.add_argument("--seed", type=int, default=None, help="Seed for leaf extraction.")
    ap.add_argument("--check", action="store_true", help="Audit mass conservation every step.")
    ap.add_argument("--tree", action="store_true", help="Dump the final generation.")
    ap.add_argument("--json", action="store_true", help="Print the result as JSON.")
    ap.add_argument("--verbose", "-v", action="store_true", help="Log progress at DEBUG level.")
    args = ap.parse_args(list(argv) if argv is not None else None)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stderr,
    )

    cfg = SolverConfig(check_conservation=args.check)
    if args.model == "repair":
        cfg.step_size = 1.0
    if args.total_time is not None:
        cfg.total_time = args.total_time
    if args.step_size is not None:
        cfg.step_size = args.step_size
    if args.min_prob is not None:
        cfg.min_prob = args.min_prob
    if args.seed is not None:
        cfg.seed = args.seed

    if cfg.total_time <= 0 or cfg.step_size <= 0:
        print("ERROR: --total-time and --step-size must be positive", file=sys.stderr)
        return 2

    model = build_model(args.model, cfg)
    sim = ProxelSimulator(model, cfg)
    result = sim.run()

    if args.json:
        payload = result.to_dict()
        payload["config"] = cfg.to_dict()
        print(json.dumps(payload, indent=2))
    else:
        print(format_report(result, model, tree=args.tree))
    return 0


if __name__ == "__main__":
    sys.exit(main())
