"""
Command-line runner.

    garden-layout samples/backyard.json --second-pass -v
    garden-layout samples/backyard.json --json > layout.json

Exit codes: 0 SUCCEEDED, 1 FAILED, 2 PARTIAL.
"""

import argparse
import json
import logging
import sys
from typing import Dict, List, Optional, Tuple

from garden_optimizer.engine import LayoutEngine
from garden_optimizer.models import Garden, OptimizationResult, OptimizationStatus, Plant
from garden_optimizer.report import unplaced_frame, zone_summary_frame
from garden_optimizer.settings import OptimizationParams

log = logging.getLogger(__name__)

EXIT_CODES = {
    OptimizationStatus.SUCCEEDED: 0,
    OptimizationStatus.FAILED: 1,
    OptimizationStatus.PARTIAL: 2,
}


def load_request(path: str) -> Tuple[Garden, List[Plant], OptimizationParams]:
    """Read a {"garden": ..., "plants": [...], "params": {...}} document."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    garden = Garden.from_dict(data["garden"])
    plants = [Plant.from_dict(p) for p in data.get("plants", [])]
    params = OptimizationParams.from_dict(data.get("params", {}))
    return garden, plants, params


def apply_overrides(params: OptimizationParams, args: argparse.Namespace) -> OptimizationParams:
    overrides: Dict = {}
    if args.target is not None:
        overrides["target_utilization"] = args.target
    if args.deadline_ms is not None:
        overrides["deadline_ms"] = args.deadline_ms
    if args.second_pass:
        overrides["allow_second_pass"] = True
    if args.workers is not None:
        overrides["max_workers"] = args.workers
    if not overrides:
        return params
    return OptimizationParams.from_dict({**params.to_dict(), **overrides})


def print_result(result: OptimizationResult, engine: LayoutEngine) -> None:
    print(f"Status: {result.status.upper()}")
    if result.error is not None:
        print(f"Error: {result.error}")
    if result.layout is None:
        return

    print(f"Space utilization: {result.layout.space_utilization:.1f}%")
    print(f"Passes: {result.passes}   Time: {result.elapsed_ms:.0f}ms")
    print()
    print(zone_summary_frame(result.layout).to_string(index=False))

    if result.unplaced:
        print("\nUnplaced plants:")
        print(unplaced_frame(list(result.unplaced)).to_string(index=False))

    if result.score is not None:
        print()
        print(engine.scorer.explain(result.score))
        suggestions = engine.scorer.suggest_improvements(result.score, result.unplaced)
        if suggestions:
            print("\nSuggestions:")
            for s in suggestions:
                print(f"  [{s.priority}] {s.message}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Compute an optimized garden layout")
    parser.add_argument("input", help="JSON file with garden, plants and params")
    parser.add_argument("--target", type=float, help="Target space utilization in percent")
    parser.add_argument("--deadline-ms", type=float, help="Time budget in milliseconds")
    parser.add_argument("--second-pass", action="store_true", help="Allow one relaxed retry below target")
    parser.add_argument("--workers", type=int, help="Zone worker pool size")
    parser.add_argument("--json", action="store_true", help="Print the full result as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s │ %(name)-28s │ %(levelname)-8s │ %(message)s',
        datefmt='%H:%M:%S',
    )

    try:
        garden, plants, params = load_request(args.input)
        params = apply_overrides(params, args)
    except (OSError, KeyError, ValueError) as e:
        log.error(f"Could not read {args.input}: {e}")
        return EXIT_CODES[OptimizationStatus.FAILED]

    engine = LayoutEngine()
    result = engine.compute_layout(garden, plants, params, use_cache=False)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print_result(result, engine)

    return EXIT_CODES[result.status]


if __name__ == "__main__":
    sys.exit(main())
