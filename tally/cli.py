"""Command-line entry point: tally an event definition and print JSON results.

Usage:
    tally examples/sample-event.json
    tally https://example.com/event.json --round final --winners 3
    tally event.json --view final --provisional
"""

import argparse
import json
import logging
import sys
from decimal import Decimal

from tally.config import get_settings
from tally.errors import LoaderError, TallyError
from tally.loader import load_definition, replay
from tally.overall import round_winners, winners

logger = logging.getLogger(__name__)


def _json_default(value):
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tally",
        description="Compute round tallies and overall rankings for an event definition.",
    )
    parser.add_argument("source", help="Path or http(s) URL of the event definition JSON")
    parser.add_argument("--round", dest="round_id", help="Only print this round's entries")
    parser.add_argument("--view", dest="view_id", help="Print the judge matrix view of this round")
    parser.add_argument("--winners", type=int, metavar="N", help="Print the top N contestants")
    parser.add_argument(
        "--provisional", action="store_true",
        help="Count ongoing rounds in the overall ranking",
    )
    return parser


def run(args: argparse.Namespace) -> dict:
    settings = get_settings()
    definition = load_definition(args.source, settings)
    engine = replay(definition, settings)

    if args.view_id:
        return engine.round_view(args.view_id).to_dict()

    rounds = engine.graph.rounds_in_order()
    if args.round_id:
        rounds = [engine.get_round(args.round_id)]

    result = {"event": engine.event.name, "rounds": []}
    for rnd in rounds:
        entries = engine.round_entries(rnd.id)
        totals = [e for e in entries if e.is_round_total]
        result["rounds"].append({
            "round_id": rnd.id,
            "name": rnd.name,
            "status": rnd.status.value,
            "regime": rnd.regime.name,
            "fully_scored": engine.is_fully_scored(rnd.id),
            "entries": [e.to_dict() for e in entries],
            "winners": [e.contestant_id for e in round_winners(totals)],
        })

    if not args.round_id:
        overall = engine.overall(include_provisional=args.provisional)
        result["overall"] = [e.to_dict() for e in overall]
        count = args.winners or settings.winners_count
        result["winners"] = [e.to_dict() for e in winners(overall, count, engine.event)]
    return result


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        result = run(args)
    except LoaderError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (TallyError, KeyError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    print(json.dumps(result, indent=2, default=_json_default))
    return 0


if __name__ == "__main__":
    sys.exit(main())
