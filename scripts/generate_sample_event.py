"""Generate a sample event definition with made-up contestants and scores.

Builds a two-round pageant: a preliminary round scored on three weighted
criteria, then a final for the top contestants whose score carries the
preliminary total as a derived criterion. Names come from faker with a fixed
seed so the output is reproducible.

Usage:
    python scripts/generate_sample_event.py
    python scripts/generate_sample_event.py -o event.json --contestants 12 --finalists 5
"""

import argparse
import json
import random
from pathlib import Path

from faker import Faker

from tally.loader import build_definition, replay
from tally.overall import winners

SEED = 20261019
DEFAULT_OUTPUT = Path("sample-event.json")

PRELIM_CRITERIA = [
    {"id": "poise", "name": "Beauty & Poise", "weight": 40, "min": 70, "max": 100},
    {"id": "talent", "name": "Talent", "weight": 35, "min": 70, "max": 100},
    {"id": "intelligence", "name": "Intelligence", "weight": 25, "min": 70, "max": 100},
]

FINAL_CRITERIA = [
    {"id": "qa", "name": "Final Q&A", "weight": 100, "min": 70, "max": 100},
    {"id": "prelim-carry", "name": "Preliminary Total", "derived_from": "prelim"},
]


def generate_people(count: int, fake: Faker) -> list[str]:
    """Generate `count` distinct fake full names."""
    names: list[str] = []
    while len(names) < count:
        name = fake.name()
        if name not in names:
            names.append(name)
    return names


def score_round(round_id, judges, contestants, criteria, rng) -> list[dict]:
    """Random submissions from every judge for every contestant."""
    scores = []
    for judge in judges:
        for contestant in contestants:
            values = [
                {"criterionId": c["id"], "value": rng.randint(c["min"], c["max"])}
                for c in criteria if "derived_from" not in c
            ]
            scores.append({
                "roundId": round_id,
                "judgeId": judge,
                "contestantId": contestant,
                "values": values,
            })
    return scores


def build_event(num_contestants: int, num_judges: int, num_finalists: int, seed: int) -> dict:
    fake = Faker(["en_US", "en_GB"])
    Faker.seed(seed)
    rng = random.Random(seed)

    names = generate_people(num_contestants, fake)
    contestants = [
        {"id": f"C{i + 1:03d}", "name": name, "organization": fake.city()}
        for i, name in enumerate(names)
    ]
    judges = [f"J{i + 1}" for i in range(num_judges)]
    contestant_ids = [c["id"] for c in contestants]

    data = {
        "id": "sample-pageant",
        "name": f"{fake.city()} Pageant {seed // 10000}",
        "type": "criteria",
        "judges": judges,
        "contestants": contestants,
        "rounds": [
            {"id": "prelim", "name": "Preliminary", "order": 1, "status": "finished",
             "active": contestant_ids, "criteria": PRELIM_CRITERIA},
            {"id": "final", "name": "Final", "order": 2, "status": "pending",
             "criteria": FINAL_CRITERIA},
        ],
        "scores": score_round("prelim", judges, contestant_ids, PRELIM_CRITERIA, rng),
    }

    # Finalists are the preliminary round's top contestants
    engine = replay(build_definition(data))
    prelim = [e for e in engine.round_entries("prelim") if e.is_round_total]
    finalists = [e.contestant_id for e in winners(prelim, num_finalists, engine.event)]

    data["rounds"][1]["status"] = "finished"
    data["rounds"][1]["active"] = finalists
    data["scores"] += score_round("final", judges, finalists, FINAL_CRITERIA, rng)
    return data


def main():
    parser = argparse.ArgumentParser(
        description="Generate a sample event definition")
    parser.add_argument("-o", "--output", default=str(DEFAULT_OUTPUT),
                        help=f"Output path (default: {DEFAULT_OUTPUT})")
    parser.add_argument("--contestants", type=int, default=10)
    parser.add_argument("--judges", type=int, default=5)
    parser.add_argument("--finalists", type=int, default=5)
    parser.add_argument("--seed", type=int, default=SEED)
    args = parser.parse_args()

    data = build_event(args.contestants, args.judges, args.finalists, args.seed)

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    print(f"Written {len(data['contestants'])} contestants, "
          f"{len(data['scores'])} submissions to {output_path}")


if __name__ == "__main__":
    main()
