"""Score a JSON dataset of {kind, output, expected} cases.

Usage: python scripts/score_dataset.py cases.json

kind is one of "inventory", "recipe" or "ingredients". Prints the mean of each
score per kind.
"""
import sys
import os
import json
from collections import defaultdict

# Add repo root to sys.path
sys.path.append(os.path.join(os.path.dirname(__file__), "../"))

from homecuistot.evaluation.agreement import (
    score_ingredient_extraction,
    score_inventory_proposal,
    score_recipe_proposal,
)

SCORERS = {
    "inventory": score_inventory_proposal,
    "recipe": score_recipe_proposal,
    "ingredients": score_ingredient_extraction,
}


def score_cases(cases: list[dict]) -> dict[str, dict[str, float]]:
    totals: dict[str, dict[str, list[float]]] = defaultdict(lambda: defaultdict(list))
    for case in cases:
        kind = case.get("kind")
        scorer = SCORERS.get(kind)
        if scorer is None:
            print(f"Skipping case with unknown kind: {kind!r}")
            continue
        for score in scorer(case.get("output"), case.get("expected")):
            totals[kind][score.name].append(score.value)

    return {
        kind: {name: sum(values) / len(values) for name, values in scores.items()}
        for kind, scores in totals.items()
    }


def main(path: str):
    with open(path) as f:
        cases = json.load(f)
    print(f"Scoring {len(cases)} cases from {path}...")
    for kind, means in score_cases(cases).items():
        print(f"\n[{kind}]")
        for name, value in means.items():
            print(f"  {name:<28} {value:.3f}")


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(2)
    main(sys.argv[1])
