"""Agreement scores between system output and gold data.

Offline only: the evaluation harness (``scripts/score_dataset.py``) uses these
to grade extractions and proposals. Nothing here touches storage.

Edge cases for ``prf`` are fixed and must not drift, since scores are compared
across runs:

    output  expected   precision recall f1
    empty   empty      1         1      1
    empty   non-empty  1         0      0
    some    empty      0         1      0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError
from rapidfuzz.distance import Levenshtein

from homecuistot.schemas import (
    CreateRecipeResult,
    CreateRecipesBatchResult,
    InventoryProposal,
    RecipeProposal,
)

logger = logging.getLogger("homecuistot.evaluation")

TITLE_SIMILARITY_THRESHOLD = 0.70


@dataclass(frozen=True)
class PRF:
    precision: float
    recall: float
    f1: float


@dataclass(frozen=True)
class TitleScores:
    precision: float
    recall: float
    f1: float
    avg_similarity: float
    matched_count: int


@dataclass(frozen=True)
class Score:
    name: str
    value: float
    reason: str


def _f1(precision: float, recall: float) -> float:
    if precision + recall > 0:
        return 2 * precision * recall / (precision + recall)
    return 0.0


def prf(output: Iterable[str], expected: Iterable[str]) -> PRF:
    out, exp = set(output), set(expected)
    if not out and not exp:
        return PRF(1.0, 1.0, 1.0)
    if not out:
        return PRF(1.0, 0.0, 0.0)
    if not exp:
        return PRF(0.0, 1.0, 0.0)
    correct = len(out & exp)
    precision = correct / len(out)
    recall = correct / len(exp)
    return PRF(precision, recall, _f1(precision, recall))


def levenshtein_ratio(a: str, b: str) -> float:
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return 1 - Levenshtein.distance(a, b) / max(len(a), len(b))


def title_scores(output_titles: Sequence[str], expected_titles: Sequence[str]) -> TitleScores:
    """Greedy fuzzy matching of titles.

    Output titles are taken in order; each grabs the best still-unused
    expected title and keeps it only at or above the threshold. Not globally
    optimal; scores must stay comparable with earlier runs.
    """
    if not output_titles and not expected_titles:
        return TitleScores(1.0, 1.0, 1.0, 1.0, 0)
    if not output_titles:
        return TitleScores(1.0, 0.0, 0.0, 0.0, 0)
    if not expected_titles:
        return TitleScores(0.0, 1.0, 0.0, 0.0, 0)

    used: set[int] = set()
    matched = 0
    total = 0.0
    for title in output_titles:
        best_ratio, best_idx = 0.0, -1
        for idx, candidate in enumerate(expected_titles):
            if idx in used:
                continue
            ratio = levenshtein_ratio(title, candidate)
            if ratio > best_ratio:
                best_ratio, best_idx = ratio, idx
        if best_idx >= 0 and best_ratio >= TITLE_SIMILARITY_THRESHOLD:
            used.add(best_idx)
            matched += 1
            total += best_ratio

    precision = matched / len(output_titles)
    recall = matched / len(expected_titles)
    return TitleScores(
        precision,
        recall,
        _f1(precision, recall),
        total / matched if matched else 0.0,
        matched,
    )


def _subset_prf(matched: int, correct: int, expected: int) -> PRF:
    """Scores for a property checked only on already-matched items."""
    if matched == 0 and expected == 0:
        return PRF(1.0, 1.0, 1.0)
    if matched == 0:
        return PRF(1.0, 0.0, 0.0)
    precision = correct / matched
    recall = correct / expected if expected else 0.0
    return PRF(precision, recall, _f1(precision, recall))


def _pct(value: float) -> str:
    return f"{value * 100:.1f}%"


def _zeros(names: Sequence[str], exc: Exception) -> list[Score]:
    reason = f"Error: {exc}"
    logger.warning("Scoring failed: %s", exc)
    return [Score(name, 0.0, reason) for name in names]


def _prf_scores(prefix: str, label: str, m: PRF) -> list[Score]:
    return [
        Score(f"{prefix}_precision", m.precision, f"{label} precision: {_pct(m.precision)}"),
        Score(f"{prefix}_recall", m.recall, f"{label} recall: {_pct(m.recall)}"),
        Score(f"{prefix}_f1", m.f1, f"{label} F1: {_pct(m.f1)} (harmonic mean)"),
    ]


# --- Inventory proposals ---

INVENTORY_SCORE_NAMES = (
    "ingredient_precision",
    "ingredient_recall",
    "ingredient_f1",
    "quantity_precision",
    "quantity_recall",
    "quantity_f1",
    "staple_precision",
    "staple_recall",
    "staple_f1",
    "overall_f1",
    "unrecognized_count_match",
)


def score_inventory_proposal(output, expected) -> list[Score]:
    try:
        out = InventoryProposal.model_validate(output)
        exp = InventoryProposal.model_validate(expected)
    except PydanticValidationError as exc:
        return _zeros(INVENTORY_SCORE_NAMES, exc)

    out_items = {item.name.lower(): item for item in out.recognized}
    exp_items = {item.name.lower(): item for item in exp.recognized}
    ingredients = prf(out_items, exp_items)

    both = [name for name in out_items if name in exp_items]
    quantity_ok = sum(
        out_items[n].proposed_quantity == exp_items[n].proposed_quantity for n in both
    )
    staple_ok = sum(
        out_items[n].proposed_pantry_staple == exp_items[n].proposed_pantry_staple for n in both
    )
    quantity = _subset_prf(len(both), quantity_ok, len(exp_items))
    staple = _subset_prf(len(both), staple_ok, len(exp_items))
    overall = (ingredients.f1 + quantity.f1 + staple.f1) / 3
    count_match = 1.0 if len(out.unrecognized) == len(exp.unrecognized) else 0.0

    return [
        *_prf_scores("ingredient", "Ingredient", ingredients),
        *_prf_scores("quantity", "Quantity", quantity),
        *_prf_scores("staple", "Staple", staple),
        Score("overall_f1", overall, f"Overall F1: {_pct(overall)} (avg of ingredient, quantity, staple F1)"),
        Score(
            "unrecognized_count_match",
            count_match,
            f"Unrecognized count: {len(out.unrecognized)} vs {len(exp.unrecognized)}",
        ),
    ]


# --- Recipe proposals ---

RECIPE_SCORE_NAMES = (
    "operation_precision",
    "operation_recall",
    "operation_f1",
    "title_precision",
    "title_recall",
    "title_f1",
    "title_similarity",
    "overall_f1",
    "no_changes_match",
)


def created_titles(proposal: RecipeProposal) -> list[str]:
    titles = []
    for result in proposal.recipes:
        if isinstance(result, CreateRecipesBatchResult):
            titles.extend(r.title.lower() for r in result.results if r.title)
        elif isinstance(result, CreateRecipeResult) and result.title:
            titles.append(result.title.lower())
    return titles


def score_recipe_proposal(output, expected) -> list[Score]:
    try:
        out = RecipeProposal.model_validate(output)
        exp = RecipeProposal.model_validate(expected)
    except PydanticValidationError as exc:
        return _zeros(RECIPE_SCORE_NAMES, exc)

    operations = prf([r.operation for r in out.recipes], [r.operation for r in exp.recipes])
    out_titles, exp_titles = created_titles(out), created_titles(exp)
    titles = title_scores(out_titles, exp_titles)
    overall = (operations.f1 + titles.f1) / 2
    no_changes = 1.0 if out.no_changes_detected == exp.no_changes_detected else 0.0

    return [
        *_prf_scores("operation", "Operation", operations),
        Score(
            "title_precision",
            titles.precision,
            f"Title precision: {_pct(titles.precision)} ({titles.matched_count} matched / {len(out_titles)} output)",
        ),
        Score(
            "title_recall",
            titles.recall,
            f"Title recall: {_pct(titles.recall)} ({titles.matched_count} matched / {len(exp_titles)} expected)",
        ),
        Score("title_f1", titles.f1, f"Title F1: {_pct(titles.f1)}"),
        Score(
            "title_similarity",
            titles.avg_similarity,
            f"Title similarity: {_pct(titles.avg_similarity)} (avg ratio of matched titles)",
        ),
        Score("overall_f1", overall, f"Overall F1: {_pct(overall)} (avg of operation and title F1)"),
        Score(
            "no_changes_match",
            no_changes,
            f"no_changes_detected: {out.no_changes_detected} vs {exp.no_changes_detected}",
        ),
    ]


# --- Ingredient extraction (add / rm lists) ---

class IngredientExtraction(BaseModel):
    add: list[str] = Field(default_factory=list)
    rm: list[str] = Field(default_factory=list)


INGREDIENT_SET_SCORE_NAMES = (
    "add_precision",
    "add_recall",
    "add_f1",
    "rm_precision",
    "rm_recall",
    "rm_f1",
    "overall_f1",
)


def score_ingredient_extraction(output, expected) -> list[Score]:
    try:
        out = IngredientExtraction.model_validate(output)
        exp = IngredientExtraction.model_validate(expected)
    except PydanticValidationError as exc:
        return _zeros(INGREDIENT_SET_SCORE_NAMES, exc)

    add = prf(out.add, exp.add)
    rm = prf(out.rm, exp.rm)
    overall = (add.f1 + rm.f1) / 2
    return [
        *_prf_scores("add", "Add", add),
        *_prf_scores("rm", "Remove", rm),
        Score("overall_f1", overall, f"Overall F1: {_pct(overall)} (avg of add and rm F1)"),
    ]
