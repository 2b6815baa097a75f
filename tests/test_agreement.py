import pytest

from homecuistot.evaluation.agreement import (
    INVENTORY_SCORE_NAMES,
    RECIPE_SCORE_NAMES,
    PRF,
    levenshtein_ratio,
    prf,
    score_ingredient_extraction,
    score_inventory_proposal,
    score_recipe_proposal,
    title_scores,
)


def _by_name(scores):
    return {s.name: s.value for s in scores}


@pytest.mark.parametrize(
    "output, expected, result",
    [
        ([], [], PRF(1.0, 1.0, 1.0)),
        ([], ["a"], PRF(1.0, 0.0, 0.0)),
        (["a"], [], PRF(0.0, 1.0, 0.0)),
        (["a", "b"], ["a", "b"], PRF(1.0, 1.0, 1.0)),
        (["a", "c"], ["b", "d"], PRF(0.0, 0.0, 0.0)),
    ],
)
def test_prf_edge_cases(output, expected, result):
    assert prf(output, expected) == result


def test_prf_partial_overlap_counts_sets():
    m = prf(["a", "b", "b"], ["a", "c", "d", "e"])
    assert m.precision == pytest.approx(0.5)
    assert m.recall == pytest.approx(0.25)
    assert m.f1 == pytest.approx(1 / 3)


def test_levenshtein_ratio():
    assert levenshtein_ratio("abc", "abc") == 1.0
    assert levenshtein_ratio("", "abc") == 0.0
    assert levenshtein_ratio("pasta carbonara", "pasta carbonara!") == pytest.approx(0.9375)


def test_title_near_match():
    t = title_scores(["pasta carbonara"], ["pasta carbonara!"])
    assert t.matched_count == 1
    assert (t.precision, t.recall, t.f1) == (1.0, 1.0, 1.0)
    assert t.avg_similarity == pytest.approx(0.9375)


def test_title_below_threshold_is_unmatched():
    t = title_scores(["tacos"], ["carbonara"])
    assert t.matched_count == 0
    assert (t.precision, t.recall, t.f1, t.avg_similarity) == (0.0, 0.0, 0.0, 0.0)


def test_title_expected_used_once():
    t = title_scores(["omelette", "omelette"], ["omelette"])
    assert t.matched_count == 1
    assert t.precision == 0.5
    assert t.recall == 1.0


def test_title_empty_cases():
    assert title_scores([], []).avg_similarity == 1.0
    assert title_scores([], ["a"]).recall == 0.0
    assert title_scores(["a"], []).precision == 0.0


def _item(name, quantity, staple=None):
    return {"name": name, "proposed_quantity": quantity, "proposed_pantry_staple": staple}


def test_inventory_scores():
    output = {"recognized": [_item("Egg", 2), _item("milk", 1, True)], "unrecognized": ["x"]}
    expected = {"recognized": [_item("egg", 3), _item("milk", 1, True), _item("salt", 3)], "unrecognized": ["y"]}

    scores = _by_name(score_inventory_proposal(output, expected))

    assert list(scores) == list(INVENTORY_SCORE_NAMES)
    assert scores["ingredient_precision"] == 1.0
    assert scores["ingredient_recall"] == pytest.approx(2 / 3)
    assert scores["quantity_precision"] == 0.5
    assert scores["quantity_recall"] == pytest.approx(1 / 3)
    assert scores["staple_precision"] == 1.0
    assert scores["unrecognized_count_match"] == 1.0


def test_recipe_scores():
    output = {
        "recipes": [
            {"operation": "create_batch", "results": [{"title": "Pasta Carbonara"}, {"title": "Tacos"}]},
            {"operation": "delete", "recipe_id": "r1"},
        ]
    }
    expected = {
        "recipes": [
            {"operation": "create", "title": "Pasta Carbonara!"},
            {"operation": "delete", "recipe_id": "r1"},
        ]
    }

    scores = _by_name(score_recipe_proposal(output, expected))

    assert list(scores) == list(RECIPE_SCORE_NAMES)
    assert scores["operation_precision"] == 0.5
    assert scores["title_precision"] == 0.5
    assert scores["title_recall"] == 1.0
    assert scores["title_similarity"] == pytest.approx(0.9375)
    assert scores["no_changes_match"] == 1.0


def test_no_changes_on_both_sides_scores_perfectly():
    proposal = {"recipes": [], "no_changes_detected": True}
    scores = _by_name(score_recipe_proposal(proposal, proposal))
    assert all(v == 1.0 for v in scores.values())


def test_ingredient_extraction_scores():
    scores = _by_name(
        score_ingredient_extraction({"add": ["egg", "milk"], "rm": []}, {"add": ["egg"], "rm": []})
    )
    assert scores["add_precision"] == 0.5
    assert scores["add_recall"] == 1.0
    assert scores["rm_f1"] == 1.0


@pytest.mark.parametrize(
    "scorer, output",
    [
        (score_inventory_proposal, {"recognized": "nope"}),
        (score_recipe_proposal, {"recipes": [{"operation": "explode"}]}),
        (score_ingredient_extraction, {"add": 3}),
    ],
)
def test_malformed_output_scores_zero(scorer, output):
    scores = scorer(output, {})
    assert scores
    assert all(s.value == 0.0 for s in scores)
    assert all(s.reason.startswith("Error:") for s in scores)
