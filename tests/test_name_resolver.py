from homecuistot.models import Ingredient, UnrecognizedItem
from homecuistot.services.name_resolver import resolve_names


def _fallback(db_session, raw_text, owner_id):
    item = UnrecognizedItem(owner_id=owner_id, raw_text=raw_text, context="ingredient")
    db_session.add(item)
    db_session.commit()
    return item.id


def test_partitions_catalog_and_unknown_names(scope, catalog):
    result = resolve_names(scope, ["Egg", "milk", "dragon fruit", "yuzu kosho"])

    assert {m.name for m in result.matched_catalog} == {"egg", "milk"}
    assert {m.id for m in result.matched_catalog} == {catalog["egg"], catalog["milk"]}
    assert result.matched_fallback == []
    assert result.still_unmatched == ["dragon fruit", "yuzu kosho"]


def test_case_and_whitespace_insensitive(scope, catalog):
    a = resolve_names(scope, ["Tomato"])
    b = resolve_names(scope, ["tomato "])
    assert a == b
    assert a.matched_catalog[0].id == catalog["tomato"]


def test_duplicates_collapse(scope, catalog):
    result = resolve_names(scope, ["egg", "EGG", " egg", "kimchi", "Kimchi"])
    assert len(result.matched_catalog) == 1
    assert result.still_unmatched == ["kimchi"]


def test_blank_names_are_ignored(scope, catalog):
    result = resolve_names(scope, ["", "   "])
    assert result.matched_catalog == []
    assert result.still_unmatched == []


def test_fallback_registry_is_consulted_for_the_owner_only(db_session, scope, other_scope, catalog):
    mine = _fallback(db_session, "kimchi", scope.owner_id)
    _fallback(db_session, "gochujang", other_scope.owner_id)

    result = resolve_names(scope, ["Kimchi", "gochujang"])

    assert [(m.id, m.raw_text) for m in result.matched_fallback] == [(mine, "kimchi")]
    assert result.still_unmatched == ["gochujang"]


def test_catalog_wins_over_fallback(db_session, scope, catalog):
    _fallback(db_session, "egg", scope.owner_id)
    result = resolve_names(scope, ["egg"])
    assert [m.id for m in result.matched_catalog] == [catalog["egg"]]
    assert result.matched_fallback == []


def test_refs_by_name_and_unrecognized(db_session, scope, catalog):
    fid = _fallback(db_session, "kimchi", scope.owner_id)
    result = resolve_names(scope, ["egg", "kimchi", "natto"])

    refs = result.refs_by_name()
    assert refs["egg"].ingredient_id == catalog["egg"]
    assert refs["kimchi"].unrecognized_item_id == fid
    assert "natto" not in refs
    assert result.unrecognized == ["kimchi", "natto"]


def test_non_ascii_names_fold_case(db_session, scope):
    db_session.add(Ingredient(name="Échalote", category="vegetables"))
    db_session.commit()
    fid = _fallback(db_session, "crème fraîche", scope.owner_id)

    result = resolve_names(scope, ["ÉCHALOTE", "CRÈME FRAÎCHE"])

    assert [m.name for m in result.matched_catalog] == ["Échalote"]
    assert [m.id for m in result.matched_fallback] == [fid]
    assert result.still_unmatched == []
