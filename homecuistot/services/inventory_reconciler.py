"""Inventory writes.

Two ways to touch a stock level:

- ``ensure_present``: make sure a row exists at *at least* a floor quantity.
  Inserts missing rows, raises lower ones, never lowers. Used when recipes
  link ingredients and when a user bulk-adds names.
- ``apply_explicit_update``: set the exact quantity the user asked for, lower
  or higher. Used by direct edits and confirmed proposals.

Both are idempotent. Quantities are validated before any statement runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from homecuistot.db import OwnerScope, dialect_insert
from homecuistot.errors import NotFoundError, ValidationError
from homecuistot.models import (
    Ingredient,
    InventoryItem,
    QUANTITY_MAX,
    QUANTITY_MIN,
    UnrecognizedItem,
    generate_uuid,
)
from homecuistot.refs import IngredientRef
from homecuistot.services.name_resolver import resolve_names
from homecuistot.services import unrecognized_registry

logger = logging.getLogger("homecuistot.inventory")


def validate_quantity(quantity_level) -> int:
    if isinstance(quantity_level, bool) or not isinstance(quantity_level, int):
        raise ValidationError(f"Quantity level must be an integer, got {quantity_level!r}")
    if not QUANTITY_MIN <= quantity_level <= QUANTITY_MAX:
        raise ValidationError(
            f"Quantity level {quantity_level} outside {QUANTITY_MIN}..{QUANTITY_MAX}"
        )
    return quantity_level


@dataclass(frozen=True)
class EnsureRef:
    ref: IngredientRef
    floor_quantity: int


@dataclass
class EnsureResult:
    created: int = 0
    raised: int = 0
    unchanged: int = 0


@dataclass(frozen=True)
class SnapshotEntry:
    quantity: int
    is_pantry_staple: bool


@dataclass
class NamesEnsured:
    result: EnsureResult
    refs_by_name: dict[str, IngredientRef] = field(default_factory=dict)
    unrecognized: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ExplicitUpdate:
    ref: IngredientRef
    quantity_level: int
    is_pantry_staple: Optional[bool] = None


def _load_rows(scope: OwnerScope, refs: Iterable[IngredientRef]) -> dict[IngredientRef, InventoryItem]:
    """Existing rows for the given refs, one query per ref kind."""
    refs = list(refs)
    catalog_ids = {r.ingredient_id for r in refs if r.is_catalog}
    fallback_ids = {r.unrecognized_item_id for r in refs if not r.is_catalog}
    rows: dict[IngredientRef, InventoryItem] = {}
    if catalog_ids:
        for row in scope.db.scalars(
            scope.select(InventoryItem, InventoryItem.ingredient_id.in_(catalog_ids))
        ):
            rows[IngredientRef.of(row)] = row
    if fallback_ids:
        for row in scope.db.scalars(
            scope.select(InventoryItem, InventoryItem.unrecognized_item_id.in_(fallback_ids))
        ):
            rows[IngredientRef.of(row)] = row
    return rows


def known_refs(scope: OwnerScope, refs: Iterable[IngredientRef]) -> set[IngredientRef]:
    """The refs that point at a catalog ingredient or at one of the owner's
    unrecognized items."""
    refs = list(refs)
    catalog_ids = {r.ingredient_id for r in refs if r.is_catalog}
    fallback_ids = {r.unrecognized_item_id for r in refs if not r.is_catalog}
    known: set[IngredientRef] = set()
    if catalog_ids:
        for ingredient_id in scope.db.scalars(
            select(Ingredient.id).where(Ingredient.id.in_(catalog_ids))
        ):
            known.add(IngredientRef.catalog(ingredient_id))
    if fallback_ids:
        for row in scope.db.scalars(
            scope.select(UnrecognizedItem, UnrecognizedItem.id.in_(fallback_ids))
        ):
            known.add(IngredientRef.fallback(row.id))
    return known


def require_known_refs(scope: OwnerScope, refs: Iterable[IngredientRef]) -> None:
    refs = list(refs)
    known = known_refs(scope, refs)
    for ref in refs:
        if ref not in known:
            target = ref.ingredient_id or ref.unrecognized_item_id
            raise NotFoundError(f"Ingredient {target} not found")


def _insert_if_absent(scope: OwnerScope, ref: IngredientRef, quantity_level: int) -> bool:
    """ON CONFLICT DO NOTHING insert; False when another writer got there first."""
    conflict_cols = ["owner_id", "ingredient_id" if ref.is_catalog else "unrecognized_item_id"]
    stmt = dialect_insert(scope.db, InventoryItem).values(
        id=generate_uuid(),
        owner_id=scope.owner_id,
        quantity_level=quantity_level,
        is_pantry_staple=False,
        **ref.columns(),
    ).on_conflict_do_nothing(index_elements=conflict_cols)
    return scope.db.execute(stmt).rowcount > 0


def ensure_present(scope: OwnerScope, refs: Iterable[EnsureRef]) -> EnsureResult:
    requested: dict[IngredientRef, int] = {}
    for item in refs:
        floor = validate_quantity(item.floor_quantity)
        requested[item.ref] = max(floor, requested.get(item.ref, floor))

    result = EnsureResult()
    if not requested:
        return result

    existing = _load_rows(scope, requested)
    for ref, floor in requested.items():
        row = existing.get(ref)
        if row is None:
            if _insert_if_absent(scope, ref, floor):
                result.created += 1
                continue
            # Lost an insert race: the row exists now, apply the floor to it.
            row = _load_rows(scope, [ref]).get(ref)
            if row is None:
                raise RuntimeError(f"Inventory row for {ref} vanished after conflict")
        if row.quantity_level < floor:
            row.quantity_level = floor
            result.raised += 1
        else:
            result.unchanged += 1

    scope.db.flush()
    logger.info(
        "ensure_present owner=%s created=%d raised=%d unchanged=%d",
        scope.owner_id,
        result.created,
        result.raised,
        result.unchanged,
    )
    return result


def _write_explicit(
    scope: OwnerScope,
    ref: IngredientRef,
    quantity_level: int,
    is_pantry_staple: Optional[bool],
) -> InventoryItem:
    row = _load_rows(scope, [ref]).get(ref)
    if row is None:
        row = InventoryItem(
            quantity_level=quantity_level,
            is_pantry_staple=bool(is_pantry_staple),
            **ref.columns(),
        )
        scope.add(row)
    else:
        row.quantity_level = quantity_level
        if is_pantry_staple is not None:
            row.is_pantry_staple = is_pantry_staple
    scope.db.flush()
    return row


def apply_explicit_update(
    scope: OwnerScope,
    ref: IngredientRef,
    quantity_level: int,
    is_pantry_staple: Optional[bool] = None,
) -> InventoryItem:
    """Set an exact quantity. Unknown or foreign refs raise NotFoundError."""
    validate_quantity(quantity_level)
    require_known_refs(scope, [ref])
    return _write_explicit(scope, ref, quantity_level, is_pantry_staple)


def apply_batch(scope: OwnerScope, updates: list[ExplicitUpdate]) -> list[InventoryItem]:
    """Explicit updates for many rows; every row gets its own quantity.

    Every quantity and every ref is checked before the first write.
    """
    for u in updates:
        validate_quantity(u.quantity_level)
    require_known_refs(scope, [u.ref for u in updates])
    return [
        _write_explicit(scope, u.ref, u.quantity_level, u.is_pantry_staple)
        for u in updates
    ]


def ensure_names_present(
    scope: OwnerScope,
    names: Iterable[str],
    quantity_level: int,
    is_pantry_staple: bool = False,
) -> NamesEnsured:
    """Resolve names, register unknown ones, then ensure a row for each."""
    validate_quantity(quantity_level)
    resolution = resolve_names(scope, names)
    registered = unrecognized_registry.ensure_entries(scope, resolution.still_unmatched)

    refs_by_name = resolution.refs_by_name()
    for entry in registered:
        refs_by_name[entry.raw_text] = IngredientRef.fallback(entry.id)

    result = ensure_present(
        scope, [EnsureRef(ref, quantity_level) for ref in refs_by_name.values()]
    )
    if is_pantry_staple and refs_by_name:
        for row in _load_rows(scope, refs_by_name.values()).values():
            row.is_pantry_staple = True
        scope.db.flush()

    return NamesEnsured(
        result=result,
        refs_by_name=refs_by_name,
        unrecognized=resolution.unrecognized,
    )


def load_snapshot(scope: OwnerScope) -> dict[IngredientRef, SnapshotEntry]:
    return {
        IngredientRef.of(row): SnapshotEntry(row.quantity_level, row.is_pantry_staple)
        for row in scope.db.scalars(scope.select(InventoryItem))
    }


def list_inventory(scope: OwnerScope) -> list[InventoryItem]:
    """Recognized items first, then unrecognized, each by name."""
    rows = scope.db.scalars(
        scope.select(InventoryItem).options(
            selectinload(InventoryItem.ingredient),
            selectinload(InventoryItem.unrecognized_item),
        )
    ).all()
    return sorted(rows, key=lambda r: (r.ingredient_id is None, r.name))


def _get_item(scope: OwnerScope, item_id: str) -> InventoryItem:
    item = scope.get(InventoryItem, item_id)
    if item is None:
        raise NotFoundError("Inventory item not found")
    return item


def toggle_staple(scope: OwnerScope, item_id: str) -> InventoryItem:
    item = _get_item(scope, item_id)
    item.is_pantry_staple = not item.is_pantry_staple
    scope.db.flush()
    return item


def delete_item(scope: OwnerScope, item_id: str) -> None:
    """Explicit user deletion. The unrecognized entry, if any, is kept."""
    item = _get_item(scope, item_id)
    scope.db.delete(item)
    scope.db.flush()
