"""Previous -> proposed inventory deltas shown to the user before confirming."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from homecuistot.core.text import normalize_name
from homecuistot.db import OwnerScope
from homecuistot.refs import IngredientRef
from homecuistot.schemas import (
    Confidence,
    InventoryExtraction,
    InventoryProposal,
    ProposedInventoryItem,
)
from homecuistot.services.inventory_reconciler import (
    SnapshotEntry,
    load_snapshot,
    validate_quantity,
)
from homecuistot.services.name_resolver import resolve_names


@dataclass(frozen=True)
class ResolvedUpdate:
    ref: IngredientRef
    name: str
    proposed_quantity: int
    proposed_staple: Optional[bool] = None
    confidence: Optional[Confidence] = None


def build_diff(
    previous_snapshot: Mapping[IngredientRef, SnapshotEntry],
    resolved: Sequence[ResolvedUpdate],
    unrecognized: Sequence[str] = (),
) -> InventoryProposal:
    """Pure: pair each resolved update with what the user has now.

    ``previous_quantity`` is None for an item not yet in inventory. A staple
    transition is flagged whenever the proposed staple flag differs from the
    current one; the previous value shown stays the quantity being superseded.
    """
    recognized = []
    for update in resolved:
        previous = previous_snapshot.get(update.ref)
        previous_staple = previous.is_pantry_staple if previous else False
        recognized.append(
            ProposedInventoryItem(
                ingredient_id=update.ref.ingredient_id,
                unrecognized_item_id=update.ref.unrecognized_item_id,
                name=update.name,
                previous_quantity=previous.quantity if previous else None,
                proposed_quantity=update.proposed_quantity,
                previous_pantry_staple=previous_staple,
                proposed_pantry_staple=update.proposed_staple,
                staple_transition=(
                    update.proposed_staple is not None
                    and update.proposed_staple != previous_staple
                ),
                confidence=update.confidence,
            )
        )
    return InventoryProposal(recognized=recognized, unrecognized=list(unrecognized))


def propose_inventory_update(scope: OwnerScope, extraction: InventoryExtraction) -> InventoryProposal:
    """Resolve an extraction against the catalog and diff it with current stock.

    Only catalog matches are proposed as recognized updates. Names known only
    to the owner's unrecognized registry are reported with the unmatched ones.
    When the extraction mentions a name twice, the last mention wins.
    """
    latest = {}
    for item in extraction.updates:
        validate_quantity(item.quantity_level)
        key = normalize_name(item.name)
        if key:
            latest.pop(key, None)
            latest[key] = item

    resolution = resolve_names(scope, latest.keys())
    snapshot = load_snapshot(scope)

    resolved = [
        ResolvedUpdate(
            ref=IngredientRef.catalog(match.id),
            name=match.name,
            proposed_quantity=latest[match.name.lower()].quantity_level,
            proposed_staple=latest[match.name.lower()].staple,
            confidence=latest[match.name.lower()].confidence,
        )
        for match in resolution.matched_catalog
    ]
    return build_diff(snapshot, resolved, resolution.unrecognized)
