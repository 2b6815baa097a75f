from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from .. import schemas
from ..db import owner_transaction
from ..deps import get_db, get_owner_id
from ..errors import ValidationError
from ..infra.idempotency import run_idempotent
from ..refs import IngredientRef
from ..services import inventory_reconciler, unrecognized_registry
from ..services.name_resolver import resolve_names
from ..services.proposal_diff import propose_inventory_update
from ..settings import settings

router = APIRouter()


def _item_out(item) -> schemas.InventoryItemOut:
    return schemas.InventoryItemOut.model_validate(item)


def _ref(ingredient_id, unrecognized_item_id) -> IngredientRef:
    return IngredientRef(ingredient_id=ingredient_id, unrecognized_item_id=unrecognized_item_id)


@router.get("/", response_model=list[schemas.InventoryItemOut])
def list_inventory(
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """The owner's inventory, recognized items first."""
    with owner_transaction(db, owner_id) as scope:
        return [_item_out(i) for i in inventory_reconciler.list_inventory(scope)]


@router.post("/validate", response_model=schemas.ValidateIngredientsResponse)
def validate_ingredients(
    body: schemas.ValidateIngredientsRequest,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """Split names into catalog matches and everything else."""
    with owner_transaction(db, owner_id) as scope:
        resolution = resolve_names(scope, body.ingredient_names)
    return schemas.ValidateIngredientsResponse(
        matched=[schemas.MatchedIngredientOut(id=m.id, name=m.name) for m in resolution.matched_catalog],
        unrecognized=resolution.unrecognized,
    )


@router.post("/proposal", response_model=schemas.InventoryProposal)
def propose_update(
    extraction: schemas.InventoryExtraction,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """Diff an extraction against current stock. Nothing is written."""
    with owner_transaction(db, owner_id) as scope:
        return propose_inventory_update(scope, extraction)


def _apply_proposal(db: Session, owner_id: str, proposal: schemas.InventoryProposal) -> dict:
    for item in proposal.recognized:
        inventory_reconciler.validate_quantity(item.proposed_quantity)

    with owner_transaction(db, owner_id) as scope:
        refs = [_ref(i.ingredient_id, i.unrecognized_item_id) for i in proposal.recognized]

        known = inventory_reconciler.known_refs(scope, refs)

        updated, skipped = 0, []
        for item, ref in zip(proposal.recognized, refs):
            if ref not in known:
                skipped.append(item.name)
                continue
            inventory_reconciler.apply_explicit_update(
                scope, ref, item.proposed_quantity, item.proposed_pantry_staple
            )
            updated += 1

    return schemas.ApplyInventoryProposalResponse(
        updated_count=updated,
        skipped=skipped,
        unrecognized=list(proposal.unrecognized),
    ).model_dump()


@router.post("/apply-proposal", response_model=schemas.ApplyInventoryProposalResponse)
async def apply_proposal(
    request: Request,
    body: schemas.ApplyInventoryProposalRequest,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """Confirm a (possibly user-edited) proposal: exact quantities are written."""
    return await run_idempotent(
        request,
        owner_id=owner_id,
        route_key="inventory_apply",
        handler=lambda: _apply_proposal(db, owner_id, body.proposal),
    )


@router.post("/ensure", response_model=schemas.EnsureIngredientsResponse)
def ensure_ingredients(
    body: schemas.EnsureIngredientsRequest,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """Bulk "I have these": add missing names, never lower existing stock."""
    quantity = body.quantity_level if body.quantity_level is not None else settings.onboarding_quantity
    with owner_transaction(db, owner_id) as scope:
        ensured = inventory_reconciler.ensure_names_present(
            scope, body.names, quantity, is_pantry_staple=body.is_pantry_staple
        )
    return schemas.EnsureIngredientsResponse(
        created=ensured.result.created,
        raised=ensured.result.raised,
        unchanged=ensured.result.unchanged,
        unrecognized=ensured.unrecognized,
    )


@router.post("/batch", response_model=schemas.InventoryBatchResponse)
def batch_update(
    body: schemas.InventoryBatchRequest,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """Set several quantities at once; each row keeps its own quantity."""
    if not body.updates:
        raise ValidationError("No updates given")
    updates = [
        inventory_reconciler.ExplicitUpdate(
            ref=_ref(u.ingredient_id, u.unrecognized_item_id),
            quantity_level=u.quantity_level,
            is_pantry_staple=u.is_pantry_staple,
        )
        for u in body.updates
    ]
    with owner_transaction(db, owner_id) as scope:
        items = inventory_reconciler.apply_batch(scope, updates)
        out = [_item_out(i) for i in items]
    return schemas.InventoryBatchResponse(updated_count=len(out), items=out)


@router.patch("/{item_id}/toggle-staple", response_model=schemas.InventoryItemOut)
def toggle_staple(
    item_id: str,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    with owner_transaction(db, owner_id) as scope:
        return _item_out(inventory_reconciler.toggle_staple(scope, item_id))


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_item(
    item_id: str,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    with owner_transaction(db, owner_id) as scope:
        inventory_reconciler.delete_item(scope, item_id)


@router.get("/unrecognized", response_model=list[schemas.UnrecognizedItemOut])
def list_unrecognized(
    include_resolved: bool = False,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    with owner_transaction(db, owner_id) as scope:
        return [
            schemas.UnrecognizedItemOut.model_validate(e)
            for e in unrecognized_registry.list_entries(scope, include_resolved=include_resolved)
        ]
