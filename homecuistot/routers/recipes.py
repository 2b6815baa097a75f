from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from .. import schemas
from ..db import owner_transaction
from ..deps import get_db, get_owner_id
from ..infra.idempotency import run_idempotent
from ..services import recipe_proposals
from ..services.name_resolver import resolve_names

router = APIRouter()


@router.get("/", response_model=list[schemas.RecipeOut])
def list_recipes(
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    with owner_transaction(db, owner_id) as scope:
        return [schemas.RecipeOut.model_validate(r) for r in recipe_proposals.list_recipes(scope)]


@router.post("/validate", response_model=schemas.ValidateIngredientsResponse)
def validate_ingredients(
    body: schemas.ValidateIngredientsRequest,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    with owner_transaction(db, owner_id) as scope:
        resolution = resolve_names(scope, body.ingredient_names)
    return schemas.ValidateIngredientsResponse(
        matched=[schemas.MatchedIngredientOut(id=m.id, name=m.name) for m in resolution.matched_catalog],
        unrecognized=resolution.unrecognized,
    )


@router.post("/propose/create", response_model=schemas.CreateRecipeResult)
def propose_create(
    body: schemas.ProposeCreateRequest,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """Resolve a new recipe's ingredients without saving anything."""
    with owner_transaction(db, owner_id) as scope:
        return recipe_proposals.propose_create(scope, body.title, body.description, body.ingredients)


@router.post("/propose/update", response_model=schemas.UpdateRecipeResult)
def propose_update(
    body: schemas.ProposeUpdateRequest,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    with owner_transaction(db, owner_id) as scope:
        return recipe_proposals.propose_update(scope, body.recipe, body.updates)


@router.post("/session/apply", response_model=schemas.SessionApplyResponse)
def apply_to_session(body: schemas.SessionApplyRequest):
    """Preview tool results against the in-conversation recipe list."""
    result = recipe_proposals.apply_all_to_session(body.items, body.recipes)
    return schemas.SessionApplyResponse(
        items=result.items,
        outcomes=[
            schemas.SessionOutcomeOut(operation=o.operation, recipe_id=o.recipe_id, status=o.status)
            for o in result.outcomes
        ],
    )


def _apply_proposal(db: Session, owner_id: str, recipes: list) -> dict:
    with owner_transaction(db, owner_id) as scope:
        summary = recipe_proposals.apply_to_storage(scope, recipes)
    errors = summary.errors
    return schemas.ApplyRecipeProposalResponse(
        success=not errors,
        created=summary.created,
        updated=summary.updated,
        deleted=summary.deleted,
        errors=errors or None,
        unrecognized=summary.unrecognized,
    ).model_dump()


@router.post("/apply-proposal", response_model=schemas.ApplyRecipeProposalResponse)
async def apply_proposal(
    request: Request,
    body: schemas.ApplyRecipeProposalRequest,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """Persist confirmed recipe tool results. Failed items are listed in
    ``errors``; the others are committed."""
    return await run_idempotent(
        request,
        owner_id=owner_id,
        route_key="recipes_apply",
        handler=lambda: _apply_proposal(db, owner_id, body.recipes),
    )
