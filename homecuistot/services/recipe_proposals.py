"""Recipe tool results: expansion, session preview and persistence.

An agent emits tool results (create / update / delete / delete_all and the
``*_batch`` wrappers). They are applied twice:

1. ``apply_to_session`` folds them into the in-memory recipe list the user is
   iterating on. No storage, no name checks.
2. ``apply_to_storage`` persists them once the user confirms. Each atomic
   operation runs in its own SAVEPOINT inside the request transaction, so a
   failing item (foreign id, malformed id, storage error) is recorded and its
   siblings still commit.

Ingredient links are only written for names that resolve (catalog or the
owner's unrecognized registry). Everything else is reported back as
unrecognized. Every linked ingredient is ensured present in inventory.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Sequence

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from homecuistot.core.text import clean_md, normalize_name, normalize_names
from homecuistot.db import OwnerScope, parse_uuid
from homecuistot.errors import HomeCuistotError, NotFoundError, ValidationError
from homecuistot.models import Recipe, RecipeIngredient, generate_uuid
from homecuistot.refs import IngredientRef
from homecuistot.schemas import (
    CreateRecipeResult,
    CreateRecipesBatchResult,
    DeleteAllRecipesResult,
    DeleteRecipeResult,
    DeleteRecipesBatchResult,
    MatchedRecipeIngredient,
    ProposedRecipeIngredient,
    ProposedRecipeState,
    RecipeIngredientIn,
    RecipeOperation,
    RecipeUpdates,
    SessionRecipeItem,
    UpdateRecipeResult,
    UpdateRecipesBatchResult,
)
from homecuistot.services.inventory_reconciler import EnsureRef, ensure_present
from homecuistot.services.name_resolver import resolve_names
from homecuistot.settings import settings

logger = logging.getLogger("homecuistot.recipes")

APPLIED = "applied"
NOT_FOUND = "not_found"

_BATCH_TYPES = (CreateRecipesBatchResult, UpdateRecipesBatchResult, DeleteRecipesBatchResult)


def expand_operations(results: Iterable) -> list[RecipeOperation]:
    """Unpack ``*_batch`` wrappers in place; order decides which write wins."""
    operations: list[RecipeOperation] = []
    for result in results:
        if isinstance(result, _BATCH_TYPES):
            operations.extend(result.results)
        else:
            operations.append(result)
    return operations


# --- Session (pre-confirmation) ---

@dataclass(frozen=True)
class SessionOutcome:
    operation: str
    recipe_id: Optional[str]
    status: str


@dataclass
class SessionApplyResult:
    items: list[SessionRecipeItem]
    outcomes: list[SessionOutcome] = field(default_factory=list)


def _session_item(recipe_id: str, title: str, description: str, ingredients) -> SessionRecipeItem:
    return SessionRecipeItem(
        id=recipe_id,
        title=title,
        description=description or "",
        ingredients=[
            RecipeIngredientIn(name=i.name, is_required=i.is_required) for i in ingredients
        ],
    )


def _fold(items: list[SessionRecipeItem], op: RecipeOperation) -> list[SessionOutcome]:
    if isinstance(op, CreateRecipeResult):
        item = _session_item(generate_uuid(), op.title, op.description, op.ingredients)
        items.append(item)
        return [SessionOutcome(op.operation, item.id, APPLIED)]

    if isinstance(op, UpdateRecipeResult):
        for pos, existing in enumerate(items):
            if existing.id == op.recipe_id:
                state = op.proposed_state
                items[pos] = _session_item(
                    existing.id, state.title, state.description, state.ingredients
                )
                return [SessionOutcome(op.operation, op.recipe_id, APPLIED)]
        logger.info("Session update for unknown recipe %s ignored", op.recipe_id)
        return [SessionOutcome(op.operation, op.recipe_id, NOT_FOUND)]

    if isinstance(op, DeleteRecipeResult):
        ids = [op.recipe_id]
    else:
        ids = [ref.recipe_id for ref in op.deleted_recipes]

    outcomes = []
    for recipe_id in ids:
        before = len(items)
        items[:] = [i for i in items if i.id != recipe_id]
        status = APPLIED if len(items) < before else NOT_FOUND
        outcomes.append(SessionOutcome(op.operation, recipe_id, status))
    return outcomes


def apply_to_session(items: Sequence[SessionRecipeItem], result) -> SessionApplyResult:
    """Apply one tool result (batch wrappers included) to a copy of ``items``."""
    return apply_all_to_session(items, [result])


def apply_all_to_session(items: Sequence[SessionRecipeItem], results: Iterable) -> SessionApplyResult:
    current = list(items)
    outcomes: list[SessionOutcome] = []
    for op in expand_operations(results):
        outcomes.extend(_fold(current, op))
    return SessionApplyResult(items=current, outcomes=outcomes)


# --- Proposing (deterministic half of the create/update tools) ---

def propose_create(
    scope: OwnerScope,
    title: str,
    description: str,
    ingredients: Sequence[RecipeIngredientIn],
) -> CreateRecipeResult:
    resolution = resolve_names(scope, [i.name for i in ingredients])
    catalog = resolution.catalog_by_name

    proposed: list[ProposedRecipeIngredient] = []
    matched: list[MatchedRecipeIngredient] = []
    seen = set()
    for ing in ingredients:
        key = normalize_name(ing.name)
        if not key or key in seen:
            continue
        seen.add(key)
        match = catalog.get(key)
        proposed.append(
            ProposedRecipeIngredient(
                ingredient_id=match.id if match else None,
                name=match.name if match else key,
                is_required=ing.is_required,
            )
        )
        if match:
            matched.append(
                MatchedRecipeIngredient(
                    ingredient_id=match.id, name=match.name, is_required=ing.is_required
                )
            )

    return CreateRecipeResult(
        title=clean_md(title),
        description=clean_md(description),
        ingredients=proposed,
        matched=matched,
        unrecognized=resolution.unrecognized,
    )


def propose_update(
    scope: OwnerScope, current: SessionRecipeItem, updates: RecipeUpdates
) -> UpdateRecipeResult:
    """Apply an edit intent to a session recipe.

    Order: title, description, removals, required toggles, then additions.
    Additions only land when the name resolves and is not already listed;
    unresolved additions are reported as unrecognized. With no
    ingredient-affecting field the ingredient list comes back unchanged.
    """
    title = clean_md(updates.title) if updates.title else current.title
    description = clean_md(updates.description) if updates.description else current.description
    ingredients = [RecipeIngredientIn(name=i.name, is_required=i.is_required) for i in current.ingredients]

    if updates.remove_ingredients:
        remove = set(normalize_names(updates.remove_ingredients))
        ingredients = [i for i in ingredients if normalize_name(i.name) not in remove]

    if updates.toggle_required:
        toggle = set(normalize_names(updates.toggle_required))
        ingredients = [
            RecipeIngredientIn(name=i.name, is_required=not i.is_required)
            if normalize_name(i.name) in toggle
            else i
            for i in ingredients
        ]

    unrecognized: list[str] = []
    if updates.add_ingredients:
        additions = resolve_names(scope, [i.name for i in updates.add_ingredients])
        resolved = set(additions.catalog_by_name) | set(additions.fallback_by_name)
        unrecognized = list(additions.still_unmatched)
        present = {normalize_name(i.name) for i in ingredients}
        for ing in updates.add_ingredients:
            key = normalize_name(ing.name)
            if key in resolved and key not in present:
                ingredients.append(RecipeIngredientIn(name=key, is_required=ing.is_required))
                present.add(key)

    catalog = resolve_names(scope, [i.name for i in ingredients]).catalog_by_name
    proposed = []
    matched = []
    for ing in ingredients:
        match = catalog.get(normalize_name(ing.name))
        proposed.append(
            ProposedRecipeIngredient(
                ingredient_id=match.id if match else None,
                name=ing.name,
                is_required=ing.is_required,
            )
        )
        if match:
            matched.append(
                MatchedRecipeIngredient(
                    ingredient_id=match.id, name=match.name, is_required=ing.is_required
                )
            )

    return UpdateRecipeResult(
        recipe_id=current.id,
        previous_state=current,
        proposed_state=ProposedRecipeState(
            title=title, description=description, ingredients=proposed
        ),
        matched=matched,
        unrecognized=unrecognized,
    )


# --- Persisting (post-confirmation) ---

@dataclass
class OperationOutcome:
    operation: str
    recipe_id: Optional[str]
    ok: bool
    error: Optional[str] = None
    unrecognized: list[str] = field(default_factory=list)


@dataclass
class ApplySummary:
    created: int = 0
    updated: int = 0
    deleted: int = 0
    outcomes: list[OperationOutcome] = field(default_factory=list)

    @property
    def errors(self) -> list[str]:
        return [o.error for o in self.outcomes if not o.ok]

    @property
    def unrecognized(self) -> list[str]:
        return normalize_names(name for o in self.outcomes for name in o.unrecognized)


def _owned_recipe(scope: OwnerScope, recipe_id: str) -> Recipe:
    recipe = scope.get(Recipe, parse_uuid(recipe_id, "recipe id"))
    if recipe is None:
        raise NotFoundError(f"Recipe {recipe_id} not found")
    return recipe


def _write_links(
    scope: OwnerScope, recipe_id: str, ingredients: Sequence[ProposedRecipeIngredient]
) -> list[str]:
    """Insert links for resolved names; return the names that were dropped.

    Client-supplied ``ingredient_id`` values are ignored and names are
    resolved again here.
    """
    resolution = resolve_names(scope, [i.name for i in ingredients])
    refs = resolution.refs_by_name()

    linked: dict[IngredientRef, None] = {}
    for ing in ingredients:
        ref = refs.get(normalize_name(ing.name))
        if ref is None or ref in linked:
            continue
        linked[ref] = None
        scope.db.add(
            RecipeIngredient(
                recipe_id=recipe_id,
                ingredient_type="anchor" if ing.is_required else "optional",
                **ref.columns(),
            )
        )
    scope.db.flush()

    if linked:
        floor = settings.recipe_link_floor_quantity
        ensure_present(scope, [EnsureRef(ref, floor) for ref in linked])
    return list(resolution.still_unmatched)


def _create(scope: OwnerScope, op: CreateRecipeResult) -> tuple[str, list[str]]:
    title = clean_md(op.title)
    if not title:
        raise ValidationError("Recipe title is required")
    recipe = scope.add(Recipe(title=title, description=clean_md(op.description) or None))
    scope.db.flush()
    return recipe.id, _write_links(scope, recipe.id, op.ingredients)


def _update(scope: OwnerScope, op: UpdateRecipeResult) -> tuple[str, list[str]]:
    recipe = _owned_recipe(scope, op.recipe_id)
    state = op.proposed_state
    recipe.title = clean_md(state.title) or recipe.title
    recipe.description = clean_md(state.description) or None
    recipe.updated_at = datetime.now(timezone.utc)
    scope.db.execute(delete(RecipeIngredient).where(RecipeIngredient.recipe_id == recipe.id))
    return recipe.id, _write_links(scope, recipe.id, state.ingredients)


def _delete(scope: OwnerScope, recipe_id: str) -> tuple[str, list[str]]:
    recipe = _owned_recipe(scope, recipe_id)
    # Links go first so the recipe row has no dependents.
    scope.db.execute(delete(RecipeIngredient).where(RecipeIngredient.recipe_id == recipe.id))
    scope.db.execute(delete(Recipe).where(Recipe.id == recipe.id))
    return recipe.id, []


def _run_item(
    scope: OwnerScope,
    operation: str,
    recipe_id: Optional[str],
    fn: Callable[[], tuple[str, list[str]]],
) -> OperationOutcome:
    label = recipe_id or "new recipe"
    try:
        with scope.db.begin_nested():
            recipe_id, unrecognized = fn()
    except HomeCuistotError as exc:
        logger.warning("Failed to %s %s: %s", operation, label, exc.detail)
        return OperationOutcome(
            operation, recipe_id, ok=False, error=f"Failed to {operation} recipe {label}: {exc.detail}"
        )
    except SQLAlchemyError as exc:
        logger.error("Storage error during %s of %s", operation, label, exc_info=True)
        return OperationOutcome(
            operation,
            recipe_id,
            ok=False,
            error=f"Failed to {operation} recipe {label}: {exc.__class__.__name__}",
        )
    return OperationOutcome(operation, recipe_id, ok=True, unrecognized=unrecognized)


def apply_to_storage(scope: OwnerScope, results: Iterable) -> ApplySummary:
    """Persist confirmed tool results for ``scope.owner_id``.

    Runs inside the caller's transaction (see ``owner_transaction``); the
    caller commits. Failed items are rolled back to their savepoint and
    listed in ``errors``.
    """
    operations = expand_operations(results)
    if len(operations) > settings.max_recipe_operations:
        raise ValidationError(
            f"Too many recipe operations ({len(operations)} > {settings.max_recipe_operations})"
        )

    summary = ApplySummary()
    for op in operations:
        if isinstance(op, CreateRecipeResult):
            outcome = _run_item(scope, op.operation, None, lambda op=op: _create(scope, op))
            summary.created += outcome.ok
            summary.outcomes.append(outcome)
        elif isinstance(op, UpdateRecipeResult):
            outcome = _run_item(scope, op.operation, op.recipe_id, lambda op=op: _update(scope, op))
            summary.updated += outcome.ok
            summary.outcomes.append(outcome)
        elif isinstance(op, DeleteRecipeResult):
            outcome = _run_item(
                scope, op.operation, op.recipe_id, lambda op=op: _delete(scope, op.recipe_id)
            )
            summary.deleted += outcome.ok
            summary.outcomes.append(outcome)
        elif isinstance(op, DeleteAllRecipesResult):
            for ref in op.deleted_recipes:
                outcome = _run_item(
                    scope,
                    op.operation,
                    ref.recipe_id,
                    lambda rid=ref.recipe_id: _delete(scope, rid),
                )
                summary.deleted += outcome.ok
                summary.outcomes.append(outcome)

    logger.info(
        "Applied recipe proposal owner=%s created=%d updated=%d deleted=%d errors=%d",
        scope.owner_id,
        summary.created,
        summary.updated,
        summary.deleted,
        len(summary.errors),
    )
    return summary


def list_recipes(scope: OwnerScope) -> list[Recipe]:
    return list(
        scope.db.scalars(
            scope.select(Recipe)
            .options(
                selectinload(Recipe.ingredients).selectinload(RecipeIngredient.ingredient),
                selectinload(Recipe.ingredients).selectinload(RecipeIngredient.unrecognized_item),
            )
            .order_by(Recipe.created_at.desc(), Recipe.title)
        ).all()
    )
