"""Pydantic schemas for HomeCuistot API.

Request/response models for:
- Ingredient name validation
- Inventory (extractions, proposals, confirmations, direct edits)
- Recipe tool results (the tagged variants an agent emits) and their application
"""

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


Confidence = Literal["high", "medium", "low"]


# --- Name validation ---

class ValidateIngredientsRequest(BaseModel):
    ingredient_names: list[str] = Field(default_factory=list)


class MatchedIngredientOut(BaseModel):
    id: str
    name: str


class ValidateIngredientsResponse(BaseModel):
    matched: list[MatchedIngredientOut]
    unrecognized: list[str]


# --- Inventory ---

class InventoryItemOut(BaseModel):
    id: str
    ingredient_id: Optional[str]
    unrecognized_item_id: Optional[str]
    name: str
    quantity_level: int
    is_pantry_staple: bool
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UnrecognizedItemOut(BaseModel):
    id: str
    raw_text: str
    context: Optional[str]
    resolved_at: Optional[datetime]
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InventoryExtractionItem(BaseModel):
    """One update as emitted by the extraction model."""
    name: str
    quantity_level: int
    confidence: Confidence = "high"
    staple: Optional[bool] = None  # None = leave the staple flag alone


class InventoryExtraction(BaseModel):
    updates: list[InventoryExtractionItem] = Field(default_factory=list)


class ProposedInventoryItem(BaseModel):
    ingredient_id: Optional[str] = None
    unrecognized_item_id: Optional[str] = None
    name: str
    previous_quantity: Optional[int] = None  # None = new item
    proposed_quantity: int
    previous_pantry_staple: bool = False
    proposed_pantry_staple: Optional[bool] = None
    staple_transition: bool = False
    confidence: Optional[Confidence] = None


class InventoryProposal(BaseModel):
    recognized: list[ProposedInventoryItem] = Field(default_factory=list)
    unrecognized: list[str] = Field(default_factory=list)


class ApplyInventoryProposalRequest(BaseModel):
    proposal: InventoryProposal


class ApplyInventoryProposalResponse(BaseModel):
    updated_count: int
    skipped: list[str] = Field(default_factory=list)
    unrecognized: list[str] = Field(default_factory=list)


class EnsureIngredientsRequest(BaseModel):
    names: list[str]
    quantity_level: Optional[int] = None  # defaults to settings.onboarding_quantity
    is_pantry_staple: bool = False


class EnsureIngredientsResponse(BaseModel):
    created: int
    raised: int
    unchanged: int
    unrecognized: list[str]


class InventoryBatchRow(BaseModel):
    ingredient_id: Optional[str] = None
    unrecognized_item_id: Optional[str] = None
    quantity_level: int
    is_pantry_staple: Optional[bool] = None


class InventoryBatchRequest(BaseModel):
    updates: list[InventoryBatchRow]


class InventoryBatchResponse(BaseModel):
    updated_count: int
    items: list[InventoryItemOut]


# --- Recipes: shared pieces ---

class RecipeIngredientIn(BaseModel):
    name: str
    is_required: bool = True  # anchor when true, optional otherwise


class ProposedRecipeIngredient(BaseModel):
    ingredient_id: Optional[str] = None  # None when unrecognized
    name: str
    is_required: bool = True


class MatchedRecipeIngredient(BaseModel):
    ingredient_id: str
    name: str
    is_required: bool = True


class SessionRecipeItem(BaseModel):
    """Recipe as held in the conversation before anything is persisted."""
    id: str
    title: str
    description: str = ""
    ingredients: list[RecipeIngredientIn] = Field(default_factory=list)


class ProposedRecipeState(BaseModel):
    title: str
    description: str = ""
    ingredients: list[ProposedRecipeIngredient] = Field(default_factory=list)


class RecipeUpdates(BaseModel):
    """Edit intent for one recipe; absent fields are left as they are."""
    title: Optional[str] = None
    description: Optional[str] = None
    add_ingredients: Optional[list[RecipeIngredientIn]] = None
    remove_ingredients: Optional[list[str]] = None
    toggle_required: Optional[list[str]] = None


# --- Recipe tool results ---

class CreateRecipeResult(BaseModel):
    operation: Literal["create"] = "create"
    index: Optional[int] = None  # position inside a create_batch
    title: str
    description: str = ""
    ingredients: list[ProposedRecipeIngredient] = Field(default_factory=list)
    matched: list[MatchedRecipeIngredient] = Field(default_factory=list)
    unrecognized: list[str] = Field(default_factory=list)


class UpdateRecipeResult(BaseModel):
    operation: Literal["update"] = "update"
    index: Optional[int] = None
    recipe_id: str
    previous_state: Optional[SessionRecipeItem] = None
    proposed_state: ProposedRecipeState
    matched: list[MatchedRecipeIngredient] = Field(default_factory=list)
    unrecognized: list[str] = Field(default_factory=list)


class DeleteRecipeResult(BaseModel):
    operation: Literal["delete"] = "delete"
    index: Optional[int] = None
    recipe_id: str
    title: str = ""
    reason: Optional[str] = None
    found: bool = True


class DeletedRecipeRef(BaseModel):
    recipe_id: str
    title: str = ""


class DeleteAllRecipesResult(BaseModel):
    operation: Literal["delete_all"] = "delete_all"
    deleted_count: int = 0
    deleted_recipes: list[DeletedRecipeRef] = Field(default_factory=list)
    reason: Optional[str] = None


class CreateRecipesBatchResult(BaseModel):
    operation: Literal["create_batch"] = "create_batch"
    results: list[CreateRecipeResult] = Field(default_factory=list)
    total_created: Optional[int] = None


class UpdateRecipesBatchResult(BaseModel):
    operation: Literal["update_batch"] = "update_batch"
    results: list[UpdateRecipeResult] = Field(default_factory=list)
    total_updated: Optional[int] = None


class DeleteRecipesBatchResult(BaseModel):
    operation: Literal["delete_batch"] = "delete_batch"
    results: list[DeleteRecipeResult] = Field(default_factory=list)
    reason: Optional[str] = None


RecipeOperation = Union[
    CreateRecipeResult,
    UpdateRecipeResult,
    DeleteRecipeResult,
    DeleteAllRecipesResult,
]

RecipeToolResult = Annotated[
    Union[
        CreateRecipeResult,
        UpdateRecipeResult,
        DeleteRecipeResult,
        DeleteAllRecipesResult,
        CreateRecipesBatchResult,
        UpdateRecipesBatchResult,
        DeleteRecipesBatchResult,
    ],
    Field(discriminator="operation"),
]


class RecipeProposal(BaseModel):
    recipes: list[RecipeToolResult] = Field(default_factory=list)
    no_changes_detected: bool = False


class ApplyRecipeProposalRequest(BaseModel):
    recipes: list[RecipeToolResult] = Field(default_factory=list)


class ApplyRecipeProposalResponse(BaseModel):
    success: bool
    created: int = 0
    updated: int = 0
    deleted: int = 0
    errors: Optional[list[str]] = None
    unrecognized: list[str] = Field(default_factory=list)


class SessionApplyRequest(BaseModel):
    items: list[SessionRecipeItem] = Field(default_factory=list)
    recipes: list[RecipeToolResult] = Field(default_factory=list)


class SessionOutcomeOut(BaseModel):
    operation: str
    recipe_id: Optional[str]
    status: Literal["applied", "not_found"]


class SessionApplyResponse(BaseModel):
    items: list[SessionRecipeItem]
    outcomes: list[SessionOutcomeOut]


class RecipeIngredientOut(BaseModel):
    id: str
    ingredient_id: Optional[str]
    unrecognized_item_id: Optional[str]
    name: str
    is_required: bool

    class Config:
        from_attributes = True


class RecipeOut(BaseModel):
    id: str
    title: str
    description: Optional[str]
    ingredients: list[RecipeIngredientOut] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProposeCreateRequest(BaseModel):
    title: str
    description: str = ""
    ingredients: list[RecipeIngredientIn] = Field(default_factory=list)


class ProposeUpdateRequest(BaseModel):
    recipe: SessionRecipeItem
    updates: RecipeUpdates
