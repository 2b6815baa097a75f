from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .errors import ValidationError


@dataclass(frozen=True)
class IngredientRef:
    """Points at exactly one of a catalog ingredient or an unrecognized item.

    Hashable so it can key inventory snapshots and dedupe maps.
    """

    ingredient_id: Optional[str] = None
    unrecognized_item_id: Optional[str] = None

    def __post_init__(self):
        if (self.ingredient_id is None) == (self.unrecognized_item_id is None):
            raise ValidationError(
                "Ingredient reference needs exactly one of ingredient_id or unrecognized_item_id"
            )

    @classmethod
    def catalog(cls, ingredient_id: str) -> "IngredientRef":
        return cls(ingredient_id=ingredient_id)

    @classmethod
    def fallback(cls, unrecognized_item_id: str) -> "IngredientRef":
        return cls(unrecognized_item_id=unrecognized_item_id)

    @classmethod
    def of(cls, row) -> "IngredientRef":
        """Ref of an InventoryItem or RecipeIngredient row."""
        return cls(
            ingredient_id=row.ingredient_id,
            unrecognized_item_id=row.unrecognized_item_id,
        )

    @property
    def is_catalog(self) -> bool:
        return self.ingredient_id is not None

    def columns(self) -> dict:
        return {
            "ingredient_id": self.ingredient_id,
            "unrecognized_item_id": self.unrecognized_item_id,
        }
