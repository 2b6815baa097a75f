"""SQLAlchemy ORM models for HomeCuistot.

Tables:
- ingredients: Shared canonical catalog (curated elsewhere, read-only here)
- unrecognized_items: Per-user names with no catalog match
- user_inventory: Per-user stock levels (0-3) for catalog or unrecognized items
- user_recipes: Per-user recipes
- recipe_ingredients: Recipe -> ingredient links (anchor / optional)

Inventory rows and recipe links reference exactly one of a catalog ingredient
or an unrecognized item; a check constraint enforces it in the database.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Text,
    Integer,
    Boolean,
    ForeignKey,
    Index,
    CheckConstraint,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func, false

from .db import Base


QUANTITY_MIN = 0
QUANTITY_MAX = 3

INGREDIENT_CATEGORIES = (
    "meat",
    "cereal",
    "fish",
    "molluscs",
    "crustaceans",
    "bee_ingredients",
    "synthesized",
    "poultry",
    "eggs",
    "dairy",
    "fruit",
    "vegetables",
    "beans",
    "nuts",
    "seed",
    "plants",
    "mushroom",
    "cheeses",
    "oils_and_fats",
    "non_classified",
    "e100_e199",
    "ferments",
    "salt",
    "starch",
    "alcohol",
    "aroma",
    "cocoa",
    "water",
    "parts",
    "compound_ingredients",
)

INGREDIENT_TYPES = ("anchor", "optional")

_EXCLUSIVE_REF = "(ingredient_id IS NULL) <> (unrecognized_item_id IS NULL)"


def generate_uuid() -> str:
    return str(uuid.uuid4())


class Ingredient(Base):
    """Canonical catalog entry. Names are unique case-insensitively."""
    __tablename__ = "ingredients"
    __table_args__ = (
        Index("ix_ingredients_category", "category"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    name: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    category: Mapped[str] = mapped_column(
        String(40), nullable=False, default="non_classified"
    )
    is_assumed_staple: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=false(), default=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class UnrecognizedItem(Base):
    """Per-user fallback for a name the catalog does not know.

    ``raw_text`` is stored lowercased so the unique constraint doubles as the
    case-insensitive uniqueness rule. Promotion to the catalog is recorded by
    setting ``resolved_at``; rows are never deleted by the app.
    """
    __tablename__ = "unrecognized_items"
    __table_args__ = (
        UniqueConstraint("owner_id", "raw_text", name="uq_unrecognized_owner_text"),
        Index("ix_unrecognized_items_owner_id", "owner_id"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False)
    raw_text: Mapped[str] = mapped_column(Text, nullable=False)
    context: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class InventoryItem(Base):
    __tablename__ = "user_inventory"
    __table_args__ = (
        CheckConstraint(
            f"quantity_level BETWEEN {QUANTITY_MIN} AND {QUANTITY_MAX}",
            name="ck_user_inventory_quantity_level",
        ),
        CheckConstraint(_EXCLUSIVE_REF, name="ck_user_inventory_exclusive_ref"),
        UniqueConstraint("owner_id", "ingredient_id", name="uq_user_inventory_ingredient"),
        UniqueConstraint(
            "owner_id", "unrecognized_item_id", name="uq_user_inventory_unrecognized"
        ),
        Index("ix_user_inventory_owner_id", "owner_id"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False)
    ingredient_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("ingredients.id", ondelete="RESTRICT"), nullable=True
    )
    unrecognized_item_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("unrecognized_items.id", ondelete="RESTRICT"),
        nullable=True,
    )
    quantity_level: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    is_pantry_staple: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=false(), default=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    ingredient: Mapped[Optional["Ingredient"]] = relationship("Ingredient")
    unrecognized_item: Mapped[Optional["UnrecognizedItem"]] = relationship(
        "UnrecognizedItem"
    )

    @property
    def name(self) -> str:
        if self.ingredient is not None:
            return self.ingredient.name
        if self.unrecognized_item is not None:
            return self.unrecognized_item.raw_text
        return ""


class Recipe(Base):
    __tablename__ = "user_recipes"
    __table_args__ = (
        Index("ix_user_recipes_owner_id", "owner_id"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    ingredients: Mapped[list["RecipeIngredient"]] = relationship(
        "RecipeIngredient",
        back_populates="recipe",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class RecipeIngredient(Base):
    __tablename__ = "recipe_ingredients"
    __table_args__ = (
        CheckConstraint(_EXCLUSIVE_REF, name="ck_recipe_ingredients_exclusive_ref"),
        CheckConstraint(
            "ingredient_type IN ('anchor', 'optional')",
            name="ck_recipe_ingredients_type",
        ),
        UniqueConstraint("recipe_id", "ingredient_id", name="uq_recipe_ingredients_ingredient"),
        UniqueConstraint(
            "recipe_id", "unrecognized_item_id", name="uq_recipe_ingredients_unrecognized"
        ),
        Index("ix_recipe_ingredients_recipe_id", "recipe_id"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    recipe_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("user_recipes.id", ondelete="CASCADE"), nullable=False
    )
    ingredient_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("ingredients.id", ondelete="RESTRICT"), nullable=True
    )
    unrecognized_item_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("unrecognized_items.id", ondelete="RESTRICT"),
        nullable=True,
    )
    ingredient_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="anchor"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    recipe: Mapped["Recipe"] = relationship("Recipe", back_populates="ingredients")
    ingredient: Mapped[Optional["Ingredient"]] = relationship("Ingredient")
    unrecognized_item: Mapped[Optional["UnrecognizedItem"]] = relationship(
        "UnrecognizedItem"
    )

    @property
    def name(self) -> str:
        if self.ingredient is not None:
            return self.ingredient.name
        if self.unrecognized_item is not None:
            return self.unrecognized_item.raw_text
        return ""

    @property
    def is_required(self) -> bool:
        return self.ingredient_type == "anchor"
