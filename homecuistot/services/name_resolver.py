"""Exact, case-insensitive resolution of free-text ingredient names.

Two batched lookups: the shared catalog first, then the owner's unrecognized
items for whatever the catalog did not know. The catalog wins when a name
exists in both.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy import func, select

from homecuistot.core.text import normalize_names
from homecuistot.db import OwnerScope
from homecuistot.models import Ingredient, UnrecognizedItem
from homecuistot.refs import IngredientRef

logger = logging.getLogger("homecuistot.names")


@dataclass(frozen=True)
class CatalogMatch:
    id: str
    name: str


@dataclass(frozen=True)
class FallbackMatch:
    id: str
    raw_text: str


@dataclass
class NameResolution:
    matched_catalog: list[CatalogMatch] = field(default_factory=list)
    matched_fallback: list[FallbackMatch] = field(default_factory=list)
    still_unmatched: list[str] = field(default_factory=list)

    @property
    def catalog_by_name(self) -> dict[str, CatalogMatch]:
        return {m.name.lower(): m for m in self.matched_catalog}

    @property
    def fallback_by_name(self) -> dict[str, FallbackMatch]:
        return {m.raw_text.lower(): m for m in self.matched_fallback}

    @property
    def unrecognized(self) -> list[str]:
        """Names without a catalog match, known to the registry or not."""
        return [m.raw_text for m in self.matched_fallback] + list(self.still_unmatched)

    def refs_by_name(self) -> dict[str, IngredientRef]:
        refs: dict[str, IngredientRef] = {}
        for key, m in self.fallback_by_name.items():
            refs[key] = IngredientRef.fallback(m.id)
        for key, m in self.catalog_by_name.items():
            refs[key] = IngredientRef.catalog(m.id)
        return refs


def resolve_names(scope: OwnerScope, names: Iterable[str]) -> NameResolution:
    keys = normalize_names(names)
    result = NameResolution()
    if not keys:
        return result

    catalog_rows = scope.db.execute(
        select(Ingredient.id, Ingredient.name).where(func.lower(Ingredient.name).in_(keys))
    ).all()
    catalog: dict[str, CatalogMatch] = {}
    for row in catalog_rows:
        catalog.setdefault(row.name.lower(), CatalogMatch(id=row.id, name=row.name))

    remaining = [k for k in keys if k not in catalog]
    fallback: dict[str, FallbackMatch] = {}
    if remaining:
        fallback_rows = scope.db.scalars(
            scope.select(
                UnrecognizedItem, func.lower(UnrecognizedItem.raw_text).in_(remaining)
            )
        ).all()
        for row in fallback_rows:
            fallback.setdefault(
                row.raw_text.lower(), FallbackMatch(id=row.id, raw_text=row.raw_text)
            )

    for key in keys:
        if key in catalog:
            result.matched_catalog.append(catalog[key])
        elif key in fallback:
            result.matched_fallback.append(fallback[key])
        else:
            result.still_unmatched.append(key)

    logger.debug(
        "Resolved %d names: %d catalog, %d fallback, %d unmatched",
        len(keys),
        len(result.matched_catalog),
        len(result.matched_fallback),
        len(result.still_unmatched),
    )
    return result
