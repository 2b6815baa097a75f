from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import update

from homecuistot.core.text import normalize_names
from homecuistot.db import OwnerScope, dialect_insert
from homecuistot.models import UnrecognizedItem, generate_uuid
from homecuistot.services.name_resolver import FallbackMatch

logger = logging.getLogger("homecuistot.unrecognized")


def ensure_entries(
    scope: OwnerScope, names: Iterable[str], context: Optional[str] = "ingredient"
) -> list[FallbackMatch]:
    """Insert-if-absent one entry per name; return ids for all of them.

    Conflicts on (owner, raw_text) are skipped, so a concurrent request that
    created the same entry first is treated as already present.
    """
    keys = normalize_names(names)
    if not keys:
        return []

    stmt = dialect_insert(scope.db, UnrecognizedItem).values(
        [
            {
                "id": generate_uuid(),
                "owner_id": scope.owner_id,
                "raw_text": key,
                "context": context,
            }
            for key in keys
        ]
    ).on_conflict_do_nothing(index_elements=["owner_id", "raw_text"])
    inserted = scope.db.execute(stmt).rowcount
    if inserted:
        logger.info("Registered %d unrecognized names for owner %s", inserted, scope.owner_id)

    rows = scope.db.scalars(
        scope.select(UnrecognizedItem, UnrecognizedItem.raw_text.in_(keys))
    ).all()
    by_text = {row.raw_text: row for row in rows}
    return [
        FallbackMatch(id=by_text[key].id, raw_text=key) for key in keys if key in by_text
    ]


def list_entries(scope: OwnerScope, include_resolved: bool = False) -> list[UnrecognizedItem]:
    stmt = scope.select(UnrecognizedItem)
    if not include_resolved:
        stmt = stmt.where(UnrecognizedItem.resolved_at.is_(None))
    stmt = stmt.order_by(UnrecognizedItem.created_at.desc(), UnrecognizedItem.raw_text)
    return list(scope.db.scalars(stmt).all())


def mark_resolved(scope: OwnerScope, entry_ids: Iterable[str]) -> int:
    """Soft-mark entries as promoted. Already-resolved entries keep their timestamp."""
    ids = list(entry_ids)
    if not ids:
        return 0
    result = scope.db.execute(
        update(UnrecognizedItem)
        .where(
            UnrecognizedItem.owner_id == scope.owner_id,
            UnrecognizedItem.id.in_(ids),
            UnrecognizedItem.resolved_at.is_(None),
        )
        .values(resolved_at=datetime.now(timezone.utc))
    )
    return result.rowcount
