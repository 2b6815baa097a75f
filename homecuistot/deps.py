"""FastAPI dependencies for HomeCuistot API.

Provides:
- Database session dependency
- Owner resolution (header -> env)
"""

from typing import Optional

from fastapi import Header

from .db import get_db, parse_uuid  # noqa: F401 (re-exported for routers)
from .errors import ValidationError
from .settings import settings


def get_owner_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> str:
    """Resolve the requesting owner.

    Resolution order:
    1. X-User-Id header (must be a UUID; a malformed value is a 400, never a
       silent fallback)
    2. settings.default_user_id (local development only)

    Identity is issued upstream; this service only trusts what it is given.
    """
    if x_user_id:
        return parse_uuid(x_user_id, "X-User-Id header")
    if settings.default_user_id:
        return parse_uuid(settings.default_user_id, "default user id")
    raise ValidationError("Missing X-User-Id header")
