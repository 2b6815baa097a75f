from unittest.mock import MagicMock

import pytest
from sqlalchemy.dialects import sqlite

from homecuistot.db import OwnerScope, dialect_insert, owner_transaction, parse_uuid
from homecuistot.errors import ValidationError
from homecuistot.models import UnrecognizedItem


def test_dialect_insert_for_sqlite(db_session):
    stmt = dialect_insert(db_session, UnrecognizedItem)
    assert isinstance(stmt, sqlite.Insert)


def test_dialect_insert_rejects_other_dialects():
    db = MagicMock()
    db.get_bind.return_value.dialect.name = "mysql"
    with pytest.raises(ValueError, match="mysql"):
        dialect_insert(db, UnrecognizedItem)


def test_parse_uuid():
    assert parse_uuid("11111111-1111-4111-8111-111111111111".upper()) == "11111111-1111-4111-8111-111111111111"
    with pytest.raises(ValidationError):
        parse_uuid("nope", "owner id")


def test_owner_transaction_rolls_back_on_error(db_session, scope):
    with pytest.raises(ValidationError):
        with owner_transaction(db_session, scope.owner_id) as tx:
            tx.add(UnrecognizedItem(raw_text="natto"))
            db_session.flush()
            raise ValidationError("boom")

    assert db_session.query(UnrecognizedItem).count() == 0


def test_owner_scope_filters_by_owner(db_session, scope, other_scope):
    item = other_scope.add(UnrecognizedItem(raw_text="natto"))
    db_session.commit()

    assert scope.get(UnrecognizedItem, item.id) is None
    assert other_scope.get(UnrecognizedItem, item.id).raw_text == "natto"
    assert isinstance(scope, OwnerScope)
