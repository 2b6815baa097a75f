import pytest
import uuid
import json
from unittest.mock import patch, AsyncMock
from fakeredis import FakeAsyncRedis
from sqlalchemy import func, select
from homecuistot.infra.idempotency import idempotency_precheck, idempotency_store_result, run_idempotent
from homecuistot.errors import ValidationError
from homecuistot.models import Recipe
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse

# --- Mocking Redis ---

@pytest.fixture
def fake_redis():
    return FakeAsyncRedis(decode_responses=True)

@pytest.fixture
def patch_redis_client(fake_redis):
    # Patch the get_redis used inside idempotency module
    with patch("homecuistot.infra.idempotency.get_redis", AsyncMock(return_value=fake_redis)):
        yield fake_redis


def _request(idem_key, body=b'{"recipes": []}'):
    req = AsyncMock(spec=Request)
    req.headers = {"Idempotency-Key": idem_key} if idem_key else {}
    req.method = "POST"
    req.url.path = "/api/recipes/apply-proposal"
    req.body = AsyncMock(return_value=body)
    return req

# --- Unit Tests for Logic ---

@pytest.mark.asyncio
async def test_precheck_without_header_just_proceeds(patch_redis_client):
    res = await idempotency_precheck(_request(None), owner_id="o1", route_key="test")
    assert res is None

@pytest.mark.asyncio
async def test_idempotency_flow(patch_redis_client):
    fake_redis = patch_redis_client
    owner_id = "o1"
    route = "test_route"
    idem_key = str(uuid.uuid4())
    req = _request(idem_key)

    # 1. First call -> returns key to proceed
    res = await idempotency_precheck(req, owner_id=owner_id, route_key=route)
    assert isinstance(res, tuple)
    rkey, rhash = res
    assert rkey.endswith(idem_key)
    assert owner_id in rkey

    val = await fake_redis.get(rkey)
    assert json.loads(val)["state"] == "processing"

    # 2. Second concurrent call -> 409
    with pytest.raises(HTTPException) as exc:
        await idempotency_precheck(req, owner_id=owner_id, route_key=route)
    assert exc.value.status_code == 409

    # 3. Store result
    await idempotency_store_result(rkey, rhash, status=200, body={"created": 1})
    data = json.loads(await fake_redis.get(rkey))
    assert data["state"] == "done"
    assert data["body"]["created"] == 1

    # 4. Third call -> returns cached response
    res2 = await idempotency_precheck(req, owner_id=owner_id, route_key=route)
    assert isinstance(res2, JSONResponse)
    assert json.loads(res2.body) == {"created": 1}

@pytest.mark.asyncio
async def test_key_reused_with_other_payload_conflicts(patch_redis_client):
    idem_key = str(uuid.uuid4())
    rkey, rhash = await idempotency_precheck(_request(idem_key), owner_id="o1", route_key="r")
    await idempotency_store_result(rkey, rhash, status=200, body={})

    with pytest.raises(HTTPException) as exc:
        await idempotency_precheck(
            _request(idem_key, b'{"recipes": [1]}'), owner_id="o1", route_key="r"
        )
    assert exc.value.status_code == 409

@pytest.mark.asyncio
async def test_failed_handler_releases_key(patch_redis_client):
    idem_key = str(uuid.uuid4())

    def boom():
        raise ValidationError("bad quantity")

    with pytest.raises(ValidationError):
        await run_idempotent(_request(idem_key), owner_id="o1", route_key="r", handler=boom)

    body = await run_idempotent(
        _request(idem_key), owner_id="o1", route_key="r", handler=lambda: {"ok": True}
    )
    assert body == {"ok": True}

# --- Integration Test with DB and Client ---

def test_recipe_apply_idempotency(client, db_session, catalog):
    """Calling apply twice with one key creates the recipe once."""
    headers = {"Idempotency-Key": str(uuid.uuid4())}
    payload = {"recipes": [{"operation": "create", "title": "Omelette", "ingredients": [{"name": "egg"}]}]}

    resp1 = client.post("/api/recipes/apply-proposal", json=payload, headers=headers)
    assert resp1.status_code == 200, resp1.text

    resp2 = client.post("/api/recipes/apply-proposal", json=payload, headers=headers)
    assert resp2.status_code == 200, resp2.text
    assert resp1.json() == resp2.json()

    count = db_session.scalar(select(func.count()).select_from(Recipe))
    assert count == 1, "Should have created only 1 recipe"

def test_without_key_each_call_applies(client, db_session, catalog):
    payload = {"recipes": [{"operation": "create", "title": "Omelette"}]}
    client.post("/api/recipes/apply-proposal", json=payload)
    client.post("/api/recipes/apply-proposal", json=payload)
    assert db_session.scalar(select(func.count()).select_from(Recipe)) == 2
