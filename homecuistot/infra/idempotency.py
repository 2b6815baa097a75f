"""Idempotency-Key handling for confirmation endpoints.

A confirmed proposal may be retried by the client (flaky network, double
tap). With an ``Idempotency-Key`` header the first request takes a
processing marker in Redis, and its response is stored and replayed for
retries carrying the same key and body. Without the header the request just
runs.
"""

import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Optional, Union

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from homecuistot.infra.redis_client import get_redis
from homecuistot.settings import settings

logger = logging.getLogger("homecuistot.idempotency")


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _hash_request(method: str, path: str, body_bytes: bytes) -> str:
    h = hashlib.sha256()
    h.update(method.encode("utf-8"))
    h.update(b"|")
    h.update(path.encode("utf-8"))
    h.update(b"|")
    h.update(body_bytes or b"")
    return h.hexdigest()


def _idemp_redis_key(owner_id: str, route_key: str, idem_key: str) -> str:
    return f"homecuistot:idemp:{owner_id}:{route_key}:{idem_key}"


async def idempotency_precheck(
    request: Request, *, owner_id: str, route_key: str
) -> Union[tuple[str, str], JSONResponse, None]:
    """Return (redis_key, request_hash) if the caller should proceed and store
    its result, a JSONResponse to replay, or None when no key was sent."""
    idem_key = request.headers.get("Idempotency-Key")
    if not idem_key or not settings.idempotency_enabled:
        return None

    body_bytes = await request.body()
    req_hash = _hash_request(request.method, request.url.path, body_bytes)

    rkey = _idemp_redis_key(owner_id, route_key, idem_key)
    r = await get_redis()

    raw = await r.get(rkey)
    if raw:
        data = json.loads(raw)
        # Same key, different payload: refuse rather than replay the wrong thing
        if data.get("request_hash") and data["request_hash"] != req_hash:
            raise HTTPException(status_code=409, detail="Idempotency-Key reused with different request payload")
        if data.get("state") == "done":
            logger.info("Replaying stored response for %s", rkey)
            return JSONResponse(content=data.get("body"), status_code=int(data.get("status", 200)))
        raise HTTPException(status_code=409, detail="Request with this Idempotency-Key is still processing. Retry shortly.")

    processing_payload = {
        "state": "processing",
        "status": None,
        "body": None,
        "created_at": _iso_now(),
        "completed_at": None,
        "request_hash": req_hash,
    }
    ok = await r.set(
        rkey,
        json.dumps(processing_payload),
        ex=settings.idempotency_processing_ttl_sec,
        nx=True,
    )
    if not ok:
        # someone else won the race
        raise HTTPException(status_code=409, detail="Request with this Idempotency-Key is still processing. Retry shortly.")

    return (rkey, req_hash)


async def idempotency_store_result(redis_key: str, req_hash: str, *, status: int, body: dict):
    r = await get_redis()
    payload = {
        "state": "done",
        "status": int(status),
        "body": body,
        "created_at": None,
        "completed_at": _iso_now(),
        "request_hash": req_hash,
    }
    await r.set(redis_key, json.dumps(payload), ex=settings.idempotency_done_ttl_sec)


async def idempotency_clear_key(redis_key: str):
    """Drop the processing marker so a failed request can be retried."""
    try:
        r = await get_redis()
        await r.delete(redis_key)
    except Exception:
        logger.warning("Could not clear idempotency key %s", redis_key, exc_info=True)


async def run_idempotent(request: Request, *, owner_id: str, route_key: str, handler):
    """Run ``handler()`` (sync, returns a JSON-able dict) under an Idempotency-Key.

    Failures clear the marker and propagate.
    """
    pre = await idempotency_precheck(request, owner_id=owner_id, route_key=route_key)
    if isinstance(pre, JSONResponse):
        return pre
    try:
        body = handler()
    except Exception:
        if pre is not None:
            await idempotency_clear_key(pre[0])
        raise
    if pre is not None:
        await idempotency_store_result(pre[0], pre[1], status=200, body=body)
    return body
