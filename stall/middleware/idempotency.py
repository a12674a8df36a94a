"""
Stall Service — Idempotent checkout

A checkout retried after a dropped connection must not claim a second seat.
Responses to POST /orders are remembered per (caller, Idempotency-Key); a
retry from the same caller gets the stored response back with
X-Idempotency-Replay set. Another caller reusing the key is a fresh request.

Runs after JWTAuthMiddleware, which has already put the claims on
request.state.user.
"""
import json
import logging
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from stall.core.config import get_settings
from stall.core.redis_client import get_redis
from stall.core.security import user_id_from_claims

settings = get_settings()
logger = logging.getLogger(__name__)

IDEMPOTENCY_PREFIX = "idempotent"
IDEMPOTENT_ROUTES = {("POST", "/orders")}


def idempotency_cache_key(user_id: str, path: str, idem_key: str) -> str:
    return f"{IDEMPOTENCY_PREFIX}:{user_id}:{path}:{idem_key}"


def _caller(request: Request) -> str | None:
    claims = getattr(request.state, "user", None) or {}
    return user_id_from_claims(claims)


class IdempotencyMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path.rstrip("/") or "/"
        idem_key = request.headers.get("Idempotency-Key")
        user_id = _caller(request)
        if (request.method, path) not in IDEMPOTENT_ROUTES or not idem_key or not user_id:
            return await call_next(request)

        redis = get_redis()
        cache_key = idempotency_cache_key(user_id, path, idem_key)

        stored = await redis.get(cache_key)
        if stored:
            entry = json.loads(stored)
            logger.info("Replaying %s for %s (Idempotency-Key %s)", path, user_id, idem_key)
            return JSONResponse(
                content=entry["body"],
                status_code=entry["status_code"],
                headers={"X-Idempotency-Replay": "true"},
            )

        response = await call_next(request)
        body_bytes = b"".join([chunk async for chunk in response.body_iterator])

        # 5xx is worth retrying for real, so only definite outcomes are kept
        if response.status_code < 500:
            try:
                body = json.loads(body_bytes)
            except ValueError:
                body = body_bytes.decode("utf-8", errors="replace")
            await redis.set(
                cache_key,
                json.dumps({"body": body, "status_code": response.status_code}),
                ex=settings.IDEMPOTENCY_KEY_TTL_SECONDS,
            )

        return Response(
            content=body_bytes,
            status_code=response.status_code,
            media_type=response.media_type,
            headers=dict(response.headers),
        )
