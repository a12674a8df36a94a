"""
Stall Service — JWT Authentication Middleware
Validates Bearer token on all protected routes; returns 401 on failure,
403 when a non-admin token reaches /admin.
"""
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from jose import JWTError

from stall.core.security import decode_token, is_admin_claims

# Paths that do NOT require authentication
PUBLIC_PATHS = {
    "/health",
    "/metrics",
    "/",
    "/docs",
    "/openapi.json",
    "/order-statuses",
    "/store-settings",
    "/timeslots",
    "/products",
    "/payments/callback",   # called by the gateway; outcome is re-read from it
}

PUBLIC_PREFIXES = ("/metrics", "/products/")
ADMIN_PREFIX = "/admin"


class JWTAuthMiddleware(BaseHTTPMiddleware):
    """
    Intercepts every request. Validates JWT Bearer token.
    Attaches decoded claims to request.state.user on success.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method == "OPTIONS":
            return await call_next(request)

        path = request.url.path.rstrip("/") or "/"
        if path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES):
            return await call_next(request)

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return JSONResponse(
                status_code=401,
                content={"detail": "Missing or invalid Authorization header. Expected: Bearer <token>"},
                headers={"WWW-Authenticate": "Bearer"},
            )

        token = auth_header.split(" ", 1)[1]
        try:
            claims = decode_token(token)
        except JWTError as exc:
            return JSONResponse(
                status_code=401,
                content={"detail": f"Invalid or expired JWT: {str(exc)}"},
                headers={"WWW-Authenticate": "Bearer"},
            )

        if path.startswith(ADMIN_PREFIX) and not is_admin_claims(claims):
            return JSONResponse(
                status_code=403,
                content={"detail": "Forbidden - admin permissions required."},
            )

        request.state.user = claims
        return await call_next(request)
