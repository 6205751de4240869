"""
Truckinglane Hub — API Key Auth Middleware
============================================
Validates the X-API-Key header against the api_keys table in Supabase.

Public endpoints (health, docs) bypass auth. With REQUIRE_API_KEY off,
requests without a key pass through with admin scope. require_scope()
guards endpoints that change data.
"""
from __future__ import annotations

import hashlib
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse, Response

from scripts.lib.errors import HubError, PermissionDeniedError
from scripts.lib.logger import setup_logger

logger = setup_logger("api_middleware")

PUBLIC_PATHS = {
    "/api/health",
    "/docs",
    "/openapi.json",
    "/redoc",
}


def _hash_key(key: str) -> str:
    """SHA-256 hash of an API key for storage comparison."""
    return hashlib.sha256(key.encode()).hexdigest()


def _auth_error(status_code: int, code: str, message: str) -> JSONResponse:
    error = HubError(message, code=code)
    return JSONResponse(status_code=status_code, content=error.to_dict())


class APIKeyMiddleware(BaseHTTPMiddleware):
    """Checks X-API-Key on every non-public request."""

    def __init__(self, app, require_auth: bool = False, client=None):
        super().__init__(app)
        self.require_auth = require_auth
        self._client = client
        self._cache: dict[str, dict] = {}  # key_hash -> row + _cached_at
        self._cache_ttl = 300

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in PUBLIC_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        api_key = request.headers.get("X-API-Key")
        if not api_key:
            if self.require_auth:
                return _auth_error(401, "UNAUTHORIZED", "Missing X-API-Key header")
            # No auth required: pass through (development mode)
            request.state.api_scope = "admin"
            return await call_next(request)

        key_info = self._validate_key(api_key)
        if not key_info:
            return _auth_error(403, "FORBIDDEN", "Invalid API key")

        request.state.api_scope = key_info.get("scope", "read")
        return await call_next(request)

    def _validate_key(self, key: str) -> Optional[dict]:
        """Look the key up in api_keys (cached for five minutes)."""
        key_hash = _hash_key(key)

        cached = self._cache.get(key_hash)
        if cached and cached["_cached_at"] + self._cache_ttl > time.time():
            return cached

        try:
            from scripts.lib.supabase_client import get_client

            client = self._client or get_client()
            result = (
                client.table("api_keys")
                .select("id, scope, active")
                .eq("key_hash", key_hash)
                .eq("active", True)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("API key lookup failed: %s", e)
            return None

        if not result.data:
            return None

        info = dict(result.data[0])
        info["_cached_at"] = time.time()
        self._cache[key_hash] = info

        try:
            client.table("api_keys").update({
                "last_used_at": datetime.now(timezone.utc).isoformat()
            }).eq("id", info["id"]).execute()
        except Exception as e:
            logger.warning("Could not update last_used_at for key %s: %s", info["id"], e)
        return info


SCOPE_LEVELS = {"read": 0, "write": 1, "admin": 2}


def require_scope(required: str):
    """
    Dependency to enforce minimum API scope on an endpoint.

    Usage:
        @router.post("/backfill", dependencies=[Depends(require_scope("write"))])
    """

    async def _check(request: Request):
        current = getattr(request.state, "api_scope", "read")
        if SCOPE_LEVELS.get(current, 0) < SCOPE_LEVELS.get(required, 0):
            raise PermissionDeniedError(required, current)

    return _check
