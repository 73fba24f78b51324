from typing import Dict, Any
from fastapi import Request, Response, HTTPException
import os
import time
import hashlib
import logging

logger = logging.getLogger(__name__)

def _caller_key(req: Request) -> str:
    # Priorité: bearer token (hashé) puis IP
    path = req.url.path
    auth = req.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        h = hashlib.sha256(auth[7:].strip().encode("utf-8")).hexdigest()[:16]
        return f"user:{h}:{path}"
    ip = req.client.host if req.client else "local"
    return f"ip:{ip}:{path}"

def optional_rate_limit(times: int, seconds: int):
    """
    Dépendance de rate limiting tolérante:
    - LOCAL_RATE_LIMIT_FALLBACK=1: fenêtre glissante en mémoire (dev)
    - app.state.rate_limit_enabled=False: aucune limite (tests, Redis indisponible)
    - sinon fastapi-limiter (Redis)
    """
    async def _dep(request: Request, response: Response):
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            now = time.time()
            key = _caller_key(request)
            store = getattr(request.app.state, "_rl_store", {})
            hits = [t for t in store.get(key, []) if now - t < seconds]
            if len(hits) >= times:
                raise HTTPException(status_code=429, detail="Too Many Requests")
            hits.append(now)
            store[key] = hits
            request.app.state._rl_store = store
            return

        if getattr(request.app.state, "rate_limit_enabled", None) is not True:
            return

        from fastapi_limiter.depends import RateLimiter

        async def _identifier(req: Request) -> str:
            return _caller_key(req)

        # HTTPException(429) levée par RateLimiter remonte telle quelle
        await RateLimiter(times=times, seconds=seconds, identifier=_identifier)(request, response)
    return _dep

def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    enabled = getattr(request.app.state, "rate_limit_enabled", None)
    from fastapi_limiter import FastAPILimiter
    ready = getattr(FastAPILimiter, "redis", None) is not None
    return {
        "enabled": (bool(enabled) if enabled is not None else None),
        "ready": ready,
        "backend": "redis" if ready else None,
    }
