"""
Gestionnaires d’exceptions.
- StorefrontError: code HTTP porté par l’exception, corps {"error": <message public>}.
  Le détail interne reste dans les logs serveur.
- HTTPException: réponse JSON FastAPI standard ({"detail": ...}), ex. 429 du rate limiter.
- Exception: toute erreur imprévue, trace loggée, corps {"error": "Internal server error"} (500).
"""
import logging
from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException
from fastapi.responses import JSONResponse

from storefront.exceptions import StorefrontError, UpstreamError

logger = logging.getLogger(__name__)

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StorefrontError)
    async def storefront_error(request: Request, exc: StorefrontError):
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            "request failed path=%s status=%s error=%s detail=%s",
            request.url.path, exc.status_code, type(exc).__name__, exc,
        )
        if isinstance(exc, UpstreamError) and exc.body:
            logger.error("upstream body path=%s body=%s", request.url.path, exc.body)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message})

    @app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.error("unhandled error path=%s error=%s", request.url.path, type(exc).__name__, exc_info=exc)
        return JSONResponse(status_code=500, content={"error": StorefrontError.public_message})
