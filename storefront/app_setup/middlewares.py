"""
Middlewares transverses de l’application.
- register_basic_middlewares: CORS et TrustedHost.
- register_security_middleware: en-têtes de sécurité (les réponses sont du JSON/JS, pas de CSP HTML).
Notes:
- Le webhook Stripe n’envoie pas d’Origin: CORS ne le concerne pas.
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware

from storefront.config import Settings

def register_basic_middlewares(app: FastAPI, settings: Settings) -> None:
    """
    Ajoute les middlewares « de base »:
    - CORSMiddleware: autorise les origines définies (dev/prod).
    - TrustedHostMiddleware: limite les hôtes acceptés (défense host header).
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=list(settings.allowed_hosts) or ["*"])

def register_security_middleware(app: FastAPI, settings: Settings) -> None:
    @app.middleware("http")
    async def security_headers(request, call_next):
        response = await call_next(request)

        # En-têtes de sécurité
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        if settings.cookie_secure:
            response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload")
        return response
