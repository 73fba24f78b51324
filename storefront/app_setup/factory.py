"""
Factory d’application recommandée pour les entrypoints (ex: storefront.asgi).
Ordonne les étapes d’initialisation de manière lisible et testable.
"""
import logging
import os
from typing import Optional
from fastapi import FastAPI

from storefront.config import Settings, get_settings
from .lifespan import lifespan
from .middlewares import register_basic_middlewares, register_security_middleware
from .exception_handlers import register_exception_handlers
from .routes import register_routes
from .routers import register_routers

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

def configure_logging() -> None:
    # uvicorn configure ses propres loggers; les loggers storefront.* passent par la racine
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "info").upper(), format=LOG_FORMAT)

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Construit l’app FastAPI avec le lifespan et enregistre:
      - middlewares de base (CORS, TrustedHost) et en-têtes de sécurité
      - gestionnaires d’exceptions et routes simples (/env.js, /api/config)
      - tous les routers (paiements, health)
    Retour:
      FastAPI prêt à être utilisé par le serveur ASGI.
    """
    configure_logging()
    settings = settings or get_settings()
    app = FastAPI(title="Storefront API", lifespan=lifespan)
    app.state.settings = settings
    register_basic_middlewares(app, settings)
    register_security_middleware(app, settings)
    register_exception_handlers(app)
    register_routes(app)
    register_routers(app)
    return app
