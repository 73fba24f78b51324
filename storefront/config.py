# storefront.config
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Tuple
import logging
import os
from dotenv import load_dotenv
from fastapi import Request

"""
Configuration centrale du storefront.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env) sans écraser l'environnement du process
- Construit un objet Settings immuable, passé explicitement aux composants (checkout, webhook)
- Valide au démarrage les clés nécessaires à chaque fonctionnalité (log des manquants)
"""

BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"

logger = logging.getLogger(__name__)

DEFAULT_SUCCESS_PATH = "/success.html?session_id={CHECKOUT_SESSION_ID}"
DEFAULT_CANCEL_PATH = "/?canceled=1"

# Clés requises par fonctionnalité (noms des variables d'environnement)
REQUIRED_KEYS: Dict[str, Dict[str, str]] = {
    "checkout": {
        "supabase_url": "SUPABASE_URL",
        "supabase_anon_key": "SUPABASE_ANON_KEY",
        "stripe_secret_key": "STRIPE_SECRET_KEY",
    },
    "webhook": {
        "supabase_url": "SUPABASE_URL",
        "supabase_service_key": "SUPABASE_SERVICE_ROLE_KEY",
        "stripe_webhook_secret": "STRIPE_WEBHOOK_SECRET",
    },
}


def _clean_env(v: Optional[str]) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")


def _normalize_url(url: str) -> str:
    # SUPABASE_URL/BASE_URL peuvent arriver sans schéma ou avec un slash final
    if url and not url.startswith("http"):
        url = "https://" + url
    return url.rstrip("/")


def _split_csv(v: str) -> Tuple[str, ...]:
    return tuple(item.strip() for item in (v or "").split(",") if item.strip())


def _int_env(env: Dict[str, str], name: str, default: int) -> int:
    raw = _clean_env(env.get(name))
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("config invalid integer %s=%r, using default %s", name, raw, default)
        return default


@dataclass(frozen=True)
class Settings:
    """Valeurs de configuration résolues une fois, passées aux composants du cœur."""

    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_key: str = ""
    stripe_secret_key: str = ""
    stripe_publishable_key: str = ""
    stripe_webhook_secret: str = ""
    base_url: str = ""
    checkout_success_path: str = DEFAULT_SUCCESS_PATH
    checkout_cancel_path: str = DEFAULT_CANCEL_PATH
    default_currency: str = "usd"
    webhook_tolerance_seconds: int = 0
    reconcile_lock_redis_url: str = ""
    reconcile_lock_timeout_seconds: int = 30
    cors_origins: Tuple[str, ...] = ("*",)
    allowed_hosts: Tuple[str, ...] = ("*",)
    cookie_secure: bool = False

    def missing_for(self, feature: str) -> List[str]:
        """Noms des variables d'environnement absentes pour 'checkout' ou 'webhook'."""
        keys = REQUIRED_KEYS.get(feature)
        if keys is None:
            raise KeyError(f"Unknown feature: {feature}")
        return [env_name for attr, env_name in keys.items() if not getattr(self, attr)]

    def public_client_env(self) -> Dict[str, str]:
        """Valeurs publiques exposées au front statique (jamais de clé secrète)."""
        return {
            "SUPABASE_URL": self.supabase_url,
            "SUPABASE_ANON_KEY": self.supabase_anon_key,
            "STRIPE_PUBLISHABLE_KEY": self.stripe_publishable_key,
            "BASE_URL": self.base_url,
        }


def load_settings(environ: Optional[Dict[str, str]] = None, *, env_file: Optional[Path] = ENV_PATH) -> Settings:
    """
    Construit Settings depuis l'environnement.
    - environ: mapping explicite (tests); par défaut os.environ après chargement du .env
    - env_file: fichier .env chargé si présent (None pour ne rien charger)
    """
    if environ is None:
        if env_file is not None and env_file.exists():
            load_dotenv(dotenv_path=env_file, override=False)
        environ = dict(os.environ)
    env = environ

    supabase_url = _normalize_url(_clean_env(env.get("SUPABASE_URL") or env.get("NEXT_PUBLIC_SUPABASE_URL")))
    service_key = _clean_env(env.get("SUPABASE_SERVICE_ROLE_KEY") or env.get("SUPABASE_SERVICE_KEY"))
    base_url = _normalize_url(_clean_env(env.get("BASE_URL")))

    return Settings(
        supabase_url=supabase_url,
        supabase_anon_key=_clean_env(env.get("SUPABASE_ANON_KEY") or env.get("SUPABASE_KEY")),
        supabase_service_key=service_key,
        stripe_secret_key=_clean_env(env.get("STRIPE_SECRET_KEY")),
        stripe_publishable_key=_clean_env(env.get("STRIPE_PUBLISHABLE_KEY") or env.get("STRIPE_PUBLIC_KEY")),
        stripe_webhook_secret=_clean_env(env.get("STRIPE_WEBHOOK_SECRET")),
        base_url=base_url,
        checkout_success_path=env.get("CHECKOUT_SUCCESS_PATH") or DEFAULT_SUCCESS_PATH,
        checkout_cancel_path=env.get("CHECKOUT_CANCEL_PATH") or DEFAULT_CANCEL_PATH,
        default_currency=(_clean_env(env.get("DEFAULT_CURRENCY")) or "usd").lower(),
        webhook_tolerance_seconds=_int_env(env, "WEBHOOK_TOLERANCE_SECONDS", 0),
        reconcile_lock_redis_url=_clean_env(env.get("RECONCILE_LOCK_REDIS_URL")),
        reconcile_lock_timeout_seconds=_int_env(env, "RECONCILE_LOCK_TIMEOUT_SECONDS", 30),
        cors_origins=_split_csv(env.get("CORS_ORIGINS", "*")),
        allowed_hosts=_split_csv(env.get("ALLOWED_HOSTS", "*")),
        cookie_secure=(env.get("COOKIE_SECURE", "false").lower() == "true"),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings du process, lus depuis l’environnement (une seule fois)."""
    return load_settings()


def get_app_settings(request: Request) -> Settings:
    """
    Dépendance FastAPI: Settings passés à create_app (app.state.settings).
    - Repli sur get_settings() si l’app a été construite sans Settings
    """
    settings = getattr(request.app.state, "settings", None)
    return settings if settings is not None else get_settings()


def validate_settings(settings: Settings) -> Dict[str, List[str]]:
    """
    Vérifie au démarrage les clés de chaque fonctionnalité.
    - Log un warning par fonctionnalité incomplète (noms de variables uniquement)
    - Retourne {feature: [clés manquantes]}
    """
    report: Dict[str, List[str]] = {}
    for feature in REQUIRED_KEYS:
        missing = settings.missing_for(feature)
        report[feature] = missing
        if missing:
            logger.warning("config feature=%s disabled, missing=%s", feature, ",".join(missing))
    if not settings.base_url:
        logger.info("config BASE_URL not set, checkout redirects use the request origin")
    return report
