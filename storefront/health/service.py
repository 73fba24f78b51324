from typing import Any, Dict
from fastapi import Request

from storefront.config import Settings, REQUIRED_KEYS
from storefront.utils.rate_limit import rate_limit_health_info

def health_config_info(settings: Settings) -> Dict[str, Any]:
    """
    État de la configuration par fonctionnalité.
    - Noms des variables manquantes uniquement, jamais leurs valeurs
    """
    info: Dict[str, Any] = {}
    for feature in REQUIRED_KEYS:
        missing = settings.missing_for(feature)
        info[feature] = {"ready": not missing, "missing": missing}
    info["reconcile_lock"] = "redis" if settings.reconcile_lock_redis_url else "local"
    return info

def health_rate_limit_info(request: Request) -> Dict[str, Any]:
    return rate_limit_health_info(request)
