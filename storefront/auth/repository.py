from typing import Any, Dict
from supabase import Client

# --- Auth (supabase.auth.*) ---

def get_user_from_access_token(client: Client, access_token: str) -> Dict[str, Any]:
    """Récupère et normalise l’utilisateur depuis supabase.auth.get_user(access_token)."""
    res = client.auth.get_user(access_token)
    user = getattr(res, "user", None) or {}
    if not isinstance(user, dict):
        user = {
            "id": getattr(user, "id", None),
            "email": getattr(user, "email", None),
            "user_metadata": getattr(user, "user_metadata", None),
        }
    return user or {}
