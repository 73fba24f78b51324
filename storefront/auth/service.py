import logging
from typing import Optional
from supabase import Client

from storefront.exceptions import AuthenticationError
from storefront.payments.models import UserIdentity
from .repository import get_user_from_access_token

logger = logging.getLogger(__name__)

# --- Résolution du bearer token Supabase ---

class SupabaseIdentityResolver:
    """Résout un access token Supabase en identité {id, email} via GoTrue."""

    def __init__(self, client: Client):
        self._client = client

    def resolve(self, access_token: Optional[str]) -> UserIdentity:
        """
        - AuthenticationError si le token est absent, refusé ou sans id utilisateur
        - L’erreur GoTrue est loggée, jamais renvoyée au client
        """
        token = (access_token or "").strip()
        if not token:
            raise AuthenticationError("Missing access token")
        try:
            raw = get_user_from_access_token(self._client, token)
        except Exception as e:
            logger.warning("auth.resolve rejected token: %s", e)
            raise AuthenticationError("Supabase rejected the access token") from e
        user_id = raw.get("id")
        if not user_id:
            raise AuthenticationError("Supabase returned no user for the access token")
        return UserIdentity(id=str(user_id), email=raw.get("email") or "")
