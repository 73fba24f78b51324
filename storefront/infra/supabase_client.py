from typing import Dict, Tuple
import threading
from supabase import create_client, Client
from storefront.config import Settings
from storefront.exceptions import ConfigurationError

_clients: Dict[Tuple[str, str], Client] = {}
_clients_lock = threading.Lock()

def _cached_client(url: str, key: str) -> Client:
    with _clients_lock:
        client = _clients.get((url, key))
        if client is None:
            client = create_client(url, key)
            _clients[(url, key)] = client
        return client

def get_supabase(settings: Settings) -> Client:
    """Client Supabase 'anon' (auth.get_user, lecture du catalogue public)."""
    if not settings.supabase_url or not settings.supabase_anon_key:
        raise ConfigurationError("SUPABASE_URL/SUPABASE_ANON_KEY manquants")
    return _cached_client(settings.supabase_url, settings.supabase_anon_key)

def get_service_supabase(settings: Settings) -> Client:
    """
    Client service-role (bypass RLS), réservé au webhook Stripe.
    Écrit user_game_access et payment_history.
    """
    if not settings.supabase_url or not settings.supabase_service_key:
        raise ConfigurationError("SUPABASE_SERVICE_ROLE_KEY manquant pour get_service_supabase()")
    return _cached_client(settings.supabase_url, settings.supabase_service_key)

def get_catalog_supabase(settings: Settings) -> Client:
    """Lecture de games: service-role si disponible, sinon anon."""
    if settings.supabase_service_key:
        return get_service_supabase(settings)
    return get_supabase(settings)
