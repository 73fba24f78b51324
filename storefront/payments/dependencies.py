"""
Fournisseurs FastAPI (Depends) des composants 'payments'.
Settings viennent de app.state (create_app); les tests remplacent get_checkout_initiator / get_webhook_handler via app.dependency_overrides.
"""
from functools import lru_cache

from fastapi import Depends

from storefront.auth.service import SupabaseIdentityResolver
from storefront.catalog.repository import GameCatalog
from storefront.config import Settings, get_app_settings
from storefront.infra import supabase_client
from .checkout import CheckoutInitiator
from .locks import build_lock_registry
from .reconciler import Reconciler
from .repository import SupabaseAccessStore
from .stripe_client import StripeCheckoutGateway
from .webhook import WebhookHandler


@lru_cache(maxsize=4)
def get_lock_registry(settings: Settings):
    # un registre par configuration: les verrous locaux doivent être partagés entre requêtes
    return build_lock_registry(settings)


def build_reconciler(settings: Settings) -> Reconciler:
    store = SupabaseAccessStore(supabase_client.get_service_supabase(settings))
    return Reconciler(store, get_lock_registry(settings))


def get_checkout_initiator(settings: Settings = Depends(get_app_settings)) -> CheckoutInitiator:
    gateway = StripeCheckoutGateway(settings.stripe_secret_key)
    identities = SupabaseIdentityResolver(supabase_client.get_supabase(settings))
    catalog = GameCatalog(supabase_client.get_catalog_supabase(settings), default_currency=settings.default_currency)
    return CheckoutInitiator(settings, identities, catalog, gateway)


def get_webhook_handler(settings: Settings = Depends(get_app_settings)) -> WebhookHandler:
    return WebhookHandler(settings, reconciler_factory=lambda: build_reconciler(settings))
