"""
Adaptateur Stripe: centralise la construction et l’envoi des sessions Checkout.
Le SDK encode les paramètres en form-urlencoded à crochets (line_items[0][price_data][currency]=...).
"""
import logging
from typing import Any, Dict

import stripe

from storefront.exceptions import ConfigurationError, UpstreamError
from .metadata import make_metadata
from .models import Game, UserIdentity

logger = logging.getLogger(__name__)

# module storefront.payments.stripe_client
def join_url(base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def build_session_params(
    *,
    user: UserIdentity,
    game: Game,
    base_url: str,
    success_path: str,
    cancel_path: str,
) -> Dict[str, Any]:
    """
    Paramètres de stripe.checkout.Session.create pour l’achat d’une licence.
    - mode=payment, une seule ligne (quantity=1) au prix du jeu en unités mineures
    - metadata {user_id, game_id}: seul lien du webhook vers les entités du domaine
    - success_url garde le placeholder {CHECKOUT_SESSION_ID} que Stripe substitue
    """
    return {
        "mode": "payment",
        "success_url": join_url(base_url, success_path),
        "cancel_url": join_url(base_url, cancel_path),
        "customer_email": user.email or "",
        "metadata": make_metadata(user.id, game.id),
        "line_items": [
            {
                "price_data": {
                    "currency": game.currency,
                    "product_data": {"name": game.name},
                    "unit_amount": game.price_minor_units,
                },
                "quantity": 1,
            }
        ],
        "allow_promotion_codes": True,
    }


class StripeCheckoutGateway:
    """Crée les sessions Checkout avec une clé secrète explicite (pas de stripe.api_key global)."""

    def __init__(self, api_key: str):
        if not api_key:
            raise ConfigurationError("STRIPE_SECRET_KEY manquant", public_message="Stripe secret key not configured.")
        self._api_key = api_key

    def create_session(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Crée une session Stripe Checkout.
        Retour: dict session (ex: {"id": "cs_test_...", "url": "https://..."})
        - UpstreamError si Stripe répond en erreur (corps loggé, jamais exposé)
        """
        try:
            session = stripe.checkout.Session.create(api_key=self._api_key, **params)
        except stripe.StripeError as e:
            body = getattr(e, "http_body", None) or str(e)
            logger.error(
                "payments.stripe create_session failed status=%s body=%s",
                getattr(e, "http_status", None), body,
            )
            raise UpstreamError(
                "Stripe API error",
                body=body,
                public_message="Failed to create Stripe checkout session",
            ) from e
        # stripe retourne un StripeObject; on le traite comme dict-compatible
        return dict(session)
