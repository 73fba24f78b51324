"""
Traitement d’un webhook Stripe: Received -> SignatureVerified -> (EventIgnored | CheckoutCompleted) -> Reconciled.
"""
import logging
from typing import Any, Callable, Dict, Optional, Union

from storefront.config import Settings
from storefront.exceptions import (
    ConfigurationError,
    MalformedHeaderError,
    ReconciliationError,
    SignatureMismatchError,
    ValidationError,
)
from .metadata import extract_session
from .models import CHECKOUT_COMPLETED
from .reconciler import Reconciler
from .signature import construct_event

logger = logging.getLogger(__name__)

RECEIVED = {"received": True}


class WebhookHandler:
    def __init__(self, settings: Settings, reconciler_factory: Callable[[], Reconciler]):
        self.settings = settings
        # construit à la demande: un événement ignoré n’exige pas la clé service-role
        self._reconciler_factory = reconciler_factory

    def handle(self, raw_body: Union[str, bytes], signature_header: Optional[str]) -> Dict[str, Any]:
        """
        - 400: secret webhook absent, en-tête absent/malformé, signature invalide
        - 200 {received: true}: événement réconcilié ou type ignoré
        - ReconciliationError (500) si la réconciliation échoue: Stripe relivrera
        """
        secret = self.settings.stripe_webhook_secret
        if not secret:
            raise ConfigurationError(
                "STRIPE_WEBHOOK_SECRET manquant",
                status_code=400,
                public_message="Webhook secret not configured",
            )
        if not signature_header:
            raise ValidationError("Missing stripe-signature header", public_message="Missing Stripe signature")

        try:
            event = construct_event(
                raw_body,
                signature_header,
                secret,
                tolerance=self.settings.webhook_tolerance_seconds,
            )
        except (MalformedHeaderError, SignatureMismatchError) as e:
            logger.warning("payments.webhook invalid signature (possible tampering): %s", e)
            raise

        event_type = event.get("type")
        if event_type != CHECKOUT_COMPLETED:
            logger.info("payments.webhook ignored type=%s id=%s", event_type, event.get("id"))
            return dict(RECEIVED)

        try:
            session = extract_session(event)
        except ValidationError as e:
            raise ReconciliationError(str(e)) from e
        outcome = self._reconciler_factory().reconcile(session)
        logger.info(
            "payments.webhook processed event_id=%s session_id=%s action=%s",
            event.get("id"), session.get("id"), outcome.action,
        )
        return dict(RECEIVED)
