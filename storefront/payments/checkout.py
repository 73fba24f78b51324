"""
Cas d’usage 'checkout': ouvre une session Stripe pour un utilisateur authentifié et un jeu.
Aucune écriture en base ici: la licence n’est accordée qu’au paiement confirmé (webhook).
"""
import logging
from typing import Optional, Protocol

from storefront.config import Settings
from storefront.exceptions import ConfigurationError, NotFoundError, UpstreamError
from .models import Game, UserIdentity
from .stripe_client import build_session_params

logger = logging.getLogger(__name__)


class IdentityResolver(Protocol):
    def resolve(self, access_token: Optional[str]) -> UserIdentity: ...


class Catalog(Protocol):
    def get_game(self, game_id: str) -> Optional[Game]: ...


class CheckoutGateway(Protocol):
    def create_session(self, params: dict) -> dict: ...


class CheckoutInitiator:
    def __init__(self, settings: Settings, identities: IdentityResolver, catalog: Catalog, gateway: CheckoutGateway):
        self.settings = settings
        self.identities = identities
        self.catalog = catalog
        self.gateway = gateway

    def create_session(self, game_id: str, access_token: Optional[str], *, origin: Optional[str] = None) -> str:
        """
        Étapes:
          1) Résoudre le token Supabase -> identité (AuthenticationError 401)
          2) Charger le jeu (NotFoundError 404)
          3) Construire la session (metadata user_id/game_id, 1 ligne au prix du jeu)
          4) Créer la session Stripe (UpstreamError 502) et renvoyer son id
        origin: origine de la requête, utilisée si BASE_URL n’est pas configuré
        """
        base_url = self.settings.base_url or (origin or "").rstrip("/")
        if not base_url:
            raise ConfigurationError("BASE_URL manquant et origine de requête inconnue")

        user = self.identities.resolve(access_token)
        game = self.catalog.get_game(game_id)
        if game is None:
            raise NotFoundError(f"Game {game_id} not found", public_message="Game not found")

        params = build_session_params(
            user=user,
            game=game,
            base_url=base_url,
            success_path=self.settings.checkout_success_path,
            cancel_path=self.settings.checkout_cancel_path,
        )
        session = self.gateway.create_session(params)
        session_id = session.get("id")
        if not session_id:
            raise UpstreamError("Stripe returned a session without id", public_message="Failed to create Stripe checkout session")
        logger.info("payments.checkout session_id=%s user_id=%s game_id=%s", session_id, user.id, game.id)
        return session_id
