"""
Réconciliation d'une session Checkout complétée: prolonge ou crée la licence
(user_game_access) puis journalise le paiement (payment_history).

Sûr sous livraison "au moins une fois":
- une session déjà présente dans payment_history n'est jamais recréditée
- le couple (user_id, game_id) est verrouillé pendant lecture + écriture
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Protocol

from storefront.exceptions import ReconciliationError, StorefrontError
from storefront.utils.dates import add_one_month, utcnow
from .metadata import extract_metadata
from .models import AccessGrant, PaymentRecord, ReconciliationOutcome

logger = logging.getLogger(__name__)


class AccessStore(Protocol):
    def find_grants(self, user_id: str, game_id: str) -> List[AccessGrant]: ...
    def update_grant(self, grant_id: str, *, expiration_date: datetime, payment_id: str) -> None: ...
    def insert_grant(self, grant: AccessGrant) -> Optional[AccessGrant]: ...
    def payment_exists(self, payment_session_id: str) -> bool: ...
    def insert_payment(self, record: PaymentRecord) -> None: ...


def next_expiration(existing: Optional[datetime], now: datetime) -> datetime:
    """
    Nouvelle expiration = max(now, expiration existante) + 1 mois.
    - Renouvellement avant expiration: le reliquat non consommé est conservé
    - Renouvellement après expiration: repart de maintenant
    """
    base = existing if existing is not None and existing > now else now
    return add_one_month(base)


class Reconciler:
    def __init__(self, store: AccessStore, locks, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.locks = locks
        self.clock = clock

    def reconcile(self, session: Dict[str, Any], now: Optional[datetime] = None) -> ReconciliationOutcome:
        """
        Applique l'algorithme de réconciliation à une session Checkout.
        - MissingMetadataError (sous-classe de ReconciliationError) sans aucune écriture
        - ReconciliationError pour toute autre erreur (le webhook répondra 500)
        """
        user_id, game_id = extract_metadata(session)
        session_id = str(session.get("id") or "")
        if not session_id:
            raise ReconciliationError("Checkout session has no id")

        try:
            with self.locks.hold(user_id, game_id):
                return self._reconcile_locked(session, session_id, user_id, game_id, now)
        except ReconciliationError:
            raise
        except StorefrontError as e:
            raise ReconciliationError(str(e)) from e
        except Exception as e:
            logger.exception(
                "payments.reconcile failed session_id=%s user_id=%s game_id=%s",
                session_id, user_id, game_id,
            )
            raise ReconciliationError(f"Reconciliation failed for session {session_id}") from e

    def _reconcile_locked(
        self,
        session: Dict[str, Any],
        session_id: str,
        user_id: str,
        game_id: str,
        now: Optional[datetime],
    ) -> ReconciliationOutcome:
        if self.store.payment_exists(session_id):
            logger.info("payments.reconcile duplicate session_id=%s, no credit", session_id)
            return ReconciliationOutcome(action="duplicate")

        grants = self.store.find_grants(user_id, game_id)
        if len(grants) > 1:
            logger.warning(
                "payments.reconcile %s grants for user_id=%s game_id=%s, using id=%s",
                len(grants), user_id, game_id, grants[0].id,
            )
        now = now or self.clock()

        if grants:
            grant = grants[0]
            grant.expiration_date = next_expiration(grant.expiration_date, now)
            grant.is_active = True
            grant.payment_id = session_id
            self.store.update_grant(grant.id, expiration_date=grant.expiration_date, payment_id=session_id)
            action = "extended"
        else:
            grant = AccessGrant(
                user_id=user_id,
                game_id=game_id,
                start_date=now,
                expiration_date=add_one_month(now),
                is_active=True,
                payment_id=session_id,
            )
            grant = self.store.insert_grant(grant) or grant
            action = "created"

        record = PaymentRecord.from_session(session, user_id=user_id, game_id=game_id)
        self.store.insert_payment(record)
        logger.info(
            "payments.reconcile %s session_id=%s user_id=%s game_id=%s expiration=%s",
            action, session_id, user_id, game_id, grant.expiration_date,
        )
        return ReconciliationOutcome(action=action, grant=grant, record=record)


__all__ = ["AccessStore", "Reconciler", "next_expiration"]
