"""
Accès aux données pour la feature 'payments' (tables user_game_access, payment_history).
Toujours via le client service-role: seul le webhook écrit ici.
Les erreurs Supabase remontent à l’appelant (le réconciliateur les transforme en 500).
"""
import logging
from datetime import datetime
from typing import List, Optional
from supabase import Client

from storefront.utils.dates import to_iso
from .models import AccessGrant, PaymentRecord

logger = logging.getLogger(__name__)

ACCESS_TABLE = "user_game_access"
HISTORY_TABLE = "payment_history"

# module storefront.payments.repository
class SupabaseAccessStore:
    """Implémentation Supabase du stockage des licences et de l’historique."""

    def __init__(self, client: Client):
        self._client = client

    def find_grants(self, user_id: str, game_id: str) -> List[AccessGrant]:
        """
        Licences existantes pour (user_id, game_id): user_id=eq.<u>&game_id=eq.<g>&select=*.
        - Plusieurs lignes possibles sans contrainte d’unicité: l’appelant prend la première
        - Ordre: expiration la plus tardive d’abord, expiration nulle en dernier
          (order=expiration_date.desc.nullslast)
        """
        res = (
            self._client
            .table(ACCESS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .eq("game_id", game_id)
            .order("expiration_date", desc=True, nullsfirst=False)
            .execute()
        )
        grants = [AccessGrant.from_row(row) for row in (res.data or [])]
        # tri stable: une date illisible compte comme nulle
        return sorted(grants, key=lambda g: g.expiration_date is None)

    def update_grant(self, grant_id: str, *, expiration_date: datetime, payment_id: str) -> None:
        """PATCH user_game_access?id=eq.<id>: nouvelle expiration, réactivation, dernier paiement."""
        (
            self._client
            .table(ACCESS_TABLE)
            .update({
                "expiration_date": to_iso(expiration_date),
                "is_active": True,
                "payment_id": payment_id,
            })
            .eq("id", grant_id)
            .execute()
        )
        logger.info("payments.repository.update_grant id=%s payment_id=%s", grant_id, payment_id)

    def insert_grant(self, grant: AccessGrant) -> Optional[AccessGrant]:
        res = self._client.table(ACCESS_TABLE).insert(grant.to_row()).execute()
        rows = res.data or []
        logger.info("payments.repository.insert_grant user_id=%s game_id=%s", grant.user_id, grant.game_id)
        return AccessGrant.from_row(rows[0]) if rows else grant

    def payment_exists(self, payment_session_id: str) -> bool:
        """Vrai si payment_history contient déjà cette session (événement relivré)."""
        res = (
            self._client
            .table(HISTORY_TABLE)
            .select("id")
            .eq("payment_session_id", payment_session_id)
            .limit(1)
            .execute()
        )
        return bool(res.data)

    def insert_payment(self, record: PaymentRecord) -> None:
        self._client.table(HISTORY_TABLE).insert(record.to_row()).execute()
        logger.info(
            "payments.repository.insert_payment session_id=%s status=%s",
            record.payment_session_id, record.payment_status,
        )
