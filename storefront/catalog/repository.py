"""
Accès au catalogue (table 'games'), lecture seule.
"""
import logging
from typing import Any, Dict, Optional
from supabase import Client

from storefront.exceptions import UpstreamError
from storefront.payments.models import Game

logger = logging.getLogger(__name__)

GAME_COLUMNS = "id,name,price_cents,currency"

# module storefront.catalog.repository
def fetch_game_row(client: Client, game_id: str) -> Optional[Dict[str, Any]]:
    """
    Récupère une ligne games par id (select id,name,price_cents,currency).
    - None si absente
    - UpstreamError si Supabase répond en erreur
    """
    try:
        res = (
            client
            .table("games")
            .select(GAME_COLUMNS)
            .eq("id", game_id)
            .limit(1)
            .execute()
        )
    except Exception as e:
        logger.exception("catalog.repository.fetch_game_row failed game_id=%s", game_id)
        raise UpstreamError(f"Failed to fetch game {game_id}", body=str(e)) from e
    rows = res.data or []
    return rows[0] if rows else None


class GameCatalog:
    def __init__(self, client: Client, default_currency: str = "usd"):
        self._client = client
        self._default_currency = default_currency

    def get_game(self, game_id: str) -> Optional[Game]:
        row = fetch_game_row(self._client, game_id)
        if row is None:
            return None
        return Game.from_row(row, default_currency=self._default_currency)
