"""
Sérialisation/désérialisation des métadonnées Stripe (user_id, game_id).
Les métadonnées sont le seul lien entre une session Stripe et les entités du domaine.
"""
from typing import Any, Dict, Tuple

from storefront.exceptions import MissingMetadataError, ValidationError

# module storefront.payments.metadata
def make_metadata(user_id: str, game_id: str) -> Dict[str, str]:
    """Métadonnées attachées à la session à sa création (renvoyées dans l'événement)."""
    return {"user_id": str(user_id), "game_id": str(game_id)}


def extract_session(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Retourne event.data.object (la session Checkout).
    - ValidationError si l'enveloppe n'a pas d'objet
    """
    data = (event or {}).get("data") if isinstance(event, dict) else None
    session = (data or {}).get("object") if isinstance(data, dict) else None
    if not isinstance(session, dict):
        raise ValidationError("Event has no data.object")
    return session


def extract_metadata(session: Dict[str, Any]) -> Tuple[str, str]:
    """
    Extrait (user_id, game_id) depuis session["metadata"].
    - MissingMetadataError si l'un des deux manque (session corrompue, erreur fatale)
    """
    meta = (session or {}).get("metadata") or {}
    user_id = str(meta.get("user_id") or "").strip()
    game_id = str(meta.get("game_id") or "").strip()
    missing = [name for name, value in (("user_id", user_id), ("game_id", game_id)) if not value]
    if missing:
        raise MissingMetadataError(",".join(missing))
    return user_id, game_id
