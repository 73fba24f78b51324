"""
Types de la feature 'payments': catalogue, identité, licences et historique.
Conversion ligne Supabase <-> dataclass centralisée ici (noms de colonnes inclus).
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from storefront.utils.dates import parse_timestamp, to_iso

CHECKOUT_COMPLETED = "checkout.session.completed"


@dataclass(frozen=True)
class UserIdentity:
    id: str
    email: str = ""


@dataclass(frozen=True)
class Game:
    id: str
    name: str
    price_minor_units: int
    currency: str

    @classmethod
    def from_row(cls, row: Dict[str, Any], default_currency: str = "usd") -> "Game":
        """Table games: id, name, price_cents, currency (devise par défaut si null)."""
        return cls(
            id=str(row.get("id")),
            name=row.get("name") or "",
            price_minor_units=int(row.get("price_cents") or 0),
            currency=(row.get("currency") or default_currency).lower(),
        )


@dataclass
class AccessGrant:
    """Ligne user_game_access: fenêtre de licence d'un utilisateur pour un jeu."""

    user_id: str
    game_id: str
    start_date: Optional[datetime]
    expiration_date: Optional[datetime]
    is_active: bool = True
    payment_id: Optional[str] = None
    id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "AccessGrant":
        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            user_id=str(row.get("user_id") or ""),
            game_id=str(row.get("game_id") or ""),
            start_date=parse_timestamp(row.get("start_date")),
            expiration_date=parse_timestamp(row.get("expiration_date")),
            is_active=bool(row.get("is_active")),
            payment_id=row.get("payment_id"),
        )

    def to_row(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {
            "user_id": self.user_id,
            "game_id": self.game_id,
            "start_date": to_iso(self.start_date) if self.start_date else None,
            "expiration_date": to_iso(self.expiration_date) if self.expiration_date else None,
            "is_active": self.is_active,
            "payment_id": self.payment_id,
        }
        if self.id is not None:
            row["id"] = self.id
        return row


@dataclass
class PaymentRecord:
    """Ligne payment_history (append-only), une par événement traité."""

    user_id: str
    game_id: str
    payment_session_id: str
    payment_intent_id: Optional[str]
    amount_minor_units: Optional[int]
    currency: Optional[str]
    payment_method: Optional[str]
    payment_status: Optional[str]
    raw_payload: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_session(cls, session: Dict[str, Any], *, user_id: str, game_id: str) -> "PaymentRecord":
        methods = session.get("payment_method_types")
        return cls(
            user_id=user_id,
            game_id=game_id,
            payment_session_id=str(session.get("id") or ""),
            payment_intent_id=session.get("payment_intent") or None,
            amount_minor_units=session.get("amount_total"),
            currency=session.get("currency") or None,
            payment_method=",".join(str(m) for m in methods) if methods else None,
            payment_status=session.get("payment_status"),
            raw_payload=session,
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "game_id": self.game_id,
            "payment_session_id": self.payment_session_id,
            "payment_intent_id": self.payment_intent_id,
            "amount_cents": self.amount_minor_units,
            "currency": self.currency,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "raw_payload": self.raw_payload,
        }


@dataclass(frozen=True)
class ReconciliationOutcome:
    """Résultat d'une réconciliation: 'created', 'extended' ou 'duplicate'."""

    action: str
    grant: Optional[AccessGrant] = None
    record: Optional[PaymentRecord] = None
