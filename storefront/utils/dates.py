"""
Helpers de dates pour les licences (UTC, mois calendaires).
"""
import calendar
from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def add_one_month(moment: datetime) -> datetime:
    """
    Ajoute un mois calendaire en conservant l'heure.
    - Le jour est borné au dernier jour du mois cible (31 janv. -> 28/29 févr.)
    """
    if moment.month == 12:
        year, month = moment.year + 1, 1
    else:
        year, month = moment.year, moment.month + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse un timestamp Supabase (ISO-8601, suffixe Z accepté) en datetime UTC.
    - Retourne None si la valeur est vide ou illisible
    - Une valeur sans fuseau est considérée comme UTC
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat()
