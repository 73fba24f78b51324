"""
Vérification des signatures webhook Stripe (en-tête stripe-signature).

Format: "t=<timestamp>,v1=<hex>[,v1=<hex>...][,v0=...]".
Signature attendue: HMAC-SHA256(secret, "<timestamp>." + corps brut), hex minuscule.
Le corps brut (bytes reçus) est signé tel quel: la vérification précède toujours le parsing JSON.
"""
import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

from storefront.exceptions import MalformedHeaderError, SignatureMismatchError, ValidationError

logger = logging.getLogger(__name__)

SIGNATURE_SCHEME = "v1"


@dataclass(frozen=True)
class SignatureHeader:
    timestamp: str
    signatures: Tuple[str, ...]


def _to_bytes(value: Union[str, bytes]) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def parse_signature_header(header: Optional[str]) -> SignatureHeader:
    """
    Extrait t=<timestamp> et toutes les valeurs v1=<hex> de l'en-tête.
    - Paires séparées par des virgules, espaces tolérés, clés inconnues ignorées
    - MalformedHeaderError si t ou v1 est absent
    """
    timestamp = ""
    signatures = []
    for part in (header or "").split(","):
        key, sep, value = part.strip().partition("=")
        if not sep:
            continue
        if key == "t" and not timestamp:
            timestamp = value.strip()
        elif key == SIGNATURE_SCHEME and value.strip():
            signatures.append(value.strip())
    if not timestamp or not signatures:
        raise MalformedHeaderError("Malformed signature header")
    return SignatureHeader(timestamp=timestamp, signatures=tuple(signatures))


def compute_signature(secret: str, timestamp: str, raw_body: Union[str, bytes]) -> str:
    signed_payload = _to_bytes(timestamp) + b"." + _to_bytes(raw_body)
    return hmac.new(_to_bytes(secret), signed_payload, hashlib.sha256).hexdigest()


def constant_time_equals(a: Union[str, bytes], b: Union[str, bytes]) -> bool:
    """
    Égalité en temps constant.
    - Longueurs différentes: False sans comparer le contenu
    - Longueurs égales: OR cumulé des XOR sur tous les octets, sans sortie anticipée
    """
    left, right = _to_bytes(a), _to_bytes(b)
    if len(left) != len(right):
        return False
    result = 0
    for x, y in zip(left, right):
        result |= x ^ y
    return result == 0


def verify_signature(
    raw_body: Union[str, bytes],
    header: Optional[str],
    secret: str,
    *,
    tolerance: int = 0,
    now: Optional[float] = None,
) -> SignatureHeader:
    """
    Vérifie l'en-tête stripe-signature contre le corps brut.
    - Une des valeurs v1 doit correspondre (rotation de secret côté Stripe)
    - tolerance > 0: rejette aussi un timestamp plus vieux que tolerance secondes (rejeu)
    - SignatureMismatchError sinon
    """
    parsed = parse_signature_header(header)
    expected = compute_signature(secret, parsed.timestamp, raw_body)

    matched = False
    for candidate in parsed.signatures:
        # pas de court-circuit: chaque candidat est comparé
        matched = constant_time_equals(candidate, expected) | matched
    if not matched:
        raise SignatureMismatchError("Signature mismatch")

    if tolerance > 0:
        try:
            signed_at = int(parsed.timestamp)
        except ValueError:
            raise MalformedHeaderError("Non-numeric signature timestamp")
        current = time.time() if now is None else now
        if signed_at < current - tolerance:
            raise SignatureMismatchError("Timestamp outside the tolerance zone")
    return parsed


def construct_event(
    raw_body: Union[str, bytes],
    header: Optional[str],
    secret: str,
    *,
    tolerance: int = 0,
    now: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Vérifie la signature puis parse le corps brut vérifié en enveloppe d'événement.
    - ValidationError si le corps signé n'est pas un objet JSON
    """
    verify_signature(raw_body, header, secret, tolerance=tolerance, now=now)
    try:
        event = json.loads(_to_bytes(raw_body).decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        raise ValidationError("Webhook body is not valid JSON")
    if not isinstance(event, dict):
        raise ValidationError("Webhook body is not a JSON object")
    return event


def sign_payload(secret: str, raw_body: Union[str, bytes], timestamp: Optional[int] = None) -> str:
    """Construit un en-tête stripe-signature valide (outillage local / stripe-cli-like)."""
    ts = str(int(time.time()) if timestamp is None else timestamp)
    return f"t={ts},{SIGNATURE_SCHEME}={compute_signature(secret, ts, raw_body)}"
