"""
Hiérarchie d'exceptions du storefront.

Chaque classe porte le code HTTP et un message public générique.
Le détail interne (message, corps upstream) reste côté logs serveur.
"""
from typing import Optional


class StorefrontError(Exception):
    """Base de toutes les erreurs métier du storefront."""

    status_code = 500
    public_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, *, public_message: Optional[str] = None) -> None:
        if public_message is not None:
            self.public_message = public_message
        super().__init__(message or self.public_message)


class ConfigurationError(StorefrontError):
    """Secret ou URL manquant: fatal pour la requête, jamais retenté en interne."""

    public_message = "Server misconfiguration"

    def __init__(self, message: Optional[str] = None, *, status_code: int = 500, public_message: Optional[str] = None) -> None:
        self.status_code = status_code
        super().__init__(message, public_message=public_message)


class ValidationError(StorefrontError):
    """Corps de requête invalide."""

    status_code = 400
    public_message = "Invalid request"


class MalformedHeaderError(ValidationError):
    """En-tête stripe-signature sans t= ou v1=."""

    public_message = "Invalid signature"


class AuthenticationError(StorefrontError):
    status_code = 401
    public_message = "Invalid Supabase session"


class NotFoundError(StorefrontError):
    status_code = 404
    public_message = "Not found"


class SignatureMismatchError(StorefrontError):
    """Signature HMAC différente de celle attendue (tentative de falsification possible)."""

    status_code = 400
    public_message = "Invalid signature"


class UpstreamError(StorefrontError):
    """Appel Stripe ou Supabase en échec; body conservé pour les logs uniquement."""

    status_code = 502
    public_message = "Upstream service error"

    def __init__(self, message: Optional[str] = None, *, body: Optional[str] = None, public_message: Optional[str] = None) -> None:
        self.body = body
        super().__init__(message, public_message=public_message)


class ReconciliationError(StorefrontError):
    """Échec de réconciliation: le webhook répond 500 pour que Stripe relivre l'événement."""

    status_code = 500
    public_message = "Failed to process session"


class MissingMetadataError(ReconciliationError):
    """Session sans metadata.user_id / metadata.game_id: session corrompue, non rejouable."""

    def __init__(self, missing: str) -> None:
        self.missing = missing
        super().__init__(f"Missing metadata to process checkout: {missing}")


class LockUnavailableError(ReconciliationError):
    """Verrou (user_id, game_id) non obtenu dans le délai imparti."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Could not acquire reconciliation lock {key}")
