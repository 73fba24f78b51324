"""
Module 'payments' (feature-first): point d'entrée public.
Réunit signature webhook, metadata Stripe, client Stripe, repository BD, réconciliation et checkout.
"""

from .signature import (
    parse_signature_header,
    compute_signature,
    constant_time_equals,
    verify_signature,
    construct_event,
)
from .metadata import make_metadata, extract_session, extract_metadata
from .stripe_client import build_session_params, StripeCheckoutGateway
from .repository import SupabaseAccessStore
from .reconciler import Reconciler, next_expiration
from .checkout import CheckoutInitiator
from .webhook import WebhookHandler

__all__ = [
    # signature
    "parse_signature_header",
    "compute_signature",
    "constant_time_equals",
    "verify_signature",
    "construct_event",
    # metadata
    "make_metadata",
    "extract_session",
    "extract_metadata",
    # stripe
    "build_session_params",
    "StripeCheckoutGateway",
    # repository
    "SupabaseAccessStore",
    # services
    "Reconciler",
    "next_expiration",
    "CheckoutInitiator",
    "WebhookHandler",
]
