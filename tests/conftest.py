import os

os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

import itertools
import json
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, Generator, List, Optional

import pytest
from fastapi.testclient import TestClient

from storefront.app_setup.factory import create_app
from storefront.config import Settings
from storefront.payments.locks import LocalLockRegistry
from storefront.payments.models import AccessGrant, PaymentRecord
from storefront.payments.reconciler import Reconciler
from storefront.payments.signature import sign_payload

WEBHOOK_SECRET = "whsec_test_secret"
NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)


class MemoryAccessStore:
    """Stockage en mémoire des licences/paiements, même protocole que SupabaseAccessStore."""

    def __init__(self):
        self.grants: Dict[str, AccessGrant] = {}
        self.payments: List[PaymentRecord] = []
        self.writes: List[str] = []
        self.fail_on: set = set()
        self._ids = itertools.count(1)

    def _maybe_fail(self, op: str):
        if op in self.fail_on:
            raise RuntimeError(f"store failure on {op}")

    def add_grant(self, **fields) -> AccessGrant:
        grant = AccessGrant(id=f"grant-{next(self._ids)}", **fields)
        self.grants[grant.id] = grant
        return grant

    def find_grants(self, user_id: str, game_id: str) -> List[AccessGrant]:
        self._maybe_fail("find_grants")
        return [
            replace(g) for g in self.grants.values()
            if g.user_id == user_id and g.game_id == game_id
        ]

    def update_grant(self, grant_id: str, *, expiration_date: datetime, payment_id: str) -> None:
        self._maybe_fail("update_grant")
        grant = self.grants[grant_id]
        grant.expiration_date = expiration_date
        grant.is_active = True
        grant.payment_id = payment_id
        self.writes.append("update_grant")

    def insert_grant(self, grant: AccessGrant) -> Optional[AccessGrant]:
        self._maybe_fail("insert_grant")
        stored = replace(grant, id=f"grant-{next(self._ids)}")
        self.grants[stored.id] = stored
        self.writes.append("insert_grant")
        return replace(stored)

    def payment_exists(self, payment_session_id: str) -> bool:
        self._maybe_fail("payment_exists")
        return any(p.payment_session_id == payment_session_id for p in self.payments)

    def insert_payment(self, record: PaymentRecord) -> None:
        self._maybe_fail("insert_payment")
        self.payments.append(record)
        self.writes.append("insert_payment")

    def grants_for(self, user_id: str, game_id: str) -> List[AccessGrant]:
        return [g for g in self.grants.values() if g.user_id == user_id and g.game_id == game_id]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://project.supabase.test",
        supabase_anon_key="anon-key",
        supabase_service_key="service-role-key",
        stripe_secret_key="sk_test_123",
        stripe_publishable_key="pk_test_123",
        stripe_webhook_secret=WEBHOOK_SECRET,
        base_url="https://shop.example.test",
    )


@pytest.fixture
def store() -> MemoryAccessStore:
    return MemoryAccessStore()


@pytest.fixture
def reconciler(store) -> Reconciler:
    return Reconciler(store, LocalLockRegistry(timeout=1), clock=lambda: NOW)


@pytest.fixture
def make_session():
    """Fabrique une session Checkout complétée telle que Stripe l’envoie."""
    def _make(session_id: str = "cs_test_1", user_id: Optional[str] = "user-1", game_id: Optional[str] = "game-1", **extra) -> Dict[str, Any]:
        metadata = {}
        if user_id is not None:
            metadata["user_id"] = user_id
        if game_id is not None:
            metadata["game_id"] = game_id
        session = {
            "id": session_id,
            "object": "checkout.session",
            "amount_total": 1999,
            "currency": "usd",
            "payment_intent": "pi_test_1",
            "payment_method_types": ["card"],
            "payment_status": "paid",
            "metadata": metadata,
        }
        session.update(extra)
        return session
    return _make


@pytest.fixture
def make_event(make_session):
    def _make(event_type: str = "checkout.session.completed", **session_kwargs) -> Dict[str, Any]:
        return {
            "id": "evt_test_1",
            "object": "event",
            "type": event_type,
            "data": {"object": make_session(**session_kwargs)},
        }
    return _make


@pytest.fixture
def signed():
    """Sérialise un événement (indentation volontairement non compacte) et signe le corps brut."""
    def _sign(event: Dict[str, Any], secret: str = WEBHOOK_SECRET, timestamp: int = 1715774400):
        raw = json.dumps(event, indent=2).encode("utf-8")
        return raw, sign_payload(secret, raw, timestamp=timestamp)
    return _sign


@pytest.fixture
def app(settings):
    fastapi_app = create_app(settings)
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c
