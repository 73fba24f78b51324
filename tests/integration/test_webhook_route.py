from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from storefront.config import get_app_settings
from storefront.payments import dependencies


@pytest.fixture
def wired(monkeypatch, reconciler):
    # le handler réel est conservé, seule la réconciliation Supabase est remplacée
    monkeypatch.setattr(dependencies, "build_reconciler", lambda settings: reconciler)
    return reconciler


def _post(client, raw, header=None):
    headers = {"Content-Type": "application/json"}
    if header is not None:
        headers["stripe-signature"] = header
    return client.post("/webhook", content=raw, headers=headers)


def test_valid_completed_event(client, wired, store, make_event, signed):
    raw, header = signed(make_event())
    r = _post(client, raw, header)
    assert r.status_code == 200
    assert r.json() == {"received": True}
    assert len(store.grants_for("user-1", "game-1")) == 1
    assert store.payments[0].payment_session_id == "cs_test_1"


def test_redelivery_is_acknowledged_without_second_credit(client, wired, store, make_event, signed):
    raw, header = signed(make_event())
    assert _post(client, raw, header).status_code == 200
    assert _post(client, raw, header).status_code == 200
    assert len(store.payments) == 1
    assert store.grants_for("user-1", "game-1")[0].expiration_date.month == 6


def test_renewal_extends_existing_grant(client, wired, store, make_event, signed):
    assert _post(client, *signed(make_event(session_id="cs_a"))).status_code == 200
    assert _post(client, *signed(make_event(session_id="cs_b"))).status_code == 200
    grants = store.grants_for("user-1", "game-1")
    assert len(grants) == 1
    assert grants[0].expiration_date.month == 7
    assert grants[0].payment_id == "cs_b"


def test_ignored_event_type(client, wired, store, make_event, signed):
    raw, header = signed(make_event(event_type="customer.created"))
    r = _post(client, raw, header)
    assert r.status_code == 200
    assert r.json() == {"received": True}
    assert store.writes == []


def test_missing_signature_header(client, wired, store, make_event, signed):
    raw, _ = signed(make_event())
    r = _post(client, raw)
    assert r.status_code == 400
    assert r.json() == {"error": "Missing Stripe signature"}
    assert store.writes == []


@pytest.mark.parametrize("header", ["t=1715774400", "v1=abc", "nonsense"])
def test_malformed_signature_header(client, wired, make_event, signed, header):
    raw, _ = signed(make_event())
    r = _post(client, raw, header)
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid signature"}


def test_forged_signature(client, wired, store, make_event, signed):
    raw, header = signed(make_event(), secret="whsec_forged")
    r = _post(client, raw, header)
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid signature"}
    assert store.writes == []


def test_tampered_body(client, wired, store, make_event, signed):
    raw, header = signed(make_event())
    r = _post(client, raw.replace(b'"game-1"', b'"game-2"'), header)
    assert r.status_code == 400
    assert store.writes == []


def test_missing_metadata_returns_500(client, wired, store, make_event, signed):
    raw, header = signed(make_event(game_id=None))
    r = _post(client, raw, header)
    assert r.status_code == 500
    assert r.json() == {"error": "Failed to process session"}
    assert store.writes == []


def test_store_failure_returns_500_and_retry_succeeds(client, wired, store, make_event, signed):
    raw, header = signed(make_event())
    store.fail_on.add("insert_grant")
    r = _post(client, raw, header)
    assert r.status_code == 500
    assert r.json() == {"error": "Failed to process session"}
    assert "store failure" not in r.text

    # Stripe relivre: le même événement réussit une fois le stockage rétabli
    store.fail_on.clear()
    assert _post(client, raw, header).status_code == 200
    assert len(store.payments) == 1


def test_missing_webhook_secret(app, settings, make_event, signed):
    app.dependency_overrides[get_app_settings] = lambda: replace(settings, stripe_webhook_secret="")
    raw, header = signed(make_event())
    with TestClient(app) as c:
        r = _post(c, raw, header)
    assert r.status_code == 400
    assert r.json() == {"error": "Webhook secret not configured"}
