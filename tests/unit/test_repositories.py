from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from postgrest import SyncPostgrestClient

from storefront.catalog.repository import GameCatalog, fetch_game_row
from storefront.exceptions import UpstreamError
from storefront.payments.models import AccessGrant, PaymentRecord
from storefront.payments.repository import SupabaseAccessStore


class _Resp:
    def __init__(self, data=None):
        self.data = data


def _mk_client(data=None):
    """Client Supabase factice: chaque méthode du query builder renvoie le même builder."""
    client = MagicMock()
    builder = MagicMock()
    client.table.return_value = builder
    for name in ("select", "eq", "order", "limit", "update", "insert"):
        getattr(builder, name).return_value = builder
    builder.execute.return_value = _Resp(data)
    return client, builder


def test_fetch_game_row_found():
    client, builder = _mk_client([{"id": "g1", "name": "Space Miners", "price_cents": 1999, "currency": "EUR"}])
    row = fetch_game_row(client, "g1")
    assert row["price_cents"] == 1999
    client.table.assert_called_once_with("games")
    builder.select.assert_called_once_with("id,name,price_cents,currency")
    builder.eq.assert_called_once_with("id", "g1")


def test_fetch_game_row_absent():
    client, _ = _mk_client([])
    assert fetch_game_row(client, "missing") is None


def test_fetch_game_row_error():
    client, builder = _mk_client()
    builder.execute.side_effect = Exception("connection reset")
    with pytest.raises(UpstreamError) as excinfo:
        fetch_game_row(client, "g1")
    assert "connection reset" in excinfo.value.body


def test_game_catalog_maps_row():
    client, _ = _mk_client([{"id": "g1", "name": "Space Miners", "price_cents": 1999, "currency": "EUR"}])
    game = GameCatalog(client).get_game("g1")
    assert (game.id, game.name, game.price_minor_units, game.currency) == ("g1", "Space Miners", 1999, "eur")


def test_game_catalog_default_currency():
    client, _ = _mk_client([{"id": "g1", "name": "Space Miners", "price_cents": 500, "currency": None}])
    assert GameCatalog(client, default_currency="gbp").get_game("g1").currency == "gbp"


def test_find_grants_query_and_mapping():
    client, builder = _mk_client([
        {"id": 7, "user_id": "u1", "game_id": "g1", "start_date": "2024-04-15T12:00:00Z",
         "expiration_date": "2024-05-15T12:00:00+00:00", "is_active": True, "payment_id": "cs_1"},
    ])
    grants = SupabaseAccessStore(client).find_grants("u1", "g1")

    client.table.assert_called_with("user_game_access")
    builder.select.assert_called_once_with("*")
    assert [c.args for c in builder.eq.call_args_list] == [("user_id", "u1"), ("game_id", "g1")]
    builder.order.assert_called_once_with("expiration_date", desc=True, nullsfirst=False)
    assert grants == [AccessGrant(
        id="7", user_id="u1", game_id="g1",
        start_date=datetime(2024, 4, 15, 12, tzinfo=timezone.utc),
        expiration_date=datetime(2024, 5, 15, 12, tzinfo=timezone.utc),
        is_active=True, payment_id="cs_1",
    )]


def test_find_grants_null_expiration_comes_last():
    client, _ = _mk_client([
        {"id": 1, "user_id": "u1", "game_id": "g1", "expiration_date": None, "is_active": True},
        {"id": 2, "user_id": "u1", "game_id": "g1", "expiration_date": "2024-06-01T00:00:00Z", "is_active": True},
        {"id": 3, "user_id": "u1", "game_id": "g1", "expiration_date": "2024-05-20T00:00:00Z", "is_active": True},
    ])
    grants = SupabaseAccessStore(client).find_grants("u1", "g1")
    assert [g.id for g in grants] == ["2", "3", "1"]


def test_find_grants_order_sends_nullslast():
    # query builder postgrest réel (sans exécution): paramètre order envoyé à PostgREST
    query = (
        SyncPostgrestClient("https://project.supabase.test/rest/v1")
        .from_("user_game_access")
        .select("*")
        .order("expiration_date", desc=True, nullsfirst=False)
    )
    assert "order=expiration_date.desc.nullslast" in str(query.params)


def test_find_grants_empty():
    client, _ = _mk_client(None)
    assert SupabaseAccessStore(client).find_grants("u1", "g1") == []


def test_update_grant_payload():
    client, builder = _mk_client()
    SupabaseAccessStore(client).update_grant(
        "7", expiration_date=datetime(2024, 6, 15, 12, tzinfo=timezone.utc), payment_id="cs_2",
    )
    builder.update.assert_called_once_with({
        "expiration_date": "2024-06-15T12:00:00+00:00",
        "is_active": True,
        "payment_id": "cs_2",
    })
    builder.eq.assert_called_once_with("id", "7")
    builder.execute.assert_called_once()


def test_insert_grant_returns_stored_row():
    now = datetime(2024, 5, 15, 12, tzinfo=timezone.utc)
    grant = AccessGrant(user_id="u1", game_id="g1", start_date=now, expiration_date=now, payment_id="cs_1")
    client, builder = _mk_client([dict(grant.to_row(), id="42")])

    stored = SupabaseAccessStore(client).insert_grant(grant)

    row = builder.insert.call_args.args[0]
    assert "id" not in row
    assert row["start_date"] == "2024-05-15T12:00:00+00:00"
    assert stored.id == "42"


def test_insert_grant_without_returned_rows():
    now = datetime(2024, 5, 15, 12, tzinfo=timezone.utc)
    grant = AccessGrant(user_id="u1", game_id="g1", start_date=now, expiration_date=now)
    client, _ = _mk_client([])
    assert SupabaseAccessStore(client).insert_grant(grant) is grant


def test_payment_exists():
    client, builder = _mk_client([{"id": 1}])
    assert SupabaseAccessStore(client).payment_exists("cs_1") is True
    client.table.assert_called_with("payment_history")
    builder.eq.assert_called_once_with("payment_session_id", "cs_1")

    client, _ = _mk_client([])
    assert SupabaseAccessStore(client).payment_exists("cs_1") is False


def test_insert_payment_row():
    record = PaymentRecord(
        user_id="u1", game_id="g1", payment_session_id="cs_1", payment_intent_id="pi_1",
        amount_minor_units=1999, currency="usd", payment_method="card", payment_status="paid",
        raw_payload={"id": "cs_1"},
    )
    client, builder = _mk_client()
    SupabaseAccessStore(client).insert_payment(record)
    assert builder.insert.call_args.args[0] == {
        "user_id": "u1",
        "game_id": "g1",
        "payment_session_id": "cs_1",
        "payment_intent_id": "pi_1",
        "amount_cents": 1999,
        "currency": "usd",
        "payment_method": "card",
        "payment_status": "paid",
        "raw_payload": {"id": "cs_1"},
    }


def test_store_errors_propagate():
    client, builder = _mk_client()
    builder.execute.side_effect = RuntimeError("boom")
    with pytest.raises(RuntimeError):
        SupabaseAccessStore(client).find_grants("u1", "g1")
