from __future__ import annotations

from pathlib import Path

import pytest

from billing.accounts import ensure_user, get_user, handle_webhook_event, is_pro, set_pro_status
from ingestion.db.session import init_schema, session_scope
from ingestion.settings import reset_settings_cache


@pytest.fixture(autouse=True)
def _db(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("POSTGRES_DSN", f"sqlite:///{tmp_path / 'billing.db'}")
    monkeypatch.setenv("INGESTION_REDIS_URL", "redis://localhost:6379/0")
    reset_settings_cache()
    init_schema()
    yield
    reset_settings_cache()


def test_anonymous_and_unknown_users_are_free():
    with session_scope() as session:
        assert is_pro(session, None) is False
        assert is_pro(session, "nobody") is False


def test_set_pro_status_grants_and_revokes():
    with session_scope() as session:
        ensure_user(session, "u1", email="u1@example.com")
        user = set_pro_status(session, "u1", True, plan_type="monthly", customer_id="cus_1")
        assert user.is_pro is True
        assert user.pro_since is not None
        assert user.stripe_customer_id == "cus_1"

    with session_scope() as session:
        assert is_pro(session, "u1") is True
        user = set_pro_status(session, "u1", False)
        assert user.pro_since is None
        assert user.plan_type == "monthly"
        assert get_user(session, "u1").email == "u1@example.com"

    with session_scope() as session:
        assert is_pro(session, "u1") is False


def test_checkout_completed_grants_pro():
    event = {
        "type": "checkout.session.completed",
        "data": {"object": {"customer": "cus_9", "metadata": {"userId": "u9", "planType": "annual"}}},
    }

    with session_scope() as session:
        assert handle_webhook_event(session, event) == "u9"

    with session_scope() as session:
        user = get_user(session, "u9")
        assert user.is_pro is True
        assert user.plan_type == "annual"
        assert user.stripe_customer_id == "cus_9"


def test_subscription_deleted_revokes_by_customer_id():
    with session_scope() as session:
        set_pro_status(session, "u2", True, customer_id="cus_2")

    event = {"type": "customer.subscription.deleted", "data": {"object": {"customer": "cus_2"}}}
    with session_scope() as session:
        assert handle_webhook_event(session, event) == "u2"

    with session_scope() as session:
        assert is_pro(session, "u2") is False


def test_unhandled_or_unattributed_events_are_ignored():
    with session_scope() as session:
        assert handle_webhook_event(session, {"type": "invoice.paid", "data": {"object": {}}}) is None
        assert handle_webhook_event(session, {"type": "checkout.session.completed", "data": {"object": {}}}) is None
        assert (
            handle_webhook_event(
                session, {"type": "customer.subscription.deleted", "data": {"object": {"customer": "cus_unknown"}}}
            )
            is None
        )
