"""User entitlement records and Stripe webhook effects."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ingestion.db.models import UserAccount

logger = logging.getLogger(__name__)


def get_user(session: Session, uid: str) -> Optional[UserAccount]:
    return session.get(UserAccount, uid)


def ensure_user(session: Session, uid: str, *, email: Optional[str] = None) -> UserAccount:
    user = get_user(session, uid)
    if user is None:
        user = UserAccount(uid=uid, email=email, is_pro=False)
        session.add(user)
    elif email and not user.email:
        user.email = email
    session.flush()
    return user


def is_pro(session: Session, uid: Optional[str]) -> bool:
    if not uid:
        return False
    user = get_user(session, uid)
    return bool(user and user.is_pro)


def set_pro_status(
    session: Session,
    uid: str,
    is_pro_value: bool,
    *,
    plan_type: Optional[str] = None,
    customer_id: Optional[str] = None,
) -> UserAccount:
    """Grant or revoke pro; `pro_since` is set on grant and cleared on revoke."""
    user = ensure_user(session, uid)
    was_pro = user.is_pro
    user.is_pro = is_pro_value
    if is_pro_value:
        if not was_pro or user.pro_since is None:
            user.pro_since = datetime.now(timezone.utc)
        if plan_type:
            user.plan_type = plan_type
    else:
        user.pro_since = None
    if customer_id:
        user.stripe_customer_id = customer_id
    user.updated_at = datetime.now(timezone.utc)
    session.flush()
    logger.info("billing.pro_status", extra={"uid": uid, "is_pro": is_pro_value, "plan_type": plan_type})
    return user


def _metadata(obj: Dict[str, Any]) -> Dict[str, Any]:
    return obj.get("metadata") or {}


def handle_webhook_event(session: Session, event: Dict[str, Any]) -> Optional[str]:
    """Apply a verified Stripe event. Returns the affected uid, or None when ignored."""
    kind = event.get("type")
    obj = (event.get("data") or {}).get("object") or {}
    if kind == "checkout.session.completed":
        meta = _metadata(obj)
        uid = meta.get("userId") or obj.get("client_reference_id")
        if not uid:
            logger.warning("billing.webhook.no_user", extra={"event_type": kind})
            return None
        set_pro_status(
            session,
            uid,
            True,
            plan_type=meta.get("planType"),
            customer_id=obj.get("customer"),
        )
        return uid
    if kind == "customer.subscription.deleted":
        uid = _metadata(obj).get("userId")
        if not uid and obj.get("customer"):
            user = session.execute(
                select(UserAccount).where(UserAccount.stripe_customer_id == obj["customer"])
            ).scalars().first()
            uid = user.uid if user else None
        if not uid:
            logger.warning("billing.webhook.no_user", extra={"event_type": kind})
            return None
        set_pro_status(session, uid, False)
        return uid
    logger.info("billing.webhook.ignored", extra={"event_type": kind})
    return None
