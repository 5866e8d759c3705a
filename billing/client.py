"""Stripe REST client (form-encoded requests over httpx) and webhook verification."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from typing import Any, Dict, Literal, Optional

import httpx

from billing.settings import BillingSettings, get_billing_settings

logger = logging.getLogger(__name__)

PlanType = Literal["monthly", "annual"]


class BillingError(Exception):
    """Base billing error."""


class BillingNotConfigured(BillingError):
    """A required Stripe key or price id is missing."""


class BillingProviderError(BillingError):
    """Stripe rejected the request or could not be reached."""


class InvalidSignature(BillingError):
    """Webhook signature header is missing, stale or does not match."""


class StripeClient:
    def __init__(self, settings: Optional[BillingSettings] = None, *, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings or get_billing_settings()
        self._client = client

    def _secret(self) -> str:
        key = self.settings.stripe_secret_key
        if key is None or not key.get_secret_value().strip():
            raise BillingNotConfigured("Stripe not configured")
        return key.get_secret_value()

    def price_for(self, plan_type: str) -> str:
        price = (
            self.settings.stripe_annual_price_id
            if plan_type == "annual"
            else self.settings.stripe_monthly_price_id
        )
        if not price:
            logger.error(
                "billing.price_missing",
                extra={
                    "plan_type": plan_type,
                    "has_monthly": bool(self.settings.stripe_monthly_price_id),
                    "has_annual": bool(self.settings.stripe_annual_price_id),
                },
            )
            raise BillingNotConfigured("Price ID not configured")
        return price

    async def _post(self, path: str, data: Dict[str, Any]) -> Dict[str, Any]:
        secret = self._secret()
        url = f"{self.settings.stripe_api_base}/{path.lstrip('/')}"
        owns_client = self._client is None
        http = self._client or httpx.AsyncClient(timeout=float(self.settings.stripe_timeout_seconds))
        try:
            resp = await http.post(url, data=data, auth=(secret, ""))
        except httpx.HTTPError as exc:
            raise BillingProviderError(f"Stripe request failed: {exc}") from exc
        finally:
            if owns_client:
                await http.aclose()
        if resp.status_code >= 400:
            try:
                message = resp.json().get("error", {}).get("message")
            except ValueError:
                message = None
            raise BillingProviderError(message or f"Stripe error: {resp.status_code}")
        return resp.json()

    async def create_checkout_session(self, *, email: str, user_id: str, plan_type: str = "monthly") -> Dict[str, Any]:
        """Subscription checkout with a trial; returns {"sessionId", "url"}."""
        price = self.price_for(plan_type)
        base = self.settings.public_base_url
        data = {
            "mode": "subscription",
            "payment_method_types[0]": "card",
            "line_items[0][price]": price,
            "line_items[0][quantity]": "1",
            "success_url": f"{base}/dashboard?success=true",
            "cancel_url": f"{base}/pricing?canceled=true",
            "customer_email": email,
            "metadata[userId]": user_id,
            "metadata[planType]": plan_type,
            "subscription_data[trial_period_days]": str(self.settings.stripe_trial_days),
            "subscription_data[metadata][userId]": user_id,
            "subscription_data[metadata][planType]": plan_type,
        }
        body = await self._post("checkout/sessions", data)
        logger.info("billing.checkout.created", extra={"user_id": user_id, "plan_type": plan_type})
        return {"sessionId": body.get("id"), "url": body.get("url")}

    async def create_portal_session(self, *, customer_id: str, return_url: Optional[str] = None) -> Dict[str, Any]:
        body = await self._post(
            "billing_portal/sessions",
            {"customer": customer_id, "return_url": return_url or f"{self.settings.public_base_url}/account"},
        )
        return {"url": body.get("url")}


def compute_signature(payload: bytes, timestamp: int, secret: str) -> str:
    signed = f"{timestamp}.".encode() + payload
    return hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()


def verify_webhook(
    payload: bytes,
    signature_header: Optional[str],
    *,
    settings: Optional[BillingSettings] = None,
    now: Optional[float] = None,
) -> Dict[str, Any]:
    """Check a `Stripe-Signature` header (`t=...,v1=...`) and return the decoded event."""
    cfg = settings or get_billing_settings()
    if cfg.stripe_webhook_secret is None:
        raise BillingNotConfigured("Stripe webhook secret not configured")
    if not signature_header:
        raise InvalidSignature("missing signature header")

    timestamp: Optional[int] = None
    signatures = []
    for part in signature_header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError as exc:
                raise InvalidSignature("bad timestamp") from exc
        elif key == "v1":
            signatures.append(value)
    if timestamp is None or not signatures:
        raise InvalidSignature("malformed signature header")

    current = time.time() if now is None else now
    if abs(current - timestamp) > cfg.stripe_webhook_tolerance_seconds:
        raise InvalidSignature("timestamp outside tolerance")

    expected = compute_signature(payload, timestamp, cfg.stripe_webhook_secret.get_secret_value())
    if not any(hmac.compare_digest(expected, s) for s in signatures):
        raise InvalidSignature("signature mismatch")
    try:
        return json.loads(payload)
    except json.JSONDecodeError as exc:
        raise InvalidSignature("payload is not JSON") from exc
