"""Ledger settlement client with idempotency keys and connect-only retries"""

import httpx
import asyncio
import logging
from datetime import datetime
from typing import Any, Dict
from bdn_checkout.config import settings
from bdn_checkout.domain.exceptions import SettlementSubmissionFailed
from bdn_checkout.domain.models import CheckoutContext, FailureReason, Receipt, SettlementFailure, SettlementPlan
from bdn_checkout.utils.money import to_decimal

# Ledger rejection codes that guarantee nothing was charged
_REJECTION_REASONS = {
    "declined": FailureReason.DECLINED,
    "insufficient_funds": FailureReason.INSUFFICIENT_FUNDS,
}


def _failed(reason: FailureReason, message: str) -> SettlementSubmissionFailed:
    return SettlementSubmissionFailed(SettlementFailure(reason=reason, message=message))


def settlement_payload(plan: SettlementPlan, context: CheckoutContext) -> Dict[str, Any]:
    return {
        "total_due": str(plan.total_due),
        "credit_applied": str(plan.credit_applied),
        "remaining_due": str(plan.remaining_due),
        "instrument_id": plan.selected_instrument_id,
        "currency": plan.currency,
        "target_id": context.target.id if context.target else None,
        "tier_id": context.tier.tier_id if context.tier else None,
        "note": context.note,
    }


class LedgerClient:
    """Client for submitting settlements to the ledger service"""

    def __init__(self, base_url: str | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = base_url or settings.ledger_api_base
        self.timeout = settings.http_timeout_seconds
        self.max_retries = settings.ledger_connect_retries
        self.backoff_base = settings.ledger_backoff_base
        self.transport = transport

    async def submit(self, plan: SettlementPlan, context: CheckoutContext, idempotency_key: str) -> Receipt:
        """
        Submit a settlement plan to the ledger.

        Retry strategy:
        - Only connection failures are retried (the request never reached
          the ledger): backoff 0.5s, 1s, 2s (base * 2^attempt)
        - Timeouts and 5xx responses are not retried; the charge state is
          unknown and surfaces as a transient failure
        - The idempotency key is sent on every attempt

        Raises:
            SettlementSubmissionFailed: With a reason code for the error screen
        """
        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            while True:
                try:
                    response = await client.post(
                        f"{self.base_url}/ledger/settlements",
                        json=settlement_payload(plan, context),
                        headers={"Idempotency-Key": idempotency_key},
                    )
                    break

                except httpx.ConnectError as e:
                    attempt += 1
                    if attempt >= self.max_retries:
                        raise _failed(FailureReason.GATEWAY_UNAVAILABLE, "Ledger unreachable") from e

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    logging.warning(f"Ledger connect failed, retrying in {backoff}s", extra={"attempt": attempt})
                    await asyncio.sleep(backoff)

                except httpx.TimeoutException as e:
                    raise _failed(FailureReason.TIMEOUT, f"Ledger timeout after {self.timeout}s") from e
                except httpx.RequestError as e:
                    raise _failed(FailureReason.GATEWAY_UNAVAILABLE, f"Ledger request failed: {e}") from e

        if response.status_code >= 500:
            raise _failed(FailureReason.GATEWAY_UNAVAILABLE, f"Ledger error: {response.status_code}")
        if response.status_code >= 400:
            try:
                code = response.json().get("reason", "declined")
            except ValueError:
                code = "declined"
            reason = _REJECTION_REASONS.get(code, FailureReason.DECLINED)
            raise _failed(reason, f"Settlement rejected: {code}")

        try:
            data = response.json()
            return Receipt(
                transaction_id=data["transaction_id"],
                timestamp=datetime.fromisoformat(data["timestamp"]),
                final_amount=to_decimal(data["final_amount"]),
                credit_applied=to_decimal(data["credit_applied"]),
                instrument_amount=to_decimal(data["instrument_amount"]),
                instrument_id=data.get("instrument_id"),
                currency=data["currency"],
                idempotency_key=idempotency_key,
            )
        except (KeyError, ValueError, TypeError) as e:
            # The ledger accepted the charge; only the receipt is unreadable
            raise _failed(FailureReason.INTERNAL_ERROR, f"Invalid receipt from ledger: {e}") from e
