"""In-process Catalog and Ledger collaborators backed by mock data"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from bdn_checkout.config import settings
from bdn_checkout.domain.eligibility import ingest_instruments
from bdn_checkout.domain.models import (
    CheckoutContext,
    CheckoutTarget,
    PaymentInstrument,
    PricingTier,
    Receipt,
    SettlementPlan,
)
from bdn_checkout.domain.pricing import BLKD_PURCHASE_TIERS

MOCK_WALLETS: Dict[str, List[Dict[str, Any]]] = {
    "user-1": [
        {"id": "1", "type": "primary", "name": "Primary Wallet", "currency": "USD", "balance": "1250.75", "isActive": True, "isDefault": True},
        {"id": "2", "type": "myimpact", "name": "MyImpact Rewards", "currency": "BLKD", "balance": "3420", "isActive": True},
        {"id": "4", "type": "bankaccount", "name": "Chase Checking", "currency": "USD", "balance": "5432.18", "availableBalance": "5432.18", "isActive": True},
        {"id": "5", "type": "creditcard", "name": "Visa Card", "currency": "USD", "balance": "0", "availableBalance": "5000", "isActive": True},
    ],
}

MOCK_TARGETS: Dict[str, Dict[str, Any]] = {
    "1": {"name": "Soul Food Kitchen", "kind": "business"},
    "2": {"name": "Black Excellence Barbershop", "kind": "business", "hasPlusBusiness": True},
    "3": {"name": "African Heritage Books", "kind": "business"},
    "np-1": {"name": "Community Youth Fund", "kind": "nonprofit"},
}


class InMemoryCatalog:
    """Catalog repository serving fixed wallets, tiers and targets"""

    def __init__(
        self,
        wallets: Optional[Mapping[str, Sequence[Mapping[str, Any]]]] = None,
        tiers: Sequence[PricingTier] = BLKD_PURCHASE_TIERS,
        targets: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ):
        self.wallets = MOCK_WALLETS if wallets is None else wallets
        self.tiers = tuple(tiers)
        self.targets = MOCK_TARGETS if targets is None else targets

    async def list_instruments(self, user_id: str) -> List[PaymentInstrument]:
        return ingest_instruments(self.wallets.get(user_id, []))

    async def list_tiers(self) -> Sequence[PricingTier]:
        return self.tiers

    async def get_target(self, target_id: str) -> Optional[CheckoutTarget]:
        record = self.targets.get(target_id)
        if record is None:
            return None
        return CheckoutTarget(
            id=target_id,
            name=record["name"],
            kind=record["kind"],
            has_plus_business=bool(record.get("hasPlusBusiness", False)),
        )


class SimulatedLedger:
    """
    Ledger that accepts every settlement after a fixed delay.

    Mirrors the app's current behavior: no gateway, unconditional success,
    transaction ids of the form TXN-<epoch millis>.
    """

    def __init__(self, delay_seconds: float | None = None):
        self.delay_seconds = settings.simulated_settlement_delay_seconds if delay_seconds is None else delay_seconds
        self.submissions: List[str] = []  # idempotency keys, in submission order

    async def submit(self, plan: SettlementPlan, context: CheckoutContext, idempotency_key: str) -> Receipt:
        self.submissions.append(idempotency_key)
        await asyncio.sleep(self.delay_seconds)
        return Receipt(
            transaction_id=f"TXN-{int(time.time() * 1000)}",
            timestamp=datetime.now(timezone.utc),
            final_amount=plan.total_due,
            credit_applied=plan.credit_applied,
            instrument_amount=plan.remaining_due,
            instrument_id=plan.selected_instrument_id,
            currency=plan.currency,
            idempotency_key=idempotency_key,
        )
