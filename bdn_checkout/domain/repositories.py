"""Collaborator interfaces injected into checkout sessions"""

from typing import List, Optional, Protocol, Sequence

from bdn_checkout.domain.models import (
    CheckoutContext,
    CheckoutTarget,
    PaymentInstrument,
    PricingTier,
    Receipt,
    SettlementPlan,
)


class CatalogRepository(Protocol):
    """Read side of the Catalog/Ledger service"""

    async def list_instruments(self, user_id: str) -> List[PaymentInstrument]:
        ...

    async def list_tiers(self) -> Sequence[PricingTier]:
        ...

    async def get_target(self, target_id: str) -> Optional[CheckoutTarget]:
        ...


class LedgerRepository(Protocol):
    """Settlement submission; the only asynchronous boundary of a checkout"""

    async def submit(self, plan: SettlementPlan, context: CheckoutContext, idempotency_key: str) -> Receipt:
        """
        Raises:
            SettlementSubmissionFailed: When the ledger rejects or cannot be reached
        """
        ...
