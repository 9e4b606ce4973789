"""Domain models - pure Python dataclasses representing checkout entities"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from bdn_checkout.domain.fees import BusinessNet


@dataclass(frozen=True)
class PricingTier:
    """Bulk-purchase breakpoint with its discount applied"""

    tier_id: str
    quantity: Decimal
    unit_price: Decimal  # quantity * base rate, before discount
    discount_percent: Decimal
    savings: Decimal
    final_price: Decimal
    is_featured: bool = False
    base_rate: Decimal = Decimal("1")  # catalog price of one BLKD


class InstrumentKind(str, Enum):
    """Balance holder types known to the wallet"""

    PRIMARY = "primary"
    REWARDS = "myimpact"
    BANK_ACCOUNT = "bankaccount"
    CREDIT_CARD = "creditcard"
    GIFT_CARD = "giftcard"
    BUSINESS = "business"
    NONPROFIT = "nonprofit"


@dataclass(frozen=True)
class PaymentInstrument:
    """Wallet, linked account or card, normalized at ingestion"""

    id: str
    kind: InstrumentKind
    currency: str
    balance: Decimal
    spendable_balance: Decimal
    available_balance: Optional[Decimal] = None
    name: str = ""
    is_active: bool = True
    is_default: bool = False
    is_backup: bool = False


@dataclass(frozen=True)
class SettlementPlan:
    """Split of a total charge between rewards credit and one fiat instrument"""

    total_due: Decimal
    credit_applied: Decimal
    remaining_due: Decimal
    selected_instrument_id: Optional[str]
    is_satisfied: bool
    currency: str


@dataclass(frozen=True)
class CheckoutTarget:
    """Secondary entity a checkout pays: business, nonprofit or recipient"""

    id: str
    name: str
    kind: str
    has_plus_business: bool = False  # BDN+ Business halves the platform fee


@dataclass(frozen=True)
class CheckoutContext:
    """Selections accumulated over a checkout session"""

    currency: str = "USD"
    target: Optional[CheckoutTarget] = None
    amount: Decimal = Decimal("0")
    tier: Optional[PricingTier] = None
    use_rewards: bool = False
    selected_instrument_id: Optional[str] = None
    note: str = ""


@dataclass(frozen=True)
class Receipt:
    """Outcome of a successful settlement submission"""

    transaction_id: str
    timestamp: datetime
    final_amount: Decimal
    credit_applied: Decimal
    instrument_amount: Decimal
    instrument_id: Optional[str]
    currency: str
    idempotency_key: str
    payout: Optional[BusinessNet] = None  # business/nonprofit side of the payment


class FailureReason(str, Enum):
    """Why a settlement submission did not succeed"""

    DECLINED = "declined"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    GATEWAY_UNAVAILABLE = "gateway_unavailable"
    TIMEOUT = "timeout"
    INTERNAL_ERROR = "internal_error"

    @property
    def charged(self) -> Optional[bool]:
        """False when the ledger confirmed nothing was charged, None when unknown"""
        if self in (FailureReason.DECLINED, FailureReason.INSUFFICIENT_FUNDS):
            return False
        return None


@dataclass(frozen=True)
class SettlementFailure:
    """Reason code carried by the error state"""

    reason: FailureReason
    message: str


class Step(str, Enum):
    """Checkout steps in protocol order, then the two terminal states"""

    SELECT_TARGET = "select_target"
    SPECIFY_AMOUNT = "specify_amount"
    CHOOSE_PAYMENT_METHOD = "choose_payment_method"
    REVIEW = "review"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (Step.SUCCESS, Step.ERROR)
