"""Payment instrument ingestion and eligibility filtering"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from bdn_checkout.domain.exceptions import InvalidInstrumentData
from bdn_checkout.domain.models import InstrumentKind, PaymentInstrument
from bdn_checkout.utils.money import to_decimal

# Linked cards report the statement balance in `balance` and the open
# credit line in `availableBalance`, so the two are unrelated.
_CREDIT_LINE_KINDS = {InstrumentKind.CREDIT_CARD}

# Aliases seen in catalog payloads
_KIND_ALIASES = {"bank": InstrumentKind.BANK_ACCOUNT, "card": InstrumentKind.CREDIT_CARD}


class IneligibilityReason(str, Enum):
    REWARDS_ACCOUNT = "rewards_account"
    INACTIVE = "inactive"
    CURRENCY_MISMATCH = "currency_mismatch"
    INSUFFICIENT_FUNDS = "insufficient_funds"


@dataclass(frozen=True)
class EligibilityReport:
    """Advisory eligibility verdict for display"""

    instrument: PaymentInstrument
    reason: Optional[IneligibilityReason]

    @property
    def eligible(self) -> bool:
        return self.reason is None


def _parse_kind(raw: str) -> InstrumentKind:
    if raw in _KIND_ALIASES:
        return _KIND_ALIASES[raw]
    return InstrumentKind(raw)


def ingest_instrument(record: Mapping[str, Any]) -> PaymentInstrument:
    """
    Normalize a catalog wallet record into a PaymentInstrument.

    This is the only place the `availableBalance ?? balance` fallback is
    applied; everything downstream reads `spendable_balance`.

    Raises:
        InvalidInstrumentData: On missing fields, unknown kinds or an
            available balance above the balance for cash-like instruments
    """
    try:
        kind = _parse_kind(record["type"])
        balance = to_decimal(record["balance"])
        raw_available = record.get("availableBalance")
        available = to_decimal(raw_available) if raw_available is not None else None
        instrument = PaymentInstrument(
            id=str(record["id"]),
            kind=kind,
            currency=record["currency"],
            balance=balance,
            spendable_balance=available if available is not None else balance,
            available_balance=available,
            name=record.get("name", ""),
            is_active=bool(record.get("isActive", False)),
            is_default=bool(record.get("isDefault", False)),
            is_backup=bool(record.get("isBackup", False)),
        )
    except (KeyError, ValueError, TypeError) as e:
        raise InvalidInstrumentData(f"Invalid wallet record {record.get('id', '?')}: {e}") from e

    if available is not None and kind not in _CREDIT_LINE_KINDS and available > balance:
        raise InvalidInstrumentData(
            f"Wallet {instrument.id}: available balance {available} exceeds balance {balance}"
        )
    return instrument


def ingest_instruments(records: Iterable[Mapping[str, Any]]) -> List[PaymentInstrument]:
    return [ingest_instrument(record) for record in records]


def ineligibility_reason(
    instrument: PaymentInstrument,
    currency: str,
    required_amount: Decimal,
) -> Optional[IneligibilityReason]:
    """Return why an instrument cannot cover the amount, or None if it can"""
    if instrument.kind is InstrumentKind.REWARDS:
        return IneligibilityReason.REWARDS_ACCOUNT
    if not instrument.is_active:
        return IneligibilityReason.INACTIVE
    if instrument.currency != currency:
        return IneligibilityReason.CURRENCY_MISMATCH
    if instrument.spendable_balance < required_amount:
        return IneligibilityReason.INSUFFICIENT_FUNDS
    return None


def filter_eligible(
    instruments: Sequence[PaymentInstrument],
    currency: str,
    required_amount: Decimal,
) -> List[PaymentInstrument]:
    """
    Keep active, currency-matching, sufficiently funded fallback instruments.

    Rewards-credit accounts are never fallback instruments. Input order is
    preserved and an empty result is a normal outcome.
    """
    return [i for i in instruments if ineligibility_reason(i, currency, required_amount) is None]


def explain_eligibility(
    instruments: Sequence[PaymentInstrument],
    currency: str,
    required_amount: Decimal,
) -> List[EligibilityReport]:
    return [
        EligibilityReport(instrument=i, reason=ineligibility_reason(i, currency, required_amount))
        for i in instruments
    ]


def default_instrument(eligible: Sequence[PaymentInstrument]) -> Optional[PaymentInstrument]:
    """Pre-selection: the eligible instrument flagged default, if any"""
    return next((i for i in eligible if i.is_default), None)
