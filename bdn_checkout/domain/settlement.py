"""Split-source settlement: rewards credit first, then one fiat instrument"""

from decimal import Decimal
from typing import Any, Optional, Sequence

from bdn_checkout.domain.eligibility import filter_eligible
from bdn_checkout.domain.exceptions import UnderfundedPlan
from bdn_checkout.domain.models import InstrumentKind, PaymentInstrument, SettlementPlan
from bdn_checkout.utils.money import ZERO, to_decimal


def rewards_balance(instruments: Sequence[PaymentInstrument]) -> Decimal:
    """Spendable BLKD credit of the user's active rewards account, 0 if none"""
    for instrument in instruments:
        if instrument.kind is InstrumentKind.REWARDS and instrument.is_active:
            return instrument.spendable_balance
    return ZERO


def compute_settlement(
    total_due: Any,
    rewards_balance: Any,
    use_rewards: bool,
    selected_instrument: Optional[PaymentInstrument] = None,
    currency: str = "USD",
) -> SettlementPlan:
    """
    Derive the settlement plan from current inputs.

    Requirements:
    - Rewards credit (1 BLKD = 1 unit of the target currency) is applied
      first and fully: min(rewards_balance, total_due) when opted in
    - The residual is due from the selected instrument
    - Satisfied when nothing remains, or the instrument is active, in the
      target currency and can cover the residual

    Pure function: identical inputs always yield an identical plan.

    Example:
        total 100, credit 40 (opted in), card with 60 → remaining 60, satisfied
    """
    total = to_decimal(total_due)
    credit = to_decimal(rewards_balance)
    if total < 0 or credit < 0:
        raise ValueError(f"Amounts must not be negative (total={total}, rewards={credit})")

    credit_applied = min(credit, total) if use_rewards else ZERO
    remaining = max(total - credit_applied, ZERO)

    if remaining == 0:
        return SettlementPlan(
            total_due=total,
            credit_applied=credit_applied,
            remaining_due=remaining,
            selected_instrument_id=None,
            is_satisfied=True,
            currency=currency,
        )

    is_satisfied = bool(
        selected_instrument is not None
        and selected_instrument.kind is not InstrumentKind.REWARDS
        and selected_instrument.is_active
        and selected_instrument.currency == currency
        and selected_instrument.spendable_balance >= remaining
    )
    return SettlementPlan(
        total_due=total,
        credit_applied=credit_applied,
        remaining_due=remaining,
        selected_instrument_id=selected_instrument.id if selected_instrument else None,
        is_satisfied=is_satisfied,
        currency=currency,
    )


def has_settlement_path(
    total_due: Decimal,
    rewards_balance: Decimal,
    use_rewards: bool,
    instruments: Sequence[PaymentInstrument],
    currency: str,
) -> bool:
    """True if rewards cover the charge or some instrument can take the residual"""
    plan = compute_settlement(total_due, rewards_balance, use_rewards, currency=currency)
    if plan.remaining_due == 0:
        return True
    return bool(filter_eligible(instruments, currency, plan.remaining_due))


def require_satisfied(plan: SettlementPlan) -> SettlementPlan:
    if not plan.is_satisfied:
        raise UnderfundedPlan(plan.remaining_due, plan.currency)
    return plan
