"""Unit tests for the checkout state machine"""

import asyncio
import pytest
from dataclasses import replace
from decimal import Decimal
from bdn_checkout.config import settings
from bdn_checkout.domain.checkout import (
    Advance,
    CheckoutSession,
    CheckoutState,
    WalletSnapshot,
    initial_state,
    reduce,
)
from bdn_checkout.domain.eligibility import ingest_instruments
from bdn_checkout.domain.exceptions import (
    InvalidQuantity,
    InvalidTransition,
    SettlementSubmissionFailed,
    StepValidationFailed,
    UnderfundedPlan,
    UnknownTier,
)
from bdn_checkout.domain.flows import BLKD_PURCHASE, C2B_PAYMENT, TOP_UP
from bdn_checkout.domain.models import CheckoutTarget, FailureReason, SettlementFailure, Step
from bdn_checkout.infrastructure.repositories import SimulatedLedger

SOUL_FOOD = CheckoutTarget(id="1", name="Soul Food Kitchen", kind="business")


class DecliningLedger:
    """Ledger that rejects the first `failures` submissions"""

    def __init__(self, failures: int = 1):
        self.failures = failures
        self.keys = []
        self.accepting = SimulatedLedger(delay_seconds=0)

    async def submit(self, plan, context, idempotency_key):
        self.keys.append(idempotency_key)
        if len(self.keys) <= self.failures:
            raise SettlementSubmissionFailed(SettlementFailure(FailureReason.DECLINED, "Card declined"))
        return await self.accepting.submit(plan, context, idempotency_key)


class HangingLedger:
    async def submit(self, plan, context, idempotency_key):
        await asyncio.sleep(5)


class BrokenLedger:
    async def submit(self, plan, context, idempotency_key):
        raise RuntimeError("boom")


@pytest.fixture
def instruments(wallet_records):
    return ingest_instruments(wallet_records)


@pytest.fixture
def top_up(instruments, ledger):
    return CheckoutSession(TOP_UP, instruments, ledger)


async def _to_review(session: CheckoutSession, amount="100") -> None:
    session.set_amount(amount)
    await session.advance()
    await session.advance()
    assert session.step is Step.REVIEW


async def test_select_target_gate(instruments, ledger):
    """Test a business must be chosen before entering an amount"""
    session = CheckoutSession(C2B_PAYMENT, instruments, ledger)

    with pytest.raises(StepValidationFailed):
        await session.advance()
    assert session.step is Step.SELECT_TARGET

    session.select_target(SOUL_FOOD)
    await session.advance()
    assert session.step is Step.SPECIFY_AMOUNT
    assert session.history == (Step.SELECT_TARGET,)


async def test_zero_amount_gate(top_up):
    """Test advancing with amount 0 is rejected and the step is unchanged"""
    with pytest.raises(StepValidationFailed) as exc:
        await top_up.advance()

    assert exc.value.step == "specify_amount"
    assert top_up.step is Step.SPECIFY_AMOUNT
    assert top_up.history == ()


async def test_amount_gate_requires_settlement_path(top_up):
    """Test no instrument can cover the amount"""
    top_up.set_amount("10000")

    with pytest.raises(StepValidationFailed):
        await top_up.advance()
    assert top_up.step is Step.SPECIFY_AMOUNT


async def test_default_instrument_is_preselected(top_up):
    top_up.set_amount("100")
    await top_up.advance()

    assert top_up.step is Step.CHOOSE_PAYMENT_METHOD
    assert top_up.context.selected_instrument_id == "1"
    assert top_up.plan.is_satisfied is True


async def test_underfunded_plan_blocks_payment_step(top_up):
    """Test the default wallet is not preselected when it cannot cover the charge"""
    top_up.set_amount("2000")
    await top_up.advance()
    assert top_up.context.selected_instrument_id is None
    assert [i.id for i in top_up.eligible_instruments()] == ["4"]

    with pytest.raises(UnderfundedPlan):
        await top_up.advance()
    assert top_up.step is Step.CHOOSE_PAYMENT_METHOD

    top_up.select_instrument("1")
    with pytest.raises(UnderfundedPlan):
        await top_up.advance()

    top_up.select_instrument("4")
    await top_up.advance()
    assert top_up.step is Step.REVIEW


async def test_retreat_restores_previous_step(instruments, ledger):
    session = CheckoutSession(C2B_PAYMENT, instruments, ledger)
    session.select_target(SOUL_FOOD)
    session.set_amount("20")
    await session.advance()
    await session.advance()

    session.retreat()
    assert session.step is Step.SPECIFY_AMOUNT
    session.retreat()
    assert session.step is Step.SELECT_TARGET
    assert session.context.target == SOUL_FOOD

    with pytest.raises(InvalidTransition):
        session.retreat()


async def test_currency_change_resets_instrument(top_up):
    top_up.set_amount("100")
    await top_up.advance()
    assert top_up.context.selected_instrument_id == "1"

    top_up.set_currency("EUR")

    assert top_up.context.selected_instrument_id is None
    assert top_up.plan.is_satisfied is False
    assert [i.id for i in top_up.eligible_instruments()] == ["6"]


async def test_rewards_recomputed_on_toggle(instruments, ledger):
    """Test toggling rewards re-derives the plan from current inputs"""
    session = CheckoutSession(C2B_PAYMENT, instruments, ledger)
    session.select_target(SOUL_FOOD)
    session.set_amount("100")  # + $10 service fee

    assert session.total_due == Decimal("110.00")
    assert session.plan.remaining_due == Decimal("110.00")

    session.set_use_rewards(True)
    assert session.plan.credit_applied == Decimal("40")
    assert session.plan.remaining_due == Decimal("70.00")

    session.set_use_rewards(False)
    assert session.plan.credit_applied == 0


async def test_successful_checkout(top_up, ledger):
    await _to_review(top_up)
    state = await top_up.advance()

    assert state.step is Step.SUCCESS
    assert top_up.outcome.final_amount == Decimal("100")
    assert top_up.outcome.instrument_id == "1"
    assert top_up.outcome.transaction_id.startswith("TXN-")
    assert len(ledger.submissions) == 1

    with pytest.raises(InvalidTransition):
        await top_up.advance()
    with pytest.raises(InvalidTransition):
        top_up.retreat()
    with pytest.raises(InvalidTransition):
        top_up.set_note("too late")


async def test_duplicate_advance_submits_once(instruments):
    """Test repeated confirmation while processing does not resubmit"""
    ledger = SimulatedLedger(delay_seconds=0.01)
    session = CheckoutSession(TOP_UP, instruments, ledger)
    await _to_review(session)

    await asyncio.gather(session.advance(), session.advance(), session.advance())

    assert len(ledger.submissions) == 1
    assert session.step is Step.SUCCESS


async def test_processing_is_read_only(instruments):
    ledger = SimulatedLedger(delay_seconds=0.05)
    session = CheckoutSession(TOP_UP, instruments, ledger)
    await _to_review(session)

    task = asyncio.ensure_future(session.advance())
    await asyncio.sleep(0)
    assert session.is_busy

    with pytest.raises(InvalidTransition):
        session.retreat()
    with pytest.raises(InvalidTransition):
        session.set_amount("5")

    await task
    assert session.step is Step.SUCCESS


async def test_declined_settlement_then_retry(instruments):
    """Test failure keeps the context and retry reuses the idempotency key"""
    ledger = DecliningLedger(failures=1)
    session = CheckoutSession(TOP_UP, instruments, ledger)
    await _to_review(session)

    state = await session.advance()
    assert state.step is Step.ERROR
    assert session.failure.reason is FailureReason.DECLINED
    assert session.failure.reason.charged is False
    assert session.context.amount == Decimal("100")

    session.retry()
    assert session.step is Step.REVIEW
    await session.advance()

    assert session.step is Step.SUCCESS
    assert ledger.keys[0] == ledger.keys[1]
    assert session.outcome.idempotency_key == ledger.keys[0]


async def test_changed_plan_gets_new_idempotency_key(instruments):
    ledger = DecliningLedger(failures=1)
    session = CheckoutSession(TOP_UP, instruments, ledger)
    await _to_review(session)
    await session.advance()

    session.retry()
    session.retreat()
    session.retreat()
    session.set_amount("90")
    await session.advance()
    await session.advance()
    await session.advance()

    assert session.step is Step.SUCCESS
    assert ledger.keys[0] != ledger.keys[1]


async def test_settlement_timeout(instruments):
    session = CheckoutSession(TOP_UP, instruments, HangingLedger(), settlement_timeout=0.01)
    await _to_review(session)

    await session.advance()

    assert session.step is Step.ERROR
    assert session.failure.reason is FailureReason.TIMEOUT
    assert session.failure.reason.charged is None


async def test_unexpected_ledger_error_resolves_to_error(instruments):
    session = CheckoutSession(TOP_UP, instruments, BrokenLedger())
    await _to_review(session)

    await session.advance()

    assert session.step is Step.ERROR
    assert session.failure.reason is FailureReason.INTERNAL_ERROR


async def test_reset_discards_everything(top_up):
    await _to_review(top_up)
    await top_up.advance()

    state = top_up.reset()

    assert state.step is Step.SPECIFY_AMOUNT
    assert state.history == ()
    assert state.receipt is None
    assert top_up.context.amount == 0


async def test_reset_during_processing_discards_outcome(instruments):
    ledger = SimulatedLedger(delay_seconds=0.05)
    session = CheckoutSession(TOP_UP, instruments, ledger)
    await _to_review(session)

    task = asyncio.ensure_future(session.advance())
    await asyncio.sleep(0)
    session.reset()
    await task

    assert session.step is Step.SPECIFY_AMOUNT
    assert session.outcome is None
    assert len(ledger.submissions) == 1


async def test_blkd_purchase_tiers(instruments, ledger):
    session = CheckoutSession(BLKD_PURCHASE, instruments, ledger)

    session.select_tier("blkd-500")
    assert session.total_due == Decimal("455")

    session.set_amount("1200")
    assert session.context.tier.discount_percent == 11
    assert session.total_due == Decimal("1068")

    with pytest.raises(UnknownTier):
        session.select_tier("blkd-42")
    with pytest.raises(InvalidQuantity):
        session.set_amount("-3")
    with pytest.raises(StepValidationFailed):
        session.set_use_rewards(True)


def test_reduce_is_pure(instruments):
    wallet = WalletSnapshot(tuple(instruments))
    state = initial_state(TOP_UP)
    state = replace(state, context=replace(state.context, amount=Decimal("10")))

    advanced = reduce(state, Advance(), TOP_UP, wallet)

    assert state.step is Step.SPECIFY_AMOUNT
    assert advanced.step is Step.CHOOSE_PAYMENT_METHOD
    assert advanced.history == (Step.SPECIFY_AMOUNT,)

    processing = replace(state, step=Step.PROCESSING)
    assert reduce(processing, Advance(), TOP_UP, wallet) is processing


def test_terminal_state_invariants():
    with pytest.raises(ValueError):
        CheckoutState(step=Step.SUCCESS, context=initial_state(TOP_UP).context)
    with pytest.raises(ValueError):
        CheckoutState(
            step=Step.REVIEW,
            context=initial_state(TOP_UP).context,
            failure=SettlementFailure(FailureReason.DECLINED, "no"),
        )


async def test_refresh_instruments_updates_plan(top_up, instrument_factory):
    top_up.set_amount("100")
    await top_up.advance()
    assert top_up.plan.is_satisfied is True

    top_up.refresh_instruments([instrument_factory(id="1", balance="20", isDefault=True)])

    assert top_up.plan.is_satisfied is False
    with pytest.raises(UnderfundedPlan):
        await top_up.advance()


async def test_submission_rechecks_earlier_gates(top_up, ledger):
    """Test edits made after a step's gate passed are validated before submission"""
    await _to_review(top_up)
    top_up.set_amount("0")

    with pytest.raises(StepValidationFailed) as exc:
        await top_up.advance()

    assert exc.value.step == "specify_amount"
    assert top_up.step is Step.REVIEW
    assert ledger.submissions == []

    top_up.set_amount("2000")  # more than the preselected wallet holds
    with pytest.raises(UnderfundedPlan):
        await top_up.advance()
    assert top_up.step is Step.REVIEW

    top_up.set_amount("100")
    await top_up.advance()
    assert top_up.outcome.final_amount == Decimal("100")
    assert len(ledger.submissions) == 1


async def test_session_defaults_come_from_settings(instruments, monkeypatch):
    monkeypatch.setattr(settings, "settlement_timeout_seconds", 0.01)
    monkeypatch.setattr(settings, "default_currency", "EUR")

    session = CheckoutSession(TOP_UP, instruments, HangingLedger())
    assert session.context.currency == "EUR"

    session.set_amount("100")
    await session.advance()
    session.select_instrument("6")
    await session.advance()
    await session.advance()

    assert session.failure.reason is FailureReason.TIMEOUT
    assert session.failure.message == "Settlement did not complete within 0.01s"
