"""Checkout session state machine shared by every purchase flow"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, List, Optional, Sequence, Tuple, Union

from bdn_checkout.config import settings
from bdn_checkout.domain.eligibility import (
    EligibilityReport,
    default_instrument,
    explain_eligibility,
    filter_eligible,
)
from bdn_checkout.domain.exceptions import (
    InvalidTransition,
    SettlementSubmissionFailed,
    StepValidationFailed,
)
from bdn_checkout.domain.fees import BusinessNet
from bdn_checkout.domain.flows import CheckoutFlow
from bdn_checkout.domain.models import (
    CheckoutContext,
    CheckoutTarget,
    FailureReason,
    PaymentInstrument,
    PricingTier,
    Receipt,
    SettlementFailure,
    SettlementPlan,
    Step,
)
from bdn_checkout.domain.pricing import BLKD_PURCHASE_TIERS, parse_quantity, resolve_tier, select_preset_tier
from bdn_checkout.domain.repositories import CatalogRepository, LedgerRepository
from bdn_checkout.domain.settlement import (
    compute_settlement,
    has_settlement_path,
    require_satisfied,
    rewards_balance,
)
from bdn_checkout.infrastructure.observability.logging import log_checkout_outcome
from bdn_checkout.infrastructure.observability.metrics import (
    record_outcome,
    record_session_started,
    record_validation_failure,
    settlement_latency_histogram,
)


@dataclass(frozen=True)
class WalletSnapshot:
    """User's instruments as loaded from the catalog; read-only to checkout"""

    instruments: Tuple[PaymentInstrument, ...] = ()

    @property
    def rewards_balance(self) -> Decimal:
        return rewards_balance(self.instruments)

    def find(self, instrument_id: Optional[str]) -> Optional[PaymentInstrument]:
        return next((i for i in self.instruments if i.id == instrument_id), None)


@dataclass(frozen=True)
class CheckoutState:
    """
    Snapshot of a session, tagged by `step`.

    `receipt` exists only in SUCCESS and `failure` only in ERROR;
    `submitted_plan` is the plan frozen when review was confirmed.
    """

    step: Step
    context: CheckoutContext
    history: Tuple[Step, ...] = ()
    submitted_plan: Optional[SettlementPlan] = None
    receipt: Optional[Receipt] = None
    failure: Optional[SettlementFailure] = None

    def __post_init__(self):
        if (self.receipt is not None) != (self.step is Step.SUCCESS):
            raise ValueError("receipt is required in, and only in, the success state")
        if (self.failure is not None) != (self.step is Step.ERROR):
            raise ValueError("failure is required in, and only in, the error state")


# Events
@dataclass(frozen=True)
class Advance:
    pass


@dataclass(frozen=True)
class Retreat:
    pass


@dataclass(frozen=True)
class Reset:
    pass


@dataclass(frozen=True)
class Retry:
    pass


@dataclass(frozen=True)
class SettlementSucceeded:
    receipt: Receipt


@dataclass(frozen=True)
class SettlementFailed:
    failure: SettlementFailure


Event = Union[Advance, Retreat, Reset, Retry, SettlementSucceeded, SettlementFailed]


def initial_state(flow: CheckoutFlow, currency: str = "USD") -> CheckoutState:
    return CheckoutState(step=flow.initial_step, context=CheckoutContext(currency=currency))


def plan_for(flow: CheckoutFlow, context: CheckoutContext, wallet: WalletSnapshot) -> SettlementPlan:
    """Re-derive the settlement plan from the context's current selections"""
    return compute_settlement(
        flow.price(context),
        wallet.rewards_balance,
        context.use_rewards and flow.allows_rewards,
        wallet.find(context.selected_instrument_id),
        currency=context.currency,
    )


def _check_gate(flow: CheckoutFlow, step: Step, context: CheckoutContext, wallet: WalletSnapshot) -> None:
    if step is Step.SELECT_TARGET:
        if context.target is None:
            raise StepValidationFailed(step.value, f"Please select a {flow.target_kind or 'target'}")

    elif step is Step.SPECIFY_AMOUNT:
        total_due = flow.price(context)
        if context.amount <= 0 or total_due <= 0:
            raise StepValidationFailed(step.value, "Please enter a valid amount")
        use_rewards = context.use_rewards and flow.allows_rewards
        if not has_settlement_path(total_due, wallet.rewards_balance, use_rewards, wallet.instruments, context.currency):
            raise StepValidationFailed(step.value, f"No {context.currency} wallets with sufficient balance")

    elif step is Step.CHOOSE_PAYMENT_METHOD:
        require_satisfied(plan_for(flow, context, wallet))


def _preselect_instrument(flow: CheckoutFlow, context: CheckoutContext, wallet: WalletSnapshot) -> CheckoutContext:
    if context.selected_instrument_id is not None:
        return context
    plan = plan_for(flow, context, wallet)
    choice = default_instrument(filter_eligible(wallet.instruments, context.currency, plan.remaining_due))
    return replace(context, selected_instrument_id=choice.id) if choice else context


def reduce(state: CheckoutState, event: Event, flow: CheckoutFlow, wallet: WalletSnapshot) -> CheckoutState:
    """
    Pure transition function for checkout sessions.

    Advancing checks the gate of the step being left. Review has no gate of
    its own; leaving it for processing is the single point where the gates
    of every step in `history` are checked again. The context stays editable
    until submission.

    Raises:
        StepValidationFailed: Advance attempted while a gate does not hold
            (UnderfundedPlan on the payment step)
        InvalidTransition: Event not permitted from the current step
    """
    step = state.step

    if isinstance(event, Reset):
        return initial_state(flow, state.context.currency)

    if isinstance(event, Advance):
        if step is Step.PROCESSING:
            return state  # one submission in flight at a time
        if step.is_terminal:
            raise InvalidTransition(f"Cannot advance from {step.value}; reset the session")

        _check_gate(flow, step, state.context, wallet)
        next_step = flow.next_step(step)
        if next_step is Step.PROCESSING:
            for earlier in state.history:
                _check_gate(flow, earlier, state.context, wallet)
        context = state.context
        if next_step is Step.CHOOSE_PAYMENT_METHOD:
            context = _preselect_instrument(flow, context, wallet)
        submitted_plan = plan_for(flow, context, wallet) if next_step is Step.PROCESSING else None
        return replace(
            state,
            step=next_step,
            context=context,
            history=state.history + (step,),
            submitted_plan=submitted_plan,
        )

    if isinstance(event, Retreat):
        if step is Step.PROCESSING or step.is_terminal:
            raise InvalidTransition(f"Cannot go back from {step.value}")
        if not state.history:
            raise InvalidTransition("Already at the first step")
        return replace(state, step=state.history[-1], history=state.history[:-1])

    if isinstance(event, Retry):
        if step is not Step.ERROR:
            raise InvalidTransition(f"Nothing to retry from {step.value}")
        # history ends with REVIEW, pushed when the submission started
        return replace(
            state,
            step=state.history[-1],
            history=state.history[:-1],
            submitted_plan=None,
            failure=None,
        )

    if isinstance(event, (SettlementSucceeded, SettlementFailed)):
        if step is not Step.PROCESSING:
            raise InvalidTransition(f"No settlement in flight at {step.value}")
        if isinstance(event, SettlementSucceeded):
            return replace(state, step=Step.SUCCESS, receipt=event.receipt)
        return replace(state, step=Step.ERROR, failure=event.failure)

    raise TypeError(f"Unknown checkout event: {event!r}")


class CheckoutSession:
    """
    Stateful driver around `reduce` for one user flow.

    Context setters and transitions are rejected while a settlement is in
    flight or after a terminal outcome; `reset()` is always permitted.
    """

    def __init__(
        self,
        flow: CheckoutFlow,
        instruments: Sequence[PaymentInstrument],
        ledger: LedgerRepository,
        tiers: Sequence[PricingTier] = BLKD_PURCHASE_TIERS,
        currency: str | None = None,
        settlement_timeout: float | None = None,
        session_id: Optional[str] = None,
    ):
        self.flow = flow
        self.wallet = WalletSnapshot(tuple(instruments))
        self.ledger = ledger
        self.tiers = tuple(tiers)
        if settlement_timeout is None:
            settlement_timeout = settings.settlement_timeout_seconds
        self.settlement_timeout = settlement_timeout
        self.session_id = session_id or str(uuid.uuid4())
        self._state = initial_state(flow, currency or settings.default_currency)
        self._generation = 0
        self._last_attempt: Optional[Tuple[SettlementPlan, CheckoutContext, str]] = None
        record_session_started(flow.name)

    @classmethod
    async def start(
        cls,
        flow: CheckoutFlow,
        user_id: str,
        catalog: CatalogRepository,
        ledger: LedgerRepository,
        target_id: Optional[str] = None,
        **kwargs: Any,
    ) -> "CheckoutSession":
        """
        Open a session with the user's instruments and the tier catalog.

        When `target_id` is given (deep link to a business), the target is
        preselected and the session starts on the amount step.
        """
        instruments = await catalog.list_instruments(user_id)
        if flow.tiered and "tiers" not in kwargs:
            kwargs["tiers"] = await catalog.list_tiers()
        session = cls(flow, instruments, ledger, **kwargs)

        if target_id is not None and flow.requires_target:
            target = await catalog.get_target(target_id)
            if target is not None:
                session.select_target(target)
                await session.advance()
        return session

    # Queries
    @property
    def state(self) -> CheckoutState:
        return self._state

    @property
    def step(self) -> Step:
        return self._state.step

    @property
    def context(self) -> CheckoutContext:
        return self._state.context

    @property
    def history(self) -> Tuple[Step, ...]:
        return self._state.history

    @property
    def outcome(self) -> Optional[Receipt]:
        return self._state.receipt

    @property
    def failure(self) -> Optional[SettlementFailure]:
        return self._state.failure

    @property
    def is_busy(self) -> bool:
        return self._state.step is Step.PROCESSING

    @property
    def total_due(self) -> Decimal:
        return self.flow.price(self.context)

    @property
    def plan(self) -> SettlementPlan:
        if self._state.submitted_plan is not None:
            return self._state.submitted_plan
        return plan_for(self.flow, self.context, self.wallet)

    @property
    def rewards_balance(self) -> Decimal:
        return self.wallet.rewards_balance

    @property
    def payout(self) -> Optional[BusinessNet]:
        return self.flow.payout(self.context)

    def eligible_instruments(self) -> List[PaymentInstrument]:
        return filter_eligible(self.wallet.instruments, self.context.currency, self.plan.remaining_due)

    def eligibility_report(self) -> List[EligibilityReport]:
        return explain_eligibility(self.wallet.instruments, self.context.currency, self.plan.remaining_due)

    # Context edits
    def _edit(self, **changes: Any) -> None:
        if self.is_busy or self.step.is_terminal:
            raise InvalidTransition(f"Session is read-only at {self.step.value}")
        self._state = replace(self._state, context=replace(self.context, **changes))

    def select_target(self, target: CheckoutTarget) -> None:
        self._edit(target=target)

    def set_amount(self, amount: Any) -> None:
        """
        Raises:
            InvalidQuantity: Amount is negative, non-finite or not a number
        """
        if self.flow.tiered:
            tier = resolve_tier(amount, self.tiers)
            self._edit(amount=tier.quantity, tier=tier)
        else:
            self._edit(amount=parse_quantity(amount))

    def select_tier(self, tier_id: str) -> None:
        """
        Raises:
            UnknownTier: Tier is not in this session's catalog
        """
        tier = select_preset_tier(tier_id, self.tiers)
        self._edit(amount=tier.quantity, tier=tier)

    def set_currency(self, currency: str) -> None:
        # an instrument valid for one currency may be invalid for another
        self._edit(currency=currency, selected_instrument_id=None)

    def set_use_rewards(self, use_rewards: bool) -> None:
        if use_rewards and not self.flow.allows_rewards:
            raise StepValidationFailed(self.step.value, "Rewards credit cannot be applied to this purchase")
        self._edit(use_rewards=use_rewards)

    def select_instrument(self, instrument_id: Optional[str]) -> None:
        self._edit(selected_instrument_id=instrument_id)

    def set_note(self, note: str) -> None:
        self._edit(note=note)

    def refresh_instruments(self, instruments: Sequence[PaymentInstrument]) -> None:
        if self.is_busy:
            raise InvalidTransition("Cannot refresh wallets while a settlement is in flight")
        self.wallet = WalletSnapshot(tuple(instruments))

    # Transitions
    def _apply(self, event: Event) -> CheckoutState:
        self._state = reduce(self._state, event, self.flow, self.wallet)
        return self._state

    async def advance(self) -> CheckoutState:
        """
        Move to the next step if the current step's gate holds.

        Advancing from review submits the settlement and resolves to
        SUCCESS or ERROR before returning. A call made while that submission
        is in flight is a no-op.
        """
        if self.is_busy:
            logging.info(
                "Ignoring advance while settlement is in flight",
                extra={"session_id": self.session_id, "flow": self.flow.name},
            )
            return self._state

        from_step = self.step
        try:
            state = self._apply(Advance())
        except StepValidationFailed as e:
            record_validation_failure(self.flow.name, e.step)
            logging.warning(
                f"Step validation failed: {e.message}",
                extra={"session_id": self.session_id, "flow": self.flow.name, "step": e.step},
            )
            raise

        logging.debug(
            f"Checkout advanced {from_step.value} -> {state.step.value}",
            extra={"session_id": self.session_id, "flow": self.flow.name},
        )
        if state.step is Step.PROCESSING:
            await self._submit(state)
        return self._state

    def retreat(self) -> CheckoutState:
        return self._apply(Retreat())

    def retry(self) -> CheckoutState:
        """Return from ERROR to review with the context intact"""
        return self._apply(Retry())

    def reset(self) -> CheckoutState:
        """Abandon the session; an in-flight submission's outcome is discarded"""
        self._generation += 1
        self._last_attempt = None
        return self._apply(Reset())

    def _idempotency_key(self, plan: SettlementPlan, context: CheckoutContext) -> str:
        # A retry of an unchanged plan is the same charge intent
        if self._last_attempt is not None:
            last_plan, last_context, last_key = self._last_attempt
            if last_plan == plan and last_context == context:
                return last_key
        return str(uuid.uuid4())

    async def _submit(self, state: CheckoutState) -> None:
        plan = state.submitted_plan
        generation = self._generation
        key = self._idempotency_key(plan, state.context)
        self._last_attempt = (plan, state.context, key)
        start_time = time.time()

        try:
            with settlement_latency_histogram.time():
                receipt = await asyncio.wait_for(
                    self.ledger.submit(plan, state.context, key),
                    timeout=self.settlement_timeout,
                )
            if receipt.payout is None:
                receipt = replace(receipt, payout=self.flow.payout(state.context))
            event: Event = SettlementSucceeded(receipt)
        except SettlementSubmissionFailed as e:
            event = SettlementFailed(e.failure)
        except asyncio.TimeoutError:
            event = SettlementFailed(
                SettlementFailure(
                    FailureReason.TIMEOUT,
                    f"Settlement did not complete within {self.settlement_timeout}s",
                )
            )
        except Exception as e:
            logging.error(f"Unexpected settlement error: {e}", extra={"session_id": self.session_id})
            event = SettlementFailed(SettlementFailure(FailureReason.INTERNAL_ERROR, "Unexpected settlement error"))

        if generation != self._generation:
            logging.warning(
                "Discarding settlement outcome for an abandoned session",
                extra={"session_id": self.session_id, "flow": self.flow.name},
            )
            return

        self._apply(event)
        duration_ms = (time.time() - start_time) * 1000
        if isinstance(event, SettlementSucceeded):
            record_outcome(self.flow.name, "success")
            log_checkout_outcome(
                self.session_id, self.flow.name, "success", str(plan.total_due), duration_ms,
                transaction_id=event.receipt.transaction_id,
            )
        else:
            record_outcome(self.flow.name, "error", event.failure.reason.value)
            log_checkout_outcome(
                self.session_id, self.flow.name, "error", str(plan.total_due), duration_ms,
                reason=event.failure.reason.value,
            )
