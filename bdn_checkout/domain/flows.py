"""Checkout flow definitions: step sequence and pricing per purchase type"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional, Tuple

from bdn_checkout.domain.fees import BusinessNet, business_net_amount, consumer_total_with_fee
from bdn_checkout.domain.models import CheckoutContext, Step
from bdn_checkout.utils.money import ZERO

WITH_TARGET = (Step.SELECT_TARGET, Step.SPECIFY_AMOUNT, Step.CHOOSE_PAYMENT_METHOD, Step.REVIEW)
WITHOUT_TARGET = WITH_TARGET[1:]


@dataclass(frozen=True)
class CheckoutFlow:
    """
    One concrete purchase flow.

    All flows share the same protocol; they differ in whether a target must
    be picked first, how the entered amount turns into a charge, and whether
    rewards credit may offset it.
    """

    name: str
    steps: Tuple[Step, ...]
    price: Callable[[CheckoutContext], Decimal]
    target_kind: Optional[str] = None
    tiered: bool = False  # amount is a BLKD quantity priced through the tier catalog
    allows_rewards: bool = True
    pays_organization: bool = False  # target receives the amount less the platform fee

    @property
    def initial_step(self) -> Step:
        return self.steps[0]

    @property
    def requires_target(self) -> bool:
        return Step.SELECT_TARGET in self.steps

    def next_step(self, step: Step) -> Step:
        """Step following `step`; the last editable step leads to processing"""
        index = self.steps.index(step)
        if index + 1 < len(self.steps):
            return self.steps[index + 1]
        return Step.PROCESSING

    def payout(self, context: CheckoutContext) -> Optional[BusinessNet]:
        """Gross/fee/net split for the receiving business or nonprofit"""
        if not self.pays_organization or context.target is None:
            return None
        return business_net_amount(context.amount, context.target.has_plus_business)


def _tier_price(context: CheckoutContext) -> Decimal:
    return context.tier.final_price if context.tier else ZERO


def _face_value(context: CheckoutContext) -> Decimal:
    return context.amount


def c2b_payment_flow(has_plus: bool = False) -> CheckoutFlow:
    """Business payment: the consumer service fee is added to the amount"""

    def price(context: CheckoutContext) -> Decimal:
        return consumer_total_with_fee(context.amount, has_plus).total

    return CheckoutFlow(name="c2b_payment", steps=WITH_TARGET, price=price, target_kind="business", pays_organization=True)


BLKD_PURCHASE = CheckoutFlow(
    name="blkd_purchase",
    steps=WITHOUT_TARGET,
    price=_tier_price,
    tiered=True,
    allows_rewards=False,
)

GIFT_CARD = CheckoutFlow(name="gift_card", steps=WITH_TARGET, price=_face_value, target_kind="recipient")

C2B_PAYMENT = c2b_payment_flow()

DONATION = CheckoutFlow(
    name="donation",
    steps=WITH_TARGET,
    price=_face_value,
    target_kind="nonprofit",
    pays_organization=True,
)

TOP_UP = CheckoutFlow(name="top_up", steps=WITHOUT_TARGET, price=_face_value, allows_rewards=False)
