"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidQuantity(DomainException):
    """Requested purchase quantity is negative, non-finite or not a number"""

    pass


class UnknownTier(DomainException):
    """Preset tier is not part of the pricing catalog"""

    def __init__(self, tier_id: str):
        super().__init__(f"Unknown pricing tier: {tier_id}")
        self.tier_id = tier_id


class InvalidInstrumentData(DomainException):
    """Payment instrument record is malformed or inconsistent"""

    pass


class CatalogAPIError(DomainException):
    """Catalog service returned an error or is unavailable"""

    pass


class StepValidationFailed(DomainException):
    """Current checkout step's completion gate does not hold"""

    def __init__(self, step: str, message: str):
        super().__init__(message)
        self.step = step
        self.message = message


class UnderfundedPlan(StepValidationFailed):
    """Rewards credit plus the selected instrument cannot cover the charge"""

    def __init__(self, remaining_due, currency: str):
        super().__init__(
            "choose_payment_method",
            f"Select a {currency} payment method with at least {remaining_due} available",
        )
        self.remaining_due = remaining_due
        self.currency = currency


class InvalidTransition(DomainException):
    """Transition is not permitted from the session's current step"""

    pass


class SettlementSubmissionFailed(DomainException):
    """Ledger rejected the settlement or could not be reached"""

    def __init__(self, failure):
        super().__init__(failure.message)
        self.failure = failure
