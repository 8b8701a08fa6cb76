"""Exception hierarchy for the lending engine.

Every error subclasses ValueError so callers that guard loan operations with
``except ValueError`` keep working.
"""


class LendingError(ValueError):
    """Base exception for all lending engine errors."""


class InvalidAmountError(LendingError):
    """Raised when a monetary or rate input is not a number."""


class BelowMinimumAmountError(LendingError):
    """Raised when the principal is under the configured minimum."""


class ValueOverflowError(LendingError):
    """Raised when the principal exceeds the largest storable value."""


class ProjectedOverflowError(LendingError):
    """Raised when estimated totals would exceed the largest storable value."""


class RateOutOfRangeError(LendingError):
    """Raised when the annual rate is outside 0-100%."""


class TermOutOfRangeError(LendingError):
    """Raised when the term or installment count is outside the allowed range."""


class GracePeriodOutOfRangeError(LendingError):
    """Raised when the grace period is negative or too long."""


class InvalidDateOrderError(LendingError):
    """Raised when the maturity date is not after the disbursement date."""


class FirstPaymentAfterMaturityError(LendingError):
    """Raised when the first payment would not fall before maturity."""


class DegenerateAmortizationError(LendingError):
    """Raised when the annuity formula denominator evaluates to zero."""


class InvalidStatusTransitionError(LendingError):
    """Raised when a loan status change is not allowed."""

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move loan from {getattr(current, 'value', current)} "
            f"to {getattr(target, 'value', target)}"
        )
