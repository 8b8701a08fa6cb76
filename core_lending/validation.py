"""
Input Validation Module

Rejects out-of-range loan parameters before any calculation runs. Bounds come
from LendingConfig; the pre-flight overflow check keeps the engine from
producing a schedule the caller could not store.
"""

from decimal import Decimal
from typing import Optional

from .config import LendingConfig, resolve_config
from .exceptions import (
    BelowMinimumAmountError, ValueOverflowError, ProjectedOverflowError,
    RateOutOfRangeError, TermOutOfRangeError, GracePeriodOutOfRangeError,
)
from .money import to_decimal, HUNDRED, ZERO


def validate_loan_parameters(
    principal,
    annual_rate,
    term_months: int,
    config: Optional[LendingConfig] = None
) -> None:
    """
    Validate principal, annual rate and term before amortization.

    Args:
        principal: Loan principal
        annual_rate: Annual interest rate in percent (12 means 12%)
        term_months: Loan term in months
        config: Validation bounds (global config when omitted)

    Raises:
        InvalidAmountError: principal or rate is not a number
        BelowMinimumAmountError: principal under the minimum loan amount
        ValueOverflowError: principal above the largest storable value
        RateOutOfRangeError: rate outside 0-100
        TermOutOfRangeError: term not in 1..max_term_months
        ProjectedOverflowError: estimated totals would not be storable
    """
    cfg = resolve_config(config)
    principal = to_decimal(principal)
    annual_rate = to_decimal(annual_rate)

    if principal < cfg.min_loan_amount:
        raise BelowMinimumAmountError(
            f"Minimum loan amount is {cfg.min_loan_amount:,}, got {principal:,}"
        )

    if principal > cfg.max_storable_value:
        raise ValueOverflowError(
            f"Principal {principal:,} exceeds storage limit of {cfg.max_storable_value:,}"
        )

    if annual_rate < ZERO or annual_rate > HUNDRED:
        raise RateOutOfRangeError("Annual interest rate must be between 0% and 100%")

    if term_months <= 0 or term_months > cfg.max_term_months:
        raise TermOutOfRangeError(
            f"Term must be between 1 and {cfg.max_term_months} months, got {term_months}"
        )

    term = Decimal(term_months)
    estimated_interest = principal * (annual_rate / HUNDRED) * (term / Decimal('12'))
    estimated_total = principal + estimated_interest
    estimated_periodic = estimated_total / term

    if estimated_total > cfg.max_storable_value:
        raise ProjectedOverflowError(
            f"Loan parameters would result in total amount ({estimated_total:.2f}) "
            f"exceeding storage limit. Reduce the amount or the term."
        )

    if estimated_periodic > cfg.max_storable_value:
        raise ProjectedOverflowError(
            f"Estimated periodic payment ({estimated_periodic:.2f}) "
            f"would exceed storage limit. Increase the term or reduce the amount."
        )


def validate_grace_period(grace_period_months: int, config: Optional[LendingConfig] = None) -> None:
    """Grace period must be between 0 and max_grace_period_months"""
    cfg = resolve_config(config)
    if grace_period_months < 0 or grace_period_months > cfg.max_grace_period_months:
        raise GracePeriodOutOfRangeError(
            f"Grace period must be between 0 and {cfg.max_grace_period_months} months"
        )
