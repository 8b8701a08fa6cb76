"""
Amortization Engine Module

Computes total interest and the periodic installment for flat and
reducing-balance (annuity) loans, and the first payment date after any
grace period.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from enum import Enum

from .exceptions import DegenerateAmortizationError, FirstPaymentAfterMaturityError, TermOutOfRangeError
from .frequency import RepaymentFrequency, add_months
from .money import to_decimal, round_money, non_negative, HUNDRED, ZERO


class InterestMethod(Enum):
    """Methods for charging interest"""
    FLAT = "flat"                            # Interest on original principal, equal every period
    REDUCING_BALANCE = "reducing_balance"    # Annuity: interest on remaining principal


@dataclass(frozen=True)
class AmortizationResult:
    """Total interest and periodic installment, both rounded to cents"""
    total_interest: Decimal
    periodic_installment: Decimal


def periodic_rate(annual_rate, frequency: RepaymentFrequency) -> Decimal:
    """Interest rate per repayment period as a fraction (not rounded)"""
    return to_decimal(annual_rate) / HUNDRED / Decimal(frequency.periods_per_year)


def compute_amortization(
    principal,
    annual_rate,
    installment_count: int,
    frequency: RepaymentFrequency,
    method: InterestMethod
) -> AmortizationResult:
    """
    Compute total interest and the periodic installment.

    FLAT charges interest on the original principal over the whole term and
    spreads principal plus interest evenly. REDUCING_BALANCE uses the
    standard annuity formula P * r(1+r)^n / ((1+r)^n - 1).

    Raises:
        TermOutOfRangeError: installment_count is not positive
        DegenerateAmortizationError: annuity denominator is zero
    """
    if installment_count <= 0:
        raise TermOutOfRangeError(f"Installment count must be positive, got {installment_count}")

    principal = to_decimal(principal)
    annual_rate = to_decimal(annual_rate)
    n = Decimal(installment_count)

    if method == InterestMethod.FLAT:
        term_years = n / Decimal(frequency.periods_per_year)
        total_interest = principal * (annual_rate / HUNDRED) * term_years
        installment = (principal + total_interest) / n
    elif method == InterestMethod.REDUCING_BALANCE:
        rate = periodic_rate(annual_rate, frequency)
        if rate == ZERO:
            installment = principal / n
            total_interest = ZERO
        else:
            factor = (Decimal('1') + rate) ** installment_count
            denominator = factor - Decimal('1')
            if denominator == ZERO:
                raise DegenerateAmortizationError(
                    f"Annuity denominator is zero for rate {rate} over {installment_count} periods"
                )
            installment = principal * (rate * factor) / denominator
            total_interest = installment * n - principal
    else:
        raise ValueError(f"Unsupported interest method: {method}")

    return AmortizationResult(
        total_interest=non_negative(round_money(total_interest)),
        periodic_installment=non_negative(round_money(installment))
    )


def first_payment_date(
    disbursement_date: date,
    frequency: RepaymentFrequency,
    grace_period_months: int,
    maturity_date: date
) -> date:
    """
    Disbursement plus the grace period (calendar months) plus one period.

    Raises:
        FirstPaymentAfterMaturityError: result is not strictly before maturity
    """
    start = add_months(disbursement_date, grace_period_months) if grace_period_months else disbursement_date
    first_payment = frequency.advance(start, 1)

    if first_payment >= maturity_date:
        raise FirstPaymentAfterMaturityError(
            f"First payment date {first_payment.isoformat()} must be before "
            f"maturity date {maturity_date.isoformat()}"
        )
    return first_payment
