"""
Loan Terms Module

Derives the number of installments from disbursement and maturity dates and
assembles the binding LoanTerms snapshot at approval time:
validation -> installment count -> amortization -> first payment date.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .amortization import InterestMethod, compute_amortization, first_payment_date, periodic_rate
from .config import LendingConfig, resolve_config
from .exceptions import InvalidDateOrderError, TermOutOfRangeError
from .frequency import RepaymentFrequency, add_months, months_between
from .logging_config import get_logger
from .money import to_decimal, round_money, within_cent
from .validation import validate_loan_parameters, validate_grace_period

logger = get_logger("lending.terms")

MAX_INSTALLMENTS = 480


def derive_installment_count(
    disbursement_date: date,
    maturity_date: date,
    frequency: RepaymentFrequency,
    max_installments: int = MAX_INSTALLMENTS
) -> int:
    """
    Number of installments between disbursement and maturity.

    Day-based frequencies divide the elapsed days by the period length;
    calendar frequencies divide the calendar month difference (day of month
    ignored) by the period length in months. Both round up.

    Raises:
        InvalidDateOrderError: maturity is not after disbursement
        TermOutOfRangeError: count falls outside 1..max_installments
    """
    if maturity_date <= disbursement_date:
        raise InvalidDateOrderError(
            f"Maturity date {maturity_date.isoformat()} must be after "
            f"disbursement date {disbursement_date.isoformat()}"
        )

    count = frequency.count_between(disbursement_date, maturity_date)

    if count < 1:
        raise TermOutOfRangeError(
            "Calculated installment count must be positive. Check disbursement and maturity dates."
        )
    if count > max_installments:
        raise TermOutOfRangeError(
            f"Calculated installment count ({count}) exceeds maximum allowed ({max_installments})"
        )
    return count


def term_months_between(disbursement_date: date, maturity_date: date) -> int:
    """Calendar months spanned by the loan, partial month rounded up, at least 1"""
    months = months_between(disbursement_date, maturity_date)
    if add_months(disbursement_date, months) < maturity_date:
        months += 1
    return max(1, months)


@dataclass(frozen=True)
class LoanTerms:
    """Binding repayment terms computed at approval"""
    principal: Decimal
    annual_interest_rate: Decimal          # Percent, e.g. 12 for 12%
    interest_method: InterestMethod
    repayment_frequency: RepaymentFrequency
    disbursement_date: date
    agreed_maturity_date: date
    grace_period_months: int
    total_interest_amount: Decimal
    total_amount_to_be_repaid: Decimal
    periodic_installment_amount: Decimal
    total_number_of_installments: int
    agreed_first_payment_date: date

    def __post_init__(self):
        if not within_cent(self.total_amount_to_be_repaid, self.principal + self.total_interest_amount):
            raise ValueError(
                f"Total to be repaid {self.total_amount_to_be_repaid} does not equal "
                f"principal {self.principal} + interest {self.total_interest_amount}"
            )
        if self.total_number_of_installments < 1:
            raise ValueError("Loan must have at least one installment")
        if self.agreed_first_payment_date >= self.agreed_maturity_date:
            raise ValueError("First payment date must be before maturity date")

    @property
    def periodic_rate(self) -> Decimal:
        """Interest rate per repayment period as a fraction"""
        return periodic_rate(self.annual_interest_rate, self.repayment_frequency)

    @property
    def term_in_months(self) -> int:
        return term_months_between(self.disbursement_date, self.agreed_maturity_date)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for the caller to persist"""
        return {
            'principal': str(self.principal),
            'annual_interest_rate': str(self.annual_interest_rate),
            'interest_method': self.interest_method.value,
            'repayment_frequency': self.repayment_frequency.value,
            'disbursement_date': self.disbursement_date.isoformat(),
            'agreed_maturity_date': self.agreed_maturity_date.isoformat(),
            'grace_period_months': self.grace_period_months,
            'term_in_months': self.term_in_months,
            'total_interest_amount': str(self.total_interest_amount),
            'total_amount_to_be_repaid': str(self.total_amount_to_be_repaid),
            'periodic_installment_amount': str(self.periodic_installment_amount),
            'total_number_of_installments': self.total_number_of_installments,
            'agreed_first_payment_date': self.agreed_first_payment_date.isoformat()
        }


def calculate_loan_terms(
    principal,
    annual_rate,
    disbursement_date: date,
    maturity_date: date,
    interest_method: InterestMethod,
    repayment_frequency: RepaymentFrequency,
    grace_period_months: int = 0,
    config: Optional[LendingConfig] = None
) -> LoanTerms:
    """
    Compute binding loan terms from principal, rate, dates and method.

    Args:
        principal: Amount disbursed
        annual_rate: Annual interest rate in percent
        disbursement_date: Date funds are released
        maturity_date: Agreed maturity date
        interest_method: FLAT or REDUCING_BALANCE
        repayment_frequency: Installment cadence
        grace_period_months: Calendar months before the first period starts
        config: Validation bounds (global config when omitted)

    Returns:
        LoanTerms snapshot

    Raises:
        LendingError subclasses for any rejected input; nothing is partially
        computed when an error is raised.
    """
    cfg = resolve_config(config)

    if maturity_date <= disbursement_date:
        raise InvalidDateOrderError(
            f"Maturity date {maturity_date.isoformat()} must be after "
            f"disbursement date {disbursement_date.isoformat()}"
        )

    principal = to_decimal(principal)
    annual_rate = to_decimal(annual_rate)
    term_months = term_months_between(disbursement_date, maturity_date)

    validate_loan_parameters(principal, annual_rate, term_months, cfg)
    validate_grace_period(grace_period_months, cfg)

    installment_count = derive_installment_count(
        disbursement_date, maturity_date, repayment_frequency, cfg.max_installments
    )

    amortization = compute_amortization(
        principal, annual_rate, installment_count, repayment_frequency, interest_method
    )

    first_payment = first_payment_date(
        disbursement_date, repayment_frequency, grace_period_months, maturity_date
    )

    terms = LoanTerms(
        principal=round_money(principal),
        annual_interest_rate=annual_rate,
        interest_method=interest_method,
        repayment_frequency=repayment_frequency,
        disbursement_date=disbursement_date,
        agreed_maturity_date=maturity_date,
        grace_period_months=grace_period_months,
        total_interest_amount=amortization.total_interest,
        total_amount_to_be_repaid=round_money(principal + amortization.total_interest),
        periodic_installment_amount=amortization.periodic_installment,
        total_number_of_installments=installment_count,
        agreed_first_payment_date=first_payment
    )

    logger.debug(
        "Calculated loan terms",
        extra={"extra": {
            "installments": installment_count,
            "total_interest": str(terms.total_interest_amount),
            "periodic_installment": str(terms.periodic_installment_amount),
            "first_payment_date": first_payment.isoformat()
        }}
    )

    return terms
