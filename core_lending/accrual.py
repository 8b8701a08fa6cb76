"""
Balance & Accrual Engine Module

Recomputes outstanding principal, accrued interest, days in arrears and
classification from a loan's static terms and its authoritative payment
history. Nothing is accumulated across runs: every recomputation starts from
the persisted terms, so re-running is idempotent and order-independent.
"""

from decimal import Decimal
from datetime import datetime, date
from dataclasses import dataclass, field
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union
import uuid

from .amortization import InterestMethod
from .classification import LoanStatus, classify
from .config import LendingConfig, resolve_config
from .exceptions import InvalidAmountError
from .logging_config import get_logger, log_action
from .money import to_decimal, round_money, non_negative, HUNDRED, ZERO
from .schedule import RepaymentScheduleEntry
from .terms import LoanTerms

logger = get_logger("lending.accrual")

DAYS_PER_YEAR = Decimal('365')
DAYS_PER_MONTH = Decimal('30')


@dataclass(frozen=True)
class PaymentRecord:
    """Payment allocation as recorded by the ledger"""
    principal_paid: Decimal
    interest_paid: Decimal
    amount_paid: Decimal
    payment_date: date


@dataclass
class LoanRecord:
    """
    Persisted static fields of a loan, as loaded by the caller.

    Fields may arrive as strings, numbers, dates or None; they are parsed at
    recomputation time and a loan with missing or unparsable required fields
    is skipped rather than failed.
    """
    loan_id: str
    principal: Any = None
    annual_interest_rate: Any = None
    interest_method: Any = None
    disbursement_date: Any = None
    term_in_months: Any = None
    total_interest_amount: Any = None
    repayment_frequency: Any = None
    agreed_maturity_date: Any = None
    status: Any = None                        # Status from the previous run
    accrued_interest_to_date: Any = ZERO      # Accrued interest from the previous run
    collateral_value: Any = ZERO
    payments: List[PaymentRecord] = field(default_factory=list)
    schedule: List[RepaymentScheduleEntry] = field(default_factory=list)

    @classmethod
    def from_terms(
        cls,
        loan_id: str,
        terms: LoanTerms,
        payments: Iterable[PaymentRecord] = (),
        schedule: Iterable[RepaymentScheduleEntry] = (),
        status: Optional[LoanStatus] = None,
        accrued_interest_to_date: Decimal = ZERO,
        collateral_value: Decimal = ZERO
    ) -> 'LoanRecord':
        return cls(
            loan_id=loan_id,
            principal=terms.principal,
            annual_interest_rate=terms.annual_interest_rate,
            interest_method=terms.interest_method,
            disbursement_date=terms.disbursement_date,
            term_in_months=terms.term_in_months,
            total_interest_amount=terms.total_interest_amount,
            repayment_frequency=terms.repayment_frequency,
            agreed_maturity_date=terms.agreed_maturity_date,
            status=status,
            accrued_interest_to_date=accrued_interest_to_date,
            collateral_value=collateral_value,
            payments=list(payments),
            schedule=list(schedule)
        )


@dataclass(frozen=True)
class LoanFinancialState:
    """Live balances and classification as of a date"""
    outstanding_principal: Decimal
    accrued_interest_to_date: Decimal
    days_in_arrears: int
    status: LoanStatus

    @property
    def balance_outstanding(self) -> Decimal:
        return self.outstanding_principal + self.accrued_interest_to_date

    def to_dict(self) -> Dict[str, Any]:
        """All fields together, for a single atomic write by the caller"""
        return {
            'outstanding_principal': str(self.outstanding_principal),
            'accrued_interest_to_date': str(self.accrued_interest_to_date),
            'days_in_arrears': self.days_in_arrears,
            'status': self.status.value
        }


@dataclass(frozen=True)
class Computed:
    state: LoanFinancialState


@dataclass(frozen=True)
class Skipped:
    """Not enough data to compute; distinct from a failure"""
    reason: str


RecomputeResult = Union[Computed, Skipped]


@dataclass(frozen=True)
class _StaticTerms:
    principal: Decimal
    annual_interest_rate: Decimal
    interest_method: InterestMethod
    disbursement_date: date
    term_in_months: Optional[int]
    total_interest_amount: Optional[Decimal]


def recompute_balances(
    loan: Union[LoanRecord, LoanTerms],
    payments: Sequence[PaymentRecord],
    schedule: Sequence[RepaymentScheduleEntry],
    as_of_date: date
) -> RecomputeResult:
    """
    Recompute a loan's financial state from terms and payment history.

    Args:
        loan: Persisted loan fields (or approved LoanTerms)
        payments: Payment history from the ledger
        schedule: Repayment schedule entries with their paid amounts
        as_of_date: Date the state is computed for

    Returns:
        Computed(state), or Skipped(reason) when required static fields are
        missing or unparsable

    Raises:
        InvalidAmountError: a payment record holds a non-numeric amount
    """
    parsed = _parse_static_terms(loan)
    if isinstance(parsed, Skipped):
        return parsed

    total_principal_paid = sum((to_decimal(p.principal_paid) for p in payments), ZERO)
    total_interest_paid = sum((to_decimal(p.interest_paid) for p in payments), ZERO)

    outstanding = round_money(non_negative(parsed.principal - total_principal_paid))
    days_since_disbursement = max(0, (as_of_date - parsed.disbursement_date).days)
    days = Decimal(days_since_disbursement)

    if parsed.interest_method == InterestMethod.FLAT:
        total_interest = parsed.total_interest_amount
        daily_interest = total_interest / (Decimal(parsed.term_in_months) * DAYS_PER_MONTH)
        earned = min(daily_interest * days, total_interest)
    else:
        daily_rate = parsed.annual_interest_rate / HUNDRED / DAYS_PER_YEAR
        earned = outstanding * daily_rate * days

    accrued = round_money(non_negative(earned - total_interest_paid))
    arrears = days_in_arrears(schedule, as_of_date)

    return Computed(LoanFinancialState(
        outstanding_principal=outstanding,
        accrued_interest_to_date=accrued,
        days_in_arrears=arrears,
        status=classify(outstanding, arrears)
    ))


def days_in_arrears(schedule: Sequence[RepaymentScheduleEntry], as_of_date: date) -> int:
    """Days since the earliest unpaid installment fell due, 0 if none has"""
    overdue = [e.due_date for e in schedule if e.due_date < as_of_date and not e.is_fully_paid]
    if not overdue:
        return 0
    return (as_of_date - min(overdue)).days


@dataclass(frozen=True)
class LoanError:
    loan_id: str
    message: str


@dataclass(frozen=True)
class LoanSkip:
    loan_id: str
    reason: str


@dataclass(frozen=True)
class LoanOutcome:
    """Result of processing one loan in a batch"""
    loan_id: str
    state: Optional[LoanFinancialState] = None
    previous_status: Optional[LoanStatus] = None
    previous_accrued: Decimal = ZERO
    skipped_reason: Optional[str] = None
    error: Optional[str] = None


@dataclass
class AccrualBatchSummary:
    """Aggregate of a batch run"""
    loans_processed: int = 0
    total_interest_accrued: Decimal = ZERO
    loans_with_status_change: int = 0
    per_loan_errors: List[LoanError] = field(default_factory=list)
    skipped: List[LoanSkip] = field(default_factory=list)

    def add(self, outcome: LoanOutcome) -> None:
        """Merge one loan's outcome"""
        if outcome.error is not None:
            self.per_loan_errors.append(LoanError(outcome.loan_id, outcome.error))
        elif outcome.skipped_reason is not None:
            self.skipped.append(LoanSkip(outcome.loan_id, outcome.skipped_reason))
        else:
            self.loans_processed += 1
            self.total_interest_accrued += outcome.state.accrued_interest_to_date - outcome.previous_accrued
            if outcome.state.status != outcome.previous_status:
                self.loans_with_status_change += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'loans_processed': self.loans_processed,
            'total_interest_accrued': str(self.total_interest_accrued),
            'loans_with_status_change': self.loans_with_status_change,
            'per_loan_errors': [{'loan_id': e.loan_id, 'message': e.message} for e in self.per_loan_errors],
            'skipped': [{'loan_id': s.loan_id, 'reason': s.reason} for s in self.skipped]
        }


ResultHandler = Callable[[str, LoanFinancialState], None]


def run_accrual_batch(
    loans: Iterable[LoanRecord],
    as_of_date: Optional[date] = None,
    config: Optional[LendingConfig] = None,
    on_result: Optional[ResultHandler] = None
) -> AccrualBatchSummary:
    """
    Recompute every loan and summarize the run.

    Each loan is processed independently: a failure is recorded in
    per_loan_errors and processing continues. When on_result is given it is
    called once per computed loan with the full state; if it raises, the loan
    is recorded as failed.

    Args:
        loans: Loans to recompute
        as_of_date: Date of the run (today when omitted)
        config: Supplies batch_max_workers (global config when omitted)
        on_result: Caller persistence hook

    Returns:
        AccrualBatchSummary
    """
    cfg = resolve_config(config)
    as_of_date = as_of_date or date.today()
    loans = list(loans)
    run_id = str(uuid.uuid4())

    log_action(logger, "info", "Accrual batch started", action="accrual_batch_start",
               correlation_id=run_id,
               extra={"loans": len(loans), "as_of_date": as_of_date.isoformat()})

    def process(loan: LoanRecord) -> LoanOutcome:
        return _process_loan(loan, as_of_date, on_result)

    if cfg.batch_max_workers > 1 and len(loans) > 1:
        with ThreadPoolExecutor(max_workers=cfg.batch_max_workers) as executor:
            outcomes = list(executor.map(process, loans))
    else:
        outcomes = [process(loan) for loan in loans]

    summary = AccrualBatchSummary()
    for outcome in outcomes:
        summary.add(outcome)
        if outcome.error is not None:
            log_action(logger, "warning", f"Accrual failed: {outcome.error}",
                       loan_id=outcome.loan_id, action="accrual_loan_failed",
                       correlation_id=run_id)
        elif outcome.skipped_reason is not None:
            log_action(logger, "debug", f"Accrual skipped: {outcome.skipped_reason}",
                       loan_id=outcome.loan_id, action="accrual_loan_skipped",
                       correlation_id=run_id)

    log_action(logger, "info", "Accrual batch completed", action="accrual_batch_complete",
               correlation_id=run_id,
               extra={
                   "loans_processed": summary.loans_processed,
                   "total_interest_accrued": str(summary.total_interest_accrued),
                   "loans_with_status_change": summary.loans_with_status_change,
                   "errors": len(summary.per_loan_errors),
                   "skipped": len(summary.skipped)
               })

    return summary


def _process_loan(loan: LoanRecord, as_of_date: date, on_result: Optional[ResultHandler]) -> LoanOutcome:
    loan_id = str(getattr(loan, 'loan_id', None))
    try:
        result = recompute_balances(loan, loan.payments, loan.schedule, as_of_date)
        if isinstance(result, Skipped):
            return LoanOutcome(loan_id=loan_id, skipped_reason=result.reason)

        if on_result is not None:
            on_result(loan_id, result.state)

        return LoanOutcome(
            loan_id=loan_id,
            state=result.state,
            previous_status=_parse_enum(LoanStatus, loan.status),
            previous_accrued=_parse_decimal(loan.accrued_interest_to_date) or ZERO
        )
    except Exception as e:
        # Recorded per loan so the rest of the batch continues
        return LoanOutcome(loan_id=loan_id, error=str(e) or type(e).__name__)


def _parse_static_terms(loan: Union[LoanRecord, LoanTerms]) -> Union[_StaticTerms, Skipped]:
    if isinstance(loan, LoanTerms):
        return _StaticTerms(
            principal=loan.principal,
            annual_interest_rate=loan.annual_interest_rate,
            interest_method=loan.interest_method,
            disbursement_date=loan.disbursement_date,
            term_in_months=loan.term_in_months,
            total_interest_amount=loan.total_interest_amount
        )

    disbursement_date = _parse_date(loan.disbursement_date)
    if disbursement_date is None:
        return Skipped("disbursement date is missing or unparsable")

    principal = _parse_decimal(loan.principal)
    if principal is None:
        return Skipped("principal is missing or unparsable")

    annual_rate = _parse_decimal(loan.annual_interest_rate)
    if annual_rate is None:
        return Skipped("annual interest rate is missing or unparsable")

    method = _parse_enum(InterestMethod, loan.interest_method)
    if method is None:
        return Skipped("interest method is missing or unparsable")

    term_in_months = None
    total_interest = None
    if method == InterestMethod.FLAT:
        term_in_months = _parse_int(loan.term_in_months)
        if term_in_months is None or term_in_months <= 0:
            return Skipped("term in months is missing or unparsable")
        total_interest = _parse_decimal(loan.total_interest_amount)
        if total_interest is None:
            return Skipped("total interest amount is missing or unparsable")

    return _StaticTerms(
        principal=principal,
        annual_interest_rate=annual_rate,
        interest_method=method,
        disbursement_date=disbursement_date,
        term_in_months=term_in_months,
        total_interest_amount=total_interest
    )


def _parse_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text.replace('Z', '+00:00')).date()
        except ValueError:
            return None
    return None


def _parse_decimal(value: Any) -> Optional[Decimal]:
    try:
        return to_decimal(value)
    except InvalidAmountError:
        return None


def _parse_int(value: Any) -> Optional[int]:
    number = _parse_decimal(value)
    if number is None or number != number.to_integral_value():
        return None
    return int(number)


def _parse_enum(enum_cls, value: Any) -> Optional[Enum]:
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return enum_cls(text.lower())
        except ValueError:
            pass
        try:
            return enum_cls[text.upper()]
        except KeyError:
            return None
    return None
