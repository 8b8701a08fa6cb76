"""
Repayment Schedule Module

Expands LoanTerms into an ordered, dated sequence of installments. Generation
is pure: the same terms always produce the same schedule. Rounding error
accumulated over the schedule is absorbed by the final installment.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Sequence

from .amortization import InterestMethod, compute_amortization
from .money import to_decimal, round_money, non_negative, within_cent, ZERO
from .terms import LoanTerms


class ScheduleEntryStatus(Enum):
    """Installment payment status"""
    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"


@dataclass
class RepaymentScheduleEntry:
    """Single installment in a repayment schedule"""
    installment_number: int
    due_date: date
    due_principal: Decimal
    due_interest: Decimal
    due_total: Decimal
    outstanding_principal_after: Decimal
    paid_principal: Decimal = ZERO
    paid_interest: Decimal = ZERO
    paid_total: Decimal = ZERO
    status: ScheduleEntryStatus = ScheduleEntryStatus.PENDING

    def __post_init__(self):
        # Validate that due total equals principal + interest
        if not within_cent(self.due_total, self.due_principal + self.due_interest):
            raise ValueError(f"Due total {self.due_total} does not equal "
                             f"principal {self.due_principal} + interest {self.due_interest}")

    @property
    def remaining_amount(self) -> Decimal:
        return self.due_total - self.paid_total

    @property
    def is_fully_paid(self) -> bool:
        return self.status == ScheduleEntryStatus.PAID or self.paid_total >= self.due_total

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for the caller to persist"""
        return {
            'installment_number': self.installment_number,
            'due_date': self.due_date.isoformat(),
            'due_principal': str(self.due_principal),
            'due_interest': str(self.due_interest),
            'due_total': str(self.due_total),
            'outstanding_principal_after': str(self.outstanding_principal_after),
            'paid_principal': str(self.paid_principal),
            'paid_interest': str(self.paid_interest),
            'paid_total': str(self.paid_total),
            'status': self.status.value
        }


def generate_schedule(terms: LoanTerms) -> List[RepaymentScheduleEntry]:
    """
    Generate the full repayment schedule for approved terms.

    FLAT loans repay principal/n and total_interest/n every period.
    REDUCING_BALANCE loans charge interest on the remaining principal and
    the rest of the fixed installment reduces principal.

    Returns:
        n entries numbered 1..n, due dates stepped from the first payment date
    """
    n = terms.total_number_of_installments

    if terms.interest_method == InterestMethod.FLAT:
        interest_for = _flat_interest(terms.total_interest_amount / Decimal(n))
    else:
        interest_for = _reducing_interest(terms.periodic_rate)

    return _amortize(
        terms=terms,
        principal=terms.principal,
        first_number=1,
        count=n,
        principal_for=_principal_for(terms.interest_method, terms.principal / Decimal(n),
                                     terms.periodic_installment_amount),
        interest_for=interest_for
    )


def regenerate_unpaid_tail(
    terms: LoanTerms,
    entries: Sequence[RepaymentScheduleEntry],
    outstanding_principal: Decimal
) -> List[RepaymentScheduleEntry]:
    """
    Rebuild the unpaid tail of a schedule after a loan amendment.

    Every entry up to and including the last one that has received any
    payment is kept unchanged, so recorded payments are never discarded.
    Principal still due on kept entries is taken out of the outstanding
    principal, and the rest is spread over the trailing unpaid installments,
    keeping their numbers and due dates. FLAT loans keep the share of total
    interest that belongs to the regenerated installments; REDUCING_BALANCE
    loans get a fresh annuity at the periodic rate.

    Returns:
        Kept entries followed by the regenerated tail
    """
    ordered = sorted(entries, key=lambda e: e.installment_number)
    last_paid = -1
    for index, entry in enumerate(ordered):
        if entry.paid_total > ZERO or entry.is_fully_paid:
            last_paid = index
    kept = ordered[:last_paid + 1]

    n = terms.total_number_of_installments
    remaining_count = n - len(kept)
    if remaining_count <= 0:
        return list(kept)

    still_due = sum((non_negative(e.due_principal - e.paid_principal)
                     for e in kept if not e.is_fully_paid), ZERO)
    outstanding = round_money(non_negative(to_decimal(outstanding_principal) - still_due))
    first_number = len(kept) + 1

    if terms.interest_method == InterestMethod.FLAT:
        tail_interest = terms.total_interest_amount * Decimal(remaining_count) / Decimal(n)
        interest_for = _flat_interest(tail_interest / Decimal(remaining_count))
        installment = ZERO
    else:
        interest_for = _reducing_interest(terms.periodic_rate)
        installment = compute_amortization(
            outstanding, terms.annual_interest_rate, remaining_count,
            terms.repayment_frequency, InterestMethod.REDUCING_BALANCE
        ).periodic_installment

    tail = _amortize(
        terms=terms,
        principal=outstanding,
        first_number=first_number,
        count=remaining_count,
        principal_for=_principal_for(terms.interest_method,
                                     outstanding / Decimal(remaining_count), installment),
        interest_for=interest_for
    )
    return list(kept) + tail


def refresh_entry_status(entry: RepaymentScheduleEntry, as_of_date: date) -> RepaymentScheduleEntry:
    """Recompute an installment's status from its payments and due date"""
    if entry.paid_total >= entry.due_total:
        status = ScheduleEntryStatus.PAID
    elif entry.paid_total > ZERO:
        status = ScheduleEntryStatus.PARTIALLY_PAID
    elif entry.due_date < as_of_date:
        status = ScheduleEntryStatus.OVERDUE
    else:
        status = ScheduleEntryStatus.PENDING
    return replace(entry, status=status)


def delayed_days(entry: RepaymentScheduleEntry, as_of_date: date) -> int:
    """Whole days an unpaid installment is past its due date"""
    if entry.is_fully_paid or entry.due_date >= as_of_date:
        return 0
    return (as_of_date - entry.due_date).days


def _amortize(
    terms: LoanTerms,
    principal: Decimal,
    first_number: int,
    count: int,
    principal_for: Callable[[Decimal], Decimal],
    interest_for: Callable[[Decimal], Decimal]
) -> List[RepaymentScheduleEntry]:
    schedule = []
    remaining = principal
    repaid = ZERO          # Unrounded principal repaid so far
    last_number = first_number + count - 1

    for number in range(first_number, last_number + 1):
        due_interest = round_money(interest_for(remaining))
        repaid_before = round_money(repaid)
        repaid = repaid + principal_for(due_interest)

        if number == last_number:
            # Absorb cumulative rounding residue, positive or negative
            due_principal = principal - repaid_before
        else:
            # Difference of rounded running totals
            due_principal = round_money(repaid) - repaid_before
        remaining = remaining - due_principal

        schedule.append(RepaymentScheduleEntry(
            installment_number=number,
            due_date=terms.repayment_frequency.advance(terms.agreed_first_payment_date, number - 1),
            due_principal=due_principal,
            due_interest=due_interest,
            due_total=due_principal + due_interest,
            outstanding_principal_after=remaining
        ))

    return schedule


def _principal_for(method: InterestMethod, equal_share: Decimal, installment: Decimal):
    if method == InterestMethod.FLAT:
        return lambda due_interest: equal_share
    return lambda due_interest: installment - due_interest


def _flat_interest(per_installment: Decimal):
    return lambda remaining: per_installment


def _reducing_interest(rate: Decimal):
    return lambda remaining: remaining * rate
