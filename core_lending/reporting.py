"""
Portfolio Reporting Module

Per-loan performance metrics and the daily portfolio snapshot: outstanding
principal by classification tier, loan-loss provisions, and portfolio at
risk (PAR) buckets.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Sequence

from .accrual import LoanFinancialState, PaymentRecord
from .classification import (
    ClassificationTier, LoanStatus, ProvisioningPolicy,
    net_exposure, tier_for_status,
)
from .money import to_decimal, round_money, HUNDRED, ZERO
from .schedule import RepaymentScheduleEntry
from .terms import LoanTerms


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    if whole <= ZERO:
        return ZERO
    return round_money(part / whole * HUNDRED)


@dataclass(frozen=True)
class LoanPerformanceMetrics:
    total_installments: int
    installments_paid: int
    installments_outstanding: int
    principal_repaid: Decimal
    balance_outstanding: Decimal
    payment_completion_rate: Decimal     # Percent of installments paid
    principal_recovery_rate: Decimal     # Percent of principal repaid


def loan_performance_metrics(
    terms: LoanTerms,
    schedule: Sequence[RepaymentScheduleEntry],
    payments: Sequence[PaymentRecord],
    state: LoanFinancialState
) -> LoanPerformanceMetrics:
    """Repayment progress for a single loan"""
    total = terms.total_number_of_installments
    paid = sum(1 for entry in schedule if entry.is_fully_paid)
    principal_repaid = round_money(sum((to_decimal(p.principal_paid) for p in payments), ZERO))

    return LoanPerformanceMetrics(
        total_installments=total,
        installments_paid=paid,
        installments_outstanding=max(0, total - paid),
        principal_repaid=principal_repaid,
        balance_outstanding=round_money(state.balance_outstanding),
        payment_completion_rate=_percent(Decimal(paid), Decimal(total)),
        principal_recovery_rate=_percent(principal_repaid, terms.principal)
    )


@dataclass(frozen=True)
class LoanPosition:
    """A loan's contribution to the portfolio snapshot"""
    loan_id: str
    status: LoanStatus
    outstanding_principal: Decimal
    days_in_arrears: int
    collateral_value: Decimal = ZERO
    provisions_held: Decimal = ZERO

    @classmethod
    def from_state(
        cls,
        loan_id: str,
        state: LoanFinancialState,
        collateral_value: Decimal = ZERO,
        provisions_held: Decimal = ZERO
    ) -> 'LoanPosition':
        return cls(
            loan_id=loan_id,
            status=state.status,
            outstanding_principal=state.outstanding_principal,
            days_in_arrears=state.days_in_arrears,
            collateral_value=collateral_value,
            provisions_held=provisions_held
        )


@dataclass
class PortfolioSnapshot:
    """Portfolio quality as of a date"""
    snapshot_date: date
    total_loans: int = 0
    total_portfolio_value: Decimal = ZERO
    loan_count_by_tier: Dict[ClassificationTier, int] = field(
        default_factory=lambda: {tier: 0 for tier in ClassificationTier})
    outstanding_by_tier: Dict[ClassificationTier, Decimal] = field(
        default_factory=lambda: {tier: ZERO for tier in ClassificationTier})
    total_provisions_required: Decimal = ZERO
    total_provisions_held: Decimal = ZERO
    provision_adequacy_ratio: Decimal = HUNDRED
    par_1_to_30: Decimal = ZERO
    par_31_to_90: Decimal = ZERO
    par_over_90: Decimal = ZERO
    par_ratio: Decimal = ZERO
    total_collateral_value: Decimal = ZERO
    collateral_coverage_ratio: Decimal = ZERO
    loans_with_overdue_payments: int = 0
    average_days_in_arrears: Decimal = ZERO

    @property
    def total_par(self) -> Decimal:
        return self.par_1_to_30 + self.par_31_to_90 + self.par_over_90

    def to_dict(self) -> Dict[str, Any]:
        return {
            'snapshot_date': self.snapshot_date.isoformat(),
            'total_loans': self.total_loans,
            'total_portfolio_value': str(self.total_portfolio_value),
            'loan_count_by_tier': {t.value: c for t, c in self.loan_count_by_tier.items()},
            'outstanding_by_tier': {t.value: str(a) for t, a in self.outstanding_by_tier.items()},
            'total_provisions_required': str(self.total_provisions_required),
            'total_provisions_held': str(self.total_provisions_held),
            'provision_adequacy_ratio': str(self.provision_adequacy_ratio),
            'par_breakdown': {
                'par_1_to_30': str(self.par_1_to_30),
                'par_31_to_90': str(self.par_31_to_90),
                'par_over_90': str(self.par_over_90),
                'total_par': str(self.total_par)
            },
            'par_ratio': str(self.par_ratio),
            'total_collateral_value': str(self.total_collateral_value),
            'collateral_coverage_ratio': str(self.collateral_coverage_ratio),
            'loans_with_overdue_payments': self.loans_with_overdue_payments,
            'average_days_in_arrears': str(self.average_days_in_arrears)
        }


def build_portfolio_snapshot(
    positions: Iterable[LoanPosition],
    as_of_date: Optional[date] = None,
    policy: Optional[ProvisioningPolicy] = None
) -> PortfolioSnapshot:
    """
    Aggregate loan positions into a portfolio snapshot.

    Provisions required are net exposure (outstanding less collateral)
    multiplied by the policy rate for the loan's tier. PAR buckets hold the
    outstanding principal of loans 1-30, 31-90 and over 90 days in arrears.
    """
    policy = policy or ProvisioningPolicy.from_config()
    snapshot = PortfolioSnapshot(snapshot_date=as_of_date or date.today())
    provisions_required = ZERO
    total_days_in_arrears = 0

    for position in positions:
        outstanding = to_decimal(position.outstanding_principal)
        collateral = to_decimal(position.collateral_value)
        tier = tier_for_status(position.status)

        snapshot.total_loans += 1
        snapshot.total_portfolio_value += outstanding
        snapshot.total_collateral_value += collateral
        snapshot.loan_count_by_tier[tier] += 1
        snapshot.outstanding_by_tier[tier] += outstanding
        snapshot.total_provisions_held += to_decimal(position.provisions_held)

        provisions_required += net_exposure(outstanding, collateral) * policy.rate_for(tier)

        days = position.days_in_arrears
        if days > 0:
            snapshot.loans_with_overdue_payments += 1
            total_days_in_arrears += days
            if days <= 30:
                snapshot.par_1_to_30 += outstanding
            elif days <= 90:
                snapshot.par_31_to_90 += outstanding
            else:
                snapshot.par_over_90 += outstanding

    snapshot.total_provisions_required = round_money(provisions_required)
    snapshot.outstanding_by_tier = {t: round_money(a) for t, a in snapshot.outstanding_by_tier.items()}
    snapshot.par_1_to_30 = round_money(snapshot.par_1_to_30)
    snapshot.par_31_to_90 = round_money(snapshot.par_31_to_90)
    snapshot.par_over_90 = round_money(snapshot.par_over_90)
    snapshot.total_portfolio_value = round_money(snapshot.total_portfolio_value)
    snapshot.total_collateral_value = round_money(snapshot.total_collateral_value)
    snapshot.total_provisions_held = round_money(snapshot.total_provisions_held)

    snapshot.par_ratio = _percent(snapshot.total_par, snapshot.total_portfolio_value)
    snapshot.collateral_coverage_ratio = _percent(snapshot.total_collateral_value,
                                                  snapshot.total_portfolio_value)
    if snapshot.total_provisions_required > ZERO:
        snapshot.provision_adequacy_ratio = _percent(snapshot.total_provisions_held,
                                                     snapshot.total_provisions_required)
    if snapshot.loans_with_overdue_payments:
        snapshot.average_days_in_arrears = round_money(
            Decimal(total_days_in_arrears) / Decimal(snapshot.loans_with_overdue_payments))

    return snapshot
