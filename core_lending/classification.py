"""
Loan Classification Module

Maps arrears to a loan status, validates status transitions, and computes
loan-loss provisions from an injectable per-tier policy.
"""

from decimal import Decimal
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Mapping, Optional, Union

from .config import LendingConfig, resolve_config
from .exceptions import InvalidStatusTransitionError
from .money import to_decimal, round_money, non_negative, ZERO


class LoanStatus(Enum):
    """Loan lifecycle and risk states"""
    PENDING = "pending"
    APPROVED = "approved"
    DISBURSED = "disbursed"
    PERFORMING = "performing"      # 0-30 days in arrears
    WATCH = "watch"                # 31-90 days
    SUBSTANDARD = "substandard"    # 91-180 days
    DOUBTFUL = "doubtful"          # 181-365 days
    LOSS = "loss"                  # 365+ days
    WRITTEN_OFF = "written_off"
    CLOSED = "closed"
    REJECTED = "rejected"
    COMPLETED = "completed"


class ClassificationTier(Enum):
    """Provisioning buckets"""
    NORMAL = "normal"
    WATCH = "watch"
    SUBSTANDARD = "substandard"
    DOUBTFUL = "doubtful"
    LOSS = "loss"


_TRANSITIONS: Dict[LoanStatus, FrozenSet[LoanStatus]] = {
    LoanStatus.PENDING: frozenset({LoanStatus.APPROVED, LoanStatus.DISBURSED}),
    LoanStatus.APPROVED: frozenset({LoanStatus.DISBURSED, LoanStatus.PENDING}),
    LoanStatus.DISBURSED: frozenset({LoanStatus.PERFORMING, LoanStatus.WATCH, LoanStatus.CLOSED}),
    LoanStatus.PERFORMING: frozenset({LoanStatus.WATCH, LoanStatus.SUBSTANDARD, LoanStatus.CLOSED}),
    LoanStatus.WATCH: frozenset({LoanStatus.PERFORMING, LoanStatus.SUBSTANDARD, LoanStatus.DOUBTFUL}),
    LoanStatus.SUBSTANDARD: frozenset({LoanStatus.WATCH, LoanStatus.DOUBTFUL, LoanStatus.LOSS}),
    LoanStatus.DOUBTFUL: frozenset({LoanStatus.SUBSTANDARD, LoanStatus.LOSS, LoanStatus.WRITTEN_OFF}),
    LoanStatus.LOSS: frozenset({LoanStatus.WRITTEN_OFF, LoanStatus.DOUBTFUL}),
    LoanStatus.WRITTEN_OFF: frozenset(),
    LoanStatus.CLOSED: frozenset(),
    LoanStatus.REJECTED: frozenset(),
    LoanStatus.COMPLETED: frozenset(),
}

_STATUS_TIERS: Dict[LoanStatus, ClassificationTier] = {
    LoanStatus.PENDING: ClassificationTier.NORMAL,
    LoanStatus.APPROVED: ClassificationTier.NORMAL,
    LoanStatus.DISBURSED: ClassificationTier.NORMAL,
    LoanStatus.PERFORMING: ClassificationTier.NORMAL,
    LoanStatus.WATCH: ClassificationTier.WATCH,
    LoanStatus.SUBSTANDARD: ClassificationTier.SUBSTANDARD,
    LoanStatus.DOUBTFUL: ClassificationTier.DOUBTFUL,
    LoanStatus.LOSS: ClassificationTier.LOSS,
    LoanStatus.WRITTEN_OFF: ClassificationTier.LOSS,
    LoanStatus.CLOSED: ClassificationTier.NORMAL,
    LoanStatus.REJECTED: ClassificationTier.NORMAL,
    LoanStatus.COMPLETED: ClassificationTier.NORMAL,
}


def classify(outstanding_principal, days_in_arrears: int) -> LoanStatus:
    """Determine loan status from outstanding principal and days in arrears"""
    if to_decimal(outstanding_principal) <= ZERO:
        return LoanStatus.CLOSED
    elif days_in_arrears <= 30:
        return LoanStatus.PERFORMING
    elif days_in_arrears <= 90:
        return LoanStatus.WATCH
    elif days_in_arrears <= 180:
        return LoanStatus.SUBSTANDARD
    elif days_in_arrears <= 365:
        return LoanStatus.DOUBTFUL
    else:
        return LoanStatus.LOSS


def valid_transitions(status: LoanStatus) -> FrozenSet[LoanStatus]:
    """Statuses a loan may move to from the given status"""
    return _TRANSITIONS[status]


def is_terminal(status: LoanStatus) -> bool:
    return not _TRANSITIONS[status]


def transition(current: LoanStatus, target: LoanStatus) -> LoanStatus:
    """
    Validate a status change and return the new status.

    Raises:
        InvalidStatusTransitionError: target is not reachable from current
    """
    if target not in _TRANSITIONS[current]:
        raise InvalidStatusTransitionError(current, target)
    return target


def tier_for_status(status: LoanStatus) -> ClassificationTier:
    return _STATUS_TIERS[status]


@dataclass(frozen=True)
class ProvisioningPolicy:
    """Share of exposure to hold as a loss reserve, per classification tier"""
    rates: Mapping[ClassificationTier, Decimal]

    def __post_init__(self):
        missing = [tier.value for tier in ClassificationTier if tier not in self.rates]
        if missing:
            raise ValueError(f"Provisioning policy is missing rates for: {', '.join(missing)}")
        for tier, rate in self.rates.items():
            if rate < ZERO or rate > Decimal('1'):
                raise ValueError(f"Provisioning rate for {tier.value} must be between 0 and 1")

    @classmethod
    def from_config(cls, config: Optional[LendingConfig] = None) -> 'ProvisioningPolicy':
        """Build the policy from configured rates keyed by tier value"""
        cfg = resolve_config(config)
        return cls.from_mapping(cfg.provisioning_rates)

    @classmethod
    def from_mapping(cls, rates: Mapping[str, object]) -> 'ProvisioningPolicy':
        return cls(rates={
            ClassificationTier(key.lower()): to_decimal(value) for key, value in rates.items()
        })

    def rate_for(self, tier_or_status: Union[ClassificationTier, LoanStatus]) -> Decimal:
        if isinstance(tier_or_status, LoanStatus):
            tier_or_status = tier_for_status(tier_or_status)
        return self.rates[tier_or_status]


def net_exposure(outstanding_principal, collateral_value=ZERO) -> Decimal:
    """Outstanding principal not covered by collateral"""
    return round_money(non_negative(to_decimal(outstanding_principal) - to_decimal(collateral_value)))


def provision_required(
    exposure,
    tier_or_status: Union[ClassificationTier, LoanStatus],
    policy: Optional[ProvisioningPolicy] = None
) -> Decimal:
    """Exposure multiplied by the policy rate for the tier"""
    policy = policy or ProvisioningPolicy.from_config()
    return round_money(to_decimal(exposure) * policy.rate_for(tier_or_status))
