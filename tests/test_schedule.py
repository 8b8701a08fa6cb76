"""
Test suite for repayment schedule generation

Tests flat and annuity schedules, rounding residue absorption, installment
status refresh and regeneration of the unpaid tail after an amendment.
"""

import pytest
from decimal import Decimal
from datetime import date
from dataclasses import replace

from core_lending.amortization import InterestMethod
from core_lending.frequency import RepaymentFrequency
from core_lending.schedule import (
    RepaymentScheduleEntry, ScheduleEntryStatus, generate_schedule, regenerate_unpaid_tail,
    refresh_entry_status, delayed_days
)
from core_lending.terms import calculate_loan_terms


def _terms(principal='1200000', rate='12', maturity=date(2025, 1, 1),
           method=InterestMethod.FLAT, frequency=RepaymentFrequency.MONTHLY):
    return calculate_loan_terms(
        Decimal(principal), Decimal(rate), date(2024, 1, 1), maturity, method, frequency
    )


def _pay_in_full(entry):
    return replace(entry, paid_principal=entry.due_principal, paid_interest=entry.due_interest,
                   paid_total=entry.due_total, status=ScheduleEntryStatus.PAID)


class TestFlatSchedule:
    """Test flat interest schedules"""

    def setup_method(self):
        """Set up test fixtures"""
        self.terms = _terms()
        self.schedule = generate_schedule(self.terms)

    def test_entry_count_and_numbering(self):
        """Test one entry per installment numbered from 1"""
        assert len(self.schedule) == 12
        assert [e.installment_number for e in self.schedule] == list(range(1, 13))

    def test_equal_installments(self):
        """Test every entry repays equal principal and interest"""
        for entry in self.schedule:
            assert entry.due_principal == Decimal('100000.00')
            assert entry.due_interest == Decimal('12000.00')
            assert entry.due_total == Decimal('112000.00')
            assert entry.status == ScheduleEntryStatus.PENDING
            assert entry.paid_total == Decimal('0')

    def test_due_dates_monthly(self):
        """Test due dates step one month from the first payment date"""
        assert self.schedule[0].due_date == date(2024, 2, 1)
        assert self.schedule[5].due_date == date(2024, 7, 1)
        assert self.schedule[-1].due_date == date(2025, 1, 1)

    def test_outstanding_reaches_zero(self):
        """Test final entry leaves nothing outstanding"""
        assert self.schedule[0].outstanding_principal_after == Decimal('1100000.00')
        assert self.schedule[-1].outstanding_principal_after == Decimal('0')

    def test_rounding_residue_on_last_installment(self):
        """Test principal rounding follows the running total and the last installment closes it"""
        schedule = generate_schedule(_terms(principal='1000', rate='10', maturity=date(2024, 4, 1)))

        # Rounded running totals 333.33, 666.67, 1000.00
        assert [e.due_principal for e in schedule] == [
            Decimal('333.33'), Decimal('333.34'), Decimal('333.33')
        ]
        assert [e.outstanding_principal_after for e in schedule] == [
            Decimal('666.67'), Decimal('333.33'), Decimal('0')
        ]
        assert all(e.due_interest == Decimal('8.33') for e in schedule)
        assert sum(e.due_principal for e in schedule) == Decimal('1000.00')

    def test_half_cent_share_does_not_overshoot(self):
        """Test a long daily loan whose share ends in half a cent stays non-negative"""
        # 1000.80 / 480 = 2.085 per installment
        terms = _terms(principal='1000.80', rate='0', maturity=date(2025, 4, 25),
                       frequency=RepaymentFrequency.DAILY)
        schedule = generate_schedule(terms)

        assert len(schedule) == 480
        outstanding = [e.outstanding_principal_after for e in schedule]
        assert outstanding == sorted(outstanding, reverse=True)
        assert all(e.due_principal >= Decimal('0') for e in schedule)
        assert all(e.due_principal in (Decimal('2.08'), Decimal('2.09')) for e in schedule)
        assert sum(e.due_principal for e in schedule) == Decimal('1000.80')
        assert schedule[-1].outstanding_principal_after == Decimal('0')

    def test_generation_is_deterministic(self):
        """Test the same terms always give the same schedule"""
        assert generate_schedule(self.terms) == self.schedule

    def test_to_dict(self):
        """Test serialization for persistence"""
        data = self.schedule[0].to_dict()
        assert data['installment_number'] == 1
        assert data['due_date'] == '2024-02-01'
        assert data['due_total'] == '112000.00'
        assert data['status'] == 'pending'


class TestReducingBalanceSchedule:
    """Test annuity schedules"""

    def setup_method(self):
        """Set up test fixtures"""
        self.terms = _terms(method=InterestMethod.REDUCING_BALANCE)
        self.schedule = generate_schedule(self.terms)

    def test_first_installment_split(self):
        """Test first installment charges a month of interest on the full principal"""
        first = self.schedule[0]
        assert first.due_interest == Decimal('12000.00')
        assert first.due_principal == Decimal('94618.55')
        assert first.due_total == Decimal('106618.55')
        assert first.outstanding_principal_after == Decimal('1105381.45')

    def test_interest_decreases(self):
        """Test interest falls and principal rises over the schedule"""
        interest = [e.due_interest for e in self.schedule]
        principal = [e.due_principal for e in self.schedule[:-1]]
        assert interest == sorted(interest, reverse=True)
        assert principal == sorted(principal)

    def test_principal_fully_repaid(self):
        """Test principal parts sum to the loan amount"""
        assert sum(e.due_principal for e in self.schedule) == self.terms.principal
        assert self.schedule[-1].outstanding_principal_after == Decimal('0')

    def test_last_installment_close_to_annuity(self):
        """Test residue on the last installment is small"""
        last = self.schedule[-1]
        assert abs(last.due_total - self.terms.periodic_installment_amount) <= Decimal('0.10')


class TestDayBasedSchedule:
    """Test schedules for day-based frequencies"""

    def test_weekly_due_dates(self):
        """Test weekly schedules step seven days"""
        terms = _terms(principal='13000', maturity=date(2024, 4, 1), frequency=RepaymentFrequency.WEEKLY)
        schedule = generate_schedule(terms)

        assert len(schedule) == 13
        assert schedule[0].due_date == date(2024, 1, 8)
        assert schedule[1].due_date == date(2024, 1, 15)
        assert schedule[-1].due_date == date(2024, 4, 1)


class TestEntryStatus:
    """Test installment status refresh"""

    def setup_method(self):
        """Set up test fixtures"""
        self.entry = RepaymentScheduleEntry(
            installment_number=1,
            due_date=date(2024, 2, 1),
            due_principal=Decimal('100.00'),
            due_interest=Decimal('10.00'),
            due_total=Decimal('110.00'),
            outstanding_principal_after=Decimal('900.00')
        )

    def test_pending_on_due_date(self):
        """Test an installment is not overdue on its due date"""
        assert refresh_entry_status(self.entry, date(2024, 2, 1)).status == ScheduleEntryStatus.PENDING

    def test_overdue_after_due_date(self):
        """Test an unpaid installment becomes overdue"""
        assert refresh_entry_status(self.entry, date(2024, 2, 2)).status == ScheduleEntryStatus.OVERDUE

    def test_partially_paid(self):
        """Test part payment marks the installment partially paid"""
        entry = replace(self.entry, paid_total=Decimal('50.00'))
        refreshed = refresh_entry_status(entry, date(2024, 3, 1))
        assert refreshed.status == ScheduleEntryStatus.PARTIALLY_PAID
        assert refreshed.remaining_amount == Decimal('60.00')

    def test_paid(self):
        """Test full payment marks the installment paid"""
        entry = replace(self.entry, paid_total=Decimal('110.00'))
        refreshed = refresh_entry_status(entry, date(2024, 3, 1))
        assert refreshed.status == ScheduleEntryStatus.PAID
        assert refreshed.is_fully_paid

    def test_delayed_days(self):
        """Test days late counts from the due date"""
        assert delayed_days(self.entry, date(2024, 2, 1)) == 0
        assert delayed_days(self.entry, date(2024, 3, 15)) == 43
        assert delayed_days(_pay_in_full(self.entry), date(2024, 3, 15)) == 0

    def test_due_total_must_match(self):
        """Test inconsistent due amounts are rejected"""
        with pytest.raises(ValueError):
            RepaymentScheduleEntry(
                installment_number=1,
                due_date=date(2024, 2, 1),
                due_principal=Decimal('100.00'),
                due_interest=Decimal('10.00'),
                due_total=Decimal('120.00'),
                outstanding_principal_after=Decimal('900.00')
            )


class TestRegenerateUnpaidTail:
    """Test schedule regeneration after amendments"""

    def test_flat_tail_after_one_payment(self):
        """Test paid entries are kept and the tail keeps its interest share"""
        terms = _terms()
        schedule = generate_schedule(terms)
        schedule[0] = _pay_in_full(schedule[0])

        regenerated = regenerate_unpaid_tail(terms, schedule, Decimal('1100000'))

        assert len(regenerated) == 12
        assert regenerated[0] is schedule[0]
        tail = regenerated[1:]
        assert [e.installment_number for e in tail] == list(range(2, 13))
        assert tail[0].due_date == date(2024, 3, 1)
        assert all(e.due_principal == Decimal('100000.00') for e in tail)
        assert all(e.due_interest == Decimal('12000.00') for e in tail)

    def test_flat_tail_after_prepayment(self):
        """Test a prepayment lowers principal on the remaining installments"""
        terms = _terms()
        schedule = generate_schedule(terms)
        schedule[0] = _pay_in_full(schedule[0])

        regenerated = regenerate_unpaid_tail(terms, schedule, Decimal('550000'))

        tail = regenerated[1:]
        assert all(e.due_principal == Decimal('50000.00') for e in tail)
        assert sum(e.due_principal for e in tail) == Decimal('550000.00')

    def test_reducing_tail_recomputes_annuity(self):
        """Test an annuity tail is recomputed on the outstanding principal"""
        terms = _terms(method=InterestMethod.REDUCING_BALANCE)
        schedule = generate_schedule(terms)
        schedule[0] = _pay_in_full(schedule[0])

        regenerated = regenerate_unpaid_tail(terms, schedule, Decimal('1105381.45'))

        tail = regenerated[1:]
        assert len(tail) == 11
        assert tail[0].due_interest == Decimal('11053.81')
        assert abs(tail[0].due_total - Decimal('106618.55')) <= Decimal('0.02')
        assert sum(e.due_principal for e in tail) == Decimal('1105381.45')

    def test_partially_paid_entry_is_kept(self):
        """Test an entry with any payment is not regenerated"""
        terms = _terms()
        schedule = generate_schedule(terms)
        schedule[0] = replace(schedule[0], paid_total=Decimal('1000.00'),
                              status=ScheduleEntryStatus.PARTIALLY_PAID)

        regenerated = regenerate_unpaid_tail(terms, schedule, Decimal('1199000'))

        assert regenerated[0] is schedule[0]
        assert len(regenerated) == 12

    def test_payment_after_unpaid_entry_is_kept(self):
        """Test a part payment on a later installment survives regeneration"""
        terms = _terms()
        schedule = generate_schedule(terms)
        schedule[1] = replace(schedule[1], paid_principal=Decimal('40000.00'),
                              paid_interest=Decimal('10000.00'), paid_total=Decimal('50000.00'),
                              status=ScheduleEntryStatus.PARTIALLY_PAID)

        regenerated = regenerate_unpaid_tail(terms, schedule, Decimal('1160000'))

        assert len(regenerated) == 12
        assert regenerated[0] is schedule[0]
        assert regenerated[1] is schedule[1]
        assert regenerated[1].paid_total == Decimal('50000.00')
        # 1,160,000 outstanding less 160,000 still due on the kept entries
        tail = regenerated[2:]
        assert [e.installment_number for e in tail] == list(range(3, 13))
        assert all(e.due_principal == Decimal('100000.00') for e in tail)
        assert tail[-1].outstanding_principal_after == Decimal('0')

    def test_fully_paid_schedule_unchanged(self):
        """Test nothing is regenerated once every entry is paid"""
        terms = _terms(principal='1000', rate='10', maturity=date(2024, 4, 1))
        schedule = [_pay_in_full(e) for e in generate_schedule(terms)]

        assert regenerate_unpaid_tail(terms, schedule, Decimal('0')) == schedule


class TestScheduleInvariants:
    """Test schedule invariants across frequencies and methods"""

    @pytest.mark.parametrize("method", list(InterestMethod))
    @pytest.mark.parametrize("frequency", list(RepaymentFrequency))
    @pytest.mark.parametrize("principal", ['1234567.89', '1000.01', '98765.43'])
    def test_invariants(self, principal, frequency, method):
        """Test principal is repaid exactly and the balance only falls"""
        terms = calculate_loan_terms(
            Decimal(principal), Decimal('17.5'), date(2024, 1, 31), date(2025, 3, 15),
            method, frequency
        )
        schedule = generate_schedule(terms)
        n = terms.total_number_of_installments

        assert 1 <= n <= 480
        assert [e.installment_number for e in schedule] == list(range(1, n + 1))
        assert sum(e.due_principal for e in schedule) == terms.principal
        assert all(e.due_principal >= Decimal('0') for e in schedule)

        outstanding = [e.outstanding_principal_after for e in schedule]
        assert outstanding == sorted(outstanding, reverse=True)
        assert outstanding[-1] == Decimal('0')

        due_dates = [e.due_date for e in schedule]
        assert due_dates == sorted(due_dates)
        assert due_dates[0] == terms.agreed_first_payment_date

        if method == InterestMethod.FLAT:
            share = terms.total_interest_amount / Decimal(n)
            assert all(abs(e.due_interest - share) <= Decimal('0.01') for e in schedule)
