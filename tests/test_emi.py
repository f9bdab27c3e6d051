"""
Tests for the installment scheduler and reconciliation.
"""

import pytest
from datetime import date
from decimal import Decimal

from accounts_keeper.ledger import add_units, build_schedule, find_unpaid, paid_dates
from accounts_keeper.models import EMIUnit

from conftest import make_transaction


def emi_receipt(txn_id="r1", date="2024-01-31", numbers=3, amount="1000", unit="month", **extra):
    return make_transaction(
        txn_id,
        direction="receive",
        date=date,
        amount=str(Decimal(amount) * numbers),
        enableEMI=True,
        emiNumbers=numbers,
        emiAmount=amount,
        emiType=unit,
        **extra,
    )


class TestSchedule:
    """Tests for projecting due dates."""

    def test_month_end_clamps(self):
        """Test month addition clamps to the end of shorter months."""
        schedule = build_schedule("2024-01-31", 3, Decimal("1000"), EMIUnit.MONTH)
        assert [i.date for i in schedule] == ["2024-02-29", "2024-03-31", "2024-04-30"]
        assert [i.installment for i in schedule] == [1, 2, 3]

    def test_due_dates_are_not_chained(self):
        """Test each due date is computed from the start date."""
        schedule = build_schedule("2023-01-31", 2, Decimal("1"), EMIUnit.MONTH)
        # Chaining would give 2023-03-28
        assert schedule[1].date == "2023-03-31"

    def test_leap_day_year_addition(self):
        """Test Feb 29 plus one year lands on Feb 28."""
        schedule = build_schedule("2024-02-29", 1, Decimal("500"), EMIUnit.YEAR)
        assert schedule[0].date == "2025-02-28"

    def test_weekly_schedule(self):
        """Test week units."""
        schedule = build_schedule("2024-01-01", 2, Decimal("10"), EMIUnit.WEEK)
        assert [i.date for i in schedule] == ["2024-01-08", "2024-01-15"]

    def test_daily_schedule_crosses_year(self):
        """Test day units across a year boundary."""
        schedule = build_schedule("2024-12-31", 1, Decimal("10"), EMIUnit.DAY)
        assert schedule[0].date == "2025-01-01"

    def test_zero_count_is_empty(self):
        """Test a non-positive count yields no installments."""
        assert build_schedule("2024-01-01", 0, Decimal("10"), EMIUnit.MONTH) == []
        assert build_schedule("2024-01-01", -2, Decimal("10"), EMIUnit.MONTH) == []

    def test_invalid_start_date(self):
        """Test a bad start date raises ValueError."""
        with pytest.raises(ValueError):
            build_schedule("not-a-date", 2, Decimal("10"), EMIUnit.MONTH)

    def test_schedule_stops_at_last_representable_date(self):
        """Test due dates past year 9999 end the schedule instead of raising."""
        daily = build_schedule("9999-12-25", 10, Decimal("10"), EMIUnit.DAY)
        assert [i.date for i in daily][-1] == "9999-12-31"
        assert len(daily) == 6

        monthly = build_schedule("9999-10-15", 5, Decimal("10"), EMIUnit.MONTH)
        assert [i.date for i in monthly] == ["9999-11-15", "9999-12-15"]

    def test_installment_amount_and_origin(self):
        """Test every installment carries the amount and origin."""
        schedule = build_schedule("2024-01-01", 2, Decimal("750"), EMIUnit.MONTH, "r1")
        assert all(i.amount == Decimal("750") for i in schedule)
        assert all(i.origin_transaction_id == "r1" for i in schedule)

    def test_add_units_accepts_string_unit(self):
        """Test the unit can be given as its stored string."""
        assert add_units(date(2024, 1, 15), 1, "month") == date(2024, 2, 15)


class TestReconciliation:
    """Tests for finding unpaid installments."""

    def test_payment_on_due_date_settles(self):
        """Test a payment dated on the due date settles that installment."""
        transactions = [
            emi_receipt(),
            make_transaction("p1", direction="pay", date="2024-02-29", amount="1000"),
        ]
        unpaid = find_unpaid(transactions, "a1")
        assert [i.date for i in unpaid] == ["2024-03-31", "2024-04-30"]
        assert [i.installment for i in unpaid] == [2, 3]

    def test_date_match_is_exact_string(self):
        """Test a payment stored in another date format settles nothing."""
        transactions = [
            emi_receipt(),
            make_transaction("p1", direction="pay", date="2024-3-31", amount="1000"),
        ]
        unpaid = find_unpaid(transactions, "a1")
        assert "2024-03-31" in [i.date for i in unpaid]
        assert len(unpaid) == 3

    def test_payment_amount_is_not_compared(self):
        """Test any payment on the due date settles it, whatever its amount."""
        transactions = [
            emi_receipt(numbers=1),
            make_transaction("p1", direction="pay", date="2024-02-29", amount="1"),
        ]
        assert find_unpaid(transactions, "a1") == []

    def test_padded_payment_date_does_not_settle(self):
        """Test a payment date with trailing whitespace is a different date."""
        transactions = [
            emi_receipt(numbers=1),
            make_transaction("p1", direction="pay", date="2024-02-29 "),
        ]
        assert [i.date for i in find_unpaid(transactions, "a1")] == ["2024-02-29"]

    def test_far_future_origin_keeps_early_installments(self):
        """Test an origin near year 9999 yields the installments that fit."""
        transactions = [emi_receipt(date="9999-12-25", numbers=10, unit="day")]
        unpaid = find_unpaid(transactions, "a1")
        assert [i.installment for i in unpaid] == [1, 2, 3, 4, 5, 6]

    def test_receipt_on_due_date_does_not_settle(self):
        """Test only payments settle installments."""
        transactions = [
            emi_receipt(numbers=1),
            make_transaction("r2", direction="receive", date="2024-02-29"),
        ]
        assert len(find_unpaid(transactions, "a1")) == 1

    def test_other_accounts_are_ignored(self):
        """Test payments and schedules on other accounts don't count."""
        transactions = [
            emi_receipt(numbers=1),
            emi_receipt("r9", account_id="a2", numbers=5),
            make_transaction("p1", account_id="a2", direction="pay", date="2024-02-29"),
        ]
        unpaid = find_unpaid(transactions, "a1")
        assert [i.date for i in unpaid] == ["2024-02-29"]

    def test_origins_ordered_by_date(self):
        """Test schedules come out in origin date order."""
        transactions = [
            emi_receipt("late", date="2024-06-01", numbers=1),
            emi_receipt("early", date="2024-01-01", numbers=1),
        ]
        unpaid = find_unpaid(transactions, "a1")
        assert [i.origin_transaction_id for i in unpaid] == ["early", "late"]

    def test_missing_count_reads_as_zero(self):
        """Test an EMI origin without a count contributes nothing."""
        origin = make_transaction("r1", enableEMI=True, emiAmount="100")
        assert find_unpaid([origin], "a1") == []

    def test_missing_unit_defaults_to_month(self):
        """Test an origin without emiType is treated as monthly."""
        origin = make_transaction("r1", date="2024-01-15", enableEMI=True, emiNumbers=1, emiAmount="100")
        assert find_unpaid([origin], "a1")[0].date == "2024-02-15"

    def test_bad_origin_date_is_skipped(self):
        """Test an origin with an unparseable date doesn't hide the others."""
        transactions = [
            emi_receipt("bad", date="31/01/2024", numbers=2),
            emi_receipt("good", date="2024-01-01", numbers=1),
        ]
        unpaid = find_unpaid(transactions, "a1")
        assert [i.origin_transaction_id for i in unpaid] == ["good"]

    def test_paid_dates(self):
        """Test paid_dates collects payment dates of one account."""
        transactions = [
            make_transaction("p1", direction="pay", date="2024-01-01"),
            make_transaction("p2", direction="pay", date="2024-02-01", account_id="a2"),
            make_transaction("r1", direction="receive", date="2024-03-01"),
        ]
        assert paid_dates(transactions, "a1") == {"2024-01-01"}
