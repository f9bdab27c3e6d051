"""
Installment (EMI) Scheduler

An EMI-enabled receipt projects a schedule of due dates forward from its
own date. Payments recorded on the same account settle installments.

DESIGN DECISION: Due date i is always computed from the start date
(start + i units), never by chaining from the previous due date. With
month arithmetic clamped to the end of the month, chaining would drift:
Jan 31 -> Feb 29 -> Mar 29 instead of Mar 31.

CRITICAL: Reconciliation compares date strings exactly. A payment stored
as "2024-02-29" settles the installment due "2024-02-29"; a payment stored
in any other format settles nothing.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

import structlog
from dateutil.relativedelta import relativedelta

from accounts_keeper.models.ledger import (
    EMIUnit,
    Installment,
    Transaction,
    TransactionDirection,
)


logger = structlog.get_logger(__name__)


def add_units(start: date, count: int, unit: EMIUnit) -> date:
    """
    Add `count` units to a date.

    Month and year addition clamp to the last valid day of the
    target month (2024-01-31 + 1 month = 2024-02-29).
    """
    unit = EMIUnit(unit)
    if unit == EMIUnit.DAY:
        return start + relativedelta(days=count)
    if unit == EMIUnit.WEEK:
        return start + relativedelta(weeks=count)
    if unit == EMIUnit.MONTH:
        return start + relativedelta(months=count)
    return start + relativedelta(years=count)


def build_schedule(
    start_date: str,
    count: int,
    amount: Decimal,
    unit: EMIUnit,
    origin_transaction_id: Optional[str] = None,
) -> list[Installment]:
    """
    Project the due dates of an installment plan.

    Args:
        start_date: Date of the originating transaction (YYYY-MM-DD)
        count: Number of installments; zero or less yields nothing
        amount: Amount of each installment
        unit: Recurrence unit

    Returns:
        Installments 1..count, due start + i units. The schedule stops at
        the first due date past the last representable date (year 9999).

    Raises:
        ValueError: If start_date is not a valid ISO date
    """
    if count <= 0:
        return []
    start = date.fromisoformat(start_date)

    schedule = []
    for i in range(1, count + 1):
        try:
            due = add_units(start, i, unit)
        except (OverflowError, ValueError):
            logger.warning(
                "emi_schedule_truncated",
                origin_transaction_id=origin_transaction_id,
                start_date=start_date,
                installment=i,
            )
            break
        schedule.append(Installment(
            date=due.isoformat(),
            amount=amount,
            installment=i,
            origin_transaction_id=origin_transaction_id,
        ))
    return schedule


def paid_dates(transactions: Iterable[Transaction], account_id: str) -> set[str]:
    """Date strings of every payment recorded on the account."""
    return {
        t.transaction_date
        for t in transactions
        if t.account_id == account_id and t.direction == TransactionDirection.PAY
    }


def find_unpaid(
    transactions: list[Transaction],
    account_id: str,
) -> list[Installment]:
    """
    Find the unpaid installments of an account.

    Every EMI-enabled transaction on the account contributes its schedule;
    a missing count or amount reads as zero.
    Origins are processed by date, then by ID, so the output order is
    stable regardless of how the store returned them.
    """
    paid = paid_dates(transactions, account_id)

    origins = sorted(
        (
            t for t in transactions
            if t.account_id == account_id
            and t.enable_emi
        ),
        key=lambda t: (t.transaction_date, t.id or ""),
    )

    unpaid: list[Installment] = []
    for origin in origins:
        try:
            schedule = build_schedule(
                origin.transaction_date,
                origin.emi_numbers or 0,
                origin.emi_amount or Decimal("0"),
                origin.emi_type or EMIUnit.MONTH,
                origin_transaction_id=origin.id,
            )
        except ValueError:
            logger.warning(
                "emi_origin_skipped",
                transaction_id=origin.id,
                date=origin.transaction_date,
            )
            continue
        unpaid.extend(i for i in schedule if i.date not in paid)

    return unpaid
