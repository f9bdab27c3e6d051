"""
Amount Formatting

Amounts are shown with Indian digit grouping (12,34,567.89) and two
decimals whatever the selected currency; only the symbol changes.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from accounts_keeper.models.ledger import CURRENCIES, parse_amount


TWO_PLACES = Decimal("0.01")


def group_indian(amount: Any) -> str:
    """
    Format a number with en-IN grouping and exactly two decimals.

    The last three integer digits form one group, every group to the
    left of it has two digits. Non-numeric input formats as 0.00.
    """
    value = parse_amount(amount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    integer, _, fraction = f"{abs(value):.2f}".partition(".")

    if len(integer) > 3:
        head, tail = integer[:-3], integer[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        integer = ",".join(groups + [tail])

    return f"{sign}{integer}.{fraction}"


def format_currency(amount: Any, symbol: str = "₹") -> str:
    """Symbol followed by the grouped amount, e.g. ₹1,234.56."""
    return f"{symbol}{group_indian(amount)}"


def format_balance(balance: Any, symbol: str = "₹") -> str:
    """
    Format a balance by magnitude.

    The sign is carried by colour (see balance_css_class), not by a minus.
    """
    return format_currency(abs(parse_amount(balance)), symbol)


def balance_css_class(balance: Any) -> str:
    value = parse_amount(balance)
    if value > 0:
        return "text-success"
    if value < 0:
        return "text-danger"
    return "text-muted"


def currency_preview(code: str) -> str:
    """Example amount in a currency, shown next to the currency picker."""
    symbol = CURRENCIES[code.upper()][0]
    return f"{symbol}1,234.56"
