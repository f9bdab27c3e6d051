"""
HTML Fragment Renderers

Pure functions from in-memory lists to HTML strings. The Streamlit app
shows them with st.markdown(..., unsafe_allow_html=True).

CRITICAL: Everything a user typed (names, descriptions, type names) is
escaped before it goes into markup. Document IDs are escaped too since
they end up inside attribute values.

Action links are deep links (?action=receipt&account=<id>) so they work
without any JavaScript.
"""

from html import escape
from typing import Iterable, Optional
from urllib.parse import urlencode

from accounts_keeper.ledger.balances import account_status, balances_by_account
from accounts_keeper.ledger.filters import page_window
from accounts_keeper.ledger.formatting import (
    balance_css_class,
    format_balance,
    format_currency,
)
from accounts_keeper.models.ledger import (
    Account,
    AccountStats,
    AccountStatus,
    AccountType,
    BalanceSummary,
    Category,
    Installment,
    OverviewSummary,
    Transaction,
    TransactionDirection,
    TransactionSummary,
    TransactionType,
    TransactionTypeCategory,
)


STATUS_CLASSES = {
    AccountStatus.ACTIVE: "status-active",
    AccountStatus.OVERDUE: "text-danger",
    AccountStatus.ZERO: "text-muted",
}

UNKNOWN_ACCOUNT = "Unknown Account"


def _link(**params: str) -> str:
    return "?" + urlencode(params)


def _empty(message: str, icon: str = "fa-exchange-alt") -> str:
    return (
        '<div class="text-center text-muted py-4">'
        f'<i class="fas {icon} fa-2x mb-2"></i>'
        f"<p>{escape(message)}</p>"
        "</div>"
    )


def _direction_style(transaction: Transaction) -> tuple[str, str]:
    """(css class, icon) for a transaction's direction."""
    if transaction.direction == TransactionDirection.RECEIVE:
        return "text-success", "fa-arrow-down"
    return "text-danger", "fa-arrow-up"


def _account_names(accounts: Iterable[Account]) -> dict[str, str]:
    return {a.id: a.name for a in accounts}


def _emi_line(transaction: Transaction, symbol: str) -> str:
    unit = transaction.emi_type.value if transaction.emi_type else "month"
    return (
        f"EMI: {transaction.emi_numbers or 0} {unit}s @ "
        f"{escape(format_currency(transaction.emi_amount, symbol))}"
    )


# =============================================================================
# SHARED
# =============================================================================

def render_alert(message: str, level: str = "success") -> str:
    """Dismissable banner; level is success, warning, danger or info."""
    return (
        f'<div class="alert alert-{escape(level)}" role="alert">'
        f"{escape(message)}"
        "</div>"
    )


# =============================================================================
# ACCOUNTS PAGE
# =============================================================================

def render_accounts_table(
    accounts: list[Account],
    account_types: list[AccountType],
    transactions: list[Transaction],
    symbol: str = "₹",
) -> str:
    """Table rows of accounts with balance, status and action links."""
    if not accounts:
        return (
            '<tr><td colspan="5" class="text-center text-muted py-4">'
            '<i class="fas fa-university fa-2x mb-2"></i>'
            "<p>No accounts created yet</p>"
            "</td></tr>"
        )

    type_names = {t.id: t.name for t in account_types}
    balances = balances_by_account(accounts, transactions)

    rows = []
    for account in accounts:
        balance = balances[account.id]
        status = account_status(balance)
        type_name = escape(type_names.get(account.account_type_id, "Unknown"))
        account_id = account.id or ""
        rows.append(
            "<tr>"
            "<td>"
            f'<a class="fw-bold" href="{escape(_link(id=account_id))}" target="_self">{escape(account.name)}</a>'
            f'<small class="text-muted d-block">{escape(account.description)}</small>'
            "</td>"
            f"<td>{type_name}</td>"
            f'<td class="fw-bold {balance_css_class(balance)}">{escape(format_balance(balance, symbol))}</td>'
            f'<td><span class="{STATUS_CLASSES[status]}">● {status.value}</span></td>'
            "<td>"
            f'<a href="{escape(_link(action="receipt", account=account_id))}" target="_self" title="Receipt">Receipt</a> '
            f'<a href="{escape(_link(action="payment", account=account_id))}" target="_self" title="Payment">Payment</a> '
            f'<a href="{escape(_link(action="edit", account=account_id))}" target="_self" title="Edit">Edit</a>'
            "</td>"
            "</tr>"
        )
    return "".join(rows)


def render_balance_summary(summary: BalanceSummary, symbol: str = "₹") -> str:
    """One line: count, receivable, payable and net."""
    return escape(
        f"{summary.account_count} accounts • "
        f"Receivable: {format_currency(summary.total_receivable, symbol)} • "
        f"Payable: {format_currency(summary.total_payable, symbol)} • "
        f"Net: {format_currency(summary.net_balance, symbol)}"
    )


def render_recent_transactions(
    transactions: list[Transaction],
    accounts: list[Account],
    symbol: str = "₹",
    limit: int = 10,
) -> str:
    """The newest transactions across all accounts (input is newest first)."""
    if not transactions:
        return _empty("No transactions yet")

    names = _account_names(accounts)
    items = []
    for transaction in transactions[:limit]:
        css, icon = _direction_style(transaction)
        verb = "Received" if transaction.is_receipt else "Paid"
        account_name = names.get(transaction.account_id, UNKNOWN_ACCOUNT)
        items.append(
            '<div class="d-flex justify-content-between align-items-center p-3 border-bottom">'
            '<div class="d-flex align-items-center flex-grow-1">'
            f'<i class="fas {icon} {css} me-3"></i>'
            "<div>"
            f'<h6 class="mb-1">{verb} - {escape(account_name)}</h6>'
            f'<small class="text-muted">{escape(transaction.transaction_date)}</small>'
            "</div>"
            "</div>"
            f'<div class="text-end"><div class="fw-bold {css}">'
            f"{escape(format_currency(transaction.amount, symbol))}"
            "</div></div>"
            "</div>"
        )
    return "".join(items)


# =============================================================================
# ACCOUNT DETAIL PAGE
# =============================================================================

def render_account_stats(stats: AccountStats, symbol: str = "₹") -> str:
    """Stats card: balance, transaction count, received and paid totals."""
    return (
        '<div class="row account-stats">'
        '<div class="col"><small class="text-muted">Current Balance</small>'
        f'<h4 class="mb-0 {balance_css_class(stats.balance)}">{escape(format_balance(stats.balance, symbol))}</h4></div>'
        '<div class="col"><small class="text-muted">Transactions</small>'
        f'<h4 class="mb-0">{stats.total_transactions}</h4></div>'
        '<div class="col"><small class="text-muted">Total Received</small>'
        f'<h4 class="mb-0 text-success">{escape(format_balance(stats.total_received, symbol))}</h4></div>'
        '<div class="col"><small class="text-muted">Total Paid</small>'
        f'<h4 class="mb-0 text-danger">{escape(format_balance(stats.total_paid, symbol))}</h4></div>'
        "</div>"
    )


def render_account_history(
    transactions: list[Transaction],
    symbol: str = "₹",
    filter_type: str = "all",
) -> str:
    """
    An account's transactions, optionally only receipts or payments.

    Args:
        filter_type: "all", "receive" or "pay"
    """
    if filter_type != "all":
        transactions = [t for t in transactions if t.direction.value == filter_type]
    if not transactions:
        return _empty("No transactions found")

    items = []
    for transaction in transactions:
        css, icon = _direction_style(transaction)
        verb = "Received" if transaction.is_receipt else "Paid"
        extra = ""
        if transaction.description:
            extra += f'<br><small class="text-muted">{escape(transaction.description)}</small>'
        if transaction.enable_emi:
            extra += f'<br><small class="text-info">{_emi_line(transaction, symbol)}</small>'
        created = (
            transaction.created_at.strftime("%Y-%m-%d %H:%M")
            if transaction.created_at else "Unknown time"
        )
        items.append(
            '<div class="transaction-item"><div class="row align-items-center">'
            '<div class="col-md-8"><div class="d-flex align-items-center">'
            f'<i class="fas {icon} {css} me-3"></i>'
            "<div>"
            f'<h6 class="mb-1">{verb}</h6>'
            f'<small class="text-muted">{escape(transaction.transaction_date)} • '
            f"{escape(transaction.sub_type or 'General')}</small>"
            f"{extra}"
            "</div></div></div>"
            '<div class="col-md-4 text-end">'
            f'<div class="fw-bold {css} h5">{escape(format_currency(transaction.amount, symbol))}</div>'
            f'<small class="text-muted">{created}</small>'
            "</div>"
            "</div></div>"
        )
    return "".join(items)


# =============================================================================
# TRANSACTIONS PAGE
# =============================================================================

def render_transaction_summary(summary: TransactionSummary, symbol: str = "₹") -> str:
    cells = [
        ("Transactions", str(summary.total_count), ""),
        ("Total Receipts", format_currency(summary.total_receipts, symbol), "text-success"),
        ("Total Payments", format_currency(summary.total_payments, symbol), "text-danger"),
        ("Net Amount", format_currency(summary.net_amount, symbol), balance_css_class(summary.net_amount)),
    ]
    return (
        '<div class="row transaction-summary">'
        + "".join(
            f'<div class="col"><small class="text-muted">{label}</small>'
            f'<h5 class="{css}">{escape(value)}</h5></div>'
            for label, value, css in cells
        )
        + "</div>"
    )


def render_transactions_list(
    transactions: list[Transaction],
    accounts: list[Account],
    symbol: str = "₹",
) -> str:
    """Rows for one page of the filtered list."""
    if not transactions:
        return _empty("No transactions found")

    names = _account_names(accounts)
    items = []
    for transaction in transactions:
        css, icon = _direction_style(transaction)
        label = "Receipt" if transaction.is_receipt else "Payment"
        sign = "+" if transaction.is_receipt else "-"
        badge = "success" if transaction.is_receipt else "danger"
        meta = (
            f"{escape(names.get(transaction.account_id, UNKNOWN_ACCOUNT))} • "
            f"{escape(transaction.transaction_date)}"
        )
        each = ""
        emi_badge = ""
        if transaction.enable_emi:
            unit = transaction.emi_type.value if transaction.emi_type else "month"
            meta += f" • EMI: {transaction.emi_numbers or 0} {unit}s"
            each = f'<small class="text-muted">{escape(format_currency(transaction.emi_amount, symbol))} each</small>'
            emi_badge = '<br><small class="badge bg-info mt-1">EMI</small>'

        items.append(
            '<div class="transaction-item"><div class="row align-items-center">'
            f'<div class="col-md-1 text-center"><i class="fas {icon} {css} fa-lg"></i></div>'
            '<div class="col-md-6">'
            f'<div class="fw-bold">{escape(transaction.description or label)}</div>'
            f'<small class="text-muted">{meta}</small>'
            "</div>"
            '<div class="col-md-3 text-end">'
            f'<div class="fw-bold {css}">{sign}{escape(format_currency(transaction.amount, symbol))}</div>'
            f"{each}"
            "</div>"
            '<div class="col-md-2 text-end">'
            f'<span class="badge bg-{badge}">{label}</span>{emi_badge}'
            "</div>"
            "</div></div>"
        )
    return "".join(items)


def render_pagination(current: int, total_pages: int) -> str:
    """
    Previous / numbered / next links. Empty for a single page.

    Pages outside current +/- 2 (other than the first and last)
    collapse into an ellipsis.
    """
    if total_pages <= 1:
        return ""

    def item(label: str, page: Optional[int], active: bool = False, disabled: bool = False) -> str:
        classes = "page-item" + (" active" if active else "") + (" disabled" if disabled else "")
        if page is None or disabled:
            return f'<li class="{classes}"><span class="page-link">{label}</span></li>'
        return (
            f'<li class="{classes}">'
            f'<a class="page-link" href="{escape(_link(page=str(page)))}" target="_self">{label}</a>'
            "</li>"
        )

    parts = ['<nav><ul class="pagination">']
    parts.append(item("Previous", current - 1, disabled=current <= 1))
    for number in page_window(current, total_pages):
        if number is None:
            parts.append(item("...", None, disabled=True))
        else:
            parts.append(item(str(number), number, active=number == current))
    parts.append(item("Next", current + 1, disabled=current >= total_pages))
    parts.append("</ul></nav>")
    return "".join(parts)


def render_transaction_detail(
    transaction: Transaction,
    accounts: list[Account],
    symbol: str = "₹",
) -> str:
    """Detail card; the EMI block only appears for EMI-enabled transactions."""
    css, _ = _direction_style(transaction)
    label = "Receipt" if transaction.is_receipt else "Payment"
    sign = "+" if transaction.is_receipt else "-"
    badge = "success" if transaction.is_receipt else "danger"
    account_name = _account_names(accounts).get(transaction.account_id, UNKNOWN_ACCOUNT)

    rows = [
        ("Amount", f'<span class="{css}">{sign}{escape(format_currency(transaction.amount, symbol))}</span>'),
        ("Date", escape(transaction.transaction_date)),
        ("Type", f'<span class="badge bg-{badge}">{label}</span>'),
        ("Account", escape(account_name)),
        ("Description", escape(transaction.description or "No description")),
    ]
    if transaction.sub_type:
        rows.insert(3, ("Category", escape(transaction.sub_type)))
    if transaction.enable_emi:
        rows.extend([
            ("Number of EMIs", str(transaction.emi_numbers or 0)),
            ("EMI Amount", escape(format_currency(transaction.emi_amount, symbol))),
            ("EMI Frequency", transaction.emi_type.value if transaction.emi_type else "month"),
        ])

    body = "".join(
        f'<dt class="col-sm-4">{name}</dt><dd class="col-sm-8">{value}</dd>'
        for name, value in rows
    )
    return (
        '<div class="card transaction-detail">'
        f'<div class="card-header">{label} Transaction</div>'
        f'<div class="card-body"><dl class="row mb-0">{body}</dl></div>'
        "</div>"
    )


# =============================================================================
# TRANSACTION FORM
# =============================================================================

def render_unpaid_installments(
    installments: list[Installment],
    symbol: str = "₹",
    selected: Optional[set[str]] = None,
) -> str:
    """
    Checklist of unpaid installments.

    Checkbox values are the due dates; `selected` holds the ones ticked.
    """
    if not installments:
        return ""

    selected = selected or set()
    items = []
    for emi in installments:
        checked = " checked" if emi.date in selected else ""
        dom_id = escape(f"emi_{emi.origin_transaction_id or ''}_{emi.date}")
        items.append(
            '<div class="form-check mb-2">'
            f'<input class="form-check-input emi-payment-checkbox" type="checkbox" '
            f'value="{escape(emi.date)}" data-amount="{emi.amount}" id="{dom_id}"{checked}>'
            f'<label class="form-check-label" for="{dom_id}">'
            '<div class="d-flex justify-content-between align-items-center">'
            f"<span>EMI {emi.installment} - {escape(emi.date)}</span>"
            f'<span class="fw-bold text-danger">{escape(format_currency(emi.amount, symbol))}</span>'
            "</div></label></div>"
        )
    return "".join(items)


# =============================================================================
# SETTINGS PAGE
# =============================================================================

def render_account_types(account_types: list[AccountType]) -> str:
    if not account_types:
        return '<p class="text-muted">No custom account types created yet</p>'
    return "".join(
        '<div class="d-flex justify-content-between align-items-center p-2 border rounded mb-2">'
        f"<span>{escape(t.name)}</span>"
        + (f'<span class="badge bg-secondary">{t.category.value}</span>' if t.category else "")
        + "</div>"
        for t in account_types
    )


def render_transaction_types(transaction_types: list[TransactionType]) -> str:
    if not transaction_types:
        return '<p class="text-muted">No custom transaction types created yet</p>'
    items = []
    for t in transaction_types:
        badge = "success" if t.category == TransactionTypeCategory.RECEIPT else "danger"
        items.append(
            '<div class="d-flex justify-content-between align-items-center p-2 border rounded mb-2">'
            "<div>"
            f'<span class="fw-bold">{escape(t.name)}</span>'
            f'<span class="badge bg-{badge} ms-2">{t.category.value}</span>'
            "</div>"
            "</div>"
        )
    return "".join(items)


def render_categories(categories: list[Category]) -> str:
    if not categories:
        return '<p class="text-muted">No categories yet</p>'
    return "".join(
        '<div class="d-flex align-items-center p-2 border rounded mb-2">'
        f'<span class="badge me-2" style="background-color: {escape(c.color)}">&nbsp;</span>'
        f"<span>{escape(c.name)}</span>"
        "</div>"
        for c in categories
    )


# =============================================================================
# OVERVIEW PAGE
# =============================================================================

def render_overview_cards(summary: OverviewSummary, symbol: str = "₹") -> str:
    cells = [
        ("Total Income", summary.income, "text-success"),
        ("Total Expenses", summary.expenses, "text-danger"),
        ("Net Balance", summary.net, balance_css_class(summary.net)),
    ]
    return (
        '<div class="row overview-cards">'
        + "".join(
            f'<div class="col"><small class="text-muted">{label}</small>'
            f'<h3 class="{css}">{escape(format_currency(value, symbol))}</h3></div>'
            for label, value, css in cells
        )
        + "</div>"
    )


def render_overview_recent(
    transactions: list[Transaction],
    categories: list[Category],
    symbol: str = "₹",
) -> str:
    """Recent list on the overview page, labelled by category."""
    if not transactions:
        return '<p class="text-muted">No transactions yet</p>'

    category_names = {c.id: c.name for c in categories}
    items = []
    for t in transactions:
        category = category_names.get(t.category_id, "Unknown") if t.category_id else "Unknown"
        items.append(
            '<div class="d-flex justify-content-between align-items-center py-2 border-bottom">'
            "<div>"
            f"<strong>{escape(t.description or t.sub_type or '')}</strong>"
            f'<br><small class="text-muted">{escape(category)} • {escape(t.transaction_date)}</small>'
            "</div>"
            f'<span class="amount-{t.direction.value}">{escape(format_currency(t.amount, symbol))}</span>'
            "</div>"
        )
    return "".join(items)
