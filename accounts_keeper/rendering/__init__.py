"""HTML fragment renderers for the Streamlit pages."""

from accounts_keeper.rendering.fragments import (
    render_account_history,
    render_account_stats,
    render_account_types,
    render_accounts_table,
    render_alert,
    render_balance_summary,
    render_categories,
    render_overview_cards,
    render_overview_recent,
    render_pagination,
    render_recent_transactions,
    render_transaction_detail,
    render_transaction_summary,
    render_transaction_types,
    render_transactions_list,
    render_unpaid_installments,
)

__all__ = [
    "render_account_history",
    "render_account_stats",
    "render_account_types",
    "render_accounts_table",
    "render_alert",
    "render_balance_summary",
    "render_categories",
    "render_overview_cards",
    "render_overview_recent",
    "render_pagination",
    "render_recent_transactions",
    "render_transaction_detail",
    "render_transaction_summary",
    "render_transaction_types",
    "render_transactions_list",
    "render_unpaid_installments",
]
