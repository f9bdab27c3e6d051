"""
Streamlit Frontend for Accounts Keeper

This is the interface users work in daily: accounts, receipts,
payments, EMI schedules and settings.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Explicit confirmation before anything is deleted
3. Clear messages in simple language
4. Visual feedback for every save
5. No hidden actions

Pages talk only to the flows in accounts_keeper.orchestrator. Each
browser session gets its own AuthService; everything else is shared.

Deep links:
- ?id=<account>                     account detail
- ?action=receipt|payment|edit&account=<account>
                                    accounts page with that form open
- ?page=<n>                         transactions page, page n
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Optional

import streamlit as st

from accounts_keeper.config import get_settings, validate_all_settings
from accounts_keeper.ledger import currency_preview, format_currency
from accounts_keeper.models import (
    CURRENCIES,
    AccountFormInput,
    AccountTypeCategory,
    ActionResult,
    DeepLink,
    EMIUnit,
    OverviewPage,
    SortField,
    SortOrder,
    TransactionDirection,
    TransactionFilter,
    TransactionFormInput,
    TransactionTypeCategory,
    UserContext,
)
from accounts_keeper.orchestrator import AppComponents, TransactionFormFlow, create_app_components
from accounts_keeper.rendering import (
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
from accounts_keeper.services.auth import AuthService, strength_label, password_strength


# Page configuration
st.set_page_config(
    page_title="Accounts Keeper",
    page_icon="📒",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for the HTML fragments
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .text-success, .amount-receive { color: #28a745; }
    .text-danger, .amount-pay { color: #dc3545; }
    .text-muted { color: #6c757d; }
    .status-active { color: #28a745; }
    .fw-bold { font-weight: bold; }
    .alert {
        padding: 15px 20px;
        border-radius: 10px;
        margin: 10px 0;
    }
    .alert-success { background-color: #d4edda; border-left: 5px solid #28a745; }
    .alert-warning { background-color: #fff3cd; border-left: 5px solid #ffc107; }
    .alert-danger { background-color: #f8d7da; border-left: 5px solid #dc3545; }
    .alert-info { background-color: #cce5ff; border-left: 5px solid #004085; }
    .transaction-item {
        padding: 10px 0;
        border-bottom: 1px solid #eee;
    }
    .badge {
        padding: 2px 8px;
        border-radius: 6px;
        color: white;
        font-size: 0.8em;
    }
    .bg-success { background-color: #28a745; }
    .bg-danger { background-color: #dc3545; }
    .bg-info { background-color: #17a2b8; }
    .bg-secondary { background-color: #6c757d; }
    .pagination { display: flex; list-style: none; gap: 6px; padding: 0; }
    .page-item.active .page-link { font-weight: bold; text-decoration: underline; }
    .page-item.disabled .page-link { color: #adb5bd; }
    table.accounts { width: 100%; }
    table.accounts td, table.accounts th { padding: 8px; border-bottom: 1px solid #eee; }
</style>
""", unsafe_allow_html=True)

PAGES = ["📊 Overview", "🏦 Accounts", "📋 Transactions", "⚙️ Settings"]


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    return create_app_components()


def get_auth(components: AppComponents) -> AuthService:
    """The AuthService of this browser session."""
    if "auth" not in st.session_state:
        st.session_state.auth = components.new_auth_service()
    return st.session_state.auth


def show_result(result: ActionResult) -> None:
    st.markdown(render_alert(result.message, result.level), unsafe_allow_html=True)


def flash(result: ActionResult) -> None:
    """Show a result on the next rerun."""
    st.session_state.flash = result


def show_flash() -> None:
    result = st.session_state.pop("flash", None)
    if result is not None:
        show_result(result)


def main():
    """Main application entry point."""
    components = get_components()
    auth = get_auth(components)

    if auth.current_user is None:
        render_login_page(components, auth)
        return

    ctx = run_async(components.session.load_context(auth.current_user))
    link = DeepLink.from_query_params(st.query_params.to_dict())

    # Sidebar navigation
    st.sidebar.title("📒 Accounts Keeper")
    st.sidebar.markdown(f"Signed in as **{ctx.user.label}**")
    st.sidebar.markdown("---")

    default_page = 0
    if link.account_id:
        default_page = 1
    elif "page" in st.query_params:
        default_page = 2

    page = st.sidebar.radio("Navigate to:", PAGES, index=default_page)

    st.sidebar.markdown("---")
    if components.backend == "memory":
        st.sidebar.caption("Local mode: data lives in memory until the app restarts.")
    if st.sidebar.button("🚪 Sign Out"):
        run_async(components.session.sign_out(auth))
        st.session_state.clear()
        st.query_params.clear()
        st.rerun()

    show_flash()

    # Route to appropriate page
    if page == "📊 Overview":
        render_overview_page(components, ctx)
    elif page == "🏦 Accounts":
        if link.account_id and not link.opens_modal:
            render_account_detail_page(components, ctx, link.account_id)
        else:
            render_accounts_page(components, ctx, link)
    elif page == "📋 Transactions":
        render_transactions_page(components, ctx)
    elif page == "⚙️ Settings":
        render_settings_page(components, ctx, auth)


# =============================================================================
# SIGN IN / SIGN UP
# =============================================================================

def render_login_page(components: AppComponents, auth: AuthService):
    """Sign-in and sign-up tabs. Query parameters survive so deep links still land."""
    st.title("📒 Accounts Keeper")
    st.markdown("Keep track of what you receive, what you pay, and every EMI.")
    show_flash()

    sign_in_tab, sign_up_tab = st.tabs(["Sign In", "Create Account"])

    with sign_in_tab:
        with st.form("sign_in"):
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            submitted = st.form_submit_button("Sign In", type="primary")
        if submitted:
            result = run_async(components.session.sign_in(auth, email, password))
            if result.success:
                st.rerun()
            show_result(result)

    with sign_up_tab:
        display_name = st.text_input("Your name")
        email = st.text_input("Email", key="sign_up_email")
        password = st.text_input("Password", type="password", key="sign_up_password")
        if password:
            label = strength_label(password_strength(password))
            st.caption(f"Password strength: **{label}**")
        confirm = st.text_input("Confirm password", type="password")

        if st.button("Create Account", type="primary"):
            if password != confirm:
                show_result(ActionResult.warning("Passwords do not match."))
            else:
                result = run_async(components.session.sign_up(auth, email, password, display_name))
                if result.success:
                    flash(result)
                    st.rerun()
                show_result(result)


# =============================================================================
# OVERVIEW
# =============================================================================

def render_overview_page(components: AppComponents, ctx: UserContext):
    st.title("📊 Overview")

    loaded = run_async(components.overview.load(ctx))
    if not loaded.ok:
        show_result(ActionResult.failed(loaded.error_message))
        return

    overview = loaded.data
    st.markdown(render_overview_cards(overview.summary, ctx.currency_symbol), unsafe_allow_html=True)

    with st.expander("➕ Add Transaction"):
        render_ledger_entry_form(components, ctx, overview)

    st.markdown("### Recent Transactions")
    st.markdown(
        render_overview_recent(overview.summary.recent, overview.categories, ctx.currency_symbol),
        unsafe_allow_html=True,
    )


def render_ledger_entry_form(components: AppComponents, ctx: UserContext, overview: OverviewPage):
    if not overview.accounts or not overview.categories:
        st.info("Create an account and a category first.")
        return

    kinds = {"Income": TransactionDirection.RECEIVE, "Expense": TransactionDirection.PAY}
    account_names = {a.id: a.name for a in overview.accounts}
    category_names = {c.id: c.name for c in overview.categories}

    with st.form("ledger_entry_form", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            kind = st.radio("Type", list(kinds), horizontal=True)
            account_id = st.selectbox(
                "Account *", list(account_names), format_func=lambda i: account_names[i]
            )
            category_id = st.selectbox(
                "Category *", list(category_names), format_func=lambda i: category_names[i]
            )
        with col2:
            amount = st.number_input(
                f"Amount ({ctx.currency_symbol}) *", min_value=0.0, step=0.01, format="%.2f"
            )
            entered_date = st.date_input("Date *", value=date.today())
            description = st.text_input("Description")
        submitted = st.form_submit_button("💾 Save", type="primary")

    if submitted:
        result = run_async(components.overview.add_entry(ctx, TransactionFormInput(
            direction=kinds[kind],
            account_id=account_id or "",
            category_id=category_id or "",
            amount=Decimal(str(amount)),
            description=description,
            transaction_date=entered_date.isoformat() if entered_date else None,
        )))
        if result.success:
            flash(result)
            st.rerun()
        show_result(result)


# =============================================================================
# ACCOUNTS
# =============================================================================

def render_accounts_page(components: AppComponents, ctx: UserContext, link: DeepLink):
    st.title("🏦 Accounts")

    loaded = run_async(components.accounts.load_accounts_page(ctx))
    if not loaded.ok:
        show_result(ActionResult.failed(loaded.error_message))
        return
    page = loaded.data
    symbol = ctx.currency_symbol

    if link.opens_modal:
        account = next((a for a in page.accounts if a.id == link.account_id), None)
        if account is None:
            show_result(ActionResult.failed("Account not found."))
        elif link.action == "edit":
            with st.container(border=True):
                st.subheader(f"✏️ Edit {account.name}")
                render_account_form(components, ctx, page.account_types, account)
        else:
            direction = TransactionDirection.RECEIVE if link.action == "receipt" else TransactionDirection.PAY
            with st.container(border=True):
                render_transaction_form(components, ctx, direction, account_id=account.id, slot="link")

    st.markdown(render_balance_summary(page.summary, symbol), unsafe_allow_html=True)
    st.markdown(
        '<table class="accounts"><thead><tr>'
        "<th>Account</th><th>Type</th><th>Balance</th><th>Status</th><th>Actions</th>"
        "</tr></thead><tbody>"
        + render_accounts_table(page.accounts, page.account_types, page.transactions, symbol)
        + "</tbody></table>",
        unsafe_allow_html=True,
    )

    col1, col2 = st.columns(2)
    with col1:
        with st.expander("➕ Add Account"):
            render_account_form(components, ctx, page.account_types)
    with col2:
        with st.expander("💵 Record Receipt / Payment"):
            direction = st.radio(
                "Type",
                list(TransactionDirection),
                format_func=lambda d: "Receipt" if d == TransactionDirection.RECEIVE else "Payment",
                horizontal=True,
            )
            render_transaction_form(components, ctx, direction)

    st.markdown("### Recent Transactions")
    st.markdown(
        render_recent_transactions(
            page.transactions, page.accounts, symbol, get_settings().app.recent_transactions_limit
        ),
        unsafe_allow_html=True,
    )


def render_account_form(components: AppComponents, ctx: UserContext, account_types, account=None):
    """Create form, or edit form when `account` is given."""
    key = f"account_form_{account.id if account else 'new'}"
    type_ids = [t.id for t in account_types]
    type_names = {t.id: t.name for t in account_types}

    with st.form(key):
        name = st.text_input("Account Name *", value=account.name if account else "")
        index = type_ids.index(account.account_type_id) if account and account.account_type_id in type_ids else 0
        type_id = st.selectbox(
            "Account Type *",
            type_ids,
            index=index if type_ids else None,
            format_func=lambda i: type_names.get(i, "Unknown"),
        )
        description = st.text_area("Description", value=account.description if account else "")
        submitted = st.form_submit_button("💾 Save Account", type="primary")

    if submitted:
        form = AccountFormInput(name=name, account_type_id=type_id or "", description=description)
        result = run_async(components.accounts.save_account(ctx, form, account.id if account else None))
        if result.success:
            flash(result)
            reset_transaction_forms()
            st.query_params.clear()
            st.rerun()
        show_result(result)


def render_account_detail_page(components: AppComponents, ctx: UserContext, account_id: str):
    loaded = run_async(components.accounts.load_account_detail(ctx, account_id))
    if not loaded.ok:
        flash(ActionResult.failed(loaded.error_message))
        st.query_params.clear()
        st.rerun()

    detail = loaded.data
    symbol = ctx.currency_symbol
    st.title(f"🏦 {detail.account.name}")
    st.caption(f"{detail.account_type_name} • {detail.account.description or 'No description'}")

    if st.button("← All Accounts"):
        st.query_params.clear()
        st.rerun()

    st.markdown(render_account_stats(detail.stats, symbol), unsafe_allow_html=True)

    col1, col2, col3 = st.columns(3)
    with col1:
        if st.button("💵 Receipt"):
            st.query_params.from_dict({"action": "receipt", "account": account_id})
            st.rerun()
    with col2:
        if st.button("💸 Payment"):
            st.query_params.from_dict({"action": "payment", "account": account_id})
            st.rerun()
    with col3:
        if st.button("✏️ Edit"):
            st.query_params.from_dict({"action": "edit", "account": account_id})
            st.rerun()

    st.markdown("### Transaction History")
    filter_type = st.radio(
        "Show",
        ["all", "receive", "pay"],
        format_func=lambda f: {"all": "All", "receive": "Receipts", "pay": "Payments"}[f],
        horizontal=True,
    )
    st.markdown(
        render_account_history(detail.transactions, symbol, filter_type),
        unsafe_allow_html=True,
    )

    st.markdown("---")
    with st.expander("🗑️ Delete Account"):
        st.warning(
            f"This deletes the account and its {detail.stats.total_transactions} "
            "transactions. This cannot be undone."
        )
        confirmed = st.checkbox("Yes, delete this account and all its transactions")
        if st.button("Delete Account", type="primary"):
            result = run_async(components.accounts.delete_account(ctx, account_id, confirmed))
            if result.success:
                flash(result)
                reset_transaction_forms()
                st.query_params.clear()
                st.rerun()
            show_result(result)


# =============================================================================
# RECEIPT / PAYMENT FORM
# =============================================================================

def get_transaction_form(
    components: AppComponents,
    ctx: UserContext,
    direction: TransactionDirection,
    transaction_id: Optional[str] = None,
    slot: str = "main",
) -> TransactionFormFlow:
    """
    One form flow per (slot, direction, transaction) kept across reruns.

    Only a form that loaded is kept; a failed one is opened again on the
    next rerun.
    """
    key = f"txn_form_{slot}_{direction.value}_{transaction_id or 'new'}"
    form = st.session_state.get(key)
    if form is None or not form.is_ready:
        form = components.new_transaction_form()
        loaded = run_async(form.open(ctx, direction, transaction_id))
        if not loaded.ok:
            show_result(ActionResult.failed(loaded.error_message))
            return form
        st.session_state[key] = form
    return form


def reset_transaction_forms() -> None:
    for key in [k for k in st.session_state if str(k).startswith("txn_form_")]:
        del st.session_state[key]


def render_transaction_form(
    components: AppComponents,
    ctx: UserContext,
    direction: TransactionDirection,
    account_id: Optional[str] = None,
    transaction_id: Optional[str] = None,
    slot: str = "main",
):
    form = get_transaction_form(components, ctx, direction, transaction_id, slot)
    if not form.is_ready:
        return

    data = form.data
    editing = data.editing
    direction = form.direction
    label = "Receipt" if direction == TransactionDirection.RECEIVE else "Payment"
    key = f"{slot}_{direction.value}_{transaction_id or 'new'}"
    symbol = ctx.currency_symbol

    st.subheader(f"{'✏️ Edit' if editing else '➕ New'} {label}")

    type_names = [t.name for t in data.transaction_types]
    if editing and editing.sub_type and editing.sub_type not in type_names:
        type_names.insert(0, editing.sub_type)
    sub_type = st.selectbox(
        "Type *",
        type_names,
        index=type_names.index(editing.sub_type) if editing and editing.sub_type in type_names else None,
        key=f"sub_type_{key}",
    )

    account_ids = [a.id for a in data.accounts]
    account_names = {a.id: a.name for a in data.accounts}
    preselect = editing.account_id if editing else account_id
    chosen_account = st.selectbox(
        "Account *",
        account_ids,
        index=account_ids.index(preselect) if preselect in account_ids else None,
        format_func=lambda i: account_names.get(i, "Unknown"),
        key=f"account_{key}",
    )

    with st.expander("➕ Quick Add Account"):
        quick_name = st.text_input("Account Name", key=f"quick_name_{key}")
        type_ids = [t.id for t in data.account_types]
        type_labels = {t.id: t.name for t in data.account_types}
        quick_type = st.selectbox(
            "Account Type",
            type_ids,
            format_func=lambda i: type_labels.get(i, "Unknown"),
            key=f"quick_type_{key}",
        )
        if st.button("Create Account", key=f"quick_create_{key}"):
            result = run_async(form.create_quick_account(
                AccountFormInput(name=quick_name, account_type_id=quick_type or "")
            ))
            if result.success:
                st.session_state[f"account_{key}"] = result.affected_ids[0]
                st.rerun()
            show_result(result)

    # Unpaid installments, payments only
    selected = []
    if direction == TransactionDirection.PAY and chosen_account and not editing:
        reconciliation = run_async(form.find_unpaid_installments(chosen_account))
        if reconciliation.degraded:
            show_result(ActionResult.warning(reconciliation.error_message))
        elif reconciliation.installments:
            st.markdown("**Pending EMIs**")
            by_label = {
                f"EMI {i.installment} - {i.date} - {format_currency(i.amount, symbol)}": i
                for i in reconciliation.installments
            }
            picked = st.multiselect("Select EMIs to pay", list(by_label), key=f"emis_{key}")
            selected = [by_label[p] for p in picked]
            st.markdown(
                render_unpaid_installments(
                    reconciliation.installments, symbol, {i.date for i in selected}
                ),
                unsafe_allow_html=True,
            )

    enable_emi = False
    emi_numbers = None
    emi_amount = None
    emi_type = EMIUnit.MONTH
    if direction == TransactionDirection.RECEIVE:
        enable_emi = st.checkbox(
            "Enable EMI",
            value=bool(editing and editing.enable_emi),
            key=f"enable_emi_{key}",
        )
        if enable_emi:
            col1, col2, col3 = st.columns(3)
            with col1:
                emi_numbers = st.number_input(
                    "Number of EMIs", min_value=1, step=1,
                    value=int(editing.emi_numbers or 1) if editing and editing.enable_emi else 1,
                    key=f"emi_numbers_{key}",
                )
            with col2:
                emi_amount = st.number_input(
                    "EMI Amount", min_value=0.0, step=0.01, format="%.2f",
                    value=float(editing.emi_amount or 0) if editing and editing.enable_emi else 0.0,
                    key=f"emi_amount_{key}",
                )
            with col3:
                units = list(EMIUnit)
                emi_type = st.selectbox(
                    "Frequency", units,
                    index=units.index(editing.emi_type) if editing and editing.emi_type else units.index(EMIUnit.MONTH),
                    format_func=lambda u: u.value.title(),
                    key=f"emi_type_{key}",
                )

    if selected:
        amount = float(sum((i.amount for i in selected), Decimal("0")))
        st.number_input("Amount", value=amount, disabled=True, key=f"amount_locked_{key}")
    elif enable_emi:
        amount = float(Decimal(int(emi_numbers or 0)) * Decimal(str(emi_amount or 0)))
        st.number_input("Amount (EMIs x amount)", value=amount, disabled=True, key=f"amount_emi_{key}")
    else:
        amount = st.number_input(
            f"Amount ({symbol}) *",
            value=float(editing.amount) if editing else 0.0,
            step=0.01,
            format="%.2f",
            key=f"amount_{key}",
        )

    entered_date = st.date_input(
        "Date *",
        value=date.fromisoformat(editing.transaction_date) if editing and _is_iso(editing.transaction_date) else date.today(),
        key=f"date_{key}",
    )
    description = st.text_area(
        "Description",
        value=editing.description if editing else "",
        key=f"description_{key}",
    )

    if st.button(f"💾 Save {label}", type="primary", key=f"save_{key}"):
        submission = TransactionFormInput(
            direction=direction,
            sub_type=sub_type or "",
            account_id=chosen_account or "",
            amount=Decimal(str(amount)),
            description=description,
            transaction_date=entered_date.isoformat() if entered_date else None,
            enable_emi=enable_emi,
            emi_numbers=int(emi_numbers) if emi_numbers else None,
            emi_amount=Decimal(str(emi_amount)) if emi_amount is not None else None,
            emi_type=emi_type,
            selected_installments=selected,
        )
        result = run_async(form.submit(submission))
        if result.success:
            flash(result)
            reset_transaction_forms()
            st.query_params.clear()
            st.rerun()
        show_result(result)


def _is_iso(value: str) -> bool:
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


# =============================================================================
# TRANSACTIONS
# =============================================================================

def current_page_number() -> int:
    try:
        return max(int(st.query_params.get("page", 1)), 1)
    except ValueError:
        return 1


def render_transactions_page(components: AppComponents, ctx: UserContext):
    st.title("📋 Transactions")
    flow = components.transactions

    loaded = run_async(flow.load(ctx))
    if not loaded.ok:
        show_result(ActionResult.failed(loaded.error_message))
        return
    data = loaded.data
    symbol = ctx.currency_symbol

    if st.button("Clear Filters"):
        for key in [k for k in st.session_state if str(k).startswith("filter_")]:
            del st.session_state[key]
        _, page = flow.clear_filters()
        st.query_params["page"] = str(page)
        st.rerun()

    col1, col2, col3 = st.columns(3)
    with col1:
        search = st.text_input("Search", key="filter_search", placeholder="Description or account")
        direction = st.selectbox(
            "Type",
            [None, TransactionDirection.RECEIVE, TransactionDirection.PAY],
            format_func=lambda d: {None: "All", TransactionDirection.RECEIVE: "Receipts",
                                   TransactionDirection.PAY: "Payments"}[d],
            key="filter_direction",
        )
    with col2:
        account_id = st.selectbox(
            "Account",
            [None] + [a.id for a in data.accounts],
            format_func=lambda i: "All Accounts" if i is None else data.account_names.get(i, "Unknown"),
            key="filter_account",
        )
        date_from = st.date_input("From", value=None, key="filter_from")
        date_to = st.date_input("To", value=None, key="filter_to")
    with col3:
        sort_by = st.selectbox("Sort by", list(SortField), format_func=lambda s: s.value.title(), key="filter_sort")
        sort_order = st.selectbox(
            "Order", list(SortOrder),
            format_func=lambda o: "Newest / highest first" if o == SortOrder.DESC else "Oldest / lowest first",
            key="filter_order",
        )
        emi_only = st.checkbox("EMI transactions only", key="filter_emi")

    filt = TransactionFilter(
        search=search,
        direction=direction,
        account_id=account_id,
        date_from=date_from.isoformat() if date_from else None,
        date_to=date_to.isoformat() if date_to else None,
        emi_only=emi_only,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    filtered = flow.filter(data, filt, current_page_number())

    st.markdown(render_transaction_summary(filtered.summary, symbol), unsafe_allow_html=True)
    st.markdown(render_transactions_list(filtered.items, data.accounts, symbol), unsafe_allow_html=True)
    st.markdown(render_pagination(filtered.page, filtered.total_pages), unsafe_allow_html=True)

    if filtered.total_pages > 1:
        chosen = st.number_input(
            "Go to page", min_value=1, max_value=filtered.total_pages, value=filtered.page, step=1
        )
        if chosen != filtered.page:
            st.query_params["page"] = str(chosen)
            st.rerun()

    if not filtered.items:
        return

    st.markdown("---")
    st.subheader("🔍 Transaction Detail")
    by_id = {t.id: t for t in filtered.items}
    chosen_id = st.selectbox(
        "Transaction",
        list(by_id),
        format_func=lambda i: (
            f"{by_id[i].transaction_date} • {data.account_names.get(by_id[i].account_id, 'Unknown Account')} • "
            f"{format_currency(by_id[i].amount, symbol)}"
        ),
    )
    transaction = by_id[chosen_id]
    st.markdown(render_transaction_detail(transaction, data.accounts, symbol), unsafe_allow_html=True)

    with st.expander("✏️ Edit Transaction"):
        render_transaction_form(
            components, ctx, transaction.direction, transaction_id=transaction.id
        )

    with st.expander("🗑️ Delete Transaction"):
        confirmed = st.checkbox("Yes, delete this transaction", key=f"confirm_delete_{chosen_id}")
        if st.button("Delete Transaction", type="primary"):
            result = run_async(flow.delete_transaction(ctx, chosen_id, confirmed))
            if result.success:
                flash(result)
                reset_transaction_forms()
                st.rerun()
            show_result(result)


# =============================================================================
# SETTINGS
# =============================================================================

def render_settings_page(components: AppComponents, ctx: UserContext, auth: AuthService):
    st.title("⚙️ Settings")
    flow = components.settings

    loaded = run_async(flow.load(ctx))
    if not loaded.ok:
        show_result(ActionResult.failed(loaded.error_message))
        return
    page = loaded.data

    # Currency
    st.markdown("### Currency")
    codes = list(CURRENCIES)
    currency = st.selectbox(
        "Currency",
        codes,
        index=codes.index(page.settings.currency) if page.settings.currency in codes else 0,
        format_func=lambda c: f"{c} - {CURRENCIES[c][1]} ({CURRENCIES[c][0]})",
    )
    st.caption(f"Preview: {currency_preview(currency)}")
    if st.button("💾 Save Currency"):
        result = run_async(flow.save_currency(ctx, currency))
        if result.success:
            flash(result)
            st.rerun()
        show_result(result)

    # Profile
    st.markdown("---")
    st.markdown("### Account Settings")
    st.text_input("Email", value=ctx.user.email, disabled=True)
    display_name = st.text_input("Display Name", value=ctx.user.display_name or "")
    if st.button("💾 Save Display Name"):
        show_result(run_async(flow.update_display_name(auth, display_name)))

    # Account types
    st.markdown("---")
    st.markdown("### Account Types")
    st.markdown(render_account_types(page.account_types), unsafe_allow_html=True)
    with st.form("account_type_form", clear_on_submit=True):
        name = st.text_input("New account type")
        category = st.selectbox(
            "Category", [None] + list(AccountTypeCategory),
            format_func=lambda c: "None" if c is None else c.value.title(),
        )
        if st.form_submit_button("Add Account Type"):
            result = run_async(flow.save_account_type(ctx, name, category))
            if result.success:
                flash(result)
                st.rerun()
            show_result(result)
    render_type_delete(
        ctx, "account_type", {t.id: t.name for t in page.account_types}, flow.delete_account_type
    )

    # Transaction types
    st.markdown("---")
    st.markdown("### Transaction Types")
    st.markdown(render_transaction_types(page.transaction_types), unsafe_allow_html=True)
    with st.form("transaction_type_form", clear_on_submit=True):
        name = st.text_input("New transaction type")
        category = st.selectbox(
            "For", list(TransactionTypeCategory), format_func=lambda c: c.value.title()
        )
        if st.form_submit_button("Add Transaction Type"):
            result = run_async(flow.save_transaction_type(ctx, name, category))
            if result.success:
                flash(result)
                st.rerun()
            show_result(result)
    render_type_delete(
        ctx, "transaction_type", {t.id: t.name for t in page.transaction_types}, flow.delete_transaction_type
    )

    # Categories
    st.markdown("---")
    st.markdown("### Categories")
    st.markdown(render_categories(page.categories), unsafe_allow_html=True)
    with st.form("category_form", clear_on_submit=True):
        name = st.text_input("New category")
        color = st.color_picker("Colour", value="#007bff")
        if st.form_submit_button("Add Category"):
            result = run_async(flow.save_category(ctx, name, color))
            if result.success:
                flash(result)
                st.rerun()
            show_result(result)
    render_type_delete(
        ctx, "category", {c.id: c.name for c in page.categories}, flow.delete_category
    )

    # Data
    st.markdown("---")
    st.markdown("### Data Management")
    if st.button("📦 Prepare Export"):
        result, payload = run_async(flow.export_data(ctx))
        show_result(result)
        if payload is not None:
            st.download_button(
                "⬇️ Download JSON",
                data=payload,
                file_name=flow.export_filename(),
                mime="application/json",
            )

    with st.expander("🗑️ Delete My Account"):
        word = get_settings().auth.delete_confirmation_word
        st.error("This permanently deletes your account and all of your data.")
        typed = st.text_input(f'Type "{word}" to confirm')
        confirmed = st.checkbox("I understand this cannot be undone")
        if st.button("Delete Everything", type="primary"):
            result = run_async(flow.delete_user(auth, typed, confirmed))
            if result.success:
                st.session_state.clear()
                st.query_params.clear()
                flash(result)
                st.rerun()
            show_result(result)

    # Connection status
    st.markdown("---")
    st.markdown("### Connection Status")
    status = validate_all_settings()
    for name, key in [("App", "app"), ("Authentication", "auth"), ("Google Sheets (Storage)", "google_sheets")]:
        if key not in status:
            continue
        if status[key]:
            st.success(f"✅ {name} - Configured")
        else:
            st.error(f"❌ {name} - {status.get(f'{key}_error', 'Not configured')}")
    st.caption(f"Storage backend: {components.backend} • Environment: {get_settings().app.app_environment}")


def render_type_delete(ctx: UserContext, key: str, names: dict, delete):
    """Pick one item, confirm, delete."""
    if not names:
        return
    with st.expander("Delete..."):
        chosen = st.selectbox("Item", list(names), format_func=lambda i: names[i], key=f"delete_pick_{key}")
        confirmed = st.checkbox("Yes, delete it", key=f"delete_confirm_{key}")
        if st.button("Delete", key=f"delete_button_{key}"):
            result = run_async(delete(ctx, chosen, confirmed))
            if result.success:
                flash(result)
                st.rerun()
            show_result(result)


if __name__ == "__main__":
    main()
