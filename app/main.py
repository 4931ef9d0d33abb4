"""
Streamlit Frontend for Household Ledger

The dashboard a household uses to track its month: installments, bills,
daily and one-off expenses, budgets and savings.

DESIGN PRINCIPLES:
1. One month at a time, picked in the sidebar
2. Every change goes through the orchestrator flows
3. Clear error messages in simple language
4. Visual feedback for all operations (toasts)
5. Works offline; pending changes are shown and synced later

The app keeps ONE event loop for the whole process. The store's locks
belong to the loop that first used them, so a fresh loop per call would
break them.
"""

import asyncio
import json
from datetime import date
from decimal import Decimal

import streamlit as st

from src.audit import get_audit_logger
from src.config import get_settings, validate_all_settings
from src.models.finance import (
    BudgetLevel,
    ObligationKind,
    ObligationView,
    PaymentMethod,
    StatusTag,
    UserSettings,
)
from src.orchestrator import (
    EntryFlow,
    MonthView,
    MonthViewFlow,
    create_app_components,
    probe_remote,
)
from src.recurrence.temporal import current_month, shift_month
from src.reports.analysis import MonthlyReports, budget_statuses
from src.services.backup import export_backup, export_expenses_csv, import_backup
from src.services.connectivity import ConnectivityMonitor
from src.services.notifications import CollectingNotifier
from src.services.storage import ReconcilingStore, is_temp_id


# Page configuration
st.set_page_config(
    page_title="Household Ledger",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

STATUS_LABELS = {
    StatusTag.NOT_DUE: "⚪ Not due",
    StatusTag.PAID: "🟢 Paid",
    StatusTag.OVERDUE: "🔴 Overdue",
    StatusTag.UPCOMING: "🔵 Upcoming",
    StatusTag.DUE_SOON: "🟠 Due soon",
    StatusTag.PENDING: "🟡 Pending",
}

BUDGET_LABELS = {
    BudgetLevel.OK: "🟢 Within limit",
    BudgetLevel.WARNING: "🟡 Warning",
    BudgetLevel.EXCEEDED: "🔴 Exceeded",
}

TOAST_ICONS = {"success": "✅", "warning": "⚠️", "danger": "🚨", "info": "ℹ️"}


@st.cache_resource
def get_event_loop() -> asyncio.AbstractEventLoop:
    """The process-wide event loop used for every store call."""
    return asyncio.new_event_loop()


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = get_event_loop()
    asyncio.set_event_loop(loop)
    return loop.run_until_complete(coro)


@st.cache_resource
def get_notifier() -> CollectingNotifier:
    return CollectingNotifier()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    return create_app_components(use_remote=True, notifier=get_notifier())


def show_notifications():
    """Turn collected notifications into toasts."""
    for message, level in get_notifier().drain():
        st.toast(message, icon=TOAST_ICONS.get(level, "ℹ️"))


def fmt(amount: Decimal) -> str:
    currency = get_settings().app.currency_label
    return f"{amount:,.2f} {currency}"


def main():
    """Main application entry point."""
    store, monitor, month_flow, entry_flow = get_components()

    # Sidebar navigation
    st.sidebar.title("💰 Household Ledger")
    month_date = st.sidebar.date_input("Month", value=date.today())
    month = month_date.isoformat()[:7]

    render_connection_panel(store, monitor)
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📅 Month", "➕ Add", "💳 Expenses", "📦 External", "🎯 Budgets",
         "📈 Reports", "⚙️ Settings"],
        index=0,
    )

    if page == "📅 Month":
        render_month_page(store, month_flow, month)
    elif page == "➕ Add":
        render_add_page(entry_flow)
    elif page == "💳 Expenses":
        render_expenses_page(store, month)
    elif page == "📦 External":
        render_external_page(store, month)
    elif page == "🎯 Budgets":
        render_budgets_page(store, entry_flow, month)
    elif page == "📈 Reports":
        render_reports_page(store, month)
    elif page == "⚙️ Settings":
        render_settings_page(store)

    show_notifications()


def render_connection_panel(store: ReconcilingStore, monitor: ConnectivityMonitor):
    """Online/offline switch and outbox status in the sidebar."""
    st.sidebar.markdown("---")
    if store.remote is None:
        st.sidebar.info("💾 Local only (no remote store configured)")
        return

    online = st.sidebar.toggle("Online", value=store.online)
    if online != store.online:
        run_async(monitor.set_online(online))
        st.rerun()

    pending = len(store.pending_operations())
    if store.online:
        st.sidebar.success("☁️ Connected")
    else:
        st.sidebar.warning(f"📴 Offline: {pending} change(s) waiting")

    col1, col2 = st.sidebar.columns(2)
    with col1:
        if st.button("🔌 Check"):
            run_async(probe_remote(
                store, monitor, timeout=get_settings().app.remote_timeout_seconds
            ))
            st.rerun()
    with col2:
        if st.button("🔄 Sync", disabled=not store.online or pending == 0):
            run_async(store.sync_pending_operations())
            st.rerun()


# =============================================================================
# MONTH
# =============================================================================

def render_month_page(store: ReconcilingStore, month_flow: MonthViewFlow, month: str):
    """KPIs and the obligation lists for the selected month."""
    st.title(f"📅 {month}")

    view: MonthView = run_async(month_flow.load(month))
    summary = view.summary

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Income", fmt(summary.income))
    col2.metric("Total expenses", fmt(summary.total_expenses))
    col3.metric("Actual savings", fmt(summary.actual_savings))
    col4.metric("Saving target", f"{summary.target_progress:.1f}%")

    if view.alerts:
        st.warning(f"🔔 {view.alerts} payment(s) due within three days or overdue")
    if view.settings.cash_mode:
        st.caption("Cash mode: only paid items are counted")

    st.markdown("### 🏦 Installments")
    render_obligations(store, view.installments, month)
    st.markdown("### 🧾 Bills")
    render_obligations(store, view.bills, month)

    exceeded = [b for b in view.budgets if b.level != BudgetLevel.OK]
    if exceeded:
        st.markdown("### 🎯 Budgets needing attention")
        for status in exceeded:
            st.markdown(
                f"- **{status.budget.category}**: {fmt(status.spent)} of "
                f"{fmt(status.budget.limit)} ({status.percentage:.1f}%)"
            )


def render_obligations(store: ReconcilingStore, views: list[ObligationView], month: str):
    if not views:
        st.info("Nothing here yet. Use the ➕ Add page.")
        return

    for view in views:
        item = view.item
        col1, col2, col3, col4, col5 = st.columns([3, 2, 2, 2, 1])
        col1.markdown(f"**{item.name}**" + (" 📴" if is_temp_id(item.id) else ""))
        col2.markdown(fmt(view.due_amount))
        col3.markdown(STATUS_LABELS[view.status])
        col4.markdown(
            f"{view.days_until_due} day(s)" if view.status != StatusTag.NOT_DUE else "-"
        )
        if view.status != StatusTag.NOT_DUE:
            label = "↩️" if view.paid else "✔️"
            if col5.button(label, key=f"pay-{view.kind.value}-{item.id}-{month}"):
                run_async(store.toggle_payment_status(view.kind, item.id, month))
                st.rerun()


# =============================================================================
# ADD
# =============================================================================

def show_validation(entry_flow: EntryFlow, result) -> None:
    summary = entry_flow.validator.get_user_friendly_summary(result)
    if result.has_errors:
        st.error(summary)
    elif result.issues:
        st.warning(summary)


def render_add_page(entry_flow: EntryFlow):
    """Forms for every record type."""
    st.title("➕ Add")

    tab_obligation, tab_expense, tab_external = st.tabs(
        ["Installment / Bill", "Daily expense", "External expense"]
    )

    with tab_obligation:
        with st.form("obligation"):
            kind = st.radio(
                "Type",
                options=list(ObligationKind),
                format_func=lambda k: k.value.title(),
                horizontal=True,
            )
            name = st.text_input("Name")
            amount = st.number_input("Monthly amount", min_value=0.0, step=10.0)
            start = st.date_input("Start date", value=date.today())
            has_end = st.checkbox("Has an end date")
            end = st.date_input("End date", value=date.today())
            due_day = st.number_input("Due day (0 = last day of month)", 0, 31, 0)
            if st.form_submit_button("💾 Save"):
                saved, result = run_async(entry_flow.add_obligation(
                    kind, name, amount, start,
                    end=end if has_end else None,
                    due_day=int(due_day) or None,
                ))
                show_validation(entry_flow, result)
                if saved:
                    st.success(f"Saved {saved.name}")

    with tab_expense:
        with st.form("expense"):
            expense_date = st.date_input("Date", value=date.today())
            category = st.text_input("Category")
            amount = st.number_input("Amount", min_value=0.0, step=5.0)
            note = st.text_input("Note")
            method = st.selectbox(
                "Payment method",
                options=list(PaymentMethod),
                format_func=lambda m: m.value.title(),
            )
            if st.form_submit_button("💾 Save"):
                saved, result = run_async(entry_flow.add_expense(
                    expense_date, category, amount, note=note, payment_method=method
                ))
                show_validation(entry_flow, result)
                if saved:
                    st.success("Expense saved")

    with tab_external:
        with st.form("external"):
            expense_date = st.date_input("Date", value=date.today(), key="ext-date")
            category = st.text_input("Category", key="ext-cat")
            amount = st.number_input("Amount", min_value=0.0, step=10.0, key="ext-amount")
            note = st.text_input("Note", key="ext-note")
            paid = st.checkbox("Already paid")
            if st.form_submit_button("💾 Save"):
                saved, result = run_async(entry_flow.add_external_expense(
                    expense_date, category, amount, note=note, paid=paid
                ))
                show_validation(entry_flow, result)
                if saved:
                    st.success("External expense saved")


# =============================================================================
# LISTS
# =============================================================================

def render_expenses_page(store: ReconcilingStore, month: str):
    st.title("💳 Daily expenses")

    search = st.text_input("🔍 Search category or note")
    expenses = run_async(store.get_expenses(month))
    needle = search.strip().lower()
    shown = [
        e for e in expenses
        if not needle or needle in e.category.lower() or needle in (e.note or "").lower()
    ]

    if not shown:
        st.info("No expenses for this month.")
    for expense in shown:
        col1, col2, col3, col4, col5 = st.columns([2, 2, 3, 2, 1])
        col1.markdown(expense.date.isoformat())
        col2.markdown(expense.category)
        col3.markdown(expense.note or "")
        col4.markdown(fmt(expense.amount))
        if col5.button("🗑️", key=f"del-exp-{expense.id}"):
            run_async(store.delete_expense(expense.id))
            st.rerun()

    st.download_button(
        "⬇️ Export CSV",
        data=export_expenses_csv(expenses, month=month, search=search or None),
        file_name=f"expenses_{month}.csv",
        mime="text/csv",
    )


def render_external_page(store: ReconcilingStore, month: str):
    st.title("📦 External expenses")

    expenses = run_async(store.get_external_expenses(month))
    if not expenses:
        st.info("No external expenses for this month.")
    for expense in expenses:
        col1, col2, col3, col4, col5, col6 = st.columns([2, 2, 3, 2, 1, 1])
        col1.markdown(expense.date.isoformat())
        col2.markdown(expense.category)
        col3.markdown(expense.note or "")
        col4.markdown(fmt(expense.amount))
        if col5.button("✔️" if not expense.paid else "↩️", key=f"ext-pay-{expense.id}"):
            run_async(store.toggle_external_paid(expense.id))
            st.rerun()
        if col6.button("🗑️", key=f"ext-del-{expense.id}"):
            run_async(store.delete_external_expense(expense.id))
            st.rerun()


def render_budgets_page(store: ReconcilingStore, entry_flow: EntryFlow, month: str):
    st.title("🎯 Budgets")

    with st.form("budget"):
        category = st.text_input("Category")
        limit = st.number_input("Monthly limit", min_value=0.0, step=50.0)
        if st.form_submit_button("💾 Save budget"):
            saved, result = run_async(entry_flow.save_budget(category, limit))
            show_validation(entry_flow, result)
            if saved:
                st.success(f"Budget for {saved.category} saved")

    budgets = run_async(store.get_budgets())
    expenses = run_async(store.get_expenses(month))
    warning_ratio = get_settings().app.budget_warning_ratio

    if not budgets:
        st.info("No budgets set.")
    for status in budget_statuses(budgets, expenses, month, warning_ratio):
        col1, col2, col3, col4, col5 = st.columns([2, 2, 2, 2, 1])
        col1.markdown(f"**{status.budget.category}**")
        col2.markdown(f"{fmt(status.spent)} / {fmt(status.budget.limit)}")
        col3.markdown(f"{status.percentage:.1f}%")
        col4.markdown(BUDGET_LABELS[status.level])
        if col5.button("🗑️", key=f"bud-del-{status.budget.id}"):
            run_async(store.delete_budget(status.budget.id))
            st.rerun()


# =============================================================================
# REPORTS
# =============================================================================

def render_reports_page(store: ReconcilingStore, month: str):
    st.title("📈 Reports")

    settings = run_async(store.get_settings())
    reports = MonthlyReports(store)

    months = get_settings().app.trend_months
    trend = run_async(reports.trend(month, settings, months=months))
    st.markdown(f"### Last {months} months")
    st.line_chart({
        "Income": {s.month: float(s.income) for s in trend},
        "Expenses": {s.month: float(s.total_expenses) for s in trend},
        "Savings": {s.month: float(s.actual_savings) for s in trend},
    })

    st.markdown(f"### {shift_month(month, -1)} vs {month}")
    for comparison in run_async(reports.compare_months(month, settings)):
        st.metric(
            comparison.label,
            fmt(comparison.current),
            delta=f"{comparison.change:,.2f} ({comparison.change_percent:.1f}%)",
        )


# =============================================================================
# SETTINGS
# =============================================================================

def render_settings_page(store: ReconcilingStore):
    """User preferences, connection status, backup."""
    st.title("⚙️ Settings")

    settings = run_async(store.get_settings())
    with st.form("settings"):
        salary = st.number_input("Monthly salary", min_value=0.0, value=float(settings.salary))
        saving = st.number_input(
            "Saving target", min_value=0.0, value=float(settings.saving_target)
        )
        cash_mode = st.checkbox("Cash mode (count only paid items)", value=settings.cash_mode)
        auto_settle = st.checkbox("Auto-settle items on their due date", value=settings.auto_settle)
        rollover = st.checkbox("Roll over last month's unpaid items", value=settings.rollover)
        if st.form_submit_button("💾 Save settings"):
            run_async(store.save_settings(UserSettings(
                salary=Decimal(str(salary)),
                saving_target=Decimal(str(saving)),
                cash_mode=cash_mode,
                auto_settle=auto_settle,
                rollover=rollover,
                theme=settings.theme,
            )))
            st.success("Settings saved")

    st.markdown("---")
    st.markdown("### Connection Status")
    status = validate_all_settings()
    if status.get("google_sheets", False):
        st.success("✅ Google Sheets - Configured")
    else:
        st.error(f"❌ Google Sheets - {status.get('google_sheets_error', 'Not configured')}")

    with st.expander("🔍 Recent activity"):
        for event in get_audit_logger().recent_events(limit=20):
            st.markdown(f"- `{event.timestamp:%H:%M:%S}` {event.description}")

    st.markdown("---")
    st.markdown("### Backup")
    st.download_button(
        "⬇️ Download backup",
        data=json.dumps(export_backup(store.local_store), ensure_ascii=False, indent=2),
        file_name=f"household_ledger_{current_month()}.json",
        mime="application/json",
    )
    uploaded = st.file_uploader("Restore from backup", type="json")
    if uploaded is not None and st.button("♻️ Restore"):
        try:
            keys = import_backup(store.local_store, json.loads(uploaded.read()))
            st.success(f"Restored {len(keys)} section(s)")
        except ValueError as e:
            st.error(f"Could not restore backup: {e}")


if __name__ == "__main__":
    main()
