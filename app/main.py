"""
Streamlit Companion App for the Expense Tracker

The web form next to the chat bot. It works on the same backing file
and the same flows as the bot and the HTTP API.

DESIGN PRINCIPLES:
1. Adding an expense takes one form
2. Clear error messages for rejected input
3. Replacing all data always asks for confirmation
4. Visual feedback for all operations

Run with:
    streamlit run app/main.py
"""

from datetime import date

import streamlit as st

from expense_tracker.config import validate_all_settings
from expense_tracker.models.transaction import format_amount, parse_amount
from expense_tracker.orchestrator import (
    IMPORT_REPLACE,
    ExpenseFlow,
    ReportFlow,
    create_app_components,
)
from expense_tracker.services.storage import PersistenceError, StorageError
from expense_tracker.validation import ValidationError


SOURCE = "web"

# Page configuration
st.set_page_config(
    page_title="Expense Tracker",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .success-box {
        padding: 20px;
        background-color: #d4edda;
        border-radius: 10px;
        border-left: 5px solid #28a745;
        margin: 10px 0;
    }
    .error-box {
        padding: 20px;
        background-color: #f8d7da;
        border-radius: 10px;
        border-left: 5px solid #dc3545;
        margin: 10px 0;
    }
</style>
""", unsafe_allow_html=True)


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    return create_app_components()


def main():
    """Main application entry point."""
    try:
        components = get_components()
    except StorageError as e:
        st.error(f"❌ Could not load the expense file: {e}")
        st.stop()

    st.sidebar.title("💰 Expense Tracker")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["➕ Add Expense", "🎯 Saldo", "📈 Graph", "📁 Import / Export", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        f"""
        **Monthly budget:** {format_amount(components.budget.current)} RUB

        **Cycle starts on day:** {components.report_flow.cycle_day}
        """
    )

    if page == "➕ Add Expense":
        render_add_page(components.expense_flow)
    elif page == "🎯 Saldo":
        render_saldo_page(components.report_flow)
    elif page == "📈 Graph":
        render_graph_page(components.report_flow)
    elif page == "📁 Import / Export":
        render_import_page(components.expense_flow)
    elif page == "⚙️ Settings":
        render_settings_page(components)


def render_add_page(expense_flow: ExpenseFlow):
    """Render the add expense form."""
    st.title("➕ Add Expense")

    with st.form("add_expense", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            expense_date = st.date_input("Date", value=date.today())
            category = st.text_input("Category", placeholder="Food")
        with col2:
            amount = st.number_input("Amount (RUB)", min_value=0.0, step=10.0, format="%.2f")
            description = st.text_input("Description (optional)")

        submitted = st.form_submit_button("💾 Save", type="primary")

    if submitted:
        payload = {
            "date": expense_date.isoformat(),
            "category": category,
            "description": description,
            "amount": amount,
        }
        try:
            transaction = expense_flow.add_expense(payload, source=SOURCE)
        except ValidationError as e:
            st.error(f"❌ {e.first_message}")
        except PersistenceError as e:
            st.error(f"❌ Failed to save transaction: {e}")
        else:
            st.markdown(f"""
            <div class="success-box">
                <h4>✅ Expense added!</h4>
                <p>{transaction.date} · {transaction.category} · {format_amount(transaction.amount)} RUB</p>
            </div>
            """, unsafe_allow_html=True)

    st.markdown("---")
    st.markdown("### Today")
    todays = expense_flow.transactions(date.today().isoformat())
    if todays:
        st.dataframe([tx.to_dict() for tx in todays], use_container_width=True)
    else:
        st.info("No expenses recorded today.")


def render_saldo_page(report_flow: ReportFlow):
    """Render the saldo for a chosen day."""
    st.title("🎯 Saldo")

    reference_date = st.date_input("Day", value=report_flow.today())
    report = report_flow.saldo(reference_date, source=SOURCE)

    col1, col2, col3 = st.columns(3)
    col1.metric("Spent today", f"{format_amount(report.spend_today)} RUB")
    col2.metric("Allowed so far (cycle)", f"{format_amount(report.allowed_cumulative)} RUB")
    col3.metric("Saldo", f"{format_amount(report.saldo)} RUB")

    if report.tomorrow_allowance is not None:
        st.markdown(f"➡️ **Tomorrow allowance:** {format_amount(report.tomorrow_allowance)} RUB")
    else:
        st.markdown("🏁 Last day of the cycle.")

    if report.is_on_track:
        st.success("✅ On track.")
    else:
        st.warning("⚠️ Over track for the month.")

    st.caption(
        f"Cycle {report.cycle.cycle_start} to {report.cycle.cycle_end} "
        f"(day {report.cycle.day_index} of {report.cycle.days_in_cycle})"
    )


def render_graph_page(report_flow: ReportFlow):
    """Render the month-to-date spending graph."""
    st.title("📈 Spending vs Budget")

    col1, col2 = st.columns(2)
    with col1:
        date_from = st.date_input("From", value=None)
    with col2:
        date_to = st.date_input("To", value=None)

    series = report_flow.graph_data(
        date_from.isoformat() if date_from else None,
        date_to.isoformat() if date_to else None,
        source=SOURCE,
    )

    st.caption(f"{series.date_from} to {series.date_to}")
    chart = {
        "date": [point.date for point in series.points],
        "cumulative": [float(point.cumulative) for point in series.points],
        "budget_cum": [float(point.budget_cum) for point in series.points],
    }
    st.line_chart(chart, x="date", y=["cumulative", "budget_cum"])
    st.bar_chart(
        {
            "date": chart["date"],
            "spend": [float(point.spend) for point in series.points],
        },
        x="date",
        y="spend",
    )


def render_import_page(expense_flow: ExpenseFlow):
    """Render CSV import and export."""
    st.title("📁 Import / Export")

    st.markdown("### Export")
    st.download_button(
        "⬇️ Download expenses.csv",
        data=expense_flow.export(source=SOURCE),
        file_name="expenses.csv",
        mime="text/csv",
    )

    st.markdown("---")
    st.markdown("### Replace all data")
    st.markdown(
        "The file must have the header `Date,Category,Description,Amount`. "
        "An empty file removes every expense."
    )

    uploaded_file = st.file_uploader("Choose a CSV file", type=["csv"])
    confirmed = st.checkbox("I understand this replaces all existing expenses")

    if uploaded_file and st.button("📤 Import", type="primary", disabled=not confirmed):
        try:
            result = expense_flow.import_csv(
                uploaded_file.getvalue(),
                mode=IMPORT_REPLACE,
                source=SOURCE,
                filename=uploaded_file.name,
            )
        except ValidationError as e:
            st.error("❌ CSV validation failed")
            for issue in e.issues:
                st.markdown(f"- {issue}")
        except PersistenceError as e:
            st.error(f"❌ Failed to save transactions: {e}")
        else:
            if result.is_empty:
                st.success("✅ Data reset (empty CSV)")
            else:
                st.success(
                    f"✅ Successfully imported {len(result.transactions)} transactions "
                    f"({format_amount(result.total_amount)} RUB)"
                )


def render_settings_page(components):
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Monthly budget")
    budget = components.budget
    st.markdown(f"Current: **{format_amount(budget.current)} RUB** ({budget.source})")

    new_value = st.number_input(
        "Runtime override (lost on restart)",
        min_value=0.0,
        value=float(budget.current),
        step=500.0,
    )
    col1, col2 = st.columns(2)
    with col1:
        if st.button("Set budget"):
            try:
                value = budget.override(parse_amount(new_value))
            except ValueError as e:
                st.error(f"❌ {e}")
            else:
                components.audit_logger.log_budget_overridden(
                    amount=format_amount(value), source=SOURCE,
                )
                st.rerun()
    with col2:
        if st.button("Reset to configured value"):
            value = budget.reset()
            components.audit_logger.log_budget_reset(amount=format_amount(value), source=SOURCE)
            st.rerun()

    st.markdown("---")
    st.markdown("### Configuration Status")

    status = validate_all_settings()
    sections = [
        ("Storage", "storage"),
        ("Budget", "budget"),
        ("Web server", "web"),
        ("Telegram bot", "telegram"),
        ("Backups", "backup"),
    ]
    for name, key in sections:
        if status.get(key, False):
            st.success(f"✅ {name}")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Recent activity")
    events = components.audit_logger.recent_events[-20:]
    if events:
        st.dataframe(
            [
                {
                    "time": event.timestamp.isoformat(timespec="seconds"),
                    "event": event.event_type.value,
                    "source": event.source,
                    "description": event.description,
                }
                for event in reversed(events)
            ],
            use_container_width=True,
        )
    else:
        st.info("No activity yet.")


if __name__ == "__main__":
    main()
