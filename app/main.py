"""
Streamlit Dashboard for Finance Tracker

A single-user dashboard over the same LedgerService the HTTP API uses.

DESIGN PRINCIPLES:
1. Every write goes through LedgerService, so it is audited like API writes
2. Totals are always recomputed from the stored transactions
3. Clear error messages instead of stack traces

Run with:
    streamlit run app/main.py
"""

import asyncio
from datetime import date
from decimal import Decimal

import streamlit as st

from finance_tracker.config import validate_all_settings
from finance_tracker.models.ledger import (
    Channel,
    NewAccount,
    NewCategory,
    NewNetWorthSnapshot,
    NewSubscription,
    NewTransaction,
    SubscriptionFrequency,
)
from finance_tracker.orchestrator import LedgerService, create_app_components
from finance_tracker.subscriptions import next_due_date


# Page configuration
st.set_page_config(
    page_title="Finance Tracker",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

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


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_service() -> LedgerService:
    """Get or create the ledger service (cached across reruns)."""
    service, _ = create_app_components()
    return service


def main():
    service = get_service()

    st.sidebar.title("💰 Finance Tracker")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Dashboard", "➕ Add Transaction", "🔁 Subscriptions", "🏦 Net Worth", "⚙️ Settings"],
        index=0,
    )

    if page == "📊 Dashboard":
        render_dashboard_page(service)
    elif page == "➕ Add Transaction":
        render_transaction_page(service)
    elif page == "🔁 Subscriptions":
        render_subscriptions_page(service)
    elif page == "🏦 Net Worth":
        render_networth_page(service)
    elif page == "⚙️ Settings":
        render_settings_page(service)


def render_dashboard_page(service: LedgerService):
    st.title("📊 Dashboard")

    col1, col2 = st.columns(2)
    with col1:
        start = st.date_input("From", value=None)
    with col2:
        end = st.date_input("To", value=None)

    summary = run_async(service.summary(start, end))
    m1, m2, m3 = st.columns(3)
    m1.metric("Inflow", f"{summary.inflow:,.2f}")
    m2.metric("Outflow", f"{summary.outflow:,.2f}")
    m3.metric("Net", f"{summary.net:,.2f}")

    if summary.by_ccy:
        st.markdown("### By currency")
        st.table([
            {"Currency": ccy, "Inflow": float(t.inflow), "Outflow": float(t.outflow)}
            for ccy, t in summary.by_ccy.items()
        ])

    st.markdown("---")
    st.markdown("### Monthly breakdown")
    month = st.text_input("Month (YYYY-MM)", value=date.today().strftime("%Y-%m"))
    try:
        breakdown = run_async(service.breakdown(month))
    except ValueError as e:
        st.error(str(e))
        return

    left, right = st.columns(2)
    with left:
        st.markdown("**Credit cards**")
        if breakdown.credit_cards:
            st.table([{"Card": k, "Total": float(v)} for k, v in breakdown.credit_cards.items()])
        else:
            st.info("No credit card activity this month.")
    with right:
        st.markdown("**Categories**")
        if breakdown.categories:
            st.table([{"Category": k, "Total": float(v)} for k, v in breakdown.categories.items()])
        else:
            st.info("No transactions this month.")

    st.markdown("### Recent transactions")
    transactions = run_async(service.list_transactions())
    if transactions:
        st.dataframe([tx.model_dump(mode="json", by_alias=True) for tx in transactions[:50]])
    else:
        st.info("No transactions yet. Use 'Add Transaction' to record one.")


def render_transaction_page(service: LedgerService):
    st.title("➕ Add Transaction")

    accounts = [a.name for a in run_async(service.list_accounts())]
    categories = [c.name for c in run_async(service.list_categories())]

    with st.form("transaction_form"):
        tx_date = st.date_input("Date", value=date.today())
        account = st.selectbox("Account", options=accounts) if accounts else st.text_input("Account")
        category = st.selectbox("Category", options=categories) if categories else st.text_input("Category")
        amount = st.number_input("Amount (negative for spending)", value=0.0, step=1.0, format="%.2f")
        currency = st.text_input("Currency", value=service.default_currency, max_chars=3)
        description = st.text_input("Description")
        submitted = st.form_submit_button("💾 Save", type="primary")

    if submitted:
        try:
            tx = run_async(service.add_transaction(NewTransaction(
                date=tx_date,
                account=account,
                category=category,
                amount=Decimal(str(amount)),
                currency=currency or None,
                description=description or None,
            )))
            st.success(f"Saved to {tx.month_sheet}")
        except Exception as e:
            st.error(f"Could not save: {e}")

    st.markdown("---")
    col1, col2 = st.columns(2)
    with col1:
        with st.form("account_form"):
            st.markdown("**New account**")
            name = st.text_input("Name")
            ccy = st.text_input("Currency", value=service.default_currency, max_chars=3)
            if st.form_submit_button("Add account"):
                try:
                    run_async(service.add_account(NewAccount(name=name, currency=ccy)))
                    st.rerun()
                except Exception as e:
                    st.error(str(e))
    with col2:
        with st.form("category_form"):
            st.markdown("**New category**")
            name = st.text_input("Name", key="category_name")
            if st.form_submit_button("Add category"):
                try:
                    run_async(service.add_category(NewCategory(name=name)))
                    st.rerun()
                except Exception as e:
                    st.error(str(e))


def render_subscriptions_page(service: LedgerService):
    st.title("🔁 Subscriptions")

    today = date.today()
    subscriptions = run_async(service.list_subscriptions())
    if subscriptions:
        st.table([
            {
                "Name": s.name,
                "Account": s.account,
                "Amount": float(s.amount),
                "Frequency": s.frequency,
                "Last posted": s.last_posted.isoformat() if s.last_posted else "",
                "Next due": next_due_date(s.frequency, s.last_posted, today).isoformat(),
                "Reminders": f"{s.channel.value}: {s.contact}" if s.channel else "",
            }
            for s in subscriptions
        ])
    else:
        st.info("No subscriptions yet.")

    col1, col2 = st.columns(2)
    with col1:
        if st.button("📮 Post due subscriptions", type="primary"):
            result = run_async(service.post_subscriptions(today))
            if result.posted:
                st.success(f"Posted: {', '.join(result.posted)}")
            else:
                st.info("Nothing due today.")
            if result.failed:
                st.error(f"Failed: {', '.join(result.failed)}")
    with col2:
        if st.button("🔔 Send reminders"):
            outcome = run_async(service.send_reminders(today))
            st.info(f"Sent {len(outcome['sent'])}, failed {len(outcome['failed'])}")

    st.markdown("---")
    with st.form("subscription_form"):
        st.markdown("**New subscription**")
        name = st.text_input("Name")
        account = st.text_input("Account")
        amount = st.number_input("Amount", min_value=0.0, step=1.0, format="%.2f")
        frequency = st.selectbox("Frequency", options=[f.value for f in SubscriptionFrequency])
        channel = st.selectbox(
            "Reminder channel",
            options=[None] + list(Channel),
            format_func=lambda x: "None" if x is None else x.value,
        )
        contact = st.text_input("Contact (phone number or LINE user id)")
        if st.form_submit_button("Add subscription"):
            try:
                run_async(service.add_subscription(NewSubscription(
                    name=name,
                    account=account,
                    amount=Decimal(str(amount)),
                    frequency=frequency,
                    currency=service.default_currency,
                    channel=channel,
                    contact=contact or None,
                )))
                st.rerun()
            except Exception as e:
                st.error(str(e))


def render_networth_page(service: LedgerService):
    st.title("🏦 Net Worth")

    snapshots = run_async(service.list_networth_snapshots())
    if snapshots:
        latest = snapshots[0]
        st.metric("Latest net worth", f"{latest.net_worth:,.2f}", help=str(latest.date))
        st.line_chart({
            "date": [s.date.isoformat() for s in reversed(snapshots)],
            "net worth": [float(s.net_worth) for s in reversed(snapshots)],
        }, x="date", y="net worth")
    else:
        st.info("No snapshots yet.")

    with st.form("networth_form"):
        assets = st.number_input("Assets", value=0.0, step=100.0, format="%.2f")
        liabilities = st.number_input("Liabilities (negative)", value=0.0, step=100.0, format="%.2f")
        if st.form_submit_button("📸 Record snapshot"):
            run_async(service.add_networth_snapshot(NewNetWorthSnapshot(
                assets=Decimal(str(assets)),
                liabilities=Decimal(str(liabilities)),
            )))
            st.rerun()


def render_settings_page(service: LedgerService):
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")
    status = validate_all_settings(service.settings)

    services = [
        ("Storage", "storage"),
        ("Google Sheets", "google_sheets"),
        ("Twilio WhatsApp", "twilio"),
        ("LINE", "line"),
    ]
    for name, key in services:
        if key not in status:
            continue
        if status[key]:
            st.success(f"✅ {name} - Connected")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown(f"**Environment:** {service.settings.app.app_environment}")
    st.markdown(f"**Storage backend:** {service.settings.storage.backend}")

    if not service.settings.app.is_production:
        if st.button("🗑️ Reset all data"):
            run_async(service.reset())
            st.success("All data reset to zero")


if __name__ == "__main__":
    main()
