import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import asyncio
import logging
from datetime import date
from typing import Optional

import streamlit as st
import plotly.graph_objects as go

from tracker.categories import is_deletable
from tracker.config import FIRESTORE_BACKEND, load_settings
from tracker.domain import EXPENSE, INCOME, Identity
from tracker.events import AUTH_STATE_CHANGED, STORE_ERROR, EventBus
from tracker.interfaces import IdentityProvider
from tracker.logger import configure_logging
from tracker.memory import InMemoryCategoryStore, InMemoryDocumentStore, LocalIdentityProvider
from tracker.overview import DAY, MONTH
from tracker.session import SessionContext, SessionManager
from tracker.transforms import daily_totals, load_seed, transactions_to_frame

st.set_page_config(page_title="Finance Tracker", layout="centered")

settings = load_settings()
configure_logging(settings.log_level, settings.log_file)
logger = logging.getLogger("tracker.app")
CUR = settings.currency
REFRESH_SECONDS = 2


class StreamlitIdentityProvider(IdentityProvider):
    """Identity from Streamlit's OIDC login (configured in secrets.toml)."""

    def __init__(self, bus: EventBus):
        self._bus = bus
        self._identity: Optional[Identity] = None

    @property
    def current_identity(self) -> Optional[Identity]:
        return self._identity

    def sync(self) -> None:
        user = st.user
        identity = None
        if user.is_logged_in:
            identity = Identity(
                uid=str(user.get("sub") or user.get("email")),
                display_name=user.get("name"),
                photo_url=user.get("picture"),
            )
        if identity != self._identity:
            self._identity = identity
            self._bus.publish(AUTH_STATE_CHANGED, {"identity": identity})

    def sign_in(self, *args, **kwargs) -> Optional[Identity]:
        st.login()
        return self._identity

    def sign_out(self) -> None:
        self._identity = None
        self._bus.publish(AUTH_STATE_CHANGED, {"identity": None})
        st.logout()


@st.cache_resource
def get_backend():
    if settings.backend == FIRESTORE_BACKEND:
        from tracker.firestore import connect
        return connect(settings.credentials_path, settings.app_id)
    return InMemoryDocumentStore(), InMemoryCategoryStore()


def run(coro):
    return asyncio.run(coro)


def flash(text: str, is_error: bool = False) -> None:
    st.session_state.flash = (text, is_error)


def on_store_error(event, payload: dict) -> dict:
    flash("Could not load transactions. Showing the last known data.", True)
    return {}


@st.fragment(run_every=REFRESH_SECONDS)
def watch_feed(context: SessionContext) -> None:
    # snapshots land on a listener thread; rerun the page when one arrived
    seen = st.session_state.get("feed_seen")
    current = (context.store.transactions, context.loading)
    st.session_state.feed_seen = current
    if seen is not None and (seen[0] is not current[0] or seen[1] != current[1]):
        st.rerun()


async def seed_if_empty(context: SessionContext) -> None:
    if not settings.seed_path or context.store.transactions:
        return
    logger.info("Seeding demo transactions for %s", context.identity.uid)
    for entry in load_seed(settings.seed_path):
        await context.store.add(entry)


documents, category_store = get_backend()

if "bus" not in st.session_state:
    bus = EventBus()
    bus.subscribe(STORE_ERROR, on_store_error)
    st.session_state.bus = bus
    st.session_state.sessions = SessionManager(bus, documents, category_store, settings.app_id)
    if settings.backend == FIRESTORE_BACKEND:
        st.session_state.auth = StreamlitIdentityProvider(bus)
    else:
        st.session_state.auth = LocalIdentityProvider(bus)

auth = st.session_state.auth
sessions: SessionManager = st.session_state.sessions

if isinstance(auth, StreamlitIdentityProvider):
    auth.sync()

context = sessions.current

if "flash" in st.session_state:
    text, is_error = st.session_state.pop("flash")
    (st.error if is_error else st.success)(text)

# --- Sign in ---------------------------------------------------------------
if context is None:
    st.title("💰 Finance Tracker")
    st.caption("Track your income and expenses day by day.")
    if isinstance(auth, LocalIdentityProvider):
        with st.form("sign_in"):
            nickname = st.text_input("Nickname")
            if st.form_submit_button("Sign in"):
                if auth.sign_in(nickname) is None:
                    flash("Please enter a nickname.", True)
                else:
                    run(sessions.current.load_categories())
                    st.session_state.categories_loaded_for = sessions.current.identity.uid
                    run(seed_if_empty(sessions.current))
                st.rerun()
    else:
        if st.button("Sign in with Google"):
            auth.sign_in()
    st.stop()

if "categories_loaded_for" not in st.session_state or st.session_state.categories_loaded_for != context.identity.uid:
    run(context.load_categories())
    st.session_state.categories_loaded_for = context.identity.uid

# --- Header ----------------------------------------------------------------
identity = context.identity
h1, h2 = st.columns([4, 1])
with h1:
    photo = identity.photo_url or f"https://placehold.co/40x40/E2E8F0/4A5568?text={identity.initial}"
    st.markdown(f"![avatar]({photo}) **{identity.display_label}**")
    st.caption(f"User ID: {identity.uid}")
with h2:
    if st.button("Sign Out"):
        auth.sign_out()
        st.session_state.pop("categories_loaded_for", None)
        st.rerun()

if settings.backend == FIRESTORE_BACKEND:
    watch_feed(context)

if context.loading:
    st.info("Loading transactions...")

view = st.radio("View", ["Day", "Month"], horizontal=True, label_visibility="collapsed")
kind = DAY if view == "Day" else MONTH

# --- Overview --------------------------------------------------------------
n1, n2, n3 = st.columns([1, 3, 1])
with n1:
    if st.button("◀", key="prev"):
        if kind == DAY:
            context.step_day(-1)
        else:
            context.step_month(-1)
        st.rerun()
with n2:
    st.subheader(context.cursor.label() if kind == DAY else context.cursor.month_label())
with n3:
    if st.button("▶", key="next"):
        if kind == DAY:
            context.step_day(1)
        else:
            context.step_month(1)
        st.rerun()

overview = context.overview(kind)
k1, k2, k3 = st.columns(3)
with k1:
    st.metric("Total Income", f"{CUR} {overview.total_income:,.2f}")
with k2:
    st.metric("Total Expenses", f"{CUR} {overview.total_expenses:,.2f}")
with k3:
    color = "red" if overview.is_negative else "blue"
    st.markdown("Balance")
    st.markdown(f"### :{color}[{CUR} {overview.balance_magnitude:,.2f}]")

# --- Add transaction -------------------------------------------------------
cats = context.categories.categories
with st.expander("➕ Add New Transaction"):
    tx_type = st.selectbox("Type", [INCOME, EXPENSE], format_func=str.capitalize)
    with st.form("add_transaction", clear_on_submit=True):
        amount = st.text_input(f"Amount ({CUR})", placeholder="e.g., 50.00")
        category = st.selectbox("Category", [""] + list(cats.for_type(tx_type)))
        when = st.date_input("Date", value=date.today())
        if st.form_submit_button("Add Transaction"):
            ok, message = run(context.add_transaction(tx_type, amount, category, when))
            flash(message, not ok)
            st.rerun()

    st.markdown("**Manage Categories**")
    new_category = st.text_input("New category name", key="new_category")
    if st.button("Add category"):
        label = new_category.strip()
        if not label:
            flash("Please enter a name for the new category.", True)
        elif run(context.categories.add(label, tx_type)):
            flash(f"Category '{label}' added!")
        else:
            flash(f"Error adding category '{label}'.", True)
        st.rerun()

    for cat in cats.for_type(tx_type):
        c1, c2 = st.columns([4, 1])
        c1.write(cat)
        if is_deletable(cat) and c2.button("✕", key=f"delcat_{tx_type}_{cat}"):
            st.session_state.confirm_category = (cat, tx_type)
            st.rerun()

if "confirm_category" in st.session_state:
    cat, cat_type = st.session_state.confirm_category
    st.warning(f"Are you sure you want to delete the category '{cat}'? This will not affect existing transactions.")
    y, n = st.columns(2)
    if y.button("Yes, Delete", key="confirm_cat_yes"):
        del st.session_state.confirm_category
        if run(context.categories.delete(cat, cat_type)):
            flash(f"Category '{cat}' deleted!")
        else:
            flash(f"Error deleting category '{cat}'.", True)
        st.rerun()
    if n.button("No", key="confirm_cat_no"):
        del st.session_state.confirm_category
        st.rerun()

# --- Transactions ----------------------------------------------------------
st.divider()
st.subheader("Daily Transactions" if kind == DAY else "Monthly Transactions")

if "confirm_delete" in st.session_state:
    st.warning("Are you sure you want to delete this transaction?")
    y, n = st.columns(2)
    if y.button("Yes, Delete", key="confirm_tx_yes"):
        tx_id = st.session_state.pop("confirm_delete")
        ok, message = run(context.delete_transaction(tx_id))
        flash(message, not ok)
        st.rerun()
    if n.button("No", key="confirm_tx_no"):
        del st.session_state.confirm_delete
        st.rerun()

if not overview.transactions:
    st.info("No transactions for this day." if kind == DAY else "No transactions for this month.")
for t in overview.transactions:
    c1, c2 = st.columns([5, 1])
    icon = "🟢" if t.type == INCOME else "🔴"
    c1.markdown(f"{icon} **{t.category}**  \n{t.date.strftime('%Y-%m-%d')} - {CUR} {t.amount:,.2f}")
    if c2.button("✕", key=f"del_{t.id}"):
        st.session_state.confirm_delete = t.id
        st.rerun()

if kind == MONTH and overview.transactions:
    df = transactions_to_frame(overview.transactions)
    per_day = daily_totals(df, context.cursor.year, context.cursor.month)
    fig = go.Figure()
    fig.add_trace(go.Bar(x=per_day.index.day, y=per_day["income"], name="Income"))
    fig.add_trace(go.Bar(x=per_day.index.day, y=per_day["expense"], name="Expense"))
    fig.update_layout(barmode="group", margin=dict(t=30, b=10, l=10, r=10), xaxis_title="Day")
    st.plotly_chart(fig, use_container_width=True)
    disp = df[["date", "type", "category", "amount"]].copy()
    disp["date"] = disp["date"].dt.strftime("%Y-%m-%d")
    st.table(disp.reset_index(drop=True))
