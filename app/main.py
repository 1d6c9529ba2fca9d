"""
Streamlit Chat Console for Budget Strategist

A local stand-in for the chat transport: every message typed here becomes a
ChatEvent for the orchestrator, and the replies (text and cards) are
rendered in the conversation.

DESIGN PRINCIPLES:
1. Exactly what the chat user would see, nothing more
2. Cards rendered from the same payloads a transport would receive
3. A fixed user id per browser session, so onboarding and streaks persist
"""

import asyncio
from datetime import datetime, timezone

import streamlit as st

from src.config import get_settings, validate_all_settings
from src.models.chat import BudgetReportCard, CardReply, ChatEvent, ReceiptCard, TextReply
from src.orchestrator import BudgetAssistant, create_app_components


# Page configuration
st.set_page_config(
    page_title="Budget Strategist",
    page_icon="🍚",
    layout="centered",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_assistant() -> BudgetAssistant:
    """Get or create the assistant (cached across reruns)."""
    return create_app_components()


def render_report_card(card: BudgetReportCard):
    currency = get_settings().app.currency_symbol
    st.markdown(
        f"<div style='border-left: 6px solid {card.color}; padding: 8px 16px;'>"
        f"<b>{card.title}</b><br><span style='font-size: 2.5em; font-weight: bold; "
        f"color: {card.color};'>{card.tier.value}</span></div>",
        unsafe_allow_html=True,
    )
    col1, col2, col3 = st.columns(3)
    col1.metric("Remaining", f"{currency}{card.remaining:,}")
    col2.metric("End of period", f"{currency}{card.projected_end_balance:,}")
    col3.metric("Survival days", card.survival_days)
    st.progress(min(card.bankruptcy_probability / 100, 1.0),
                text=f"Chance of running dry: {card.bankruptcy_probability:.0f}%")
    if card.ruin_date:
        st.caption(f"Money runs out around {card.ruin_date:%b %d}")


def render_receipt_card(card: ReceiptCard):
    currency = get_settings().app.currency_symbol
    st.markdown(f"**{card.title}**")
    st.table([
        {
            "Time": row.time,
            "Label": row.label,
            "Price": f"{currency}{row.price:,}" if row.price is not None else "-",
        }
        for row in card.rows
    ])
    st.markdown(f"**Total: {currency}{card.total:,}**")


def render_reply(reply):
    if isinstance(reply, TextReply):
        st.markdown(reply.text.replace("\n", "  \n"))
    elif isinstance(reply, CardReply):
        if isinstance(reply.card, BudgetReportCard):
            render_report_card(reply.card)
        elif isinstance(reply.card, ReceiptCard):
            render_receipt_card(reply.card)
    if get_settings().app.debug_mode:
        with st.expander("Payload"):
            st.json(reply.model_dump(mode="json"))


SETTINGS_GROUPS = [
    ("Forecast", "forecast"),
    ("Health tiers", "health"),
    ("Gamification", "gamification"),
    ("Google Sheets (Storage)", "google_sheets"),
    ("App", "app"),
]


def render_settings_status():
    """Per-group configuration check in the sidebar."""
    status = validate_all_settings()
    with st.sidebar.expander("Configuration"):
        for name, key in SETTINGS_GROUPS:
            if status.get(key, False):
                st.success(f"✅ {name}")
            else:
                error = status.get(f"{key}_error", "Not configured")
                st.error(f"❌ {name} - {error}")


def main():
    """Main application entry point."""
    assistant = get_assistant()

    if "user_id" not in st.session_state:
        st.session_state.user_id = "console-user"
    if "history" not in st.session_state:
        st.session_state.history = []

    # Sidebar
    st.sidebar.title("🍚 Budget Strategist")
    st.sidebar.markdown("---")
    st.session_state.user_id = st.sidebar.text_input(
        "Chat user id",
        value=st.session_state.user_id,
    )
    st.sidebar.markdown(
        "Try: `help`, `lunch curry 800`, `today`, `summary`, `status`, `menu`"
    )
    if st.sidebar.button("Clear conversation"):
        st.session_state.history = []
    render_settings_status()

    for role, payload in st.session_state.history:
        with st.chat_message(role):
            if role == "user":
                st.markdown(payload)
            else:
                render_reply(payload)

    text = st.chat_input("Message")
    if text is None:
        return

    st.session_state.history.append(("user", text))
    with st.chat_message("user"):
        st.markdown(text)

    event = ChatEvent(
        user_id=st.session_state.user_id,
        text=text,
        timestamp=datetime.now(timezone.utc),
    )
    with st.spinner("..."):
        replies = run_async(assistant.handle_event(event))

    for reply in replies:
        st.session_state.history.append(("assistant", reply))
        with st.chat_message("assistant"):
            render_reply(reply)


if __name__ == "__main__":
    main()
