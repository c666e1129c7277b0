import asyncio
import traceback

import streamlit as st

from graph.state import InboundMessage
from services.config import settings
from services.conversation_service import ConversationService
from services.health_service import predict_next_period
from services.notifier import MemoryNotifier
from services.storage import get_storage

st.set_page_config(page_title="Obrin Health WhatsApp Simulator", page_icon="🌸", layout="centered")

st.title("🌸 Obrin Health WhatsApp Simulator")

# Sidebar: environment
with st.sidebar:
    st.subheader("Environment")
    st.caption("Values loaded from environment / .env")
    st.text_input("LLM_PROVIDER", settings.LLM_PROVIDER)
    st.text_input("ANTHROPIC_API_KEY", "***" if settings.ANTHROPIC_API_KEY else "(not set)")
    st.text_input("GOOGLE_MAPS_API_KEY", "***" if settings.GOOGLE_MAPS_API_KEY else "(not set, static directory)")
    phone = st.text_input("Simulated phone number", "+2348000000001")

if "service" not in st.session_state:
    st.session_state.notifier = MemoryNotifier()
    st.session_state.service = ConversationService(storage=get_storage(), notifier=st.session_state.notifier)
    st.session_state.transcript = []

service: ConversationService = st.session_state.service

st.subheader("Chat")
text = st.text_area("Message", placeholder="My last period started 15/01/2024", height=100)
if st.button("Send", type="primary") and text.strip():
    st.session_state.transcript.append(("You", text.strip()))
    try:
        reply = asyncio.run(service.process_incoming_message(InboundMessage(sender_id=phone, text=text.strip())))
        st.session_state.transcript.append(("Obrin", reply or ""))
    except Exception as e:
        st.error(f"Error while processing the message: {e}")
        st.code(traceback.format_exc())

if st.session_state.transcript:
    st.markdown("### Conversation")
    for who, content in st.session_state.transcript[-12:]:
        st.markdown(f"**{who}:** {content}")

st.markdown("### Health profile")
user = service.storage.get_user_by_phone(phone)
profile = service.storage.get_health_profile(user.id) if user else None
if profile is None:
    st.caption("No health profile yet. Tell the assistant when your last period started.")
else:
    st.json(profile.model_dump(mode="json"))
    prediction = predict_next_period(profile)
    if prediction:
        window = prediction.fertility_window
        st.metric("Next period", prediction.date.isoformat(), f"{prediction.confidence_percent}% confidence")
        st.caption(f"Fertile window: {window.start.isoformat()} to {window.end.isoformat()}")
    if profile.period_history:
        st.table([e.model_dump(mode="json") for e in profile.period_history])
