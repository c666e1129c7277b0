import os
from typing import Any, Dict, Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.responses import Response

from graph.state import InboundMessage
from services.config import settings
from services.conversation_service import ConversationService
from services.health_service import predict_next_period
from services.logger import setup_logger
from services.notifier import ConsoleNotifier, TwilioNotifier
from services.storage import get_storage

logger = setup_logger("server")

EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'

app = FastAPI(title="Obrin Health WhatsApp Assistant")

_service: Optional[ConversationService] = None


def get_service() -> ConversationService:
    global _service
    if _service is None:
        if settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN:
            notifier = TwilioNotifier()
        else:
            logger.warning("Twilio credentials not set, replies go to the console")
            notifier = ConsoleNotifier()
        _service = ConversationService(storage=get_storage(), notifier=notifier)
    return _service


def twiml() -> Response:
    return Response(content=EMPTY_TWIML, media_type="application/xml")


def inbound_from_form(form: Dict[str, Any]) -> Optional[InboundMessage]:
    sender = (form.get("From") or "").replace("whatsapp:", "").strip()
    if not sender:
        return None
    try:
        num_media = int(form.get("NumMedia") or 0)
    except ValueError:
        num_media = 0
    return InboundMessage(
        sender_id=sender,
        text=form.get("Body") or "",
        has_media=num_media > 0,
        media_url=form.get("MediaUrl0"),
        media_type=form.get("MediaContentType0"),
    )


@app.post("/whatsapp/webhook")
async def whatsapp_webhook(request: Request, background_tasks: BackgroundTasks) -> Response:
    """Twilio posts each inbound message here; the reply is sent out of band."""
    try:
        form = dict(await request.form())
        inbound = inbound_from_form(form)
        if inbound is None:
            logger.warning("webhook call without a sender, ignoring")
            return twiml()
        logger.info(f"inbound from={inbound.sender_id} chars={len(inbound.text)} media={inbound.has_media}")
        background_tasks.add_task(get_service().process_incoming_message, inbound)
    except Exception:
        logger.exception("webhook handling failed")
    return twiml()


@app.post("/whatsapp/status")
async def whatsapp_status(request: Request) -> Dict[str, str]:
    form = dict(await request.form())
    logger.info(
        f"delivery status sid={form.get('MessageSid')} status={form.get('MessageStatus')} "
        f"to={form.get('To')} error={form.get('ErrorCode')}"
    )
    return {"status": "ok"}


@app.get("/users/{phone}/profile")
def user_profile(phone: str) -> Dict[str, Any]:
    storage = get_service().storage
    user = storage.get_user_by_phone(phone)
    if user is None:
        raise HTTPException(status_code=404, detail="Unknown user")
    profile = storage.get_health_profile(user.id)
    prediction = predict_next_period(profile)
    return {
        "user": user.model_dump(mode="json"),
        "profile": profile.model_dump(mode="json") if profile else None,
        "prediction": prediction.model_dump(mode="json") if prediction else None,
    }


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok", "service": "obrin-whatsapp"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("server:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
