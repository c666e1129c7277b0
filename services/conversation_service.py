import random
from typing import Callable, Optional

from graph.graph import TurnDeps, build_graph, run_turn
from graph.state import InboundMessage, TurnState, utcnow
from .conversation_store import ConversationStateStore
from .health_service import HealthService
from .llm_providers import LLMResponder
from .logger import setup_logger
from .notifier import deliver
from .places import get_places_client
from .turn_locks import TurnLocks

logger = setup_logger("conversation")

APOLOGY = "I'm sorry, I'm having trouble processing your message right now. Please try again in a moment. 💙"
MEDIA_ONLY = (
    "Thanks for sharing! 📎 I can only read text messages for now. "
    "Please describe your question or concern in words and I'll do my best to help."
)
HISTORY_LIMIT = 10


class ConversationService:
    """Runs one inbound WhatsApp message through a full turn.

    Turns for the same sender are serialised; different senders run
    concurrently. Nothing raised inside a turn reaches the transport: the
    user gets a single apology instead.
    """

    def __init__(
        self,
        storage,
        notifier,
        places=None,
        llm: Optional[LLMResponder] = None,
        rng: Optional[random.Random] = None,
        clock: Callable = utcnow,
    ) -> None:
        self.storage = storage
        self.notifier = notifier
        self.clock = clock
        self.health = HealthService(storage, clock=clock)
        self.states = ConversationStateStore(storage, clock=clock)
        self.locks = TurnLocks()
        self.deps = TurnDeps(
            storage=storage,
            health=self.health,
            places=places or get_places_client(),
            llm=llm or LLMResponder(),
            rng=rng or random.Random(),
            clock=clock,
        )
        self.app = build_graph(self.deps)

    async def process_incoming_message(self, inbound: InboundMessage) -> Optional[str]:
        """Handle one message and deliver the reply; returns the reply text."""
        async with self.locks.hold(inbound.sender_id):
            try:
                reply = await self._run(inbound)
            except Exception:
                logger.exception(f"turn failed for sender={inbound.sender_id} message={inbound.text!r}")
                await deliver(self.notifier, inbound.sender_id, APOLOGY)
                return APOLOGY
            await deliver(self.notifier, inbound.sender_id, reply)
            return reply

    async def _run(self, inbound: InboundMessage) -> str:
        text = (inbound.text or "").strip()
        if not text:
            if inbound.has_media:
                logger.info(f"media-only message from {inbound.sender_id} ({inbound.media_type})")
            return MEDIA_ONLY

        now = self.clock()
        is_new_user = self.storage.get_user_by_phone(inbound.sender_id) is None
        user = self.storage.find_or_create_user(inbound.sender_id)
        conversation = self.storage.get_or_create_conversation(user.id, now.date())
        history = [
            {"role": m.role.lower(), "content": m.content}
            for m in self.storage.recent_messages(user.id, HISTORY_LIMIT)
        ]
        self.storage.save_message(conversation.id, "USER", text, now)

        state = self.states.get(user.id, conversation.id)
        if state.context.location is None and user.location() is not None:
            state.context.location = user.location()

        turn = TurnState(
            message=text,
            user_id=user.id,
            phone_number=user.phone_number,
            conversation=state,
            profile=self.health.get_profile(user.id),
            history=history,
            is_new_user=is_new_user,
        )
        out = await run_turn(self.app, turn)
        self.states.update(out.conversation)

        reply = out.reply.render() if out.reply else APOLOGY
        self.storage.save_message(conversation.id, "ASSISTANT", reply, self.clock())
        logger.info(
            f"reply ready for user={user.id} stage={out.conversation.stage.value} "
            f"count={out.conversation.metadata.message_count}"
        )
        return reply

