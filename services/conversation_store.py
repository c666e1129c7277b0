from typing import Callable, List

from graph.state import ConversationMetadata, ConversationState, Stage, utcnow
from .lexicon import DEFAULT_FOLLOW_UP_QUESTIONS, FOLLOW_UP_QUESTIONS
from .logger import setup_logger

logger = setup_logger("conversation-state")


def initial_state(user_id: str, conversation_id: str, now=None) -> ConversationState:
    return ConversationState(
        stage=Stage.GREETING,
        metadata=ConversationMetadata(
            conversation_id=conversation_id,
            user_id=user_id,
            last_updated=now or utcnow(),
            message_count=0,
        ),
    )


def follow_up_questions(state: ConversationState) -> List[str]:
    return list(FOLLOW_UP_QUESTIONS.get(state.stage, DEFAULT_FOLLOW_UP_QUESTIONS))


class ConversationStateStore:
    """Per (user, conversation) dialogue state with upsert semantics."""

    def __init__(self, storage, clock: Callable = utcnow) -> None:
        self.storage = storage
        self.clock = clock

    def get(self, user_id: str, conversation_id: str) -> ConversationState:
        existing = self.storage.load_conversation_state(user_id, conversation_id)
        if existing:
            return existing
        state = initial_state(user_id, conversation_id, self.clock())
        self.storage.save_conversation_state(state)
        logger.info(f"new conversation state user={user_id} conversation={conversation_id}")
        return state

    def update(self, state: ConversationState) -> None:
        self.storage.save_conversation_state(state)

    def reset(self, user_id: str, conversation_id: str) -> ConversationState:
        state = initial_state(user_id, conversation_id, self.clock())
        self.storage.save_conversation_state(state)
        logger.info(f"reset conversation state user={user_id} conversation={conversation_id}")
        return state
