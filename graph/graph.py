import random
from dataclasses import dataclass, field
from typing import Any, Callable

from langgraph.graph import END, StateGraph

from .state import ComposedReply, PromptContext, Stage, TurnState, Urgency, utcnow
from agents.classifier_agent import classify
from agents.location_agent import format_location, parse_location_input
from agents.period_agent import handle_period_message
from agents.response_agent import compose
from services.conversation_store import follow_up_questions
from services.external import guarded_call
from services.lexicon import LLM_TOPICS
from services.logger import setup_logger
from services.places import format_clinics

logger = setup_logger("graph")

NODE_LOCATION = "location"
NODE_CLASSIFY = "classify"
NODE_PERIOD = "period"
NODE_COMPOSE = "compose"
NODE_CLINICS = "clinics"
NODE_LLM = "llm"

CLINIC_STAGES = {Stage.CLINIC_SEARCH, Stage.SERVICE_SELECTION}


@dataclass
class TurnDeps:
    storage: Any
    health: Any
    places: Any
    llm: Any
    rng: random.Random = field(default_factory=random.Random)
    clock: Callable = utcnow


def build_graph(deps: TurnDeps) -> Any:
    graph = StateGraph(TurnState)

    async def run_location(state: TurnState) -> TurnState:
        found = await guarded_call(
            parse_location_input(state.message, geocoder=deps.places), fallback=None, label="location lookup"
        )
        if found is None:
            return state
        conv = state.conversation.touched(deps.clock())
        conv.stage = Stage.LOCATION_SETUP
        conv.context.location = found
        deps.storage.update_user_location(state.user_id, found.lat, found.lng, found.city)
        reply = compose(state.message, conv, state.profile, deps.rng)
        conv.context.follow_up_questions = reply.follow_up or follow_up_questions(conv)
        logger.info(f"location set for user={state.user_id}: {format_location(found)}")
        state.conversation = conv
        state.location_found = found
        state.reply = reply
        return state

    async def run_classify(state: TurnState) -> TurnState:
        conv, result = classify(state.message, state.conversation, deps.clock())
        state.conversation = conv
        state.stage_matched = result.stage is not None
        if result.symptoms:
            state.profile = deps.health.track_symptoms(state.user_id, result.symptoms)
        logger.info(
            f"classified user={state.user_id} stage={conv.stage.value} intent={result.intent} "
            f"urgency={result.urgency.value} matched={state.stage_matched}"
        )
        return state

    async def run_period(state: TurnState) -> TurnState:
        today = deps.clock().date()
        text = handle_period_message(state.message, state.user_id, deps.health, today)
        state.profile = deps.health.get_profile(state.user_id)
        state.reply = ComposedReply(response=text)
        return state

    async def run_compose(state: TurnState) -> TurnState:
        reply = compose(state.message, state.conversation, state.profile, deps.rng)
        state.conversation.context.follow_up_questions = reply.follow_up or follow_up_questions(state.conversation)
        state.reply = reply
        return state

    async def run_clinics(state: TurnState) -> TurnState:
        conv = state.conversation
        location = conv.context.location
        clinics = await guarded_call(
            deps.places.nearby_clinics(location, conv.context.service_type), fallback=[], label="clinic search"
        )
        top = clinics[:3]
        state.clinics = top
        state.reply.response = f"{state.reply.response}\n\n{format_clinics(top)}"
        if top:
            deps.storage.save_clinic_search(state.user_id, format_location(location), conv.context.service_type, top)
            conv.stage = Stage.FOLLOW_UP
        return state

    async def run_llm(state: TurnState) -> TurnState:
        context = state.conversation.context
        ctx = PromptContext(
            topic=LLM_TOPICS.get(context.intent or "", "general"),
            urgency=context.urgency or Urgency.LOW,
            user_location=format_location(context.location) if context.location else None,
            conversation_history=state.history,
            is_new_user=state.is_new_user,
            symptoms=context.symptoms,
        )
        text = await deps.llm.complete(state.message, ctx)
        state.reply = ComposedReply(response=text)
        return state

    graph.add_node(NODE_LOCATION, run_location)
    graph.add_node(NODE_CLASSIFY, run_classify)
    graph.add_node(NODE_PERIOD, run_period)
    graph.add_node(NODE_COMPOSE, run_compose)
    graph.add_node(NODE_CLINICS, run_clinics)
    graph.add_node(NODE_LLM, run_llm)

    graph.set_entry_point(NODE_LOCATION)

    # A recognised location short-circuits the rest of the turn
    def route_after_location(state: TurnState) -> str:
        return "end" if state.location_found else "classify"

    graph.add_conditional_edges(
        NODE_LOCATION, route_after_location, {"end": END, "classify": NODE_CLASSIFY}
    )

    def route_after_classify(state: TurnState) -> str:
        if state.conversation.context.intent == "period_tracking":
            return "period"
        if state.stage_matched or state.conversation.metadata.message_count == 1:
            return "compose"
        return "llm"

    graph.add_conditional_edges(
        NODE_CLASSIFY,
        route_after_classify,
        {"period": NODE_PERIOD, "compose": NODE_COMPOSE, "llm": NODE_LLM},
    )

    def route_after_compose(state: TurnState) -> str:
        conv = state.conversation
        if conv.stage in CLINIC_STAGES and conv.context.location is not None:
            return "clinics"
        return "end"

    graph.add_conditional_edges(
        NODE_COMPOSE, route_after_compose, {"clinics": NODE_CLINICS, "end": END}
    )

    graph.add_edge(NODE_PERIOD, END)
    graph.add_edge(NODE_CLINICS, END)
    graph.add_edge(NODE_LLM, END)

    return graph.compile()


async def run_turn(app: Any, state: TurnState) -> TurnState:
    out = await app.ainvoke(state)
    return TurnState.model_validate(out) if isinstance(out, dict) else out
