import asyncio

import httpx
import pytest

from graph.state import Location, PromptContext, Urgency
from services.external import guarded_call
from services.llm_providers import (
    TECHNICAL_DIFFICULTIES,
    LLMProvider,
    LLMResponder,
    build_system_prompt,
    to_chat_messages,
)
from services.places import CLINIC_DIRECTORY, GooglePlacesClient, StaticClinicDirectory, format_clinics
from services.lexicon import GAZETTEER


@pytest.mark.asyncio
async def test_guarded_call_times_out_to_fallback():
    async def slow():
        await asyncio.sleep(1)
        return "late"

    assert await guarded_call(slow(), fallback="fallback", label="slow", timeout=0.01) == "fallback"


@pytest.mark.asyncio
async def test_guarded_call_error_to_fallback():
    async def boom():
        raise ValueError("nope")

    assert await guarded_call(boom(), fallback=[], label="boom") == []


def test_system_prompt_carries_topic_and_context():
    ctx = PromptContext(topic="emergency_contraception", urgency=Urgency.HIGH, user_location="Ikeja, Lagos", is_new_user=True)
    prompt = build_system_prompt(ctx)
    assert "EMERGENCY CONTRACEPTION GUIDANCE" in prompt
    assert "Urgency: high" in prompt
    assert "Location: Ikeja, Lagos" in prompt
    assert "First conversation" in prompt


def test_general_topic_has_no_topic_guidance():
    assert "GUIDANCE:" not in build_system_prompt(PromptContext())


def test_chat_messages_start_with_user_and_alternate():
    history = [
        {"role": "assistant", "content": "Welcome!"},
        {"role": "user", "content": "hi"},
        {"role": "user", "content": "are you there"},
        {"role": "assistant", "content": "Yes"},
    ]
    assert to_chat_messages(history) == [
        {"role": "user", "content": "hi\nare you there"},
        {"role": "assistant", "content": "Yes"},
    ]


class SlowProvider(LLMProvider):
    async def generate(self, system, messages, **kwargs):
        await asyncio.sleep(1)
        return "too late"


class EchoProvider(LLMProvider):
    def __init__(self):
        self.seen = None

    async def generate(self, system, messages, **kwargs):
        self.seen = (system, messages)
        return "  answer  "


@pytest.mark.asyncio
async def test_llm_responder_falls_back_on_timeout():
    responder = LLMResponder(provider=SlowProvider(), timeout=0.01)
    assert await responder.complete("hello", PromptContext()) == TECHNICAL_DIFFICULTIES


@pytest.mark.asyncio
async def test_llm_responder_passes_history_and_message():
    provider = EchoProvider()
    responder = LLMResponder(provider=provider)
    ctx = PromptContext(conversation_history=[{"role": "user", "content": "hi"}, {"role": "assistant", "content": "Hello!"}])
    assert await responder.complete("what is PID?", ctx) == "answer"
    _, messages = provider.seen
    assert messages[-1] == {"role": "user", "content": "what is PID?"}
    assert len(messages) == 3


@pytest.mark.asyncio
async def test_static_directory_matches_city_then_state():
    directory = StaticClinicDirectory()
    lagos = await directory.nearby_clinics(GAZETTEER["lagos"])
    assert lagos[0].name == "Lagos State University Teaching Hospital"
    ikeja = await directory.nearby_clinics(GAZETTEER["ikeja"])
    assert [c.name for c in ikeja] == [c.name for c in lagos]
    elsewhere = await directory.nearby_clinics(Location(lat=0, lng=0))
    assert elsewhere[0].name == "Community Health Center"


def test_format_clinics_top_three():
    clinics = list(CLINIC_DIRECTORY["lagos"])
    text = format_clinics(clinics + clinics)
    assert text.count("📍") == 3
    assert "+234-1-4960981" in text
    assert "couldn't find" in format_clinics([])


@pytest.mark.asyncio
async def test_google_places_client_parses_responses(monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        if "geocode" in request.url.path:
            return httpx.Response(200, json={
                "status": "OK",
                "results": [{"formatted_address": "Sango Ota, Nigeria", "geometry": {"location": {"lat": 6.69, "lng": 3.23}}}],
            })
        return httpx.Response(200, json={
            "status": "OK",
            "results": [{
                "name": "Ota General Hospital",
                "vicinity": "Idiroko Rd",
                "rating": 4.1,
                "types": ["hospital", "health"],
                "geometry": {"location": {"lat": 6.70, "lng": 3.24}},
            }],
        })

    transport = httpx.MockTransport(handler)
    real_client = httpx.AsyncClient

    def patched_client(*args, **kwargs):
        kwargs["transport"] = transport
        return real_client(*args, **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", patched_client)
    client = GooglePlacesClient(api_key="test-key", timeout=2, radius_m=3000)

    loc = await client.geocode("Sango Ota")
    assert (loc.lat, loc.lng) == (6.69, 3.23)
    assert loc.formatted_address == "Sango Ota, Nigeria"

    clinics = await client.nearby_clinics(loc, "sti_testing")
    assert clinics[0].name == "Ota General Hospital"
    assert clinics[0].address == "Idiroko Rd"
    assert clinics[0].distance.endswith("km")
