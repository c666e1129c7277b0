import json
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

import anthropic

from graph.state import PromptContext
from .config import settings
from .external import guarded_call
from .logger import setup_logger

logger = setup_logger("llm")

NO_RESPONSE = "I apologize, but I couldn't generate a response at the moment. Please try again."
TECHNICAL_DIFFICULTIES = "I'm experiencing some technical difficulties. Please try again in a moment."

TOPIC_GUIDANCE: Mapping[str, str] = MappingProxyType({
    "emergency_contraception": """EMERGENCY CONTRACEPTION GUIDANCE:
- Emergency contraception is most effective within 72 hours (3 days) after unprotected sex
- Available options: emergency pills (e.g. Postinor), copper IUD insertion, or prescription medications
- Provide immediate, clear instructions on where to get emergency contraception
- Emphasize time sensitivity and urgency
- Offer emotional support and reassurance
- Always recommend follow-up with healthcare provider""",
    "pregnancy_concern": """PREGNANCY CONCERN GUIDANCE:
- Help assess pregnancy likelihood based on symptoms and timing
- Explain early pregnancy signs (missed period, nausea, fatigue, breast tenderness)
- Provide information on pregnancy testing options and costs
- Offer support for pregnancy anxiety and decision-making
- Refer to appropriate healthcare services based on user's situation
- Be non-judgmental about all pregnancy outcomes""",
    "sti_symptoms_and_testing": """STI SYMPTOMS AND TESTING GUIDANCE:
- Help identify common STI symptoms and their significance
- Provide information on testing options, costs, and confidentiality
- Emphasize that many STIs are treatable and nothing to be ashamed of
- Recommend appropriate testing based on symptoms and risk factors
- Provide information on prevention and safe sex practices
- Refer to STI-friendly clinics and testing centers""",
    "menstrual_tracking": """MENSTRUAL TRACKING GUIDANCE:
- Help users track their menstrual cycles and predict periods
- Provide information on normal vs. abnormal menstrual patterns
- Offer tips for managing menstrual symptoms and hygiene
- Help identify potential health issues related to menstrual changes
- Provide culturally appropriate menstrual health education
- Offer discreet tracking methods for privacy""",
    "menopause_support": """MENOPAUSE SUPPORT GUIDANCE:
- Provide information on perimenopause and menopause symptoms
- Offer practical tips for managing hot flashes, mood swings, and other symptoms
- Discuss treatment options including hormone replacement therapy
- Address concerns about bone health, heart health, and other long-term effects
- Provide emotional support for this life transition
- Refer to menopause specialists and support groups""",
    "contraception": """CONTRACEPTION GUIDANCE:
- Provide information on various contraceptive methods and their effectiveness
- Help users choose appropriate contraception based on their needs and health
- Explain how to use different methods correctly
- Address concerns about side effects and health risks
- Provide information on where to access contraception
- Support informed decision-making about family planning""",
})

BASE_PROMPT = """You are Obrin Health AI, a compassionate and knowledgeable assistant specializing in sexual and reproductive health (SRH) for adolescents and young adults, particularly in underserved communities in Nigeria.

CORE PRINCIPLES:
- Provide accurate, evidence-based health information
- Be culturally sensitive and non-judgmental
- Use simple, age-appropriate language
- Respect privacy and confidentiality
- Encourage professional medical consultation when appropriate
- Be supportive and empathetic

GUIDELINES:
- Keep responses short enough for WhatsApp
- Use emojis appropriately to make conversations friendly
- Ask follow-up questions to better understand user needs
- Provide practical, actionable advice
- Direct users to healthcare providers for medical diagnoses
- Offer clinic referrals when requested
- Be mindful of cultural contexts, especially in African communities
- For urgent matters (urgency: high), prioritize immediate action and clear next steps

LANGUAGE:
- Default to English but be ready to communicate in local languages
- Use teen-friendly language without being overly casual
- Avoid medical jargon unless necessary"""


def build_system_prompt(ctx: PromptContext) -> str:
    sections = [BASE_PROMPT]
    guidance = TOPIC_GUIDANCE.get(ctx.topic)
    if guidance:
        sections.append(guidance)

    user_context = [f"- Urgency: {ctx.urgency.value}"]
    if ctx.user_location:
        user_context.append(f"- Location: {ctx.user_location}")
    if ctx.symptoms:
        user_context.append(f"- Reported symptoms: {', '.join(ctx.symptoms)}")
    user_context.append("- First conversation: yes, introduce yourself briefly" if ctx.is_new_user else "- Returning user")
    sections.append("USER CONTEXT:\n" + "\n".join(user_context))
    sections.append(
        "Remember: You're here to educate, support, and empower people to make informed decisions "
        "about their sexual and reproductive health."
    )
    return "\n\n".join(sections)


def to_chat_messages(history: List[Dict[str, str]]) -> List[Dict[str, str]]:
    """Shape stored history for a chat API: user first, roles alternating."""
    out: List[Dict[str, str]] = []
    for item in history:
        role = "assistant" if item.get("role", "").lower() == "assistant" else "user"
        content = (item.get("content") or "").strip()
        if not content:
            continue
        if not out and role == "assistant":
            continue
        if out and out[-1]["role"] == role:
            out[-1]["content"] += "\n" + content
        else:
            out.append({"role": role, "content": content})
    return out


class LLMProvider:
    async def generate(self, system: str, messages: List[Dict[str, str]], **kwargs: Any) -> str:
        raise NotImplementedError


class AnthropicProvider(LLMProvider):
    def __init__(self, model: Optional[str] = None, client: Optional[Any] = None) -> None:
        if client is None:
            if not settings.ANTHROPIC_API_KEY:
                raise RuntimeError("ANTHROPIC_API_KEY not set")
            client = anthropic.AsyncAnthropic(api_key=settings.ANTHROPIC_API_KEY)
        self.model = model or settings.ANTHROPIC_MODEL
        self.client = client

    async def generate(self, system: str, messages: List[Dict[str, str]], **kwargs: Any) -> str:
        message = await self.client.messages.create(
            model=self.model,
            max_tokens=kwargs.get("max_tokens", settings.ANTHROPIC_MAX_TOKENS),
            temperature=kwargs.get("temperature", settings.ANTHROPIC_TEMPERATURE),
            system=system,
            messages=messages,
        )
        # Extract plain text from Anthropic content blocks
        parts = []
        for block in message.content or []:
            text = getattr(block, "text", None)
            if text:
                parts.append(text)
        return "\n".join(parts)


class LocalEchoProvider(LLMProvider):
    """Offline stand-in: acknowledges the last user message."""

    async def generate(self, system: str, messages: List[Dict[str, str]], **kwargs: Any) -> str:
        last = messages[-1]["content"] if messages else ""
        return (
            f'Thanks for your message ("{last[:120]}"). I can share general information on periods, '
            "contraception, STIs and pregnancy, and help you find a clinic near you. 💙"
        )


def get_provider(name: Optional[str] = None) -> LLMProvider:
    name = (name or settings.LLM_PROVIDER).lower()
    if name == "anthropic":
        return AnthropicProvider()
    return LocalEchoProvider()


class LLMResponder:
    """Free-text replies for messages no stage template covers."""

    def __init__(self, provider: Optional[LLMProvider] = None, timeout: Optional[float] = None) -> None:
        self.provider = provider or get_provider()
        self.timeout = timeout

    async def _generate(self, system: str, messages: List[Dict[str, str]]) -> str:
        text = (await self.provider.generate(system, messages)).strip()
        return text or NO_RESPONSE

    async def complete(self, message: str, ctx: PromptContext) -> str:
        history = to_chat_messages(ctx.conversation_history + [{"role": "user", "content": message}])
        system = build_system_prompt(ctx)
        logger.debug(f"LLM request topic={ctx.topic} context={json.dumps(ctx.model_dump(mode='json', exclude={'conversation_history'}))}")
        return await guarded_call(
            self._generate(system, history),
            fallback=TECHNICAL_DIFFICULTIES,
            label=f"LLM ({type(self.provider).__name__})",
            timeout=self.timeout,
        )
