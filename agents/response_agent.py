import random
from typing import Callable, Dict, Optional

from graph.state import ComposedReply, ConversationState, HealthProfile, Stage, Urgency
from services.conversation_store import follow_up_questions
from services.health_service import predict_next_period
from services.lexicon import FOLLOW_UP_QUESTIONS
from .location_agent import LOCATION_INSTRUCTIONS, format_location
from .symptom_agent import assess, assessment_kind, render_assessment

GREETINGS = (
    "Hello! 👋 I'm your Obrin Health assistant, here to support your sexual and reproductive health. What's on your mind today?",
    "Hi there! 🌸 I'm here to help with any questions about your reproductive health journey. How can I assist you?",
    "Welcome! 💙 I'm your confidential SRH support. Feel free to ask anything about your health - I'm here to help without judgment.",
)

GREETING_FOLLOW_UP = [
    "Tell me about any symptoms or concerns you have",
    "Ask about menstrual health, contraception, or STIs",
    "Share what's on your mind - I'm here to listen",
]

URGENT_CARE = (
    "🚨 This sounds urgent. Please seek medical care right away, ideally within 24 hours, "
    "and call emergency services (112) if your symptoms get worse."
)

SERVICE_LABELS: Dict[str, str] = {
    "gynecology": "gynecology",
    "sti_testing": "STI testing",
    "family_planning": "family planning",
    "emergency_contraception": "emergency contraception",
    "pregnancy_care": "pregnancy care",
}

MENSTRUAL_SYMPTOMS = ("cramps", "irregular", "missed period", "bleeding")


def service_label(service_type: Optional[str], default: str = "healthcare") -> str:
    if not service_type:
        return default
    return SERVICE_LABELS.get(service_type, service_type.replace("_", " "))


def _urgent_first(state: ConversationState, body: str) -> str:
    if state.context.urgency == Urgency.HIGH:
        return f"{URGENT_CARE}\n\n{body}"
    return body


def handle_greeting(message: str, state: ConversationState, rng: random.Random, **_) -> ComposedReply:
    if state.context.location:
        where = format_location(state.context.location)
        return ComposedReply(
            response=f"Welcome back! I remember you're in {where}. How can I help with your health today? 💙",
            follow_up=list(GREETING_FOLLOW_UP),
        )
    return ComposedReply(response=rng.choice(GREETINGS), follow_up=list(GREETING_FOLLOW_UP))


def handle_location_setup(message: str, state: ConversationState, **_) -> ComposedReply:
    if state.context.location:
        where = format_location(state.context.location)
        return ComposedReply(
            response=f"""Perfect! I have your location as {where}.

What type of health services are you looking for today?
• 🏥 General clinics
• 🩺 Specialized care (gynecology, STI testing, etc.)
• 💊 Emergency services
• 📋 Health information""",
            follow_up=follow_up_questions(state),
        )
    return ComposedReply(
        response=LOCATION_INSTRUCTIONS,
        follow_up=['You can say "I\'m in Lagos" or "Ogudu area"', 'Or share coordinates like "6.6051, 3.3958"'],
    )


def handle_health_assessment(
    message: str, state: ConversationState, profile: Optional[HealthProfile] = None, **_
) -> ComposedReply:
    lowered = message.lower()
    if "early pregnancy symptoms" in lowered or ("symptoms" in lowered and state.context.service_type == "pregnancy_care"):
        return ComposedReply(
            response="""Here are the common early pregnancy symptoms to look out for: 🤰

*Most Common Early Signs:*
• *Missed period* - Usually the first sign
• *Nausea/morning sickness* - Often starts around 6 weeks
• *Breast tenderness* - Feeling sore or swollen
• *Fatigue* - Feeling unusually tired
• *Frequent urination* - Need to pee more often
• *Food aversions* - Suddenly disliking certain foods
• *Mood changes* - Feeling more emotional

*When to Take a Test:*
• Wait at least 1 week after missed period for most accurate results
• Home pregnancy tests are about 99% accurate when used correctly

*Remember:* Every person is different - you might have all, some, or none of these symptoms.""",
            follow_up=[
                "Do you think you might be pregnant?",
                "Would you like to know about pregnancy tests?",
                "Do you need help finding prenatal care?",
            ],
        )

    if ("pregnancy" in lowered or "pregnant" in lowered) and state.metadata.message_count <= 1:
        return ComposedReply(
            response="""I'm here to help with pregnancy-related questions. 🤰

Could you tell me more about what you'd like to know? For example:
• Early pregnancy symptoms
• What to expect during pregnancy
• Prenatal care information
• Concerns about possible pregnancy

Feel free to share - this is a safe, judgment-free space.""",
            follow_up=[
                "Tell me more about your specific concerns",
                "What symptoms are you experiencing?",
                "How can I best support you right now?",
            ],
        )

    symptoms = state.context.symptoms
    if symptoms:
        body = f"""I understand you're experiencing {', '.join(symptoms)}.

To help you better, could you tell me:
• How long have you had these symptoms?
• Are they mild, moderate, or severe?
• Have you experienced anything like this before?

Based on your answers, I can provide guidance and let you know if you should consider seeing a healthcare provider. 🤔"""
        if any(s in MENSTRUAL_SYMPTOMS for s in symptoms):
            prediction = predict_next_period(profile)
            if prediction:
                body += (
                    f"\n\n📅 For reference, your next period is expected around "
                    f"{prediction.date.strftime('%d %b %Y')} ({prediction.confidence_percent}% confidence)."
                )
            else:
                body += "\n\n📅 Tip: tell me when your last period started (DD/MM/YYYY) and I can track your cycle too."
        return ComposedReply(
            response=_urgent_first(state, body),
            follow_up=[
                "How long have you had these symptoms?",
                "Are the symptoms mild, moderate, or severe?",
                "Tell me more about what you're experiencing",
            ],
        )

    return ComposedReply(
        response="""I'm here to help with your sexual and reproductive health concerns.

Could you describe what you're experiencing? For example:
• "I have pregnancy symptoms"
• "Unusual discharge"
• "Missed my period"
• "Questions about contraception"
• "Concerns about STIs"

Take your time - I'm here to listen and help. 💙""",
        follow_up=[
            "What symptoms or concerns do you have?",
            "Tell me more about what brought you here today",
            "How can I best support your health needs?",
        ],
    )


def handle_clinic_search(message: str, state: ConversationState, **_) -> ComposedReply:
    if state.context.service_type:
        body = f"""Great! Let me look for {service_label(state.context.service_type)} clinics near you.

Would you like me to:
• 📍 Show you the closest 3 clinics
• ⭐ Show only highly-rated clinics
• 💰 Show clinics with affordable services
• 📞 Get contact information for specific clinics"""
        follow_up = list(FOLLOW_UP_QUESTIONS[Stage.SERVICE_SELECTION])
    else:
        body = """I can help you find the right clinic!

What type of services are you looking for?
• 🏥 General health check
• 🩺 Women's health (gynecology, family planning)
• 🔬 STI testing and treatment
• 🤰 Pregnancy care
• 💊 Emergency contraception
• 🧠 Mental health support"""
        follow_up = list(FOLLOW_UP_QUESTIONS[Stage.CLINIC_SEARCH])
    if not state.context.location:
        body += "\n\n📍 Share your location (e.g. \"I'm in Ikeja\") so I can find clinics close to you."
    return ComposedReply(response=_urgent_first(state, body), follow_up=follow_up)


def handle_symptom_check(message: str, state: ConversationState, **_) -> ComposedReply:
    symptoms = state.context.symptoms
    if not symptoms:
        body = (
            "I can help assess symptoms you might be experiencing. Could you describe what you're feeling? "
            "For example: pain, unusual discharge, itching, etc. 🩺\n\n"
            "Remember, I provide general guidance - for proper diagnosis, please consult a healthcare provider."
        )
        return ComposedReply(
            response=_urgent_first(state, body),
            follow_up=["What symptoms are you noticing?", "When did they start?"],
        )

    assessment = assess(symptoms, assessment_kind(symptoms, state.context.service_type))
    rendered = render_assessment(assessment, location_known=state.context.location is not None)
    if state.context.urgency == Urgency.HIGH:
        return ComposedReply(
            response=f"{URGENT_CARE}\n\n{rendered}",
            follow_up=[
                "Would you like me to find the closest emergency clinic?",
                "Do you need more information about your symptoms?",
                "Would you like help preparing for your medical visit?",
            ],
        )
    body = f"""I understand your concerns about {', '.join(symptoms)}.

{rendered}

To guide you better:
• When did these symptoms start?
• Are they getting better, worse, or staying the same?
• Have you taken any medications recently?"""
    return ComposedReply(
        response=body,
        follow_up=[
            "When did these symptoms start?",
            "Are they getting better, worse, or staying the same?",
            "Would you like me to help you find a clinic?",
        ],
    )


def handle_service_selection(message: str, state: ConversationState, **_) -> ComposedReply:
    label = service_label(state.context.service_type)
    where = "Based on your location" if state.context.location else "Once you share your location"
    body = f"""Perfect! I'll help you find {label} services.

{where}, I can:
• 📍 Show you the closest clinics
• ⭐ Show highly-rated options
• 💰 Show affordable services
• 📞 Provide contact information

What's most important to you - proximity, quality, or cost?"""
    return ComposedReply(
        response=_urgent_first(state, body),
        follow_up=[
            "Would you like the closest clinics or highly-rated ones?",
            "Do you need information about costs?",
            "Would you like contact information for specific clinics?",
        ],
    )


def handle_clinic_details(message: str, state: ConversationState, **_) -> ComposedReply:
    clinic = state.context.selected_clinic
    if clinic:
        lines = [f"🏥 *{clinic.name}*", f"📍 {clinic.address}", f"📞 {clinic.phone or 'Contact available on-site'}"]
        if clinic.services:
            lines.append(f"🩺 Services: {', '.join(clinic.services)}")
        if clinic.rating is not None:
            lines.append(f"⭐ Rating: {clinic.rating}")
        return ComposedReply(
            response="Here are the details I have:\n\n" + "\n".join(lines),
            follow_up=["Do you need directions to the clinic?", "Would you like to see other clinics?"],
        )
    return ComposedReply(
        response="""I'd be happy to provide more details about the clinics!

What specific information would you like?
• 📞 Contact information and phone numbers
• 🗺️ Directions and how to get there
• 💰 Consultation fees and costs
• 🕒 Operating hours and availability
• 🏥 Services offered and specializations""",
        follow_up=list(FOLLOW_UP_QUESTIONS[Stage.CLINIC_DETAILS]),
    )


def generate_recommendations(state: ConversationState) -> str:
    if state.context.urgency == Urgency.HIGH:
        return """🚨 *Immediate Action Recommended:*
• Seek medical care within 24 hours
• Monitor symptoms closely
• Contact emergency services if symptoms worsen"""
    if state.context.service_type:
        return f"""🏥 *Clinic Recommendations:*
• Look for {service_label(state.context.service_type)} clinics near you
• Consider factors like distance, ratings, and cost
• Don't hesitate to ask questions during your visit"""
    return """💡 *General Guidance:*
• Many SRH concerns are common and treatable
• Early care leads to better outcomes
• Don't hesitate to seek professional care"""


def handle_follow_up(message: str, state: ConversationState, **_) -> ComposedReply:
    return ComposedReply(
        response=f"""Thank you for sharing that information!

Based on what you've told me, here's what I recommend:
{generate_recommendations(state)}

Is there anything else I can help you with today? 🌸""",
        follow_up=[
            "Would you like information about your health concern?",
            "Do you need help finding other types of clinics?",
            "Would you like to set up period reminders?",
        ],
    )


def handle_general_query(message: str, state: ConversationState, **_) -> ComposedReply:
    return ComposedReply(
        response="""I'm here to help with any health-related questions you have!

You can ask me about:
• 🏥 Finding clinics and hospitals
• 🩺 Health symptoms and concerns
• 📚 Sexual and reproductive health information
• 💊 Emergency contraception
• 📅 Menstrual tracking

What would you like to know more about? 💙""",
        follow_up=list(FOLLOW_UP_QUESTIONS[Stage.GREETING]),
    )


HANDLERS: Dict[Stage, Callable[..., ComposedReply]] = {
    Stage.GREETING: handle_greeting,
    Stage.LOCATION_SETUP: handle_location_setup,
    Stage.HEALTH_ASSESSMENT: handle_health_assessment,
    Stage.CLINIC_SEARCH: handle_clinic_search,
    Stage.SYMPTOM_CHECK: handle_symptom_check,
    Stage.SERVICE_SELECTION: handle_service_selection,
    Stage.CLINIC_DETAILS: handle_clinic_details,
    Stage.FOLLOW_UP: handle_follow_up,
}


def compose(
    message: str,
    state: ConversationState,
    profile: Optional[HealthProfile] = None,
    rng: Optional[random.Random] = None,
) -> ComposedReply:
    """Render the reply for the state's current stage.

    Pure apart from ``rng``, which only picks the greeting template.
    """
    handler = HANDLERS.get(state.stage, handle_general_query)
    return handler(message, state, profile=profile, rng=rng or random.Random())
