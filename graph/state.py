from datetime import date, datetime, timezone
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Stage(str, Enum):
    GREETING = "greeting"
    LOCATION_SETUP = "location_setup"
    HEALTH_ASSESSMENT = "health_assessment"
    CLINIC_SEARCH = "clinic_search"
    SYMPTOM_CHECK = "symptom_check"
    SERVICE_SELECTION = "service_selection"
    CLINIC_DETAILS = "clinic_details"
    FOLLOW_UP = "follow_up"


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class FlowIntensity(str, Enum):
    LIGHT = "Light"
    MEDIUM = "Medium"
    HEAVY = "Heavy"


class Location(BaseModel):
    lat: float
    lng: float
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    formatted_address: Optional[str] = None


class UserPreferences(BaseModel):
    language: str = "en"
    communication_style: str = "friendly"  # formal | casual | friendly
    privacy_level: str = "medium"  # high | medium | low


class Clinic(BaseModel):
    name: str
    address: str
    phone: Optional[str] = None
    services: List[str] = Field(default_factory=list)
    rating: Optional[float] = None
    distance: Optional[str] = None


class ConversationContext(BaseModel):
    intent: Optional[str] = None
    location: Optional[Location] = None
    symptoms: List[str] = Field(default_factory=list)
    service_type: Optional[str] = None
    urgency: Optional[Urgency] = None
    selected_clinic: Optional[Clinic] = None
    follow_up_questions: List[str] = Field(default_factory=list)
    user_preferences: UserPreferences = Field(default_factory=UserPreferences)


class ConversationMetadata(BaseModel):
    conversation_id: str
    user_id: str
    last_updated: datetime = Field(default_factory=utcnow)
    message_count: int = 0


class ConversationState(BaseModel):
    stage: Stage = Stage.GREETING
    context: ConversationContext = Field(default_factory=ConversationContext)
    metadata: ConversationMetadata

    def touched(self, now: Optional[datetime] = None) -> "ConversationState":
        """Copy with one more processed message and a fresh timestamp."""
        out = self.model_copy(deep=True)
        out.metadata.message_count += 1
        out.metadata.last_updated = now or utcnow()
        return out


class PeriodEntry(BaseModel):
    date: date
    length: int = 5
    intensity: FlowIntensity = FlowIntensity.MEDIUM


class HealthProfile(BaseModel):
    user_id: str
    last_period: Optional[date] = None
    cycle_length: Optional[int] = None
    period_length: int = 5
    flow_intensity: FlowIntensity = FlowIntensity.MEDIUM
    period_history: List[PeriodEntry] = Field(default_factory=list)
    symptoms: List[str] = Field(default_factory=list)
    medications: List[str] = Field(default_factory=list)
    allergies: List[str] = Field(default_factory=list)
    reminder_enabled: bool = False
    reminder_days: int = 3
    updated_at: datetime = Field(default_factory=utcnow)


class FertilityWindow(BaseModel):
    start: date
    end: date


class PeriodPrediction(BaseModel):
    date: date
    confidence_percent: int
    fertility_window: FertilityWindow
    cycle_length_used: int


class ProfileUpdate(BaseModel):
    accepted: bool
    message: str = ""
    profile: Optional[HealthProfile] = None


class SymptomAssessment(BaseModel):
    possible_conditions: List[str] = Field(default_factory=list)
    urgency: Urgency = Urgency.LOW
    recommendations: List[str] = Field(default_factory=list)
    referral_needed: bool = False
    testing_recommended: List[str] = Field(default_factory=list)


class User(BaseModel):
    id: str
    phone_number: str
    language: str = "en"
    location_lat: Optional[float] = None
    location_lng: Optional[float] = None
    city: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    def location(self) -> Optional[Location]:
        if self.location_lat is None or self.location_lng is None:
            return None
        return Location(lat=self.location_lat, lng=self.location_lng, city=self.city)


class Conversation(BaseModel):
    id: str
    user_id: str
    session_day: date
    created_at: datetime = Field(default_factory=utcnow)


class MessageRecord(BaseModel):
    conversation_id: str
    role: str  # USER | ASSISTANT
    content: str
    timestamp: datetime = Field(default_factory=utcnow)


class InboundMessage(BaseModel):
    """What the transport hands us for one WhatsApp message."""

    sender_id: str
    text: str = ""
    has_media: bool = False
    media_url: Optional[str] = None
    media_type: Optional[str] = None


class PromptContext(BaseModel):
    topic: str = "general"
    urgency: Urgency = Urgency.LOW
    user_location: Optional[str] = None
    conversation_history: List[Dict[str, str]] = Field(default_factory=list)
    is_new_user: bool = False
    symptoms: List[str] = Field(default_factory=list)


class ComposedReply(BaseModel):
    response: str
    follow_up: List[str] = Field(default_factory=list)

    def render(self) -> str:
        if not self.follow_up:
            return self.response
        lines = "\n".join(f"• {q}" for q in self.follow_up)
        return f"{self.response}\n\n💬 You can also tell me:\n{lines}"


class TurnState(BaseModel):
    message: str = ""
    user_id: str
    phone_number: str
    conversation: ConversationState
    profile: Optional[HealthProfile] = None
    location_found: Optional[Location] = None
    stage_matched: bool = False
    reply: Optional[ComposedReply] = None
    history: List[Dict[str, str]] = Field(default_factory=list)
    is_new_user: bool = False
    clinics: List[Clinic] = Field(default_factory=list)
