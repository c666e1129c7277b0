"""Static vocabularies and lookup tables.

Everything here is immutable and loaded once at import. Control flow in the
agents only iterates over these tables, so new places or keywords can be added
without touching the agents.
"""
import re
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple

from graph.state import Location, Stage


def keyword_in(text: str, keyword: str) -> bool:
    """Word-aware containment test.

    Keywords of three characters or fewer ("hi", "no", "sti") must appear as a
    whole word; longer keywords only need to start a word, so "cramp" still
    matches "cramps" and "symptom" matches "symptoms".
    """
    kw = keyword.strip()
    if not kw:
        return False
    pattern = r"(?<!\w)" + re.escape(kw)
    if len(kw) <= 3:
        pattern += r"(?!\w)"
    return re.search(pattern, text) is not None


def first_match(text: str, keywords: Iterable[str]) -> Optional[str]:
    return next((k for k in keywords if keyword_in(text, k)), None)


# ---------------------------------------------------------------------------
# Location parsing
# ---------------------------------------------------------------------------

NON_LOCATION_PHRASES: Tuple[str, ...] = (
    # greetings
    "hello", "hi", "hey", "good morning", "good afternoon", "good evening",
    # health talk
    "i need help", "i have symptoms", "i feel", "pain", "discharge", "bleeding",
    "burning", "itching", "cramps", "fever", "symptom", "period", "cycle",
    "pregnant", "pregnancy", "clinic", "hospital", "doctor", "help me", "i need",
    "thank you", "thanks", "remind",
    # questions
    "how", "what", "when", "where", "why", "can you", "do you",
    # short answers
    "yes", "no", "okay", "ok", "sure", "maybe", "probably",
    # service types
    "gynecology", "sti testing", "family planning", "emergency contraception",
)

LOCATION_INDICATORS: Tuple[str, ...] = (
    "i'm in", "i am in", "located in", "live in", "stay in", "near", "close to",
    "around", "area", "street", "road", "my location is", "i'm at", "i am at",
)

COMMON_WORDS = frozenset({
    "hello", "help", "need", "want", "have", "feel", "pain", "sick", "good", "bad",
    "yes", "okay", "sure", "maybe", "very", "much", "some", "none", "more", "less",
    "most", "please", "thanks", "fine", "great", "nothing", "again", "start", "stop",
})

COORDINATE_PATTERN = re.compile(r"([+-]?\d+\.\d+)[,\s]+([+-]?\d+\.\d+)")


def _place(lat: float, lng: float, city: str, state: str) -> Location:
    return Location(lat=lat, lng=lng, city=city, state=state, country="Nigeria")


GAZETTEER: Mapping[str, Location] = MappingProxyType({
    # Lagos
    "lagos": _place(6.5244, 3.3792, "Lagos", "Lagos"),
    "ikeja": _place(6.6018, 3.3515, "Ikeja", "Lagos"),
    "victoria island": _place(6.4281, 3.4219, "Victoria Island", "Lagos"),
    "ikoyi": _place(6.4474, 3.4350, "Ikoyi", "Lagos"),
    "lekki": _place(6.4550, 3.4731, "Lekki", "Lagos"),
    "ajah": _place(6.4698, 3.5852, "Ajah", "Lagos"),
    "surulere": _place(6.5015, 3.3580, "Surulere", "Lagos"),
    "ogudu": _place(6.6051, 3.3958, "Ogudu", "Lagos"),
    "ojota": _place(6.5870, 3.3790, "Ojota", "Lagos"),
    "ketu": _place(6.6018, 3.3515, "Ketu", "Lagos"),
    "maryland": _place(6.6018, 3.3515, "Maryland", "Lagos"),
    "alausa": _place(6.6018, 3.3515, "Alausa", "Lagos"),
    "omole": _place(6.6018, 3.3515, "Omole", "Lagos"),
    "magodo": _place(6.6186, 3.3833, "Magodo", "Lagos"),
    "ogba": _place(6.6276, 3.3393, "Ogba", "Lagos"),
    "ilupeju": _place(6.5540, 3.3570, "Ilupeju", "Lagos"),
    "gbagada": _place(6.5483, 3.3897, "Gbagada", "Lagos"),
    "yaba": _place(6.5095, 3.3711, "Yaba", "Lagos"),
    "oshodi": _place(6.5483, 3.3897, "Oshodi", "Lagos"),
    "mushin": _place(6.5095, 3.3711, "Mushin", "Lagos"),
    "agege": _place(6.6157, 3.3233, "Agege", "Lagos"),
    "isolo": _place(6.5483, 3.3897, "Isolo", "Lagos"),
    "ikotun": _place(6.5483, 3.3897, "Ikotun", "Lagos"),
    "ejigbo": _place(6.5483, 3.3897, "Ejigbo", "Lagos"),
    "apapa": _place(6.4489, 3.3590, "Apapa", "Lagos"),
    "festac": _place(6.4667, 3.2833, "Festac", "Lagos"),
    "ikorodu": _place(6.6157, 3.3233, "Ikorodu", "Lagos"),
    "badagry": _place(6.4150, 2.8813, "Badagry", "Lagos"),
    "epe": _place(6.5854, 3.9836, "Epe", "Lagos"),
    # Abuja (FCT)
    "abuja": _place(9.0820, 7.3986, "Abuja", "FCT"),
    "wuse": _place(9.0820, 7.3986, "Wuse", "FCT"),
    "garki": _place(9.0820, 7.3986, "Garki", "FCT"),
    "asokoro": _place(9.0820, 7.3986, "Asokoro", "FCT"),
    "maitama": _place(9.0820, 7.3986, "Maitama", "FCT"),
    "jabi": _place(9.0820, 7.3986, "Jabi", "FCT"),
    "kubwa": _place(9.1539, 7.3220, "Kubwa", "FCT"),
    "gwarinpa": _place(9.1080, 7.4100, "Gwarinpa", "FCT"),
    "lugbe": _place(8.9830, 7.3670, "Lugbe", "FCT"),
    "nyanya": _place(9.0230, 7.5600, "Nyanya", "FCT"),
    # Kano
    "kano": _place(11.9914, 8.5317, "Kano", "Kano"),
    "nasarawa": _place(11.9914, 8.5317, "Nasarawa", "Kano"),
    "fagge": _place(11.9914, 8.5317, "Fagge", "Kano"),
    # Other major cities
    "ibadan": _place(7.3961, 3.8969, "Ibadan", "Oyo"),
    "port harcourt": _place(4.8156, 7.0498, "Port Harcourt", "Rivers"),
    "kaduna": _place(10.5222, 7.4384, "Kaduna", "Kaduna"),
    "benin": _place(6.3176, 5.6145, "Benin City", "Edo"),
    "maiduguri": _place(11.8333, 13.1500, "Maiduguri", "Borno"),
    "zaria": _place(11.1113, 7.7227, "Zaria", "Kaduna"),
    "bauchi": _place(10.3103, 9.8439, "Bauchi", "Bauchi"),
    "akure": _place(7.2526, 5.1931, "Akure", "Ondo"),
    "calabar": _place(4.9757, 8.3417, "Calabar", "Cross River"),
    "jos": _place(9.8965, 8.8583, "Jos", "Plateau"),
    "enugu": _place(6.4584, 7.5464, "Enugu", "Enugu"),
    "sokoto": _place(13.0533, 5.2333, "Sokoto", "Sokoto"),
    "oyo": _place(7.8526, 3.9312, "Oyo", "Oyo"),
    "abeokuta": _place(7.1557, 3.3451, "Abeokuta", "Ogun"),
    "warri": _place(5.5560, 5.7936, "Warri", "Delta"),
    "onitsha": _place(6.1375, 6.7797, "Onitsha", "Anambra"),
    "owerri": _place(5.4833, 7.0333, "Owerri", "Imo"),
    "uyo": _place(5.0513, 7.9335, "Uyo", "Akwa Ibom"),
    "asaba": _place(6.1833, 6.7500, "Asaba", "Delta"),
    "awka": _place(6.2109, 7.0744, "Awka", "Anambra"),
    "osogbo": _place(7.7669, 4.5601, "Osogbo", "Osun"),
    "ilorin": _place(8.5000, 4.5500, "Ilorin", "Kwara"),
    "jalingo": _place(8.9000, 11.3667, "Jalingo", "Taraba"),
    "damaturu": _place(11.7483, 11.9669, "Damaturu", "Yobe"),
    "gombe": _place(10.2897, 11.1673, "Gombe", "Gombe"),
    "lafia": _place(8.4833, 8.5167, "Lafia", "Nasarawa"),
    "minna": _place(9.6139, 6.5569, "Minna", "Niger"),
    "lokoja": _place(7.8023, 6.7330, "Lokoja", "Kogi"),
    "makurdi": _place(7.7333, 8.5333, "Makurdi", "Benue"),
    "yola": _place(9.2000, 12.4833, "Yola", "Adamawa"),
    "birnin kebbi": _place(12.4539, 4.1975, "Birnin Kebbi", "Kebbi"),
    "katsina": _place(12.9908, 7.6018, "Katsina", "Katsina"),
    "dutse": _place(11.8283, 9.3158, "Dutse", "Jigawa"),
    "gusau": _place(12.1700, 6.6644, "Gusau", "Zamfara"),
    "kebbi": _place(12.4539, 4.1975, "Kebbi", "Kebbi"),
    "jigawa": _place(11.8283, 9.3158, "Jigawa", "Jigawa"),
    "zamfara": _place(12.1700, 6.6644, "Zamfara", "Zamfara"),
    "umuahia": _place(5.5250, 7.4922, "Umuahia", "Abia"),
    "abakaliki": _place(6.3249, 8.1137, "Abakaliki", "Ebonyi"),
    "yenagoa": _place(4.9267, 6.2676, "Yenagoa", "Bayelsa"),
    "ado ekiti": _place(7.6211, 5.2214, "Ado Ekiti", "Ekiti"),
})


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

# Priority order matters: the first stage with a matching keyword wins.
STAGE_KEYWORDS: Tuple[Tuple[Stage, Tuple[str, ...]], ...] = (
    (Stage.GREETING, ("hello", "hi", "hey", "good morning", "good afternoon", "good evening")),
    (Stage.LOCATION_SETUP, ("location", "where", "near", "in", "area", "place")),
    (Stage.HEALTH_ASSESSMENT, ("symptom", "pain", "feel", "experiencing", "concern", "problem")),
    (Stage.CLINIC_SEARCH, ("clinic", "hospital", "doctor", "medical", "healthcare", "treatment")),
    (Stage.SYMPTOM_CHECK, ("sti", "std", "infection", "discharge", "burning", "itching")),
    (Stage.SERVICE_SELECTION, ("gynecology", "family planning", "sti testing", "emergency", "contraception")),
    (Stage.CLINIC_DETAILS, ("tell me more", "details", "information", "about", "contact", "phone")),
)

HIGH_URGENCY_WORDS: Tuple[str, ...] = ("urgent", "emergency", "immediate")
MEDIUM_URGENCY_WORDS: Tuple[str, ...] = ("soon", "quick")

# "emergency contraception" is tested before the generic family-planning group
# because the latter also contains "contraception".
SERVICE_TYPES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("gynecology", ("gynecology", "gynaecology", "gynecologist")),
    ("sti_testing", ("sti", "std", "stis", "stds")),
    ("emergency_contraception", ("emergency contraception", "morning after", "postinor")),
    ("family_planning", ("family planning", "contraception", "contraceptive")),
    ("pregnancy_care", ("pregnancy", "pregnant", "antenatal", "prenatal")),
)

SYMPTOM_VOCABULARY: Tuple[str, ...] = (
    "pain", "discharge", "burning", "itching", "bleeding", "cramps", "fever",
    "swelling", "irregular", "missed period", "nausea", "fatigue", "headache",
    "back pain", "abdominal pain",
)

# Intent drives routing (period tracking) and the LLM topic.
INTENT_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("period_tracking", (
        "last period", "started period", "period started", "period came", "next period",
        "when period", "when is my period", "when will my period", "cycle", "period length",
        "period lasts", "period lasted", "flow", "reminder", "remind me", "ovulation", "fertile",
        "track my period",
    )),
    ("emergency_contraception", ("emergency contraception", "morning after", "condom broke", "postinor")),
    ("clinic_search", ("clinic", "hospital", "doctor")),
    ("symptom_check", ("symptom", "pain", "discharge", "burning", "itching")),
    ("menstrual_health", ("period", "menstrual", "cramp")),
    ("contraception", ("contraception", "birth control", "pill", "condom")),
    ("sti_information", ("sti", "std", "infection")),
    ("pregnancy", ("pregnant", "pregnancy")),
    ("menopause", ("menopause", "hot flash", "hot flushes")),
    ("greeting", ("hello", "hi", "hey")),
)

# Intent -> LLM topic guidance key.
LLM_TOPICS: Mapping[str, str] = MappingProxyType({
    "emergency_contraception": "emergency_contraception",
    "pregnancy": "pregnancy_concern",
    "sti_information": "sti_symptoms_and_testing",
    "symptom_check": "sti_symptoms_and_testing",
    "menstrual_health": "menstrual_tracking",
    "menopause": "menopause_support",
    "contraception": "contraception",
})


# ---------------------------------------------------------------------------
# Symptom assessment
# ---------------------------------------------------------------------------

STI_CONDITIONS: Tuple[Tuple[str, str], ...] = (
    ("discharge", "Chlamydia or Gonorrhea"),
    ("burning", "Urinary Tract Infection (UTI)"),
    ("itching", "Yeast Infection or Bacterial Vaginosis"),
    ("pain", "Pelvic Inflammatory Disease (PID)"),
)
GENERAL_CONDITIONS: Tuple[Tuple[str, str], ...] = (
    ("cramp", "Menstrual cramps or dysmenorrhea"),
    ("irregular", "Irregular menstrual cycle"),
    ("heavy", "Heavy menstrual bleeding"),
)
STI_FALLBACK_CONDITION = "Sexual health concern requiring evaluation"
GENERAL_FALLBACK_CONDITION = "General health concern requiring evaluation"

HIGH_URGENCY_SYMPTOMS: Tuple[str, ...] = ("severe pain", "fever", "heavy bleeding", "swelling")
MEDIUM_URGENCY_SYMPTOMS: Tuple[str, ...] = ("burning", "discharge", "itching", "pain")
REFERRAL_SYMPTOMS: Tuple[str, ...] = ("pain", "discharge", "burning", "itching", "bleeding")
STI_INDICATIVE_SYMPTOMS: Tuple[str, ...] = ("discharge", "burning", "itching")

RECOMMENDED_TESTS: Tuple[Tuple[str, str], ...] = (
    ("discharge", "STI testing (chlamydia, gonorrhea)"),
    ("burning", "Urine test for UTI"),
    ("itching", "Vaginal swab for yeast infection"),
)

STI_RECOMMENDATIONS: Tuple[str, ...] = (
    "Consult a healthcare provider for proper evaluation",
    "Practice good hygiene",
    "Avoid sexual activity until evaluated",
    "Monitor symptoms for changes",
    "Remember: STIs are treatable and nothing to be ashamed of",
)
GENERAL_RECOMMENDATIONS: Tuple[str, ...] = (
    "Consult a healthcare provider for proper evaluation",
    "Practice good hygiene",
    "Monitor symptoms for changes",
    "Keep track of your symptoms",
)


# ---------------------------------------------------------------------------
# Conversation follow-ups
# ---------------------------------------------------------------------------

FOLLOW_UP_QUESTIONS: Mapping[Stage, Tuple[str, ...]] = MappingProxyType({
    Stage.GREETING: (
        "What type of health services are you looking for?",
        "Do you need help finding a clinic?",
        "Are you experiencing any symptoms?",
    ),
    Stage.LOCATION_SETUP: (
        "What type of health services do you need?",
        "Are you looking for general or specialized care?",
        "Do you have any specific symptoms?",
    ),
    Stage.HEALTH_ASSESSMENT: (
        "How long have you had these symptoms?",
        "Are the symptoms mild, moderate, or severe?",
        "Would you like me to help you find a clinic?",
    ),
    Stage.CLINIC_SEARCH: (
        "What type of services are you looking for?",
        "Do you prefer a specific area?",
        "Are you looking for affordable options?",
    ),
    Stage.SERVICE_SELECTION: (
        "Would you like the closest clinics or highly-rated ones?",
        "Do you need emergency services?",
        "Would you like information about costs?",
    ),
    Stage.CLINIC_DETAILS: (
        "Would you like contact information?",
        "Do you need directions to the clinic?",
        "Would you like to know about their services?",
    ),
})

DEFAULT_FOLLOW_UP_QUESTIONS: Tuple[str, ...] = (
    "How can I help you further?",
    "Do you have any other questions?",
    "Would you like information about other services?",
)

# Service type -> places keyword
PLACES_KEYWORDS: Mapping[str, str] = MappingProxyType({
    "gynecology": "gynecology clinic",
    "sti_testing": "sexual health clinic",
    "family_planning": "family planning clinic",
    "emergency_contraception": "pharmacy",
    "pregnancy_care": "maternity hospital",
})
