import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(override=False)


def _truthy(value: str) -> bool:
    return value in {"1", "true", "True"}


class Settings:
    # Storage
    DATA_DIR = Path(os.getenv("OBRIN_DATA_DIR") or Path(os.getcwd()) / "data")
    USE_SQLITE = _truthy(os.getenv("USE_SQLITE", "0"))
    SQLITE_DB_PATH = os.getenv("SQLITE_DB_PATH")

    # Twilio (WhatsApp)
    TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
    TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
    TWILIO_WHATSAPP_NUMBER = os.getenv("TWILIO_WHATSAPP_NUMBER")

    # Maps
    GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY")
    CLINIC_SEARCH_RADIUS_M = int(os.getenv("CLINIC_SEARCH_RADIUS_M", "5000"))

    # LLM
    LLM_PROVIDER = os.getenv("LLM_PROVIDER") or ("anthropic" if os.getenv("ANTHROPIC_API_KEY") else "local")
    ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
    ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-3-5-sonnet-latest")
    ANTHROPIC_MAX_TOKENS = int(os.getenv("ANTHROPIC_MAX_TOKENS", "500"))
    ANTHROPIC_TEMPERATURE = float(os.getenv("ANTHROPIC_TEMPERATURE", "0.7"))

    # Seconds allowed for any single external call (geocoding, places, LLM, delivery)
    EXTERNAL_TIMEOUT = float(os.getenv("EXTERNAL_TIMEOUT", "10"))


settings = Settings()
