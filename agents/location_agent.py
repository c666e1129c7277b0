from typing import Optional, Protocol

from graph.state import Location
from services.lexicon import (
    COMMON_WORDS,
    COORDINATE_PATTERN,
    GAZETTEER,
    LOCATION_INDICATORS,
    NON_LOCATION_PHRASES,
    keyword_in,
)
from services.logger import setup_logger

logger = setup_logger("location")


class Geocoder(Protocol):
    async def geocode(self, query: str) -> Optional[Location]:
        ...


def is_non_location_phrase(text: str) -> bool:
    return any(keyword_in(text, phrase) for phrase in NON_LOCATION_PHRASES)


def extract_coordinates(text: str) -> Optional[Location]:
    m = COORDINATE_PATTERN.search(text)
    if not m:
        return None
    return Location(lat=float(m.group(1)), lng=float(m.group(2)))


def lookup_gazetteer(text: str) -> Optional[Location]:
    key = _gazetteer_key(text)
    return GAZETTEER[key].model_copy() if key else None


def _gazetteer_key(text: str) -> Optional[str]:
    if text in GAZETTEER:
        return text
    # Longest key wins so "birnin kebbi" beats "kebbi"
    hits = [key for key in GAZETTEER if keyword_in(text, key)]
    if hits:
        return max(hits, key=len)
    if len(text) >= 3:
        partial = [key for key in GAZETTEER if text in key]
        if partial:
            return min(partial, key=len)
    return None


def looks_like_location(text: str) -> bool:
    if any(indicator in text for indicator in LOCATION_INDICATORS):
        return True
    words = text.split()
    return len(words) == 1 and len(words[0]) > 3 and words[0] not in COMMON_WORDS


async def parse_location_input(text: str, geocoder: Optional[Geocoder] = None) -> Optional[Location]:
    """Turn free text into coordinates.

    Strategies run in order and the first hit wins: reject ordinary chat,
    explicit ``lat, lng`` pairs, the Nigerian gazetteer, then a geocoding
    lookup for text that reads like a place. Geocoding problems never escape;
    they just mean no location was found.
    """
    lowered = (text or "").lower().strip()
    if not lowered or is_non_location_phrase(lowered):
        return None

    coords = extract_coordinates(lowered)
    if coords:
        return coords

    known = lookup_gazetteer(lowered)
    if known:
        return known

    if geocoder is not None and looks_like_location(lowered):
        try:
            return await geocoder.geocode(text.strip())
        except Exception as e:
            logger.warning(f"Geocoding failed for {text!r}: {e}")
            return None
    return None


def format_location(location: Location) -> str:
    if location.city:
        region = location.state or location.country or ""
        return f"{location.city}, {region}" if region else location.city
    if location.formatted_address:
        return location.formatted_address
    return f"{location.lat:.4f}, {location.lng:.4f}"


LOCATION_INSTRUCTIONS = """📍 To help you find clinics, please share your location in any of these ways:

1️⃣ *City/Area name*: "I'm in Ogudu" or "Lagos"
2️⃣ *Coordinates*: "6.6051, 3.3958"
3️⃣ *Address*: "Near Ikeja Mall" or "Victoria Island"

Just type your location and I'll find clinics near you! 🏥"""
