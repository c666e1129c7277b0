import math
from types import MappingProxyType
from typing import List, Mapping, Optional, Protocol, Tuple

import httpx

from graph.state import Clinic, Location
from .config import settings
from .lexicon import PLACES_KEYWORDS
from .logger import setup_logger

logger = setup_logger("places")

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
NEARBY_URL = "https://maps.googleapis.com/maps/api/place/nearbysearch/json"

CLINIC_DIRECTORY: Mapping[str, Tuple[Clinic, ...]] = MappingProxyType({
    "lagos": (
        Clinic(
            name="Lagos State University Teaching Hospital",
            address="Ikeja, Lagos State",
            phone="+234-1-4960981",
            services=["General Medicine", "Gynecology", "Family Planning", "STI Testing"],
            rating=4.2,
            distance="2.5km",
        ),
        Clinic(
            name="Reddington Hospital",
            address="Victoria Island, Lagos",
            phone="+234-1-4621234",
            services=["Women's Health", "Reproductive Health", "Contraception Counseling"],
            rating=4.5,
            distance="3.1km",
        ),
        Clinic(
            name="Planned Parenthood Federation of Nigeria",
            address="Surulere, Lagos",
            phone="+234-1-8123456",
            services=["Family Planning", "STI Testing", "Youth-Friendly Services"],
            rating=4.3,
            distance="4.2km",
        ),
    ),
    "abuja": (
        Clinic(
            name="National Hospital Abuja",
            address="Central Area, Abuja",
            phone="+234-9-4613000",
            services=["General Medicine", "Gynecology", "Adolescent Health"],
            rating=4.1,
            distance="1.8km",
        ),
        Clinic(
            name="Garki Hospital",
            address="Garki, Abuja",
            phone="+234-9-2345678",
            services=["Reproductive Health", "Family Planning", "STI Counseling"],
            rating=3.9,
            distance="2.3km",
        ),
    ),
    "kano": (
        Clinic(
            name="Aminu Kano Teaching Hospital",
            address="Kano, Kano State",
            phone="+234-64-664423",
            services=["Women's Health", "Family Planning", "Youth Services"],
            rating=4.0,
            distance="1.5km",
        ),
    ),
    "default": (
        Clinic(
            name="Community Health Center",
            address="City Center",
            services=["Basic Health Services", "Family Planning", "Health Education"],
            rating=3.8,
            distance="2.0km",
        ),
        Clinic(
            name="Regional Medical Center",
            address="Medical District",
            phone="Contact locally",
            services=["Comprehensive Health Services", "Reproductive Health"],
            rating=4.0,
            distance="3.5km",
        ),
    ),
})


class PlacesClient(Protocol):
    async def geocode(self, query: str) -> Optional[Location]:
        ...

    async def nearby_clinics(self, location: Location, service_type: Optional[str] = None) -> List[Clinic]:
        ...


def haversine_km(a: Location, b_lat: float, b_lng: float) -> float:
    r = 6371.0
    p1, p2 = math.radians(a.lat), math.radians(b_lat)
    dp, dl = p2 - p1, math.radians(b_lng - a.lng)
    h = math.sin(dp / 2) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dl / 2) ** 2
    return 2 * r * math.asin(math.sqrt(h))


class GooglePlacesClient:
    """Geocoding and Nearby Search against the Google Maps web APIs."""

    def __init__(self, api_key: str, timeout: Optional[float] = None, radius_m: Optional[int] = None) -> None:
        self.api_key = api_key
        self.timeout = timeout or settings.EXTERNAL_TIMEOUT
        self.radius_m = radius_m or settings.CLINIC_SEARCH_RADIUS_M

    async def _get(self, url: str, params: dict) -> dict:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.get(url, params={**params, "key": self.api_key})
            resp.raise_for_status()
            return resp.json()

    async def geocode(self, query: str) -> Optional[Location]:
        data = await self._get(GEOCODE_URL, {"address": f"{query}, Nigeria"})
        if data.get("status") != "OK" or not data.get("results"):
            logger.info(f"geocode found nothing for {query!r} (status={data.get('status')})")
            return None
        result = data["results"][0]
        point = result["geometry"]["location"]
        return Location(lat=point["lat"], lng=point["lng"], formatted_address=result.get("formatted_address"))

    async def nearby_clinics(self, location: Location, service_type: Optional[str] = None) -> List[Clinic]:
        params = {
            "location": f"{location.lat},{location.lng}",
            "radius": self.radius_m,
            "type": "hospital",
            "keyword": PLACES_KEYWORDS.get(service_type or "", "clinic"),
        }
        data = await self._get(NEARBY_URL, params)
        if data.get("status") not in {"OK", "ZERO_RESULTS"}:
            raise RuntimeError(f"places search failed: {data.get('status')} {data.get('error_message', '')}".strip())
        clinics = []
        for place in data.get("results", []):
            point = place.get("geometry", {}).get("location") or {}
            distance = None
            if "lat" in point and "lng" in point:
                distance = f"{haversine_km(location, point['lat'], point['lng']):.1f}km"
            clinics.append(
                Clinic(
                    name=place.get("name", "Unnamed clinic"),
                    address=place.get("vicinity") or place.get("formatted_address", ""),
                    services=[t.replace("_", " ").title() for t in place.get("types", [])[:3]],
                    rating=place.get("rating"),
                    distance=distance,
                )
            )
        return clinics


class StaticClinicDirectory:
    """Offline directory keyed by city, used when no Maps API key is configured."""

    async def geocode(self, query: str) -> Optional[Location]:
        return None

    async def nearby_clinics(self, location: Location, service_type: Optional[str] = None) -> List[Clinic]:
        for key in (location.city, location.state):
            if key and key.lower() in CLINIC_DIRECTORY:
                return [c.model_copy() for c in CLINIC_DIRECTORY[key.lower()]]
        return [c.model_copy() for c in CLINIC_DIRECTORY["default"]]


def get_places_client() -> PlacesClient:
    if settings.GOOGLE_MAPS_API_KEY:
        return GooglePlacesClient(settings.GOOGLE_MAPS_API_KEY)
    logger.info("GOOGLE_MAPS_API_KEY not set, using static clinic directory")
    return StaticClinicDirectory()


def format_clinics(clinics: List[Clinic], limit: int = 3) -> str:
    if not clinics:
        return "I couldn't find clinics near you right now. Please try again later or ask a local pharmacy for referrals."
    lines = ["🏥 *Clinics near you:*"]
    for i, clinic in enumerate(clinics[:limit], start=1):
        lines.append("")
        lines.append(f"{i}. *{clinic.name}*")
        lines.append(f"   📍 {clinic.address}")
        if clinic.phone:
            lines.append(f"   📞 {clinic.phone}")
        if clinic.rating is not None:
            lines.append(f"   ⭐ {clinic.rating}")
        if clinic.distance:
            lines.append(f"   🚶 {clinic.distance}")
    return "\n".join(lines)
