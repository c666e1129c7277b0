import pytest

from agents.location_agent import format_location, lookup_gazetteer, parse_location_input
from graph.state import Location
from fakes import FakePlaces


@pytest.mark.asyncio
async def test_coordinates_take_priority_over_gazetteer():
    loc = await parse_location_input("6.5244, 3.3792")
    assert loc is not None
    assert (loc.lat, loc.lng) == (6.5244, 3.3792)
    assert loc.city is None

    loc = await parse_location_input("lagos 6.6051, 3.3958")
    assert (loc.lat, loc.lng) == (6.6051, 3.3958)
    assert loc.city is None


@pytest.mark.asyncio
async def test_lagos_resolves_from_gazetteer_not_geocoding():
    places = FakePlaces(geocoded=Location(lat=1.0, lng=1.0))
    loc = await parse_location_input("I'm in Lagos", geocoder=places)
    assert loc.city == "Lagos"
    assert (loc.lat, loc.lng) == (6.5244, 3.3792)
    assert places.geocode_calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["hello", "clinic", "yes"])
async def test_non_location_phrases_are_rejected(text):
    places = FakePlaces(geocoded=Location(lat=1.0, lng=1.0))
    assert await parse_location_input(text, geocoder=places) is None
    assert places.geocode_calls == []


@pytest.mark.asyncio
async def test_ogudu_full_record():
    loc = await parse_location_input("I'm in Ogudu")
    assert loc == Location(lat=6.6051, lng=3.3958, city="Ogudu", state="Lagos", country="Nigeria")


@pytest.mark.asyncio
async def test_unknown_place_goes_to_geocoder():
    found = Location(lat=6.6985, lng=3.2316, formatted_address="Sango Ota, Ogun, Nigeria")
    places = FakePlaces(geocoded=found)
    loc = await parse_location_input("I live in Sango Ota", geocoder=places)
    assert loc == found
    assert places.geocode_calls == ["I live in Sango Ota"]


@pytest.mark.asyncio
async def test_geocoding_failure_means_no_location():
    places = FakePlaces(fail=True)
    assert await parse_location_input("I live in Sango Ota", geocoder=places) is None


@pytest.mark.asyncio
async def test_kano_is_not_rejected_as_no():
    loc = await parse_location_input("Kano")
    assert loc.city == "Kano"


def test_longest_gazetteer_key_wins():
    loc = lookup_gazetteer("i stay around victoria island")
    assert loc.city == "Victoria Island"


@pytest.mark.asyncio
async def test_changing_a_result_leaves_the_gazetteer_alone():
    loc = await parse_location_input("lagos")
    loc.lat = 0.0
    loc.city = "Elsewhere"
    again = await parse_location_input("lagos")
    assert again.lat != 0.0
    assert again.city == "Lagos"


def test_format_location_variants():
    assert format_location(Location(lat=6.6051, lng=3.3958, city="Ogudu", state="Lagos")) == "Ogudu, Lagos"
    assert format_location(Location(lat=1, lng=2, formatted_address="Akure, Nigeria")) == "Akure, Nigeria"
    assert format_location(Location(lat=6.52441, lng=3.37921)) == "6.5244, 3.3792"
