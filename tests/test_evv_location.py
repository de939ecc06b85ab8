import json
import pytest
from datetime import datetime
from pydantic import ValidationError

from evv_service.db.models import Client
from evv_service.evv.geofence import EVVStatus, LocationReading, location_unavailable
from evv_service.evv.location import (
    LocationSource,
    create_evv_location_data,
    detect_source,
    evaluate_reading,
    parse_evv_location_data,
    serialize_evv_location,
)

NOW = datetime(2024, 1, 8, 9, 5)


@pytest.fixture
def registered_client():
    return Client(latitude=40.0, longitude=-75.0, geofence_radius=100)


@pytest.mark.parametrize("user_agent, expected", [
    ("CareBaseApp/2.3.1 (iOS 17.1)", LocationSource.MOBILE),
    ("okhttp/4.9.2", LocationSource.MOBILE),
    ("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15", LocationSource.MOBILE),
    ("Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 Chrome/120.0 Mobile Safari/537.36",
     LocationSource.MOBILE),
    ("Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0 Safari/537.36",
     LocationSource.WEB),
    (None, LocationSource.WEB),
    ("", LocationSource.WEB),
])
def test_detect_source(user_agent, expected):
    """Test mobile vs web detection from the User-Agent."""
    assert detect_source(user_agent) == expected


def test_evaluate_reading_builds_location_record(registered_client):
    """Test that an evaluated reading carries the reading, verdict and source."""
    reading = LocationReading(latitude=40.00091, longitude=-75.0, accuracy=12.5)

    verdict, location = evaluate_reading(reading, registered_client, LocationSource.MOBILE, NOW)

    assert verdict.status == EVVStatus.OUT_OF_RANGE
    assert location.latitude == 40.00091
    assert location.accuracy == 12.5
    assert location.timestamp == NOW
    assert location.source == LocationSource.MOBILE
    assert location.is_within_geofence is False
    assert location.distance_from_client == 101


def test_evaluate_without_reading_is_unavailable(registered_client):
    """Test a check without a reading."""
    verdict, location = evaluate_reading(None, registered_client, LocationSource.WEB, NOW)

    assert verdict.status == EVVStatus.LOCATION_UNAVAILABLE
    assert verdict.message == "Location not provided"
    assert location is None


def test_evaluate_without_client_coordinates_is_unavailable():
    """Test a client with no registered coordinates."""
    reading = LocationReading(latitude=40.0, longitude=-75.0)

    verdict, location = evaluate_reading(reading, Client(latitude=None, longitude=None), LocationSource.WEB, NOW)

    assert verdict.status == EVVStatus.LOCATION_UNAVAILABLE
    assert verdict.message == "Client location not configured"
    assert location is None


def test_location_record_requires_a_distance():
    """Test that an unavailable verdict cannot become a location record."""
    with pytest.raises(ValueError):
        create_evv_location_data(
            LocationReading(latitude=40.0, longitude=-75.0),
            location_unavailable(),
            LocationSource.WEB,
            NOW,
        )


def test_location_record_is_immutable(registered_client):
    """Test that a recorded location cannot be modified."""
    _, location = evaluate_reading(
        LocationReading(latitude=40.0, longitude=-75.0), registered_client, LocationSource.WEB, NOW
    )
    with pytest.raises(ValidationError):
        location.distance_from_client = 0


def test_serialized_location_uses_camel_case(registered_client):
    """Test the stored JSON shape and that it reads back unchanged."""
    _, location = evaluate_reading(
        LocationReading(latitude=40.0, longitude=-75.0, accuracy=5.0), registered_client, LocationSource.MOBILE, NOW
    )

    raw = serialize_evv_location(location)
    stored = json.loads(raw)

    assert stored["isWithinGeofence"] is True
    assert stored["distanceFromClient"] == 0
    assert stored["source"] == "mobile"
    assert parse_evv_location_data(raw) == location


@pytest.mark.parametrize("raw", [None, "", "not json", '{"latitude": 40.0}'])
def test_unreadable_location_is_treated_as_absent(raw):
    """Test that missing or corrupt stored locations parse to None."""
    assert parse_evv_location_data(raw) is None
