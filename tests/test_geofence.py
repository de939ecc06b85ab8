import pytest

from evv_service.evv.geofence import (
    ClientLocation,
    EVVStatus,
    LocationReading,
    haversine_distance,
    location_unavailable,
    validate_evv_location,
)

CLIENT = ClientLocation(latitude=40.0, longitude=-75.0, geofence_radius=100)


def test_identical_points_are_compliant():
    """Test a reading on the client's coordinates."""
    result = validate_evv_location(LocationReading(latitude=40.0, longitude=-75.0), CLIENT)

    assert result.status == EVVStatus.COMPLIANT
    assert result.is_within_geofence is True
    assert result.distance_from_client == 0
    assert result.message == "Location verified: 0m from client (within 100m geofence)"


def test_haversine_one_degree_of_latitude():
    """Test the distance of one degree along a meridian."""
    assert haversine_distance(0.0, 0.0, 1.0, 0.0) == pytest.approx(111194.93, abs=0.01)


def test_haversine_is_symmetric():
    """Test that swapping the two points gives the same distance."""
    forward = haversine_distance(40.7128, -74.0060, 40.7306, -73.9352)
    backward = haversine_distance(40.7306, -73.9352, 40.7128, -74.0060)

    assert forward == pytest.approx(backward)
    assert forward > 0


def test_reading_on_boundary_is_compliant():
    """Test that a rounded distance equal to the radius is inside the geofence."""
    # 0.0009 degrees of latitude is about 100.08 m
    result = validate_evv_location(LocationReading(latitude=40.0009, longitude=-75.0), CLIENT)

    assert result.distance_from_client == 100
    assert result.status == EVVStatus.COMPLIANT
    assert result.is_within_geofence is True


def test_reading_one_meter_past_boundary_is_out_of_range():
    """Test a reading just outside the geofence."""
    # 0.00091 degrees of latitude is about 101.19 m
    result = validate_evv_location(LocationReading(latitude=40.00091, longitude=-75.0), CLIENT)

    assert result.distance_from_client == 101
    assert result.status == EVVStatus.OUT_OF_RANGE
    assert result.is_within_geofence is False
    assert result.message == "Location is 101m from client, outside the 100m geofence"


def test_default_radius_applies_when_client_has_none():
    """Test the configured default radius (150 m)."""
    client = ClientLocation(latitude=40.0, longitude=-75.0)

    inside = validate_evv_location(LocationReading(latitude=40.0013, longitude=-75.0), client)
    outside = validate_evv_location(LocationReading(latitude=40.0014, longitude=-75.0), client)

    assert inside.distance_from_client == 145
    assert inside.status == EVVStatus.COMPLIANT
    assert outside.distance_from_client == 156
    assert outside.status == EVVStatus.OUT_OF_RANGE


def test_accuracy_does_not_change_the_verdict():
    """Test that reported accuracy is not subtracted from the distance."""
    result = validate_evv_location(
        LocationReading(latitude=40.00091, longitude=-75.0, accuracy=50.0),
        CLIENT,
    )
    assert result.status == EVVStatus.OUT_OF_RANGE


@pytest.mark.parametrize("reading", [
    LocationReading(latitude=91.0, longitude=-75.0),
    LocationReading(latitude=-90.5, longitude=-75.0),
    LocationReading(latitude=40.0, longitude=180.5),
    LocationReading(latitude=40.0, longitude=-75.0, accuracy=-1.0),
])
def test_invalid_reading_is_rejected(reading):
    """Test readings with impossible coordinates or negative accuracy."""
    with pytest.raises(ValueError):
        validate_evv_location(reading, CLIENT)


@pytest.mark.parametrize("radius", [0, -10])
def test_non_positive_radius_is_rejected(radius):
    """Test a misconfigured client geofence."""
    client = ClientLocation(latitude=40.0, longitude=-75.0, geofence_radius=radius)
    with pytest.raises(ValueError):
        validate_evv_location(LocationReading(latitude=40.0, longitude=-75.0), client)


def test_location_unavailable_has_no_distance():
    """Test the verdict used when no reading can be evaluated."""
    result = location_unavailable("Location not provided")

    assert result.status == EVVStatus.LOCATION_UNAVAILABLE
    assert result.is_within_geofence is None
    assert result.distance_from_client is None
    assert result.message == "Location not provided"
