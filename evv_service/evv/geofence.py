"""
Geofence validation for Electronic Visit Verification.

Distances are great-circle distances on a spherical earth (haversine) and
are rounded to the nearest whole meter before classification. A reading is
compliant when the rounded distance is less than or equal to the geofence
radius, so a caregiver exactly on the boundary is inside.
"""
import math
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict

from evv_service import config

EARTH_RADIUS_METERS = 6_371_000


class EVVStatus(str, Enum):
    COMPLIANT = "COMPLIANT"
    OUT_OF_RANGE = "OUT_OF_RANGE"
    LOCATION_UNAVAILABLE = "LOCATION_UNAVAILABLE"


class LocationReading(BaseModel):
    """Raw GPS reading from the caregiver's device"""
    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float
    accuracy: float = 0.0


class ClientLocation(BaseModel):
    """Client's registered coordinates and geofence"""
    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float
    geofence_radius: Optional[int] = None


class EVVValidationResult(BaseModel):
    """Verdict for a single reading"""
    model_config = ConfigDict(frozen=True)

    status: EVVStatus
    is_within_geofence: Optional[bool] = None
    distance_from_client: Optional[int] = None
    message: str


def _check_coordinates(latitude: float, longitude: float) -> None:
    if not -90 <= latitude <= 90:
        raise ValueError(f"Latitude must be between -90 and 90, got {latitude}")
    if not -180 <= longitude <= 180:
        raise ValueError(f"Longitude must be between -180 and 180, got {longitude}")


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters between two coordinates."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def validate_evv_location(reading: LocationReading, client_location: ClientLocation) -> EVVValidationResult:
    """
    Classify a reading against the client's geofence.

    Args:
        reading: Caregiver's GPS reading
        client_location: Client coordinates and optional geofence radius

    Returns:
        EVVValidationResult with COMPLIANT or OUT_OF_RANGE status

    Raises:
        ValueError: Coordinates out of range, negative accuracy or non-positive radius
    """
    _check_coordinates(reading.latitude, reading.longitude)
    _check_coordinates(client_location.latitude, client_location.longitude)
    if reading.accuracy < 0:
        raise ValueError(f"Accuracy must be non-negative, got {reading.accuracy}")

    radius = client_location.geofence_radius
    if radius is None:
        radius = config.DEFAULT_GEOFENCE_RADIUS
    if radius <= 0:
        raise ValueError(f"Geofence radius must be positive, got {radius}")

    distance = round(haversine_distance(
        reading.latitude,
        reading.longitude,
        client_location.latitude,
        client_location.longitude,
    ))

    if distance <= radius:
        return EVVValidationResult(
            status=EVVStatus.COMPLIANT,
            is_within_geofence=True,
            distance_from_client=distance,
            message=f"Location verified: {distance}m from client (within {radius}m geofence)",
        )

    return EVVValidationResult(
        status=EVVStatus.OUT_OF_RANGE,
        is_within_geofence=False,
        distance_from_client=distance,
        message=f"Location is {distance}m from client, outside the {radius}m geofence",
    )


def location_unavailable(message: str = "Location not available") -> EVVValidationResult:
    """Verdict used when there is no reading or no client coordinates."""
    return EVVValidationResult(status=EVVStatus.LOCATION_UNAVAILABLE, message=message)
