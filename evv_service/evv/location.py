"""EVV location records attached to shift check-in/check-out"""
import logging
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple
from pydantic import ConfigDict, ValidationError

from evv_service.db.models import Client
from evv_service.evv.geofence import (
    ClientLocation,
    EVVValidationResult,
    LocationReading,
    location_unavailable,
    validate_evv_location,
)
from evv_service.utils.schemas import CamelModel

logger = logging.getLogger(__name__)

MOBILE_USER_AGENT_MARKERS = ("carebaseapp", "okhttp", "cfnetwork", "expo", "android", "iphone", "ipad", "mobile")


class LocationSource(str, Enum):
    MOBILE = "mobile"
    WEB = "web"


class EVVLocationData(CamelModel):
    """Immutable snapshot of a reading evaluated against the client's geofence"""
    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float
    accuracy: float
    timestamp: datetime
    source: LocationSource
    is_within_geofence: bool
    distance_from_client: int


def detect_source(user_agent: Optional[str]) -> LocationSource:
    """Mobile app or browser, judged from the request's User-Agent."""
    if not user_agent:
        return LocationSource.WEB
    lowered = user_agent.lower()
    if any(marker in lowered for marker in MOBILE_USER_AGENT_MARKERS):
        return LocationSource.MOBILE
    return LocationSource.WEB


def create_evv_location_data(
    reading: LocationReading,
    validation_result: EVVValidationResult,
    source: LocationSource,
    timestamp: datetime,
) -> EVVLocationData:
    """Merge a raw reading and its verdict into one location record."""
    if validation_result.distance_from_client is None:
        raise ValueError("Cannot record a location without a geofence verdict")
    return EVVLocationData(
        latitude=reading.latitude,
        longitude=reading.longitude,
        accuracy=reading.accuracy,
        timestamp=timestamp,
        source=source,
        is_within_geofence=bool(validation_result.is_within_geofence),
        distance_from_client=validation_result.distance_from_client,
    )


def client_location_for(client: Optional[Client]) -> Optional[ClientLocation]:
    """Client's geofence, or None when coordinates are not configured."""
    if client is None or client.latitude is None or client.longitude is None:
        return None
    return ClientLocation(
        latitude=client.latitude,
        longitude=client.longitude,
        geofence_radius=client.geofence_radius,
    )


def evaluate_reading(
    reading: Optional[LocationReading],
    client: Optional[Client],
    source: LocationSource,
    timestamp: datetime,
) -> Tuple[EVVValidationResult, Optional[EVVLocationData]]:
    """
    Produce the verdict for a check-in/out and the record to persist.

    No reading or no client coordinates gives LOCATION_UNAVAILABLE and
    nothing to persist.
    """
    if reading is None:
        return location_unavailable("Location not provided"), None

    client_location = client_location_for(client)
    if client_location is None:
        return location_unavailable("Client location not configured"), None

    result = validate_evv_location(reading, client_location)
    return result, create_evv_location_data(reading, result, source, timestamp)


def serialize_evv_location(location: EVVLocationData) -> str:
    return location.model_dump_json(by_alias=True)


def parse_evv_location_data(raw: Optional[str]) -> Optional[EVVLocationData]:
    """Parse a stored location blob; unreadable data is treated as absent."""
    if not raw:
        return None
    try:
        return EVVLocationData.model_validate_json(raw)
    except ValidationError as e:
        logger.warning(f"Discarding unreadable EVV location data: {e}")
        return None
