"""
Build RoutingRequest objects from JSON-like dictionaries.

Expected shape (snake_case keys, unknown keys are ignored):

    {
      "existing_journey_id": 123,          # optional
      "enable_messaging": false,           # optional
      "bookings": [
        {
          "id": "b1",
          "request_id": 201,               # optional
          "upstream_booking_id": 101,      # optional
          "price": 25.0, "cost": 20.0,     # optional
          "instructions": "...",           # optional
          "stops": [
            {
              "id": "s1",
              "stop_type": "pickup",
              "location": {"address": "...", "lat": 53.34, "lng": -6.23},
              "scheduled_time": "2024-07-25T15:00:00",   # optional
              "corresponding_pickup_id": "s0",          # dropoffs
              "upstream_segment_id": 1001,              # optional
              "name": "...", "phone": "...", "instructions": "..."
            }
          ]
        }
      ]
    }

Scheduled times without an offset are local times of the dispatch site and
are localized with the given timezone.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

import pytz

from demand.booking import Booking, Location, RoutingRequest, Stop

logger = logging.getLogger(__name__)


def parse_datetime(value: Any, timezone: str = "UTC") -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp into an aware datetime.

    Args:
        value: ISO string, datetime or None
        timezone: pytz timezone name applied to naive values

    Returns:
        Timezone-aware datetime, or None when value is None/empty

    Raises:
        ValueError: If the string is not ISO-8601
        pytz.UnknownTimeZoneError: If the timezone name is unknown
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    else:
        raise TypeError(f"Unsupported timestamp value: {value!r}")

    if parsed.tzinfo is None:
        parsed = pytz.timezone(timezone).localize(parsed)
    return parsed


def _optional_int(value: Any, name: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise TypeError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise TypeError(f"{name} must be an integer, got {value!r}")


def stop_from_dict(data: Dict[str, Any], booking_id: str, timezone: str = "UTC") -> Stop:
    location = data.get("location") or {}
    return Stop(
        id=str(data["id"]),
        location=Location(
            address=location.get("address", ""),
            lat=location.get("lat"),
            lng=location.get("lng"),
        ),
        stop_type=data.get("stop_type"),
        parent_booking_id=booking_id,
        scheduled_time=parse_datetime(data.get("scheduled_time"), timezone),
        corresponding_pickup_id=data.get("corresponding_pickup_id"),
        upstream_segment_id=_optional_int(data.get("upstream_segment_id"), "upstream_segment_id"),
        name=data.get("name"),
        phone=data.get("phone"),
        instructions=data.get("instructions"),
    )


def booking_from_dict(data: Dict[str, Any], timezone: str = "UTC") -> Booking:
    booking_id = str(data["id"])
    stops = [stop_from_dict(s, booking_id, timezone) for s in data.get("stops", [])]
    return Booking(
        id=booking_id,
        stops=tuple(stops),
        request_id=_optional_int(data.get("request_id"), "request_id"),
        upstream_booking_id=_optional_int(data.get("upstream_booking_id"), "upstream_booking_id"),
        price=data.get("price"),
        cost=data.get("cost"),
        instructions=data.get("instructions"),
    )


def request_from_dict(data: Dict[str, Any], timezone: str = "UTC") -> RoutingRequest:
    """
    Build a RoutingRequest from a dictionary.

    Raises:
        KeyError: If a booking or stop has no id
        ValueError, TypeError: If a value fails model validation
    """
    bookings = [booking_from_dict(b, timezone) for b in data.get("bookings", [])]
    request = RoutingRequest(
        bookings=tuple(bookings),
        existing_journey_id=_optional_int(data.get("existing_journey_id"), "existing_journey_id"),
        enable_messaging=bool(data.get("enable_messaging", False)),
    )
    logger.info(
        f"Loaded request with {len(request.bookings)} booking(s) and "
        f"{request.stop_count} stop(s) (timezone {timezone})"
    )
    return request


def load_request(file_path: str, timezone: str = "UTC") -> RoutingRequest:
    """Read a routing request from a JSON file."""
    with open(file_path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    return request_from_dict(data, timezone)
