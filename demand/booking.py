"""
Booking data model for journey building.

A Booking is one passenger trip: an ordered list of stops (pickup, optional
vias, dropoff) that the dispatcher wants to combine with other bookings into
a single journey. All types here are immutable value objects; the routing
engine only reads them and derives new structures.

Stop ownership is explicit: every Stop carries the id of its parent booking
instead of a back-reference to the Booking object, so there are no cycles
between bookings and their stops.
"""

import dataclasses
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Tuple

import pytz

logger = logging.getLogger(__name__)

PICKUP = "pickup"
DROPOFF = "dropoff"
STOP_TYPES = (PICKUP, DROPOFF)


def to_iso_utc(value: datetime) -> str:
    """
    Format a datetime as a UTC ISO-8601 string with milliseconds.

    Naive datetimes are interpreted as UTC.

    Example:
        >>> to_iso_utc(datetime(2024, 7, 25, 15, 0))
        '2024-07-25T15:00:00.000Z'
    """
    if value.tzinfo is None:
        value = pytz.utc.localize(value)
    else:
        value = value.astimezone(pytz.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class Location:
    """A geocoded address. Coordinates are in degrees."""

    address: str
    lat: float
    lng: float

    def __post_init__(self) -> None:
        if not isinstance(self.address, str):
            raise TypeError("address must be a string")
        if not _is_number(self.lat) or not _is_number(self.lng):
            raise TypeError("lat and lng must be numeric (int or float)")
        if not (math.isfinite(self.lat) and math.isfinite(self.lng)):
            raise ValueError(f"Coordinates must be finite, got ({self.lat}, {self.lng})")
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"Latitude out of range: {self.lat}")
        if not -180.0 <= self.lng <= 180.0:
            raise ValueError(f"Longitude out of range: {self.lng}")

    def to_dict(self) -> Dict[str, Any]:
        return {"address": self.address, "lat": self.lat, "lng": self.lng}


@dataclass(frozen=True)
class Stop:
    """
    A single pickup or dropoff within a booking.

    Attributes:
        id: Unique identifier within a routing request
        location: Where the stop happens
        stop_type: PICKUP or DROPOFF
        parent_booking_id: Id of the booking owning this stop
        scheduled_time: Requested pickup time (pickups only; None = ASAP)
        corresponding_pickup_id: For dropoffs, the id of the passenger's pickup
        upstream_segment_id: Segment id assigned by the dispatch system to the
            leg starting at this stop
        name, phone, instructions: Passenger details carried through for the
            booking creation payload and for display
    """

    PICKUP = PICKUP
    DROPOFF = DROPOFF

    id: str
    location: Location
    stop_type: str
    parent_booking_id: str
    scheduled_time: Optional[datetime] = None
    corresponding_pickup_id: Optional[str] = None
    upstream_segment_id: Optional[int] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    instructions: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            raise ValueError("stop id must be a non-empty string")
        if not isinstance(self.location, Location):
            raise TypeError(f"Stop {self.id}: location must be a Location")
        if self.stop_type not in STOP_TYPES:
            raise ValueError(
                f"Stop {self.id}: stop_type must be one of {STOP_TYPES}, got {self.stop_type!r}"
            )
        if not isinstance(self.parent_booking_id, str) or not self.parent_booking_id:
            raise ValueError(f"Stop {self.id}: parent_booking_id must be a non-empty string")
        if self.scheduled_time is not None and not isinstance(self.scheduled_time, datetime):
            raise TypeError(f"Stop {self.id}: scheduled_time must be a datetime")
        if self.upstream_segment_id is not None and (
            not isinstance(self.upstream_segment_id, int) or isinstance(self.upstream_segment_id, bool)
        ):
            raise TypeError(f"Stop {self.id}: upstream_segment_id must be an integer")

    @property
    def is_pickup(self) -> bool:
        return self.stop_type == PICKUP

    @property
    def is_dropoff(self) -> bool:
        return self.stop_type == DROPOFF

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "location": self.location.to_dict(),
            "stop_type": self.stop_type,
            "parent_booking_id": self.parent_booking_id,
            "scheduled_time": to_iso_utc(self.scheduled_time) if self.scheduled_time else None,
            "corresponding_pickup_id": self.corresponding_pickup_id,
            "upstream_segment_id": self.upstream_segment_id,
            "name": self.name,
            "phone": self.phone,
            "instructions": self.instructions,
        }


@dataclass(frozen=True)
class Booking:
    """
    One passenger trip: pickup -> (optional vias) -> dropoff.

    The original order of ``stops`` is meaningful: its last element is the
    booking's final stop, whose payload line carries the booking-level
    ``request_id`` regardless of where routing places it.
    """

    id: str
    stops: Tuple[Stop, ...]
    request_id: Optional[int] = None
    upstream_booking_id: Optional[int] = None
    price: Optional[float] = None
    cost: Optional[float] = None
    instructions: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            raise ValueError("booking id must be a non-empty string")

        stops = tuple(self.stops)
        object.__setattr__(self, "stops", stops)

        if len(stops) == 0:
            raise ValueError(f"Booking {self.id} must have at least one stop")

        pickup_ids = set()
        for stop in stops:
            if not isinstance(stop, Stop):
                raise TypeError(f"Booking {self.id}: stops must be Stop instances")
            if stop.parent_booking_id != self.id:
                raise ValueError(
                    f"Stop {stop.id} belongs to booking {stop.parent_booking_id}, "
                    f"not {self.id}"
                )
            if stop.is_pickup:
                pickup_ids.add(stop.id)

        for stop in stops:
            if stop.is_dropoff and stop.corresponding_pickup_id is not None:
                if stop.corresponding_pickup_id not in pickup_ids:
                    raise ValueError(
                        f"Dropoff {stop.id} references pickup "
                        f"{stop.corresponding_pickup_id} which is not a pickup of "
                        f"booking {self.id}"
                    )

    @property
    def final_stop(self) -> Stop:
        return self.stops[-1]

    @property
    def first_pickup(self) -> Optional[Stop]:
        return next((s for s in self.stops if s.is_pickup), None)

    @property
    def final_leg_id(self) -> Optional[int]:
        """Identifier for the final leg: request_id, else the upstream booking id."""
        if self.request_id is not None:
            return self.request_id
        return self.upstream_booking_id

    def is_final_stop(self, stop: Stop) -> bool:
        return stop.id == self.final_stop.id

    def find_stop(self, stop_id: str) -> Optional[Stop]:
        return next((s for s in self.stops if s.id == stop_id), None)

    def with_upstream_ids(self, booking_id: int, segment_ids: Iterable[int] = ()) -> "Booking":
        """
        Return a copy carrying identifiers assigned by the dispatch system.

        Segment ids are given in leg order; leg k starts at stop k, so they
        are attached to the non-final stops in their original order. Stops
        that already carry a segment id keep it when the list runs short.
        """
        segment_ids = list(segment_ids)
        non_final = len(self.stops) - 1
        if len(segment_ids) > non_final:
            logger.warning(
                f"Booking {self.id}: received {len(segment_ids)} segment ids for "
                f"{non_final} legs, ignoring the extra ones"
            )

        new_stops = []
        for index, stop in enumerate(self.stops):
            if index < non_final and index < len(segment_ids):
                stop = dataclasses.replace(stop, upstream_segment_id=segment_ids[index])
            new_stops.append(stop)

        return dataclasses.replace(
            self,
            stops=tuple(new_stops),
            upstream_booking_id=booking_id,
            request_id=self.request_id if self.request_id is not None else booking_id,
        )


@dataclass(frozen=True)
class RoutingRequest:
    """
    Input of a journey payload computation.

    Attributes:
        bookings: Bookings in submission order
        existing_journey_id: Upstream id of the journey being updated
            (None when creating a new journey)
        enable_messaging: Whether the journey should enable the messaging service
    """

    bookings: Tuple[Booking, ...]
    existing_journey_id: Optional[int] = None
    enable_messaging: bool = False

    def __post_init__(self) -> None:
        bookings = tuple(self.bookings)
        object.__setattr__(self, "bookings", bookings)

        seen_bookings = set()
        seen_stops = set()
        for booking in bookings:
            if not isinstance(booking, Booking):
                raise TypeError("bookings must be Booking instances")
            if booking.id in seen_bookings:
                raise ValueError(f"Duplicate booking id: {booking.id}")
            seen_bookings.add(booking.id)

            for stop in booking.stops:
                if stop.id in seen_stops:
                    raise ValueError(f"Duplicate stop id: {stop.id}")
                seen_stops.add(stop.id)

    @property
    def is_update(self) -> bool:
        return self.existing_journey_id is not None

    @property
    def stop_count(self) -> int:
        return sum(len(b.stops) for b in self.bookings)


@dataclass(frozen=True)
class OrderedStop:
    """A stop placed at a position (0-based) of the computed route."""

    stop: Stop
    position: int
    distance_to_next: float = field(default=0.0)

    def to_dict(self) -> Dict[str, Any]:
        data = self.stop.to_dict()
        data["position"] = self.position
        data["distance_to_next"] = self.distance_to_next
        return data
