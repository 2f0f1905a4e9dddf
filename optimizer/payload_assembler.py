"""
optimizer/payload_assembler.py

Turns an ordered stop list into the journey submission payload expected by
the dispatch API, plus the same stops annotated with their route position.

Per stop the payload line carries:
- the upstream identifier: the booking's request id for the booking's final
  stop (``request_id``), the stop's own segment id otherwise
  (``bookingsegment_id``)
- ``is_destination``: "true" for a booking's final stop
- ``planned_date``: UTC ISO-8601 timestamp
- ``distance``: meters to the next stop of the route (0 for the last stop)
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytz

from demand.booking import Booking, OrderedStop, RoutingRequest, Stop, to_iso_utc
from dispatch.event import DiagnosticEvent, EventLog
from network.geo import distance_meters
from optimizer.errors import InvalidInputError, MissingIdentifierError

logger = logging.getLogger(__name__)

REQUEST_ID_FIELD = "request_id"
SEGMENT_ID_FIELD = "bookingsegment_id"


class _Clock:
    """Wall-clock fallback, read at most once per assembly."""

    def __init__(self, now: Optional[datetime] = None) -> None:
        self._now = now

    def __call__(self) -> datetime:
        if self._now is None:
            self._now = datetime.now(pytz.utc)
        return self._now


def resolve_planned_date(
    stop: Stop,
    booking: Booking,
    clock,
    events: Optional[EventLog] = None
) -> datetime:
    """
    Planned time for a stop.

    Order of precedence:
    1. A pickup's own scheduled time
    2. For a dropoff, the scheduled time of its corresponding pickup
    3. The scheduled time of the booking's first pickup
    4. The current wall-clock time (logged, never fatal)
    """
    if stop.is_pickup and stop.scheduled_time is not None:
        return stop.scheduled_time

    if stop.is_dropoff and stop.corresponding_pickup_id is not None:
        pickup = booking.find_stop(stop.corresponding_pickup_id)
        if pickup is not None and pickup.scheduled_time is not None:
            return pickup.scheduled_time

    first_pickup = booking.first_pickup
    if first_pickup is not None and first_pickup.scheduled_time is not None:
        return first_pickup.scheduled_time

    now = clock()
    message = (
        f"No scheduled time resolvable for stop {stop.id} of booking {booking.id}, "
        f"using current time"
    )
    logger.warning(message)
    if events is not None:
        events.emit(
            DiagnosticEvent.UNRESOLVABLE_PLANNED_DATE,
            message,
            stop_id=stop.id,
            booking_id=booking.id,
            planned_date=to_iso_utc(now),
        )
    return now


def build_envelope(
    lines: List[Dict[str, Any]],
    journey_id: Optional[int] = None,
    enable_messaging: bool = False
) -> Dict[str, Any]:
    """Wrap payload lines into the single-journey submission object."""
    journey = {
        "id": journey_id,
        "bookings": lines,
    }
    if enable_messaging:
        journey["enable_messaging_service"] = "true"

    return {
        "logs": "false",
        "delete_outstanding_journeys": "false",
        "keyless_response": True,
        "journeys": [journey],
    }


def assemble_payload(
    ordered_stops: Sequence[Stop],
    request: RoutingRequest,
    events: Optional[EventLog] = None,
    now: Optional[datetime] = None
) -> Tuple[Dict[str, Any], List[OrderedStop]]:
    """
    Build the submission payload for an already ordered route.

    Args:
        ordered_stops: Route produced by the stop sequencer
        request: The routing request the stops come from
        events: Optional event log for skipped lines and date fallbacks
        now: Wall-clock override for the planned date fallback

    Returns:
        (payload, annotated ordered stops)

    Raises:
        MissingIdentifierError: If a stop that cannot be skipped lacks its
            upstream identifier
        InvalidInputError: If a stop's parent booking is not in the request
    """
    bookings = {b.id: b for b in request.bookings}
    clock = _Clock(now)

    lines = []
    annotated = []

    for position, stop in enumerate(ordered_stops):
        booking = bookings.get(stop.parent_booking_id)
        if booking is None:
            raise InvalidInputError(
                f"Could not find parent booking {stop.parent_booking_id} for stop {stop.id}"
            )

        distance = 0.0
        if position < len(ordered_stops) - 1:
            distance = distance_meters(stop.location, ordered_stops[position + 1].location)

        annotated.append(OrderedStop(stop, position, distance))

        is_final = booking.is_final_stop(stop)
        if is_final:
            id_field, identifier = REQUEST_ID_FIELD, booking.final_leg_id
        else:
            id_field, identifier = SEGMENT_ID_FIELD, stop.upstream_segment_id

        if identifier is None:
            if request.is_update and not is_final:
                # New intermediate stop on an existing journey: no segment id yet
                message = (
                    f"Skipping line for new stop {stop.id} ({stop.location.address}) "
                    f"of booking {booking.id}: no {SEGMENT_ID_FIELD} assigned yet"
                )
                logger.warning(message)
                if events is not None:
                    events.emit(
                        DiagnosticEvent.SKIPPED_LINE_ITEM,
                        message,
                        stop_id=stop.id,
                        booking_id=booking.id,
                        position=position,
                    )
                continue

            raise MissingIdentifierError(
                stop.id,
                stop.location.address,
                stop.stop_type,
                is_final,
                booking_id=booking.id,
            )

        planned = resolve_planned_date(stop, booking, clock, events)

        lines.append({
            id_field: identifier,
            "is_destination": "true" if is_final else "false",
            "planned_date": to_iso_utc(planned),
            "distance": distance,
        })

    payload = build_envelope(lines, request.existing_journey_id, request.enable_messaging)

    logger.info(
        f"Assembled payload with {len(lines)} line(s) for {len(ordered_stops)} stop(s), "
        f"journey id {request.existing_journey_id}"
    )

    return payload, annotated
