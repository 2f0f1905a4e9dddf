"""
Publish flow: create missing bookings upstream, build the journey payload and
submit it.

The dispatch API itself is not called from here. The flow receives two
collaborators, the same way the route optimizer receives its travel time
function:

    create_booking(booking) -> BookingReceipt | {"id": int, "segment_ids": [...]}
    submit_journey(payload) -> int | {"journeys": [{"id": int}, ...]}

Bookings that already carry an upstream booking id are not created again.

A create_booking collaborator is usually format_booking_for_api bound to the
site plus an HTTP post:

    def create_booking(booking, site_id, account_id, post):
        body = format_booking_for_api(booking, site_id, account_id, default_region="IE")
        response = post("/bookings", body)
        return {"id": response["id"], "segment_ids": response["segment_ids"]}

    publish_journey(request, functools.partial(create_booking, site_id=3,
                    account_id=42, post=client.post), submit_journey)
"""

import copy
import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from demand.booking import Booking, OrderedStop, RoutingRequest
from dispatch.event import DiagnosticEvent
from optimizer.errors import InvalidInputError, JourneySubmissionError
from optimizer.journey_payload import generate_journey_payload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingReceipt:
    """Identifiers returned by the dispatch system for a created booking."""

    booking_id: int
    segment_ids: Tuple[int, ...] = ()


@dataclass
class PublishedJourney:
    journey_id: int
    bookings: List[Booking]
    ordered_stops: List[OrderedStop]
    events: List[DiagnosticEvent] = field(default_factory=list)
    status: str = "Scheduled"
    message: str = ""


def merge_journey_pricing(
    payload: Dict[str, Any],
    price: Optional[float] = None,
    cost: Optional[float] = None
) -> Dict[str, Any]:
    """Return a copy of the payload with journey-level price/cost set."""
    merged = copy.deepcopy(payload)
    journey = merged["journeys"][0]
    if price is not None:
        journey["price"] = price
    if cost is not None:
        journey["cost"] = cost
    return merged


def _as_receipt(result: Any) -> BookingReceipt:
    if isinstance(result, BookingReceipt):
        return result
    if isinstance(result, dict) and result.get("id") is not None:
        segment_ids = result.get("segment_ids") or []
        return BookingReceipt(int(result["id"]), tuple(int(s) for s in segment_ids))
    raise JourneySubmissionError(f"Invalid response from booking creation: {result!r}")


def _extract_journey_id(response: Any) -> Optional[int]:
    if isinstance(response, bool):
        return None
    if isinstance(response, int):
        return response
    if isinstance(response, dict):
        journeys = response.get("journeys") or []
        if journeys and isinstance(journeys[0], dict) and journeys[0].get("id") is not None:
            return int(journeys[0]["id"])
    return None


def create_missing_bookings(
    request: RoutingRequest,
    create_booking: Callable[[Booking], Any]
) -> RoutingRequest:
    """
    Create every booking that has no upstream booking id yet.

    Returns:
        A new request whose bookings carry upstream booking ids and segment ids

    Raises:
        JourneySubmissionError: On the first booking that fails; later
            bookings are not attempted
    """
    created = []
    for booking in request.bookings:
        if booking.upstream_booking_id is not None:
            logger.debug(f"Booking {booking.id} already submitted as {booking.upstream_booking_id}")
            created.append(booking)
            continue

        passenger = booking.first_pickup.name if booking.first_pickup else None
        logger.info(f"Creating booking {booking.id} for passenger: {passenger}")

        try:
            receipt = _as_receipt(create_booking(booking))
        except JourneySubmissionError:
            logger.error(f"Failed to create booking {booking.id}")
            raise
        except Exception as e:
            logger.error(f"Failed to create booking {booking.id}: {e}")
            raise JourneySubmissionError(
                f"Failed to create booking {booking.id}. Halting journey creation. Error: {e}"
            ) from e

        created.append(booking.with_upstream_ids(receipt.booking_id, receipt.segment_ids))
        logger.info(
            f"Created booking {booking.id} with upstream id {receipt.booking_id} "
            f"and {len(receipt.segment_ids)} segment(s)"
        )

    return dataclasses.replace(request, bookings=tuple(created))


def publish_journey(
    request: RoutingRequest,
    create_booking: Callable[[Booking], Any],
    submit_journey: Callable[[Dict[str, Any]], Any],
    price: Optional[float] = None,
    cost: Optional[float] = None,
    now: Optional[datetime] = None
) -> PublishedJourney:
    """
    Create bookings, then route and submit them as one journey.

    Raises:
        InvalidInputError: If the request has no bookings
        JourneySubmissionError: If a collaborator fails or the journey id
            is missing from the submission response
        NoPickupStopsError, MissingIdentifierError: From payload generation
    """
    if len(request.bookings) == 0:
        raise InvalidInputError("No bookings provided to create a journey")

    logger.info(f"Starting journey publication with {len(request.bookings)} booking(s)")

    request = create_missing_bookings(request, create_booking)
    result = generate_journey_payload(request, now=now)
    payload = merge_journey_pricing(result.payload, price, cost)

    try:
        response = submit_journey(payload)
    except Exception as e:
        logger.error(f"Failed to submit journey: {e}")
        raise JourneySubmissionError(
            f"Failed to link bookings into a journey. Error: {e}"
        ) from e

    journey_id = _extract_journey_id(response)
    if journey_id is None:
        raise JourneySubmissionError("Journey id was not returned by the dispatch system")

    verb = "updated" if request.is_update else "scheduled"
    message = f"Journey with {len(request.bookings)} booking(s) was successfully {verb}."
    logger.info(f"Journey {journey_id} {verb}")

    return PublishedJourney(
        journey_id=journey_id,
        bookings=list(request.bookings),
        ordered_stops=result.ordered_stops,
        events=result.events,
        message=message,
    )
