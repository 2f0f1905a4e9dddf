"""
Exceptions raised by the journey payload engine.

Only fatal conditions are exceptions. Degraded outcomes (stranded passengers,
unresolvable planned dates, skipped line items) are reported as diagnostic
events instead, see dispatch.event.
"""

from typing import Optional


class JourneyPayloadError(Exception):
    """Base class for journey payload failures."""


class InvalidInputError(JourneyPayloadError, ValueError):
    """The routing request cannot be turned into a route."""


class NoPickupStopsError(InvalidInputError):
    """The request contains no pickup stop, so the route cannot be seeded."""

    def __init__(self, stop_count: int = 0):
        self.stop_count = stop_count
        super().__init__(
            f"Cannot create a journey with no pickup stops ({stop_count} stop(s) given)"
        )


class MissingIdentifierError(JourneyPayloadError):
    """
    A stop lacks the upstream identifier its payload line needs.

    Final stops need the booking's request id; intermediate stops need their
    own segment id. Seeing this usually means the booking was never created
    upstream before the journey was assembled.
    """

    def __init__(
        self,
        stop_id: str,
        address: str,
        stop_type: str,
        is_final: bool,
        booking_id: Optional[str] = None,
    ):
        self.stop_id = stop_id
        self.address = address
        self.stop_type = stop_type
        self.is_final = is_final
        self.booking_id = booking_id

        id_field = "request_id" if is_final else "bookingsegment_id"
        super().__init__(
            f"Missing {id_field} for stop {stop_id}. StopType: {stop_type}, "
            f"isFinal: {is_final}, Address: {address}"
        )


class JourneySubmissionError(JourneyPayloadError):
    """A booking or journey submission to the dispatch system failed."""
