"""
optimizer/journey_payload.py

Entry point of the journey engine: sequence the stops of a routing request and
assemble the dispatch submission payload.

The computation is pure and deterministic for a given request (and a fixed
``now`` when planned dates fall back to the clock), so a failed upstream
submission can be retried with an identical payload.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from demand.booking import OrderedStop, RoutingRequest
from dispatch.event import DiagnosticEvent, EventLog
from optimizer.payload_assembler import assemble_payload
from optimizer.stop_sequencer import sequence_stops

logger = logging.getLogger(__name__)


@dataclass
class JourneyPayloadResult:
    """Output of generate_journey_payload."""

    payload: Dict[str, Any]
    ordered_stops: List[OrderedStop]
    events: List[DiagnosticEvent] = field(default_factory=list)

    @property
    def is_degraded(self) -> bool:
        return len(self.events) > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "payload": self.payload,
            "ordered_stops": [s.to_dict() for s in self.ordered_stops],
            "events": [e.to_dict() for e in sorted(self.events)],
        }


def generate_journey_payload(
    request: RoutingRequest,
    now: Optional[datetime] = None
) -> JourneyPayloadResult:
    """
    Route every stop of the request and build the submission payload.

    Args:
        request: Bookings in submission order plus journey-level options
        now: Wall-clock override used only when a planned date cannot be
            resolved from scheduled times

    Returns:
        JourneyPayloadResult with the payload, the annotated route and any
        diagnostic events

    Raises:
        NoPickupStopsError: If the request has no pickup stop
        MissingIdentifierError: If a stop lacks its upstream identifier
    """
    logger.info(
        f"Generating journey payload: {len(request.bookings)} booking(s), "
        f"{request.stop_count} stop(s), "
        f"{'update of journey ' + str(request.existing_journey_id) if request.is_update else 'new journey'}"
    )

    events = EventLog()
    ordered = sequence_stops(request.bookings, events)
    payload, ordered_stops = assemble_payload(ordered, request, events, now)

    if len(events) > 0:
        logger.warning(f"Journey payload generated with {len(events)} diagnostic event(s)")

    return JourneyPayloadResult(payload, ordered_stops, events.as_list())
