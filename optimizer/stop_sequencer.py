"""
optimizer/stop_sequencer.py

Greedy nearest-neighbour stop sequencing with pickup-before-dropoff precedence.

All stops of all bookings are flattened into one candidate pool. The route is
seeded with the earliest scheduled pickup and then extended one stop at a
time with the closest admissible stop: any unvisited pickup, or a dropoff
whose passenger is currently on board.

This is a heuristic, not an exact solver for routing with precedence
constraints. Journeys are small (a few bookings, rarely more than a few dozen
stops) and the answer is needed synchronously, so O(N^2) greedy selection
over a precomputed distance matrix is enough.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

import numpy as np
import pytz

from demand.booking import Booking, Stop
from dispatch.event import DiagnosticEvent, EventLog
from network.geo import distance_matrix
from optimizer.errors import NoPickupStopsError
from optimizer.precedence import PrecedenceTracker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PoolEntry:
    """A candidate stop plus the position of its booking in the request."""

    stop: Stop
    booking_id: str
    submission_index: int


def flatten_bookings(bookings: Iterable[Booking]) -> List[PoolEntry]:
    """Flatten bookings into one pool, in booking order then stop order."""
    pool = []
    for submission_index, booking in enumerate(bookings):
        for stop in booking.stops:
            pool.append(PoolEntry(stop, booking.id, submission_index))
    return pool


def _timestamp(value: datetime) -> float:
    if value.tzinfo is None:
        value = pytz.utc.localize(value)
    return value.timestamp()


def _seed_key(entry: PoolEntry) -> Tuple[int, float, int]:
    # ASAP pickups (no scheduled time) sort after every timed pickup
    scheduled = entry.stop.scheduled_time
    if scheduled is None:
        return (1, 0.0, entry.submission_index)
    return (0, _timestamp(scheduled), entry.submission_index)


def select_seed(pool: List[PoolEntry]) -> int:
    """
    Pick the first stop of the route.

    Returns the pool index of the pickup with the earliest scheduled time.
    Ties (equal or missing times) go to the booking submitted first, then to
    pool order.

    Raises:
        NoPickupStopsError: If the pool contains no pickup
    """
    pickups = [i for i, entry in enumerate(pool) if entry.stop.is_pickup]
    if not pickups:
        raise NoPickupStopsError(len(pool))

    # min() keeps the first of equal keys, i.e. pool order
    return min(pickups, key=lambda i: _seed_key(pool[i]))


def sequence_stops(
    bookings: Iterable[Booking],
    events: Optional[EventLog] = None
) -> List[Stop]:
    """
    Compute a single visiting order over every stop of every booking.

    Args:
        bookings: Bookings in submission order
        events: Optional event log receiving a STRANDED_PASSENGER event if
            the precedence data is malformed

    Returns:
        Every input stop exactly once. For well-formed input each dropoff
        comes after its pickup.

    Raises:
        NoPickupStopsError: If there is no pickup to start from
    """
    pool = flatten_bookings(bookings)
    logger.info(f"Sequencing {len(pool)} stops")

    seed = select_seed(pool)
    matrix = distance_matrix([(e.stop.location.lat, e.stop.location.lng) for e in pool])

    tracker = PrecedenceTracker()
    route = [seed]
    tracker.visit(pool[seed].stop)
    unvisited = [i for i in range(len(pool)) if i != seed]
    current = seed

    logger.debug(
        f"Seed stop {pool[seed].stop.id} ({pool[seed].stop.location.address}) "
        f"from booking {pool[seed].booking_id}"
    )

    while unvisited:
        candidates = [i for i in unvisited if tracker.admits(pool[i].stop)]

        if not candidates:
            stranded = [pool[i].stop.id for i in unvisited]
            message = (
                f"No admissible next stop after {pool[current].stop.id}; "
                f"appending {len(stranded)} remaining stop(s) in pool order"
            )
            logger.warning(message)
            if events is not None:
                events.emit(
                    DiagnosticEvent.STRANDED_PASSENGER,
                    message,
                    after_stop_id=pool[current].stop.id,
                    stop_ids=stranded,
                )
            route.extend(unvisited)
            break

        # argmin returns the first minimum, so ties keep candidate order
        distances = matrix[current, candidates]
        best = candidates[int(np.argmin(distances))]

        logger.debug(
            f"Next stop {pool[best].stop.id} ({pool[best].stop.stop_type}) "
            f"at {float(matrix[current, best]):.1f}m, "
            f"{len(candidates)} candidate(s), {len(tracker)} on board"
        )

        route.append(best)
        unvisited.remove(best)
        tracker.visit(pool[best].stop)
        current = best

    return [pool[i].stop for i in route]
