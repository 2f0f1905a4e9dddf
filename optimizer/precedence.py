"""
optimizer/precedence.py

Tracks which passengers are currently in the vehicle while a route is built.
A passenger is identified by the id of their pickup stop: visiting the pickup
boards them, visiting the matching dropoff lets them off. A dropoff is only
eligible as the next stop while its passenger is on board.
"""

import logging
from typing import FrozenSet, Set

from demand.booking import Stop

logger = logging.getLogger(__name__)


class PrecedenceTracker:
    """In-vehicle set used to filter candidate next stops."""

    def __init__(self) -> None:
        self._onboard: Set[str] = set()

    def __len__(self) -> int:
        return len(self._onboard)

    def __contains__(self, pickup_id: str) -> bool:
        return pickup_id in self._onboard

    @property
    def onboard(self) -> FrozenSet[str]:
        return frozenset(self._onboard)

    def admits(self, stop: Stop) -> bool:
        """
        Whether the stop may be visited next.

        Pickups are always admitted. Dropoffs are admitted only when their
        passenger is on board; a dropoff without a pickup reference never is.
        """
        if stop.is_pickup:
            return True
        if stop.corresponding_pickup_id is None:
            return False
        return stop.corresponding_pickup_id in self._onboard

    def visit(self, stop: Stop) -> None:
        """Update the in-vehicle set after ``stop`` was appended to the route."""
        if stop.is_pickup:
            self._onboard.add(stop.id)
        elif stop.corresponding_pickup_id is not None:
            if stop.corresponding_pickup_id not in self._onboard:
                logger.debug(
                    f"Dropoff {stop.id} visited while passenger "
                    f"{stop.corresponding_pickup_id} was not on board"
                )
            self._onboard.discard(stop.corresponding_pickup_id)
