"""
Geo-distance helpers for journey routing.

Distances are great-circle (haversine) distances in meters between stop
locations. The scalar version is used for per-leg payload distances; the
matrix version is used by the stop sequencer so that every nearest-neighbour
query during routing is a row lookup instead of a fresh trig computation.

Both functions are pure and deterministic. Coordinates are assumed to be
finite latitude/longitude values in degrees; callers validate them upstream
(see demand.booking.Location).
"""

import math
from typing import Sequence, Tuple

import numpy as np

# Mean Earth radius in meters
EARTH_RADIUS_M = 6371000.0


def distance_meters(a, b) -> float:
    """
    Haversine distance between two locations.

    Args:
        a: Object with ``lat`` and ``lng`` attributes (degrees)
        b: Object with ``lat`` and ``lng`` attributes (degrees)

    Returns:
        Distance in meters (always >= 0)
    """
    return haversine_meters(a.lat, a.lng, b.lat, b.lng)


def haversine_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Haversine distance in meters between two (lat, lng) pairs given in degrees."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)

    h = (
        math.sin(d_lat / 2) * math.sin(d_lat / 2)
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2))
        * math.sin(d_lng / 2) * math.sin(d_lng / 2)
    )
    # Rounding can push h a hair outside [0, 1] for antipodal points
    h = min(1.0, max(0.0, h))
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))

    return EARTH_RADIUS_M * c


def distance_matrix(points: Sequence[Tuple[float, float]]) -> np.ndarray:
    """
    Pairwise haversine distance matrix.

    Args:
        points: Sequence of (lat, lng) tuples in degrees

    Returns:
        Array of shape (N, N) where entry [i, j] is the distance in meters
        from points[i] to points[j]. The diagonal is exactly 0 and the
        matrix is symmetric.
    """
    if len(points) == 0:
        return np.zeros((0, 0))

    coords = np.radians(np.asarray(points, dtype=float))
    lat = coords[:, 0]
    lng = coords[:, 1]

    d_lat = lat[None, :] - lat[:, None]
    d_lng = lng[None, :] - lng[:, None]

    h = (
        np.sin(d_lat / 2) ** 2
        + np.cos(lat)[:, None] * np.cos(lat)[None, :] * np.sin(d_lng / 2) ** 2
    )
    # Rounding can push h a hair outside [0, 1] for antipodal points
    h = np.clip(h, 0.0, 1.0)
    matrix = EARTH_RADIUS_M * 2 * np.arctan2(np.sqrt(h), np.sqrt(1 - h))

    np.fill_diagonal(matrix, 0.0)
    return matrix
