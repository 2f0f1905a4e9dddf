"""
Render a computed journey route as an HTML map with folium.

Pickups are drawn in green, dropoffs in red, numbered in route order, and the
route itself as a polyline. Used by ``main.py --map`` to eyeball the stop
order chosen by the sequencer.
"""

import logging
from typing import Sequence

import folium

from demand.booking import OrderedStop

logger = logging.getLogger(__name__)


def build_journey_map(ordered_stops: Sequence[OrderedStop], zoom_start: int = 12) -> folium.Map:
    """
    Build a folium map for an ordered route.

    Raises:
        ValueError: If the route is empty
    """
    if not ordered_stops:
        raise ValueError("Cannot render an empty route")

    avg_lat = sum(s.stop.location.lat for s in ordered_stops) / len(ordered_stops)
    avg_lng = sum(s.stop.location.lng for s in ordered_stops) / len(ordered_stops)

    m = folium.Map(location=[avg_lat, avg_lng], zoom_start=zoom_start)

    for ordered in ordered_stops:
        stop = ordered.stop
        color = 'green' if stop.is_pickup else 'red'
        popup = (
            f"<b>{ordered.position + 1}. {stop.stop_type.upper()}</b><br>"
            f"{stop.location.address}<br>"
            f"Booking: {stop.parent_booking_id}<br>"
            f"Next leg: {ordered.distance_to_next:.0f}m"
        )
        if stop.name:
            popup += f"<br>Passenger: {stop.name}"

        folium.CircleMarker(
            location=[stop.location.lat, stop.location.lng],
            radius=8,
            color=color,
            fill=True,
            fillColor=color,
            fillOpacity=0.6,
            popup=popup
        ).add_to(m)

    folium.PolyLine(
        locations=[[s.stop.location.lat, s.stop.location.lng] for s in ordered_stops],
        color='blue',
        weight=2,
        opacity=0.5
    ).add_to(m)

    return m


def save_journey_map(ordered_stops: Sequence[OrderedStop], output_file: str) -> str:
    m = build_journey_map(ordered_stops)
    m.save(output_file)
    logger.info(f"Map saved to: {output_file}")
    return output_file
