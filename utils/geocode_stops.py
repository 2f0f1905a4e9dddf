"""
Fill in missing stop coordinates of a routing request file with the Google
Maps Geocoding API.

The routing engine requires every stop to have lat/lng. Requests exported
from templates or typed by hand often only have addresses; this script
resolves them before the request is routed.

Usage:
    python utils/geocode_stops.py REQUEST.json [OUTPUT.json]

The API key is read from the GOOGLE_MAPS_API_KEY environment variable.
"""

import copy
import json
import logging
import sys
import time
from typing import Any, Dict, List, Tuple

import googlemaps
from googlemaps.exceptions import ApiError, Timeout, TransportError

logger = logging.getLogger(__name__)


def _needs_geocoding(stop: Dict[str, Any]) -> bool:
    location = stop.get("location") or {}
    return location.get("lat") is None or location.get("lng") is None


def geocode_request_data(
    data: Dict[str, Any],
    gmaps_client,
    region: str = None,
    delay: float = 0.0
) -> Tuple[Dict[str, Any], List[str]]:
    """
    Geocode every stop whose location has no coordinates.

    Args:
        data: Request dictionary (see demand.request_loader)
        gmaps_client: googlemaps.Client (or anything with a compatible geocode())
        region: Optional ccTLD region bias
        delay: Seconds to sleep between API calls (rate limiting)

    Returns:
        (geocoded copy of data, ids of stops that could not be geocoded)
    """
    result = copy.deepcopy(data)
    failed = []

    for booking in result.get("bookings", []):
        for stop in booking.get("stops", []):
            if not _needs_geocoding(stop):
                continue

            location = stop.setdefault("location", {})
            address = location.get("address")
            if not address:
                logger.warning(f"Stop {stop.get('id')} has neither coordinates nor address")
                failed.append(stop.get("id"))
                continue

            try:
                if region:
                    geocode_result = gmaps_client.geocode(address, region=region)
                else:
                    geocode_result = gmaps_client.geocode(address)
            except (ApiError, Timeout, TransportError) as e:
                logger.error(f"Geocoding failed for stop {stop.get('id')} ({address}): {e}")
                failed.append(stop.get("id"))
                continue

            if not geocode_result:
                logger.warning(f"Address not found for stop {stop.get('id')}: {address}")
                failed.append(stop.get("id"))
                continue

            google_location = geocode_result[0]["geometry"]["location"]
            location["lat"] = google_location["lat"]
            location["lng"] = google_location["lng"]
            logger.info(
                f"Geocoded stop {stop.get('id')}: {address} -> "
                f"[{location['lat']:.6f}, {location['lng']:.6f}]"
            )

            if delay > 0:
                time.sleep(delay)

    return result, failed


def main(argv=None) -> int:
    import config

    argv = argv if argv is not None else sys.argv[1:]
    if len(argv) < 1:
        print("Usage: python utils/geocode_stops.py REQUEST.json [OUTPUT.json]")
        return 1

    if not config.GOOGLE_MAPS_API_KEY:
        print("Error: GOOGLE_MAPS_API_KEY is not set")
        return 1

    logging.basicConfig(
        level=config.LOG_LEVEL,
        format='[%(asctime)s] [%(levelname)s] [%(name)s] - %(message)s'
    )

    input_path = argv[0]
    output_path = argv[1] if len(argv) > 1 else input_path

    with open(input_path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    gmaps = googlemaps.Client(key=config.GOOGLE_MAPS_API_KEY)
    geocoded, failed = geocode_request_data(
        data, gmaps, region=config.GEOCODING_REGION, delay=config.GEOCODING_DELAY
    )

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(geocoded, f, indent=2, ensure_ascii=False)

    print(f"Saved geocoded request to: {output_path}")
    if failed:
        print(f"⚠ Could not geocode {len(failed)} stop(s): {', '.join(str(s) for s in failed)}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
