"""
Format a Booking as the creation body expected by the dispatch API.

The body describes the trip from the first pickup to the last stop, with any
stops in between sent as vias. Segment ids for the resulting legs come back
from the dispatch system and are attached to the stops afterwards (see
Booking.with_upstream_ids).
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

import phonenumbers
import pytz
from phonenumbers import NumberParseException, PhoneNumberFormat

from demand.booking import Booking, Stop, to_iso_utc

logger = logging.getLogger(__name__)

# Maximum length of an E.164 number, including the leading "+"
E164_MAX_LENGTH = 15


def _address_block(stop: Stop) -> Dict[str, str]:
    return {
        "lat": str(stop.location.lat),
        "lng": str(stop.location.lng),
        "formatted": stop.location.address,
        "driver_instructions": stop.instructions or "",
    }


def placeholder_phone(region: str) -> str:
    """Dummy number in the region's calling code, e.g. +3530000000000 for IE."""
    country_code = phonenumbers.country_code_for_region(region.upper())
    if country_code == 0:
        raise ValueError(f"Unknown phone region: {region}")
    return f"+{country_code}0000000000"[:E164_MAX_LENGTH]


def format_phone(raw: Optional[str], region: str) -> str:
    """
    Validated E.164 form of a passenger phone number.

    The dispatch API requires a phone on every booking, so a missing or
    invalid number is replaced by placeholder_phone(region).
    """
    if raw:
        try:
            number = phonenumbers.parse(raw, region.upper())
        except NumberParseException:
            number = None

        if number is not None and phonenumbers.is_valid_number(number):
            return phonenumbers.format_number(number, PhoneNumberFormat.E164)

        logger.warning(f"Invalid phone number provided: {raw}. A placeholder will be used.")
    else:
        logger.warning("No phone number provided. A placeholder will be used.")

    return placeholder_phone(region)


def format_booking_for_api(
    booking: Booking,
    site_id: int,
    account_id: int,
    now: Optional[datetime] = None,
    default_region: str = "IE"
) -> Dict[str, Any]:
    """
    Build the booking creation payload.

    Args:
        booking: Booking to submit
        site_id: Dispatch site the booking belongs to
        account_id: Customer account to bill
        now: Fallback booking date when the first pickup has no scheduled time
        default_region: ISO 3166 country of the dispatch site, used to parse
            national numbers and to build the placeholder phone

    Returns:
        JSON-serializable dictionary

    Raises:
        ValueError: If the booking has fewer than two stops, no pickup, or
            the site/account id is missing, or a placeholder phone is
            needed for an unknown region
    """
    if len(booking.stops) < 2:
        raise ValueError(f"Booking {booking.id} must have at least a pickup and a dropoff stop")

    first_pickup = booking.first_pickup
    if first_pickup is None:
        raise ValueError(f"Booking {booking.id} must contain at least one pickup stop")

    if not site_id:
        raise ValueError("Site ID is required for booking")
    if not account_id:
        raise ValueError("Account ID is required for booking")

    last_stop = booking.final_stop
    vias = list(booking.stops[1:-1])

    if first_pickup.scheduled_time is not None:
        date = first_pickup.scheduled_time
    else:
        date = now or datetime.now(pytz.utc)

    payload = {
        "date": to_iso_utc(date),
        "source": "DISPATCH",
        "name": first_pickup.name or "N/A",
        "address": _address_block(first_pickup),
        "destination": _address_block(last_stop),
        "account_id": account_id,
        "site_id": site_id,
        "with_bookingsegments": True,
    }

    if vias:
        payload["vias"] = [_address_block(stop) for stop in vias]

    payload["phone"] = format_phone(first_pickup.phone, default_region)

    if booking.price is not None or booking.cost is not None:
        payload["payment"] = {
            "price": booking.price or 0,
            "cost": booking.cost or 0,
            "fixed": 1,
        }

    if booking.instructions:
        payload["instructions"] = booking.instructions

    logger.debug(
        f"Formatted booking {booking.id}: {len(booking.stops)} stop(s), {len(vias)} via(s)"
    )

    return payload
