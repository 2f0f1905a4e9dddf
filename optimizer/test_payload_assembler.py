"""
Unit tests for journey payload assembly.
"""

import logging
import unittest
from datetime import datetime

import pytz

from demand.booking import DROPOFF, PICKUP, Booking, Location, RoutingRequest, Stop
from dispatch.event import DiagnosticEvent, EventLog
from network.geo import distance_meters
from optimizer.errors import InvalidInputError, MissingIdentifierError
from optimizer.payload_assembler import (
    REQUEST_ID_FIELD,
    SEGMENT_ID_FIELD,
    assemble_payload,
    build_envelope,
    resolve_planned_date,
)


NOW = pytz.utc.localize(datetime(2024, 7, 25, 12, 0))
DUBLIN = pytz.timezone("Europe/Dublin")


def make_stop(stop_id, stop_type, booking_id, lat, lng, pickup_id=None, when=None, segment_id=None):
    return Stop(
        id=stop_id,
        location=Location(f"Address {stop_id}", lat, lng),
        stop_type=stop_type,
        parent_booking_id=booking_id,
        scheduled_time=when,
        corresponding_pickup_id=pickup_id,
        upstream_segment_id=segment_id,
    )


class TestAssemblePayload(unittest.TestCase):

    def setUp(self):
        logging.disable(logging.CRITICAL)
        self.pickup_time = DUBLIN.localize(datetime(2024, 7, 25, 15, 0))

        self.b1 = Booking("b1", [
            make_stop("p1", PICKUP, "b1", 53.3488, -6.2297, when=self.pickup_time, segment_id=1001),
            make_stop("d1", DROPOFF, "b1", 53.3829, -6.0710, pickup_id="p1"),
        ], request_id=201, upstream_booking_id=101)
        self.b2 = Booking("b2", [
            make_stop("p2", PICKUP, "b2", 53.3897, -6.1094, segment_id=2001),
            make_stop("d2", DROPOFF, "b2", 53.3829, -6.0710, pickup_id="p2"),
        ], upstream_booking_id=102)
        self.request = RoutingRequest([self.b1, self.b2])
        self.route = [self.b1.stops[0], self.b2.stops[0], self.b1.stops[1], self.b2.stops[1]]

    def tearDown(self):
        logging.disable(logging.NOTSET)

    def test_identifier_per_stop(self):
        payload, _ = assemble_payload(self.route, self.request, now=NOW)
        lines = payload["journeys"][0]["bookings"]

        self.assertEqual(len(lines), 4)
        self.assertEqual(lines[0][SEGMENT_ID_FIELD], 1001)
        self.assertEqual(lines[1][SEGMENT_ID_FIELD], 2001)
        # Final stops carry the request id, falling back to the upstream booking id
        self.assertEqual(lines[2][REQUEST_ID_FIELD], 201)
        self.assertEqual(lines[3][REQUEST_ID_FIELD], 102)
        self.assertNotIn(REQUEST_ID_FIELD, lines[0])
        self.assertNotIn(SEGMENT_ID_FIELD, lines[2])

    def test_is_destination(self):
        payload, _ = assemble_payload(self.route, self.request, now=NOW)
        flags = [line["is_destination"] for line in payload["journeys"][0]["bookings"]]
        self.assertEqual(flags, ["false", "false", "true", "true"])

    def test_distances(self):
        payload, annotated = assemble_payload(self.route, self.request, now=NOW)
        lines = payload["journeys"][0]["bookings"]

        expected = distance_meters(self.route[0].location, self.route[1].location)
        self.assertAlmostEqual(lines[0]["distance"], expected, places=6)
        # Both dropoffs share a location
        self.assertEqual(lines[2]["distance"], 0.0)
        self.assertEqual(lines[-1]["distance"], 0)
        self.assertEqual([a.distance_to_next for a in annotated], [line["distance"] for line in lines])

    def test_annotated_positions(self):
        _, annotated = assemble_payload(self.route, self.request, now=NOW)
        self.assertEqual([a.position for a in annotated], [0, 1, 2, 3])
        self.assertEqual([a.stop.id for a in annotated], ["p1", "p2", "d1", "d2"])

    def test_planned_dates(self):
        events = EventLog()
        payload, _ = assemble_payload(self.route, self.request, events, now=NOW)
        dates = [line["planned_date"] for line in payload["journeys"][0]["bookings"]]

        # 15:00 Dublin summer time is 14:00 UTC; b2 has no times at all
        self.assertEqual(dates, [
            "2024-07-25T14:00:00.000Z",
            "2024-07-25T12:00:00.000Z",
            "2024-07-25T14:00:00.000Z",
            "2024-07-25T12:00:00.000Z",
        ])
        fallbacks = events.of_type(DiagnosticEvent.UNRESOLVABLE_PLANNED_DATE)
        self.assertEqual([e.data["stop_id"] for e in fallbacks], ["p2", "d2"])

    def test_envelope_for_new_journey(self):
        payload, _ = assemble_payload(self.route, self.request, now=NOW)

        self.assertEqual(payload["logs"], "false")
        self.assertEqual(payload["delete_outstanding_journeys"], "false")
        self.assertIs(payload["keyless_response"], True)
        self.assertEqual(len(payload["journeys"]), 1)
        self.assertIsNone(payload["journeys"][0]["id"])
        self.assertNotIn("enable_messaging_service", payload["journeys"][0])

    def test_envelope_with_journey_id_and_messaging(self):
        request = RoutingRequest([self.b1, self.b2], existing_journey_id=555, enable_messaging=True)
        payload, _ = assemble_payload(self.route, request, now=NOW)

        self.assertEqual(payload["journeys"][0]["id"], 555)
        self.assertEqual(payload["journeys"][0]["enable_messaging_service"], "true")

    def test_missing_identifier_in_create_mode(self):
        b3 = Booking("b3", [
            make_stop("p3", PICKUP, "b3", 53.35, -6.26),
            make_stop("d3", DROPOFF, "b3", 53.36, -6.25, pickup_id="p3"),
        ], request_id=303)
        request = RoutingRequest([b3])

        with self.assertRaises(MissingIdentifierError) as ctx:
            assemble_payload(list(b3.stops), request, now=NOW)

        self.assertEqual(ctx.exception.stop_id, "p3")
        self.assertFalse(ctx.exception.is_final)
        self.assertIn("bookingsegment_id", str(ctx.exception))
        self.assertEqual(ctx.exception.address, "Address p3")
        self.assertEqual(ctx.exception.stop_type, "pickup")
        self.assertIn("Address p3", str(ctx.exception))
        self.assertIn("pickup", str(ctx.exception))

    def test_missing_identifier_skipped_in_update_mode(self):
        b3 = Booking("b3", [
            make_stop("p3", PICKUP, "b3", 53.35, -6.26),
            make_stop("d3", DROPOFF, "b3", 53.36, -6.25, pickup_id="p3"),
        ], request_id=303)
        request = RoutingRequest([b3], existing_journey_id=555)
        events = EventLog()

        payload, annotated = assemble_payload(list(b3.stops), request, events, now=NOW)
        lines = payload["journeys"][0]["bookings"]

        self.assertEqual(len(lines), 1)
        self.assertEqual(lines[0][REQUEST_ID_FIELD], 303)
        self.assertEqual(len(annotated), 2)
        skipped = events.of_type(DiagnosticEvent.SKIPPED_LINE_ITEM)
        self.assertEqual(len(skipped), 1)
        self.assertEqual(skipped[0].data["stop_id"], "p3")

    def test_missing_request_id_on_final_stop_raises_even_in_update_mode(self):
        b3 = Booking("b3", [
            make_stop("p3", PICKUP, "b3", 53.35, -6.26, segment_id=3001),
            make_stop("d3", DROPOFF, "b3", 53.36, -6.25, pickup_id="p3"),
        ])
        request = RoutingRequest([b3], existing_journey_id=555)

        with self.assertRaises(MissingIdentifierError) as ctx:
            assemble_payload(list(b3.stops), request, now=NOW)

        self.assertTrue(ctx.exception.is_final)
        self.assertIn("request_id", str(ctx.exception))
        self.assertIn("Address d3", str(ctx.exception))
        self.assertIn("dropoff", str(ctx.exception))

    def test_unknown_parent_booking(self):
        stray = make_stop("x1", PICKUP, "nope", 53.35, -6.26, segment_id=1)
        with self.assertRaises(InvalidInputError):
            assemble_payload([stray], self.request, now=NOW)


class TestResolvePlannedDate(unittest.TestCase):

    def setUp(self):
        logging.disable(logging.CRITICAL)
        self.first = DUBLIN.localize(datetime(2024, 7, 25, 9, 0))
        self.second = DUBLIN.localize(datetime(2024, 7, 25, 9, 30))

    def tearDown(self):
        logging.disable(logging.NOTSET)

    def test_pickup_uses_own_time(self):
        pickup = make_stop("p1", PICKUP, "b1", 53.35, -6.26, when=self.second)
        booking = Booking("b1", [pickup])
        self.assertEqual(resolve_planned_date(pickup, booking, lambda: NOW), self.second)

    def test_dropoff_uses_its_pickup_time(self):
        pa = make_stop("pa", PICKUP, "b1", 53.35, -6.26, when=self.first)
        pb = make_stop("pb", PICKUP, "b1", 53.36, -6.26, when=self.second)
        db = make_stop("db", DROPOFF, "b1", 53.37, -6.26, pickup_id="pb")
        booking = Booking("b1", [pa, pb, db])

        self.assertEqual(resolve_planned_date(db, booking, lambda: NOW), self.second)

    def test_falls_back_to_first_pickup(self):
        pa = make_stop("pa", PICKUP, "b1", 53.35, -6.26, when=self.first)
        pb = make_stop("pb", PICKUP, "b1", 53.36, -6.26)
        db = make_stop("db", DROPOFF, "b1", 53.37, -6.26, pickup_id="pb")
        booking = Booking("b1", [pa, pb, db])

        self.assertEqual(resolve_planned_date(pb, booking, lambda: NOW), self.first)
        self.assertEqual(resolve_planned_date(db, booking, lambda: NOW), self.first)

    def test_falls_back_to_clock(self):
        pickup = make_stop("p1", PICKUP, "b1", 53.35, -6.26)
        booking = Booking("b1", [pickup])
        events = EventLog()

        self.assertEqual(resolve_planned_date(pickup, booking, lambda: NOW, events), NOW)
        self.assertEqual(len(events.of_type(DiagnosticEvent.UNRESOLVABLE_PLANNED_DATE)), 1)
        self.assertEqual(events.as_list()[0].data["planned_date"], "2024-07-25T12:00:00.000Z")


class TestBuildEnvelope(unittest.TestCase):

    def test_empty_lines(self):
        payload = build_envelope([])
        self.assertEqual(payload["journeys"], [{"id": None, "bookings": []}])


if __name__ == "__main__":
    unittest.main()
