"""
Unit tests for diagnostic events and the event log.
"""

import unittest

from dispatch.event import DiagnosticEvent, EventLog


class TestDiagnosticEvent(unittest.TestCase):

    def test_default_priorities(self):
        stranded = DiagnosticEvent(0, DiagnosticEvent.STRANDED_PASSENGER)
        skipped = DiagnosticEvent(1, DiagnosticEvent.SKIPPED_LINE_ITEM)
        fallback = DiagnosticEvent(2, DiagnosticEvent.UNRESOLVABLE_PLANNED_DATE)

        self.assertEqual([stranded.priority, skipped.priority, fallback.priority], [0, 1, 2])
        self.assertEqual(DiagnosticEvent(0, "OTHER").priority, 5)

    def test_explicit_priority(self):
        event = DiagnosticEvent(0, DiagnosticEvent.SKIPPED_LINE_ITEM, priority=9)
        self.assertEqual(event.priority, 9)

    def test_negative_sequence_rejected(self):
        with self.assertRaises(ValueError):
            DiagnosticEvent(-1, DiagnosticEvent.STRANDED_PASSENGER)

    def test_ordering(self):
        late_stranded = DiagnosticEvent(5, DiagnosticEvent.STRANDED_PASSENGER)
        early_fallback = DiagnosticEvent(0, DiagnosticEvent.UNRESOLVABLE_PLANNED_DATE)
        early_fallback_2 = DiagnosticEvent(1, DiagnosticEvent.UNRESOLVABLE_PLANNED_DATE)

        ordered = sorted([early_fallback_2, early_fallback, late_stranded])
        self.assertEqual(ordered, [late_stranded, early_fallback, early_fallback_2])

    def test_equality(self):
        a = DiagnosticEvent(0, DiagnosticEvent.SKIPPED_LINE_ITEM, {"stop_id": "s1"})
        b = DiagnosticEvent(0, DiagnosticEvent.SKIPPED_LINE_ITEM, {"stop_id": "s1"}, message="other")
        c = DiagnosticEvent(0, DiagnosticEvent.SKIPPED_LINE_ITEM, {"stop_id": "s2"})

        self.assertEqual(a, b)
        self.assertNotEqual(a, c)
        self.assertNotEqual(a, "event")

    def test_to_dict(self):
        event = DiagnosticEvent(3, DiagnosticEvent.STRANDED_PASSENGER, {"stop_ids": ["d1"]}, "stranded")
        self.assertEqual(event.to_dict(), {
            "sequence": 3,
            "type": "STRANDED_PASSENGER",
            "severity": "warning",
            "message": "stranded",
            "data": {"stop_ids": ["d1"]},
        })

    def test_repr(self):
        event = DiagnosticEvent(0, DiagnosticEvent.SKIPPED_LINE_ITEM)
        self.assertIn("SKIPPED_LINE_ITEM", repr(event))


class TestEventLog(unittest.TestCase):

    def test_emit_assigns_sequence(self):
        log = EventLog()
        first = log.emit(DiagnosticEvent.SKIPPED_LINE_ITEM, "skipped", stop_id="s1")
        second = log.emit(DiagnosticEvent.UNRESOLVABLE_PLANNED_DATE, stop_id="s2")

        self.assertEqual(first.sequence, 0)
        self.assertEqual(second.sequence, 1)
        self.assertEqual(first.data, {"stop_id": "s1"})
        self.assertEqual(len(log), 2)
        self.assertEqual(list(log), [first, second])

    def test_of_type(self):
        log = EventLog()
        log.emit(DiagnosticEvent.SKIPPED_LINE_ITEM, stop_id="s1")
        log.emit(DiagnosticEvent.UNRESOLVABLE_PLANNED_DATE, stop_id="s2")
        log.emit(DiagnosticEvent.SKIPPED_LINE_ITEM, stop_id="s3")

        skipped = log.of_type(DiagnosticEvent.SKIPPED_LINE_ITEM)
        self.assertEqual([e.data["stop_id"] for e in skipped], ["s1", "s3"])

    def test_as_list_is_a_copy(self):
        log = EventLog()
        log.emit(DiagnosticEvent.SKIPPED_LINE_ITEM)
        events = log.as_list()
        events.clear()
        self.assertEqual(len(log), 1)


if __name__ == "__main__":
    unittest.main()
