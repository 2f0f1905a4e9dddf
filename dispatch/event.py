from typing import Any, Dict, Optional


class DiagnosticEvent:
    """
    A non-fatal condition observed while building a journey payload.

    The engine never aborts on these; it degrades and records an event so
    that callers (the CLI, the publish flow) can show what happened.

    Attributes:
        sequence: Emission order within one computation (0-based)
        event_type: The type of event (use class constants)
        priority: Ordering key when events are sorted (lower = more important)
        data: Dictionary containing event-specific data
        message: Human readable description

    Example:
        >>> event = DiagnosticEvent(0, DiagnosticEvent.STRANDED_PASSENGER, {"stop_ids": ["s2"]})
        >>> event.severity
        'warning'
    """

    # Event type constants
    STRANDED_PASSENGER = "STRANDED_PASSENGER"
    UNRESOLVABLE_PLANNED_DATE = "UNRESOLVABLE_PLANNED_DATE"
    SKIPPED_LINE_ITEM = "SKIPPED_LINE_ITEM"

    # Default priorities for each event type
    _DEFAULT_PRIORITIES = {
        STRANDED_PASSENGER: 0,
        SKIPPED_LINE_ITEM: 1,
        UNRESOLVABLE_PLANNED_DATE: 2,
    }

    def __init__(
        self,
        sequence: int,
        event_type: str,
        data: Optional[Dict[str, Any]] = None,
        message: str = "",
        priority: Optional[int] = None
    ):
        if sequence < 0:
            raise ValueError(f"Event sequence must be non-negative, got {sequence}")

        self.sequence = sequence
        self.event_type = event_type
        self.data = data if data is not None else {}
        self.message = message

        if priority is not None:
            self.priority = priority
        else:
            self.priority = self._DEFAULT_PRIORITIES.get(event_type, 5)

    @property
    def severity(self) -> str:
        # Every soft failure the engine reports is warning-level
        return "warning"

    def __lt__(self, other: 'DiagnosticEvent') -> bool:
        if self.priority != other.priority:
            return self.priority < other.priority
        return self.sequence < other.sequence

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DiagnosticEvent):
            return False

        return (
            self.sequence == other.sequence
            and self.event_type == other.event_type
            and self.data == other.data
        )

    def __repr__(self) -> str:
        return (
            f"DiagnosticEvent(sequence={self.sequence}, type={self.event_type}, "
            f"priority={self.priority}, data={self.data})"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequence": self.sequence,
            "type": self.event_type,
            "severity": self.severity,
            "message": self.message,
            "data": self.data,
        }


class EventLog:
    """Collects diagnostic events for a single computation, in emission order."""

    def __init__(self) -> None:
        self._events = []

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self):
        return iter(self._events)

    def emit(self, event_type: str, message: str = "", **data: Any) -> DiagnosticEvent:
        event = DiagnosticEvent(len(self._events), event_type, data, message)
        self._events.append(event)
        return event

    def of_type(self, event_type: str):
        return [e for e in self._events if e.event_type == event_type]

    def as_list(self):
        return list(self._events)
