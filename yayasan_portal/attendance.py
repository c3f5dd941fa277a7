"""Attendance statistics, history and agenda derivations for the member portal.

All functions here are pure: they read caller-owned snapshots and return new
structures, so they can be re-run on every refresh without bookkeeping.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .models import (
    ATTENDANCE_EXCUSED,
    ATTENDANCE_PRESENT,
    EARLIEST,
    EVENT_UPCOMING,
    LATEST,
    AttendanceRecord,
    Event,
)

DEFAULT_UPCOMING_LIMIT = 3

STATUS_LABELS = {
    ATTENDANCE_PRESENT: ("present", "Hadir"),
    ATTENDANCE_EXCUSED: ("excused", "Izin"),
}
ABSENT_LABEL = ("absent", "Alpha")


@dataclass(slots=True)
class Statistics:
    """Attendance totals for one member."""

    present: int
    total: int
    percentage: int

    def as_dict(self) -> dict[str, int]:
        return {"present": self.present, "total": self.total, "percentage": self.percentage}


@dataclass(slots=True)
class HistoryEntry:
    record: AttendanceRecord
    event: Optional[Event]

    @property
    def kind(self) -> str:
        return status_label(self.record.status)[0]

    @property
    def label(self) -> str:
        return status_label(self.record.status)[1]


def status_label(status: str) -> tuple[str, str]:
    """Return ``(kind, label)`` for an attendance status; unknown means absent."""

    return STATUS_LABELS.get(status, ABSENT_LABEL)


def percentage_of(part: int, whole: int) -> int:
    # Half-up rounding on integers, so 12.5 becomes 13 rather than 12.
    if whole <= 0:
        return 0
    return (part * 200 + whole) // (whole * 2)


def compute_statistics(attendance: Iterable[AttendanceRecord], member_id: str) -> Statistics:
    """Return present/total/percentage for ``member_id`` over ``attendance``."""

    mine = [record for record in attendance if record.member_id == member_id]
    total = len(mine)
    present = sum(1 for record in mine if record.status == ATTENDANCE_PRESENT)
    return Statistics(present=present, total=total, percentage=percentage_of(present, total))


def project_history(
    attendance: Iterable[AttendanceRecord],
    events: Iterable[Event],
    member_id: str,
) -> List[HistoryEntry]:
    """Join a member's attendance records to their events, newest first.

    Records whose event cannot be resolved are kept with ``event=None`` and
    sort after every dated entry.
    """

    by_id: Dict[str, Event] = {event.id: event for event in events}
    entries = [
        HistoryEntry(record=record, event=by_id.get(record.event_id))
        for record in attendance
        if record.member_id == member_id
    ]

    def sort_key(entry: HistoryEntry):
        if entry.event is None:
            return EARLIEST
        return entry.event.starts_at or EARLIEST

    entries.sort(key=sort_key, reverse=True)
    return entries


def select_upcoming(events: Iterable[Event], limit: int = DEFAULT_UPCOMING_LIMIT) -> List[Event]:
    """Return the ``limit`` soonest events whose status is exactly "Upcoming"."""

    if limit < 0:
        raise ValueError("limit must not be negative")
    upcoming = [event for event in events if event.status == EVENT_UPCOMING]
    upcoming.sort(key=lambda event: event.starts_at or LATEST)
    return upcoming[:limit]


__all__ = [
    "DEFAULT_UPCOMING_LIMIT",
    "HistoryEntry",
    "Statistics",
    "compute_statistics",
    "percentage_of",
    "project_history",
    "select_upcoming",
    "status_label",
]
