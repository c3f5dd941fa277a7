"""Dataclasses representing Yayasan portal domain models."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

EVENT_UPCOMING = "Upcoming"
ATTENDANCE_PRESENT = "Present"
ATTENDANCE_EXCUSED = "Excused"

EARLIEST = datetime.min.replace(tzinfo=timezone.utc)
LATEST = datetime.max.replace(tzinfo=timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a backend date/date-time value into an aware UTC datetime.

    Accepts ``datetime`` objects and ISO strings, including date-only values
    and a trailing ``Z``. Naive values are read as UTC. Returns ``None`` when
    the value is empty or cannot be parsed.
    """

    if value is None or value == "":
        return None
    try:
        if isinstance(value, datetime):
            parsed = value
        else:
            text = str(value).strip()
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        # Offsets near datetime.min/max can overflow the UTC conversion.
        return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        logger.debug("Unparseable timestamp %r", value)
        return None


@dataclass(slots=True)
class Member:
    id: str
    full_name: str
    email: str
    phone: str | None = None
    member_type: str | None = None
    grade: str | None = None
    organization_id: str | None = None
    group_id: str | None = None
    role_id: str | None = None
    division_id: str | None = None
    foundation_id: str | None = None
    status: str | None = None
    group_name: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Member":
        groups = row.get("groups") or {}
        return cls(
            id=str(row["id"]),
            full_name=row.get("full_name") or "",
            email=row.get("email") or "",
            phone=row.get("phone"),
            member_type=row.get("member_type"),
            grade=row.get("grade"),
            organization_id=row.get("organization_id"),
            group_id=row.get("group_id"),
            role_id=row.get("role_id"),
            division_id=row.get("division_id"),
            foundation_id=row.get("foundation_id"),
            status=row.get("status"),
            group_name=groups.get("name") if isinstance(groups, Mapping) else None,
        )


@dataclass(slots=True)
class Event:
    id: str
    name: str
    date: str
    status: str
    location: str | None = None
    description: str | None = None

    @property
    def starts_at(self) -> Optional[datetime]:
        return parse_timestamp(self.date)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Event":
        return cls(
            id=str(row["id"]),
            name=row.get("name") or "",
            date=row.get("date") or "",
            status=row.get("status") or "",
            location=row.get("location"),
            description=row.get("description"),
        )


@dataclass(slots=True)
class AttendanceRecord:
    id: str
    member_id: str
    event_id: str
    status: str
    notes: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "AttendanceRecord":
        return cls(
            id=str(row["id"]),
            member_id=str(row["member_id"]),
            event_id=str(row["event_id"]),
            status=row.get("status") or "",
            notes=row.get("notes"),
        )


@dataclass(slots=True)
class Role:
    id: str
    name: str
    # None when the column is NULL; an empty list is an explicit "no access".
    permissions: list[str] | None = None
    requires_service_period: bool = False
    foundation_id: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Role":
        permissions = row.get("permissions")
        return cls(
            id=str(row["id"]),
            name=row.get("name") or "",
            permissions=list(permissions) if permissions is not None else None,
            requires_service_period=bool(row.get("requires_service_period")),
            foundation_id=row.get("foundation_id"),
        )


@dataclass(slots=True)
class Organization:
    id: str
    name: str
    type: str | None = None
    description: str | None = None
    foundation_id: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Organization":
        return cls(
            id=str(row["id"]),
            name=row.get("name") or "",
            type=row.get("type"),
            description=row.get("description"),
            foundation_id=row.get("foundation_id"),
        )


__all__ = [
    "ATTENDANCE_EXCUSED",
    "ATTENDANCE_PRESENT",
    "EARLIEST",
    "LATEST",
    "EVENT_UPCOMING",
    "AttendanceRecord",
    "Event",
    "Member",
    "Organization",
    "Role",
    "parse_timestamp",
]
