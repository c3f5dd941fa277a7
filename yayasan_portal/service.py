"""Core orchestration logic for the Yayasan portal."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .attendance import (
    HistoryEntry,
    Statistics,
    compute_statistics,
    project_history,
    select_upcoming,
)
from .backend_client import BackendClient, Session
from .config import Settings
from .models import AttendanceRecord, Event, Member, Organization, Role
from .permissions import UnknownPermissionError, filter_roles, normalize_permissions, permissions_for

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
DEFAULT_ORGANIZATION_NAME = "Yayasan"
MEMBER_COLUMNS = "*, groups(name)"
MEMBER_FIELDS = (
    "full_name",
    "email",
    "phone",
    "member_type",
    "grade",
    "organization_id",
    "group_id",
    "role_id",
    "division_id",
    "foundation_id",
    "status",
)


class PortalError(Exception):
    """Base class for errors raised by the portal service."""


class ValidationError(PortalError):
    pass


class NotFoundError(PortalError):
    pass


class PermissionDeniedError(PortalError):
    pass


@dataclass(slots=True)
class Snapshot:
    """Collections fetched together in one refresh."""

    members: List[Member]
    events: List[Event]
    attendance: List[AttendanceRecord]
    roles: List[Role]
    organizations: List[Organization]

    def find_member(self, member_id: str) -> Member:
        for member in self.members:
            if member.id == member_id:
                return member
        raise NotFoundError(f"Member {member_id} not found")


@dataclass(slots=True)
class MemberDashboard:
    member: Member
    organization_name: str
    group_name: str
    statistics: Statistics
    upcoming: List[Event]
    history: List[HistoryEntry]


class PortalService:
    """High-level service that fetches backend data and derives portal views."""

    def __init__(self, settings: Settings, client: BackendClient) -> None:
        self.settings = settings
        self.client = client

    # region Fetch helpers
    async def refresh(self) -> Snapshot:
        members, events, attendance, roles, organizations = await asyncio.gather(
            self.client.select("members", MEMBER_COLUMNS),
            self.client.select("events"),
            self.client.select("event_attendance"),
            self.client.select("roles"),
            self.client.select("organizations"),
        )
        snapshot = Snapshot(
            members=[Member.from_row(row) for row in members],
            events=[Event.from_row(row) for row in events],
            attendance=[AttendanceRecord.from_row(row) for row in attendance],
            roles=[Role.from_row(row) for row in roles],
            organizations=[Organization.from_row(row) for row in organizations],
        )
        logger.info(
            "Refreshed snapshot: %s members, %s events, %s attendance rows",
            len(snapshot.members),
            len(snapshot.events),
            len(snapshot.attendance),
        )
        return snapshot

    async def _events_and_attendance(self) -> tuple[List[Event], List[AttendanceRecord]]:
        events, attendance = await asyncio.gather(
            self.client.select("events"),
            self.client.select("event_attendance"),
        )
        return [Event.from_row(row) for row in events], [AttendanceRecord.from_row(row) for row in attendance]

    # endregion

    # region Member portal
    async def member_dashboard(self, member_id: str) -> MemberDashboard:
        snapshot = await self.refresh()
        member = snapshot.find_member(member_id)
        organization = next((o for o in snapshot.organizations if o.id == member.organization_id), None)
        return MemberDashboard(
            member=member,
            organization_name=organization.name if organization else DEFAULT_ORGANIZATION_NAME,
            group_name=member.group_name or "-",
            statistics=compute_statistics(snapshot.attendance, member.id),
            upcoming=select_upcoming(snapshot.events, self.settings.upcoming_limit),
            history=project_history(snapshot.attendance, snapshot.events, member.id),
        )

    async def statistics_for(self, member_id: str) -> Statistics:
        rows = await self.client.select("event_attendance")
        return compute_statistics([AttendanceRecord.from_row(row) for row in rows], member_id)

    async def history_for(self, member_id: str) -> List[HistoryEntry]:
        events, attendance = await self._events_and_attendance()
        return project_history(attendance, events, member_id)

    async def upcoming_events(self, limit: Optional[int] = None) -> List[Event]:
        rows = await self.client.select("events")
        if limit is None:
            limit = self.settings.upcoming_limit
        return select_upcoming([Event.from_row(row) for row in rows], limit)

    # endregion

    # region Accounts
    async def sign_in(self, email: str, password: str) -> Session:
        if not email or not password:
            raise ValidationError("Email dan password wajib diisi.")
        return await self.client.sign_in_with_password(email, password)

    async def sign_out(self, access_token: str) -> None:
        await self.client.sign_out(access_token)

    async def change_password(self, access_token: str, new_password: str, confirm_password: str) -> None:
        validate_new_password(new_password, confirm_password)
        await self.client.update_password(access_token, new_password)
        logger.info("Password updated for current session")

    async def activate_account(self, email: str, password: str, pin: Optional[str] = None) -> Dict[str, Any]:
        """Create a login for a member an administrator has already registered."""

        rows = await self.client.select("members", "id, full_name, foundation_id", {"email": email})
        if not rows:
            raise NotFoundError(
                "Email ini belum terdaftar di sistem Yayasan. "
                "Silakan hubungi Super Admin untuk menambahkan data Anda terlebih dahulu."
            )
        foundation_id = rows[0].get("foundation_id")
        if foundation_id:
            foundations = await self.client.select("foundations", "activation_pin", {"id": foundation_id})
            if not foundations:
                raise NotFoundError("Data yayasan tidak ditemukan.")
            expected = foundations[0].get("activation_pin")
            if expected and expected != pin:
                raise PermissionDeniedError("PIN Aktivasi Yayasan salah. Silakan minta PIN kepada Super Admin.")
        result = await self.client.sign_up(email, password)
        logger.info("Activated account for member %s", rows[0].get("id"))
        return result

    async def current_permissions(self, access_token: str) -> List[str]:
        """Resolve the permissions of the account that owns ``access_token``."""

        user, snapshot = await asyncio.gather(self.client.get_user(access_token), self.refresh())
        email = user.get("email") or ""
        member = next((m for m in snapshot.members if email and m.email == email), None)
        return permissions_for(
            member,
            snapshot.roles,
            email,
            super_admin_email=self.settings.super_admin_email,
        )

    # endregion

    # region Roles
    async def list_roles(self, foundation_id: Optional[str] = None, super_admin: bool = False) -> List[Role]:
        rows = await self.client.select("roles")
        return filter_roles(
            [Role.from_row(row) for row in rows],
            foundation_id=foundation_id,
            super_admin=super_admin,
        )

    async def save_role(
        self,
        name: str,
        permissions: Iterable[str],
        role_id: Optional[str] = None,
        requires_service_period: bool = False,
        foundation_id: Optional[str] = None,
    ) -> Role:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Nama role wajib diisi.")
        try:
            normalized = normalize_permissions(name, permissions)
        except UnknownPermissionError as exc:
            raise ValidationError(str(exc)) from exc

        payload: Dict[str, Any] = {
            "name": name,
            "permissions": normalized,
            "requires_service_period": requires_service_period,
        }
        if role_id:
            rows = await self.client.update("roles", payload, {"id": role_id})
            if not rows:
                raise NotFoundError(f"Role {role_id} not found")
        else:
            payload["foundation_id"] = foundation_id
            rows = await self.client.insert("roles", [payload])
        logger.info("Saved role %s", name)
        return Role.from_row(rows[0])

    async def delete_role(self, role_id: str) -> None:
        await self.client.delete("roles", {"id": role_id})
        logger.info("Deleted role %s", role_id)

    # endregion

    # region Members
    async def save_member(
        self,
        payload: Mapping[str, Any],
        member_id: Optional[str] = None,
        password: Optional[str] = None,
    ) -> Member:
        values = member_payload(payload)
        if not values.get("full_name") or not values.get("email"):
            raise ValidationError("Nama lengkap dan email wajib diisi.")

        if member_id:
            rows = await self.client.update("members", values, {"id": member_id})
            if not rows:
                raise NotFoundError(f"Member {member_id} not found")
        else:
            if password:
                validate_new_password(password, password)
                await self.client.sign_up(values["email"], password, {"full_name": values["full_name"]})
            rows = await self.client.insert("members", [values])
        logger.info("Saved member %s", values["email"])
        return Member.from_row(rows[0])

    async def delete_member(self, member_id: str) -> None:
        await self.client.delete("members", {"id": member_id})
        logger.info("Deleted member %s", member_id)

    # endregion


def validate_new_password(new_password: str, confirm_password: str) -> None:
    if len(new_password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password minimal {MIN_PASSWORD_LENGTH} karakter.")
    if new_password != confirm_password:
        raise ValidationError("Konfirmasi password tidak cocok.")


def member_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Keep known member columns; blank foreign keys become NULL."""

    values: Dict[str, Any] = {}
    for key in MEMBER_FIELDS:
        if key not in payload:
            continue
        value = payload[key]
        if key.endswith("_id") and not value:
            value = None
        values[key] = value
    return values


__all__ = [
    "MemberDashboard",
    "NotFoundError",
    "PermissionDeniedError",
    "PortalError",
    "PortalService",
    "Snapshot",
    "ValidationError",
    "member_payload",
    "validate_new_password",
]
