"""Role permission keys and the rules for resolving a member's access."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from .models import Member, Role

ALL_PERMISSIONS: tuple[tuple[str, str], ...] = (
    ("DASHBOARD", "Dashboard"),
    ("DOCUMENTATION", "Dokumentasi"),
    ("EVENTS", "Acara & Absensi"),
    ("SCANNER", "Scanner"),
    ("FINANCE", "Keuangan"),
    ("EDUCATORS", "Tenaga Pendidik"),
    ("ORGANIZATIONS", "Organisasi"),
    ("GROUPS", "Kelompok"),
    ("MEMBERS", "Anggota"),
    ("ROLES", "Role & Akses"),
    ("DIVISIONS", "Bidang / Divisi"),
    ("PROGRAMS", "Program Kerja"),
)
PERMISSION_KEYS: tuple[str, ...] = tuple(key for key, _ in ALL_PERMISSIONS)
MASTER_FOUNDATION = "MASTER_FOUNDATION"
LOCKED_ROLE_NAME = "Super Administration"
DEFAULT_PERMISSIONS = ["DASHBOARD"]


class UnknownPermissionError(ValueError):
    """Raised when a role is saved with a permission key we do not know."""

    def __init__(self, keys: Sequence[str]) -> None:
        super().__init__(f"Unknown permission(s): {', '.join(keys)}")
        self.keys = list(keys)


def is_locked_role_name(name: str) -> bool:
    return name.strip() == LOCKED_ROLE_NAME


def normalize_permissions(role_name: str, permissions: Iterable[str]) -> List[str]:
    """Validate and order permission keys for a role about to be saved.

    The "Super Administration" role is locked to every key. Other roles,
    "Super Admin" included, keep what they were given. Duplicates are
    dropped and the result follows the canonical ordering of
    ``ALL_PERMISSIONS``.
    """

    if is_locked_role_name(role_name):
        return list(PERMISSION_KEYS)
    wanted = set(permissions)
    unknown = sorted(wanted - set(PERMISSION_KEYS))
    if unknown:
        raise UnknownPermissionError(unknown)
    return [key for key in PERMISSION_KEYS if key in wanted]


def filter_roles(roles: Iterable[Role], *, foundation_id: Optional[str], super_admin: bool) -> List[Role]:
    if super_admin and not foundation_id:
        return list(roles)
    if foundation_id:
        return [role for role in roles if role.foundation_id == foundation_id]
    return []


def is_super_admin(member: Optional[Member], role: Optional[Role], email: str, super_admin_email: str) -> bool:
    if email and email == super_admin_email:
        return True
    return bool(member and role and "super" in role.name.lower())


def permissions_for(
    member: Optional[Member],
    roles: Iterable[Role],
    email: str,
    *,
    super_admin_email: str,
) -> List[str]:
    """Resolve the view permissions granted to a signed-in account."""

    role = None
    if member and member.role_id:
        role = next((r for r in roles if r.id == member.role_id), None)
    if role is not None and role.permissions is not None:
        return list(role.permissions)
    if is_super_admin(member, role, email, super_admin_email):
        return list(PERMISSION_KEYS) + [MASTER_FOUNDATION]
    return list(DEFAULT_PERMISSIONS)


__all__ = [
    "ALL_PERMISSIONS",
    "LOCKED_ROLE_NAME",
    "MASTER_FOUNDATION",
    "PERMISSION_KEYS",
    "UnknownPermissionError",
    "filter_roles",
    "is_super_admin",
    "normalize_permissions",
    "permissions_for",
]
