from __future__ import annotations

import pytest

from conftest import seed
from yayasan_portal.backend_client import BackendApiError
from yayasan_portal.service import (
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    member_payload,
    validate_new_password,
)


async def test_member_dashboard(service, backend):
    seed(backend)

    dashboard = await service.member_dashboard("m1")

    assert dashboard.organization_name == "TPQ Al-Ikhlas"
    assert dashboard.group_name == "Kelompok Melati"
    assert dashboard.statistics.as_dict() == {"present": 1, "total": 3, "percentage": 33}
    assert [e.id for e in dashboard.upcoming] == ["e4", "e3"]
    assert [h.record.id for h in dashboard.history] == ["a2", "a1", "a3"]


async def test_member_dashboard_fallback_names(service, backend):
    seed(backend)

    dashboard = await service.member_dashboard("m2")

    assert dashboard.organization_name == "Yayasan"
    assert dashboard.group_name == "-"


async def test_member_dashboard_unknown_member(service, backend):
    seed(backend)

    with pytest.raises(NotFoundError):
        await service.member_dashboard("nobody")


async def test_upcoming_uses_configured_limit(service, backend, settings):
    seed(backend)
    settings.upcoming_limit = 1

    assert [e.id for e in await service.upcoming_events()] == ["e4"]
    assert [e.id for e in await service.upcoming_events(5)] == ["e4", "e3"]


async def test_change_password(service, backend):
    token = backend.add_account("ahmad@y.org", "lama123")

    await service.change_password(token, "baru1234", "baru1234")

    assert backend.accounts["ahmad@y.org"] == "baru1234"


@pytest.mark.parametrize(
    "new,confirm,message",
    [("123", "123", "minimal 6"), ("rahasia1", "rahasia2", "tidak cocok")],
)
def test_validate_new_password(new, confirm, message):
    with pytest.raises(ValidationError, match=message):
        validate_new_password(new, confirm)


async def test_change_password_validates_before_calling_backend(service, backend):
    with pytest.raises(ValidationError):
        await service.change_password("token", "abc", "abc")
    assert backend.requests == []


async def test_activate_requires_registered_member(service, backend):
    seed(backend)

    with pytest.raises(NotFoundError):
        await service.activate_account("stranger@y.org", "rahasia1")


async def test_activate_checks_foundation_pin(service, backend):
    seed(backend)

    with pytest.raises(PermissionDeniedError):
        await service.activate_account("siti@y.org", "rahasia1", pin="0000")

    await service.activate_account("siti@y.org", "rahasia1", pin="4321")
    assert backend.accounts["siti@y.org"] == "rahasia1"


async def test_activate_without_foundation_skips_pin(service, backend):
    seed(backend)

    await service.activate_account("ahmad@y.org", "rahasia1")

    assert "ahmad@y.org" in backend.accounts


async def test_save_role_create_and_update(service, backend):
    role = await service.save_role("Bendahara", ["FINANCE", "DASHBOARD"], foundation_id="f1")

    assert role.permissions == ["DASHBOARD", "FINANCE"]
    assert role.foundation_id == "f1"

    updated = await service.save_role("Super Administration", [], role_id=role.id)
    assert len(updated.permissions) == 12
    assert updated.foundation_id == "f1"


async def test_save_role_rejects_bad_input(service):
    with pytest.raises(ValidationError):
        await service.save_role("  ", ["DASHBOARD"])
    with pytest.raises(ValidationError):
        await service.save_role("Admin", ["BOGUS"])


async def test_save_role_update_missing(service):
    with pytest.raises(NotFoundError):
        await service.save_role("Admin", [], role_id="missing")


async def test_list_and_delete_roles(service, backend):
    backend.tables["roles"] = [
        {"id": "r1", "name": "Global", "permissions": []},
        {"id": "r2", "name": "Koordinator", "permissions": ["DASHBOARD"], "foundation_id": "f1"},
    ]

    assert [r.id for r in await service.list_roles("f1")] == ["r2"]

    await service.delete_role("r2")
    assert [r.id for r in await service.list_roles(super_admin=True)] == ["r1"]


async def test_save_member_with_login(service, backend):
    member = await service.save_member(
        {"full_name": "Budi", "email": "budi@y.org", "role_id": "", "member_type": "Generus"},
        password="rahasia1",
    )

    assert member.email == "budi@y.org"
    assert member.role_id is None
    assert backend.accounts["budi@y.org"] == "rahasia1"


async def test_save_member_requires_name_and_email(service):
    with pytest.raises(ValidationError):
        await service.save_member({"full_name": "", "email": "x@y.org"})


async def test_update_and_delete_member(service, backend):
    seed(backend)

    member = await service.save_member({"full_name": "Ahmad F.", "email": "ahmad@y.org", "grade": "5"}, member_id="m1")
    assert member.grade == "5"

    await service.delete_member("m1")
    assert [m["id"] for m in backend.tables["members"]] == ["m2"]


def test_member_payload_drops_unknown_keys():
    assert member_payload({"full_name": "A", "email": "a@y", "is_admin": True, "group_id": ""}) == {
        "full_name": "A",
        "email": "a@y",
        "group_id": None,
    }


async def test_current_permissions(service, backend):
    seed(backend)
    backend.tables["roles"] = [{"id": "r1", "name": "Sekretaris", "permissions": ["MEMBERS"]}]
    backend.tables["members"][0]["role_id"] = "r1"
    backend.add_account("ahmad@y.org", "rahasia1")

    session = await service.sign_in("ahmad@y.org", "rahasia1")

    assert await service.current_permissions(session.access_token) == ["MEMBERS"]
    assert any(r.url.path == "/auth/v1/user" and r.method == "GET" for r in backend.requests)


async def test_super_admin_role_keeps_edited_permissions(service):
    role = await service.save_role("Super Admin", ["MEMBERS"])

    assert role.permissions == ["MEMBERS"]


async def test_current_permissions_rejects_unknown_token(service, backend):
    seed(backend)

    with pytest.raises(BackendApiError) as exc_info:
        await service.current_permissions("token-nobody")
    assert exc_info.value.status_code == 401
