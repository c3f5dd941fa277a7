"""FastAPI application exposing the Yayasan portal REST API."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .attendance import HistoryEntry
from .backend_client import BackendApiError, BackendClient
from .config import Settings, load_settings
from .service import (
    MemberDashboard,
    NotFoundError,
    PermissionDeniedError,
    PortalService,
    ValidationError,
)

logger = logging.getLogger(__name__)


class SignInRequest(BaseModel):
    email: str
    password: str


class ActivateRequest(BaseModel):
    email: str
    password: str
    pin: Optional[str] = None


class PasswordChangeRequest(BaseModel):
    new_password: str
    confirm_password: str


class RoleRequest(BaseModel):
    name: str
    permissions: List[str] = Field(default_factory=list)
    requires_service_period: bool = False
    foundation_id: Optional[str] = None


class MemberRequest(BaseModel):
    full_name: str
    email: str
    phone: Optional[str] = None
    member_type: Optional[str] = None
    grade: Optional[str] = None
    organization_id: Optional[str] = None
    group_id: Optional[str] = None
    role_id: Optional[str] = None
    division_id: Optional[str] = None
    foundation_id: Optional[str] = None
    status: Optional[str] = None
    password: Optional[str] = None


def history_entry_to_dict(entry: HistoryEntry) -> Dict[str, Any]:
    return {
        "record": asdict(entry.record),
        "event": asdict(entry.event) if entry.event else None,
        "kind": entry.kind,
        "label": entry.label,
    }


def dashboard_to_dict(dashboard: MemberDashboard) -> Dict[str, Any]:
    return {
        "member": asdict(dashboard.member),
        "organization_name": dashboard.organization_name,
        "group_name": dashboard.group_name,
        "statistics": dashboard.statistics.as_dict(),
        "upcoming": [asdict(event) for event in dashboard.upcoming],
        "history": [history_entry_to_dict(entry) for entry in dashboard.history],
    }


def bearer_token(authorization: Optional[str] = Header(None)) -> str:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="bearer token required")
    return token


def create_app(settings: Optional[Settings] = None, client: Optional[BackendClient] = None) -> FastAPI:
    settings = settings or load_settings()
    client = client or BackendClient(settings.supabase_url, settings.supabase_anon_key, settings.http_timeout)
    service = PortalService(settings, client)

    async def verify_api_key(x_api_key: str = Header(..., alias="X-API-Key")) -> None:
        if x_api_key != settings.api_key:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid api key")

    app = FastAPI(title="Yayasan Portal API", version="1.0.0")

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})

    @app.exception_handler(PermissionDeniedError)
    async def permission_error_handler(request: Request, exc: PermissionDeniedError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"detail": str(exc)})

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    @app.exception_handler(BackendApiError)
    async def backend_error_handler(request: Request, exc: BackendApiError) -> JSONResponse:
        logger.error("Backend call failed: %s", exc)
        # Auth rejections (bad credentials, expired token) pass through as-is.
        auth_operations = {"sign_in", "sign_up", "update_user", "get_user", "sign_out"}
        code = exc.status_code if exc.operation in auth_operations and exc.status_code < 500 else 502
        return JSONResponse(status_code=code, content={"detail": exc.message})

    @app.on_event("shutdown")
    async def shutdown_event() -> None:  # pragma: no cover - io bound
        await client.close()

    def get_service() -> PortalService:
        return service

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    # region Member portal
    @app.get("/api/members/{member_id}/dashboard", dependencies=[Depends(verify_api_key)])
    async def get_dashboard(member_id: str, svc: PortalService = Depends(get_service)) -> Dict[str, Any]:
        return dashboard_to_dict(await svc.member_dashboard(member_id))

    @app.get("/api/members/{member_id}/statistics", dependencies=[Depends(verify_api_key)])
    async def get_statistics(member_id: str, svc: PortalService = Depends(get_service)) -> Dict[str, int]:
        return (await svc.statistics_for(member_id)).as_dict()

    @app.get("/api/members/{member_id}/history", dependencies=[Depends(verify_api_key)])
    async def get_history(member_id: str, svc: PortalService = Depends(get_service)) -> Dict[str, Any]:
        entries = await svc.history_for(member_id)
        return {"member_id": member_id, "history": [history_entry_to_dict(entry) for entry in entries]}

    @app.get("/api/events/upcoming", dependencies=[Depends(verify_api_key)])
    async def get_upcoming(
        limit: Optional[int] = Query(None, ge=0),
        svc: PortalService = Depends(get_service),
    ) -> Dict[str, Any]:
        events = await svc.upcoming_events(limit)
        return {"events": [asdict(event) for event in events]}

    # endregion

    # region Accounts
    @app.post("/api/auth/sign-in", dependencies=[Depends(verify_api_key)])
    async def sign_in(body: SignInRequest, svc: PortalService = Depends(get_service)) -> Dict[str, Any]:
        session = await svc.sign_in(body.email, body.password)
        permissions = await svc.current_permissions(session.access_token)
        return {
            "access_token": session.access_token,
            "refresh_token": session.refresh_token,
            "expires_in": session.expires_in,
            "email": session.email,
            "permissions": permissions,
        }

    @app.get("/api/auth/permissions", dependencies=[Depends(verify_api_key)])
    async def get_permissions(
        token: str = Depends(bearer_token),
        svc: PortalService = Depends(get_service),
    ) -> Dict[str, List[str]]:
        return {"permissions": await svc.current_permissions(token)}

    @app.post("/api/auth/activate", status_code=status.HTTP_201_CREATED, dependencies=[Depends(verify_api_key)])
    async def activate(body: ActivateRequest, svc: PortalService = Depends(get_service)) -> Dict[str, str]:
        await svc.activate_account(body.email, body.password, body.pin)
        return {"detail": "Akun berhasil diaktifkan! Silakan login."}

    @app.post("/api/auth/sign-out", dependencies=[Depends(verify_api_key)])
    async def sign_out(token: str = Depends(bearer_token), svc: PortalService = Depends(get_service)) -> Response:
        await svc.sign_out(token)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post("/api/profile/password", dependencies=[Depends(verify_api_key)])
    async def change_password(
        body: PasswordChangeRequest,
        token: str = Depends(bearer_token),
        svc: PortalService = Depends(get_service),
    ) -> Dict[str, str]:
        await svc.change_password(token, body.new_password, body.confirm_password)
        return {"detail": "Password berhasil diubah."}

    # endregion

    # region Roles
    @app.get("/api/roles", dependencies=[Depends(verify_api_key)])
    async def list_roles(
        foundation_id: Optional[str] = None,
        super_admin: bool = False,
        svc: PortalService = Depends(get_service),
    ) -> Dict[str, Any]:
        roles = await svc.list_roles(foundation_id, super_admin)
        return {"roles": [asdict(role) for role in roles]}

    @app.post("/api/roles", status_code=status.HTTP_201_CREATED, dependencies=[Depends(verify_api_key)])
    async def create_role(body: RoleRequest, svc: PortalService = Depends(get_service)) -> Dict[str, Any]:
        role = await svc.save_role(
            body.name,
            body.permissions,
            requires_service_period=body.requires_service_period,
            foundation_id=body.foundation_id,
        )
        return asdict(role)

    @app.put("/api/roles/{role_id}", dependencies=[Depends(verify_api_key)])
    async def update_role(role_id: str, body: RoleRequest, svc: PortalService = Depends(get_service)) -> Dict[str, Any]:
        role = await svc.save_role(
            body.name,
            body.permissions,
            role_id=role_id,
            requires_service_period=body.requires_service_period,
        )
        return asdict(role)

    @app.delete("/api/roles/{role_id}", dependencies=[Depends(verify_api_key)])
    async def delete_role(role_id: str, svc: PortalService = Depends(get_service)) -> Response:
        await svc.delete_role(role_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # endregion

    # region Members
    @app.post("/api/members", status_code=status.HTTP_201_CREATED, dependencies=[Depends(verify_api_key)])
    async def create_member(body: MemberRequest, svc: PortalService = Depends(get_service)) -> Dict[str, Any]:
        payload = body.model_dump(exclude={"password"})
        member = await svc.save_member(payload, password=body.password)
        return asdict(member)

    @app.put("/api/members/{member_id}", dependencies=[Depends(verify_api_key)])
    async def update_member(member_id: str, body: MemberRequest, svc: PortalService = Depends(get_service)) -> Dict[str, Any]:
        payload = body.model_dump(exclude={"password"})
        member = await svc.save_member(payload, member_id=member_id)
        return asdict(member)

    @app.delete("/api/members/{member_id}", dependencies=[Depends(verify_api_key)])
    async def delete_member(member_id: str, svc: PortalService = Depends(get_service)) -> Response:
        await svc.delete_member(member_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # endregion

    return app


__all__ = ["create_app", "dashboard_to_dict", "history_entry_to_dict"]
