"""HTTP client for the hosted Supabase backend (PostgREST rows + GoTrue auth)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import httpx

REST_PREFIX = "/rest/v1"
AUTH_PREFIX = "/auth/v1"


class BackendApiError(RuntimeError):
    """Raised when the backend returns an error response."""

    def __init__(self, operation: str, status_code: int, message: str) -> None:
        super().__init__(f"Backend error for {operation} ({status_code}): {message}")
        self.operation = operation
        self.status_code = status_code
        self.message = message


@dataclass(slots=True)
class Session:
    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    user: Dict[str, Any] = field(default_factory=dict)

    @property
    def email(self) -> str:
        return self.user.get("email") or ""


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(data, Mapping):
        for key in ("msg", "message", "error_description", "error"):
            if data.get(key):
                return str(data[key])
    return response.reason_phrase


def eq_filters(filters: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """Translate ``{"column": value}`` into PostgREST ``eq.`` query params."""

    return {column: f"eq.{value}" for column, value in (filters or {}).items()}


class BackendClient:
    """Async wrapper around the backend endpoints used by the portal."""

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._anon_key = anon_key
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"apikey": anon_key, "Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    def _auth_header(self, access_token: Optional[str]) -> Dict[str, str]:
        return {"Authorization": f"Bearer {access_token or self._anon_key}"}

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        access_token: Optional[str] = None,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        request_headers = self._auth_header(access_token)
        if headers:
            request_headers.update(headers)
        response = await self._client.request(method, path, params=params, json=json, headers=request_headers)
        if response.is_error:
            raise BackendApiError(operation, response.status_code, _error_message(response))
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # region Auth
    async def sign_in_with_password(self, email: str, password: str) -> Session:
        data = await self._request(
            "sign_in",
            "POST",
            f"{AUTH_PREFIX}/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return Session(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=data.get("expires_in"),
            user=data.get("user") or {},
        )

    async def sign_up(self, email: str, password: str, metadata: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"email": email, "password": password}
        if metadata:
            payload["data"] = dict(metadata)
        return await self._request("sign_up", "POST", f"{AUTH_PREFIX}/signup", json=payload) or {}

    async def get_user(self, access_token: str) -> Dict[str, Any]:
        return await self._request("get_user", "GET", f"{AUTH_PREFIX}/user", access_token=access_token) or {}

    async def update_password(self, access_token: str, password: str) -> Dict[str, Any]:
        return (
            await self._request(
                "update_user",
                "PUT",
                f"{AUTH_PREFIX}/user",
                access_token=access_token,
                json={"password": password},
            )
            or {}
        )

    async def sign_out(self, access_token: str) -> None:
        await self._request("sign_out", "POST", f"{AUTH_PREFIX}/logout", access_token=access_token)

    # endregion

    # region Rows
    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Mapping[str, Any]] = None,
        *,
        access_token: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        params = {"select": columns, **eq_filters(filters)}
        data = await self._request(
            f"select {table}", "GET", f"{REST_PREFIX}/{table}", access_token=access_token, params=params
        )
        return list(data or [])

    async def insert(
        self,
        table: str,
        rows: List[Mapping[str, Any]],
        *,
        access_token: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        data = await self._request(
            f"insert {table}",
            "POST",
            f"{REST_PREFIX}/{table}",
            access_token=access_token,
            json=[dict(row) for row in rows],
            headers={"Prefer": "return=representation"},
        )
        return list(data or [])

    async def update(
        self,
        table: str,
        values: Mapping[str, Any],
        filters: Mapping[str, Any],
        *,
        access_token: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        if not filters:
            raise ValueError("update requires at least one filter")
        data = await self._request(
            f"update {table}",
            "PATCH",
            f"{REST_PREFIX}/{table}",
            access_token=access_token,
            params=eq_filters(filters),
            json=dict(values),
            headers={"Prefer": "return=representation"},
        )
        return list(data or [])

    async def delete(
        self,
        table: str,
        filters: Mapping[str, Any],
        *,
        access_token: Optional[str] = None,
    ) -> None:
        if not filters:
            raise ValueError("delete requires at least one filter")
        await self._request(
            f"delete {table}", "DELETE", f"{REST_PREFIX}/{table}", access_token=access_token, params=eq_filters(filters)
        )

    # endregion


__all__ = ["BackendApiError", "BackendClient", "Session", "eq_filters"]
