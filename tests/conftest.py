from __future__ import annotations

import json
from itertools import count
from typing import Any, Dict, List

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from yayasan_portal.api import create_app
from yayasan_portal.backend_client import BackendClient
from yayasan_portal.config import Settings
from yayasan_portal.service import PortalService

API_KEY = "test-key"


class FakeBackend:
    """In-memory stand-in for the hosted REST and auth endpoints."""

    def __init__(self) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = {
            "members": [],
            "events": [],
            "event_attendance": [],
            "roles": [],
            "organizations": [],
            "foundations": [],
        }
        self.accounts: Dict[str, str] = {}
        self.tokens: Dict[str, str] = {}
        self.requests: List[httpx.Request] = []
        self._ids = count(1)

    def add_account(self, email: str, password: str) -> str:
        self.accounts[email] = password
        token = f"token-{email}"
        self.tokens[token] = email
        return token

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.startswith("/rest/v1/"):
            return self._rest(request, path.removeprefix("/rest/v1/"))
        if path.startswith("/auth/v1/"):
            return self._auth(request, path.removeprefix("/auth/v1/"))
        return httpx.Response(404, json={"message": "not found"})

    def _matches(self, request: httpx.Request, row: Dict[str, Any]) -> bool:
        for column, value in request.url.params.items():
            if column == "select":
                continue
            if str(row.get(column)) != value.removeprefix("eq."):
                return False
        return True

    def _rest(self, request: httpx.Request, table: str) -> httpx.Response:
        if table not in self.tables:
            return httpx.Response(404, json={"message": f"relation {table} does not exist"})
        rows = self.tables[table]
        if request.method == "GET":
            return httpx.Response(200, json=[row for row in rows if self._matches(request, row)])
        if request.method == "POST":
            created = []
            for row in json.loads(request.content):
                row = {"id": f"{table}-{next(self._ids)}", **row}
                rows.append(row)
                created.append(row)
            return httpx.Response(201, json=created)
        if request.method == "PATCH":
            values = json.loads(request.content)
            updated = []
            for row in rows:
                if self._matches(request, row):
                    row.update(values)
                    updated.append(row)
            return httpx.Response(200, json=updated)
        if request.method == "DELETE":
            self.tables[table] = [row for row in rows if not self._matches(request, row)]
            return httpx.Response(204)
        return httpx.Response(405)

    def _auth(self, request: httpx.Request, endpoint: str) -> httpx.Response:
        body = json.loads(request.content) if request.content else {}
        if endpoint == "token":
            if self.accounts.get(body.get("email")) != body.get("password"):
                return httpx.Response(400, json={"error": "invalid_grant", "error_description": "Invalid login credentials"})
            token = self.add_account(body["email"], body["password"])
            return httpx.Response(
                200,
                json={"access_token": token, "refresh_token": "r", "expires_in": 3600, "user": {"email": body["email"]}},
            )
        if endpoint == "signup":
            if body["email"] in self.accounts:
                return httpx.Response(422, json={"msg": "User already registered"})
            self.add_account(body["email"], body["password"])
            return httpx.Response(200, json={"id": "auth-1", "email": body["email"]})
        if endpoint == "logout":
            self.tokens.pop(request.headers.get("Authorization", "").removeprefix("Bearer "), None)
            return httpx.Response(204)
        if endpoint == "user":
            token = request.headers.get("Authorization", "").removeprefix("Bearer ")
            email = self.tokens.get(token)
            if not email:
                return httpx.Response(401, json={"msg": "invalid JWT"})
            if request.method == "PUT":
                self.accounts[email] = body["password"]
            return httpx.Response(200, json={"email": email})
        return httpx.Response(404, json={"msg": "not found"})


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://project.supabase.test",
        supabase_anon_key="anon",
        api_key=API_KEY,
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
async def backend_client(settings: Settings, backend: FakeBackend):
    client = BackendClient(
        settings.supabase_url,
        settings.supabase_anon_key,
        transport=httpx.MockTransport(backend.handler),
    )
    yield client
    await client.close()


@pytest.fixture
def service(settings: Settings, backend_client: BackendClient) -> PortalService:
    return PortalService(settings, backend_client)


@pytest.fixture
async def client(settings: Settings, backend_client: BackendClient):
    app = create_app(settings, backend_client)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def seed(backend: FakeBackend) -> None:
    """Load a small foundation with members, events and attendance."""

    backend.tables["members"] = [
        {
            "id": "m1",
            "full_name": "Ahmad Fauzi",
            "email": "ahmad@y.org",
            "member_type": "Generus",
            "organization_id": "o1",
            "groups": {"name": "Kelompok Melati"},
        },
        {"id": "m2", "full_name": "Siti", "email": "siti@y.org", "foundation_id": "f1"},
    ]
    backend.tables["organizations"] = [{"id": "o1", "name": "TPQ Al-Ikhlas", "type": "Education"}]
    backend.tables["events"] = [
        {"id": "e1", "name": "Pengajian", "date": "2025-01-05T19:00:00+07:00", "status": "Completed"},
        {"id": "e2", "name": "Kerja Bakti", "date": "2025-02-01", "status": "Completed"},
        {"id": "e3", "name": "Rapat", "date": "2025-06-01", "status": "Upcoming"},
        {"id": "e4", "name": "Halal Bihalal", "date": "2025-05-01", "status": "Upcoming"},
    ]
    backend.tables["event_attendance"] = [
        {"id": "a1", "member_id": "m1", "event_id": "e1", "status": "Present"},
        {"id": "a2", "member_id": "m1", "event_id": "e2", "status": "Excused"},
        {"id": "a3", "member_id": "m1", "event_id": "gone", "status": "Absent"},
        {"id": "a4", "member_id": "m2", "event_id": "e1", "status": "Present"},
    ]
    backend.tables["foundations"] = [{"id": "f1", "name": "Yayasan Nurul", "activation_pin": "4321"}]

