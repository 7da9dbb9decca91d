"""
Shared fixtures: an in-memory stand-in for the Supabase query builder and
auth admin API, and an httpx transport that serves paginated Strapi pages.
"""
import copy
import re
import uuid
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import httpx
import pytest

from akademy.config import settings
from akademy.modules.auth.service import clear_auth_cache


def _like_regex(pattern: str) -> "re.Pattern":
    """Case-insensitive LIKE pattern with backslash escapes, as PostgREST ilike applies it."""
    parts = []
    escaped = False
    for char in pattern:
        if escaped:
            parts.append(re.escape(char))
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.op = "select"
        self.payload: Any = None
        self.count_mode: Optional[str] = None
        self.filters: List[tuple] = []
        self.order_by: Optional[tuple] = None
        self.limit_to: Optional[int] = None
        self.offset_by = 0
        self._negate = False

    # operations
    def select(self, columns: str = "*", count: Optional[str] = None):
        self.op = "select"
        self.columns = columns
        self.count_mode = count
        return self

    def insert(self, rows, count: Optional[str] = None, **kwargs):
        self.op = "insert"
        self.payload = rows if isinstance(rows, list) else [rows]
        self.count_mode = count
        return self

    def update(self, values: dict, **kwargs):
        self.op = "update"
        self.payload = values
        return self

    def delete(self, **kwargs):
        self.op = "delete"
        return self

    # filters
    def _add(self, kind: str, column: str, value: Any):
        self.filters.append((kind, column, value, self._negate))
        self._negate = False
        return self

    def eq(self, column, value):
        return self._add("eq", column, value)

    def in_(self, column, values):
        return self._add("in", column, list(values))

    def is_(self, column, value):
        return self._add("is", column, value)

    def ilike(self, column, pattern):
        return self._add("ilike", column, pattern)

    @property
    def not_(self):
        self._negate = True
        return self

    def order(self, column, desc: bool = False):
        self.order_by = (column, desc)
        return self

    def limit(self, size: int):
        self.limit_to = size
        return self

    def offset(self, size: int):
        self.offset_by = size
        return self

    def _matches(self, row: dict) -> bool:
        for kind, column, value, negate in self.filters:
            cell = row.get(column)
            if kind == "eq":
                ok = cell == value
            elif kind == "in":
                ok = cell in value
            elif kind == "is":
                ok = cell is None if value == "null" else cell == value
            else:
                ok = cell is not None and _like_regex(value).fullmatch(str(cell)) is not None
            if ok == negate:
                return False
        return True

    def execute(self):
        self.db.calls.append(self)
        error = self.db.errors.get((self.table_name, self.op))
        if error is not None:
            raise error
        rows = self.db.tables.setdefault(self.table_name, [])

        if self.op == "insert":
            inserted = []
            for row in self.payload:
                stored = {"id": row.get("id") or len(rows) + 1, **copy.deepcopy(row)}
                rows.append(stored)
                inserted.append(copy.deepcopy(stored))
            return SimpleNamespace(data=inserted, count=len(inserted) if self.count_mode else None)

        matched = [row for row in rows if self._matches(row)]
        if self.op == "update":
            for row in matched:
                row.update(self.payload)
            return SimpleNamespace(data=copy.deepcopy(matched), count=None)
        if self.op == "delete":
            self.db.tables[self.table_name] = [row for row in rows if row not in matched]
            return SimpleNamespace(data=copy.deepcopy(matched), count=None)

        if self.order_by:
            column, desc = self.order_by
            matched = sorted(matched, key=lambda r: (r.get(column) is None, r.get(column) or ""), reverse=desc)
        matched = matched[self.offset_by:]
        if self.limit_to is not None:
            matched = matched[: self.limit_to]
        return SimpleNamespace(data=copy.deepcopy(matched), count=len(matched) if self.count_mode else None)


class FakeAdmin:
    def __init__(self, db: "FakeSupabase"):
        self.db = db

    def create_user(self, attributes: dict):
        self.db.admin_calls.append(("create_user", attributes))
        if "create_user" in self.db.admin_errors:
            raise self.db.admin_errors["create_user"]
        user = SimpleNamespace(id=str(uuid.uuid4()), email=attributes["email"],
                               user_metadata=attributes.get("user_metadata", {}), app_metadata={})
        self.db.auth_users[user.id] = user
        return SimpleNamespace(user=user)

    def update_user_by_id(self, user_id: str, attributes: dict):
        self.db.admin_calls.append(("update_user_by_id", user_id, attributes))
        if "update_user_by_id" in self.db.admin_errors:
            raise self.db.admin_errors["update_user_by_id"]
        return SimpleNamespace(user=self.db.auth_users.get(user_id))

    def get_user_by_id(self, user_id: str):
        self.db.admin_calls.append(("get_user_by_id", user_id))
        return SimpleNamespace(user=self.db.auth_users.get(user_id))

    def delete_user(self, user_id: str):
        self.db.admin_calls.append(("delete_user", user_id))
        self.db.auth_users.pop(user_id, None)

    def list_users(self, page: Optional[int] = None, per_page: Optional[int] = None):
        self.db.admin_calls.append(("list_users", page, per_page))
        if "list_users" in self.db.admin_errors:
            raise self.db.admin_errors["list_users"]
        users = list(self.db.auth_users.values())
        if page and per_page:
            users = users[(page - 1) * per_page: page * per_page]
        return users


class FakeAuth:
    def __init__(self, db: "FakeSupabase"):
        self.db = db
        self.admin = FakeAdmin(db)

    def get_user(self, jwt: Optional[str] = None):
        user = self.db.users_by_token.get(jwt)
        if user is None:
            raise Exception("invalid JWT: unable to parse or verify signature")
        return SimpleNamespace(user=user)


class FakeSupabase:
    """Minimal synchronous supabase.Client double backed by dict tables."""

    def __init__(self, tables: Optional[Dict[str, List[dict]]] = None):
        self.tables: Dict[str, List[dict]] = copy.deepcopy(tables or {})
        self.errors: Dict[tuple, Exception] = {}
        self.calls: List[FakeQuery] = []
        self.admin_calls: List[tuple] = []
        self.admin_errors: Dict[str, Exception] = {}
        self.auth_users: Dict[str, SimpleNamespace] = {}
        self.users_by_token: Dict[str, SimpleNamespace] = {}
        self.auth = FakeAuth(self)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def calls_to(self, table: str, op: str = "select") -> List[FakeQuery]:
        return [c for c in self.calls if c.table_name == table and c.op == op]

    def add_token(self, token: str, role_level: Optional[int], user_id: Optional[str] = None) -> SimpleNamespace:
        metadata = {} if role_level is None else {"role_level": role_level}
        user = SimpleNamespace(id=user_id or str(uuid.uuid4()), email=f"{token}@example.org",
                               user_metadata=metadata, app_metadata={})
        self.users_by_token[token] = user
        return user


HQ_MADRID = "11111111-1111-1111-1111-111111111111"
HQ_VALENCIA = "22222222-2222-2222-2222-222222222222"
ROLE_STUDENT = "aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa"
ROLE_FACILITATOR = "bbbbbbbb-bbbb-bbbb-bbbb-bbbbbbbbbbbb"
ROLE_COMMS = "cccccccc-cccc-cccc-cccc-cccccccccccc"
SEASON_MADRID = "33333333-3333-3333-3333-333333333333"
SEASON_VALENCIA = "44444444-4444-4444-4444-444444444444"


def base_tables() -> Dict[str, List[dict]]:
    return {
        "headquarters": [
            {"id": HQ_MADRID, "name": "Madrid"},
            {"id": HQ_VALENCIA, "name": "Valencia Nómada UPV"},
            {"id": "99999999-9999-9999-9999-999999999999", "name": None},
        ],
        "roles": [
            {"id": ROLE_STUDENT, "name": "Alumno", "code": "alumno", "level": 1},
            {"id": ROLE_FACILITATOR, "name": "Facilitador", "code": "facilitador", "level": 30},
            {"id": ROLE_COMMS, "name": "Director/a de Comunicación Local", "code": "comunicacion", "level": 40},
        ],
        "seasons": [
            {"id": SEASON_MADRID, "headquarter_id": HQ_MADRID, "name": "2025-2026", "status": "active"},
            {"id": "old-madrid-season", "headquarter_id": HQ_MADRID, "name": "2023-2024", "status": "inactive"},
            {"id": SEASON_VALENCIA, "headquarter_id": HQ_VALENCIA, "name": "2025-2026", "status": "active"},
        ],
        "agreements": [],
        "strapi_migrations": [],
    }


def strapi_record(record_id: int, **overrides) -> dict:
    attributes = {
        "email": f"person{record_id}@example.org",
        "documentNumber": f"DOC{record_id:05d}",
        "phone": "600000000",
        "createdAt": "2026-09-01T10:00:00.000Z",
        "updatedAt": "2026-09-02T10:00:00.000Z",
        "headQuarters": "Madrid",
        "role": "Facilitador",
        "name": "Ana",
        "lastName": "García",
        "country": "España",
        "address": "Calle Mayor 1",
        "volunteeringAgreement": True,
        "ethicalDocumentAgreement": True,
        "mailingAgreement": False,
        "ageVerification": True,
        "signDataPath": f"signatures/{record_id}.png",
    }
    attributes.update(overrides)
    return {"id": record_id, "attributes": attributes}


class StrapiStub:
    """Serves a fixed list of records in pages and records every request."""

    def __init__(self, records: List[dict], page_size: int = 100, with_meta: bool = True,
                 fail_on_page: Optional[int] = None):
        self.records = records
        self.page_size = page_size
        self.with_meta = with_meta
        self.fail_on_page = fail_on_page
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        page = int(request.url.params["pagination[page]"])
        size = int(request.url.params["pagination[pageSize]"])
        if self.fail_on_page == page:
            return httpx.Response(502, text="Bad Gateway")
        chunk = self.records[(page - 1) * size: page * size]
        body: Dict[str, Any] = {"data": chunk}
        if self.with_meta:
            page_count = max(1, -(-len(self.records) // size))
            body["meta"] = {"pagination": {"page": page, "pageSize": size,
                                           "pageCount": page_count, "total": len(self.records)}}
        return httpx.Response(200, json=body)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))


@pytest.fixture
def fake_supabase() -> FakeSupabase:
    return FakeSupabase(base_tables())


@pytest.fixture(autouse=True)
def _reset_auth_cache():
    clear_auth_cache()
    yield
    clear_auth_cache()


@pytest.fixture
def strapi_settings(monkeypatch):
    monkeypatch.setattr(settings, "strapi_api_url", "https://cms.example.org")
    monkeypatch.setattr(settings, "strapi_api_token", "strapi-token")
    monkeypatch.setattr(settings, "super_password", "correct horse battery staple")
    return settings


@pytest.fixture
def anyio_backend():
    return "asyncio"
