"""Shared fixtures: an in-memory Supabase (PostgREST + Auth) behind httpx.MockTransport."""
import json
import operator
import uuid
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from itertools import count
from typing import Dict, List, Optional, Tuple

import httpx
import pytest

from workdesk.config import SupabaseConfig
from workdesk.database import DataApiClient
from workdesk.services.auth_service import AuthService
from workdesk.services.chat_service import ChatService
from workdesk.services.projects_service import ProjectsService

BASE_URL = "https://abcd1234.supabase.co"
ANON_KEY = "anon-test-key"
SERVICE_KEY = "service-test-key"

UUID_TABLES = {"customer_contacts", "chat_sessions", "team_members", "customer_submissions"}
START_COLUMN = {"chat_sessions": "started_at", "customer_submissions": "submitted_at"}
TIMESTAMPED = {"projects", "tasks"}
COMPARISONS = {"gt": operator.gt, "gte": operator.ge, "lt": operator.lt, "lte": operator.le}

# (parent table, relation) -> (cardinality, parent column, child column)
RELATIONS = {
    ("chat_sessions", "customer_contacts"): ("one", "customer_id", "id"),
    ("chat_sessions", "chat_messages"): ("many", "id", "session_id"),
    ("tasks", "task_tags"): ("many", "id", "task_id"),
    ("task_comments", "team_members"): ("one", "user_id", "id"),
}


def _text(value) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _split_top_level(text: str) -> List[str]:
    parts, depth, current = [], 0, ""
    for ch in text:
        if ch == "," and depth == 0:
            parts.append(current)
            current = ""
            continue
        depth += ch == "("
        depth -= ch == ")"
        current += ch
    if current:
        parts.append(current)
    return parts


def _unquote(text: str) -> str:
    if len(text) >= 2 and text[0] == text[-1] == '"':
        return text[1:-1].replace('\\"', '"').replace("\\\\", "\\")
    return text


def _comparable(actual: str, operand: str) -> Tuple:
    try:
        return float(actual), float(operand)
    except ValueError:
        return actual, operand


def _matches(row: dict, column: str, op: str, operand: str) -> bool:
    actual = _text(row.get(column))
    if op == "eq":
        return actual == _unquote(operand)
    if op == "neq":
        return actual != _unquote(operand)
    if op == "in":
        values = [_unquote(v) for v in _split_top_level(operand[1:-1])]
        return actual in values
    if op == "is":
        return actual == operand
    if op in COMPARISONS:
        if row.get(column) is None:
            return False
        return COMPARISONS[op](*_comparable(actual, _unquote(operand)))
    raise AssertionError(f"fake PostgREST does not support operator {op}")


class FakeSupabase:
    """Small PostgREST / GoTrue imitation good enough for the adapters"""

    def __init__(self):
        self.tables: Dict[str, List[dict]] = defaultdict(list)
        self.requests: List[httpx.Request] = []
        self.failures: Dict[Tuple[str, str], Tuple[int, str]] = {}
        self.accounts: Dict[str, Tuple[str, dict]] = {}
        self.tokens: Dict[str, dict] = {}
        self.admin_available = True
        self._ids = count(1)
        self._clock = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    # helpers for tests

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def add_row(self, table: str, **values) -> dict:
        row = self._with_defaults(table, values)
        self.tables[table].append(row)
        return row

    def add_user(self, email: str, password: str, token: str, **metadata) -> dict:
        user = {"id": str(uuid.uuid4()), "email": email, "aud": "authenticated",
                "role": "authenticated", "user_metadata": metadata}
        self.accounts[email] = (password, user)
        self.tokens[token] = user
        return user

    def fail(self, method: str, table: str, status: int, body: str) -> None:
        self.failures[(method, table)] = (status, body)

    def rest_requests(self, method: str, table: str) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and r.url.path == f"/rest/v1/{table}"
        ]

    def _now(self) -> str:
        self._clock += timedelta(seconds=1)
        return self._clock.isoformat()

    def _with_defaults(self, table: str, values: dict) -> dict:
        row = dict(values)
        if "id" not in row:
            row["id"] = str(uuid.uuid4()) if table in UUID_TABLES else next(self._ids)
        column = START_COLUMN.get(table, "created_at")
        row.setdefault(column, self._now())
        if table in TIMESTAMPED:
            row.setdefault("updated_at", row[column])
        return row

    # transport

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.startswith("/rest/v1/"):
            table = path[len("/rest/v1/"):]
            failure = self.failures.get((request.method, table))
            if failure:
                return httpx.Response(failure[0], text=failure[1])
            return self._rest(request, table)
        if path.startswith("/auth/v1/"):
            return self._auth(request, path[len("/auth/v1/"):])
        return httpx.Response(404, text="not found")

    def _filtered(self, table: str, params: List[Tuple[str, str]]) -> List[dict]:
        rows = list(self.tables[table])
        for key, value in params:
            if key in ("select", "order", "limit") or "." in key:
                continue
            if key == "or":
                conditions = [c.split(".", 2) for c in _split_top_level(value[1:-1])]
                rows = [r for r in rows if any(_matches(r, c, op, v) for c, op, v in conditions)]
            else:
                op, operand = value.split(".", 1)
                rows = [r for r in rows if _matches(r, key, op, operand)]
        return rows

    @staticmethod
    def _ordered(rows: List[dict], order: Optional[str], limit: Optional[str]) -> List[dict]:
        if order:
            column, direction = order.rsplit(".", 1)
            rows = sorted(rows, key=lambda r: _text(r.get(column)), reverse=direction == "desc")
        if limit is not None:
            rows = rows[: int(limit)]
        return rows

    def _project(self, table: str, row: dict, select: str, params: Dict[str, str]) -> dict:
        result = {}
        for item in _split_top_level(select or "*"):
            if "(" in item:
                name, columns = item[:-1].split("(", 1)
                relation = name.split("!", 1)[0]
                cardinality, parent_col, child_col = RELATIONS[(table, relation)]
                children = [c for c in self.tables[relation] if _text(c.get(child_col)) == _text(row.get(parent_col))]
                children = self._ordered(children, params.get(f"{relation}.order"), params.get(f"{relation}.limit"))
                children = [self._project(relation, c, columns, {}) for c in children]
                if cardinality == "one":
                    result[relation] = children[0] if children else None
                else:
                    result[relation] = children
            elif item == "*":
                result.update(row)
            else:
                result[item] = row.get(item)
        return result

    def _rest(self, request: httpx.Request, table: str) -> httpx.Response:
        params = list(request.url.params.multi_items())
        lookup = dict(params)
        prefer = request.headers.get("Prefer", "")

        if request.method == "GET":
            rows = self._ordered(self._filtered(table, params), lookup.get("order"), lookup.get("limit"))
            return httpx.Response(200, json=[self._project(table, r, lookup.get("select", "*"), lookup) for r in rows])

        if request.method == "POST":
            body = json.loads(request.content)
            created = [self.add_row(table, **row) for row in (body if isinstance(body, list) else [body])]
            if "return=representation" in prefer:
                return httpx.Response(201, json=created)
            return httpx.Response(201)

        if request.method == "PATCH":
            patch = json.loads(request.content)
            rows = self._filtered(table, params)
            for row in rows:
                row.update(patch)
            if "return=representation" in prefer:
                return httpx.Response(200, json=rows)
            return httpx.Response(204)

        if request.method == "DELETE":
            doomed = self._filtered(table, params)
            self.tables[table] = [r for r in self.tables[table] if r not in doomed]
            return httpx.Response(204)

        return httpx.Response(405)

    def _auth(self, request: httpx.Request, endpoint: str) -> httpx.Response:
        token = request.headers.get("Authorization", "").removeprefix("Bearer ")

        if endpoint == "token":
            body = json.loads(request.content)
            account = self.accounts.get(body.get("email"))
            if not account or account[0] != body.get("password"):
                return httpx.Response(400, json={"error": "invalid_grant"})
            access = next(t for t, u in self.tokens.items() if u is account[1])
            return httpx.Response(200, json={
                "access_token": access, "token_type": "bearer", "expires_in": 3600,
                "refresh_token": "refresh-" + access, "user": account[1],
            })

        if endpoint == "user":
            user = self.tokens.get(token)
            return httpx.Response(200, json=user) if user else httpx.Response(401, json={"msg": "invalid JWT"})

        if endpoint == "logout":
            return httpx.Response(204)

        if endpoint.startswith("admin/users"):
            if token != SERVICE_KEY:
                return httpx.Response(403, json={"msg": "not admin"})
            if not self.admin_available:
                return httpx.Response(404, text="admin api disabled")
            if request.method == "GET":
                users = [u for _, u in self.accounts.values()]
                return httpx.Response(200, json={"users": users, "aud": "authenticated"})
            body = json.loads(request.content)
            if request.method == "POST":
                user = {"id": str(uuid.uuid4()), "email": body["email"],
                        "user_metadata": body.get("user_metadata", {}), "role": "authenticated"}
                self.accounts[body["email"]] = (body["password"], user)
                return httpx.Response(200, json=user)
            user_id = endpoint.rsplit("/", 1)[-1]
            for _, user in self.accounts.values():
                if user["id"] == user_id:
                    user.update({k: v for k, v in body.items() if k != "password"})
                    return httpx.Response(200, json=user)
            return httpx.Response(404, json={"msg": "user not found"})

        return httpx.Response(404)


@pytest.fixture
def fake_supabase():
    return FakeSupabase()


@pytest.fixture
def supabase_config():
    return SupabaseConfig(
        base_url=BASE_URL,
        anon_key=ANON_KEY,
        service_role_key=SERVICE_KEY,
        guest_email_domain="example.test",
    )


@pytest.fixture
def http_client(fake_supabase):
    return httpx.AsyncClient(transport=fake_supabase.transport())


@pytest.fixture
def data_client(supabase_config, http_client):
    return DataApiClient(supabase_config, http=http_client)


@pytest.fixture
def chat_service(data_client):
    return ChatService(data_client)


@pytest.fixture
def projects_service(data_client):
    return ProjectsService(data_client)


@pytest.fixture
def auth_service(data_client):
    return AuthService(data_client)
