"""
Pytest configuration and fixtures for agencynet tests.

Provides an in-memory stand-in for the Supabase client: PostgREST-style
query builders over plain dict rows, the unique constraints of the
migration, per-table write counters and failure injection.
"""

import copy
import re
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, Mock
from uuid import UUID, uuid4

import pytest
from postgrest.exceptions import APIError

from agencynet.client import AgencyNetwork
from agencynet.config import AgencyNetworkConfig
from agencynet.utils.supabase import NetworkSupabaseClient

EMBED = re.compile(r"(\w+):(\w+)\(([^)]*)\)")

# (columns, applies-to-row predicate)
UNIQUE_CONSTRAINTS: Dict[str, List[Tuple[Tuple[str, ...], Callable[[dict], bool]]]] = {
    "agent_invitations": [
        (("id",), lambda row: True),
        (("token",), lambda row: True),
        (("agency_id", "email"), lambda row: row.get("status") == "pending"),
    ],
    "agency_agents": [(("agency_id", "agent_id"), lambda row: True)],
    "developer_agency_contracts": [
        (("id",), lambda row: True),
        (("developer_id", "agency_id"), lambda row: True),
    ],
    "shared_properties": [
        (("property_id", "agent_id", "shared_by_agency_id"), lambda row: True),
    ],
    "notifications": [(("dedupe_key",), lambda row: row.get("dedupe_key") is not None)],
    "transition_progress": [
        (("entity_type", "entity_id", "transition"), lambda row: True),
    ],
    "profiles": [(("id",), lambda row: True)],
    "properties": [(("id",), lambda row: True)],
    "agencynet_migrations": [(("version",), lambda row: True)],
}

WRITE_OPS = ("insert", "upsert", "update", "delete")


def _comparable(value: Any) -> Any:
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return value


def _same(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return left is right
    if isinstance(left, bool) or isinstance(right, bool):
        return left == right
    return str(left) == str(right)


class FakeResponse:
    """Mimics postgrest APIResponse."""

    def __init__(self, data: Any, count: Optional[int] = None) -> None:
        self.data = data
        self.count = count


class FakeQuery:
    """Chainable query builder over one table of a FakeStore."""

    def __init__(self, store: "FakeStore", table: str) -> None:
        self.store = store
        self.table_name = table
        self.op = "select"
        self.columns = "*"
        self.count_mode: Optional[str] = None
        self.payload: Any = None
        self.on_conflict: Optional[str] = None
        self.ignore_duplicates = False
        self.filters: List[Callable[[dict], bool]] = []
        self.order_by: List[Tuple[str, bool]] = []
        self.limit_n: Optional[int] = None
        self.offset_n = 0

    # Operations

    def select(self, columns: str = "*", count: Optional[str] = None) -> "FakeQuery":
        self.op = "select"
        self.columns = columns
        self.count_mode = count
        return self

    def insert(self, rows: Any) -> "FakeQuery":
        self.op = "insert"
        self.payload = rows
        return self

    def upsert(self, rows: Any, on_conflict: Optional[str] = None, ignore_duplicates: bool = False) -> "FakeQuery":
        self.op = "upsert"
        self.payload = rows
        self.on_conflict = on_conflict
        self.ignore_duplicates = ignore_duplicates
        return self

    def update(self, values: Dict[str, Any]) -> "FakeQuery":
        self.op = "update"
        self.payload = values
        return self

    def delete(self) -> "FakeQuery":
        self.op = "delete"
        return self

    # Filters

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append(lambda row: _same(row.get(column), value))
        return self

    def neq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append(lambda row: not _same(row.get(column), value))
        return self

    def in_(self, column: str, values: List[Any]) -> "FakeQuery":
        wanted = [str(v) for v in values]
        self.filters.append(lambda row: str(row.get(column)) in wanted)
        return self

    def is_(self, column: str, value: Any) -> "FakeQuery":
        expected = None if value in (None, "null") else value
        self.filters.append(lambda row: row.get(column) is expected or row.get(column) == expected)
        return self

    def _compare(self, column: str, value: Any, check: Callable[[Any, Any], bool]) -> "FakeQuery":
        def predicate(row: dict) -> bool:
            current = row.get(column)
            if current is None:
                return False
            return check(_comparable(current), _comparable(value))

        self.filters.append(predicate)
        return self

    def gt(self, column: str, value: Any) -> "FakeQuery":
        return self._compare(column, value, lambda a, b: a > b)

    def gte(self, column: str, value: Any) -> "FakeQuery":
        return self._compare(column, value, lambda a, b: a >= b)

    def lt(self, column: str, value: Any) -> "FakeQuery":
        return self._compare(column, value, lambda a, b: a < b)

    def lte(self, column: str, value: Any) -> "FakeQuery":
        return self._compare(column, value, lambda a, b: a <= b)

    # Modifiers

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self.order_by.append((column, desc))
        return self

    def limit(self, n: int) -> "FakeQuery":
        self.limit_n = n
        return self

    def offset(self, n: int) -> "FakeQuery":
        self.offset_n = n
        return self

    def range(self, start: int, end: int) -> "FakeQuery":
        self.offset_n = start
        self.limit_n = end - start + 1
        return self

    # Execution

    def _matches(self, row: dict) -> bool:
        return all(f(row) for f in self.filters)

    def _project(self, row: dict) -> dict:
        plain = EMBED.sub("", self.columns)
        names = [c.strip() for c in plain.split(",") if c.strip()]

        if not names or "*" in names:
            projected = copy.deepcopy(row)
        else:
            projected = {name: copy.deepcopy(row.get(name)) for name in names}

        for alias, fk, cols in EMBED.findall(self.columns):
            target = self.store.find("profiles", id=row.get(fk))
            if target is None:
                projected[alias] = None
                continue
            wanted = [c.strip() for c in cols.split(",") if c.strip()]
            projected[alias] = {c: copy.deepcopy(target.get(c)) for c in wanted}

        return projected

    async def execute(self) -> FakeResponse:
        self.store.check_failure(self.table_name, self.op)
        rows = self.store.tables.setdefault(self.table_name, [])

        if self.op == "select":
            matched = [row for row in rows if self._matches(row)]
            for column, desc in reversed(self.order_by):
                matched.sort(
                    key=lambda r: (r.get(column) is None, _comparable(r.get(column)) if r.get(column) is not None else 0),
                    reverse=desc,
                )
            total = len(matched)
            matched = matched[self.offset_n:]
            if self.limit_n is not None:
                matched = matched[: self.limit_n]
            return FakeResponse(
                [self._project(row) for row in matched],
                count=total if self.count_mode else None,
            )

        self.store.writes[self.table_name] += 1

        if self.op == "insert":
            batch = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = [self.store.prepare(self.table_name, row) for row in batch]
            self.store.check_unique(self.table_name, inserted)
            rows.extend(inserted)
            return FakeResponse(copy.deepcopy(inserted))

        if self.op == "upsert":
            batch = self.payload if isinstance(self.payload, list) else [self.payload]
            keys = [k.strip() for k in (self.on_conflict or "id").split(",")]
            returned = []
            for incoming in batch:
                existing = next(
                    (r for r in rows if all(_same(r.get(k), incoming.get(k)) for k in keys)),
                    None,
                )
                if existing is not None:
                    if self.ignore_duplicates:
                        continue
                    existing.update(copy.deepcopy(incoming))
                    returned.append(copy.deepcopy(existing))
                else:
                    row = self.store.prepare(self.table_name, incoming)
                    self.store.check_unique(self.table_name, [row])
                    rows.append(row)
                    returned.append(copy.deepcopy(row))
            return FakeResponse(returned)

        if self.op == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(copy.deepcopy(self.payload))
                    updated.append(copy.deepcopy(row))
            return FakeResponse(updated)

        deleted = [row for row in rows if self._matches(row)]
        self.store.tables[self.table_name] = [row for row in rows if not self._matches(row)]
        return FakeResponse(copy.deepcopy(deleted))


class FakeRpc:
    def __init__(self, store: "FakeStore", fn: str, params: Dict[str, Any]) -> None:
        self.store = store
        self.fn = fn
        self.params = params

    async def execute(self) -> FakeResponse:
        self.store.check_failure("rpc", self.fn)
        self.store.rpc_calls.append((self.fn, self.params))
        return FakeResponse(None)


class FakeChannel:
    """Records Realtime subscriptions."""

    def __init__(self, topic: str) -> None:
        self.topic = topic
        self.bindings: List[Dict[str, Any]] = []
        self.subscribed = False

    def on_postgres_changes(self, event, callback, table="*", schema="public", filter=None):
        self.bindings.append(
            {"event": event, "callback": callback, "table": table, "schema": schema, "filter": filter}
        )
        return self

    async def subscribe(self, callback=None):
        self.subscribed = True
        return self

    def emit(self, payload: Dict[str, Any]) -> None:
        for binding in self.bindings:
            binding["callback"](payload)


class FakeStore:
    """In-memory Supabase AsyncClient replacement."""

    def __init__(self) -> None:
        self.tables: Dict[str, List[dict]] = {}
        self.writes: Counter = Counter()
        self.failures: Dict[Tuple[str, str], List[Any]] = {}
        self.rpc_calls: List[Tuple[str, Dict[str, Any]]] = []
        self.channels: List[FakeChannel] = []
        self.removed_channels: List[FakeChannel] = []
        self.auth = AsyncMock()

    # Supabase client surface

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, fn: str, params: Optional[Dict[str, Any]] = None) -> FakeRpc:
        return FakeRpc(self, fn, params or {})

    def channel(self, topic: str) -> FakeChannel:
        channel = FakeChannel(topic)
        self.channels.append(channel)
        return channel

    async def remove_channel(self, channel: FakeChannel) -> None:
        self.removed_channels.append(channel)

    async def remove_all_channels(self) -> None:
        self.removed_channels.extend(c for c in self.channels if c not in self.removed_channels)

    # Test helpers

    def rows(self, table: str, **where: Any) -> List[dict]:
        return [
            row for row in self.tables.get(table, [])
            if all(_same(row.get(k), v) for k, v in where.items())
        ]

    def find(self, table: str, **where: Any) -> Optional[dict]:
        found = self.rows(table, **where)
        return found[0] if found else None

    def seed(self, table: str, **row: Any) -> dict:
        prepared = self.prepare(table, {k: str(v) if isinstance(v, UUID) else v for k, v in row.items()})
        self.tables.setdefault(table, []).append(prepared)
        return prepared

    def fail(self, table: str, op: str, error: Optional[Exception] = None, times: int = 1) -> None:
        """Make the next ``times`` executions of ``op`` on ``table`` raise."""
        error = error or APIError({"message": f"injected {op} failure on {table}", "code": "XX000"})
        self.failures[(table, op)] = [error] * times

    def check_failure(self, table: str, op: str) -> None:
        pending = self.failures.get((table, op))
        if pending:
            raise pending.pop(0)

    def prepare(self, table: str, row: dict) -> dict:
        prepared = copy.deepcopy(row)
        prepared.setdefault("id", str(uuid4()))
        if table in ("agency_agents", "shared_properties", "transition_progress", "notifications"):
            prepared.setdefault("created_at", "2024-01-01T00:00:00+00:00")
        return prepared

    def check_unique(self, table: str, new_rows: List[dict]) -> None:
        existing = self.tables.get(table, [])
        for columns, applies in UNIQUE_CONSTRAINTS.get(table, []):
            seen = set()
            for row in existing + new_rows:
                if not applies(row):
                    continue
                key = tuple(str(row.get(c)) for c in columns)
                if key in seen:
                    raise APIError({
                        "message": f'duplicate key value violates unique constraint "{table}_{"_".join(columns)}_key"',
                        "code": "23505",
                        "hint": None,
                        "details": f"Key ({', '.join(columns)}) already exists.",
                    })
                seen.add(key)


class FrozenClock:
    """Replaceable clock for AgencyNetwork."""

    def __init__(self, at: datetime) -> None:
        self.at = at

    def __call__(self) -> datetime:
        return self.at

    def set(self, at: datetime) -> None:
        self.at = at


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def store() -> FakeStore:
    """Empty in-memory store."""
    return FakeStore()


@pytest.fixture
def network_config() -> AgencyNetworkConfig:
    """Create a test AgencyNetworkConfig."""
    return AgencyNetworkConfig(
        supabase_url="https://test.supabase.co",
        supabase_key="test-service-key-12345678901234567890",
        app_base_url="https://app.example.com",
    )


@pytest.fixture
def clock() -> FrozenClock:
    """Clock frozen at 2024-01-01 00:00 UTC."""
    return FrozenClock(utc(2024, 1, 1))


@pytest.fixture
def network(store, network_config, clock) -> AgencyNetwork:
    """AgencyNetwork backed by the in-memory store."""
    client = NetworkSupabaseClient(config=network_config, client=store)
    return AgencyNetwork(config=network_config, client=client, clock=clock)


@pytest.fixture
def agency_id(store) -> UUID:
    """An agency profile."""
    agency = uuid4()
    store.seed(
        "profiles",
        id=agency,
        email="office@acme-realty.example.com",
        full_name="Acme Owner",
        agency_name="Acme Realty",
    )
    return agency


@pytest.fixture
def agent_id(store) -> UUID:
    """An agent profile registered as jane@example.com."""
    agent = uuid4()
    store.seed(
        "profiles",
        id=agent,
        email="jane@example.com",
        full_name="Jane Agent",
        avatar_url=None,
        whatsapp="+971500000001",
        agency_id=None,
    )
    return agent


@pytest.fixture
def developer_id(store) -> UUID:
    """A developer profile."""
    developer = uuid4()
    store.seed(
        "profiles",
        id=developer,
        email="sales@emaar-like.example.com",
        full_name="Dev Builders",
    )
    return developer


@pytest.fixture
def documents() -> Dict[str, str]:
    """The three agency documents of a collaboration request."""
    return {
        "agency_registration_url": "https://files.example.com/registration.pdf",
        "agency_license_url": "https://files.example.com/license.pdf",
        "agency_signed_contract_url": "https://files.example.com/signed.pdf",
    }


@pytest.fixture
def mock_supabase_client():
    """Mock Supabase AsyncClient for wrapper and lifecycle tests."""
    client = AsyncMock()
    client.table = Mock(return_value=Mock())
    client.rpc = Mock(return_value=Mock(execute=AsyncMock(return_value=Mock(data=None))))
    client.channel = Mock(return_value=Mock())
    return client


@pytest.fixture
def mock_network_supabase_client(mock_supabase_client, network_config):
    """NetworkSupabaseClient around a mock client."""
    return NetworkSupabaseClient(config=network_config, client=mock_supabase_client)
