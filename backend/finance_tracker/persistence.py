from __future__ import annotations

import copy
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterator

import structlog
from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    delete,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from .auth_utils import hash_password, public_user, verify_password
from .config import settings
from .errors import Conflict, StorageError
from .schemas import as_utc
from .store import ENTITY_KINDS, InMemoryStore, store

logger = structlog.get_logger(__name__)


class Repository:
    """User-scoped CRUD over one entity kind.

    Rows are plain dicts keyed by the camelCase field names of the API models
    plus ``id``. Subclasses implement the storage primitives; the public
    methods add logging and keep the contract uniform across backends.
    """

    owner_field = "userId"

    def __init__(self, kind: str) -> None:
        self.kind = kind

    def list(self, user_id: int) -> list[dict[str, Any]]:
        return self._select_owned(user_id)

    def get(self, entity_id: int) -> dict[str, Any] | None:
        return self._select_one(entity_id)

    def create(self, data: dict[str, Any]) -> dict[str, Any]:
        row = self._insert({k: v for k, v in data.items() if k != "id"})
        logger.info("entity_created", kind=self.kind, id=row["id"])
        return row

    def update(self, entity_id: int, changes: dict[str, Any]) -> dict[str, Any] | None:
        row = self._merge(entity_id, {k: v for k, v in changes.items() if k != "id"})
        if row is None:
            logger.info("entity_update_missed", kind=self.kind, id=entity_id)
            return None
        logger.info("entity_updated", kind=self.kind, id=entity_id, fields=sorted(changes))
        return row

    def delete(self, entity_id: int) -> bool:
        removed = self._remove(entity_id)
        logger.info("entity_deleted" if removed else "entity_delete_missed", kind=self.kind, id=entity_id)
        return removed

    def find_one(self, field: str, value: Any) -> dict[str, Any] | None:
        raise NotImplementedError

    def _select_owned(self, user_id: int) -> list[dict[str, Any]]:
        raise NotImplementedError

    def _select_one(self, entity_id: int) -> dict[str, Any] | None:
        raise NotImplementedError

    def _insert(self, data: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    def _merge(self, entity_id: int, changes: dict[str, Any]) -> dict[str, Any] | None:
        raise NotImplementedError

    def _remove(self, entity_id: int) -> bool:
        raise NotImplementedError


class InMemoryRepository(Repository):
    def __init__(self, kind: str, backing: InMemoryStore, owner_field: str = "userId") -> None:
        super().__init__(kind)
        self.backing = backing
        self.owner_field = owner_field

    @property
    def _rows(self) -> dict[int, dict[str, Any]]:
        return self.backing.collections[self.kind]

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with self.backing.locks[self.kind]:
            yield

    def _select_owned(self, user_id: int) -> list[dict[str, Any]]:
        with self._locked():
            return [copy.deepcopy(row) for row in self._rows.values() if row.get(self.owner_field) == user_id]

    def _select_one(self, entity_id: int) -> dict[str, Any] | None:
        with self._locked():
            row = self._rows.get(entity_id)
            return copy.deepcopy(row) if row is not None else None

    def find_one(self, field: str, value: Any) -> dict[str, Any] | None:
        with self._locked():
            for row in self._rows.values():
                if row.get(field) == value:
                    return copy.deepcopy(row)
        return None

    def _insert(self, data: dict[str, Any]) -> dict[str, Any]:
        with self._locked():
            entity_id = self.backing.make_id(self.kind)
            row = {**copy.deepcopy(data), "id": entity_id}
            self._rows[entity_id] = row
            return copy.deepcopy(row)

    def _merge(self, entity_id: int, changes: dict[str, Any]) -> dict[str, Any] | None:
        with self._locked():
            existing = self._rows.get(entity_id)
            if existing is None:
                return None
            row = {**existing, **copy.deepcopy(changes)}
            self._rows[entity_id] = row
            return copy.deepcopy(row)

    def _remove(self, entity_id: int) -> bool:
        with self._locked():
            return self._rows.pop(entity_id, None) is not None


metadata = MetaData()

TABLES: dict[str, Table] = {
    "users": Table(
        "users",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("username", String(100), nullable=False, unique=True),
        Column("password_hash", String(255), nullable=False),
        Column("full_name", String(200), nullable=False),
        Column("email", String(255), nullable=False, unique=True),
        sqlite_autoincrement=True,
    ),
    "categories": Table(
        "categories",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("name", String(100), nullable=False),
        Column("icon", String(50), nullable=False),
        Column("color", String(20), nullable=False),
        Column("user_id", Integer, nullable=False, index=True),
        sqlite_autoincrement=True,
    ),
    "transactions": Table(
        "transactions",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("description", Text, nullable=False),
        Column("amount", String(40), nullable=False),
        Column("date", DateTime(timezone=True), nullable=False),
        Column("type", String(20), nullable=False),
        Column("category_id", Integer),
        Column("account_id", Integer),
        Column("notes", Text),
        Column("user_id", Integer, nullable=False, index=True),
        sqlite_autoincrement=True,
    ),
    "goals": Table(
        "goals",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("title", String(200), nullable=False),
        Column("description", Text),
        Column("target_amount", String(40), nullable=False),
        Column("current_amount", String(40), nullable=False),
        Column("target_date", DateTime(timezone=True), nullable=False),
        Column("status", String(20), nullable=False),
        Column("user_id", Integer, nullable=False, index=True),
        sqlite_autoincrement=True,
    ),
    "events": Table(
        "events",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("title", String(200), nullable=False),
        Column("description", Text),
        Column("amount", String(40), nullable=False),
        Column("date", DateTime(timezone=True), nullable=False),
        Column("priority", String(10), nullable=False),
        Column("category", String(100), nullable=False),
        Column("user_id", Integer, nullable=False, index=True),
        sqlite_autoincrement=True,
    ),
    "accounts": Table(
        "accounts",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("name", String(120), nullable=False),
        Column("account_number", String(50), nullable=False),
        Column("bank_name", String(120), nullable=False),
        Column("account_type", String(20), nullable=False),
        Column("balance", String(40), nullable=False),
        Column("notes", Text),
        Column("credentials", JSON),
        Column("user_id", Integer, nullable=False, index=True),
        sqlite_autoincrement=True,
    ),
}

# Money is stored as decimal strings so every backend round-trips it exactly.
MONEY_FIELDS = {"amount", "balance", "targetAmount", "currentAmount"}
INSTANT_FIELDS = {"date", "targetDate"}

FIELD_COLUMNS: dict[str, dict[str, str]] = {
    "users": {"id": "id", "username": "username", "passwordHash": "password_hash", "fullName": "full_name", "email": "email"},
    "categories": {"id": "id", "name": "name", "icon": "icon", "color": "color", "userId": "user_id"},
    "transactions": {
        "id": "id",
        "description": "description",
        "amount": "amount",
        "date": "date",
        "type": "type",
        "categoryId": "category_id",
        "accountId": "account_id",
        "notes": "notes",
        "userId": "user_id",
    },
    "goals": {
        "id": "id",
        "title": "title",
        "description": "description",
        "targetAmount": "target_amount",
        "currentAmount": "current_amount",
        "targetDate": "target_date",
        "status": "status",
        "userId": "user_id",
    },
    "events": {
        "id": "id",
        "title": "title",
        "description": "description",
        "amount": "amount",
        "date": "date",
        "priority": "priority",
        "category": "category",
        "userId": "user_id",
    },
    "accounts": {
        "id": "id",
        "name": "name",
        "accountNumber": "account_number",
        "bankName": "bank_name",
        "accountType": "account_type",
        "balance": "balance",
        "notes": "notes",
        "credentials": "credentials",
        "userId": "user_id",
    },
}


class SqlRepository(Repository):
    def __init__(self, kind: str, engine: Engine, owner_field: str = "userId") -> None:
        super().__init__(kind)
        self.engine = engine
        self.table = TABLES[kind]
        self.fields = FIELD_COLUMNS[kind]
        self.owner_field = owner_field

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        try:
            with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as exc:
            raise StorageError(f"database error: {exc.__class__.__name__}") from exc

    def _column(self, field: str):
        return self.table.c[self.fields[field]]

    def _to_columns(self, data: dict[str, Any]) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for field, value in data.items():
            if field not in self.fields:
                continue
            if field in MONEY_FIELDS and value is not None:
                value = str(value)
            values[self.fields[field]] = value
        return values

    def _to_row(self, record: Any) -> dict[str, Any]:
        row: dict[str, Any] = {}
        for field, column in self.fields.items():
            value = record[column]
            if field in MONEY_FIELDS and value is not None:
                value = Decimal(value)
            elif field in INSTANT_FIELDS and isinstance(value, datetime):
                value = as_utc(value)
            row[field] = value
        return row

    def _select_owned(self, user_id: int) -> list[dict[str, Any]]:
        stmt = select(self.table).where(self._column(self.owner_field) == user_id).order_by(self.table.c.id)
        with self._connect() as conn:
            return [self._to_row(r) for r in conn.execute(stmt).mappings()]

    def _select_one(self, entity_id: int) -> dict[str, Any] | None:
        with self._connect() as conn:
            found = conn.execute(select(self.table).where(self.table.c.id == entity_id)).mappings().first()
        return self._to_row(found) if found is not None else None

    def find_one(self, field: str, value: Any) -> dict[str, Any] | None:
        with self._connect() as conn:
            found = conn.execute(select(self.table).where(self._column(field) == value).limit(1)).mappings().first()
        return self._to_row(found) if found is not None else None

    def _insert(self, data: dict[str, Any]) -> dict[str, Any]:
        with self._connect() as conn:
            result = conn.execute(insert(self.table).values(**self._to_columns(data)))
            new_id = result.inserted_primary_key[0]
            created = conn.execute(select(self.table).where(self.table.c.id == new_id)).mappings().one()
        return self._to_row(created)

    def _merge(self, entity_id: int, changes: dict[str, Any]) -> dict[str, Any] | None:
        with self._connect() as conn:
            values = self._to_columns(changes)
            if values:
                result = conn.execute(update(self.table).where(self.table.c.id == entity_id).values(**values))
                if result.rowcount == 0:
                    return None
            merged = conn.execute(select(self.table).where(self.table.c.id == entity_id)).mappings().first()
        return self._to_row(merged) if merged is not None else None

    def _remove(self, entity_id: int) -> bool:
        with self._connect() as conn:
            removed = conn.execute(delete(self.table).where(self.table.c.id == entity_id)).rowcount
        return removed > 0


class Persistence:
    """The six entity repositories plus the user lookups built on them."""

    users: Repository
    categories: Repository
    transactions: Repository
    goals: Repository
    events: Repository
    accounts: Repository

    def repository(self, kind: str) -> Repository:
        if kind not in ENTITY_KINDS:
            raise KeyError(kind)
        return getattr(self, kind)

    def reset(self) -> None:
        raise NotImplementedError

    def register_user(self, data: dict[str, Any]) -> dict[str, Any]:
        if self.users.find_one("username", data["username"]) is not None:
            raise Conflict("username already exists")
        if self.users.find_one("email", data["email"]) is not None:
            raise Conflict("email already registered")
        row = self.users.create(
            {
                "username": data["username"],
                "passwordHash": hash_password(data["password"]),
                "fullName": data["fullName"],
                "email": data["email"],
            }
        )
        return public_user(row)

    def authenticate_user(self, username: str, password: str) -> dict[str, Any] | None:
        row = self.users.find_one("username", username)
        if row is None or not verify_password(password, row["passwordHash"]):
            return None
        return public_user(row)


class InMemoryPersistence(Persistence):
    def __init__(self, backing: InMemoryStore | None = None) -> None:
        self.backing = backing or store
        for kind in ENTITY_KINDS:
            owner = "id" if kind == "users" else "userId"
            setattr(self, kind, InMemoryRepository(kind, self.backing, owner_field=owner))

    def reset(self) -> None:
        self.backing.reset()


class SqlPersistence(Persistence):
    def __init__(self, database_url: str) -> None:
        engine_kwargs: dict[str, Any] = {"future": True, "pool_pre_ping": True}
        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
                engine_kwargs["poolclass"] = StaticPool
        self.engine: Engine = create_engine(database_url, **engine_kwargs)
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"database error: {exc.__class__.__name__}") from exc
        for kind in ENTITY_KINDS:
            owner = "id" if kind == "users" else "userId"
            setattr(self, kind, SqlRepository(kind, self.engine, owner_field=owner))

    def reset(self) -> None:
        try:
            metadata.drop_all(self.engine)
            metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"database error: {exc.__class__.__name__}") from exc


def get_persistence() -> Persistence:
    if settings.storage_backend == "sql":
        return SqlPersistence(settings.database_url)
    return InMemoryPersistence()
