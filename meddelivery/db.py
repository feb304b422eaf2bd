"""
Async Postgres: orders (current state per order) + delivery_tracking (append-only ledger).
A transition runs in a single transaction: conditional UPDATE of the order row (only while
its status is still the one validated against), then INSERT of its tracking entry.
"""
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from decimal import Decimal

import asyncpg

from meddelivery.config import settings
from meddelivery.errors import ConcurrentModification, OrderNotFound
from meddelivery.models import NewTrackingEntry, Order, OrderMutation, TrackingEntry
from meddelivery.order_state import INITIAL_STATUS, OrderStatus

logger = logging.getLogger(__name__)

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in OrderStatus)

SCHEMA = f"""
CREATE TABLE IF NOT EXISTS users (
    id SERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    role VARCHAR(32) NOT NULL
);
CREATE TABLE IF NOT EXISTS patients (
    id SERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    latitude DOUBLE PRECISION,
    longitude DOUBLE PRECISION
);
CREATE TABLE IF NOT EXISTS orders (
    id SERIAL PRIMARY KEY,
    patient_id INT NOT NULL,
    medication_details TEXT NOT NULL,
    status VARCHAR(32) NOT NULL CHECK (status IN ({_STATUS_VALUES})),
    created_by INT NOT NULL,
    assigned_courier_id INT,
    delivery_distance NUMERIC(10, 2) CHECK (delivery_distance >= 0),
    delivery_fee BIGINT CHECK (delivery_fee >= 0),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE TABLE IF NOT EXISTS delivery_tracking (
    id BIGSERIAL PRIMARY KEY,
    order_id INT NOT NULL REFERENCES orders(id),
    status VARCHAR(32) NOT NULL CHECK (status IN ({_STATUS_VALUES})),
    latitude DOUBLE PRECISION,
    longitude DOUBLE PRECISION,
    notes TEXT,
    updated_by INT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT clock_timestamp()
);
CREATE INDEX IF NOT EXISTS idx_delivery_tracking_order_created
    ON delivery_tracking(order_id, created_at DESC, id DESC);
"""

# Pool or a single connection: both expose fetchrow / fetchval / execute
Executor = asyncpg.Pool | asyncpg.Connection


async def create_pool(database_url: str | None = None) -> asyncpg.Pool:
    return await asyncpg.create_pool(
        database_url or settings.database_url,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        command_timeout=settings.db_command_timeout,
    )


async def init_schema(pool: asyncpg.Pool) -> None:
    async with pool.acquire() as conn:
        await conn.execute(SCHEMA)


def _order_from_row(row: asyncpg.Record) -> Order:
    return Order.model_validate(dict(row))


def _entry_from_row(row: asyncpg.Record) -> TrackingEntry:
    return TrackingEntry.model_validate(dict(row))


def _numeric(value: float | None) -> Decimal | None:
    return None if value is None else Decimal(str(value))


class OrderStore:
    def __init__(self, conn: Executor):
        self._conn = conn

    async def get(self, order_id: int) -> Order:
        row = await self._conn.fetchrow("SELECT * FROM orders WHERE id = $1;", order_id)
        if row is None:
            raise OrderNotFound(order_id)
        return _order_from_row(row)

    async def insert(self, patient_id: int, medication_details: str, created_by: int) -> Order:
        row = await self._conn.fetchrow(
            """
            INSERT INTO orders (patient_id, medication_details, status, created_by)
            VALUES ($1, $2, $3, $4)
            RETURNING *;
            """,
            patient_id,
            medication_details,
            INITIAL_STATUS.value,
            created_by,
        )
        return _order_from_row(row)

    async def apply(self, order_id: int, mutation: OrderMutation) -> Order:
        """
        Write mutation only if the row still has mutation.expected_status.
        A concurrent writer holding the row makes this UPDATE wait, then re-check the
        predicate against the committed row, so at most one of them matches.
        """
        row = await self._conn.fetchrow(
            """
            UPDATE orders SET
                status = $3,
                assigned_courier_id = COALESCE($4, assigned_courier_id),
                delivery_distance = COALESCE($5, delivery_distance),
                delivery_fee = COALESCE($6, delivery_fee),
                updated_at = $7
            WHERE id = $1 AND status = $2
            RETURNING *;
            """,
            order_id,
            mutation.expected_status.value,
            mutation.status.value,
            mutation.assigned_courier_id,
            _numeric(mutation.delivery_distance),
            mutation.delivery_fee,
            mutation.updated_at,
        )
        if row is None:
            exists = await self._conn.fetchval("SELECT 1 FROM orders WHERE id = $1;", order_id)
            if exists is None:
                raise OrderNotFound(order_id)
            raise ConcurrentModification(order_id, mutation.expected_status)
        return _order_from_row(row)


class TrackingHistory:
    """
    Tracking entries of one order, newest first. Rows stream from a server-side cursor;
    each `async for` runs the query again.

    The connection and read transaction stay open until iteration ends. A consumer that
    stops early should close the iterator, e.g. `async with contextlib.aclosing(aiter(history))`.
    """

    def __init__(self, conn: Executor, order_id: int, prefetch: int = 50):
        self._conn = conn
        self.order_id = order_id
        self._prefetch = prefetch

    async def __aiter__(self) -> AsyncIterator[TrackingEntry]:
        async with _connection(self._conn) as conn:
            async with conn.transaction():
                cursor = conn.cursor(
                    """
                    SELECT * FROM delivery_tracking
                    WHERE order_id = $1
                    ORDER BY created_at DESC, id DESC;
                    """,
                    self.order_id,
                    prefetch=self._prefetch,
                )
                async for row in cursor:
                    yield _entry_from_row(row)


class TrackingLedger:
    def __init__(self, conn: Executor):
        self._conn = conn

    async def append(self, entry: NewTrackingEntry) -> TrackingEntry:
        row = await self._conn.fetchrow(
            """
            INSERT INTO delivery_tracking (order_id, status, latitude, longitude, notes, updated_by)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING *;
            """,
            entry.order_id,
            entry.status.value,
            entry.latitude,
            entry.longitude,
            entry.notes,
            entry.updated_by,
        )
        return _entry_from_row(row)

    def list_by_order(self, order_id: int) -> TrackingHistory:
        return TrackingHistory(self._conn, order_id)


@asynccontextmanager
async def _connection(conn: Executor) -> AsyncIterator[asyncpg.Connection]:
    # A pool hands out a connection; a connection (or pool proxy) is used as is
    if hasattr(conn, "acquire"):
        async with conn.acquire() as acquired:
            yield acquired
    else:
        yield conn


class Database:
    """Storage handle. Built once per process and passed to whatever reads or writes orders."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    @classmethod
    async def connect(cls, database_url: str | None = None) -> "Database":
        pool = await create_pool(database_url)
        await init_schema(pool)
        logger.info("Database ready (pool min=%d max=%d)", settings.db_pool_min_size, settings.db_pool_max_size)
        return cls(pool)

    @property
    def orders(self) -> OrderStore:
        return OrderStore(self.pool)

    @property
    def tracking(self) -> TrackingLedger:
        return TrackingLedger(self.pool)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[tuple[OrderStore, TrackingLedger]]:
        """Order Store and Tracking Ledger bound to one connection inside one transaction."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield OrderStore(conn), TrackingLedger(conn)

    async def close(self) -> None:
        await self.pool.close()
