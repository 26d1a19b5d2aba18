"""
SQLite association store for notification routing.

This module persists everything the routing core reads and writes:
- Endpoints with their (lazily loaded) properties
- Behavior groups and their ordered action lists
- Event type <-> behavior group links
- Legacy event type <-> endpoint links
- Legacy default endpoint memberships
- The bundle / application / event type catalog (read-only for the core)

Invariants:
    - Every tenant-owned row carries account_id and every query filters on it
    - All multi-statement writes run in a single BEGIN IMMEDIATE transaction
    - Behavior group action positions are dense (0..n-1) after a replace
    - Deleting a behavior group cascades to its actions and links, never to endpoints

How to change safely:
    - Schema migrations must be backward compatible
    - Keep the legacy and behavior group link tables independent
    - Use transactions for all write operations

Table schema:
    bundles / applications / event_types:
        - global catalog, no account_id

    endpoints:
        - id TEXT PRIMARY KEY
        - account_id TEXT
        - endpoint_type TEXT (webhook, email_subscription, default, camel)
        - properties_json TEXT (only read by load_endpoint_properties)

    behavior_groups:
        - id TEXT PRIMARY KEY
        - account_id TEXT
        - bundle_id TEXT

    behavior_group_actions:
        - behavior_group_id TEXT
        - endpoint_id TEXT
        - position INTEGER
        - PRIMARY KEY (behavior_group_id, position)
        - UNIQUE (behavior_group_id, endpoint_id)

    event_type_behaviors:
        - event_type_id TEXT
        - behavior_group_id TEXT
        - PRIMARY KEY (event_type_id, behavior_group_id)

    endpoint_targets (legacy links):
        - account_id TEXT
        - event_type_id TEXT
        - endpoint_id TEXT
        - PRIMARY KEY (account_id, event_type_id, endpoint_id)

    endpoint_defaults (legacy default set):
        - account_id TEXT
        - endpoint_id TEXT
        - PRIMARY KEY (account_id, endpoint_id)
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import threading
import time
import uuid
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import Any, TypeVar

from ..errors import NotFoundError, StorageError, StorageTimeoutError, ValidationError
from ..models import (
    Application,
    BehaviorGroup,
    BehaviorGroupAction,
    Bundle,
    Endpoint,
    EndpointType,
    EventType,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_EVENT_TYPE_COLUMNS = """
    et.id AS et_id,
    et.name AS et_name,
    et.display_name AS et_display_name,
    et.description AS et_description,
    a.id AS app_id,
    a.bundle_id AS app_bundle_id,
    a.name AS app_name,
    a.display_name AS app_display_name
"""

_ENDPOINT_COLUMNS = """
    e.id AS ep_id,
    e.account_id AS ep_account_id,
    e.name AS ep_name,
    e.description AS ep_description,
    e.endpoint_type AS ep_type,
    e.enabled AS ep_enabled,
    e.created AS ep_created
"""


def _now_ms() -> int:
    return int(time.time() * 1000)


def _row_to_event_type(row: sqlite3.Row) -> EventType:
    return EventType(
        id=row["et_id"],
        name=row["et_name"],
        display_name=row["et_display_name"],
        description=row["et_description"],
        application=Application(
            id=row["app_id"],
            bundle_id=row["app_bundle_id"],
            name=row["app_name"],
            display_name=row["app_display_name"],
        ),
    )


def _row_to_endpoint(row: sqlite3.Row) -> Endpoint:
    return Endpoint(
        id=row["ep_id"],
        account_id=row["ep_account_id"],
        name=row["ep_name"],
        description=row["ep_description"],
        type=EndpointType.from_str(row["ep_type"]),
        enabled=bool(row["ep_enabled"]),
        created=row["ep_created"],
    )


def _row_to_behavior_group(row: sqlite3.Row) -> BehaviorGroup:
    return BehaviorGroup(
        id=row["id"],
        account_id=row["account_id"],
        bundle_id=row["bundle_id"],
        display_name=row["display_name"],
        created=row["created"],
    )


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


def _consume_result(future: asyncio.Future) -> None:
    if not future.cancelled():
        future.exception()


class _Deadline:
    """Deadline shared by an awaiting coroutine and its executor thread.

    Once the deadline passes or the caller gives up, the SQLite work is
    interrupted and its transaction may no longer commit. A commit that
    started before that point is allowed to finish.
    """

    def __init__(self, operation: str, timeout: float) -> None:
        self.operation = operation
        self.timeout = timeout
        self.expires = time.monotonic() + timeout
        self.lock = threading.RLock()
        self.abandoned = False
        self.committing = False
        self.conn: sqlite3.Connection | None = None

    def remaining(self) -> float:
        return max(0.0, self.expires - time.monotonic())

    def expired(self) -> bool:
        return self.abandoned or time.monotonic() >= self.expires

    def abandon(self) -> bool:
        """Stop the work. Returns False if its commit is already under way."""
        with self.lock:
            if self.committing:
                return False
            self.abandoned = True
            if self.conn is not None:
                self.conn.interrupt()
            return True

    def error(self) -> StorageTimeoutError:
        return StorageTimeoutError(
            f"{self.operation} timed out after {self.timeout}s",
            operation=self.operation,
            timeout=self.timeout,
        )


class _GuardedConnection(sqlite3.Connection):
    guard: _Deadline | None = None


class AssociationStore:
    """SQLite store for endpoints, behavior groups and their associations.

    Every public method is a coroutine. The blocking SQLite work runs in the
    default executor and is bounded by a deadline: the per-call ``timeout``
    argument when given, ``operation_timeout`` otherwise. An elapsed deadline
    or a lock wait beyond the busy timeout raises StorageTimeoutError; any
    other SQLite failure raises StorageError. Domain exceptions raised inside
    a transaction roll it back and propagate unchanged.

    Thread safety:
        Each operation opens its own connection.
        Concurrent writers are serialized by BEGIN IMMEDIATE.

    Example:
        >>> store = AssociationStore("/var/lib/notifications")
        >>> await store.initialize()
        >>> endpoint = await store.create_endpoint(
        ...     account_id="acct_1",
        ...     name="ops-webhook",
        ...     endpoint_type=EndpointType.WEBHOOK,
        ...     properties={"url": "https://example.com/hook"},
        ... )
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        data_dir: str,
        db_name: str = "notifications.db",
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
        operation_timeout: float = 10.0,
    ) -> None:
        """Initialize the association store.

        Args:
            data_dir: Directory for the SQLite database file
            db_name: Database file name
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
            operation_timeout: Default deadline in seconds for a store call
        """
        self.data_dir = Path(data_dir)
        self.db_name = db_name
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self.operation_timeout = operation_timeout

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name

    @contextmanager
    def _get_connection(self, guard: _Deadline | None = None) -> Iterator[sqlite3.Connection]:
        """Open a configured connection to the database.

        With a guard, lock waits are bounded by the time left before the
        deadline and running statements are interrupted once it passes.
        """
        self.data_dir.mkdir(parents=True, exist_ok=True)

        busy_timeout_ms = self.busy_timeout_ms
        if guard is not None:
            busy_timeout_ms = min(busy_timeout_ms, int(guard.remaining() * 1000))

        conn = sqlite3.connect(
            str(self.db_path),
            timeout=busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
            factory=_GuardedConnection,
        )
        conn.row_factory = sqlite3.Row
        conn.guard = guard

        try:
            conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            conn.execute("PRAGMA foreign_keys = ON")

            if guard is not None:
                conn.set_progress_handler(lambda: 1 if guard.expired() else 0, 1000)
                with guard.lock:
                    guard.conn = conn

            yield conn
        finally:
            if guard is not None:
                with guard.lock:
                    guard.conn = None
            conn.close()

    @contextmanager
    def _transaction(self, conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
        """Run a block in a write transaction, rolling back on any exception.

        Under a deadline the commit is refused once the deadline has passed,
        so a caller that got StorageTimeoutError never sees the write land.
        """
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
            self._commit(conn)
        except BaseException:
            self._rollback(conn)
            raise

    def _commit(self, conn: sqlite3.Connection) -> None:
        guard = getattr(conn, "guard", None)
        if guard is None:
            conn.execute("COMMIT")
            return

        with guard.lock:
            if guard.expired():
                raise guard.error()
            guard.committing = True
            conn.set_progress_handler(None, 0)
            conn.execute("COMMIT")

    def _rollback(self, conn: sqlite3.Connection) -> None:
        guard = getattr(conn, "guard", None)
        with guard.lock if guard is not None else nullcontext():
            if guard is not None:
                conn.set_progress_handler(None, 0)
            # An interrupted write may already have been rolled back by SQLite
            if conn.in_transaction:
                conn.execute("ROLLBACK")

    async def _run(
        self,
        operation: str,
        work: Callable[[sqlite3.Connection], T],
        timeout: float | None = None,
    ) -> T:
        """Run blocking database work off the event loop under a deadline.

        The deadline is enforced inside the SQLite work as well as around
        it: lock waits are bounded by it, running statements are interrupted
        when it passes, and a transaction may not commit after it. A write
        reported as timed out is therefore rolled back.

        Args:
            operation: Operation name, used in errors
            work: Callable receiving an open connection
            timeout: Deadline in seconds (defaults to operation_timeout)

        Raises:
            StorageTimeoutError: Deadline elapsed or database stayed locked
            StorageError: Any other SQLite failure
        """
        deadline = self.operation_timeout if timeout is None else timeout
        guard = _Deadline(operation, deadline)

        def call() -> T:
            if guard.expired():
                raise guard.error()
            with self._get_connection(guard) as conn:
                return work(conn)

        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, call)
        try:
            try:
                return await asyncio.wait_for(asyncio.shield(future), deadline)
            except asyncio.TimeoutError:
                if guard.abandon():
                    future.add_done_callback(_consume_result)
                    raise guard.error() from None
                # The commit started before the deadline; its outcome stands
                return await future
            except asyncio.CancelledError:
                guard.abandon()
                future.add_done_callback(_consume_result)
                raise
        except sqlite3.OperationalError as e:
            message = str(e).lower()
            if guard.expired() and (
                "interrupted" in message or "locked" in message or "busy" in message
            ):
                raise guard.error() from e
            if "locked" in message or "busy" in message:
                raise StorageTimeoutError(
                    f"{operation} could not acquire the database lock: {e}",
                    operation=operation,
                    timeout=self.busy_timeout_ms / 1000.0,
                ) from e
            raise StorageError(f"{operation} failed: {e}", operation=operation) from e
        except sqlite3.Error as e:
            raise StorageError(f"{operation} failed: {e}", operation=operation) from e

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create database schema."""
        conn.executescript("""
            -- Schema version tracking
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            -- Catalog
            CREATE TABLE IF NOT EXISTS bundles (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL UNIQUE,
                display_name TEXT NOT NULL,
                created INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS applications (
                id TEXT PRIMARY KEY,
                bundle_id TEXT NOT NULL REFERENCES bundles(id) ON DELETE CASCADE,
                name TEXT NOT NULL,
                display_name TEXT NOT NULL,
                created INTEGER NOT NULL,
                UNIQUE (bundle_id, name)
            );

            CREATE TABLE IF NOT EXISTS event_types (
                id TEXT PRIMARY KEY,
                application_id TEXT NOT NULL REFERENCES applications(id) ON DELETE CASCADE,
                name TEXT NOT NULL,
                display_name TEXT NOT NULL,
                description TEXT,
                UNIQUE (application_id, name)
            );

            -- Endpoints
            CREATE TABLE IF NOT EXISTS endpoints (
                id TEXT PRIMARY KEY,
                account_id TEXT NOT NULL,
                name TEXT NOT NULL,
                description TEXT,
                endpoint_type TEXT NOT NULL,
                enabled INTEGER NOT NULL DEFAULT 1,
                properties_json TEXT NOT NULL DEFAULT '{}',
                created INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_endpoints_type ON endpoints(account_id, endpoint_type);

            -- Behavior groups
            CREATE TABLE IF NOT EXISTS behavior_groups (
                id TEXT PRIMARY KEY,
                account_id TEXT NOT NULL,
                bundle_id TEXT NOT NULL REFERENCES bundles(id) ON DELETE CASCADE,
                display_name TEXT NOT NULL,
                created INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_behavior_groups_bundle
                ON behavior_groups(account_id, bundle_id);

            CREATE TABLE IF NOT EXISTS behavior_group_actions (
                behavior_group_id TEXT NOT NULL
                    REFERENCES behavior_groups(id) ON DELETE CASCADE,
                endpoint_id TEXT NOT NULL REFERENCES endpoints(id) ON DELETE CASCADE,
                position INTEGER NOT NULL,
                created INTEGER NOT NULL,
                PRIMARY KEY (behavior_group_id, position),
                UNIQUE (behavior_group_id, endpoint_id)
            );

            CREATE INDEX IF NOT EXISTS idx_actions_endpoint
                ON behavior_group_actions(endpoint_id);

            -- Event type <-> behavior group links
            CREATE TABLE IF NOT EXISTS event_type_behaviors (
                event_type_id TEXT NOT NULL REFERENCES event_types(id) ON DELETE CASCADE,
                behavior_group_id TEXT NOT NULL
                    REFERENCES behavior_groups(id) ON DELETE CASCADE,
                created INTEGER NOT NULL,
                PRIMARY KEY (event_type_id, behavior_group_id)
            );

            CREATE INDEX IF NOT EXISTS idx_event_type_behaviors_group
                ON event_type_behaviors(behavior_group_id);

            -- Legacy event type <-> endpoint links
            CREATE TABLE IF NOT EXISTS endpoint_targets (
                account_id TEXT NOT NULL,
                event_type_id TEXT NOT NULL REFERENCES event_types(id) ON DELETE CASCADE,
                endpoint_id TEXT NOT NULL REFERENCES endpoints(id) ON DELETE CASCADE,
                created INTEGER NOT NULL,
                PRIMARY KEY (account_id, event_type_id, endpoint_id)
            );

            CREATE INDEX IF NOT EXISTS idx_endpoint_targets_endpoint
                ON endpoint_targets(account_id, endpoint_id);

            -- Legacy default endpoint set
            CREATE TABLE IF NOT EXISTS endpoint_defaults (
                account_id TEXT NOT NULL,
                endpoint_id TEXT NOT NULL REFERENCES endpoints(id) ON DELETE CASCADE,
                created INTEGER NOT NULL,
                PRIMARY KEY (account_id, endpoint_id)
            );

            -- Record schema version
            INSERT OR IGNORE INTO schema_version (version, applied_at)
            VALUES (1, strftime('%s', 'now') * 1000);
        """)

    async def initialize(self) -> None:
        """Create the database file and schema if they don't exist."""

        def work(conn: sqlite3.Connection) -> None:
            self._create_schema(conn)

        await self._run("initialize", work)
        logger.info(f"Initialized notifications database: {self.db_path}")

    # --- Catalog ---

    async def create_bundle(
        self,
        name: str,
        display_name: str,
        bundle_id: str | None = None,
        timeout: float | None = None,
    ) -> Bundle:
        """Register a bundle in the catalog."""
        bundle = Bundle(id=bundle_id or str(uuid.uuid4()), name=name, display_name=display_name)

        def work(conn: sqlite3.Connection) -> None:
            conn.execute(
                "INSERT INTO bundles (id, name, display_name, created) VALUES (?, ?, ?, ?)",
                (bundle.id, name, display_name, _now_ms()),
            )

        await self._run("create_bundle", work, timeout)
        return bundle

    async def create_application(
        self,
        bundle_id: str,
        name: str,
        display_name: str,
        application_id: str | None = None,
        timeout: float | None = None,
    ) -> Application:
        """Register an application under a bundle."""
        application = Application(
            id=application_id or str(uuid.uuid4()),
            bundle_id=bundle_id,
            name=name,
            display_name=display_name,
        )

        def work(conn: sqlite3.Connection) -> None:
            conn.execute(
                """
                INSERT INTO applications (id, bundle_id, name, display_name, created)
                VALUES (?, ?, ?, ?, ?)
                """,
                (application.id, bundle_id, name, display_name, _now_ms()),
            )

        await self._run("create_application", work, timeout)
        return application

    async def create_event_type(
        self,
        application_id: str,
        name: str,
        display_name: str,
        description: str | None = None,
        event_type_id: str | None = None,
        timeout: float | None = None,
    ) -> EventType:
        """Register an event type under an application."""
        et_id = event_type_id or str(uuid.uuid4())

        def work(conn: sqlite3.Connection) -> EventType:
            conn.execute(
                """
                INSERT INTO event_types (id, application_id, name, display_name, description)
                VALUES (?, ?, ?, ?, ?)
                """,
                (et_id, application_id, name, display_name, description),
            )
            row = conn.execute(
                f"""
                SELECT {_EVENT_TYPE_COLUMNS} FROM event_types et
                JOIN applications a ON a.id = et.application_id
                WHERE et.id = ?
                """,
                (et_id,),
            ).fetchone()
            return _row_to_event_type(row)

        return await self._run("create_event_type", work, timeout)

    async def get_event_types(
        self,
        application_ids: Sequence[str] | None = None,
        bundle_id: str | None = None,
        limit: int = 100,
        offset: int = 0,
        timeout: float | None = None,
    ) -> list[EventType]:
        """List catalog event types, optionally filtered by applications or bundle."""
        query = f"""
            SELECT {_EVENT_TYPE_COLUMNS} FROM event_types et
            JOIN applications a ON a.id = et.application_id
            WHERE 1 = 1
        """
        params: list[Any] = []

        if application_ids:
            query += f" AND a.id IN ({_placeholders(len(application_ids))})"
            params.extend(application_ids)
        if bundle_id is not None:
            query += " AND a.bundle_id = ?"
            params.append(bundle_id)

        query += " ORDER BY a.name, et.name LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        def work(conn: sqlite3.Connection) -> list[EventType]:
            return [_row_to_event_type(row) for row in conn.execute(query, params).fetchall()]

        return await self._run("get_event_types", work, timeout)

    async def get_applications(
        self,
        bundle_name: str | None = None,
        timeout: float | None = None,
    ) -> list[Application]:
        """List applications, optionally restricted to one bundle by name."""

        def work(conn: sqlite3.Connection) -> list[Application]:
            if bundle_name is not None:
                cursor = conn.execute(
                    """
                    SELECT a.* FROM applications a
                    JOIN bundles b ON b.id = a.bundle_id
                    WHERE b.name = ?
                    ORDER BY a.name
                    """,
                    (bundle_name,),
                )
            else:
                cursor = conn.execute("SELECT * FROM applications ORDER BY name")
            return [
                Application(
                    id=row["id"],
                    bundle_id=row["bundle_id"],
                    name=row["name"],
                    display_name=row["display_name"],
                )
                for row in cursor.fetchall()
            ]

        return await self._run("get_applications", work, timeout)

    async def get_bundles(self, timeout: float | None = None) -> list[Bundle]:
        """List all bundles."""

        def work(conn: sqlite3.Connection) -> list[Bundle]:
            cursor = conn.execute("SELECT * FROM bundles ORDER BY name")
            return [
                Bundle(id=row["id"], name=row["name"], display_name=row["display_name"])
                for row in cursor.fetchall()
            ]

        return await self._run("get_bundles", work, timeout)

    # --- Endpoints ---

    async def create_endpoint(
        self,
        account_id: str,
        name: str,
        endpoint_type: EndpointType,
        properties: dict[str, Any] | None = None,
        description: str | None = None,
        enabled: bool = True,
        endpoint_id: str | None = None,
        timeout: float | None = None,
    ) -> Endpoint:
        """Create an endpoint owned by a tenant."""
        endpoint = Endpoint(
            id=endpoint_id or str(uuid.uuid4()),
            account_id=account_id,
            name=name,
            type=endpoint_type,
            enabled=enabled,
            description=description,
            created=_now_ms(),
            properties=properties or {},
        )

        def work(conn: sqlite3.Connection) -> None:
            conn.execute(
                """
                INSERT INTO endpoints (id, account_id, name, description, endpoint_type,
                                       enabled, properties_json, created)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    endpoint.id,
                    account_id,
                    name,
                    description,
                    endpoint_type.value,
                    int(enabled),
                    json.dumps(endpoint.properties),
                    endpoint.created,
                ),
            )

        await self._run("create_endpoint", work, timeout)

        logger.debug(
            "Created endpoint",
            extra={"account_id": account_id, "endpoint_id": endpoint.id, "type": endpoint_type.value},
        )
        return endpoint

    async def get_endpoint(
        self,
        account_id: str,
        endpoint_id: str,
        timeout: float | None = None,
    ) -> Endpoint | None:
        """Get an endpoint without its properties."""

        def work(conn: sqlite3.Connection) -> Endpoint | None:
            row = conn.execute(
                f"SELECT {_ENDPOINT_COLUMNS} FROM endpoints e WHERE e.account_id = ? AND e.id = ?",
                (account_id, endpoint_id),
            ).fetchone()
            return _row_to_endpoint(row) if row else None

        return await self._run("get_endpoint", work, timeout)

    async def load_endpoint_properties(
        self,
        endpoints: Sequence[Endpoint],
        timeout: float | None = None,
    ) -> None:
        """Populate ``properties`` on the given endpoints in place.

        Properties are read in one query per call. An endpoint id appearing
        several times in the input receives the same payload on each object.
        """
        if not endpoints:
            return
        ids = sorted({endpoint.id for endpoint in endpoints})

        def work(conn: sqlite3.Connection) -> dict[tuple[str, str], dict[str, Any]]:
            cursor = conn.execute(
                f"""
                SELECT id, account_id, properties_json FROM endpoints
                WHERE id IN ({_placeholders(len(ids))})
                """,
                ids,
            )
            return {
                (row["account_id"], row["id"]): json.loads(row["properties_json"])
                for row in cursor.fetchall()
            }

        loaded = await self._run("load_endpoint_properties", work, timeout)
        for endpoint in endpoints:
            properties = loaded.get((endpoint.account_id, endpoint.id))
            if properties is not None:
                endpoint.properties = properties

    # --- Legacy event type <-> endpoint links ---

    async def event_types_linked_to_endpoint(
        self,
        account_id: str,
        endpoint_id: str,
        timeout: float | None = None,
    ) -> list[EventType]:
        """Event types linked to an endpoint through the legacy link table."""

        def work(conn: sqlite3.Connection) -> list[EventType]:
            cursor = conn.execute(
                f"""
                SELECT {_EVENT_TYPE_COLUMNS} FROM endpoint_targets t
                JOIN event_types et ON et.id = t.event_type_id
                JOIN applications a ON a.id = et.application_id
                WHERE t.account_id = ? AND t.endpoint_id = ?
                ORDER BY a.name, et.name
                """,
                (account_id, endpoint_id),
            )
            return [_row_to_event_type(row) for row in cursor.fetchall()]

        return await self._run("event_types_linked_to_endpoint", work, timeout)

    async def link_event_type_endpoint(
        self,
        account_id: str,
        endpoint_id: str,
        event_type_id: str,
        timeout: float | None = None,
    ) -> bool:
        """Create a legacy link. Linking twice is a no-op.

        Returns:
            False if the endpoint is not in the tenant or the event type is unknown
        """

        def work(conn: sqlite3.Connection) -> bool:
            with self._transaction(conn):
                endpoint = conn.execute(
                    "SELECT 1 FROM endpoints WHERE account_id = ? AND id = ?",
                    (account_id, endpoint_id),
                ).fetchone()
                event_type = conn.execute(
                    "SELECT 1 FROM event_types WHERE id = ?", (event_type_id,)
                ).fetchone()
                if not endpoint or not event_type:
                    return False
                conn.execute(
                    """
                    INSERT OR IGNORE INTO endpoint_targets
                    (account_id, event_type_id, endpoint_id, created)
                    VALUES (?, ?, ?, ?)
                    """,
                    (account_id, event_type_id, endpoint_id, _now_ms()),
                )
                return True

        return await self._run("link_event_type_endpoint", work, timeout)

    async def unlink_event_type_endpoint(
        self,
        account_id: str,
        endpoint_id: str,
        event_type_id: str,
        timeout: float | None = None,
    ) -> bool:
        """Remove a legacy link.

        Returns:
            True if a link existed
        """

        def work(conn: sqlite3.Connection) -> bool:
            cursor = conn.execute(
                """
                DELETE FROM endpoint_targets
                WHERE account_id = ? AND endpoint_id = ? AND event_type_id = ?
                """,
                (account_id, endpoint_id, event_type_id),
            )
            return cursor.rowcount > 0

        return await self._run("unlink_event_type_endpoint", work, timeout)

    async def endpoints_linked_to_event_type(
        self,
        account_id: str,
        event_type_id: str,
        limit: int = 100,
        offset: int = 0,
        timeout: float | None = None,
    ) -> list[Endpoint]:
        """Endpoints linked to an event type through the legacy link table."""

        def work(conn: sqlite3.Connection) -> list[Endpoint]:
            cursor = conn.execute(
                f"""
                SELECT {_ENDPOINT_COLUMNS} FROM endpoint_targets t
                JOIN endpoints e ON e.id = t.endpoint_id AND e.account_id = t.account_id
                WHERE t.account_id = ? AND t.event_type_id = ?
                ORDER BY e.created, e.id
                LIMIT ? OFFSET ?
                """,
                (account_id, event_type_id, limit, offset),
            )
            return [_row_to_endpoint(row) for row in cursor.fetchall()]

        return await self._run("endpoints_linked_to_event_type", work, timeout)

    # --- Legacy default endpoints ---

    async def list_default_endpoints(
        self,
        account_id: str,
        timeout: float | None = None,
    ) -> list[Endpoint]:
        """Endpoints in the tenant's default set, in insertion order."""

        def work(conn: sqlite3.Connection) -> list[Endpoint]:
            cursor = conn.execute(
                f"""
                SELECT {_ENDPOINT_COLUMNS} FROM endpoint_defaults d
                JOIN endpoints e ON e.id = d.endpoint_id AND e.account_id = d.account_id
                WHERE d.account_id = ?
                ORDER BY d.created, e.id
                """,
                (account_id,),
            )
            return [_row_to_endpoint(row) for row in cursor.fetchall()]

        return await self._run("list_default_endpoints", work, timeout)

    async def is_default_member(
        self,
        account_id: str,
        endpoint_id: str,
        timeout: float | None = None,
    ) -> bool:
        """Check if an endpoint is in the tenant's default set."""

        def work(conn: sqlite3.Connection) -> bool:
            row = conn.execute(
                "SELECT 1 FROM endpoint_defaults WHERE account_id = ? AND endpoint_id = ?",
                (account_id, endpoint_id),
            ).fetchone()
            return row is not None

        return await self._run("is_default_member", work, timeout)

    async def add_default_member(
        self,
        account_id: str,
        endpoint_id: str,
        timeout: float | None = None,
    ) -> bool:
        """Add an endpoint to the default set. Adding twice is a no-op.

        Returns:
            False if the endpoint is not in the tenant
        """

        def work(conn: sqlite3.Connection) -> bool:
            with self._transaction(conn):
                row = conn.execute(
                    "SELECT 1 FROM endpoints WHERE account_id = ? AND id = ?",
                    (account_id, endpoint_id),
                ).fetchone()
                if not row:
                    return False
                conn.execute(
                    """
                    INSERT OR IGNORE INTO endpoint_defaults (account_id, endpoint_id, created)
                    VALUES (?, ?, ?)
                    """,
                    (account_id, endpoint_id, _now_ms()),
                )
                return True

        return await self._run("add_default_member", work, timeout)

    async def remove_default_member(
        self,
        account_id: str,
        endpoint_id: str,
        timeout: float | None = None,
    ) -> bool:
        """Remove an endpoint from the default set.

        Returns:
            True if the endpoint was a member
        """

        def work(conn: sqlite3.Connection) -> bool:
            cursor = conn.execute(
                "DELETE FROM endpoint_defaults WHERE account_id = ? AND endpoint_id = ?",
                (account_id, endpoint_id),
            )
            return cursor.rowcount > 0

        return await self._run("remove_default_member", work, timeout)

    # --- Behavior groups ---

    async def create_behavior_group(
        self,
        account_id: str,
        bundle_id: str,
        display_name: str,
        behavior_group_id: str | None = None,
        timeout: float | None = None,
    ) -> BehaviorGroup:
        """Create an empty behavior group.

        Raises:
            NotFoundError: If the bundle does not exist
        """
        group = BehaviorGroup(
            id=behavior_group_id or str(uuid.uuid4()),
            account_id=account_id,
            bundle_id=bundle_id,
            display_name=display_name,
            created=_now_ms(),
            actions=[],
        )

        def work(conn: sqlite3.Connection) -> None:
            with self._transaction(conn):
                row = conn.execute("SELECT 1 FROM bundles WHERE id = ?", (bundle_id,)).fetchone()
                if not row:
                    raise NotFoundError("Bundle", bundle_id)
                conn.execute(
                    """
                    INSERT INTO behavior_groups (id, account_id, bundle_id, display_name, created)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (group.id, account_id, bundle_id, display_name, group.created),
                )

        await self._run("create_behavior_group", work, timeout)
        return group

    async def update_behavior_group(
        self,
        account_id: str,
        behavior_group_id: str,
        display_name: str,
        timeout: float | None = None,
    ) -> bool:
        """Rename a behavior group.

        Returns:
            False if the group does not exist in the tenant
        """

        def work(conn: sqlite3.Connection) -> bool:
            cursor = conn.execute(
                "UPDATE behavior_groups SET display_name = ? WHERE account_id = ? AND id = ?",
                (display_name, account_id, behavior_group_id),
            )
            return cursor.rowcount > 0

        return await self._run("update_behavior_group", work, timeout)

    async def delete_behavior_group(
        self,
        account_id: str,
        behavior_group_id: str,
        timeout: float | None = None,
    ) -> bool:
        """Delete a behavior group, its actions and its event type links.

        Returns:
            False if the group does not exist in the tenant
        """

        def work(conn: sqlite3.Connection) -> bool:
            with self._transaction(conn):
                cursor = conn.execute(
                    "DELETE FROM behavior_groups WHERE account_id = ? AND id = ?",
                    (account_id, behavior_group_id),
                )
                return cursor.rowcount > 0

        return await self._run("delete_behavior_group", work, timeout)

    async def get_behavior_group(
        self,
        account_id: str,
        behavior_group_id: str,
        timeout: float | None = None,
    ) -> BehaviorGroup | None:
        """Get a behavior group with its actions."""

        def work(conn: sqlite3.Connection) -> BehaviorGroup | None:
            row = conn.execute(
                "SELECT * FROM behavior_groups WHERE account_id = ? AND id = ?",
                (account_id, behavior_group_id),
            ).fetchone()
            if not row:
                return None
            group = _row_to_behavior_group(row)
            group.actions = self._fetch_actions(conn, account_id, [group.id]).get(group.id, [])
            return group

        return await self._run("get_behavior_group", work, timeout)

    async def find_behavior_groups_by_bundle(
        self,
        account_id: str,
        bundle_id: str,
        timeout: float | None = None,
    ) -> list[BehaviorGroup]:
        """The tenant's behavior groups of one bundle, with their actions."""

        def work(conn: sqlite3.Connection) -> list[BehaviorGroup]:
            cursor = conn.execute(
                """
                SELECT * FROM behavior_groups
                WHERE account_id = ? AND bundle_id = ?
                ORDER BY created, id
                """,
                (account_id, bundle_id),
            )
            groups = [_row_to_behavior_group(row) for row in cursor.fetchall()]
            actions = self._fetch_actions(conn, account_id, [g.id for g in groups])
            for group in groups:
                group.actions = actions.get(group.id, [])
            return groups

        return await self._run("find_behavior_groups_by_bundle", work, timeout)

    async def find_behavior_groups_by_event_type(
        self,
        account_id: str,
        event_type_id: str,
        limit: int = 100,
        offset: int = 0,
        timeout: float | None = None,
    ) -> list[BehaviorGroup]:
        """The tenant's behavior groups linked to an event type (without actions)."""

        def work(conn: sqlite3.Connection) -> list[BehaviorGroup]:
            cursor = conn.execute(
                """
                SELECT bg.* FROM event_type_behaviors etb
                JOIN behavior_groups bg ON bg.id = etb.behavior_group_id
                WHERE bg.account_id = ? AND etb.event_type_id = ?
                ORDER BY bg.created, bg.id
                LIMIT ? OFFSET ?
                """,
                (account_id, event_type_id, limit, offset),
            )
            return [_row_to_behavior_group(row) for row in cursor.fetchall()]

        return await self._run("find_behavior_groups_by_event_type", work, timeout)

    def _fetch_actions(
        self,
        conn: sqlite3.Connection,
        account_id: str,
        behavior_group_ids: Sequence[str],
    ) -> dict[str, list[BehaviorGroupAction]]:
        """Load the ordered actions of several behavior groups in one query."""
        if not behavior_group_ids:
            return {}
        cursor = conn.execute(
            f"""
            SELECT bga.behavior_group_id, bga.position, bga.created, {_ENDPOINT_COLUMNS}
            FROM behavior_group_actions bga
            JOIN endpoints e ON e.id = bga.endpoint_id
            WHERE e.account_id = ?
            AND bga.behavior_group_id IN ({_placeholders(len(behavior_group_ids))})
            ORDER BY bga.behavior_group_id, bga.position
            """,
            [account_id, *behavior_group_ids],
        )
        actions: dict[str, list[BehaviorGroupAction]] = {}
        for row in cursor.fetchall():
            actions.setdefault(row["behavior_group_id"], []).append(
                BehaviorGroupAction(
                    behavior_group_id=row["behavior_group_id"],
                    endpoint=_row_to_endpoint(row),
                    position=row["position"],
                    created=row["created"],
                )
            )
        return actions

    async def get_behavior_group_actions(
        self,
        account_id: str,
        behavior_group_id: str,
        timeout: float | None = None,
    ) -> list[BehaviorGroupAction]:
        """Ordered actions of one behavior group (empty if unknown)."""

        def work(conn: sqlite3.Connection) -> list[BehaviorGroupAction]:
            return self._fetch_actions(conn, account_id, [behavior_group_id]).get(
                behavior_group_id, []
            )

        return await self._run("get_behavior_group_actions", work, timeout)

    async def replace_behavior_group_actions(
        self,
        account_id: str,
        behavior_group_id: str,
        endpoint_ids: Sequence[str],
        timeout: float | None = None,
    ) -> bool:
        """Atomically replace the whole action list of a behavior group.

        Every prior action is removed and one action per endpoint id is
        inserted, positions 0..n-1 in input order. Either all of it is
        committed or nothing is.

        Args:
            account_id: Tenant identifier
            behavior_group_id: Behavior group identifier
            endpoint_ids: Ordered, duplicate free endpoint identifiers

        Returns:
            False if the behavior group does not exist in the tenant

        Raises:
            ValidationError: If an endpoint is not in the tenant (nothing written)
        """
        ids = list(endpoint_ids)

        def work(conn: sqlite3.Connection) -> bool:
            with self._transaction(conn):
                row = conn.execute(
                    "SELECT 1 FROM behavior_groups WHERE account_id = ? AND id = ?",
                    (account_id, behavior_group_id),
                ).fetchone()
                if not row:
                    return False

                if ids:
                    cursor = conn.execute(
                        f"""
                        SELECT id FROM endpoints
                        WHERE account_id = ? AND id IN ({_placeholders(len(ids))})
                        """,
                        [account_id, *ids],
                    )
                    known = {r["id"] for r in cursor.fetchall()}
                    missing = [endpoint_id for endpoint_id in ids if endpoint_id not in known]
                    if missing:
                        raise ValidationError(
                            "The endpoints identifiers list contains unknown endpoints",
                            field_name="endpoint_ids",
                            errors=missing,
                        )

                conn.execute(
                    "DELETE FROM behavior_group_actions WHERE behavior_group_id = ?",
                    (behavior_group_id,),
                )
                now = _now_ms()
                conn.executemany(
                    """
                    INSERT INTO behavior_group_actions
                    (behavior_group_id, endpoint_id, position, created)
                    VALUES (?, ?, ?, ?)
                    """,
                    [
                        (behavior_group_id, endpoint_id, position, now)
                        for position, endpoint_id in enumerate(ids)
                    ],
                )

            return True

        updated = await self._run("replace_behavior_group_actions", work, timeout)

        logger.debug(
            "Replaced behavior group actions",
            extra={
                "account_id": account_id,
                "behavior_group_id": behavior_group_id,
                "actions": len(ids),
                "updated": updated,
            },
        )
        return updated

    # --- Event type <-> behavior group links ---

    async def event_types_linked_to_behavior_group(
        self,
        account_id: str,
        behavior_group_id: str,
        timeout: float | None = None,
    ) -> list[EventType]:
        """Event types linked to one of the tenant's behavior groups."""

        def work(conn: sqlite3.Connection) -> list[EventType]:
            cursor = conn.execute(
                f"""
                SELECT {_EVENT_TYPE_COLUMNS} FROM event_type_behaviors etb
                JOIN behavior_groups bg ON bg.id = etb.behavior_group_id
                JOIN event_types et ON et.id = etb.event_type_id
                JOIN applications a ON a.id = et.application_id
                WHERE bg.account_id = ? AND bg.id = ?
                ORDER BY a.name, et.name
                """,
                (account_id, behavior_group_id),
            )
            return [_row_to_event_type(row) for row in cursor.fetchall()]

        return await self._run("event_types_linked_to_behavior_group", work, timeout)

    async def event_types_linked_through_actions(
        self,
        account_id: str,
        endpoint_id: str,
        timeout: float | None = None,
    ) -> list[EventType]:
        """Distinct event types linked to any behavior group containing the endpoint."""

        def work(conn: sqlite3.Connection) -> list[EventType]:
            cursor = conn.execute(
                f"""
                SELECT DISTINCT {_EVENT_TYPE_COLUMNS} FROM behavior_group_actions bga
                JOIN behavior_groups bg ON bg.id = bga.behavior_group_id
                JOIN event_type_behaviors etb ON etb.behavior_group_id = bg.id
                JOIN event_types et ON et.id = etb.event_type_id
                JOIN applications a ON a.id = et.application_id
                WHERE bg.account_id = ? AND bga.endpoint_id = ?
                ORDER BY app_name, et_name
                """,
                (account_id, endpoint_id),
            )
            return [_row_to_event_type(row) for row in cursor.fetchall()]

        return await self._run("event_types_linked_through_actions", work, timeout)

    async def link_event_type_behavior_group(
        self,
        account_id: str,
        event_type_id: str,
        behavior_group_id: str,
        timeout: float | None = None,
    ) -> bool:
        """Link a behavior group to an event type. Linking twice is a no-op.

        Returns:
            False if the group is not in the tenant or the event type is unknown
        """

        def work(conn: sqlite3.Connection) -> bool:
            with self._transaction(conn):
                group = conn.execute(
                    "SELECT 1 FROM behavior_groups WHERE account_id = ? AND id = ?",
                    (account_id, behavior_group_id),
                ).fetchone()
                event_type = conn.execute(
                    "SELECT 1 FROM event_types WHERE id = ?", (event_type_id,)
                ).fetchone()
                if not group or not event_type:
                    return False
                conn.execute(
                    """
                    INSERT OR IGNORE INTO event_type_behaviors
                    (event_type_id, behavior_group_id, created)
                    VALUES (?, ?, ?)
                    """,
                    (event_type_id, behavior_group_id, _now_ms()),
                )
                return True

        return await self._run("link_event_type_behavior_group", work, timeout)

    async def unlink_event_type_behavior_group(
        self,
        account_id: str,
        event_type_id: str,
        behavior_group_id: str,
        timeout: float | None = None,
    ) -> bool:
        """Remove one event type <-> behavior group link.

        Returns:
            True if a link existed
        """

        def work(conn: sqlite3.Connection) -> bool:
            cursor = conn.execute(
                """
                DELETE FROM event_type_behaviors
                WHERE event_type_id = ? AND behavior_group_id IN (
                    SELECT id FROM behavior_groups WHERE account_id = ? AND id = ?
                )
                """,
                (event_type_id, account_id, behavior_group_id),
            )
            return cursor.rowcount > 0

        return await self._run("unlink_event_type_behavior_group", work, timeout)

    async def delete_event_type_behavior_group_links(
        self,
        account_id: str,
        event_type_id: str,
        timeout: float | None = None,
    ) -> bool:
        """Remove every link between an event type and the tenant's behavior groups.

        Returns:
            True if at least one link existed
        """

        def work(conn: sqlite3.Connection) -> bool:
            with self._transaction(conn):
                cursor = conn.execute(
                    """
                    DELETE FROM event_type_behaviors
                    WHERE event_type_id = ? AND behavior_group_id IN (
                        SELECT id FROM behavior_groups WHERE account_id = ?
                    )
                    """,
                    (event_type_id, account_id),
                )
                return cursor.rowcount > 0

        return await self._run("delete_event_type_behavior_group_links", work, timeout)
