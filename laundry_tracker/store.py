"""
SQLite persistence for loads and notifications.

Transitions go through `transaction()`, which opens the connection with
BEGIN IMMEDIATE: the write lock is held from the read of the load until the
commit, so two drivers submitting against the same load serialize instead of
both clamping against the same stale snapshot.
"""
import json
import os
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from .errors import NotFoundError
from .run_migrations import run_migrations
from .schemas import Load, LoadItem, Notification

DB = os.getenv("DB_PATH", "./data/laundry.db")
DB_TIMEOUT_S = float(os.getenv("DB_TIMEOUT_S", "5"))

LOAD_COLUMNS = (
    "id", "hotel_id", "driver_id", "status", "items", "dropped_items", "remaining_items",
    "approved_items", "collected_at", "dropped_at", "approved_at", "approved_by", "due_date",
    "pickup_acknowledged", "pickup_remark", "notes", "approval_notes",
)
ITEM_COLUMNS = ("items", "dropped_items", "remaining_items", "approved_items")
TIME_COLUMNS = ("collected_at", "dropped_at", "approved_at", "due_date")


def _ts(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _items_json(items: Optional[List[LoadItem]]) -> Optional[str]:
    if items is None:
        return None
    return json.dumps([i.model_dump() for i in items])


class LoadStore:
    """Load and notification tables. Pass `conn` to run inside an open transaction."""

    def __init__(self, db_path: str = DB, migrate: bool = True):
        self.db_path = db_path
        if migrate:
            run_migrations(db_path, verbose=False)

    def _conn(self):
        conn = sqlite3.connect(self.db_path, timeout=DB_TIMEOUT_S, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def transaction(self):
        conn = self._conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.execute("COMMIT")
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    @contextmanager
    def _use(self, conn=None):
        if conn is not None:
            yield conn
            return
        own = self._conn()
        try:
            yield own
        finally:
            own.close()

    # ----- loads -----

    def _load_params(self, load: Load) -> dict:
        row = load.model_dump(include=set(LOAD_COLUMNS))
        for col in ITEM_COLUMNS:
            row[col] = _items_json(getattr(load, col))
        for col in TIME_COLUMNS:
            row[col] = _ts(getattr(load, col))
        row["pickup_acknowledged"] = 1 if load.pickup_acknowledged else 0
        return row

    def _row_to_load(self, row) -> Load:
        data = dict(row)
        for col in ITEM_COLUMNS:
            data[col] = json.loads(data[col]) if data[col] is not None else None
        for col in TIME_COLUMNS:
            data[col] = _parse_ts(data[col])
        data["pickup_acknowledged"] = bool(data["pickup_acknowledged"])
        return Load(**data)

    def create(self, load: Load, conn=None) -> Load:
        cols = ", ".join(LOAD_COLUMNS)
        marks = ", ".join(f":{c}" for c in LOAD_COLUMNS)
        with self._use(conn) as c:
            c.execute(f"INSERT INTO loads ({cols}) VALUES ({marks})", self._load_params(load))
        return load

    def get(self, load_id: str, conn=None) -> Load:
        with self._use(conn) as c:
            row = c.execute("SELECT * FROM loads WHERE id=?", (load_id,)).fetchone()
        if row is None:
            raise NotFoundError(f"Load {load_id} not found", reason="load_not_found")
        return self._row_to_load(row)

    def update(self, load: Load, conn=None) -> Load:
        """Write every mutable field of the load in one statement; identity and items are left alone."""
        mutable = [c for c in LOAD_COLUMNS if c not in ("id", "hotel_id", "driver_id", "items", "collected_at")]
        sets = ", ".join(f"{c}=:{c}" for c in mutable)
        with self._use(conn) as c:
            cur = c.execute(f"UPDATE loads SET {sets} WHERE id=:id", self._load_params(load))
        if cur.rowcount == 0:
            raise NotFoundError(f"Load {load.id} not found", reason="load_not_found")
        return load

    def query(self, hotel_id: Optional[str] = None, driver_id: Optional[str] = None,
              statuses: Optional[Iterable[str]] = None, conn=None) -> List[Load]:
        where, params = [], []
        if hotel_id:
            where.append("hotel_id=?"); params.append(hotel_id)
        if driver_id:
            where.append("driver_id=?"); params.append(driver_id)
        statuses = list(statuses or [])
        if statuses:
            where.append(f"status IN ({','.join('?' for _ in statuses)})"); params.extend(statuses)
        sql = "SELECT * FROM loads"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY collected_at DESC"
        with self._use(conn) as c:
            rows = c.execute(sql, params).fetchall()
        return [self._row_to_load(r) for r in rows]

    # ----- notifications -----

    def insert_notification(self, n: Notification, conn=None) -> Notification:
        stored = n.model_copy(update={
            "id": n.id or f"ntf-{uuid.uuid4().hex[:12]}",
            "created_at": n.created_at or datetime.now(timezone.utc),
        })
        with self._use(conn) as c:
            c.execute("""INSERT INTO notifications
                (id, target_uid, target_role, type, title, body, load_id, hotel_id, read, created_at)
                VALUES (?,?,?,?,?,?,?,?,?,?)""",
                (stored.id, stored.target_uid, stored.target_role, stored.type, stored.title, stored.body,
                 stored.load_id, stored.hotel_id, 1 if stored.read else 0, _ts(stored.created_at)))
        return stored

    def notification_exists(self, load_id: str, type_: str, conn=None) -> bool:
        with self._use(conn) as c:
            row = c.execute("SELECT 1 FROM notifications WHERE load_id=? AND type=? LIMIT 1",
                            (load_id, type_)).fetchone()
        return row is not None

    def _row_to_notification(self, row) -> Notification:
        data = dict(row)
        data["read"] = bool(data["read"])
        data["created_at"] = _parse_ts(data["created_at"])
        return Notification(**data)

    def notifications_for(self, target_uid: str, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        sql = "SELECT * FROM notifications WHERE target_uid=?"
        if unread_only:
            sql += " AND read=0"
        sql += " ORDER BY created_at DESC, rowid DESC LIMIT ?"
        with self._use() as c:
            rows = c.execute(sql, (target_uid, limit)).fetchall()
        return [self._row_to_notification(r) for r in rows]

    def notifications_for_load(self, load_id: str, type_: Optional[str] = None) -> List[Notification]:
        sql, params = "SELECT * FROM notifications WHERE load_id=?", [load_id]
        if type_:
            sql += " AND type=?"; params.append(type_)
        with self._use() as c:
            rows = c.execute(sql + " ORDER BY rowid", params).fetchall()
        return [self._row_to_notification(r) for r in rows]

    def mark_read(self, notification_id: str) -> None:
        with self._use() as c:
            cur = c.execute("UPDATE notifications SET read=1 WHERE id=?", (notification_id,))
        if cur.rowcount == 0:
            raise NotFoundError(f"Notification {notification_id} not found", reason="notification_not_found")

    def mark_all_read(self, target_uid: str) -> int:
        with self._use() as c:
            cur = c.execute("UPDATE notifications SET read=1 WHERE target_uid=? AND read=0", (target_uid,))
        return cur.rowcount
