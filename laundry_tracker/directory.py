import json
import os
import sqlite3
from typing import List, Optional

from .errors import NotFoundError
from .schemas import Hotel, UserProfile

DB = os.getenv("DB_PATH", "./data/laundry.db")


class Directory:
    """Read-only lookups of hotels and users, used to address notifications."""

    def __init__(self, db_path: str = DB):
        self.db_path = db_path

    def _conn(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _user(self, row) -> UserProfile:
        data = dict(row)
        data["assigned_hotels"] = json.loads(data.get("assigned_hotels") or "[]")
        data.pop("created_utc", None)
        return UserProfile(**data)

    def get_hotel(self, hotel_id: str) -> Hotel:
        conn = self._conn()
        try:
            row = conn.execute("SELECT id, name, address, manager_id FROM hotels WHERE id=?",
                               (hotel_id,)).fetchone()
        finally:
            conn.close()
        if row is None:
            raise NotFoundError(f"Hotel {hotel_id} not found", reason="hotel_not_found")
        return Hotel(**dict(row))

    def get_user(self, uid: str) -> UserProfile:
        conn = self._conn()
        try:
            row = conn.execute("SELECT * FROM users WHERE uid=?", (uid,)).fetchone()
        finally:
            conn.close()
        if row is None:
            raise NotFoundError(f"User {uid} not found", reason="user_not_found")
        return self._user(row)

    def hotel_name(self, hotel_id: str) -> str:
        try:
            return self.get_hotel(hotel_id).name
        except NotFoundError:
            return "Unknown Hotel"

    def user_name(self, uid: Optional[str], fallback: str = "Driver") -> str:
        if not uid:
            return fallback
        try:
            return self.get_user(uid).name
        except NotFoundError:
            return fallback

    def users_with_role(self, role: str) -> List[UserProfile]:
        conn = self._conn()
        try:
            rows = conn.execute("SELECT * FROM users WHERE role=? ORDER BY uid", (role,)).fetchall()
        finally:
            conn.close()
        return [self._user(r) for r in rows]

    def admin_uids(self) -> List[str]:
        return [u.uid for u in self.users_with_role("admin")]

    def manager_uids(self, hotel_id: str) -> List[str]:
        # assigned_hotels is stored as a JSON array
        return [u.uid for u in self.users_with_role("hotel_manager") if hotel_id in u.assigned_hotels]

    def count_hotels(self) -> int:
        conn = self._conn()
        try:
            return conn.execute("SELECT COUNT(*) FROM hotels").fetchone()[0]
        finally:
            conn.close()

    def count_role(self, role: str) -> int:
        conn = self._conn()
        try:
            return conn.execute("SELECT COUNT(*) FROM users WHERE role=?", (role,)).fetchone()[0]
        finally:
            conn.close()
