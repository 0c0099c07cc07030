#!/usr/bin/env python3
"""
Schema setup for the tracker database.

Every `*.sql` file under `laundry_tracker/migrations/` runs once, in file-name
order. Applied files are remembered in `migrations_applied`, so calling
`run_migrations` on every store start-up is safe.

    python -m laundry_tracker.run_migrations [db_path]
"""

import os
import sqlite3
from pathlib import Path

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


def default_db_path():
    return os.getenv("DB_PATH", "./data/laundry.db")


def _ensure_ledger(conn):
    conn.execute("""
        CREATE TABLE IF NOT EXISTS migrations_applied (
            migration_file TEXT PRIMARY KEY,
            applied_utc TEXT NOT NULL DEFAULT (datetime('now'))
        )
    """)
    conn.commit()


def _already_applied(conn):
    return {row[0] for row in conn.execute("SELECT migration_file FROM migrations_applied")}


def pending_files(migrations_dir, applied):
    """SQL files in `migrations_dir` not yet recorded in `applied`, sorted by name."""
    folder = Path(migrations_dir)
    if not folder.exists():
        return []
    return [f for f in sorted(folder.glob("*.sql")) if f.name not in applied]


def _apply(conn, path, verbose):
    conn.executescript(path.read_text())
    conn.execute("INSERT INTO migrations_applied (migration_file) VALUES (?)", (path.name,))
    conn.commit()
    if verbose:
        print(f"  ✅ {path.name}")


def run_migrations(db_path=None, migrations_dir=None, verbose=True):
    """Bring `db_path` up to date and return how many files were applied.

    The database's parent directory is created if missing. With
    `verbose=False` nothing is printed; the store uses that on start-up.
    """
    db_path = db_path or default_db_path()
    migrations_dir = migrations_dir or MIGRATIONS_DIR
    if str(db_path) != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        _ensure_ledger(conn)
        todo = pending_files(migrations_dir, _already_applied(conn))
        if verbose:
            print(f"🧺 {db_path}: {len(todo)} pending migration(s)")
        for path in todo:
            _apply(conn, path, verbose)
        return len(todo)
    finally:
        conn.close()


if __name__ == "__main__":
    import sys

    target = sys.argv[1] if len(sys.argv) > 1 else None
    try:
        run_migrations(db_path=target)
    except (OSError, sqlite3.Error) as e:
        print(f"❌ Migration failed: {e}")
        sys.exit(1)
