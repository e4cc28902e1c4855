"""
Schema migrations for the setu-gateway store.

Migrations are numbered SQL files in this directory (0001_initial.sql,
0002_description.sql, ...) applied in order of their numeric prefix. The
schema_migrations table records which versions a database already has.
"""

import re
import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from ..errors import PersistenceError

MIGRATIONS_DIR = Path(__file__).parent

MIGRATION_FILE_RE = re.compile(r"^(\d+)_(\w+)\.sql$")


@dataclass(frozen=True)
class Migration:
    """One numbered schema change."""

    version: int
    name: str
    path: Path


def get_migrations() -> list[Migration]:
    """Get all migrations sorted by version."""
    found = []
    for path in MIGRATIONS_DIR.glob("*.sql"):
        match = MIGRATION_FILE_RE.match(path.name)
        if match:
            found.append(Migration(int(match.group(1)), match.group(2), path))
    return sorted(found, key=lambda m: m.version)


def get_applied_versions(conn: sqlite3.Connection) -> set[int]:
    """Versions already recorded in schema_migrations (empty for a new store)."""
    try:
        return {row[0] for row in conn.execute("SELECT version FROM schema_migrations")}
    except sqlite3.OperationalError:
        return set()


def apply_migration(conn: sqlite3.Connection, migration: Migration) -> None:
    """Run one migration script and record its version."""
    conn.executescript(migration.path.read_text())
    conn.execute(
        "INSERT INTO schema_migrations (version, applied_ts) VALUES (?, ?)",
        (migration.version, datetime.now(UTC).isoformat()),
    )
    conn.commit()


def run_migrations(db_path: Path, verbose: bool = True) -> list[int]:
    """
    Bring a store up to the latest schema, creating it if needed.

    Returns:
        The versions applied by this call (empty when already current)

    Raises:
        PersistenceError: the store could not be opened or a script failed
    """
    applied = []
    try:
        conn = sqlite3.connect(db_path)
    except sqlite3.Error as e:
        raise PersistenceError(f"Cannot open database {db_path}: {e}") from e

    try:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                version INTEGER PRIMARY KEY,
                applied_ts TEXT NOT NULL
            )
            """
        )
        conn.commit()

        current = get_applied_versions(conn)
        for migration in get_migrations():
            if migration.version in current:
                continue
            if verbose:
                print(f"  Applying migration {migration.version}: {migration.name}")
            apply_migration(conn, migration)
            applied.append(migration.version)
    except sqlite3.Error as e:
        raise PersistenceError(f"Migration of {db_path} failed: {e}") from e
    finally:
        conn.close()

    if verbose and not applied:
        print("  Schema is up to date.")
    return applied


def get_current_version(db_path: Path) -> int:
    """Highest applied schema version, 0 for a missing or empty store."""
    if not db_path.exists():
        return 0

    conn = sqlite3.connect(db_path)
    try:
        return max(get_applied_versions(conn), default=0)
    finally:
        conn.close()


def list_tables(db_path: Path) -> list[str]:
    """Names of the user tables in a store."""
    conn = sqlite3.connect(db_path)
    try:
        rows = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%' "
            "ORDER BY name"
        )
        return [row[0] for row in rows]
    finally:
        conn.close()
