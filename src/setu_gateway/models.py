"""
Data models and database operations for setu-gateway.
"""

import json
import math
import secrets
import sqlite3
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from .errors import PersistenceError
from .schema import CatalogItem, validate


class CatalogStatus(str, Enum):
    """Lifecycle status of a stored catalog."""

    DRAFT = "DRAFT"
    BROADCASTED = "BROADCASTED"
    SOLD = "SOLD"


class NetworkLogType(str, Enum):
    """Types of entries in the network log."""

    OUTGOING_CATALOG = "OUTGOING_CATALOG"
    INCOMING_BID = "INCOMING_BID"


@dataclass
class Farmer:
    """A farmer who lists produce."""

    id: str
    name: str
    created_ts: str
    location_lat_long: str | None = None
    language_pref: str = "hi"
    upi_id: str | None = None


@dataclass
class CatalogRecord:
    """A stored catalog with its lifecycle status."""

    id: str
    farmer_id: str
    item_json: str
    status: str
    created_ts: str
    updated_ts: str | None = None

    @property
    def item(self) -> CatalogItem:
        """Parse and validate item_json."""
        return validate(json.loads(self.item_json))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "farmer_id": self.farmer_id,
            "status": self.status,
            "item": json.loads(self.item_json),
            "created_ts": self.created_ts,
            "updated_ts": self.updated_ts,
        }


@dataclass(frozen=True)
class NetworkLogEntry:
    """An immutable network log record."""

    id: str
    type: str
    payload_json: str
    timestamp: str

    @property
    def payload(self) -> dict:
        """Parse payload_json."""
        return json.loads(self.payload_json)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "type": self.type,
            "payload": self.payload,
            "timestamp": self.timestamp,
        }


@dataclass
class NetworkLogPage:
    """One page of network log entries, newest first."""

    logs: list[NetworkLogEntry] = field(default_factory=list)
    total_count: int = 0
    current_page: int = 1
    page_size: int = 10

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size) if self.page_size else 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "logs": [log.to_dict() for log in self.logs],
            "total_count": self.total_count,
            "total_pages": self.total_pages,
            "current_page": self.current_page,
        }


class GatewayDatabase:
    """Database operations for setu-gateway.

    sqlite errors are re-raised as PersistenceError.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(self.db_path)
            conn.execute("PRAGMA foreign_keys = ON")
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open database {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        return conn

    def _execute(self, sql: str, params: tuple | list = ()) -> None:
        conn = self._connect()
        try:
            conn.execute(sql, params)
            conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Write failed: {e}") from e
        finally:
            conn.close()

    def _fetchall(self, sql: str, params: tuple | list = ()) -> list[sqlite3.Row]:
        conn = self._connect()
        try:
            return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Read failed: {e}") from e
        finally:
            conn.close()

    # -------------------------------------------------------------------------
    # Farmers
    # -------------------------------------------------------------------------

    def create_farmer(
        self,
        name: str,
        location_lat_long: str | None = None,
        language_pref: str = "hi",
        upi_id: str | None = None,
        farmer_id: str | None = None,
    ) -> Farmer:
        """Create a farmer record."""
        farmer = Farmer(
            id=farmer_id or secrets.token_hex(16),
            name=name,
            created_ts=datetime.now(UTC).isoformat(),
            location_lat_long=location_lat_long,
            language_pref=language_pref,
            upi_id=upi_id,
        )
        self._execute(
            """
            INSERT INTO farmers
                (id, name, location_lat_long, language_pref, upi_id, created_ts)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                farmer.id,
                farmer.name,
                farmer.location_lat_long,
                farmer.language_pref,
                farmer.upi_id,
                farmer.created_ts,
            ),
        )
        return farmer

    def get_farmer(self, farmer_id: str) -> Farmer | None:
        """Get a farmer by ID."""
        rows = self._fetchall("SELECT * FROM farmers WHERE id = ?", (farmer_id,))
        return Farmer(**dict(rows[0])) if rows else None

    # -------------------------------------------------------------------------
    # Catalogs
    # -------------------------------------------------------------------------

    def save_catalog(
        self,
        farmer_id: str,
        item: CatalogItem,
        status: CatalogStatus = CatalogStatus.DRAFT,
        catalog_id: str | None = None,
    ) -> str:
        """Store a catalog item and return its ID."""
        catalog_id = catalog_id or secrets.token_hex(16)
        self._execute(
            """
            INSERT INTO catalogs (id, farmer_id, item_json, status, created_ts)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                catalog_id,
                farmer_id,
                item.to_json(),
                status.value,
                datetime.now(UTC).isoformat(),
            ),
        )
        return catalog_id

    def get_catalog(self, catalog_id: str) -> CatalogRecord | None:
        """Get a single catalog by ID."""
        rows = self._fetchall("SELECT * FROM catalogs WHERE id = ?", (catalog_id,))
        return CatalogRecord(**dict(rows[0])) if rows else None

    def get_catalogs_by_farmer(self, farmer_id: str) -> list[CatalogRecord]:
        """Get all catalogs for a farmer, newest first."""
        rows = self._fetchall(
            "SELECT * FROM catalogs WHERE farmer_id = ? ORDER BY created_ts DESC, rowid DESC",
            (farmer_id,),
        )
        return [CatalogRecord(**dict(row)) for row in rows]

    def update_catalog_status(self, catalog_id: str, status: CatalogStatus) -> None:
        """Set the lifecycle status of a catalog."""
        self._execute(
            "UPDATE catalogs SET status = ?, updated_ts = ? WHERE id = ?",
            (status.value, datetime.now(UTC).isoformat(), catalog_id),
        )

    def mark_broadcasted(self, catalog_id: str) -> None:
        """Mark a catalog as broadcast to the network."""
        self.update_catalog_status(catalog_id, CatalogStatus.BROADCASTED)

    # -------------------------------------------------------------------------
    # Network log
    # -------------------------------------------------------------------------

    def append_log(
        self,
        log_type: NetworkLogType,
        payload: dict,
        timestamp: str | None = None,
    ) -> NetworkLogEntry:
        """Append an entry to the network log."""
        entry = NetworkLogEntry(
            id=secrets.token_hex(16),
            type=log_type.value,
            payload_json=json.dumps(payload),
            timestamp=timestamp or datetime.now(UTC).isoformat(),
        )
        self._execute(
            "INSERT INTO network_logs (id, type, payload_json, timestamp) VALUES (?, ?, ?, ?)",
            (entry.id, entry.type, entry.payload_json, entry.timestamp),
        )
        return entry

    def get_network_logs(
        self,
        log_type: NetworkLogType | None = None,
        page: int = 1,
        page_size: int = 10,
    ) -> NetworkLogPage:
        """Get a page of network log entries, newest first."""
        page = max(page, 1)
        where = ""
        params: list[Any] = []
        if log_type is not None:
            where = "WHERE type = ?"
            params.append(log_type.value)

        count_rows = self._fetchall(f"SELECT COUNT(*) FROM network_logs {where}", params)
        rows = self._fetchall(
            f"""
            SELECT id, type, payload_json, timestamp FROM network_logs {where}
            ORDER BY timestamp DESC, rowid DESC
            LIMIT ? OFFSET ?
            """,
            params + [page_size, (page - 1) * page_size],
        )
        return NetworkLogPage(
            logs=[NetworkLogEntry(**dict(row)) for row in rows],
            total_count=count_rows[0][0],
            current_page=page,
            page_size=page_size,
        )
