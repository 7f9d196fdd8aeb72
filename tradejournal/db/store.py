"""SQLite data store for the trade journal."""

import json
import sqlite3
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field


class DuplicateRecordError(ValueError):
    """Raised when a unique field (ticker symbol, tag name, email) is reused."""


class RecordNotFoundError(LookupError):
    """Raised when a record does not exist."""

    def __init__(self, collection: str, record_id: int):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"No {collection} record with id {record_id}")


class FindResult(BaseModel):
    """A page of documents plus the total number of matches."""

    docs: list[dict[str, Any]] = Field(default_factory=list)
    total_docs: int = Field(default=0, ge=0)

    model_config = {"frozen": True}


# Column name -> True when the column holds JSON
COLLECTIONS: dict[str, dict[str, bool]] = {
    "tickers": {
        "symbol": False,
        "name": False,
        "description": False,
        "sector": False,
        "tags": True,
        "charts_count": False,
        "trades_count": False,
        "profit_loss": False,
    },
    "tags": {
        "name": False,
        "description": False,
        "color": False,
        "charts_count": False,
    },
    "charts": {
        "ticker": False,
        "timestamp": False,
        "timeframe": False,
        "image": False,
        "annotated_image": False,
        "notes": True,
        "tags": True,
        "measurements": True,
        "nav_index": False,
        "display_title": False,
    },
    "trades": {
        "ticker": False,
        "direction": False,
        "entry_date": False,
        "entry_price": False,
        "shares": False,
        "initial_stop_loss": False,
        "setup_type": False,
        "modified_stops": True,
        "exits": True,
        "status": False,
        "current_price": False,
        "notes": False,
        "related_charts": True,
        "target_position_size": False,
        "position_size": False,
        "risk_amount": False,
        "risk_percent": False,
        "profit_loss_amount": False,
        "profit_loss_percent": False,
        "r_ratio": False,
        "days_held": False,
        "current_metrics": True,
        "normalized_metrics": True,
        "normalization_factor": False,
    },
    "users": {
        "name": False,
        "email": False,
        "preferences": True,
    },
}

_COMPARISONS = {
    "greater_than": ">",
    "less_than": "<",
    "greater_than_equal": ">=",
    "less_than_equal": "<=",
    "not_equals": "!=",
}


def _to_sql(value: Any) -> Any:
    """Convert a Python value to something sqlite3 can bind."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class DataStore:
    """SQLite-based data store for the trade journal.

    Records are plain dictionaries. Nested lists and groups are stored as
    JSON text and decoded on read.
    """

    REQUIRED_TABLES = list(COLLECTIONS)

    def __init__(self, db_path: Path):
        """Initialize the data store.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = db_path
        self._ensure_db_dir()
        self._init_schema()

    def _ensure_db_dir(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        """Initialize database schema on first run."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS tickers (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    symbol TEXT NOT NULL UNIQUE,
                    name TEXT NOT NULL,
                    description TEXT,
                    sector TEXT,
                    tags TEXT NOT NULL DEFAULT '[]',
                    charts_count INTEGER NOT NULL DEFAULT 0,
                    trades_count INTEGER NOT NULL DEFAULT 0,
                    profit_loss REAL NOT NULL DEFAULT 0
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS tags (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    description TEXT,
                    color TEXT NOT NULL DEFAULT '#9E9E9E',
                    charts_count INTEGER NOT NULL DEFAULT 0
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS charts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    ticker INTEGER NOT NULL,
                    timestamp TEXT NOT NULL,
                    timeframe TEXT NOT NULL DEFAULT 'daily',
                    image TEXT,
                    annotated_image TEXT,
                    notes TEXT NOT NULL DEFAULT '{}',
                    tags TEXT NOT NULL DEFAULT '[]',
                    measurements TEXT NOT NULL DEFAULT '[]',
                    nav_index INTEGER,
                    display_title TEXT
                )
            """)
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_charts_ticker ON charts(ticker)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_charts_nav ON charts(nav_index)")

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS trades (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    ticker INTEGER NOT NULL,
                    direction TEXT NOT NULL DEFAULT 'long',
                    entry_date TEXT NOT NULL,
                    entry_price REAL,
                    shares REAL,
                    initial_stop_loss REAL,
                    setup_type TEXT,
                    modified_stops TEXT NOT NULL DEFAULT '[]',
                    exits TEXT NOT NULL DEFAULT '[]',
                    status TEXT NOT NULL DEFAULT 'open',
                    current_price REAL,
                    notes TEXT,
                    related_charts TEXT NOT NULL DEFAULT '[]',
                    target_position_size REAL,
                    position_size REAL,
                    risk_amount REAL,
                    risk_percent REAL,
                    profit_loss_amount REAL,
                    profit_loss_percent REAL,
                    r_ratio REAL,
                    days_held INTEGER,
                    current_metrics TEXT,
                    normalized_metrics TEXT,
                    normalization_factor REAL
                )
            """)
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_trades_ticker ON trades(ticker)")

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT,
                    email TEXT NOT NULL UNIQUE,
                    preferences TEXT NOT NULL DEFAULT '{}'
                )
            """)

            conn.commit()
        finally:
            conn.close()

    def get_tables(self) -> list[str]:
        """Get list of all tables in the database."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
            )
            return [row["name"] for row in cursor.fetchall()]
        finally:
            conn.close()

    # ==================== Encoding ====================

    def _columns(self, collection: str) -> dict[str, bool]:
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise ValueError(f"Unknown collection: {collection}") from None

    def _check_field(self, collection: str, field: str) -> None:
        if field != "id" and field not in self._columns(collection):
            raise ValueError(f"Unknown field '{field}' for {collection}")

    def _encode(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        """Keep known columns and serialize JSON ones."""
        columns = self._columns(collection)
        encoded = {}
        for key, value in data.items():
            if key not in columns:
                continue
            if columns[key] and value is not None:
                encoded[key] = json.dumps(value, default=_to_sql)
            else:
                encoded[key] = _to_sql(value)
        return encoded

    def _decode(self, collection: str, row: sqlite3.Row) -> dict[str, Any]:
        columns = self._columns(collection)
        doc = dict(row)
        for key, is_json in columns.items():
            if is_json and doc.get(key) is not None:
                doc[key] = json.loads(doc[key])
        return doc

    def _build_where(self, collection: str, where: Optional[dict[str, Any]]) -> tuple[str, list]:
        """Translate a where mapping into SQL.

        Supported conditions per field: a plain value (equals), None (is
        null), or a dict with any of ``equals``, ``not_equals``, ``in``,
        ``contains`` (JSON array membership), ``exists``, ``greater_than``,
        ``less_than``, ``greater_than_equal``, ``less_than_equal``.
        """
        clauses: list[str] = []
        params: list[Any] = []

        for field, condition in (where or {}).items():
            self._check_field(collection, field)

            if condition is None:
                clauses.append(f"{field} IS NULL")
                continue
            if not isinstance(condition, dict):
                condition = {"equals": condition}

            for op, value in condition.items():
                if op == "equals":
                    clauses.append(f"{field} = ?")
                    params.append(_to_sql(value))
                elif op == "in":
                    values = list(value)
                    if not values:
                        clauses.append("0")
                        continue
                    clauses.append(f"{field} IN ({', '.join('?' for _ in values)})")
                    params.extend(_to_sql(v) for v in values)
                elif op == "exists":
                    clauses.append(f"{field} IS {'NOT ' if value else ''}NULL")
                elif op == "contains":
                    clauses.append(
                        f"EXISTS (SELECT 1 FROM json_each({collection}.{field}) "
                        "WHERE json_each.value = ?)"
                    )
                    params.append(_to_sql(value))
                elif op in _COMPARISONS:
                    clauses.append(f"{field} {_COMPARISONS[op]} ?")
                    params.append(_to_sql(value))
                else:
                    raise ValueError(f"Unsupported operator '{op}' on {collection}.{field}")

        sql = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return sql, params

    def _build_order(self, collection: str, sort: Optional[str]) -> str:
        if not sort:
            return " ORDER BY id"
        field = sort.lstrip("-")
        self._check_field(collection, field)
        direction = "DESC" if sort.startswith("-") else "ASC"
        return f" ORDER BY {field} {direction}, id {direction}"

    # ==================== Documents ====================

    def insert(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a record.

        Args:
            collection: Collection name.
            data: Record fields. Unknown keys and ``id`` are ignored.

        Returns:
            The stored record, including its new ``id``.

        Raises:
            DuplicateRecordError: If a unique field is already taken.
        """
        encoded = self._encode(collection, data)
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            if encoded:
                columns = ", ".join(encoded)
                placeholders = ", ".join("?" for _ in encoded)
                sql = f"INSERT INTO {collection} ({columns}) VALUES ({placeholders})"
            else:
                sql = f"INSERT INTO {collection} DEFAULT VALUES"
            try:
                cursor.execute(sql, list(encoded.values()))
            except sqlite3.IntegrityError as e:
                raise DuplicateRecordError(f"{collection}: {e}") from e
            conn.commit()
            record_id = cursor.lastrowid
        finally:
            conn.close()
        return self.find_by_id(collection, record_id)

    def find_by_id(self, collection: str, record_id: int) -> Optional[dict[str, Any]]:
        """Get a record by ID.

        Returns:
            The record if found, None otherwise.
        """
        self._columns(collection)
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(f"SELECT * FROM {collection} WHERE id = ?", (record_id,))
            row = cursor.fetchone()
            return self._decode(collection, row) if row else None
        finally:
            conn.close()

    def find(
        self,
        collection: str,
        where: Optional[dict[str, Any]] = None,
        limit: Optional[int] = None,
        page: int = 1,
        sort: Optional[str] = None,
    ) -> FindResult:
        """Query records.

        Args:
            collection: Collection name.
            where: Filter conditions.
            limit: Page size. None returns every match, 0 only counts.
            page: 1-based page number.
            sort: Field name, prefixed with '-' for descending order.

        Returns:
            FindResult with the page of records and the total match count.

        Raises:
            ValueError: If the collection or a filtered/sorted field is unknown.
        """
        self._columns(collection)
        where_sql, params = self._build_where(collection, where)
        order_sql = self._build_order(collection, sort)

        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(f"SELECT COUNT(*) AS count FROM {collection}{where_sql}", params)
            total = cursor.fetchone()["count"]

            if limit == 0:
                return FindResult(docs=[], total_docs=total)

            sql = f"SELECT * FROM {collection}{where_sql}{order_sql}"
            page_params = list(params)
            if limit is not None:
                sql += " LIMIT ? OFFSET ?"
                page_params += [limit, (max(page, 1) - 1) * limit]

            cursor.execute(sql, page_params)
            docs = [self._decode(collection, row) for row in cursor.fetchall()]
            return FindResult(docs=docs, total_docs=total)
        finally:
            conn.close()

    def count(self, collection: str, where: Optional[dict[str, Any]] = None) -> int:
        """Count records matching a filter."""
        return self.find(collection, where, limit=0).total_docs

    def update(self, collection: str, record_id: int, data: dict[str, Any]) -> dict[str, Any]:
        """Update some fields of a record.

        Returns:
            The updated record.

        Raises:
            RecordNotFoundError: If the record does not exist.
            DuplicateRecordError: If a unique field is already taken.
        """
        encoded = self._encode(collection, data)
        if encoded:
            assignments = ", ".join(f"{column} = ?" for column in encoded)
            conn = self._get_connection()
            try:
                cursor = conn.cursor()
                try:
                    cursor.execute(
                        f"UPDATE {collection} SET {assignments} WHERE id = ?",
                        [*encoded.values(), record_id],
                    )
                except sqlite3.IntegrityError as e:
                    raise DuplicateRecordError(f"{collection}: {e}") from e
                conn.commit()
            finally:
                conn.close()

        doc = self.find_by_id(collection, record_id)
        if doc is None:
            raise RecordNotFoundError(collection, record_id)
        return doc

    def delete(self, collection: str, record_id: int) -> Optional[dict[str, Any]]:
        """Delete a record.

        Returns:
            The deleted record, or None if it did not exist.
        """
        doc = self.find_by_id(collection, record_id)
        if doc is None:
            return None

        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(f"DELETE FROM {collection} WHERE id = ?", (record_id,))
            conn.commit()
        finally:
            conn.close()
        return doc

    # ==================== Stats ====================

    def get_stats(self) -> dict:
        """Get database statistics.

        Returns:
            Dictionary with table record counts.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            stats = {}
            for table in self.REQUIRED_TABLES:
                cursor.execute(f"SELECT COUNT(*) as count FROM {table}")
                stats[table] = cursor.fetchone()["count"]
            return stats
        finally:
            conn.close()
