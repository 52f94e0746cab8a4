"""
SQLite-backed persistence gateway.

One database file holds a table per configured collection. Every table has
the same bookkeeping columns (id, position, created_at, updated_at) plus one
column per stored field of the collection schema.
"""

import asyncio
import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional

from .errors import GatewayError, NotFoundError, RejectedError, ServerError, ValidationError
from .gateway import PersistenceGateway
from .models import FLAG, CollectionSchema, OrderedItem, format_timestamp, item_from_payload, utcnow
from .validation import normalize_fields, validate_fields

logger = logging.getLogger(__name__)


class SQLiteGateway(PersistenceGateway):
    """Persistence gateway over a local SQLite file.

    Blocking sqlite3 work runs in a worker thread so callers can await it like
    any remote backend.
    """

    def __init__(self, db_path: str, schemas: Mapping[str, CollectionSchema]):
        super().__init__(schemas)
        self.db_path = db_path
        self._init_tables()

    def _init_tables(self):
        """Create collection tables and add any column missing from an older schema."""
        with self.get_connection(row_factory=False) as conn:
            cursor = conn.cursor()
            for schema in self.schemas.values():
                cursor.execute(f"PRAGMA table_info({schema.name})")
                columns = {row[1] for row in cursor.fetchall()}

                if not columns:
                    cursor.execute(f'''
                        CREATE TABLE {schema.name} (
                            id INTEGER PRIMARY KEY AUTOINCREMENT,
                            position INTEGER NOT NULL DEFAULT 0,
                            created_at TEXT NOT NULL,
                            updated_at TEXT NOT NULL
                        )
                    ''')
                    columns = {'id', 'position', 'created_at', 'updated_at'}

                # Lightweight migrations for newly configured fields
                for field_name in schema.stored_fields:
                    if field_name in columns:
                        continue
                    if schema.fields.get(field_name) == FLAG:
                        column_sql = f"{field_name} INTEGER NOT NULL DEFAULT 0"
                    else:
                        column_sql = f"{field_name} TEXT"
                    cursor.execute(f"ALTER TABLE {schema.name} ADD COLUMN {column_sql}")
                    logger.debug(f"Added column {field_name} to {schema.name}")

                cursor.execute(f'''
                    CREATE INDEX IF NOT EXISTS idx_{schema.name}_position
                    ON {schema.name}(position, created_at)
                ''')

    @contextmanager
    def get_connection(self, row_factory: bool = True) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections with automatic commit/rollback.

        Example:
            with gateway.get_connection() as conn:
                conn.execute("SELECT * FROM faqs")
                # Auto-commits on success, auto-closes always
        """
        conn = sqlite3.connect(self.db_path)
        if row_factory:
            conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    async def _run(self, func, *args):
        """Run a blocking storage call off the event loop, mapping sqlite errors."""
        try:
            return await asyncio.to_thread(func, *args)
        except GatewayError:
            raise
        except sqlite3.Error as e:
            logger.error(f"SQLite operation {func.__name__} failed: {e}")
            raise ServerError(f"Storage operation failed: {e}", status=500) from e

    def _row_to_item(self, schema: CollectionSchema, row: sqlite3.Row) -> OrderedItem:
        data = dict(row)
        for field_name in schema.fields:
            if schema.fields[field_name] == FLAG:
                data[field_name] = bool(data.get(field_name))
        return item_from_payload(data, schema)

    # ------------------------------------------------------------------ reads

    def list_items(self, collection: str) -> List[OrderedItem]:
        """Synchronous listing, ordered by position then created_at."""
        schema = self.schema(collection)
        with self.get_connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM {schema.name} ORDER BY position ASC, created_at ASC"
            ).fetchall()
        return [self._row_to_item(schema, row) for row in rows]

    def get_item(self, collection: str, item_id: Any) -> Optional[OrderedItem]:
        schema = self.schema(collection)
        with self.get_connection() as conn:
            row = conn.execute(f"SELECT * FROM {schema.name} WHERE id = ?", (item_id,)).fetchone()
        return self._row_to_item(schema, row) if row else None

    async def fetch_ordered(self, collection: str) -> List[OrderedItem]:
        return await self._run(self.list_items, collection)

    # ----------------------------------------------------------------- writes

    def _apply_order(self, collection: str, order: List[Dict[str, Any]]) -> None:
        schema = self.schema(collection)
        if not order or any(
            not isinstance(entry.get('id'), int) or isinstance(entry.get('id'), bool)
            or not isinstance(entry.get('position'), int) or isinstance(entry.get('position'), bool)
            for entry in order
        ):
            raise RejectedError("The order payload is invalid.", status=400)

        # One transaction per item: a failure part way leaves earlier rows updated.
        for entry in order:
            with self.get_connection(row_factory=False) as conn:
                cursor = conn.execute(
                    f"UPDATE {schema.name} SET position = ? WHERE id = ?",
                    (entry['position'], entry['id']),
                )
                if cursor.rowcount == 0:
                    logger.debug(f"Reorder of {collection} skipped unknown id {entry['id']}")

    async def reorder(self, collection: str, order: List[Dict[str, Any]]) -> None:
        await self._run(self._apply_order, collection, order)
        logger.info(f"Saved order of {len(order)} {collection} items")

    def _next_position(self, conn: sqlite3.Connection, schema: CollectionSchema) -> int:
        row = conn.execute(f"SELECT MAX(position) FROM {schema.name}").fetchone()
        return (row[0] or 0) + 1

    def _write_item(self, collection: str, item_id: Optional[Any], fields: Mapping[str, Any]) -> OrderedItem:
        schema = self.schema(collection)
        values = normalize_fields(schema, fields)
        position = fields.get('position')
        now = format_timestamp(utcnow())

        with self.get_connection() as conn:
            if item_id is None:
                try:
                    validate_fields(schema, values)
                except ValidationError as e:
                    raise RejectedError(e.message, status=400) from e

                if position is None:
                    position = self._next_position(conn, schema)
                created_at = fields.get('created_at') or now
                columns = ['position', 'created_at', 'updated_at'] + list(values)
                params = [int(position), str(created_at), now] + list(values.values())
                placeholders = ', '.join('?' for _ in columns)
                cursor = conn.execute(
                    f"INSERT INTO {schema.name} ({', '.join(columns)}) VALUES ({placeholders})",
                    params,
                )
                item_id = cursor.lastrowid
            else:
                existing = conn.execute(f"SELECT * FROM {schema.name} WHERE id = ?", (item_id,)).fetchone()
                if existing is None:
                    raise NotFoundError(f"Item {item_id} not found in {collection}.", status=404)

                merged = dict(existing)
                merged.update(values)
                try:
                    validate_fields(schema, merged, item_id=item_id)
                except ValidationError as e:
                    raise RejectedError(e.message, status=400) from e

                assignments = dict(values)
                if position is not None:
                    assignments['position'] = int(position)
                assignments['updated_at'] = now
                set_sql = ', '.join(f"{name} = ?" for name in assignments)
                conn.execute(
                    f"UPDATE {schema.name} SET {set_sql} WHERE id = ?",
                    list(assignments.values()) + [item_id],
                )

            row = conn.execute(f"SELECT * FROM {schema.name} WHERE id = ?", (item_id,)).fetchone()
        return self._row_to_item(schema, row)

    async def upsert_item(self, collection: str, item_id: Optional[Any], fields: Mapping[str, Any]) -> OrderedItem:
        item = await self._run(self._write_item, collection, item_id, dict(fields))
        logger.info(f"{'Created' if item_id is None else 'Updated'} {collection} item {item.id}")
        return item

    def _remove_item(self, collection: str, item_id: Any) -> None:
        schema = self.schema(collection)
        with self.get_connection(row_factory=False) as conn:
            cursor = conn.execute(f"DELETE FROM {schema.name} WHERE id = ?", (item_id,))
            if cursor.rowcount == 0:
                logger.debug(f"Delete of {collection} item {item_id} matched no row")

    async def delete_item(self, collection: str, item_id: Any) -> None:
        await self._run(self._remove_item, collection, item_id)
        logger.info(f"Deleted {collection} item {item_id}")

    def purge(self, collection: Optional[str] = None) -> int:
        """Delete every row of *collection* (or of all collections); returns rows removed."""
        names = [self.schema(collection).name] if collection else list(self.schemas)
        removed = 0
        with self.get_connection(row_factory=False) as conn:
            for name in names:
                cursor = conn.execute(f"DELETE FROM {name}")
                removed += cursor.rowcount
        logger.info(f"Purged {removed} rows from {', '.join(names)}")
        return removed


__all__ = ["SQLiteGateway"]
