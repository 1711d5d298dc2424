# filepath: tenantsync/src/adapters/sqlite_store.py

"""SQLite data store for local tenant mirrors."""

import re
import sqlite3
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

from .base import DataStore, Filter
from tenantsync.src.exceptions import ConnectivityError, SchemaConflictError

logger = logging.getLogger(__name__)

ADD_COLUMN_GUARDED = re.compile(
    r'^\s*ALTER\s+TABLE\s+("?)([^"\s]+)\1\s+ADD\s+COLUMN\s+IF\s+NOT\s+EXISTS\s+("?)([^"\s]+)\3\s+(.+?)\s*;?\s*$',
    re.IGNORECASE | re.DOTALL
)

# Postgres column types that SQLite cannot parse as written
SQLITE_TYPE_FALLBACKS = {
    'TEXT[]': 'TEXT',
    'UUID[]': 'TEXT',
    'TIMESTAMPTZ': 'TIMESTAMP',
}


def quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


class SQLiteStore(DataStore):
    """Data store over a SQLite file.

    Supports the guarded ``ADD COLUMN IF NOT EXISTS`` form by checking
    ``PRAGMA table_info`` before altering, since SQLite has no such clause.
    """

    def __init__(self, db_path: Path):
        self.db_path = str(db_path)
        self.tenant_id = Path(db_path).stem
        self._conn: Optional[sqlite3.Connection] = None

    def _get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            # mode=rw: a mistyped path must fail, not create an empty tenant
            uri = f"{Path(self.db_path).resolve().as_uri()}?mode=rw"
            try:
                self._conn = sqlite3.connect(uri, uri=True)
            except sqlite3.Error as e:
                raise ConnectivityError(f"Cannot open {self.db_path}: {e}") from e
            self._conn.row_factory = sqlite3.Row
        return self._conn

    @contextmanager
    def transaction(self):
        """Commit on success, roll back and translate sqlite errors on failure."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except sqlite3.OperationalError as e:
            conn.rollback()
            if 'unable to open' in str(e) or 'locked' in str(e):
                raise ConnectivityError(str(e)) from e
            raise SchemaConflictError(str(e)) from e
        except sqlite3.Error as e:
            conn.rollback()
            raise SchemaConflictError(str(e)) from e

    def _where(self, filters: Optional[List[Filter]], match_any: bool):
        if not filters:
            return '', ()
        clauses = []
        params: List[Any] = []
        for f in filters:
            column = quote(f.column)
            if f.op == 'eq':
                if f.value is None:
                    clauses.append(f"{column} IS NULL")
                else:
                    clauses.append(f"{column} = ?")
                    params.append(f.value)
            elif f.op == 'in':
                values = list(f.value)
                if not values:
                    clauses.append("0")
                    continue
                clauses.append(f"{column} IN ({', '.join('?' for _ in values)})")
                params.extend(values)
            else:
                clauses.append(f"LOWER({column}) LIKE ?")
                params.append(f"%{str(f.value).lower()}%")
        joiner = ' OR ' if match_any else ' AND '
        return ' WHERE ' + joiner.join(clauses), tuple(params)

    def columns(self, table: str) -> List[str]:
        cursor = self._get_connection().execute(f"PRAGMA table_info({quote(table)})")
        return [row['name'] for row in cursor.fetchall()]

    def select(self, table: str, filters: Optional[List[Filter]] = None,
               match_any: bool = False, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        where, params = self._where(filters, match_any)
        query = f"SELECT * FROM {quote(table)}{where}"
        if limit:
            query += f" LIMIT {int(limit)}"
        with self.transaction() as conn:
            rows = conn.execute(query, params).fetchall()
        return [dict(row) for row in rows]

    def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        with self.transaction() as conn:
            if record:
                columns = ', '.join(quote(c) for c in record)
                marks = ', '.join('?' for _ in record)
                cursor = conn.execute(
                    f"INSERT INTO {quote(table)} ({columns}) VALUES ({marks})",
                    tuple(record.values())
                )
            else:
                cursor = conn.execute(f"INSERT INTO {quote(table)} DEFAULT VALUES")
            row = conn.execute(
                f"SELECT * FROM {quote(table)} WHERE rowid = ?", (cursor.lastrowid,)
            ).fetchone()
        return dict(row) if row else {}

    def delete(self, table: str, filters: List[Filter], match_any: bool = False) -> int:
        if not filters:
            raise ValueError(f"Refusing unfiltered delete on {table}")
        where, params = self._where(filters, match_any)
        with self.transaction() as conn:
            cursor = conn.execute(f"DELETE FROM {quote(table)}{where}", params)
        return cursor.rowcount

    def exec(self, statement: str) -> None:
        match = ADD_COLUMN_GUARDED.match(statement)
        if match:
            table, column, col_type = match.group(2), match.group(4), match.group(5).strip()
            existing = self.columns(table)
            if not existing:
                raise SchemaConflictError(f"no such table: {table}")
            if column in existing:
                logger.debug(f"{table}.{column} already present, skipping")
                return
            col_type = SQLITE_TYPE_FALLBACKS.get(col_type.upper(), col_type)
            statement = f"ALTER TABLE {quote(table)} ADD COLUMN {quote(column)} {col_type}"
        with self.transaction() as conn:
            conn.execute(statement)

    def probe(self, table: str) -> str:
        self.select(table, limit=1)
        return self.tenant_id

    def close(self):
        if self._conn is not None:
            self._conn.close()
            self._conn = None
