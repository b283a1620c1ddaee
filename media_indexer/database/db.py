"""
Catalog connection handling.
"""
import sqlite3
import logging
from pathlib import Path
from typing import Optional

from ..exceptions import CatalogError
from .schema import init_schema

# WAL keeps page reads going while an index run is being saved
CATALOG_PRAGMAS = (
    "PRAGMA journal_mode=WAL;",
    "PRAGMA synchronous=NORMAL;",
    "PRAGMA temp_store=MEMORY;",
)

class DBManager:
    """
    Opens the asset catalog on first use and makes sure its schema exists.

    Used as a context manager, the connection is committed on a clean exit
    and closed either way.
    """

    def __init__(self, db_path: Path, pragmas=CATALOG_PRAGMAS):
        self.db_path = Path(db_path)
        self.pragmas = pragmas
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def connect(self) -> sqlite3.Connection:
        if self._conn:
            return self._conn

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        logging.info(f"Opening catalog: {self.db_path}")

        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise CatalogError(f"Cannot open catalog {self.db_path}: {e}") from e

        try:
            for pragma in self.pragmas:
                conn.execute(pragma)
            init_schema(conn)
        except sqlite3.Error as e:
            conn.close()
            raise CatalogError(f"Cannot prepare catalog {self.db_path}: {e}") from e

        self._conn = conn
        return conn

    def close(self, commit: bool = True):
        if not self._conn:
            return
        try:
            if commit:
                self._conn.commit()
        finally:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close(commit=exc_type is None)
