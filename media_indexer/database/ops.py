import json
import sqlite3
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple, List, Iterable

from .. import config
from ..exceptions import CatalogError
from ..models import AssetRecord

ASSET_COLUMNS = (
    "id", "volume_uuid", "relative_path", "file_name", "file_size", "partial_hash",
    "media_type", "created_at", "modified_at", "rating", "color_label", "flagged",
    "rejected", "tags", "notes", "thumbnail_paths", "waveform_path", "proxy_path",
    "full_res_preview_path", "indexed_at", "status", "needs_thumbnail", "needs_metadata",
)

# Re-indexing refreshes what the indexer knows about the file and leaves
# user decisions and cache artifacts alone.
REFRESHED_COLUMNS = (
    "volume_uuid", "relative_path", "file_name", "file_size", "partial_hash",
    "media_type", "created_at", "modified_at", "indexed_at", "status",
)


def _escape_like(value: str) -> str:
    """Makes % and _ in user input match literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass
class AssetFilter:
    volume_uuid: Optional[str] = None
    path_prefix: Optional[str] = None
    media_type: Optional[str] = None
    file_extension: Optional[str] = None
    flagged: Optional[bool] = None


class CatalogOperations:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def upsert_assets(self, records: Iterable[AssetRecord]) -> int:
        """
        Inserts indexed records in one transaction.
        Existing ids keep their rating/tags/notes/cache paths.
        """
        placeholders = ", ".join("?" for _ in ASSET_COLUMNS)
        updates = ", ".join(f"{col} = excluded.{col}" for col in REFRESHED_COLUMNS)
        sql = f"""
            INSERT INTO assets ({", ".join(ASSET_COLUMNS)})
            VALUES ({placeholders})
            ON CONFLICT(id) DO UPDATE SET {updates}
        """

        count = 0
        try:
            with self.conn:
                for rec in records:
                    self.conn.execute(sql, self._to_row(rec))
                    count += 1
        except sqlite3.Error as e:
            raise CatalogError(f"Failed to save assets: {e}") from e

        logging.info(f"Saved {count} assets to catalog")
        return count

    def fetch_assets_page(self,
                          filters: Optional[AssetFilter] = None,
                          offset: int = 0,
                          limit: int = config.DEFAULT_PAGE_SIZE) -> Tuple[List[AssetRecord], int]:
        """Returns (items, total) for online assets, newest first."""
        where, params = self._build_where(filters or AssetFilter())

        cur = self.conn.cursor()
        cur.execute(f"SELECT COUNT(*) FROM assets {where}", params)
        total = cur.fetchone()[0]

        cur.execute(
            f"SELECT {', '.join(ASSET_COLUMNS)} FROM assets {where} "
            "ORDER BY created_at DESC, id LIMIT ? OFFSET ?",
            (*params, limit, offset),
        )
        return [self._from_row(r) for r in cur.fetchall()], total

    def fetch_assets_by_ids(self, asset_ids: List[str]) -> List[AssetRecord]:
        if not asset_ids:
            return []
        placeholders = ", ".join("?" for _ in asset_ids)
        cur = self.conn.cursor()
        cur.execute(f"SELECT {', '.join(ASSET_COLUMNS)} FROM assets WHERE id IN ({placeholders})", asset_ids)
        return [self._from_row(r) for r in cur.fetchall()]

    def fetch_pending_work(self, kind: str, limit: int = config.DEFAULT_PAGE_SIZE) -> List[AssetRecord]:
        """Records a later pass still has to visit ('thumbnail' or 'metadata')."""
        column = {'thumbnail': 'needs_thumbnail', 'metadata': 'needs_metadata'}.get(kind)
        if column is None:
            raise ValueError(f"Unknown pending work kind: {kind}")
        cur = self.conn.cursor()
        cur.execute(
            f"SELECT {', '.join(ASSET_COLUMNS)} FROM assets "
            f"WHERE {column} = 1 AND status = 'online' ORDER BY indexed_at LIMIT ?",
            (limit,),
        )
        return [self._from_row(r) for r in cur.fetchall()]

    def _build_where(self, filters: AssetFilter) -> Tuple[str, list]:
        where = "WHERE status = 'online'"
        params: list = []

        if filters.volume_uuid:
            where += " AND volume_uuid = ?"
            params.append(filters.volume_uuid)
        if filters.path_prefix:
            prefix = filters.path_prefix.rstrip("/")
            where += " AND (relative_path LIKE ? ESCAPE '\\' OR relative_path = ?)"
            params.extend([f"{_escape_like(prefix)}/%" if prefix else "%", prefix])
        if filters.media_type:
            where += " AND media_type = ?"
            params.append(filters.media_type)
        if filters.file_extension:
            where += " AND lower(file_name) LIKE ? ESCAPE '\\'"
            params.append(f"%{_escape_like(filters.file_extension.lower())}")
        if filters.flagged is not None:
            where += " AND flagged = ?"
            params.append(int(filters.flagged))

        return where, params

    def _to_row(self, rec: AssetRecord) -> tuple:
        return (
            rec.id, rec.volume_uuid, rec.relative_path, rec.file_name, rec.file_size,
            rec.partial_hash, rec.media_type, rec.created_at.isoformat(),
            rec.modified_at.isoformat(), rec.rating, rec.color_label, int(rec.flagged),
            int(rec.rejected), json.dumps(rec.tags), rec.notes, json.dumps(rec.thumbnail_paths),
            rec.waveform_path, rec.proxy_path, rec.full_res_preview_path,
            rec.indexed_at.isoformat(), rec.status, int(rec.needs_thumbnail),
            int(rec.needs_metadata),
        )

    def _from_row(self, row: tuple) -> AssetRecord:
        r = dict(zip(ASSET_COLUMNS, row))
        return AssetRecord(
            id=r['id'],
            volume_uuid=r['volume_uuid'],
            relative_path=r['relative_path'],
            file_name=r['file_name'],
            file_size=r['file_size'],
            partial_hash=r['partial_hash'],
            media_type=r['media_type'],
            created_at=datetime.fromisoformat(r['created_at']),
            modified_at=datetime.fromisoformat(r['modified_at']),
            indexed_at=datetime.fromisoformat(r['indexed_at']),
            rating=r['rating'],
            flagged=bool(r['flagged']),
            rejected=bool(r['rejected']),
            tags=json.loads(r['tags'] or '[]'),
            notes=r['notes'] or '',
            color_label=r['color_label'],
            thumbnail_paths=json.loads(r['thumbnail_paths'] or '[]'),
            waveform_path=r['waveform_path'],
            proxy_path=r['proxy_path'],
            full_res_preview_path=r['full_res_preview_path'],
            status=r['status'],
            needs_thumbnail=bool(r['needs_thumbnail']),
            needs_metadata=bool(r['needs_metadata']),
        )
