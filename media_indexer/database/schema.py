"""
Database schema definitions.
"""
import sqlite3
import logging

CURRENT_SCHEMA_VERSION = 1

def init_schema(conn: sqlite3.Connection):
    """
    Applies the catalog schema to the database.
    Idempotent: safe to run on every startup.
    """
    with conn:
        # 1. Version Tracking (For future migrations)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            );
        """)

        cur = conn.cursor()
        cur.execute("SELECT version FROM schema_version")
        if not cur.fetchone():
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (CURRENT_SCHEMA_VERSION,))

        # 2. Assets
        # id is derived from (volume_uuid, relative_path), so re-indexing upserts
        conn.execute("""
        CREATE TABLE IF NOT EXISTS assets (
            id                      TEXT PRIMARY KEY,
            volume_uuid             TEXT NOT NULL,
            relative_path           TEXT NOT NULL,
            file_name               TEXT NOT NULL,
            file_size               INTEGER NOT NULL,
            partial_hash            TEXT NOT NULL,
            media_type              TEXT NOT NULL,
            created_at              TEXT NOT NULL,
            modified_at             TEXT NOT NULL,

            -- Decision metadata (user owned)
            rating                  INTEGER NOT NULL DEFAULT 0,
            color_label             TEXT,
            flagged                 INTEGER NOT NULL DEFAULT 0,
            rejected                INTEGER NOT NULL DEFAULT 0,
            tags                    TEXT NOT NULL DEFAULT '[]',
            notes                   TEXT NOT NULL DEFAULT '',

            -- Cache paths
            thumbnail_paths         TEXT NOT NULL DEFAULT '[]',
            waveform_path           TEXT,
            proxy_path              TEXT,
            full_res_preview_path   TEXT,

            -- State
            indexed_at              TEXT NOT NULL,
            status                  TEXT NOT NULL DEFAULT 'online',
            needs_thumbnail         INTEGER NOT NULL DEFAULT 1,
            needs_metadata          INTEGER NOT NULL DEFAULT 1
        );
        """)

        # 3. Indices for Performance
        conn.execute("CREATE INDEX IF NOT EXISTS idx_assets_volume ON assets(volume_uuid);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_assets_path ON assets(relative_path);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_assets_created ON assets(created_at);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_assets_media_type ON assets(media_type);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_assets_status ON assets(status);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_assets_partial_hash ON assets(partial_hash);")

    logging.debug("Database schema initialized.")
