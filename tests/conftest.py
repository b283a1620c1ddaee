import pytest
import sqlite3
from media_indexer.database.schema import init_schema
from media_indexer.database.ops import CatalogOperations

@pytest.fixture
def conn():
    """Returns an in-memory SQLite connection with the schema initialized."""
    c = sqlite3.connect(":memory:", check_same_thread=False)
    init_schema(c)
    try:
        yield c
    finally:
        c.close()

@pytest.fixture
def catalog(conn):
    """Returns a CatalogOperations instance attached to the in-memory DB."""
    return CatalogOperations(conn)

@pytest.fixture
def media_tree(tmp_path):
    """
    3 photos, 1 video, a hidden file and an unrelated document:
        volume/shoot/a.jpg, b.jpg, nested/c.jpg, clip.mp4, .DS_Store, report.pdf
    """
    volume = tmp_path / "volume"
    shoot = volume / "shoot"
    (shoot / "nested").mkdir(parents=True)
    (shoot / "a.jpg").write_bytes(b"photo-a" * 100)
    (shoot / "b.jpg").write_bytes(b"photo-b" * 100)
    (shoot / "nested" / "c.jpg").write_bytes(b"photo-c" * 100)
    (shoot / "clip.mp4").write_bytes(b"video" * 1000)
    (shoot / ".DS_Store").write_bytes(b"\x00\x01")
    (shoot / "report.pdf").write_bytes(b"%PDF-1.4")
    return volume

class EventLog:
    """Collects emitted events; usable as the `emit` callback."""
    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def of(self, kind):
        return [e for e in self.events if isinstance(e, kind)]

@pytest.fixture
def events():
    return EventLog()
