"""
Configuration constants for the media indexer.
"""

# --- File Type Definitions ---
VIDEO_EXTS = {'.mp4', '.mov', '.avi', '.mkv', '.mxf', '.m4v', '.mpg', '.mpeg'}
PHOTO_EXTS = {'.jpg', '.jpeg', '.png', '.tiff', '.tif', '.cr2', '.cr3', '.arw', '.nef', '.dng', '.heic', '.heif'}

VIDEO = 'video'
PHOTO = 'photo'
IGNORE = 'ignore'

# --- Hashing ---
HASH_BYTES = 64 * 1024  # Only the head of the file is fingerprinted
HASH_CHUNK_SIZE = 16 * 1024
ASSET_ID_LENGTH = 36

# --- Throttling ---
BATCH_SIZE = 5
BATCH_DELAY_SEC = 0.05  # Pause between batches so the host stays responsive
PAUSE_POLL_SEC = 0.5

# --- Catalog ---
FLUSH_THRESHOLD = 1000
DEFAULT_DB_NAME = "media_catalog.db"
DEFAULT_PAGE_SIZE = 100
