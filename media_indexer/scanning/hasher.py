import hashlib
import logging
from pathlib import Path
from .. import config


def asset_id(volume_uuid: str, relative_path: str) -> str:
    """
    Stable identifier for a file on a volume.
    Same (volume, path) always maps to the same id, so re-scans upsert.
    """
    digest = hashlib.sha256(f"{volume_uuid}:{relative_path}".encode('utf-8')).hexdigest()
    return digest[:config.ASSET_ID_LENGTH]


class FileHasher:
    def partial_hash(self, path: Path, file_size: int) -> str:
        """
        Computes a fingerprint from the head of the file.

        Strategy:
        1. Stream at most HASH_BYTES from the start (SHA-256).
        2. If the file can't be read (permissions, vanished mid-scan):
           -> Hash the path + size instead so the file still gets an identity.
        """
        try:
            return self._head_sha256(path)
        except OSError as e:
            logging.debug(f"Falling back to path fingerprint for {path}: {e}")
            return self._fallback_hash(path, file_size)

    def _head_sha256(self, path: Path) -> str:
        h = hashlib.sha256()
        remaining = config.HASH_BYTES
        with open(path, 'rb') as f:
            while remaining > 0:
                chunk = f.read(min(config.HASH_CHUNK_SIZE, remaining))
                if not chunk:
                    break
                h.update(chunk)
                remaining -= len(chunk)
        return h.hexdigest()

    def _fallback_hash(self, path: Path, file_size: int) -> str:
        # NOTE: a file that later becomes readable gets a different fingerprint.
        return hashlib.sha256(f"{path}{file_size}".encode('utf-8')).hexdigest()
