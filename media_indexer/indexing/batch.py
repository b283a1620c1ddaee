import os
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, UTC
from pathlib import Path
from typing import Callable, List, Optional

from .. import config
from ..models import AssetRecord, ScanCandidate
from ..protocol import Event, PausedEvent, ProgressEvent
from ..scanning.hasher import FileHasher, asset_id
from .token import IndexingToken


@dataclass
class BatchOutcome:
    results: List[AssetRecord] = field(default_factory=list)
    indexed: int = 0
    total: int = 0
    cancelled: bool = False


class BatchProcessor:
    def __init__(self,
                 hasher: Optional[FileHasher] = None,
                 batch_size: int = config.BATCH_SIZE,
                 batch_delay: float = config.BATCH_DELAY_SEC,
                 poll_interval: float = config.PAUSE_POLL_SEC):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.hasher = hasher or FileHasher()
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.poll_interval = poll_interval

    def process(self,
                candidates: List[ScanCandidate],
                volume_uuid: str,
                mount_point: str,
                cache_dir: str,
                token: IndexingToken,
                emit: Callable[[Event], None]) -> BatchOutcome:
        """
        Turns candidates into AssetRecords in throttled batches.

        Batch members are read in parallel; between batches we sleep
        `batch_delay` so a large volume doesn't saturate the disk.
        Pause/cancel are only honoured at batch boundaries.

        Args:
            cache_dir: Reserved for thumbnail/proxy passes; not written here.
        """
        outcome = BatchOutcome(total=len(candidates))

        with ThreadPoolExecutor(max_workers=self.batch_size) as executor:
            for start in range(0, len(candidates), self.batch_size):
                if self._should_stop(outcome, token, emit):
                    outcome.cancelled = True
                    return outcome

                batch = candidates[start:start + self.batch_size]
                records = executor.map(
                    lambda c: self._index_one(c, volume_uuid, mount_point),
                    batch,
                )
                for record in records:
                    if record:
                        outcome.results.append(record)
                        outcome.indexed += 1

                emit(ProgressEvent(
                    status='indexing',
                    total=outcome.total,
                    indexed=outcome.indexed,
                    current_file=str(batch[-1].path),
                ))

                if start + self.batch_size < len(candidates):
                    token.wait(self.batch_delay)

        return outcome

    def _should_stop(self, outcome: BatchOutcome, token: IndexingToken, emit: Callable[[Event], None]) -> bool:
        """Blocks while paused. Returns True once cancellation is observed."""
        if token.is_cancelled:
            return True

        while token.is_paused and not token.is_cancelled:
            emit(PausedEvent(indexed=outcome.indexed, total=outcome.total))
            token.wait(self.poll_interval)

        return token.is_cancelled

    def _index_one(self, candidate: ScanCandidate, volume_uuid: str, mount_point: str) -> Optional[AssetRecord]:
        """Builds one AssetRecord, or None if the file can't be stat'ed."""
        try:
            return self.build_record(candidate, volume_uuid, mount_point)
        except Exception as e:
            logging.error(f"Failed to index {candidate.path}: {e}")
            return None

    def build_record(self, candidate: ScanCandidate, volume_uuid: str, mount_point: str) -> AssetRecord:
        path = Path(candidate.path)
        st = path.stat()
        relative_path = os.path.relpath(path, mount_point)

        # Birth time where the platform has one (macOS, Windows)
        created_ts = getattr(st, 'st_birthtime', None) or st.st_ctime

        return AssetRecord(
            id=asset_id(volume_uuid, relative_path),
            volume_uuid=volume_uuid,
            relative_path=relative_path,
            file_name=path.name,
            file_size=st.st_size,
            partial_hash=self.hasher.partial_hash(path, st.st_size),
            media_type=candidate.media_type,
            created_at=datetime.fromtimestamp(created_ts, UTC),
            modified_at=datetime.fromtimestamp(st.st_mtime, UTC),
            indexed_at=datetime.now(UTC),
        )
