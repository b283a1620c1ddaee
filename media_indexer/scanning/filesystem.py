import os
import logging
from pathlib import Path
from typing import List, Optional

from .. import config
from ..models import ScanCandidate
from ..indexing.token import IndexingToken
from .classifier import PathClassifier


class DirectoryScanner:
    def __init__(self, classifier: Optional[PathClassifier] = None):
        self.classifier = classifier or PathClassifier()

    def scan(self, root: Path, token: Optional[IndexingToken] = None) -> List[ScanCandidate]:
        """
        Collects every indexable file under root.

        Cancellation is checked on entry to each directory; once observed the
        walk stops and whatever was collected so far is returned.
        """
        token = token or IndexingToken()
        candidates: List[ScanCandidate] = []
        skipped_dirs = 0

        # Depth-first walker using os.scandir for speed
        stack = [Path(root)]
        while stack:
            if token.is_cancelled:
                logging.info(f"Scan cancelled after {len(candidates)} candidates")
                break

            current = stack.pop()
            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError as e:
                logging.warning(f"Skipping unreadable directory {current}: {e}")
                skipped_dirs += 1
                continue

            dirs = []
            for e in entries:
                try:
                    if e.is_dir(follow_symlinks=False):
                        if not e.name.startswith('.'):
                            dirs.append(Path(e.path))
                    elif e.is_file(follow_symlinks=False):
                        media_type = self.classifier.classify(e.name)
                        if media_type != config.IGNORE:
                            candidates.append(ScanCandidate(Path(e.path), media_type))
                except OSError as err:
                    logging.debug(f"Cannot inspect {e.path}: {err}")

            # Reversed so siblings are visited in listing order
            stack.extend(reversed(dirs))

        logging.debug(f"Scan of {root}: {len(candidates)} candidates, {skipped_dirs} directories skipped")
        return candidates
