from pathlib import Path
from typing import Iterable, Optional

from .. import config


class PathClassifier:
    """Maps a directory entry name to video / photo / ignore."""

    def __init__(self,
                 video_exts: Optional[Iterable[str]] = None,
                 photo_exts: Optional[Iterable[str]] = None):
        videos = config.VIDEO_EXTS if video_exts is None else video_exts
        photos = config.PHOTO_EXTS if photo_exts is None else photo_exts
        self.video_exts = {e.lower() for e in videos}
        self.photo_exts = {e.lower() for e in photos}

    def classify(self, name: str) -> str:
        # Hidden files, including macOS "._" resource forks
        if name.startswith('.'):
            return config.IGNORE

        ext = Path(name).suffix.lower()
        if ext in self.video_exts:
            return config.VIDEO
        if ext in self.photo_exts:
            return config.PHOTO
        return config.IGNORE
