from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional


@dataclass
class ScanCandidate:
    """
    A file found during the scan phase that is worth indexing.
    """
    path: Path
    media_type: str         # video/photo


@dataclass
class AssetRecord:
    """
    One indexed file, in the shape the catalog persists.
    """
    id: str
    volume_uuid: str
    relative_path: str
    file_name: str
    file_size: int
    partial_hash: str
    media_type: str
    created_at: datetime
    modified_at: datetime
    indexed_at: datetime

    # Decisions (owned by the user once the record leaves the indexer)
    rating: int = 0
    flagged: bool = False
    rejected: bool = False
    tags: List[str] = field(default_factory=list)
    notes: str = ""
    color_label: Optional[str] = None

    # Cache artifacts (filled by later passes)
    thumbnail_paths: List[str] = field(default_factory=list)
    waveform_path: Optional[str] = None
    proxy_path: Optional[str] = None
    full_res_preview_path: Optional[str] = None

    status: str = "online"
    needs_thumbnail: bool = True
    needs_metadata: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape: camelCase keys, ISO-8601 timestamps."""
        return {
            'id': self.id,
            'volumeUuid': self.volume_uuid,
            'relativePath': self.relative_path,
            'fileName': self.file_name,
            'fileSize': self.file_size,
            'partialHash': self.partial_hash,
            'mediaType': self.media_type,
            'createdAt': self.created_at.isoformat(),
            'modifiedAt': self.modified_at.isoformat(),
            'rating': self.rating,
            'flagged': self.flagged,
            'rejected': self.rejected,
            'tags': list(self.tags),
            'notes': self.notes,
            'colorLabel': self.color_label,
            'thumbnailPaths': list(self.thumbnail_paths),
            'waveformPath': self.waveform_path,
            'proxyPath': self.proxy_path,
            'fullResPreviewPath': self.full_res_preview_path,
            'indexedAt': self.indexed_at.isoformat(),
            'status': self.status,
            'needsThumbnail': self.needs_thumbnail,
            'needsMetadata': self.needs_metadata,
        }
