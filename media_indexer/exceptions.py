"""
Custom exception hierarchy for the media indexer.

Per-file and per-directory problems are recovered where they happen and never
reach these types; these cover failures a caller has to react to.
"""


class MediaIndexerError(Exception):
    """Base exception for all media indexer errors."""
    pass


class ParameterError(MediaIndexerError):
    """Raised when a start command lacks required fields."""
    pass


class IndexerBusyError(MediaIndexerError):
    """Raised when a session is started while another one is running."""
    pass


class ProtocolError(MediaIndexerError):
    """Raised when an inbound message cannot be decoded into a command."""
    pass


class CatalogError(MediaIndexerError):
    """Raised when the asset catalog cannot be read or written."""
    pass
