"""
Message protocol between the indexer and its host.

Commands flow in (start/pause/resume/cancel), events flow out
(ready/progress/paused/cancelled/completed/error). Every message is a
tagged dict on the wire; in-process they travel as the dataclasses below.
"""
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Union

from .exceptions import ProtocolError
from .models import AssetRecord

# Errors that refuse a single command start with this; they do not end a session
REJECTED_PREFIX = "Command rejected: "


# --- Commands ---

@dataclass
class StartCommand:
    TYPE: ClassVar[str] = 'start'
    dir_path: Optional[str] = None
    volume_uuid: Optional[str] = None
    mount_point: Optional[str] = None
    cache_dir: Optional[str] = None

    def missing_fields(self) -> List[str]:
        required = {
            'dirPath': self.dir_path,
            'volumeUuid': self.volume_uuid,
            'volumeMountPoint': self.mount_point,
            'cacheDir': self.cache_dir,
        }
        return [name for name, value in required.items() if not value]


@dataclass
class PauseCommand:
    TYPE: ClassVar[str] = 'pause'


@dataclass
class ResumeCommand:
    TYPE: ClassVar[str] = 'resume'


@dataclass
class CancelCommand:
    TYPE: ClassVar[str] = 'cancel'


Command = Union[StartCommand, PauseCommand, ResumeCommand, CancelCommand]


def parse_command(message: Any) -> Command:
    """Decodes a tagged dict such as {"type": "start", "dirPath": ...}."""
    if not isinstance(message, dict):
        raise ProtocolError(f"Command must be an object, got {type(message).__name__}")

    kind = message.get('type')
    if kind == StartCommand.TYPE:
        fields = {
            'dir_path': message.get('dirPath'),
            'volume_uuid': message.get('volumeUuid'),
            'mount_point': message.get('volumeMountPoint'),
            'cache_dir': message.get('cacheDir'),
        }
        for name, value in fields.items():
            if value is not None and not isinstance(value, str):
                raise ProtocolError(f"Field {name} must be a string")
        return StartCommand(**fields)
    if kind == PauseCommand.TYPE:
        return PauseCommand()
    if kind == ResumeCommand.TYPE:
        return ResumeCommand()
    if kind == CancelCommand.TYPE:
        return CancelCommand()
    raise ProtocolError(f"Unknown command type: {kind!r}")


# --- Events ---

@dataclass
class ReadyEvent:
    TYPE: ClassVar[str] = 'ready'

    def to_message(self) -> Dict[str, Any]:
        return {'type': self.TYPE}


@dataclass
class ProgressEvent:
    TYPE: ClassVar[str] = 'progress'
    status: str             # scanning/indexing
    total: int
    indexed: int
    current_file: Optional[str] = None

    def to_message(self) -> Dict[str, Any]:
        msg: Dict[str, Any] = {
            'type': self.TYPE,
            'status': self.status,
            'total': self.total,
            'indexed': self.indexed,
        }
        if self.current_file is not None:
            msg['currentFile'] = self.current_file
        return msg


@dataclass
class PausedEvent:
    TYPE: ClassVar[str] = 'paused'
    indexed: int
    total: int

    def to_message(self) -> Dict[str, Any]:
        return {'type': self.TYPE, 'indexed': self.indexed, 'total': self.total}


@dataclass
class CancelledEvent:
    TYPE: ClassVar[str] = 'cancelled'
    indexed: Optional[int] = None
    total: Optional[int] = None

    def to_message(self) -> Dict[str, Any]:
        msg: Dict[str, Any] = {'type': self.TYPE}
        if self.indexed is not None:
            msg['indexed'] = self.indexed
        if self.total is not None:
            msg['total'] = self.total
        return msg


@dataclass
class CompletedEvent:
    TYPE: ClassVar[str] = 'completed'
    total: int
    indexed: int
    results: List[AssetRecord] = field(default_factory=list)

    def to_message(self) -> Dict[str, Any]:
        return {
            'type': self.TYPE,
            'total': self.total,
            'indexed': self.indexed,
            'results': [r.to_dict() for r in self.results],
        }


@dataclass
class ErrorEvent:
    TYPE: ClassVar[str] = 'error'
    error: str

    @classmethod
    def rejected(cls, reason: str) -> "ErrorEvent":
        """A command the indexer refused; any running session carries on."""
        return cls(error=f"{REJECTED_PREFIX}{reason}")

    @property
    def is_rejection(self) -> bool:
        return self.error.startswith(REJECTED_PREFIX)

    def to_message(self) -> Dict[str, Any]:
        return {'type': self.TYPE, 'error': self.error}


Event = Union[ReadyEvent, ProgressEvent, PausedEvent, CancelledEvent, CompletedEvent, ErrorEvent]


def is_terminal(event: Event) -> bool:
    """True for the one event that ends a session."""
    if isinstance(event, ErrorEvent):
        return not event.is_rejection
    return isinstance(event, (CompletedEvent, CancelledEvent))
