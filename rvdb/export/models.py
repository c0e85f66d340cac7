"""
Export data models.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ExportState(Enum):
    """Export lifecycle: IDLE -> RUNNING -> {COMPLETED, CANCELLED, FAILED}."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ExportState.COMPLETED, ExportState.CANCELLED, ExportState.FAILED)


class KeyType(str, Enum):
    """Redis type tags, as returned by TYPE."""
    STRING = "string"
    HASH = "hash"
    LIST = "list"
    SET = "set"
    ZSET = "zset"
    NONE = "none"

    @classmethod
    def parse(cls, tag: Any) -> Optional["KeyType"]:
        """Return the KeyType for a TYPE reply, None if unrecognized."""
        if isinstance(tag, bytes):
            tag = tag.decode("utf-8", errors="replace")
        try:
            return cls(tag)
        except ValueError:
            return None


@dataclass(frozen=True)
class StoreEntry:
    """
    One exported key.

    Attributes:
        key: Key name (decoded as UTF-8, invalid bytes backslash-escaped)
        type: Redis type tag; unknown tags are kept verbatim
        value: JSON-safe projection of the value
    """
    key: str
    type: str
    value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "type": self.type, "value": self.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoreEntry":
        return cls(key=data["key"], type=data["type"], value=data.get("value"))


@dataclass
class ExportResult:
    """Result of an export run."""
    state: ExportState
    path: str
    exported_count: int
    total_keys_estimate: int
    duration_seconds: float
    warnings: List[str] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.state is ExportState.COMPLETED

    def summary(self) -> str:
        return (
            f"Export {self.state.value}: {self.exported_count}/{self.total_keys_estimate} keys "
            f"in {self.duration_seconds:.1f}s -> {self.path}"
        )

