"""Data models produced by syntax extraction."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


class UnitKind(str, Enum):
    FUNCTION = "function"
    CLASS = "class"


@dataclass(slots=True)
class CodeUnit:
    """A named function or class together with its source and location."""

    id: str
    kind: UnitKind
    source_text: str
    file_path: str
    embedding: Optional[List[float]] = None

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)

    def metadata(self) -> dict[str, str]:
        return {"file_path": self.file_path, "kind": self.kind.value}
