from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Document:
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_text(cls, text: str, metadata: dict[str, Any] | None = None) -> Document:
        return cls(content=text, metadata=dict(metadata or {}))

    def text(self) -> str:
        return self.content

    def to_dict(self) -> dict[str, Any]:
        return {"content": self.content, "metadata": dict(self.metadata)}


@dataclass
class RetrieverResponse:
    documents: list[Document]
