from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass
class SearchRequest:
    query: str


@dataclass
class ActivateRequest:
    id: int


@dataclass
class ExitRequest:
    pass


Request = SearchRequest | ActivateRequest | ExitRequest


@dataclass
class RawEntry:
    id: int
    name: str
    description: str
    icon: dict[str, Any] | None = None  # JSON backends: {"Mime": ...} or {"Name": ...}

    @property
    def mime(self) -> str | None:
        if not self.icon:
            return None
        mime = self.icon.get("Mime")
        return mime if isinstance(mime, str) else None


@dataclass
class UpdateResponse:
    entries: Sequence[RawEntry] = field(default_factory=list)


@dataclass
class AckResponse:
    pass


Response = UpdateResponse | AckResponse


class Classification(Enum):
    IMAGE = "Image"
    FOLDER = "Folder"
    FILM = "Film"
    MUSIC = "Music"
    CODE = "Code"
    TEXT = "Text"
    DOCUMENT = "Document"


@dataclass(frozen=True)
class Entry:
    id: int
    title: str
    subtitle: str
    classification: Classification = Classification.DOCUMENT


@dataclass(frozen=True)
class Frame:
    """One complete wire record.

    JSON-line frames hold a single line; delimited-text frames hold the count
    line followed by the path lines of one batch.
    """

    lines: tuple[str, ...]
