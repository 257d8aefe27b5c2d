"""Wire codecs for the two backend protocols.

JSON-line (pop-launcher style)::

    -> {"Search":"query"}
    -> {"Activate":3}
    -> "Exit"
    <- {"Update":[{"id":0,"name":"...","description":"...","icon":{"Mime":"..."}}]}

Delimited text (goldfish style)::

    -> q:query
    -> c:Exit            (no trailing newline, no reply)
    <- 2
    <- /home/alice/a.txt
    <- /home/alice/b.png
"""

import json
import os
from abc import ABC, abstractmethod
from typing import Any

from launcher_search.backend.errors import ProtocolError, UnsupportedRequestError
from launcher_search.backend.framer import BatchFramer, LineFramer, parse_count
from launcher_search.backend.messages import (
    AckResponse,
    ActivateRequest,
    ExitRequest,
    Frame,
    RawEntry,
    Request,
    Response,
    SearchRequest,
    UpdateResponse,
)
from launcher_search.logger import logging

logger = logging.getLogger(__name__)


class Codec(ABC):
    name: str
    supports_activate: bool = True

    @abstractmethod
    def encode(self, request: Request) -> bytes: ...

    @abstractmethod
    def decode(self, frame: Frame) -> Response:
        """
        Decode one frame.

        Raises ProtocolError for a frame that carries no usable response. The
        error's ``fatal`` flag tells the caller whether to keep reading.
        """

    @abstractmethod
    def new_framer(self) -> LineFramer: ...

    @property
    def exit_marker(self) -> bytes:
        return self.encode(ExitRequest())


def _dumps(value: Any) -> bytes:
    return (json.dumps(value, separators=(",", ":"), ensure_ascii=False) + "\n").encode("utf-8")


def _raw_entry(item: Any) -> RawEntry | None:
    if not isinstance(item, dict):
        return None
    entry_id = item.get("id")
    if not isinstance(entry_id, int) or isinstance(entry_id, bool):
        return None
    icon = item.get("icon")
    return RawEntry(
        id=entry_id,
        name=str(item.get("name") or ""),
        description=str(item.get("description") or ""),
        icon=icon if isinstance(icon, dict) else None,
    )


class JsonLineCodec(Codec):
    name = "json"

    def encode(self, request: Request) -> bytes:
        match request:
            case SearchRequest(query=query):
                return _dumps({"Search": query})
            case ActivateRequest(id=entry_id):
                return _dumps({"Activate": entry_id})
            case ExitRequest():
                # Bare string, unlike the object-shaped requests.
                return _dumps("Exit")
        raise UnsupportedRequestError(f"Cannot encode {request!r}")

    def decode(self, frame: Frame) -> Response:
        line = frame.lines[0]
        try:
            value = json.loads(line)
        except json.JSONDecodeError as e:
            raise ProtocolError(f"Malformed JSON line: {e}") from e

        if value == "Close":
            return AckResponse()

        if not isinstance(value, dict) or not isinstance(value.get("Update"), list):
            raise ProtocolError(f"Unhandled response: {line[:80]}")

        entries = []
        for item in value["Update"]:
            entry = _raw_entry(item)
            if entry is None:
                logger.warning("Skipping malformed search result: %r", item)
                continue
            entries.append(entry)
        return UpdateResponse(entries=entries)

    def new_framer(self) -> LineFramer:
        return LineFramer()


class DelimitedTextCodec(Codec):
    name = "text"
    supports_activate = False

    def encode(self, request: Request) -> bytes:
        match request:
            case SearchRequest(query=query):
                # A newline inside the query would end the record early.
                return f"q:{query.replace(chr(10), ' ')}\n".encode("utf-8")
            case ExitRequest():
                return b"c:Exit"
        raise UnsupportedRequestError(f"The text protocol cannot encode {request!r}")

    def decode(self, frame: Frame) -> Response:
        lines = [line for line in frame.lines if line.strip()]
        if not lines:
            return UpdateResponse(entries=[])

        declared, paths = parse_count(lines[0]), lines[1:]
        if declared != len(paths):
            logger.debug("Declared %s results, received %d", declared, len(paths))

        return UpdateResponse(
            entries=[
                RawEntry(id=position, name=os.path.basename(path) or path, description=path)
                for position, path in enumerate(paths)
            ]
        )

    def new_framer(self) -> LineFramer:
        return BatchFramer()


CODECS: dict[str, type[Codec]] = {
    JsonLineCodec.name: JsonLineCodec,
    DelimitedTextCodec.name: DelimitedTextCodec,
}


def get_codec(protocol: str) -> Codec:
    if protocol not in CODECS:
        raise ValueError(f"Unsupported protocol: {protocol}. Supported protocols: {', '.join(CODECS)}")
    return CODECS[protocol]()
