"""Reassemble raw pipe reads into complete wire records.

Bytes are only decoded once a full line (terminated by ``\\n``) is buffered, so a
multi-byte UTF-8 character split across two reads is never decoded in halves.
"""

from launcher_search.backend.messages import Frame
from launcher_search.logger import logging

logger = logging.getLogger(__name__)

NEWLINE = b"\n"


class LineFramer:
    """Emits one frame per non-blank newline-terminated line."""

    _buffer: bytearray
    _at_eof: bool

    def __init__(self):
        self._buffer = bytearray()
        self._at_eof = False

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet part of a complete line."""
        return len(self._buffer)

    @property
    def at_eof(self) -> bool:
        return self._at_eof

    @property
    def has_open_batch(self) -> bool:
        """True while complete lines are held back waiting for more of their record."""
        return False

    def feed(self, chunk: bytes) -> list[Frame]:
        """
        Append a chunk and return every frame it completes.

        A zero-length chunk marks the end of the stream.
        """
        if not chunk:
            return self.feed_eof()
        if self._at_eof:
            raise ValueError("Cannot feed data after end of stream")
        self._buffer.extend(chunk)
        return self._extract()

    def feed_eof(self) -> list[Frame]:
        """Mark the end of the stream. Unterminated bytes are dropped."""
        if self._buffer:
            logger.debug("Discarding %d unterminated bytes at end of stream", len(self._buffer))
        self._buffer.clear()
        self._at_eof = True
        return self.flush()

    def flush(self) -> list[Frame]:
        return []

    def reset(self):
        self._buffer.clear()
        self._at_eof = False

    def _extract(self) -> list[Frame]:
        return [Frame((line,)) for line in self._take_lines() if line.strip()]

    def _take_lines(self) -> list[str]:
        end = self._buffer.rfind(NEWLINE)
        if end == -1:
            return []
        complete = bytes(self._buffer[: end + 1])
        del self._buffer[: end + 1]
        return [raw.decode("utf-8", errors="replace") for raw in complete.split(NEWLINE)[:-1]]


def parse_count(line: str) -> int | None:
    try:
        count = int(line.strip())
    except ValueError:
        return None
    return count if count >= 0 else None


class BatchFramer(LineFramer):
    """Emits count-prefixed batches of lines.

    Every batch starts with a count line. It is emitted once it holds that many
    paths, when the next count line arrives, or when the caller gives up waiting
    and calls ``flush`` (or the stream ends). The count is never required to
    match. Path lines with no count line ahead of them are dropped.
    """

    _batch: list[str] | None
    _declared: int

    def __init__(self):
        super().__init__()
        self._batch = None
        self._declared = 0

    @property
    def has_open_batch(self) -> bool:
        return self._batch is not None

    def flush(self) -> list[Frame]:
        """Emit the open batch as it stands, however many paths it holds."""
        if self._batch is None:
            return []
        if len(self._batch) - 1 != self._declared:
            logger.debug(
                "Closing batch with %d of %d declared paths", len(self._batch) - 1, self._declared
            )
        frame = Frame(tuple(self._batch))
        self._batch = None
        return [frame]

    def reset(self):
        super().reset()
        self._batch = None

    def _extract(self) -> list[Frame]:
        frames = []
        for line in self._take_lines():
            if not line.strip():
                continue
            count = parse_count(line)
            if count is not None:
                frames.extend(self.flush())
                self._batch = [line]
                self._declared = count
            elif self._batch is None:
                logger.warning("Dropping path outside of any result batch: %s", line)
                continue
            else:
                self._batch.append(line)

            if len(self._batch) - 1 >= self._declared:
                frames.extend(self.flush())
        return frames
