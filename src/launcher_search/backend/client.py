"""Client for a search backend running as a child process.

Neither wire protocol tags responses with the request they answer, so the client
keeps at most one search awaiting its answer at a time and pairs responses with
requests strictly in write order. A search abandoned by its caller (cancelled or
timed out) stays queued so that its late answer is recognised and dropped rather
than handed to the next caller.
"""

import asyncio
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum

from launcher_search.backend.codec import Codec
from launcher_search.backend.errors import (
    ClientError,
    ConnectError,
    ErrorReason,
    ProtocolError,
    ReadError,
    SpawnError,
    UnsupportedRequestError,
    WriteError,
)
from launcher_search.backend.framer import LineFramer
from launcher_search.backend.mapper import map_entries
from launcher_search.backend.messages import (
    AckResponse,
    ActivateRequest,
    Entry,
    Frame,
    RawEntry,
    Request,
    SearchRequest,
    UpdateResponse,
)
from launcher_search.backend.session import ProcessSession, StderrMode
from launcher_search.logger import logging

logger = logging.getLogger(__name__)

MimeResolver = Callable[[str], str | None]

BATCH_IDLE_TIMEOUT = 0.25  # seconds of silence that close a short text batch


class SessionState(Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    READY = "ready"
    SEARCHING = "searching"
    FAILED = "failed"
    CLOSED = "closed"


@dataclass
class _PendingSearch:
    seq: int
    query: str
    future: asyncio.Future[UpdateResponse]


class BackendClient:
    command: str
    args: tuple[str, ...]
    codec: Codec
    stderr: StderrMode
    query_prefix: str
    mime_resolver: MimeResolver | None
    batch_idle_timeout: float

    def __init__(
        self,
        command: str,
        codec: Codec,
        args: Sequence[str] = (),
        stderr: StderrMode = "null",
        query_prefix: str = "",
        mime_resolver: MimeResolver | None = None,
        batch_idle_timeout: float = BATCH_IDLE_TIMEOUT,
    ):
        self.command = command
        self.args = tuple(args)
        self.codec = codec
        self.stderr = stderr
        self.query_prefix = query_prefix
        self.mime_resolver = mime_resolver
        self.batch_idle_timeout = batch_idle_timeout

        self._state = SessionState.UNINITIALIZED
        self._session: ProcessSession | None = None
        self._framer: LineFramer | None = None
        self._reader_task: asyncio.Task | None = None
        self._connect_lock = asyncio.Lock()
        self._request_lock = asyncio.Lock()
        self._pending: deque[_PendingSearch] = deque()
        self._seq = 0
        self._entries: list[Entry] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def entries(self) -> Sequence[Entry]:
        """Entries from the most recent successful search."""
        return tuple(self._entries)

    def get_entry(self, entry_id: int) -> Entry | None:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        return None

    async def __aenter__(self) -> "BackendClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def connect(self):
        """
        Spawn the backend process unless it is already running.

        A client in the FAILED state gets a fresh process.
        """
        async with self._connect_lock:
            if self._state is SessionState.CLOSED:
                raise ClientError(ErrorReason.DISCONNECTED, "Client is closed")
            if self._session is not None and self._state is not SessionState.FAILED:
                return

            if self._session is not None:
                await self._release_session(send_exit=False)

            self._state = SessionState.CONNECTING
            try:
                session = await ProcessSession.spawn(self.command, self.args, stderr=self.stderr)
            except SpawnError as e:
                self._state = SessionState.FAILED
                raise ConnectError(str(e)) from e

            self._session = session
            self._framer = self.codec.new_framer()
            self._pending.clear()
            self._reader_task = asyncio.create_task(
                self._read_loop(session, self._framer), name=f"{self.command}-reader"
            )
            self._state = SessionState.READY

    async def search(self, query: str, timeout: float | None = None) -> list[Entry]:
        """
        Send a query and wait for its results.

        With a timeout, raises TimeoutError once it expires; the client stays
        usable and the late answer is discarded when it arrives.
        """
        if timeout is not None:
            return await asyncio.wait_for(self._search(query), timeout=timeout)
        return await self._search(query)

    async def _search(self, query: str) -> list[Entry]:
        self._check_usable()
        async with self._request_lock:
            self._check_usable()
            self._seq += 1
            pending = _PendingSearch(
                self._seq, query, asyncio.get_running_loop().create_future()
            )
            # Queued before writing: the answer may arrive while the write drains.
            self._pending.append(pending)
            self._state = SessionState.SEARCHING
            try:
                await self._write(SearchRequest(self.query_prefix + query))
                response = await pending.future
                entries = await self._map(response.entries)
            finally:
                if self._state is SessionState.SEARCHING:
                    self._state = SessionState.READY

            logger.debug("Search #%d %r returned %d entries", pending.seq, query, len(entries))
            self._entries = entries
        return list(entries)

    async def activate(self, entry_id: int):
        """Ask the backend to activate a result. No reply is awaited."""
        if not self.codec.supports_activate:
            raise UnsupportedRequestError(f"The {self.codec.name} protocol cannot activate results")
        self._check_usable()
        # Waits out any search still awaiting its answer.
        async with self._request_lock:
            self._check_usable()
            await self._write(ActivateRequest(entry_id))

    async def close(self):
        """Stop the backend. Safe to call repeatedly, and before connect()."""
        async with self._connect_lock:
            if self._state in (SessionState.UNINITIALIZED, SessionState.CLOSED):
                return
            self._state = SessionState.CLOSED
            self._fail_pending(ClientError(ErrorReason.DISCONNECTED, "Client was closed"))
            await self._release_session(send_exit=True)
        logger.info("Closed backend client for %s", self.command)

    def _check_usable(self):
        if self._state is SessionState.CLOSED:
            raise ClientError(ErrorReason.DISCONNECTED, "Client is closed")
        if self._state is SessionState.FAILED:
            raise ClientError(ErrorReason.BACKEND_DIED, f"Backend {self.command} is not running")
        if self._session is None:
            raise ClientError(ErrorReason.DISCONNECTED, "Client is not connected")

    async def _write(self, request: Request):
        data = self.codec.encode(request)
        session = self._session
        assert session is not None
        try:
            await session.write_bytes(data)
        except WriteError as e:
            self._mark_failed(str(e))
            raise ClientError(ErrorReason.BACKEND_DIED, str(e)) from e
        logger.debug("Sent %r", data)

    async def _map(self, raws: Sequence[RawEntry]) -> list[Entry]:
        resolver = self.mime_resolver
        if resolver is None:
            return map_entries(raws, [raw.mime for raw in raws])

        def resolve() -> list[str | None]:
            return [raw.mime or resolver(raw.description) for raw in raws]

        # Resolvers may shell out, keep them off the event loop.
        mimes = await asyncio.to_thread(resolve)
        return map_entries(raws, mimes)

    async def _read_loop(self, session: ProcessSession, framer: LineFramer):
        read: asyncio.Future[bytes] | None = None
        try:
            while True:
                if read is None:
                    read = asyncio.ensure_future(session.read_chunk())
                timeout = self.batch_idle_timeout if framer.has_open_batch else None
                done, _ = await asyncio.wait({read}, timeout=timeout)
                if not done:
                    # Backend went quiet mid-batch, the declared count was wrong.
                    for frame in framer.flush():
                        self._dispatch(frame)
                    continue

                chunk = read.result()
                read = None
                if not chunk:
                    for frame in framer.feed_eof():
                        self._dispatch(frame)
                    break
                for frame in framer.feed(chunk):
                    self._dispatch(frame)
        except ReadError as e:
            logger.warning("Lost stdout of %s: %s", self.command, e)
        finally:
            if read is not None and not read.done():
                read.cancel()

        if session is self._session and self._state is not SessionState.CLOSED:
            self._mark_failed(f"Backend {self.command} exited")
            await session.close()

    def _dispatch(self, frame: Frame):
        try:
            response = self.codec.decode(frame)
        except ProtocolError as e:
            if e.fatal:
                logger.error("Undecodable response from %s: %s", self.command, e)
                if self._pending:
                    pending = self._pending.popleft()
                    if not pending.future.done():
                        pending.future.set_exception(e)
                return
            logger.warning("Skipping response line from %s: %s", self.command, e)
            return

        if isinstance(response, AckResponse):
            logger.debug("Backend %s acknowledged", self.command)
            return

        if not self._pending:
            logger.debug("Dropping unsolicited update with %d entries", len(response.entries))
            return
        pending = self._pending.popleft()
        if pending.future.done():
            logger.debug("Dropping stale response to search #%d (%r)", pending.seq, pending.query)
            return
        pending.future.set_result(response)

    def _mark_failed(self, message: str):
        if self._state is SessionState.CLOSED:
            return
        if self._state is not SessionState.FAILED:
            logger.warning("%s, marking session failed", message)
        self._state = SessionState.FAILED
        self._fail_pending(ClientError(ErrorReason.BACKEND_DIED, message))

    def _fail_pending(self, error: Exception):
        while self._pending:
            pending = self._pending.popleft()
            if not pending.future.done():
                pending.future.set_exception(error)

    async def _release_session(self, send_exit: bool):
        session, self._session = self._session, None
        reader_task, self._reader_task = self._reader_task, None
        if reader_task is not None and reader_task is not asyncio.current_task():
            reader_task.cancel()
            await asyncio.gather(reader_task, return_exceptions=True)
        if session is not None:
            await session.close(self.codec.exit_marker if send_exit else None)
