import asyncio
from collections.abc import Sequence
from typing import Literal

from launcher_search.backend.errors import ReadError, SpawnError, WriteError
from launcher_search.logger import logging

logger = logging.getLogger(__name__)

StderrMode = Literal["null", "pipe"]

CHUNK_SIZE = 64 * 1024
CLOSE_TIMEOUT = 2.0  # seconds to wait for a graceful exit before killing


class ProcessSession:
    """
    A spawned backend process and its stdin/stdout pipes.

    Use ``ProcessSession.spawn`` to create one. ``close`` releases everything,
    even if an earlier step of the shutdown fails.
    """

    command: str
    args: tuple[str, ...]
    process: asyncio.subprocess.Process

    def __init__(self, command: str, args: Sequence[str], process: asyncio.subprocess.Process):
        self.command = command
        self.args = tuple(args)
        self.process = process
        self._close_task: asyncio.Future[int | None] | None = None
        self._pending_read: asyncio.Future[bytes] | None = None
        self._stderr_task: asyncio.Task | None = None
        if process.stderr is not None:
            self._stderr_task = asyncio.create_task(
                self._drain_stderr(process.stderr), name=f"{command}-stderr"
            )

    @classmethod
    async def spawn(
        cls,
        command: str,
        args: Sequence[str] = (),
        stderr: StderrMode = "null",
    ) -> "ProcessSession":
        try:
            process = await asyncio.create_subprocess_exec(
                command,
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE if stderr == "pipe" else asyncio.subprocess.DEVNULL,
            )
        except FileNotFoundError as e:
            raise SpawnError(f"Executable not found: {command}") from e
        except PermissionError as e:
            raise SpawnError(f"Permission denied: {command}") from e
        except OSError as e:
            raise SpawnError(f"Failed to spawn {command}: {e}") from e

        if process.stdin is None or process.stdout is None:
            process.kill()
            await process.wait()
            raise SpawnError(f"Failed to create pipes for {command}")

        logger.info("Spawned %s (pid %d)", command, process.pid)
        return cls(command, args, process)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> int | None:
        return self.process.returncode

    @property
    def is_closed(self) -> bool:
        return self._close_task is not None

    async def write_bytes(self, buf: bytes):
        stdin = self.process.stdin
        assert stdin is not None
        if self.is_closed or stdin.is_closing():
            raise WriteError(f"stdin of {self.command} is closed")
        try:
            stdin.write(buf)
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise WriteError(f"Broken pipe writing to {self.command}") from e

    async def read_chunk(self) -> bytes:
        """
        Wait for the next bytes from stdout.

        Returns ``b""`` once the stream has ended or the session was closed.
        """
        stdout = self.process.stdout
        assert stdout is not None
        if self.is_closed:
            return b""

        read = asyncio.ensure_future(stdout.read(CHUNK_SIZE))
        self._pending_read = read
        try:
            await asyncio.wait({read})
        finally:
            if not read.done():
                read.cancel()
            self._pending_read = None

        if read.cancelled():
            return b""
        exc = read.exception()
        if exc is not None:
            raise ReadError(f"Failed reading from {self.command}: {exc}") from exc
        return read.result()

    async def close(self, exit_marker: bytes | None = None) -> int | None:
        """
        Shut the process down and return its exit status.

        Safe to call more than once.
        """
        if self._close_task is None:
            self._close_task = asyncio.ensure_future(self._close(exit_marker))
        # Shutdown runs to completion even if the caller is cancelled.
        return await asyncio.shield(self._close_task)

    async def _close(self, exit_marker: bytes | None) -> int | None:
        stdin = self.process.stdin
        assert stdin is not None
        try:
            if exit_marker and not stdin.is_closing() and self.returncode is None:
                try:
                    stdin.write(exit_marker)
                    await stdin.drain()
                except (BrokenPipeError, ConnectionResetError):
                    logger.debug("Backend %s exited before the exit marker was sent", self.command)
        finally:
            stdin.close()
            if self._pending_read is not None:
                self._pending_read.cancel()
            await self._await_exit()
            if self._stderr_task is not None:
                self._stderr_task.cancel()
                await asyncio.gather(self._stderr_task, return_exceptions=True)

        if self.returncode:
            logger.warning("Backend %s exited with status %d", self.command, self.returncode)
        else:
            logger.info("Backend %s exited with status %s", self.command, self.returncode)
        return self.returncode

    async def _await_exit(self):
        try:
            await asyncio.wait_for(self.process.wait(), timeout=CLOSE_TIMEOUT)
        except TimeoutError:
            logger.warning(
                "Backend %s did not exit within %.1fs, killing", self.command, CLOSE_TIMEOUT
            )
            try:
                self.process.kill()
            except ProcessLookupError:
                pass
            await self.process.wait()

    async def _drain_stderr(self, stream: asyncio.StreamReader):
        async for line in stream:
            logger.debug("[%s] %s", self.command, line.decode("utf-8", errors="replace").rstrip())
