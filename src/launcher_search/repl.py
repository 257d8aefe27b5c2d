import asyncio
from collections.abc import Callable
from typing import TextIO

from launcher_search.backend.client import BackendClient
from launcher_search.backend.errors import BackendError, ClientError, ErrorReason
from launcher_search.backend.messages import Entry
from launcher_search.files import describe, open_path, reveal_path

HELP = ":open N | :reveal N | :info N | :reconnect | :quit"


def format_entry(entry: Entry) -> str:
    return f"{entry.id:>4}  {entry.classification.value:<8}  {entry.title}  {entry.subtitle}"


async def run_repl(client: BackendClient, stream: TextIO, echo: Callable[[str], None]):
    """
    Drive a client from line-oriented input until EOF or ``:quit``.

    Backend failures are reported and the loop keeps going; ``:reconnect``
    spawns a fresh backend after one died.
    """
    await client.connect()
    try:
        while True:
            line = await asyncio.to_thread(stream.readline)
            if not line:
                break
            line = line.strip()
            if not line:
                continue
            if line in (":quit", ":q"):
                break
            try:
                await _handle(client, line, echo)
            except ClientError as e:
                if e.reason is ErrorReason.BACKEND_DIED:
                    echo(f"error: {e} (use :reconnect)")
                else:
                    echo(f"error: {e}")
            except BackendError as e:
                echo(f"error: {e}")
    finally:
        await client.close()


async def _handle(client: BackendClient, line: str, echo: Callable[[str], None]):
    if line == ":reconnect":
        await client.connect()
        echo(f"connected ({client.state.value})")
        return

    if line.startswith(":"):
        command, _, arg = line.partition(" ")
        if command not in (":open", ":reveal", ":info") or not arg.strip().isdigit():
            echo(HELP)
            return
        entry = client.get_entry(int(arg))
        if entry is None:
            echo(f"no result {arg.strip()} in the current results")
            return
        if command == ":open":
            if client.codec.supports_activate:
                await client.activate(entry.id)
            else:
                open_path(entry.subtitle)
            return
        if command == ":reveal":
            reveal_path(entry.subtitle)
            return
        try:
            details = describe(entry.subtitle)
        except OSError as e:
            echo(f"cannot stat {entry.subtitle}: {e}")
            return
        echo(f"{details.path}  {details.mime}  {details.size}  {details.permissions}  {details.modified:%Y-%m-%d %H:%M}")
        return

    for entry in await client.search(line):
        echo(format_entry(entry))
