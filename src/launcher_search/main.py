import asyncio
import json
import sys
from dataclasses import asdict

import click

from launcher_search.backends import SUPPORTED_BACKENDS, create_client, get_backend_config
from launcher_search.repl import format_entry, run_repl

backend_option = click.option(
    "--backend",
    "-b",
    "backend_name",
    help=f"Search backend to spawn. Overrides LAUNCHER_SEARCH_BACKEND env var. Supported: {', '.join(SUPPORTED_BACKENDS.keys())}",
    type=click.Choice(list(SUPPORTED_BACKENDS.keys())),
    default=None,
)

PREVIEW_LINES = 10


@click.group("launcher-search")
def main():
    """
    CLI for Launcher Search.
    """
    pass


def _entry_dict(entry) -> dict:
    data = asdict(entry)
    data["classification"] = entry.classification.value
    return data


@main.command("search")
@click.argument("query")
@backend_option
@click.option("--timeout", type=float, default=None, help="Seconds to wait for results.")
@click.option("--json", "as_json", is_flag=True, help="Print results as a JSON array.")
def search_cmd(query: str, backend_name: str | None, timeout: float | None, as_json: bool):
    """
    Run a single search and print the results.
    """
    from launcher_search.backend.errors import BackendError

    config = get_backend_config(backend_name)

    async def run():
        async with create_client(config) as client:
            return await client.search(query, timeout=timeout)

    try:
        entries = asyncio.run(run())
    except TimeoutError:
        raise click.ClickException(f"No results from {config.name} within {timeout}s")
    except BackendError as e:
        raise click.ClickException(str(e)) from e

    if as_json:
        click.echo(json.dumps([_entry_dict(entry) for entry in entries], indent=2))
    else:
        for entry in entries:
            click.echo(format_entry(entry))


@main.command("repl")
@backend_option
def repl_cmd(backend_name: str | None):
    """
    Read queries from stdin, one per line.

    Commands: ":open N" activates a result, ":reveal N" shows it in the file manager,
    ":info N" shows file details, ":quit" exits.
    """
    config = get_backend_config(backend_name)
    asyncio.run(run_repl(create_client(config), sys.stdin, click.echo))


@main.command("backends")
def backends_cmd():
    """
    List the supported backends.
    """
    for name, config in SUPPORTED_BACKENDS.items():
        command = " ".join((config.command, *config.args))
        click.echo(f"{name:<14} {config.protocol:<5} {command}")


@main.command("info")
@click.argument("path", type=click.Path(exists=True, path_type=str))
@click.option("--preview", is_flag=True, help="Also show the start of text files and the size of images.")
def info_cmd(path: str, preview: bool):
    """
    Show details for a file.
    """
    from launcher_search.files import describe, read_preview

    details = describe(path)
    click.echo(f"Path:        {details.path}")
    click.echo(f"Name:        {details.name}")
    click.echo(f"MIME Type:   {details.mime}")
    click.echo(f"Size:        {details.size}")
    click.echo(f"Modified:    {details.modified:%Y-%m-%d %H:%M:%S}")
    click.echo(f"Created:     {details.created:%Y-%m-%d %H:%M:%S}")
    click.echo(f"Permissions: {details.permissions}")

    if not preview:
        return
    content = read_preview(path, details.mime)
    if content is None:
        click.echo(f"No preview for {details.mime}")
    elif isinstance(content, bytes):
        click.echo(f"Preview:     <{len(content)} bytes of {details.mime}>")
    else:
        click.echo()
        for line in content.splitlines()[:PREVIEW_LINES]:
            click.echo(line)


@main.command("mcp")
@backend_option
def mcp_cmd(backend_name: str | None):
    """
    Run the Launcher Search MCP server.
    """
    from launcher_search.mcp_server import run_server

    run_server(get_backend_config(backend_name))


if __name__ == "__main__":
    main()
