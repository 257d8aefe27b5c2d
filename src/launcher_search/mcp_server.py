import asyncio

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from launcher_search.backend.client import BackendClient
from launcher_search.backend.errors import BackendError
from launcher_search.backends import BackendConfig, create_client
from launcher_search.logger import logging

logger = logging.getLogger(__name__)

SEARCH_TIMEOUT = 10.0  # seconds


def build_server(client: BackendClient, search_timeout: float = SEARCH_TIMEOUT) -> Server:
    server = Server("launcher-search")

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        """
        List available tools.
        Each tool specifies its arguments using JSON Schema validation.
        """
        return [
            types.Tool(
                name="search-files",
                description="Search for files and launcher entries",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "query": {"type": "string"},
                    },
                    "required": ["query"],
                },
            ),
            types.Tool(
                name="activate-result",
                description="Activate a result from the most recent search",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "id": {"type": "integer"},
                    },
                    "required": ["id"],
                },
            ),
        ]

    @server.call_tool()
    async def handle_call_tool(
        name: str, arguments: dict | None
    ) -> list[types.TextContent | types.ImageContent | types.EmbeddedResource]:
        """
        Handle tool execution requests.
        """
        if not arguments:
            raise ValueError("Missing arguments")

        if name == "search-files":
            query = arguments.get("query")
            if not query:
                raise ValueError("Missing query")
            try:
                entries = await client.search(query, timeout=search_timeout)
            except TimeoutError:
                raise ValueError(f"Search timed out after {search_timeout}s")
            except BackendError as e:
                raise ValueError(f"Search failed: {e}") from e
            return [
                types.TextContent(
                    type="text",
                    text=f"[{entry.id}] {entry.title} ({entry.classification.value})\n{entry.subtitle}",
                )
                for entry in entries
            ]

        if name == "activate-result":
            entry_id = arguments.get("id")
            if not isinstance(entry_id, int):
                raise ValueError("Missing id")
            entry = client.get_entry(entry_id)
            if entry is None:
                raise ValueError(f"Unknown result id: {entry_id}")
            if not client.codec.supports_activate:
                from launcher_search.files import open_path

                open_path(entry.subtitle)
            else:
                await client.activate(entry_id)
            return [types.TextContent(type="text", text=f"Activated {entry.title}")]

        raise ValueError(f"Unknown tool: {name}")

    return server


def run_server(config: BackendConfig):
    client = create_client(config)
    server = build_server(client)

    async def run_server():
        await client.connect()
        try:
            # Run the server using stdin/stdout streams
            async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
                await server.run(
                    read_stream,
                    write_stream,
                    InitializationOptions(
                        server_name="launcher-search",
                        server_version="0.1.0",
                        capabilities=server.get_capabilities(
                            notification_options=NotificationOptions(),
                            experimental_capabilities={},
                        ),
                    ),
                )
        finally:
            await client.close()

    logger.info("Starting server with backend %s", config.name)

    asyncio.run(run_server())
