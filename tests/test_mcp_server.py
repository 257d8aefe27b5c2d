import mcp.types as types
import pytest

from launcher_search.mcp_server import build_server


def call(name: str, arguments: dict) -> types.CallToolRequest:
    return types.CallToolRequest(
        method="tools/call",
        params=types.CallToolRequestParams(name=name, arguments=arguments),
    )


@pytest.mark.asyncio
async def test_list_tools(json_client):
    server = build_server(json_client())
    result = await server.request_handlers[types.ListToolsRequest](
        types.ListToolsRequest(method="tools/list")
    )
    assert [tool.name for tool in result.root.tools] == ["search-files", "activate-result"]


@pytest.mark.asyncio
async def test_search_and_activate_tools(json_client, tmp_path):
    record = tmp_path / "requests"
    async with json_client("--record", str(record)) as client:
        server = build_server(client)
        handler = server.request_handlers[types.CallToolRequest]

        result = await handler(call("search-files", {"query": "foo"}))
        assert not result.root.isError
        texts = [item.text for item in result.root.content]
        assert texts == ["[0] foo-0 (Text)\n/tmp/foo/0.txt", "[1] foo-1 (Text)\n/tmp/foo/1.txt"]

        result = await handler(call("activate-result", {"id": 1}))
        assert not result.root.isError
        assert result.root.content[0].text == "Activated foo-1"

        result = await handler(call("activate-result", {"id": 5}))
        assert result.root.isError

    assert record.read_bytes().splitlines()[:2] == [b'{"Search":"foo"}', b'{"Activate":1}']


@pytest.mark.asyncio
async def test_search_tool_reports_timeout(json_client):
    async with json_client() as client:
        server = build_server(client, search_timeout=0.1)
        result = await server.request_handlers[types.CallToolRequest](
            call("search-files", {"query": "slow"})
        )
        assert result.root.isError
        assert "timed out" in result.root.content[0].text
