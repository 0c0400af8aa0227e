"""Tests for the MCP tool surface."""

import pytest

from sandrun.execution import ExecutionResponse
from sandrun.mcp.server import SandrunServer, SandrunTools, ServerConfig


class StubExecutor:
    def __init__(self):
        self.calls = []

    async def execute(self, arguments):
        self.calls.append(arguments)
        return ExecutionResponse(success=True, text="ok\n")


@pytest.fixture
def stub_executor():
    return StubExecutor()


@pytest.fixture
def server(stub_executor):
    return SandrunServer(ServerConfig(name="sandrun-test", version="9.9.9"), executor=stub_executor)


def test_tool_schema():
    (schema,) = SandrunTools.to_mcp_tools()
    assert schema["name"] == "execute_python_code"
    input_schema = schema["inputSchema"]
    assert input_schema["required"] == ["code"]
    assert set(input_schema["properties"]) == {
        "code",
        "target_directory",
        "timeout_ms",
        "install_packages",
        "workspace",
        "return_format",
        "force_reinstall",
    }
    assert input_schema["properties"]["timeout_ms"]["type"] == ["integer", "string"]
    assert input_schema["properties"]["install_packages"]["items"] == {"type": "string"}
    assert input_schema["properties"]["return_format"]["enum"] == ["simple", "detailed"]
    assert input_schema["properties"]["workspace"]["default"] == "temp"
    assert "default" not in input_schema["properties"]["code"]


@pytest.mark.asyncio
async def test_initialize_reports_server_identity(server):
    result = await server.handle_initialize({})
    assert result["serverInfo"] == {"name": "sandrun-test", "version": "9.9.9"}
    assert "tools" in result["capabilities"]


@pytest.mark.asyncio
async def test_tools_call_dispatches_to_executor(server, stub_executor):
    response = await server.handle_tools_call(
        {"name": "execute_python_code", "arguments": {"code": "print('ok')"}}
    )
    assert response == {"content": [{"type": "text", "text": "ok\n"}], "isError": False}
    assert stub_executor.calls == [{"code": "print('ok')"}]


@pytest.mark.asyncio
async def test_unknown_tool_is_an_error_result(server, stub_executor):
    response = await server.handle_tools_call({"name": "rm_rf", "arguments": {}})
    assert response["isError"] is True
    assert response["content"][0]["text"] == "Unknown tool: rm_rf"
    assert stub_executor.calls == []


@pytest.mark.asyncio
async def test_handle_message_wraps_result(server):
    reply = await server.handle_message({"jsonrpc": "2.0", "id": 7, "method": "tools/list"})
    assert reply["id"] == 7
    assert reply["result"]["tools"][0]["name"] == "execute_python_code"


@pytest.mark.asyncio
async def test_handle_message_unknown_method(server):
    reply = await server.handle_message({"jsonrpc": "2.0", "id": 8, "method": "resources/list"})
    assert reply["error"]["code"] == -32601
    assert await server.handle_message({"method": "resources/list"}) is None


@pytest.mark.asyncio
async def test_validation_errors_come_back_as_tool_errors(tmp_path):
    server = SandrunServer()
    reply = await server.handle_message(
        {
            "jsonrpc": "2.0",
            "id": 9,
            "method": "tools/call",
            "params": {"name": "execute_python_code", "arguments": {"code": "  "}},
        }
    )
    result = reply["result"]
    assert result["isError"] is True
    assert "code" in result["content"][0]["text"]


class ExplodingExecutor:
    async def execute(self, arguments):
        raise RuntimeError("executor exploded")


@pytest.mark.asyncio
async def test_handler_crash_becomes_internal_error():
    server = SandrunServer(executor=ExplodingExecutor())
    message = {
        "jsonrpc": "2.0",
        "id": 10,
        "method": "tools/call",
        "params": {"name": "execute_python_code", "arguments": {"code": "print(1)"}},
    }

    reply = await server.handle_message(message)

    assert reply["id"] == 10
    assert reply["error"] == {"code": -32603, "message": "executor exploded"}
    assert await server.handle_message({k: v for k, v in message.items() if k != "id"}) is None
