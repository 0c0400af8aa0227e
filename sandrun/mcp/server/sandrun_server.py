"""
Transport-free MCP request handling for sandrun.

Maps ``initialize``, ``tools/list`` and ``tools/call`` messages onto the
execution engine. Reading and writing messages is left to the embedding
application.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from ...core.config import ProjectConfig
from ...core.logging import get_logger
from ...execution import ExecutionResponse, PythonExecutor
from .tools import EXECUTE_PYTHON_CODE, SandrunTools

logger = get_logger(__name__)


@dataclass
class ServerConfig:
    """Identity reported to MCP clients."""

    name: str = "sandrun"
    version: str = "0.1.0"


class SandrunServer:
    """Dispatches MCP messages to the Python executor."""

    def __init__(
        self,
        config: ServerConfig | None = None,
        executor: PythonExecutor | None = None,
        project_config: ProjectConfig | None = None,
    ):
        self.config = config or ServerConfig()
        self.executor = executor or PythonExecutor(project_config)

    async def handle_initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        """Handle MCP initialize request."""
        return {
            "protocolVersion": "2024-11-05",
            "capabilities": {
                "tools": {},
            },
            "serverInfo": {
                "name": self.config.name,
                "version": self.config.version,
            },
        }

    async def handle_tools_list(self, params: dict[str, Any]) -> dict[str, Any]:
        """Handle tools/list request."""
        return {
            "tools": SandrunTools.to_mcp_tools(),
        }

    async def handle_tools_call(self, params: dict[str, Any]) -> dict[str, Any]:
        """Handle tools/call request."""
        tool_name = params.get("name", "")
        arguments = params.get("arguments") or {}

        handler = self._get_tool_handler(tool_name)
        if handler is None:
            return ExecutionResponse(success=False, text=f"Unknown tool: {tool_name}").to_mcp_response()

        response = await handler(arguments)
        return response.to_mcp_response()

    def _get_tool_handler(self, tool_name: str) -> Callable | None:
        handlers = {
            EXECUTE_PYTHON_CODE: self._handle_execute_python_code,
        }
        return handlers.get(tool_name)

    async def _handle_execute_python_code(self, args: dict[str, Any]) -> ExecutionResponse:
        logger.debug(f"{EXECUTE_PYTHON_CODE} called with fields {sorted(args)}")
        return await self.executor.execute(args)

    async def handle_message(self, message: dict[str, Any]) -> dict[str, Any] | None:
        """Handle an incoming MCP message."""
        method = message.get("method", "")
        params = message.get("params") or {}
        msg_id = message.get("id")

        handlers = {
            "initialize": self.handle_initialize,
            "tools/list": self.handle_tools_list,
            "tools/call": self.handle_tools_call,
        }

        handler = handlers.get(method)
        if handler is None:
            if msg_id is not None:
                return {
                    "jsonrpc": "2.0",
                    "id": msg_id,
                    "error": {
                        "code": -32601,
                        "message": f"Method not found: {method}",
                    },
                }
            return None

        try:
            result = await handler(params)
        except Exception as e:
            logger.exception(f"Internal error handling {method}")
            if msg_id is None:
                return None
            return {
                "jsonrpc": "2.0",
                "id": msg_id,
                "error": {
                    "code": -32603,
                    "message": str(e),
                },
            }
        if msg_id is None:
            return None
        return {
            "jsonrpc": "2.0",
            "id": msg_id,
            "result": result,
        }


def create_sandrun_server(project_config: ProjectConfig | None = None) -> SandrunServer:
    return SandrunServer(project_config=project_config)
