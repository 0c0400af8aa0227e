"""
MCP surface for sandrun.

Tools provided:
- execute_python_code: Run Python code in a confined guest interpreter
"""

from .sandrun_server import SandrunServer, ServerConfig, create_sandrun_server
from .tools import SandrunTools, ToolDefinition, ToolParameter

__all__ = [
    "SandrunServer",
    "SandrunTools",
    "ServerConfig",
    "ToolDefinition",
    "ToolParameter",
    "create_sandrun_server",
]
