"""
MCP tool definitions for the sandrun server.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

EXECUTE_PYTHON_CODE = "execute_python_code"


@dataclass
class ToolParameter:
    """One property of a tool's JSON input schema."""

    name: str
    description: str
    type: str | list[str] = "string"
    required: bool = False
    # Extra JSON schema keywords such as enum, default or items.
    schema: dict[str, Any] = field(default_factory=dict)

    def to_property(self) -> dict[str, Any]:
        return {"type": self.type, "description": self.description, **self.schema}


@dataclass
class ToolDefinition:
    name: str
    description: str
    parameters: list[ToolParameter]

    def to_mcp_schema(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": {
                "type": "object",
                "properties": {p.name: p.to_property() for p in self.parameters},
                "required": [p.name for p in self.parameters if p.required],
            },
        }


class SandrunTools:
    """Tools exposed via MCP."""

    @staticmethod
    def execute_python_code() -> ToolDefinition:
        return ToolDefinition(
            name=EXECUTE_PYTHON_CODE,
            description=(
                "Execute Python code in a separate interpreter whose file access is confined "
                "to its working directory and a temporary scratch directory. Packages listed "
                "in install_packages are installed into an isolated directory first. The "
                "process is terminated if it exceeds timeout_ms."
            ),
            parameters=[
                ToolParameter(
                    name="code",
                    description="Python source code to execute",
                    required=True,
                ),
                ToolParameter(
                    name="target_directory",
                    description=(
                        "Existing directory to run in. Overrides the workspace setting; "
                        "relative paths resolve against the server's working directory."
                    ),
                ),
                ToolParameter(
                    name="timeout_ms",
                    description=(
                        "Timeout in milliseconds (1000-300000), or 'auto' for 120000 when "
                        "packages are installed and 30000 otherwise"
                    ),
                    type=["integer", "string"],
                    schema={"default": "auto"},
                ),
                ToolParameter(
                    name="install_packages",
                    description="Package specifiers to install before running, e.g. 'requests==2.32.3'",
                    type="array",
                    schema={"items": {"type": "string"}},
                ),
                ToolParameter(
                    name="workspace",
                    description=(
                        "'temp' for a throwaway directory, 'persistent' for a directory kept "
                        "between calls, or a custom path"
                    ),
                    schema={"default": "temp"},
                ),
                ToolParameter(
                    name="return_format",
                    description="'detailed' appends working directory, timeout and packages",
                    schema={"enum": ["simple", "detailed"], "default": "simple"},
                ),
                ToolParameter(
                    name="force_reinstall",
                    description="Install packages fresh instead of using the package cache",
                    type="boolean",
                ),
            ],
        )

    @classmethod
    def all_tools(cls) -> list[ToolDefinition]:
        return [cls.execute_python_code()]

    @classmethod
    def to_mcp_tools(cls) -> list[dict[str, Any]]:
        return [tool.to_mcp_schema() for tool in cls.all_tools()]
