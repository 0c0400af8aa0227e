"""
Execution request handling: validation, orchestration and formatting.
"""

from .engine import PythonExecutor
from .formatter import ExecutionResponse
from .request import ExecutionRequest, ReturnFormat

__all__ = ["ExecutionRequest", "ExecutionResponse", "PythonExecutor", "ReturnFormat"]
