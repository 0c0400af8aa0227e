"""
Model Context Protocol integration for sandrun.
"""

from .server import SandrunServer, SandrunTools, create_sandrun_server

__all__ = ["SandrunServer", "SandrunTools", "create_sandrun_server"]
