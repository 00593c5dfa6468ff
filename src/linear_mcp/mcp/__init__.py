"""MCP protocol surface for Linear."""

from .server import LinearMCPServer

__all__ = ["LinearMCPServer"]
