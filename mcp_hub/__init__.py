"""MCP Hub - multi-server tool protocol adapter."""

__version__ = "0.1.0"
