"""Serial driver and MCP server for the PCDE power distribution unit."""

__version__ = "0.1.0"
