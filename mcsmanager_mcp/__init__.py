"""MCP server exposing an MCSManager panel's REST API as tools and resources."""

__version__ = "1.0.0"
