"""Version of the Dynatrace MCP server, reported to Dynatrace in the user agent."""

__version__ = "0.5.0"
