"""Nexis agent tools - importing this package registers the catalog."""

from nexis_agent.tools import market_tools, transfer_tools, wallet_tools  # noqa: F401
from nexis_agent.tools.context import ToolContext  # noqa: F401
from nexis_agent.tools.registry import ToolRegistry, tool  # noqa: F401
