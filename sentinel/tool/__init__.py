"""
Sentinel Tools — tool decorator, Function class, toolkits and upstream catalogs.

Usage:
    from sentinel.tool import tool, Function
"""

from sentinel.tool.catalog import CatalogKind, ToolCatalog, http_catalog, mcp_catalog
from sentinel.tool.decorator import tool
from sentinel.tool.function import Function, ToolOutcome
from sentinel.tool.toolkit import Toolkit

__all__ = ["tool", "Function", "ToolOutcome", "Toolkit", "ToolCatalog", "CatalogKind", "http_catalog", "mcp_catalog"]
