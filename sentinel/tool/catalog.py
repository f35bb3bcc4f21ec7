"""Catalogs of upstream tools (remote HTTP services and MCP servers).

The wire protocol for reaching an upstream is outside this package: a catalog is
handed ready-made :class:`Function` objects (client stubs) and only answers
which tools an upstream offers.
"""

from enum import Enum
from typing import Dict, Iterable, List, Optional

from sentinel.tool.function import Function


class CatalogKind(str, Enum):
  HTTP = "http"
  MCP = "mcp"


class ToolCatalog:
  """The tools exposed by one named upstream."""

  def __init__(self, upstream: str, kind: CatalogKind, tools: Optional[Iterable[Function]] = None):
    self.upstream = upstream
    self.kind = CatalogKind(kind)
    self._tools: Dict[str, Function] = {}
    for fn in tools or []:
      self.add(fn)

  def add(self, fn: Function) -> "ToolCatalog":
    self._tools[fn.name] = fn
    return self

  def get(self, name: str) -> Optional[Function]:
    return self._tools.get(name)

  def names(self) -> List[str]:
    return list(self._tools)

  def all(self) -> List[Function]:
    return list(self._tools.values())

  def __contains__(self, name: object) -> bool:
    return name in self._tools

  def __len__(self) -> int:
    return len(self._tools)

  def __repr__(self) -> str:
    return f"ToolCatalog(upstream={self.upstream!r}, kind={self.kind.value}, tools={len(self._tools)})"


def http_catalog(upstream: str, tools: Iterable[Function]) -> ToolCatalog:
  return ToolCatalog(upstream, CatalogKind.HTTP, tools)


def mcp_catalog(upstream: str, tools: Iterable[Function]) -> ToolCatalog:
  return ToolCatalog(upstream, CatalogKind.MCP, tools)
