"""Resolve an agent's capabilities into the concrete tools visible to the model."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Set, Union

from sentinel.agent.capabilities import (
  AgentMemoryCapability,
  BaseCapability,
  Capabilities,
  CustomToolsCapability,
  MCPCapability,
  RemoteHttpCallsCapability,
  SessionManagementCapability,
  ToolInheritanceCapability,
)
from sentinel.exceptions import ConfigurationError
from sentinel.tool.catalog import CatalogKind, ToolCatalog
from sentinel.tool.function import Function
from sentinel.utils.functions import upstream_tool_id
from sentinel.utils.log import log_debug, log_warning


@dataclass(frozen=True)
class ResolvedTools:
  """Immutable tool-id → Function mapping for one run, plus resolution warnings."""

  tools: Mapping[str, Function] = field(default_factory=lambda: MappingProxyType({}))
  warnings: List[str] = field(default_factory=list)

  def get(self, tool_id: str) -> Optional[Function]:
    return self.tools.get(tool_id)

  def __contains__(self, tool_id: object) -> bool:
    return tool_id in self.tools

  def __len__(self) -> int:
    return len(self.tools)


class ToolResolver:
  """Turns capabilities into a :class:`ResolvedTools` map.

  Args:
    registry: Locally registered tools keyed by name.
    catalogs: Upstream catalogs keyed by upstream name.
    parent_tools: The parent agent's resolved tools, for tool inheritance.

  Tool ids are unique within the result. When two capabilities produce the same
  id the first one wins and a warning is logged and recorded.
  """

  def __init__(
    self,
    registry: Optional[Mapping[str, Function]] = None,
    catalogs: Optional[Union[Mapping[str, ToolCatalog], Iterable[ToolCatalog]]] = None,
    parent_tools: Optional[Union[ResolvedTools, Mapping[str, Function]]] = None,
  ):
    self._registry: Dict[str, Function] = dict(registry or {})
    if catalogs is None:
      self._catalogs: Dict[str, ToolCatalog] = {}
    elif isinstance(catalogs, Mapping):
      self._catalogs = dict(catalogs)
    else:
      self._catalogs = {c.upstream: c for c in catalogs}
    if isinstance(parent_tools, ResolvedTools):
      parent_tools = parent_tools.tools
    self._parent_tools: Optional[Mapping[str, Function]] = parent_tools

  def resolve(self, capabilities: Union[Capabilities, Iterable[BaseCapability]]) -> ResolvedTools:
    """Resolve every capability in order.

    Raises:
      ConfigurationError: if a capability names an unknown upstream or tool, an
        upstream of the wrong kind, or inherits without a parent.
    """
    tools: Dict[str, Function] = {}
    warnings: List[str] = []

    def add(tool_id: str, fn: Function, source: str) -> None:
      if tool_id in tools:
        message = f"Tool id '{tool_id}' from {source} collides with an already resolved tool; keeping the first"
        log_warning(message)
        warnings.append(message)
        return
      tools[tool_id] = fn

    for capability in capabilities:
      if isinstance(capability, CustomToolsCapability):
        for name, fn in self._resolve_local(capability.selected_tools):
          add(name, fn, "custom tools")
      elif isinstance(capability, RemoteHttpCallsCapability):
        for tool_id, fn in self._resolve_upstream(capability.selected_tools, CatalogKind.HTTP):
          add(tool_id, fn, "remote http calls")
      elif isinstance(capability, MCPCapability):
        for tool_id, fn in self._resolve_upstream(capability.selected_tools, CatalogKind.MCP):
          add(tool_id, fn, "mcp calls")
      elif isinstance(capability, ToolInheritanceCapability):
        for name, fn in self._resolve_inherited(capability.selected_tools):
          add(name, fn, "parent agent")
      elif isinstance(capability, (AgentMemoryCapability, SessionManagementCapability)):
        continue
      else:
        raise ConfigurationError(f"Unsupported capability: {type(capability).__name__}")

    log_debug(f"Resolved {len(tools)} tools: {sorted(tools)}", log_level=2)
    return ResolvedTools(tools=MappingProxyType(tools), warnings=warnings)

  # ------------------------------------------------------------------
  # Per-capability resolution
  # ------------------------------------------------------------------

  def _resolve_local(self, selected: Set[str]) -> List[tuple]:
    if not selected:
      return list(self._registry.items())
    missing = sorted(n for n in selected if n not in self._registry)
    if missing:
      raise ConfigurationError(f"Unknown custom tools: {missing}")
    return [(name, self._registry[name]) for name in sorted(selected)]

  def _resolve_upstream(self, selected: Dict[str, Set[str]], kind: CatalogKind) -> List[tuple]:
    resolved = []
    for upstream in sorted(selected):
      catalog = self._catalogs.get(upstream)
      if catalog is None:
        raise ConfigurationError(f"Unknown {kind.value} upstream: {upstream}")
      if catalog.kind != kind:
        raise ConfigurationError(f"Upstream '{upstream}' is a {catalog.kind.value} catalog, not {kind.value}")
      names = selected[upstream]
      if not names:
        functions = catalog.all()
      else:
        missing = sorted(n for n in names if n not in catalog)
        if missing:
          raise ConfigurationError(f"Unknown tools for upstream '{upstream}': {missing}")
        functions = [catalog.get(n) for n in sorted(names)]  # type: ignore[misc]
      for fn in functions:
        resolved.append((upstream_tool_id(upstream, fn.name), fn))
    return resolved

  def _resolve_inherited(self, selected: Set[str]) -> List[tuple]:
    if self._parent_tools is None:
      raise ConfigurationError("Tool inheritance requested but no parent tools are available")
    missing = sorted(n for n in selected if n not in self._parent_tools)
    if missing:
      raise ConfigurationError(f"Parent agent does not provide tools: {missing}")
    return [(name, self._parent_tools[name]) for name in sorted(selected)]
