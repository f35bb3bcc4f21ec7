"""Capabilities: the declared dimensions of tool and feature access for an agent.

Tool-bearing capabilities name the tools an agent may use. Feature capabilities
(memory, session management) carry no tools and only toggle behaviour.
"""

from typing import Annotated, Dict, Iterable, Iterator, List, Literal, Optional, Set, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from sentinel.exceptions import ConfigurationError


class BaseCapability(BaseModel):
  model_config = ConfigDict(frozen=True)

  type: str


class RemoteHttpCallsCapability(BaseCapability):
  """Tools from remote HTTP upstreams. An empty set for an upstream selects all of its tools."""

  type: Literal["REMOTE_HTTP_CALLS"] = "REMOTE_HTTP_CALLS"
  selected_tools: Dict[str, Set[str]] = Field(default_factory=dict)


class MCPCapability(BaseCapability):
  """Tools from MCP upstreams. An empty set for an upstream selects all of its tools."""

  type: Literal["MCP_CALLS"] = "MCP_CALLS"
  selected_tools: Dict[str, Set[str]] = Field(default_factory=dict)


class CustomToolsCapability(BaseCapability):
  """Locally registered tools by name. An empty set selects every registered local tool."""

  type: Literal["CUSTOM_TOOLS"] = "CUSTOM_TOOLS"
  selected_tools: Set[str] = Field(default_factory=set)


class ToolInheritanceCapability(BaseCapability):
  """A named subset of the parent agent's resolved tools."""

  type: Literal["TOOL_INHERITANCE"] = "TOOL_INHERITANCE"
  selected_tools: Set[str]

  @model_validator(mode="after")
  def _require_selection(self) -> "ToolInheritanceCapability":
    if not self.selected_tools:
      raise ConfigurationError("Tool inheritance requires at least one selected tool")
    return self


class AgentMemoryCapability(BaseCapability):
  type: Literal["AGENT_MEMORY"] = "AGENT_MEMORY"


class SessionManagementCapability(BaseCapability):
  type: Literal["SESSION_MANAGEMENT"] = "SESSION_MANAGEMENT"


Capability = Annotated[
  Union[
    RemoteHttpCallsCapability,
    MCPCapability,
    CustomToolsCapability,
    ToolInheritanceCapability,
    AgentMemoryCapability,
    SessionManagementCapability,
  ],
  Field(discriminator="type"),
]

C = TypeVar("C", bound=BaseCapability)


class AgentCapabilities:
  """Factory helpers for building capabilities."""

  @staticmethod
  def remote_http_calls(selected_tools: Optional[Dict[str, Iterable[str]]] = None) -> RemoteHttpCallsCapability:
    return RemoteHttpCallsCapability(selected_tools={k: set(v) for k, v in (selected_tools or {}).items()})

  @staticmethod
  def mcp_calls(selected_tools: Optional[Dict[str, Iterable[str]]] = None) -> MCPCapability:
    return MCPCapability(selected_tools={k: set(v) for k, v in (selected_tools or {}).items()})

  @staticmethod
  def custom_tools(*tool_names: str) -> CustomToolsCapability:
    return CustomToolsCapability(selected_tools=set(tool_names))

  @staticmethod
  def inherit_tools_from_parent(*tool_names: str) -> ToolInheritanceCapability:
    return ToolInheritanceCapability(selected_tools=set(tool_names))

  @staticmethod
  def memory() -> AgentMemoryCapability:
    return AgentMemoryCapability()

  @staticmethod
  def session_management() -> SessionManagementCapability:
    return SessionManagementCapability()


class Capabilities(BaseModel):
  """The ordered capability set of one agent instance."""

  model_config = ConfigDict(frozen=True)

  items: List[Capability] = Field(default_factory=list)

  @field_validator("items", mode="before")
  @classmethod
  def _coerce_items(cls, value: object) -> object:
    if isinstance(value, (set, frozenset, tuple)):
      return list(value)
    return value

  @classmethod
  def of(cls, *capabilities: BaseCapability) -> "Capabilities":
    return cls(items=list(capabilities))

  def has(self, capability_type: Type[BaseCapability]) -> bool:
    return any(isinstance(c, capability_type) for c in self.items)

  def of_type(self, capability_type: Type[C]) -> List[C]:
    return [c for c in self.items if isinstance(c, capability_type)]

  def __iter__(self) -> Iterator[BaseCapability]:  # type: ignore[override]
    return iter(self.items)

  def __len__(self) -> int:
    return len(self.items)
