"""Core data types for agent memory."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class MemoryScope(str, Enum):
  # About the agent's own work, e.g. what a field in a queried table means
  AGENT = "AGENT"
  # About the entity the agent talks to, e.g. a customer
  ENTITY = "ENTITY"


class MemoryType(str, Enum):
  SEMANTIC = "SEMANTIC"
  PROCEDURAL = "PROCEDURAL"
  EPISODIC = "EPISODIC"


@dataclass
class AgentMemory:
  """A single remembered fact, procedure or episode.

  Attributes:
    agent_name: Agent for whom this memory is relevant.
    scope: Whether the memory is about an entity or about the agent itself.
    scope_id: Entity id for ENTITY memories, the agent name for AGENT memories.
    memory_type: Semantic, procedural or episodic.
    name: Key of the memory within its scope; saving the same name updates it.
    content: The remembered content.
    topics: Topics associated with the memory.
    reusability_score: 0 (not reusable) to 10 (highly reusable).
  """

  agent_name: str
  scope: MemoryScope
  scope_id: str
  memory_type: MemoryType
  name: str
  content: str
  topics: List[str] = field(default_factory=list)
  reusability_score: int = 0
  created_at: Optional[float] = None
  updated_at: Optional[float] = None

  def __post_init__(self) -> None:
    if not 0 <= self.reusability_score <= 10:
      raise ValueError("reusability_score must be between 0 and 10")
    now = time.time()
    if self.created_at is None:
      self.created_at = now
    if self.updated_at is None:
      self.updated_at = now

  def to_dict(self) -> Dict[str, Any]:
    return {
      "agent_name": self.agent_name,
      "scope": self.scope.value,
      "scope_id": self.scope_id,
      "memory_type": self.memory_type.value,
      "name": self.name,
      "content": self.content,
      "topics": list(self.topics),
      "reusability_score": self.reusability_score,
      "created_at": self.created_at,
      "updated_at": self.updated_at,
    }

  @classmethod
  def from_dict(cls, data: Dict[str, Any]) -> "AgentMemory":
    return cls(
      agent_name=data.get("agent_name", ""),
      scope=MemoryScope(data.get("scope", MemoryScope.AGENT.value)),
      scope_id=data.get("scope_id", ""),
      memory_type=MemoryType(data.get("memory_type", MemoryType.SEMANTIC.value)),
      name=data.get("name", ""),
      content=data.get("content", ""),
      topics=list(data.get("topics", [])),
      reusability_score=int(data.get("reusability_score", 0)),
      created_at=data.get("created_at"),
      updated_at=data.get("updated_at"),
    )
