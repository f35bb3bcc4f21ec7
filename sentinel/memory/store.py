"""Agent memory stores and recall formatting."""

import time
from copy import deepcopy
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Set, Tuple, runtime_checkable
from xml.sax.saxutils import escape

from sentinel.memory.types import AgentMemory, MemoryScope, MemoryType
from sentinel.utils.log import log_debug

_ATTR = {'"': "&quot;"}


@runtime_checkable
class AgentMemoryStore(Protocol):
  """Protocol for agent memory backends."""

  async def find_memories(
    self,
    *,
    scope_id: Optional[str] = None,
    scope: Optional[MemoryScope] = None,
    memory_types: Optional[Set[MemoryType]] = None,
    topics: Optional[List[str]] = None,
    query: Optional[str] = None,
    min_reusability_score: int = 0,
    count: int = 10,
  ) -> List[AgentMemory]: ...

  async def save(self, memory: AgentMemory) -> Optional[AgentMemory]: ...


class InMemoryAgentMemoryStore:
  """Memory store backed by a dict keyed by ``(scope, scope_id)``.

  Saving a memory whose name already exists in the scope replaces it.
  """

  def __init__(self, memories: Optional[Iterable[AgentMemory]] = None) -> None:
    self._memories: Dict[Tuple[MemoryScope, str], Dict[str, AgentMemory]] = {}
    for memory in memories or []:
      self._put(memory)

  def _put(self, memory: AgentMemory) -> AgentMemory:
    in_scope = self._memories.setdefault((memory.scope, memory.scope_id), {})
    existing = in_scope.get(memory.name)
    if existing is not None:
      memory.created_at = existing.created_at
      memory.updated_at = time.time()
    in_scope[memory.name] = deepcopy(memory)
    return memory

  async def save(self, memory: AgentMemory) -> Optional[AgentMemory]:
    saved = self._put(memory)
    log_debug(f"Saved memory {memory.name} in {memory.scope.value}:{memory.scope_id}", log_level=2)
    return deepcopy(saved)

  async def find_memories(
    self,
    *,
    scope_id: Optional[str] = None,
    scope: Optional[MemoryScope] = None,
    memory_types: Optional[Set[MemoryType]] = None,
    topics: Optional[List[str]] = None,
    query: Optional[str] = None,
    min_reusability_score: int = 0,
    count: int = 10,
  ) -> List[AgentMemory]:
    if scope is not None and scope_id is not None:
      candidates: List[AgentMemory] = list(self._memories.get((scope, scope_id), {}).values())
    else:
      candidates = [m for (s, _), in_scope in self._memories.items() if scope is None or s == scope for m in in_scope.values()]

    query_terms = {t for t in (query or "").lower().split() if t}
    wanted_topics = {t.lower() for t in topics or []}
    results = []
    for m in candidates:
      if memory_types and m.memory_type not in memory_types:
        continue
      if m.reusability_score < min_reusability_score:
        continue
      if wanted_topics and not wanted_topics & {t.lower() for t in m.topics}:
        continue
      results.append((_relevance(m, query_terms), m))

    results.sort(key=lambda r: (r[0], r[1].reusability_score, r[1].updated_at or 0.0), reverse=True)
    return [deepcopy(m) for _, m in results[:count]]


def _relevance(memory: AgentMemory, query_terms: Set[str]) -> int:
  if not query_terms:
    return 0
  haystack = " ".join([memory.name, memory.content, *memory.topics]).lower()
  return sum(1 for term in query_terms if term in haystack)


def format_memories(memories: Sequence[AgentMemory]) -> str:
  """Render recalled memories as the body of a dynamic system prompt."""
  lines = ["<memories>"]
  for m in memories:
    topics = escape(", ".join(m.topics), _ATTR)
    lines.append(
      f'  <memory scope="{m.scope.value}" type="{m.memory_type.value}" name="{escape(m.name, _ATTR)}" topics="{topics}">{escape(m.content)}</memory>'
    )
  lines.append("</memories>")
  return "\n".join(lines)


async def recall_memories(
  store: AgentMemoryStore,
  agent_name: str,
  user_id: Optional[str] = None,
  query: Optional[str] = None,
  count: int = 10,
) -> List[AgentMemory]:
  """Facts about the user (when known) followed by the agent's procedural memories."""
  memories: List[AgentMemory] = []
  if user_id:
    memories.extend(
      await store.find_memories(scope_id=user_id, scope=MemoryScope.ENTITY, memory_types={MemoryType.SEMANTIC}, query=query, count=count)
    )
  memories.extend(
    await store.find_memories(scope_id=agent_name, scope=MemoryScope.AGENT, memory_types={MemoryType.PROCEDURAL}, query=query, count=count)
  )
  return memories
