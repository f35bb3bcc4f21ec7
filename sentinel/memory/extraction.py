"""Memory extraction: turn a finished run into reusable agent memories."""

from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from pydantic import BaseModel, Field

from sentinel.agent.run import RunContext
from sentinel.memory.types import AgentMemory, MemoryScope, MemoryType
from sentinel.model.base import request_structured
from sentinel.model.message import BaseMessage, SystemPrompt, UserPrompt, messages_to_json
from sentinel.utils.functions import new_id
from sentinel.utils.log import log_debug, log_info

if TYPE_CHECKING:
  from sentinel.agent.run import RunOutput
  from sentinel.memory.store import AgentMemoryStore
  from sentinel.model.base import Model


_EXTRACTION_INSTRUCTIONS = """\
YOU MUST EXTRACT MEMORY FROM MESSAGES.

How to extract different memory types:
- SEMANTIC: a fact about the user or any other subject or entity discussed in the conversation.
- EPISODIC: a specific event or episode from the conversation.
- PROCEDURAL: a procedure as a list of steps or a sequence of actions that can be used later.

Setting memory scope and scope_id:
- AGENT: relevant to the agent's own actions and decisions. scope_id is the agent name: {agent_name}.
- ENTITY: relevant to the entity the agent interacts with. scope_id is the user id: {user_id}.

Do not include non-reusable information as memories. Extract as many useful memories as possible.
If a memory is relevant across sessions and users, store it at agent level."""


class MemoryExtractionMode(str, Enum):
  DISABLED = "DISABLED"
  # Extra model call after the run completes
  OUT_OF_BAND = "OUT_OF_BAND"


class GeneratedMemoryUnit(BaseModel):
  """A quantum of memory extracted from a conversation by the model."""

  scope: MemoryScope
  scope_id: str = ""
  memory_type: MemoryType = Field(description="Semantic, procedural or episodic")
  name: str = Field(description="CamelCase key of the memory; saving the same name in a scope updates it")
  content: str = Field(description="The memory, phrased so it can be used in a system prompt later")
  topics: List[str] = Field(default_factory=list)
  reusability_score: int = Field(default=0, ge=0, le=10, description="0 means not reusable, 10 highly reusable")


class ExtractedMemories(BaseModel):
  memories: List[GeneratedMemoryUnit] = Field(default_factory=list)


class MemoryExtractor:
  """
  Extracts memories from the messages of a finished run and saves them.

  Args:
      mode: ``OUT_OF_BAND`` makes one extra model call per run; ``DISABLED`` skips extraction.
      min_reusability_score: Memories scored below this are dropped.
  """

  def __init__(self, mode: MemoryExtractionMode = MemoryExtractionMode.OUT_OF_BAND, min_reusability_score: int = 0):
    self.mode = mode
    self.min_reusability_score = min_reusability_score

  def build_messages(self, context: RunContext, conversation: List[BaseMessage]) -> List[BaseMessage]:
    ids = {"session_id": context.session_id, "run_id": context.run_id}
    instructions = _EXTRACTION_INSTRUCTIONS.format(agent_name=context.agent_name or "", user_id=context.user_id or "unknown")
    return [
      SystemPrompt(**ids, content=instructions),
      UserPrompt(**ids, content=f"You must extract memory from the following conversation between user and agent: {messages_to_json(conversation)}"),
    ]

  def to_memory(self, unit: GeneratedMemoryUnit, context: RunContext) -> Optional[AgentMemory]:
    scope_id = unit.scope_id
    if not scope_id:
      scope_id = (context.agent_name or "") if unit.scope == MemoryScope.AGENT else (context.user_id or "")
    if not scope_id:
      log_debug(f"Dropping memory {unit.name}: no id for scope {unit.scope.value}")
      return None
    return AgentMemory(
      agent_name=context.agent_name or "",
      scope=unit.scope,
      scope_id=scope_id,
      memory_type=unit.memory_type,
      name=unit.name,
      content=unit.content,
      topics=list(unit.topics),
      reusability_score=unit.reusability_score,
    )

  async def extract(
    self,
    model: "Model",
    store: "AgentMemoryStore",
    context: RunContext,
    output: "RunOutput",
  ) -> List[AgentMemory]:
    """Extract and save memories from ``output.new_messages``; returns what was saved."""
    if self.mode == MemoryExtractionMode.DISABLED:
      log_debug("Memory extraction is disabled")
      return []
    if not output.new_messages:
      return []

    extraction_context = RunContext(
      run_id=f"mem-extraction-{new_id()}",
      session_id=context.session_id,
      user_id=context.user_id,
      agent_id=context.agent_id,
      agent_name=context.agent_name,
    )
    extracted = await request_structured(
      model, self.build_messages(extraction_context, output.new_messages), ExtractedMemories, extraction_context
    )
    if extracted is None or not extracted.memories:
      log_debug(f"No memory extracted from run {context.run_id}")
      return []

    saved: List[AgentMemory] = []
    for unit in extracted.memories:
      if unit.reusability_score < self.min_reusability_score:
        continue
      memory = self.to_memory(unit, context)
      if memory is None:
        continue
      result = await store.save(memory)
      if result is not None:
        saved.append(result)
    log_info(f"Saved {len(saved)} memories from run {context.run_id}")
    return saved
