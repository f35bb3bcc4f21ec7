"""Persistence pre-filters: applied to a run's messages before they are saved."""

from typing import TYPE_CHECKING, List, Protocol, Sequence, runtime_checkable

from sentinel.model.message import BaseMessage, SystemPrompt, ToolCall, ToolCallResponse
from sentinel.utils.log import log_debug

if TYPE_CHECKING:
  from sentinel.agent.run import RunContext


@runtime_checkable
class MessagePersistencePreFilter(Protocol):
  def filter(self, context: "RunContext", messages: Sequence[BaseMessage]) -> List[BaseMessage]: ...


class SystemPromptRemovalFilter:
  """System prompts are rebuilt on every run, so they are not stored."""

  def filter(self, context: "RunContext", messages: Sequence[BaseMessage]) -> List[BaseMessage]:
    return [m for m in messages if not isinstance(m, SystemPrompt)]


class FailedToolCallRemovalFilter:
  """Drops both sides of every tool call whose response is not a success."""

  def filter(self, context: "RunContext", messages: Sequence[BaseMessage]) -> List[BaseMessage]:
    failed = {m.tool_call_id for m in messages if isinstance(m, ToolCallResponse) and not m.is_success()}
    if failed:
      log_debug(f"Found failed tool call ids: {sorted(failed)}")
    return [m for m in messages if not (isinstance(m, (ToolCall, ToolCallResponse)) and m.tool_call_id in failed)]


def apply_filters(context: "RunContext", messages: Sequence[BaseMessage], filters: Sequence[MessagePersistencePreFilter]) -> List[BaseMessage]:
  filtered = list(messages)
  for f in filters:
    filtered = f.filter(context, filtered)
  return filtered
