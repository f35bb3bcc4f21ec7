"""Message selectors: curate stored history before it is sent to the model again."""

from dataclasses import dataclass
from typing import Dict, List, Protocol, Sequence, Set, runtime_checkable

from sentinel.model.message import BaseMessage, MessageType, ToolCall, ToolCallResponse
from sentinel.utils.log import log_debug

_TEXT_RUN = frozenset({MessageType.USER_PROMPT_REQUEST_MESSAGE.value, MessageType.TEXT_RESPONSE_MESSAGE.value})
_STRUCTURED_RUN = frozenset({MessageType.USER_PROMPT_REQUEST_MESSAGE.value, MessageType.STRUCTURED_OUTPUT_RESPONSE_MESSAGE.value})
_TOOL_MESSAGE_TYPES = frozenset({MessageType.TOOL_CALL_REQUEST_MESSAGE.value, MessageType.TOOL_CALL_RESPONSE_MESSAGE.value})


@runtime_checkable
class MessageSelector(Protocol):
  """Returns the subset of ``messages`` to keep, preserving order."""

  def select(self, session_id: str, messages: Sequence[BaseMessage]) -> List[BaseMessage]: ...


class FullRunMessageSelector:
  """Keeps only messages of complete runs.

  A run is complete when it contains a user prompt together with either a text
  response or a structured-output response. Applying the selector twice gives
  the same result as applying it once.
  """

  def select(self, session_id: str, messages: Sequence[BaseMessage]) -> List[BaseMessage]:
    types_by_run: Dict[str, Set[str]] = {}
    for m in messages:
      types_by_run.setdefault(m.run_id, set()).add(m.message_type)  # type: ignore[attr-defined]
    complete = {run_id for run_id, types in types_by_run.items() if _TEXT_RUN <= types or _STRUCTURED_RUN <= types}
    return [m for m in messages if m.run_id in complete]


@dataclass
class _ToolCallSides:
  message_id: str
  has_request: bool = False
  has_response: bool = False


class UnpairedToolCallsRemover:
  """Removes tool calls and tool responses whose counterpart is missing."""

  def select(self, session_id: str, messages: Sequence[BaseMessage]) -> List[BaseMessage]:
    sides: Dict[str, _ToolCallSides] = {}
    for m in messages:
      if isinstance(m, ToolCall):
        sides.setdefault(m.tool_call_id, _ToolCallSides(m.message_id)).has_request = True
      elif isinstance(m, ToolCallResponse):
        sides.setdefault(m.tool_call_id, _ToolCallSides(m.message_id)).has_response = True

    unpaired = {tool_call_id for tool_call_id, s in sides.items() if s.has_request != s.has_response}
    if unpaired:
      log_debug(f"Found unpaired tool call ids: {sorted(unpaired)}")
    kept = [m for m in messages if not (isinstance(m, (ToolCall, ToolCallResponse)) and m.tool_call_id in unpaired)]
    log_debug(f"Returning {len(kept)} messages for session {session_id} after removing unpaired tool calls", log_level=2)
    return kept


class RemoveAllToolCallsSelector:
  """Drops every tool call and tool response."""

  def select(self, session_id: str, messages: Sequence[BaseMessage]) -> List[BaseMessage]:
    return [m for m in messages if m.message_type not in _TOOL_MESSAGE_TYPES]  # type: ignore[attr-defined]


class ChainedSelector:
  def __init__(self, *selectors: MessageSelector):
    self.selectors = list(selectors)

  def select(self, session_id: str, messages: Sequence[BaseMessage]) -> List[BaseMessage]:
    selected = list(messages)
    for selector in self.selectors:
      selected = selector.select(session_id, selected)
    return selected


def chain_selectors(*selectors: MessageSelector) -> MessageSelector:
  """Compose selectors left to right."""
  return ChainedSelector(*selectors)
