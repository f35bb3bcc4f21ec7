"""
Sentinel Events — all agent run event types in one place.

Usage:
    from sentinel.agent.events import RunCompletedEvent, ToolCallStartedEvent

Events are plain dataclasses delivered to :class:`~sentinel.agent.event_bus.EventBus`
handlers while a run executes.
"""

import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from sentinel.agent.errors import ErrorType


class RunEvent(str, Enum):
  run_started = "RunStarted"
  message_sent = "MessageSent"
  message_received = "MessageReceived"
  tool_call_started = "ToolCallStarted"
  tool_call_completed = "ToolCallCompleted"
  validation_failed = "ValidationFailed"
  run_completed = "RunCompleted"
  run_error = "RunError"
  run_cancelled = "RunCancelled"


@dataclass
class BaseRunOutputEvent:
  run_id: str = ""
  session_id: str = ""
  agent_id: Optional[str] = None
  agent_name: Optional[str] = None
  created_at: float = field(default_factory=time.time)

  event: str = ""

  def to_dict(self) -> Dict[str, Any]:
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in asdict(self).items() if v is not None}


@dataclass
class RunStartedEvent(BaseRunOutputEvent):
  event: str = RunEvent.run_started.value
  tools: List[str] = field(default_factory=list)


@dataclass
class MessageSentEvent(BaseRunOutputEvent):
  """Emitted before each model call with the number of messages sent."""

  event: str = RunEvent.message_sent.value
  round: int = 0
  message_count: int = 0


@dataclass
class MessageReceivedEvent(BaseRunOutputEvent):
  event: str = RunEvent.message_received.value
  round: int = 0
  message_types: List[str] = field(default_factory=list)
  finish_reason: Optional[str] = None


@dataclass
class ToolCallStartedEvent(BaseRunOutputEvent):
  event: str = RunEvent.tool_call_started.value
  tool_call_id: str = ""
  tool_name: str = ""
  arguments: Optional[str] = None


@dataclass
class ToolCallCompletedEvent(BaseRunOutputEvent):
  event: str = RunEvent.tool_call_completed.value
  tool_call_id: str = ""
  tool_name: str = ""
  error_type: ErrorType = ErrorType.SUCCESS
  content: Optional[str] = None


@dataclass
class ValidationFailedEvent(BaseRunOutputEvent):
  event: str = RunEvent.validation_failed.value
  attempt: int = 0
  failures: List[str] = field(default_factory=list)
  retriable: bool = False


@dataclass
class RunCompletedEvent(BaseRunOutputEvent):
  event: str = RunEvent.run_completed.value
  content: Optional[Any] = None
  retries: int = 0


@dataclass
class RunErrorEvent(BaseRunOutputEvent):
  event: str = RunEvent.run_error.value
  error_type: ErrorType = ErrorType.UNKNOWN
  content: Optional[str] = None
  early_terminated: bool = False


@dataclass
class RunCancelledEvent(BaseRunOutputEvent):
  event: str = RunEvent.run_cancelled.value
  reason: Optional[str] = None


__all__ = [
  "RunEvent",
  "BaseRunOutputEvent",
  "RunStartedEvent",
  "MessageSentEvent",
  "MessageReceivedEvent",
  "ToolCallStartedEvent",
  "ToolCallCompletedEvent",
  "ValidationFailedEvent",
  "RunCompletedEvent",
  "RunErrorEvent",
  "RunCancelledEvent",
]
