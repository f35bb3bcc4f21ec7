"""Run context, status, state machine and output."""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Type

from pydantic import BaseModel

from sentinel.agent.errors import ErrorType, SentinelError
from sentinel.model.message import BaseMessage

if TYPE_CHECKING:
  from sentinel.model.base import Usage


@dataclass
class RunContext:
  """
  Context passed through the run pipeline.

  Carries run identifiers and caller-supplied state. Validators, termination
  policies and tools that declare a ``run_context`` parameter receive it.
  """

  run_id: str
  session_id: str
  user_id: Optional[str] = None
  agent_id: Optional[str] = None
  agent_name: Optional[str] = None

  metadata: Optional[Dict[str, Any]] = None
  dependencies: Optional[Dict[str, Any]] = None
  output_schema: Optional[Type[BaseModel]] = None

  # Updated by the loop as the run progresses
  round: int = 0
  retries: int = 0


class RunStatus(str, Enum):
  COMPLETED = "COMPLETED"
  ERROR = "ERROR"
  TERMINATED = "TERMINATED"
  CANCELLED = "CANCELLED"


class RunState(str, Enum):
  """States of one run.

  ``RESOLVING_TOOLS -> AWAITING_MODEL -> {DISPATCHING_TOOLS -> AWAITING_MODEL}*
  -> VALIDATING -> {DONE | RETRYING -> AWAITING_MODEL}``; any state may move to
  ``TERMINATED``.
  """

  RESOLVING_TOOLS = "RESOLVING_TOOLS"
  AWAITING_MODEL = "AWAITING_MODEL"
  DISPATCHING_TOOLS = "DISPATCHING_TOOLS"
  VALIDATING = "VALIDATING"
  RETRYING = "RETRYING"
  DONE = "DONE"
  TERMINATED = "TERMINATED"


@dataclass
class RunOutput:
  """Result of one run: a payload or one classified error, always with the full trace.

  Attributes:
    content: ``str`` for text output, an ``output_schema`` instance for
      structured output, ``None`` on error.
    error: ``SentinelError.success()`` on success.
    messages: Full trace sent to/produced by the model, including prior
      session history and system prompts.
    new_messages: Messages created by this run only.
    resolved_tools: Tool ids visible to the model.
    retries: Number of validation retries performed.
    early_terminated: True when a termination policy or round limit ended the run.
  """

  run_id: str
  session_id: str
  status: RunStatus = RunStatus.COMPLETED
  content: Optional[Any] = None
  error: SentinelError = field(default_factory=SentinelError.success)
  messages: List[BaseMessage] = field(default_factory=list)
  new_messages: List[BaseMessage] = field(default_factory=list)
  resolved_tools: List[str] = field(default_factory=list)
  retries: int = 0
  early_terminated: bool = False
  usage: Optional["Usage"] = None
  warnings: List[str] = field(default_factory=list)

  @property
  def is_successful(self) -> bool:
    return self.status == RunStatus.COMPLETED and self.error.error_type == ErrorType.SUCCESS

  @property
  def error_type(self) -> ErrorType:
    return self.error.error_type

  def to_dict(self) -> Dict[str, Any]:
    content = self.content.model_dump(mode="json") if isinstance(self.content, BaseModel) else self.content
    return {
      "run_id": self.run_id,
      "session_id": self.session_id,
      "status": self.status.value,
      "content": content,
      "error_type": self.error.error_type.value,
      "error_message": self.error.message,
      "messages": [m.model_dump(mode="json") for m in self.messages],
      "resolved_tools": list(self.resolved_tools),
      "retries": self.retries,
      "early_terminated": self.early_terminated,
    }
