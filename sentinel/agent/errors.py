"""Error taxonomy and classification.

Every model, tool or validation failure that happens inside a run is mapped to
an :class:`ErrorType`. The type's retryable flag, not the exception that caused
it, decides whether the orchestrator may try again.
"""

import asyncio
import json
from enum import Enum
from typing import Optional

from pydantic import ValidationError

from sentinel.agent.cancellation import AgentCancelled
from sentinel.exceptions import ModelCallError, SerializationError, ToolContractViolation


class ErrorType(str, Enum):
  """Closed set of failure categories, each with a message template and retryable flag."""

  SUCCESS = "SUCCESS"
  NO_RESPONSE = "NO_RESPONSE"
  REFUSED = "REFUSED"
  FILTERED = "FILTERED"
  LENGTH_EXCEEDED = "LENGTH_EXCEEDED"
  TOOL_CALL_PERMANENT_FAILURE = "TOOL_CALL_PERMANENT_FAILURE"
  TOOL_CALL_TEMPORARY_FAILURE = "TOOL_CALL_TEMPORARY_FAILURE"
  JSON_ERROR = "JSON_ERROR"
  SERIALIZATION_ERROR = "SERIALIZATION_ERROR"
  DESERIALIZATION_ERROR = "DESERIALIZATION_ERROR"
  UNKNOWN_FINISH_REASON = "UNKNOWN_FINISH_REASON"
  GENERIC_MODEL_CALL_FAILURE = "GENERIC_MODEL_CALL_FAILURE"
  UNKNOWN = "UNKNOWN"
  DATA_VALIDATION_FAILURE = "DATA_VALIDATION_FAILURE"
  MODEL_CALL_COMMUNICATION_ERROR = "MODEL_CALL_COMMUNICATION_ERROR"
  MODEL_CALL_RATE_LIMIT_EXCEEDED = "MODEL_CALL_RATE_LIMIT_EXCEEDED"
  MODEL_RUN_TERMINATED = "MODEL_RUN_TERMINATED"

  @property
  def template(self) -> str:
    return _TEMPLATES[self][0]

  @property
  def retryable(self) -> bool:
    return _TEMPLATES[self][1]

  def render(self, *args: object) -> str:
    """Render the template; missing arguments render as empty strings."""
    slots = self.template.count("{}")
    values = [str(a) for a in args[:slots]]
    values += [""] * (slots - len(values))
    return self.template.format(*values)


_TEMPLATES = {
  ErrorType.SUCCESS: ("Success", False),
  ErrorType.NO_RESPONSE: ("No response", True),
  ErrorType.REFUSED: ("Refused: Reason: {}", False),
  ErrorType.FILTERED: ("Content filtered", False),
  ErrorType.LENGTH_EXCEEDED: ("Content length exceeded", False),
  ErrorType.TOOL_CALL_PERMANENT_FAILURE: ("Tool call failed permanently for tool: {}", False),
  ErrorType.TOOL_CALL_TEMPORARY_FAILURE: ("Tool call failed temporarily for tool: {}", True),
  ErrorType.JSON_ERROR: ("Error parsing JSON. Error: {}", True),
  ErrorType.SERIALIZATION_ERROR: ("Error serializing object to JSON. Error: {}", True),
  ErrorType.DESERIALIZATION_ERROR: ("Error deserializing object from JSON. Error: {}", True),
  ErrorType.UNKNOWN_FINISH_REASON: ("Unknown finish reason: {}", True),
  ErrorType.GENERIC_MODEL_CALL_FAILURE: ("Model call failed with error: {}", True),
  ErrorType.UNKNOWN: ("Unknown response", True),
  ErrorType.DATA_VALIDATION_FAILURE: ("Model data validation failed. Errors: {}", True),
  ErrorType.MODEL_CALL_COMMUNICATION_ERROR: ("Network error: {}", True),
  ErrorType.MODEL_CALL_RATE_LIMIT_EXCEEDED: ("Rate limit exceeded: {}", True),
  ErrorType.MODEL_RUN_TERMINATED: ("Model run was terminated: {}", False),
}


class SentinelError:
  """A classified error value: an :class:`ErrorType` plus a rendered message.

  Unlike the exceptions in :mod:`sentinel.exceptions`, a ``SentinelError`` is data.
  It is carried by ``RunOutput.error`` and never raised.
  """

  __slots__ = ("error_type", "message", "permanent")

  def __init__(self, error_type: ErrorType, message: Optional[str] = None, permanent: bool = False):
    self.error_type = error_type
    self.message = message if message is not None else error_type.render()
    # Overrides the type's retryable flag for failures that must not be retried
    self.permanent = permanent

  @classmethod
  def success(cls) -> "SentinelError":
    return cls(ErrorType.SUCCESS)

  @classmethod
  def error(cls, error_type: ErrorType, *args: object) -> "SentinelError":
    return cls(error_type, error_type.render(*args))

  @classmethod
  def permanent_error(cls, error_type: ErrorType, *args: object) -> "SentinelError":
    return cls(error_type, error_type.render(*args), permanent=True)

  @classmethod
  def from_exception(cls, error_type: ErrorType, exc: BaseException) -> "SentinelError":
    return cls(error_type, error_type.render(root_cause_message(exc)))

  @property
  def is_success(self) -> bool:
    return self.error_type == ErrorType.SUCCESS

  @property
  def retryable(self) -> bool:
    return self.error_type.retryable and not self.permanent

  def __eq__(self, other: object) -> bool:
    if not isinstance(other, SentinelError):
      return NotImplemented
    return self.error_type == other.error_type and self.message == other.message and self.permanent == other.permanent

  def __hash__(self) -> int:
    return hash((self.error_type, self.message, self.permanent))

  def __repr__(self) -> str:
    suffix = ", permanent=True" if self.permanent else ""
    return f"SentinelError(error_type={self.error_type.value}, message={self.message!r}{suffix})"


def root_cause_message(exc: BaseException) -> str:
  """Walk ``__cause__``/``__context__`` and return the deepest non-empty message."""
  message = str(exc) or type(exc).__name__
  seen = {id(exc)}
  current: Optional[BaseException] = exc.__cause__ or exc.__context__
  while current is not None and id(current) not in seen:
    seen.add(id(current))
    if str(current):
      message = str(current)
    current = current.__cause__ or current.__context__
  return message


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

_SUCCESS_FINISH_REASONS = {None, "", "stop", "tool_calls", "function_call"}

_FINISH_REASON_TYPES = {
  "length": ErrorType.LENGTH_EXCEEDED,
  "content_filter": ErrorType.FILTERED,
  "refusal": ErrorType.REFUSED,
}


def classify_exception(exc: BaseException) -> SentinelError:
  """Map an exception raised by a model transport or parser to a classified error."""
  if isinstance(exc, ModelCallError):
    return SentinelError.error(exc.error_type, exc.message)
  if isinstance(exc, json.JSONDecodeError):
    return SentinelError.from_exception(ErrorType.JSON_ERROR, exc)
  if isinstance(exc, ValidationError):
    return SentinelError.from_exception(ErrorType.DESERIALIZATION_ERROR, exc)
  if isinstance(exc, SerializationError):
    return SentinelError.from_exception(ErrorType.SERIALIZATION_ERROR, exc)
  if isinstance(exc, (AgentCancelled, asyncio.CancelledError)):
    return SentinelError.error(ErrorType.MODEL_RUN_TERMINATED, str(exc) or "cancelled")
  # TimeoutError and ConnectionError are both OSError subclasses
  if isinstance(exc, OSError):
    return SentinelError.from_exception(ErrorType.MODEL_CALL_COMMUNICATION_ERROR, exc)
  return SentinelError.from_exception(ErrorType.GENERIC_MODEL_CALL_FAILURE, exc)


def classify_finish_reason(reason: Optional[str], detail: Optional[str] = None) -> SentinelError:
  """Map a provider finish reason to a classified error (``SUCCESS`` for normal stops)."""
  normalized = reason.lower() if isinstance(reason, str) else reason
  if normalized in _SUCCESS_FINISH_REASONS:
    return SentinelError.success()
  error_type = _FINISH_REASON_TYPES.get(normalized)  # type: ignore[arg-type]
  if error_type is None:
    return SentinelError.error(ErrorType.UNKNOWN_FINISH_REASON, reason)
  return SentinelError.error(error_type, detail or "")


def classify_tool_failure(tool_name: str, exc: BaseException) -> SentinelError:
  """Contract violations are permanent; every other tool exception is temporary."""
  if isinstance(exc, ToolContractViolation):
    error_type = ErrorType.TOOL_CALL_PERMANENT_FAILURE
  else:
    error_type = ErrorType.TOOL_CALL_TEMPORARY_FAILURE
  return SentinelError(error_type, f"{error_type.render(tool_name)}. Error: {root_cause_message(exc)}")
