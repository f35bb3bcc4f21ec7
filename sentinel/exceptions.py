"""Exception hierarchy for sentinel.

Configuration defects raise; model and tool failures are converted into
classified errors by :mod:`sentinel.agent.errors` and never escape a run.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
  from sentinel.agent.errors import ErrorType


class SentinelException(Exception):
  """Base exception for all sentinel errors."""

  def __init__(self, message: str, status_code: int = 500):
    super().__init__(message)
    self.message = message
    self.status_code = status_code
    self.type = "sentinel_error"
    self.error_id = "sentinel_error"

  def __str__(self) -> str:
    return self.message


class ConfigurationError(SentinelException):
  """Raised for caller/config defects that must never be retried.

  Examples: a capability naming a tool that does not exist, a tool
  inheritance capability with an empty selection, or a duplicate tool-call
  id inside one run.
  """

  def __init__(self, message: str):
    super().__init__(message, status_code=400)
    self.type = "configuration_error"
    self.error_id = "configuration_error"


class ModelCallError(SentinelException):
  """Raised by model transports for failures they have already classified."""

  def __init__(self, error_type: "ErrorType", message: str, original_error: Optional[BaseException] = None):
    super().__init__(message, status_code=502)
    self.error_type = error_type
    self.original_error = original_error
    self.type = "model_call_error"
    self.error_id = "model_call_error"


class ToolContractViolation(SentinelException):
  """Raised by a tool to signal a non-retryable failure (bad input, forbidden operation)."""

  def __init__(self, message: str, tool_name: Optional[str] = None):
    super().__init__(message, status_code=422)
    self.tool_name = tool_name
    self.type = "tool_contract_violation"
    self.error_id = "tool_contract_violation"


class SerializationError(SentinelException):
  """Raised when a value cannot be serialized to JSON."""

  def __init__(self, message: str, original_error: Optional[BaseException] = None):
    super().__init__(message, status_code=500)
    self.original_error = original_error
    self.type = "serialization_error"
    self.error_id = "serialization_error"
