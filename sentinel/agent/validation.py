"""Output validation: quality gates applied to a run's terminal output."""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, Protocol, Sequence, Union, runtime_checkable
from xml.sax.saxutils import escape

from sentinel.utils.log import log_debug, log_warning

if TYPE_CHECKING:
  from sentinel.agent.run import RunContext


class ValidationFailureType(str, Enum):
  RETRYABLE = "RETRYABLE"
  PERMANENT = "PERMANENT"


@dataclass(frozen=True)
class ValidationFailure:
  type: ValidationFailureType
  message: str


@dataclass
class ValidationResult:
  """Outcome of validating one output.

  ``is_successful`` when there are no failures; ``is_retriable`` when there is at
  least one failure and every failure is retryable.
  """

  failures: List[ValidationFailure] = field(default_factory=list)

  # ------------------------------------------------------------------
  # Factory helpers
  # ------------------------------------------------------------------

  @staticmethod
  def success() -> ValidationResult:
    return ValidationResult()

  @staticmethod
  def failure(*messages: str) -> ValidationResult:
    return ValidationResult([ValidationFailure(ValidationFailureType.RETRYABLE, m) for m in messages])

  @staticmethod
  def permanent(*messages: str) -> ValidationResult:
    return ValidationResult([ValidationFailure(ValidationFailureType.PERMANENT, m) for m in messages])

  def add_failure(self, message: str, failure_type: ValidationFailureType = ValidationFailureType.RETRYABLE) -> ValidationResult:
    self.failures.append(ValidationFailure(failure_type, message))
    return self

  @property
  def is_successful(self) -> bool:
    return not self.failures

  @property
  def is_retriable(self) -> bool:
    return bool(self.failures) and all(f.type == ValidationFailureType.RETRYABLE for f in self.failures)

  @property
  def messages(self) -> List[str]:
    return [f.message for f in self.failures]


# ------------------------------------------------------------------
# Protocols
# ------------------------------------------------------------------


@runtime_checkable
class OutputValidator(Protocol):
  """Checks a terminal output (``str`` for text, the parsed model for structured output)."""

  def validate(self, context: RunContext, output: Any) -> Union[ValidationResult, Awaitable[ValidationResult]]: ...


ValidatorLike = Union[OutputValidator, Callable[["RunContext", Any], Union[ValidationResult, Awaitable[ValidationResult]]]]


class NoOpOutputValidator:
  """Accepts every output."""

  def validate(self, context: RunContext, output: Any) -> ValidationResult:
    return ValidationResult.success()


class FunctionOutputValidator:
  """Adapts a plain ``(context, output) -> ValidationResult`` callable."""

  def __init__(self, fn: Callable[..., Any], name: str = ""):
    self._fn = fn
    self.name = name or getattr(fn, "__name__", "validator")

  def validate(self, context: RunContext, output: Any) -> Union[ValidationResult, Awaitable[ValidationResult]]:
    return self._fn(context, output)


def as_validator(validator: ValidatorLike) -> OutputValidator:
  if hasattr(validator, "validate"):
    return validator  # type: ignore[return-value]
  if callable(validator):
    return FunctionOutputValidator(validator)
  raise TypeError(f"Not an output validator: {validator!r}")


class CompositeOutputValidator:
  """Runs every member validator and concatenates their failures in order.

  Every member runs even after an earlier one fails, so the retry instruction
  sent to the model lists all problems at once.
  """

  def __init__(self, *validators: ValidatorLike):
    self._validators: List[OutputValidator] = [as_validator(v) for v in validators]

  def add_validator(self, validator: ValidatorLike) -> CompositeOutputValidator:
    self._validators.append(as_validator(validator))
    return self

  @property
  def validators(self) -> Sequence[OutputValidator]:
    return tuple(self._validators)

  def validate(self, context: RunContext, output: Any) -> Union[ValidationResult, Awaitable[ValidationResult]]:
    results = [v.validate(context, output) for v in self._validators]
    if any(inspect.isawaitable(r) for r in results):
      return self._gather(results)
    return _concat(results)  # type: ignore[arg-type]

  async def _gather(self, results: List[Any]) -> ValidationResult:
    resolved = []
    for r in results:
      resolved.append(await r if inspect.isawaitable(r) else r)
    return _concat(resolved)


def _concat(results: Sequence[ValidationResult]) -> ValidationResult:
  combined = ValidationResult()
  for r in results:
    combined.failures.extend(r.failures)
  return combined


async def run_validator(validator: OutputValidator, context: RunContext, output: Any) -> ValidationResult:
  """Run a validator, awaiting it if needed.

  A validator that raises is treated as a permanent failure.
  """
  try:
    result = validator.validate(context, output)
    if inspect.isawaitable(result):
      result = await result
  except Exception as exc:
    log_warning(f"Output validator {type(validator).__name__} raised: {exc}")
    return ValidationResult.permanent(f"Validator error: {exc}")
  log_debug(f"Validation result: {len(result.failures)} failure(s)", log_level=2)
  return result


# ------------------------------------------------------------------
# Retry instruction
# ------------------------------------------------------------------

FIX_OBJECTIVE = "Fix the validation errors in the previously generated output"


@dataclass(frozen=True)
class ValidationErrorFixPrompt:
  """Instruction appended as a user prompt when a retryable validation failure occurs."""

  validation_errors: List[str]
  previous_output: str
  objective: str = FIX_OBJECTIVE

  def render(self) -> str:
    return (
      "<validation_error_fix_prompt>\n"
      f"  <objective>{escape(self.objective)}</objective>\n"
      f"  <validation_errors>{escape(', '.join(self.validation_errors))}</validation_errors>\n"
      f"  <previously_generated_output>{escape(self.previous_output)}</previously_generated_output>\n"
      "</validation_error_fix_prompt>"
    )

  def __str__(self) -> str:
    return self.render()
