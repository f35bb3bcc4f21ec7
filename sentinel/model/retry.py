"""Transport-level retry wrapper for models."""

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, FrozenSet, Optional, Sequence

from sentinel.agent.errors import ErrorType, SentinelError, classify_exception, classify_finish_reason
from sentinel.exceptions import ConfigurationError
from sentinel.model.base import Model, ModelResponse
from sentinel.model.message import BaseMessage
from sentinel.model.settings import ModelSettings
from sentinel.utils.log import log_debug

if TYPE_CHECKING:
  from sentinel.agent.run import RunContext
  from sentinel.tool.function import Function


def _default_retryable() -> FrozenSet[ErrorType]:
  return frozenset(t for t in ErrorType if t.retryable)


@dataclass(frozen=True)
class RetryConfig:
  """
  Retry settings for :class:`RetryingModel`.

  Attributes:
      max_attempts: Total attempts, including the first one.
      delay_seconds: Wait before the second attempt.
      exponential_backoff: Double the wait after every failed attempt.
      max_delay_seconds: Upper bound on a single wait.
      retryable_error_types: Error types worth another attempt. Defaults to
        every type flagged retryable.
  """

  max_attempts: int = 3
  delay_seconds: float = 1.0
  exponential_backoff: bool = True
  max_delay_seconds: float = 60.0
  retryable_error_types: FrozenSet[ErrorType] = field(default_factory=_default_retryable)

  def __post_init__(self) -> None:
    if self.max_attempts < 1:
      raise ValueError("max_attempts must be >= 1")

  def delay_for(self, attempt: int) -> float:
    """Delay after failed attempt number ``attempt`` (0-based)."""
    if not self.exponential_backoff:
      return min(self.delay_seconds, self.max_delay_seconds)
    return min(self.delay_seconds * (2**attempt), self.max_delay_seconds)


class RetryingModel:
  """Wraps a model and re-sends the same request on retryable failures.

  Exceptions are classified with ``classify_exception``; empty responses count
  as ``NO_RESPONSE`` and finish reasons are classified too. When attempts run
  out the last exception is raised, or the last response returned, so the
  orchestrator reports the final failure.
  """

  def __init__(self, model: Model, config: Optional[RetryConfig] = None):
    self.model = model
    self.config = config or RetryConfig()
    self.id = getattr(model, "id", type(model).__name__)

  async def send(
    self,
    messages: Sequence[BaseMessage],
    tools: Dict[str, "Function"],
    settings: ModelSettings,
    context: "RunContext",
  ) -> ModelResponse:
    attempts = self.config.max_attempts
    for attempt in range(attempts):
      try:
        response = await self.model.send(messages, tools, settings, context)
      except ConfigurationError:
        raise
      except Exception as e:
        error = classify_exception(e)
        if not self._should_retry(error, attempt):
          raise
        await self._wait(error, attempt)
        continue

      error = self._response_error(response)
      if error.is_success or not self._should_retry(error, attempt):
        return response
      await self._wait(error, attempt)

    # Unreachable, but keeps type checkers happy
    raise RuntimeError("Exhausted retries")  # pragma: no cover

  def _response_error(self, response: ModelResponse) -> SentinelError:
    finish = classify_finish_reason(response.finish_reason, response.refusal)
    if not finish.is_success:
      return finish
    if not response.messages:
      return SentinelError.error(ErrorType.NO_RESPONSE)
    return finish

  def _should_retry(self, error: SentinelError, attempt: int) -> bool:
    return error.error_type in self.config.retryable_error_types and attempt + 1 < self.config.max_attempts

  async def _wait(self, error: SentinelError, attempt: int) -> None:
    delay = self.config.delay_for(attempt)
    log_debug(f"Model call failed with {error.error_type.value} (attempt {attempt + 1}/{self.config.max_attempts}): {error.message}. Retrying in {delay:.1f}s")
    await asyncio.sleep(delay)
