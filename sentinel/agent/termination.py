"""Early-termination policies.

A policy is consulted once per round, after the model responds and before any
tool call in that response is dispatched. When it decides to stop, the pending
tool calls are dropped and the run ends with the decision's error.
"""

import inspect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Protocol, Union, runtime_checkable

from sentinel.agent.cancellation import CancellationToken
from sentinel.agent.errors import ErrorType, SentinelError
from sentinel.model.message import ToolCall
from sentinel.utils.log import log_debug, log_warning

if TYPE_CHECKING:
  from sentinel.agent.run import RunContext
  from sentinel.model.base import ModelResponse
  from sentinel.model.settings import ModelSettings


@dataclass(frozen=True)
class TerminationDecision:
  should_terminate: bool = False
  error_type: ErrorType = ErrorType.MODEL_RUN_TERMINATED
  reason: str = ""

  @staticmethod
  def proceed() -> "TerminationDecision":
    return TerminationDecision(should_terminate=False)

  @staticmethod
  def terminate(reason: str = "", error_type: ErrorType = ErrorType.MODEL_RUN_TERMINATED) -> "TerminationDecision":
    return TerminationDecision(should_terminate=True, error_type=error_type, reason=reason)

  def to_error(self) -> SentinelError:
    return SentinelError.error(self.error_type, self.reason)


@runtime_checkable
class EarlyTerminationPolicy(Protocol):
  def evaluate(
    self,
    settings: "ModelSettings",
    context: "RunContext",
    response: "ModelResponse",
  ) -> Union[TerminationDecision, Awaitable[TerminationDecision]]: ...


class NeverTerminateEarly:
  def evaluate(self, settings: "ModelSettings", context: "RunContext", response: "ModelResponse") -> TerminationDecision:
    return TerminationDecision.proceed()


class MaxRoundsTermination:
  """Stops the run when the model asks for more tools after ``max_rounds`` rounds.

  A terminal response in the last allowed round still completes the run.
  """

  def __init__(self, max_rounds: int):
    if max_rounds < 1:
      raise ValueError("max_rounds must be >= 1")
    self.max_rounds = max_rounds

  def evaluate(self, settings: "ModelSettings", context: "RunContext", response: "ModelResponse") -> TerminationDecision:
    if context.round >= self.max_rounds and any(isinstance(m, ToolCall) for m in response.messages):
      return TerminationDecision.terminate(f"reached {self.max_rounds} rounds")
    return TerminationDecision.proceed()


class CancellationTermination:
  """Stops the run when the token was cancelled while the model was responding."""

  def __init__(self, token: CancellationToken):
    self.token = token

  def evaluate(self, settings: "ModelSettings", context: "RunContext", response: "ModelResponse") -> TerminationDecision:
    if self.token.is_cancelled:
      return TerminationDecision.terminate(self.token.reason)
    return TerminationDecision.proceed()


class FunctionTerminationPolicy:
  """Adapts a callable returning ``bool`` or :class:`TerminationDecision`."""

  def __init__(self, fn: Callable[..., Any]):
    self._fn = fn
    self.name = getattr(fn, "__name__", "policy")

  def evaluate(self, settings: "ModelSettings", context: "RunContext", response: "ModelResponse") -> Any:
    return self._fn(settings, context, response)


PolicyLike = Union[EarlyTerminationPolicy, Callable[..., Any]]


def as_policy(policy: Optional[PolicyLike]) -> EarlyTerminationPolicy:
  if policy is None:
    return NeverTerminateEarly()
  if hasattr(policy, "evaluate"):
    return policy  # type: ignore[return-value]
  if callable(policy):
    return FunctionTerminationPolicy(policy)
  raise TypeError(f"Not an early termination policy: {policy!r}")


async def evaluate_policy(
  policy: EarlyTerminationPolicy,
  settings: "ModelSettings",
  context: "RunContext",
  response: "ModelResponse",
) -> TerminationDecision:
  """Run a policy, awaiting it if needed.

  A policy that raises ends the run as if it had asked to terminate.
  """
  try:
    decision = policy.evaluate(settings, context, response)
    if inspect.isawaitable(decision):
      decision = await decision
  except Exception as exc:
    log_warning(f"Early termination policy {type(policy).__name__} raised: {exc}")
    return TerminationDecision.terminate(f"policy error: {exc}")
  if isinstance(decision, bool):
    decision = TerminationDecision.terminate(f"policy {getattr(policy, 'name', type(policy).__name__)}") if decision else TerminationDecision.proceed()
  if decision.should_terminate:
    log_debug(f"Early termination requested: {decision.reason}")
  return decision
