"""Cooperative cancellation for runs.

The loop polls the token between steps: before every model call and before
dispatching a round of tool calls. Tools may poll it too and raise
:class:`AgentCancelled` to stop mid-round.
"""

from typing import Optional

from sentinel.utils.functions import epoch_micros

DEFAULT_REASON = "Run was cancelled"


class AgentCancelled(Exception):
  """Raised by code that observes a cancelled token."""

  def __init__(self, reason: str = DEFAULT_REASON):
    super().__init__(reason)
    self.reason = reason


class CancellationToken:
  """Shared flag for stopping a run.

  Pass it to ``agent.arun(cancellation_token=token)`` and call :meth:`cancel`
  from another task or thread. The run ends with status ``CANCELLED`` and a
  ``MODEL_RUN_TERMINATED`` error carrying the reason. Only the first
  cancellation is recorded.
  """

  __slots__ = ("_reason", "_cancelled_at")

  def __init__(self) -> None:
    self._reason: Optional[str] = None
    self._cancelled_at: Optional[int] = None

  def cancel(self, reason: str = "") -> bool:
    """Request cancellation; returns False if the token was already cancelled."""
    if self._cancelled_at is not None:
      return False
    self._reason = reason or DEFAULT_REASON
    self._cancelled_at = epoch_micros()
    return True

  @property
  def is_cancelled(self) -> bool:
    return self._cancelled_at is not None

  @property
  def reason(self) -> str:
    return self._reason or DEFAULT_REASON

  @property
  def cancelled_at(self) -> Optional[int]:
    """Epoch microseconds of the first :meth:`cancel` call."""
    return self._cancelled_at

  def raise_if_cancelled(self) -> None:
    if self._cancelled_at is not None:
      raise AgentCancelled(self.reason)

  def __repr__(self) -> str:
    return f"CancellationToken(cancelled={self.is_cancelled}, reason={self._reason!r})"
