"""Agent configuration with immutable settings."""

from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class AgentConfig:
  """
  Optional configuration for advanced Agent settings.

  Controls loop bounds, retries and tool dispatch. Uses a frozen dataclass so
  a config cannot change while a run is executing.

  Attributes:
      agent_id: Unique identifier for the agent instance.
      agent_name: Human-readable name for the agent.
      max_tool_rounds: Maximum tool-call rounds before the run is terminated.
      max_validation_attempts: Total attempts at producing valid terminal output
        (1 means no validation retries).
      parallel_tool_calls: Gather same-round tool calls concurrently. Responses
        are always committed in call order.
      persist_system_prompts: Keep system prompts when saving a run to the session store.
      persist_failed_tool_calls: Keep failed tool-call pairs when saving a run.
      max_history_runs: Only the most recent N stored runs are loaded (``None`` for all).
      metadata: Default metadata copied into every RunContext.
  """

  # Identity
  agent_id: Optional[str] = None
  agent_name: Optional[str] = None

  # Execution settings
  max_tool_rounds: int = 30
  max_validation_attempts: int = 3
  parallel_tool_calls: bool = True

  # Session persistence
  persist_system_prompts: bool = False
  persist_failed_tool_calls: bool = False
  max_history_runs: Optional[int] = None

  # Context defaults
  metadata: Optional[Dict[str, Any]] = field(default=None, hash=False)

  def __post_init__(self) -> None:
    if self.max_tool_rounds < 1:
      raise ValueError("max_tool_rounds must be >= 1")
    if self.max_validation_attempts < 1:
      raise ValueError("max_validation_attempts must be >= 1")

  def with_updates(self, **kwargs: Any) -> "AgentConfig":
    """
    Create new config with updated values (immutable pattern).

    Example:
        new_config = config.with_updates(max_validation_attempts=5, agent_name="NewAgent")
    """
    unknown = set(kwargs) - {f.name for f in fields(self)}
    if unknown:
      raise TypeError(f"Unknown AgentConfig fields: {sorted(unknown)}")
    return replace(self, **kwargs)

  def __repr__(self) -> str:
    return (
      f"AgentConfig(agent_id={self.agent_id!r}, agent_name={self.agent_name!r}, "
      f"max_tool_rounds={self.max_tool_rounds}, max_validation_attempts={self.max_validation_attempts})"
    )
