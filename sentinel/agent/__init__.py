"""
Sentinel Agent — capabilities, resolution and the run loop.

Quick Start:
    from sentinel.agent import Agent, AgentConfig, AgentCapabilities

    agent = Agent(
        model="gpt-4o-mini",
        tools=[my_tool],
        capabilities=[AgentCapabilities.custom_tools("my_tool")],
    )
    output = agent.run("Hello!")

Exports are resolved lazily: ``sentinel.model.message`` depends on
``sentinel.agent.errors``, so this package must not import the agent on load.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
  from sentinel.agent.agent import Agent
  from sentinel.agent.cancellation import AgentCancelled, CancellationToken
  from sentinel.agent.capabilities import AgentCapabilities, Capabilities
  from sentinel.agent.config import AgentConfig
  from sentinel.agent.errors import ErrorType, SentinelError
  from sentinel.agent.event_bus import EventBus
  from sentinel.agent.loop import AgentLoop
  from sentinel.agent.resolver import ResolvedTools, ToolResolver
  from sentinel.agent.run import RunContext, RunOutput, RunStatus
  from sentinel.agent.testing import AgentTestCase, MockModel, create_test_agent


_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
  # Core
  "Agent": ("sentinel.agent.agent", "Agent"),
  "AgentConfig": ("sentinel.agent.config", "AgentConfig"),
  "AgentCancelled": ("sentinel.agent.cancellation", "AgentCancelled"),
  "CancellationToken": ("sentinel.agent.cancellation", "CancellationToken"),
  "AgentCapabilities": ("sentinel.agent.capabilities", "AgentCapabilities"),
  "Capabilities": ("sentinel.agent.capabilities", "Capabilities"),
  "ErrorType": ("sentinel.agent.errors", "ErrorType"),
  "SentinelError": ("sentinel.agent.errors", "SentinelError"),
  "EventBus": ("sentinel.agent.event_bus", "EventBus"),
  "AgentLoop": ("sentinel.agent.loop", "AgentLoop"),
  "ResolvedTools": ("sentinel.agent.resolver", "ResolvedTools"),
  "ToolResolver": ("sentinel.agent.resolver", "ToolResolver"),
  "RunContext": ("sentinel.agent.run", "RunContext"),
  "RunOutput": ("sentinel.agent.run", "RunOutput"),
  "RunStatus": ("sentinel.agent.run", "RunStatus"),
  # Testing
  "MockModel": ("sentinel.agent.testing", "MockModel"),
  "AgentTestCase": ("sentinel.agent.testing", "AgentTestCase"),
  "create_test_agent": ("sentinel.agent.testing", "create_test_agent"),
}


def __getattr__(name: str):
  if name in _LAZY_IMPORTS:
    module_path, attr_name = _LAZY_IMPORTS[name]
    import importlib

    module = importlib.import_module(module_path)
    return getattr(module, attr_name)
  raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = list(_LAZY_IMPORTS)
