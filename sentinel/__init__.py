"""
Sentinel — capability-scoped agent run orchestrator.

Quick Start:
    from sentinel import Agent, AgentCapabilities, tool, OpenAIChat

    agent = Agent(
        model=OpenAIChat(id="gpt-4o-mini"),
        tools=[my_tool],
        capabilities=[AgentCapabilities.custom_tools("my_tool")],
        instructions="You are a helpful assistant.",
    )
    output = agent.run("Hello!")

Building blocks:
    from sentinel.agent.capabilities import AgentCapabilities, Capabilities
    from sentinel.agent.validation import CompositeOutputValidator, ValidationResult
    from sentinel.agent.termination import MaxRoundsTermination
    from sentinel.session import InMemorySessionStore, RemoveAllToolCallsSelector
    from sentinel.memory import InMemoryAgentMemoryStore, AgentMemory
    from sentinel.tool import tool, Function, Toolkit, http_catalog, mcp_catalog

Events:
    from sentinel.agent.events import ToolCallStartedEvent, RunCompletedEvent
"""

from typing import TYPE_CHECKING

# --- Eager exports (core classes used by every consumer) ---

from sentinel.agent.agent import Agent
from sentinel.agent.cancellation import AgentCancelled, CancellationToken
from sentinel.agent.capabilities import AgentCapabilities, Capabilities
from sentinel.agent.config import AgentConfig
from sentinel.agent.errors import ErrorType, SentinelError
from sentinel.agent.run import RunContext, RunOutput, RunStatus
from sentinel.agent.validation import CompositeOutputValidator, ValidationResult
from sentinel.exceptions import ConfigurationError, ModelCallError, SentinelException, ToolContractViolation
from sentinel.model.message import Message
from sentinel.model.settings import ModelSettings
from sentinel.tool.decorator import tool
from sentinel.tool.function import Function
from sentinel.tool.toolkit import Toolkit

if TYPE_CHECKING:
  from sentinel.memory import InMemoryAgentMemoryStore, MemoryExtractor
  from sentinel.model.openai import OpenAIChat
  from sentinel.model.retry import RetryConfig, RetryingModel
  from sentinel.session import InMemorySessionStore, SessionSummarizer


# --- Lazy exports (loaded on first access via __getattr__) ---

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
  # Models
  "OpenAIChat": ("sentinel.model.openai", "OpenAIChat"),
  "RetryingModel": ("sentinel.model.retry", "RetryingModel"),
  "RetryConfig": ("sentinel.model.retry", "RetryConfig"),
  # Stores
  "InMemorySessionStore": ("sentinel.session", "InMemorySessionStore"),
  "InMemoryAgentMemoryStore": ("sentinel.memory", "InMemoryAgentMemoryStore"),
  "SessionSummarizer": ("sentinel.session", "SessionSummarizer"),
  "MemoryExtractor": ("sentinel.memory", "MemoryExtractor"),
}


def __getattr__(name: str):
  if name in _LAZY_IMPORTS:
    module_path, attr_name = _LAZY_IMPORTS[name]
    import importlib

    module = importlib.import_module(module_path)
    return getattr(module, attr_name)
  raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
  # Core
  "Agent",
  "AgentConfig",
  "AgentCapabilities",
  "Capabilities",
  "AgentCancelled",
  "CancellationToken",
  "Toolkit",
  # Tools
  "tool",
  "Function",
  # Messages & settings
  "Message",
  "ModelSettings",
  # Run
  "RunContext",
  "RunOutput",
  "RunStatus",
  "ErrorType",
  "SentinelError",
  "ValidationResult",
  "CompositeOutputValidator",
  # Exceptions
  "SentinelException",
  "ConfigurationError",
  "ModelCallError",
  "ToolContractViolation",
  # Lazy
  "OpenAIChat",
  "RetryingModel",
  "RetryConfig",
  "InMemorySessionStore",
  "InMemoryAgentMemoryStore",
  "SessionSummarizer",
  "MemoryExtractor",
]
