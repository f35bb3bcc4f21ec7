"""
Root conftest — shared fixtures for the entire test suite.

Scope guide:
  - function: everything (agents, stores and contexts are cheap and must be isolated)
"""

from typing import List

import pytest

from sentinel.agent.errors import ErrorType
from sentinel.agent.run import RunContext
from sentinel.model.message import BaseMessage, SystemPrompt, Text, ToolCall, ToolCallResponse, UserPrompt

SESSION_ID = "s1"
RUN_ID = "r1"


# ---------------------------------------------------------------------------
# Run context
# ---------------------------------------------------------------------------


@pytest.fixture
def run_context() -> RunContext:
  """Minimal run context for components that only read identifiers."""
  return RunContext(run_id=RUN_ID, session_id=SESSION_ID, agent_name="test-agent")


# ---------------------------------------------------------------------------
# Message helpers
# ---------------------------------------------------------------------------


def make_tool_exchange(call_id: str, tool_name: str = "getName", error_type: ErrorType = ErrorType.SUCCESS, run_id: str = RUN_ID) -> List[BaseMessage]:
  """A ToolCall and its paired ToolCallResponse."""
  return [
    ToolCall(session_id=SESSION_ID, run_id=run_id, tool_call_id=call_id, tool_name=tool_name),
    ToolCallResponse(session_id=SESSION_ID, run_id=run_id, tool_call_id=call_id, tool_name=tool_name, response='"ok"', error_type=error_type),
  ]


@pytest.fixture
def tool_exchange_factory():
  """Factory for ToolCall/ToolCallResponse pairs."""
  return make_tool_exchange


@pytest.fixture
def conversation() -> List[BaseMessage]:
  """One complete run: system prompt, user prompt, one tool exchange, final text."""
  return [
    SystemPrompt(session_id=SESSION_ID, run_id=RUN_ID, content="You are helpful."),
    UserPrompt(session_id=SESSION_ID, run_id=RUN_ID, content="Hi"),
    *make_tool_exchange("c1"),
    Text(session_id=SESSION_ID, run_id=RUN_ID, content="Hello Santanu"),
  ]
