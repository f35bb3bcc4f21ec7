"""Testing utilities for agents - MockModel and AgentTestCase."""

import json
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from sentinel.agent.config import AgentConfig
from sentinel.agent.errors import ErrorType
from sentinel.agent.run import RunContext, RunOutput, RunStatus
from sentinel.model.base import ModelResponse
from sentinel.model.message import BaseMessage, StructuredOutput, Text, ToolCall, ToolCallResponse
from sentinel.model.settings import ModelSettings

ScriptItem = Union[str, BaseMessage, List[BaseMessage], ModelResponse, BaseException]


class MockModel:
  """
  Mock Model for unit testing agents without API calls.

  Each call consumes the next scripted item; once the script is exhausted the
  last item repeats. Items may be:

  * ``str``: a ``Text`` response (``StructuredOutput`` when the call carries an
    output schema)
  * a message or list of messages, e.g. from :meth:`tool_call`
  * a full :class:`ModelResponse`
  * an exception instance, raised from ``send``

  Messages are stamped with the run's session and run ids by the loop.

  Example:
      model = MockModel(responses=[
        MockModel.tool_call("getName", id="c1"),
        "Hello Santanu",
      ])

      # Mock with custom side effect
      def custom_response(messages, tools, settings, context):
          return ModelResponse(messages=[MockModel.text(f"Got {len(messages)} messages")], finish_reason="stop")

      model = MockModel(side_effect=custom_response)
  """

  def __init__(
    self,
    responses: Optional[Sequence[ScriptItem]] = None,
    side_effect: Optional[Callable[..., Any]] = None,
  ):
    self.responses: List[ScriptItem] = list(responses) if responses else ["Mock response"]
    self.side_effect = side_effect

    self._call_count = 0
    self._call_history: List[Dict[str, Any]] = []

    # Model identity
    self.id = "mock-model"
    self.provider = "mock"

  # ------------------------------------------------------------------
  # Script helpers
  # ------------------------------------------------------------------

  @staticmethod
  def text(content: str) -> Text:
    return Text(session_id="", run_id="", content=content)

  @staticmethod
  def structured(data: Any) -> StructuredOutput:
    content = data if isinstance(data, str) else json.dumps(data)
    return StructuredOutput(session_id="", run_id="", content=content)

  @staticmethod
  def tool_call(tool_name: str, arguments: Optional[Dict[str, Any]] = None, id: str = "call_1") -> ToolCall:
    return ToolCall(session_id="", run_id="", tool_call_id=id, tool_name=tool_name, arguments=json.dumps(arguments or {}))

  # ------------------------------------------------------------------
  # Model protocol
  # ------------------------------------------------------------------

  async def send(
    self,
    messages: Sequence[BaseMessage],
    tools: Dict[str, Any],
    settings: ModelSettings,
    context: RunContext,
  ) -> ModelResponse:
    self._call_history.append({
      "messages": list(messages),
      "tools": sorted(tools),
      "settings": settings,
      "run_id": context.run_id,
    })

    if self.side_effect:
      self._call_count += 1
      return self.side_effect(messages, tools, settings, context)

    item = self.responses[min(self._call_count, len(self.responses) - 1)]
    self._call_count += 1

    if isinstance(item, BaseException):
      raise item
    if isinstance(item, ModelResponse):
      return item
    if isinstance(item, str):
      message: BaseMessage = self.structured(item) if settings.output_schema is not None else self.text(item)
      return ModelResponse(messages=[message], finish_reason="stop")
    if isinstance(item, BaseMessage):
      item = [item]
    finish_reason = "tool_calls" if any(isinstance(m, ToolCall) for m in item) else "stop"
    return ModelResponse(messages=list(item), finish_reason=finish_reason)

  @property
  def call_count(self) -> int:
    """Return number of times the model was called."""
    return self._call_count

  @property
  def call_history(self) -> List[Dict[str, Any]]:
    """Return history of all calls made to the model."""
    return self._call_history

  def reset(self) -> None:
    self._call_count = 0
    self._call_history.clear()

  def assert_called(self) -> None:
    assert self._call_count > 0, "MockModel was not called"

  def assert_called_times(self, n: int) -> None:
    assert self._call_count == n, f"MockModel was called {self._call_count} times, expected {n}"


class AgentTestCase:
  """
  Base class for agent tests with helper assertions.

  Example:
      class TestMyAgent(AgentTestCase):
          def test_simple_response(self):
              agent = self.create_agent(model=MockModel(responses=["Hello!"]))
              output = agent.run("Say hello")
              assert output.content == "Hello!"
              self.assert_no_errors(output)
  """

  def create_agent(
    self,
    model: Optional[MockModel] = None,
    tools: Optional[List] = None,
    instructions: Optional[str] = None,
    config_kwargs: Optional[Dict[str, Any]] = None,
    **kwargs: Any,
  ):
    from sentinel.agent.agent import Agent

    return Agent(
      model=model or MockModel(),
      tools=tools,
      instructions=instructions,
      config=AgentConfig(**(config_kwargs or {})),
      **kwargs,
    )

  def assert_tool_called(self, output: RunOutput, tool_name: str, msg: Optional[str] = None) -> None:
    names = [m.tool_name for m in output.messages if isinstance(m, ToolCallResponse)]
    assert tool_name in names, msg or f"Tool '{tool_name}' not found in called tools: {names}"

  def assert_tool_not_called(self, output: RunOutput, tool_name: str, msg: Optional[str] = None) -> None:
    names = [m.tool_name for m in output.messages if isinstance(m, ToolCallResponse)]
    assert tool_name not in names, msg or f"Tool '{tool_name}' was unexpectedly called"

  def assert_no_errors(self, output: RunOutput, msg: Optional[str] = None) -> None:
    assert output.status == RunStatus.COMPLETED, msg or f"Run did not complete successfully: status={output.status}, error={output.error}"

  def assert_error_type(self, output: RunOutput, error_type: ErrorType, msg: Optional[str] = None) -> None:
    assert output.error.error_type == error_type, msg or f"Expected {error_type.value}, got {output.error.error_type.value}"

  def assert_message_count(self, output: RunOutput, count: int, msg: Optional[str] = None) -> None:
    actual = len(output.messages or [])
    assert actual == count, msg or f"Expected {count} messages, got {actual}"


def create_test_agent(responses: Optional[Sequence[ScriptItem]] = None, tools: Optional[List] = None, **kwargs: Any):
  """
  Quick helper to create a test agent with MockModel.

  Example:
      agent = create_test_agent(responses=["Hello!"])
      output = agent.run("Hi")
      assert output.content == "Hello!"
  """
  from sentinel.agent.agent import Agent

  return Agent(model=MockModel(responses=responses), tools=tools, **kwargs)
