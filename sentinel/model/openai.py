"""Reference binding for OpenAI-compatible chat completion APIs."""

import os
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI, RateLimitError

from sentinel.agent.errors import ErrorType
from sentinel.exceptions import ModelCallError
from sentinel.model.base import ModelResponse, Usage
from sentinel.model.message import (
  BaseMessage,
  GenericResource,
  GenericText,
  MessageRole,
  StructuredOutput,
  SystemPrompt,
  Text,
  ToolCall,
  ToolCallResponse,
  UserPrompt,
)
from sentinel.model.settings import ModelSettings
from sentinel.utils.log import log_debug

if TYPE_CHECKING:
  from sentinel.agent.run import RunContext
  from sentinel.tool.function import Function

_ROLE_NAMES = {
  MessageRole.SYSTEM: "system",
  MessageRole.USER: "user",
  MessageRole.ASSISTANT: "assistant",
  MessageRole.TOOL_CALL: "user",
}


class OpenAIChat:
  """
  Model transport for the OpenAI chat completions API.

  Args:
      id: Model id, e.g. ``"gpt-4o-mini"``.
      api_key: Defaults to ``OPENAI_API_KEY``.
      base_url: For OpenAI-compatible endpoints.
      client: Pre-built ``AsyncOpenAI`` client (takes precedence over the above).

  Example:
      agent = Agent(model=OpenAIChat(id="gpt-4o-mini"), capabilities=[...])
  """

  def __init__(
    self,
    id: str = "gpt-4o-mini",
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    timeout: Optional[float] = None,
    client: Optional[AsyncOpenAI] = None,
  ):
    self.id = id
    self.api_key = api_key or os.getenv("OPENAI_API_KEY")
    self.base_url = base_url
    self.timeout = timeout
    self._client = client

  def get_client(self) -> AsyncOpenAI:
    if self._client is None:
      self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url, timeout=self.timeout)
    return self._client

  # ------------------------------------------------------------------
  # Request mapping
  # ------------------------------------------------------------------

  def format_messages(self, messages: Sequence[BaseMessage]) -> List[Dict[str, Any]]:
    """Map the trace to chat messages; consecutive tool calls share one assistant message."""
    formatted: List[Dict[str, Any]] = []
    for m in messages:
      if isinstance(m, ToolCall):
        call = {"id": m.tool_call_id, "type": "function", "function": {"name": m.tool_name, "arguments": m.arguments}}
        last = formatted[-1] if formatted else None
        if last is not None and last["role"] == "assistant" and "tool_calls" in last:
          last["tool_calls"].append(call)
        else:
          formatted.append({"role": "assistant", "content": None, "tool_calls": [call]})
      elif isinstance(m, ToolCallResponse):
        formatted.append({"role": "tool", "tool_call_id": m.tool_call_id, "content": m.response})
      elif isinstance(m, SystemPrompt):
        formatted.append({"role": "system", "content": m.content})
      elif isinstance(m, UserPrompt):
        formatted.append({"role": "user", "content": m.content})
      elif isinstance(m, (Text, StructuredOutput)):
        formatted.append({"role": "assistant", "content": m.content})
      elif isinstance(m, GenericText):
        formatted.append({"role": _ROLE_NAMES[m.role], "content": m.text})
      elif isinstance(m, GenericResource):
        body = m.content if m.content is not None else (m.serialized_json or "")
        header = f"[resource uri={m.uri or ''} mime_type={m.mime_type or ''}]"
        formatted.append({"role": _ROLE_NAMES[m.role], "content": f"{header}\n{body}"})
    return formatted

  def format_tools(self, tools: Dict[str, "Function"]) -> Optional[List[Dict[str, Any]]]:
    if not tools:
      return None
    return [{"type": "function", "function": {**fn.to_dict(), "name": tool_id}} for tool_id, fn in tools.items()]

  def request_params(self, messages: Sequence[BaseMessage], tools: Dict[str, "Function"], settings: ModelSettings) -> Dict[str, Any]:
    params: Dict[str, Any] = {"model": self.id, "messages": self.format_messages(messages), **settings.to_request_params()}
    formatted_tools = self.format_tools(tools)
    if formatted_tools:
      params["tools"] = formatted_tools
    if settings.output_schema is not None:
      params["response_format"] = {
        "type": "json_schema",
        "json_schema": {"name": settings.output_schema.__name__, "schema": settings.output_schema.model_json_schema()},
      }
    return params

  # ------------------------------------------------------------------
  # Call
  # ------------------------------------------------------------------

  async def send(
    self,
    messages: Sequence[BaseMessage],
    tools: Dict[str, "Function"],
    settings: ModelSettings,
    context: "RunContext",
  ) -> ModelResponse:
    params = self.request_params(messages, tools, settings)
    log_debug(f"OpenAIChat({self.id}) sending {len(params['messages'])} messages", log_level=2)
    try:
      completion = await self.get_client().chat.completions.create(**params)
    except RateLimitError as e:
      raise ModelCallError(ErrorType.MODEL_CALL_RATE_LIMIT_EXCEEDED, e.message, e) from e
    except (APITimeoutError, APIConnectionError) as e:
      raise ModelCallError(ErrorType.MODEL_CALL_COMMUNICATION_ERROR, e.message, e) from e
    except APIStatusError as e:
      raise ModelCallError(ErrorType.GENERIC_MODEL_CALL_FAILURE, e.message, e) from e
    return self.parse_response(completion, settings, context)

  def parse_response(self, completion: Any, settings: ModelSettings, context: "RunContext") -> ModelResponse:
    usage = None
    if getattr(completion, "usage", None) is not None:
      usage = Usage(
        input_tokens=completion.usage.prompt_tokens or 0,
        output_tokens=completion.usage.completion_tokens or 0,
        total_tokens=completion.usage.total_tokens or 0,
      )
    if not completion.choices:
      return ModelResponse(messages=[], finish_reason=None, usage=usage, raw=completion)

    choice = completion.choices[0]
    message = choice.message
    ids = {"session_id": context.session_id, "run_id": context.run_id}
    refusal = getattr(message, "refusal", None)
    if refusal:
      return ModelResponse(messages=[], finish_reason="refusal", refusal=refusal, usage=usage, raw=completion)

    parsed: List[BaseMessage] = []
    for tc in message.tool_calls or []:
      parsed.append(ToolCall(**ids, tool_call_id=tc.id, tool_name=tc.function.name, arguments=tc.function.arguments or "{}"))
    if message.content:
      if settings.output_schema is not None:
        parsed.append(StructuredOutput(**ids, content=message.content))
      else:
        parsed.append(Text(**ids, content=message.content))
    return ModelResponse(messages=parsed, finish_reason=choice.finish_reason, usage=usage, raw=completion)
