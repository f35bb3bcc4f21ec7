"""Conversation messages.

A run's trace is an ordered list of immutable messages. Every message belongs to
exactly one session and one run and is one of a closed set of variants:

* requests sent to the model: :class:`SystemPrompt`, :class:`UserPrompt`,
  :class:`ToolCallResponse`
* responses produced by the model: :class:`Text`, :class:`StructuredOutput`,
  :class:`ToolCall`
* generic content that is neither: :class:`GenericText`, :class:`GenericResource`

Use :func:`messages_to_json` / :func:`messages_from_json` to persist lists of
messages; the ``message_type`` field discriminates the variant.
"""

from enum import Enum
from typing import Annotated, Any, ClassVar, List, Literal, Optional, Protocol, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from sentinel.agent.errors import ErrorType
from sentinel.utils.functions import epoch_micros, new_id


class MessageRole(str, Enum):
  SYSTEM = "SYSTEM"
  USER = "USER"
  ASSISTANT = "ASSISTANT"
  TOOL_CALL = "TOOL_CALL"


class MessageType(str, Enum):
  SYSTEM_PROMPT_REQUEST_MESSAGE = "SYSTEM_PROMPT_REQUEST_MESSAGE"
  USER_PROMPT_REQUEST_MESSAGE = "USER_PROMPT_REQUEST_MESSAGE"
  TOOL_CALL_RESPONSE_MESSAGE = "TOOL_CALL_RESPONSE_MESSAGE"
  TEXT_RESPONSE_MESSAGE = "TEXT_RESPONSE_MESSAGE"
  STRUCTURED_OUTPUT_RESPONSE_MESSAGE = "STRUCTURED_OUTPUT_RESPONSE_MESSAGE"
  TOOL_CALL_REQUEST_MESSAGE = "TOOL_CALL_REQUEST_MESSAGE"
  GENERIC_TEXT_MESSAGE = "GENERIC_TEXT_MESSAGE"
  GENERIC_RESOURCE_MESSAGE = "GENERIC_RESOURCE_MESSAGE"


class ResourceType(str, Enum):
  TEXT = "TEXT"
  BLOB = "BLOB"


class MessageVisitor(Protocol):
  """Double-dispatch target for :meth:`BaseMessage.accept`."""

  def visit_system_prompt(self, message: "SystemPrompt") -> Any: ...

  def visit_user_prompt(self, message: "UserPrompt") -> Any: ...

  def visit_tool_call_response(self, message: "ToolCallResponse") -> Any: ...

  def visit_text(self, message: "Text") -> Any: ...

  def visit_structured_output(self, message: "StructuredOutput") -> Any: ...

  def visit_tool_call(self, message: "ToolCall") -> Any: ...

  def visit_generic_text(self, message: "GenericText") -> Any: ...

  def visit_generic_resource(self, message: "GenericResource") -> Any: ...


class BaseMessage(BaseModel):
  """Fields shared by every message variant."""

  model_config = ConfigDict(frozen=True)

  # "request", "response" or "generic"
  category: ClassVar[str] = "generic"
  terminal: ClassVar[bool] = False
  visit_method: ClassVar[str] = ""

  session_id: str
  run_id: str
  message_id: str = Field(default_factory=new_id)
  timestamp: int = Field(default_factory=epoch_micros)
  role: MessageRole

  def is_request(self) -> bool:
    return self.category == "request"

  def is_response(self) -> bool:
    return self.category == "response"

  def is_generic(self) -> bool:
    return self.category == "generic"

  def is_terminal(self) -> bool:
    """True for final model output (free text or structured output)."""
    return self.terminal

  def accept(self, visitor: MessageVisitor) -> Any:
    return getattr(visitor, self.visit_method)(self)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class SystemPrompt(BaseMessage):
  category: ClassVar[str] = "request"
  visit_method: ClassVar[str] = "visit_system_prompt"

  message_type: Literal["SYSTEM_PROMPT_REQUEST_MESSAGE"] = "SYSTEM_PROMPT_REQUEST_MESSAGE"
  role: MessageRole = MessageRole.SYSTEM
  content: str
  # Dynamic prompts are regenerated for every run (e.g. recalled memories)
  dynamic: bool = False
  method_reference: Optional[str] = None


class UserPrompt(BaseMessage):
  category: ClassVar[str] = "request"
  visit_method: ClassVar[str] = "visit_user_prompt"

  message_type: Literal["USER_PROMPT_REQUEST_MESSAGE"] = "USER_PROMPT_REQUEST_MESSAGE"
  role: MessageRole = MessageRole.USER
  content: str
  sent_at: int = Field(default_factory=epoch_micros)


class ToolCallResponse(BaseMessage):
  category: ClassVar[str] = "request"
  visit_method: ClassVar[str] = "visit_tool_call_response"

  message_type: Literal["TOOL_CALL_RESPONSE_MESSAGE"] = "TOOL_CALL_RESPONSE_MESSAGE"
  role: MessageRole = MessageRole.TOOL_CALL
  tool_call_id: str
  tool_name: str
  response: str
  error_type: ErrorType = ErrorType.SUCCESS
  sent_at: int = Field(default_factory=epoch_micros)

  def is_success(self) -> bool:
    return self.error_type == ErrorType.SUCCESS


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class Text(BaseMessage):
  category: ClassVar[str] = "response"
  terminal: ClassVar[bool] = True
  visit_method: ClassVar[str] = "visit_text"

  message_type: Literal["TEXT_RESPONSE_MESSAGE"] = "TEXT_RESPONSE_MESSAGE"
  role: MessageRole = MessageRole.ASSISTANT
  content: str


class StructuredOutput(BaseMessage):
  category: ClassVar[str] = "response"
  terminal: ClassVar[bool] = True
  visit_method: ClassVar[str] = "visit_structured_output"

  message_type: Literal["STRUCTURED_OUTPUT_RESPONSE_MESSAGE"] = "STRUCTURED_OUTPUT_RESPONSE_MESSAGE"
  role: MessageRole = MessageRole.ASSISTANT
  # Serialized JSON
  content: str


class ToolCall(BaseMessage):
  category: ClassVar[str] = "response"
  visit_method: ClassVar[str] = "visit_tool_call"

  message_type: Literal["TOOL_CALL_REQUEST_MESSAGE"] = "TOOL_CALL_REQUEST_MESSAGE"
  role: MessageRole = MessageRole.ASSISTANT
  tool_call_id: str
  tool_name: str
  # Serialized JSON object
  arguments: str = "{}"


# ---------------------------------------------------------------------------
# Generic
# ---------------------------------------------------------------------------


class GenericText(BaseMessage):
  visit_method: ClassVar[str] = "visit_generic_text"

  message_type: Literal["GENERIC_TEXT_MESSAGE"] = "GENERIC_TEXT_MESSAGE"
  role: MessageRole = MessageRole.USER
  text: str


class GenericResource(BaseMessage):
  visit_method: ClassVar[str] = "visit_generic_resource"

  message_type: Literal["GENERIC_RESOURCE_MESSAGE"] = "GENERIC_RESOURCE_MESSAGE"
  role: MessageRole = MessageRole.USER
  resource_type: ResourceType = ResourceType.TEXT
  uri: Optional[str] = None
  mime_type: Optional[str] = None
  content: Optional[str] = None
  serialized_json: Optional[str] = None


Message = Annotated[
  Union[SystemPrompt, UserPrompt, ToolCallResponse, Text, StructuredOutput, ToolCall, GenericText, GenericResource],
  Field(discriminator="message_type"),
]

_MESSAGE_LIST_ADAPTER: TypeAdapter[List[Message]] = TypeAdapter(List[Message])
_MESSAGE_ADAPTER: TypeAdapter[Message] = TypeAdapter(Message)


def messages_to_json(messages: Sequence[BaseMessage]) -> str:
  return _MESSAGE_LIST_ADAPTER.dump_json(list(messages)).decode("utf-8")  # type: ignore[arg-type]


def messages_from_json(data: Union[str, bytes]) -> List[BaseMessage]:
  return list(_MESSAGE_LIST_ADAPTER.validate_json(data))


def message_from_dict(data: Any) -> BaseMessage:
  return _MESSAGE_ADAPTER.validate_python(data)


def tool_call_id_of(message: BaseMessage) -> Optional[str]:
  """Tool-call id for ``ToolCall``/``ToolCallResponse`` messages, ``None`` otherwise."""
  if isinstance(message, (ToolCall, ToolCallResponse)):
    return message.tool_call_id
  return None
