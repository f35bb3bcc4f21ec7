"""Model transport contract."""

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Protocol, Sequence, Type, TypeVar, runtime_checkable

from pydantic import BaseModel

from sentinel.model.message import BaseMessage
from sentinel.model.settings import ModelSettings

if TYPE_CHECKING:
  from sentinel.agent.run import RunContext
  from sentinel.tool.function import Function

T = TypeVar("T", bound=BaseModel)


@dataclass
class Usage:
  """Token accounting for one or more model calls."""

  input_tokens: int = 0
  output_tokens: int = 0
  total_tokens: int = 0

  def __add__(self, other: "Usage") -> "Usage":
    return Usage(
      input_tokens=self.input_tokens + other.input_tokens,
      output_tokens=self.output_tokens + other.output_tokens,
      total_tokens=self.total_tokens + other.total_tokens,
    )


@dataclass
class ModelResponse:
  """What a transport returns for one round.

  ``messages`` holds the response variants (``Text``, ``StructuredOutput``,
  ``ToolCall``) already stamped with the run's session and run ids.
  ``finish_reason`` is the provider's raw value; ``refusal`` carries the
  provider's refusal text, if any.
  """

  messages: List[BaseMessage] = field(default_factory=list)
  finish_reason: Optional[str] = None
  refusal: Optional[str] = None
  usage: Optional[Usage] = None
  raw: Optional[Any] = None


@runtime_checkable
class Model(Protocol):
  """Anything that can turn a conversation into the next response.

  Transports raise on failure, ideally :class:`~sentinel.exceptions.ModelCallError`
  carrying an already classified ``ErrorType``; any other exception is
  classified by the orchestrator.
  """

  id: str

  async def send(
    self,
    messages: Sequence[BaseMessage],
    tools: Dict[str, "Function"],
    settings: ModelSettings,
    context: "RunContext",
  ) -> ModelResponse: ...


async def request_structured(
  model: Model,
  messages: Sequence[BaseMessage],
  schema: Type[T],
  context: "RunContext",
  settings: Optional[ModelSettings] = None,
) -> Optional[T]:
  """Make a single tool-less call and parse the terminal output into ``schema``.

  Used for side tasks such as session summaries and memory extraction.
  Returns ``None`` when the model produced no terminal output; transport and
  parse errors propagate.
  """
  settings = replace(settings or ModelSettings(), output_schema=schema)
  response = await model.send(list(messages), {}, settings, context)
  terminals = [m for m in response.messages if m.is_terminal()]
  if not terminals:
    return None
  return schema.model_validate_json(terminals[-1].content)  # type: ignore[attr-defined]
