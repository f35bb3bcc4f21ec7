"""Invocable tools.

A :class:`Function` wraps a Python callable together with the JSON schema of its
arguments. The orchestrator only ever calls :meth:`Function.aexecute`, which
never raises: every failure is returned as a :class:`ToolOutcome` whose
``error_type`` classifies it.
"""

import asyncio
import inspect
import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model

from sentinel.agent.errors import ErrorType, classify_tool_failure
from sentinel.exceptions import SerializationError, ToolContractViolation
from sentinel.utils.log import log_debug, log_warning
from sentinel.utils.serialize import to_json

# Parameters with these names receive the current RunContext and are hidden from the model
CONTEXT_PARAMETERS = ("run_context",)


@dataclass
class ToolOutcome:
  """Result of one tool invocation: serialized result text plus its classification."""

  result: str
  error_type: ErrorType = ErrorType.SUCCESS

  @property
  def is_success(self) -> bool:
    return self.error_type == ErrorType.SUCCESS


class Function(BaseModel):
  """A tool the model may call."""

  model_config = ConfigDict(arbitrary_types_allowed=True)

  name: str
  description: Optional[str] = None
  parameters: Dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}, "required": []})
  strict: bool = False

  entrypoint: Optional[Callable] = None
  skip_entrypoint_processing: bool = False
  # Sequential tools are never gathered concurrently with others in the same round
  sequential: bool = False

  # Set by process_entrypoint(); validates decoded arguments
  arguments_model: Optional[Type[BaseModel]] = Field(default=None, exclude=True)

  def to_dict(self) -> Dict[str, Any]:
    """Provider-agnostic tool definition (name, description, parameters)."""
    return self.model_dump(include={"name", "description", "parameters", "strict"}, exclude_none=True)

  @classmethod
  def from_callable(cls, c: Callable, name: Optional[str] = None, strict: bool = False, **kwargs: Any) -> "Function":
    fn = cls(name=name or c.__name__, entrypoint=c, strict=strict, **kwargs)
    fn.process_entrypoint()
    return fn

  def process_entrypoint(self) -> None:
    """Derive ``description``, ``parameters`` and the arguments model from the entrypoint."""
    if self.entrypoint is None or self.skip_entrypoint_processing:
      return

    signature = inspect.signature(self.entrypoint)
    fields: Dict[str, Any] = {}
    for param_name, param in signature.parameters.items():
      if param_name in ("self", "cls") or param_name in CONTEXT_PARAMETERS:
        continue
      if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
        continue
      annotation = Any if param.annotation is inspect.Parameter.empty else param.annotation
      default = ... if param.default is inspect.Parameter.empty or self.strict else param.default
      fields[param_name] = (annotation, default)

    self.arguments_model = create_model(f"{self.name}_arguments", **fields)  # type: ignore[call-overload]
    schema = self.arguments_model.model_json_schema()
    parameters: Dict[str, Any] = {
      "type": "object",
      "properties": schema.get("properties", {}),
      "required": schema.get("required", []),
    }
    if "$defs" in schema:
      parameters["$defs"] = schema["$defs"]
    if self.strict:
      parameters["additionalProperties"] = False
    self.parameters = parameters

    if self.description is None:
      doc = inspect.getdoc(self.entrypoint)
      if doc:
        self.description = doc.strip().split("\n\n")[0].strip()

  def _decode_arguments(self, arguments_json: Optional[str]) -> Dict[str, Any]:
    if not arguments_json or not arguments_json.strip():
      arguments: Any = {}
    else:
      try:
        arguments = json.loads(arguments_json)
      except json.JSONDecodeError as e:
        raise ToolContractViolation(f"Arguments are not valid JSON: {e}", tool_name=self.name) from e
    if not isinstance(arguments, dict):
      raise ToolContractViolation("Arguments must be a JSON object", tool_name=self.name)
    if self.arguments_model is not None:
      try:
        validated = self.arguments_model.model_validate(arguments)
      except ValidationError as e:
        raise ToolContractViolation(f"Invalid arguments: {e}", tool_name=self.name) from e
      arguments = {k: getattr(validated, k) for k in self.arguments_model.model_fields}
    return arguments

  async def _invoke(self, arguments: Dict[str, Any], run_context: Optional[Any]) -> Any:
    if self.entrypoint is None:
      raise ToolContractViolation("Entrypoint is not set", tool_name=self.name)
    if run_context is not None and any(p in CONTEXT_PARAMETERS for p in inspect.signature(self.entrypoint).parameters):
      arguments = {**arguments, "run_context": run_context}
    if inspect.iscoroutinefunction(self.entrypoint):
      return await self.entrypoint(**arguments)
    result = await asyncio.to_thread(self.entrypoint, **arguments)
    if inspect.isawaitable(result):
      result = await result
    return result

  async def aexecute(self, arguments_json: Optional[str], run_context: Optional[Any] = None) -> ToolOutcome:
    """Decode arguments, call the entrypoint and serialize the result. Never raises."""
    try:
      arguments = self._decode_arguments(arguments_json)
      result = await self._invoke(arguments, run_context)
      outcome = ToolOutcome(result=to_json(result if result is not None else ""))
      log_debug(f"Tool {self.name} succeeded", log_level=2)
      return outcome
    except asyncio.CancelledError:
      raise
    except SerializationError as e:
      log_warning(f"Tool {self.name} returned a result that cannot be serialized: {e}")
      return ToolOutcome(result=str(e), error_type=ErrorType.TOOL_CALL_TEMPORARY_FAILURE)
    except Exception as e:
      error = classify_tool_failure(self.name, e)
      log_warning(f"Tool {self.name} failed: {error.message}")
      return ToolOutcome(result=error.message, error_type=error.error_type)

  def __repr__(self) -> str:
    return f"Function(name={self.name!r})"
