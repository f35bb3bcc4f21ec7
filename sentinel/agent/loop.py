"""Run orchestrator.

``AgentLoop.run()`` drives one run as an explicit state machine::

  RESOLVING_TOOLS -> AWAITING_MODEL -> {DISPATCHING_TOOLS -> AWAITING_MODEL}*
    -> VALIDATING -> {DONE | RETRYING -> AWAITING_MODEL}

Any state can move to TERMINATED. Model, tool and validation failures end up as
one classified ``SentinelError`` on the returned ``RunOutput``; configuration
defects raise ``ConfigurationError``.
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Set, Tuple, Type

from pydantic import BaseModel

from sentinel.agent.cancellation import AgentCancelled, CancellationToken
from sentinel.agent.capabilities import BaseCapability, Capabilities
from sentinel.agent.config import AgentConfig
from sentinel.agent.errors import ErrorType, SentinelError, classify_exception, classify_finish_reason
from sentinel.agent.event_bus import EventBus
from sentinel.agent.events import (
  BaseRunOutputEvent,
  MessageReceivedEvent,
  MessageSentEvent,
  RunCancelledEvent,
  RunCompletedEvent,
  RunErrorEvent,
  RunStartedEvent,
  ToolCallCompletedEvent,
  ToolCallStartedEvent,
  ValidationFailedEvent,
)
from sentinel.agent.resolver import ResolvedTools, ToolResolver
from sentinel.agent.run import RunContext, RunOutput, RunState, RunStatus
from sentinel.agent.termination import EarlyTerminationPolicy, NeverTerminateEarly, evaluate_policy
from sentinel.agent.validation import NoOpOutputValidator, OutputValidator, ValidationErrorFixPrompt, ValidationResult, run_validator
from sentinel.exceptions import ConfigurationError
from sentinel.model.base import Model, ModelResponse, Usage
from sentinel.model.message import BaseMessage, StructuredOutput, ToolCall, ToolCallResponse, UserPrompt
from sentinel.model.settings import ModelSettings
from sentinel.tool.function import ToolOutcome
from sentinel.utils.log import log_debug, log_warning

# ---------------------------------------------------------------------------
# Data containers
# ---------------------------------------------------------------------------


@dataclass
class ToolBatchResult:
  """Responses for one round of tool calls, in call order."""

  responses: List[ToolCallResponse] = field(default_factory=list)
  # Set when a call referenced a tool outside the resolved set
  fatal_error: Optional[SentinelError] = None


@dataclass
class _Terminal:
  message: BaseMessage
  content: str


# ---------------------------------------------------------------------------
# AgentLoop
# ---------------------------------------------------------------------------


class AgentLoop:
  """One run of an agent.

  Args:
    model: Transport used for every round.
    resolver: Resolves ``capabilities`` into the run's tool map.
    capabilities: The agent's capabilities.
    history: Curated messages from earlier runs of the session.
    prompt_messages: System prompts and the user prompt that start this run.
    context: Run identifiers and caller state.
    config: Loop bounds and dispatch settings.
    settings: Model settings passed on every call.
    validator: Gate for terminal output.
    termination_policy: Consulted once per round before tool dispatch.
    cancellation_token: Cooperative cancellation.
    event_bus: Receives run events.
  """

  def __init__(
    self,
    *,
    model: Model,
    resolver: ToolResolver,
    capabilities: Capabilities | Iterable[BaseCapability],
    prompt_messages: List[BaseMessage],
    context: RunContext,
    config: Optional[AgentConfig] = None,
    settings: Optional[ModelSettings] = None,
    history: Optional[List[BaseMessage]] = None,
    validator: Optional[OutputValidator] = None,
    termination_policy: Optional[EarlyTerminationPolicy] = None,
    cancellation_token: Optional[CancellationToken] = None,
    event_bus: Optional[EventBus] = None,
  ) -> None:
    self._model = model
    self._resolver = resolver
    self._capabilities = capabilities
    self._context = context
    self._config = config or AgentConfig()
    self._settings = settings or ModelSettings(output_schema=context.output_schema)
    self._validator = validator or NoOpOutputValidator()
    self._termination_policy = termination_policy or NeverTerminateEarly()
    self._cancellation_token = cancellation_token
    self._event_bus = event_bus

    self._messages: List[BaseMessage] = [*(history or []), *prompt_messages]
    self._new_messages: List[BaseMessage] = list(prompt_messages)
    self._tools = ResolvedTools()
    self._seen_tool_call_ids: Set[str] = set()
    self._usage: Optional[Usage] = None

  @property
  def output_schema(self) -> Optional[Type[BaseModel]]:
    return self._settings.output_schema or self._context.output_schema

  # ------------------------------------------------------------------
  # Public API
  # ------------------------------------------------------------------

  async def run(self) -> RunOutput:
    """Execute the run to completion. Raises only ``ConfigurationError``."""
    state = RunState.RESOLVING_TOOLS
    error = SentinelError.success()
    content: Any = None
    cancelled = False
    early_terminated = False
    tool_rounds = 0
    attempts = 0
    pending_calls: List[ToolCall] = []
    terminal: Optional[_Terminal] = None
    last_failures: List[str] = []

    while state not in (RunState.DONE, RunState.TERMINATED):
      log_debug(f"Run {self._context.run_id}: {state.value}", log_level=2)

      if state == RunState.RESOLVING_TOOLS:
        self._tools = self._resolver.resolve(self._capabilities)
        await self._emit(RunStartedEvent(**self._event_ids(), tools=sorted(self._tools.tools)))
        state = RunState.AWAITING_MODEL

      elif state == RunState.AWAITING_MODEL:
        if self._is_cancelled():
          cancelled, error, state = True, self._cancelled_error(), RunState.TERMINATED
          continue

        self._context.round += 1
        await self._emit(MessageSentEvent(**self._event_ids(), round=self._context.round, message_count=len(self._messages)))
        try:
          response = await self._model.send(list(self._messages), self._tools.tools, self._settings, self._context)
        except ConfigurationError:
          raise
        except AgentCancelled as e:
          cancelled, error, state = True, classify_exception(e), RunState.TERMINATED
          continue
        except Exception as e:
          error = classify_exception(e)
          log_warning(f"Model call failed: {error.message}")
          state = RunState.TERMINATED
          continue

        self._add_usage(response.usage)
        received = [self._stamp(m) for m in response.messages]
        await self._emit(
          MessageReceivedEvent(
            **self._event_ids(),
            round=self._context.round,
            message_types=[m.message_type for m in received],  # type: ignore[attr-defined]
            finish_reason=response.finish_reason,
          )
        )

        finish = classify_finish_reason(response.finish_reason, response.refusal)
        if not finish.is_success:
          error, state = finish, RunState.TERMINATED
          continue
        if not received:
          error, state = SentinelError.error(ErrorType.NO_RESPONSE), RunState.TERMINATED
          continue

        decision = await evaluate_policy(self._termination_policy, self._settings, self._context, response)
        if decision.should_terminate:
          # Tool calls of this round are dropped, never committed unpaired
          self._commit(m for m in received if not isinstance(m, ToolCall))
          error, early_terminated, state = decision.to_error(), True, RunState.TERMINATED
          continue

        tool_calls = [m for m in received if isinstance(m, ToolCall)]
        if tool_calls:
          self._check_tool_call_ids(tool_calls)
          tool_rounds += 1
          if tool_rounds > self._config.max_tool_rounds:
            log_warning(f"Run {self._context.run_id} hit max_tool_rounds={self._config.max_tool_rounds}")
            error = SentinelError.error(ErrorType.MODEL_RUN_TERMINATED, f"exceeded {self._config.max_tool_rounds} tool rounds")
            early_terminated, state = True, RunState.TERMINATED
            continue
          dropped = [m for m in received if m.is_terminal()]
          if dropped:
            log_debug(f"Ignoring {len(dropped)} terminal message(s) sent alongside tool calls")
          self._commit(m for m in received if not m.is_terminal())
          pending_calls = tool_calls
          state = RunState.DISPATCHING_TOOLS
        else:
          self._commit(received)
          terminals = [m for m in received if m.is_terminal()]
          if not terminals:
            error, state = SentinelError.error(ErrorType.UNKNOWN), RunState.TERMINATED
            continue
          final = terminals[-1]
          terminal = _Terminal(message=final, content=final.content)  # type: ignore[attr-defined]
          state = RunState.VALIDATING

      elif state == RunState.DISPATCHING_TOOLS:
        if self._is_cancelled():
          # Pair the calls already committed so the trace never ends with unanswered calls
          self._commit(self._tool_response(tc, ToolOutcome(self._cancelled_error().message, ErrorType.MODEL_RUN_TERMINATED)) for tc in pending_calls)
          cancelled, error, state = True, self._cancelled_error(), RunState.TERMINATED
          continue
        batch = await self._execute_tools(pending_calls)
        self._commit(batch.responses)
        pending_calls = []
        if batch.fatal_error is not None:
          error, state = batch.fatal_error, RunState.TERMINATED
        else:
          state = RunState.AWAITING_MODEL

      elif state == RunState.VALIDATING:
        assert terminal is not None
        attempts += 1
        output, parse_error = self._parse_output(terminal)
        if parse_error is not None:
          result = ValidationResult.failure(parse_error.message)
        else:
          result = await run_validator(self._validator, self._context, output)

        if result.is_successful:
          content, state = output, RunState.DONE
          continue

        last_failures = result.messages
        can_retry = result.is_retriable and attempts < self._config.max_validation_attempts
        await self._emit(ValidationFailedEvent(**self._event_ids(), attempt=attempts, failures=last_failures, retriable=can_retry))
        if can_retry:
          state = RunState.RETRYING
        elif parse_error is not None and result.is_retriable:
          error, state = SentinelError(parse_error.error_type, parse_error.message, permanent=True), RunState.TERMINATED
        else:
          error, state = SentinelError.permanent_error(ErrorType.DATA_VALIDATION_FAILURE, ", ".join(last_failures)), RunState.TERMINATED

      elif state == RunState.RETRYING:
        assert terminal is not None
        self._context.retries += 1
        fix = ValidationErrorFixPrompt(validation_errors=last_failures, previous_output=terminal.content)
        self._commit([UserPrompt(session_id=self._context.session_id, run_id=self._context.run_id, content=fix.render())])
        log_debug(f"Retrying run {self._context.run_id} after validation failure ({self._context.retries})")
        terminal = None
        state = RunState.AWAITING_MODEL

    return await self._finish(state, error, content, cancelled, early_terminated)

  # ------------------------------------------------------------------
  # Tool dispatch
  # ------------------------------------------------------------------

  async def _execute_tools(self, tool_calls: List[ToolCall]) -> ToolBatchResult:
    """Execute one round of tool calls; responses come back in call order."""
    outcomes: List[Optional[ToolOutcome]] = [None] * len(tool_calls)
    fatal_error: Optional[SentinelError] = None
    parallel: List[int] = []
    sequential: List[int] = []

    for i, tc in enumerate(tool_calls):
      fn = self._tools.get(tc.tool_name)
      if fn is None:
        unknown = SentinelError.error(ErrorType.TOOL_CALL_PERMANENT_FAILURE, tc.tool_name)
        log_warning(f"Model called unknown tool '{tc.tool_name}'")
        outcomes[i] = ToolOutcome(result=unknown.message, error_type=unknown.error_type)
        fatal_error = fatal_error or unknown
      elif fn.sequential or not self._config.parallel_tool_calls:
        sequential.append(i)
      else:
        parallel.append(i)

    if parallel:
      results = await asyncio.gather(*(self._execute_single_tool(tool_calls[i]) for i in parallel))
      for i, outcome in zip(parallel, results):
        outcomes[i] = outcome

    for i in sequential:
      outcomes[i] = await self._execute_single_tool(tool_calls[i])

    responses = [self._tool_response(tc, outcome) for tc, outcome in zip(tool_calls, outcomes)]  # type: ignore[arg-type]
    return ToolBatchResult(responses=responses, fatal_error=fatal_error)

  async def _execute_single_tool(self, tool_call: ToolCall) -> ToolOutcome:
    fn = self._tools.get(tool_call.tool_name)
    assert fn is not None
    await self._emit(
      ToolCallStartedEvent(**self._event_ids(), tool_call_id=tool_call.tool_call_id, tool_name=tool_call.tool_name, arguments=tool_call.arguments)
    )
    outcome = await fn.aexecute(tool_call.arguments, run_context=self._context)
    await self._emit(
      ToolCallCompletedEvent(
        **self._event_ids(),
        tool_call_id=tool_call.tool_call_id,
        tool_name=tool_call.tool_name,
        error_type=outcome.error_type,
        content=outcome.result,
      )
    )
    return outcome

  def _tool_response(self, tool_call: ToolCall, outcome: ToolOutcome) -> ToolCallResponse:
    return ToolCallResponse(
      session_id=self._context.session_id,
      run_id=self._context.run_id,
      tool_call_id=tool_call.tool_call_id,
      tool_name=tool_call.tool_name,
      response=outcome.result,
      error_type=outcome.error_type,
    )

  def _check_tool_call_ids(self, tool_calls: List[ToolCall]) -> None:
    for tc in tool_calls:
      if tc.tool_call_id in self._seen_tool_call_ids:
        raise ConfigurationError(f"Duplicate tool call id '{tc.tool_call_id}' in run {self._context.run_id}")
      self._seen_tool_call_ids.add(tc.tool_call_id)

  # ------------------------------------------------------------------
  # Output parsing
  # ------------------------------------------------------------------

  def _parse_output(self, terminal: _Terminal) -> Tuple[Any, Optional[SentinelError]]:
    schema = self.output_schema
    if schema is None and not isinstance(terminal.message, StructuredOutput):
      return terminal.content, None
    try:
      data = json.loads(terminal.content)
      if schema is None:
        return data, None
      return schema.model_validate(data), None
    except (ValueError, TypeError) as e:
      parse_error = classify_exception(e)
      log_debug(f"Could not parse terminal output: {parse_error.message}")
      return None, parse_error

  # ------------------------------------------------------------------
  # Helpers
  # ------------------------------------------------------------------

  def _commit(self, messages: Iterable[BaseMessage]) -> None:
    for m in messages:
      self._messages.append(m)
      self._new_messages.append(m)

  def _stamp(self, message: BaseMessage) -> BaseMessage:
    if message.session_id == self._context.session_id and message.run_id == self._context.run_id:
      return message
    return message.model_copy(update={"session_id": self._context.session_id, "run_id": self._context.run_id})

  def _add_usage(self, usage: Optional[Usage]) -> None:
    if usage is not None:
      self._usage = usage if self._usage is None else self._usage + usage

  def _is_cancelled(self) -> bool:
    return self._cancellation_token is not None and self._cancellation_token.is_cancelled

  def _cancelled_error(self) -> SentinelError:
    reason = self._cancellation_token.reason if self._cancellation_token else "cancelled"
    return SentinelError.error(ErrorType.MODEL_RUN_TERMINATED, reason)

  def _event_ids(self) -> dict:
    return {
      "run_id": self._context.run_id,
      "session_id": self._context.session_id,
      "agent_id": self._context.agent_id,
      "agent_name": self._context.agent_name,
    }

  async def _emit(self, event: BaseRunOutputEvent) -> None:
    if self._event_bus is not None:
      await self._event_bus.emit(event)

  async def _finish(self, state: RunState, error: SentinelError, content: Any, cancelled: bool, early_terminated: bool) -> RunOutput:
    if state == RunState.DONE:
      status = RunStatus.COMPLETED
    elif cancelled:
      status = RunStatus.CANCELLED
    elif early_terminated:
      status = RunStatus.TERMINATED
    else:
      status = RunStatus.ERROR

    output = RunOutput(
      run_id=self._context.run_id,
      session_id=self._context.session_id,
      status=status,
      content=content,
      error=error,
      messages=list(self._messages),
      new_messages=list(self._new_messages),
      resolved_tools=sorted(self._tools.tools),
      retries=self._context.retries,
      early_terminated=early_terminated,
      usage=self._usage,
      warnings=list(self._tools.warnings),
    )

    if status == RunStatus.COMPLETED:
      await self._emit(RunCompletedEvent(**self._event_ids(), content=content, retries=output.retries))
    elif status == RunStatus.CANCELLED:
      await self._emit(RunCancelledEvent(**self._event_ids(), reason=error.message))
    else:
      log_warning(f"Run {self._context.run_id} ended with {error.error_type.value}: {error.message}")
      await self._emit(RunErrorEvent(**self._event_ids(), error_type=error.error_type, content=error.message, early_terminated=early_terminated))
    return output

  # ------------------------------------------------------------------
  # Accessors
  # ------------------------------------------------------------------

  @property
  def messages(self) -> List[BaseMessage]:
    return self._messages

  @property
  def tools(self) -> ResolvedTools:
    return self._tools
