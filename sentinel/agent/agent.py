"""Agent class - capability-scoped wrapper around one run of the orchestrator."""

import asyncio
import dataclasses
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Sequence, Type, Union

from pydantic import BaseModel

from sentinel.agent.cancellation import CancellationToken
from sentinel.agent.capabilities import (
  AgentMemoryCapability,
  BaseCapability,
  Capabilities,
  CustomToolsCapability,
  SessionManagementCapability,
)
from sentinel.agent.config import AgentConfig
from sentinel.agent.event_bus import EventBus
from sentinel.agent.loop import AgentLoop
from sentinel.agent.resolver import ResolvedTools, ToolResolver
from sentinel.agent.run import RunContext, RunOutput
from sentinel.agent.termination import EarlyTerminationPolicy, as_policy
from sentinel.agent.validation import CompositeOutputValidator, NoOpOutputValidator, OutputValidator, ValidatorLike
from sentinel.exceptions import ConfigurationError
from sentinel.memory.extraction import MemoryExtractor
from sentinel.memory.store import AgentMemoryStore, format_memories, recall_memories
from sentinel.model.message import BaseMessage, SystemPrompt, UserPrompt
from sentinel.model.settings import ModelSettings
from sentinel.session.filters import (
  FailedToolCallRemovalFilter,
  MessagePersistencePreFilter,
  SystemPromptRemovalFilter,
  apply_filters,
)
from sentinel.session.selectors import MessageSelector, UnpairedToolCallsRemover
from sentinel.session.store import SessionStore
from sentinel.session.summarizer import SessionSummarizer, format_summary, messages_after
from sentinel.session.types import SessionSummary
from sentinel.tool.catalog import ToolCatalog
from sentinel.tool.function import Function
from sentinel.tool.toolkit import Toolkit
from sentinel.utils.functions import new_id
from sentinel.utils.log import log_debug, log_info, log_warning

if TYPE_CHECKING:
  from sentinel.model.base import Model


class Agent:
  """
  Runs a model against the tools its capabilities allow.

  The agent owns the tool registry (local tools and toolkits), the upstream
  catalogs and its optional parent. Each run resolves the capabilities into an
  immutable tool map, loads curated session history when session management is
  enabled, injects recalled memories when agent memory is enabled and hands
  everything to :class:`AgentLoop`. After the run it saves the new messages,
  then optionally refreshes the session summary and extracts memories.

  Example:
      from sentinel import Agent, AgentCapabilities, tool

      @tool
      def getName() -> str:
          '''Name of the current user.'''
          return "Santanu"

      agent = Agent(
          model=OpenAIChat(id="gpt-4o-mini"),
          tools=[getName],
          capabilities=[AgentCapabilities.custom_tools("getName")],
          instructions="Greet the user by name.",
      )
      output = agent.run("Hi!")
      print(output.content)
  """

  def __init__(
    self,
    *,
    # ── Model ───────────────────────────────────────────────
    model: Union[str, "Model"],
    settings: Optional[ModelSettings] = None,
    # ── Identity ────────────────────────────────────────────
    name: Optional[str] = None,
    session_id: Optional[str] = None,
    instructions: Optional[str] = None,
    config: Optional[AgentConfig] = None,
    # ── Tools ───────────────────────────────────────────────
    capabilities: Optional[Union[Capabilities, Iterable[BaseCapability]]] = None,
    tools: Optional[List[Function]] = None,
    toolkits: Optional[List[Toolkit]] = None,
    catalogs: Optional[Iterable[ToolCatalog]] = None,
    parent: Optional[Union["Agent", ResolvedTools, Mapping[str, Function]]] = None,
    # ── Output ──────────────────────────────────────────────
    output_schema: Optional[Type[BaseModel]] = None,
    validators: Optional[Sequence[ValidatorLike]] = None,
    termination_policy: Optional[EarlyTerminationPolicy] = None,
    # ── State ───────────────────────────────────────────────
    session_store: Optional[SessionStore] = None,
    history_selectors: Optional[Sequence[MessageSelector]] = None,
    persistence_filters: Optional[Sequence[MessagePersistencePreFilter]] = None,
    session_summarizer: Optional[SessionSummarizer] = None,
    memory_store: Optional[AgentMemoryStore] = None,
    memory_extractor: Optional[MemoryExtractor] = None,
    dependencies: Optional[Dict[str, Any]] = None,
  ):
    """
    Initialize the agent.

    Args:
        model: Model instance, or an OpenAI model id.
        settings: Settings passed on every model call.
        name: Human-readable name. Overrides config.agent_name.
        session_id: Default session for runs that do not pass one.
        instructions: Static system prompt. No system prompt is sent when omitted.
        config: Loop bounds, retries and persistence switches.
        capabilities: Capability set. Defaults to all local tools when tools
            or toolkits are given, otherwise no tools.
        tools: Local tools, addressable by ``CustomToolsCapability``.
        toolkits: Toolkits whose tools are registered as local tools.
        catalogs: Upstream tool catalogs (HTTP and MCP).
        parent: Parent agent (or its resolved tools) for tool inheritance.
        output_schema: Pydantic model the terminal output must parse into.
        validators: Output validators, combined in order.
        termination_policy: Early termination check run once per round.
        session_store: Store for session history.
        history_selectors: Extra selectors applied to loaded history.
        persistence_filters: Filters applied before saving a run. Defaults
            follow ``config.persist_system_prompts`` and
            ``config.persist_failed_tool_calls``.
        session_summarizer: Summarizes and compacts the session after each run.
        memory_store: Store for agent memories.
        memory_extractor: Extracts memories from each run into the memory store.
        dependencies: Values exposed to tools through ``run_context``.
    """
    self.model: "Model"
    if isinstance(model, str):
      from sentinel.model.openai import OpenAIChat

      self.model = OpenAIChat(id=model)
    else:
      self.model = model
    self.settings = settings
    self.instructions = instructions
    self.tools = tools or []
    self.toolkits = toolkits or []
    self.catalogs: List[ToolCatalog] = list(catalogs or [])
    self.parent = parent
    self.output_schema = output_schema
    self.session_store = session_store
    self.memory_store = memory_store
    self.session_summarizer = session_summarizer
    self.memory_extractor = memory_extractor

    self.config = config or AgentConfig()
    if name is not None:
      self.config = dataclasses.replace(self.config, agent_name=name)

    self.capabilities = self._init_capabilities(capabilities)
    self.validator: OutputValidator = CompositeOutputValidator(*validators) if validators else NoOpOutputValidator()
    self.termination_policy = as_policy(termination_policy)
    self.history_selectors: List[MessageSelector] = list(history_selectors or [])
    self.persistence_filters: List[MessagePersistencePreFilter] = (
      list(persistence_filters) if persistence_filters is not None else self._default_persistence_filters()
    )

    self._dependencies: Dict[str, Any] = {}
    for toolkit in self.toolkits:
      self._dependencies.update(toolkit.dependencies)
    self._dependencies.update(dependencies or {})

    self._tools_dict: Dict[str, Function] = self._flatten_tools()
    self._event_bus = EventBus()
    self.session_id = session_id or new_id()

  # --- Properties ---

  @property
  def agent_id(self) -> str:
    """Get the agent's unique identifier."""
    return self.config.agent_id or str(id(self))

  @property
  def agent_name(self) -> str:
    """Get the agent's name."""
    return self.config.agent_name or self.__class__.__name__

  @property
  def tool_names(self) -> List[str]:
    """Names of the locally registered tools."""
    return list(self._tools_dict.keys())

  @property
  def events(self) -> EventBus:
    """
    Event bus for callbacks on run events.

    Example::

        @agent.events.on(ToolCallStartedEvent)
        def on_tool(event):
            print(f"Calling {event.tool_name}")
    """
    return self._event_bus

  @property
  def session_enabled(self) -> bool:
    return self.session_store is not None and self.capabilities.has(SessionManagementCapability)

  @property
  def memory_enabled(self) -> bool:
    return self.memory_store is not None and self.capabilities.has(AgentMemoryCapability)

  # --- Setup ---

  def _init_capabilities(self, capabilities: Optional[Union[Capabilities, Iterable[BaseCapability]]]) -> Capabilities:
    if isinstance(capabilities, Capabilities):
      return capabilities
    if capabilities is not None:
      return Capabilities.of(*capabilities)
    if self.tools or self.toolkits:
      return Capabilities.of(CustomToolsCapability())
    return Capabilities.of()

  def _default_persistence_filters(self) -> List[MessagePersistencePreFilter]:
    filters: List[MessagePersistencePreFilter] = []
    if not self.config.persist_system_prompts:
      filters.append(SystemPromptRemovalFilter())
    if not self.config.persist_failed_tool_calls:
      filters.append(FailedToolCallRemovalFilter())
    return filters

  def _flatten_tools(self) -> Dict[str, Function]:
    result: Dict[str, Function] = {}
    for fn in [*self.tools, *(t for toolkit in self.toolkits for t in toolkit.tools)]:
      if fn.name in result:
        raise ConfigurationError(f"Duplicate local tool name '{fn.name}' on agent {self.agent_name}")
      result[fn.name] = fn
    return result

  def _parent_tools(self) -> Optional[Union[ResolvedTools, Mapping[str, Function]]]:
    if isinstance(self.parent, Agent):
      return self.parent.resolve_tools()
    return self.parent

  def tool_resolver(self) -> ToolResolver:
    return ToolResolver(registry=self._tools_dict, catalogs=self.catalogs, parent_tools=self._parent_tools())

  def resolve_tools(self) -> ResolvedTools:
    """Resolve this agent's capabilities, e.g. to hand them to a child agent.

    Raises:
      ConfigurationError: if a capability cannot be satisfied.
    """
    return self.tool_resolver().resolve(self.capabilities)

  # --- Run ---

  def run(
    self,
    prompt: str,
    *,
    session_id: Optional[str] = None,
    run_id: Optional[str] = None,
    user_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    output_schema: Optional[Type[BaseModel]] = None,
    cancellation_token: Optional[CancellationToken] = None,
  ) -> RunOutput:
    """Synchronous wrapper around :meth:`arun`. Must not be called from a running event loop."""
    return asyncio.run(
      self.arun(
        prompt,
        session_id=session_id,
        run_id=run_id,
        user_id=user_id,
        metadata=metadata,
        output_schema=output_schema,
        cancellation_token=cancellation_token,
      )
    )

  async def arun(
    self,
    prompt: str,
    *,
    session_id: Optional[str] = None,
    run_id: Optional[str] = None,
    user_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    output_schema: Optional[Type[BaseModel]] = None,
    cancellation_token: Optional[CancellationToken] = None,
  ) -> RunOutput:
    """
    Execute one run.

    Args:
        prompt: The user message.
        session_id: Session identifier. Defaults to the agent's session.
        run_id: Run identifier (generated if not provided).
        user_id: User identifier, used to scope recalled memories.
        metadata: Caller metadata, merged over ``config.metadata``.
        output_schema: Overrides the agent's output schema for this run.
        cancellation_token: Cooperative cancellation for this run.

    Returns:
        RunOutput with the payload or one classified error, plus the full trace.

    Raises:
        ConfigurationError: for capability or tool-call-id defects.
    """
    schema = output_schema or self.output_schema
    context = RunContext(
      run_id=run_id or new_id(),
      session_id=session_id or self.session_id,
      user_id=user_id,
      agent_id=self.agent_id,
      agent_name=self.agent_name,
      metadata={**(self.config.metadata or {}), **(metadata or {})},
      dependencies=dict(self._dependencies),
      output_schema=schema,
    )
    settings = self.settings or ModelSettings()
    if schema is not None and settings.output_schema is not schema:
      settings = dataclasses.replace(settings, output_schema=schema)

    log_debug(f"Agent {self.agent_name} starting run {context.run_id} in session {context.session_id}")

    summary = await self._load_summary(context.session_id)
    prompt_messages = await self._prompt_messages(context, prompt, summary)
    history = await self._load_history(context.session_id, summary)

    loop = AgentLoop(
      model=self.model,
      resolver=self.tool_resolver(),
      capabilities=self.capabilities,
      prompt_messages=prompt_messages,
      context=context,
      config=self.config,
      settings=settings,
      history=history,
      validator=self.validator,
      termination_policy=self.termination_policy,
      cancellation_token=cancellation_token,
      event_bus=self._event_bus,
    )
    output = await loop.run()

    await self._save_history(context, output)
    await self._summarize_session(context, output)
    await self._extract_memories(context, output)
    return output

  # --- Prompt assembly ---

  async def _prompt_messages(self, context: RunContext, prompt: str, summary: Optional[SessionSummary] = None) -> List[BaseMessage]:
    messages: List[BaseMessage] = []
    if self.instructions:
      messages.append(SystemPrompt(session_id=context.session_id, run_id=context.run_id, content=self.instructions))
    if summary is not None and summary.summary:
      messages.append(
        SystemPrompt(
          session_id=context.session_id,
          run_id=context.run_id,
          content=format_summary(summary),
          dynamic=True,
          method_reference="session_summary",
        )
      )
    if self.memory_enabled:
      assert self.memory_store is not None
      memories = await recall_memories(self.memory_store, self.agent_name, user_id=context.user_id, query=prompt)
      if memories:
        log_debug(f"Injecting {len(memories)} memories into run {context.run_id}")
        messages.append(
          SystemPrompt(
            session_id=context.session_id,
            run_id=context.run_id,
            content=format_memories(memories),
            dynamic=True,
            method_reference="recall_memories",
          )
        )
    messages.append(UserPrompt(session_id=context.session_id, run_id=context.run_id, content=prompt))
    return messages

  # --- Session management ---

  async def _load_summary(self, session_id: str) -> Optional[SessionSummary]:
    if not self.session_enabled:
      return None
    assert self.session_store is not None
    return await self.session_store.summary(session_id)

  async def _load_history(self, session_id: str, summary: Optional[SessionSummary] = None) -> List[BaseMessage]:
    if not self.session_enabled:
      return []
    assert self.session_store is not None
    history = await self.session_store.load(session_id)
    if history is None:
      return []

    groups = history.messages
    if self.config.max_history_runs is not None:
      groups = groups[-self.config.max_history_runs :] if self.config.max_history_runs > 0 else []
    messages: List[BaseMessage] = [m for group in groups for m in group]
    if summary is not None:
      messages = messages_after(messages, summary.last_summarized_message_id)

    messages = UnpairedToolCallsRemover().select(session_id, messages)
    for selector in self.history_selectors:
      messages = selector.select(session_id, messages)
    log_debug(f"Loaded {len(messages)} history messages for session {session_id}", log_level=2)
    return messages

  async def _save_history(self, context: RunContext, output: RunOutput) -> None:
    if not self.session_enabled:
      return
    assert self.session_store is not None
    messages = apply_filters(context, output.new_messages, self.persistence_filters)
    if not messages:
      log_warning(f"No messages left to save for run {context.run_id} after filtering")
      return
    await self.session_store.append_run(context.session_id, messages)
    log_info(f"Saved {len(messages)} messages to session {context.session_id}")

  async def _summarize_session(self, context: RunContext, output: RunOutput) -> None:
    if not self.session_enabled or self.session_summarizer is None:
      return
    assert self.session_store is not None
    try:
      await self.session_summarizer.summarize(self.model, self.session_store, context, output)
    except Exception as e:
      log_warning(f"Session summarization failed for session {context.session_id}: {e}")

  # --- Memory ---

  async def _extract_memories(self, context: RunContext, output: RunOutput) -> None:
    if not self.memory_enabled or self.memory_extractor is None:
      return
    assert self.memory_store is not None
    try:
      await self.memory_extractor.extract(self.model, self.memory_store, context, output)
    except Exception as e:
      log_warning(f"Memory extraction failed for run {context.run_id}: {e}")

  def __repr__(self) -> str:
    return f"Agent(name={self.agent_name!r}, model={getattr(self.model, 'id', None)!r}, capabilities={[c.type for c in self.capabilities]})"
