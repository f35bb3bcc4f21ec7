"""
Unit tests for the Agent class.

All tests use MockModel; no API calls.

Covers:
  - Prompt assembly: instructions, recalled memories, user prompt
  - Default capabilities and local tool registration (tools, toolkits)
  - Duplicate local tool names
  - Session history: load, curate, persist with default filters
  - max_history_runs and extra history selectors
  - Session summaries injected as dynamic system prompts; compacted history
  - Memory extraction after a run when the memory capability is enabled
  - Runs persist through selecting stores without losing hidden runs
  - Tool inheritance from a parent agent
  - Upstream catalogs resolved through capabilities
  - Run metadata, dependencies and per-run output schema
  - String model ids resolve to OpenAIChat
"""

import json
from typing import List

import pytest
from pydantic import BaseModel

from sentinel.agent.agent import Agent
from sentinel.agent.capabilities import AgentCapabilities, AgentMemoryCapability, CustomToolsCapability, SessionManagementCapability
from sentinel.agent.config import AgentConfig
from sentinel.agent.errors import ErrorType
from sentinel.agent.events import RunCompletedEvent
from sentinel.agent.run import RunStatus
from sentinel.agent.testing import MockModel
from sentinel.exceptions import ConfigurationError
from sentinel.memory.extraction import MemoryExtractor
from sentinel.memory.store import InMemoryAgentMemoryStore
from sentinel.memory.types import AgentMemory, MemoryScope, MemoryType
from sentinel.model.base import ModelResponse
from sentinel.model.message import SystemPrompt, Text, ToolCall, ToolCallResponse, UserPrompt
from sentinel.session.selectors import FullRunMessageSelector, RemoveAllToolCallsSelector
from sentinel.session.store import InMemorySessionStore, SelectingSessionStore
from sentinel.session.summarizer import SessionSummarizer
from sentinel.tool.catalog import http_catalog
from sentinel.tool.decorator import tool
from sentinel.tool.function import Function
from sentinel.tool.toolkit import Toolkit


@tool(name="getName")
def get_name() -> str:
  """Return the user's name."""
  return "Santanu"


@tool(name="getAge")
def get_age() -> int:
  """Return the user's age."""
  return 42


@tool(name="explode")
def explode() -> str:
  """Always fails."""
  raise RuntimeError("boom")


class ProfileToolkit(Toolkit):
  def __init__(self):
    super().__init__(dependencies={"tenant": "acme"})
    self.city = Function.from_callable(self._city, name="getCity")

  def _city(self) -> str:
    """City of the user."""
    return "Pune"


class Greeting(BaseModel):
  text: str


def _session_agent(model, store, **kwargs):
  return Agent(
    model=model,
    tools=[get_name, explode],
    capabilities=[AgentCapabilities.custom_tools(), AgentCapabilities.session_management()],
    session_store=store,
    session_id="s1",
    **kwargs,
  )


@pytest.mark.unit
class TestAgentInit:
  def test_defaults(self):
    agent = Agent(model=MockModel())
    assert agent.agent_name == "Agent"
    assert len(agent.capabilities) == 0
    assert agent.tool_names == []
    assert agent.session_id
    assert not agent.session_enabled
    assert not agent.memory_enabled

  def test_tools_enable_custom_tools_by_default(self):
    agent = Agent(model=MockModel(), tools=[get_name, get_age])
    assert agent.capabilities.has(CustomToolsCapability)
    assert sorted(agent.resolve_tools().tools) == ["getAge", "getName"]

  def test_name_overrides_config(self):
    agent = Agent(model=MockModel(), name="helper", config=AgentConfig(agent_name="other"))
    assert agent.agent_name == "helper"

  def test_toolkit_tools_and_dependencies(self):
    agent = Agent(model=MockModel(), toolkits=[ProfileToolkit()], dependencies={"region": "in"})
    assert agent.tool_names == ["getCity"]
    assert agent._dependencies == {"tenant": "acme", "region": "in"}

  def test_duplicate_local_tool_names(self):
    with pytest.raises(ConfigurationError, match="getName"):
      Agent(model=MockModel(), tools=[get_name, get_name])

  def test_string_model_uses_openai(self):
    from sentinel.model.openai import OpenAIChat

    agent = Agent(model="gpt-4o-mini")
    assert isinstance(agent.model, OpenAIChat)
    assert agent.model.id == "gpt-4o-mini"

  def test_session_enabled_needs_capability_and_store(self):
    store = InMemorySessionStore()
    assert not Agent(model=MockModel(), session_store=store).session_enabled
    assert Agent(model=MockModel(), session_store=store, capabilities=[SessionManagementCapability()]).session_enabled

  def test_repr(self):
    agent = Agent(model=MockModel(), name="helper", tools=[get_name])
    assert repr(agent) == "Agent(name='helper', model='mock-model', capabilities=['CUSTOM_TOOLS'])"


@pytest.mark.unit
class TestAgentRun:
  def test_sync_run(self):
    agent = Agent(model=MockModel(responses=["Hello!"]))
    output = agent.run("Hi")
    assert output.content == "Hello!"
    assert output.status == RunStatus.COMPLETED

  @pytest.mark.asyncio
  async def test_no_system_prompt_without_instructions(self):
    model = MockModel(responses=["hi"])
    output = await Agent(model=model, tools=[get_name]).arun("hello")
    assert [type(m) for m in output.messages] == [UserPrompt, Text]

  @pytest.mark.asyncio
  async def test_instructions_become_system_prompt(self):
    model = MockModel(responses=["hi"])
    await Agent(model=model, instructions="Greet the user by name.").arun("hello")
    sent = model.call_history[0]["messages"]
    assert isinstance(sent[0], SystemPrompt)
    assert sent[0].content == "Greet the user by name."
    assert not sent[0].dynamic
    assert isinstance(sent[1], UserPrompt)

  @pytest.mark.asyncio
  async def test_tool_exchange(self):
    model = MockModel(responses=[MockModel.tool_call("getName", id="c1"), "Hello Santanu"])
    agent = Agent(model=model, tools=[get_name], capabilities=[AgentCapabilities.custom_tools("getName")])
    output = await agent.arun("What's my name?", run_id="r1", session_id="s9")

    assert output.content == "Hello Santanu"
    assert output.run_id == "r1"
    assert output.session_id == "s9"
    assert [type(m) for m in output.messages] == [UserPrompt, ToolCall, ToolCallResponse, Text]

  @pytest.mark.asyncio
  async def test_capability_limits_tools(self):
    model = MockModel(responses=[MockModel.tool_call("getAge", id="c1")])
    agent = Agent(model=model, tools=[get_name, get_age], capabilities=[AgentCapabilities.custom_tools("getName")])
    output = await agent.arun("How old am I?")

    assert model.call_history[0]["tools"] == ["getName"]
    assert output.error_type == ErrorType.TOOL_CALL_PERMANENT_FAILURE

  @pytest.mark.asyncio
  async def test_metadata_and_dependencies_reach_context(self):
    seen = {}

    def capture(messages, tools, settings, context):
      seen["metadata"] = context.metadata
      seen["dependencies"] = context.dependencies
      seen["user_id"] = context.user_id
      return ModelResponse(messages=[MockModel.text("ok")], finish_reason="stop")

    agent = Agent(
      model=MockModel(side_effect=capture),
      config=AgentConfig(metadata={"team": "search", "env": "dev"}),
      dependencies={"db": "primary"},
    )
    await agent.arun("hi", metadata={"env": "prod"}, user_id="u1")

    assert seen["metadata"] == {"team": "search", "env": "prod"}
    assert seen["dependencies"] == {"db": "primary"}
    assert seen["user_id"] == "u1"

  @pytest.mark.asyncio
  async def test_per_run_output_schema(self):
    model = MockModel(responses=['{"text": "hello"}'])
    output = await Agent(model=model).arun("greet", output_schema=Greeting)

    assert output.content == Greeting(text="hello")
    assert model.call_history[0]["settings"].output_schema is Greeting

  @pytest.mark.asyncio
  async def test_validators_combined(self):
    def not_empty(context, output):
      from sentinel.agent.validation import ValidationResult

      return ValidationResult.success() if output else ValidationResult.failure("empty")

    def polite(context, output):
      from sentinel.agent.validation import ValidationResult

      return ValidationResult.success() if "please" in output else ValidationResult.failure("not polite")

    model = MockModel(responses=["do it", "please do it"])
    output = await Agent(model=model, validators=[not_empty, polite]).arun("ask")
    assert output.content == "please do it"
    assert output.retries == 1

  @pytest.mark.asyncio
  async def test_events_property(self):
    agent = Agent(model=MockModel(responses=["done"]))
    completed: List[RunCompletedEvent] = []
    agent.events.on(RunCompletedEvent, completed.append)
    await agent.arun("hi")
    assert completed[0].content == "done"
    assert completed[0].agent_name == "Agent"


@pytest.mark.unit
class TestAgentSessions:
  @pytest.mark.asyncio
  async def test_history_carried_to_next_run(self):
    store = InMemorySessionStore()
    model = MockModel(responses=[MockModel.tool_call("getName", id="c1"), "Hello Santanu", "Still Santanu"])
    agent = _session_agent(model, store, instructions="Be nice.")

    await agent.arun("What's my name?", run_id="r1")
    output = await agent.arun("And again?", run_id="r2")

    sent = model.call_history[2]["messages"]
    assert [type(m) for m in sent] == [UserPrompt, ToolCall, ToolCallResponse, Text, SystemPrompt, UserPrompt]
    assert [m.run_id for m in sent[:4]] == ["r1"] * 4
    assert output.content == "Still Santanu"

    history = await store.load("s1")
    assert len(history.messages) == 2
    # System prompts are rebuilt each run and never stored
    assert not any(isinstance(m, SystemPrompt) for m in history.flatten())

  @pytest.mark.asyncio
  async def test_failed_tool_calls_not_persisted(self):
    store = InMemorySessionStore()
    model = MockModel(responses=[MockModel.tool_call("explode", id="c1"), "Sorry"])
    await _session_agent(model, store).arun("try it")

    stored = (await store.load("s1")).flatten()
    assert [type(m) for m in stored] == [UserPrompt, Text]

  @pytest.mark.asyncio
  async def test_persist_switches(self):
    store = InMemorySessionStore()
    model = MockModel(responses=[MockModel.tool_call("explode", id="c1"), "Sorry"])
    config = AgentConfig(persist_system_prompts=True, persist_failed_tool_calls=True)
    await _session_agent(model, store, instructions="Be nice.", config=config).arun("try it")

    stored = (await store.load("s1")).flatten()
    assert [type(m) for m in stored] == [SystemPrompt, UserPrompt, ToolCall, ToolCallResponse, Text]

  @pytest.mark.asyncio
  async def test_failed_run_still_persisted(self):
    store = InMemorySessionStore()
    model = MockModel(responses=[RuntimeError("down")])
    output = await _session_agent(model, store).arun("hello")

    assert output.status == RunStatus.ERROR
    stored = (await store.load("s1")).flatten()
    assert [type(m) for m in stored] == [UserPrompt]

  @pytest.mark.asyncio
  async def test_no_persistence_without_capability(self):
    store = InMemorySessionStore()
    agent = Agent(model=MockModel(responses=["hi"]), session_store=store, session_id="s1")
    await agent.arun("hello")
    assert await store.load("s1") is None

  @pytest.mark.asyncio
  async def test_max_history_runs(self):
    store = InMemorySessionStore()
    model = MockModel(responses=["one", "two", "three"])
    agent = _session_agent(model, store, config=AgentConfig(max_history_runs=1))

    await agent.arun("first", run_id="r1")
    await agent.arun("second", run_id="r2")
    await agent.arun("third", run_id="r3")

    sent = model.call_history[2]["messages"]
    assert [m.run_id for m in sent] == ["r2", "r2", "r3"]

  @pytest.mark.asyncio
  async def test_history_selectors(self):
    store = InMemorySessionStore()
    model = MockModel(responses=[MockModel.tool_call("getName", id="c1"), "Hello Santanu", "ok"])
    agent = _session_agent(model, store, history_selectors=[RemoveAllToolCallsSelector()])

    await agent.arun("name?", run_id="r1")
    await agent.arun("again", run_id="r2")

    sent = model.call_history[2]["messages"]
    assert [type(m) for m in sent] == [UserPrompt, Text, UserPrompt]

  @pytest.mark.asyncio
  async def test_selecting_store_keeps_every_run_in_root(self):
    root = InMemorySessionStore()
    store = SelectingSessionStore(root, [FullRunMessageSelector()])
    model = MockModel(responses=[RuntimeError("down"), "hi"])
    agent = _session_agent(model, store)

    await agent.arun("first", run_id="r1")
    assert len((await root.load("s1")).messages) == 1
    await agent.arun("second", run_id="r2")

    after = await root.load("s1")
    assert len(after.messages) == 2
    assert [group[0].run_id for group in after.messages] == ["r1", "r2"]
    # The incomplete first run is hidden from the model, not deleted
    assert [m.run_id for m in model.call_history[1]["messages"]] == ["r2"]

  @pytest.mark.asyncio
  async def test_raising_policy_still_returns_and_persists(self):
    def broken(settings, context, response):
      raise RuntimeError("policy bug")

    store = InMemorySessionStore()
    output = await _session_agent(MockModel(responses=["hi"]), store, termination_policy=broken).arun("hello")

    assert output.status == RunStatus.TERMINATED
    assert "policy bug" in output.error.message
    assert [type(m) for m in (await store.load("s1")).flatten()] == [UserPrompt, Text]

  @pytest.mark.asyncio
  async def test_run_session_overrides_agent_session(self):
    store = InMemorySessionStore()
    agent = _session_agent(MockModel(responses=["hi"]), store)
    await agent.arun("hello", session_id="other")
    assert await store.session_ids() == ["other"]


@pytest.mark.unit
class TestAgentSessionSummary:
  FIRST = json.dumps({"title": "Greeting", "summary": "User said hi", "keywords": ["greeting"]})
  SECOND = json.dumps({"title": "Greeting", "summary": "User said hi twice", "keywords": ["greeting"]})

  @pytest.mark.asyncio
  async def test_summary_injected_and_history_compacted(self):
    store = InMemorySessionStore()
    model = MockModel(responses=["hi", self.FIRST, "again", self.SECOND, "third"])
    agent = _session_agent(model, store, session_summarizer=SessionSummarizer(threshold_percentage=0))

    await agent.arun("hello", run_id="r1")
    assert (await store.summary("s1")).summary == "User said hi"

    await agent.arun("hello again", run_id="r2")
    sent = model.call_history[2]["messages"]
    assert [type(m) for m in sent] == [UserPrompt, Text, SystemPrompt, UserPrompt]
    assert sent[2].dynamic
    assert sent[2].method_reference == "session_summary"
    assert "User said hi" in sent[2].content

    await agent.arun("third time", run_id="r3")
    sent = model.call_history[4]["messages"]
    # Everything up to the second summary is folded into it
    assert [type(m) for m in sent] == [SystemPrompt, UserPrompt]
    assert "User said hi twice" in sent[0].content
    assert len((await store.load("s1")).messages) == 3

  @pytest.mark.asyncio
  async def test_summary_failure_does_not_fail_run(self):
    store = InMemorySessionStore()
    model = MockModel(responses=["hi", "not json"])
    output = await _session_agent(model, store, session_summarizer=SessionSummarizer()).arun("hello")

    assert output.is_successful
    assert await store.summary("s1") is None
    assert len((await store.load("s1")).messages) == 1

  @pytest.mark.asyncio
  async def test_no_summarizer_no_extra_call(self):
    model = MockModel(responses=["hi"])
    await _session_agent(model, InMemorySessionStore()).arun("hello")
    assert model.call_count == 1


@pytest.mark.unit
class TestAgentMemory:
  @pytest.fixture
  def memory_store(self):
    return InMemoryAgentMemoryStore(
      [
        AgentMemory(
          agent_name="helper",
          scope=MemoryScope.AGENT,
          scope_id="helper",
          memory_type=MemoryType.PROCEDURAL,
          name="greeting",
          content="Always greet by name",
          reusability_score=8,
        ),
        AgentMemory(
          agent_name="helper",
          scope=MemoryScope.ENTITY,
          scope_id="u1",
          memory_type=MemoryType.SEMANTIC,
          name="language",
          content="Prefers Hindi",
          topics=["language"],
          reusability_score=5,
        ),
      ]
    )

  @pytest.mark.asyncio
  async def test_memories_injected_as_dynamic_system_prompt(self, memory_store):
    model = MockModel(responses=["Namaste"])
    agent = Agent(model=model, name="helper", capabilities=[AgentMemoryCapability()], memory_store=memory_store)
    await agent.arun("hello", user_id="u1")

    sent = model.call_history[0]["messages"]
    assert [type(m) for m in sent] == [SystemPrompt, UserPrompt]
    assert sent[0].dynamic
    assert sent[0].method_reference == "recall_memories"
    assert "Prefers Hindi" in sent[0].content
    assert "Always greet by name" in sent[0].content
    assert sent[0].content.index("Prefers Hindi") < sent[0].content.index("Always greet by name")

  @pytest.mark.asyncio
  async def test_entity_memories_need_user(self, memory_store):
    model = MockModel(responses=["hi"])
    agent = Agent(model=model, name="helper", capabilities=[AgentMemoryCapability()], memory_store=memory_store)
    await agent.arun("hello")
    assert "Prefers Hindi" not in model.call_history[0]["messages"][0].content

  @pytest.mark.asyncio
  async def test_memory_needs_capability(self, memory_store):
    model = MockModel(responses=["hi"])
    await Agent(model=model, name="helper", memory_store=memory_store).arun("hello", user_id="u1")
    assert [type(m) for m in model.call_history[0]["messages"]] == [UserPrompt]

  @pytest.mark.asyncio
  async def test_memories_extracted_after_run(self):
    extracted = {
      "memories": [
        {"scope": "ENTITY", "memory_type": "SEMANTIC", "name": "Language", "content": "Speaks Hindi", "reusability_score": 7},
      ]
    }
    store = InMemoryAgentMemoryStore()
    model = MockModel(responses=["Noted", json.dumps(extracted)])
    agent = Agent(model=model, name="helper", capabilities=[AgentMemoryCapability()], memory_store=store, memory_extractor=MemoryExtractor())

    output = await agent.arun("I speak Hindi", user_id="u1")

    assert output.content == "Noted"
    found = await store.find_memories(scope=MemoryScope.ENTITY, scope_id="u1")
    assert [(m.name, m.agent_name) for m in found] == [("Language", "helper")]

  @pytest.mark.asyncio
  async def test_extraction_needs_capability(self):
    model = MockModel(responses=["Noted"])
    agent = Agent(model=model, name="helper", memory_store=InMemoryAgentMemoryStore(), memory_extractor=MemoryExtractor())
    await agent.arun("I speak Hindi", user_id="u1")
    assert model.call_count == 1


@pytest.mark.unit
class TestToolSources:
  @pytest.mark.asyncio
  async def test_inherit_from_parent_agent(self):
    parent = Agent(model=MockModel(), tools=[get_name, get_age])
    model = MockModel(responses=[MockModel.tool_call("getName", id="c1"), "Hi Santanu"])
    child = Agent(model=model, parent=parent, capabilities=[AgentCapabilities.inherit_tools_from_parent("getName")])

    assert list(child.resolve_tools().tools) == ["getName"]
    output = await child.arun("name?")
    assert output.is_successful
    assert output.messages[2].response == "Santanu"

  def test_inherit_missing_tool(self):
    parent = Agent(model=MockModel(), tools=[get_name])
    child = Agent(model=MockModel(), parent=parent, capabilities=[AgentCapabilities.inherit_tools_from_parent("getAge")])
    with pytest.raises(ConfigurationError):
      child.resolve_tools()

  def test_inherit_without_parent(self):
    agent = Agent(model=MockModel(), capabilities=[AgentCapabilities.inherit_tools_from_parent("getName")])
    with pytest.raises(ConfigurationError):
      agent.resolve_tools()

  @pytest.mark.asyncio
  async def test_http_catalog(self):
    def search(query: str) -> str:
      """Search the catalog."""
      return f"results for {query}"

    catalog = http_catalog("shop.api", [Function.from_callable(search)])
    model = MockModel(responses=[MockModel.tool_call("shop_api_search", {"query": "shoes"}, id="c1"), "Found shoes"])
    agent = Agent(model=model, catalogs=[catalog], capabilities=[AgentCapabilities.remote_http_calls({"shop.api": ["search"]})])
    output = await agent.arun("find shoes")

    assert output.resolved_tools == ["shop_api_search"]
    assert output.messages[2].response == "results for shoes"
