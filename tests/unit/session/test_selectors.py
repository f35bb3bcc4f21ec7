"""
Unit tests for history message selectors.

Covers:
  - FullRunMessageSelector keeps complete runs only and is idempotent
  - UnpairedToolCallsRemover drops orphaned calls and responses in any order
  - RemoveAllToolCallsSelector
  - chain_selectors applies selectors left to right
"""

import random

import pytest

from sentinel.model.message import StructuredOutput, Text, UserPrompt
from sentinel.session.selectors import (
  FullRunMessageSelector,
  MessageSelector,
  RemoveAllToolCallsSelector,
  UnpairedToolCallsRemover,
  chain_selectors,
)


def _prompt(run_id, content="q"):
  return UserPrompt(session_id="s1", run_id=run_id, content=content)


def _text(run_id, content="a"):
  return Text(session_id="s1", run_id=run_id, content=content)


@pytest.mark.unit
class TestFullRunMessageSelector:
  def test_keeps_complete_run(self, conversation):
    assert FullRunMessageSelector().select("s1", conversation) == conversation

  def test_drops_incomplete_runs(self, tool_exchange_factory):
    complete = [_prompt("r1"), _text("r1")]
    no_response = [_prompt("r2"), *tool_exchange_factory("c2", run_id="r2")]
    no_prompt = [_text("r3")]
    messages = [*complete, *no_response, *no_prompt]

    assert FullRunMessageSelector().select("s1", messages) == complete

  def test_structured_output_run_is_complete(self):
    messages = [_prompt("r1"), StructuredOutput(session_id="s1", run_id="r1", content="{}")]
    assert FullRunMessageSelector().select("s1", messages) == messages

  def test_interleaved_runs_keep_order(self):
    messages = [_prompt("r1"), _prompt("r2"), _text("r1"), _text("r2")]
    assert FullRunMessageSelector().select("s1", messages) == messages

  def test_idempotent(self, conversation, tool_exchange_factory):
    messages = [*conversation, _prompt("r2"), *tool_exchange_factory("c2", run_id="r2")]
    selector = FullRunMessageSelector()
    once = selector.select("s1", messages)
    assert selector.select("s1", once) == once

  def test_complete_runs_are_never_dropped(self):
    runs = [[_prompt(f"r{i}"), _text(f"r{i}")] for i in range(3)]
    messages = [m for run in runs for m in run]
    assert len(FullRunMessageSelector().select("s1", messages)) == 2 * len(runs)


@pytest.mark.unit
class TestUnpairedToolCallsRemover:
  def test_drops_orphans(self, tool_exchange_factory):
    prompt, text = _prompt("r1"), _text("r1")
    paired = tool_exchange_factory("c1")
    call_only = tool_exchange_factory("c2")[0]
    response_only = tool_exchange_factory("c3")[1]
    messages = [prompt, *paired, call_only, response_only, text]

    assert UnpairedToolCallsRemover().select("s1", messages) == [prompt, *paired, text]

  @pytest.mark.parametrize("pairs,orphans", [(0, 3), (2, 0), (3, 2)])
  def test_leaves_only_paired_messages(self, tool_exchange_factory, pairs, orphans):
    messages = []
    for i in range(pairs):
      messages.extend(tool_exchange_factory(f"p{i}"))
    for i in range(orphans):
      messages.append(tool_exchange_factory(f"o{i}")[i % 2])

    kept = UnpairedToolCallsRemover().select("s1", messages)
    assert len(kept) == 2 * pairs

  @pytest.mark.parametrize("seed", [0, 1, 7, 42])
  def test_paired_count_independent_of_order(self, tool_exchange_factory, seed):
    messages = []
    for i in range(3):
      call, response = tool_exchange_factory(f"p{i}")
      messages.extend([response, call])
    messages.append(tool_exchange_factory("o1")[0])
    messages.append(tool_exchange_factory("o2")[1])
    random.Random(seed).shuffle(messages)

    kept = UnpairedToolCallsRemover().select("s1", messages)
    assert len(kept) == 6
    assert {m.tool_call_id for m in kept} == {"p0", "p1", "p2"}
    assert kept == [m for m in messages if m in kept]

  def test_no_tool_messages(self):
    messages = [_prompt("r1"), _text("r1")]
    assert UnpairedToolCallsRemover().select("s1", messages) == messages

  def test_idempotent(self, tool_exchange_factory):
    messages = [*tool_exchange_factory("c1"), tool_exchange_factory("c2")[0]]
    once = UnpairedToolCallsRemover().select("s1", messages)
    assert UnpairedToolCallsRemover().select("s1", once) == once


@pytest.mark.unit
class TestRemoveAllToolCallsSelector:
  def test_removes_tool_messages(self, conversation):
    kept = RemoveAllToolCallsSelector().select("s1", conversation)
    assert [m.message_type for m in kept] == ["SYSTEM_PROMPT_REQUEST_MESSAGE", "USER_PROMPT_REQUEST_MESSAGE", "TEXT_RESPONSE_MESSAGE"]


@pytest.mark.unit
class TestChainSelectors:
  def test_chain(self, conversation, tool_exchange_factory):
    messages = [*conversation, _prompt("r2"), tool_exchange_factory("c9", run_id="r2")[0]]
    chained = chain_selectors(UnpairedToolCallsRemover(), FullRunMessageSelector(), RemoveAllToolCallsSelector())

    assert isinstance(chained, MessageSelector)
    kept = chained.select("s1", messages)
    assert [type(m).__name__ for m in kept] == ["SystemPrompt", "UserPrompt", "Text"]

  def test_empty_chain_is_identity(self, conversation):
    assert chain_selectors().select("s1", conversation) == conversation
