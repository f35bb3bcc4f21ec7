"""
Sentinel Session — stored history, curation selectors and persistence pre-filters.

Usage:
    from sentinel.session import InMemorySessionStore, FullRunMessageSelector, UnpairedToolCallsRemover
"""

from sentinel.session.filters import FailedToolCallRemovalFilter, MessagePersistencePreFilter, SystemPromptRemovalFilter, apply_filters
from sentinel.session.selectors import (
  FullRunMessageSelector,
  MessageSelector,
  RemoveAllToolCallsSelector,
  UnpairedToolCallsRemover,
  chain_selectors,
)
from sentinel.session.store import FileSessionStore, InMemorySessionStore, SelectingSessionStore, SessionStore
from sentinel.session.summarizer import ExtractedSummary, SessionSummarizer, format_summary, messages_after
from sentinel.session.types import History, PersistentObject, PersistentRunMessages, PersistentSessionSummary, SessionSummary

__all__ = [
  "History",
  "SessionSummary",
  "PersistentObject",
  "PersistentRunMessages",
  "PersistentSessionSummary",
  "SessionStore",
  "InMemorySessionStore",
  "FileSessionStore",
  "SelectingSessionStore",
  "SessionSummarizer",
  "ExtractedSummary",
  "format_summary",
  "messages_after",
  "MessageSelector",
  "FullRunMessageSelector",
  "UnpairedToolCallsRemover",
  "RemoveAllToolCallsSelector",
  "chain_selectors",
  "MessagePersistencePreFilter",
  "SystemPromptRemovalFilter",
  "FailedToolCallRemovalFilter",
  "apply_filters",
]
