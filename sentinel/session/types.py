"""Persisted session records."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_serializer, field_validator

from sentinel.model.message import BaseMessage, message_from_dict
from sentinel.utils.functions import epoch_micros


class History(BaseModel):
  """Stored conversation of one session: one message group per run, oldest first."""

  session_id: str
  messages: List[List[BaseMessage]] = Field(default_factory=list)
  metadata: Dict[str, Any] = Field(default_factory=dict)

  @field_validator("messages", mode="before")
  @classmethod
  def _parse_messages(cls, value: Any) -> Any:
    if not isinstance(value, list):
      return value
    return [[m if isinstance(m, BaseMessage) else message_from_dict(m) for m in group] for group in value]

  @field_serializer("messages")
  def _dump_messages(self, value: List[List[BaseMessage]]) -> List[List[Dict[str, Any]]]:
    return [[m.model_dump(mode="json") for m in group] for group in value]

  def flatten(self) -> List[BaseMessage]:
    return [m for group in self.messages for m in group]

  def append_run(self, messages: List[BaseMessage]) -> "History":
    """Return a copy with ``messages`` added as the newest run group."""
    return self.model_copy(update={"messages": [*self.messages, list(messages)]})


class SessionSummary(BaseModel):
  session_id: str
  title: Optional[str] = None
  summary: Optional[str] = None
  keywords: List[str] = Field(default_factory=list)
  # Newest message folded into the summary; older messages are no longer re-sent
  last_summarized_message_id: Optional[str] = None
  updated_at: int = Field(default_factory=epoch_micros)


class PersistentObject(BaseModel):
  """Envelope for anything written to a session store."""

  type: str
  id: str
  session_id: str
  run_id: Optional[str] = None
  timestamp: int = Field(default_factory=epoch_micros)


class PersistentSessionSummary(PersistentObject):
  type: Literal["SESSION_SUMMARY"] = "SESSION_SUMMARY"
  summary: SessionSummary

  @staticmethod
  def key_for(session_id: str) -> str:
    return f"session:{session_id}"

  @classmethod
  def of(cls, summary: SessionSummary) -> "PersistentSessionSummary":
    return cls(id=cls.key_for(summary.session_id), session_id=summary.session_id, summary=summary)


class PersistentRunMessages(PersistentObject):
  """One stored run group."""

  type: Literal["RUN_MESSAGES"] = "RUN_MESSAGES"
  messages: List[BaseMessage] = Field(default_factory=list)

  @field_validator("messages", mode="before")
  @classmethod
  def _parse_messages(cls, value: Any) -> Any:
    if not isinstance(value, list):
      return value
    return [m if isinstance(m, BaseMessage) else message_from_dict(m) for m in value]

  @field_serializer("messages")
  def _dump_messages(self, value: List[BaseMessage]) -> List[Dict[str, Any]]:
    return [m.model_dump(mode="json") for m in value]
