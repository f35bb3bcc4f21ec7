"""Session stores: where curated run messages live between runs."""

import json
from copy import deepcopy
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Protocol, runtime_checkable

from sentinel.model.message import BaseMessage
from sentinel.session.types import History, PersistentRunMessages, PersistentSessionSummary, SessionSummary
from sentinel.utils.log import log_debug
from sentinel.utils.serialize import json_serializer

if TYPE_CHECKING:
  from sentinel.session.selectors import MessageSelector


@runtime_checkable
class SessionStore(Protocol):
  """Protocol for session storage backends."""

  async def load(self, session_id: str) -> Optional[History]: ...

  async def save(self, history: History) -> Optional[History]: ...

  async def append_run(self, session_id: str, messages: List[BaseMessage]) -> None: ...

  async def summary(self, session_id: str) -> Optional[SessionSummary]: ...

  async def save_summary(self, summary: SessionSummary) -> Optional[SessionSummary]: ...


class InMemorySessionStore:
  """Session store backed by plain dicts.

  Useful for testing and short-lived processes. All data is lost when the
  process exits.
  """

  def __init__(self) -> None:
    self._histories: Dict[str, History] = {}
    self._summaries: Dict[str, PersistentSessionSummary] = {}

  async def load(self, session_id: str) -> Optional[History]:
    history = self._histories.get(session_id)
    return deepcopy(history) if history is not None else None

  async def save(self, history: History) -> Optional[History]:
    self._histories[history.session_id] = deepcopy(history)
    log_debug(f"Saved session {history.session_id} with {len(history.messages)} runs", log_level=2)
    return deepcopy(history)

  async def append_run(self, session_id: str, messages: List[BaseMessage]) -> None:
    history = self._histories.get(session_id) or History(session_id=session_id)
    self._histories[session_id] = history.append_run(deepcopy(list(messages)))
    log_debug(f"Appended run with {len(messages)} messages to session {session_id}", log_level=2)

  async def summary(self, session_id: str) -> Optional[SessionSummary]:
    record = self._summaries.get(PersistentSessionSummary.key_for(session_id))
    return deepcopy(record.summary) if record is not None else None

  async def save_summary(self, summary: SessionSummary) -> Optional[SessionSummary]:
    record = PersistentSessionSummary.of(summary)
    self._summaries[record.id] = deepcopy(record)
    return deepcopy(summary)

  async def delete(self, session_id: str) -> None:
    self._histories.pop(session_id, None)
    self._summaries.pop(PersistentSessionSummary.key_for(session_id), None)

  async def session_ids(self) -> List[str]:
    return sorted(self._histories)


class FileSessionStore:
  """JSONL file-based session store.

  Human-readable storage for debugging and inspection.

  Directory structure:
    <base_dir>/
      <session_id>/
        history.jsonl     one PersistentRunMessages record per line
        metadata.json
        summary.json      PersistentSessionSummary
  """

  def __init__(self, base_dir: str = ".sessions") -> None:
    self.base_dir = Path(base_dir)

  def _session_dir(self, session_id: str) -> Path:
    return self.base_dir / session_id

  async def load(self, session_id: str) -> Optional[History]:
    session_dir = self._session_dir(session_id)
    history_path = session_dir / "history.jsonl"
    if not history_path.exists():
      return None
    groups = []
    with open(history_path, "r", encoding="utf-8") as f:
      for line in f:
        line = line.strip()
        if line:
          groups.append(PersistentRunMessages.model_validate_json(line).messages)
    metadata_path = session_dir / "metadata.json"
    metadata = json.loads(metadata_path.read_text(encoding="utf-8")) if metadata_path.exists() else {}
    return History(session_id=session_id, messages=groups, metadata=metadata)

  async def save(self, history: History) -> Optional[History]:
    session_dir = self._session_dir(history.session_id)
    session_dir.mkdir(parents=True, exist_ok=True)
    with open(session_dir / "history.jsonl", "w", encoding="utf-8") as f:
      for group in history.messages:
        run_id = group[0].run_id if group else ""
        record = PersistentRunMessages(id=run_id, session_id=history.session_id, run_id=run_id or None, messages=group)
        f.write(record.model_dump_json() + "\n")
    (session_dir / "metadata.json").write_text(json.dumps(history.metadata, default=json_serializer, ensure_ascii=False), encoding="utf-8")
    log_debug(f"Saved session {history.session_id} to {session_dir}", log_level=2)
    return history

  async def append_run(self, session_id: str, messages: List[BaseMessage]) -> None:
    session_dir = self._session_dir(session_id)
    session_dir.mkdir(parents=True, exist_ok=True)
    run_id = messages[0].run_id if messages else ""
    record = PersistentRunMessages(id=run_id, session_id=session_id, run_id=run_id or None, messages=list(messages))
    with open(session_dir / "history.jsonl", "a", encoding="utf-8") as f:
      f.write(record.model_dump_json() + "\n")
    log_debug(f"Appended run {run_id} to {session_dir}", log_level=2)

  async def summary(self, session_id: str) -> Optional[SessionSummary]:
    path = self._session_dir(session_id) / "summary.json"
    if not path.exists():
      return None
    return PersistentSessionSummary.model_validate_json(path.read_text(encoding="utf-8")).summary

  async def save_summary(self, summary: SessionSummary) -> Optional[SessionSummary]:
    session_dir = self._session_dir(summary.session_id)
    session_dir.mkdir(parents=True, exist_ok=True)
    (session_dir / "summary.json").write_text(PersistentSessionSummary.of(summary).model_dump_json(), encoding="utf-8")
    return summary


class SelectingSessionStore:
  """Wraps another store and runs message selectors over every loaded history.

  Each stored run group is passed through the selectors on its own; groups
  that end up empty are dropped. Writes go to the root store unchanged.
  """

  def __init__(self, root: SessionStore, selectors: Optional[List["MessageSelector"]] = None):
    self.root = root
    self.selectors: List["MessageSelector"] = list(selectors or [])

  def register_selectors(self, *selectors: "MessageSelector") -> "SelectingSessionStore":
    self.selectors.extend(selectors)
    return self

  async def load(self, session_id: str) -> Optional[History]:
    history = await self.root.load(session_id)
    if history is None or not self.selectors:
      return history
    groups = []
    for group in history.messages:
      selected = list(group)
      for selector in self.selectors:
        selected = selector.select(session_id, selected)
      if selected:
        groups.append(selected)
    return history.model_copy(update={"messages": groups})

  async def save(self, history: History) -> Optional[History]:
    return await self.root.save(history)

  async def append_run(self, session_id: str, messages: List[BaseMessage]) -> None:
    await self.root.append_run(session_id, messages)

  async def summary(self, session_id: str) -> Optional[SessionSummary]:
    return await self.root.summary(session_id)

  async def save_summary(self, summary: SessionSummary) -> Optional[SessionSummary]:
    return await self.root.save_summary(summary)
