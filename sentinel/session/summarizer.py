"""Session summaries and history compaction.

After a run is saved, :class:`SessionSummarizer` asks the model to fold the
messages stored since the last summary into a short running summary. The
summary is injected into later runs as a dynamic system prompt, and messages up
to ``last_summarized_message_id`` are no longer re-sent to the model.
"""

from typing import TYPE_CHECKING, List, Optional, Sequence

from pydantic import BaseModel, Field

from sentinel.agent.errors import ErrorType
from sentinel.agent.run import RunContext
from sentinel.model.base import request_structured
from sentinel.model.message import BaseMessage, SystemPrompt, UserPrompt, messages_to_json
from sentinel.session.types import SessionSummary
from sentinel.utils.functions import new_id
from sentinel.utils.log import log_debug, log_info, log_warning

if TYPE_CHECKING:
  from sentinel.agent.run import RunOutput
  from sentinel.model.base import Model
  from sentinel.session.store import SessionStore


_SUMMARY_INSTRUCTIONS = """\
You maintain the running summary of a conversation between a user and an agent.
- Generate a summary of at most {max_length} characters for session {session_id} based on all the messages.
- Give the session a short title.
- Include at most 5 single word keywords based on the topics being discussed."""

_SUMMARY_PROMPT = """\
Generate a {max_length} character summary of the conversation between user and agent from the following messages.
- Summary till now: {current_summary}
- Messages JSON: {messages}"""


class ExtractedSummary(BaseModel):
  """Structured output requested from the model when summarizing."""

  title: Optional[str] = None
  summary: str
  keywords: List[str] = Field(default_factory=list)


def estimate_tokens(messages: Sequence[BaseMessage]) -> int:
  """Rough token count: four characters of serialized JSON per token."""
  return len(messages_to_json(messages)) // 4


def messages_after(messages: Sequence[BaseMessage], message_id: Optional[str]) -> List[BaseMessage]:
  """Messages newer than ``message_id``; everything when the id is unknown."""
  if message_id is None:
    return list(messages)
  for i, m in enumerate(messages):
    if m.message_id == message_id:
      return list(messages[i + 1 :])
  return list(messages)


def format_summary(summary: SessionSummary) -> str:
  """Render a stored summary as the body of a dynamic system prompt."""
  lines = [f"Information about session {summary.session_id}"]
  if summary.title:
    lines.append(f"- Title: {summary.title}")
  lines.append(f"- A summary of the conversation in this session: {summary.summary}")
  if summary.keywords:
    lines.append(f"- Keywords: {', '.join(summary.keywords)}")
  lines.append("Use this session information to contextualize responses.")
  return "\n".join(lines)


class SessionSummarizer:
  """
  Keeps a session's summary up to date and compacts its history.

  The first run of a session is always summarized. Later runs are summarized
  when the run ended with ``LENGTH_EXCEEDED`` or when the unsummarized history
  is estimated to fill ``threshold_percentage`` of ``context_window_tokens``.
  A threshold of 0 summarizes after every run.

  Args:
      max_summary_length: Character budget given to the model.
      threshold_percentage: Share of the context window that triggers compaction.
      context_window_tokens: Context window of the summarizing model.

  Example:
      agent = Agent(
          model=model,
          capabilities=[AgentCapabilities.session_management()],
          session_store=InMemorySessionStore(),
          session_summarizer=SessionSummarizer(threshold_percentage=0),
      )
  """

  def __init__(self, max_summary_length: int = 1000, threshold_percentage: int = 60, context_window_tokens: int = 128_000):
    if not 0 <= threshold_percentage <= 100:
      raise ValueError("threshold_percentage must be between 0 and 100")
    self.max_summary_length = max_summary_length
    self.threshold_percentage = threshold_percentage
    self.context_window_tokens = context_window_tokens

  def needs_compaction(self, messages: Sequence[BaseMessage], output: "RunOutput") -> bool:
    if output.error.error_type == ErrorType.LENGTH_EXCEEDED:
      log_debug("Compaction needed as the run ended with LENGTH_EXCEEDED")
      return True
    if self.threshold_percentage == 0:
      return True
    boundary = self.context_window_tokens * self.threshold_percentage // 100
    estimated = estimate_tokens(messages)
    log_debug(f"Compaction check: estimated={estimated} boundary={boundary}", log_level=2)
    return estimated >= boundary

  def build_messages(self, context: RunContext, current: Optional[SessionSummary], messages: Sequence[BaseMessage]) -> List[BaseMessage]:
    ids = {"session_id": context.session_id, "run_id": context.run_id}
    current_summary = current.summary if current is not None and current.summary else "Does not exist as this is the first compaction"
    return [
      SystemPrompt(**ids, content=_SUMMARY_INSTRUCTIONS.format(max_length=self.max_summary_length, session_id=context.session_id)),
      UserPrompt(
        **ids,
        content=_SUMMARY_PROMPT.format(max_length=self.max_summary_length, current_summary=current_summary, messages=messages_to_json(messages)),
      ),
    ]

  async def summarize(
    self,
    model: "Model",
    store: "SessionStore",
    context: RunContext,
    output: "RunOutput",
  ) -> Optional[SessionSummary]:
    """Summarize the session after ``output`` was saved.

    Returns the saved summary, or ``None`` when nothing was summarized.
    """
    session_id = context.session_id
    existing = await store.summary(session_id)
    last_id = existing.last_summarized_message_id if existing is not None else None
    history = await store.load(session_id)
    pending = messages_after(history.flatten(), last_id) if history is not None else []
    if not pending:
      log_debug(f"Nothing to summarize for session {session_id}")
      return None
    if existing is not None and not self.needs_compaction(pending, output):
      log_debug(f"Summarization not needed for session {session_id}")
      return None

    summary_context = RunContext(
      run_id=f"summary-{new_id()}",
      session_id=session_id,
      user_id=context.user_id,
      agent_id=context.agent_id,
      agent_name=context.agent_name,
    )
    extracted = await request_structured(model, self.build_messages(summary_context, existing, pending), ExtractedSummary, summary_context)
    if extracted is None:
      log_debug(f"No summary extracted for session {session_id}")
      return None

    current = await store.summary(session_id)
    current_id = current.last_summarized_message_id if current is not None else None
    if last_id is not None and current_id != last_id:
      log_warning(f"Skipping summary for session {session_id}: it was updated concurrently")
      return None

    # The first summary of a session leaves its messages in place
    newest_id = pending[-1].message_id if existing is not None else None
    saved = await store.save_summary(
      SessionSummary(
        session_id=session_id,
        title=extracted.title,
        summary=extracted.summary,
        keywords=extracted.keywords[:5],
        last_summarized_message_id=newest_id,
      )
    )
    log_info(f"Updated summary for session {session_id}")
    return saved
