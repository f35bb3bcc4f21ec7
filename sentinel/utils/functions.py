"""Small id, clock and naming helpers shared across the package."""

import re
import time
from uuid import uuid4

_TOOL_ID_INVALID = re.compile(r"[^A-Za-z0-9_-]")


def new_id() -> str:
  return str(uuid4())


def epoch_micros() -> int:
  """Current wall-clock time in epoch microseconds."""
  return time.time_ns() // 1_000


def sanitize_tool_id(value: str) -> str:
  """Replace every character outside ``[A-Za-z0-9_-]`` with an underscore."""
  return _TOOL_ID_INVALID.sub("_", value)


def upstream_tool_id(upstream: str, name: str) -> str:
  return sanitize_tool_id(f"{upstream}_{name}")
