"""JSON serialization helpers."""

import json
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel

from sentinel.exceptions import SerializationError


def json_serializer(obj: Any) -> Any:
  """Fallback used as ``default=`` for :func:`json.dumps`.

  Handles datetimes, enums and pydantic models; anything else is rendered with ``str()``.
  """
  if isinstance(obj, (datetime, date, time)):
    return obj.isoformat()
  if isinstance(obj, Enum):
    value = obj.value
    if value is None or isinstance(value, (str, int, float, bool)):
      return value
    return obj.name
  if isinstance(obj, BaseModel):
    return obj.model_dump(mode="json")
  return str(obj)


def to_json(value: Any, indent: Optional[int] = None) -> str:
  """Serialize ``value`` to a JSON string.

  Strings are returned unchanged. Raises :class:`SerializationError` when the value
  cannot be encoded.
  """
  if isinstance(value, str):
    return value
  if isinstance(value, BaseModel):
    try:
      return value.model_dump_json(indent=indent)
    except (TypeError, ValueError) as e:
      raise SerializationError(str(e), original_error=e) from e
  try:
    return json.dumps(value, default=json_serializer, indent=indent, ensure_ascii=False)
  except (TypeError, ValueError) as e:
    raise SerializationError(str(e), original_error=e) from e
