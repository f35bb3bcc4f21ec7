"""Per-call model settings."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel


@dataclass
class ModelSettings:
  """Sampling and output settings passed to :meth:`Model.send` on every round.

  Attributes:
    temperature: Sampling temperature, ``None`` for the provider default.
    max_tokens: Upper bound on generated tokens.
    top_p: Nucleus sampling parameter.
    stop: Stop sequences.
    output_schema: Pydantic model the terminal output must conform to. When set,
      transports should request structured output and respond with
      ``StructuredOutput`` messages.
    extra: Provider-specific parameters forwarded verbatim.
  """

  temperature: Optional[float] = None
  max_tokens: Optional[int] = None
  top_p: Optional[float] = None
  stop: Optional[List[str]] = None
  output_schema: Optional[Type[BaseModel]] = None
  extra: Dict[str, Any] = field(default_factory=dict)

  def to_request_params(self) -> Dict[str, Any]:
    """Non-``None`` sampling parameters merged with ``extra``."""
    params = {k: v for k, v in asdict(self).items() if v is not None and k not in ("output_schema", "extra")}
    params.update(self.extra)
    return params
