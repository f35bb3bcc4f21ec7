"""Toolkit base class for grouping local tools with shared dependencies."""

from typing import Any, Dict, List, Optional

from sentinel.tool.function import Function


class Toolkit:
  """
  Base class for tool collections with shared dependencies.

  Tools are discovered from ``Function``-typed attributes, or listed explicitly
  by overriding :attr:`tools`. Toolkits are registered as local tools: an
  agent's ``CustomToolsCapability`` selects from them by tool name.

  Example:
      class WeatherToolkit(Toolkit):
          def __init__(self, api_key: str):
              super().__init__(dependencies={"api_key": api_key})
              self.forecast = Function.from_callable(self._forecast, name="forecast")

          def _forecast(self, city: str) -> str:
              '''Forecast for a city.'''
              ...
  """

  def __init__(self, dependencies: Optional[Dict[str, Any]] = None):
    self._dependencies = dependencies or {}

  @property
  def tools(self) -> List[Function]:
    discovered: List[Function] = []
    for name in dir(self):
      if name.startswith("_") or name in ("tools", "dependencies", "name"):
        continue
      attr = getattr(self, name, None)
      if isinstance(attr, Function):
        discovered.append(attr)
    return discovered

  @property
  def dependencies(self) -> Dict[str, Any]:
    return self._dependencies

  @property
  def name(self) -> str:
    return self.__class__.__name__

  def __repr__(self) -> str:
    return f"{self.name}(tools={len(self.tools)})"
