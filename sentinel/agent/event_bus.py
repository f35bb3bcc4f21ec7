"""Delivery of run events to caller callbacks."""

import inspect
from typing import Any, Callable, List, Optional, Tuple, Type

from sentinel.agent.events import BaseRunOutputEvent
from sentinel.utils.log import log_warning

Handler = Callable[[Any], Any]


class EventBus:
  """Run event callbacks, called in registration order.

  A handler registered for a base event class receives every subclass, so
  ``bus.on(BaseRunOutputEvent, ...)`` sees the whole run. Handlers may be
  coroutine functions. A failing handler is logged and never affects the run.

  Example::

      @agent.events.on(ToolCallStartedEvent)
      def log_tool(event):
          print(f"Tool started: {event.tool_name}")
  """

  def __init__(self) -> None:
    self._subscriptions: List[Tuple[Type[BaseRunOutputEvent], Handler]] = []

  def on(self, event_type: Type[BaseRunOutputEvent], handler: Optional[Handler] = None) -> Any:
    """Subscribe ``handler``, or return a decorator that does."""
    if not (isinstance(event_type, type) and issubclass(event_type, BaseRunOutputEvent)):
      raise TypeError(f"Not a run event type: {event_type!r}")

    def register(fn: Handler) -> Handler:
      self._subscriptions.append((event_type, fn))
      return fn

    return register(handler) if handler is not None else register

  def off(self, event_type: Type[BaseRunOutputEvent], handler: Handler) -> None:
    self._subscriptions = [(t, h) for t, h in self._subscriptions if not (t is event_type and h == handler)]

  def handlers_for(self, event: BaseRunOutputEvent) -> List[Handler]:
    return [h for t, h in self._subscriptions if isinstance(event, t)]

  async def emit(self, event: BaseRunOutputEvent) -> None:
    for handler in self.handlers_for(event):
      try:
        result = handler(event)
        if inspect.isawaitable(result):
          await result
      except Exception as exc:
        log_warning(f"{event.event or type(event).__name__} handler {getattr(handler, '__name__', handler)!r} failed: {exc}")
