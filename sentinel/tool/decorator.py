"""``@tool`` decorator turning plain callables into :class:`Function` instances."""

from typing import Any, Callable, Optional, Union, overload

from sentinel.tool.function import Function

_VALID_KWARGS = frozenset({"name", "description", "strict", "sequential"})


@overload
def tool(func: Callable) -> Function: ...


@overload
def tool(func: None = None, **kwargs: Any) -> Callable[[Callable], Function]: ...


def tool(func: Optional[Callable] = None, **kwargs: Any) -> Union[Function, Callable[[Callable], Function]]:
  """Wrap a sync or async function as a tool.

  Usable bare (``@tool``), called (``@tool()``) or with options
  (``@tool(name="getName", sequential=True)``).

  Raises:
    ValueError: if an unknown keyword argument is passed.
  """
  invalid = set(kwargs) - _VALID_KWARGS
  if invalid:
    raise ValueError(f"Invalid tool configuration arguments: {sorted(invalid)}")

  def decorator(f: Callable) -> Function:
    name = kwargs.get("name") or f.__name__
    options = {k: v for k, v in kwargs.items() if k != "name"}
    return Function.from_callable(f, name=name, **options)

  if func is not None and callable(func):
    return decorator(func)
  return decorator
