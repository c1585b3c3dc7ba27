"""Domain models used throughout the framework."""

import inspect
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Union

from keystone.errors import ConfigurationError

__all__ = ["Mode", "Factory", "make_factory", "inferred_name"]


class Mode(Enum):
    """How dependents receive a factory's value."""

    EAGER = "eager"
    """Dependents receive the resolved value."""

    LAZY = "lazy"
    """Dependents receive a zero-argument thunk that resolves the value on demand."""


@dataclass(frozen=True)
class Factory:
    """A callable paired with the metadata needed to invoke it.

    Attributes:
        func: The callable producing the component.
        depends_on: Tokens (or, in the two-phase variant, factory names) supplying
            the callable's positional arguments, in argument order.
        mode: Whether dependents receive the value itself or a thunk for it.
        name: Identity of the factory, used by the two-phase variant and in error
            messages. Derived from ``func`` when not given.

    Example:
        >>> def baz(foo, bar):
        ...     return foo + bar
        >>> Factory(baz, ("foo", "bar"))
        >>> # Creates Factory with:
        >>> # - depends_on: ("foo", "bar")
        >>> # - mode: Mode.EAGER
        >>> # - name: "baz"
    """

    func: Callable[..., Any]
    depends_on: tuple[str, ...] = ()
    mode: Mode = Mode.EAGER
    name: Optional[str] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not callable(self.func):
            raise ConfigurationError(f"{self.func!r} is not callable")
        object.__setattr__(self, "depends_on", _normalise_dependencies(self.depends_on))
        try:
            object.__setattr__(self, "mode", Mode(self.mode))
        except ValueError as error:
            raise ConfigurationError(f"{self.mode!r} is not a valid factory mode") from error
        if self.name is None:
            object.__setattr__(self, "name", inferred_name(self.func))

    @property
    def is_lazy(self) -> bool:
        return self.mode is Mode.LAZY

    def __call__(self, *args: Any) -> Any:
        return self.func(*args)

    def __str__(self) -> str:
        dependencies = ", ".join(self.depends_on)
        return f"{self.name}({dependencies}) ({self.mode.value})"


def make_factory(
    target: Union[Factory, Callable[..., Any]],
    depends_on: Optional[Iterable[str]] = None,
    mode: Union[Mode, str, None] = None,
    name: Optional[str] = None,
) -> Factory:
    """Coerce a callable or an existing Factory into a Factory.

    Fields passed explicitly override those already carried by ``target``.

    Args:
        target: A Factory, or a bare callable taking no dependencies.
        depends_on: Optional dependency list.
        mode: Optional mode, as a Mode or its string value.
        name: Optional factory name.

    Returns:
        A Factory describing ``target``.

    Raises:
        ConfigurationError: If ``target`` is not callable, or the metadata is invalid.
    """
    overrides: dict[str, Any] = {}
    if depends_on is not None:
        overrides["depends_on"] = depends_on
    if mode is not None:
        overrides["mode"] = mode
    if name is not None:
        overrides["name"] = name

    if isinstance(target, Factory):
        return replace(target, **overrides) if overrides else target
    if not callable(target):
        raise ConfigurationError(f"{target!r} is not a factory or callable")
    return Factory(target, **overrides)


def inferred_name(target: Any) -> str:
    """Derive a factory name from a class or function.

    Args:
        target: The callable to derive a name from.

    Returns:
        The class or function name, or the ``repr`` of other callables.

    Example:
        >>> inferred_name(Database)       # Returns "Database"
        >>> inferred_name(make_database)  # Returns "make_database"
    """
    if inspect.isclass(target) or inspect.isfunction(target) or inspect.ismethod(target):
        return target.__name__
    return getattr(target, "__name__", repr(target))


def _normalise_dependencies(depends_on: Iterable[str]) -> tuple[str, ...]:
    if isinstance(depends_on, str):
        raise ConfigurationError(
            f"depends_on must be a sequence of tokens, not the string {depends_on!r}"
        )
    dependencies = tuple(depends_on)
    for dependency in dependencies:
        if not isinstance(dependency, str) or not dependency:
            raise ConfigurationError(f"Dependency {dependency!r} is not a valid token")
    return dependencies
