"""Immutable drafts accumulating token bindings before a container is sealed."""

import logging
from typing import Any, Callable, Iterable, Optional, Union

from keystone.bindings import BindingTable
from keystone.container import Container
from keystone.domain import Factory, Mode, make_factory
from keystone.resolution import Resolver

__all__ = ["Draft"]

logger = logging.getLogger(__name__)


class Draft:
    """An immutable, forkable collection of token bindings.

    Every registration returns a new Draft and leaves the receiver untouched, so a
    draft can serve as the common base of several differently configured containers.

    Example:
        >>> base = Draft().register("foo", lambda: 1).register("bar", lambda: 2)
        >>> container = base.register(
        ...     "baz", lambda foo, bar: foo + bar, depends_on=["foo", "bar"]
        ... ).seal()
        >>> container.resolve("baz")  # Returns 3
    """

    def __init__(self, bindings: Optional[BindingTable] = None):
        self._bindings = bindings if bindings is not None else BindingTable()

    @property
    def bindings(self) -> BindingTable:
        return self._bindings

    @property
    def tokens(self) -> list[str]:
        return list(self._bindings)

    def register(
        self,
        token: str,
        factory: Union[Factory, Callable[..., Any]],
        *,
        depends_on: Optional[Iterable[str]] = None,
        mode: Union[Mode, str, None] = None,
    ) -> "Draft":
        """Bind a factory to a token.

        Registering a token once binds it to a single value; registering it again
        adds another factory, and the token then resolves to the list of all
        their values in registration order. A token bound by ``register_many``
        is rebound to just this factory.

        Args:
            token: The token to bind.
            factory: A Factory, or a callable described by ``depends_on`` and ``mode``.
            depends_on: Tokens supplying the factory's positional arguments.
            mode: Whether dependents receive the value or a thunk resolving it.

        Returns:
            A new Draft including the binding.

        Raises:
            ConfigurationError: If the token or factory metadata is invalid.
        """
        factory = make_factory(factory, depends_on, mode)
        logger.debug("Registering %s for token %r", factory, token)
        return Draft(self._bindings.with_appended(token, factory))

    def register_many(
        self, token: str, factories: Iterable[Union[Factory, Callable[..., Any]]]
    ) -> "Draft":
        """Bind a token to an ordered list of factories, replacing any previous binding.

        The token always resolves to a list, even for a single factory. An empty
        list leaves the token registered but unresolvable.

        Returns:
            A new Draft including the binding.
        """
        factories = [make_factory(factory) for factory in factories]
        logger.debug("Registering %d factories for token %r", len(factories), token)
        return Draft(self._bindings.with_replaced(token, factories))

    def seal(self, *, thread_safe: bool = True) -> Container:
        """Freeze the current bindings into a Container with an empty cache.

        Args:
            thread_safe: Whether to guard the container's cache with a lock. Disable
                only when the container is used from a single thread.
        """
        logger.debug("Sealing container with tokens %s", self.tokens)
        return Container(Resolver(self._bindings, thread_safe))

    def __contains__(self, token: str) -> bool:
        return token in self._bindings

    def __len__(self) -> int:
        return len(self._bindings)

    def __repr__(self) -> str:
        return f"Draft({self.tokens})"
