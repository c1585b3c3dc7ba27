"""
Sealed containers: resolvers over a frozen set of bindings.

A Container is produced by sealing a draft. Its bindings can no longer change,
and it owns a cache of resolved values, so every token's factories run at most
once per container. Containers sealed from the same draft, or from drafts that
share a lineage, never share cached values.
"""

import functools
from typing import Any, Callable, Union

from keystone.domain import Factory, make_factory
from keystone.resolution import Resolver

__all__ = ["Container"]


class Container:
    """
    Resolves tokens, and functions declaring tokens as dependencies, against sealed bindings.

    Tokens may be resolved with ``resolve`` or by subscription:

        >>> container.resolve("database")
        >>> container["database"]
    """

    def __init__(self, resolver: Resolver):
        self._resolver = resolver

    @property
    def tokens(self) -> list[str]:
        return list(self._resolver.bindings)

    def resolve(self, token: str) -> Any:
        """Return the value bound to a token, building it and its dependencies if needed.

        A token bound to several factories resolves to the list of their results,
        in registration order.

        Raises:
            UnregisteredToken: If the token or one of its dependencies has no binding.
            CyclicDependency: If resolution reaches a token already being resolved.
        """
        return self._resolver.resolve(token)

    def bind(self, func: Union[Factory, Callable[..., Any]]) -> Callable[[], Any]:
        """Wire a function that is not registered in the container to its dependencies.

        Every dependency the function declares is checked immediately. The returned
        callable resolves those dependencies through the container's cache and calls
        the function each time it is invoked; the function's own result is not cached.

        Args:
            func: A Factory, or a bare callable with no dependencies.

        Returns:
            A zero-argument callable producing the function's result.

        Raises:
            UnregisteredToken: If a declared dependency cannot be resolved. Plain drafts
                raise UnregisteredDependency; two-phase drafts raise UnassignedToken.
        """
        factory = make_factory(func)
        for name in factory.depends_on:
            self._resolver.ensure_available(name, factory.name)
        return functools.partial(self._resolver.call, factory)

    def __getitem__(self, token: str) -> Any:
        return self.resolve(token)

    def __contains__(self, token: str) -> bool:
        return self._resolver.bindings.resolvable(token) is not None

    def __repr__(self) -> str:
        return f"Container({self.tokens})"
