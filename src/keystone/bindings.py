"""Copy-on-write tables of token bindings.

A BindingTable maps each token to a Binding: the ordered factories registered
under it, tagged with how they were registered. Tables are never mutated once
built. Registering against a table produces a new table that shares every
untouched Binding with its parent, so drafts can be forked freely without one
fork observing another's registrations.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, Optional

from keystone.domain import Factory
from keystone.errors import ConfigurationError

__all__ = ["BindingKind", "Binding", "BindingTable"]

logger = logging.getLogger(__name__)


class BindingKind(Enum):
    REGISTERED = "registered"
    """Accumulated by repeated ``register`` calls; one factory yields a scalar."""

    MANY = "many"
    """Installed wholesale by ``register_many``; always yields a list."""


@dataclass(frozen=True)
class Binding:
    """The factories bound to a single token.

    Attributes:
        token: The token the factories are bound to.
        kind: How the binding was created, which decides the shape of its value.
        factories: The factories, in registration order.
    """

    token: str
    kind: BindingKind
    factories: tuple[Factory, ...]

    def __post_init__(self) -> None:
        modes = {factory.mode for factory in self.factories}
        if len(modes) > 1:
            raise ConfigurationError(
                f'Token "{self.token}" mixes lazy and eager factories: '
                f"{[str(factory) for factory in self.factories]}"
            )

    @property
    def is_resolvable(self) -> bool:
        return len(self.factories) > 0

    @property
    def is_lazy(self) -> bool:
        return self.is_resolvable and all(factory.is_lazy for factory in self.factories)

    @property
    def yields_list(self) -> bool:
        """Whether resolving the binding produces a list rather than a single value."""
        return self.kind is BindingKind.MANY or len(self.factories) > 1

    def appended(self, factory: Factory) -> "Binding":
        if self.kind is BindingKind.MANY:
            return Binding(self.token, BindingKind.REGISTERED, (factory,))
        return Binding(self.token, BindingKind.REGISTERED, self.factories + (factory,))

    def __str__(self) -> str:
        factories = ", ".join(str(factory) for factory in self.factories)
        return f"{self.token} -> [{factories}] ({self.kind.value})"


class BindingTable(Mapping):
    """Immutable mapping from token to Binding, in first-registration order."""

    def __init__(self, bindings: Optional[dict[str, Binding]] = None):
        self._bindings: dict[str, Binding] = dict(bindings or {})

    def __getitem__(self, token: str) -> Binding:
        return self._bindings[token]

    def __iter__(self) -> Iterator[str]:
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def resolvable(self, token: str) -> Optional[Binding]:
        """Return the token's binding if it has at least one factory, otherwise None."""
        binding = self._bindings.get(token)
        if binding is None or not binding.is_resolvable:
            return None
        return binding

    def with_appended(self, token: str, factory: Factory) -> "BindingTable":
        """Return a new table with ``factory`` added to the token's registered factories.

        A token previously bound by ``with_replaced`` loses its old factories.
        """
        _validate_token(token)
        existing = self._bindings.get(token)
        if existing is None:
            binding = Binding(token, BindingKind.REGISTERED, (factory,))
        else:
            if existing.kind is BindingKind.MANY:
                logger.debug("Discarding multi-binding for token %r", token)
            binding = existing.appended(factory)
        return self._with(binding)

    def with_replaced(self, token: str, factories: Iterable[Factory]) -> "BindingTable":
        """Return a new table in which the token is bound to exactly ``factories``."""
        _validate_token(token)
        if token in self._bindings:
            logger.debug("Replacing bindings for token %r", token)
        return self._with(Binding(token, BindingKind.MANY, tuple(factories)))

    def _with(self, binding: Binding) -> "BindingTable":
        bindings = dict(self._bindings)
        bindings[binding.token] = binding
        return BindingTable(bindings)

    def __repr__(self) -> str:
        return f"BindingTable({[str(binding) for binding in self._bindings.values()]})"


def _validate_token(token: str) -> None:
    if not isinstance(token, str) or not token:
        raise ConfigurationError(f"{token!r} is not a valid token")
