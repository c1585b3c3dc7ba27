"""Two-phase drafts: define factories first, then assign them to tokens.

In this variant factories declare their dependencies by factory name rather
than by token. ``define`` records a factory and its metadata without looking at
its dependencies. ``assign`` binds a defined factory to an external token, and
checks at that point that every dependency is either already assigned or was
defined as lazy, so a missing eager provider is reported while the container is
being configured rather than on first resolution.

Example:
    >>> draft = (
    ...     TwoPhaseDraft()
    ...     .define(make_factory(provider))
    ...     .define(make_factory(consumer, depends_on=["provider"]))
    ...     .assign("NumberSource", provider)
    ...     .assign("Adder", consumer)
    ... )
    >>> draft.seal().resolve("Adder")
"""

import logging
from typing import Any, Callable, Iterable, Optional, Union

from keystone.bindings import BindingTable
from keystone.container import Container
from keystone.domain import Factory, Mode, make_factory
from keystone.errors import ConfigurationError, DependencyError, UnassignedToken, UnmetDependency
from keystone.resolution import Resolver

__all__ = ["TwoPhaseDraft"]

logger = logging.getLogger(__name__)

FactoryLike = Union[Factory, Callable[..., Any]]


class TwoPhaseDraft:
    """An immutable draft whose factories are defined before they are assigned to tokens."""

    def __init__(
        self,
        defined: Optional[dict[str, Factory]] = None,
        owners: Optional[dict[str, str]] = None,
        bindings: Optional[BindingTable] = None,
    ):
        self._defined: dict[str, Factory] = dict(defined or {})
        self._owners: dict[str, str] = dict(owners or {})
        self._bindings = bindings if bindings is not None else BindingTable()

    @property
    def defined(self) -> list[str]:
        return list(self._defined)

    @property
    def tokens(self) -> list[str]:
        return list(self._bindings)

    def define(
        self,
        factory: Union[FactoryLike, Iterable[FactoryLike]],
        *,
        depends_on: Optional[Iterable[str]] = None,
        mode: Union[Mode, str, None] = None,
    ) -> "TwoPhaseDraft":
        """Record one factory, or a list of factories, by name.

        Dependencies are not validated here; they may name factories that are
        defined later.

        Raises:
            ConfigurationError: If a factory with the same name is already defined.
        """
        targets = factory if isinstance(factory, (list, tuple)) else [factory]

        defined = dict(self._defined)
        for target in targets:
            definition = make_factory(target, depends_on, mode)
            if definition.name in defined:
                raise ConfigurationError(f'Factory "{definition.name}" already defined.')
            logger.debug("Defining factory %s", definition)
            defined[definition.name] = definition

        return TwoPhaseDraft(defined, self._owners, self._bindings)

    def assign(self, token: str, factory: FactoryLike) -> "TwoPhaseDraft":
        """Bind a defined factory to a token.

        Raises:
            ConfigurationError: If the factory was not defined, the token is already
                assigned, or the factory is already assigned to another token.
            UnmetDependency: If a dependency is neither assigned nor defined as lazy.
        """
        definition = self._definition_of(factory)
        self._check_assignable(token, definition)

        owners = dict(self._owners)
        owners[definition.name] = token
        logger.debug("Assigning factory %s to token %r", definition.name, token)
        return TwoPhaseDraft(
            self._defined, owners, self._bindings.with_appended(token, definition)
        )

    def assign_many(self, token: str, factories: Iterable[FactoryLike]) -> "TwoPhaseDraft":
        """Bind an ordered batch of defined factories to one token.

        The token resolves to the list of the factories' values. Factories in the
        batch cannot depend eagerly on each other, since none of them is assigned
        until the whole batch is.

        Raises:
            ConfigurationError: If the batch is empty, or any factory fails the checks
                made by ``assign``.
            UnmetDependency: If a dependency is neither assigned nor defined as lazy.
        """
        definitions = [self._definition_of(factory) for factory in factories]
        if not definitions:
            raise ConfigurationError(
                f'Cannot assign an empty list of factories to token "{token}".'
            )

        owners = dict(self._owners)
        for definition in definitions:
            if definition.name in owners:
                raise ConfigurationError(
                    f'Factory "{definition.name}" is already assigned to token '
                    f'"{owners[definition.name]}".'
                )
            self._check_assignable(token, definition)
            owners[definition.name] = token

        logger.debug(
            "Assigning factories %s to token %r", [d.name for d in definitions], token
        )
        return TwoPhaseDraft(
            self._defined, owners, self._bindings.with_replaced(token, definitions)
        )

    def seal(self, *, thread_safe: bool = True) -> Container:
        """Freeze the assignments into a Container with an empty cache.

        Lazily defined factories that were never assigned do not prevent sealing;
        a thunk for one fails when it is called.
        """
        logger.debug("Sealing two-phase container with tokens %s", self.tokens)
        return Container(
            _AssignedResolver(self._bindings, self._defined, self._owners, thread_safe)
        )

    def _definition_of(self, factory: FactoryLike) -> Factory:
        name = make_factory(factory).name
        definition = self._defined.get(name)
        if definition is None:
            raise ConfigurationError(f'Factory "{name}" was not defined.')
        return definition

    def _check_assignable(self, token: str, definition: Factory) -> None:
        if token in self._bindings:
            raise ConfigurationError(f'Token "{token}" is already assigned.')
        if definition.name in self._owners:
            raise ConfigurationError(
                f'Factory "{definition.name}" is already assigned to token '
                f'"{self._owners[definition.name]}".'
            )
        for dependency in definition.depends_on:
            if not self._is_satisfied(dependency):
                raise UnmetDependency(token, definition.name, dependency)

    def _is_satisfied(self, dependency: str) -> bool:
        if dependency in self._owners or dependency in self._bindings:
            return True
        definition = self._defined.get(dependency)
        return definition is not None and definition.is_lazy

    def __repr__(self) -> str:
        return f"TwoPhaseDraft(defined={self.defined}, tokens={self.tokens})"


class _AssignedResolver(Resolver):
    """Resolves dependency names as factory names, falling back to tokens."""

    def __init__(
        self,
        bindings: BindingTable,
        defined: dict[str, Factory],
        owners: dict[str, str],
        thread_safe: bool = True,
    ):
        super().__init__(bindings, thread_safe)
        self._defined = defined
        self._owners = owners

    def target(self, name: str) -> str:
        if name in self._owners:
            return self._owners[name]
        if self.bindings.resolvable(name) is not None:
            return name
        raise UnassignedToken(name, self.bindings.keys())

    def is_lazy(self, name: str) -> bool:
        definition = self._defined.get(name)
        if definition is not None:
            return definition.is_lazy
        return super().is_lazy(name)

    def missing(self, token: str) -> DependencyError:
        return UnassignedToken(token, self.bindings.keys())

    def ensure_available(self, name: str, dependent: str) -> None:
        if name in self._owners or self.is_lazy(name):
            return
        if self.bindings.resolvable(name) is None:
            raise UnassignedToken(name, self.bindings.keys())
