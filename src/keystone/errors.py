"""Exceptions raised while registering and resolving components."""

from typing import Iterable

__all__ = [
    "DependencyError",
    "ConfigurationError",
    "UnmetDependency",
    "UnregisteredToken",
    "UnregisteredDependency",
    "UnassignedToken",
    "CyclicDependency",
]


class DependencyError(Exception):
    """Raised when a component's dependency cannot be resolved or is misdeclared."""

    pass


class ConfigurationError(DependencyError):
    """Raised when a draft is asked to record an invalid registration."""

    pass


class UnmetDependency(ConfigurationError):
    """Raised when a factory is assigned before the providers it eagerly needs."""

    def __init__(self, token: str, factory_name: str, dependency: str):
        self.token = token
        self.factory_name = factory_name
        self.dependency = dependency
        super().__init__(
            f'Cannot assign token "{token}" for "{factory_name}" because dependency '
            f'"{dependency}" is neither assigned nor defined as lazy.'
        )


class UnregisteredToken(DependencyError, LookupError):
    """Raised when a token with no resolvable binding is requested.

    Attributes:
        token: The token that was looked up.
        known_tokens: The tokens that were registered at the time of the lookup.
    """

    def __init__(self, token: str, known_tokens: Iterable[str] = ()):
        self.token = token
        self.known_tokens = tuple(known_tokens)
        super().__init__(self._message())

    def _message(self) -> str:
        return f"token is not registered: {self.token}"


class UnregisteredDependency(UnregisteredToken):
    """Raised by ``bind`` when the bound function declares an unregistered dependency."""

    def __init__(self, token: str, dependent: str, known_tokens: Iterable[str] = ()):
        self.dependent = dependent
        super().__init__(token, known_tokens)

    def _message(self) -> str:
        return f"{super()._message()} (required by {self.dependent})"


class UnassignedToken(UnregisteredToken):
    """Raised by two-phase containers for tokens or factory names with no assignment."""

    def _message(self) -> str:
        return f'Cannot resolve unassigned token "{self.token}".'


class CyclicDependency(DependencyError):
    """Raised when resolution re-enters a token that is still being resolved.

    Attributes:
        path: The cycle, starting and ending with the repeated token.
    """

    def __init__(self, path: Iterable[str]):
        self.path = tuple(path)
        super().__init__(f"cycle detected: {' > '.join(self.path)}")
