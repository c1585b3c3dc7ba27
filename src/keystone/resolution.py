"""
Resolution of tokens into component values.

This module holds the engine behind every sealed container. A Resolver walks a
BindingTable depth-first: each factory's dependencies are resolved before the
factory itself is invoked, and each token's value is cached so its factories
run at most once for the lifetime of the resolver. The walk keeps its own stack
of frames rather than recursing, so the depth of a dependency chain is not
bounded by the interpreter's recursion limit.

Cycles are detected with a ResolutionContext, which tracks the tokens on the
active resolution path. Lazy dependencies are handed to factories as Thunks,
deferring their resolution until the factory (or something it builds) calls
them, which is how otherwise fatal cycles are broken.

Concurrent resolutions exclude each other per token: a thread building a token
holds a claim on it, and other threads needing that token wait for the claim to
be released. No lock is held while a factory runs.
"""

import logging
import threading
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass, field
from typing import Any, ContextManager, Iterator, Optional

from keystone.bindings import BindingTable
from keystone.domain import Factory
from keystone.errors import (
    CyclicDependency,
    DependencyError,
    UnregisteredDependency,
    UnregisteredToken,
)

__all__ = ["ResolutionContext", "Thunk", "Resolver"]

logger = logging.getLogger(__name__)


@dataclass
class ResolutionContext:
    """The tokens currently being resolved by one top-level call, root first."""

    path: list[str] = field(default_factory=list)
    seen: set[str] = field(default_factory=set)

    def enter(self, token: str) -> None:
        if token in self.seen:
            raise CyclicDependency(self.cycle_through(token))
        self.path.append(token)
        self.seen.add(token)

    def leave(self, token: str) -> None:
        self.path.pop()
        self.seen.discard(token)

    def cycle_through(self, token: str) -> list[str]:
        """Return the path suffix starting at ``token``, closed by ``token`` again."""
        return self.path[self.path.index(token):] + [token]


class Thunk:
    """A zero-argument callable that resolves a lazy dependency when invoked."""

    __slots__ = ("name", "_resolver")

    def __init__(self, resolver: "Resolver", name: str):
        self.name = name
        self._resolver = resolver

    def __call__(self) -> Any:
        return self._resolver.resolve_dependency(self.name)

    def __repr__(self) -> str:
        return f"Thunk({self.name!r})"


class _Claim:
    """Marks a token as being built by one thread."""

    __slots__ = ("owner", "released")

    def __init__(self, owner: int):
        self.owner = owner
        self.released = threading.Event()


class _Frame:
    """One factory list on the work stack, with the arguments gathered so far."""

    __slots__ = ("token", "factories", "yields_list", "index", "arguments", "results")

    def __init__(self, token: Optional[str], factories: tuple[Factory, ...], yields_list: bool):
        self.token = token
        self.factories = factories
        self.yields_list = yields_list
        self.index = 0
        self.arguments: list[Any] = []
        self.results: list[Any] = []

    @property
    def finished(self) -> bool:
        return self.index >= len(self.factories)

    @property
    def factory(self) -> Factory:
        return self.factories[self.index]

    def next_dependency(self) -> Optional[str]:
        depends_on = self.factory.depends_on
        if len(self.arguments) < len(depends_on):
            return depends_on[len(self.arguments)]
        return None

    def value(self) -> Any:
        return self.results if self.yields_list else self.results[0]


@dataclass(frozen=True)
class _Cached:
    value: Any


class Resolver:
    """Resolve tokens from a BindingTable, caching each token's value.

    The cache belongs to this resolver alone. A token is claimed by the thread
    that builds it, so concurrent callers never run its factories twice; the
    context of the resolution in progress is kept per thread, so thunks called
    from inside a factory extend that resolution's path rather than starting a
    new one.

    Subclasses may override the hooks ``target``, ``is_lazy``, ``missing`` and
    ``ensure_available`` to change how dependency names are looked up.
    """

    def __init__(self, bindings: BindingTable, thread_safe: bool = True):
        self._bindings = bindings
        self._cache: dict[str, Any] = {}
        self._claims: dict[str, _Claim] = {}
        self._waiting: dict[int, str] = {}
        self._guard: ContextManager = threading.Lock() if thread_safe else nullcontext()
        self._local = threading.local()

    @property
    def bindings(self) -> BindingTable:
        return self._bindings

    def resolve(self, token: str) -> Any:
        """Resolve a token, reusing cached values.

        Raises:
            UnregisteredToken: If the token, or one of its dependencies, has no binding.
            CyclicDependency: If the token depends on itself, directly or transitively.
        """
        with self._context() as context:
            return self._resolve(token, context)

    def resolve_dependency(self, name: str) -> Any:
        """Resolve a dependency name, as a Thunk does when it is called."""
        with self._context() as context:
            return self._resolve(self.target(name), context)

    def call(self, factory: Factory) -> Any:
        """Invoke a factory that is not bound to any token, without caching its result."""
        with self._context() as context:
            return self._run(_Frame(None, (factory,), False), context)

    def target(self, name: str) -> str:
        """Map a dependency name to the token whose binding satisfies it."""
        return name

    def is_lazy(self, name: str) -> bool:
        """Whether dependents of ``name`` receive a Thunk instead of a value."""
        binding = self._bindings.resolvable(name)
        return binding is not None and binding.is_lazy

    def missing(self, token: str) -> DependencyError:
        """Build the error raised when ``token`` has no resolvable binding."""
        return UnregisteredToken(token, self._bindings.keys())

    def ensure_available(self, name: str, dependent: str) -> None:
        """Check, before any factory runs, that a dependency could be resolved.

        Raises:
            UnregisteredDependency: If ``name`` has no resolvable binding.
        """
        if self._bindings.resolvable(name) is None:
            raise UnregisteredDependency(name, dependent, self._bindings.keys())

    @contextmanager
    def _context(self) -> Iterator[ResolutionContext]:
        active: Optional[ResolutionContext] = getattr(self._local, "context", None)
        if active is not None:
            yield active
            return

        context = ResolutionContext()
        self._local.context = context
        try:
            yield context
        finally:
            self._local.context = None

    def _resolve(self, token: str, context: ResolutionContext) -> Any:
        entered = self._enter(token, context)
        if isinstance(entered, _Cached):
            return entered.value
        return self._run(entered, context)

    def _run(self, root: _Frame, context: ResolutionContext) -> Any:
        stack = [root]
        try:
            while True:
                frame = stack[-1]
                if frame.finished:
                    stack.pop()
                    value = self._complete(frame, context)
                    if not stack:
                        return value
                    stack[-1].arguments.append(value)
                    continue

                name = frame.next_dependency()
                if name is None:
                    frame.results.append(self._invoke(frame.factory, frame.arguments, frame.token))
                    frame.index += 1
                    frame.arguments = []
                elif self.is_lazy(name):
                    frame.arguments.append(Thunk(self, name))
                else:
                    entered = self._enter(self.target(name), context)
                    if isinstance(entered, _Cached):
                        frame.arguments.append(entered.value)
                    else:
                        stack.append(entered)
        except BaseException:
            for frame in reversed(stack):
                self._abandon(frame, context)
            raise

    def _enter(self, token: str, context: ResolutionContext) -> Any:
        """Return the cached value of ``token``, or claim it and return a frame building it."""
        me = threading.get_ident()
        while True:
            with self._guard:
                if token in self._cache:
                    return _Cached(self._cache[token])

                claim = self._claims.get(token)
                if claim is None:
                    binding = self._bindings.resolvable(token)
                    if binding is None:
                        raise self.missing(token)
                    context.enter(token)
                    self._claims[token] = _Claim(me)
                    return _Frame(token, binding.factories, binding.yields_list)

                if claim.owner == me:
                    raise CyclicDependency(context.cycle_through(token))
                self._check_waits(token, claim, me)
                self._waiting[me] = token

            try:
                claim.released.wait()
            finally:
                with self._guard:
                    self._waiting.pop(me, None)

    def _check_waits(self, token: str, claim: _Claim, me: int) -> None:
        """Raise if waiting for ``claim`` would close a loop of threads waiting on each other."""
        chain = [token]
        owner = claim.owner
        while owner in self._waiting:
            awaited = self._waiting[owner]
            chain.append(awaited)
            blocking = self._claims.get(awaited)
            if blocking is None:
                return
            if blocking.owner == me:
                raise CyclicDependency(chain + [token])
            owner = blocking.owner

    def _complete(self, frame: _Frame, context: ResolutionContext) -> Any:
        value = frame.value()
        if frame.token is not None:
            with self._guard:
                self._cache[frame.token] = value
                claim = self._claims.pop(frame.token)
            context.leave(frame.token)
            claim.released.set()
        return value

    def _abandon(self, frame: _Frame, context: ResolutionContext) -> None:
        if frame.token is None:
            return
        with self._guard:
            claim = self._claims.pop(frame.token, None)
        context.leave(frame.token)
        if claim is not None:
            claim.released.set()

    def _invoke(self, factory: Factory, arguments: list[Any], token: Optional[str]) -> Any:
        if token is None:
            logger.debug("Invoking unbound factory %s", factory.name)
        else:
            logger.debug("Invoking factory %s for token %r", factory.name, token)
        return factory(*arguments)
