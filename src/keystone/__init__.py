"""Keystone dependency injection container.

Keystone maps string tokens to factory functions and resolves them into values,
satisfying each factory's dependencies by name. Dependencies are declared
explicitly when a factory is registered; nothing is inferred from signatures.

Bindings accumulate in immutable drafts. Each registration returns a new draft,
so a common base can be forked into differently configured variants. Sealing a
draft produces a container with its own cache: each token's factories run at
most once per container, and containers never share cached values.

Key Features:
    - Fork-safe, copy-on-write registration
    - Multi-binding: a token registered several times resolves to a list
    - Precise cycle detection (``cycle detected: a > b > a``)
    - Lazy dependencies passed as thunks, breaking construction-time cycles
    - A two-phase define/assign variant validating providers at assignment time

Basic Usage:
    >>> from keystone.builders import create_draft
    >>> from keystone.domain import Factory
    >>>
    >>> def baz(foo, bar):
    ...     return foo + bar
    >>>
    >>> container = (
    ...     create_draft()
    ...     .register("baz", Factory(baz, ("foo", "bar")))
    ...     .register("foo", lambda: 1)
    ...     .register("bar", lambda: 2)
    ...     .seal()
    ... )
    >>> container.resolve("baz")  # Returns 3

The framework consists of several core modules:
    - builders: High-level entry points for starting drafts
    - draft: Immutable drafts accumulating bindings
    - two_phase: The define/assign draft variant
    - container: Sealed containers exposing resolve and bind
    - resolution: The resolution engine, cache and cycle detection
    - bindings: Copy-on-write binding tables
    - domain: Core domain models (Factory, Mode)
    - errors: Framework-specific exceptions
"""
