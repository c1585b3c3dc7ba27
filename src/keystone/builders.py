"""High level entry points for constructing drafts."""

from keystone.draft import Draft
from keystone.two_phase import TwoPhaseDraft

__all__ = ["create_draft", "start_container", "start_two_phase"]


def create_draft() -> Draft:
    """Start an empty :class:`~keystone.draft.Draft`.

    Example:
        >>> container = (
        ...     create_draft()
        ...     .register("foo", lambda: "foo")
        ...     .seal()
        ... )
        >>> container.resolve("foo")  # Returns "foo"
    """
    return Draft()


start_container = create_draft


def start_two_phase() -> TwoPhaseDraft:
    """Start an empty :class:`~keystone.two_phase.TwoPhaseDraft`."""
    return TwoPhaseDraft()
