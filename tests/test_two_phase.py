import re
from dataclasses import dataclass
from typing import Callable

import pytest

from keystone.builders import start_two_phase
from keystone.domain import Factory, Mode
from keystone.errors import (
    ConfigurationError,
    CyclicDependency,
    UnassignedToken,
    UnmetDependency,
    UnregisteredToken,
)
from keystone.two_phase import TwoPhaseDraft


@dataclass
class Speaker:
    say: Callable[[], str]


def Provider():
    return 42


def Consumer(x):
    return x + 1


@pytest.fixture
def draft() -> TwoPhaseDraft:
    return start_two_phase().define(Provider).define(Consumer, depends_on=["Provider"])


def test_define_does_not_validate_dependencies():
    draft = start_two_phase().define(Consumer, depends_on=["Missing"])

    assert draft.defined == ["Consumer"]


def test_duplicate_define_raises():
    draft = start_two_phase().define(Provider)

    with pytest.raises(ConfigurationError, match=re.escape('Factory "Provider" already defined.')):
        draft.define(Provider)


def test_define_accepts_a_list():
    draft = start_two_phase().define([Provider, Factory(Consumer, ["Provider"])])

    assert draft.defined == ["Provider", "Consumer"]


def test_assigning_an_undefined_factory_raises():
    with pytest.raises(ConfigurationError, match=re.escape('Factory "Provider" was not defined.')):
        start_two_phase().assign("IProvider", Provider)


def test_reassigning_a_token_raises(draft):
    assigned = draft.assign("IProvider", Provider)

    with pytest.raises(
        ConfigurationError, match=re.escape('Token "IProvider" is already assigned.')
    ):
        assigned.assign("IProvider", Consumer)


def test_a_factory_cannot_be_assigned_twice(draft):
    assigned = draft.assign("IProvider", Provider)

    with pytest.raises(
        ConfigurationError,
        match=re.escape('Factory "Provider" is already assigned to token "IProvider".'),
    ):
        assigned.assign("Other", Provider)


def test_assign_fails_when_dependency_is_neither_assigned_nor_lazy(draft):
    with pytest.raises(UnmetDependency) as raised:
        draft.assign("Adder", Consumer)

    assert str(raised.value) == (
        'Cannot assign token "Adder" for "Consumer" because dependency "Provider" '
        "is neither assigned nor defined as lazy."
    )
    assert raised.value.dependency == "Provider"
    assert isinstance(raised.value, ConfigurationError)


def test_assign_succeeds_when_dependency_is_defined_as_lazy():
    draft = (
        start_two_phase()
        .define(Consumer, depends_on=["Provider"])
        .define(Provider, mode=Mode.LAZY)
    )

    assert draft.assign("Adder", Consumer).tokens == ["Adder"]


def test_dependencies_are_factory_names_not_tokens(draft):
    container = draft.assign("NumberSource", Provider).assign("Adder", Consumer).seal()

    assert container.resolve("Adder") == 43
    assert container.resolve("NumberSource") == 42


def test_dependencies_may_name_tokens():
    container = (
        start_two_phase()
        .define(Provider)
        .define(Consumer, depends_on=["Numbers"])
        .assign("Numbers", Provider)
        .assign("Adder", Consumer)
        .seal()
    )

    assert container.resolve("Adder") == 43


def test_drafts_are_immutable(draft):
    assigned = draft.assign("NumberSource", Provider)

    assert draft.tokens == []
    assert assigned.tokens == ["NumberSource"]
    assert start_two_phase().defined == []


def test_resolving_an_unassigned_token_raises(draft):
    container = draft.assign("NumberSource", Provider).seal()

    with pytest.raises(UnassignedToken, match=re.escape('Cannot resolve unassigned token "Nope".')):
        container.resolve("Nope")

    with pytest.raises(UnregisteredToken):
        start_two_phase().seal().resolve("Nope")


def test_resolve_caches_the_same_instance():
    container = start_two_phase().define(object).assign("IObject", object).seal()

    assert container.resolve("IObject") is container.resolve("IObject")


def test_dependency_instance_equals_direct_resolve():
    def B():
        return object()

    def A(b):
        return b

    container = (
        start_two_phase()
        .define(A, depends_on=["B"])
        .define(B)
        .assign("IB", B)
        .assign("IA", A)
        .seal()
    )

    direct = container.resolve("IB")
    assert container.resolve("IA") is direct


def test_lazy_dependency_is_passed_as_a_cached_thunk():
    captured = []

    def B():
        return object()

    def A(b_thunk):
        captured.append(b_thunk)
        return "A"

    container = (
        start_two_phase()
        .define(A, depends_on=["B"])
        .define(B, mode="lazy")
        .assign("IA", A)
        .assign("IB", B)
        .seal()
    )

    container.resolve("IA")

    assert captured[0]() is captured[0]()
    assert captured[0]() is container.resolve("IB")


def test_lazy_breaks_a_direct_cycle():
    def Bar(foo):
        return Speaker(lambda: "bar")

    def Foo(bar_thunk):
        return Speaker(lambda: "foo and " + bar_thunk().say())

    container = (
        start_two_phase()
        .define(Foo, depends_on=["Bar"])
        .define(Bar, depends_on=["Foo"], mode=Mode.LAZY)
        .assign("IFoo", Foo)
        .assign("IBar", Bar)
        .seal()
    )

    assert container.resolve("IFoo").say() == "foo and bar"


def test_eager_cycle_is_rejected_at_assignment():
    draft = (
        start_two_phase()
        .define(Factory(lambda bar: bar, ["Bar"], name="Foo"))
        .define(Factory(lambda foo: foo, ["Foo"], name="Bar"))
    )

    with pytest.raises(UnmetDependency, match='dependency "Bar"'):
        draft.assign("IFoo", Factory(lambda: None, name="Foo"))


def test_forcing_a_lazy_cycle_during_construction_is_detected():
    container = (
        start_two_phase()
        .define(Factory(lambda bar: bar(), ["Bar"], name="Foo"))
        .define(Factory(lambda foo: foo, ["Foo"], Mode.LAZY, name="Bar"))
        .assign("IFoo", Factory(lambda: None, name="Foo"))
        .assign("IBar", Factory(lambda: None, name="Bar"))
        .seal()
    )

    with pytest.raises(CyclicDependency, match="^cycle detected: IFoo > IBar > IFoo$"):
        container.resolve("IFoo")


def test_calling_a_thunk_for_an_unassigned_lazy_factory_raises():
    captured = []

    def Bar():
        return object()

    def Foo(bar_thunk):
        captured.append(bar_thunk)
        return "Foo"

    container = (
        start_two_phase()
        .define(Foo, depends_on=["Bar"])
        .define(Bar, mode=Mode.LAZY)
        .assign("IFoo", Foo)
        .seal()
    )

    assert container.resolve("IFoo") == "Foo"
    with pytest.raises(UnassignedToken, match=re.escape('Cannot resolve unassigned token "Bar".')):
        captured[0]()


def test_assign_many_resolves_to_a_list():
    def Foo(bars):
        return Speaker(lambda: f"foo: {len(bars)}")

    def Bar1(foo):
        return Speaker(lambda: "bar1 " + foo().say())

    def Bar2(foo):
        return Speaker(lambda: "bar2 " + foo().say())

    container = (
        start_two_phase()
        .define(Foo, depends_on=["bar"], mode=Mode.LAZY)
        .define([Bar1, Bar2], depends_on=["Foo"])
        .assign_many("bar", [Bar1, Bar2])
        .assign("foo", Foo)
        .seal()
    )

    assert [bar.say() for bar in container.resolve("bar")] == ["bar1 foo: 2", "bar2 foo: 2"]


def test_assign_many_forbids_in_batch_dependencies():
    def A(b):
        return b

    def B():
        return "b"

    draft = start_two_phase().define(A, depends_on=["B"]).define(B)

    for batch in ([A, B], [B, A]):
        with pytest.raises(UnmetDependency, match='dependency "B"'):
            draft.assign_many("tk", batch)


def test_assign_many_rejects_an_empty_batch():
    with pytest.raises(ConfigurationError, match="empty list of factories"):
        start_two_phase().assign_many("tk", [])


def test_assign_many_rejects_repeated_factories():
    draft = start_two_phase().define(Provider)

    with pytest.raises(ConfigurationError, match="is already assigned"):
        draft.assign_many("tk", [Provider, Provider])


def test_bind_resolves_factory_names(draft):
    container = draft.assign("NumberSource", Provider).seal()

    def PlusOne(a):
        return a + 1

    assert container.bind(Factory(PlusOne, ["Provider"]))() == 43


def test_bind_wires_lazy_dependencies_as_thunks():
    container = start_two_phase().define(Provider, mode="lazy").assign("IProvider", Provider).seal()

    thunk = container.bind(Factory(lambda provider: provider, ["Provider"]))()

    assert thunk() == 42


def test_bind_rejects_unknown_dependencies(draft):
    container = draft.assign("NumberSource", Provider).seal()

    with pytest.raises(UnassignedToken, match=re.escape('Cannot resolve unassigned token "Nope".')):
        container.bind(Factory(lambda x: x, ["Nope"], name="Missing"))


def test_bind_accepts_dependencies_named_by_token(draft):
    container = draft.assign("NumberSource", Provider).seal()

    assert container.bind(Factory(lambda x: x * 2, ["NumberSource"]))() == 84
