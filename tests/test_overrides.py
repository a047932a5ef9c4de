import pytest

from chainconf.definitions import RawDefinitionStore
from chainconf.domain import RawComponentRecord, ScalarValue
from chainconf.errors import CycleError, TypeMismatchError, UnknownComponentError
from chainconf.overrides import OverrideResolver


def scalars(**values):
    return {key: ScalarValue(value) for key, value in values.items()}


@pytest.fixture
def definitions():
    store = RawDefinitionStore()
    store.put(RawComponentRecord("a", "string", None, scalars(one="a", two="b", three="c")))
    store.put(RawComponentRecord("b", "string", "a", scalars(three="d")))
    store.put(RawComponentRecord("bsub", "string", "b", scalars(three="e")))
    store.put(RawComponentRecord("c1", "stringle", "a", scalars(three="e", four="x")))
    store.put(RawComponentRecord("c2", "stringle", "a", scalars(three="d", four="y")))
    store.freeze()
    return store


@pytest.fixture
def resolver(definitions, types):
    return OverrideResolver(definitions, types)


def plain(record):
    return {key: value.text for key, value in record.properties.items()}


def test_root_record_resolves_to_itself(resolver):
    assert plain(resolver.resolve("a")) == {"one": "a", "two": "b", "three": "c"}


def test_override_replaces_only_the_fields_it_sets(resolver):
    assert plain(resolver.resolve("b")) == {"one": "a", "two": "b", "three": "d"}


def test_two_level_override(resolver):
    record = resolver.resolve("bsub")

    assert plain(record) == {"one": "a", "two": "b", "three": "e"}
    assert record.name == "bsub"
    assert record.parent_name == "b"


def test_subtype_override_adds_a_field(resolver):
    record = resolver.resolve("c1")

    assert record.type_tag == "stringle"
    assert plain(record) == {"one": "a", "two": "b", "three": "e", "four": "x"}


def test_siblings_do_not_interfere(resolver):
    first = resolver.resolve("c1")
    second = resolver.resolve("c2")

    assert plain(first)["three"] == "e"
    assert plain(second) == {"one": "a", "two": "b", "three": "d", "four": "y"}
    assert plain(resolver.resolve("a"))["three"] == "c"


def test_chain_lists_ancestors_root_first(resolver):
    assert [r.name for r in resolver.chain("bsub")] == ["a", "b", "bsub"]


def test_based_on_cycle_is_detected(types):
    store = RawDefinitionStore()
    store.put(RawComponentRecord("x", "string", "y", origin="loop.yaml"))
    store.put(RawComponentRecord("y", "string", "z", origin="loop.yaml"))
    store.put(RawComponentRecord("z", "string", "x", origin="loop.yaml"))

    with pytest.raises(CycleError, match="x -> y -> z -> x") as info:
        OverrideResolver(store, types).resolve("x")

    assert info.value.cycle == ("x", "y", "z", "x")
    assert info.value.origin == "loop.yaml"


def test_self_based_component_is_a_cycle(types):
    store = RawDefinitionStore()
    store.put(RawComponentRecord("x", "string", "x"))

    with pytest.raises(CycleError):
        OverrideResolver(store, types).resolve("x")


def test_missing_parent(types):
    store = RawDefinitionStore()
    store.put(RawComponentRecord("orphan", "string", "ghost", origin="one.yaml"))

    with pytest.raises(UnknownComponentError, match="based-on of 'orphan'") as info:
        OverrideResolver(store, types).resolve("orphan")

    assert info.value.name == "ghost"
    assert info.value.origin == "one.yaml"


def test_unknown_component(resolver):
    with pytest.raises(UnknownComponentError):
        resolver.resolve("nope")


def test_type_override_must_be_a_subtype(types):
    store = RawDefinitionStore()
    store.put(RawComponentRecord("a", "stringle", None, scalars(four="x")))
    store.put(RawComponentRecord("b", "string", "a", origin="b.yaml"))

    with pytest.raises(TypeMismatchError, match="not a subtype of 'stringle'") as info:
        OverrideResolver(store, types).resolve("b")

    assert info.value.name == "b"


def test_untyped_override_keeps_the_inherited_type(types):
    store = RawDefinitionStore()
    store.put(RawComponentRecord("a", "stringle", None, scalars(three="c", four="x")))
    store.put(RawComponentRecord("b", None, "a", scalars(three="d")))
    store.put(RawComponentRecord("bsub", None, "b", scalars(four="y")))

    record = OverrideResolver(store, types).resolve("bsub")

    assert record.type_tag == "stringle"
    assert plain(record) == {"three": "d", "four": "y"}


def test_component_without_a_type_needs_a_parent(types):
    store = RawDefinitionStore()
    store.put(RawComponentRecord("a", None, None, origin="a.yaml"))
    store.put(RawComponentRecord("b", None, "a"))

    with pytest.raises(TypeMismatchError, match="has no type") as info:
        OverrideResolver(store, types).resolve("b")

    assert info.value.name == "a"
    assert info.value.origin == "a.yaml"
