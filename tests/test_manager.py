import pytest
import yaml
from components import Pair, StringConfigurable

from chainconf.builders import load_chain
from chainconf.domain import EntryState
from chainconf.errors import ConfigurationError, UnknownComponentError
from chainconf.registry import ComponentListener


class Removals(ComponentListener):
    def __init__(self):
        self.added = []
        self.removed = []

    def on_added(self, name, instance):
        self.added.append(name)

    def on_removed(self, name):
        self.removed.append(name)


@pytest.fixture
def root(write_source):
    write_source(
        "overrides.yaml",
        """
        globals: {owner: bus}
        components:
          - name: b
            type: string
            based-on: a
            properties: {three: d}
        """,
    )
    return write_source(
        "app.yaml",
        """
        imports: [overrides.yaml]
        globals:
          owner: angry
          label: "${owner} driver"
        components:
          - name: a
            type: string
            properties: {one: a, two: "${label}", three: c}
          - name: couple
            type: pair
            properties: {left: {$ref: a}, right: {$ref: b}}
        """,
    )


@pytest.fixture
def manager(root, types):
    with load_chain(root, types) as manager:
        yield manager


def test_lookup(manager):
    couple = manager.lookup("couple")

    assert isinstance(couple, Pair)
    assert couple.left == StringConfigurable("a", "bus driver", "c")
    assert couple.right == StringConfigurable("a", "bus driver", "d")
    assert manager.state("couple") is EntryState.RESOLVED


def test_lookup_all(manager):
    assert [s.three for s in manager.lookup_all("string")] == ["c", "d"]


def test_introspection(manager):
    assert manager.component_names() == ["a", "couple", "b"]
    assert manager.global_names() == ["owner", "label"]
    assert manager.global_property("label") == "bus driver"
    assert manager.raw_record("b").properties["three"].text == "d"
    assert set(manager.effective_record("b").properties) == {"one", "two", "three"}
    assert [r.name for r in manager.override_chain("b")] == ["a", "b"]
    assert manager.property_sheet("b")["two"] == "bus driver"
    assert len(manager.sources) == 2


def test_raw_record_of_unknown_component(manager):
    with pytest.raises(UnknownComponentError):
        manager.raw_record("nope")


def test_shutdown_releases_components_and_listeners(manager):
    listener = Removals()
    manager.add_listener(listener)
    manager.lookup("a")

    manager.shutdown()

    assert listener.added == ["a"]
    assert listener.removed == ["a"]
    assert manager.is_shut_down
    assert manager.state("a") is EntryState.UNRESOLVED


def test_shutdown_is_idempotent(manager):
    listener = Removals()
    manager.add_listener(listener)
    manager.lookup("a")

    manager.shutdown()
    manager.shutdown()

    assert listener.removed == ["a"]


def test_lookup_after_shutdown(manager):
    manager.shutdown()

    with pytest.raises(ConfigurationError, match="shut down"):
        manager.lookup("a")
    with pytest.raises(ConfigurationError, match="shut down"):
        manager.lookup_all("string")


def test_context_manager_shuts_down(root, types):
    with load_chain(root, types) as manager:
        manager.lookup("a")

    assert manager.is_shut_down


def test_managers_are_independent(root, types):
    first = load_chain(root, types)
    second = load_chain(root, types)

    assert first.lookup("a") is not second.lookup("a")
    first.shutdown()

    assert second.lookup("a") is second.lookup("a")
    assert second.state("a") is EntryState.RESOLVED


def test_save_and_reload(manager, types, tmp_path):
    target = tmp_path / "out" / "merged.json"
    target.parent.mkdir()

    manager.save(target)
    reloaded = load_chain(target, types)

    assert reloaded.sources == (str(target.resolve()),)
    assert reloaded.same_configuration(manager)
    assert manager.same_configuration(reloaded)
    assert reloaded.lookup("couple") == manager.lookup("couple")


def test_serialize_writes_raw_globals(manager):
    document = yaml.safe_load(manager.serialize("yaml"))

    assert document["globals"] == {"owner": "bus", "label": "${owner} driver"}
    assert "imports" not in document


def test_different_configurations(manager, write_source, types):
    other = write_source(
        "other.yaml",
        """
        globals: {owner: bus, label: "${owner} driver"}
        components:
          - name: a
            type: string
            properties: {one: a, two: "${label}", three: c}
        """,
    )

    assert not manager.same_configuration(load_chain(other, types))
