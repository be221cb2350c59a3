import pytest

from ollamate_core.domain.events import ModelChanged, ModelListChanged
from ollamate_core.domain.exceptions import StorageError, ValidationError
from ollamate_core.infrastructure.storage.json_state import MemoryStateStore
from ollamate_core.models.state import AVAILABLE_KEY, NO_MODEL, SELECTED_KEY, ModelStateStore


class FailingState(MemoryStateStore):
    def set(self, key, value):
        raise StorageError(code="STORE_WRITE_ERROR", message="read-only")


def make_store(initial=None):
    state = MemoryStateStore(initial)
    store = ModelStateStore(state)
    events = []
    store.subscribe(events.append)
    return store, state, events


def test_sentinel_normalizes_to_none():
    store, _, _ = make_store({SELECTED_KEY: NO_MODEL, AVAILABLE_KEY: ["a"]})
    assert store.get_selected() is None


def test_set_selected_emits_once():
    store, state, events = make_store({AVAILABLE_KEY: ["a", "b"]})
    store.set_selected("a")
    store.set_selected("a")
    assert events == [ModelChanged(model="a")]
    assert state.get(SELECTED_KEY) == "a"


def test_clearing_selection_stores_sentinel():
    store, state, events = make_store({AVAILABLE_KEY: ["a"], SELECTED_KEY: "a"})
    store.set_selected(None)
    assert events == [ModelChanged(model=None)]
    assert state.get(SELECTED_KEY) == NO_MODEL


def test_set_selected_unknown_model_rejected():
    store, _, events = make_store({AVAILABLE_KEY: ["a"]})
    with pytest.raises(ValidationError):
        store.set_selected("zzz")
    assert store.get_selected() is None
    assert events == []


def test_set_available_normalizes():
    store, state, events = make_store()
    store.set_available(["b", "a", "b", "", "   ", "A"])
    assert store.get_available() == ("A", "a", "b")
    assert state.get(AVAILABLE_KEY) == ["A", "a", "b"]
    assert events == [ModelListChanged(models=("A", "a", "b"))]


def test_set_available_unchanged_is_silent():
    store, _, events = make_store({AVAILABLE_KEY: ["a", "b"]})
    store.set_available(["b", "a", "a"])
    assert events == []


def test_removing_selected_model_cascades_clear():
    store, _, events = make_store({AVAILABLE_KEY: ["a", "b"], SELECTED_KEY: "a"})
    store.set_available(["b"])
    assert store.get_selected() is None
    assert events == [ModelChanged(model=None), ModelListChanged(models=("b",))]


def test_list_change_keeping_selection_does_not_cascade():
    store, _, events = make_store({AVAILABLE_KEY: ["a"], SELECTED_KEY: "a"})
    store.set_available(["a", "c"])
    assert store.get_selected() == "a"
    assert events == [ModelListChanged(models=("a", "c"))]


def test_subscription_cancel():
    store, _, events = make_store({AVAILABLE_KEY: ["a"]})
    other = []
    sub = store.subscribe(other.append)
    sub.cancel()
    store.set_selected("a")
    assert other == []
    assert events == [ModelChanged(model="a")]


def test_persist_failure_keeps_memory_authoritative():
    store = ModelStateStore(FailingState({AVAILABLE_KEY: ["a"]}))
    events = []
    store.subscribe(events.append)
    store.set_selected("a")
    assert store.get_selected() == "a"
    assert events == [ModelChanged(model="a")]


def test_reconcile_clears_stale_selection():
    store, _, events = make_store({AVAILABLE_KEY: ["a"], SELECTED_KEY: "gone"})
    store.reconcile()
    assert store.get_selected() is None
    assert events == [ModelChanged(model=None)]
