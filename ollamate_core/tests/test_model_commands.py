import pytest

from ollamate_core.api.model_commands import ModelCommands
from ollamate_core.domain.exceptions import ValidationError
from ollamate_core.infrastructure.storage.json_state import MemoryStateStore
from ollamate_core.models.state import ModelStateStore


class ScriptedPicker:
    def __init__(self, choice):
        self.choice = choice
        self.seen = []

    def pick_one(self, candidates, current):
        self.seen.append((list(candidates), current))
        return self.choice


class FakeBackend:
    name = "fake"

    def __init__(self, installed):
        self.installed = installed

    def generate(self, model, turns):
        return iter(())

    def list_models(self):
        return list(self.installed)


def make(available=(), installed=()):
    models = ModelStateStore(MemoryStateStore())
    models.set_available(list(available))
    return models, ModelCommands(models, FakeBackend(installed))


def test_select_model_with_picker():
    models, cmds = make(available=["a", "b"])
    picker = ScriptedPicker("b")
    assert cmds.select_model(picker) == "b"
    assert models.get_selected() == "b"
    assert picker.seen == [(["a", "b"], None)]


def test_select_model_cancelled_keeps_selection():
    models, cmds = make(available=["a"])
    models.set_selected("a")
    assert cmds.select_model(ScriptedPicker(None)) is None
    assert models.get_selected() == "a"


def test_select_model_with_empty_list():
    _, cmds = make()
    picker = ScriptedPicker("a")
    assert cmds.select_model(picker) is None
    assert picker.seen == []


def test_add_model_trims_and_rejects_duplicates():
    models, cmds = make(available=["a"])
    assert cmds.add_model("  llama3:latest ") == "llama3:latest"
    assert models.get_available() == ("a", "llama3:latest")
    with pytest.raises(ValidationError):
        cmds.add_model("a")
    with pytest.raises(ValidationError):
        cmds.add_model("   ")


def test_delete_selected_model_clears_selection():
    models, cmds = make(available=["a", "b"])
    models.set_selected("a")
    assert cmds.delete_model(ScriptedPicker("a")) == "a"
    assert models.get_available() == ("b",)
    assert models.get_selected() is None


def test_remove_unknown_model():
    _, cmds = make(available=["a"])
    assert cmds.remove_model("zzz") is False


def test_import_all_new_models():
    models, cmds = make(available=["a"], installed=["c", "a", "b"])
    assert cmds.import_models() == ["b", "c"]
    assert models.get_available() == ("a", "b", "c")


def test_import_single_model_with_picker():
    models, cmds = make(available=["a"], installed=["a", "b", "c"])
    picker = ScriptedPicker("c")
    assert cmds.import_models(picker) == ["c"]
    assert picker.seen == [(["b", "c"], None)]
    assert models.get_available() == ("a", "c")


def test_import_when_nothing_new():
    models, cmds = make(available=["a"], installed=["a"])
    assert cmds.import_models() == []
