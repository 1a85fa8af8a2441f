import pytest

from featureplacer.errors import ConfigurationError
from featureplacer.selection import SELECT_ALL, AllFields, ExplicitFields, SelectionIndex

CATALOG = ("gattung", "kronedurch", "baumhoehe", "bezirk")


@pytest.fixture
def index():
    return SelectionIndex(catalog=CATALOG)


def test_starts_with_nothing_selected(index):
    assert index.select_all_flag is False
    assert index.effective_field_set() == frozenset()
    assert not index.is_selected(SELECT_ALL)


def test_select_all_from_empty(index):
    index.toggle(SELECT_ALL)

    assert index.select_all_flag is True
    assert index.selected_fields == frozenset()
    assert index.effective_field_set() == frozenset(CATALOG)
    assert index.is_selected(SELECT_ALL)
    assert index.is_selected("gattung")


def test_field_after_select_all_clears_flag(index):
    index.toggle(SELECT_ALL)
    index.toggle("bezirk")

    assert index.select_all_flag is False
    assert index.state == ExplicitFields(frozenset({"bezirk"}))
    assert index.effective_field_set() == {"bezirk"}
    assert not index.is_selected(SELECT_ALL)


def test_select_all_clears_explicit_fields(index):
    index.toggle("gattung")
    index.toggle("baumhoehe")
    index.toggle(SELECT_ALL)

    assert index.state == AllFields()
    assert index.selected_fields == frozenset()


def test_toggling_select_all_twice(index):
    index.toggle(SELECT_ALL)
    index.toggle(SELECT_ALL)

    assert index.select_all_flag is False
    assert index.effective_field_set() == frozenset()


def test_field_toggles_on_and_off(index):
    index.toggle("gattung")
    index.toggle("kronedurch")
    assert index.effective_field_set() == {"gattung", "kronedurch"}

    index.toggle("gattung")
    assert index.effective_field_set() == {"kronedurch"}
    assert not index.is_selected("gattung")


def test_unknown_field_rejected(index):
    with pytest.raises(ConfigurationError):
        index.toggle("nonexistent")
    assert index.effective_field_set() == frozenset()


def test_open_catalog_accepts_any_field():
    index = SelectionIndex()
    index.toggle("anything")
    assert index.effective_field_set() == {"anything"}


def test_listeners_notified(index):
    seen = []
    unsubscribe = index.subscribe(lambda idx: seen.append(idx.select_all_flag))

    index.toggle(SELECT_ALL)
    index.toggle("gattung")
    unsubscribe()
    index.toggle("bezirk")

    assert seen == [True, False]


def test_reset(index):
    index.toggle(SELECT_ALL)
    index.reset()
    assert index.state == ExplicitFields()


def test_unsubscribe_twice_is_harmless(index):
    seen = []
    unsubscribe = index.subscribe(lambda idx: seen.append(idx.select_all_flag))

    unsubscribe()
    unsubscribe()
    index.toggle(SELECT_ALL)

    assert seen == []


def test_select_all_without_catalog_is_wildcard():
    index = SelectionIndex()
    index.toggle(SELECT_ALL)

    assert index.effective_field_set() == {"*"}
    assert index.is_selected("anything")
    assert index.effective_field_set() != SelectionIndex().effective_field_set()
