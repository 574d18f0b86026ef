"""
Tests for the document registry, cross-document lookups and edit handling.
"""

import pytest

from textsheets.document import ChangeSet
from textsheets.document_manager import DocumentManager
from textsheets.models import CellError, PropertyDefinition, SheetConfig

RECIPE = "2 cups flour\n1 tsp salt\n"
PANTRY = "flour\nsugar\n"


def make_sheet(id, name, *columns):
    return SheetConfig(id=id, name=name, properties=[PropertyDefinition(name=n, formula=f) for n, f in columns])


WORD = make_sheet("w", "word", ("word", 'HIGHLIGHTS_OF_REGEX("[a-z]+")'))


@pytest.fixture
def manager():
    return DocumentManager()


@pytest.fixture
def pantry(manager):
    document_id = manager.create_document("Pantry", PANTRY)
    manager.set_sheet_configs(document_id, [make_sheet("p", "item", ("name", "EACH_LINE()"))])
    return document_id


def test_create_and_find_documents(manager):
    first = manager.create_document(text=RECIPE)
    second = manager.create_document("Pantry", PANTRY)

    assert (first, second) == ("doc-1", "doc-2")
    assert manager.get_document(first).name == "Document 1"
    assert manager.get_document(first).full_text() == RECIPE
    assert manager.find_document_by_name("Pantry").id == second
    assert manager.find_document_by_name("pantry") is None


def test_rename_and_delete(manager):
    document_id = manager.create_document("Draft", RECIPE)

    assert manager.rename_document(document_id, "Recipe")
    assert manager.find_document_by_name("Recipe").full_text() == RECIPE
    assert not manager.rename_document("doc-99", "Nope")

    assert manager.delete_document(document_id)
    assert manager.get_document(document_id) is None
    assert manager.get_sheet_configs(document_id) == []
    assert not manager.delete_document(document_id)


def test_sheet_config_list(manager):
    document_id = manager.create_document("Recipe", RECIPE)
    other = make_sheet("o", "other", ("n", "1"))

    assert manager.add_sheet_config(document_id, WORD)
    assert manager.add_sheet_config(document_id, other)
    renamed = WORD.model_copy(update={"name": "token"})
    assert manager.add_sheet_config(document_id, renamed)
    assert [sc.name for sc in manager.get_sheet_configs(document_id)] == ["token", "other"]

    assert manager.remove_sheet_config(document_id, "o")
    assert not manager.remove_sheet_config(document_id, "o")
    assert not manager.add_sheet_config("doc-99", WORD)
    assert not manager.set_sheet_configs("doc-99", [WORD])


def test_evaluate_caches_result(manager):
    document_id = manager.create_document("Recipe", RECIPE)
    manager.set_sheet_configs(document_id, [WORD])

    assert manager.get_last_result(document_id) is None
    result = manager.evaluate(document_id)
    assert len(result.highlights) == 4
    assert manager.get_last_result(document_id) is result

    with pytest.raises(KeyError):
        manager.evaluate("doc-99")


def test_document_changed_reevaluates(manager):
    document_id = manager.create_document("Recipe", RECIPE)
    manager.set_sheet_configs(document_id, [WORD])
    manager.evaluate(document_id)

    result = manager.document_changed(document_id, "3 eggs\n")
    assert [h.span for h in result.highlights] == [(2, 6)]
    assert manager.get_document(document_id).name == "Recipe"


def test_apply_changes_remaps_cached_highlights(manager):
    document_id = manager.create_document("Recipe", RECIPE)
    manager.set_sheet_configs(document_id, [WORD])

    assert manager.apply_changes(document_id, ChangeSet.insert(0, "")) == []

    manager.evaluate(document_id)
    remapped = manager.apply_changes(document_id, ChangeSet.insert(0, "~"))
    assert [h.span for h in remapped] == [(3, 7), (8, 13), (16, 19), (20, 24)]
    assert manager.get_document(document_id).full_text() == "~" + RECIPE

    # Consecutive edits map from the already-remapped positions
    remapped = manager.apply_changes(document_id, ChangeSet.delete(0, 1))
    assert [h.span for h in remapped] == [(2, 6), (7, 12), (15, 18), (19, 23)]
    assert [h.span for h in manager.get_highlights(document_id)] == [(2, 6), (7, 12), (15, 18), (19, 23)]

    # The last full result described the old text
    assert manager.get_last_result(document_id) is None
    result = manager.document_changed(document_id)
    assert manager.get_last_result(document_id) is result
    assert manager.get_highlights(document_id) == result.highlights


def test_data_from_doc(manager, pantry):
    """Column values of another open document come back as text"""
    document_id = manager.create_document("Recipe", RECIPE)
    manager.set_sheet_configs(document_id, [
        make_sheet("s", "stock", ("item", 'DATA_FROM_DOC("Pantry", "item", "name")')),
        make_sheet("f", "found", ("ingredient", 'HIGHLIGHTS_OF(DATA_FROM_DOC("Pantry", "item", "name"))')),
    ])

    result = manager.evaluate(document_id)

    assert result.rows_by_sheet_id["s"] == [{"item": "flour"}, {"item": "sugar"}]
    assert [h.span for h in result.highlights] == [(7, 12)]


def test_data_from_doc_unknown_targets(manager, pantry):
    document_id = manager.create_document("Recipe", RECIPE)
    manager.set_sheet_configs(document_id, [
        make_sheet("s", "lookup",
                   ("missing_doc", '[DATA_FROM_DOC("Nope", "item", "name")]'),
                   ("missing_sheet", 'DATA_FROM_DOC("Pantry", "nope", "name")'),
                   ("missing_column", 'DATA_FROM_DOC("Pantry", "item", "nope")')),
    ])

    # The wrapping list fans out into a single row holding the empty result
    rows = manager.evaluate(document_id).rows_by_sheet_id["s"]
    assert rows == [{"missing_doc": [], "missing_sheet": [], "missing_column": []}]


def test_data_from_doc_self_reference(manager):
    document_id = manager.create_document("Loop", RECIPE)
    manager.set_sheet_configs(document_id, [make_sheet("s", "s", ("x", 'DATA_FROM_DOC("Loop", "s", "x")'))])

    value = manager.evaluate(document_id).rows_by_sheet_id["s"][0]["x"]
    assert isinstance(value, CellError)
    assert value.error_type == "CircularLookupError"
    assert "Loop -> Loop" in value.message


def test_data_from_doc_mutual_reference(manager):
    """Each document sees the other's cycle as an error cell, so neither yields values"""
    a = manager.create_document("A", RECIPE)
    b = manager.create_document("B", PANTRY)
    manager.set_sheet_configs(a, [make_sheet("s", "s", ("x", 'DATA_FROM_DOC("B", "s", "x")'))])
    manager.set_sheet_configs(b, [make_sheet("s", "s", ("x", 'DATA_FROM_DOC("A", "s", "x")'))])

    assert manager.evaluate(a).rows_by_sheet_id["s"] == []
    assert manager.evaluate(b).rows_by_sheet_id["s"] == []


def test_data_from_doc_depth_limit(manager):
    """A long chain of distinct documents stops at the nesting limit"""
    for i in range(12):
        document_id = manager.create_document(f"D{i}", "x")
        manager.set_sheet_configs(document_id, [
            make_sheet("s", "s", ("x", f'DATA_FROM_DOC("D{i + 1}", "s", "x")'), ("depth", f"{i}")),
        ])
    manager.create_document("D12", "x")

    result = manager.evaluate("doc-1")
    assert result.rows_by_sheet_id["s"] == []
