from __future__ import annotations

import pytest

from appservice_inventory.collect.pages import (
    ListPage,
    PageBuilder,
    Shape,
    TabularPage,
    page_from_data,
    tabular_page,
)
from appservice_inventory.util.errors import PageShapeError

COLUMNS = [{"name": "name", "type": "string"}, {"name": "properties", "type": "object"}]


def test_page_from_data_detects_shape() -> None:
    tab = page_from_data({"columns": COLUMNS, "rows": [["a", {}], ["b", {}]]})
    lst = page_from_data([{"name": "a"}, {"name": "b"}, {"name": "c"}])

    assert isinstance(tab, TabularPage)
    assert tab.shape is Shape.TABULAR
    assert tab.count == 2
    assert tab.column_names() == ("name", "properties")
    assert isinstance(lst, ListPage)
    assert lst.shape is Shape.LIST_LIKE
    assert lst.count == 3


def test_page_from_data_rejects_unknown_payloads() -> None:
    with pytest.raises(PageShapeError):
        page_from_data("not a page")
    with pytest.raises(PageShapeError):
        page_from_data({"rows": []})


def test_seed_copies_tabular_rows() -> None:
    backend_rows = [["app-1", {"state": "Running"}]]
    page = tabular_page(COLUMNS, backend_rows)

    builder = PageBuilder()
    builder.seed(page)
    backend_rows[0][1]["state"] = "Stopped"
    backend_rows.append(["app-2", {}])

    result = builder.finalize()
    assert result is not None
    assert result.count == 1
    assert result.records[0][1] == {"state": "Running"}


def test_tabular_pages_append_in_order_with_same_columns() -> None:
    builder = PageBuilder()
    builder.seed(tabular_page(COLUMNS, [["a", None], ["b", None]]))
    builder.append(tabular_page(COLUMNS, [["c", None]]))

    result = builder.finalize()
    assert result is not None
    assert result.shape is Shape.TABULAR
    assert result.column_names() == ["name", "properties"]
    assert result.count == 3
    assert [row[0] for row in result.records] == ["a", "b", "c"]
    assert builder.pages == 2


def test_tabular_append_rejects_changed_columns() -> None:
    builder = PageBuilder()
    builder.seed(tabular_page(COLUMNS, [["a", None]]))
    with pytest.raises(PageShapeError):
        builder.append(tabular_page([{"name": "other"}], [["x"]]))


def test_list_pages_concatenate_in_arrival_order() -> None:
    builder = PageBuilder()
    builder.seed(ListPage(items=[{"n": 1}, {"n": 2}, {"n": 3}]))
    builder.append(ListPage(items=[{"n": 4}, {"n": 5}]))

    result = builder.finalize()
    assert result is not None
    assert result.shape is Shape.LIST_LIKE
    assert [r["n"] for r in result.records] == [1, 2, 3, 4, 5]


def test_mixed_pages_become_list_like() -> None:
    builder = PageBuilder()
    builder.seed(tabular_page([{"name": "n"}], [[1], [2]]))
    builder.append(ListPage(items=[{"n": 3}]))
    builder.append(tabular_page([{"name": "n"}], [[4]]))

    result = builder.finalize()
    assert result is not None
    assert result.shape is Shape.LIST_LIKE
    assert list(result.as_dicts()) == [{"n": 1}, {"n": 2}, {"n": 3}, {"n": 4}]


def test_list_like_column_names_are_union_in_first_seen_order() -> None:
    builder = PageBuilder()
    builder.seed(ListPage(items=[{"b": 1, "a": 2}, {"c": 3}, "scalar"]))
    result = builder.finalize()

    assert result is not None
    assert result.column_names() == ["b", "a", "c", "value"]
    assert list(result.as_dicts())[2] == {"value": "scalar"}


def test_builder_contract() -> None:
    builder = PageBuilder()
    assert builder.finalize() is None
    with pytest.raises(RuntimeError):
        builder.append(ListPage(items=[]))
    builder.seed(ListPage(items=[]))
    with pytest.raises(RuntimeError):
        builder.seed(ListPage(items=[]))
