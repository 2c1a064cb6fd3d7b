from __future__ import annotations

from types import SimpleNamespace

import pytest

from appservice_inventory.util.pagination import iter_offset_pages


def test_iter_offset_pages_advances_until_short_page() -> None:
    calls = []
    sizes = {0: 3, 3: 3, 6: 1}

    def fetch(skip):
        calls.append(skip)
        return SimpleNamespace(count=sizes[skip])

    pages = list(iter_offset_pages(fetch, 3))
    assert [p.count for p in pages] == [3, 3, 1]
    assert calls == [0, 3, 6]


def test_iter_offset_pages_stops_on_none() -> None:
    calls = []

    def fetch(skip):
        calls.append(skip)
        return SimpleNamespace(count=2) if skip == 0 else None

    assert len(list(iter_offset_pages(fetch, 2))) == 1
    assert calls == [0, 2]


def test_iter_offset_pages_rejects_bad_page_size() -> None:
    with pytest.raises(ValueError):
        list(iter_offset_pages(lambda skip: None, 0))
