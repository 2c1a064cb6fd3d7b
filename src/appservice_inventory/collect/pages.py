from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from ..util.errors import PageShapeError


class Shape(str, Enum):
    TABULAR = "tabular"
    LIST_LIKE = "list"


@dataclass(frozen=True)
class Column:
    name: str
    type: Optional[str] = None


@dataclass(frozen=True)
class TabularPage:
    """
    One backend page of rows sharing a column set (Resource Graph `table` format,
    Log Analytics tables).
    """

    columns: Tuple[Column, ...]
    rows: Sequence[Sequence[Any]]
    shape: Shape = field(default=Shape.TABULAR, init=False)

    @property
    def count(self) -> int:
        return len(self.rows)

    def column_names(self) -> Tuple[str, ...]:
        return tuple(c.name for c in self.columns)

    def as_items(self) -> List[Dict[str, Any]]:
        names = self.column_names()
        return [dict(zip(names, row)) for row in self.rows]


@dataclass(frozen=True)
class ListPage:
    """One backend page of heterogeneous records (Resource Graph `objectArray` format)."""

    items: Sequence[Any]
    shape: Shape = field(default=Shape.LIST_LIKE, init=False)

    @property
    def count(self) -> int:
        return len(self.items)

    def as_items(self) -> List[Any]:
        return list(self.items)


Page = Union[TabularPage, ListPage]


def _column_from_raw(raw: Any) -> Column:
    if isinstance(raw, Column):
        return raw
    if isinstance(raw, Mapping):
        return Column(name=str(raw.get("name")), type=raw.get("type"))
    if isinstance(raw, str):
        return Column(name=raw)
    name = getattr(raw, "name", None)
    if name is None:
        raise PageShapeError(f"Unrecognized column descriptor: {raw!r}")
    return Column(name=str(name), type=getattr(raw, "type", None))


def tabular_page(columns: Sequence[Any], rows: Sequence[Sequence[Any]]) -> TabularPage:
    return TabularPage(columns=tuple(_column_from_raw(c) for c in columns), rows=rows)


def page_from_data(data: Any) -> Page:
    """
    Build a Page from a raw backend payload: a mapping with `columns`/`rows` is
    tabular, a sequence is list-like.
    """
    if isinstance(data, Mapping):
        if "columns" not in data or "rows" not in data:
            raise PageShapeError("Tabular payload must carry both 'columns' and 'rows'")
        return tabular_page(data.get("columns") or [], data.get("rows") or [])
    if isinstance(data, (list, tuple)):
        return ListPage(items=data)
    raise PageShapeError(f"Unsupported page payload type: {type(data).__name__}")


@dataclass(frozen=True)
class MergedResultSet:
    shape: Shape
    columns: Tuple[Column, ...]
    records: Tuple[Any, ...]

    @property
    def count(self) -> int:
        return len(self.records)

    def column_names(self) -> List[str]:
        if self.shape is Shape.TABULAR:
            return [c.name for c in self.columns]
        # List-like records: union of keys in first-seen order
        seen: Dict[str, None] = {}
        for item in self.records:
            if isinstance(item, Mapping):
                for key in item.keys():
                    seen.setdefault(str(key), None)
            else:
                seen.setdefault("value", None)
        return list(seen)

    def as_dicts(self) -> Iterator[Dict[str, Any]]:
        if self.shape is Shape.TABULAR:
            names = [c.name for c in self.columns]
            for row in self.records:
                yield dict(zip(names, row))
            return
        for item in self.records:
            if isinstance(item, Mapping):
                yield dict(item)
            else:
                yield {"value": item}


class PageBuilder:
    """
    Accumulates the pages of one query run into a single MergedResultSet.

    `seed` takes an independent copy of the first page; `append` grows the same
    buffer in arrival order. Once any list-like page is involved the accumulator
    becomes list-like and tabular rows are carried over as column-keyed dicts.
    """

    def __init__(self) -> None:
        self._shape: Optional[Shape] = None
        self._columns: Tuple[Column, ...] = ()
        self._buffer: List[Any] = []
        self._pages = 0

    @property
    def seeded(self) -> bool:
        return self._shape is not None

    @property
    def pages(self) -> int:
        return self._pages

    @property
    def count(self) -> int:
        return len(self._buffer)

    def seed(self, page: Page) -> None:
        if self.seeded:
            raise RuntimeError("PageBuilder already seeded")
        if page.shape is Shape.TABULAR:
            self._columns = page.columns
            self._buffer = copy.deepcopy([list(row) for row in page.rows])
        else:
            self._buffer = list(page.items)
        self._shape = page.shape
        self._pages = 1

    def append(self, page: Page) -> None:
        if not self.seeded:
            raise RuntimeError("PageBuilder.append called before seed")
        if self._shape is Shape.TABULAR and page.shape is Shape.TABULAR:
            if page.column_names() != tuple(c.name for c in self._columns):
                raise PageShapeError(
                    f"Column set changed between pages: {list(page.column_names())} "
                    f"!= {[c.name for c in self._columns]}"
                )
            self._buffer.extend(list(row) for row in page.rows)
        else:
            if self._shape is Shape.TABULAR:
                names = [c.name for c in self._columns]
                self._buffer = [dict(zip(names, row)) for row in self._buffer]
                self._columns = ()
                self._shape = Shape.LIST_LIKE
            self._buffer.extend(page.as_items())
        self._pages += 1

    def finalize(self) -> Optional[MergedResultSet]:
        if self._shape is None:
            return None
        if self._shape is Shape.TABULAR:
            records: Tuple[Any, ...] = tuple(tuple(row) for row in self._buffer)
        else:
            records = tuple(self._buffer)
        return MergedResultSet(shape=self._shape, columns=self._columns, records=records)
