from __future__ import annotations

from typing import Callable, Generator, Optional, Protocol, TypeVar


class _Counted(Protocol):
    @property
    def count(self) -> int: ...


P = TypeVar("P", bound=_Counted)


def iter_offset_pages(
    fetch: Callable[[int], Optional[P]],
    page_size: int,
) -> Generator[P, None, None]:
    """
    Generic skip/top paginator yielding pages from a fetch(skip) function.
    Stops when fetch returns None or when a page holds fewer than page_size
    entries; otherwise the next request starts page_size entries further on.
    """
    if page_size < 1:
        raise ValueError("page_size must be a positive integer")
    skip = 0
    while True:
        page = fetch(skip)
        if page is None:
            return
        yield page
        if page.count < page_size:
            return
        skip += page_size
