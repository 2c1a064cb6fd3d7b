from __future__ import annotations

from typing import Callable, List, Optional

from ..logging import get_logger
from ..util.errors import NoPageError, PageShapeError
from ..util.pagination import iter_offset_pages
from .pages import Page, PageBuilder
from .results import QueryOutcome, QueryStatus

LOG = get_logger(__name__)

PAGE_SIZE = 1000


def merge_query(
    fetch: Callable[[int], Optional[Page]],
    *,
    name: str,
    page_size: int = PAGE_SIZE,
) -> QueryOutcome:
    """
    Drive fetch(skip) until the query is exhausted and merge every page into one
    result set.

    A page shorter than page_size ends the run normally. A missing page (None or
    NoPageError from the executor) ends it early; whatever was merged so far is
    kept and the outcome records why the run stopped. A page whose shape does not
    fit the pages before it ends the query with ERROR.
    """
    builder = PageBuilder()
    stopped: List[QueryStatus] = []
    errors: List[str] = []

    def _fetch(skip: int) -> Optional[Page]:
        try:
            page = fetch(skip)
        except NoPageError as e:
            stopped.append(QueryStatus.DENIED if e.denied else QueryStatus.NO_DATA)
            errors.append(str(e))
            return None
        if page is None:
            stopped.append(QueryStatus.NO_DATA)
        return page

    LOG.info("Query started", extra={"step": "query", "phase": "start", "table": name})
    try:
        for page in iter_offset_pages(_fetch, page_size):
            if builder.seeded:
                builder.append(page)
            else:
                builder.seed(page)
            LOG.debug(
                "Merged page",
                extra={"step": "query", "phase": "page", "table": name, "page": builder.pages, "count": page.count},
            )
    except PageShapeError as e:
        LOG.warning(
            "Query stopped on an unexpected page shape",
            extra={
                "step": "query",
                "phase": "error",
                "table": name,
                "count": builder.count,
                "error": str(e),
            },
        )
        return QueryOutcome(status=QueryStatus.ERROR, result=builder.finalize(), error=str(e), pages=builder.pages)

    result = builder.finalize()
    error = errors[0] if errors else None

    if stopped:
        status = stopped[0]
        if status is QueryStatus.NO_DATA and builder.pages > 0:
            status = QueryStatus.PARTIAL
        LOG.warning(
            "Query ended without a page from the backend",
            extra={
                "step": "query",
                "phase": "warning",
                "table": name,
                "status": status.value,
                "count": builder.count,
                "error": error,
            },
        )
        return QueryOutcome(status=status, result=result, error=error, pages=builder.pages)

    status = QueryStatus.OK if builder.count > 0 else QueryStatus.EMPTY
    LOG.info(
        "Query complete",
        extra={
            "step": "query",
            "phase": "complete",
            "table": name,
            "count": builder.count,
            "pages": builder.pages,
        },
    )
    return QueryOutcome(status=status, result=result, pages=builder.pages)
