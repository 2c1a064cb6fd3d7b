from __future__ import annotations

from datetime import timedelta
from typing import Any, Callable, List, Optional, Sequence, Tuple

from ..logging import get_logger
from .merger import PAGE_SIZE, merge_query
from .metrics import DEFAULT_METRICS_TIMESPAN, fetch_metrics
from .pages import Page
from .queries import INVENTORY_QUERIES, METRICS_QUERIES, QueryDescriptor
from .results import NamedTable

LOG = get_logger(__name__)

QueryRunner = Callable[[QueryDescriptor, int], Optional[Page]]


def _bind(run_query: QueryRunner, descriptor: QueryDescriptor) -> Callable[[int], Optional[Page]]:
    def fetch(skip: int) -> Optional[Page]:
        return run_query(descriptor, skip)

    return fetch


def table_names(
    inventory_queries: Sequence[QueryDescriptor] = INVENTORY_QUERIES,
    metrics_queries: Sequence[QueryDescriptor] = METRICS_QUERIES,
) -> List[str]:
    return [d.name for d in inventory_queries] + [d.name for d in metrics_queries]


def collect_tables(
    run_query: QueryRunner,
    logs_client: Any = None,
    *,
    workspace_id: Optional[str] = None,
    metrics_timespan: timedelta = DEFAULT_METRICS_TIMESPAN,
    page_size: int = PAGE_SIZE,
    inventory_queries: Sequence[QueryDescriptor] = INVENTORY_QUERIES,
    metrics_queries: Sequence[QueryDescriptor] = METRICS_QUERIES,
    progress: Any = None,
) -> Tuple[NamedTable, ...]:
    """
    Run the inventory queries, then the metrics queries, one at a time and in
    order. Every descriptor yields exactly one NamedTable, present or not, so the
    caller sees each label in its fixed position.
    """
    tables: List[NamedTable] = []

    for descriptor in inventory_queries:
        outcome = merge_query(_bind(run_query, descriptor), name=descriptor.name, page_size=page_size)
        tables.append(NamedTable(name=descriptor.name, outcome=outcome))
        if progress is not None:
            progress.advance(descriptor.name, count=outcome.count)

    if not workspace_id:
        LOG.info(
            "No Log Analytics workspace configured; metrics collection skipped",
            extra={"step": "metrics", "phase": "skipped"},
        )
    for descriptor in metrics_queries:
        outcome = fetch_metrics(logs_client, workspace_id, descriptor, timespan=metrics_timespan)
        tables.append(NamedTable(name=descriptor.name, outcome=outcome))
        if progress is not None:
            progress.advance(descriptor.name, count=outcome.count)

    return tuple(tables)
