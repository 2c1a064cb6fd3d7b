from __future__ import annotations

from datetime import timedelta
from typing import Any, Optional, Sequence

from ..logging import get_logger
from ..util.errors import is_azure_error, is_permission_error
from .pages import PageBuilder, tabular_page
from .queries import QueryDescriptor
from .results import QueryOutcome, QueryStatus

LOG = get_logger(__name__)

DEFAULT_METRICS_TIMESPAN = timedelta(days=7)

DENIED_HINT = (
    "Grant the signed-in identity 'Log Analytics Reader' on the workspace "
    "and confirm the workspace id (a GUID, not the resource id)."
)
ERROR_HINT = "Check the workspace id and that App Service diagnostic metrics are routed to it."


def _status_name(response: Any) -> str:
    status = getattr(response, "status", None)
    return str(getattr(status, "name", status) or "").upper()


def _response_tables(response: Any) -> Sequence[Any]:
    if response is None:
        return []
    if _status_name(response) == "PARTIAL":
        LOG.warning(
            "Log Analytics returned partial results",
            extra={"step": "metrics", "phase": "warning", "error": str(getattr(response, "partial_error", ""))},
        )
        return getattr(response, "partial_data", None) or []
    return getattr(response, "tables", None) or []


def fetch_metrics(
    client: Any,
    workspace_id: Optional[str],
    descriptor: QueryDescriptor,
    *,
    timespan: timedelta = DEFAULT_METRICS_TIMESPAN,
) -> QueryOutcome:
    """
    Run one Log Analytics query; never raises for backend errors.

    Without a workspace id the backend is not contacted. Permission and other
    Azure errors are reported once as a warning and produce an outcome without a
    result, so the remaining queries still run.
    """
    if not workspace_id:
        return QueryOutcome.not_run()
    if client is None:
        raise ValueError("A LogsQueryClient is required when a workspace id is configured")

    LOG.info("Metrics query started", extra={"step": "metrics", "phase": "start", "table": descriptor.name})
    try:
        response = client.query_workspace(workspace_id, descriptor.query, timespan=timespan)
    except Exception as e:
        if not is_azure_error(e):
            raise
        denied = is_permission_error(e)
        hint = DENIED_HINT if denied else ERROR_HINT
        LOG.warning(
            f"Metrics query failed; continuing without it. {hint}",
            extra={
                "step": "metrics",
                "phase": "warning",
                "table": descriptor.name,
                "denied": denied,
                "error": str(e),
            },
        )
        return QueryOutcome(status=QueryStatus.DENIED if denied else QueryStatus.ERROR, error=str(e))

    tables = _response_tables(response)
    if not tables:
        LOG.info("Metrics query returned nothing", extra={"step": "metrics", "phase": "skipped", "table": descriptor.name})
        return QueryOutcome(status=QueryStatus.EMPTY)

    # A single summarize produces one primary table
    primary = tables[0]
    columns = list(getattr(primary, "columns", None) or [])
    column_types = list(getattr(primary, "columns_types", None) or [])
    typed_columns = [
        {"name": str(name), "type": str(column_types[idx]) if idx < len(column_types) else None}
        for idx, name in enumerate(columns)
    ]
    rows = [list(row) for row in (getattr(primary, "rows", None) or [])]

    builder = PageBuilder()
    builder.seed(tabular_page(typed_columns, rows))
    result = builder.finalize()
    status = QueryStatus.OK if builder.count > 0 else QueryStatus.EMPTY
    LOG.info(
        "Metrics query complete",
        extra={"step": "metrics", "phase": "complete", "table": descriptor.name, "count": builder.count},
    )
    return QueryOutcome(status=status, result=result, pages=1)
