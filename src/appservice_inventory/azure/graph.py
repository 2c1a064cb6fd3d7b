from __future__ import annotations

from typing import Any, Callable, Optional, Sequence

from ..collect.merger import PAGE_SIZE
from ..collect.pages import Page, page_from_data
from ..collect.queries import QueryDescriptor
from ..logging import get_logger
from ..util.errors import AzureClientError, NoPageError, is_azure_error, is_permission_error

try:
    from azure.mgmt.resourcegraph.models import QueryRequest, QueryRequestOptions  # type: ignore
except Exception:  # pragma: no cover
    QueryRequest = None  # type: ignore
    QueryRequestOptions = None  # type: ignore

LOG = get_logger(__name__)

RESULT_FORMATS = {"table", "objectArray"}
DEFAULT_RESULT_FORMAT = "table"


def build_request(
    descriptor: QueryDescriptor,
    *,
    skip: int,
    top: int,
    subscriptions: Optional[Sequence[str]] = None,
    result_format: str = DEFAULT_RESULT_FORMAT,
) -> Any:
    if QueryRequest is None or QueryRequestOptions is None:  # pragma: no cover
        raise AzureClientError("azure-mgmt-resourcegraph not installed.")
    options = QueryRequestOptions(skip=skip, top=top, result_format=result_format)
    return QueryRequest(
        subscriptions=list(subscriptions) if subscriptions else None,
        query=descriptor.query,
        options=options,
    )


def execute_page(
    client: Any,
    descriptor: QueryDescriptor,
    *,
    skip: int,
    top: int = PAGE_SIZE,
    subscriptions: Optional[Sequence[str]] = None,
    result_format: str = DEFAULT_RESULT_FORMAT,
) -> Optional[Page]:
    """
    Send one (query, skip, top) request to Resource Graph and return the page.

    Returns None when the service answers without a data payload. Azure errors are
    logged and raised as NoPageError so the caller can stop paginating this query
    without affecting the others.
    """
    if skip < 0:
        raise ValueError("skip must be >= 0")
    if top < 1:
        raise ValueError("top must be a positive integer")
    if result_format not in RESULT_FORMATS:
        raise ValueError(f"result_format must be one of: {', '.join(sorted(RESULT_FORMATS))}")

    request = build_request(
        descriptor, skip=skip, top=top, subscriptions=subscriptions, result_format=result_format
    )
    try:
        response = client.resources(request)
    except Exception as e:
        if not is_azure_error(e):
            raise
        denied = is_permission_error(e)
        LOG.warning(
            "Resource Graph request failed",
            extra={
                "step": "query",
                "phase": "warning",
                "table": descriptor.name,
                "skip": skip,
                "denied": denied,
                "error": str(e),
            },
        )
        raise NoPageError(f"Resource Graph request failed for {descriptor.name}: {e}", denied=denied) from e

    data = getattr(response, "data", None) if response is not None else None
    if data is None:
        LOG.warning(
            "Resource Graph returned no data",
            extra={"step": "query", "phase": "warning", "table": descriptor.name, "skip": skip},
        )
        return None
    return page_from_data(data)


def make_graph_runner(
    client: Any,
    *,
    subscriptions: Optional[Sequence[str]] = None,
    result_format: str = DEFAULT_RESULT_FORMAT,
    top: int = PAGE_SIZE,
) -> Callable[[QueryDescriptor, int], Optional[Page]]:
    """
    Bind the client and run-wide options, leaving (descriptor, skip) for the orchestrator.
    """
    scope = tuple(subscriptions) if subscriptions else None

    def run(descriptor: QueryDescriptor, skip: int) -> Optional[Page]:
        return execute_page(
            client,
            descriptor,
            skip=skip,
            top=top,
            subscriptions=scope,
            result_format=result_format,
        )

    return run
