from __future__ import annotations

from typing import Any

from ..auth.providers import AuthContext, AuthError

try:
    from azure.mgmt.resourcegraph import ResourceGraphClient  # type: ignore
except Exception:  # pragma: no cover - surfaced in CLI validate
    ResourceGraphClient = None  # type: ignore

try:
    from azure.monitor.query import LogsQueryClient  # type: ignore
except Exception:  # pragma: no cover - surfaced when metrics are requested
    LogsQueryClient = None  # type: ignore


def get_resource_graph_client(ctx: AuthContext) -> Any:
    """
    Create a ResourceGraphClient bound to the resolved credential.
    """
    if ResourceGraphClient is None:  # pragma: no cover
        raise AuthError("azure-mgmt-resourcegraph not installed.")
    return ResourceGraphClient(ctx.credential)


def get_logs_query_client(ctx: AuthContext) -> Any:
    """
    Create a Log Analytics LogsQueryClient bound to the resolved credential.
    """
    if LogsQueryClient is None:  # pragma: no cover
        raise AuthError("azure-monitor-query not installed.")
    return LogsQueryClient(ctx.credential)
