from __future__ import annotations

import logging
import sys
from datetime import datetime, timedelta, timezone
from time import perf_counter
from typing import Any, Dict, List, Optional

from .auth.providers import AuthContext, AuthError, ensure_token, resolve_auth
from .azure.clients import get_logs_query_client, get_resource_graph_client
from .azure.graph import make_graph_runner
from .collect.merger import merge_query
from .collect.orchestrator import collect_tables, table_names
from .collect.queries import INVENTORY_QUERIES, METRICS_QUERIES, SUBSCRIPTIONS
from .config import RunConfig, load_run_config
from .logging import LogConfig, add_run_log_file, get_logger, setup_logging
from .util.errors import AuthResolutionError, AzureClientError, ConfigError, ExportError, NoPageError, as_exit_code

LOG = get_logger(__name__)


class _StepTimers:
    def __init__(self) -> None:
        self._starts: Dict[str, float] = {}

    def start(self, key: str) -> None:
        self._starts[key] = perf_counter()

    def finish(self, key: str) -> Optional[int]:
        started = self._starts.pop(key, None)
        if started is None:
            return None
        return int((perf_counter() - started) * 1000)


def _log_event(
    logger: Any,
    level: int,
    message: str,
    *,
    step: str,
    phase: str,
    timers: Optional[_StepTimers] = None,
    timer_key: Optional[str] = None,
    **extra: Any,
) -> None:
    key = timer_key or step
    duration_ms = None
    if timers is not None:
        if phase == "start":
            timers.start(key)
        elif phase in {"complete", "error", "warning", "skipped"}:
            duration_ms = timers.finish(key)
    payload: Dict[str, Any] = {"step": step, "phase": phase, "event": f"{step}.{phase}"}
    if duration_ms is not None:
        payload["duration_ms"] = duration_ms
    payload.update(extra)
    logger.log(level, message, extra=payload)


def _resolve_auth(cfg: RunConfig) -> AuthContext:
    try:
        ctx = resolve_auth(cfg.auth, cfg.tenant_id, cfg.account_id)
        ensure_token(ctx)
    except AuthError as e:
        raise AuthResolutionError(str(e)) from e
    return ctx


def cmd_run(cfg: RunConfig) -> int:
    from .export.parquet import write_parquet_tables
    from .export.xlsx import write_workbook
    from .report import run_status, table_summaries, write_run_summary
    from .util.rich_progress import RunProgress, render_run_summary_table

    cfg.outdir.mkdir(parents=True, exist_ok=True)
    add_run_log_file(cfg.outdir / "run.log")
    started_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
    timers = _StepTimers()

    _log_event(
        LOG,
        logging.INFO,
        "Starting inventory run",
        step="run",
        phase="start",
        timers=timers,
        output=str(cfg.output),
        metrics=cfg.metrics_enabled,
    )

    _log_event(LOG, logging.INFO, "Authentication started", step="auth", phase="start", timers=timers, method=cfg.auth)
    ctx = _resolve_auth(cfg)
    graph_client = get_resource_graph_client(ctx)
    logs_client = get_logs_query_client(ctx) if cfg.metrics_enabled else None
    _log_event(LOG, logging.INFO, "Authentication resolved", step="auth", phase="complete", timers=timers, method=ctx.method)

    run_query = make_graph_runner(
        graph_client,
        subscriptions=cfg.subscriptions,
        result_format=cfg.result_format,
    )

    _log_event(LOG, logging.INFO, "Collection started", step="collect", phase="start", timers=timers)
    with RunProgress(enabled=cfg.progress) as progress:
        progress.start_collection(table_names())
        tables = collect_tables(
            run_query,
            logs_client,
            workspace_id=cfg.workspace_id,
            metrics_timespan=timedelta(days=cfg.metrics_days),
            progress=progress,
        )
    status = run_status(tables)
    _log_event(
        LOG,
        logging.INFO if status == "OK" else logging.WARNING,
        "Collection complete",
        step="collect",
        phase="complete",
        timers=timers,
        present=[t.name for t in tables if t.present],
        skipped=[t.name for t in tables if not t.present],
    )

    _log_event(LOG, logging.INFO, "Export started", step="export", phase="start", timers=timers)
    workbook, sheets = write_workbook(tables, cfg.output)
    artifacts = []
    if cfg.parquet:
        artifacts = write_parquet_tables(tables, cfg.outdir / "parquet")
    _log_event(
        LOG,
        logging.INFO,
        "Export complete",
        step="export",
        phase="complete",
        timers=timers,
        workbook=str(workbook) if workbook else None,
        sheets=sheets,
    )

    finished_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
    try:
        write_run_summary(
            cfg.outdir,
            cfg,
            tables,
            status=status,
            started_at=started_at,
            finished_at=finished_at,
            workbook=workbook,
            sheets=sheets,
            extra_artifacts=artifacts,
        )
    except OSError as e:
        raise ExportError(f"Failed to write run summary: {e}") from e

    render_run_summary_table(
        enabled=cfg.progress,
        status=status,
        tables=table_summaries(tables),
        output=str(workbook) if workbook else None,
    )
    _log_event(LOG, logging.INFO, "Inventory run finished", step="run", phase="complete", timers=timers, status=status)
    return 0


def cmd_validate_auth(cfg: RunConfig) -> int:
    ctx = _resolve_auth(cfg)
    run_query = make_graph_runner(get_resource_graph_client(ctx), subscriptions=cfg.subscriptions)
    try:
        page = run_query(SUBSCRIPTIONS, 0)
    except NoPageError as e:
        if e.denied:
            raise AuthResolutionError(f"Credential was refused by Resource Graph: {e}") from e
        raise AzureClientError(f"Resource Graph check failed: {e}") from e
    visible = page.count if page is not None else 0
    LOG.info(
        "Authentication validated",
        extra={"method": ctx.method, "tenant_id": cfg.tenant_id, "subscriptions": visible},
    )
    # Print to stdout a concise success message (no secrets)
    print(f"OK: {ctx.method} credential can query Resource Graph ({visible} subscriptions visible)")
    return 0


def cmd_list_subscriptions(cfg: RunConfig) -> int:
    ctx = _resolve_auth(cfg)
    run_query = make_graph_runner(get_resource_graph_client(ctx), subscriptions=cfg.subscriptions)
    outcome = merge_query(lambda skip: run_query(SUBSCRIPTIONS, skip), name=SUBSCRIPTIONS.name)
    if outcome.result is None:
        print(f"No subscriptions returned ({outcome.status.value})", file=sys.stderr)
        return 0
    for rec in outcome.result.as_dicts():
        print(f'{rec.get("subscriptionId")},{rec.get("name")},{rec.get("state")}')
    return 0


def cmd_list_queries(cfg: RunConfig) -> int:
    sections: List[str] = []
    for descriptor in INVENTORY_QUERIES:
        sections.append(f"## {descriptor.name} (Resource Graph)\n{descriptor.query}\n")
    for descriptor in METRICS_QUERIES:
        sections.append(f"## {descriptor.name} (Log Analytics)\n{descriptor.query}\n")
    print("\n".join(sections))
    return 0


def main() -> None:
    try:
        command, cfg = load_run_config()
        setup_logging(LogConfig(level=cfg.log_level, json_logs=cfg.json_logs))

        if command == "run":
            code = cmd_run(cfg)
        elif command == "validate-auth":
            code = cmd_validate_auth(cfg)
        elif command == "list-subscriptions":
            code = cmd_list_subscriptions(cfg)
        elif command == "list-queries":
            code = cmd_list_queries(cfg)
        else:
            raise ConfigError(f"Unknown command: {command}")

        sys.exit(code)
    except SystemExit:
        raise
    except BrokenPipeError:
        # Common when users pipe to `head` or similar tools.
        sys.exit(0)
    except Exception as e:
        setup_logging(LogConfig())  # no-op when already configured
        LOG.error("Execution failed", extra={"error": str(e)})
        sys.exit(as_exit_code(e))


if __name__ == "__main__":
    main()
