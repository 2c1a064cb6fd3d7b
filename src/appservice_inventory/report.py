from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .collect.results import DEGRADED_STATUSES, NamedTable
from .config import RunConfig, dump_config

RUN_SUMMARY_NAME = "run_summary.json"


def run_status(tables: Sequence[NamedTable]) -> str:
    """
    OK when every executed query finished normally, PARTIAL when at least one was
    cut short or refused. Empty and not-run tables do not degrade the run.
    """
    if any(t.outcome.status in DEGRADED_STATUSES for t in tables):
        return "PARTIAL"
    return "OK"


def table_summaries(tables: Sequence[NamedTable]) -> List[Dict[str, Any]]:
    return [t.summary() for t in tables]


def write_run_summary(
    outdir: Path,
    cfg: RunConfig,
    tables: Sequence[NamedTable],
    *,
    status: str,
    started_at: str,
    finished_at: str,
    workbook: Optional[Path],
    sheets: Sequence[str],
    extra_artifacts: Sequence[Path] = (),
) -> Path:
    outdir.mkdir(parents=True, exist_ok=True)
    payload: Dict[str, Any] = {
        "status": status,
        "started_at": started_at,
        "finished_at": finished_at,
        "config": dump_config(cfg),
        "workbook": str(workbook) if workbook else None,
        "sheets": list(sheets),
        "tables": table_summaries(tables),
        "artifacts": [str(p) for p in extra_artifacts],
    }
    path = outdir / RUN_SUMMARY_NAME
    path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    return path
