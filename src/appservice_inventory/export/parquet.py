from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, List, Sequence

from ..collect.results import NamedTable
from ..logging import get_logger
from ..util.serialization import stable_json_dumps

LOG = get_logger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


class ParquetNotAvailable(RuntimeError):
    pass


def _require_pyarrow():
    try:
        import pyarrow as pa  # type: ignore
        import pyarrow.parquet as pq  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ParquetNotAvailable(
            "pyarrow is required for Parquet export. Install with: pip install .[parquet]"
        ) from e
    return pa, pq


def _flatten_value(value: Any) -> Any:
    # Nested Resource Graph properties vary per row; keep them as JSON text
    if isinstance(value, (dict, list, tuple, set)):
        if not value:
            return None
        return stable_json_dumps(value)
    return value


def _table_rows(table: NamedTable) -> List[Dict[str, Any]]:
    result = table.result
    if result is None:
        return []
    headers = result.column_names()
    return [{h: _flatten_value(record.get(h)) for h in headers} for record in result.as_dicts()]


def write_parquet_tables(tables: Sequence[NamedTable], outdir: Path) -> List[Path]:
    """
    Write one Parquet file per present table. Column types are inferred by pyarrow;
    a column whose values cannot be unified is written as text.
    """
    pa, pq = _require_pyarrow()
    outdir.mkdir(parents=True, exist_ok=True)
    paths: List[Path] = []
    for table in tables:
        if not table.present:
            continue
        rows = _table_rows(table)
        try:
            arrow_table = pa.Table.from_pylist(rows)
        except (pa.ArrowInvalid, pa.ArrowTypeError) as exc:
            LOG.warning(
                "Parquet type inference failed; writing all columns as text",
                extra={"step": "export", "phase": "warning", "table": table.name, "error": str(exc)},
            )
            rows = [{k: (None if v is None else str(v)) for k, v in row.items()} for row in rows]
            arrow_table = pa.Table.from_pylist(rows)
        path = outdir / f"{_UNSAFE_FILENAME_CHARS.sub('_', table.name)}.parquet"
        pq.write_table(arrow_table, path)
        paths.append(path)
        LOG.info(
            "Wrote parquet table",
            extra={"step": "export", "phase": "complete", "table": table.name, "count": len(rows)},
        )
    return paths
