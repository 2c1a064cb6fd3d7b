from __future__ import annotations

import argparse
import json
import os
import warnings
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from .auth.providers import AUTH_METHODS
from .azure.graph import DEFAULT_RESULT_FORMAT, RESULT_FORMATS

# --------
# Defaults
# --------
DEFAULT_WORKBOOK_NAME = "appservice_inventory.xlsx"
DEFAULT_METRICS_DAYS = 7
ALLOWED_CONFIG_KEYS = {
    "output",
    "subscriptions",
    "tenant_id",
    "account_id",
    "workspace_id",
    "metrics_days",
    "result_format",
    "auth",
    "parquet",
    "progress",
    "json_logs",
    "log_level",
}
BOOL_CONFIG_KEYS = {"parquet", "progress", "json_logs"}
INT_CONFIG_KEYS = {"metrics_days"}
PATH_CONFIG_KEYS = {"output"}
STR_CONFIG_KEYS = {"tenant_id", "account_id", "workspace_id", "result_format", "auth", "log_level"}


@dataclass(frozen=True)
class RunConfig:
    # Output
    output: Path
    parquet: bool = False
    progress: bool = True
    json_logs: bool = False
    log_level: str = "INFO"

    # Scope
    subscriptions: Optional[Tuple[str, ...]] = None
    result_format: str = DEFAULT_RESULT_FORMAT

    # Metrics; a workspace id turns collection on
    workspace_id: Optional[str] = None
    metrics_days: int = DEFAULT_METRICS_DAYS

    # Auth
    auth: str = "auto"  # auto|cli|interactive|device_code
    tenant_id: Optional[str] = None
    account_id: Optional[str] = None  # login hint only

    # Internal/derived
    collected_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(timespec="seconds")
    )

    @property
    def outdir(self) -> Path:
        return self.output.parent

    @property
    def metrics_enabled(self) -> bool:
        return bool(self.workspace_id)


def _parse_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text) or {}
    except Exception as e:
        raise ValueError(f"Failed to parse config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Top-level config must be an object")
    return data


def _env_str(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None
    return raw


def _env_bool(name: str) -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip().lower()
    if not raw:
        return None
    return raw in {"1", "true", "yes", "on"}


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        raw = value.strip().lower()
        if raw in {"1", "true", "yes", "on"}:
            return True
        if raw in {"0", "false", "no", "off"}:
            return False
    raise ValueError(f"Config field '{key}' must be a boolean")


def _coerce_int(key: str, value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return int(value)
        except ValueError:
            pass
    raise ValueError(f"Config field '{key}' must be an integer")


def _split_list(value: Any, key: str) -> List[str]:
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return [v.strip() for v in value if v.strip()]
    raise ValueError(f"Config field '{key}' must be a list of strings or comma-separated string")


def _normalize_config_file(data: Dict[str, Any]) -> Dict[str, Any]:
    unknown = sorted(set(data.keys()) - ALLOWED_CONFIG_KEYS)
    if unknown:
        warnings.warn(f"Unknown config keys ignored: {', '.join(unknown)}")
    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in ALLOWED_CONFIG_KEYS:
            continue
        if value is None:
            normalized[key] = None
            continue
        if key == "subscriptions":
            normalized[key] = _split_list(value, key)
        elif key in BOOL_CONFIG_KEYS:
            normalized[key] = _coerce_bool(key, value)
        elif key in INT_CONFIG_KEYS:
            normalized[key] = _coerce_int(key, value)
        elif key in PATH_CONFIG_KEYS:
            if isinstance(value, (str, Path)):
                normalized[key] = value
            else:
                raise ValueError(f"Config field '{key}' must be a string path")
        elif key in STR_CONFIG_KEYS:
            if isinstance(value, str):
                normalized[key] = value
            else:
                raise ValueError(f"Config field '{key}' must be a string")
    return _compact_dict(normalized)


def _compact_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Drop keys with None values so they don't override lower-precedence config.
    """
    return {k: v for k, v in data.items() if v is not None}


def _merge_dicts(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    """
    Shallow merge: values in b override a.
    """
    merged = dict(a)
    merged.update(b)
    return merged


def _timestamp_dir(base: Optional[Union[str, Path]]) -> Path:
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    if base:
        return Path(base) / ts
    return Path("out") / ts


def resolve_output_path(raw: Optional[Union[str, Path]]) -> Path:
    """
    An explicit .xlsx path is used as-is; anything else is a base directory that
    gets a timestamped run folder holding the default workbook name.
    """
    if raw and Path(raw).suffix.lower() == ".xlsx":
        return Path(raw)
    return _timestamp_dir(raw) / DEFAULT_WORKBOOK_NAME


def _validate(merged: Dict[str, Any]) -> None:
    auth = str(merged.get("auth") or "auto").lower()
    if auth not in AUTH_METHODS:
        raise ValueError(f"Config field 'auth' must be one of: {', '.join(sorted(AUTH_METHODS))}")
    merged["auth"] = auth
    result_format = str(merged.get("result_format") or DEFAULT_RESULT_FORMAT)
    if result_format not in RESULT_FORMATS:
        raise ValueError(f"Config field 'result_format' must be one of: {', '.join(sorted(RESULT_FORMATS))}")
    merged["result_format"] = result_format
    days = int(merged.get("metrics_days") or DEFAULT_METRICS_DAYS)
    if days < 1:
        raise ValueError("Config field 'metrics_days' must be >= 1")
    merged["metrics_days"] = days


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="appsvc-inv", description="Azure App Service inventory CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # common flags builder
    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", type=Path, help="Optional YAML/JSON config file")
        p.add_argument(
            "--json-logs",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Enable JSON logs",
        )
        p.add_argument("--log-level", default=None, help="Log level (INFO, DEBUG, ...)")
        p.add_argument(
            "--auth",
            default=None,
            choices=sorted(AUTH_METHODS),
            help="Credential type (default: auto)",
        )
        p.add_argument("--tenant", dest="tenant_id", default=None, help="Entra tenant id")
        p.add_argument("--account", dest="account_id", default=None, help="Account used as sign-in hint")
        p.add_argument(
            "--subscriptions",
            default=None,
            help="Comma-separated subscription ids to scope every query (default: all visible)",
        )

    p_run = subparsers.add_parser("run", help="Collect the inventory and write the workbook")
    add_common(p_run)
    p_run.add_argument(
        "--output",
        default=None,
        help=f"Workbook path (.xlsx) or base directory (default: out/<TS>/{DEFAULT_WORKBOOK_NAME})",
    )
    p_run.add_argument(
        "--workspace-id",
        default=None,
        help="Log Analytics workspace id; enables the performance metrics tables",
    )
    p_run.add_argument(
        "--metrics-days",
        type=int,
        default=None,
        help=f"Metrics lookback in days (default {DEFAULT_METRICS_DAYS})",
    )
    p_run.add_argument(
        "--result-format",
        default=None,
        choices=sorted(RESULT_FORMATS),
        help=f"Resource Graph result format (default {DEFAULT_RESULT_FORMAT})",
    )
    p_run.add_argument(
        "--parquet",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Also write one Parquet file per table (pyarrow)",
    )
    p_run.add_argument(
        "--progress",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Show a progress bar and summary table (default: on)",
    )

    p_val = subparsers.add_parser("validate-auth", help="Validate authentication setup")
    add_common(p_val)

    p_subs = subparsers.add_parser("list-subscriptions", help="List subscriptions visible to Resource Graph")
    add_common(p_subs)

    p_q = subparsers.add_parser("list-queries", help="Print the table names and their queries")
    add_common(p_q)
    return parser


def load_run_config(
    args: Optional[argparse.Namespace] = None,
    argv: Optional[list[str]] = None,
    subcommand: Optional[str] = None,
) -> Tuple[str, RunConfig]:
    """
    Build RunConfig by merging defaults, optional config file, env vars, and CLI args.
    Precedence (low -> high): defaults < config file < env < CLI.

    Returns:
      (command, RunConfig) where command is one of: run|validate-auth|list-subscriptions|list-queries
    """
    ns = args if args is not None else build_parser().parse_args(argv)
    command = ns.command if subcommand is None else subcommand

    # defaults
    base: Dict[str, Any] = {
        "output": None,
        "subscriptions": None,
        "tenant_id": None,
        "account_id": None,
        "workspace_id": None,
        "metrics_days": DEFAULT_METRICS_DAYS,
        "result_format": DEFAULT_RESULT_FORMAT,
        "auth": "auto",
        "parquet": False,
        "progress": True,
        "json_logs": False,
        "log_level": "INFO",
    }

    # config file
    file_cfg: Dict[str, Any] = {}
    if getattr(ns, "config", None):
        file_cfg = _normalize_config_file(_parse_config_file(Path(ns.config)))

    # env
    env_cfg: Dict[str, Any] = _compact_dict(
        {
            "output": _env_str("APPSVC_INV_OUTPUT"),
            "subscriptions": _env_str("APPSVC_INV_SUBSCRIPTIONS"),
            "tenant_id": _env_str("AZURE_TENANT_ID"),
            "account_id": _env_str("APPSVC_INV_ACCOUNT"),
            "workspace_id": _env_str("APPSVC_INV_WORKSPACE_ID"),
            "metrics_days": _env_int("APPSVC_INV_METRICS_DAYS"),
            "result_format": _env_str("APPSVC_INV_RESULT_FORMAT"),
            "auth": _env_str("APPSVC_INV_AUTH"),
            "parquet": _env_bool("APPSVC_INV_PARQUET"),
            "progress": _env_bool("APPSVC_INV_PROGRESS"),
            "json_logs": _env_bool("APPSVC_INV_JSON_LOGS"),
            "log_level": _env_str("APPSVC_INV_LOG_LEVEL"),
        }
    )

    # CLI
    cli_cfg: Dict[str, Any] = _compact_dict(
        {
            "output": getattr(ns, "output", None),
            "subscriptions": getattr(ns, "subscriptions", None),
            "tenant_id": getattr(ns, "tenant_id", None),
            "account_id": getattr(ns, "account_id", None),
            "workspace_id": getattr(ns, "workspace_id", None),
            "metrics_days": getattr(ns, "metrics_days", None),
            "result_format": getattr(ns, "result_format", None),
            "auth": getattr(ns, "auth", None),
            "parquet": getattr(ns, "parquet", None),
            "progress": getattr(ns, "progress", None),
            "json_logs": getattr(ns, "json_logs", None),
            "log_level": getattr(ns, "log_level", None),
        }
    )

    merged = _merge_dicts(base, _merge_dicts(file_cfg, _merge_dicts(env_cfg, cli_cfg)))
    _validate(merged)

    subs_raw = merged.get("subscriptions")
    subscriptions = _split_list(subs_raw, "subscriptions") if subs_raw else []
    tenant = merged.get("tenant_id")
    account = merged.get("account_id")
    workspace = merged.get("workspace_id")

    cfg = RunConfig(
        output=resolve_output_path(merged.get("output")),
        parquet=bool(merged["parquet"]),
        progress=bool(merged["progress"]),
        json_logs=bool(merged["json_logs"]),
        log_level=(merged.get("log_level") or "INFO").upper(),
        subscriptions=tuple(subscriptions) or None,
        result_format=merged["result_format"],
        workspace_id=str(workspace).strip() if workspace else None,
        metrics_days=merged["metrics_days"],
        auth=merged["auth"],
        tenant_id=str(tenant) if tenant else None,
        account_id=str(account) if account else None,
    )
    return command, cfg


def dump_config(cfg: RunConfig) -> Dict[str, Any]:
    return {
        "output": str(cfg.output),
        "parquet": cfg.parquet,
        "progress": cfg.progress,
        "json_logs": cfg.json_logs,
        "log_level": cfg.log_level,
        "subscriptions": list(cfg.subscriptions) if cfg.subscriptions else None,
        "result_format": cfg.result_format,
        "workspace_id": cfg.workspace_id,
        "metrics_days": cfg.metrics_days,
        "auth": cfg.auth,
        "tenant_id": cfg.tenant_id,
        "account_id": cfg.account_id,
        "collected_at": cfg.collected_at,
    }
