from __future__ import annotations

from pathlib import Path

import pytest

from appservice_inventory.config import (
    DEFAULT_METRICS_DAYS,
    DEFAULT_WORKBOOK_NAME,
    RunConfig,
    dump_config,
    load_run_config,
)

ENV_VARS = (
    "APPSVC_INV_OUTPUT",
    "APPSVC_INV_SUBSCRIPTIONS",
    "APPSVC_INV_WORKSPACE_ID",
    "APPSVC_INV_METRICS_DAYS",
    "APPSVC_INV_AUTH",
    "APPSVC_INV_PARQUET",
    "APPSVC_INV_PROGRESS",
    "AZURE_TENANT_ID",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    command, cfg = load_run_config(argv=["run"])
    assert command == "run"
    assert isinstance(cfg, RunConfig)
    assert cfg.output.name == DEFAULT_WORKBOOK_NAME
    assert cfg.output.parent.parent == Path("out")
    assert cfg.subscriptions is None
    assert cfg.workspace_id is None
    assert cfg.metrics_enabled is False
    assert cfg.metrics_days == DEFAULT_METRICS_DAYS
    assert cfg.result_format == "table"
    assert cfg.auth == "auto"
    assert cfg.progress is True
    assert cfg.parquet is False


def test_explicit_xlsx_output_is_used_as_is(tmp_path) -> None:
    target = tmp_path / "report.xlsx"
    _, cfg = load_run_config(argv=["run", "--output", str(target)])
    assert cfg.output == target
    assert cfg.outdir == tmp_path


def test_output_directory_gets_timestamped_run_folder(tmp_path) -> None:
    _, cfg = load_run_config(argv=["run", "--output", str(tmp_path)])
    assert cfg.output.parent.parent == tmp_path
    assert len(cfg.output.parent.name) == 16
    assert cfg.output.parent.name.endswith("Z")


def test_subscriptions_and_workspace_from_cli() -> None:
    _, cfg = load_run_config(
        argv=["run", "--subscriptions", "sub-a, sub-b,,", "--workspace-id", "ws-1", "--metrics-days", "3"]
    )
    assert cfg.subscriptions == ("sub-a", "sub-b")
    assert cfg.workspace_id == "ws-1"
    assert cfg.metrics_enabled is True
    assert cfg.metrics_days == 3


def test_env_overrides_config_file_and_cli_overrides_env(monkeypatch, tmp_path) -> None:
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text(
        "workspace_id: from-config\nsubscriptions: [s1, s2]\nparquet: true\nmetrics_days: 14\n",
        encoding="utf-8",
    )
    _, from_file = load_run_config(argv=["run", "--config", str(cfg_path)])
    assert from_file.workspace_id == "from-config"
    assert from_file.subscriptions == ("s1", "s2")
    assert from_file.parquet is True
    assert from_file.metrics_days == 14

    monkeypatch.setenv("APPSVC_INV_WORKSPACE_ID", "from-env")
    _, from_env = load_run_config(argv=["run", "--config", str(cfg_path)])
    assert from_env.workspace_id == "from-env"

    _, from_cli = load_run_config(
        argv=["run", "--config", str(cfg_path), "--workspace-id", "from-cli", "--no-parquet"]
    )
    assert from_cli.workspace_id == "from-cli"
    assert from_cli.parquet is False


def test_tenant_from_azure_env(monkeypatch) -> None:
    monkeypatch.setenv("AZURE_TENANT_ID", "tenant-1")
    _, cfg = load_run_config(argv=["validate-auth", "--account", "ops@example.com"])
    assert cfg.tenant_id == "tenant-1"
    assert cfg.account_id == "ops@example.com"


def test_json_config_file(tmp_path) -> None:
    cfg_path = tmp_path / "config.json"
    cfg_path.write_text('{"auth": "cli", "result_format": "objectArray"}', encoding="utf-8")
    _, cfg = load_run_config(argv=["run", "--config", str(cfg_path)])
    assert cfg.auth == "cli"
    assert cfg.result_format == "objectArray"


def test_unknown_config_keys_warn(tmp_path) -> None:
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("region: westeurope\nprogress: false\n", encoding="utf-8")
    with pytest.warns(UserWarning, match="region"):
        _, cfg = load_run_config(argv=["run", "--config", str(cfg_path)])
    assert cfg.progress is False


def test_invalid_values_raise(tmp_path, monkeypatch) -> None:
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("parquet: maybe\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_run_config(argv=["run", "--config", str(cfg_path)])

    monkeypatch.setenv("APPSVC_INV_AUTH", "password")
    with pytest.raises(ValueError):
        load_run_config(argv=["run"])


def test_missing_config_file_raises(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_run_config(argv=["run", "--config", str(tmp_path / "missing.yaml")])


def test_dump_config_is_json_friendly() -> None:
    _, cfg = load_run_config(argv=["run", "--subscriptions", "s1"])
    dumped = dump_config(cfg)
    assert dumped["subscriptions"] == ["s1"]
    assert isinstance(dumped["output"], str)
    assert "collected_at" in dumped
