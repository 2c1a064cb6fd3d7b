from __future__ import annotations

from types import SimpleNamespace

from azure.core.exceptions import HttpResponseError

from appservice_inventory.collect import orchestrator
from appservice_inventory.collect.orchestrator import collect_tables, table_names
from appservice_inventory.collect.pages import tabular_page
from appservice_inventory.collect.queries import (
    CPU_TIME,
    INVENTORY_QUERIES,
    METRICS_QUERIES,
)
from appservice_inventory.collect.results import QueryStatus

ROW_COUNTS = {"Apps": 3, "Plans": 0, "Autoscale": 1, "Stacks": 3, "Networking": 3, "Domains": 0}


def _runner(calls):
    def run(descriptor, skip):
        calls.append((descriptor.name, skip))
        count = ROW_COUNTS[descriptor.name] if skip == 0 else 0
        rows = [[f"{descriptor.name}-{i}"] for i in range(count)]
        return tabular_page([{"name": "name"}], rows)

    return run


class _LogsClient:
    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.queries = []

    def query_workspace(self, workspace_id, query, *, timespan):
        self.queries.append(query)
        if query in self.fail_for:
            error = HttpResponseError(message="Forbidden")
            error.status_code = 403
            raise error
        table = SimpleNamespace(columns=["Resource", "Value"], columns_types=["string", "real"], rows=[["app", 1.0]])
        return SimpleNamespace(status=SimpleNamespace(name="SUCCESS"), tables=[table])


def test_inventory_order_and_skips_without_workspace() -> None:
    calls = []
    logs = _LogsClient()
    tables = collect_tables(_runner(calls), logs, workspace_id=None)

    assert [t.name for t in tables] == table_names()
    assert [name for name, _ in calls] == [d.name for d in INVENTORY_QUERIES]
    assert [t.name for t in tables if t.present] == ["Apps", "Autoscale", "Stacks", "Networking"]
    metrics = tables[len(INVENTORY_QUERIES):]
    assert [t.outcome.status for t in metrics] == [QueryStatus.NOT_RUN] * 4
    assert logs.queries == []


def test_metrics_failure_does_not_block_other_metrics() -> None:
    logs = _LogsClient(fail_for={CPU_TIME.query})
    tables = collect_tables(_runner([]), logs, workspace_id="ws")

    by_name = {t.name: t for t in tables}
    assert logs.queries == [d.query for d in METRICS_QUERIES]
    assert by_name["CpuTime"].outcome.status is QueryStatus.DENIED
    assert by_name["CpuTime"].present is False
    for name in ("ResponseTime", "MemoryWorkingSet", "PlanCpuMemoryPct"):
        assert by_name[name].present is True


def test_returns_immutable_tuple_and_advances_progress() -> None:
    class _Progress:
        def __init__(self):
            self.seen = []

        def advance(self, name, *, count=0):
            self.seen.append((name, count))

    progress = _Progress()
    tables = collect_tables(_runner([]), None, progress=progress)

    assert isinstance(tables, tuple)
    assert progress.seen[0] == ("Apps", 3)
    assert len(progress.seen) == len(INVENTORY_QUERIES) + len(METRICS_QUERIES)


def test_custom_descriptors_and_page_size() -> None:
    descriptor = orchestrator.QueryDescriptor(name="Apps", query="resources")
    calls = []
    tables = collect_tables(_runner(calls), None, inventory_queries=[descriptor], metrics_queries=[], page_size=3)

    assert calls == [("Apps", 0), ("Apps", 3)]
    assert tables[0].count == 3


def test_page_shape_change_does_not_stop_sibling_queries() -> None:
    calls = []

    def run(descriptor, skip):
        calls.append((descriptor.name, skip))
        if descriptor.name == "Apps":
            if skip == 0:
                return tabular_page([{"name": "id"}], [[f"app-{i}"] for i in range(1000)])
            return tabular_page([{"name": "other"}], [["x"]])
        return _runner([])(descriptor, skip)

    tables = collect_tables(run, None)

    by_name = {t.name: t for t in tables}
    assert by_name["Apps"].outcome.status is QueryStatus.ERROR
    assert by_name["Apps"].count == 1000
    assert [name for name, _ in calls] == ["Apps", "Apps", "Plans", "Autoscale", "Stacks", "Networking", "Domains"]
    assert by_name["Networking"].present is True
