"""Shared fakes for proctree tests."""

from collections.abc import Sequence

import pytest

from proctree.errors import EnumerationError
from proctree.models import DetailedRecord, ProcessNode, ProcessRecord, ServiceRecord


def make_record(pid: int, name: str = "") -> ProcessRecord:
    return ProcessRecord(pid=pid, name=name or f"proc{pid}", create_time=0.0, username="", exe="")


def make_node(pid: int, ppid: int, name: str | None = None, is_service: bool = False) -> ProcessNode:
    process = make_record(pid, name) if name is not None else None
    return ProcessNode(pid=pid, ppid=ppid, process=process, is_service=is_service)


class FakeProcessEnumerator:
    def __init__(self, processes: Sequence[ProcessRecord]) -> None:
        self._processes = list(processes)
        self.calls = 0

    def processes(self) -> list[ProcessRecord]:
        self.calls += 1
        return list(self._processes)


class FakeServiceEnumerator:
    """Services hosted by the given pids; ``None`` is a stopped service."""

    def __init__(self, pids: Sequence[int | None], processes: Sequence[ProcessRecord] = ()) -> None:
        self._pids = list(pids)
        self._processes = list(processes)
        self.calls = 0

    def services(self, processes: Sequence[ProcessRecord] | None = None) -> list[ServiceRecord]:
        self.calls += 1
        by_pid = {p.pid: p for p in (self._processes if processes is None else processes)}
        return [
            ServiceRecord(
                name=f"svc{i}",
                display_name=f"Service {i}",
                status="running" if pid else "stopped",
                pid=pid,
                process=by_pid.get(pid) if pid else None,
            )
            for i, pid in enumerate(self._pids)
        ]


class FakeDetailedSource:
    def __init__(self, records: Sequence[DetailedRecord]) -> None:
        self._records = list(records)
        self.requested: list[tuple[str, ...]] = []

    def records(self, attribute_names: Sequence[str] = ()) -> list[DetailedRecord]:
        self.requested.append(tuple(attribute_names))
        return list(self._records)


class FailingSource:
    def records(self, attribute_names: Sequence[str] = ()) -> list[DetailedRecord]:
        raise EnumerationError("WMI Win32_Process", "access denied")


def assert_valid_forest(roots: Sequence[ProcessNode]) -> None:
    """Every node reachable from exactly one root, no node its own ancestor."""
    seen: set[int] = set()

    def visit(node: ProcessNode, ancestors: set[int]) -> None:
        assert id(node) not in ancestors, f"pid {node.pid} is its own ancestor"
        assert id(node) not in seen, f"pid {node.pid} reachable twice"
        seen.add(id(node))
        for child in node.children:
            visit(child, ancestors | {id(node)})

    for root in roots:
        visit(root, set())


@pytest.fixture
def host_processes() -> list[ProcessRecord]:
    return [
        make_record(1, "init"),
        make_record(10, "explorer"),
        make_record(20, "shell"),
        make_record(30, "editor"),
        make_record(99, "svchost"),
    ]
