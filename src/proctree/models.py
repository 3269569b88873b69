"""Data models for proctree."""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field

import psutil


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable snapshot of a process as seen by the fast enumeration."""

    pid: int
    name: str
    create_time: float  # Seconds since the epoch, 0.0 if unavailable
    username: str
    exe: str
    # Live handle for further queries; may refer to an exited process
    process: psutil.Process | None = field(default=None, compare=False, repr=False)


@dataclass(slots=True, frozen=True)
class ServiceRecord:
    """A registered OS service and the process currently hosting it."""

    name: str
    display_name: str
    status: str  # 'running', 'stopped', ...
    pid: int | None
    process: ProcessRecord | None = None

    @property
    def is_live(self) -> bool:
        return bool(self.pid)


@dataclass(slots=True, frozen=True)
class DetailedRecord:
    """Process-or-service record from the detailed source, with parent id."""

    pid: int
    ppid: int
    attributes: Mapping[str, str | None] = field(default_factory=dict)

    def fetch(self, names: list[str] | tuple[str, ...]) -> tuple[str | None, ...]:
        """Return the values for ``names`` in order, ``None`` where missing."""
        return tuple(self.attributes.get(name) for name in names)


@dataclass(slots=True, eq=False)
class ProcessNode:
    """
    One node of the process forest.

    ``process`` is None when the process exited between enumerations.
    ``fetched_attributes`` is None when no attributes were requested.
    """

    pid: int
    ppid: int
    process: ProcessRecord | None = None
    is_service: bool = False
    fetched_attributes: tuple[str | None, ...] | None = None
    children: list["ProcessNode"] = field(default_factory=list)

    @property
    def name(self) -> str | None:
        return self.process.name if self.process is not None else None

    def walk(self) -> Iterator["ProcessNode"]:
        """Yield this node and all its descendants, depth first."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def __str__(self) -> str:
        name = self.name or ""
        pid = self.process.pid if self.process is not None else ""
        children = "".join(f"{child} " for child in self.children)
        return f"{name} #{pid} ({len(self.children)}) {children}"
