"""Merge the process, service and detailed views into typed nodes."""

import logging
from collections.abc import Sequence

from proctree.models import ProcessNode, ProcessRecord, ServiceRecord
from proctree.sources import (
    DetailedProcessSource,
    ProcessEnumerator,
    ServiceEnumerator,
    default_detailed_source,
)

logger = logging.getLogger(__name__)


class ServicePool:
    """Live services keyed by pid, each consumable at most once."""

    def __init__(self, services: Sequence[ServiceRecord]) -> None:
        self._by_pid: dict[int, list[ServiceRecord]] = {}
        for service in services:
            if service.is_live:
                self._by_pid.setdefault(service.pid, []).append(service)

    def take(self, pid: int) -> ServiceRecord | None:
        """Remove and return the first unconsumed service hosted by ``pid``."""
        candidates = self._by_pid.get(pid)
        if not candidates:
            return None
        return candidates.pop(0)

    def __len__(self) -> int:
        return sum(len(services) for services in self._by_pid.values())


class Reconciler:
    """
    Cross-reference the detailed source against the fast enumerations.

    Every detailed record becomes at most one node: a service node if its pid
    matches an unconsumed service, otherwise a process node. Service lookup
    wins over process lookup when both match the same pid.
    """

    def __init__(
        self,
        process_enumerator: ProcessEnumerator | None = None,
        service_enumerator: ServiceEnumerator | None = None,
        detailed_source: DetailedProcessSource | None = None,
    ) -> None:
        self.process_enumerator = process_enumerator or ProcessEnumerator()
        self.service_enumerator = service_enumerator or ServiceEnumerator()
        self.detailed_source = detailed_source or default_detailed_source()

    def reconcile(
        self,
        requested_attributes: Sequence[str] | None = None,
        exclude_services: bool = True,
    ) -> list[ProcessNode]:
        """
        Build the flat node list, in detailed-source order.

        Args:
            requested_attributes: Attribute names to capture per node. Each
                node gets a tuple aligned with this sequence, None where the
                source had no value. Empty or None captures nothing.
            exclude_services: Drop service records instead of emitting
                service nodes.
        """
        names = tuple(requested_attributes or ())

        processes = self.process_enumerator.processes()
        pool = ServicePool(self.service_enumerator.services(processes))
        by_pid: dict[int, ProcessRecord] = {}
        for record in processes:
            by_pid.setdefault(record.pid, record)

        nodes: list[ProcessNode] = []
        stale = 0
        for detailed in self.detailed_source.records(names):
            fetched = detailed.fetch(names) if names else None

            service = pool.take(detailed.pid)
            if service is not None:
                if not exclude_services:
                    nodes.append(
                        ProcessNode(
                            pid=detailed.pid,
                            ppid=detailed.ppid,
                            process=service.process,
                            is_service=True,
                            fetched_attributes=fetched,
                        )
                    )
                continue

            process = by_pid.get(detailed.pid)
            if process is None:
                stale += 1
                logger.debug("pid %d has no matching process record", detailed.pid)

            nodes.append(
                ProcessNode(
                    pid=detailed.pid,
                    ppid=detailed.ppid,
                    process=process,
                    fetched_attributes=fetched,
                )
            )

        logger.info(
            "Reconciled %d nodes from %d processes (%d without a process record)",
            len(nodes),
            len(processes),
            stale,
        )
        return nodes
