"""Public entry points: process trees, plain process lists and services."""

from collections.abc import Sequence

from proctree.config import FetchOptions
from proctree.models import ProcessNode, ProcessRecord
from proctree.reconciler import Reconciler
from proctree.sources import (
    DetailedProcessSource,
    ProcessEnumerator,
    ServiceEnumerator,
    default_detailed_source,
)
from proctree.tree import build_forest


class ProcessInfoFetcher:
    """
    Combines the fast psutil enumeration with the slower detailed source.

    The fast enumeration has no parent ids; the detailed source has them but
    mixes services in with processes. Each call takes a fresh snapshot and
    nothing is kept between calls.
    """

    def __init__(
        self,
        options: FetchOptions | None = None,
        process_enumerator: ProcessEnumerator | None = None,
        service_enumerator: ServiceEnumerator | None = None,
        detailed_source: DetailedProcessSource | None = None,
    ) -> None:
        self.options = options or FetchOptions()
        self.process_enumerator = process_enumerator or ProcessEnumerator()
        self.service_enumerator = service_enumerator or ServiceEnumerator()
        self._detailed_source = detailed_source

    @property
    def detailed_source(self) -> DetailedProcessSource:
        if self._detailed_source is None:
            self._detailed_source = default_detailed_source()
        return self._detailed_source

    def get_processes_tree_structure(
        self,
        requested_attributes: Sequence[str] | None = None,
        exclude_services: bool | None = None,
    ) -> list[ProcessNode]:
        """
        Return the process forest.

        Args:
            requested_attributes: Names of detailed-source attributes to
                capture on every node. Defaults to the configured list.
            exclude_services: Leave services out of the forest. Defaults to
                the configured value (True unless overridden).
        """
        if requested_attributes is None:
            requested_attributes = self.options.requested_attributes
        if exclude_services is None:
            exclude_services = self.options.exclude_services

        reconciler = Reconciler(
            self.process_enumerator,
            self.service_enumerator,
            self.detailed_source,
        )
        nodes = reconciler.reconcile(requested_attributes, exclude_services)
        return build_forest(nodes, self.options.exclusion)

    def get_processes(self) -> list[ProcessRecord]:
        """Return running processes, without any service."""
        processes = self.process_enumerator.processes()
        service_pids = {
            service.pid
            for service in self.service_enumerator.services(processes)
            if service.is_live
        }
        return [record for record in processes if record.pid not in service_pids]

    def get_services(self) -> list[ProcessRecord | None]:
        """
        Return the hosting process of every registered service.

        A service with no running process gives None at its position.
        """
        return [service.process for service in self.service_enumerator.services()]


def get_processes_tree_structure(
    requested_attributes: Sequence[str] | None = None,
    exclude_services: bool = True,
) -> list[ProcessNode]:
    return ProcessInfoFetcher().get_processes_tree_structure(requested_attributes, exclude_services)


def get_processes() -> list[ProcessRecord]:
    return ProcessInfoFetcher().get_processes()


def get_services() -> list[ProcessRecord | None]:
    return ProcessInfoFetcher().get_services()
