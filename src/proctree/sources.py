"""OS enumeration sources for proctree.

Three collaborators feed the reconciler:

* ProcessEnumerator - fast flat process list from psutil, no parent ids.
* ServiceEnumerator - registered services and the pid hosting each one.
* A DetailedProcessSource - slower query that reports parent ids and
  arbitrary named attributes for processes and services alike.
"""

import logging
from collections.abc import Iterable, Sequence
from typing import Protocol

import psutil

from proctree.errors import EnumerationError
from proctree.models import DetailedRecord, ProcessRecord, ServiceRecord

logger = logging.getLogger(__name__)

# WMI Win32_Process property name -> psutil attribute name
ATTRIBUTE_ALIASES = {
    "Name": "name",
    "ExecutablePath": "exe",
    "CommandLine": "cmdline",
    "CreationDate": "create_time",
    "ThreadCount": "num_threads",
    "HandleCount": "num_handles",
    "Priority": "nice",
    "WorkingSetSize": "memory_info",
    "ProcessId": "pid",
    "ParentProcessId": "ppid",
}

PSUTIL_ATTRIBUTES = frozenset(
    {
        "pid",
        "ppid",
        "name",
        "exe",
        "cmdline",
        "cwd",
        "username",
        "status",
        "create_time",
        "nice",
        "num_threads",
        "num_handles",
        "memory_info",
        "memory_percent",
        "cpu_percent",
        "terminal",
    }
)


class DetailedProcessSource(Protocol):
    """Anything that can report parent ids and named attributes."""

    def records(self, attribute_names: Sequence[str] = ()) -> Iterable[DetailedRecord]: ...


class ProcessEnumerator:
    """Flat list of running processes, without parent linkage."""

    attrs = ["pid", "name", "create_time", "username", "exe"]

    def processes(self) -> list[ProcessRecord]:
        """
        Collect records for all running processes.

        Processes that exit while being read are skipped. Fields the OS
        refuses to expose are left empty.
        """
        records: list[ProcessRecord] = []
        try:
            for proc in psutil.process_iter(attrs=self.attrs, ad_value=None):
                try:
                    info = proc.info
                    records.append(
                        ProcessRecord(
                            pid=info["pid"],
                            name=info.get("name") or "",
                            create_time=info.get("create_time") or 0.0,
                            username=info.get("username") or "",
                            exe=info.get("exe") or "",
                            process=proc,
                        )
                    )
                except (psutil.NoSuchProcess, psutil.ZombieProcess):
                    continue
        except (psutil.Error, OSError) as exc:
            raise EnumerationError("process enumeration", str(exc)) from exc

        return records


class ServiceEnumerator:
    """Registered OS services, resolved to their hosting process records."""

    def services(self, processes: Sequence[ProcessRecord] | None = None) -> list[ServiceRecord]:
        """
        Collect every registered service.

        ``processes`` is used to resolve each service pid to a process
        record; when omitted a fresh process list is taken. Hosts without a
        service control manager have no services.
        """
        if not psutil.WINDOWS:
            return []

        if processes is None:
            processes = ProcessEnumerator().processes()
        by_pid = {record.pid: record for record in processes}

        services: list[ServiceRecord] = []
        try:
            for svc in psutil.win_service_iter():
                try:
                    pid = svc.pid()
                    status = svc.status()
                except psutil.NoSuchProcess:
                    # Service was deleted while iterating
                    continue
                except psutil.AccessDenied:
                    pid, status = None, "unknown"

                services.append(
                    ServiceRecord(
                        name=svc.name(),
                        display_name=svc.display_name(),
                        status=status,
                        pid=pid,
                        process=by_pid.get(pid) if pid else None,
                    )
                )
        except (psutil.Error, OSError) as exc:
            raise EnumerationError("service enumeration", str(exc)) from exc

        return services


def _stringify(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, (list, tuple)) and not hasattr(value, "_fields"):
        return " ".join(str(item) for item in value)
    if hasattr(value, "rss"):
        return str(value.rss)
    return str(value)


class PsutilProcessSource:
    """
    Detailed source backed by psutil.

    WMI property names are accepted and mapped onto psutil attributes, so
    callers can request the same names on any host. Names psutil cannot
    answer come back as None.
    """

    def _resolve(self, name: str) -> str | None:
        attr = ATTRIBUTE_ALIASES.get(name, name)
        if attr in PSUTIL_ATTRIBUTES and hasattr(psutil.Process, attr):
            return attr
        return None

    def records(self, attribute_names: Sequence[str] = ()) -> list[DetailedRecord]:
        resolved = {name: self._resolve(name) for name in attribute_names}
        attrs = {"pid", "ppid"} | {attr for attr in resolved.values() if attr}

        records: list[DetailedRecord] = []
        try:
            for proc in psutil.process_iter(attrs=sorted(attrs), ad_value=None):
                try:
                    info = proc.info
                    ppid = info.get("ppid")
                    if ppid is None:
                        # Unreadable parent: report the process as a root
                        logger.debug("pid %d has no readable parent id", info["pid"])
                        ppid = 0
                    records.append(
                        DetailedRecord(
                            pid=info["pid"],
                            ppid=ppid,
                            attributes={
                                name: _stringify(info.get(attr)) if attr else None
                                for name, attr in resolved.items()
                            },
                        )
                    )
                except (psutil.NoSuchProcess, psutil.ZombieProcess):
                    continue
        except (psutil.Error, OSError) as exc:
            raise EnumerationError("psutil detailed query", str(exc)) from exc

        return records


class WmiProcessSource:
    """
    Detailed source backed by WMI ``Win32_Process`` (Windows only).

    The query reports services intermixed with ordinary processes. COM is
    initialised for the calling thread for the duration of one query and
    released before returning.
    """

    query = "SELECT * FROM Win32_Process"

    def __init__(self, namespace: str = "root/cimv2") -> None:
        self._namespace = namespace

    def records(self, attribute_names: Sequence[str] = ()) -> list[DetailedRecord]:
        import pythoncom
        import wmi

        pythoncom.CoInitialize()
        try:
            connection = wmi.WMI(namespace=self._namespace)
            return [
                DetailedRecord(
                    pid=int(obj.ProcessId),
                    ppid=int(obj.ParentProcessId),
                    attributes={name: self._read(obj, name) for name in attribute_names},
                )
                for obj in connection.query(self.query)
            ]
        except (wmi.x_wmi, pythoncom.com_error) as exc:
            raise EnumerationError("WMI Win32_Process", str(exc)) from exc
        finally:
            pythoncom.CoUninitialize()

    @staticmethod
    def _read(obj: object, name: str) -> str | None:
        try:
            value = getattr(obj, name)
        except AttributeError:
            logger.debug("Win32_Process has no property %r", name)
            return None
        return None if value is None else str(value)


def default_detailed_source() -> DetailedProcessSource:
    """WMI on Windows, psutil everywhere else."""
    if psutil.WINDOWS:
        return WmiProcessSource()
    return PsutilProcessSource()
