"""Core types: device readings, process entries, and the error hierarchy."""

from __future__ import annotations

from dataclasses import dataclass


class ExporterError(Exception):
    """Base class for all exporter errors."""


class TelemetryError(ExporterError):
    """The device-management layer could not answer a query."""


class IdentityLookupError(ExporterError):
    """A process id could not be resolved to a command line and user."""


class RegistryError(ExporterError):
    """The metric schema could not be registered."""


@dataclass(frozen=True)
class DeviceLabels:
    """Structural identity of one device, used as gauge label values."""

    minor_number: str
    uuid: str
    name: str

    def as_tuple(self) -> tuple[str, str, str]:
        return (self.minor_number, self.uuid, self.name)


@dataclass(frozen=True)
class UtilizationRates:
    """Kernel and memory occupancy percentages over the last sample period."""

    gpu: int
    memory: int


@dataclass(frozen=True)
class MemoryInfo:
    """Device memory accounting in bytes."""

    total: int
    free: int
    used: int


@dataclass(frozen=True)
class RunningProcess:
    """A compute process as reported by the driver.

    ``used_memory`` is ``None`` when the driver cannot attribute memory to the
    process (e.g. inside containers without the right privileges).
    """

    pid: int
    used_memory: int | None


@dataclass(frozen=True)
class ProcessIdentity:
    """Host-side identity of a process."""

    command: str
    user: str
