"""Device telemetry source protocol and an in-memory implementation."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from nvidia_gpu_exporter._types import (
    DeviceLabels,
    MemoryInfo,
    RunningProcess,
    TelemetryError,
    UtilizationRates,
)


@runtime_checkable
class TelemetrySource(Protocol):
    """Structural protocol for a device-management session.

    Every query is addressed by device index and raises ``TelemetryError``
    when the driver cannot answer it.
    """

    def device_count(self) -> int: ...

    def device_labels(self, index: int) -> DeviceLabels: ...

    def utilization(self, index: int) -> UtilizationRates: ...

    def power_usage(self, index: int) -> int: ...

    def temperature(self, index: int) -> int: ...

    def fan_speed(self, index: int) -> int: ...

    def memory_info(self, index: int) -> MemoryInfo: ...

    def running_processes(self, index: int) -> list[RunningProcess]: ...

    def shutdown(self) -> None: ...


@dataclass
class MockDevice:
    """Readings for one simulated device. ``None`` means the sensor is unsupported."""

    labels: DeviceLabels
    utilization: UtilizationRates | None = None
    power_usage: int | None = None
    temperature: int | None = None
    fan_speed: int | None = None
    memory_info: MemoryInfo | None = None
    processes: list[RunningProcess] | None = field(default_factory=list)


class MockTelemetrySource:
    """Test-only telemetry source that serves fixed readings without a driver."""

    def __init__(self, devices: Iterable[MockDevice] = (), *, fail_count: bool = False) -> None:
        self.devices = list(devices)
        self.fail_count = fail_count
        self.broken_labels: set[int] = set()
        self.shutdown_called = False

    @classmethod
    def with_gpus(cls, num_gpus: int = 2) -> MockTelemetrySource:
        devices = []
        for i in range(num_gpus):
            devices.append(MockDevice(
                labels=DeviceLabels(str(i), f"GPU-{i:04d}", "NVIDIA H100 80GB HBM3"),
                utilization=UtilizationRates(gpu=85 + i, memory=40 + i),
                power_usage=350_000 + i * 10_000,
                temperature=72 + i,
                fan_speed=30 + i,
                memory_info=MemoryInfo(
                    total=85_899_345_920,
                    free=85_899_345_920 - (42 + i) * 2**30,
                    used=(42 + i) * 2**30,
                ),
            ))
        return cls(devices)

    def _device(self, index: int) -> MockDevice:
        try:
            return self.devices[index]
        except IndexError:
            raise TelemetryError(f"invalid device index {index}") from None

    @staticmethod
    def _reading(value: object, what: str, index: int) -> object:
        if value is None:
            raise TelemetryError(f"{what} not supported on device {index}")
        return value

    def device_count(self) -> int:
        if self.fail_count:
            raise TelemetryError("driver not loaded")
        return len(self.devices)

    def device_labels(self, index: int) -> DeviceLabels:
        if index in self.broken_labels:
            raise TelemetryError(f"cannot read identity of device {index}")
        return self._device(index).labels

    def utilization(self, index: int) -> UtilizationRates:
        return self._reading(self._device(index).utilization, "utilization", index)  # type: ignore[return-value]

    def power_usage(self, index: int) -> int:
        return self._reading(self._device(index).power_usage, "power", index)  # type: ignore[return-value]

    def temperature(self, index: int) -> int:
        return self._reading(self._device(index).temperature, "temperature", index)  # type: ignore[return-value]

    def fan_speed(self, index: int) -> int:
        return self._reading(self._device(index).fan_speed, "fan speed", index)  # type: ignore[return-value]

    def memory_info(self, index: int) -> MemoryInfo:
        return self._reading(self._device(index).memory_info, "memory info", index)  # type: ignore[return-value]

    def running_processes(self, index: int) -> list[RunningProcess]:
        processes = self._reading(self._device(index).processes, "process list", index)
        return list(processes)  # type: ignore[call-overload]

    def shutdown(self) -> None:
        self.shutdown_called = True
