"""Collector: maps device and process readings onto the metric catalog.

A sampling pass enumerates devices fresh from the telemetry source, so no
device state survives between passes except the label values written into
the long-lived gauges. Structural failures (device count, device identity)
abort the pass; a single unreadable sensor only drops that sensor's series
for that device.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from collections.abc import Callable, Iterator
from typing import Any, TypeVar

from nvidia_gpu_exporter._identity import IdentitySource, PsutilIdentitySource
from nvidia_gpu_exporter._registry import MetricRegistry
from nvidia_gpu_exporter._telemetry import TelemetrySource
from nvidia_gpu_exporter._types import (
    DeviceLabels,
    IdentityLookupError,
    MemoryInfo,
    ProcessIdentity,
    RunningProcess,
    TelemetryError,
    UtilizationRates,
)

logger = logging.getLogger("nvidia_gpu_exporter.collector")

T = TypeVar("T")

_MIB = 1024 * 1024
_NOT_AVAILABLE = "N/A"
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]+")

SensorValues = Callable[[Any], tuple[int, ...]]


# (telemetry source method, gauges it feeds, values in gauge order)
_SENSOR_DIMENSIONS: tuple[tuple[str, tuple[str, ...], SensorValues], ...] = (
    ("utilization", ("gpu_utilization", "memory_utilization"), lambda u: (u.gpu, u.memory)),
    ("power_usage", ("power_usage_milliwatts",), lambda mw: (mw,)),
    ("temperature", ("temperature_celsius",), lambda celsius: (celsius,)),
    ("fan_speed", ("fanspeed_percent",), lambda percent: (percent,)),
    (
        "memory_info",
        ("memory_total_bytes", "memory_free_bytes", "memory_used_bytes"),
        lambda mem: (mem.total, mem.free, mem.used),
    ),
)


def _try_read(read: Callable[[int], T], index: int) -> T | None:
    """Return the reading, or None if the sensor is unavailable on this device."""
    try:
        return read(index)
    except TelemetryError as exc:
        logger.debug("Skipping %s on device %d: %s", getattr(read, "__name__", read), index, exc)
        return None


def sanitize_label_value(value: str, max_length: int) -> str:
    """Collapse control characters to a space and bound the length."""
    return _CONTROL_CHARS.sub(" ", value).strip()[:max_length]


def format_process_line(
    index: int,
    name: str,
    temperature: int | None,
    utilization: UtilizationRates | None,
    memory: MemoryInfo | None,
) -> str:
    temp = _NOT_AVAILABLE if temperature is None else str(temperature)
    gpu = _NOT_AVAILABLE if utilization is None else str(utilization.gpu)
    if memory is None:
        used = total = _NOT_AVAILABLE
    else:
        used, total = str(memory.used // _MIB), str(memory.total // _MIB)
    return f"[{index}] {name}|{temp}°C {gpu}%| {used} / {total} MB"


class Collector:
    """Runs sampling passes against one shared telemetry session.

    ``scrape`` and ``gpustat`` serialize passes with a lock, since the
    underlying driver binding is not guaranteed to be thread-safe. The
    ``sample_*`` methods do no locking of their own.
    """

    def __init__(
        self,
        source: TelemetrySource,
        registry: MetricRegistry,
        identity: IdentitySource | None = None,
        *,
        max_command_length: int = 256,
    ) -> None:
        self._source = source
        self._registry = registry
        self._identity = identity if identity is not None else PsutilIdentitySource()
        self._max_command_length = max_command_length
        self._lock = threading.Lock()

    @property
    def registry(self) -> MetricRegistry:
        return self._registry

    def _set(self, gauge_name: str, labels: tuple[str, ...], value: int) -> None:
        self._registry.gauge(gauge_name).labels(*labels).set(int(value))

    def _remove(self, gauge_name: str, labels: tuple[str, ...]) -> None:
        try:
            self._registry.gauge(gauge_name).remove(*labels)
        except KeyError:
            pass

    def sample_devices(self) -> int:
        """Write one reading per available sensor for every present device.

        A sensor that cannot be read has its series for that device removed,
        so a value from an earlier pass is never served as current. Returns
        the device count the pass was run against.
        """
        num_devices = self._source.device_count()
        self._registry.gauge("num_devices").set(num_devices)

        for index in range(num_devices):
            labels = self._source.device_labels(index).as_tuple()
            for method, gauge_names, values in _SENSOR_DIMENSIONS:
                reading = _try_read(getattr(self._source, method), index)
                if reading is None:
                    for gauge_name in gauge_names:
                        self._remove(gauge_name, labels)
                    continue
                for gauge_name, value in zip(gauge_names, values(reading)):
                    self._set(gauge_name, labels, value)
        return num_devices

    def _iter_processes(
        self, num_devices: int | None = None,
    ) -> Iterator[tuple[int, DeviceLabels, RunningProcess, ProcessIdentity]]:
        """Yield identified compute processes, device order then driver order.

        A device whose process list cannot be read contributes nothing; a
        process whose identity cannot be resolved is dropped.
        """
        if num_devices is None:
            num_devices = self._source.device_count()
        for index in range(num_devices):
            labels = self._source.device_labels(index)
            try:
                processes = self._source.running_processes(index)
            except TelemetryError as exc:
                logger.warning("Cannot list processes on device %d: %s", index, exc)
                continue
            for proc in processes:
                try:
                    identity = self._identity.lookup(proc.pid)
                except IdentityLookupError as exc:
                    logger.debug("Dropping pid %d on device %d: %s", proc.pid, index, exc)
                    continue
                yield index, labels, proc, identity

    def sample_processes(self) -> str:
        """Return one human-readable line per running compute process."""
        lines: list[str] = []
        for index, labels, _proc, _identity in self._iter_processes():
            lines.append(format_process_line(
                index,
                labels.name,
                _try_read(self._source.temperature, index),
                _try_read(self._source.utilization, index),
                _try_read(self._source.memory_info, index),
            ))
        return "\n".join(lines)

    def sample_process_memory(self, num_devices: int | None = None) -> None:
        """Attribute device memory to each running process.

        The per-process gauge is cleared first, so exited processes do not
        linger as stale series. ``num_devices`` pins the pass to a count
        already read by ``sample_devices``.
        """
        gauge = self._registry.gauge("process_memory_used_bytes")
        gauge.clear()
        for _index, labels, proc, identity in self._iter_processes(num_devices):
            if proc.used_memory is None:
                continue
            self._set("process_memory_used_bytes", (
                *labels.as_tuple(),
                str(proc.pid),
                sanitize_label_value(identity.user, self._max_command_length),
                sanitize_label_value(identity.command, self._max_command_length),
            ), proc.used_memory)

    def collect(self) -> None:
        """Run the full /metrics pass: device gauges, then process attribution."""
        num_devices = self.sample_devices()
        self.sample_process_memory(num_devices)

    def scrape(self) -> bytes:
        with self._lock:
            start = time.perf_counter()
            self.collect()
            body = self._registry.render()
        logger.debug("Scrape took %.1f ms", (time.perf_counter() - start) * 1000)
        return body

    def gpustat(self) -> str:
        with self._lock:
            return self.sample_processes()
