"""Metric catalog and the Prometheus registry built from it."""

from __future__ import annotations

from dataclasses import dataclass

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Gauge, generate_latest

from nvidia_gpu_exporter._types import RegistryError

DEVICE_LABELS: tuple[str, ...] = ("minor_number", "uuid", "name")
PROCESS_LABELS: tuple[str, ...] = (*DEVICE_LABELS, "pid", "user", "command")

CONTENT_TYPE = CONTENT_TYPE_LATEST


@dataclass(frozen=True)
class MetricSpec:
    """One exported gauge: short name, help text and label schema."""

    name: str
    documentation: str
    labelnames: tuple[str, ...] = ()


METRICS: tuple[MetricSpec, ...] = (
    MetricSpec("num_devices", "Number of GPU devices"),
    MetricSpec(
        "gpu_utilization",
        "Percent of time over the past sample period during which one or more "
        "kernels were executing on the GPU device",
        DEVICE_LABELS,
    ),
    MetricSpec(
        "memory_utilization",
        "Percent of time over the past sample period during which global (device) "
        "memory was being read or written to.",
        DEVICE_LABELS,
    ),
    MetricSpec("power_usage_milliwatts", "Power usage of the GPU device in milliwatts", DEVICE_LABELS),
    MetricSpec("temperature_celsius", "Temperature of the GPU device in celsius", DEVICE_LABELS),
    MetricSpec(
        "fanspeed_percent",
        "Fan speed of the GPU device as a percent of its maximum",
        DEVICE_LABELS,
    ),
    MetricSpec("memory_total_bytes", "Total memory available by the GPU device in bytes", DEVICE_LABELS),
    MetricSpec("memory_free_bytes", "Free memory of the GPU device in bytes", DEVICE_LABELS),
    MetricSpec("memory_used_bytes", "Memory used by the GPU device in bytes", DEVICE_LABELS),
    MetricSpec("process_memory_used_bytes", "Memory used by the process in bytes", PROCESS_LABELS),
)


class MetricRegistry:
    """Owns the fixed set of gauges. The schema never changes after construction."""

    def __init__(
        self,
        specs: tuple[MetricSpec, ...] = METRICS,
        *,
        namespace: str = "nvidia_gpu",
        registry: CollectorRegistry | None = None,
    ) -> None:
        self.registry = registry if registry is not None else CollectorRegistry(auto_describe=True)
        self._gauges: dict[str, Gauge] = {}
        for spec in specs:
            if spec.name in self._gauges:
                raise RegistryError(f"duplicate metric in catalog: {spec.name}")
            try:
                self._gauges[spec.name] = Gauge(
                    spec.name,
                    spec.documentation,
                    labelnames=spec.labelnames,
                    namespace=namespace,
                    registry=self.registry,
                )
            except ValueError as exc:
                raise RegistryError(f"cannot register {namespace}_{spec.name}: {exc}") from exc

    def gauge(self, name: str) -> Gauge:
        """Return the gauge registered under the short (un-namespaced) name."""
        return self._gauges[name]

    def __contains__(self, name: object) -> bool:
        return name in self._gauges

    def __len__(self) -> int:
        return len(self._gauges)

    def render(self) -> bytes:
        """Serialize current gauge values in the Prometheus text format."""
        return generate_latest(self.registry)
