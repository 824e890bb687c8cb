"""nvidia-gpu-exporter: Prometheus metrics for NVIDIA GPUs and their processes."""

from __future__ import annotations

from nvidia_gpu_exporter._collector import Collector
from nvidia_gpu_exporter._config import ExporterConfig
from nvidia_gpu_exporter._identity import IdentitySource, PsutilIdentitySource
from nvidia_gpu_exporter._registry import METRICS, MetricRegistry, MetricSpec
from nvidia_gpu_exporter._server import ExporterHTTPServer, make_server
from nvidia_gpu_exporter._telemetry import MockDevice, MockTelemetrySource, TelemetrySource
from nvidia_gpu_exporter._types import (
    DeviceLabels,
    ExporterError,
    IdentityLookupError,
    MemoryInfo,
    ProcessIdentity,
    RegistryError,
    RunningProcess,
    TelemetryError,
    UtilizationRates,
)

__version__ = "0.1.0"

__all__ = [
    "METRICS",
    "Collector",
    "DeviceLabels",
    "ExporterConfig",
    "ExporterError",
    "ExporterHTTPServer",
    "IdentityLookupError",
    "IdentitySource",
    "MemoryInfo",
    "MetricRegistry",
    "MetricSpec",
    "MockDevice",
    "MockTelemetrySource",
    "ProcessIdentity",
    "PsutilIdentitySource",
    "RegistryError",
    "RunningProcess",
    "TelemetryError",
    "TelemetrySource",
    "UtilizationRates",
    "__version__",
    "make_server",
]
