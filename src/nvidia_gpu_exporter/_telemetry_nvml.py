"""NVIDIA telemetry source backed by pynvml."""

from __future__ import annotations

import logging
import warnings
from collections.abc import Callable
from typing import Any, TypeVar

from nvidia_gpu_exporter._types import (
    DeviceLabels,
    MemoryInfo,
    RunningProcess,
    TelemetryError,
    UtilizationRates,
)

# Suppress deprecation warning from the legacy pynvml wrapper (recommends nvidia-ml-py).
warnings.filterwarnings("ignore", category=FutureWarning, message=".*pynvml.*deprecated.*")
import pynvml  # noqa: E402

logger = logging.getLogger("nvidia_gpu_exporter.telemetry.nvml")

T = TypeVar("T")


def _nvml_call(func: Callable[..., T], *args: Any) -> T:
    """Call into NVML, translating driver errors into ``TelemetryError``."""
    try:
        return func(*args)
    except pynvml.NVMLError as exc:
        raise TelemetryError(f"{getattr(func, '__name__', 'nvml')}: {exc}") from exc


class NvmlTelemetrySource:
    """Telemetry source holding one NVML session for the process lifetime.

    Device handles are looked up by index on every query; NVML owns device
    identity and lifetime.
    """

    def __init__(self, *, fan_index: int = 0) -> None:
        self._fan_index = fan_index
        _nvml_call(pynvml.nvmlInit)
        try:
            version = pynvml.nvmlSystemGetDriverVersion()
        except pynvml.NVMLError:
            version = "unknown"
        logger.info("NVML initialized (driver %s)", version)

    def _handle(self, index: int) -> Any:
        return _nvml_call(pynvml.nvmlDeviceGetHandleByIndex, index)

    def device_count(self) -> int:
        return int(_nvml_call(pynvml.nvmlDeviceGetCount))

    def device_labels(self, index: int) -> DeviceLabels:
        handle = self._handle(index)
        # The minor number only exists on Linux.
        minor_number = _nvml_call(pynvml.nvmlDeviceGetMinorNumber, handle)
        gpu_uuid: str = _nvml_call(pynvml.nvmlDeviceGetUUID, handle)
        name: str = _nvml_call(pynvml.nvmlDeviceGetName, handle)
        return DeviceLabels(minor_number=str(minor_number), uuid=gpu_uuid, name=name)

    def utilization(self, index: int) -> UtilizationRates:
        util = _nvml_call(pynvml.nvmlDeviceGetUtilizationRates, self._handle(index))
        return UtilizationRates(gpu=int(util.gpu), memory=int(util.memory))

    def power_usage(self, index: int) -> int:
        return int(_nvml_call(pynvml.nvmlDeviceGetPowerUsage, self._handle(index)))

    def temperature(self, index: int) -> int:
        return int(_nvml_call(
            pynvml.nvmlDeviceGetTemperature, self._handle(index), pynvml.NVML_TEMPERATURE_GPU,
        ))

    def fan_speed(self, index: int) -> int:
        return int(_nvml_call(
            pynvml.nvmlDeviceGetFanSpeed_v2, self._handle(index), self._fan_index,
        ))

    def memory_info(self, index: int) -> MemoryInfo:
        mem = _nvml_call(pynvml.nvmlDeviceGetMemoryInfo, self._handle(index))
        return MemoryInfo(total=int(mem.total), free=int(mem.free), used=int(mem.used))

    def running_processes(self, index: int) -> list[RunningProcess]:
        procs = _nvml_call(pynvml.nvmlDeviceGetComputeRunningProcesses, self._handle(index))
        result: list[RunningProcess] = []
        for proc in procs:
            used = proc.usedGpuMemory
            result.append(RunningProcess(
                pid=int(proc.pid),
                used_memory=int(used) if used is not None else None,
            ))
        return result

    def shutdown(self) -> None:
        try:
            pynvml.nvmlShutdown()
        except pynvml.NVMLError:
            logger.debug("nvmlShutdown failed", exc_info=True)
