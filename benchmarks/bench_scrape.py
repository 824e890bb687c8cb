#!/usr/bin/env python3
"""Scrape-path overhead benchmark.

Measures, against an in-memory telemetry source with 8 devices:
  1. sample_devices()  (sensor reads + gauge writes)
  2. render()          (text exposition of the registry)
  3. scrape()          (full /metrics pass incl. per-process attribution)

NVML calls themselves are not included; this is the exporter's own cost.

Usage:
    python benchmarks/bench_scrape.py
"""

from __future__ import annotations

import time
from collections.abc import Callable

from nvidia_gpu_exporter._collector import Collector
from nvidia_gpu_exporter._registry import MetricRegistry
from nvidia_gpu_exporter._telemetry import MockTelemetrySource
from nvidia_gpu_exporter._types import ProcessIdentity, RunningProcess

NUM_GPUS = 8
PROCS_PER_GPU = 4


class _StaticIdentity:
    def lookup(self, pid: int) -> ProcessIdentity:
        return ProcessIdentity(command=f"python -m vllm.entrypoints.api_server --rank {pid}", user="ml")


def _collector() -> Collector:
    source = MockTelemetrySource.with_gpus(NUM_GPUS)
    for i, device in enumerate(source.devices):
        device.processes = [
            RunningProcess(pid=1000 + i * PROCS_PER_GPU + j, used_memory=(j + 1) * 2**30)
            for j in range(PROCS_PER_GPU)
        ]
    return Collector(source, MetricRegistry(), _StaticIdentity())


def _time_per_call(func: Callable[[], object], iterations: int) -> float:
    # Warmup
    for _ in range(100):
        func()

    start = time.perf_counter_ns()
    for _ in range(iterations):
        func()
    return (time.perf_counter_ns() - start) / iterations


def main() -> None:
    print("=" * 60)
    print(f"nvidia-gpu-exporter Scrape Benchmark ({NUM_GPUS} GPUs, {NUM_GPUS * PROCS_PER_GPU} procs)")
    print("=" * 60)

    collector = _collector()
    results: list[tuple[str, float, str]] = []

    ns = _time_per_call(collector.sample_devices, 5_000)
    status = "PASS" if ns < 500_000 else "WARN" if ns < 1_000_000 else "FAIL"
    results.append(("sample_devices", ns, f"{status} (target < 500μs)"))

    ns = _time_per_call(collector.registry.render, 5_000)
    status = "PASS" if ns < 1_000_000 else "WARN" if ns < 2_000_000 else "FAIL"
    results.append(("render", ns, f"{status} (target < 1ms)"))

    ns = _time_per_call(collector.scrape, 2_000)
    status = "PASS" if ns < 2_000_000 else "WARN" if ns < 5_000_000 else "FAIL"
    results.append(("scrape (full pass)", ns, f"{status} (target < 2ms)"))

    print()
    for name, ns_val, note in results:
        print(f"  {name:30s}  {ns_val / 1000:>10.1f}μs   {note}")

    print()
    if all("FAIL" not in r[2] for r in results):
        print("All benchmarks within acceptable range.")
    else:
        print("WARNING: Some benchmarks exceeded target. Review above.")


if __name__ == "__main__":
    main()
