"""Command-line entry point: wire config, NVML, registry and HTTP server."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from nvidia_gpu_exporter._collector import Collector
from nvidia_gpu_exporter._config import ExporterConfig
from nvidia_gpu_exporter._registry import MetricRegistry
from nvidia_gpu_exporter._server import make_server
from nvidia_gpu_exporter._telemetry_nvml import NvmlTelemetrySource
from nvidia_gpu_exporter._types import ExporterError

logger = logging.getLogger("nvidia_gpu_exporter.cli")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nvidia-gpu-exporter",
        description="Prometheus exporter for NVIDIA GPU and per-process memory metrics",
    )
    parser.add_argument("--host", default=None, help="address to bind (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="port to listen on (default: 9899)")
    parser.add_argument("--fan-index", type=int, default=None, help="fan to report per device (default: 0)")
    parser.add_argument(
        "--max-command-length",
        type=int,
        default=None,
        help="truncate process command labels to this many characters (default: 256)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="logging level (default: INFO)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = ExporterConfig.from_env(
            host=args.host,
            port=args.port,
            fan_index=args.fan_index,
            max_command_length=args.max_command_length,
            log_level=args.log_level,
        )
    except ValueError as exc:
        print(f"nvidia-gpu-exporter: {exc}", file=sys.stderr)
        return 1

    logging.basicConfig(level=config.log_level.upper(), format=LOG_FORMAT)

    try:
        source = NvmlTelemetrySource(fan_index=config.fan_index)
    except ExporterError:
        logger.exception("Cannot initialize NVML; is the NVIDIA driver installed?")
        return 1

    try:
        registry = MetricRegistry(namespace=config.namespace)
        collector = Collector(source, registry, max_command_length=config.max_command_length)
        server = make_server(config, collector)
    except (ExporterError, OSError):
        logger.exception("Startup failed")
        source.shutdown()
        return 1

    try:
        logger.info("Found %d GPU device(s)", source.device_count())
    except ExporterError as exc:
        logger.warning("Cannot count devices: %s", exc)

    host, port = server.server_address[:2]
    logger.info("Listening on http://%s:%s", host, port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        server.server_close()
        source.shutdown()
    return 0
