"""Exporter configuration."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace

_ENV_PREFIX = "NVIDIA_GPU_EXPORTER_"

# field name -> converter; only these fields can be set from the environment
_ENV_FIELDS = {
    "host": str,
    "port": int,
    "fan_index": int,
    "max_command_length": int,
    "log_level": str,
}


@dataclass(frozen=True)
class ExporterConfig:
    """Immutable exporter configuration."""

    host: str = "0.0.0.0"  # noqa: S104
    port: int = 9899
    namespace: str = "nvidia_gpu"
    fan_index: int = 0
    max_command_length: int = 256
    log_level: str = "INFO"

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: object,
    ) -> ExporterConfig:
        """Build a config from ``NVIDIA_GPU_EXPORTER_*`` variables.

        Keyword overrides win over the environment unless they are ``None``,
        so argparse results can be passed straight through.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        for name, convert in _ENV_FIELDS.items():
            raw = env.get(_ENV_PREFIX + name.upper())
            if raw is None or raw == "":
                continue
            try:
                values[name] = convert(raw)
            except ValueError:
                raise ValueError(
                    f"invalid value for {_ENV_PREFIX}{name.upper()}: {raw!r}"
                ) from None

        known = {f.name for f in fields(cls)}
        for name, value in overrides.items():
            if name not in known:
                raise TypeError(f"unknown config field: {name}")
            if value is not None:
                values[name] = value

        config = replace(cls(), **values)  # type: ignore[arg-type]
        if not 0 <= config.port <= 65535:
            raise ValueError(f"port out of range: {config.port}")
        if config.max_command_length < 1:
            raise ValueError("max_command_length must be positive")
        return config
