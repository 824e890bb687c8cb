"""Process identity lookup via psutil."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import psutil

from nvidia_gpu_exporter._types import IdentityLookupError, ProcessIdentity


@runtime_checkable
class IdentitySource(Protocol):
    def lookup(self, pid: int) -> ProcessIdentity: ...


class PsutilIdentitySource:
    """Resolves a pid to its command line and owning user name.

    Short-lived or permission-restricted processes legitimately fail here.
    """

    def lookup(self, pid: int) -> ProcessIdentity:
        try:
            proc = psutil.Process(pid)
            with proc.oneshot():
                command = " ".join(proc.cmdline())
                user = proc.username()
        except (psutil.NoSuchProcess, psutil.AccessDenied) as exc:
            raise IdentityLookupError(f"pid {pid}: {exc}") from exc
        return ProcessIdentity(command=command, user=user)
