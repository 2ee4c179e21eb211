from __future__ import annotations

import asyncio
import os
import signal
from dataclasses import dataclass
from typing import Iterable, Set, Tuple

import structlog

from ..core.errors import ToolchainUnavailable

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ToolchainSpec:
    executable: str
    probe_args: Tuple[str, ...]
    missing_message: str


class ToolchainProbe:
    """
    Fail-fast version check for external compilers/interpreters.

    A toolchain counts as installed when ``<executable> <probe_args>`` can be
    spawned and exits 0 within ``timeout_s``. Only successes are cached, so a
    toolchain installed while the service runs is picked up on the next job.
    """

    def __init__(self, timeout_s: float = 5.0):
        self.timeout_s = timeout_s
        self._ok: Set[Tuple[str, Tuple[str, ...]]] = set()

    async def ensure(self, specs: Iterable[ToolchainSpec]) -> None:
        for spec in specs:
            await self.check(spec)

    async def check(self, spec: ToolchainSpec) -> None:
        key = (spec.executable, spec.probe_args)
        if key in self._ok:
            return
        try:
            proc = await asyncio.create_subprocess_exec(
                spec.executable,
                *spec.probe_args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            log.warning("probe.spawn_failed", executable=spec.executable, error=str(e))
            raise ToolchainUnavailable(spec.executable, spec.missing_message) from e

        try:
            rc = await asyncio.wait_for(proc.wait(), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            _kill_group(proc.pid)
            await proc.wait()
            log.warning("probe.timeout", executable=spec.executable, timeout_s=self.timeout_s)
            raise ToolchainUnavailable(spec.executable, spec.missing_message) from None

        if rc != 0:
            log.warning("probe.failed", executable=spec.executable, exit_code=rc)
            raise ToolchainUnavailable(spec.executable, spec.missing_message)

        self._ok.add(key)
        log.debug("probe.ok", executable=spec.executable)


def _kill_group(pid: int) -> None:
    try:
        os.killpg(pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        pass
