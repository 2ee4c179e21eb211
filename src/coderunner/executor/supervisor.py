from __future__ import annotations

import asyncio
import os
import signal
import time
from typing import Optional

import structlog

from ..core.models import Aborted, Completed, Job, JobState, LaunchFailed, Stage, StageOutcome, TimedOut
from .streams import StreamBuffer, pump

log = structlog.get_logger(__name__)


class ProcessSupervisor:
    """
    Runs one stage as a child process and resolves to a StageOutcome.

    Process exit, the job deadline and the job's abort event race each other.
    The child gets its own session, so a kill takes its whole process group
    (grandchildren holding our pipes open included).
    """

    def __init__(self, kill_grace_s: float = 2.0, max_output_bytes: int = 0):
        self.kill_grace_s = kill_grace_s
        self.max_output_bytes = max_output_bytes

    async def run(self, stage: Stage, job: Job, deadline: float) -> StageOutcome:
        """``deadline`` is an absolute ``loop.time()`` shared by all stages of the job."""
        loop = asyncio.get_running_loop()
        bound = log.bind(job_id=job.job_id, stage=stage.name)

        if job.abort_event.is_set():
            return Aborted()
        remaining = deadline - loop.time()
        if remaining <= 0:
            bound.info("stage.timeout", reason="no_budget_left")
            return TimedOut()

        stdin = job.stdin if stage.takes_stdin else None
        try:
            proc = await asyncio.create_subprocess_exec(
                *stage.argv,
                cwd=str(job.workspace),
                stdin=asyncio.subprocess.PIPE if stdin else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as e:
            bound.warning("stage.launch_failed", argv0=stage.argv[0], error=str(e))
            return LaunchFailed(reason=f"Failed to start {stage.argv[0]}: {e.strerror or e}")

        started = time.perf_counter()
        job.state = JobState.RUNNING
        bound.info("stage.spawned", pid=proc.pid, argv=list(stage.argv))

        out = StreamBuffer(self.max_output_bytes)
        err = StreamBuffer(self.max_output_bytes)
        io = asyncio.ensure_future(self._communicate(proc, stdin, out, err))
        aborted = asyncio.ensure_future(job.abort_event.wait())

        try:
            done, _ = await asyncio.wait(
                {io, aborted}, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            self._kill(proc, bound)
            io.cancel()
            raise
        finally:
            aborted.cancel()

        if io in done:
            rc = io.result()
            self._sweep(proc, bound)
            bound.info(
                "stage.exited",
                pid=proc.pid,
                exit_code=rc,
                duration_s=round(time.perf_counter() - started, 6),
                stdout_bytes=len(out),
                stderr_bytes=len(err),
            )
            return Completed(
                exit_code=rc,
                stdout=out.text(),
                stderr=err.text(),
                truncated=out.truncated or err.truncated,
            )

        was_aborted = job.abort_event.is_set()
        bound.info("stage.aborted" if was_aborted else "stage.timeout", pid=proc.pid)
        self._kill(proc, bound)
        await self._reap(proc, io, bound)
        if was_aborted:
            return Aborted()
        return TimedOut(stdout=out.text(), stderr=err.text())

    async def _communicate(
        self,
        proc: asyncio.subprocess.Process,
        stdin: Optional[str],
        out: StreamBuffer,
        err: StreamBuffer,
    ) -> int:
        tasks = [pump(proc.stdout, out), pump(proc.stderr, err)]
        if stdin:
            tasks.append(self._feed_stdin(proc, stdin))
        await asyncio.gather(*tasks)
        return await proc.wait()

    @staticmethod
    async def _feed_stdin(proc: asyncio.subprocess.Process, data: str) -> None:
        if proc.stdin is None:
            return
        try:
            proc.stdin.write(data.encode("utf-8"))
            await proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            # child exited without consuming all of its input
            log.debug("stage.stdin_closed_early", pid=proc.pid)
        finally:
            proc.stdin.close()

    @classmethod
    def _sweep(cls, proc: asyncio.subprocess.Process, bound) -> None:
        # The leader is already reaped, so its pid may be recycled. Only signal
        # the group while background children are still in it.
        try:
            os.killpg(proc.pid, 0)
        except (ProcessLookupError, PermissionError):
            return
        cls._kill(proc, bound)

    @staticmethod
    def _kill(proc: asyncio.subprocess.Process, bound) -> None:
        # the group may outlive the child itself, so signal it even after exit
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        except OSError as e:
            bound.warning("stage.kill_failed", pid=proc.pid, error=str(e))
            try:
                proc.kill()
            except ProcessLookupError:
                pass

    async def _reap(self, proc: asyncio.subprocess.Process, io: asyncio.Future, bound) -> None:
        # Pumps keep draining after the kill so the pipes reach EOF; past the
        # grace period we stop waiting for them.
        done, _ = await asyncio.wait({io}, timeout=self.kill_grace_s)
        if io in done:
            if not io.cancelled() and io.exception() is not None:
                bound.warning("stage.reap_error", pid=proc.pid, error=str(io.exception()))
            return
        bound.warning("stage.reap_timeout", pid=proc.pid, grace_s=self.kill_grace_s)
        io.cancel()
        await asyncio.wait({io})
