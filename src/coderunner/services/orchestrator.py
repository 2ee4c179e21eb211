from __future__ import annotations

import asyncio
import time
from typing import Dict, Optional, Union

import structlog

from ..analysis import analyze
from ..core.errors import ExecutionError, InternalSupervisorError
from ..core.models import (
    Aborted,
    Completed,
    Job,
    JobOutcome,
    JobState,
    Language,
    LaunchFailed,
    TimedOut,
)
from ..core.schemas import ExecutionRequest, ExecutionResponse
from ..core.utils import is_job_id, new_job_id
from ..executor.streams import extract_markers
from ..executor.supervisor import ProcessSupervisor
from ..executor.toolchain import ToolchainProbe
from ..runners.base import Runner
from ..runners.registry import build_runners, select_runner
from ..settings import Settings, get_settings
from .artifact_store import ArtifactStore
from .assembler import Analyzer, ResultAssembler, failure_response
from .cleanup import CleanupCoordinator

log = structlog.get_logger(__name__)


class JobHandle:
    """Returned by ``Orchestrator.submit``; the only way to abort a job."""

    def __init__(self, job_id: str, task: "asyncio.Task[ExecutionResponse]", abort_event: asyncio.Event):
        self.job_id = job_id
        self._task = task
        self._abort_event = abort_event

    def done(self) -> bool:
        return self._task.done()

    def abort(self) -> None:
        self._abort_event.set()

    async def result(self) -> ExecutionResponse:
        # shielded: a caller that stops waiting does not kill the job
        return await asyncio.shield(self._task)


class Orchestrator:
    """
    Job lifecycle: select pipeline -> probe toolchains -> materialize ->
    run stages -> cleanup -> assemble. ``execute`` always resolves to a
    response; per-job failures never escape as exceptions.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        analyzer: Analyzer = analyze,
        runners: Optional[Dict[Language, Runner]] = None,
        probe: Optional[ToolchainProbe] = None,
        supervisor: Optional[ProcessSupervisor] = None,
    ):
        self.s = settings or get_settings()
        self.runners = runners or build_runners(self.s)
        self.store = ArtifactStore(self.s.work_root)
        self.probe = probe or ToolchainProbe(timeout_s=self.s.probe_timeout_s)
        self.supervisor = supervisor or ProcessSupervisor(
            kill_grace_s=self.s.kill_grace_s,
            max_output_bytes=self.s.max_output_bytes,
        )
        self.cleaner = CleanupCoordinator()
        self.assembler = ResultAssembler(analyzer)
        self._gate = asyncio.Semaphore(self.s.max_concurrent_jobs) if self.s.max_concurrent_jobs > 0 else None
        self._inflight: Dict[str, JobHandle] = {}

    # ------------ public API ------------

    def submit(self, req: ExecutionRequest) -> JobHandle:
        """Start a job on the running loop and hand back its handle."""
        job_id = req.job_id
        if not (job_id and is_job_id(job_id)) or job_id in self._inflight:
            job_id = new_job_id()
        abort_event = asyncio.Event()
        task = asyncio.ensure_future(self._execute(job_id, req, abort_event))
        handle = JobHandle(job_id, task, abort_event)
        self._inflight[job_id] = handle
        task.add_done_callback(lambda _t: self._inflight.pop(job_id, None))
        return handle

    async def execute(self, req: ExecutionRequest) -> ExecutionResponse:
        return await self.submit(req).result()

    def abort(self, target: Union[JobHandle, str]) -> bool:
        """Signal one specific job. False if it is unknown or already finished."""
        handle = target if isinstance(target, JobHandle) else self._inflight.get(target)
        if handle is None or handle.done():
            return False
        log.info("job.abort_requested", job_id=handle.job_id)
        handle.abort()
        return True

    def inflight(self) -> int:
        return len(self._inflight)

    # ------------ lifecycle ------------

    async def _execute(self, job_id: str, req: ExecutionRequest, abort_event: asyncio.Event) -> ExecutionResponse:
        bound = log.bind(job_id=job_id)
        try:
            if self._gate is None:
                return await self._run_job(job_id, req, abort_event)
            async with self._gate:
                return await self._run_job(job_id, req, abort_event)
        except ExecutionError as e:
            bound.info("job.failed", reason=e.code, error=e.message)
            return failure_response(e.message, job_id=job_id)
        except Exception as e:
            bound.exception("job.internal_error")
            err = InternalSupervisorError(f"Internal error: {e}")
            return failure_response(err.message, job_id=job_id)

    async def _run_job(self, job_id: str, req: ExecutionRequest, abort_event: asyncio.Event) -> ExecutionResponse:
        # nothing below touches the disk or spawns until the toolchain is known to work
        runner = select_runner(self.runners, req.language)
        await self.probe.ensure(runner.toolchains())

        job = Job(
            job_id=job_id,
            language=runner.language,
            source=req.code,
            stdin=req.input or None,
            workspace=self.store.create_workspace(job_id),
            abort_event=abort_event,
        )
        self._transition(job, JobState.CREATED, language=job.language.value)
        try:
            outcome = await self._run_pipeline(job, runner)
        finally:
            self._transition(job, JobState.CLEANING_UP)
            self.cleaner.cleanup(job)
            self._transition(job, JobState.TERMINAL)

        return self.assembler.assemble(job.job_id, job.source, job.language.value, outcome, runner.label)

    async def _run_pipeline(self, job: Job, runner: Runner) -> JobOutcome:
        self._transition(job, JobState.MATERIALIZING)
        stages = runner.stages(job)
        try:
            self.store.materialize(job, runner)
        except ExecutionError as e:
            self._transition(job, JobState.FAILED, reason=e.code)
            return JobOutcome(stage=stages[0], outcome=LaunchFailed(e.message), elapsed_s=0.0)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.s.deadline_s
        started = time.perf_counter()

        stage, outcome = stages[0], None
        for stage in stages:
            self._transition(job, JobState.LAUNCHING, stage=stage.name)
            outcome = await self.supervisor.run(stage, job, deadline)
            ok = isinstance(outcome, Completed) and outcome.exit_code == stage.success_code
            if not ok and stage.aborts_pipeline:
                break
        elapsed = time.perf_counter() - started

        result = JobOutcome(stage=stage, outcome=outcome, elapsed_s=elapsed)
        if isinstance(outcome, Completed) and outcome.ok:
            self._transition(job, JobState.SUCCEEDED)
            result.output = outcome.stdout
            if runner.instrumented:
                result.output, markers = extract_markers(outcome.stdout)
                if markers is not None:
                    result.elapsed_s, result.memory_mb = markers.elapsed_s, markers.memory_mb
        elif isinstance(outcome, TimedOut):
            self._transition(job, JobState.TIMED_OUT, deadline_s=self.s.deadline_s)
        else:
            self._transition(
                job,
                JobState.FAILED,
                stage=stage.name,
                aborted=isinstance(outcome, Aborted),
                exit_code=getattr(outcome, "exit_code", None),
            )
        return result

    @staticmethod
    def _transition(job: Job, state: JobState, **kw) -> None:
        job.state = state
        log.info("job.state", job_id=job.job_id, state=state.value, **kw)
