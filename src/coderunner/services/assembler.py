from __future__ import annotations

from typing import Callable, Optional, Tuple

import structlog

from ..core.errors import (
    CompileFailed,
    ExecutionAborted,
    ExecutionError,
    ExecutionTimedOut,
    RuntimeFailed,
)
from ..core.models import Aborted, Completed, JobOutcome, LaunchFailed, TimedOut
from ..core.schemas import AIFeedback, ComplexityEstimate, ExecutionResponse, ExecutionResult
from ..executor.streams import TRUNCATION_NOTICE

log = structlog.get_logger(__name__)

Analyzer = Callable[[str, str], Tuple[ComplexityEstimate, AIFeedback]]


def outcome_error(outcome: JobOutcome, label: str = "") -> Optional[ExecutionError]:
    """Classify a finished job. None means success; exit code alone decides."""
    result = outcome.outcome
    if isinstance(result, Completed):
        if result.ok:
            return None
        if outcome.stage is not None and outcome.stage.is_compile:
            return CompileFailed(label or "Source", result.stderr or result.stdout, result.exit_code)
        return RuntimeFailed(result.exit_code, result.stderr)
    if isinstance(result, TimedOut):
        return ExecutionTimedOut()
    if isinstance(result, Aborted):
        return ExecutionAborted()
    if isinstance(result, LaunchFailed):
        return ExecutionError(result.reason)
    raise TypeError(f"unknown stage outcome: {result!r}")


def failure_response(
    message: str, job_id: Optional[str] = None, elapsed_s: float = 0.0
) -> ExecutionResponse:
    return ExecutionResponse(
        job_id=job_id,
        result=ExecutionResult(
            output="",
            errors=message,
            execution_time=elapsed_s,
            memory_usage=0.0,
            complexity=ComplexityEstimate(
                explanation="Could not determine complexity due to execution error",
            ),
        ),
        ai_feedback=AIFeedback(summary=f"Code execution failed: {message}"),
    )


class ResultAssembler:
    def __init__(self, analyzer: Analyzer):
        self.analyzer = analyzer

    def assemble(
        self, job_id: str, source: str, language: str, outcome: JobOutcome, label: str = ""
    ) -> ExecutionResponse:
        error = outcome_error(outcome, label)
        if error is not None:
            return failure_response(error.message, job_id=job_id, elapsed_s=outcome.elapsed_s)

        output = outcome.output
        if isinstance(outcome.outcome, Completed) and outcome.outcome.truncated:
            output += TRUNCATION_NOTICE

        complexity, feedback = self._analyze(job_id, source, language)
        return ExecutionResponse(
            job_id=job_id,
            result=ExecutionResult(
                output=output,
                errors=None,
                execution_time=outcome.elapsed_s,
                memory_usage=outcome.memory_mb,
                complexity=complexity,
            ),
            ai_feedback=feedback,
        )

    def _analyze(self, job_id: str, source: str, language: str) -> Tuple[ComplexityEstimate, AIFeedback]:
        # heuristics must never change the outcome of a finished job
        try:
            return self.analyzer(source, language)
        except Exception:
            log.exception("analysis.failed", job_id=job_id)
            return (
                ComplexityEstimate(explanation="Could not determine complexity"),
                AIFeedback(summary="Code analysis unavailable"),
            )
