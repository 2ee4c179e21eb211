from __future__ import annotations

import shutil
from pathlib import Path

import structlog

from ..core.models import Job

log = structlog.get_logger(__name__)


class CleanupCoordinator:
    """Sole deleter of a job's files. Runs once per job and never raises."""

    def cleanup(self, job: Job) -> bool:
        """Returns False when the job was already cleaned up."""
        if job.cleaned:
            log.debug("cleanup.skipped", job_id=job.job_id)
            return False
        job.cleaned = True

        for path in job.artifacts:
            _unlink(job.job_id, path)

        # leftovers the toolchains produced on their own (javac inner classes, ...)
        ws = job.workspace
        try:
            leftovers = list(ws.iterdir())
        except FileNotFoundError:
            leftovers = None
        except OSError as e:
            _log_failure(job.job_id, ws, e)
            leftovers = None
        if leftovers is not None:
            for extra in leftovers:
                if extra.is_dir() and not extra.is_symlink():
                    try:
                        shutil.rmtree(extra)
                    except OSError as e:
                        _log_failure(job.job_id, extra, e)
                else:
                    _unlink(job.job_id, extra)
            try:
                ws.rmdir()
            except FileNotFoundError:
                pass
            except OSError as e:
                _log_failure(job.job_id, ws, e)

        log.debug("cleanup.done", job_id=job.job_id, files=len(job.artifacts))
        return True


def _unlink(job_id: str, path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        _log_failure(job_id, path, e)


def _log_failure(job_id: str, path: Path, exc: BaseException) -> None:
    log.warning("cleanup.failed", job_id=job_id, path=str(path), error=str(exc))
