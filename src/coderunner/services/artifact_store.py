from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import List

import structlog

from ..core.errors import MaterializationFailed
from ..core.models import Job
from ..runners.base import Runner

log = structlog.get_logger(__name__)


class ArtifactStore:
    """
    Writes a job's source files into a private per-job directory:

      <work_root>/job_<job_id>_XXXX/
        ├─ <entry>        (source or measurement harness)
        └─ <binary>       (written later by the compile stage)

    Every path handed out here is recorded on ``job.artifacts`` so cleanup
    knows exactly what to remove.
    """

    def __init__(self, work_root: Path):
        self.work_root = work_root if work_root.is_absolute() else work_root.resolve()

    def create_workspace(self, job_id: str) -> Path:
        try:
            self.work_root.mkdir(parents=True, exist_ok=True)
            return Path(tempfile.mkdtemp(prefix=f"job_{job_id}_", dir=self.work_root))
        except OSError as e:
            raise MaterializationFailed(f"Could not create working directory: {e}") from e

    def materialize(self, job: Job, runner: Runner) -> List[Path]:
        written: List[Path] = []
        for name, content in runner.sources(job).items():
            path = job.workspace / name
            job.artifacts.append(path)
            self._write_atomic(path, content)
            written.append(path)
        for stage in runner.stages(job):
            job.artifacts.extend(stage.produces)
        log.debug("artifacts.written", job_id=job.job_id, files=[p.name for p in written])
        return written

    @staticmethod
    def _write_atomic(path: Path, content: str) -> None:
        # temp file + rename: the target is either absent or complete
        tmp = None
        try:
            fd, tmp = tempfile.mkstemp(prefix=".tmp_", dir=path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp, path)
        except OSError as e:
            if tmp is not None:
                try:
                    os.unlink(tmp)
                except FileNotFoundError:
                    pass
            raise MaterializationFailed(f"Could not write {path.name}: {e}") from e
