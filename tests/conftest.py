from __future__ import annotations

import asyncio
import shutil
import sys
from pathlib import Path
from typing import Dict, List

import pytest

from coderunner.core.models import Job, Language, Stage
from coderunner.executor.toolchain import ToolchainSpec
from coderunner.runners.base import Runner
from coderunner.services.cleanup import CleanupCoordinator
from coderunner.settings import Settings


def run(coro):
    return asyncio.run(coro)


def needs(binary: str):
    return pytest.mark.skipif(shutil.which(binary) is None, reason=f"{binary} not installed")


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        work_root=tmp_path / "work",
        python_bin=sys.executable,
        deadline_s=10.0,
        kill_grace_s=2.0,
        log_json=False,
    )


def make_job(workspace: Path, source: str = "", language: Language = Language.PYTHON, stdin=None) -> Job:
    workspace.mkdir(parents=True, exist_ok=True)
    return Job(job_id="0" * 32, language=language, source=source, stdin=stdin, workspace=workspace)


class RecordingCleaner(CleanupCoordinator):
    def __init__(self):
        self.jobs: List[Job] = []
        self.calls = 0

    def cleanup(self, job: Job) -> bool:
        self.calls += 1
        self.jobs.append(job)
        return super().cleanup(job)


class ScriptedRunner(Runner):
    """Two-stage pipeline built from python one-liners, no real compiler needed."""

    language = Language.CPP
    label = "Fake"

    def __init__(self, compile_code: str, run_code: str):
        self.compile_code = compile_code
        self.run_code = run_code

    def toolchains(self) -> List[ToolchainSpec]:
        return [ToolchainSpec(sys.executable, ("--version",), "python missing")]

    def sources(self, job: Job) -> Dict[str, str]:
        return {"prog.src": job.source}

    def stages(self, job: Job) -> List[Stage]:
        out = job.workspace / "prog.bin"
        return [
            Stage("compile", (sys.executable, "-c", self.compile_code), produces=(out,), takes_stdin=False),
            Stage("run", (sys.executable, "-c", self.run_code)),
        ]
