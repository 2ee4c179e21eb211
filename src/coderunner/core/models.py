from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .errors import UnsupportedLanguage


class Language(str, Enum):
    PYTHON = "python"
    JAVASCRIPT = "javascript"
    JAVA = "java"
    CPP = "cpp"

    @classmethod
    def parse(cls, tag: str) -> "Language":
        key = (tag or "").strip().lower()
        key = _ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise UnsupportedLanguage(tag) from None


_ALIASES = {
    "py": "python",
    "python3": "python",
    "js": "javascript",
    "node": "javascript",
    "c++": "cpp",
}


class JobState(str, Enum):
    CREATED = "CREATED"
    MATERIALIZING = "MATERIALIZING"
    LAUNCHING = "LAUNCHING"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"
    CLEANING_UP = "CLEANING_UP"
    TERMINAL = "TERMINAL"


@dataclass
class Job:
    job_id: str
    language: Language
    source: str
    stdin: Optional[str]
    workspace: Path   # private directory, created by the artifact store
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    state: JobState = JobState.CREATED
    artifacts: List[Path] = field(default_factory=list)
    cleaned: bool = False
    abort_event: asyncio.Event = field(default_factory=asyncio.Event)


@dataclass(frozen=True)
class Stage:
    name: str                      # "compile" | "run"
    argv: Tuple[str, ...]
    produces: Tuple[Path, ...] = ()
    success_code: int = 0
    aborts_pipeline: bool = True
    takes_stdin: bool = True       # compilers never see the job's input

    @property
    def is_compile(self) -> bool:
        return self.name == "compile"


# ---- stage outcomes ----

@dataclass
class Completed:
    exit_code: int
    stdout: str
    stderr: str
    truncated: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass
class TimedOut:
    stdout: str = ""
    stderr: str = ""


@dataclass
class LaunchFailed:
    reason: str


@dataclass
class Aborted:
    pass


StageOutcome = Union[Completed, TimedOut, LaunchFailed, Aborted]


@dataclass
class PerformanceMarkers:
    elapsed_s: float
    memory_mb: float


@dataclass
class JobOutcome:
    """Outcome of the last attempted stage plus the job-level measurements."""
    stage: Optional[Stage]
    outcome: StageOutcome
    elapsed_s: float
    memory_mb: float = 0.0
    output: str = ""
