from __future__ import annotations

from typing import Dict, List

from ..core.models import Job, Language, Stage
from ..core.utils import find_public_class
from ..executor.toolchain import ToolchainSpec
from .base import Runner

_MISSING = "Java is not installed. Please install Java to run Java code."


class JavaRunner(Runner):
    """javac + java. The file must be named after its public class."""

    language = Language.JAVA
    label = "Java"

    def __init__(self, javac_bin: str = "javac", java_bin: str = "java"):
        self.javac_bin = javac_bin
        self.java_bin = java_bin

    def toolchains(self) -> List[ToolchainSpec]:
        return [
            ToolchainSpec(self.javac_bin, ("-version",), _MISSING),
            ToolchainSpec(self.java_bin, ("-version",), _MISSING),
        ]

    def class_name(self, job: Job) -> str:
        return find_public_class(job.source)

    def sources(self, job: Job) -> Dict[str, str]:
        return {f"{self.class_name(job)}.java": job.source}

    def stages(self, job: Job) -> List[Stage]:
        name = self.class_name(job)
        ws = str(job.workspace)
        return [
            Stage(
                "compile",
                (self.javac_bin, "-encoding", "UTF-8", "-d", ws, str(job.workspace / f"{name}.java")),
                produces=(job.workspace / f"{name}.class",),
                takes_stdin=False,
            ),
            Stage("run", (self.java_bin, "-cp", ws, name)),
        ]
