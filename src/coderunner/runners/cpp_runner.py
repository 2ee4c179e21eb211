from __future__ import annotations

from typing import Dict, List, Sequence

from ..core.models import Job, Language, Stage
from ..executor.toolchain import ToolchainSpec
from .base import Runner

ENTRY = "main.cpp"
BINARY = "main"
DEFAULT_FLAGS = ("-O2", "-Wall", "-std=c++17")


class CppRunner(Runner):
    language = Language.CPP
    label = "C++"

    def __init__(self, cxx_bin: str = "g++", flags: Sequence[str] = DEFAULT_FLAGS):
        self.cxx_bin = cxx_bin
        self.flags = tuple(flags)

    def toolchains(self) -> List[ToolchainSpec]:
        return [
            ToolchainSpec(
                self.cxx_bin,
                ("--version",),
                f"C++ compiler ({self.cxx_bin}) is not installed. Please install {self.cxx_bin} to run C++ code.",
            )
        ]

    def sources(self, job: Job) -> Dict[str, str]:
        return {ENTRY: job.source}

    def stages(self, job: Job) -> List[Stage]:
        binary = job.workspace / BINARY
        return [
            Stage(
                "compile",
                (self.cxx_bin, *self.flags, str(job.workspace / ENTRY), "-o", str(binary)),
                produces=(binary,),
                takes_stdin=False,
            ),
            Stage("run", (str(binary),)),
        ]
