from __future__ import annotations

from typing import Dict, List

from ..core.models import Job, Language, Stage
from ..executor.toolchain import ToolchainSpec


class Runner:
    """
    Per-language pipeline template.

    ``sources`` says which files the artifact store writes for a job (file
    name -> content), ``stages`` turns those into the ordered compile/run
    argv list. Both are pure: nothing touches the disk here.
    """

    language: Language
    label: str
    instrumented = False   # run stage emits performance markers

    def toolchains(self) -> List[ToolchainSpec]:
        raise NotImplementedError

    def sources(self, job: Job) -> Dict[str, str]:
        raise NotImplementedError

    def stages(self, job: Job) -> List[Stage]:
        raise NotImplementedError
