from __future__ import annotations

from typing import Dict, List

from ..core.models import Job, Language, Stage
from ..executor.toolchain import ToolchainSpec
from .base import Runner

ENTRY = "main.py"
WRAPPER = "_entry.py"

# The user's file is written untouched and run by this wrapper through runpy,
# so it is the real __main__ module and tracebacks point at its own lines.
# Markers are only printed when it returns normally.
WRAPPER_SOURCE = """\
import os
import runpy
import sys
import time

_target = os.path.join(os.path.dirname(os.path.abspath(__file__)), "main.py")
_start = time.perf_counter()
try:
    runpy.run_path(_target, run_name="__main__")
except SystemExit:
    raise
except BaseException as e:
    # drop the wrapper and runpy frames, start at the user's first frame
    tb = e.__traceback__
    while tb is not None and tb.tb_frame.f_code.co_filename != _target:
        tb = tb.tb_next
    sys.excepthook(type(e), e, tb)
    sys.exit(1)

_elapsed = time.perf_counter() - _start
try:
    import resource
    _rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    _mem = _rss / (1024.0 * 1024.0) if sys.platform == "darwin" else _rss / 1024.0
except ImportError:
    _mem = 0.0
sys.stdout.write(
    "\\nPerformance Metrics:\\nExecution Time: %.6f s\\nMemory Usage: %.2f MB\\n"
    % (_elapsed, _mem)
)
sys.stdout.flush()
"""


class PythonRunner(Runner):
    language = Language.PYTHON
    label = "Python"
    instrumented = True

    def __init__(self, python_bin: str = "python3"):
        self.python_bin = python_bin

    def toolchains(self) -> List[ToolchainSpec]:
        return [
            ToolchainSpec(
                self.python_bin,
                ("--version",),
                f"Python ({self.python_bin}) is not installed. Please install Python to run Python code.",
            )
        ]

    def sources(self, job: Job) -> Dict[str, str]:
        return {ENTRY: job.source, WRAPPER: WRAPPER_SOURCE}

    def stages(self, job: Job) -> List[Stage]:
        return [Stage("run", (self.python_bin, str(job.workspace / WRAPPER)))]
