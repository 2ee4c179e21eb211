from __future__ import annotations

from typing import Dict, List

from ..core.models import Job, Language, Stage
from ..executor.toolchain import ToolchainSpec
from .base import Runner

ENTRY = "main.js"

# Appended, not prepended: a leading "use strict" directive and line numbers
# in stack traces stay untouched. performance.now() counts from process start.
_EPILOGUE = """
;process.on("exit", function (code) {
  if (code !== 0) return;
  var t = performance.now() / 1000;
  var m = process.memoryUsage().rss / 1048576;
  process.stdout.write(
    "\\nPerformance Metrics:\\nExecution Time: " + t.toFixed(6) + " s\\nMemory Usage: " + m.toFixed(2) + " MB\\n"
  );
});
"""


def render_script(source: str) -> str:
    return source + "\n" + _EPILOGUE


class NodeRunner(Runner):
    language = Language.JAVASCRIPT
    label = "JavaScript"
    instrumented = True

    def __init__(self, node_bin: str = "node"):
        self.node_bin = node_bin

    def toolchains(self) -> List[ToolchainSpec]:
        return [
            ToolchainSpec(
                self.node_bin,
                ("--version",),
                f"Node.js ({self.node_bin}) is not installed. Please install Node.js to run JavaScript code.",
            )
        ]

    def sources(self, job: Job) -> Dict[str, str]:
        return {ENTRY: render_script(job.source)}

    def stages(self, job: Job) -> List[Stage]:
        return [Stage("run", (self.node_bin, str(job.workspace / ENTRY)))]
