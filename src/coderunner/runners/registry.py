from __future__ import annotations

from typing import Dict, Union

from ..core.models import Language
from ..settings import Settings
from .base import Runner
from .cpp_runner import CppRunner
from .java_runner import JavaRunner
from .node_runner import NodeRunner
from .python_runner import PythonRunner


def build_runners(settings: Settings) -> Dict[Language, Runner]:
    return {
        Language.PYTHON: PythonRunner(python_bin=settings.python_bin),
        Language.JAVASCRIPT: NodeRunner(node_bin=settings.node_bin),
        Language.JAVA: JavaRunner(javac_bin=settings.javac_bin, java_bin=settings.java_bin),
        Language.CPP: CppRunner(cxx_bin=settings.cxx_bin, flags=settings.cxx_flags),
    }


def select_runner(runners: Dict[Language, Runner], tag: Union[str, Language]) -> Runner:
    """Raises UnsupportedLanguage for anything not in the table."""
    lang = tag if isinstance(tag, Language) else Language.parse(tag)
    return runners[lang]
