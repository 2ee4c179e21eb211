from __future__ import annotations

from typing import Optional


class ExecutionError(Exception):
    """Base for every per-job failure. Never fatal to the service."""

    code = "execution_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnsupportedLanguage(ExecutionError):
    code = "unsupported_language"

    def __init__(self, tag: str):
        super().__init__(f"Unsupported language: {tag}")
        self.tag = tag


class ToolchainUnavailable(ExecutionError):
    code = "toolchain_unavailable"

    def __init__(self, executable: str, message: str):
        super().__init__(message)
        self.executable = executable


class MaterializationFailed(ExecutionError):
    code = "materialization_failed"


class CompileFailed(ExecutionError):
    code = "compile_failed"

    def __init__(self, label: str, diagnostics: str, exit_code: Optional[int] = None):
        text = diagnostics.strip() or f"compiler exited with code {exit_code}"
        super().__init__(f"{label} compilation failed:\n{text}")
        self.diagnostics = diagnostics
        self.exit_code = exit_code


class RuntimeFailed(ExecutionError):
    code = "runtime_failed"

    def __init__(self, exit_code: int, stderr: str):
        super().__init__(stderr or f"Process exited with code {exit_code}")
        self.exit_code = exit_code
        self.stderr = stderr


class ExecutionTimedOut(ExecutionError):
    code = "timeout"

    def __init__(self, message: str = "Execution timeout"):
        super().__init__(message)


class ExecutionAborted(ExecutionError):
    code = "aborted"

    def __init__(self, message: str = "Execution aborted"):
        super().__init__(message)


class InternalSupervisorError(ExecutionError):
    code = "internal_error"
