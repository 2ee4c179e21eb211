from __future__ import annotations
import re
import uuid

_JOB_ID_RE = re.compile(r"^[0-9a-f]{32}$")
_PUBLIC_CLASS_RE = re.compile(
    r"\bpublic\s+(?:(?:final|abstract|strictfp)\s+)*class\s+([A-Za-z_$][A-Za-z0-9_$]*)"
)


def new_job_id() -> str:
    return uuid.uuid4().hex


def is_job_id(value: str) -> bool:
    return bool(_JOB_ID_RE.match(value or ""))


def find_public_class(source: str, default: str = "Main") -> str:
    """Name of the first top-level ``public class`` in Java source, else ``default``."""
    m = _PUBLIC_CLASS_RE.search(source or "")
    return m.group(1) if m else default
