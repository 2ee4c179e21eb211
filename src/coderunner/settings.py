from __future__ import annotations

import os
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ---- paths ----
    work_root: Path = Path(tempfile.gettempdir()) / "coderunner"

    # ---- budgets ----
    deadline_s: float = 10.0
    kill_grace_s: float = 2.0
    probe_timeout_s: float = 5.0
    max_output_bytes: int = 1024 * 1024
    max_concurrent_jobs: int = 0  # 0 = unlimited

    # ---- toolchains ----
    python_bin: str = "python3"
    node_bin: str = "node"
    javac_bin: str = "javac"
    java_bin: str = "java"
    cxx_bin: str = "g++"
    cxx_flags: List[str] = ["-O2", "-Wall", "-std=c++17"]

    # ---- http / logging ----
    host: str = "127.0.0.1"
    port: int = 3002
    cors_origins: List[str] = [
        "http://localhost:8080",
        "http://localhost:8081",
        "http://localhost:5173",
    ]
    log_level: str = "INFO"
    log_json: bool = True

    # env prefix CR_*
    model_config = SettingsConfigDict(env_prefix="CR_", extra="ignore")


_YAML_KEYS = {
    "work_root": Path,
    "deadline_s": float,
    "kill_grace_s": float,
    "probe_timeout_s": float,
    "max_output_bytes": int,
    "max_concurrent_jobs": int,
    "cors_origins": list,
    "host": str,
    "port": int,
    "log_level": str,
    "log_json": bool,
}

_TOOLCHAIN_KEYS = {
    "python": "python_bin",
    "node": "node_bin",
    "javac": "javac_bin",
    "java": "java_bin",
    "cxx": "cxx_bin",
}


def load_settings() -> Settings:
    # 0) base from CR_* env
    s = Settings()

    # 1) conf/coderunner.yaml (or CODERUNNER_CONF)
    conf = os.environ.get("CODERUNNER_CONF", "conf/coderunner.yaml")
    try:
        with open(conf, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        data = {}
    if not isinstance(data, dict):
        data = {}

    update: Dict[str, Any] = {}
    for key, cast in _YAML_KEYS.items():
        if key in data and data[key] is not None:
            update[key] = cast(data[key])

    # toolchains block: {python: ..., cxx: ..., cxx_flags: [...]}
    tools = data.get("toolchains") or {}
    if not isinstance(tools, dict):
        tools = {}
    for key, field in _TOOLCHAIN_KEYS.items():
        if tools.get(key):
            update[field] = str(tools[key])
    if isinstance(tools.get("cxx_flags"), list):
        update["cxx_flags"] = [str(flag) for flag in tools["cxx_flags"]]

    # 2) env still wins over yaml
    for field in list(update):
        if f"CR_{field.upper()}" in os.environ:
            del update[field]

    return s.model_copy(update=update)


@lru_cache
def get_settings() -> Settings:
    return load_settings()
