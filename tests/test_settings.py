from __future__ import annotations

from pathlib import Path

from coderunner.settings import Settings, load_settings


def write_conf(tmp_path: Path, text: str) -> Path:
    conf = tmp_path / "coderunner.yaml"
    conf.write_text(text, encoding="utf-8")
    return conf


def test_defaults(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("CODERUNNER_CONF", str(tmp_path / "missing.yaml"))
    s = load_settings()
    assert s.deadline_s == 10.0
    assert s.port == 3002
    assert s.cxx_flags == ["-O2", "-Wall", "-std=c++17"]
    assert s.max_concurrent_jobs == 0


def test_yaml_overrides_defaults(monkeypatch, tmp_path) -> None:
    conf = write_conf(
        tmp_path,
        "deadline_s: 3\n"
        "work_root: /tmp/cr-test\n"
        "toolchains:\n"
        "  node: /opt/node/bin/node\n"
        "  cxx: clang++\n"
        "  cxx_flags: [-O0, -std=c++20]\n",
    )
    monkeypatch.setenv("CODERUNNER_CONF", str(conf))
    s = load_settings()
    assert s.deadline_s == 3.0
    assert s.work_root == Path("/tmp/cr-test")
    assert s.node_bin == "/opt/node/bin/node"
    assert s.cxx_bin == "clang++"
    assert s.cxx_flags == ["-O0", "-std=c++20"]
    assert s.python_bin == "python3"


def test_env_wins_over_yaml(monkeypatch, tmp_path) -> None:
    conf = write_conf(tmp_path, "deadline_s: 3\nport: 9000\n")
    monkeypatch.setenv("CODERUNNER_CONF", str(conf))
    monkeypatch.setenv("CR_DEADLINE_S", "7.5")
    s = load_settings()
    assert s.deadline_s == 7.5
    assert s.port == 9000


def test_non_mapping_yaml_is_ignored(monkeypatch, tmp_path) -> None:
    conf = write_conf(tmp_path, "- just\n- a list\n")
    monkeypatch.setenv("CODERUNNER_CONF", str(conf))
    assert load_settings().deadline_s == Settings().deadline_s
