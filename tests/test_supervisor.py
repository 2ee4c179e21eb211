from __future__ import annotations

import asyncio
import os
import signal
import sys
import time
from pathlib import Path

import pytest

from coderunner.core.models import Aborted, Completed, JobState, LaunchFailed, Stage, TimedOut
from coderunner.executor.supervisor import ProcessSupervisor

from conftest import make_job, run


def py(code: str) -> Stage:
    return Stage("run", (sys.executable, "-c", code))


def _run(stage: Stage, job, budget: float = 10.0, **kw):
    async def go():
        sup = ProcessSupervisor(**kw)
        deadline = asyncio.get_running_loop().time() + budget
        return await sup.run(stage, job, deadline)

    return run(go())


def test_completed_captures_both_streams(tmp_path: Path) -> None:
    job = make_job(tmp_path / "ws")
    outcome = _run(py("import sys; print('out'); print('err', file=sys.stderr); sys.exit(3)"), job)
    assert isinstance(outcome, Completed)
    assert outcome.exit_code == 3
    assert outcome.stdout == "out\n"
    assert outcome.stderr == "err\n"
    assert job.state is JobState.RUNNING


def test_runs_in_job_workspace(tmp_path: Path) -> None:
    job = make_job(tmp_path / "ws")
    outcome = _run(py("import os; print(os.getcwd())"), job)
    assert Path(outcome.stdout.strip()).resolve() == job.workspace.resolve()


def test_stdin_is_written_and_closed(tmp_path: Path) -> None:
    job = make_job(tmp_path / "ws", stdin="3\n4\n")
    outcome = _run(py("import sys; print(sum(int(l) for l in sys.stdin))"), job)
    assert outcome.stdout == "7\n"


def test_no_stdin_means_immediate_eof(tmp_path: Path) -> None:
    job = make_job(tmp_path / "ws")
    outcome = _run(py("import sys; print(repr(sys.stdin.read()))"), job, budget=5.0)
    assert isinstance(outcome, Completed)
    assert outcome.stdout == "''\n"


def test_child_ignoring_large_stdin_is_not_an_error(tmp_path: Path) -> None:
    job = make_job(tmp_path / "ws", stdin="x" * (4 * 1024 * 1024))
    outcome = _run(py("print('done')"), job)
    assert isinstance(outcome, Completed)
    assert outcome.exit_code == 0


def test_output_reassembled_byte_for_byte(tmp_path: Path) -> None:
    code = (
        "import sys, random\n"
        "random.seed(7)\n"
        "data = ''.join(chr(32 + (i * 7) % 90) + ('\\u00e9' if i % 13 == 0 else '') for i in range(300000))\n"
        "raw = data.encode('utf-8')\n"
        "out = sys.stdout.buffer\n"
        "i = 0\n"
        "while i < len(raw):\n"
        "    n = random.randint(1, 5000)\n"
        "    out.write(raw[i:i + n]); out.flush(); i += n\n"
    )
    expected = "".join(chr(32 + (i * 7) % 90) + ("é" if i % 13 == 0 else "") for i in range(300000))
    job = make_job(tmp_path / "ws")
    outcome = _run(py(code), job)
    assert isinstance(outcome, Completed)
    assert outcome.stdout == expected


def test_deadline_kills_runaway_process(tmp_path: Path) -> None:
    pid_file = tmp_path / "pid"
    job = make_job(tmp_path / "ws")
    code = f"import os\nopen({str(pid_file)!r}, 'w').write(str(os.getpid()))\nwhile True: pass\n"
    started = time.monotonic()
    outcome = _run(py(code), job, budget=1.0, kill_grace_s=1.0)
    assert isinstance(outcome, TimedOut)
    assert time.monotonic() - started < 1.0 + 1.0 + 2.0
    pid = int(pid_file.read_text())
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)


def test_flooding_process_times_out_with_bounded_buffers(tmp_path: Path) -> None:
    job = make_job(tmp_path / "ws")
    outcome = _run(py("while True: print('x' * 1000)"), job, budget=1.0, kill_grace_s=1.0, max_output_bytes=4096)
    assert isinstance(outcome, TimedOut)
    assert len(outcome.stdout) <= 4096


def test_exhausted_budget_never_spawns(tmp_path: Path) -> None:
    job = make_job(tmp_path / "ws")
    marker = tmp_path / "spawned"
    outcome = _run(py(f"open({str(marker)!r}, 'w').close()"), job, budget=-1.0)
    assert isinstance(outcome, TimedOut)
    assert not marker.exists()


def test_missing_executable_is_launch_failed(tmp_path: Path) -> None:
    job = make_job(tmp_path / "ws")
    outcome = _run(Stage("run", (str(tmp_path / "no-such-binary"),)), job)
    assert isinstance(outcome, LaunchFailed)
    assert "no-such-binary" in outcome.reason


def test_abort_event_stops_the_stage(tmp_path: Path) -> None:
    job = make_job(tmp_path / "ws")

    async def go():
        sup = ProcessSupervisor(kill_grace_s=1.0)
        deadline = asyncio.get_running_loop().time() + 30
        task = asyncio.ensure_future(sup.run(py("import time; time.sleep(30)"), job, deadline))
        await asyncio.sleep(0.5)
        job.abort_event.set()
        return await asyncio.wait_for(task, timeout=5)

    assert isinstance(run(go()), Aborted)


def test_compile_stage_does_not_receive_job_input(tmp_path: Path) -> None:
    job = make_job(tmp_path / "ws", stdin="secret\n")
    stage = Stage("compile", (sys.executable, "-c", "import sys; print(repr(sys.stdin.read()))"), takes_stdin=False)
    outcome = _run(stage, job, budget=5.0)
    assert isinstance(outcome, Completed)
    assert outcome.stdout == "''\n"


def _gone(pid: int) -> bool:
    # a killed orphan may linger as a zombie until init reaps it
    try:
        stat = Path(f"/proc/{pid}/stat").read_text()
    except FileNotFoundError:
        return True
    return stat.rsplit(")", 1)[1].split()[0] == "Z"


@pytest.mark.skipif(not Path("/proc/self/stat").exists(), reason="needs procfs")
def test_background_children_are_killed_after_exit(tmp_path: Path) -> None:
    pid_file = tmp_path / "bg.pid"
    job = make_job(tmp_path / "ws")
    code = (
        "import subprocess, sys\n"
        "p = subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(30)'],\n"
        "                     stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)\n"
        f"open({str(pid_file)!r}, 'w').write(str(p.pid))\n"
        "print('left it running')\n"
    )
    outcome = _run(py(code), job)
    assert isinstance(outcome, Completed)
    assert outcome.stdout == "left it running\n"
    pid = int(pid_file.read_text())
    deadline = time.monotonic() + 3.0
    while not _gone(pid) and time.monotonic() < deadline:
        time.sleep(0.05)
    assert _gone(pid)


def test_sweep_skips_empty_group(tmp_path: Path, monkeypatch) -> None:
    job = make_job(tmp_path / "ws")
    sent = []
    real_killpg = os.killpg

    def spy(pgid, sig):
        sent.append(sig)
        return real_killpg(pgid, sig)

    monkeypatch.setattr(os, "killpg", spy)
    outcome = _run(py("print('alone')"), job)
    assert isinstance(outcome, Completed)
    assert signal.SIGKILL not in sent
