import logging
import os
import signal
import threading
import time

import pytest

from stressload import stressdisk, stressmemory
from stressload.deadline import Deadline
from stressload.errors import ArgumentError, InvalidDuration, InvalidSizeFormat, NoLoadSpecified
from stressload.sizes import AbsoluteBytes, PercentageOfFree, ResourceKind
from stressload.stress import LoadPlan, build_plan, plan_tasks, run_plan, show_progress

KB = 1024


def test_build_plan_parses_every_load():
    plan = build_plan("1m30s", cpu=0, memory="50MB", storage="80%")

    assert plan.duration == 90
    assert plan.cpu == 0
    assert plan.memory.kind is ResourceKind.MEMORY
    assert plan.memory.magnitude == AbsoluteBytes(50 * 1024 * 1024)
    assert plan.storage.magnitude == PercentageOfFree(80.0)
    assert plan.storage.is_dynamic


def test_build_plan_without_load_fails():
    with pytest.raises(NoLoadSpecified):
        build_plan("3s")


def test_build_plan_rejects_bad_values():
    with pytest.raises(InvalidDuration):
        build_plan("soon", memory="1MB")
    with pytest.raises(InvalidSizeFormat):
        build_plan("3s", memory="lots")
    with pytest.raises(ArgumentError):
        build_plan("3s", cpu=-2)


def test_run_plan_without_load_starts_nothing(monkeypatch):
    started = []
    monkeypatch.setattr("threading.Thread.start", lambda self: started.append(self))

    with pytest.raises(NoLoadSpecified):
        run_plan(LoadPlan(duration=1))
    assert started == []


def test_plan_tasks_one_per_requested_resource():
    plan = build_plan("1s", cpu=1, storage="1MB")
    names = [name for name, _ in plan_tasks(plan, Deadline(1))]
    assert names == ["CPU", "Storage"]


def test_run_plan_end_to_end(tmp_path, fast_config, make_probe, capsys):
    plan = build_plan("0.4s", memory="1MB", storage="80%")
    deadline = Deadline(plan.duration)

    run_plan(plan, deadline, fast_config, make_probe(1000 * KB, 1200 * KB, 500 * KB))

    assert deadline.cancelled
    assert os.listdir(tmp_path) == []
    out = capsys.readouterr().out
    assert "Progress:" in out
    assert "Stress test completed." in out


def test_failed_task_does_not_stop_others(tmp_path, fast_config, make_probe, monkeypatch, caplog):
    def broken(*args):
        raise RuntimeError("boom")

    storage_runs = []
    original = stressdisk.generate_load

    def storage(*args):
        storage_runs.append(True)
        original(*args)

    monkeypatch.setattr(stressmemory, "generate_load", broken)
    monkeypatch.setattr(stressdisk, "generate_load", storage)

    plan = build_plan("0.3s", memory="1MB", storage="64KB")
    with caplog.at_level(logging.ERROR):
        run_plan(plan, Deadline(plan.duration), fast_config, make_probe(KB))

    assert storage_runs == [True]
    assert "[Memory] Load task failed" in caplog.text
    assert os.listdir(tmp_path) == []


def test_show_progress_prints_until_deadline(capsys):
    show_progress(Deadline(0.35), interval=0.1)
    out = capsys.readouterr().out
    assert "Progress:" in out
    assert "Remaining:" in out


def test_interrupts_cancel_and_wait_for_every_task(tmp_path, fast_config, monkeypatch, capsys):
    released = []

    def slow_memory(magnitude, deadline, config, probe):
        deadline.wait()
        time.sleep(1.0)
        released.append(True)

    monkeypatch.setattr(stressmemory, "generate_load", slow_memory)
    plan = build_plan("30s", memory="1MB", storage="64KB")

    previous = signal.signal(signal.SIGINT, signal.default_int_handler)
    timers = [threading.Timer(delay, os.kill, (os.getpid(), signal.SIGINT)) for delay in (0.2, 0.5)]
    try:
        for timer in timers:
            timer.start()
        start = time.monotonic()
        run_plan(plan, Deadline(plan.duration), fast_config)
        elapsed = time.monotonic() - start
    finally:
        for timer in timers:
            timer.cancel()
        signal.signal(signal.SIGINT, previous)

    assert elapsed < 20
    assert released == [True]
    assert os.listdir(tmp_path) == []
    out = capsys.readouterr().out
    assert "Interrupt signal received" in out
    assert "Still stopping" in out
    assert "Stress test completed." in out
