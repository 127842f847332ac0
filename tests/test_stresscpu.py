import multiprocessing
import time

from stressload.deadline import Deadline
from stressload.stresscpu import cpu_worker, generate_load, mix_batch, resolve_cores


class CountdownEvent:
    """Reports unset for the first `batches` checks."""

    def __init__(self, batches):
        self.batches = batches
        self.checks = 0

    def is_set(self):
        self.checks += 1
        return self.checks > self.batches


def test_mix_batch_is_deterministic():
    assert mix_batch(0, 1000) == mix_batch(0, 1000)
    assert isinstance(mix_batch(0, 1000), int)


def test_mix_batch_chains_large_seeds():
    first = mix_batch(0, 1000)
    assert isinstance(mix_batch(first, 1000), int)


def test_resolve_cores():
    assert resolve_cores(0) == multiprocessing.cpu_count()
    assert resolve_cores(3) == 3


def test_worker_checks_stop_flag_once_per_batch(monkeypatch):
    monkeypatch.setattr("signal.signal", lambda *args: None)
    event = CountdownEvent(batches=3)

    result = cpu_worker(event, 100)

    assert event.checks == 4
    assert result != 0


def test_worker_returns_immediately_when_already_stopped(monkeypatch):
    monkeypatch.setattr("signal.signal", lambda *args: None)
    assert cpu_worker(CountdownEvent(batches=0), 100) == 0


def test_generate_load_stops_all_workers_at_deadline(fast_config):
    deadline = Deadline(0.5)
    start = time.monotonic()

    generate_load(2, deadline, fast_config)

    assert deadline.cancelled
    assert time.monotonic() - start < 60
    assert [p for p in multiprocessing.active_children() if p.name.startswith("stress-cpu")] == []
