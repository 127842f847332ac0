import pytest

from stressload.config import Settings
from stressload.controller import Backing

KB = 1024


class StubProbe:
    """Returns queued free-byte readings in order; the last one repeats."""

    def __init__(self, *readings):
        self.readings = list(readings)
        self.calls = 0

    def free_bytes(self, kind):
        self.calls += 1
        reading = self.readings[0] if len(self.readings) == 1 else self.readings.pop(0)
        if isinstance(reading, Exception):
            raise reading
        return reading


class RecordingBacking(Backing):
    def __init__(self):
        self.live = {}
        self.allocations = 0
        self.exercised = 0
        self.reclaimed = 0
        self.fail_allocate = False

    def allocate(self, segment_id, size):
        if self.fail_allocate:
            raise MemoryError("simulated allocation failure")
        self.allocations += 1
        self.live[segment_id] = size
        return segment_id

    def release(self, handle):
        del self.live[handle]

    def exercise(self, segments):
        self.exercised += 1

    def reclaim(self):
        self.reclaimed += 1


@pytest.fixture
def make_probe():
    return StubProbe


@pytest.fixture
def backing():
    return RecordingBacking()


@pytest.fixture
def fast_config(tmp_path):
    return Settings(
        cpu_batch_iterations=10_000,
        dynamic_memory_interval=0.02,
        dynamic_storage_interval=0.02,
        static_memory_interval=0.02,
        static_storage_interval=0.02,
        progress_interval=0.05,
        storage_dir=str(tmp_path),
        write_chunk_size=4 * KB,
        static_file_count=4,
        static_append_size=KB,
        dynamic_append_size=256,
    )
