"""
Orchestrator: starts one task per requested resource under a shared deadline
and returns once every task has released what it holds.
"""
import logging
import tempfile
import threading
from dataclasses import dataclass
from typing import Optional

from stressload import stresscpu, stressdisk, stressmemory
from stressload.config import settings
from stressload.deadline import Deadline
from stressload.errors import ArgumentError, NoLoadSpecified
from stressload.sizes import LoadRequest, ResourceKind, parse_duration, parse_size

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadPlan:
    duration: float
    cpu: int = -1
    memory: Optional[LoadRequest] = None
    storage: Optional[LoadRequest] = None

    @property
    def has_load(self) -> bool:
        return self.cpu >= 0 or self.memory is not None or self.storage is not None


def build_plan(timeout: str, cpu: int = -1, memory: Optional[str] = None,
               storage: Optional[str] = None) -> LoadPlan:
    """Validate raw CLI values into a LoadPlan. Raises ArgumentError."""
    duration = parse_duration(timeout)
    if cpu < -1:
        raise ArgumentError(f"invalid CPU core count: {cpu}")
    if cpu < 0 and not memory and not storage:
        raise NoLoadSpecified()

    return LoadPlan(
        duration=duration,
        cpu=cpu,
        memory=LoadRequest(ResourceKind.MEMORY, parse_size(memory)) if memory else None,
        storage=LoadRequest(ResourceKind.STORAGE, parse_size(storage)) if storage else None,
    )


# --------------------------------------------
# REPORTING
# --------------------------------------------
def print_banner(plan):
    print("Starting stress test...")
    print(f"Duration: {plan.duration:g}s")
    if plan.cpu == 0:
        print("CPU load: all cores")
    elif plan.cpu > 0:
        print(f"CPU load: {plan.cpu} cores")
    if plan.memory is not None:
        print(f"Memory load: {plan.memory.describe()}")
    if plan.storage is not None:
        print(f"Storage load: {plan.storage.describe()}")
    print(flush=True)


def print_usage_snapshot(label, config=settings):
    stresscpu.measure_cpu(label)
    stressmemory.measure_memory(label)
    try:
        stressdisk.measure_disk(label, config.storage_dir or tempfile.gettempdir())
    except OSError as e:
        logger.warning("Disk usage unavailable: %s", e)


def show_progress(deadline, interval=1.0):
    """Print elapsed/remaining time once per interval until the deadline fires."""
    while not deadline.wait(interval):
        remaining = deadline.remaining()
        progress = deadline.elapsed() / deadline.duration * 100
        print(f"\rProgress: {progress:.1f}% (Remaining: {remaining:.0f}s)", end="", flush=True)
    print(flush=True)


# --------------------------------------------
# TASKS
# --------------------------------------------
def _guarded(name, target, *args):
    def runner():
        try:
            target(*args)
        except Exception:
            logger.exception("[%s] Load task failed", name)
    return runner


def plan_tasks(plan, deadline, config=settings, probe=None):
    """Return (name, callable) for each requested resource."""
    tasks = []
    if plan.cpu >= 0:
        tasks.append(("CPU", _guarded("CPU", stresscpu.generate_load, plan.cpu, deadline, config)))
    if plan.memory is not None:
        tasks.append(("Memory", _guarded(
            "Memory", stressmemory.generate_load, plan.memory.magnitude, deadline, config, probe)))
    if plan.storage is not None:
        tasks.append(("Storage", _guarded(
            "Storage", stressdisk.generate_load, plan.storage.magnitude, deadline, config, probe)))
    return tasks


def _join_all(threads):
    """Join every thread; further interrupts only repeat the stop message."""
    for t in threads:
        while t.is_alive():
            try:
                t.join()
            except KeyboardInterrupt:
                print("\nStill stopping, waiting for load tasks to release resources...", flush=True)


def run_plan(plan, deadline=None, config=settings, probe=None):
    """Run every requested load until the deadline fires or the user interrupts.

    `probe` replaces the live free-space probe of the dynamic controllers.
    """
    if not plan.has_load:
        raise NoLoadSpecified()
    if deadline is None:
        deadline = Deadline(plan.duration)

    threads = [
        threading.Thread(target=runner, name=f"stress-{name.lower()}")
        for name, runner in plan_tasks(plan, deadline, config, probe)
    ]
    progress = threading.Thread(
        target=show_progress, args=(deadline, config.progress_interval),
        name="stress-progress", daemon=True,
    )

    for t in threads:
        t.start()
    progress.start()

    try:
        while not deadline.wait():
            pass
    except KeyboardInterrupt:
        deadline.cancel()
        print("\nInterrupt signal received. Stopping stress test...", flush=True)

    _join_all(threads + [progress])
    print("Stress test completed.", flush=True)
