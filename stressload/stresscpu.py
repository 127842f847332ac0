import logging
import multiprocessing
import signal

import numpy as np
import psutil
from numba import njit

from stressload.config import settings

logger = logging.getLogger(__name__)


def measure_cpu(label, duration=None):
    """Print CPU utilization since the last call, or averaged over `duration` seconds."""
    usage = psutil.cpu_percent(interval=duration)
    print(f"CPU Utilization {label}: {usage:.2f}%", flush=True)
    return usage


# --------------------------------------------
# WORKER KERNEL
# --------------------------------------------
@njit(nogil=True)
def mix_batch(seed, iterations):
    """One batch of LCG + xorshift mixing. Pure integer arithmetic, no allocation."""
    result = np.uint64(seed)
    mul = np.uint64(1103515245)
    inc = np.uint64(12345)
    k = np.uint64(31)
    s4 = np.uint64(4)
    s21 = np.uint64(21)
    s35 = np.uint64(35)
    for i in range(iterations):
        result = result * mul + inc
        result ^= result >> s21
        result ^= result << s35
        result ^= result >> s4
        result += np.uint64(i) * k
    return result


def cpu_worker(stop_event, batch_iterations):
    """Burn one core until `stop_event` is set.

    The event is polled once per batch, so shutdown latency is one batch.
    """
    # The parent owns interrupt handling.
    signal.signal(signal.SIGINT, signal.SIG_IGN)
    result = 0
    while not stop_event.is_set():
        result = mix_batch(result, batch_iterations)
    return result


# --------------------------------------------
# SPAWN & MANAGE PROCESSES
# --------------------------------------------
def resolve_cores(cores):
    """0 means every core."""
    if cores == 0:
        return multiprocessing.cpu_count()
    return cores


def start_processes(processes, stop_event, cores, batch_iterations):
    for core_id in range(cores):
        p = multiprocessing.Process(
            target=cpu_worker,
            args=(stop_event, batch_iterations),
            name=f"stress-cpu-{core_id}",
        )
        p.daemon = True
        p.start()
        processes.append(p)
        logger.info("[CPU] Starting load generation on core %d", core_id)


def stop_processes(processes):
    """Terminate any stress processes that are still running."""
    for p in processes:
        if p.is_alive():
            p.terminate()
    for p in processes:
        p.join(timeout=1)


def generate_load(cores, deadline, config=settings):
    """Run one compute-bound process per core until the deadline fires."""
    cores = resolve_cores(cores)
    logger.info("[CPU] Starting load generation on %d cores", cores)

    processes = []
    try:
        start_processes(processes, deadline.event, cores, config.cpu_batch_iterations)
        deadline.wait()
        for core_id, p in enumerate(processes):
            p.join()
            logger.info("[CPU] Stopping load generation on core %d", core_id)
    finally:
        stop_processes(processes)
    logger.info("[CPU] Load generation completed")
