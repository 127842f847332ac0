import gc
import logging
import time

import numpy as np
import psutil

from stressload.config import settings
from stressload.controller import Backing, DynamicController
from stressload.probes import ResourceProbe
from stressload.sizes import MB, AbsoluteBytes, ResourceKind

logger = logging.getLogger(__name__)


def measure_memory(label):
    """Print total and used memory."""
    mem = psutil.virtual_memory()
    used_gb = mem.used / (1024 ** 3)
    total_gb = mem.total / (1024 ** 3)
    percent = mem.percent
    print(f"Memory {label}: {used_gb:.2f} GB used / {total_gb:.2f} GB total ({percent:.2f}%)", flush=True)


def memory_stats():
    """One-line summary of this process's resident size and system availability."""
    rss = psutil.Process().memory_info().rss
    available = psutil.virtual_memory().available
    return f", process RSS: {rss // MB} MB, available: {available // MB} MB"


def allocate_buffer(size, page_size=4096):
    """
    Allocate `size` bytes and write one byte per page so the OS commits them.
    """
    buffer = np.empty(size, dtype=np.uint8)
    buffer[::page_size] = 1
    return buffer


# --------------------------------------------
# FIXED-SIZE HOLD
# --------------------------------------------
def hold_memory(size, deadline, config=settings):
    """Hold one committed buffer of `size` bytes until the deadline fires."""
    logger.info("[Memory] Starting load generation with %d MB", size // MB)
    try:
        buffer = allocate_buffer(size, config.page_size)
    except MemoryError as e:
        logger.error("[Memory] Failed to allocate %d MB: %s", size // MB, e)
        return

    try:
        logger.info("[Memory] Allocated %d MB of memory", size // MB)
        ticks = 0
        while not deadline.wait(config.static_memory_interval):
            ticks += 1
            logger.info("[Memory] Allocated: %d MB%s", size // MB, memory_stats())
            # keep the buffer live
            if buffer.size:
                buffer[0] = ticks % 256
        logger.info("[Memory] Stopping memory load generation")
    finally:
        del buffer
        gc.collect()


# --------------------------------------------
# DYNAMIC (PERCENTAGE) HOLD
# --------------------------------------------
class MemoryBacking(Backing):
    """Segments are committed numpy byte buffers."""

    def __init__(self, page_size=4096):
        self.page_size = page_size

    def allocate(self, segment_id, size):
        return allocate_buffer(size, self.page_size)

    def release(self, handle):
        # Dropping the segment's reference frees the buffer.
        pass

    def exercise(self, segments):
        value = int(time.time()) % 256
        for segment in segments:
            if segment.handle.size:
                segment.handle[0] = value

    def reclaim(self):
        gc.collect()

    def describe(self):
        return memory_stats()


def track_memory(percent, deadline, config=settings, probe=None):
    controller = DynamicController(
        "Memory",
        ResourceKind.MEMORY,
        percent,
        probe if probe is not None else ResourceProbe(),
        MemoryBacking(config.page_size),
        deadline,
        interval=config.dynamic_memory_interval,
        safety_factor=config.memory_safety_factor,
        reclaim_on_shrink=True,
    )
    controller.run()
    return controller


def generate_load(magnitude, deadline, config=settings, probe=None):
    """Hold a fixed size, or track a percentage of free memory."""
    if isinstance(magnitude, AbsoluteBytes):
        hold_memory(magnitude.value, deadline, config)
    else:
        track_memory(magnitude.value, deadline, config, probe)
