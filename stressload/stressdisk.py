import logging
import os
import shutil
import tempfile
import time

import psutil

from stressload.config import settings
from stressload.controller import Backing, DynamicController
from stressload.probes import ResourceProbe
from stressload.sizes import MB, AbsoluteBytes, ResourceKind

logger = logging.getLogger(__name__)

STORAGE_DIR_PREFIX = "stress-tool-storage-"


def measure_disk(label, path="/"):
    """Report total and used disk space for the filesystem containing `path`."""
    usage = psutil.disk_usage(path)
    used_gb = usage.used / (1024 ** 3)
    total_gb = usage.total / (1024 ** 3)
    percent = usage.percent
    print(f"Disk {label}: {used_gb:.2f} GB used / {total_gb:.2f} GB total ({percent:.2f}%)", flush=True)


# --------------------------------------------
# FILE PRIMITIVES
# --------------------------------------------
def write_file(path, size, chunk_size=64 * 1024):
    """Write `size` random bytes in chunks and force them to disk."""
    with open(path, "wb") as f:
        written = 0
        while written < size:
            block = os.urandom(min(chunk_size, size - written))
            f.write(block)
            written += len(block)
        f.flush()
        os.fsync(f.fileno())


def read_file(path, chunk_size=64 * 1024):
    """Read the whole file sequentially; returns the byte count."""
    total = 0
    with open(path, "rb") as f:
        while True:
            block = f.read(chunk_size)
            if not block:
                return total
            total += len(block)


def append_to_file(path, size):
    with open(path, "ab") as f:
        f.write(os.urandom(size))


def partition(total, count):
    """Split `total` bytes into `count` sizes differing by at most one byte."""
    base, extra = divmod(total, count)
    return [base + 1 if i < extra else base for i in range(count)]


def make_storage_dir(config=settings):
    return tempfile.mkdtemp(prefix=STORAGE_DIR_PREFIX, dir=config.storage_dir)


def remove_storage_dir(path):
    try:
        shutil.rmtree(path)
    except OSError as e:
        logger.error("[Storage] Error removing temporary directory %s: %s", path, e)
    else:
        logger.info("[Storage] Cleaned up temporary files")


# --------------------------------------------
# FIXED-SIZE HOLD
# --------------------------------------------
def hold_storage(total, deadline, config=settings):
    """
    Spread `total` bytes over a fixed set of files, then keep reading and
    appending to them until the deadline fires. The directory is always removed.
    """
    try:
        temp_dir = make_storage_dir(config)
    except OSError as e:
        logger.error("[Storage] Error: Failed to create temporary directory: %s", e)
        return

    try:
        logger.info("[Storage] Temporary directory: %s", temp_dir)
        logger.info("[Storage] Starting load generation with %d MB", total // MB)
        _exercise_files(temp_dir, total, deadline, config)
    except OSError as e:
        logger.error("[Storage] Error: %s", e)
    finally:
        remove_storage_dir(temp_dir)


def _exercise_files(temp_dir, total, deadline, config):
    sizes = partition(total, config.static_file_count)
    paths = [os.path.join(temp_dir, f"stress-file-{i}.dat") for i in range(len(sizes))]

    logger.info("[Storage] Writing data to %d files...", len(paths))
    for i, (path, size) in enumerate(zip(paths, sizes)):
        if deadline.cancelled:
            return
        write_file(path, size, config.write_chunk_size)
        logger.info("[Storage] File write %d/%d completed", i + 1, len(paths))

    logger.info("[Storage] Starting continuous read/write operations")
    operations = 0
    while not deadline.wait(config.static_storage_interval):
        path = paths[operations % len(paths)]
        try:
            read_file(path, config.write_chunk_size)
        except OSError as e:
            logger.warning("[Storage] Read error: %s", e)
        try:
            append_to_file(path, config.static_append_size)
        except OSError as e:
            logger.warning("[Storage] Append error: %s", e)
        operations += 1
        logger.info("[Storage] I/O operation %d completed", operations)


# --------------------------------------------
# DYNAMIC (PERCENTAGE) HOLD
# --------------------------------------------
class DiskBacking(Backing):
    """Segments are fully written files inside one private directory."""

    def __init__(self, directory, chunk_size=64 * 1024, append_size=1024):
        self.directory = directory
        self.chunk_size = chunk_size
        self.append_size = append_size

    def path_for(self, segment_id):
        return os.path.join(self.directory, f"dynamic-stress-file-{segment_id}.dat")

    def allocate(self, segment_id, size):
        path = self.path_for(segment_id)
        try:
            write_file(path, size, self.chunk_size)
        except OSError:
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
            raise
        return path

    def release(self, handle):
        os.remove(handle)

    def exercise(self, segments):
        segment = segments[int(time.time()) % len(segments)]
        read_file(segment.handle, self.chunk_size)
        append_to_file(segment.handle, self.append_size)

    def describe(self):
        try:
            free = psutil.disk_usage(self.directory).free
        except OSError:
            return ""
        return f", disk free: {free // MB} MB"


def track_storage(percent, deadline, config=settings, probe=None):
    """Hold `percent` of the free space on the storage volume.

    The default probe measures the volume of the private temp directory,
    i.e. the volume `--storage-dir` (or the system temp dir) lives on, not
    the volume of the current working directory.
    """
    try:
        temp_dir = make_storage_dir(config)
    except OSError as e:
        logger.error("[Storage] Error: Failed to create temporary directory: %s", e)
        return None

    try:
        logger.info("[Storage] Temporary directory: %s", temp_dir)
        controller = DynamicController(
            "Storage",
            ResourceKind.STORAGE,
            percent,
            probe if probe is not None else ResourceProbe(temp_dir),
            DiskBacking(temp_dir, config.write_chunk_size, config.dynamic_append_size),
            deadline,
            interval=config.dynamic_storage_interval,
            safety_factor=config.storage_safety_factor,
        )
        controller.run()
        return controller
    finally:
        remove_storage_dir(temp_dir)


def generate_load(magnitude, deadline, config=settings, probe=None):
    """Hold a fixed size, or track a percentage of free disk space."""
    if isinstance(magnitude, AbsoluteBytes):
        hold_storage(magnitude.value, deadline, config)
    else:
        track_storage(magnitude.value, deadline, config, probe)
    logger.info("[Storage] Storage load generation completed")
