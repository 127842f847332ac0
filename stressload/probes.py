"""
Live free-space queries backed by psutil.
"""
import os

import psutil

from stressload.errors import ProbeUnavailable
from stressload.sizes import ResourceKind


class ResourceProbe:
    """Reports free bytes for memory or disk. Every call is a fresh OS read."""

    def __init__(self, path=None):
        self.path = path

    def free_bytes(self, kind):
        try:
            if kind is ResourceKind.MEMORY:
                return psutil.virtual_memory().available
            if kind is ResourceKind.STORAGE:
                return psutil.disk_usage(self.path or os.getcwd()).free
        except (OSError, psutil.Error) as e:
            raise ProbeUnavailable(f"failed to get free {kind.value}: {e}") from e
        raise ValueError(f"no free-space probe for {kind.value}")
