"""
Closed-loop controller that holds a percentage of the currently free resource.

The footprint is a list of segments. Growth appends one segment sized to
the gap; shrink drops segments from the tail. Segment 0 is the floor and
is only released at teardown.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Any, List

from stressload.errors import InsufficientResource, ProbeUnavailable, ResourceExhaustion
from stressload.sizes import MB

logger = logging.getLogger(__name__)


class Phase(enum.Enum):
    INITIALIZING = "initializing"
    STEADY = "steady"
    TEARDOWN = "teardown"
    STOPPED = "stopped"


class TickAction(enum.Enum):
    GROW = "grow"
    SHRINK = "shrink"
    HOLD = "hold"
    SKIP = "skip"


@dataclass
class Segment:
    id: int
    size: int
    handle: Any


class Backing:
    """Materializes and releases segments for one kind of resource."""

    def allocate(self, segment_id: int, size: int) -> Any:
        raise NotImplementedError

    def release(self, handle: Any) -> None:
        raise NotImplementedError

    def exercise(self, segments: List[Segment]) -> None:
        """Touch held state without changing its nominal size."""

    def reclaim(self) -> None:
        """Best-effort request to return freed resource to the OS."""

    def describe(self) -> str:
        return ""


class DynamicController:
    """Tracks `percent` of free resource, re-targeting once per tick.

    Only the controller's own thread mutates `segments` and `held`.
    """

    def __init__(self, name, kind, percent, probe, backing, deadline,
                 interval, safety_factor, reclaim_on_shrink=False):
        self.name = name
        self.kind = kind
        self.percent = percent
        self.probe = probe
        self.backing = backing
        self.deadline = deadline
        self.interval = interval
        self.safety_factor = safety_factor
        self.reclaim_on_shrink = reclaim_on_shrink

        self.phase = Phase.INITIALIZING
        self.segments: List[Segment] = []
        self.held = 0
        self._next_id = 0

    def target_size(self) -> int:
        free = self.probe.free_bytes(self.kind)
        return int(free * self.percent / 100.0 * self.safety_factor)

    # --------------------------------------------
    # LIFECYCLE
    # --------------------------------------------
    def run(self):
        """Initialize, tick until the deadline fires, then release everything."""
        logger.info("[%s] Starting dynamic load generation with %.1f%% of free %s",
                    self.name, self.percent, self.kind.value)
        try:
            try:
                self.initialize()
            except (ResourceExhaustion, ProbeUnavailable) as e:
                logger.error("[%s] Error: %s", self.name, e)
                return
            except (MemoryError, OSError) as e:
                logger.error("[%s] Initial allocation failed: %s", self.name, e)
                return

            while not self.deadline.wait(self.interval):
                self.step()
            logger.info("[%s] Stopping dynamic load generation", self.name)
        finally:
            self.teardown()

    def initialize(self):
        target = self.target_size()
        if target <= 0:
            raise InsufficientResource(
                f"calculated {self.kind.value} size is invalid ({target} bytes)")
        self._append(target)
        self.phase = Phase.STEADY
        logger.info("[%s] Initial allocation: %d MB", self.name, target // MB)

    def step(self) -> TickAction:
        """Run one steady-state tick: probe, grow or shrink, exercise, report."""
        try:
            target = self.target_size()
        except ProbeUnavailable as e:
            logger.warning("[%s] Error recalculating size: %s", self.name, e)
            return TickAction.SKIP

        action = TickAction.HOLD
        if target > self.held:
            action = self._grow(target - self.held)
            if action is TickAction.SKIP:
                return action
        elif target < self.held and len(self.segments) > 1:
            action = self._shrink(self.held - target)

        self._exercise()
        self.report()
        return action

    def teardown(self):
        self.phase = Phase.TEARDOWN
        while self.segments:
            segment = self.segments.pop()
            self.held -= segment.size
            try:
                self.backing.release(segment.handle)
            except OSError as e:
                logger.error("[%s] Failed to release segment %d: %s", self.name, segment.id, e)
        segment = None  # last reference, so reclaim() can see it freed
        self.held = 0
        self.backing.reclaim()
        self.phase = Phase.STOPPED

    # --------------------------------------------
    # GROW / SHRINK
    # --------------------------------------------
    def _append(self, size):
        segment_id = self._next_id
        handle = self.backing.allocate(segment_id, size)
        self._next_id += 1
        self.segments.append(Segment(segment_id, size, handle))
        self.held += size

    def _grow(self, additional):
        try:
            self._append(additional)
        except (MemoryError, OSError) as e:
            logger.error("[%s] Failed to grow by %d MB: %s", self.name, additional // MB, e)
            return TickAction.SKIP
        logger.info("[%s] Increased allocation by %d MB (total: %d MB)",
                    self.name, additional // MB, self.held // MB)
        return TickAction.GROW

    def _shrink(self, excess):
        released = 0
        while len(self.segments) > 1 and released < excess:
            size = self._release_tail()
            if size is None:
                break
            released += size

        if not released:
            return TickAction.HOLD
        if self.reclaim_on_shrink:
            self.backing.reclaim()
        logger.info("[%s] Decreased allocation by %d MB (total: %d MB)",
                    self.name, released // MB, self.held // MB)
        return TickAction.SHRINK

    def _release_tail(self):
        segment = self.segments[-1]
        try:
            self.backing.release(segment.handle)
        except OSError as e:
            logger.error("[%s] Failed to release segment %d: %s", self.name, segment.id, e)
            return None
        del self.segments[-1]
        self.held -= segment.size
        return segment.size

    # --------------------------------------------
    # ACTIVITY & REPORTING
    # --------------------------------------------
    def _exercise(self):
        if not self.segments:
            return
        try:
            self.backing.exercise(self.segments)
        except OSError as e:
            logger.warning("[%s] I/O error on held segments: %s", self.name, e)

    def report(self):
        logger.info("[%s] Held: %d MB in %d segment(s)%s",
                    self.name, self.held // MB, len(self.segments), self.backing.describe())
