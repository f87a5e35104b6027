# vision_avatar/session/monitor.py
"""Periodic capture ticks feeding the session controller"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Set
import asyncio
import logging

from .controller import SessionController, TickObservation, TickOutcome
from ..services.oracle import FaceOracle, OracleError
from ..utils.config import MonitorConfig
from ..utils.state import SessionIdentity

logger = logging.getLogger(__name__)


class FrameSource(ABC):
    """Camera side of the loop; frames and clips are opaque encoded blobs"""

    @abstractmethod
    async def capture_frame(self) -> Optional[bytes]:
        """Current still frame, or None if the camera has nothing yet"""

    @abstractmethod
    async def record_clip(self, duration_ms: int) -> Optional[bytes]:
        """Short video sample for the liveness check"""


class StaticFrameSource(FrameSource):
    """Always returns the same blobs; for the simulated oracle and tests"""

    def __init__(self, frame: Optional[bytes] = b"frame", clip: Optional[bytes] = b"clip"):
        self.frame = frame
        self.clip = clip

    @classmethod
    def from_files(cls, frame_path: str, clip_path: Optional[str] = None) -> "StaticFrameSource":
        """Replay an encoded image (and optionally a video clip) from disk"""
        frame = Path(frame_path).expanduser().read_bytes()
        clip = Path(clip_path).expanduser().read_bytes() if clip_path else None
        return cls(frame=frame, clip=clip)

    async def capture_frame(self) -> Optional[bytes]:
        return self.frame

    async def record_clip(self, duration_ms: int) -> Optional[bytes]:
        return self.clip


class VisionMonitor:
    """
    Drives the controller from two independent timers.

    The fast tick (every few seconds) captures a frame, runs search-or-index
    and the demographic/emotion queries, and applies the result. A tick still
    waiting on the oracle is not awaited before the next one is dispatched, so
    ticks may overlap; the controller applies each against the state current
    at apply time. The slow tick records a clip and runs the liveness check.

    stop() cancels both timers before returning. Ticks already in flight are
    allowed to finish, and the controller discards their results.
    """

    def __init__(
        self,
        controller: SessionController,
        oracle: FaceOracle,
        frames: FrameSource,
        config: Optional[MonitorConfig] = None,
        match_threshold: float = 40.0,
        collection_description: str = ""
    ):
        self.controller = controller
        self.oracle = oracle
        self.frames = frames
        self.config = config or MonitorConfig()
        self.match_threshold = match_threshold
        self.collection_description = collection_description

        self._fast_task: Optional[asyncio.Task] = None
        self._slow_task: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()
        self._ensured_collection: Optional[str] = None

    @property
    def running(self) -> bool:
        return self._fast_task is not None

    async def ensure_collection(self) -> str:
        """
        Make sure the browser's current collection exists on the oracle.

        The collection id changes after an erase-me, in which case the new one
        is created on the next tick.
        """
        collection_id = self.controller.browser.collection_id()
        if collection_id != self._ensured_collection:
            try:
                await self.oracle.create_collection(collection_id, self.collection_description)
                self._ensured_collection = collection_id
                logger.info(f"Collection ready: {collection_id}")
            except OracleError as e:
                # Retried on the next tick
                logger.error(f"Failed to create collection {collection_id}: {e}")
        return collection_id

    async def start(self):
        if self.running:
            logger.warning("Vision monitor already running")
            return

        await self.controller.start_monitoring()
        await self.ensure_collection()
        self._fast_task = asyncio.create_task(self._fast_loop())
        self._slow_task = asyncio.create_task(self._slow_loop())
        logger.info(
            f"Vision monitor started (fast: {self.config.fast_interval}s, "
            f"slow: {self.config.slow_interval}s)"
        )

    async def stop(self):
        await self.controller.stop_monitoring()

        timers = [task for task in (self._fast_task, self._slow_task) if task is not None]
        for task in timers:
            task.cancel()
        await asyncio.gather(*timers, return_exceptions=True)
        self._fast_task = None
        self._slow_task = None

        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
        logger.info("Vision monitor stopped")

    async def _fast_loop(self):
        while True:
            self._dispatch_fast_tick()
            await asyncio.sleep(self.config.fast_interval)

    def _dispatch_fast_tick(self) -> asyncio.Task:
        task = asyncio.create_task(self.run_fast_tick())
        self._inflight.add(task)
        task.add_done_callback(self._tick_done)
        return task

    def _tick_done(self, task: asyncio.Task):
        self._inflight.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Fast tick crashed: {task.exception()}")

    async def _slow_loop(self):
        await asyncio.sleep(self.config.liveness_initial_delay)
        while True:
            await self.run_slow_tick()
            await asyncio.sleep(self.config.slow_interval)

    async def run_fast_tick(self) -> Optional[TickOutcome]:
        """Capture one frame, query the oracle and apply the result"""
        frame = await self.frames.capture_frame()
        if frame is None:
            logger.debug("No frame available, skipping tick")
            return None

        collection_id = await self.ensure_collection()
        recognition, analysis = await asyncio.gather(
            self.oracle.search_or_index(frame, collection_id, self.match_threshold),
            self.oracle.analyze(frame),
            return_exceptions=True,
        )

        failures = 0
        if isinstance(recognition, OracleError):
            logger.warning(f"Face search-or-index error: {recognition}")
            await self.controller.report_error("recognition", recognition)
            recognition = None
            failures += 1
        elif isinstance(recognition, BaseException):
            raise recognition

        if isinstance(analysis, OracleError):
            logger.warning(f"Face analysis error: {analysis}")
            await self.controller.report_error("analysis", analysis)
            analysis = None
            failures += 1
        elif isinstance(analysis, BaseException):
            raise analysis

        if failures == 2:
            logger.warning("All oracle calls failed, tick discarded")
            return None

        return await self.controller.apply_tick(
            TickObservation(recognition=recognition, analysis=analysis)
        )

    async def run_slow_tick(self) -> SessionIdentity:
        """Record a clip and apply the liveness verdict (live if unknown)"""
        duration_ms = self.config.liveness_clip_ms
        verdict = None
        try:
            clip = await self.frames.record_clip(duration_ms)
            if clip:
                verdict = await self.oracle.check_liveness(clip, duration_ms)
        except OracleError as e:
            logger.error(f"Liveness check error: {e}")
            await self.controller.report_error("liveness", e)
        return await self.controller.apply_liveness(verdict)
