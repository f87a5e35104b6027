# tests/test_monitor.py
"""Fast/slow tick loops around the controller"""

import asyncio

import pytest

from conftest import ScriptedOracle, demographics, indexed, matched
from vision_avatar.services.oracle import LivenessVerdict, OracleResponseError, OracleTransportError
from vision_avatar.session.events import TICK_ERROR
from vision_avatar.session.monitor import StaticFrameSource, VisionMonitor
from vision_avatar.utils.config import MonitorConfig


class BlockingOracle(ScriptedOracle):
    """search_or_index waits until released"""

    def __init__(self):
        super().__init__()
        self.release = asyncio.Event()
        self.entered = asyncio.Event()

    async def search_or_index(self, frame, collection_id, match_threshold=70.0):
        self.entered.set()
        await self.release.wait()
        return await super().search_or_index(frame, collection_id, match_threshold)


class FlakyCollectionOracle(ScriptedOracle):

    def __init__(self, failures: int):
        super().__init__()
        self.failures = failures

    async def create_collection(self, collection_id, description=""):
        if self.failures:
            self.failures -= 1
            raise OracleTransportError("collection service down")
        return await super().create_collection(collection_id, description)


def make_monitor(controller, oracle, frames=None, **config):
    return VisionMonitor(
        controller,
        oracle,
        frames or StaticFrameSource(),
        config=MonitorConfig(**config),
        match_threshold=40.0,
    )


@pytest.mark.asyncio
async def test_fast_tick_applies_result(controller, oracle, browser):
    await controller.start_monitoring()
    oracle.recognitions.append(indexed("F1"))
    oracle.demographics.append(demographics(33))
    monitor = make_monitor(controller, oracle)

    outcome = await monitor.run_fast_tick()

    assert outcome.identity.identity_id == "F1"
    assert outcome.identity.demographics.age_estimate == 33
    assert oracle.created == [browser.collection_id()]
    assert oracle.searched == [browser.collection_id()]


@pytest.mark.asyncio
async def test_collection_is_created_once(controller, oracle):
    await controller.start_monitoring()
    monitor = make_monitor(controller, oracle)
    for _ in range(3):
        await monitor.run_fast_tick()
    assert len(oracle.created) == 1
    assert len(oracle.searched) == 3


@pytest.mark.asyncio
async def test_collection_recreated_after_erase(controller, oracle):
    await controller.start_monitoring()
    monitor = make_monitor(controller, oracle)
    await monitor.run_fast_tick()

    await controller.erase_me()
    await monitor.run_fast_tick()

    assert len(oracle.created) == 2
    assert oracle.created[0] != oracle.created[1]
    assert oracle.searched[-1] == oracle.created[1]


@pytest.mark.asyncio
async def test_collection_failure_is_retried(controller):
    oracle = FlakyCollectionOracle(failures=1)
    await controller.start_monitoring()
    monitor = make_monitor(controller, oracle)

    await monitor.run_fast_tick()
    assert oracle.created == []
    await monitor.run_fast_tick()
    assert len(oracle.created) == 1


@pytest.mark.asyncio
async def test_no_frame_skips_tick(controller, oracle):
    await controller.start_monitoring()
    monitor = make_monitor(controller, oracle, frames=StaticFrameSource(frame=None))
    assert await monitor.run_fast_tick() is None
    assert oracle.searched == []


@pytest.mark.asyncio
async def test_recognition_error_keeps_previous_identity(controller, oracle, emitter):
    await controller.start_monitoring()
    monitor = make_monitor(controller, oracle)
    oracle.recognitions.append(matched("F1", 0.9))
    await monitor.run_fast_tick()

    oracle.recognitions.append(OracleTransportError("timeout"))
    oracle.demographics.append(demographics(40))
    outcome = await monitor.run_fast_tick()

    assert outcome.identity.identity_id == "F1"
    assert outcome.identity.match_confidence == pytest.approx(0.9)
    assert outcome.identity.demographics.age_estimate == 40
    errors = [e["data"]["details"] for e in emitter.get_event_history(event_type=TICK_ERROR)]
    assert errors == [{"stage": "recognition", "error": "timeout"}]


@pytest.mark.asyncio
async def test_all_calls_failing_discards_tick(controller, oracle, emitter):
    await controller.start_monitoring()
    monitor = make_monitor(controller, oracle)
    oracle.recognitions.append(matched("F1"))
    oracle.demographics.append(demographics(30))
    await monitor.run_fast_tick()
    before = controller.snapshot()

    oracle.recognitions.append(OracleResponseError("garbage"))
    oracle.demographics.append(OracleTransportError("down"))
    assert await monitor.run_fast_tick() is None

    after = controller.snapshot()
    assert after == before
    assert len(emitter.get_event_history(event_type=TICK_ERROR)) == 2


@pytest.mark.asyncio
async def test_unexpected_errors_propagate(controller, oracle):
    await controller.start_monitoring()
    monitor = make_monitor(controller, oracle)
    oracle.recognitions.append(RuntimeError("bug"))
    with pytest.raises(RuntimeError):
        await monitor.run_fast_tick()


@pytest.mark.asyncio
async def test_in_flight_tick_after_stop_is_discarded(controller):
    oracle = BlockingOracle()
    oracle.recognitions.append(indexed("F1"))
    await controller.start_monitoring()
    monitor = make_monitor(controller, oracle)

    task = asyncio.create_task(monitor.run_fast_tick())
    await oracle.entered.wait()
    await controller.stop_monitoring()
    oracle.release.set()

    outcome = await task
    assert outcome.discarded
    assert controller.snapshot().identity_id is None


@pytest.mark.asyncio
async def test_slow_tick_liveness(controller, oracle):
    await controller.start_monitoring()
    monitor = make_monitor(controller, oracle)

    oracle.liveness.append(LivenessVerdict(is_live=False, confidence=0.3))
    assert (await monitor.run_slow_tick()).is_live is False

    oracle.liveness.append(LivenessVerdict(is_live=True, confidence=0.95))
    assert (await monitor.run_slow_tick()).is_live is True


@pytest.mark.asyncio
async def test_slow_tick_fails_open(controller, oracle, emitter):
    await controller.start_monitoring()
    monitor = make_monitor(controller, oracle)
    oracle.liveness.append(LivenessVerdict(is_live=False, confidence=0.3))
    await monitor.run_slow_tick()

    oracle.liveness.append(OracleTransportError("liveness down"))
    assert (await monitor.run_slow_tick()).is_live is True
    assert emitter.get_event_history(event_type=TICK_ERROR)[0]["data"]["details"]["stage"] == "liveness"


@pytest.mark.asyncio
async def test_slow_tick_without_clip_is_live(controller, oracle):
    await controller.start_monitoring()
    monitor = make_monitor(controller, oracle, frames=StaticFrameSource(clip=None))
    assert (await monitor.run_slow_tick()).is_live is True


@pytest.mark.asyncio
async def test_stop_cancels_both_loops(controller, oracle):
    monitor = make_monitor(controller, oracle, fast_interval=0.01, slow_interval=0.01, liveness_initial_delay=0.0)
    await monitor.start()
    assert monitor.running
    assert controller.monitoring

    await asyncio.sleep(0.05)
    await monitor.stop()
    assert not monitor.running
    assert not controller.monitoring

    searched = len(oracle.searched)
    assert searched >= 1
    await asyncio.sleep(0.05)
    assert len(oracle.searched) == searched


@pytest.mark.asyncio
async def test_start_is_idempotent(controller, oracle):
    monitor = make_monitor(controller, oracle, fast_interval=10, slow_interval=10, liveness_initial_delay=10)
    await monitor.start()
    await monitor.start()
    await monitor.stop()
    assert len(oracle.created) == 1


@pytest.mark.asyncio
async def test_static_frame_source_from_files(tmp_path):
    frame = tmp_path / "face.jpg"
    frame.write_bytes(b"\xff\xd8jpeg")
    source = StaticFrameSource.from_files(str(frame))
    assert await source.capture_frame() == b"\xff\xd8jpeg"
    assert await source.record_clip(3000) is None
