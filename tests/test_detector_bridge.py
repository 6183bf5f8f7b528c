import asyncio

import pytest
from PIL import Image

from whoareyou.core.detector_bridge import DetectorBridge, LatestValueSlot
from whoareyou.core.errors import DetectorError
from whoareyou.core.types import BoundingBox, Frame
from whoareyou.providers.dummy_detector import ScriptedFaceDetector


def _frame(width: int = 320, height: int = 240) -> Frame:
    return Frame(image=Image.new('RGBA', (width, height)))


def test_bridge_returns_detections_delivered_from_another_thread():
    box = BoundingBox(10, 20, 110, 140)
    detector = ScriptedFaceDetector(script=[[(box, 0.87)]], delay_s=0.02)
    bridge = DetectorBridge(detector)

    result = asyncio.run(bridge.detect_faces(_frame()))

    assert len(result) == 1
    assert result[0].box == box
    assert result[0].confidence == pytest.approx(0.87)
    assert result.image_size == (320, 240)
    assert result.timestamp_ms == detector.submitted[0]


def test_bridge_waits_for_a_fresh_delivery_on_each_call():
    first = BoundingBox(0, 0, 10, 10)
    second = BoundingBox(50, 50, 90, 90)
    detector = ScriptedFaceDetector(script=[[(first, 0.9)], [(second, 0.8), (first, 0.7)]], delays=[0.0, 0.05])
    bridge = DetectorBridge(detector)

    async def run_twice():
        one = await bridge.detect_faces(_frame())
        two = await bridge.detect_faces(_frame())
        return one, two

    one, two = asyncio.run(run_twice())

    assert [d.box for d in one] == [first]
    assert [d.box for d in two] == [second, first]


def test_bridge_timestamps_strictly_increase():
    detector = ScriptedFaceDetector()
    bridge = DetectorBridge(detector)

    async def run():
        for _ in range(5):
            await bridge.detect_faces(_frame())

    asyncio.run(run())

    assert detector.submitted == sorted(set(detector.submitted))
    assert len(detector.submitted) == 5


def test_detector_error_completes_the_wait_with_failure():
    detector = ScriptedFaceDetector(script=[RuntimeError('graph failed')], delay_s=0.01)
    bridge = DetectorBridge(detector, timeout_s=None)

    with pytest.raises(DetectorError) as exc_info:
        asyncio.run(bridge.detect_faces(_frame()))

    assert 'graph failed' in exc_info.value.message


def test_bridge_times_out_when_detector_stays_silent():
    detector = ScriptedFaceDetector(script=[None])
    bridge = DetectorBridge(detector, timeout_s=0.05)

    with pytest.raises(DetectorError) as exc_info:
        asyncio.run(bridge.detect_faces(_frame()))

    assert exc_info.value.code == 'DETECTOR_ERROR'


def test_late_result_for_a_timed_out_frame_is_not_given_to_the_next_frame():
    old = BoundingBox(0, 0, 10, 10)
    new = BoundingBox(40, 40, 80, 80)
    detector = ScriptedFaceDetector(script=[[(old, 0.9)], [(new, 0.8)]], delays=[0.3, 0.2])
    bridge = DetectorBridge(detector, timeout_s=0.25)

    async def run():
        with pytest.raises(DetectorError):
            await bridge.detect_faces(_frame())
        return await bridge.detect_faces(_frame())

    result = asyncio.run(run())

    assert result.timestamp_ms == detector.submitted[1]
    assert [d.box for d in result] == [new]


def test_bridge_recovers_after_an_error():
    box = BoundingBox(1, 2, 3, 4)
    detector = ScriptedFaceDetector(script=[RuntimeError('transient'), [(box, 0.6)]])
    bridge = DetectorBridge(detector, timeout_s=1.0)

    async def run():
        with pytest.raises(DetectorError):
            await bridge.detect_faces(_frame())
        return await bridge.detect_faces(_frame())

    result = asyncio.run(run())

    assert [d.box for d in result] == [box]


def test_submission_failure_is_reported_as_detector_error():
    class RejectingDetector(ScriptedFaceDetector):
        def detect_async(self, image, timestamp_ms):
            raise RuntimeError('not running')

    bridge = DetectorBridge(RejectingDetector())

    with pytest.raises(DetectorError):
        asyncio.run(bridge.detect_faces(_frame()))


def test_slot_keeps_only_the_latest_value():
    slot = LatestValueSlot()
    slot.publish('first')
    slot.publish('second')

    assert slot.sequence == 2
    assert asyncio.run(slot.wait_newer_than(0)) == (2, 'second')


def test_slot_waiter_ignores_values_published_before_its_sequence():
    slot = LatestValueSlot()
    slot.publish('stale')

    async def run():
        loop = asyncio.get_running_loop()
        loop.call_later(0.02, slot.publish, 'fresh')
        return await slot.wait_newer_than(slot.sequence)

    assert asyncio.run(run()) == (2, 'fresh')
