import asyncio

import pytest

from whoareyou.core.analyzer import FrameAnalyzer
from whoareyou.core.detector_bridge import DetectorBridge
from whoareyou.core.errors import DetectorError
from whoareyou.core.face_classifier import FaceClassifier
from whoareyou.core.pipeline import FaceClassificationPipeline
from whoareyou.core.types import BoundingBox
from whoareyou.providers.dummy_classifier import FixedScoresModel
from whoareyou.providers.dummy_detector import ScriptedFaceDetector


def _analyzer(detector) -> FrameAnalyzer:
    classifier = FaceClassifier(FixedScoresModel(scores=[0.3, 0.7], input_size=(16, 16)), labels=['A', 'B'])
    return FrameAnalyzer(FaceClassificationPipeline(DetectorBridge(detector, timeout_s=2.0), classifier))


def test_frames_arriving_while_busy_are_dropped_and_closed(raw_frame_factory):
    detector = ScriptedFaceDetector(script=[[(BoundingBox(10, 10, 40, 40), 0.9)]], delays=[0.1])
    analyzer = _analyzer(detector)

    async def run():
        first = asyncio.create_task(analyzer.analyze(raw_frame_factory(64, 48)))
        await asyncio.sleep(0.01)
        assert analyzer.busy
        dropped = await analyzer.analyze(raw_frame_factory(64, 48))
        return await first, dropped

    first, dropped = asyncio.run(run())

    assert dropped is None
    assert first is not None
    assert len(detector.submitted) == 1
    assert raw_frame_factory.closes == [1, 1]
    state = analyzer.state
    assert state.combined_result is first
    assert state.processed_frames == 1
    assert state.dropped_frames == 1
    assert len(state.cropped_faces) == 1
    assert not analyzer.busy


def test_state_is_swapped_per_frame(raw_frame_factory):
    detector = ScriptedFaceDetector(script=[[(BoundingBox(10, 10, 40, 40), 0.9)], []])
    analyzer = _analyzer(detector)

    async def run():
        await analyzer.analyze(raw_frame_factory(64, 48))
        before = analyzer.state
        await analyzer.analyze(raw_frame_factory(64, 48))
        return before

    before = asyncio.run(run())

    assert len(before.cropped_faces) == 1
    assert before.combined_result.label_for(0) == 'B'
    assert analyzer.state is not before
    assert analyzer.state.cropped_faces == ()
    assert analyzer.state.processed_frames == 2


def test_frame_error_keeps_previous_result_and_is_raised(raw_frame_factory):
    detector = ScriptedFaceDetector(script=[[(BoundingBox(10, 10, 40, 40), 0.9)], RuntimeError('camera graph reset')])
    analyzer = _analyzer(detector)

    async def run():
        first = await analyzer.analyze(raw_frame_factory(64, 48))
        with pytest.raises(DetectorError):
            await analyzer.analyze(raw_frame_factory(64, 48))
        return first

    first = asyncio.run(run())

    state = analyzer.state
    assert state.combined_result is first
    assert 'camera graph reset' in state.error
    assert state.failed_frames == 1
    assert raw_frame_factory.closes == [1, 1]
    assert not analyzer.busy
