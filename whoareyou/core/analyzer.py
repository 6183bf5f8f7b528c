import dataclasses
import logging

from whoareyou.core.errors import PipelineError
from whoareyou.core.pipeline import FaceClassificationPipeline
from whoareyou.core.types import AnalysisState, CombinedResult, RawFrame

logger = logging.getLogger(__name__)


class FrameAnalyzer:
    """Ingestion boundary between the camera and the pipeline.

    Keeps only the latest frame: anything arriving while a frame is in
    progress is closed and dropped instead of queued. Observers read
    ``state``, which is swapped as a whole after every frame.
    """

    def __init__(self, pipeline: FaceClassificationPipeline) -> None:
        self._pipeline = pipeline
        self._in_flight = False
        self._state = AnalysisState()

    @property
    def state(self) -> AnalysisState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._in_flight

    async def analyze(self, raw_frame: RawFrame, scale_factor: float = 1.0) -> CombinedResult | None:
        if self._in_flight:
            raw_frame.close()
            self._state = dataclasses.replace(self._state, dropped_frames=self._state.dropped_frames + 1)
            logger.debug('Dropped frame while busy dropped_frames=%s', self._state.dropped_frames)
            return None

        self._in_flight = True
        try:
            result = await self._pipeline.process_frame(raw_frame, scale_factor)
        except PipelineError as exc:
            logger.warning('Frame failed code=%s message=%s', exc.code, exc.message)
            self._state = dataclasses.replace(
                self._state,
                error=exc.message,
                failed_frames=self._state.failed_frames + 1,
            )
            raise
        finally:
            self._in_flight = False

        self._state = AnalysisState(
            combined_result=result,
            cropped_faces=self._pipeline.last_crops,
            error=None,
            processed_frames=self._state.processed_frames + 1,
            dropped_frames=self._state.dropped_frames,
            failed_frames=self._state.failed_frames,
        )
        return result
