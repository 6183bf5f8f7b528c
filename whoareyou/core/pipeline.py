import asyncio
import logging

from whoareyou.core.detector_bridge import DetectorBridge
from whoareyou.core.face_classifier import FaceClassifier
from whoareyou.core.face_cropper import crop_faces
from whoareyou.core.frame_converter import convert
from whoareyou.core.types import Classification, CombinedResult, Crop, RawFrame
from whoareyou.utils.timings import Stopwatch

logger = logging.getLogger(__name__)


class FaceClassificationPipeline:
    """Per-frame detect, crop and classify, one frame at a time.

    Frames are serialized so the detector bridge only ever has one submission
    outstanding. The crops of the latest frame are kept as an immutable
    snapshot for preview surfaces.
    """

    def __init__(
        self,
        bridge: DetectorBridge,
        classifier: FaceClassifier,
        pixel_format: str = 'RGBA',
        max_concurrency: int = 4,
    ) -> None:
        self._bridge = bridge
        self._classifier = classifier
        self._pixel_format = pixel_format
        self._max_concurrency = max(1, int(max_concurrency))
        self._flight_lock: asyncio.Lock | None = None
        self._last_crops: tuple[Crop, ...] = ()

    @property
    def last_crops(self) -> tuple[Crop, ...]:
        return self._last_crops

    @property
    def busy(self) -> bool:
        return self._flight_lock is not None and self._flight_lock.locked()

    def _lock(self) -> asyncio.Lock:
        if self._flight_lock is None:
            self._flight_lock = asyncio.Lock()
        return self._flight_lock

    async def process_frame(self, raw_frame: RawFrame, scale_factor: float = 1.0) -> CombinedResult:
        try:
            async with self._lock():
                return await self._process(raw_frame, scale_factor)
        finally:
            raw_frame.close()

    async def _process(self, raw_frame: RawFrame, scale_factor: float) -> CombinedResult:
        stopwatch = Stopwatch()
        frame = convert(
            raw_frame.buffer,
            raw_frame.width,
            raw_frame.height,
            raw_frame.rotation_degrees,
            pixel_format=self._pixel_format,
        )
        stopwatch.lap('converting')

        detections = await self._bridge.detect_faces(frame)
        stopwatch.lap('detecting')

        crops = crop_faces(frame, detections, scale_factor)
        self._last_crops = tuple(item for item in crops if item is not None)
        stopwatch.lap('cropping')

        classifications = await self._classify_all(crops)
        stopwatch.lap('classifying')

        result = CombinedResult(
            detections=detections,
            classifications=tuple(classifications),
            inference_time_ms=stopwatch.elapsed_ms(),
            image_width=frame.width,
            image_height=frame.height,
        )
        logger.debug(
            'frame processed size=%sx%s faces=%s classified=%s stages=%s total_ms=%s',
            frame.width,
            frame.height,
            len(detections),
            sum(1 for item in classifications if item is not None),
            stopwatch.stages,
            result.inference_time_ms,
        )
        return result

    async def _classify_all(self, crops: list[Crop | None]) -> list[Classification | None]:
        if not any(item is not None for item in crops):
            return [None] * len(crops)

        # Model load failure is frame-level, so surface it before fanning out.
        await asyncio.to_thread(self._classifier.ensure_loaded)
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def classify_one(item: Crop | None) -> Classification | None:
            if item is None:
                return None
            async with semaphore:
                try:
                    return await asyncio.to_thread(self._classifier.classify, item)
                except Exception:
                    logger.exception('Classification failed for face index=%s', item.index)
                    return None

        return list(await asyncio.gather(*(classify_one(item) for item in crops)))

    def close(self) -> None:
        self._bridge.close()
