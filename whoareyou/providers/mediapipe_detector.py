import logging
from pathlib import Path

import numpy as np

from whoareyou.core.detector import FaceDetectorService
from whoareyou.core.errors import ModelLoadError
from whoareyou.core.types import BoundingBox, Detection, DetectionSet

logger = logging.getLogger(__name__)


class MediaPipeFaceDetector(FaceDetectorService):
    def __init__(self, model_path: str = 'models/blaze_face_short_range.tflite', min_detection_confidence: float = 0.5) -> None:
        super().__init__()
        try:
            import mediapipe as mp
            from mediapipe.tasks import python as mp_tasks
            from mediapipe.tasks.python import vision
        except ImportError as exc:
            raise RuntimeError('mediapipe is required for DETECTOR_PROVIDER=mediapipe. Install it first.') from exc

        if not Path(model_path).is_file():
            raise ModelLoadError(f'face detector model not found: {Path(model_path).as_posix()}')

        self._mp = mp
        self._model_path = model_path
        base_options = mp_tasks.BaseOptions(
            model_asset_path=model_path,
            delegate=mp_tasks.BaseOptions.Delegate.CPU,
        )
        options = vision.FaceDetectorOptions(
            base_options=base_options,
            running_mode=vision.RunningMode.LIVE_STREAM,
            min_detection_confidence=min_detection_confidence,
            result_callback=self._on_result,
        )
        self._detector = vision.FaceDetector.create_from_options(options)

    @property
    def model_id(self) -> str:
        return Path(self._model_path).stem

    def _on_result(self, result, output_image, timestamp_ms: int) -> None:
        detections: list[Detection] = []
        for item in result.detections:
            bbox = item.bounding_box
            score = float(item.categories[0].score) if item.categories else 0.0
            detections.append(
                Detection(
                    box=BoundingBox(
                        left=float(bbox.origin_x),
                        top=float(bbox.origin_y),
                        right=float(bbox.origin_x + bbox.width),
                        bottom=float(bbox.origin_y + bbox.height),
                    ),
                    confidence=score,
                )
            )
        self._emit_result(
            DetectionSet(
                detections=tuple(detections),
                image_size=(output_image.width, output_image.height),
                timestamp_ms=timestamp_ms,
            ),
            timestamp_ms,
        )

    def detect_async(self, image, timestamp_ms: int) -> None:
        image_format = self._mp.ImageFormat.SRGBA if image.mode == 'RGBA' else self._mp.ImageFormat.SRGB
        if image.mode not in ('RGBA', 'RGB'):
            image = image.convert('RGB')
        mp_image = self._mp.Image(image_format=image_format, data=np.ascontiguousarray(np.asarray(image)))
        try:
            self._detector.detect_async(mp_image, timestamp_ms)
        except Exception as exc:
            logger.error('MediaPipe rejected frame timestamp_ms=%s: %s', timestamp_ms, exc)
            self._emit_error(exc)

    def close(self) -> None:
        self._detector.close()
