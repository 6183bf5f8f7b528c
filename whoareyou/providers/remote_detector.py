import io
import logging
from concurrent.futures import ThreadPoolExecutor

import httpx

from whoareyou.core.detector import FaceDetectorService
from whoareyou.core.types import BoundingBox, Detection, DetectionSet

logger = logging.getLogger(__name__)


def _join_url(base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def _normalized_to_box(values, image_size: tuple[int, int]) -> BoundingBox | None:
    """``[ymin, xmin, ymax, xmax]`` in 0..1 to pixel coordinates."""
    if not values or len(values) != 4:
        return None
    width, height = image_size
    ymin, xmin, ymax, xmax = [float(value) for value in values]
    return BoundingBox(
        left=max(0.0, min(float(width), xmin * width)),
        top=max(0.0, min(float(height), ymin * height)),
        right=max(0.0, min(float(width), xmax * width)),
        bottom=max(0.0, min(float(height), ymax * height)),
    )


class RemoteFaceDetector(FaceDetectorService):
    """Face detector behind an HTTP endpoint, answered on a single worker thread."""

    def __init__(
        self,
        base_url: str = 'http://127.0.0.1:5000',
        detect_path: str = '/model/detect-faces',
        timeout_ms: int = 5000,
        min_detection_confidence: float = 0.5,
    ) -> None:
        super().__init__()
        self._base_url = base_url
        self._detect_path = detect_path
        self._timeout = max(int(timeout_ms), 100) / 1000.0
        self._threshold = float(min_detection_confidence)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='remote-face-detector')
        self._model_id = 'remote-face-detector'

    @property
    def model_id(self) -> str:
        return self._model_id

    def detect_async(self, image, timestamp_ms: int) -> None:
        payload = io.BytesIO()
        image.convert('RGB').save(payload, format='JPEG', quality=92)
        self._executor.submit(self._detect, payload.getvalue(), image.size, timestamp_ms)

    def _detect(self, jpeg_bytes: bytes, image_size: tuple[int, int], timestamp_ms: int) -> None:
        try:
            detections = self.request_detections(jpeg_bytes, image_size)
        except Exception as exc:
            self._emit_error(exc)
            return
        self._emit_result(
            DetectionSet(detections=tuple(detections), image_size=image_size, timestamp_ms=timestamp_ms),
            timestamp_ms,
        )

    def request_detections(self, jpeg_bytes: bytes, image_size: tuple[int, int]) -> list[Detection]:
        with httpx.Client(timeout=self._timeout) as client:
            response = client.post(
                _join_url(self._base_url, self._detect_path),
                files={'image': ('frame.jpg', jpeg_bytes, 'image/jpeg')},
                data={'threshold': str(self._threshold)},
            )
        response.raise_for_status()
        body = response.json()

        detections: list[Detection] = []
        for row in body.get('predictions', []):
            probability = float(row.get('probability') or 0.0)
            if probability < self._threshold:
                continue
            box = _normalized_to_box(row.get('detection_box'), image_size)
            if box is None:
                logger.debug('Ignoring remote detection without box row=%s', row)
                continue
            detections.append(Detection(box=box, confidence=probability))
        return detections

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
