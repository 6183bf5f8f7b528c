from abc import ABC, abstractmethod
from collections.abc import Callable

from PIL import Image

from whoareyou.config import Settings
from whoareyou.core.types import DetectionSet

ResultListener = Callable[[DetectionSet, int], None]
ErrorListener = Callable[[Exception], None]


class FaceDetectorService(ABC):
    """Streaming face detector: accepts one image at a time and answers through listeners.

    Listeners may be invoked from any thread, some time after ``detect_async`` returns.
    """

    def __init__(self) -> None:
        self._result_listener: ResultListener | None = None
        self._error_listener: ErrorListener | None = None

    def set_listeners(self, on_result: ResultListener, on_error: ErrorListener) -> None:
        self._result_listener = on_result
        self._error_listener = on_error

    def _emit_result(self, detections: DetectionSet, timestamp_ms: int) -> None:
        if self._result_listener is not None:
            self._result_listener(detections, timestamp_ms)

    def _emit_error(self, error: Exception) -> None:
        if self._error_listener is not None:
            self._error_listener(error)

    @abstractmethod
    def detect_async(self, image: Image.Image, timestamp_ms: int) -> None:
        raise NotImplementedError

    @property
    @abstractmethod
    def model_id(self) -> str:
        raise NotImplementedError

    def close(self) -> None:
        return None


def create_face_detector(settings: Settings) -> FaceDetectorService:
    provider = settings.detector_provider.strip().lower()
    if provider == 'dummy':
        from whoareyou.providers.dummy_detector import ScriptedFaceDetector

        return ScriptedFaceDetector(delay_s=settings.dummy_detector_delay_s)
    if provider == 'mediapipe':
        from whoareyou.providers.mediapipe_detector import MediaPipeFaceDetector

        return MediaPipeFaceDetector(
            model_path=settings.detector_model_path,
            min_detection_confidence=settings.min_detection_confidence,
        )
    if provider == 'remote':
        from whoareyou.providers.remote_detector import RemoteFaceDetector

        return RemoteFaceDetector(
            base_url=settings.remote_detector_base_url,
            detect_path=settings.remote_detector_path,
            timeout_ms=settings.remote_detector_timeout_ms,
            min_detection_confidence=settings.min_detection_confidence,
        )
    raise ValueError(f'Unsupported DETECTOR_PROVIDER={settings.detector_provider!r}')
