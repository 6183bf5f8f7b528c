import threading
from collections import deque
from collections.abc import Iterable

from whoareyou.core.detector import FaceDetectorService
from whoareyou.core.types import BoundingBox, Detection, DetectionSet


def default_face_box(width: int, height: int) -> BoundingBox:
    side = min(width, height) / 3
    return BoundingBox(
        left=(width - side) / 2,
        top=(height - side) / 2,
        right=(width + side) / 2,
        bottom=(height + side) / 2,
    )


class ScriptedFaceDetector(FaceDetectorService):
    """Answers on a background thread with scripted boxes, like a live-stream detector.

    Each ``script`` entry is consumed by one submission: a list of
    ``(box, confidence)`` pairs, an ``Exception`` to report on the error
    channel, or ``None`` to stay silent. Once the script is exhausted a single
    centred face box is reported.
    """

    def __init__(
        self,
        script: Iterable | None = None,
        delay_s: float = 0.0,
        delays: Iterable[float] | None = None,
        model_id: str = 'dummy-face-v1',
    ) -> None:
        super().__init__()
        self._script = deque(script or [])
        self._delays = deque(delays or [])
        self._delay_s = delay_s
        self._model_id = model_id
        self._lock = threading.Lock()
        self._timers: list[threading.Timer] = []
        self.submitted: list[int] = []

    @property
    def model_id(self) -> str:
        return self._model_id

    def detect_async(self, image, timestamp_ms: int) -> None:
        width, height = image.size
        with self._lock:
            self.submitted.append(timestamp_ms)
            entry = self._script.popleft() if self._script else [(default_face_box(width, height), 0.91)]
            delay = self._delays.popleft() if self._delays else self._delay_s

        if entry is None:
            return
        if isinstance(entry, Exception):
            payload = entry
        else:
            payload = DetectionSet(
                detections=tuple(Detection(box=box, confidence=confidence) for box, confidence in entry),
                image_size=(width, height),
                timestamp_ms=timestamp_ms,
            )

        timer = threading.Timer(delay, self._deliver, args=(payload, timestamp_ms))
        timer.daemon = True
        with self._lock:
            self._timers = [t for t in self._timers if t.is_alive()]
            self._timers.append(timer)
        timer.start()

    def _deliver(self, payload, timestamp_ms: int) -> None:
        if isinstance(payload, Exception):
            self._emit_error(payload)
        else:
            self._emit_result(payload, timestamp_ms)

    def close(self) -> None:
        with self._lock:
            timers, self._timers = self._timers, []
        for timer in timers:
            timer.cancel()
