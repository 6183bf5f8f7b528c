import asyncio
import logging
import threading
import time

from whoareyou.core.detector import FaceDetectorService
from whoareyou.core.errors import DetectorError
from whoareyou.core.types import DetectionSet, Frame

logger = logging.getLogger(__name__)


class LatestValueSlot:
    """Single-slot buffer where the newest value overwrites the previous one.

    ``publish`` may be called from any thread. Waiters are woken on their own
    event loop and then read whatever value is newest at that moment.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sequence = 0
        self._value: object = None
        self._waiters: list[tuple[asyncio.AbstractEventLoop, asyncio.Future]] = []

    @property
    def sequence(self) -> int:
        with self._lock:
            return self._sequence

    def publish(self, value: object) -> None:
        with self._lock:
            self._sequence += 1
            self._value = value
            waiters, self._waiters = self._waiters, []
        for loop, future in waiters:
            try:
                loop.call_soon_threadsafe(_wake, future)
            except RuntimeError:
                # loop already closed; nobody is left to wake
                continue

    async def wait_newer_than(self, sequence: int) -> tuple[int, object]:
        """Return ``(sequence, value)`` of the newest publish after ``sequence``."""
        loop = asyncio.get_running_loop()
        while True:
            with self._lock:
                if self._sequence > sequence:
                    return self._sequence, self._value
                future = loop.create_future()
                entry = (loop, future)
                self._waiters.append(entry)
            try:
                await future
            finally:
                with self._lock:
                    if entry in self._waiters:
                        self._waiters.remove(entry)


def _wake(future: asyncio.Future) -> None:
    if not future.done():
        future.set_result(None)


class DetectorBridge:
    """Turns the callback-driven detector into ``await detect_faces(frame)``.

    Every delivery is tagged with the timestamp token it answers. A waiter
    skips results whose token predates its own submission, so a late answer
    for an abandoned (timed out) frame is never handed to the next frame.
    Errors carry no token and complete whichever wait is pending.
    """

    def __init__(self, detector: FaceDetectorService, timeout_s: float | None = None) -> None:
        self._detector = detector
        self._timeout_s = timeout_s or None
        self._slot = LatestValueSlot()
        self._token_lock = threading.Lock()
        self._last_token = 0
        detector.set_listeners(on_result=self._on_result, on_error=self._on_error)

    @property
    def model_id(self) -> str:
        return self._detector.model_id

    def _next_timestamp(self) -> int:
        with self._token_lock:
            self._last_token = max(self._last_token + 1, int(time.monotonic() * 1000))
            return self._last_token

    def _on_result(self, detections: DetectionSet, timestamp_ms: int) -> None:
        self._slot.publish((timestamp_ms, detections))

    def _on_error(self, error: Exception) -> None:
        logger.error('Face detection error: %s', error)
        self._slot.publish((None, DetectorError(f'Face detection failed: {error}')))

    async def _wait_for_token(self, sequence: int, timestamp_ms: int):
        while True:
            sequence, (token, payload) = await self._slot.wait_newer_than(sequence)
            if token is None or token >= timestamp_ms:
                return payload
            logger.debug('Discarding stale detection token=%s waiting_for=%s', token, timestamp_ms)

    async def detect_faces(self, frame: Frame) -> DetectionSet:
        sequence = self._slot.sequence
        timestamp_ms = self._next_timestamp()
        try:
            self._detector.detect_async(frame.image, timestamp_ms)
        except Exception as exc:
            raise DetectorError(f'Face detector rejected frame: {exc}') from exc

        waiter = self._wait_for_token(sequence, timestamp_ms)
        try:
            if self._timeout_s is None:
                delivery = await waiter
            else:
                delivery = await asyncio.wait_for(waiter, timeout=self._timeout_s)
        except asyncio.TimeoutError as exc:
            raise DetectorError(
                f'No face detection result within {self._timeout_s:.2f}s',
                details={'timestamp_ms': timestamp_ms},
            ) from exc

        if isinstance(delivery, DetectorError):
            raise DetectorError(delivery.message, details={'timestamp_ms': timestamp_ms})
        return delivery

    def close(self) -> None:
        self._detector.close()
