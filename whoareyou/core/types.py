from collections.abc import Callable
from dataclasses import dataclass, field

from PIL import Image

UNKNOWN_LABEL = 'Unknown'


@dataclass
class RawFrame:
    """A camera buffer borrowed from the capture pool; must be closed exactly once."""

    buffer: bytes | bytearray | memoryview
    width: int
    height: int
    rotation_degrees: int = 0
    on_close: Callable[[], None] | None = None
    _closed: bool = field(default=False, init=False, repr=False)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.on_close is not None:
            self.on_close()


@dataclass(frozen=True)
class Frame:
    image: Image.Image
    rotation_degrees: int = 0

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def size(self) -> tuple[int, int]:
        return self.image.size


@dataclass(frozen=True)
class BoundingBox:
    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def center(self) -> tuple[float, float]:
        return (self.left + self.right) / 2, (self.top + self.bottom) / 2

    def as_list(self) -> list[float]:
        return [self.left, self.top, self.right, self.bottom]


@dataclass(frozen=True)
class Detection:
    box: BoundingBox
    confidence: float


@dataclass(frozen=True)
class DetectionSet:
    detections: tuple[Detection, ...]
    image_size: tuple[int, int]
    timestamp_ms: int = 0

    def __len__(self) -> int:
        return len(self.detections)

    def __iter__(self):
        return iter(self.detections)

    def __getitem__(self, index: int) -> Detection:
        return self.detections[index]


@dataclass(frozen=True)
class CropRegion:
    left: int
    top: int
    side: int

    @property
    def right(self) -> int:
        return self.left + self.side

    @property
    def bottom(self) -> int:
        return self.top + self.side

    def as_box(self) -> tuple[int, int, int, int]:
        return self.left, self.top, self.right, self.bottom


@dataclass(frozen=True)
class Crop:
    index: int
    region: CropRegion
    image: Image.Image


@dataclass(frozen=True)
class Classification:
    label: str
    confidence: float


@dataclass(frozen=True)
class CombinedResult:
    detections: DetectionSet
    classifications: tuple[Classification | None, ...]
    inference_time_ms: int
    image_width: int
    image_height: int

    def classification_for(self, index: int) -> Classification | None:
        if 0 <= index < len(self.classifications):
            return self.classifications[index]
        return None

    def label_for(self, index: int) -> str:
        classification = self.classification_for(index)
        return classification.label if classification is not None else UNKNOWN_LABEL


@dataclass(frozen=True)
class AnalysisState:
    combined_result: CombinedResult | None = None
    cropped_faces: tuple[Crop, ...] = ()
    error: str | None = None
    processed_frames: int = 0
    dropped_frames: int = 0
    failed_frames: int = 0
