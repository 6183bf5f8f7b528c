from pydantic import BaseModel, Field


class DetectionOut(BaseModel):
    bbox: list[float]
    confidence: float = Field(ge=0.0, le=1.0)


class ClassificationOut(BaseModel):
    label: str
    confidence: float


class FaceOut(BaseModel):
    index: int
    detection: DetectionOut
    classification: ClassificationOut | None = None
    label: str


class CombinedResultOut(BaseModel):
    ok: bool = True
    detector_model: str | None = None
    classifier_model: str | None = None
    inference_time_ms: int
    image_width: int
    image_height: int
    faces: list[FaceOut]
    classified: int


class AnalysisStateOut(BaseModel):
    ok: bool = True
    result: CombinedResultOut | None = None
    crops: int = 0
    error: str | None = None
    processed_frames: int = 0
    dropped_frames: int = 0
    failed_frames: int = 0


class OverlayBoxOut(BaseModel):
    bbox: list[float]
    label: str
    confidence: float | None = None
    detection_confidence: float


class OverlayResponse(BaseModel):
    ok: bool = True
    viewport_width: float
    viewport_height: float
    boxes: list[OverlayBoxOut]


class CropOut(BaseModel):
    index: int
    region: list[int]
    image_jpeg_base64: str


class CropsResponse(BaseModel):
    ok: bool = True
    crops: list[CropOut]


class HealthResponse(BaseModel):
    ok: bool
    version: str
    detector_provider: str
    detector_model: str | None = None
    classifier_provider: str
    classifier_model: str | None = None
    classifier_available: bool
    classifier_message: str | None = None
    busy: bool = False
    uptime_s: float


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str
    message: str
    request_id: str | None = None
