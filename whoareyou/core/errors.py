class PipelineError(Exception):
    code = 'PIPELINE_ERROR'
    status_code = 500

    def __init__(self, message: str, code: str | None = None, status_code: int | None = None, details: dict | None = None):
        super().__init__(message)
        self.code = code or self.code
        self.message = message
        self.status_code = status_code or self.status_code
        self.details = details or {}


class InvalidBufferError(PipelineError):
    code = 'INVALID_BUFFER'
    status_code = 400


class DetectorError(PipelineError):
    code = 'DETECTOR_ERROR'
    status_code = 502


class CropExtractionError(PipelineError):
    code = 'CROP_EXTRACTION_FAILED'
    status_code = 422


class ModelLoadError(PipelineError):
    code = 'MODEL_LOAD_FAILED'
    status_code = 503


class FrameDroppedError(PipelineError):
    code = 'FRAME_DROPPED'
    status_code = 409
