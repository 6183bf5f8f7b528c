import logging
import time
import uuid

from fastapi import FastAPI, File, Form, Query, Request, UploadFile
from fastapi.responses import JSONResponse

from whoareyou.config import Settings, get_settings
from whoareyou.core.analyzer import FrameAnalyzer
from whoareyou.core.detector import create_face_detector
from whoareyou.core.detector_bridge import DetectorBridge
from whoareyou.core.errors import FrameDroppedError, InvalidBufferError, PipelineError
from whoareyou.core.face_classifier import create_face_classifier
from whoareyou.core.overlay import overlay_boxes
from whoareyou.core.pipeline import FaceClassificationPipeline
from whoareyou.core.types import CombinedResult, RawFrame
from whoareyou.logging_setup import setup_logging
from whoareyou.schemas import (
    AnalysisStateOut,
    ClassificationOut,
    CombinedResultOut,
    CropOut,
    CropsResponse,
    DetectionOut,
    ErrorResponse,
    FaceOut,
    HealthResponse,
    OverlayBoxOut,
    OverlayResponse,
)
from whoareyou.utils.image_io import to_jpeg_base64

logger = logging.getLogger('whoareyou')


def _result_out(result: CombinedResult, detector_model: str | None, classifier_model: str | None) -> CombinedResultOut:
    faces: list[FaceOut] = []
    for index, detection in enumerate(result.detections):
        classification = result.classification_for(index)
        faces.append(
            FaceOut(
                index=index,
                detection=DetectionOut(bbox=detection.box.as_list(), confidence=detection.confidence),
                classification=(
                    ClassificationOut(label=classification.label, confidence=classification.confidence)
                    if classification is not None
                    else None
                ),
                label=result.label_for(index),
            )
        )
    return CombinedResultOut(
        detector_model=detector_model,
        classifier_model=classifier_model,
        inference_time_ms=result.inference_time_ms,
        image_width=result.image_width,
        image_height=result.image_height,
        faces=faces,
        classified=sum(1 for item in result.classifications if item is not None),
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    app = FastAPI(title='whoareyou', version=settings.version)
    started_at = time.time()

    @app.on_event('startup')
    def startup_event() -> None:
        detector = create_face_detector(settings)
        bridge = DetectorBridge(detector, timeout_s=settings.detector_timeout_s)
        classifier = create_face_classifier(settings)
        pipeline = FaceClassificationPipeline(
            bridge,
            classifier,
            pixel_format=settings.pixel_format,
            max_concurrency=settings.classifier_max_concurrency,
        )
        app.state.bridge = bridge
        app.state.classifier = classifier
        app.state.pipeline = pipeline
        app.state.analyzer = FrameAnalyzer(pipeline)
        logger.info(
            'Face detector initialized provider=%s model=%s min_confidence=%s timeout_s=%s',
            settings.detector_provider,
            bridge.model_id,
            settings.min_detection_confidence,
            settings.detector_timeout_s,
        )
        logger.info(
            'Face classifier configured provider=%s model=%s labels_path=%s',
            settings.classifier_provider,
            classifier.model_id,
            settings.labels_path,
        )

    @app.on_event('shutdown')
    def shutdown_event() -> None:
        pipeline = getattr(app.state, 'pipeline', None)
        if pipeline is not None:
            pipeline.close()

    @app.exception_handler(PipelineError)
    async def pipeline_error_handler(request: Request, exc: PipelineError):
        request_id = request.headers.get('x-request-id') or str(uuid.uuid4())
        payload = ErrorResponse(error=exc.code, message=exc.message, request_id=request_id)
        return JSONResponse(status_code=exc.status_code, content=payload.model_dump())

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        request_id = request.headers.get('x-request-id') or str(uuid.uuid4())
        logger.exception('Unhandled exception request_id=%s', request_id)
        payload = ErrorResponse(
            error='UNEXPECTED_SERVER_ERROR',
            message='Unexpected server error.',
            request_id=request_id,
        )
        return JSONResponse(status_code=500, content=payload.model_dump())

    @app.get('/health', response_model=HealthResponse)
    def health():
        classifier = app.state.classifier
        status = classifier.status()
        return HealthResponse(
            ok=True,
            version=settings.version,
            detector_provider=settings.detector_provider,
            detector_model=app.state.bridge.model_id,
            classifier_provider=settings.classifier_provider,
            classifier_model=classifier.model_id,
            classifier_available=bool(status.get('available')),
            classifier_message=status.get('message'),
            busy=app.state.analyzer.busy,
            uptime_s=round(time.time() - started_at, 3),
        )

    @app.post('/frames', response_model=CombinedResultOut)
    async def process_frame(
        request: Request,
        frame: UploadFile = File(...),
        width: int = Form(...),
        height: int = Form(...),
        rotation_degrees: int = Form(default=0),
        scale_factor: float = Form(default=1.0),
    ):
        request_id = request.headers.get('x-request-id') or str(uuid.uuid4())
        buffer = await frame.read()
        if len(buffer) > settings.max_frame_bytes:
            raise InvalidBufferError(
                f'Frame too large. Max {settings.max_frame_bytes} bytes.',
                code='FRAME_TOO_LARGE',
                status_code=413,
            )

        raw_frame = RawFrame(buffer=buffer, width=width, height=height, rotation_degrees=rotation_degrees)
        analyzer: FrameAnalyzer = app.state.analyzer
        result = await analyzer.analyze(raw_frame, scale_factor)
        if result is None:
            raise FrameDroppedError('Previous frame is still being processed; frame dropped.')

        response = _result_out(result, app.state.bridge.model_id, app.state.classifier.model_id)
        logger.info(
            'frame request_id=%s bytes=%s size=%sx%s faces=%s classified=%s inference_ms=%s',
            request_id,
            len(buffer),
            result.image_width,
            result.image_height,
            len(response.faces),
            response.classified,
            result.inference_time_ms,
        )
        return response

    @app.get('/results/latest', response_model=AnalysisStateOut)
    def latest_result():
        state = app.state.analyzer.state
        result = state.combined_result
        return AnalysisStateOut(
            result=_result_out(result, app.state.bridge.model_id, app.state.classifier.model_id) if result else None,
            crops=len(state.cropped_faces),
            error=state.error,
            processed_frames=state.processed_frames,
            dropped_frames=state.dropped_frames,
            failed_frames=state.failed_frames,
        )

    @app.get('/results/latest/overlay', response_model=OverlayResponse)
    def latest_overlay(
        viewport_width: float = Query(gt=0),
        viewport_height: float = Query(gt=0),
    ):
        result = app.state.analyzer.state.combined_result
        boxes = overlay_boxes(result, viewport_width, viewport_height) if result else []
        return OverlayResponse(
            viewport_width=viewport_width,
            viewport_height=viewport_height,
            boxes=[
                OverlayBoxOut(
                    bbox=item.box.as_list(),
                    label=item.label,
                    confidence=item.confidence,
                    detection_confidence=item.detection_confidence,
                )
                for item in boxes
            ],
        )

    @app.get('/crops/latest', response_model=CropsResponse)
    def latest_crops():
        crops = app.state.analyzer.state.cropped_faces
        return CropsResponse(
            crops=[
                CropOut(index=item.index, region=list(item.region.as_box()), image_jpeg_base64=to_jpeg_base64(item.image))
                for item in crops
            ]
        )

    return app


app = create_app()


if __name__ == '__main__':
    import uvicorn

    _settings = get_settings()
    uvicorn.run('whoareyou.main:app', host=_settings.host, port=_settings.port, log_level=_settings.log_level.lower())
