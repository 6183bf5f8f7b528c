from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    detector_provider: str = 'dummy'
    detector_model_path: str = 'models/blaze_face_short_range.tflite'
    min_detection_confidence: float = 0.5
    detector_timeout_s: float | None = 5.0
    dummy_detector_delay_s: float = 0.0
    remote_detector_base_url: str = 'http://127.0.0.1:5000'
    remote_detector_path: str = '/model/detect-faces'
    remote_detector_timeout_ms: int = 5000
    classifier_provider: str = 'dummy'
    classifier_model_path: str = 'models/face_classifier.pt'
    classifier_input_size: int = 224
    classifier_max_concurrency: int = 4
    dummy_scores: str = '0.9,0.1'
    labels_path: str = 'models/labels.txt'
    pixel_format: str = 'RGBA'
    max_frame_bytes: int = 32 * 1024 * 1024
    host: str = '127.0.0.1'
    port: int = 8001
    log_level: str = 'INFO'
    version: str = '1.0.0'


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
