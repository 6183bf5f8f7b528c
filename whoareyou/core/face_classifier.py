import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import numpy as np
from PIL import Image

from whoareyou.config import Settings
from whoareyou.core.errors import ModelLoadError
from whoareyou.core.types import UNKNOWN_LABEL, Classification, Crop

logger = logging.getLogger(__name__)


class ClassifierModel(ABC):
    """Fixed-shape image classifier: ``[1, H, W, 3]`` float32 in, ``num_classes`` scores out."""

    @property
    @abstractmethod
    def model_id(self) -> str:
        raise NotImplementedError

    def load(self) -> None:
        return None

    @property
    @abstractmethod
    def input_size(self) -> tuple[int, int]:
        """(width, height) expected by the model."""
        raise NotImplementedError

    @property
    @abstractmethod
    def num_classes(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def run(self, tensor: np.ndarray) -> Sequence[float]:
        raise NotImplementedError


def resolve_asset_path(path: str | Path) -> Path:
    candidate = Path(path)
    if candidate.exists() or candidate.is_absolute():
        return candidate
    fallback = Path(__file__).resolve().parents[1] / candidate
    if fallback.exists():
        return fallback
    return candidate


def load_labels(path: str | Path) -> list[str]:
    labels_path = resolve_asset_path(path)
    if not labels_path.is_file():
        raise ModelLoadError(f'labels file not found: {labels_path.as_posix()}')
    return labels_path.read_text(encoding='utf-8').splitlines()


def normalize_pixels(image: Image.Image) -> np.ndarray:
    pixels = np.asarray(image.convert('RGB'), dtype=np.float32)
    return ((pixels - 127.0) / 128.0)[np.newaxis, ...]


def select_top(scores: Sequence[float], labels: Sequence[str]) -> Classification:
    values = np.asarray(scores, dtype=np.float32).reshape(-1)
    if values.size == 0:
        return Classification(label=UNKNOWN_LABEL, confidence=0.0)
    index = int(np.argmax(values))
    label = labels[index] if index < len(labels) else UNKNOWN_LABEL
    return Classification(label=label, confidence=float(values[index]))


class FaceClassifier:
    def __init__(self, model: ClassifierModel, labels_path: str | None = None, labels: Sequence[str] | None = None):
        self._model = model
        self._labels_path = labels_path
        self._labels: tuple[str, ...] | None = tuple(labels) if labels is not None else None
        self._lock = threading.Lock()
        self._available = False
        self._message: str | None = None

    @property
    def model_id(self) -> str:
        return self._model.model_id

    @property
    def labels(self) -> tuple[str, ...]:
        return self._labels or ()

    def status(self) -> dict[str, Any]:
        return {
            'available': self._available,
            'message': self._message,
            'model_id': self._model.model_id,
            'labels': len(self.labels),
        }

    def ensure_loaded(self) -> None:
        if self._available:
            return
        with self._lock:
            if self._available:
                return
            if self._message is not None:
                raise ModelLoadError(self._message)
            try:
                self._model.load()
                if self._labels is None:
                    if not self._labels_path:
                        raise ModelLoadError('no labels file configured')
                    self._labels = tuple(load_labels(self._labels_path))
            except ModelLoadError as exc:
                self._message = exc.message
                raise
            except Exception as exc:
                self._message = f'failed to load face classifier: {exc}'
                raise ModelLoadError(self._message) from exc

            if self._model.num_classes != len(self._labels):
                logger.warning(
                    'Classifier output size does not match labels model=%s num_classes=%s labels=%s',
                    self._model.model_id,
                    self._model.num_classes,
                    len(self._labels),
                )
            self._available = True
            logger.info(
                'Face classifier loaded model=%s input_size=%s num_classes=%s',
                self._model.model_id,
                self._model.input_size,
                self._model.num_classes,
            )

    def preprocess(self, image: Image.Image) -> np.ndarray:
        resized = image.convert('RGB').resize(self._model.input_size, Image.Resampling.BILINEAR)
        return normalize_pixels(resized)

    def classify(self, crop: Crop | Image.Image) -> Classification:
        self.ensure_loaded()
        image = crop.image if isinstance(crop, Crop) else crop
        scores = self._model.run(self.preprocess(image))
        return select_top(scores, self.labels)


def create_classifier_model(settings: Settings) -> ClassifierModel:
    provider = settings.classifier_provider.strip().lower()
    if provider == 'dummy':
        from whoareyou.providers.dummy_classifier import FixedScoresModel

        return FixedScoresModel(
            scores=[float(v) for v in settings.dummy_scores.split(',') if v.strip()],
            input_size=(settings.classifier_input_size, settings.classifier_input_size),
        )
    if provider == 'torch':
        from whoareyou.providers.torch_classifier import TorchScriptClassifierModel

        return TorchScriptClassifierModel(
            model_path=settings.classifier_model_path,
            input_size=(settings.classifier_input_size, settings.classifier_input_size),
        )
    raise ValueError(f'Unsupported CLASSIFIER_PROVIDER={settings.classifier_provider!r}')


def create_face_classifier(settings: Settings) -> FaceClassifier:
    return FaceClassifier(create_classifier_model(settings), labels_path=settings.labels_path)
