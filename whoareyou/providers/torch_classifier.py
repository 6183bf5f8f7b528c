import threading
from collections.abc import Sequence
from pathlib import Path

import numpy as np

from whoareyou.core.errors import ModelLoadError
from whoareyou.core.face_classifier import ClassifierModel


class TorchScriptClassifierModel(ClassifierModel):
    """TorchScript face classifier loaded once and reused for every crop.

    The module takes NCHW float input. A scripted ``input_size`` attribute
    (``(width, height)``) overrides the configured size; the class count is
    read from a warm-up forward pass.
    """

    def __init__(self, model_path: str, input_size: tuple[int, int] = (224, 224)):
        self._model_path = Path(model_path)
        self._input_size = input_size
        self._num_classes = 0
        self._model = None
        self._torch = None
        self._device = None
        self._lock = threading.Lock()

    @property
    def model_id(self) -> str:
        return self._model_path.stem

    @property
    def input_size(self) -> tuple[int, int]:
        return self._input_size

    @property
    def num_classes(self) -> int:
        return self._num_classes

    def load(self) -> None:
        try:
            import torch
        except ImportError as exc:
            raise ModelLoadError(f'torch not available: {exc}') from exc

        if not self._model_path.exists():
            raise ModelLoadError(f'checkpoint not found: {self._model_path.as_posix()}')

        try:
            device = 'cuda' if torch.cuda.is_available() else 'cpu'
            model = torch.jit.load(str(self._model_path), map_location=device)
            model.eval()
            declared = getattr(model, 'input_size', None)
            if declared is not None and len(declared) == 2:
                self._input_size = (int(declared[0]), int(declared[1]))
            width, height = self._input_size
            with torch.no_grad():
                probe = model(torch.zeros((1, 3, height, width), device=device))
        except Exception as exc:
            raise ModelLoadError(f'failed to load face classifier: {exc}') from exc

        self._torch = torch
        self._device = device
        self._model = model
        self._num_classes = int(probe.reshape(-1).shape[0])

    def run(self, tensor: np.ndarray) -> Sequence[float]:
        if self._model is None or self._torch is None:
            raise ModelLoadError('face classifier not loaded')
        torch = self._torch
        x = torch.from_numpy(np.ascontiguousarray(tensor.transpose(0, 3, 1, 2))).to(self._device)
        with self._lock, torch.no_grad():
            scores = self._model(x)[0]
        return scores.reshape(-1).cpu().tolist()
