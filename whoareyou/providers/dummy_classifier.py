import threading
from collections.abc import Callable, Sequence

import numpy as np

from whoareyou.core.face_classifier import ClassifierModel


class FixedScoresModel(ClassifierModel):
    """Returns the same scores for every input, or whatever ``score_fn`` computes from the tensor."""

    def __init__(
        self,
        scores: Sequence[float] = (0.9, 0.1),
        input_size: tuple[int, int] = (224, 224),
        score_fn: Callable[[np.ndarray], Sequence[float]] | None = None,
        model_id: str = 'dummy-classifier-v1',
    ) -> None:
        self._scores = [float(v) for v in scores]
        self._input_size = input_size
        self._score_fn = score_fn
        self._model_id = model_id
        self._lock = threading.Lock()
        self.calls = 0

    @property
    def model_id(self) -> str:
        return self._model_id

    @property
    def input_size(self) -> tuple[int, int]:
        return self._input_size

    @property
    def num_classes(self) -> int:
        return len(self._scores)

    def run(self, tensor: np.ndarray) -> Sequence[float]:
        width, height = self._input_size
        if tensor.shape != (1, height, width, 3):
            raise ValueError(f'expected input shape (1, {height}, {width}, 3), got {tensor.shape}')
        with self._lock:
            self.calls += 1
        if self._score_fn is not None:
            return self._score_fn(tensor)
        return list(self._scores)
