import time


class Stopwatch:
    def __init__(self) -> None:
        self._start = time.perf_counter()
        self._mark = self._start
        self.stages: dict[str, int] = {}

    def elapsed_ms(self) -> int:
        return int((time.perf_counter() - self._start) * 1000)

    def lap(self, stage: str) -> int:
        now = time.perf_counter()
        duration = int((now - self._mark) * 1000)
        self._mark = now
        self.stages[stage] = duration
        return duration
