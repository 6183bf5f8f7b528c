import pytest

from whoareyou.core.types import RawFrame


@pytest.fixture
def raw_frame_factory():
    """Build RGBA camera buffers; ``closes`` counts close() calls per frame."""
    closes: list[int] = []

    def make(width: int = 640, height: int = 480, value: int = 0, rotation_degrees: int = 0, buffer=None) -> RawFrame:
        slot = len(closes)
        closes.append(0)

        def on_close():
            closes[slot] += 1

        data = buffer if buffer is not None else bytes([value, value, value, 255]) * (width * height)
        return RawFrame(buffer=data, width=width, height=height, rotation_degrees=rotation_degrees, on_close=on_close)

    make.closes = closes
    return make
