from PIL import Image

from whoareyou.core.errors import InvalidBufferError
from whoareyou.core.types import Frame

BYTES_PER_PIXEL = {
    'RGBA': 4,
    'RGB': 3,
}

# Camera rotation is clockwise; PIL transposes are counter-clockwise.
_CLOCKWISE_TRANSPOSE = {
    90: Image.Transpose.ROTATE_270,
    180: Image.Transpose.ROTATE_180,
    270: Image.Transpose.ROTATE_90,
}


def convert(buffer, width: int, height: int, rotation_degrees: int = 0, pixel_format: str = 'RGBA') -> Frame:
    bytes_per_pixel = BYTES_PER_PIXEL.get(pixel_format)
    if bytes_per_pixel is None:
        raise InvalidBufferError(f'Unsupported pixel format {pixel_format!r}.')
    if width <= 0 or height <= 0:
        raise InvalidBufferError(f'Frame dimensions must be positive, got {width}x{height}.')
    if rotation_degrees not in (0, 90, 180, 270):
        raise InvalidBufferError(f'Unsupported rotation {rotation_degrees}; expected 0, 90, 180 or 270.')

    view = memoryview(buffer).cast('B')
    required = width * height * bytes_per_pixel
    if view.nbytes < required:
        raise InvalidBufferError(
            f'Buffer holds {view.nbytes} bytes, {width}x{height} {pixel_format} needs {required}.',
            details={'required': required, 'actual': view.nbytes},
        )

    image = Image.frombytes(pixel_format, (width, height), bytes(view[:required]))
    if rotation_degrees:
        image = image.transpose(_CLOCKWISE_TRANSPOSE[rotation_degrees])
    return Frame(image=image, rotation_degrees=rotation_degrees)
