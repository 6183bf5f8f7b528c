import base64
from io import BytesIO

from PIL import Image


def to_jpeg_bytes(image: Image.Image, quality: int = 90) -> bytes:
    buffer = BytesIO()
    image.convert('RGB').save(buffer, format='JPEG', quality=quality)
    return buffer.getvalue()


def to_jpeg_base64(image: Image.Image, quality: int = 90) -> str:
    return base64.b64encode(to_jpeg_bytes(image, quality=quality)).decode('ascii')
