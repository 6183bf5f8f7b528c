"""Pure box arithmetic shared by the cropper and the display overlay."""

from dataclasses import dataclass

from whoareyou.core.types import BoundingBox


@dataclass(frozen=True)
class LetterboxTransform:
    scale: float
    offset_x: float
    offset_y: float


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def scale_box(box: BoundingBox, factor: float) -> BoundingBox:
    return BoundingBox(
        left=box.left * factor,
        top=box.top * factor,
        right=box.right * factor,
        bottom=box.bottom * factor,
    )


def letterbox_fit(image_width: float, image_height: float, viewport_width: float, viewport_height: float) -> LetterboxTransform:
    """Fit an image into a viewport preserving aspect ratio, centred on the free axis.

    A wider-than-viewport image is bound by width and gets vertical margins;
    otherwise it is bound by height and gets horizontal margins.
    """
    if image_width <= 0 or image_height <= 0:
        raise ValueError(f'image size must be positive, got {image_width}x{image_height}')
    if viewport_width <= 0 or viewport_height <= 0:
        raise ValueError(f'viewport size must be positive, got {viewport_width}x{viewport_height}')

    image_aspect = image_width / image_height
    viewport_aspect = viewport_width / viewport_height
    if image_aspect > viewport_aspect:
        scale = viewport_width / image_width
    else:
        scale = viewport_height / image_height

    offset_x = (viewport_width - image_width * scale) / 2
    offset_y = (viewport_height - image_height * scale) / 2
    return LetterboxTransform(scale=scale, offset_x=offset_x, offset_y=offset_y)


def map_box(box: BoundingBox, transform: LetterboxTransform) -> BoundingBox:
    return BoundingBox(
        left=box.left * transform.scale + transform.offset_x,
        top=box.top * transform.scale + transform.offset_y,
        right=box.right * transform.scale + transform.offset_x,
        bottom=box.bottom * transform.scale + transform.offset_y,
    )
