import logging

from whoareyou.core.errors import CropExtractionError
from whoareyou.core.geometry import clamp, scale_box
from whoareyou.core.types import Crop, CropRegion, Detection, DetectionSet, Frame

logger = logging.getLogger(__name__)


def compute_crop_region(frame_size: tuple[int, int], detection: Detection, scale_factor: float) -> CropRegion:
    """Square region sized to the longer side of the scaled box, centred on it.

    When the square does not fit strictly inside the frame the origin falls
    back to (0, 0); such a region may overrun the frame and is rejected at
    extraction time.
    """
    frame_width, frame_height = frame_size
    box = scale_box(detection.box, scale_factor)

    left = clamp(int(box.left), 0, frame_width)
    top = clamp(int(box.top), 0, frame_height)
    right = clamp(int(box.right), 0, frame_width)
    bottom = clamp(int(box.bottom), 0, frame_height)

    max_side = max(right - left, bottom - top)
    center_x = (left + right) // 2
    center_y = (top + bottom) // 2

    new_left = 0
    new_top = 0
    if frame_width - max_side > 0 and frame_height - max_side > 0:
        new_left = clamp(center_x - max_side // 2, 0, frame_width - max_side)
        new_top = clamp(center_y - max_side // 2, 0, frame_height - max_side)
    return CropRegion(left=new_left, top=new_top, side=max_side)


def extract_region(frame: Frame, region: CropRegion):
    if region.side <= 0:
        raise CropExtractionError(f'Empty crop region {region}.')
    if region.left < 0 or region.top < 0 or region.right > frame.width or region.bottom > frame.height:
        raise CropExtractionError(
            f'Crop region {region.as_box()} exceeds frame {frame.width}x{frame.height}.',
        )
    return frame.image.crop(region.as_box())


def crop(frame: Frame, detection: Detection, scale_factor: float = 1.0, index: int = 0) -> Crop | None:
    region = compute_crop_region(frame.size, detection, scale_factor)
    try:
        image = extract_region(frame, region)
    except CropExtractionError as exc:
        logger.warning('Skipping face index=%s: %s', index, exc.message)
        return None
    return Crop(index=index, region=region, image=image)


def crop_faces(frame: Frame, detections: DetectionSet, scale_factor: float = 1.0) -> list[Crop | None]:
    return [crop(frame, detection, scale_factor, index=index) for index, detection in enumerate(detections)]
