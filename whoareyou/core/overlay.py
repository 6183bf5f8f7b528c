from dataclasses import dataclass

from whoareyou.core.geometry import letterbox_fit, map_box
from whoareyou.core.types import BoundingBox, CombinedResult


@dataclass(frozen=True)
class OverlayBox:
    box: BoundingBox
    label: str
    confidence: float | None
    detection_confidence: float


def overlay_boxes(result: CombinedResult, viewport_width: float, viewport_height: float) -> list[OverlayBox]:
    """Display-space rectangles for every detection, labelled by index."""
    if result.image_width <= 0 or result.image_height <= 0 or viewport_width <= 0 or viewport_height <= 0:
        return []

    transform = letterbox_fit(result.image_width, result.image_height, viewport_width, viewport_height)
    boxes: list[OverlayBox] = []
    for index, detection in enumerate(result.detections):
        classification = result.classification_for(index)
        boxes.append(
            OverlayBox(
                box=map_box(detection.box, transform),
                label=result.label_for(index),
                confidence=classification.confidence if classification is not None else None,
                detection_confidence=detection.confidence,
            )
        )
    return boxes
