import pytest
from PIL import Image

from whoareyou.core.errors import CropExtractionError
from whoareyou.core.face_cropper import compute_crop_region, crop, crop_faces, extract_region
from whoareyou.core.types import BoundingBox, CropRegion, Detection, DetectionSet, Frame


def _frame(width: int = 640, height: int = 480) -> Frame:
    return Frame(image=Image.new('RGB', (width, height), color='white'))


def _detection(left, top, right, bottom, confidence=0.9) -> Detection:
    return Detection(box=BoundingBox(left, top, right, bottom), confidence=confidence)


def test_crop_is_square_of_longer_side_centred_on_box():
    result = crop(_frame(), _detection(100, 100, 200, 220), scale_factor=1.0)

    assert result is not None
    assert result.region == CropRegion(left=90, top=100, side=120)
    assert result.image.size == (120, 120)
    centre_x = result.region.left + result.region.side / 2
    centre_y = result.region.top + result.region.side / 2
    assert (centre_x, centre_y) == (150, 160)


@pytest.mark.parametrize(
    'box',
    [(100, 100, 200, 220), (0, 0, 50, 30), (600, 10, 640, 90), (10, 400, 130, 480), (300, 200, 301, 260)],
)
def test_crop_for_box_inside_frame_stays_inside(box):
    left, top, right, bottom = box
    result = crop(_frame(), _detection(*box))

    assert result is not None
    assert result.region.side == max(right - left, bottom - top)
    assert 0 <= result.region.left and result.region.right <= 640
    assert 0 <= result.region.top and result.region.bottom <= 480
    assert result.image.size == (result.region.side, result.region.side)


def test_crop_near_edge_is_shifted_back_into_frame():
    region = compute_crop_region((640, 480), _detection(600, 10, 640, 90), 1.0)

    assert region == CropRegion(left=560, top=10, side=80)


def test_scale_factor_is_applied_before_centring():
    region = compute_crop_region((640, 480), _detection(50, 50, 100, 110), 2.0)

    assert region == CropRegion(left=90, top=100, side=120)


def test_box_edges_are_clamped_to_frame():
    region = compute_crop_region((640, 480), _detection(-40, -20, 60, 60), 1.0)

    assert region == CropRegion(left=0, top=0, side=60)


def test_oversized_face_yields_no_crop():
    frame = _frame(200, 100)

    assert crop(frame, _detection(0, 0, 150, 150)) is None


def test_degenerate_box_yields_no_crop():
    assert crop(_frame(), _detection(50, 50, 50, 50)) is None


def test_extract_region_rejects_out_of_bounds():
    with pytest.raises(CropExtractionError):
        extract_region(_frame(100, 100), CropRegion(left=0, top=0, side=101))


def test_crop_faces_keeps_index_alignment_with_gaps():
    frame = _frame(200, 100)
    detections = DetectionSet(
        detections=(
            _detection(10, 10, 40, 50),
            _detection(0, 0, 180, 100),
            _detection(120, 20, 160, 60),
        ),
        image_size=(200, 100),
    )

    crops = crop_faces(frame, detections, 1.0)

    assert len(crops) == 3
    assert crops[0] is not None and crops[0].index == 0
    assert crops[1] is None
    assert crops[2] is not None and crops[2].index == 2
