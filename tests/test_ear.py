import pytest

from vision.eyes import (
    LandmarkPoint,
    calculate_ear,
    calculate_frame_ear,
    LEFT_EYE_EAR_INDICES,
    RIGHT_EYE_EAR_INDICES,
)
from conftest import make_landmarks


def test_known_ratio():
    points = [
        LandmarkPoint(0.5, 0.4),   # top
        LandmarkPoint(0.5, 0.43),  # bottom
        LandmarkPoint(0.45, 0.415),
        LandmarkPoint(0.55, 0.415),
    ]
    assert calculate_ear(points, 0, 1, 2, 3) == pytest.approx(0.03 / (0.1 + 1e-4))


def test_translation_invariant():
    base = make_landmarks(opening=0.03)
    shifted = make_landmarks(opening=0.03, dx=0.2, dy=-0.15)
    for indices in (LEFT_EYE_EAR_INDICES, RIGHT_EYE_EAR_INDICES):
        assert calculate_ear(shifted, *indices) == pytest.approx(calculate_ear(base, *indices))


def test_zero_vertical_distance_is_zero():
    landmarks = make_landmarks(opening=0.0)
    assert calculate_ear(landmarks, *LEFT_EYE_EAR_INDICES) == 0.0


def test_coincident_corners_do_not_raise():
    landmarks = make_landmarks(opening=0.02, width=0.0)
    ear = calculate_ear(landmarks, *RIGHT_EYE_EAR_INDICES)
    assert ear == pytest.approx(0.02 / 1e-4)


def test_frame_ear_averages_both_eyes():
    landmarks = make_landmarks(opening=0.03)
    # close only the left eye
    top, bottom, _, _ = LEFT_EYE_EAR_INDICES
    landmarks[top] = LandmarkPoint(0.35, 0.4)
    landmarks[bottom] = LandmarkPoint(0.35, 0.4)

    left, right, avg = calculate_frame_ear(landmarks)
    assert left == 0.0
    assert right == pytest.approx(0.03 / (0.1 + 1e-4))
    assert avg == pytest.approx(right / 2)


def test_z_coordinate_is_ignored():
    flat = make_landmarks()
    deep = [LandmarkPoint(p.x, p.y, 0.7) for p in flat]
    assert calculate_frame_ear(deep) == pytest.approx(calculate_frame_ear(flat))
