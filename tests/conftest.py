import pytest

from mot3d import BoundingBox3D, Detection


def _make_detection(x=0.0, y=0.0, z=0.0, size=2.0, confidence=0.9,
                    external_id=None, class_id=None, orientation=0.0):
    return Detection(
        bbox=BoundingBox3D(x=x, y=y, z=z, width=size, height=size, length=size,
                           orientation=orientation),
        confidence=confidence,
        external_id=external_id,
        class_id=class_id,
    )


@pytest.fixture
def make_detection():
    """Factory for cube-shaped detections."""
    return _make_detection
