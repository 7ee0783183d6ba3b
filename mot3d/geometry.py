"""
Geometry functions for axis-aligned 3D boxes.
"""
import numpy as np
from typing import Tuple

from mot3d.data_structures import BoundingBox3D


def intersection_volume(bbox1: BoundingBox3D, bbox2: BoundingBox3D) -> float:
    """
    Calculate the intersection volume of two boxes, ignoring orientation.

    Args:
        bbox1: First box
        bbox2: Second box

    Returns:
        Product of the per-axis overlap lengths, each clamped at zero
    """
    volume = 1.0
    for (min1, max1), (min2, max2) in zip(bbox1.bounds(), bbox2.bounds()):
        volume *= max(0.0, min(max1, max2) - max(min1, min2))
    return volume


def _bounds_volume(bbox: BoundingBox3D) -> float:
    # Same arithmetic as the overlap lengths, so intersection never exceeds either volume
    volume = 1.0
    for lo, hi in bbox.bounds():
        volume *= hi - lo
    return volume


def iou_3d(bbox1: BoundingBox3D, bbox2: BoundingBox3D) -> float:
    """
    Calculate axis-aligned 3D intersection over union.

    Args:
        bbox1: First box
        bbox2: Second box

    Returns:
        IoU in [0, 1]; 0 when the union volume is not positive
    """
    intersection = intersection_volume(bbox1, bbox2)
    union = _bounds_volume(bbox1) + _bounds_volume(bbox2) - intersection
    if union <= 0:
        return 0.0
    return intersection / union


def center_distance(pos1: Tuple[float, float, float], pos2: Tuple[float, float, float]) -> float:
    """
    Calculate Euclidean distance between two 3D points.

    Args:
        pos1: First position (x, y, z)
        pos2: Second position (x, y, z)

    Returns:
        Euclidean distance
    """
    return float(np.sqrt((pos1[0] - pos2[0]) ** 2 +
                         (pos1[1] - pos2[1]) ** 2 +
                         (pos1[2] - pos2[2]) ** 2))
