"""
Data structures for 3D multi-object tracking.
"""
from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Tuple
import numpy as np

from mot3d.kalman_filter import ConstantVelocityKalmanFilter


@dataclass(frozen=True)
class BoundingBox3D:
    """
    Axis-aligned 3D bounding box.

    Attributes:
        x, y, z: Box center
        width: Extent along x
        height: Extent along y
        length: Extent along z
        orientation: Heading in radians (carried as metadata, not used by geometry)
    """
    x: float
    y: float
    z: float
    width: float
    height: float
    length: float
    orientation: float = 0.0

    @property
    def center(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)

    @property
    def size(self) -> Tuple[float, float, float]:
        return (self.width, self.height, self.length)

    @property
    def volume(self) -> float:
        return self.width * self.height * self.length

    def bounds(self) -> Tuple[Tuple[float, float], Tuple[float, float], Tuple[float, float]]:
        """Get (min, max) extent along x, y and z."""
        return (
            (self.x - self.width / 2, self.x + self.width / 2),
            (self.y - self.height / 2, self.y + self.height / 2),
            (self.z - self.length / 2, self.z + self.length / 2),
        )

    def with_center(self, x: float, y: float, z: float) -> "BoundingBox3D":
        """Return a copy moved to a new center, extents and orientation unchanged."""
        return replace(self, x=float(x), y=float(y), z=float(z))

    def to_dict(self) -> Dict[str, float]:
        return {
            'x': self.x, 'y': self.y, 'z': self.z,
            'width': self.width, 'height': self.height, 'length': self.length,
            'orientation': self.orientation,
        }


@dataclass(frozen=True)
class Detection:
    """
    A single detector output for one frame.

    Attributes:
        bbox: Detected box
        confidence: Detector confidence score
        external_id: Optional identifier supplied by the producer (e.g. annotation track name)
        class_id: Optional object class
    """
    bbox: BoundingBox3D
    confidence: float
    external_id: Optional[int] = None
    class_id: Optional[int] = None

    @property
    def position(self) -> Tuple[float, float, float]:
        return self.bbox.center


@dataclass(frozen=True)
class TrackedDetection:
    """An input detection paired with the track it was associated with."""
    detection: Detection
    track_id: int

    @property
    def bbox(self) -> BoundingBox3D:
        return self.detection.bbox

    @property
    def confidence(self) -> float:
        return self.detection.confidence

    @property
    def external_id(self) -> Optional[int]:
        return self.detection.external_id

    @property
    def class_id(self) -> Optional[int]:
        return self.detection.class_id

    def to_dict(self) -> Dict:
        """Serialise in the detection-plus-trackId output layout."""
        result = {
            'bbox': self.bbox.to_dict(),
            'confidence': self.confidence,
        }
        if self.external_id is not None:
            result['id'] = self.external_id
        if self.class_id is not None:
            result['classId'] = self.class_id
        result['trackId'] = self.track_id
        return result


@dataclass(frozen=True)
class TrackSnapshot:
    """Read-only copy of a track's state at the end of a frame."""
    id: int
    bbox: BoundingBox3D
    velocity: Tuple[float, float, float]
    age: int
    hits: int
    time_since_update: int
    confidence: float

    @property
    def position(self) -> Tuple[float, float, float]:
        return self.bbox.center


@dataclass
class Track:
    """
    Represents a tracked object.

    Attributes:
        id: Unique track identifier, never reused
        bbox: Current box (center follows the filter, extents follow the last match)
        kalman_filter: State estimator owned by this track
        last_detection: Most recent associated detection
        velocity: Current velocity estimate [vx, vy, vz]
        age: Number of frames since track creation, including the creation frame
        hits: Number of successful detection associations
        time_since_update: Frames since last successful update
    """
    id: int
    bbox: BoundingBox3D
    kalman_filter: ConstantVelocityKalmanFilter
    last_detection: Detection
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    age: int = 1
    hits: int = 1
    time_since_update: int = 0

    @property
    def position(self) -> Tuple[float, float, float]:
        """Get current position estimate."""
        return self.bbox.center

    @property
    def confidence(self) -> float:
        return self.last_detection.confidence

    def is_confirmed(self, min_hits: int) -> bool:
        return self.hits >= min_hits

    def snapshot(self) -> TrackSnapshot:
        return TrackSnapshot(
            id=self.id,
            bbox=self.bbox,
            velocity=tuple(float(v) for v in self.velocity),
            age=self.age,
            hits=self.hits,
            time_since_update=self.time_since_update,
            confidence=self.confidence,
        )


@dataclass
class TrackingResult:
    """
    Results from comparing track boxes with ground truth in one frame.

    Attributes:
        total_iou: Sum of IoU over accepted matches
        num_matches: Number of successful matches
        num_predictions: Total number of track boxes
        num_ground_truth: Total number of ground truth boxes
        match_ratio: Ratio of matches to ground truth
        average_iou: Average IoU of matches
    """
    total_iou: float
    num_matches: int
    num_predictions: int
    num_ground_truth: int
    match_ratio: float
    average_iou: float
