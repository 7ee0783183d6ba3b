"""
3D Multi-Object Tracking System

Tracking-by-detection for 3D bounding boxes: constant-velocity Kalman
prediction, IoU-based association and SORT-like track lifecycle management.

Key Components:
- BoundingBox3D / Detection / Track data structures
- Axis-aligned 3D IoU geometry
- Constant-velocity Kalman filter per track
- Greedy and Hungarian association strategies
- Tracker3D lifecycle manager (single-frame and batch modes)
- Tracklet manager for lifetime statistics and summaries

Usage:
    from mot3d import Tracker3D, TrackerConfig

    tracker = Tracker3D(TrackerConfig(max_age=3, iou_threshold=0.3))
    results = tracker.run(frames)  # one list of TrackedDetection per frame
"""

from .data_structures import (
    BoundingBox3D,
    Detection,
    TrackedDetection,
    Track,
    TrackSnapshot,
    TrackingResult,
)
from .config import TrackerConfig, ConfigurationError, load_tracker_config
from .geometry import iou_3d, intersection_volume, center_distance
from .kalman_filter import ConstantVelocityKalmanFilter, SingularMatrixError
from .data_association import (
    AssociationStrategy,
    IoUCost,
    CenterDistanceCost,
    HungarianAlgorithm,
    associate_detections_to_tracks,
    calculate_cost_matrix,
    greedy_assignment,
    hungarian_assignment,
)
from .metrics import TrackingMetrics, IdentityResult
from .tracker import Tracker3D, ReportingPolicy, track_batch
from .tracklet_manager import TrackletManager, TrackletStatistics

__version__ = "1.0.0"

__all__ = [
    # Data structures
    'BoundingBox3D',
    'Detection',
    'TrackedDetection',
    'Track',
    'TrackSnapshot',
    'TrackingResult',
    'TrackletStatistics',
    'IdentityResult',

    # Configuration
    'TrackerConfig',
    'ConfigurationError',
    'load_tracker_config',

    # Geometry
    'iou_3d',
    'intersection_volume',
    'center_distance',

    # Core components
    'ConstantVelocityKalmanFilter',
    'SingularMatrixError',
    'AssociationStrategy',
    'IoUCost',
    'CenterDistanceCost',
    'HungarianAlgorithm',
    'associate_detections_to_tracks',
    'calculate_cost_matrix',
    'greedy_assignment',
    'hungarian_assignment',
    'TrackingMetrics',
    'Tracker3D',
    'ReportingPolicy',
    'track_batch',
    'TrackletManager',
]
