# tracker.py
"""
Main tracking logic: a SORT-like tracking-by-detection loop for 3D boxes.

Each frame runs predict -> associate -> update -> prune -> spawn on the track
table. Frames must be fed in temporal order; an instance is not safe to share
between threads.
"""
import logging
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

import numpy as np

from mot3d.config import TrackerConfig
from mot3d.data_association import (
    AssociationStrategy,
    IoUCost,
    associate_detections_to_tracks,
)
from mot3d.data_structures import Detection, Track, TrackedDetection, TrackSnapshot
from mot3d.kalman_filter import ConstantVelocityKalmanFilter, SingularMatrixError

logger = logging.getLogger(__name__)


class ReportingPolicy(Enum):
    """Which tracked detections a frame reports."""
    ALL_DETECTIONS = "all_detections"  # every input detection, in input order
    CONFIRMED_ONLY = "confirmed_only"  # only detections whose track has hits >= min_hits


class Tracker3D:
    """
    SORT-like tracker for 3D boxes using Kalman filtering and IoU association.
    """

    def __init__(self,
                 config: Optional[TrackerConfig] = None,
                 data: Optional[Sequence[Sequence[Detection]]] = None,
                 **overrides):
        """
        Initialize tracker.

        Args:
            config: Tracker configuration (defaults to TrackerConfig())
            data: Optional frames to process later with run()
            **overrides: Individual TrackerConfig fields, e.g. max_age=5

        Raises:
            ConfigurationError: if any configuration value is invalid
        """
        if config is None:
            config = TrackerConfig.from_dict(overrides)
        elif overrides:
            config = TrackerConfig.from_dict({**config.to_dict(), **overrides})
        self.config = config

        self.max_age = config.max_age
        self.min_hits = config.min_hits
        self.iou_threshold = config.iou_threshold
        self.association_strategy = AssociationStrategy(config.association_strategy)
        self.cost_function = IoUCost(iou_threshold=config.iou_threshold)

        # Tracking state
        self.tracks: List[Track] = []
        self._next_id = 1
        self.frame_count = 0
        self.frames: List[Sequence[Detection]] = list(data) if data is not None else []

        logger.info("Tracker3D using %s association (max_age=%d, min_hits=%d, iou_threshold=%.2f)",
                    self.association_strategy.value, self.max_age, self.min_hits, self.iou_threshold)

    def step(self,
             detections: Sequence[Detection],
             policy: ReportingPolicy = ReportingPolicy.ALL_DETECTIONS) -> List[TrackedDetection]:
        """
        Process one frame and return the input detections paired with their track ids.

        Args:
            detections: Detections for the current frame
            policy: ALL_DETECTIONS returns every detection in input order;
                CONFIRMED_ONLY drops detections of tracks with fewer than min_hits matches

        Returns:
            List of tracked detections
        """
        track_ids = self._process_frame(detections)

        results = [TrackedDetection(detection=det, track_id=track_id)
                   for det, track_id in zip(detections, track_ids)]

        if policy == ReportingPolicy.CONFIRMED_ONLY:
            confirmed = {t.id for t in self.tracks if t.is_confirmed(self.min_hits)}
            results = [r for r in results if r.track_id in confirmed]
        return results

    def update(self, detections: Sequence[Detection]) -> List[TrackSnapshot]:
        """
        Process one frame and return the confirmed tracks.

        Same pipeline as step(); only tracks with hits >= min_hits are reported.
        """
        self._process_frame(detections)
        return self._get_confirmed_tracks()

    def run(self,
            frames: Optional[Iterable[Sequence[Detection]]] = None,
            policy: ReportingPolicy = ReportingPolicy.ALL_DETECTIONS) -> List[List[TrackedDetection]]:
        """
        Apply step() to every frame in order.

        Args:
            frames: Frames to process; defaults to the frames given at construction
            policy: Reporting policy passed to step()

        Returns:
            One list of tracked detections per frame
        """
        return list(self.iter_run(frames, policy))

    def iter_run(self,
                 frames: Optional[Iterable[Sequence[Detection]]] = None,
                 policy: ReportingPolicy = ReportingPolicy.ALL_DETECTIONS) -> Iterator[List[TrackedDetection]]:
        """Yield step() results frame by frame; stopping iteration stops tracking between frames."""
        if frames is None:
            frames = self.frames
        for detections in frames:
            yield self.step(detections, policy)

    def set_data(self, frames: Sequence[Sequence[Detection]]):
        """Replace the frames run() processes when called without arguments."""
        self.frames = list(frames)

    def _process_frame(self, detections: Sequence[Detection]) -> List[int]:
        """Run the per-frame pipeline; return the track id for each detection."""
        self.frame_count += 1

        self._predict_tracks()

        matches, unmatched_detections, _ = associate_detections_to_tracks(
            [det.bbox for det in detections],
            [track.bbox for track in self.tracks],
            self.cost_function,
            self.association_strategy,
        )

        track_ids: List[Optional[int]] = [None] * len(detections)
        for det_idx, track_idx in matches:
            track = self.tracks[track_idx]
            self._update_track(track, detections[det_idx])
            track_ids[det_idx] = track.id

        self._remove_dead_tracks()

        for det_idx in unmatched_detections:
            track_ids[det_idx] = self._initiate_track(detections[det_idx])

        return track_ids

    def _predict_tracks(self):
        """Age every track and move its box to the predicted position."""
        for track in self.tracks:
            track.age += 1
            track.time_since_update += 1

            track.kalman_filter.predict(self.config.dt)
            track.bbox = track.bbox.with_center(*track.kalman_filter.position)
            track.velocity = np.array(track.kalman_filter.velocity)

    def _update_track(self, track: Track, detection: Detection):
        """
        Update track with associated detection.

        The box is replaced by the detection's box. A singular innovation
        covariance skips the filter correction for this frame only.
        """
        track.bbox = detection.bbox
        track.last_detection = detection
        track.time_since_update = 0
        track.hits += 1

        try:
            track.kalman_filter.update(detection.position)
        except SingularMatrixError as e:
            logger.warning("Track %d: Kalman update skipped at frame %d: %s",
                           track.id, self.frame_count, e)

    def _initiate_track(self, detection: Detection) -> int:
        """Create new track from unmatched detection."""
        kalman_filter = ConstantVelocityKalmanFilter(
            detection.position,
            process_noise=self.config.process_noise,
            measurement_noise=self.config.measurement_noise,
        )

        new_track = Track(
            id=self._next_id,
            bbox=detection.bbox,
            kalman_filter=kalman_filter,
            last_detection=detection,
            age=1,
            hits=1,
            time_since_update=0,
        )

        self.tracks.append(new_track)
        self._next_id += 1
        logger.debug("Frame %d: created track %d", self.frame_count, new_track.id)
        return new_track.id

    def _remove_dead_tracks(self):
        """Remove tracks that have been unmatched for more than max_age frames."""
        kept = []
        for track in self.tracks:
            if track.time_since_update > self.max_age:
                logger.debug("Frame %d: removed track %d after %d missed frames",
                             self.frame_count, track.id, track.time_since_update)
            else:
                kept.append(track)
        self.tracks = kept

    def _get_confirmed_tracks(self) -> List[TrackSnapshot]:
        """
        Return only those tracks that have seen at least `min_hits` detections.
        """
        return [
            track.snapshot()
            for track in self.tracks
            if track.is_confirmed(self.min_hits)
        ]

    def get_all_tracks(self) -> List[TrackSnapshot]:
        """Get all active tracks (confirmed and tentative)."""
        return [track.snapshot() for track in self.tracks]

    @property
    def next_track_id(self) -> int:
        """Id the next spawned track will receive."""
        return self._next_id

    def reset(self):
        """Reset tracker state. Ids restart at 1 only for this explicit reset."""
        self.tracks = []
        self._next_id = 1
        self.frame_count = 0

    def get_config_summary(self) -> Dict:
        """Get current configuration summary."""
        summary = self.config.to_dict()
        summary.update({
            'association_strategy': self.association_strategy.value,
            'cost_function': type(self.cost_function).__name__,
            'active_tracks': len(self.tracks),
            'frame_count': self.frame_count,
        })
        return summary


def track_batch(frames: Sequence[Sequence[Detection]],
                config: Optional[TrackerConfig] = None,
                **overrides) -> List[List[TrackedDetection]]:
    """
    Track a whole sequence with a fresh tracker.

    Args:
        frames: Detections per frame, in temporal order
        config: Tracker configuration
        **overrides: Individual TrackerConfig fields

    Returns:
        One list of tracked detections per frame
    """
    tracker = Tracker3D(config, data=frames, **overrides)
    return tracker.run()
