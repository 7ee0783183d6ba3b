# tracklet_manager.py

"""
Tracklet bookkeeping on top of Tracker3D.

Keeps what each track id was observed doing (frames, confidences, centres),
retires ids the tracker has pruned into a bounded history, and turns the
whole run into a summary table.
"""
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from mot3d.config import TrackerConfig
from mot3d.data_structures import BoundingBox3D, Detection, TrackedDetection, TrackingResult
from mot3d.geometry import center_distance
from mot3d.metrics import TrackingMetrics
from mot3d.tracker import ReportingPolicy, Tracker3D


@dataclass
class TrackletStatistics:
    """Observations reported for one track id."""
    track_id: int
    birth_frame: int
    death_frame: Optional[int] = None
    frames: List[int] = field(default_factory=list)
    confidences: List[float] = field(default_factory=list)
    positions: List[Tuple[float, float, float]] = field(default_factory=list)

    def update(self, tracked: TrackedDetection, frame_id: int):
        self.frames.append(frame_id)
        self.confidences.append(tracked.confidence)
        self.positions.append(tracked.bbox.center)

    @property
    def total_detections(self) -> int:
        return len(self.frames)

    @property
    def lifetime_frames(self) -> int:
        """Frames from birth to the latest observation, inclusive."""
        if not self.frames:
            return 0
        return self.frames[-1] - self.birth_frame + 1

    @property
    def average_confidence(self) -> float:
        return float(np.mean(self.confidences)) if self.confidences else 0.0

    @property
    def max_confidence(self) -> float:
        return max(self.confidences, default=0.0)

    @property
    def total_distance_traveled(self) -> float:
        return sum(center_distance(a, b) for a, b in zip(self.positions, self.positions[1:]))

    @property
    def last_position(self) -> Optional[Tuple[float, float, float]]:
        return self.positions[-1] if self.positions else None

    def to_row(self) -> Dict:
        return {
            'track_id': self.track_id,
            'birth_frame': self.birth_frame,
            'death_frame': self.death_frame,
            'detections': self.total_detections,
            'lifetime': self.lifetime_frames,
            'average_confidence': self.average_confidence,
            'max_confidence': self.max_confidence,
            'distance': self.total_distance_traveled,
        }


class TrackletManager:
    """
    Runs a Tracker3D frame by frame and keeps lifetime statistics per track.
    """

    def __init__(self,
                 tracker_config: Optional[TrackerConfig] = None,
                 track_buffer_size: int = 100,
                 min_iou: float = 0.1):
        """
        Args:
            tracker_config: Configuration for the underlying tracker
            track_buffer_size: How many retired tracklets to remember, oldest retirement dropped first
            min_iou: IoU a confirmed track box needs to count as matching a ground truth box
        """
        self.tracker = Tracker3D(tracker_config)
        self.metrics = TrackingMetrics(min_iou=min_iou)
        self.track_buffer_size = track_buffer_size

        self.active_tracklets: Dict[int, TrackletStatistics] = {}
        self.historical_tracklets: "OrderedDict[int, TrackletStatistics]" = OrderedDict()
        self.frame_results: List[TrackingResult] = []
        self.tracked_frames: List[List[TrackedDetection]] = []
        self.current_frame = 0

    def update(self,
               detections: Sequence[Detection],
               ground_truth: Optional[Sequence[BoundingBox3D]] = None,
               policy: ReportingPolicy = ReportingPolicy.ALL_DETECTIONS) -> List[TrackedDetection]:
        """
        Track one frame and record what it reported.

        Args:
            detections: Current frame detections
            ground_truth: If given, confirmed track boxes are scored against it
            policy: Reporting policy passed to the tracker; statistics only see reported detections

        Returns:
            Tracked detections for the frame, in input order
        """
        self.current_frame += 1
        tracked = self.tracker.step(detections, policy)
        self.tracked_frames.append(tracked)

        for item in tracked:
            if item.track_id not in self.active_tracklets:
                self.active_tracklets[item.track_id] = TrackletStatistics(item.track_id, self.current_frame)
            self.active_tracklets[item.track_id].update(item, self.current_frame)
        self._retire_pruned_tracklets()

        if ground_truth is not None:
            confirmed = [t.bbox for t in self.tracker.get_all_tracks() if t.hits >= self.tracker.min_hits]
            self.frame_results.append(self.metrics.compute_frame_metrics(confirmed, ground_truth))

        return tracked

    def _retire_pruned_tracklets(self):
        live_ids = {t.id for t in self.tracker.get_all_tracks()}
        for track_id in sorted(set(self.active_tracklets) - live_ids):
            tracklet = self.active_tracklets.pop(track_id)
            # pruned during this frame, so last alive in the previous one
            tracklet.death_frame = self.current_frame - 1
            self.historical_tracklets[track_id] = tracklet
            while len(self.historical_tracklets) > self.track_buffer_size:
                self.historical_tracklets.popitem(last=False)

    def tracklets_to_dataframe(self) -> pd.DataFrame:
        """One row per known tracklet, retired ones first."""
        tracklets = list(self.historical_tracklets.values()) + list(self.active_tracklets.values())
        return pd.DataFrame([t.to_row() for t in tracklets],
                            columns=['track_id', 'birth_frame', 'death_frame', 'detections', 'lifetime',
                                     'average_confidence', 'max_confidence', 'distance'])

    def get_tracking_summary(self) -> Dict:
        table = self.tracklets_to_dataframe()
        if table.empty:
            return {"error": "No tracklets available"}

        total_detections = sum(len(frame) for frame in self.tracked_frames)
        summary = {
            "total_tracklets": len(table),
            "active_tracklets": len(self.active_tracklets),
            "completed_tracklets": len(self.historical_tracklets),
            "current_frame": self.current_frame,
            "total_detections": total_detections,
            "average_detections_per_frame": total_detections / self.current_frame,
            "average_lifetime": float(table['lifetime'].mean()),
            "max_lifetime": int(table['lifetime'].max()),
            "min_lifetime": int(table['lifetime'].min()),
            "average_confidence": float(table['average_confidence'].mean()),
            "average_distance_traveled": float(table['distance'].mean()),
            "total_distance_all_tracks": float(table['distance'].sum()),
        }

        if self.frame_results:
            matched_ious = [r.average_iou for r in self.frame_results if r.num_matches > 0]
            summary.update({
                "evaluation_frames": len(self.frame_results),
                "overall_match_ratio": float(np.mean([r.match_ratio for r in self.frame_results])),
                "overall_average_iou": float(np.mean(matched_ious)) if matched_ious else 0.0,
                "total_matches": sum(r.num_matches for r in self.frame_results),
                "total_ground_truth": sum(r.num_ground_truth for r in self.frame_results),
            })
        return summary

    def get_tracklet_details(self, track_id: int) -> Optional[TrackletStatistics]:
        return self.active_tracklets.get(track_id, self.historical_tracklets.get(track_id))

    def export_results(self) -> Dict:
        """Everything needed to analyse the run offline."""
        return {
            "tracker_config": self.tracker.get_config_summary(),
            "summary": self.get_tracking_summary(),
            "frame_results": list(self.frame_results),
            "identity_metrics": self.metrics.compute_identity_metrics(self.tracked_frames),
            "active_tracklets": dict(self.active_tracklets),
            "historical_tracklets": dict(self.historical_tracklets),
        }

    def reset(self):
        self.tracker.reset()
        self.active_tracklets = {}
        self.historical_tracklets = OrderedDict()
        self.frame_results = []
        self.tracked_frames = []
        self.current_frame = 0

    def print_summary(self):
        summary = self.get_tracking_summary()
        if "error" in summary:
            print(summary["error"])
            return

        rows = [
            ("Total Tracklets", summary['total_tracklets']),
            ("Active Tracklets", summary['active_tracklets']),
            ("Completed Tracklets", summary['completed_tracklets']),
            ("Frames Processed", summary['current_frame']),
            ("Total Detections", summary['total_detections']),
            ("Average Detections per Frame", f"{summary['average_detections_per_frame']:.2f}"),
            ("Average Tracklet Lifetime", f"{summary['average_lifetime']:.1f} frames"),
            ("Max Tracklet Lifetime", f"{summary['max_lifetime']} frames"),
            ("Average Confidence", f"{summary['average_confidence']:.3f}"),
            ("Total Distance Traveled", f"{summary['total_distance_all_tracks']:.1f}"),
        ]
        print("\n" + "=" * 50)
        print("3D TRACKING SUMMARY")
        print("=" * 50)
        for label, value in rows:
            print(f"{label}: {value}")

        if "evaluation_frames" in summary:
            print("\nEVALUATION METRICS:")
            print(f"Frames Evaluated: {summary['evaluation_frames']}")
            print(f"Overall Match Ratio: {summary['overall_match_ratio']:.3f}")
            print(f"Average Match IoU: {summary['overall_average_iou']:.3f}")
            print(f"Matches / Ground Truth: {summary['total_matches']} / {summary['total_ground_truth']}")

        identity = self.metrics.compute_identity_metrics(self.tracked_frames)
        if identity.num_detections:
            self.metrics.print_identity_metrics(identity)

        print("\nTRACK CONTINUITY:")
        known = {**self.historical_tracklets, **self.active_tracklets}
        for track_id in sorted(known):
            frames = known[track_id].frames
            print(f"- Track {track_id}: frames {', '.join(str(f) for f in frames)} ({len(frames)} frames)")
        print("=" * 50)
