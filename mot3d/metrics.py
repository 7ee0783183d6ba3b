"""
Evaluation metrics for 3D object tracking.
Uses Hungarian algorithm for optimal assignment between track boxes and ground truth.
"""
from dataclasses import dataclass
from typing import Dict, Sequence

import numpy as np
from scipy.optimize import linear_sum_assignment

from .data_structures import BoundingBox3D, TrackedDetection, TrackingResult
from .geometry import iou_3d


@dataclass
class IdentityResult:
    """
    Identity consistency of tracker output against annotated ids.

    Attributes:
        num_detections: Tracked detections carrying an annotated id
        num_ground_truth_ids: Distinct annotated ids
        num_track_ids: Distinct track ids assigned to annotated detections
        id_switches: Times an annotated object changed track id between its appearances
        fragmentations: Times an annotated object reappeared after missing at least one frame
        purity: Share of detections carrying the dominant track id of their annotated object
    """
    num_detections: int
    num_ground_truth_ids: int
    num_track_ids: int
    id_switches: int
    fragmentations: int
    purity: float


class TrackingMetrics:
    """
    Evaluation metrics for 3D tracking performance.
    """

    def __init__(self, min_iou: float = 0.1):
        """
        Initialize metrics calculator.

        Args:
            min_iou: Minimum IoU for a track box to count as matching a ground truth box
        """
        self.min_iou = min_iou

    def compute_frame_metrics(self,
                              track_boxes: Sequence[BoundingBox3D],
                              ground_truth: Sequence[BoundingBox3D]) -> TrackingResult:
        """
        Compare one frame of track boxes against ground truth boxes.

        Args:
            track_boxes: Boxes reported by the tracker
            ground_truth: Ground truth boxes

        Returns:
            TrackingResult with evaluation metrics
        """
        if not track_boxes or not ground_truth:
            return TrackingResult(
                total_iou=0.0,
                num_matches=0,
                num_predictions=len(track_boxes),
                num_ground_truth=len(ground_truth),
                match_ratio=0.0,
                average_iou=0.0
            )

        iou_matrix = np.array([[iou_3d(pred, gt) for gt in ground_truth] for pred in track_boxes])

        pred_indices, gt_indices = linear_sum_assignment(1.0 - iou_matrix)

        total_iou = 0.0
        num_matches = 0
        for pred_idx, gt_idx in zip(pred_indices, gt_indices):
            iou = iou_matrix[pred_idx, gt_idx]
            if iou >= self.min_iou:
                total_iou += iou
                num_matches += 1

        return TrackingResult(
            total_iou=float(total_iou),
            num_matches=num_matches,
            num_predictions=len(track_boxes),
            num_ground_truth=len(ground_truth),
            match_ratio=num_matches / len(ground_truth),
            average_iou=float(total_iou / num_matches) if num_matches > 0 else 0.0
        )

    def compute_identity_metrics(self, results: Sequence[Sequence[TrackedDetection]]) -> IdentityResult:
        """
        Measure how consistently annotated objects keep one track id.

        Detections without an external_id are ignored.

        Args:
            results: Tracker output, one list per frame

        Returns:
            IdentityResult
        """
        last_track: Dict[int, int] = {}
        last_frame: Dict[int, int] = {}
        counts: Dict[int, Dict[int, int]] = {}
        track_ids = set()
        id_switches = 0
        fragmentations = 0
        num_detections = 0

        for frame_idx, frame in enumerate(results):
            for tracked in frame:
                gt_id = tracked.external_id
                if gt_id is None:
                    continue
                num_detections += 1
                track_ids.add(tracked.track_id)

                if gt_id in last_track:
                    if last_track[gt_id] != tracked.track_id:
                        id_switches += 1
                    if frame_idx - last_frame[gt_id] > 1:
                        fragmentations += 1
                last_track[gt_id] = tracked.track_id
                last_frame[gt_id] = frame_idx

                per_gt = counts.setdefault(gt_id, {})
                per_gt[tracked.track_id] = per_gt.get(tracked.track_id, 0) + 1

        dominant = sum(max(per_gt.values()) for per_gt in counts.values())
        purity = dominant / num_detections if num_detections else 0.0

        return IdentityResult(
            num_detections=num_detections,
            num_ground_truth_ids=len(counts),
            num_track_ids=len(track_ids),
            id_switches=id_switches,
            fragmentations=fragmentations,
            purity=purity
        )

    def print_identity_metrics(self, result: IdentityResult):
        print("\nIdentity Metrics:")
        print(f"  Annotated Detections: {result.num_detections}")
        print(f"  Annotated Ids: {result.num_ground_truth_ids}")
        print(f"  Track Ids: {result.num_track_ids}")
        print(f"  Id Switches: {result.id_switches}")
        print(f"  Fragmentations: {result.fragmentations}")
        print(f"  Purity: {result.purity:.3f}")

