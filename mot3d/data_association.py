# data_association.py

"""
Matching of detections to tracks.

Two strategies share one interface: a greedy matcher that walks detections in
input order (the reference behaviour), and an optimal Hungarian (Munkres)
solver. They are not interchangeable: whenever two detections compete for the
same best track, greedy gives it to the earlier detection, Hungarian to the
assignment with the lowest total cost.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Sequence, Tuple

import numpy as np

from mot3d.data_structures import BoundingBox3D
from mot3d.geometry import iou_3d, center_distance

REJECT_COST = 1e5
ZERO_TOLERANCE = 1e-12


class AssociationStrategy(Enum):
    """Available association strategies."""
    GREEDY = "greedy"
    HUNGARIAN = "hungarian"


@dataclass(frozen=True)
class IoUCost:
    """
    Cost ``1 - IoU`` for pairs overlapping more than ``iou_threshold``.

    Pairs at or below the threshold get ``reject_cost`` and cannot be matched.
    """
    iou_threshold: float = 0.3
    reject_cost: float = REJECT_COST

    def __call__(self, detection_bbox: BoundingBox3D, track_bbox: BoundingBox3D) -> float:
        iou = iou_3d(detection_bbox, track_bbox)
        return 1.0 - iou if iou > self.iou_threshold else self.reject_cost


@dataclass(frozen=True)
class CenterDistanceCost:
    """Euclidean center distance for pairs closer than ``max_distance``."""
    max_distance: float = 2.0
    reject_cost: float = REJECT_COST

    def __call__(self, detection_bbox: BoundingBox3D, track_bbox: BoundingBox3D) -> float:
        distance = center_distance(detection_bbox.center, track_bbox.center)
        return distance if distance < self.max_distance else self.reject_cost


CostFunction = Callable[[BoundingBox3D, BoundingBox3D], float]


def calculate_cost_matrix(detection_boxes: Sequence[BoundingBox3D],
                          track_boxes: Sequence[BoundingBox3D],
                          cost_function: CostFunction) -> np.ndarray:
    """
    Create the detection x track cost matrix.

    Args:
        detection_boxes: Boxes of current detections (rows)
        track_boxes: Predicted boxes of existing tracks (columns)
        cost_function: Pairwise cost, called as cost_function(detection, track)

    Returns:
        Cost matrix of shape (len(detection_boxes), len(track_boxes))
    """
    cost_matrix = np.zeros((len(detection_boxes), len(track_boxes)))
    for d, det_box in enumerate(detection_boxes):
        for t, track_box in enumerate(track_boxes):
            cost_matrix[d, t] = cost_function(det_box, track_box)
    return cost_matrix


def greedy_assignment(cost_matrix: np.ndarray, reject_cost: float = REJECT_COST) -> np.ndarray:
    """
    For each row in order, take the cheapest still-unused column below ``reject_cost``.

    Ties resolve to the lowest column index.

    Returns:
        Array with the assigned column per row, -1 where unmatched
    """
    cost_matrix = _as_cost_matrix(cost_matrix)
    n_rows, n_cols = cost_matrix.shape
    assignment = np.full(n_rows, -1, dtype=int)
    used = np.zeros(n_cols, dtype=bool)

    for row in range(n_rows):
        best_col = -1
        best_cost = reject_cost
        for col in range(n_cols):
            if used[col]:
                continue
            if cost_matrix[row, col] < best_cost:
                best_cost = cost_matrix[row, col]
                best_col = col
        if best_col != -1:
            assignment[row] = best_col
            used[best_col] = True

    return assignment


class HungarianAlgorithm:
    """
    Munkres solution of the rectangular assignment problem.

    The cost matrix is padded to square with zero-cost dummy rows/columns.
    Rows are reduced, then columns, an initial set of independent zeros is
    starred, and alternating paths of primed/starred zeros are augmented until
    every row carries a starred zero.
    """

    def __init__(self, cost_matrix: np.ndarray):
        cost_matrix = _as_cost_matrix(cost_matrix)
        self.n_rows, self.n_cols = cost_matrix.shape
        self.size = max(self.n_rows, self.n_cols)

        self.C = np.zeros((self.size, self.size))
        self.C[:self.n_rows, :self.n_cols] = cost_matrix

        self.starred = np.zeros((self.size, self.size), dtype=bool)
        self.primed = np.zeros((self.size, self.size), dtype=bool)
        self.row_covered = np.zeros(self.size, dtype=bool)
        self.col_covered = np.zeros(self.size, dtype=bool)

    def solve(self) -> np.ndarray:
        """
        Run the algorithm.

        Returns:
            Array with the assigned column per real row, -1 where a row only
            received a dummy column
        """
        if self.n_rows == 0 or self.n_cols == 0:
            return np.full(self.n_rows, -1, dtype=int)

        self._reduce_rows()
        self._reduce_columns()
        self._star_initial_zeros()

        while not self._cover_starred_columns():
            row, col = self._prime_until_augmentable()
            self._augment_path(row, col)

        assignment = np.full(self.n_rows, -1, dtype=int)
        for row in range(self.n_rows):
            col = int(np.argmax(self.starred[row]))
            if col < self.n_cols:
                assignment[row] = col
        return assignment

    def _is_zero(self) -> np.ndarray:
        return np.abs(self.C) < ZERO_TOLERANCE

    def _reduce_rows(self):
        self.C -= self.C.min(axis=1, keepdims=True)

    def _reduce_columns(self):
        self.C -= self.C.min(axis=0, keepdims=True)

    def _star_initial_zeros(self):
        zeros = self._is_zero()
        row_used = np.zeros(self.size, dtype=bool)
        col_used = np.zeros(self.size, dtype=bool)
        for row in range(self.size):
            for col in range(self.size):
                if zeros[row, col] and not row_used[row] and not col_used[col]:
                    self.starred[row, col] = True
                    row_used[row] = True
                    col_used[col] = True

    def _cover_starred_columns(self) -> bool:
        """Cover every column holding a starred zero; True when all are covered."""
        self.col_covered = self.starred.any(axis=0)
        return bool(self.col_covered.all())

    def _find_uncovered_zero(self):
        mask = self._is_zero() & ~self.row_covered[:, None] & ~self.col_covered[None, :]
        hits = np.argwhere(mask)
        if len(hits) == 0:
            return None
        return int(hits[0][0]), int(hits[0][1])

    def _prime_until_augmentable(self) -> Tuple[int, int]:
        """
        Prime uncovered zeros until one has no starred zero in its row.

        Returns:
            Position of that primed zero, the start of an augmenting path
        """
        while True:
            position = self._find_uncovered_zero()
            if position is None:
                self._adjust_uncovered_minimum()
                continue

            row, col = position
            self.primed[row, col] = True
            starred_cols = np.flatnonzero(self.starred[row])
            if len(starred_cols) == 0:
                return row, col

            self.row_covered[row] = True
            self.col_covered[starred_cols[0]] = False

    def _adjust_uncovered_minimum(self):
        """Add the smallest uncovered value to covered rows and subtract it from uncovered columns."""
        uncovered = self.C[~self.row_covered][:, ~self.col_covered]
        minimum = uncovered.min()
        self.C[self.row_covered, :] += minimum
        self.C[:, ~self.col_covered] -= minimum

    def _augment_path(self, row: int, col: int):
        """Flip stars along the alternating primed/starred path from (row, col)."""
        path = [(row, col)]
        while True:
            star_rows = np.flatnonzero(self.starred[:, path[-1][1]])
            if len(star_rows) == 0:
                break
            star_row = int(star_rows[0])
            path.append((star_row, path[-1][1]))
            prime_col = int(np.flatnonzero(self.primed[star_row])[0])
            path.append((star_row, prime_col))

        for r, c in path:
            self.starred[r, c] = not self.starred[r, c]

        self.primed[:, :] = False
        self.row_covered[:] = False
        self.col_covered[:] = False


def hungarian_assignment(cost_matrix: np.ndarray, reject_cost: float = REJECT_COST) -> np.ndarray:
    """
    Minimum-total-cost one-to-one assignment.

    Pairs whose cost is not below ``reject_cost`` are dropped from the result.

    Returns:
        Array with the assigned column per row, -1 where unmatched
    """
    cost_matrix = _as_cost_matrix(cost_matrix)
    assignment = HungarianAlgorithm(cost_matrix).solve()
    for row, col in enumerate(assignment):
        if col != -1 and cost_matrix[row, col] >= reject_cost:
            assignment[row] = -1
    return assignment


def associate_detections_to_tracks(
        detection_boxes: Sequence[BoundingBox3D],
        track_boxes: Sequence[BoundingBox3D],
        cost_function: CostFunction,
        strategy: AssociationStrategy = AssociationStrategy.GREEDY,
) -> Tuple[List[Tuple[int, int]], List[int], List[int]]:
    """
    Matches detections to existing tracks.

    Args:
        detection_boxes: Boxes of current detections
        track_boxes: Predicted boxes of existing tracks
        cost_function: Pairwise cost; must expose ``reject_cost``
        strategy: Matching policy

    Returns:
        matches: list of (detection_idx, track_idx)
        unmatched_detections: list of detection indices with no match
        unmatched_tracks: list of track indices with no match
    """
    if len(detection_boxes) == 0 or len(track_boxes) == 0:
        return [], list(range(len(detection_boxes))), list(range(len(track_boxes)))

    reject_cost = getattr(cost_function, 'reject_cost', REJECT_COST)
    cost_matrix = calculate_cost_matrix(detection_boxes, track_boxes, cost_function)

    if strategy == AssociationStrategy.HUNGARIAN:
        assignment = hungarian_assignment(cost_matrix, reject_cost)
    else:
        assignment = greedy_assignment(cost_matrix, reject_cost)

    matches = [(d, int(t)) for d, t in enumerate(assignment) if t != -1]
    matched_tracks = {t for _, t in matches}

    unmatched_detections = [d for d, t in enumerate(assignment) if t == -1]
    unmatched_tracks = [t for t in range(len(track_boxes)) if t not in matched_tracks]

    return matches, unmatched_detections, unmatched_tracks


def _as_cost_matrix(cost_matrix) -> np.ndarray:
    cost_matrix = np.asarray(cost_matrix, dtype=float)
    if cost_matrix.ndim != 2:
        raise ValueError(f"Cost matrix must be 2-dimensional, got shape {cost_matrix.shape}")
    if not np.all(np.isfinite(cost_matrix)):
        raise ValueError("Cost matrix must contain only finite values")
    return cost_matrix
