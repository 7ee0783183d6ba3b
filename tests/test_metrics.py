import pytest

from mot3d import BoundingBox3D, TrackedDetection, TrackingMetrics, iou_3d


def cube(x):
    return BoundingBox3D(x, 0.0, 0.0, 2.0, 2.0, 2.0)


def test_frame_metrics_uses_optimal_matching():
    metrics = TrackingMetrics(min_iou=0.1)
    tracks = [cube(0.0), cube(10.0)]
    ground_truth = [cube(50.0), cube(0.1)]

    result = metrics.compute_frame_metrics(tracks, ground_truth)

    assert result.num_matches == 1
    assert result.num_predictions == 2
    assert result.num_ground_truth == 2
    assert result.match_ratio == pytest.approx(0.5)
    assert result.average_iou == pytest.approx(iou_3d(cube(0.0), cube(0.1)))


def test_frame_metrics_with_empty_side():
    result = TrackingMetrics().compute_frame_metrics([], [cube(0.0)])
    assert result.num_matches == 0
    assert result.match_ratio == 0.0
    assert result.num_ground_truth == 1


def test_identity_metrics(make_detection):
    annotated = make_detection(external_id=7)
    other = make_detection(external_id=8)
    unannotated = make_detection()

    results = [
        [TrackedDetection(annotated, 1), TrackedDetection(other, 2), TrackedDetection(unannotated, 3)],
        [TrackedDetection(annotated, 1), TrackedDetection(other, 2)],
        [TrackedDetection(other, 2)],
        [TrackedDetection(annotated, 4), TrackedDetection(other, 2)],
    ]
    identity = TrackingMetrics().compute_identity_metrics(results)

    assert identity.num_detections == 7
    assert identity.num_ground_truth_ids == 2
    assert identity.num_track_ids == 3
    assert identity.id_switches == 1
    assert identity.fragmentations == 1
    # object 7: 2 of 3 on its dominant id, object 8: 4 of 4
    assert identity.purity == pytest.approx(6 / 7)


def test_identity_metrics_without_annotations(make_detection):
    identity = TrackingMetrics().compute_identity_metrics([[TrackedDetection(make_detection(), 1)]])
    assert identity.num_detections == 0
    assert identity.purity == 0.0
