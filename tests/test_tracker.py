import logging

import pytest

from mot3d import (
    ConfigurationError,
    ConstantVelocityKalmanFilter,
    ReportingPolicy,
    SingularMatrixError,
    Tracker3D,
    TrackerConfig,
    TrackSnapshot,
    track_batch,
)


def track_ids(frame_results):
    return [r.track_id for r in frame_results]


def live_ids(tracker):
    return [t.id for t in tracker.get_all_tracks()]


def test_small_shift_keeps_track_id(make_detection):
    tracker = Tracker3D(iou_threshold=0.3)

    first = tracker.step([make_detection(0.0, 0.0, 0.0)])
    second = tracker.step([make_detection(0.2, 0.0, 0.1)])

    assert track_ids(first) == [1]
    assert track_ids(second) == [1]
    assert tracker.next_track_id == 2


def test_track_pruned_after_max_age_misses(make_detection):
    tracker = Tracker3D(max_age=3)
    tracker.step([make_detection()])

    # present through frame 1 + max_age
    for _ in range(3):
        tracker.step([])
        assert live_ids(tracker) == [1]

    tracker.step([])
    assert live_ids(tracker) == []

    # an identical detection afterwards is a new object
    result = tracker.step([make_detection()])
    assert track_ids(result) == [2]
    assert live_ids(tracker) == [2]


def test_match_on_last_allowed_frame_keeps_track(make_detection):
    """Association runs before pruning, so a match in that frame resets the miss streak."""
    frames = [[make_detection()], [], [], [], [make_detection(0.1)]]
    results = track_batch(frames, max_age=3)
    assert track_ids(results[0]) == [1]
    assert track_ids(results[4]) == [1]


def test_ids_strictly_increase_and_are_never_reused(make_detection):
    frames = [
        [make_detection(0.0)],
        [make_detection(10.0)],
        [make_detection(20.0), make_detection(0.0)],
        [make_detection(0.0), make_detection(30.0)],
    ]
    tracker = Tracker3D(max_age=0)

    seen = set()
    highest = 0
    for detections in frames:
        results = tracker.step(detections)
        assert len(results) == len(detections)
        for tracked in results:
            if tracked.track_id not in seen:
                assert tracked.track_id > highest
                highest = tracked.track_id
                seen.add(tracked.track_id)

    assert tracker.next_track_id == highest + 1


def test_max_age_zero_prunes_before_spawning(make_detection):
    tracker = Tracker3D(max_age=0)
    tracker.step([make_detection(0.0)])
    result = tracker.step([make_detection(10.0)])

    assert track_ids(result) == [2]
    assert live_ids(tracker) == [2]

    # matched every frame, survives
    assert track_ids(tracker.step([make_detection(10.0)])) == [2]


def test_output_preserves_input_order_and_objects(make_detection):
    tracker = Tracker3D()
    tracker.step([make_detection(0.0), make_detection(10.0)])

    detections = [make_detection(10.1), make_detection(50.0), make_detection(0.1)]
    results = tracker.step(detections)

    assert len(results) == 3
    for tracked, detection in zip(results, detections):
        assert tracked.detection is detection
    assert track_ids(results) == [2, 3, 1]


def test_empty_frames(make_detection):
    tracker = Tracker3D()
    assert tracker.step([]) == []
    assert tracker.update([]) == []
    assert tracker.frame_count == 2
    assert tracker.next_track_id == 1


def test_update_reports_confirmed_tracks_only(make_detection):
    tracker = Tracker3D(min_hits=3)

    assert tracker.update([make_detection(0.0)]) == []
    assert tracker.update([make_detection(0.1)]) == []
    confirmed = tracker.update([make_detection(0.2)])

    assert len(confirmed) == 1
    snapshot = confirmed[0]
    assert isinstance(snapshot, TrackSnapshot)
    assert snapshot.id == 1
    assert snapshot.hits == 3
    assert snapshot.age == 3
    assert snapshot.time_since_update == 0


def test_step_and_update_policies_differ(make_detection):
    frames = [[make_detection(0.0)], [make_detection(0.1)], [make_detection(0.2)]]

    all_results = Tracker3D(min_hits=3).run(frames)
    confirmed_results = Tracker3D(min_hits=3).run(frames, policy=ReportingPolicy.CONFIRMED_ONLY)

    assert [track_ids(r) for r in all_results] == [[1], [1], [1]]
    assert [track_ids(r) for r in confirmed_results] == [[], [], [1]]


def test_snapshots_are_detached_from_live_tracks(make_detection):
    tracker = Tracker3D()
    tracker.step([make_detection(0.0)])
    before = tracker.get_all_tracks()[0]

    tracker.step([make_detection(0.1)])

    assert before.hits == 1
    assert tracker.get_all_tracks()[0].hits == 2


def test_prediction_moves_center_but_keeps_extents(make_detection):
    tracker = Tracker3D()
    for x in (0.0, 0.5, 1.0, 1.5):
        results = tracker.step([make_detection(x)])
        assert track_ids(results) == [1]

    moving = tracker.get_all_tracks()[0]
    assert moving.velocity[0] > 0.0

    tracker.step([])
    predicted = tracker.get_all_tracks()[0]
    assert predicted.bbox.x > 1.5
    assert predicted.bbox.size == (2.0, 2.0, 2.0)
    assert predicted.time_since_update == 1


def test_singular_update_is_skipped_with_warning(make_detection, monkeypatch, caplog):
    def failing_update(self, measurement):
        raise SingularMatrixError("innovation covariance is singular")

    tracker = Tracker3D()
    tracker.step([make_detection(0.0), make_detection(10.0)])
    monkeypatch.setattr(ConstantVelocityKalmanFilter, "update", failing_update)

    with caplog.at_level(logging.WARNING, logger="mot3d.tracker"):
        results = tracker.step([make_detection(0.1), make_detection(10.1)])

    assert track_ids(results) == [1, 2]
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 2
    assert "Track 1" in warnings[0].getMessage()

    # the frame still counts as a match
    for snapshot in tracker.get_all_tracks():
        assert snapshot.hits == 2
        assert snapshot.time_since_update == 0


def test_strategies_diverge_through_tracker(make_detection):
    frames = [
        [make_detection(0.0), make_detection(1.0)],
        [make_detection(0.3), make_detection(0.1)],
    ]
    greedy = track_batch(frames, association_strategy="greedy")
    hungarian = track_batch(frames, association_strategy="hungarian")

    assert track_ids(greedy[0]) == track_ids(hungarian[0]) == [1, 2]
    assert track_ids(greedy[1]) == [1, 2]
    assert track_ids(hungarian[1]) == [2, 1]


def test_runs_are_reproducible(make_detection):
    frames = [
        [make_detection(0.0), make_detection(0.5), make_detection(5.0)],
        [make_detection(0.2), make_detection(5.1), make_detection(0.6)],
        [],
        [make_detection(0.3), make_detection(9.0)],
    ]
    config = TrackerConfig(max_age=1, min_hits=2)
    first = [track_ids(r) for r in track_batch(frames, config)]
    second = [track_ids(r) for r in Tracker3D(config).run(frames)]
    assert first == second


def test_iter_run_can_stop_between_frames(make_detection):
    frames = [[make_detection(float(i) * 0.1)] for i in range(5)]
    tracker = Tracker3D(data=frames)

    for frame_index, _ in enumerate(tracker.iter_run()):
        if frame_index == 1:
            break

    assert tracker.frame_count == 2


def test_run_uses_preloaded_frames(make_detection):
    tracker = Tracker3D()
    tracker.set_data([[make_detection()], [make_detection(0.1)]])
    assert [track_ids(r) for r in tracker.run()] == [[1], [1]]


def test_reset_restarts_ids(make_detection):
    tracker = Tracker3D()
    tracker.step([make_detection(0.0), make_detection(10.0)])
    tracker.reset()

    assert tracker.get_all_tracks() == []
    assert tracker.frame_count == 0
    assert track_ids(tracker.step([make_detection(10.0)])) == [1]


def test_config_summary(make_detection):
    tracker = Tracker3D(TrackerConfig(max_age=5), association_strategy="hungarian")
    tracker.step([make_detection()])

    summary = tracker.get_config_summary()
    assert summary['max_age'] == 5
    assert summary['association_strategy'] == "hungarian"
    assert summary['cost_function'] == "IoUCost"
    assert summary['active_tracks'] == 1
    assert summary['frame_count'] == 1


@pytest.mark.parametrize("overrides", [
    {"max_age": -1},
    {"min_hits": 0},
    {"iou_threshold": 1.5},
    {"association_strategy": "auction"},
    {"unknown_option": 1},
])
def test_invalid_configuration_is_rejected(overrides):
    with pytest.raises(ConfigurationError):
        Tracker3D(**overrides)


def test_next_track_id_is_read_only(make_detection):
    tracker = Tracker3D()
    tracker.step([make_detection(0.0), make_detection(10.0)])
    assert tracker.next_track_id == 3
    with pytest.raises(AttributeError):
        tracker.next_track_id = 1
    assert Tracker3D.set_data.__doc__
