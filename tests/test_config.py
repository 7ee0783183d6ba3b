from dataclasses import replace

import pytest

from mot3d import ConfigurationError, TrackerConfig, load_tracker_config


def test_defaults():
    config = TrackerConfig()
    assert config.max_age == 3
    assert config.min_hits == 3
    assert config.iou_threshold == 0.3
    assert config.dt == 1.0
    assert config.association_strategy == "greedy"


@pytest.mark.parametrize("values", [
    {"max_age": -1},
    {"max_age": 1.5},
    {"max_age": True},
    {"min_hits": 0},
    {"iou_threshold": -0.1},
    {"iou_threshold": 1.01},
    {"process_noise": 0.0},
    {"measurement_noise": -1.0},
    {"dt": -1.0},
    {"association_strategy": "random"},
    {"iou_threshold": "0.3"},
    {"iou_threshold": None},
    {"process_noise": "low"},
    {"measurement_noise": [0.1]},
    {"dt": "1"},
    {"dt": float("nan")},
    {"iou_threshold": True},
])
def test_invalid_values_are_rejected_not_clamped(values):
    with pytest.raises(ConfigurationError):
        TrackerConfig(**values)


def test_boundary_values_are_accepted():
    config = TrackerConfig(max_age=0, min_hits=1, iou_threshold=0.0, dt=0.0)
    assert config.max_age == 0
    assert TrackerConfig(iou_threshold=1.0).iou_threshold == 1.0


def test_replace_revalidates():
    with pytest.raises(ConfigurationError):
        replace(TrackerConfig(), min_hits=0)


def test_from_dict_and_to_dict():
    config = TrackerConfig.from_dict({"max_age": 5, "association_strategy": "hungarian"})
    assert config.max_age == 5
    assert TrackerConfig.from_dict(config.to_dict()) == config

    with pytest.raises(ConfigurationError, match="max_ages"):
        TrackerConfig.from_dict({"max_ages": 5})


def test_configuration_error_is_value_error():
    assert issubclass(ConfigurationError, ValueError)


def test_load_top_level_yaml(tmp_path):
    path = tmp_path / "tracker.yaml"
    path.write_text("max_age: 4\niou_threshold: 0.25\n")
    config = load_tracker_config(path)
    assert config.max_age == 4
    assert config.iou_threshold == 0.25
    assert config.min_hits == 3


def test_load_nested_yaml(tmp_path):
    path = tmp_path / "tracker.yaml"
    path.write_text("tracker:\n  min_hits: 2\n  association_strategy: hungarian\n")
    config = load_tracker_config(path)
    assert config.min_hits == 2
    assert config.association_strategy == "hungarian"


def test_load_empty_yaml_gives_defaults(tmp_path):
    path = tmp_path / "tracker.yaml"
    path.write_text("")
    assert load_tracker_config(path) == TrackerConfig()


def test_load_rejects_non_mapping(tmp_path):
    path = tmp_path / "tracker.yaml"
    path.write_text("- 1\n- 2\n")
    with pytest.raises(ConfigurationError):
        load_tracker_config(path)


def test_load_rejects_invalid_values(tmp_path):
    path = tmp_path / "tracker.yaml"
    path.write_text("max_age: -2\n")
    with pytest.raises(ConfigurationError):
        load_tracker_config(path)


def test_load_rejects_unparsable_yaml(tmp_path):
    path = tmp_path / "tracker.yaml"
    path.write_text("max_age: [1\n")
    with pytest.raises(ConfigurationError, match="Cannot parse"):
        load_tracker_config(path)


def test_load_rejects_wrongly_typed_values(tmp_path):
    path = tmp_path / "tracker.yaml"
    path.write_text("iou_threshold: high\n")
    with pytest.raises(ConfigurationError, match="iou_threshold"):
        load_tracker_config(path)


def test_load_rejects_non_mapping_tracker_section(tmp_path):
    path = tmp_path / "tracker.yaml"
    path.write_text("tracker: 5\n")
    with pytest.raises(ConfigurationError):
        load_tracker_config(path)
