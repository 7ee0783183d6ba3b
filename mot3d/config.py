"""
Tracker configuration and validation.
"""
import math
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Dict, Union

import yaml

ASSOCIATION_STRATEGIES = ("greedy", "hungarian")


class ConfigurationError(ValueError):
    """Raised when a tracker configuration value is out of range."""


@dataclass(frozen=True)
class TrackerConfig:
    """
    Tracker parameters.

    Attributes:
        max_age: Frames a track may go unmatched before deletion
        min_hits: Matches required before a track is confirmed
        iou_threshold: Minimum 3D IoU to accept a match
        process_noise: Kalman process-noise scalar q
        measurement_noise: Kalman measurement-noise variance
        dt: Prediction step per frame
        association_strategy: 'greedy' (reference behaviour) or 'hungarian'
    """
    max_age: int = 3
    min_hits: int = 3
    iou_threshold: float = 0.3
    process_noise: float = 0.1
    measurement_noise: float = 0.1
    dt: float = 1.0
    association_strategy: str = "greedy"

    def __post_init__(self):
        if not _is_int(self.max_age) or self.max_age < 0:
            raise ConfigurationError(f"max_age must be a non-negative integer, got {self.max_age!r}")
        if not _is_int(self.min_hits) or self.min_hits < 1:
            raise ConfigurationError(f"min_hits must be a positive integer, got {self.min_hits!r}")
        for name in ("iou_threshold", "process_noise", "measurement_noise", "dt"):
            if not _is_number(getattr(self, name)):
                raise ConfigurationError(f"{name} must be a finite number, got {getattr(self, name)!r}")
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise ConfigurationError(f"iou_threshold must be in [0, 1], got {self.iou_threshold!r}")
        if self.process_noise <= 0 or self.measurement_noise <= 0:
            raise ConfigurationError("process_noise and measurement_noise must be positive")
        if self.dt < 0:
            raise ConfigurationError(f"dt must be non-negative, got {self.dt!r}")
        if self.association_strategy not in ASSOCIATION_STRATEGIES:
            raise ConfigurationError(
                f"Unknown association strategy '{self.association_strategy}', "
                f"expected one of {ASSOCIATION_STRATEGIES}")

    @classmethod
    def from_dict(cls, values: Dict) -> "TrackerConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ConfigurationError(f"Unknown tracker config keys: {sorted(map(str, unknown))}")
        return cls(**values)

    def to_dict(self) -> Dict:
        return asdict(self)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def load_tracker_config(path: Union[str, Path]) -> TrackerConfig:
    """
    Load a TrackerConfig from a YAML file.

    The mapping may be top-level or nested under a ``tracker`` key.
    """
    with open(path, 'r') as fp:
        try:
            config = yaml.load(fp, yaml.FullLoader) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Cannot parse tracker config {path}: {e}") from e

    if isinstance(config, dict) and 'tracker' in config:
        config = config['tracker'] or {}
    if not isinstance(config, dict):
        raise ConfigurationError(f"Tracker config in {path} must be a mapping")
    return TrackerConfig.from_dict(config)
