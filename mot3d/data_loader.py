# data_loader.py

"""
Reads annotation JSON into Detection frames and writes tracking results.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import pandas as pd

from mot3d.data_structures import BoundingBox3D, Detection, TrackedDetection

logger = logging.getLogger(__name__)

DEFAULT_CLASS_MAP = {'Car': 1}
DEFAULT_CLASS_ID = 2
TRACKED_SUFFIX = '_tracked.json'


def convert_to_detection(obj: Dict, class_map: Optional[Dict[str, int]] = None) -> Detection:
    """
    Convert one annotated object into a Detection.

    Expects ``contour.center3D``, ``contour.size3D`` and ``contour.rotation3D``
    (each with x, y, z), ``modelConfidence``, ``modelClass`` and ``trackName``.
    size3D.x/y/z map to width/height/length, rotation3D.z to orientation.

    Raises:
        ValueError: if a field is missing or has the wrong type
    """
    if not isinstance(obj, dict):
        raise ValueError(f"Annotated object must be a JSON object, got {obj!r}")
    class_map = DEFAULT_CLASS_MAP if class_map is None else class_map
    try:
        contour = obj['contour']
        center = contour['center3D']
        size = contour['size3D']
        rotation = contour['rotation3D']
        bbox = BoundingBox3D(
            x=float(center['x']),
            y=float(center['y']),
            z=float(center['z']),
            width=float(size['x']),
            height=float(size['y']),
            length=float(size['z']),
            orientation=float(rotation['z']),
        )
        confidence = float(obj.get('modelConfidence', 0.0))
        class_id = class_map.get(obj.get('modelClass'), DEFAULT_CLASS_ID)
    except KeyError as e:
        raise ValueError(f"Malformed object {obj.get('id', '?')}: missing {e}") from e
    except TypeError as e:
        raise ValueError(f"Malformed object {obj.get('id', '?')}: {e}") from e

    track_name = str(obj.get('trackName', ''))
    external_id = int(track_name) if track_name.lstrip('-').isdigit() else None

    return Detection(
        bbox=bbox,
        confidence=confidence,
        external_id=external_id,
        class_id=class_id,
    )


def _frame_to_detections(frame: Dict, class_map: Optional[Dict[str, int]]) -> List[Detection]:
    objects = frame.get('objects') or []
    if not isinstance(objects, list):
        raise ValueError(f"Frame 'objects' must be a list, got {type(objects).__name__}")
    return [convert_to_detection(obj, class_map) for obj in objects]


def load_frames(path: Union[str, Path], class_map: Optional[Dict[str, int]] = None) -> List[List[Detection]]:
    """
    Load a JSON file holding a list of annotated frames.

    Returns:
        Detections per frame, in file order

    Raises:
        ValueError: if the file is not a list of frame objects
    """
    with open(path, 'r', encoding='utf-8') as fp:
        raw_frames = json.load(fp)
    if isinstance(raw_frames, dict):
        raw_frames = [raw_frames]
    if not isinstance(raw_frames, list):
        raise ValueError(f"{path} must hold a list of frames")

    frames = []
    for i, frame in enumerate(raw_frames):
        if not isinstance(frame, dict):
            raise ValueError(f"Frame {i} in {path} must be an object")
        frames.append(_frame_to_detections(frame, class_map))
    logger.info(f"Loaded {len(frames)} frames from {path}")
    return frames


def load_frame_directory(directory: Union[str, Path],
                         class_map: Optional[Dict[str, int]] = None) -> List[List[Detection]]:
    """
    Load one frame per JSON file from a directory, ordered by filename.

    Each file holds a list whose first entry is the frame. Files written by
    save_tracked_frames (``*_tracked.json``) are skipped; files without
    objects become empty frames.
    """
    files = sorted(p for p in Path(directory).glob('*.json') if not p.name.endswith(TRACKED_SUFFIX))
    logger.info(f"Found {len(files)} frame files in {directory}")

    frames = []
    for file in files:
        with open(file, 'r', encoding='utf-8') as fp:
            content = json.load(fp)
        frame = content[0] if isinstance(content, list) and content else content
        if isinstance(frame, dict) and frame.get('objects'):
            detections = _frame_to_detections(frame, class_map)
            logger.debug(f"{file.name}: {len(detections)} detections")
        else:
            logger.warning(f"{file.name}: no objects, using empty frame")
            detections = []
        frames.append(detections)
    return frames


def save_tracked_frames(results: Sequence[Sequence[TrackedDetection]], path: Union[str, Path]) -> Path:
    """Write tracker output as a JSON list of frames."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as fp:
        json.dump([[tracked.to_dict() for tracked in frame] for frame in results], fp, indent=2)
    logger.info(f"Results saved to: {path}")
    return path


def tracked_frames_to_dataframe(results: Sequence[Sequence[TrackedDetection]]) -> pd.DataFrame:
    """One row per tracked detection."""
    rows = []
    for frame_idx, frame in enumerate(results):
        for det_idx, tracked in enumerate(frame):
            bbox = tracked.bbox
            rows.append({
                'frame_id': frame_idx,
                'detection_index': det_idx,
                'track_id': tracked.track_id,
                'external_id': tracked.external_id,
                'class_id': tracked.class_id,
                'confidence': tracked.confidence,
                'x': bbox.x, 'y': bbox.y, 'z': bbox.z,
                'width': bbox.width, 'height': bbox.height, 'length': bbox.length,
                'orientation': bbox.orientation,
            })

    cols = ['frame_id', 'detection_index', 'track_id', 'external_id', 'class_id', 'confidence',
            'x', 'y', 'z', 'width', 'height', 'length', 'orientation']
    return pd.DataFrame(rows, columns=cols)


def save_tracking_csv(results: Sequence[Sequence[TrackedDetection]], path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tracked_frames_to_dataframe(results).to_csv(path, index=False)
    logger.info(f"Tracking CSV saved to: {path}")
    return path
