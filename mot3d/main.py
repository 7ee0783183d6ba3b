# main.py

"""Command-line driver: track an annotated 3D detection sequence."""

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from tqdm import tqdm

from mot3d.config import ConfigurationError, TrackerConfig, load_tracker_config
from mot3d.data_loader import load_frame_directory, load_frames, save_tracked_frames, save_tracking_csv
from mot3d.tracker import ReportingPolicy
from mot3d.tracklet_manager import TrackletManager


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Track 3D detections across frames.')
    parser.add_argument('input', help='JSON file with a list of frames, or a directory of per-frame JSON files.')
    parser.add_argument('--output', help='Output JSON path (default: <input>_tracked.json).')
    parser.add_argument('--csv', help='Optional CSV path for one row per tracked detection.')
    parser.add_argument('--config', help='YAML file with tracker parameters.')
    parser.add_argument('--max-age', type=int, help='Frames a track may stay unmatched.')
    parser.add_argument('--min-hits', type=int, help='Matches required to confirm a track.')
    parser.add_argument('--iou-threshold', type=float, help='Minimum 3D IoU for a match.')
    parser.add_argument('--strategy', choices=['greedy', 'hungarian'], help='Association strategy.')
    parser.add_argument('--confirmed-only', action='store_true',
                        help='Only report detections of confirmed tracks.')
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging.')
    return parser.parse_args(argv)


def build_config(args) -> TrackerConfig:
    config = load_tracker_config(args.config) if args.config else TrackerConfig()
    overrides = {
        'max_age': args.max_age,
        'min_hits': args.min_hits,
        'iou_threshold': args.iou_threshold,
        'association_strategy': args.strategy,
    }
    return replace(config, **{k: v for k, v in overrides.items() if v is not None})


def default_output_path(input_path: Path) -> Path:
    if input_path.is_dir():
        return input_path / 'multi_frames_tracked.json'
    return input_path.with_name(f"{input_path.stem}_tracked.json")


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(format="%(levelname)s: %(message)s",
                        level=logging.DEBUG if args.verbose else logging.INFO)

    input_path = Path(args.input)
    try:
        config = build_config(args)
        if input_path.is_dir():
            frames = load_frame_directory(input_path)
        else:
            frames = load_frames(input_path)
    except ConfigurationError as e:
        logging.error(f"Invalid tracker configuration: {e}")
        return 2
    except (OSError, ValueError) as e:
        logging.error(f"Failed to read input {input_path}: {e}")
        return 1

    manager = TrackletManager(tracker_config=config)
    policy = ReportingPolicy.CONFIRMED_ONLY if args.confirmed_only else ReportingPolicy.ALL_DETECTIONS

    results = []
    for detections in tqdm(frames,
                           total=len(frames),
                           desc="Processing Frames",
                           unit="frame",
                           dynamic_ncols=True):
        results.append(manager.update(detections, policy=policy))

    output_path = Path(args.output) if args.output else default_output_path(input_path)
    try:
        save_tracked_frames(results, output_path)
        if args.csv:
            save_tracking_csv(results, args.csv)
    except OSError as e:
        logging.error(f"Failed to write results: {e}")
        return 1

    manager.print_summary()
    return 0


if __name__ == '__main__':
    sys.exit(main())
