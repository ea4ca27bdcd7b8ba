"""Command-line interface for labeling fiducial dots of one frame."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, List, Tuple

from configs.settings import DEFAULT_CONFIG_PATH, load_config
from contracts import Dot, Line
from exceptions import ConfigError, ConfigValidationError, FrameInputError
from labeling.matcher import FidLabeling
from log_config.logger import enable_file_logging

EXIT_FOUND = 0
EXIT_ERROR = 1
EXIT_NOT_FOUND = 2


def _parse_dot(item: Any) -> Dot:
    if isinstance(item, dict):
        return Dot(
            x=float(item["x"]),
            y=float(item["y"]),
            intensity=float(item.get("intensity", 0.0)),
            radius=float(item.get("radius", 0.0)),
        )
    x, y = item
    return Dot(x=float(x), y=float(y))


def _parse_line(item: Any, dots: List[Dot]) -> Line:
    if isinstance(item, dict):
        return Line.from_indices(dots, item["points"], item.get("start"), item.get("end"))
    return Line.from_indices(dots, item)


def load_frame(path: Path) -> Tuple[List[Dot], List[List[Line]]]:
    """Read dots and candidate line groupings from a JSON frame file.

    The file holds ``dots`` (``[x, y]`` pairs or objects with ``x``, ``y`` and
    optional ``intensity``) and ``lines``, a list of groupings where each
    line is a list of dot indices or an object with ``points`` and optional
    ``start``/``end`` indices.

    Raises:
        FrameInputError: If the file is missing or malformed
    """
    try:
        data = json.loads(path.read_text())
        dots = [_parse_dot(item) for item in data["dots"]]
        lines_vector = [[_parse_line(item, dots) for item in grouping] for grouping in data.get("lines", [])]
    except FileNotFoundError:
        raise FrameInputError(f"Frame file not found: {path}")
    except json.JSONDecodeError as e:
        raise FrameInputError(f"Frame file is not valid JSON: {e}")
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise FrameInputError(f"Malformed frame file {path}: {e}")
    return dots, lines_vector


def label_command(args) -> int:
    """Handle label command.

    Args:
        args: Parsed command-line arguments
    """
    try:
        store = load_config(Path(args.config))
        dots, lines_vector = load_frame(Path(args.frame))
    except (ConfigError, FrameInputError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    labeling = FidLabeling(store)
    labeling.set_dots_vector(dots)
    outcome = labeling.find_pattern(lines_vector)

    print(json.dumps(outcome.to_dict(), indent=2 if args.pretty else None))
    return EXIT_FOUND if outcome.dots_found else EXIT_NOT_FOUND


def validate_config_command(args) -> int:
    """Handle validate-config command.

    Args:
        args: Parsed command-line arguments
    """
    try:
        store = load_config(Path(args.config))
    except ConfigValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        for message in e.validation_errors:
            print(f"  - {message}", file=sys.stderr)
        return EXIT_ERROR
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    print(f"Configuration OK: {len(store.templates)} pattern(s)")
    for template in store.templates:
        print(f"  {template.name}: {template.family}, {template.line_count} lines, {template.point_count} wires")
    return EXIT_FOUND


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Fiducial pattern labeling",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Label the dots of one frame
  python -m labeling.cli label --frame frame.json

  # Check a configuration file
  python -m labeling.cli validate-config --config configs/fid_labeling.yaml
        """
    )

    parser.add_argument(
        '--log-dir',
        help='Also write debug and error logs to this directory'
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    label_parser = subparsers.add_parser(
        'label',
        help='Label the dots of one frame'
    )
    label_parser.add_argument(
        '--config',
        default=str(DEFAULT_CONFIG_PATH),
        help='Labeling configuration file (YAML)'
    )
    label_parser.add_argument(
        '--frame',
        required=True,
        help='Frame file (JSON) with dots and candidate lines'
    )
    label_parser.add_argument(
        '--pretty',
        action='store_true',
        help='Indent JSON output'
    )

    validate_parser = subparsers.add_parser(
        'validate-config',
        help='Validate a configuration file'
    )
    validate_parser.add_argument(
        '--config',
        default=str(DEFAULT_CONFIG_PATH),
        help='Labeling configuration file (YAML)'
    )

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_ERROR

    if args.log_dir:
        enable_file_logging(args.log_dir)

    if args.command == 'label':
        return label_command(args)
    elif args.command == 'validate-config':
        return validate_config_command(args)

    return EXIT_FOUND


if __name__ == '__main__':
    sys.exit(main())
