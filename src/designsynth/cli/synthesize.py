#!/usr/bin/env python3
"""
Synthesize a project archive from a design document file.

Usage:
    designsynth-synthesize design.json --name "Shop Admin"
    designsynth-synthesize design.json --name shop --target flutter -o out/
    designsynth-synthesize design.json --name shop --bundle files.json
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from designsynth.constants import DEFAULT_STYLE_OPTION, TargetFramework
from designsynth.services.service_base import ServiceError
from designsynth.services.synthesis import GeneratedFile, SynthesisOptions, SynthesisService, synthesize_sync
from designsynth.utils.logging_config import setup_application_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Synthesize a client project from a visual design document')
    parser.add_argument('design', type=Path, help='Design document JSON file')
    parser.add_argument('--name', required=True, help='Project name')
    parser.add_argument(
        '--target',
        choices=[t.value for t in TargetFramework],
        default=TargetFramework.ANGULAR.value,
        help='Target framework (default: angular)',
    )
    parser.add_argument('--style', default=DEFAULT_STYLE_OPTION, help='Stylesheet option (css, scss, ...)')
    parser.add_argument('--no-routing', action='store_true', help='Do not emit a route table')
    parser.add_argument('--no-components', action='store_true', help='Do not split pages into components')
    parser.add_argument('--no-responsive', action='store_true', help='Do not ask for responsive layouts')
    parser.add_argument('--module-based', action='store_true', help='Scaffold NgModule-bound components')
    parser.add_argument('--bundle', type=Path, help='Regenerate from an existing JSON file bundle')
    parser.add_argument('-o', '--output-dir', type=Path, default=Path('.'), help='Directory for the archive')
    parser.add_argument('--json', action='store_true', help='Print the result summary as JSON')
    return parser


def load_bundle(path: Path) -> List[GeneratedFile]:
    data = json.loads(path.read_text(encoding='utf-8'))
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON array of files")
    return [GeneratedFile.from_dict(item) for item in data]


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_application_logging(log_to_file=False)

    try:
        design = args.design.read_text(encoding='utf-8')
        bundle = load_bundle(args.bundle) if args.bundle else None
    except (OSError, ValueError) as e:
        logger.error(f"Could not read input: {e}")
        return 2

    options = SynthesisOptions(
        name=args.name,
        target=TargetFramework(args.target),
        style=args.style,
        include_routing=not args.no_routing,
        responsive_layout=not args.no_responsive,
        generate_components=not args.no_components,
        standalone=not args.module_based,
    )

    try:
        service = SynthesisService()
    except ServiceError as e:
        logger.error(f"Synthesis service unavailable: {e}")
        return 2

    result = synthesize_sync(design, options, service=service, bundle=bundle)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))

    if not result.success:
        logger.error(f"Synthesis failed: {result.error_message}")
        return 1

    args.output_dir.mkdir(parents=True, exist_ok=True)
    target = args.output_dir / result.archive_name
    target.write_bytes(result.archive)
    for unit, reason in result.degraded_units.items():
        logger.warning(f"Degraded unit {unit}: {reason}")
    logger.info(f"Wrote {target} ({len(result.archive)} bytes)")
    return 0


if __name__ == '__main__':
    sys.exit(main())
