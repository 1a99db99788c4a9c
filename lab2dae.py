#!/usr/bin/env python3
"""
lab2dae - Command Line Version
Convert .lab skeletal animation files to COLLADA (.dae)
"""

import argparse
import logging
import sys
from pathlib import Path

from core.errors import ConversionError
from core.settings import INTERPOLATIONS, ConversionSettings
from lab_converter import LabToColladaConverter

# Supported file extensions
VALID_EXTENSIONS = {'.lab'}


def build_parser():
    parser = argparse.ArgumentParser(
        prog='lab2dae',
        description='Convert .lab skeletal animation files to COLLADA (.dae)',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Convert next to the input (walk.lab -> walk.dae), Y-up
  lab2dae walk.lab

  # Explicit output file
  lab2dae walk.lab -o export/walk.dae

  # Batch convert into a directory, keep the source Z-up basis, centimeters -> meters
  lab2dae *.lab --output-dir ./dae --up-axis Z --unit-scale 0.01

  # Inspect a file without converting
  lab2dae walk.lab --info
        """
    )

    parser.add_argument('inputs', nargs='+', metavar='INPUT', help='Input .lab file(s)')
    output = parser.add_mutually_exclusive_group()
    output.add_argument('-o', '--output', type=str,
                        help='Output .dae file (single input only)')
    output.add_argument('--output-dir', type=str,
                        help='Output directory (default: next to each input)')
    parser.add_argument('--up-axis', choices=['Y', 'Z'], default='Y', type=str.upper,
                        help='Up axis of the exported document (default: Y)')
    parser.add_argument('--unit-scale', type=float, default=1.0,
                        help='Multiplier for translations and vertex positions (default: 1.0)')
    parser.add_argument('--flip-winding', action='store_true',
                        help='Reverse triangle winding of mesh data')
    parser.add_argument('--interpolation', choices=INTERPOLATIONS, default='LINEAR', type=str.upper,
                        help='Sampler interpolation for every keyframe (default: LINEAR)')
    parser.add_argument('--info', action='store_true',
                        help='Print a summary of each input instead of converting')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Show debug output')
    return parser


def print_summary(input_path, summary):
    print("=" * 60)
    print(f"{input_path.name} (format 0x{summary['version']:04X})")
    print("=" * 60)
    print(f"  Bones:   {summary['bones']} ({summary['roots']} root(s))")
    print(f"  Dummies: {summary['dummies']}")
    print(f"  Clips:   {len(summary['clips'])}")
    for clip in summary['clips']:
        print(
            f"    - {clip['name']}: {clip['tracks']} tracks, {clip['frames']} frames "
            f"@ {clip['frame_rate']:g} fps ({clip['duration']:.3f}s)"
        )
    mesh = summary['mesh']
    if mesh:
        skinned = "skinned" if mesh['skinned'] else "unskinned"
        print(f"  Mesh:    {mesh['name']} ({mesh['vertices']} vertices, {mesh['triangles']} triangles, {skinned})")
    else:
        print("  Mesh:    none")


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(message)s',
    )

    if args.output and len(args.inputs) > 1:
        parser.error("-o/--output can only be used with a single input (use --output-dir)")

    try:
        settings = ConversionSettings(
            up_axis=args.up_axis,
            unit_scale=args.unit_scale,
            flip_winding=args.flip_winding,
            interpolation=args.interpolation,
        )
    except ValueError as e:
        parser.error(str(e))

    converter = LabToColladaConverter(settings=settings)
    failures = 0

    for input_name in args.inputs:
        input_path = Path(input_name)

        # Validate file extension
        if input_path.suffix.lower() not in VALID_EXTENSIONS:
            print(f"Error: Unsupported file format: {input_path.suffix or '(none)'} ({input_path})", file=sys.stderr)
            failures += 1
            continue

        if args.info:
            try:
                print_summary(input_path, converter.describe(input_path))
            except ConversionError as e:
                print(f"✗ {e}", file=sys.stderr)
                failures += 1
            continue

        if args.output:
            output_file = Path(args.output)
        elif args.output_dir:
            output_file = Path(args.output_dir) / f"{input_path.stem}.dae"
        else:
            output_file = input_path.with_suffix('.dae')

        result = converter.convert(input_path, output_file)
        if result['success']:
            print(f"✓ {result['dae_file']}")
        else:
            print(f"✗ {result['message']}", file=sys.stderr)
            failures += 1

    if len(args.inputs) > 1:
        converted = len(args.inputs) - failures
        print(f"\n{converted}/{len(args.inputs)} file(s) succeeded")

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
