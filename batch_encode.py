#!/usr/bin/env python3
"""Batch encode images and write a JSON manifest of LQIP values."""

import argparse
import json
import logging
import sys
import time
from pathlib import Path

from extract_colors import DEFAULT_QUALITY
from lqip import EncodeOptions, encode_lqip


def find_images(directory: Path) -> list[Path]:
    """Find all image files in directory."""
    extensions = {'.jpg', '.jpeg', '.png', '.webp'}
    images = set()
    for ext in extensions:
        images.update(directory.glob(f'*{ext}'))
        images.update(directory.glob(f'*{ext.upper()}'))
    return sorted(images)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Batch encode images as CSS LQIP integers.'
    )
    parser.add_argument(
        '--input', '-i',
        required=True,
        help='Directory containing images to encode'
    )
    parser.add_argument(
        '--output', '-o',
        required=True,
        help='Path of the JSON manifest to write'
    )
    parser.add_argument(
        '--opaque-check',
        action='store_true',
        help='Fail on images with any transparent pixel'
    )
    parser.add_argument(
        '--sample-rate',
        type=int,
        default=DEFAULT_QUALITY,
        help='Pixel stride used to find the dominant color (default: 10)'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Log debug output'
    )

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s:%(name)s:%(message)s'
    )

    input_dir = Path(args.input)
    output_path = Path(args.output)

    # Validate input directory
    if not input_dir.is_dir():
        print(f"Error: Input directory not found: {input_dir}", file=sys.stderr)
        sys.exit(2)

    try:
        options = EncodeOptions(enable_opaque_check=args.opaque_check, sample_rate=args.sample_rate)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    images = find_images(input_dir)
    if not images:
        print(f"No images found in {input_dir}", file=sys.stderr)
        sys.exit(2)

    total = len(images)
    manifest = {}
    failed = []

    batch_start = time.perf_counter()

    for i, image_path in enumerate(images, 1):
        value = encode_lqip(str(image_path), options)
        manifest[image_path.name] = value
        if value is None:
            print(f"[{i}/{total}] {image_path.name} → FAILED", file=sys.stderr)
            failed.append(image_path.name)
        else:
            print(f"[{i}/{total}] {image_path.name} → {value}")

    batch_elapsed = time.perf_counter() - batch_start

    output_path.parent.mkdir(parents=True, exist_ok=True)
    if output_path.exists():
        print(f"  Warning: Overwriting {output_path}", file=sys.stderr)
    output_path.write_text(json.dumps(manifest, indent=2) + '\n')

    # Summary
    succeeded = total - len(failed)
    print()
    print(f"Completed: {succeeded}/{total} succeeded in {batch_elapsed:.2f}s")
    print(f"Wrote: {output_path}")
    if failed:
        print(f"Failed ({len(failed)}):")
        for name in failed:
            print(f"  - {name}")
        sys.exit(1)


if __name__ == '__main__':
    main()
