#!/usr/bin/env python3
"""
Encode an image as a single CSS-friendly LQIP integer.

The dominant color is snapped to a small OkLab lattice (2 bits of L, 3 bits
each of a and b) and six 3x2 preview cells are stored as 2-bit lightness
offsets from it. The 20-bit word is biased by -2**19 so the result stays
inside the +-999999 integer range browsers accept in CSS.

Four stages: Inputs (Pillow) → Base color search → Sample offsets → Packing
"""

import logging
import math
import numbers
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

import numpy as np

from extract_colors import (
    DEFAULT_QUALITY,
    extract_preview,
    get_dominant_color,
    is_opaque,
    load_image,
)
from oklab import compute_chroma, rgb_to_oklab, rgb_to_oklab_l

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

LQIP_BIAS = 2 ** 19
LQIP_MIN = -999_999  # max int range in css in major browsers
LQIP_MAX = 999_999

SAMPLE_COUNT = 6
CHROMA_EPSILON = 1e-6


# =============================================================================
# Configuration
# =============================================================================

@dataclass(frozen=True)
class EncodeOptions:
    """
    Encoder settings.

    enable_opaque_check: reject images with any transparent pixel (off by default)
    sample_rate: pixel stride when sampling for the dominant color (default 10)
    """
    enable_opaque_check: bool = False
    sample_rate: int = DEFAULT_QUALITY

    def __post_init__(self):
        if not isinstance(self.sample_rate, numbers.Integral) or isinstance(self.sample_rate, bool):
            raise ValueError(f"sample_rate must be an integer, got {self.sample_rate!r}")
        if self.sample_rate < 1:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")


@dataclass(frozen=True)
class OklabBits:
    """Lattice indices of the quantized base color."""
    ll: int  # 0-3
    aaa: int  # 0-7
    bbb: int  # 0-7


@dataclass(frozen=True)
class ImageData:
    """Everything the packer needs for one image."""
    bits: OklabBits
    values: tuple  # six offsets in [0, 1], preview cells row-major


# =============================================================================
# Lattice
# =============================================================================

def bits_to_lab_l(ll):
    return (ll / 0b11) * 0.6 + 0.2


def bits_to_lab_a(aaa):
    return (aaa / 0b1000) * 0.7 - 0.35


def bits_to_lab_b(bbb):
    # one half-step above the a lattice; part of the format, decoders match it
    return ((bbb + 1) / 0b1000) * 0.7 - 0.35


def scale_component_for_diff(x, chroma):
    """
    Push a or b away from the neutral axis.

    Without this, plain euclidean distance favors desaturated lattice points.
    """
    return x / (CHROMA_EPSILON + np.power(chroma, 0.5))


def _build_lattice() -> tuple[np.ndarray, np.ndarray]:
    """All 256 (ll, aaa, bbb) combinations, ll -> aaa -> bbb ascending."""
    ll, aaa, bbb = np.meshgrid(
        np.arange(4), np.arange(8), np.arange(8), indexing='ij'
    )
    indices = np.column_stack([ll.ravel(), aaa.ravel(), bbb.ravel()])

    L = bits_to_lab_l(indices[:, 0])
    a = bits_to_lab_a(indices[:, 1])
    b = bits_to_lab_b(indices[:, 2])
    chroma = compute_chroma(a, b)
    scaled = np.column_stack([
        L,
        scale_component_for_diff(a, chroma),
        scale_component_for_diff(b, chroma),
    ])

    indices.setflags(write=False)
    scaled.setflags(write=False)
    return indices, scaled


LATTICE_INDICES, LATTICE_SCALED = _build_lattice()


# =============================================================================
# Stage 2: Base Color Search
# =============================================================================

def lattice_distances(target_lab) -> np.ndarray:
    """Chroma-scaled distance from target OkLab to each of the 256 lattice points."""
    target_L, target_a, target_b = (float(v) for v in target_lab)
    target_chroma = math.hypot(target_a, target_b)
    scaled_target_a = scale_component_for_diff(target_a, target_chroma)
    scaled_target_b = scale_component_for_diff(target_b, target_chroma)

    diff = LATTICE_SCALED - np.array([target_L, scaled_target_a, scaled_target_b])
    return np.sqrt(np.sum(diff ** 2, axis=1))


def find_oklab_bits(target_lab) -> OklabBits:
    """
    Find the lattice point closest to the target color.

    Exhaustive over all 256 candidates; on ties the first candidate in
    enumeration order wins.
    """
    distances = lattice_distances(target_lab)
    best = int(np.argmin(distances))
    ll, aaa, bbb = (int(v) for v in LATTICE_INDICES[best])
    return OklabBits(ll=ll, aaa=aaa, bbb=bbb)


# =============================================================================
# Stage 3: Sample Offsets
# =============================================================================

def compute_sample_offsets(samples: np.ndarray, base_L: float) -> np.ndarray:
    """
    Lightness of each preview cell relative to the base, recentred on 0.5.

    0.5 means "same as the base color". Values are clamped to [0, 1];
    extreme cells just saturate.
    """
    L = rgb_to_oklab_l(np.asarray(samples).reshape(-1, 3))
    return np.clip(0.5 + L - base_L, 0.0, 1.0)


# =============================================================================
# Stage 4: Packing
# =============================================================================

def quantize_offsets(values: Sequence[float]) -> tuple:
    """Offsets in [0, 1] -> 2-bit levels, rounding halves up."""
    levels = np.floor(np.asarray(values, dtype=np.float64) * 0b11 + 0.5).astype(np.int64)
    return tuple(int(v) & 0b11 for v in levels)


def pack_lqip(bits: OklabBits, levels: Sequence[int]) -> int:
    """
    Pack base color bits and six offset levels into the signed LQIP integer.

    Layout (MSB to LSB) of the 20-bit word:
        [ca:2][cb:2][cc:2][cd:2][ce:2][cf:2][ll:2][aaa:3][bbb:3]
    """
    if len(levels) != SAMPLE_COUNT:
        raise ValueError(f"Expected {SAMPLE_COUNT} offset levels, got {len(levels)}")

    word = 0
    for level in levels:
        word = (word << 2) | (int(level) & 0b11)
    word = (word << 2) | (bits.ll & 0b11)
    word = (word << 3) | (bits.aaa & 0b111)
    word = (word << 3) | (bits.bbb & 0b111)
    return -LQIP_BIAS + word


def unpack_lqip(value: int) -> tuple[OklabBits, tuple]:
    """
    Split an LQIP integer back into base color bits and offset levels.

    Raises:
        ValueError: If value is outside the 20-bit packed range
    """
    word = int(value) + LQIP_BIAS
    if not 0 <= word < 2 ** 20:
        raise ValueError(f"Not an LQIP value: {value}")

    bits = OklabBits(ll=(word >> 6) & 0b11, aaa=(word >> 3) & 0b111, bbb=word & 0b111)
    levels = tuple((word >> shift) & 0b11 for shift in range(18, 7, -2))
    return bits, levels


def check_lqip_range(value: int) -> Optional[int]:
    """Pass value through if CSS can hold it, else None."""
    if value < LQIP_MIN or value > LQIP_MAX:
        return None
    return value


def encode_image_data(data: ImageData) -> Optional[int]:
    """Quantize offsets, pack and range-check."""
    value = pack_lqip(data.bits, quantize_offsets(data.values))
    return check_lqip_range(value)


def lqip_css(value: int) -> str:
    """CSS custom property declaration for an inline style attribute."""
    return f"--lqip:{value}"


# =============================================================================
# Main Pipeline
# =============================================================================

def analyze_image(image_path: str, options: Optional[EncodeOptions] = None) -> Optional[ImageData]:
    """Run stages 1-3.

    Returns:
        ImageData, or None if the opacity check rejects the image.
    """
    options = options or EncodeOptions()

    # Stage 1: Inputs
    img = load_image(image_path)
    if options.enable_opaque_check and not is_opaque(img):
        logger.debug("Skipping %s: image has transparency", image_path)
        return None

    preview = extract_preview(img)
    dominant = get_dominant_color(img, options.sample_rate)

    # Stage 2: Base color search
    bits = find_oklab_bits(rgb_to_oklab(np.array(dominant)))
    base_L = bits_to_lab_l(bits.ll)

    # Stage 3: Sample offsets
    values = compute_sample_offsets(preview, base_L)

    return ImageData(bits=bits, values=tuple(float(v) for v in values))


def encode_lqip(image_path: str, options: Optional[EncodeOptions] = None) -> Optional[int]:
    """
    Encode an image file as an LQIP integer.

    Never raises for a bad image: missing files, rejected images and decode
    errors all give None (the latter logged with traceback).
    """
    try:
        if not Path(image_path).exists():
            logger.debug("Skipping %s: file not found", image_path)
            return None

        data = analyze_image(image_path, options)
        if data is None:
            return None

        # Stage 4: Packing
        value = encode_image_data(data)
        if value is None:
            logger.warning("LQIP for %s out of CSS integer range", image_path)
        return value
    except Exception:
        logger.exception("Failed to encode %s", image_path)
        return None


# =============================================================================
# CLI
# =============================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    import argparse
    import json
    import sys

    parser = argparse.ArgumentParser(
        description='Encode an image as a CSS LQIP integer.'
    )
    parser.add_argument(
        '--input', '-i',
        required=True,
        help='Path to the image file'
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
        '--format', '-f',
        choices=['int', 'css', 'json'],
        default='int',
        help='Output the bare integer, a CSS declaration or a JSON object'
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

    try:
        options = EncodeOptions(enable_opaque_check=args.opaque_check, sample_rate=args.sample_rate)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    value = encode_lqip(args.input, options)
    if value is None:
        print(f"Error: could not encode {args.input}", file=sys.stderr)
        return 1

    if args.format == 'css':
        print(lqip_css(value))
    elif args.format == 'json':
        bits, levels = unpack_lqip(value)
        print(json.dumps({
            'lqip': value,
            'll': bits.ll,
            'aaa': bits.aaa,
            'bbb': bits.bbb,
            'offsets': list(levels),
        }))
    else:
        print(value)
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
