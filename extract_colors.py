#!/usr/bin/env python3
"""
Image-side inputs for the LQIP encoder.

Everything that touches pixels through Pillow lives here: loading with size
limits, the opacity check, the tiny 3x2 preview and the dominant color taken
from a median-cut palette of sampled pixels.
"""

import numbers

import numpy as np
from PIL import Image, ImageFilter, ImageOps, UnidentifiedImageError


# =============================================================================
# Constants
# =============================================================================

# Image size limits (security: prevent decompression bombs)
MAX_IMAGE_PIXELS = 50_000_000  # 50 megapixels
MAX_IMAGE_DIMENSION = 10_000  # 10k pixels per side

PREVIEW_SIZE = (3, 2)  # (width, height), aspect ratio is not kept
PREVIEW_SHARPEN = ImageFilter.UnsharpMask(radius=1, percent=100, threshold=0)

PALETTE_COLOR_COUNT = 4
DEFAULT_COLOR_COUNT = 10
DEFAULT_QUALITY = 10  # sample every 10th pixel


# =============================================================================
# Loading
# =============================================================================

def load_image(image_path: str) -> Image.Image:
    """
    Open an image and apply its EXIF orientation.

    Raises:
        FileNotFoundError: If image file doesn't exist
        ValueError: If file is not a valid image or exceeds size limits
    """
    try:
        src = Image.open(image_path)
    except FileNotFoundError:
        raise FileNotFoundError(f"Image not found: {image_path}")
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"Could not open image: {e}")

    with src:
        width, height = src.size
        if width > MAX_IMAGE_DIMENSION or height > MAX_IMAGE_DIMENSION:
            raise ValueError(
                f"Image dimensions {width}x{height} exceed maximum "
                f"{MAX_IMAGE_DIMENSION}x{MAX_IMAGE_DIMENSION}"
            )
        if width * height > MAX_IMAGE_PIXELS:
            raise ValueError(
                f"Image has {width * height:,} pixels, exceeding maximum {MAX_IMAGE_PIXELS:,}"
            )

        try:
            src.load()
        except OSError as e:
            raise ValueError(f"Could not decode image: {e}")

        # transposed copy stays usable after the file is closed
        return ImageOps.exif_transpose(src)


def is_opaque(img: Image.Image) -> bool:
    """True if no pixel has alpha below 255."""
    if not img.has_transparency_data:
        return True
    alpha = img.convert('RGBA').getchannel('A')
    return alpha.getextrema()[0] == 255


# =============================================================================
# Preview
# =============================================================================

def extract_preview(img: Image.Image) -> np.ndarray:
    """
    Downscale to the 3x2 preview grid.

    Alpha is dropped (not composited), the image is stretched to 3x2 and
    sharpened so the six cells keep some contrast.

    Returns:
        uint8 array of shape (6, 3), row-major starting top-left.
    """
    preview = img.convert('RGB').resize(PREVIEW_SIZE, Image.Resampling.LANCZOS)
    preview = preview.filter(PREVIEW_SHARPEN)
    return np.asarray(preview, dtype=np.uint8).reshape(-1, 3)


# =============================================================================
# Palette
# =============================================================================

def validate_palette_options(color_count, quality) -> tuple[int, int]:
    """
    Normalize palette options.

    color_count falls back to 10 when missing, otherwise it is clamped to
    2..20. quality is the pixel sampling stride and falls back to 10 when it
    is missing or below 1.

    Raises:
        ValueError: If color_count is 1
    """
    if not isinstance(color_count, numbers.Integral) or isinstance(color_count, bool):
        color_count = DEFAULT_COLOR_COUNT
    elif color_count == 1:
        raise ValueError(
            "color_count should be between 2 and 20. "
            "To get one color, call get_dominant_color() instead of get_palette()"
        )
    else:
        color_count = min(max(color_count, 2), 20)

    if not isinstance(quality, numbers.Integral) or isinstance(quality, bool) or quality < 1:
        quality = DEFAULT_QUALITY

    return int(color_count), int(quality)


def sample_pixels(img: Image.Image, quality: int) -> np.ndarray:
    """Every `quality`-th pixel of the image as an (n, 3) uint8 array."""
    pixels = np.asarray(img.convert('RGB')).reshape(-1, 3)
    return pixels[::quality]


def get_palette(img: Image.Image, color_count: int = DEFAULT_COLOR_COUNT,
                quality: int = DEFAULT_QUALITY) -> list[tuple[int, int, int]]:
    """
    Median-cut palette of the sampled pixels.

    Returns:
        RGB tuples sorted by pixel count descending.

    Raises:
        ValueError: If there are no pixels to quantize
    """
    color_count, quality = validate_palette_options(color_count, quality)
    pixels = sample_pixels(img, quality)
    if len(pixels) == 0:
        raise ValueError("No pixels to build a palette from")

    strip = Image.fromarray(np.ascontiguousarray(pixels).reshape(1, -1, 3))
    quantized = strip.quantize(colors=color_count, method=Image.Quantize.MEDIANCUT)

    palette = quantized.getpalette()
    counts = sorted(quantized.getcolors(), key=lambda c: c[0], reverse=True)
    return [tuple(palette[index * 3:index * 3 + 3]) for _, index in counts]


def get_dominant_color(img: Image.Image, quality: int = DEFAULT_QUALITY) -> tuple[int, int, int]:
    """Most prevalent color of a PALETTE_COLOR_COUNT palette."""
    palette = get_palette(img, PALETTE_COLOR_COUNT, quality)
    return palette[0]
