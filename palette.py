#!/usr/bin/env python3
from io import BytesIO
import logging
from colorthief import ColorThief
from PIL import Image, UnidentifiedImageError

PALETTE_SIZE = 5
PALETTE_QUALITY = 10
CARD_COLORS = 3


class PaletteError(Exception):
    pass


def rgb_to_css(rgb):
    return f"rgb({rgb[0]}, {rgb[1]}, {rgb[2]})"


def extract_palette(image_bytes, color_count=PALETTE_SIZE, quality=PALETTE_QUALITY):
    """Return the three most dominant colors of an encoded image as css rgb() strings.

    The image is quantized into ``color_count`` median-cut clusters and the first
    three, in dominance order, are kept. Identical bytes always give the same list.
    """
    if not image_bytes:
        raise PaletteError("No image data to extract a palette from")
    try:
        # decode eagerly so a corrupt payload fails here and not inside the quantizer
        with Image.open(BytesIO(image_bytes)) as img:
            img.load()
        palette = ColorThief(BytesIO(image_bytes)).get_palette(color_count=color_count, quality=quality)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise PaletteError(f"Could not decode cover image: {e}") from e
    except Exception as e:
        # colorthief raises a bare Exception for images with no usable pixels
        raise PaletteError(f"Color quantization failed: {e}") from e
    if not palette or len(palette) < CARD_COLORS:
        raise PaletteError(f"Expected at least {CARD_COLORS} dominant colors, got {len(palette or [])}")
    colors = [rgb_to_css(c) for c in palette[:CARD_COLORS]]
    logging.getLogger('SpotifyCard').debug(f"Extracted palette {colors}")
    return colors
