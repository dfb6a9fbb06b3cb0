#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Pixel normalization for raster decoding.

This module maps raw band samples of any bit depth onto 8-bit display
values and composes spectral bands into an RGBA pixel grid.

Notes
-----
Samples wider than one byte are rescaled with a fixed ``floor(v / 256)``,
not a histogram stretch. A 16-bit image that only uses the low end of its
range will therefore render dark.
"""
from typing import Sequence, Union
import math

import numpy as np

from geopixel_extraction.core.config import MAX_BYTE_VALUE, WIDE_SAMPLE_DIVISOR, OPAQUE_ALPHA
from geopixel_extraction.core.logging_config import get_module_logger

# Initialize logger
logger = get_module_logger(__name__)


def normalize_pixel_value(value: Union[int, float]) -> int:
    """
    Normalize a single raw sample to the 0-255 range.

    Parameters
    ----------
    value : int or float
        Raw band sample.

    Returns
    -------
    int
        ``clamp(value, 0, 255)`` when the sample fits in a byte, otherwise
        ``clamp(floor(value / 256), 0, 255)``. NaN maps to 0 and +inf to
        255, as in :func:`normalize_array`.
    """
    if math.isnan(value):
        return 0
    if value <= MAX_BYTE_VALUE:
        return int(max(0, min(MAX_BYTE_VALUE, value)))
    if math.isinf(value):
        return MAX_BYTE_VALUE
    return int(max(0, min(MAX_BYTE_VALUE, math.floor(value / WIDE_SAMPLE_DIVISOR))))


def normalize_array(arr: np.ndarray) -> np.ndarray:
    """
    Vectorized :func:`normalize_pixel_value`.

    Parameters
    ----------
    arr : np.ndarray
        Raw samples of any numeric dtype.

    Returns
    -------
    np.ndarray
        uint8 array of the same shape.
    """
    values = np.asarray(arr, dtype=np.float64)
    narrow = np.clip(values, 0, MAX_BYTE_VALUE)
    wide = np.clip(np.floor(values / WIDE_SAMPLE_DIVISOR), 0, MAX_BYTE_VALUE)
    # NaN samples land on 0
    out = np.where(values <= MAX_BYTE_VALUE, narrow, wide)
    return np.nan_to_num(out, nan=0.0).astype(np.uint8)


def compose_rgba(bands: Sequence[np.ndarray], width: int, height: int) -> np.ndarray:
    """
    Compose per-band samples into an RGBA grid.

    Parameters
    ----------
    bands : sequence of np.ndarray
        One array per spectral band, each holding ``width * height`` samples
        in row-major order.
    width, height : int
        Raster dimensions.

    Returns
    -------
    np.ndarray
        ``(height, width, 4)`` uint8 array.

    Notes
    -----
    - 3 or more bands: band 0, 1, 2 become R, G, B. Further bands (e.g.
      near-infrared) are ignored here.
    - 1 or 2 bands: band 0 is written to R, G and B.
    - Alpha is always 255.
    """
    if len(bands) == 0:
        raise ValueError("Raster has no bands")

    n_pixels = width * height
    planes = []
    for idx, band in enumerate(bands[:3]):
        flat = np.asarray(band).reshape(-1)
        if flat.size != n_pixels:
            raise ValueError(f"Band {idx} holds {flat.size} samples, expected {n_pixels}")
        planes.append(normalize_array(flat))

    if len(bands) == 2:
        logger.warning("Two-band raster: rendering band 0 as grayscale, band 1 ignored")

    if len(planes) < 3:
        red = green = blue = planes[0]
    else:
        red, green, blue = planes

    alpha = np.full(n_pixels, OPAQUE_ALPHA, dtype=np.uint8)
    rgba = np.stack([red, green, blue, alpha], axis=-1)
    return rgba.reshape(height, width, 4)
