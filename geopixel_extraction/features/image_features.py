#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Named scalar features describing a decoded image.

These accompany every extraction result so the presentation layer can show
file-level facts next to the service's description and masks.
"""
from typing import List, Tuple

from geopixel_extraction.core.models import CanonicalImage, Feature, ImageFormat
from geopixel_extraction.utils.utils import format_megabytes

# Feature names, in display order
FEATURE_DESCRIPTIONS = {
    "Image Dimensions": "Width × height in pixels",
    "File Size": "Size of the source file",
    "Color Channels": "Rendered channel layout of the source bands",
    "Pixel Depth": "Bits per source sample",
    "Spatial Resolution": "Ground sample distance from ModelPixelScale",
    "Coordinate System": "CRS recorded in the GeoTIFF keys",
    "Compression": "TIFF compression scheme",
}


def describe_image(image: CanonicalImage) -> Tuple[Feature, ...]:
    """
    Derive named features from a decoded image.

    Parameters
    ----------
    image : CanonicalImage
        Decoded image.

    Returns
    -------
    tuple of Feature
        Features in the order of ``FEATURE_DESCRIPTIONS``; georeferencing
        entries only appear when the source carried them.
    """
    features: List[Feature] = [
        Feature("Image Dimensions", f"{image.width} × {image.height}"),
        Feature("File Size", format_megabytes(image.source_byte_size)),
        Feature("Color Channels", _channel_layout(image)),
        Feature("Pixel Depth", f"{image.bit_depth}-bit"),
    ]

    if image.format is ImageFormat.GEO_RASTER and image.geo_metadata is not None:
        meta = image.geo_metadata
        if meta.pixel_scale is not None:
            features.append(Feature("Spatial Resolution", f"{meta.pixel_scale[0]:g}m/pixel"))
        crs = meta.geo_keys.get("GTCitationGeoKey")
        if crs:
            features.append(Feature("Coordinate System", str(crs)))
        if meta.compression:
            features.append(Feature("Compression", meta.compression))

    return tuple(features)


def _channel_layout(image: CanonicalImage) -> str:
    if image.band_count >= 4:
        # Photos carry alpha as their fourth channel
        return "RGBA" if image.format is ImageFormat.STANDARD_PHOTO else "RGB + NIR"
    if image.band_count == 3:
        return "RGB"
    return "Grayscale"
