#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Input handling for the GeoPixel extraction client.

This module decodes TIFF/GeoTIFF rasters and standard photographs into a
:class:`CanonicalImage`, extracting georeferencing metadata along the way.
"""
import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import cv2
import numpy as np
import rasterio
from rasterio.errors import RasterioError
from rasterio.io import MemoryFile

from geopixel_extraction.core.config import GEO_RASTER_EXTENSIONS, STANDARD_PHOTO_EXTENSIONS
from geopixel_extraction.core.errors import (
    CorruptDataError, NoRenderContextError, UnsupportedFormatError
)
from geopixel_extraction.core.logging_config import get_module_logger
from geopixel_extraction.core.models import CanonicalImage, GeoMetadata, ImageFormat
from geopixel_extraction.features.normalize import compose_rgba, normalize_array
from geopixel_extraction.utils.utils import file_extension, timer

# Initialize logger
logger = get_module_logger(__name__)

# GeoTIFF key values (GeoTIFF 1.0, section 6.3.1)
_MODEL_TYPE_PROJECTED = 1
_MODEL_TYPE_GEOGRAPHIC = 2
_RASTER_PIXEL_IS_AREA = 1
_RASTER_PIXEL_IS_POINT = 2


@timer
def decode_bytes(file_bytes: bytes, file_name: str) -> CanonicalImage:
    """
    Decode raw file bytes into a canonical RGBA image.

    Parameters
    ----------
    file_bytes : bytes
        Complete contents of the file.
    file_name : str
        Original file name; only its extension is used for dispatch.

    Returns
    -------
    CanonicalImage
        Decoded image.

    Raises
    ------
    UnsupportedFormatError
        If the extension is not tif, tiff, jpg, jpeg or png.
    CorruptDataError
        If the payload cannot be parsed.
    NoRenderContextError
        If the RGBA buffer cannot be materialized.
    """
    ext = file_extension(file_name)

    if ext in GEO_RASTER_EXTENSIONS:
        return _decode_geo_raster(file_bytes, file_name)
    if ext in STANDARD_PHOTO_EXTENSIONS:
        return _decode_standard_photo(file_bytes, file_name)

    raise UnsupportedFormatError(
        f"Unsupported file type '{ext or file_name}': expected one of "
        f"{sorted(GEO_RASTER_EXTENSIONS | STANDARD_PHOTO_EXTENSIONS)}"
    )


async def decode(file_bytes: bytes, file_name: str) -> CanonicalImage:
    """Decode in a worker thread so the event loop keeps running."""
    return await asyncio.to_thread(decode_bytes, file_bytes, file_name)


def load_image(path: Union[str, Path]) -> CanonicalImage:
    """
    Read and decode an image file from disk.

    Parameters
    ----------
    path : str or Path
        Path to a .tif/.tiff/.jpg/.jpeg/.png file.

    Returns
    -------
    CanonicalImage
        Decoded image.
    """
    path = Path(path)
    # Reject before touching the file
    if file_extension(path.name) not in GEO_RASTER_EXTENSIONS | STANDARD_PHOTO_EXTENSIONS:
        raise UnsupportedFormatError(f"Unsupported file type: {path.name}")

    logger.info(f"Loading image from {path}")
    return decode_bytes(path.read_bytes(), path.name)


def _decode_standard_photo(file_bytes: bytes, file_name: str) -> CanonicalImage:
    """Decode a JPEG/PNG with OpenCV."""
    try:
        buffer = np.frombuffer(file_bytes, dtype=np.uint8)
        decoded = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED)
    except cv2.error as e:
        raise CorruptDataError(f"Failed to decode image {file_name}: {e}") from e

    if decoded is None:
        raise CorruptDataError(f"Failed to decode image {file_name}")

    bit_depth = decoded.dtype.itemsize * 8
    if decoded.dtype != np.uint8:
        # e.g. 16-bit PNG
        decoded = normalize_array(decoded)

    channels = 1 if decoded.ndim == 2 else decoded.shape[2]
    conversions = {
        1: cv2.COLOR_GRAY2RGBA,
        3: cv2.COLOR_BGR2RGBA,
        4: cv2.COLOR_BGRA2RGBA,
    }
    if channels not in conversions:
        raise CorruptDataError(f"Unexpected channel count {channels} in {file_name}")

    if decoded.ndim == 3 and channels == 1:
        decoded = decoded[:, :, 0]

    height, width = decoded.shape[:2]
    try:
        rgba = cv2.cvtColor(decoded, conversions[channels])
    except cv2.error as e:
        raise NoRenderContextError(f"Could not convert {file_name} to RGBA: {e}") from e

    logger.info(f"Decoded photo {file_name}: {width}x{height}, {channels} channel(s)")
    return _build_image(
        rgba, width, height,
        format=ImageFormat.STANDARD_PHOTO,
        source_byte_size=len(file_bytes),
        file_name=file_name,
        band_count=channels,
        bit_depth=bit_depth,
    )


def _decode_geo_raster(file_bytes: bytes, file_name: str) -> CanonicalImage:
    """Decode the first page of a TIFF/GeoTIFF with rasterio."""
    try:
        with MemoryFile(file_bytes) as memfile:
            with memfile.open() as src:
                if src.driver != "GTiff":
                    raise CorruptDataError(
                        f"{file_name} is not a TIFF container (detected {src.driver})")

                width, height = src.width, src.height
                geo_metadata = _extract_geo_metadata(src)

                # (count, height, width), one array per band
                bands = src.read()
                bit_depth = np.dtype(src.dtypes[0]).itemsize * 8
    except CorruptDataError:
        raise
    except (RasterioError, OSError, ValueError) as e:
        logger.error(f"TIFF parsing failed for {file_name}: {e}")
        raise CorruptDataError(
            f"Failed to process TIFF file {file_name}. "
            "Please ensure it's a valid GeoTIFF or TIFF image."
        ) from e

    band_count = bands.shape[0]
    logger.info(f"Decoded raster {file_name}: {width}x{height}, "
                f"{band_count} band(s), {bit_depth}-bit")

    try:
        rgba = compose_rgba(list(bands), width, height)
    except MemoryError as e:
        raise NoRenderContextError(f"Not enough memory to render {file_name}") from e
    except ValueError as e:
        raise CorruptDataError(f"Inconsistent band data in {file_name}: {e}") from e

    return _build_image(
        rgba, width, height,
        format=ImageFormat.GEO_RASTER,
        source_byte_size=len(file_bytes),
        geo_metadata=geo_metadata,
        file_name=file_name,
        band_count=band_count,
        bit_depth=bit_depth,
    )


def _build_image(rgba: np.ndarray, width: int, height: int, **kwargs: Any) -> CanonicalImage:
    try:
        pixels = np.ascontiguousarray(rgba, dtype=np.uint8).tobytes()
    except MemoryError as e:
        raise NoRenderContextError(f"Could not allocate a {width}x{height} RGBA buffer") from e
    return CanonicalImage(pixels=pixels, width=width, height=height, **kwargs)


def _extract_geo_metadata(src: rasterio.io.DatasetReader) -> GeoMetadata:
    """
    Collect optional georeferencing tags.

    Each tag is read on its own; a failure is logged and the tag is left out.
    """
    tags = _safe_tag("TIFF tags", src.tags) or {}

    return GeoMetadata(
        geo_keys=_safe_tag("GeoKeyDirectory", lambda: _geo_keys(src, tags)) or {},
        description=_safe_tag("ImageDescription", lambda: tags.get("TIFFTAG_IMAGEDESCRIPTION")),
        software=_safe_tag("Software", lambda: tags.get("TIFFTAG_SOFTWARE")),
        capture_time=_safe_tag("DateTime", lambda: tags.get("TIFFTAG_DATETIME")),
        pixel_scale=_safe_tag("ModelPixelScale", lambda: _pixel_scale(src)),
        tie_points=_safe_tag("ModelTiepoint", lambda: _tie_points(src)),
        compression=_safe_tag("Compression", lambda: _compression(src)),
    )


def _safe_tag(name: str, reader: Callable[[], Any]) -> Optional[Any]:
    try:
        return reader()
    except Exception as e:
        logger.warning(f"Could not extract {name} metadata: {e}")
        return None


def _geo_keys(src: rasterio.io.DatasetReader, tags: Dict[str, str]) -> Dict[str, Any]:
    """Rebuild the main GeoTIFF keys from the dataset CRS."""
    if src.crs is None:
        return {}

    keys: Dict[str, Any] = {}
    epsg = src.crs.to_epsg()
    if src.crs.is_projected:
        keys["GTModelTypeGeoKey"] = _MODEL_TYPE_PROJECTED
        if epsg is not None:
            keys["ProjectedCSTypeGeoKey"] = epsg
    else:
        keys["GTModelTypeGeoKey"] = _MODEL_TYPE_GEOGRAPHIC
        if epsg is not None:
            keys["GeographicTypeGeoKey"] = epsg

    area_or_point = tags.get("AREA_OR_POINT")
    if area_or_point == "Area":
        keys["GTRasterTypeGeoKey"] = _RASTER_PIXEL_IS_AREA
    elif area_or_point == "Point":
        keys["GTRasterTypeGeoKey"] = _RASTER_PIXEL_IS_POINT

    keys["GTCitationGeoKey"] = src.crs.to_string()
    return keys


def _compression(src: rasterio.io.DatasetReader) -> Optional[str]:
    """Compression scheme name, e.g. "LZW"; None for uncompressed files."""
    return src.compression.value if src.compression is not None else None


def _is_georeferenced(src: rasterio.io.DatasetReader) -> bool:
    return not src.transform.is_identity


def _pixel_scale(src: rasterio.io.DatasetReader) -> Optional[Tuple[float, float, float]]:
    """ModelPixelScale (x, y, z); only defined for north-up transforms."""
    t = src.transform
    if not _is_georeferenced(src) or t.b != 0 or t.d != 0:
        return None
    return (float(t.a), float(-t.e), 0.0)


def _tie_points(src: rasterio.io.DatasetReader) -> Optional[Tuple[float, ...]]:
    """ModelTiepoint as flat (i, j, k, x, y, z) groups."""
    gcps, _ = src.gcps
    if gcps:
        points: List[float] = []
        for gcp in gcps:
            points.extend([float(gcp.col), float(gcp.row), 0.0,
                           float(gcp.x), float(gcp.y), float(gcp.z or 0.0)])
        return tuple(points)

    t = src.transform
    if not _is_georeferenced(src) or t.b != 0 or t.d != 0:
        return None
    return (0.0, 0.0, 0.0, float(t.c), float(t.f), 0.0)
