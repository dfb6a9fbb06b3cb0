#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Data model for decoded images and extraction requests/results.

All records are frozen dataclasses: once a decoder or the extraction client
has built one, nobody downstream can alter it.
"""
from __future__ import annotations

import base64
import enum
import re
import types
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Mapping, Optional, Tuple

import cv2
import numpy as np

from geopixel_extraction.core.errors import NoRenderContextError

# <p>PHRASE</p> followed by the [SEG] token
SEGMENTATION_MARKER = re.compile(r"<p>(.*?)</p>\s*\[SEG\]", re.DOTALL)


class ImageFormat(enum.Enum):
    STANDARD_PHOTO = "StandardPhoto"
    GEO_RASTER = "GeoRaster"


class ProcessingState(enum.Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class GeoMetadata:
    """
    Georeferencing and descriptive tags read from a TIFF/GeoTIFF.

    Every field is an independent passthrough of a source tag and may be
    absent. ``geo_keys`` is stored as a read-only mapping.
    """

    geo_keys: Mapping[str, Any] = field(default_factory=dict)
    description: Optional[str] = None
    software: Optional[str] = None
    capture_time: Optional[str] = None
    pixel_scale: Optional[Tuple[float, float, float]] = None
    tie_points: Optional[Tuple[float, ...]] = None
    compression: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "geo_keys", types.MappingProxyType(dict(self.geo_keys)))

    def to_dict(self) -> Dict[str, Any]:
        """Return the present fields only, using the wire names."""
        names = {
            "geo_keys": "geoKeys",
            "description": "imageDescription",
            "software": "software",
            "capture_time": "dateTime",
            "pixel_scale": "pixelScale",
            "tie_points": "tiePoints",
            "compression": "compression",
        }
        out = {}
        for attr, key in names.items():
            value = getattr(self, attr)
            if value is None or (attr == "geo_keys" and not value):
                continue
            if isinstance(value, tuple):
                value = list(value)
            elif isinstance(value, Mapping):
                value = dict(value)
            out[key] = value
        return out


@dataclass(frozen=True)
class CanonicalImage:
    """
    Format-independent decoded image.

    ``pixels`` is a flat RGBA buffer, 8 bits per channel, row-major, of
    length ``width * height * 4``.
    """

    pixels: bytes
    width: int
    height: int
    format: ImageFormat
    source_byte_size: int
    geo_metadata: Optional[GeoMetadata] = None
    file_name: str = ""
    band_count: int = 3
    bit_depth: int = 8

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise NoRenderContextError(
                f"Invalid image dimensions {self.width}x{self.height}")
        expected = self.width * self.height * 4
        if len(self.pixels) != expected:
            raise NoRenderContextError(
                f"Pixel buffer holds {len(self.pixels)} bytes, expected {expected}")
        if self.geo_metadata is not None and self.format is not ImageFormat.GEO_RASTER:
            raise ValueError("geo_metadata is only valid for GeoRaster images")

    def as_array(self) -> np.ndarray:
        """Read-only ``(height, width, 4)`` uint8 view over the pixel buffer."""
        return np.frombuffer(self.pixels, dtype=np.uint8).reshape(self.height, self.width, 4)

    def to_png_base64(self) -> str:
        """Encode the pixel buffer as a base64 PNG for transport."""
        bgra = cv2.cvtColor(self.as_array(), cv2.COLOR_RGBA2BGRA)
        ok, encoded = cv2.imencode(".png", bgra)
        if not ok:
            raise NoRenderContextError("PNG encoding of the pixel buffer failed")
        return base64.b64encode(encoded.tobytes()).decode("ascii")


@dataclass(frozen=True)
class Mask:
    label: str
    polygon: Tuple[Tuple[int, int], ...]
    confidence: float

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Mask confidence out of range: {self.confidence}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Mask":
        polygon = tuple((int(x), int(y)) for x, y in data["polygon"])
        return cls(label=str(data["label"]), polygon=polygon,
                   confidence=float(data["confidence"]))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "polygon": [list(point) for point in self.polygon],
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class Feature:
    """Named scalar feature, rendered as text."""

    name: str
    value: str


@dataclass(frozen=True)
class ExtractionRequest:
    image: CanonicalImage
    query: str
    max_tokens: Optional[int] = None

    def __post_init__(self):
        if not self.query or not self.query.strip():
            raise ValueError("Extraction query must not be empty")
        if self.max_tokens is not None and self.max_tokens <= 0:
            raise ValueError(f"max_tokens must be positive, got {self.max_tokens}")

    def to_payload(self) -> Dict[str, Any]:
        """JSON body sent to the extraction endpoint."""
        payload: Dict[str, Any] = {
            "image": self.image.to_png_base64(),
            "query": self.query,
        }
        if self.max_tokens is not None:
            payload["maxTokens"] = self.max_tokens
        return payload


@dataclass(frozen=True)
class ExtractionResult:
    """
    Outcome of one extraction request.

    Markers in ``description`` map to ``masks`` by position: the Nth
    ``<p>PHRASE</p> [SEG]`` is grounded by the Nth mask. ``synthesized`` is
    True when the result came from the fallback synthesizer rather than
    the remote service.
    """

    description: str
    masks: Tuple[Mask, ...]
    confidence: float
    processing_time: float
    features: Tuple[Feature, ...] = ()
    synthesized: bool = False

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Result confidence out of range: {self.confidence}")
        if self.processing_time < 0:
            raise ValueError(f"Negative processing time: {self.processing_time}")

    def segmentation_phrases(self) -> List[str]:
        """Phrases of every segmentation marker, in order."""
        return SEGMENTATION_MARKER.findall(self.description)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], synthesized: bool = False) -> "ExtractionResult":
        """
        Build a result from the service's JSON response.

        Raises
        ------
        KeyError, TypeError, ValueError
            If the response does not follow the contract.
        """
        features = tuple(
            Feature(name=str(item["name"]), value=str(item["value"]))
            for item in data.get("features") or []
        )
        return cls(
            description=str(data["description"]),
            masks=tuple(Mask.from_dict(m) for m in data["masks"]),
            confidence=float(data["confidence"]),
            processing_time=float(data["processingTime"]),
            features=features,
            synthesized=synthesized,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "features": [asdict(f) for f in self.features],
            "masks": [m.to_dict() for m in self.masks],
            "confidence": self.confidence,
            "processingTime": self.processing_time,
            "synthesized": self.synthesized,
        }
