#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Configuration settings for the GeoPixel extraction client.

This module centralizes all configuration parameters used across the decoding
and extraction modules, making it easier to modify settings in one place.
"""
from typing import Dict, FrozenSet, Any, Optional
import os
from pathlib import Path
import copy

import yaml

# Remote extraction service
API_URL_ENV_VAR: str = "GEOPIXEL_API_URL"
DEFAULT_API_URL: str = "http://localhost:8000"
EXTRACT_ENDPOINT: str = "/api/extract"

# Input formats, keyed by lower-cased file extension (without the dot)
GEO_RASTER_EXTENSIONS: FrozenSet[str] = frozenset({"tif", "tiff"})
STANDARD_PHOTO_EXTENSIONS: FrozenSet[str] = frozenset({"jpg", "jpeg", "png"})
SUPPORTED_EXTENSIONS: FrozenSet[str] = GEO_RASTER_EXTENSIONS | STANDARD_PHOTO_EXTENSIONS

# Pixel normalization
MAX_BYTE_VALUE: int = 255
WIDE_SAMPLE_DIVISOR: int = 256  # 16-bit -> 8-bit fixed linear rescale
OPAQUE_ALPHA: int = 255

# Extraction client configuration
CLIENT_CONFIG: Dict[str, Any] = {
    "timeout": 60.0,        # Total request timeout in seconds
    "max_tokens": None,     # Default token budget, None lets the service decide
}

# Fallback synthesizer configuration
SYNTHESIZER_CONFIG: Dict[str, Any] = {
    "processing_time_min": 2.5,
    "processing_time_span": 2.0,   # processing_time in [2.5, 4.5)
    "confidence_min": 0.85,
    "confidence_span": 0.15,       # confidence in [0.85, 1.0)
}

# Logging configuration
LOGGING_CONFIG: Dict[str, Any] = {
    "level": os.environ.get("GEOPIXEL_LOG_LEVEL", "INFO"),  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    "log_file": os.environ.get("GEOPIXEL_LOG_FILE"),  # None disables file logging
    "log_format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}

# Sections a YAML config file may override
_CONFIG_SECTIONS: Dict[str, Dict[str, Any]] = {
    "client": CLIENT_CONFIG,
    "synthesizer": SYNTHESIZER_CONFIG,
    "logging": LOGGING_CONFIG,
}


def resolve_api_url(environ: Optional[Dict[str, str]] = None) -> str:
    """
    Resolve the base URL of the extraction service.

    Parameters
    ----------
    environ : dict, optional
        Environment mapping to read from, by default ``os.environ``.

    Returns
    -------
    str
        Base URL without a trailing slash.
    """
    env = os.environ if environ is None else environ
    url = env.get(API_URL_ENV_VAR) or DEFAULT_API_URL
    return url.rstrip("/")


def load_config_file(path: str) -> Dict[str, Dict[str, Any]]:
    """
    Merge a YAML configuration file into the module-level config blocks.

    The file is a mapping of section name (``client``, ``synthesizer``,
    ``logging``) to key/value overrides. Unknown sections are reported
    and skipped.

    Parameters
    ----------
    path : str
        Path to the YAML file.

    Returns
    -------
    dict
        Snapshot of the merged sections.
    """
    # Imported here, logging_config imports this module
    from geopixel_extraction.core.logging_config import get_module_logger
    logger = get_module_logger(__name__)

    with open(Path(path), "r") as f:
        overrides = yaml.safe_load(f) or {}

    if not isinstance(overrides, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")

    for section, values in overrides.items():
        target = _CONFIG_SECTIONS.get(section)
        if target is None:
            logger.warning(f"Ignoring unknown configuration section: {section}")
            continue
        if not isinstance(values, dict):
            raise ValueError(f"Configuration section '{section}' must be a mapping")
        target.update(values)
        logger.debug(f"Applied {len(values)} override(s) to section '{section}'")

    return copy.deepcopy(_CONFIG_SECTIONS)
