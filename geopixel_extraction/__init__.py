#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
GeoPixel Extraction Client Package.

Decodes GeoTIFF rasters and photographs into a canonical RGBA image and
queries the GeoPixel feature-extraction service about them.
"""

__version__ = "0.1.0"
