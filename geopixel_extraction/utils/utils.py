#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Utility functions for the GeoPixel extraction client.

This module provides small helpers shared by the decoding and extraction
modules.
"""
import os
import time
import functools
from typing import Callable

from geopixel_extraction.core.logging_config import get_module_logger

# Initialize logger
logger = get_module_logger(__name__)


def timer(func: Callable) -> Callable:
    """
    Decorator to time function execution.

    Parameters
    ----------
    func : Callable
        Function to time.

    Returns
    -------
    Callable
        Wrapped function with timing.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed = time.perf_counter() - start_time
            logger.debug(f"Function {func.__name__} took {elapsed:.3f} seconds to run")
    return wrapper


def file_extension(file_name: str) -> str:
    """Lower-cased extension of ``file_name`` without the leading dot."""
    return os.path.splitext(file_name)[1].lower().lstrip(".")


def format_megabytes(n_bytes: int) -> str:
    """Render a byte count as ``"1.23 MB"``."""
    return f"{n_bytes / (1024 * 1024):.2f} MB"
