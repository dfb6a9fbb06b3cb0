#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Logging configuration for the GeoPixel extraction client.

This module provides centralized configuration for the logging system
used throughout the application.
"""
import logging
import os
from typing import Optional
from geopixel_extraction.core.config import LOGGING_CONFIG

ROOT_LOGGER_NAME = "geopixel"


def setup_logging(log_level: Optional[str] = None,
                  log_file: Optional[str] = None,
                  module_name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    Configure and return a logger with the specified settings.

    Parameters
    ----------
    log_level : str, optional
        Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        If None, uses the level from config.py.
    log_file : str, optional
        Path to log file. If None, uses the path from config.py; no file
        handler is added when neither is set.
    module_name : str, optional
        Name of the logger, by default "geopixel".

    Returns
    -------
    logging.Logger
        Configured logger instance.
    """
    logger = logging.getLogger(module_name)

    level = log_level or LOGGING_CONFIG.get("level", "INFO")
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")
    logger.setLevel(numeric_level)

    log_file_path = log_file or LOGGING_CONFIG.get("log_file")
    log_format = LOGGING_CONFIG.get("log_format",
                                   "%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    formatter = logging.Formatter(log_format)

    # Console handler, added once
    if not any(type(h) is logging.StreamHandler for h in logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    # File handler (optional), added once per path
    if log_file_path:
        log_file_path = os.path.abspath(log_file_path)
        if not any(isinstance(h, logging.FileHandler) and h.baseFilename == log_file_path
                   for h in logger.handlers):
            os.makedirs(os.path.dirname(log_file_path), exist_ok=True)

            file_handler = logging.FileHandler(log_file_path)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    logger.debug(f"Logging initialized at level: {level}")
    return logger


def get_module_logger(module_name: str) -> logging.Logger:
    """
    Get a logger for a specific module.

    Parameters
    ----------
    module_name : str
        Name of the module, typically __name__.

    Returns
    -------
    logging.Logger
        Child of the "geopixel" logger.
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{module_name}")
