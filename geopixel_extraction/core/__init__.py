#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Core functionality for the GeoPixel extraction client.

This module contains the data model, error types, image decoding,
configuration management, and logging setup.
"""
