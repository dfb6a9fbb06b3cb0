#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Pixel normalization and image-level features.
"""
