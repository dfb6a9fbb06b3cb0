#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Extraction service client, fallback synthesizer and request orchestrator.
"""
