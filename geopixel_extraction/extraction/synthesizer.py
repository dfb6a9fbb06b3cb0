#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Rule-based fallback responses for the extraction client.

When the extraction service cannot be reached, the client answers with a
placeholder result built from the query text alone. Polygons, labels and
per-mask confidences are fixed illustrative values, not measurements.
"""
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from geopixel_extraction.core.config import SYNTHESIZER_CONFIG
from geopixel_extraction.core.logging_config import get_module_logger
from geopixel_extraction.core.models import ExtractionResult, Mask

# Initialize logger
logger = get_module_logger(__name__)

Polygon = Sequence[Tuple[int, int]]
MaskSpec = Tuple[str, Polygon, float]


class SynthesisRule:
    """A keyword predicate paired with the canned answer it produces."""

    def __init__(self, name: str, predicate: Callable[[str], bool],
                 description: str, masks: Sequence[MaskSpec]):
        self.name = name
        self.predicate = predicate
        self.description = description
        self.masks = tuple(
            Mask(label=label, polygon=tuple(tuple(p) for p in polygon), confidence=conf)
            for label, polygon, conf in masks
        )

    def matches(self, query: str) -> bool:
        return self.predicate(query)


def _contains(keyword: str) -> Callable[[str], bool]:
    return lambda query: keyword in query


# Evaluated in order, first match wins; the last rule matches everything
SYNTHESIS_RULES: List[SynthesisRule] = [
    SynthesisRule(
        "buildings",
        _contains("building"),
        "The image contains several <p>residential buildings</p> [SEG] in the central "
        "area and <p>commercial structures</p> [SEG] along the main roads.",
        [
            ("Residential Buildings", [(100, 100), (200, 100), (200, 200), (100, 200)], 0.94),
            ("Commercial Structures", [(300, 150), (450, 150), (450, 250), (300, 250)], 0.89),
        ],
    ),
    SynthesisRule(
        "vegetation",
        _contains("vegetation"),
        "Dense <p>forest areas</p> [SEG] dominate the northern section, while "
        "<p>agricultural fields</p> [SEG] are visible in the southern regions.",
        [
            ("Forest Areas", [(50, 50), (300, 50), (300, 200), (50, 200)], 0.92),
            ("Agricultural Fields", [(100, 250), (400, 250), (400, 400), (100, 400)], 0.87),
        ],
    ),
    SynthesisRule(
        "default",
        lambda query: True,
        "The image shows <p>urban areas</p> [SEG] with mixed land use, "
        "<p>transportation networks</p> [SEG], and <p>natural features</p> [SEG].",
        [
            ("Urban Areas", [(150, 100), (350, 100), (350, 300), (150, 300)], 0.91),
            ("Transportation Networks", [(0, 200), (500, 200), (500, 220), (0, 220)], 0.88),
            ("Natural Features", [(400, 50), (500, 50), (500, 150), (400, 150)], 0.85),
        ],
    ),
]


def select_rule(query: str, rules: Optional[Sequence[SynthesisRule]] = None) -> SynthesisRule:
    """Return the first rule matching the lower-cased query."""
    lowered = query.lower()
    for rule in rules if rules is not None else SYNTHESIS_RULES:
        if rule.matches(lowered):
            return rule
    raise LookupError(f"No synthesis rule matches query: {query!r}")


def synthesize(query: str, rng: Optional[np.random.Generator] = None) -> ExtractionResult:
    """
    Build a placeholder extraction result from the query text.

    Parameters
    ----------
    query : str
        Free-text query; matched case-insensitively.
    rng : np.random.Generator, optional
        Source for ``processing_time`` and ``confidence``. Those two fields
        are sampled on every call and are not reproducible unless a seeded
        generator is passed.

    Returns
    -------
    ExtractionResult
        Result flagged ``synthesized=True``.
    """
    rng = rng if rng is not None else np.random.default_rng()
    rule = select_rule(query)

    processing_time = (SYNTHESIZER_CONFIG["processing_time_min"]
                       + SYNTHESIZER_CONFIG["processing_time_span"] * rng.random())
    confidence = (SYNTHESIZER_CONFIG["confidence_min"]
                  + SYNTHESIZER_CONFIG["confidence_span"] * rng.random())

    logger.debug(f"Synthesized '{rule.name}' response with {len(rule.masks)} mask(s)")
    return ExtractionResult(
        description=rule.description,
        masks=rule.masks,
        confidence=float(confidence),
        processing_time=float(processing_time),
        synthesized=True,
    )
