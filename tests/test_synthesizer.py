#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Tests for the fallback response synthesizer.
"""
import unittest

import numpy as np

from geopixel_extraction.extraction.synthesizer import (
    SYNTHESIS_RULES, SynthesisRule, select_rule, synthesize
)


class TestSynthesize(unittest.TestCase):
    """Keyword dispatch and fixed answers."""

    def test_buildings(self):
        result = synthesize("Find all buildings")
        self.assertEqual(len(result.segmentation_phrases()), 2)
        self.assertEqual([m.label for m in result.masks],
                         ["Residential Buildings", "Commercial Structures"])
        self.assertEqual(result.masks[0].polygon, ((100, 100), (200, 100), (200, 200), (100, 200)))
        self.assertEqual(result.masks[1].polygon, ((300, 150), (450, 150), (450, 250), (300, 250)))
        self.assertEqual([m.confidence for m in result.masks], [0.94, 0.89])
        self.assertEqual(result.description,
                         "The image contains several <p>residential buildings</p> [SEG] in the "
                         "central area and <p>commercial structures</p> [SEG] along the main roads.")

    def test_vegetation(self):
        result = synthesize("Where is the VEGETATION?")
        self.assertEqual(result.segmentation_phrases(), ["forest areas", "agricultural fields"])
        self.assertEqual([m.label for m in result.masks], ["Forest Areas", "Agricultural Fields"])
        self.assertEqual(result.masks[1].polygon, ((100, 250), (400, 250), (400, 400), (100, 400)))
        self.assertEqual([m.confidence for m in result.masks], [0.92, 0.87])

    def test_default(self):
        result = synthesize("show me the lake")
        self.assertEqual(len(result.segmentation_phrases()), 3)
        self.assertEqual([m.label for m in result.masks],
                         ["Urban Areas", "Transportation Networks", "Natural Features"])
        self.assertEqual(result.masks[1].polygon, ((0, 200), (500, 200), (500, 220), (0, 220)))
        self.assertEqual([m.confidence for m in result.masks], [0.91, 0.88, 0.85])

    def test_first_match_wins(self):
        result = synthesize("vegetation around buildings")
        self.assertEqual(result.masks[0].label, "Residential Buildings")

    def test_case_insensitive(self):
        self.assertEqual(select_rule("BUILDING footprints").name, "buildings")

    def test_marker_count_matches_mask_count(self):
        for rule in SYNTHESIS_RULES:
            phrases = synthesize(rule.name if rule.name != "default" else "anything").segmentation_phrases()
            self.assertEqual(len(phrases), len(rule.masks), msg=rule.name)

    def test_flagged_as_synthesized(self):
        self.assertTrue(synthesize("roads").synthesized)

    def test_sampled_ranges(self):
        rng = np.random.default_rng(0)
        for _ in range(200):
            result = synthesize("roads", rng=rng)
            self.assertGreaterEqual(result.processing_time, 2.5)
            self.assertLess(result.processing_time, 4.5)
            self.assertGreaterEqual(result.confidence, 0.85)
            self.assertLess(result.confidence, 1.0)

    def test_seeded_generator_reproducible(self):
        a = synthesize("roads", rng=np.random.default_rng(42))
        b = synthesize("roads", rng=np.random.default_rng(42))
        self.assertEqual(a, b)


class TestSelectRule(unittest.TestCase):

    def test_custom_rules(self):
        rules = [
            SynthesisRule("water", lambda q: "water" in q, "A <p>lake</p> [SEG].",
                          [("Water Bodies", [(0, 0), (1, 0), (1, 1)], 0.9)]),
        ]
        self.assertEqual(select_rule("Open Water", rules).name, "water")

    def test_no_match_raises(self):
        with self.assertRaises(LookupError):
            select_rule("anything", [])


if __name__ == '__main__':
    unittest.main()
