#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Tests for the image and extraction data model.
"""
import base64
import dataclasses
import unittest

import cv2
import numpy as np

from geopixel_extraction.core.errors import NoRenderContextError
from geopixel_extraction.core.models import (
    CanonicalImage, ExtractionRequest, ExtractionResult, GeoMetadata, ImageFormat, Mask
)

from raster_fixtures import make_canonical_image


class TestCanonicalImage(unittest.TestCase):
    """Buffer invariant and transport encoding."""

    def test_buffer_length_enforced(self):
        with self.assertRaises(NoRenderContextError):
            CanonicalImage(pixels=b"\x00" * 10, width=2, height=2,
                           format=ImageFormat.STANDARD_PHOTO, source_byte_size=10)

    def test_non_positive_dimensions_rejected(self):
        with self.assertRaises(NoRenderContextError):
            CanonicalImage(pixels=b"", width=0, height=3,
                           format=ImageFormat.STANDARD_PHOTO, source_byte_size=0)

    def test_geo_metadata_only_for_geo_raster(self):
        with self.assertRaises(ValueError):
            CanonicalImage(pixels=b"\x00" * 4, width=1, height=1,
                           format=ImageFormat.STANDARD_PHOTO, source_byte_size=4,
                           geo_metadata=GeoMetadata())

    def test_immutable(self):
        image = make_canonical_image()
        with self.assertRaises(dataclasses.FrozenInstanceError):
            image.width = 10
        with self.assertRaises(ValueError):
            image.as_array()[0, 0, 0] = 1

    def test_as_array_shape(self):
        image = make_canonical_image(width=5, height=2)
        self.assertEqual(image.as_array().shape, (2, 5, 4))

    def test_png_encoding_is_lossless(self):
        image = make_canonical_image(width=6, height=4)
        png = base64.b64decode(image.to_png_base64())
        decoded = cv2.imdecode(np.frombuffer(png, np.uint8), cv2.IMREAD_UNCHANGED)
        rgba = cv2.cvtColor(decoded, cv2.COLOR_BGRA2RGBA)
        np.testing.assert_array_equal(rgba, image.as_array())


class TestGeoMetadata(unittest.TestCase):

    def test_to_dict_skips_absent_fields(self):
        meta = GeoMetadata(software="gdal", pixel_scale=(0.5, 0.5, 0.0))
        self.assertEqual(meta.to_dict(), {"software": "gdal", "pixelScale": [0.5, 0.5, 0.0]})

    def test_geo_keys_read_only(self):
        source = {"GTModelTypeGeoKey": 1}
        meta = GeoMetadata(geo_keys=source)
        image = CanonicalImage(pixels=bytes(4), width=1, height=1,
                               format=ImageFormat.GEO_RASTER, source_byte_size=4,
                               geo_metadata=meta)

        with self.assertRaises(TypeError):
            image.geo_metadata.geo_keys["GTModelTypeGeoKey"] = 2
        source["GTModelTypeGeoKey"] = 2
        self.assertEqual(image.geo_metadata.geo_keys["GTModelTypeGeoKey"], 1)

    def test_to_dict_geo_keys_plain_dict(self):
        meta = GeoMetadata(geo_keys={"GTModelTypeGeoKey": 1}, compression="LZW")
        out = meta.to_dict()
        self.assertIs(type(out["geoKeys"]), dict)
        self.assertEqual(out, {"geoKeys": {"GTModelTypeGeoKey": 1}, "compression": "LZW"})


class TestExtractionRequest(unittest.TestCase):

    def test_blank_query_rejected(self):
        with self.assertRaises(ValueError):
            ExtractionRequest(image=make_canonical_image(), query="   ")

    def test_non_positive_token_budget_rejected(self):
        with self.assertRaises(ValueError):
            ExtractionRequest(image=make_canonical_image(), query="roads", max_tokens=0)

    def test_payload(self):
        request = ExtractionRequest(image=make_canonical_image(), query="roads", max_tokens=256)
        payload = request.to_payload()
        self.assertEqual(payload["query"], "roads")
        self.assertEqual(payload["maxTokens"], 256)
        self.assertTrue(base64.b64decode(payload["image"]).startswith(b"\x89PNG"))

    def test_payload_omits_absent_token_budget(self):
        payload = ExtractionRequest(image=make_canonical_image(), query="roads").to_payload()
        self.assertNotIn("maxTokens", payload)


class TestExtractionResult(unittest.TestCase):
    """Wire format parsing and segmentation markers."""

    def setUp(self):
        self.response = {
            "description": "A <p>river</p> [SEG] crosses a <p>bridge</p>[SEG].",
            "masks": [
                {"label": "River", "polygon": [[0, 0], [10, 0], [10, 5]], "confidence": 0.8},
                {"label": "Bridge", "polygon": [[3, 3], [4, 3], [4, 4]], "confidence": 0.7},
            ],
            "processingTime": 1.25,
            "confidence": 0.9,
        }

    def test_from_dict(self):
        result = ExtractionResult.from_dict(self.response)
        self.assertEqual([m.label for m in result.masks], ["River", "Bridge"])
        self.assertEqual(result.masks[0].polygon, ((0, 0), (10, 0), (10, 5)))
        self.assertEqual(result.processing_time, 1.25)
        self.assertFalse(result.synthesized)
        self.assertEqual(result.features, ())

    def test_segmentation_phrases_in_order(self):
        result = ExtractionResult.from_dict(self.response)
        self.assertEqual(result.segmentation_phrases(), ["river", "bridge"])

    def test_missing_field_rejected(self):
        del self.response["masks"]
        with self.assertRaises(KeyError):
            ExtractionResult.from_dict(self.response)

    def test_confidence_out_of_range_rejected(self):
        self.response["confidence"] = 1.5
        with self.assertRaises(ValueError):
            ExtractionResult.from_dict(self.response)

    def test_mask_confidence_out_of_range_rejected(self):
        with self.assertRaises(ValueError):
            Mask(label="x", polygon=((0, 0),), confidence=-0.1)

    def test_to_dict_uses_wire_names(self):
        self.response["features"] = [{"name": "NDVI", "value": "0.42"}]
        data = ExtractionResult.from_dict(self.response).to_dict()
        self.assertEqual(data["processingTime"], 1.25)
        self.assertEqual(data["features"], [{"name": "NDVI", "value": "0.42"}])
        self.assertEqual(data["masks"][1]["polygon"], [[3, 3], [4, 3], [4, 4]])
        self.assertFalse(data["synthesized"])


if __name__ == '__main__':
    unittest.main()
