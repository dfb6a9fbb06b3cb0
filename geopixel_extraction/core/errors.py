#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Exception hierarchy for the GeoPixel extraction client.

Every error carries a stable ``kind`` string so callers can tell decode-time
failures from orchestration-time failures without matching on messages.
Remote-service failures have no exception here: the extraction client
recovers from them with the fallback synthesizer.
"""


class GeoPixelError(Exception):
    """Base class for all errors raised by this package."""

    kind = "GeoPixelError"


class DecodeError(GeoPixelError):
    """A file could not be turned into a canonical image."""

    kind = "DecodeError"


class UnsupportedFormatError(DecodeError):
    """The file extension is not one of the recognized formats."""

    kind = "UnsupportedFormat"


class CorruptDataError(DecodeError):
    """The container or image payload could not be parsed."""

    kind = "CorruptData"


class NoRenderContextError(DecodeError):
    """The normalized RGBA buffer could not be materialized."""

    kind = "NoRenderContext"


class OrchestrationError(GeoPixelError):
    """A caller action was rejected by the extraction orchestrator."""

    kind = "OrchestrationError"


class NoImageLoadedError(OrchestrationError):
    kind = "NoImageLoaded"


class EmptyQueryError(OrchestrationError):
    kind = "EmptyQuery"


class RequestInFlightError(OrchestrationError):
    """An action was attempted while an extraction request is processing."""

    kind = "RequestInFlight"


class InvalidRequestError(OrchestrationError):
    """A submitted request parameter is out of range."""

    kind = "InvalidRequest"
