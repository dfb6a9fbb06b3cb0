#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Request lifecycle for image feature extraction.

An :class:`ExtractionOrchestrator` holds the loaded image, the last query and
the last result, and moves through ``IDLE -> PROCESSING -> COMPLETED|FAILED``.
Only one request may be in flight per orchestrator; a second ``submit`` while
processing is rejected with :class:`RequestInFlightError`, never queued. An
image decode in progress counts as in flight too.
"""
import asyncio
from dataclasses import replace
from typing import Callable, List, Optional

from geopixel_extraction.core.config import CLIENT_CONFIG
from geopixel_extraction.core.errors import (
    EmptyQueryError, InvalidRequestError, NoImageLoadedError, RequestInFlightError
)
from geopixel_extraction.core.io import decode
from geopixel_extraction.core.logging_config import get_module_logger
from geopixel_extraction.core.models import (
    CanonicalImage, ExtractionRequest, ExtractionResult, ProcessingState
)
from geopixel_extraction.extraction.client import ExtractionClient, get_default_client
from geopixel_extraction.features.image_features import describe_image

# Initialize logger
logger = get_module_logger(__name__)

StateObserver = Callable[[ProcessingState], None]


class ExtractionOrchestrator:
    """
    State machine sequencing decoded images into extraction requests.

    Parameters
    ----------
    client : ExtractionClient, optional
        Shared client. Defaults to the process-wide instance from
        :func:`get_default_client`.
    """

    def __init__(self, client: Optional[ExtractionClient] = None):
        self._client = client if client is not None else get_default_client()
        self._state = ProcessingState.IDLE
        self._image: Optional[CanonicalImage] = None
        self._query: str = ""
        self._result: Optional[ExtractionResult] = None
        self._error: Optional[BaseException] = None
        self._observers: List[StateObserver] = []
        self._decoding = False

    @property
    def state(self) -> ProcessingState:
        return self._state

    @property
    def image(self) -> Optional[CanonicalImage]:
        return self._image

    @property
    def query(self) -> str:
        return self._query

    @property
    def result(self) -> Optional[ExtractionResult]:
        return self._result

    @property
    def error(self) -> Optional[BaseException]:
        """Exception behind the last FAILED transition, if any."""
        return self._error

    def subscribe(self, observer: StateObserver) -> Callable[[], None]:
        """
        Register a callback invoked with the new state on every transition.

        Returns
        -------
        callable
            Function removing the observer again.
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def set_image(self, image: CanonicalImage) -> None:
        """
        Make ``image`` the subject of the next request.

        A result from a previous image is discarded and the state returns
        to IDLE first.
        """
        self._ensure_not_processing("load a new image")
        if self._state in (ProcessingState.COMPLETED, ProcessingState.FAILED):
            self._result = None
            self._error = None
            self._transition(ProcessingState.IDLE)
        self._image = image
        logger.info(f"Loaded image {image.file_name or '<unnamed>'} "
                    f"({image.format.value}, {image.width}x{image.height})")

    async def load_image(self, file_bytes: bytes, file_name: str) -> CanonicalImage:
        """
        Decode ``file_bytes`` and load the result; decode errors propagate.

        Other actions are rejected until the decode has finished.
        """
        self._ensure_not_processing("load a new image")
        self._decoding = True
        try:
            image = await decode(file_bytes, file_name)
        finally:
            self._decoding = False
        self.set_image(image)
        return image

    async def submit(self, query: str, max_tokens: Optional[int] = None) -> Optional[ExtractionResult]:
        """
        Run an extraction for the loaded image.

        Parameters
        ----------
        query : str
            Free-text query; must not be blank.
        max_tokens : int, optional
            Token budget for the service.

        Returns
        -------
        ExtractionResult or None
            The stored result, or None if the request failed (see ``error``).

        Raises
        ------
        RequestInFlightError
            If a request or an image decode is in progress.
        NoImageLoadedError
            If no image has been loaded.
        EmptyQueryError
            If ``query`` is blank after trimming.
        InvalidRequestError
            If ``max_tokens`` is not a positive integer.
        """
        self._ensure_not_processing("submit")
        if self._image is None:
            raise NoImageLoadedError("Load an image before submitting a query")
        if query is None or not query.strip():
            raise EmptyQueryError("Query must not be empty")

        if max_tokens is None:
            max_tokens = CLIENT_CONFIG.get("max_tokens")
        if max_tokens is not None and (not isinstance(max_tokens, int) or max_tokens <= 0):
            raise InvalidRequestError(f"max_tokens must be a positive integer, got {max_tokens!r}")
        image = self._image
        request = ExtractionRequest(image=image, query=query.strip(), max_tokens=max_tokens)

        self._query = query
        self._error = None
        self._transition(ProcessingState.PROCESSING)

        try:
            result = await self._client.extract(request)
        except asyncio.CancelledError as e:
            self._fail(e)
            raise
        except Exception as e:
            logger.exception(f"Extraction failed for query {query!r}: {e}")
            self._fail(e)
            return None

        if result.synthesized:
            logger.warning("Result was synthesized locally, not produced by the extraction service")

        self._result = replace(result, features=describe_image(image) + tuple(result.features))
        self._transition(ProcessingState.COMPLETED)
        return self._result

    def reset(self) -> None:
        """Clear image, query and result and return to IDLE."""
        self._ensure_not_processing("reset")
        self._image = None
        self._query = ""
        self._result = None
        self._error = None
        self._transition(ProcessingState.IDLE)

    def _fail(self, error: BaseException) -> None:
        self._result = None
        self._error = error
        self._transition(ProcessingState.FAILED)

    def _ensure_not_processing(self, action: str) -> None:
        if self._state is ProcessingState.PROCESSING:
            raise RequestInFlightError(f"Cannot {action} while a request is processing")
        if self._decoding:
            raise RequestInFlightError(f"Cannot {action} while an image is decoding")

    def _transition(self, state: ProcessingState) -> None:
        previous, self._state = self._state, state
        logger.debug(f"State {previous.value} -> {state.value}")
        for observer in list(self._observers):
            try:
                observer(state)
            except Exception as e:
                logger.error(f"State observer {observer!r} raised: {e}")
