#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
HTTP client for the GeoPixel extraction service.

The client posts one JSON request per extraction. If the service is
unreachable, answers with a non-success status, or returns a body that does
not follow the response contract, the client logs the failure and answers
with the fallback synthesizer instead. Callers never see remote errors;
they can tell synthesized results apart by ``ExtractionResult.synthesized``.
"""
import asyncio
import functools
from typing import Callable, Optional

import aiohttp

from geopixel_extraction.core.config import CLIENT_CONFIG, EXTRACT_ENDPOINT, resolve_api_url
from geopixel_extraction.core.logging_config import get_module_logger
from geopixel_extraction.core.models import ExtractionRequest, ExtractionResult
from geopixel_extraction.extraction.synthesizer import synthesize

# Initialize logger
logger = get_module_logger(__name__)


class RemoteUnavailable(Exception):
    """Internal signal that the remote path failed and the fallback applies."""


class ExtractionClient:
    """
    Immutable extraction service client.

    Parameters
    ----------
    base_url : str, optional
        Service base URL. Defaults to ``GEOPIXEL_API_URL`` or
        ``http://localhost:8000``.
    timeout : float, optional
        Total request timeout in seconds, by default ``CLIENT_CONFIG["timeout"]``.
    fallback : callable, optional
        ``query -> ExtractionResult`` used when the service is unavailable.
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 fallback: Callable[[str], ExtractionResult] = synthesize):
        self._base_url = (base_url or resolve_api_url()).rstrip("/")
        self._timeout = float(timeout if timeout is not None else CLIENT_CONFIG["timeout"])
        self._fallback = fallback

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def endpoint(self) -> str:
        return f"{self._base_url}{EXTRACT_ENDPOINT}"

    @property
    def timeout(self) -> float:
        return self._timeout

    def __repr__(self) -> str:
        return f"ExtractionClient(base_url={self._base_url!r}, timeout={self._timeout})"

    async def extract(self, request: ExtractionRequest) -> ExtractionResult:
        """
        Run one extraction request.

        Parameters
        ----------
        request : ExtractionRequest
            Image, query and optional token budget.

        Returns
        -------
        ExtractionResult
            The service's answer, or a synthesized one when the service is
            unavailable.
        """
        # Encoding failures are caller-side problems and propagate
        payload = request.to_payload()

        try:
            result = await self._post(payload)
        except RemoteUnavailable as e:
            logger.warning(f"Extraction service unavailable ({e}); "
                           f"using fallback synthesizer for query {request.query!r}")
            return self._fallback(request.query)

        logger.info(f"Extraction service answered with {len(result.masks)} mask(s) "
                    f"in {result.processing_time:.2f}s")
        return result

    async def _post(self, payload: dict) -> ExtractionResult:
        timeout = aiohttp.ClientTimeout(total=self._timeout)
        logger.debug(f"POST {self.endpoint} (query={payload.get('query')!r})")
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.endpoint, json=payload) as response:
                    if response.status >= 400:
                        raise RemoteUnavailable(
                            f"HTTP {response.status} {response.reason}")
                    data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RemoteUnavailable(f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            # Body was not JSON
            raise RemoteUnavailable(f"invalid JSON response: {e}") from e

        try:
            return ExtractionResult.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise RemoteUnavailable(f"malformed response: {e!r}") from e


@functools.lru_cache(maxsize=None)
def get_default_client() -> ExtractionClient:
    """Process-wide client built once from configuration."""
    client = ExtractionClient()
    logger.info(f"Using extraction service at {client.base_url}")
    return client
