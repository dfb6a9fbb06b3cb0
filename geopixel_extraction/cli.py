#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Command line entry point for the GeoPixel extraction client.

Decodes an image, submits a query about it, and prints the extraction
result as JSON on stdout.
"""
import sys
import json
import time
import asyncio
import argparse
from pathlib import Path
from typing import List, Optional

import yaml

from geopixel_extraction import __version__
from geopixel_extraction.core.config import (
    API_URL_ENV_VAR, DEFAULT_API_URL, SUPPORTED_EXTENSIONS, load_config_file
)
from geopixel_extraction.core.errors import GeoPixelError
from geopixel_extraction.core.logging_config import setup_logging, get_module_logger
from geopixel_extraction.core.models import ProcessingState
from geopixel_extraction.extraction.client import ExtractionClient, get_default_client
from geopixel_extraction.extraction.orchestrator import ExtractionOrchestrator

# Initialize logger
logger = get_module_logger(__name__)


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns
    -------
    argparse.Namespace
        Parsed command line arguments.
    """
    parser = argparse.ArgumentParser(
        description="Extract features from a GeoTIFF or photo with the GeoPixel service."
    )

    parser.add_argument(
        "--input", "-i",
        required=True,
        help=f"Path to input image ({', '.join(sorted(SUPPORTED_EXTENSIONS))})"
    )

    parser.add_argument(
        "--query", "-q",
        required=True,
        help="Free-text extraction query, e.g. 'Find all buildings'"
    )

    parser.add_argument(
        "--max-tokens", "-t",
        type=int,
        help="Token budget for the generated description"
    )

    parser.add_argument(
        "--api-url",
        help=f"Extraction service base URL (default: ${API_URL_ENV_VAR} or {DEFAULT_API_URL})"
    )

    parser.add_argument(
        "--config", "-c",
        help="Path to YAML configuration file"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: from config, $GEOPIXEL_LOG_LEVEL or INFO)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"GeoPixel Extraction Client v{__version__}"
    )

    return parser.parse_args(argv)


async def run_extraction(args: argparse.Namespace) -> int:
    """
    Decode the input and run one extraction.

    Parameters
    ----------
    args : argparse.Namespace
        Command line arguments.

    Returns
    -------
    int
        Exit code.
    """
    client = ExtractionClient(base_url=args.api_url) if args.api_url else get_default_client()
    orchestrator = ExtractionOrchestrator(client)

    input_path = Path(args.input)
    logger.info(f"Starting feature extraction for {input_path}")
    start_time = time.time()

    try:
        await orchestrator.load_image(input_path.read_bytes(), input_path.name)
        result = await orchestrator.submit(args.query, max_tokens=args.max_tokens)
    except (GeoPixelError, OSError, ValueError) as e:
        kind = getattr(e, "kind", type(e).__name__)
        logger.error(f"{kind}: {e}")
        return 1

    if orchestrator.state is ProcessingState.FAILED or result is None:
        logger.error(f"Extraction failed: {orchestrator.error}")
        return 1

    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))

    elapsed_time = time.time() - start_time
    source = "fallback synthesizer" if result.synthesized else "extraction service"
    logger.info(f"Extraction completed in {elapsed_time:.2f} seconds via {source}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function to run the extraction client.
    """
    args = parse_arguments(argv)

    # Config first, its logging section feeds setup_logging
    config_error = None
    if args.config:
        try:
            load_config_file(args.config)
        except (OSError, ValueError, yaml.YAMLError) as e:
            config_error = e

    try:
        setup_logging(log_level=args.log_level)
    except ValueError as e:
        print(f"Invalid logging configuration: {e}", file=sys.stderr)
        return 1

    if config_error is not None:
        logger.error(f"Could not load configuration {args.config}: {config_error}")
        return 1

    return asyncio.run(run_extraction(args))


if __name__ == "__main__":
    sys.exit(main())
