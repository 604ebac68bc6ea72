"""Entry point: one extraction pass over the configured mailbox.

Usage::

    IMAP_HOST=... IMAP_USERNAME=... IMAP_PASSWORD=... \\
    EXTRACTOR_OUTPUT_DIR=/var/spool/zips python -m imap_zip_extractor
"""

from __future__ import annotations

import asyncio
import sys

import structlog

from .config import ExtractorConfig
from .errors import ExtractorError
from .extractor import ImapZipExtractor
from .logging import setup_logging

logger = structlog.get_logger()


async def run(config: ExtractorConfig) -> int:
    extractor = ImapZipExtractor(config)
    if config.cleanup_before_run:
        extractor.cleanup_working_directory()

    await extractor.init()
    try:
        extracted = await extractor.process()
    finally:
        await extractor.close()

    for item in extracted:
        logger.info("extracted_file", path=str(item.path), entry=item.entry_name)
    return len(extracted)


def main() -> None:
    config = ExtractorConfig()
    setup_logging(json=config.log_json, level=config.log_level)

    try:
        count = asyncio.run(run(config))
    except ExtractorError as exc:
        logger.error("extraction_failed", error=str(exc), error_type=type(exc).__name__)
        sys.exit(1)

    logger.info("extraction_complete", files=count)


if __name__ == "__main__":
    main()
