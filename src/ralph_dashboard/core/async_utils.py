"""Async utility functions shared across modules."""

import asyncio
import logging
from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


async def iter_lines(stream: asyncio.StreamReader) -> AsyncIterator[str]:
    """Yield decoded lines from a subprocess pipe until EOF.

    Unlike ``async for`` over the reader, a line longer than the reader's
    limit does not end the iteration: StreamReader discards the overlong
    data, the drop is logged, and reading continues with the next line.

    Args:
        stream: Reader created with an explicit ``limit``.

    Yields:
        Lines without their terminator, decoded as UTF-8 with replacement.

    """
    while True:
        try:
            raw = await stream.readline()
        except ValueError:
            logger.warning("Dropped output line longer than the stream limit")
            continue
        if not raw:
            return
        yield raw.decode("utf-8", errors="replace").rstrip("\r\n")
