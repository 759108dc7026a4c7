"""Minimal server-sent events reader over an httpx streaming response."""

from typing import AsyncIterator

import httpx


async def iter_sse_data(response: httpx.Response) -> AsyncIterator[str]:
    """Yield the payload of each ``data:`` line.

    Both upstream APIs put one JSON document on a single data line, so
    ``event:`` lines, comments and blank separators are skipped.
    """
    async for line in response.aiter_lines():
        if not line.startswith("data:"):
            continue
        value = line[5:].strip()
        if value:
            yield value
