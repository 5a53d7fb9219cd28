from __future__ import annotations

import asyncio
import re
from typing import Awaitable, Callable, Sequence, TypeVar

import httpx
from loguru import logger

T = TypeVar("T")
R = TypeVar("R")

RATE_LIMIT_RE = re.compile(r"rate.?limit", re.IGNORECASE)

Sleep = Callable[[float], Awaitable[None]]


def is_rate_limit_error(exc: BaseException) -> bool:
    """True for HTTP 429 responses or errors whose message mentions a rate limit."""
    if isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code == 429:
        return True
    status = getattr(exc, "status_code", None)
    if status is None:
        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)
    if status == 429:
        return True
    return bool(RATE_LIMIT_RE.search(str(exc)))


class RateLimitedBatchExecutor:
    """Run an async action over items in fixed-size concurrent batches.

    Items in one batch start together. Rate-limited items are retried with
    exponential backoff; any other failure yields ``None`` for that slot.
    Output order always matches input order.
    """

    def __init__(self, *, base_delay_s: float = 1.0, sleep: Sleep | None = None):
        self.base_delay_s = max(float(base_delay_s), 0.0)
        self._sleep = sleep or asyncio.sleep

    async def run(
        self,
        items: Sequence[T],
        batch_size: int,
        action: Callable[[T], Awaitable[R]],
        *,
        inter_batch_delay_s: float = 1.0,
        max_retries_per_item: int = 4,
        label: str = "batch",
    ) -> list[R | None]:
        size = max(int(batch_size), 1)
        results: list[R | None] = []

        for start in range(0, len(items), size):
            if start > 0 and inter_batch_delay_s > 0:
                await self._sleep(inter_batch_delay_s)
            chunk = items[start : start + size]
            batch_results = await asyncio.gather(
                *(
                    self._run_item(item, action, max_retries_per_item, label)
                    for item in chunk
                )
            )
            results.extend(batch_results)
            logger.debug(
                f"{label}: batch {start // size + 1} done "
                f"({sum(r is not None for r in batch_results)}/{len(chunk)} ok)"
            )

        return results

    async def _run_item(
        self,
        item: T,
        action: Callable[[T], Awaitable[R]],
        max_retries: int,
        label: str,
    ) -> R | None:
        attempt = 0
        while True:
            try:
                return await action(item)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                if is_rate_limit_error(exc) and attempt < max_retries:
                    delay = self.base_delay_s * (2**attempt)
                    attempt += 1
                    logger.warning(
                        f"{label}: rate limited on {item!r}, retry {attempt}/{max_retries} in {delay:.1f}s"
                    )
                    await self._sleep(delay)
                    continue
                if is_rate_limit_error(exc):
                    logger.error(f"{label}: giving up on {item!r} after {max_retries} retries: {exc}")
                else:
                    logger.warning(f"{label}: {item!r} failed: {exc}")
                return None
