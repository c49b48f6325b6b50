"""Bounded-concurrency runner for independent section edit jobs.

Jobs run in consecutive batches of ``batch_size``; all jobs in a batch run
concurrently and the next batch starts after a fixed pause. Results come back
in submission order whatever order the jobs finish in. A job that raises is
reported as a failed entry; the scheduler itself always completes.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from docpatch.core.logging import get_logger
from docpatch.core.schemas_edit import SectionEditResult

logger = get_logger(__name__)


@dataclass
class ScheduledJob:
    section_name: str
    run: Callable[[], Awaitable[SectionEditResult]]


async def process(
    jobs: list[ScheduledJob],
    batch_size: int = 2,
    pause_seconds: float = 1.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> list[SectionEditResult]:
    """
    Run jobs in paced batches.

    Args:
        jobs: Jobs in submission order
        batch_size: Jobs per batch (and concurrency permits)
        pause_seconds: Pause between batches, not after the last one
        sleep: Awaitable sleep, injectable for tests

    Returns:
        One SectionEditResult per job, in submission order

    Raises:
        ValueError: If batch_size is less than 1
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")

    semaphore = asyncio.Semaphore(batch_size)
    results: list[SectionEditResult | None] = [None] * len(jobs)

    async def _run(index: int, job: ScheduledJob) -> None:
        async with semaphore:
            try:
                results[index] = await job.run()
            except Exception as e:
                logger.error(f"Edit job for {job.section_name} raised {type(e).__name__}: {e}")
                results[index] = SectionEditResult(
                    section_name=job.section_name,
                    success=False,
                    nodes=None,
                    error=f"{type(e).__name__}: {e}",
                )

    batch_count = (len(jobs) + batch_size - 1) // batch_size
    for batch_number, batch_start in enumerate(range(0, len(jobs), batch_size), start=1):
        batch = jobs[batch_start : batch_start + batch_size]
        logger.info(
            f"Running batch {batch_number}/{batch_count}: "
            f"{', '.join(job.section_name for job in batch)}"
        )
        await asyncio.gather(*(_run(batch_start + offset, job) for offset, job in enumerate(batch)))

        if batch_start + batch_size < len(jobs):
            await sleep(pause_seconds)

    succeeded = sum(1 for r in results if r is not None and r.success)
    logger.info(f"All edit jobs returned: {succeeded}/{len(jobs)} succeeded")
    return [r for r in results if r is not None]
