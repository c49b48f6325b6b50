"""Per-job retry policy around generation + recovery.

A job gets up to ``max_attempts`` generation calls. Rate-limit and timeout
failures back off up to 30s, other transient failures up to 10s. Fatal
generation errors and unrecoverable output end the job at once. A job that
does not produce valid nodes degrades to its original, unedited nodes with
``success=False`` so the document is never left half-written.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from docpatch.core.config import Settings
from docpatch.core.errors import GenerationError, GenerationTimeout, RateLimited
from docpatch.core.logging import get_logger, log_with_context, preview
from docpatch.core.response_recovery import recover
from docpatch.core.schemas_document import BlockNode

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    base_delay: float = 1.0
    rate_limit_cap: float = 30.0
    transient_cap: float = 10.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.EDIT_MAX_ATTEMPTS,
            base_delay=settings.RETRY_BASE_DELAY_SECONDS,
            rate_limit_cap=settings.RATE_LIMIT_MAX_DELAY_SECONDS,
            transient_cap=settings.TRANSIENT_MAX_DELAY_SECONDS,
        )

    def backoff_delay(self, attempt: int, error: GenerationError) -> float:
        """Seconds to wait after failed attempt ``attempt`` (0-based)."""
        if isinstance(error, (RateLimited, GenerationTimeout)):
            cap = self.rate_limit_cap
        else:
            cap = self.transient_cap
        return min((2**attempt) * self.base_delay, cap)


@dataclass
class RetryOutcome:
    success: bool
    nodes: list[BlockNode]
    attempts: int
    error: str | None = None


async def run_with_retry(
    generate: Callable[[], Awaitable[str]],
    original_nodes: list[BlockNode],
    policy: RetryPolicy | None = None,
    *,
    label: str = "",
    sleep: Sleep = asyncio.sleep,
) -> RetryOutcome:
    """
    Call ``generate`` until its output recovers into valid nodes.

    Args:
        generate: Zero-argument coroutine factory issuing one generation call
        original_nodes: Nodes returned unchanged if the job degrades
        policy: Retry policy (defaults to 5 attempts, 1s base delay)
        label: Section name for log lines
        sleep: Awaitable sleep, injectable for tests

    Returns:
        RetryOutcome; on degradation ``nodes`` is ``original_nodes``
    """
    policy = policy or RetryPolicy()
    last_error: GenerationError | None = None
    attempts = 0

    for attempt in range(policy.max_attempts):
        attempts = attempt + 1
        try:
            raw_text = await generate()
        except GenerationError as e:
            last_error = e
            log_with_context(
                logger,
                logging.WARNING,
                f"Generation attempt {attempts}/{policy.max_attempts} failed "
                f"({type(e).__name__}): {preview(str(e))}",
                section=label,
            )
            if not e.retryable:
                break
            if attempts < policy.max_attempts:
                await sleep(policy.backoff_delay(attempt, e))
            continue

        result = recover(raw_text)
        if result.ok:
            return RetryOutcome(success=True, nodes=result.nodes, attempts=attempts)

        log_with_context(
            logger,
            logging.ERROR,
            f"Unrecoverable model output (stage={result.stage}); keeping original section",
            section=label,
            raw=preview(result.raw_text),
        )
        return RetryOutcome(
            success=False,
            nodes=original_nodes,
            attempts=attempts,
            error=f"ParseFailure: {result.error}",
        )

    error = f"{type(last_error).__name__}: {last_error}" if last_error else "no attempts made"
    log_with_context(
        logger,
        logging.ERROR,
        f"Giving up after {attempts} attempt(s); keeping original section",
        section=label,
        error=preview(error),
    )
    return RetryOutcome(success=False, nodes=original_nodes, attempts=attempts, error=error)
