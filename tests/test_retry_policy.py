"""Tests for the per-job retry policy."""

import json
from unittest.mock import AsyncMock

import pytest

from docpatch.core.errors import (
    FatalGenerationError,
    GenerationTimeout,
    RateLimited,
    TransientGenerationError,
)
from docpatch.core.retry_policy import RetryPolicy, run_with_retry
from docpatch.core.schemas_document import node_text, validate_nodes
from tests.fakes.fake_generation import FakeGenerationClient
from tests.fixtures_documents import heading, paragraph

ORIGINAL = validate_nodes([heading("Key barriers"), paragraph("original text")])
EDITED_JSON = json.dumps([heading("Key barriers"), paragraph("edited text")])


class TestBackoffDelay:
    def test_rate_limit_schedule(self):
        policy = RetryPolicy()
        delays = [policy.backoff_delay(i, RateLimited("429")) for i in range(6)]
        assert delays == [1.0, 2.0, 4.0, 8.0, 16.0, 30.0]

    def test_timeout_shares_rate_limit_cap(self):
        policy = RetryPolicy()
        assert policy.backoff_delay(5, GenerationTimeout("slow")) == 30.0

    def test_transient_cap(self):
        policy = RetryPolicy()
        delays = [policy.backoff_delay(i, TransientGenerationError("503")) for i in range(5)]
        assert delays == [1.0, 2.0, 4.0, 8.0, 10.0]

    def test_from_settings(self):
        class _Settings:
            EDIT_MAX_ATTEMPTS = 3
            RETRY_BASE_DELAY_SECONDS = 0.5
            RATE_LIMIT_MAX_DELAY_SECONDS = 4.0
            TRANSIENT_MAX_DELAY_SECONDS = 2.0

        policy = RetryPolicy.from_settings(_Settings())
        assert policy == RetryPolicy(max_attempts=3, base_delay=0.5, rate_limit_cap=4.0, transient_cap=2.0)


class TestRunWithRetry:
    @pytest.mark.asyncio
    async def test_first_attempt_success(self):
        client = FakeGenerationClient([EDITED_JSON])
        sleep = AsyncMock()

        outcome = await run_with_retry(lambda: client.generate("prompt"), ORIGINAL, sleep=sleep)

        assert outcome.success
        assert outcome.attempts == 1
        assert node_text(outcome.nodes[1]) == "edited text"
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_recovers_after_rate_limits(self):
        client = FakeGenerationClient([RateLimited("429"), RateLimited("429"), EDITED_JSON])
        sleep = AsyncMock()

        outcome = await run_with_retry(lambda: client.generate("prompt"), ORIGINAL, sleep=sleep)

        assert outcome.success
        assert outcome.attempts == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhaustion_degrades_to_original(self):
        client = FakeGenerationClient(default=TransientGenerationError("503 upstream"))
        sleep = AsyncMock()

        outcome = await run_with_retry(lambda: client.generate("prompt"), ORIGINAL, sleep=sleep)

        assert not outcome.success
        assert outcome.nodes is ORIGINAL
        assert outcome.attempts == 5
        assert client.calls == 5
        assert outcome.error == "TransientGenerationError: 503 upstream"
        # No sleep after the final attempt
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0, 4.0, 8.0]

    @pytest.mark.asyncio
    async def test_fatal_error_stops_immediately(self):
        client = FakeGenerationClient([FatalGenerationError("401 invalid key"), EDITED_JSON])
        sleep = AsyncMock()

        outcome = await run_with_retry(lambda: client.generate("prompt"), ORIGINAL, sleep=sleep)

        assert not outcome.success
        assert outcome.nodes is ORIGINAL
        assert client.calls == 1
        assert outcome.error.startswith("FatalGenerationError")
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_parse_failure_is_not_retried(self):
        client = FakeGenerationClient(["Sorry, no JSON today.", EDITED_JSON])
        sleep = AsyncMock()

        outcome = await run_with_retry(lambda: client.generate("prompt"), ORIGINAL, sleep=sleep)

        assert not outcome.success
        assert outcome.nodes is ORIGINAL
        assert client.calls == 1
        assert outcome.error.startswith("ParseFailure")

    @pytest.mark.asyncio
    async def test_empty_array_degrades(self):
        client = FakeGenerationClient(["[]"])

        outcome = await run_with_retry(lambda: client.generate("prompt"), ORIGINAL, sleep=AsyncMock())

        assert not outcome.success
        assert outcome.nodes is ORIGINAL

    @pytest.mark.asyncio
    async def test_custom_attempt_limit(self):
        client = FakeGenerationClient(default=GenerationTimeout("timed out"))
        policy = RetryPolicy(max_attempts=2)

        outcome = await run_with_retry(
            lambda: client.generate("prompt"), ORIGINAL, policy, sleep=AsyncMock()
        )

        assert outcome.attempts == 2
        assert client.calls == 2
