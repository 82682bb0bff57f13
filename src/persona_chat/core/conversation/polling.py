"""Fixed-interval polling of remote runs."""

import asyncio
from collections.abc import Awaitable, Callable

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_result,
    stop_after_attempt,
    stop_after_delay,
    wait_fixed,
)

from persona_chat.core.conversation.errors import RunOperationFailed, RunTimeout
from persona_chat.core.conversation.models import Run
from persona_chat.infrastructure.assistants.base import AssistantBackend
from persona_chat.infrastructure.observability.metrics import RUN_POLLS

logger = structlog.get_logger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


def _is_pending(run: Run) -> bool:
    return not run.status.is_terminal


def _log_pending(retry_state: RetryCallState) -> None:
    run = retry_state.outcome.result() if retry_state.outcome else None
    logger.debug(
        "Run still pending",
        run_id=run.id if run else None,
        status=run.status.value if run else None,
        attempt=retry_state.attempt_number,
    )


async def wait_for_run(
    backend: AssistantBackend,
    run: Run,
    *,
    interval: float = 1.0,
    max_attempts: int = 120,
    timeout: float = 180.0,
    sleep: SleepFn = asyncio.sleep,
) -> Run:
    """Poll ``run`` until it reaches a terminal status.

    Every status fetch is preceded by one ``interval`` sleep. A run that is
    already terminal is returned without any fetch.

    Raises:
        RunOperationFailed: A status fetch errored. Not retried.
        RunTimeout: ``max_attempts`` fetches or ``timeout`` seconds elapsed
            while the run was still pending.
    """
    if run.status.is_terminal:
        return run

    async def fetch() -> Run:
        try:
            return await backend.get_run(run.session_id, run.id)
        except Exception as e:
            raise RunOperationFailed(
                f"Failed to fetch status of run {run.id} in session {run.session_id}: {e}",
                operation="get_run",
                session_id=run.session_id,
                run_id=run.id,
            ) from e

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts) | stop_after_delay(timeout),
        wait=wait_fixed(interval),
        retry=retry_if_result(_is_pending),
        before_sleep=_log_pending,
        sleep=sleep,
    )

    await sleep(interval)
    try:
        final = await retrying(fetch)
    except RetryError as e:
        last = e.last_attempt.result()
        raise RunTimeout(
            f"Run {run.id} still {last.status.value} after "
            f"{e.last_attempt.attempt_number} status checks",
            session_id=run.session_id,
            run_id=run.id,
            status=last.status.value,
        ) from e

    polls = retrying.statistics.get("attempt_number", 1)
    RUN_POLLS.observe(polls)
    logger.debug("Run reached terminal status", run_id=run.id, status=final.status.value, polls=polls)
    return final
