"""
Batch scheduler: runs one prompt per row through a bounded worker pool.

A run moves Idle -> Running -> Completed | Aborted. Workers pull rows from a
shared queue, so a free worker immediately picks up the next row. Every row
ends as a ProcessedRow or an ErrorRow; a failing row never stops the run.

Abort is cooperative. Workers stop taking rows and pending rate-limit waits
end at once; a row still waiting for its slot is dropped without being
counted. Calls already in flight finish and are recorded.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import ValidationError

from gridprompt.client import RemoteClient, call_with_deadline
from gridprompt.errors import CallError, JobValidationError
from gridprompt.models import (
    ActiveRequestsEvent,
    DoneEvent,
    ErrorRow,
    Event,
    EventCallback,
    JobInput,
    ProcessedRow,
    ProgressEvent,
    ProgressState,
    Row,
    RowEvent,
    RunResult,
    RunState,
)
from gridprompt.parse import RESULT_KEY, parse_response
from gridprompt.prompt import render_prompt
from gridprompt.rate_limit import FixedWindowRateLimiter
from gridprompt.schema import compile_schema

logger = logging.getLogger(__name__)

RateLimiterFactory = Callable[[int], FixedWindowRateLimiter]


def merge_parsed(row: Row, parsed: Any) -> Row:
    """Overlay parsed fields on the original row (parsed wins on collision)."""
    data = dict(row)
    if isinstance(parsed, dict):
        data.update(parsed)
    else:
        data[RESULT_KEY] = parsed
    return data


class BatchScheduler:
    """Orchestrates one batch run at a time over a remote client."""

    def __init__(
        self,
        client: RemoteClient,
        rate_limiter_factory: RateLimiterFactory = FixedWindowRateLimiter,
    ):
        """
        Args:
            client: Remote client used for every row
            rate_limiter_factory: Builds the run's limiter from the per-minute limit
        """
        self.client = client
        self.rate_limiter_factory = rate_limiter_factory
        self._state = RunState.IDLE
        self._abort_requested = False
        self._abort_event = asyncio.Event()
        self._progress = ProgressState()
        self._success: list[ProcessedRow] = []
        self._errors: list[ErrorRow] = []
        self._on_event: EventCallback | None = None

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def progress(self) -> ProgressState:
        return self._progress

    @property
    def is_running(self) -> bool:
        return self._state == RunState.RUNNING

    def abort(self) -> None:
        """Request cooperative cancellation. No-op unless a run is active."""
        if self._state != RunState.RUNNING or self._abort_requested:
            return
        logger.info(
            "Abort requested (%d/%d rows settled)",
            self._progress.completed,
            self._progress.total,
        )
        self._abort_requested = True
        self._abort_event.set()

    async def start(
        self,
        job: JobInput | dict[str, Any],
        on_event: EventCallback | None = None,
    ) -> RunResult:
        """
        Run a job to completion (or abort) and return its records.

        Args:
            job: Job parameters (a dict is validated into JobInput)
            on_event: Receives progress, active-request, row and done events

        Returns:
            RunResult with success and error records

        Raises:
            JobValidationError: If the job is invalid or a run is already active
        """
        if self._state == RunState.RUNNING:
            raise JobValidationError("a run is already in progress")
        job = self._validate(job)

        self._state = RunState.RUNNING
        self._abort_requested = False
        self._abort_event = asyncio.Event()
        self._progress = ProgressState(total=len(job.rows))
        self._success = []
        self._errors = []
        self._on_event = on_event

        schema_text = compile_schema(job.output_columns)
        limiter = self.rate_limiter_factory(job.rate_limit_per_minute)
        queue: deque[tuple[int, Row]] = deque(enumerate(job.rows))
        worker_count = min(job.concurrency, len(job.rows))

        started_at = datetime.now(timezone.utc)
        logger.info(
            "Starting run: %d rows, concurrency=%d, rate_limit=%d/min, timeout=%dms",
            len(job.rows),
            worker_count,
            job.rate_limit_per_minute,
            job.timeout_ms,
        )

        try:
            await asyncio.gather(
                *(
                    self._worker(queue, job, schema_text, limiter)
                    for _ in range(worker_count)
                )
            )
        except asyncio.CancelledError:
            self._abort_requested = True
            self._abort_event.set()
            self._state = RunState.ABORTED
            raise

        self._state = RunState.ABORTED if self._abort_requested else RunState.COMPLETED
        result = RunResult(
            state=self._state,
            success=list(self._success),
            errors=list(self._errors),
            progress=ProgressState(
                completed=self._progress.completed,
                total=self._progress.total,
                in_flight=self._progress.in_flight,
            ),
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        )
        logger.info(
            "Run %s: %d succeeded, %d failed, %d skipped",
            result.state.value,
            result.success_count,
            result.error_count,
            result.skipped_count,
        )
        self._emit(DoneEvent(result.success_count, result.error_count, result.state))
        return result

    def _validate(self, job: JobInput | dict[str, Any]) -> JobInput:
        if isinstance(job, JobInput):
            return job
        try:
            return JobInput.model_validate(job)
        except ValidationError as e:
            errors = [
                {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
                for err in e.errors()
            ]
            raise JobValidationError(str(e), validation_errors=errors) from e

    def _emit(self, event: Event) -> None:
        if self._on_event is None:
            return
        try:
            self._on_event(event)
        except Exception:
            logger.warning("Event callback failed for %s event", event.kind, exc_info=True)

    def _set_in_flight(self, delta: int) -> None:
        self._progress.in_flight += delta
        self._emit(ActiveRequestsEvent(self._progress.in_flight))

    async def _worker(
        self,
        queue: deque[tuple[int, Row]],
        job: JobInput,
        schema_text: str,
        limiter: FixedWindowRateLimiter,
    ) -> None:
        while queue and not self._abort_requested:
            index, row = queue.popleft()
            await self._process_row(index, row, job, schema_text, limiter)

    async def _process_row(
        self,
        index: int,
        row: Row,
        job: JobInput,
        schema_text: str,
        limiter: FixedWindowRateLimiter,
    ) -> None:
        prompt = render_prompt(job.prompt_template, row, schema_text)
        await limiter.await_slot(cancel=self._abort_event)
        if self._abort_requested:
            logger.debug("Row %d dropped after abort", index)
            return

        self._set_in_flight(1)
        try:
            raw = await call_with_deadline(self.client, prompt, job.timeout_seconds)
        except CallError as e:
            event = self._record_error(index, row, e.message, e.error_type.value)
        except Exception as e:
            logger.warning("Row %d failed unexpectedly: %s", index, e, exc_info=True)
            event = self._record_error(index, row, str(e) or type(e).__name__, "unknown")
        else:
            data = merge_parsed(row, parse_response(raw))
            self._success.append(ProcessedRow(index=index, data=data, raw_response=raw))
            logger.debug("Row %d succeeded", index)
            event = RowEvent(index, "success", data=data, raw_response=raw)
        finally:
            self._set_in_flight(-1)

        self._settle(event)

    def _record_error(self, index: int, row: Row, message: str, error_type: str) -> RowEvent:
        logger.warning("Row %d failed (%s): %s", index, error_type, message)
        self._errors.append(
            ErrorRow(index=index, row=dict(row), message=message, error_type=error_type)
        )
        return RowEvent(index, "error", error=message)

    def _settle(self, event: RowEvent) -> None:
        self._progress.completed += 1
        self._emit(event)
        self._emit(ProgressEvent(self._progress.completed, self._progress.total))
