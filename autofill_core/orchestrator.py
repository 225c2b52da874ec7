"""
Bulk autofill orchestration.

A run collects the page's fields, deduplicates them by content fingerprint,
answers the unique ones in batches (bounded concurrency, retry with
backoff), fans the answers back out to every field sharing a fingerprint
and applies them in page order while reporting progress.

Usage:
    engine = AutofillEngine(session, RetrievalClient(), reporter)
    summary = await engine.run(config.credentials())
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from .config import Config, Credentials
from .error_handler import describe_error
from .events import StatusReporter
from .exceptions import ConfigurationError
from .fingerprint import group_by_fingerprint
from .models import FieldDescriptor, RunSummary
from .pool import run_bounded
from .retry import DEFAULT_INITIAL_DELAY, DEFAULT_JITTER, DEFAULT_MAX_DELAY, retry_async

logger = logging.getLogger(__name__)

NO_FIELDS_MESSAGE = "No supported editable fields found on this page."


class RunState(str, Enum):
    COLLECTING = "collecting"
    DEDUPLICATING = "deduplicating"
    BATCHING = "batching"
    RETRIEVING = "retrieving"
    APPLYING = "applying"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


_ORDER = [
    RunState.COLLECTING,
    RunState.DEDUPLICATING,
    RunState.BATCHING,
    RunState.RETRIEVING,
    RunState.APPLYING,
    RunState.COMPLETED,
]

TERMINAL_STATES = frozenset({RunState.COMPLETED, RunState.ABANDONED})


class BatchState(str, Enum):
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    DONE = "done"
    FAILED = "failed"


class AutofillRun:
    """State of one run; states only ever move forward."""

    def __init__(self):
        self.state = RunState.COLLECTING
        self.history: List[RunState] = [RunState.COLLECTING]
        self.batch_states: Dict[int, BatchState] = {}
        self.summary = RunSummary(state=self.state.value)

    def advance(self, new_state: RunState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Run already finished in state '{self.state.value}'")
        if new_state != RunState.ABANDONED and _ORDER.index(new_state) <= _ORDER.index(self.state):
            raise RuntimeError(
                f"Illegal transition {self.state.value} -> {new_state.value}"
            )
        logger.debug(f"Run state {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)
        self.summary.state = new_state.value


class AutofillEngine:
    """
    Drives one bulk autofill run over a page channel.

    ``page`` is anything with ``list_fields(include_sensitive)`` and
    ``fill_field(uid, value, allow_sensitive)`` coroutines, normally a
    :class:`~autofill_core.page.session.PageSession`. ``client`` needs an
    ``answer_batch(credentials, fields)`` coroutine.
    """

    def __init__(
        self,
        page,
        client,
        reporter: Optional[StatusReporter] = None,
        batch_size: int = 4,
        concurrency: int = 2,
        max_attempts: int = 3,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        jitter: float = DEFAULT_JITTER,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.page = page
        self.client = client
        self.reporter = reporter or StatusReporter()
        self.batch_size = batch_size
        self.concurrency = concurrency
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.jitter = jitter
        self.sleep = sleep
        self.last_run: Optional[AutofillRun] = None

    @classmethod
    def from_config(cls, config: Config, page, client, reporter: Optional[StatusReporter] = None):
        return cls(
            page,
            client,
            reporter=reporter,
            batch_size=config.batch_size,
            concurrency=config.concurrency,
            max_attempts=config.max_attempts,
        )

    def _abandon(self, run: AutofillRun, message: str) -> RunSummary:
        self.reporter.status(message, error=True)
        run.summary.errors.append(message)
        run.advance(RunState.ABANDONED)
        return run.summary

    async def run(self, credentials: Credentials) -> RunSummary:
        run = AutofillRun()
        self.last_run = run
        summary = run.summary

        try:
            credentials = credentials.normalized().validate()
        except ConfigurationError as e:
            return self._abandon(run, str(e))

        try:
            fields = await self.page.list_fields(False)
        except Exception as e:
            logger.error(f"Field collection failed: {e}")
            return self._abandon(run, f"Unable to read form fields from page: {describe_error(e)}")

        summary.total_fields = len(fields)
        if not fields:
            self.reporter.status(NO_FIELDS_MESSAGE)
            run.advance(RunState.COMPLETED)
            return summary

        self.reporter.status(f"Found {len(fields)} field(s). Filling now...")

        run.advance(RunState.DEDUPLICATING)
        unique, fingerprint_of = group_by_fingerprint(fields)
        summary.unique_fields = len(unique)

        run.advance(RunState.BATCHING)
        batches = make_batches(unique, self.batch_size)
        summary.batches = len(batches)
        logger.info(
            f"{len(fields)} field(s), {len(unique)} unique, {len(batches)} batch(es) "
            f"of up to {self.batch_size}"
        )

        run.advance(RunState.RETRIEVING)
        answers, errors = await self._retrieve(run, batches, fingerprint_of, credentials)

        run.advance(RunState.APPLYING)
        await self._apply(run, fields, fingerprint_of, answers, errors)

        self.reporter.status(f"Completed. Filled {summary.filled}, skipped {summary.skipped}.")
        run.advance(RunState.COMPLETED)
        return summary

    async def _retrieve(
        self,
        run: AutofillRun,
        batches: List[List[FieldDescriptor]],
        fingerprint_of: Dict[str, str],
        credentials: Credentials,
    ):
        """Resolve every batch; returns (fingerprint -> answer, fingerprint -> error)."""
        answers: Dict[str, str] = {}
        errors: Dict[str, str] = {}
        for number in range(len(batches)):
            run.batch_states[number] = BatchState.PENDING

        @retry_async(
            max_attempts=self.max_attempts,
            initial_delay=self.initial_delay,
            max_delay=self.max_delay,
            jitter=self.jitter,
            sleep=self.sleep,
        )
        async def _call(batch: List[FieldDescriptor]) -> Dict[str, str]:
            run.summary.retrieval_calls += 1
            return await self.client.answer_batch(credentials, batch)

        async def _worker(numbered):
            number, batch = numbered
            run.batch_states[number] = BatchState.IN_FLIGHT
            try:
                result = await _call(batch)
            except Exception:
                run.batch_states[number] = BatchState.FAILED
                raise
            run.batch_states[number] = BatchState.DONE
            return result

        outcomes = await run_bounded(list(enumerate(batches)), _worker, limit=self.concurrency)

        for outcome in outcomes:
            number, batch = outcome.item
            if outcome.ok:
                for field in batch:
                    answer = (outcome.value or {}).get(field.uid)
                    if answer:
                        answers[fingerprint_of[field.uid]] = answer
                logger.debug(f"Batch {number + 1} resolved {len(outcome.value or {})} answer(s)")
            else:
                message = describe_error(outcome.error)
                logger.warning(f"Batch {number + 1} failed: {message}")
                run.summary.errors.append(f"batch {number + 1}: {message}")
                for field in batch:
                    errors[fingerprint_of[field.uid]] = message
        return answers, errors

    async def _apply(
        self,
        run: AutofillRun,
        fields: Sequence[FieldDescriptor],
        fingerprint_of: Dict[str, str],
        answers: Dict[str, str],
        errors: Dict[str, str],
    ) -> None:
        summary = run.summary
        total = len(fields)
        for position, field in enumerate(fields, start=1):
            prefix = f"[{position}/{total}]"
            label = field.display_name
            key = fingerprint_of[field.uid]

            if key in errors:
                summary.skipped += 1
                self.reporter.progress(f"{prefix} Error: {label} -> {errors[key]}", error=True)
                continue

            answer = answers.get(key)
            if not answer:
                summary.skipped += 1
                self.reporter.progress(f"{prefix} Not found: {label}")
                continue

            try:
                result = await self.page.fill_field(field.uid, answer, allow_sensitive=False)
                ok, error = result.ok, result.error
            except Exception as e:
                logger.error(f"Fill of {field.uid} raised: {e}")
                ok, error = False, describe_error(e)

            if ok:
                summary.filled += 1
                self.reporter.progress(f"{prefix} Filled: {label}")
            else:
                summary.skipped += 1
                self.reporter.progress(f"{prefix} Could not fill: {label} ({error or 'unknown error'})", error=True)


def make_batches(fields: Sequence[FieldDescriptor], size: int) -> List[List[FieldDescriptor]]:
    return [list(fields[i:i + size]) for i in range(0, len(fields), size)]
