"""
Interactive one-field autofill.

``SingleFieldFlow`` answers and fills exactly one field, asking for consent
first when the field is sensitive. ``HoverTrigger`` starts the flow when the
user rests the pointer on a control.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Set, Union

from .config import Credentials
from .error_handler import describe_error
from .events import StatusReporter
from .exceptions import ConfigurationError, RetrievalError
from .field_safety import classify_descriptor
from .models import FieldDescriptor

logger = logging.getLogger(__name__)

FILLED = "filled"
NO_ANSWER = "no_answer"
ERROR = "error"
DECLINED = "declined"

FIELD_NOT_FOUND = "Field not found in page context."

HOVER_BINDING = "__affHover"
DEFAULT_HOVER_DEBOUNCE_MS = 600

ConfirmCallback = Callable[[FieldDescriptor, str], Union[bool, Awaitable[bool]]]
CredentialsProvider = Callable[[], Credentials]


@dataclass
class SingleFieldResult:
    status: str
    uid: str
    value: Optional[str] = None
    error: Optional[str] = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.status == FILLED


class SingleFieldFlow:
    """
    One-field flow: fresh extraction, consent, one retrieval call, fill.

    ``confirm`` is asked only for sensitive fields; without a callback every
    sensitive field is declined. ``credentials`` may be a Credentials value
    or a zero-argument callable returning one.
    """

    def __init__(
        self,
        page,
        client,
        credentials: Union[Credentials, CredentialsProvider],
        confirm: Optional[ConfirmCallback] = None,
        reporter: Optional[StatusReporter] = None,
    ):
        self.page = page
        self.client = client
        self._credentials = credentials
        self.confirm = confirm
        self.reporter = reporter or StatusReporter()

    def _resolve_credentials(self) -> Credentials:
        credentials = self._credentials() if callable(self._credentials) else self._credentials
        return credentials.normalized().validate()

    async def _ask_consent(self, descriptor: FieldDescriptor, reason: str) -> bool:
        if self.confirm is None:
            return False
        answer = self.confirm(descriptor, reason)
        if inspect.isawaitable(answer):
            answer = await answer
        return bool(answer)

    def _report(self, result: SingleFieldResult, label: str) -> SingleFieldResult:
        if result.status == FILLED:
            self.reporter.progress(f"Filled: {label}")
        elif result.status == NO_ANSWER:
            self.reporter.progress(f"Not found: {label}")
        elif result.status == DECLINED:
            self.reporter.progress(f"Skipped sensitive field: {label}")
        else:
            self.reporter.progress(f"Could not fill: {label} ({result.error})", error=True)
        return result

    async def run(self, uid: str) -> SingleFieldResult:
        try:
            credentials = self._resolve_credentials()
        except ConfigurationError as e:
            return self._report(SingleFieldResult(ERROR, uid, error=str(e)), uid)

        try:
            descriptor = await self.page.describe(uid)
        except Exception as e:
            logger.error(f"Reading field {uid} raised: {e}")
            return self._report(SingleFieldResult(ERROR, uid, error=describe_error(e)), uid)
        if descriptor is None:
            return self._report(SingleFieldResult(ERROR, uid, error=FIELD_NOT_FOUND), uid)
        label = descriptor.display_name

        verdict = classify_descriptor(descriptor)
        confirmed = False
        if verdict.sensitive:
            try:
                confirmed = await self._ask_consent(descriptor, verdict.reason)
            except Exception as e:
                logger.error(f"Consent prompt for {label} raised: {e}")
                return self._report(
                    SingleFieldResult(ERROR, uid, error=describe_error(e), reason=verdict.reason), label
                )
            if not confirmed:
                logger.info(f"Sensitive field {label} declined ({verdict.reason})")
                return self._report(SingleFieldResult(DECLINED, uid, reason=verdict.reason), label)

        try:
            answers = await self.client.answer_batch(credentials, [descriptor])
        except Exception as e:
            if not isinstance(e, RetrievalError):
                logger.error(f"Retrieval for {label} raised: {e}")
            return self._report(
                SingleFieldResult(ERROR, uid, error=describe_error(e), reason=verdict.reason), label
            )

        answer = answers.get(uid)
        if not answer:
            return self._report(SingleFieldResult(NO_ANSWER, uid, reason=verdict.reason), label)

        try:
            result = await self.page.fill_field(uid, answer, allow_sensitive=confirmed)
            ok, error = result.ok, result.error
        except Exception as e:
            logger.error(f"Fill of {uid} raised: {e}")
            ok, error = False, describe_error(e)
        if not ok:
            return self._report(
                SingleFieldResult(ERROR, uid, value=answer, error=error, reason=verdict.reason),
                label,
            )
        return self._report(SingleFieldResult(FILLED, uid, value=answer, reason=verdict.reason), label)


class HoverTrigger:
    """
    Runs the single-field flow for the control the pointer rests on.

    Each hover restarts the debounce timer; only the last hover within the
    window fires. Once the timer expires the flow runs as its own task and a
    later hover no longer cancels it. Timer and results belong to this
    instance.
    """

    def __init__(self, session, flow: SingleFieldFlow, debounce_ms: int = DEFAULT_HOVER_DEBOUNCE_MS):
        self.session = session
        self.flow = flow
        self.debounce = debounce_ms / 1000.0
        self.results: List[SingleFieldResult] = []
        self._pending: Optional[asyncio.Task] = None
        self._running: Set[asyncio.Task] = set()

    async def install(self) -> None:
        await self.session.driver.install_hover_listener(HOVER_BINDING, self.on_hover)

    async def on_hover(self, payload) -> None:
        index = payload.get("index") if isinstance(payload, dict) else None
        if not isinstance(index, int) or index < 0:
            return
        self.schedule(index)

    def schedule(self, index: int) -> asyncio.Task:
        """Restart the debounce timer for ``index``. Flows already started are left alone."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = asyncio.ensure_future(self._debounce(index))
        return self._pending

    async def _debounce(self, index: int) -> asyncio.Task:
        await asyncio.sleep(self.debounce)
        task = asyncio.ensure_future(self._fire(index))
        self._running.add(task)
        task.add_done_callback(self._running.discard)
        return task

    async def _fire(self, index: int) -> Optional[SingleFieldResult]:
        try:
            uid = await self.session.uid_at(index)
        except Exception as e:
            logger.error(f"Resolving hovered element {index} raised: {e}")
            self.flow.reporter.progress(f"Could not fill: element {index} ({describe_error(e)})", error=True)
            return None
        if not uid:
            logger.debug(f"Hovered element {index} is not fillable")
            return None
        result = await self.flow.run(uid)
        self.results.append(result)
        return result

    async def wait(self) -> Optional[SingleFieldResult]:
        """
        Await the last hover's flow and any flow still in flight.

        Returns the last hover's result, or None when it was cancelled or
        pointed at an element that cannot be filled.
        """
        result = None
        if self._pending is not None:
            try:
                task = await self._pending
            except asyncio.CancelledError:
                task = None
            if task is not None:
                result = await task
        if self._running:
            await asyncio.gather(*list(self._running))
        return result

    async def close(self) -> None:
        """Drop a hover still in its debounce window and let started flows finish."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
            try:
                await self._pending
            except asyncio.CancelledError:
                pass
        self._pending = None
        if self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)
