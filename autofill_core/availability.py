"""Detection of fillable forms on the current page."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .events import AVAILABILITY, StatusReporter

logger = logging.getLogger(__name__)

DEFAULT_SETTLE_DELAY = 0.5

FORM_DETECTED = "Form detected on this page."
NO_FORM = "No fillable form on this page."


async def probe_availability(channel) -> bool:
    """``has_fillable_forms()``, falling back to a non-empty ``list_fields(False)``."""
    try:
        return bool(await channel.has_fillable_forms())
    except Exception as e:
        logger.debug(f"has_fillable_forms failed, falling back to list_fields: {e}")
    try:
        return bool(await channel.list_fields(False))
    except Exception as e:
        logger.warning(f"Availability probe failed: {e}")
        return False


class AvailabilityMonitor:
    """Tracks whether a page offers a fillable form; emits on change only."""

    def __init__(
        self,
        channel,
        reporter: Optional[StatusReporter] = None,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.channel = channel
        self.reporter = reporter or StatusReporter()
        self.settle_delay = settle_delay
        self.sleep = sleep
        self.has_form: Optional[bool] = None

    async def check(self) -> bool:
        has_form = await probe_availability(self.channel)
        if has_form != self.has_form:
            self.has_form = has_form
            self.reporter.emit(AVAILABILITY, FORM_DETECTED if has_form else NO_FORM)
        return has_form

    async def refresh(self) -> bool:
        """Probe now and once more after the settle delay for late-rendered forms."""
        await self.check()
        await self.sleep(self.settle_delay)
        return await self.check()
