"""
Page driver: the only code that talks to the browser.

Every method is a single ``page.evaluate`` round-trip returning plain JSON
data. Element handles never leave the page; elements are addressed by the
uid stamped in ``UID_ATTRIBUTE`` or, before stamping, by document index.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from . import scripts

logger = logging.getLogger(__name__)

UID_ATTRIBUTE = "data-aff-uid"

HoverCallback = Callable[[Dict[str, Any]], Awaitable[None]]


class PageDriver:
    """Interface implemented by the Playwright driver and by test fakes."""

    uid_attribute = UID_ATTRIBUTE

    async def snapshot(self) -> List[Dict[str, Any]]:
        """One record per ``input, textarea, select`` in document order."""
        raise NotImplementedError

    async def stamp(self, assignments: List[Dict[str, Any]]) -> List[Optional[str]]:
        """
        Write uids onto unstamped elements.

        ``assignments`` items are ``{"index", "uid", "tag", "replace"}``. An
        existing stamp wins unless it equals ``replace``, the copied uid of a
        cloned node, which is overwritten. For each assignment the returned
        list holds the uid the element now carries, or None when the element
        at that index is gone or changed tag.
        """
        raise NotImplementedError

    async def inspect(self, uid: str) -> Optional[Dict[str, Any]]:
        """Fresh snapshot record for one stamped element, None if gone."""
        raise NotImplementedError

    async def set_text(self, uid: str, value: str) -> bool:
        raise NotImplementedError

    async def select_option(self, uid: str, position: int) -> bool:
        raise NotImplementedError

    async def set_checked(self, uid: str, checked: bool) -> bool:
        raise NotImplementedError

    async def check_radio(self, uid: str, position: int) -> bool:
        raise NotImplementedError

    async def install_hover_listener(self, binding: str, callback: HoverCallback) -> None:
        raise NotImplementedError


class PlaywrightDriver(PageDriver):
    """Driver over a Playwright async ``Page``."""

    def __init__(self, page, uid_attribute: str = UID_ATTRIBUTE):
        self.page = page
        self.uid_attribute = uid_attribute

    async def _evaluate(self, script: str, **args: Any) -> Any:
        args["uidAttr"] = self.uid_attribute
        return await self.page.evaluate(script, args)

    async def snapshot(self) -> List[Dict[str, Any]]:
        records = await self._evaluate(scripts.SNAPSHOT_FIELDS_JS)
        return list(records or [])

    async def stamp(self, assignments: List[Dict[str, Any]]) -> List[Optional[str]]:
        if not assignments:
            return []
        return list(await self._evaluate(scripts.STAMP_UIDS_JS, assignments=assignments))

    async def inspect(self, uid: str) -> Optional[Dict[str, Any]]:
        return await self._evaluate(scripts.INSPECT_FIELD_JS, uid=uid)

    async def set_text(self, uid: str, value: str) -> bool:
        return bool(await self._evaluate(scripts.SET_TEXT_JS, uid=uid, value=value))

    async def select_option(self, uid: str, position: int) -> bool:
        return bool(await self._evaluate(scripts.SELECT_OPTION_JS, uid=uid, position=position))

    async def set_checked(self, uid: str, checked: bool) -> bool:
        return bool(await self._evaluate(scripts.SET_CHECKED_JS, uid=uid, checked=checked))

    async def check_radio(self, uid: str, position: int) -> bool:
        return bool(await self._evaluate(scripts.CHECK_RADIO_JS, uid=uid, position=position))

    async def install_hover_listener(self, binding: str, callback: HoverCallback) -> None:
        async def _binding(source, payload):
            await callback(payload or {})

        await self.page.expose_binding(binding, _binding)
        installed = await self._evaluate(scripts.INSTALL_HOVER_JS, binding=binding)
        logger.debug(f"Hover listener installed={installed} binding={binding}")
