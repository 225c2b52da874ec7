"""
Page session: the page-side endpoint of the autofill protocol.

One ``PageSession`` is bound to one loaded page. It owns the uid registry
(the stamps in the DOM plus the allocator counter) and serves the three
request/response operations, either as methods or through
:meth:`PageSession.handle_message`.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from ..models import ApplyResult, FieldDescriptor
from .applicator import FillApplicator
from .driver import PageDriver, PlaywrightDriver
from .extractor import FieldExtractor, UidAllocator

logger = logging.getLogger(__name__)

GET_FORM_FIELDS = "GET_FORM_FIELDS"
FILL_FORM_FIELD = "FILL_FORM_FIELD"
HAS_FILLABLE_FORMS = "HAS_FILLABLE_FORMS"

UNSUPPORTED_MESSAGE = "Unsupported message."


class PageSession:
    def __init__(self, driver: PageDriver, token: Optional[str] = None):
        self.driver = driver
        self.allocator = UidAllocator(token)
        self.extractor = FieldExtractor(driver, self.allocator)
        self.applicator = FillApplicator(driver)

    @classmethod
    def for_page(cls, page, token: Optional[str] = None) -> "PageSession":
        """Session over a Playwright ``Page``."""
        return cls(PlaywrightDriver(page), token=token)

    @property
    def token(self) -> str:
        return self.allocator.token

    async def list_fields(self, include_sensitive: bool = False) -> List[FieldDescriptor]:
        return await self.extractor.collect(include_sensitive=include_sensitive)

    async def fill_field(self, uid: str, value: Any, allow_sensitive: bool = False) -> ApplyResult:
        return await self.applicator.apply(uid, value, allow_sensitive=allow_sensitive)

    async def has_fillable_forms(self) -> bool:
        return await self.extractor.has_fillable_forms()

    async def describe(self, uid: str) -> Optional[FieldDescriptor]:
        return await self.extractor.describe(uid)

    async def uid_at(self, index: int) -> Optional[str]:
        return await self.extractor.uid_at(index)

    async def handle_message(self, message: Any) -> Dict[str, Any]:
        """
        Dispatch one protocol message.

        Returns:
            GET_FORM_FIELDS    -> {"ok": True, "fields": [descriptor dicts]}
            FILL_FORM_FIELD    -> {"ok": bool, "error"?: str}
            HAS_FILLABLE_FORMS -> {"ok": True, "hasForm": bool}
            anything else      -> {"ok": False, "error": "Unsupported message."}
        """
        if not isinstance(message, Mapping):
            return {"ok": False, "error": UNSUPPORTED_MESSAGE}

        kind = message.get("type")
        try:
            if kind == GET_FORM_FIELDS:
                fields = await self.list_fields(bool(message.get("includeSensitive")))
                return {"ok": True, "fields": [f.to_dict() for f in fields]}

            if kind == FILL_FORM_FIELD:
                uid = message.get("uid")
                if not isinstance(uid, str) or not uid:
                    return {"ok": False, "error": UNSUPPORTED_MESSAGE}
                result = await self.fill_field(
                    uid,
                    message.get("value"),
                    allow_sensitive=bool(message.get("allowSensitive")),
                )
                return result.to_dict()

            if kind == HAS_FILLABLE_FORMS:
                return {"ok": True, "hasForm": await self.has_fillable_forms()}
        except Exception as e:
            logger.error(f"Page message {kind} failed: {e}")
            return {"ok": False, "error": str(e) or type(e).__name__}

        return {"ok": False, "error": UNSUPPORTED_MESSAGE}
