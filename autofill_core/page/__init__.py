"""Page-context side: driver, extraction, application and the session protocol."""

from .applicator import FillApplicator
from .driver import UID_ATTRIBUTE, PageDriver, PlaywrightDriver
from .extractor import FieldExtractor, UidAllocator, is_eligible, resolve_label
from .session import PageSession

__all__ = [
    "FieldExtractor",
    "FillApplicator",
    "PageDriver",
    "PageSession",
    "PlaywrightDriver",
    "UID_ATTRIBUTE",
    "UidAllocator",
    "is_eligible",
    "resolve_label",
]
