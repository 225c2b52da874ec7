"""
Field extraction.

Turns the driver's raw element records into :class:`FieldDescriptor` objects:
filters ineligible controls, resolves labels, stamps uids and classifies
sensitivity.
"""

import logging
import secrets
from typing import Any, Dict, List, Mapping, Optional

from ..field_safety import classify_descriptor
from ..models import MAX_SELECT_OPTIONS, FieldDescriptor
from ..sanitize import clean_text, lowered
from .driver import PageDriver

logger = logging.getLogger(__name__)

FIELD_TAGS = ("input", "textarea", "select")

NON_FILLABLE_INPUT_TYPES = frozenset({
    "hidden",
    "submit",
    "button",
    "reset",
    "file",
    "image",
    "range",
    "color",
})

# aria-label > aria-labelledby > <label for> > ancestor <label> > sibling text
LABEL_PRIORITY = ("aria", "labelledBy", "explicit", "wrapped", "siblings")


def is_visible(record: Mapping[str, Any]) -> bool:
    if lowered(record.get("display")) == "none":
        return False
    if lowered(record.get("visibility")) == "hidden":
        return False
    width = record.get("width") or 0
    height = record.get("height") or 0
    return width > 0 and height > 0


def is_eligible(record: Mapping[str, Any]) -> bool:
    """True when the control can receive an autofilled value."""
    tag = lowered(record.get("tag"))
    if tag not in FIELD_TAGS:
        return False
    if record.get("disabled") or record.get("readOnly"):
        return False
    if not is_visible(record):
        return False
    if tag == "input" and lowered(record.get("type")) in NON_FILLABLE_INPUT_TYPES:
        return False
    return True


def resolve_label(sources: Optional[Mapping[str, Any]]) -> str:
    if not sources:
        return ""
    for key in LABEL_PRIORITY:
        text = clean_text(sources.get(key))
        if text:
            return text
    return ""


def option_texts(record: Mapping[str, Any]) -> Optional[List[str]]:
    if lowered(record.get("tag")) != "select":
        return None
    texts = []
    for option in record.get("options") or []:
        text = clean_text(option.get("text")) or clean_text(option.get("value"))
        if text:
            texts.append(text)
    return texts[:MAX_SELECT_OPTIONS]


def build_descriptor(record: Mapping[str, Any], uid: str) -> FieldDescriptor:
    """Descriptor for one element record, classified but not filtered."""
    descriptor = FieldDescriptor(
        uid=uid,
        tag=lowered(record.get("tag")),
        type=lowered(record.get("type")),
        name=clean_text(record.get("name")),
        id=clean_text(record.get("id")),
        placeholder=clean_text(record.get("placeholder")),
        label=resolve_label(record.get("labelSources")),
        aria_label=clean_text(record.get("ariaLabel")),
        autocomplete=clean_text(record.get("autocomplete")),
        required=bool(record.get("required")),
        options=option_texts(record),
    )
    verdict = classify_descriptor(descriptor)
    descriptor.sensitive = verdict.sensitive
    descriptor.sensitive_reason = verdict.reason
    return descriptor


class UidAllocator:
    """Hands out ``aff-<token>-<counter>`` ids for one page session."""

    def __init__(self, token: Optional[str] = None):
        self.token = token or secrets.token_hex(4)
        self.counter = 0

    def next(self) -> str:
        self.counter += 1
        return f"aff-{self.token}-{self.counter}"


class FieldExtractor:
    def __init__(self, driver: PageDriver, allocator: Optional[UidAllocator] = None):
        self.driver = driver
        self.allocator = allocator or UidAllocator()

    async def _assign_uids(
        self,
        records: List[Mapping[str, Any]],
        snapshot: Optional[List[Mapping[str, Any]]] = None,
    ) -> Dict[int, str]:
        """Map document index -> uid, stamping elements that have none yet.

        ``snapshot`` is the full page snapshot the records came from. A uid
        already carried by an earlier element in it (``cloneNode`` copies the
        attribute) is replaced with a fresh one, so each uid names one node.
        """
        wanted = {record["index"] for record in records}
        seen = set()
        uids: Dict[int, str] = {}
        pending = []
        for record in sorted(snapshot or records, key=lambda r: r["index"]):
            index = record["index"]
            existing = clean_text(record.get("uid"))
            copied = bool(existing) and existing in seen
            if existing:
                seen.add(existing)
            if index not in wanted:
                continue
            if existing and not copied:
                uids[index] = existing
                continue
            if copied:
                logger.debug(f"Element at index {index} carries copied uid {existing}, restamping")
            pending.append({
                "index": index,
                "uid": self.allocator.next(),
                "tag": lowered(record.get("tag")),
                "replace": existing if copied else None,
            })

        if pending:
            stamped = await self.driver.stamp(pending)
            for assignment, uid in zip(pending, stamped):
                if uid and uid != assignment["replace"]:
                    uids[assignment["index"]] = uid
                else:
                    logger.debug(f"Element at index {assignment['index']} vanished before stamping")
        return uids

    async def collect(self, include_sensitive: bool = False) -> List[FieldDescriptor]:
        snapshot = await self.driver.snapshot()
        records = [r for r in snapshot if is_eligible(r)]
        uids = await self._assign_uids(records, snapshot)

        descriptors = []
        for record in records:
            uid = uids.get(record["index"])
            if not uid:
                continue
            descriptor = build_descriptor(record, uid)
            if descriptor.sensitive and not include_sensitive:
                logger.debug(f"Skipping sensitive field {descriptor.display_name}: {descriptor.sensitive_reason}")
                continue
            descriptors.append(descriptor)

        logger.info(f"Collected {len(descriptors)} field(s) (include_sensitive={include_sensitive})")
        return descriptors

    async def has_fillable_forms(self) -> bool:
        """Read-only variant of ``bool(collect(False))``."""
        for record in await self.driver.snapshot():
            if not is_eligible(record):
                continue
            if not build_descriptor(record, "probe").sensitive:
                return True
        return False

    async def describe(self, uid: str) -> Optional[FieldDescriptor]:
        record = await self.driver.inspect(uid)
        if not record or not is_eligible(record):
            return None
        return build_descriptor(record, uid)

    async def uid_at(self, index: int) -> Optional[str]:
        """uid of the eligible element at document ``index``, stamping it if needed."""
        snapshot = await self.driver.snapshot()
        for record in snapshot:
            if record.get("index") != index:
                continue
            if not is_eligible(record):
                return None
            uids = await self._assign_uids([record], snapshot)
            return uids.get(index)
        return None
