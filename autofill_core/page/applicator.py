"""
Writing values into page controls.

``FillApplicator.apply`` never raises for page-state problems; every failure
comes back as ``ApplyResult(ok=False, error=...)`` and leaves the page
untouched.
"""

import logging
from typing import Any, List, Mapping, Optional

from ..field_safety import classify_element
from ..models import ApplyResult
from ..sanitize import clean_text, lowered
from .driver import PageDriver
from .extractor import resolve_label

logger = logging.getLogger(__name__)

FIELD_NOT_FOUND = "Field not found in page context."
SENSITIVE_REFUSED = "Refusing to fill a sensitive field without explicit confirmation."
EMPTY_VALUE = "Empty value was provided."
NO_SELECT_MATCH = "No matching option found for select field."
CHECKBOX_NOT_BOOLEAN = "Checkbox value must resolve to true/false."
RADIO_NO_GROUP = "Radio button has no name group."
NO_RADIO_MATCH = "No matching radio option found."

TRUTHY_VALUES = frozenset({"true", "yes", "1", "checked"})
FALSY_VALUES = frozenset({"false", "no", "0", "unchecked"})


def parse_checkbox_value(value: str) -> Optional[bool]:
    normalized = lowered(value)
    if normalized in TRUTHY_VALUES:
        return True
    if normalized in FALSY_VALUES:
        return False
    return None


def match_select_option(options: List[Mapping[str, Any]], value: str) -> Optional[int]:
    """
    Index of the option best matching ``value``.

    Exact (case-insensitive) on text or value first, then the first option
    whose text contains the value or is contained by it.
    """
    target = lowered(value)
    if not target:
        return None

    candidates = []
    for option in options:
        option_value = lowered(option.get("value"))
        candidates.append((lowered(option.get("text")) or option_value, option_value))

    for position, (text, option_value) in enumerate(candidates):
        if text == target or option_value == target:
            return position

    # Deliberately narrower than a plain substring match: empty option texts are
    # skipped, otherwise a blank placeholder option would take any value.
    for position, (text, _) in enumerate(candidates):
        if text and (target in text or text in target):
            return position
    return None


def match_radio_option(group: List[Mapping[str, Any]], value: str) -> Optional[int]:
    """Index within the radio group whose label or value matches ``value``."""
    target = lowered(value)
    if not target:
        return None

    candidates = [
        (lowered(resolve_label(radio.get("labelSources"))), lowered(radio.get("value")))
        for radio in group
    ]

    for position, (label, radio_value) in enumerate(candidates):
        if label == target or radio_value == target:
            return position

    for position, (label, radio_value) in enumerate(candidates):
        if target in label or target in radio_value:
            return position
    return None


class FillApplicator:
    def __init__(self, driver: PageDriver):
        self.driver = driver

    async def apply(self, uid: str, value: Any, allow_sensitive: bool = False) -> ApplyResult:
        record = await self.driver.inspect(uid)
        if not record:
            return ApplyResult.failure(FIELD_NOT_FOUND)

        label = resolve_label(record.get("labelSources"))
        verdict = classify_element(record, label)
        if verdict.sensitive and not allow_sensitive:
            logger.info(f"Refused sensitive field {uid}: {verdict.reason}")
            return ApplyResult.failure(SENSITIVE_REFUSED)

        text = clean_text(value)
        if not text:
            return ApplyResult.failure(EMPTY_VALUE)

        tag = lowered(record.get("tag"))
        input_type = lowered(record.get("type"))

        if tag == "select":
            position = match_select_option(record.get("options") or [], text)
            if position is None:
                return ApplyResult.failure(NO_SELECT_MATCH)
            written = await self.driver.select_option(uid, position)

        elif tag == "input" and input_type == "checkbox":
            checked = parse_checkbox_value(text)
            if checked is None:
                return ApplyResult.failure(CHECKBOX_NOT_BOOLEAN)
            written = await self.driver.set_checked(uid, checked)

        elif tag == "input" and input_type == "radio":
            if not clean_text(record.get("name")):
                return ApplyResult.failure(RADIO_NO_GROUP)
            position = match_radio_option(record.get("group") or [], text)
            if position is None:
                return ApplyResult.failure(NO_RADIO_MATCH)
            written = await self.driver.check_radio(uid, position)

        else:
            written = await self.driver.set_text(uid, text)

        if not written:
            # element disappeared between inspect and write
            return ApplyResult.failure(FIELD_NOT_FOUND)
        logger.debug(f"Filled {uid} ({tag}/{input_type})")
        return ApplyResult.success()
