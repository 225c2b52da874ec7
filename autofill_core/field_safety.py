"""
Field sensitivity classification.

A flat, ordered rule table: the first rule that matches decides. Rules only
look at field metadata and never touch the page, so the same table serves
live element snapshots (hover flow, apply-time re-checks) and detached
descriptors (bulk collection).

Usage:
    from autofill_core.field_safety import classify_descriptor

    verdict = classify_descriptor({"tag": "input", "type": "password"})
    verdict.sensitive  # True
    verdict.reason     # "input type 'password'"
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Tuple, Union

from .models import FieldDescriptor
from .sanitize import clean_text, lowered

SENSITIVE_INPUT_TYPES = frozenset({"password"})

SENSITIVE_AUTOCOMPLETE_TOKENS = frozenset({
    "current-password",
    "new-password",
    "one-time-code",
    "cc-name",
    "cc-given-name",
    "cc-additional-name",
    "cc-family-name",
    "cc-number",
    "cc-exp",
    "cc-exp-month",
    "cc-exp-year",
    "cc-csc",
    "cc-type",
    "transaction-amount",
    "transaction-currency",
    "bday",
    "bday-day",
    "bday-month",
    "bday-year",
    "sex",
    "tel",
    "tel-country-code",
    "tel-national",
    "tel-area-code",
    "tel-local",
    "tel-extension",
})

SENSITIVE_PATTERN = re.compile(
    r"(password|passcode|otp|one[-_ ]?time|2fa|mfa|token|security\s*code|verification\s*code"
    r"|cvv|cvc|card\s*number|credit\s*card|debit\s*card|routing|iban|swift|ssn"
    r"|social\s*security|tax\s*id|tin|ein|passport|driver('|’)s?\s*license|bank\s*account)",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class Sensitivity:
    sensitive: bool
    reason: str = ""


NOT_SENSITIVE = Sensitivity(False, "")


@dataclass(frozen=True)
class _FieldFacts:
    """Normalized view both call shapes are reduced to before rules run."""

    tag: str
    input_type: str
    autocomplete_tokens: Tuple[str, ...]
    text: str


Rule = Tuple[str, Callable[[_FieldFacts], Optional[str]]]


def _rule_input_type(facts: _FieldFacts) -> Optional[str]:
    if facts.tag == "input" and facts.input_type in SENSITIVE_INPUT_TYPES:
        return f"input type '{facts.input_type}'"
    return None


def _rule_autocomplete(facts: _FieldFacts) -> Optional[str]:
    for token in facts.autocomplete_tokens:
        if token in SENSITIVE_AUTOCOMPLETE_TOKENS:
            return f"autocomplete '{token}'"
    return None


def _rule_text_pattern(facts: _FieldFacts) -> Optional[str]:
    if facts.text and SENSITIVE_PATTERN.search(facts.text):
        return "field metadata matched sensitive pattern"
    return None


RULES: List[Rule] = [
    ("input_type", _rule_input_type),
    ("autocomplete", _rule_autocomplete),
    ("text_pattern", _rule_text_pattern),
]


def _evaluate(facts: _FieldFacts) -> Sensitivity:
    for _name, rule in RULES:
        reason = rule(facts)
        if reason:
            return Sensitivity(True, reason)
    return NOT_SENSITIVE


def _tokens(autocomplete: Any) -> Tuple[str, ...]:
    value = lowered(autocomplete)
    return tuple(value.split()) if value else ()


def _join_text(*parts: Any) -> str:
    return " ".join(p for p in (clean_text(x) for x in parts) if p)


def classify_element(element: Optional[Mapping[str, Any]], label: str = "") -> Sensitivity:
    """Classify a live element snapshot (as returned by the page driver).

    ``element`` uses the driver's snapshot keys (``tag``, ``type``, ``name``,
    ``id``, ``placeholder``, ``ariaLabel``, ``autocomplete``). An empty input
    type counts as ``text``, mirroring ``HTMLInputElement.type``.
    """
    if not element:
        return NOT_SENSITIVE
    tag = lowered(element.get("tag"))
    if not tag:
        return NOT_SENSITIVE
    input_type = lowered(element.get("type")) or "text"
    facts = _FieldFacts(
        tag=tag,
        input_type=input_type,
        autocomplete_tokens=_tokens(element.get("autocomplete")),
        text=_join_text(
            label,
            element.get("name"),
            element.get("id"),
            element.get("placeholder"),
            element.get("ariaLabel"),
        ),
    )
    return _evaluate(facts)


def classify_descriptor(field: Union[FieldDescriptor, Mapping[str, Any], None]) -> Sensitivity:
    """Classify a detached descriptor (dataclass or wire-format mapping)."""
    if field is None:
        return NOT_SENSITIVE
    if isinstance(field, FieldDescriptor):
        data: Mapping[str, Any] = field.to_dict()
    elif isinstance(field, Mapping):
        data = field
    else:
        return NOT_SENSITIVE

    facts = _FieldFacts(
        tag=lowered(data.get("tag")),
        input_type=lowered(data.get("type")),
        autocomplete_tokens=_tokens(data.get("autocomplete")),
        text=_join_text(
            data.get("label"),
            data.get("name"),
            data.get("id"),
            data.get("placeholder"),
            data.get("ariaLabel", data.get("aria_label")),
        ),
    )
    return _evaluate(facts)


def classify(field: Union[FieldDescriptor, Mapping[str, Any], None]) -> Sensitivity:
    """Alias of :func:`classify_descriptor`; the default call shape."""
    return classify_descriptor(field)
