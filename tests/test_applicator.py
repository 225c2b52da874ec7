"""Tests for writing values into page controls."""

import pytest

from autofill_core.page.applicator import (
    CHECKBOX_NOT_BOOLEAN,
    EMPTY_VALUE,
    FIELD_NOT_FOUND,
    NO_RADIO_MATCH,
    NO_SELECT_MATCH,
    RADIO_NO_GROUP,
    SENSITIVE_REFUSED,
    FillApplicator,
    match_select_option,
    parse_checkbox_value,
)
from mocks.fake_page import FakeDriver, FakeElement


def _stamped(*elements):
    for number, element in enumerate(elements, start=1):
        element.attributes["data-aff-uid"] = f"aff-t-{number}"
    return FakeDriver(list(elements))


class TestTextFields:

    @pytest.mark.asyncio
    async def test_sets_value_and_dispatches_events(self):
        driver = _stamped(FakeElement(name="city"))
        result = await FillApplicator(driver).apply("aff-t-1", "  Porto \n Alegre ")

        assert result.ok is True
        assert driver.elements[0].value == "Porto Alegre"
        assert driver.events == [("aff-t-1", "input"), ("aff-t-1", "change")]
        assert len(driver.mutations) == 1

    @pytest.mark.asyncio
    async def test_empty_value(self):
        driver = _stamped(FakeElement(name="city"))
        result = await FillApplicator(driver).apply("aff-t-1", "   ")

        assert result.ok is False
        assert result.error == EMPTY_VALUE
        assert driver.mutations == []

    @pytest.mark.asyncio
    async def test_missing_uid_does_not_raise(self):
        driver = _stamped(FakeElement(name="city"))
        result = await FillApplicator(driver).apply("aff-gone-7", "x")

        assert result.ok is False
        assert result.error == FIELD_NOT_FOUND


class TestSensitiveRecheck:

    @pytest.mark.asyncio
    async def test_refused_without_permission(self):
        driver = _stamped(FakeElement(type="password", name="pwd"))
        result = await FillApplicator(driver).apply("aff-t-1", "hunter2")

        assert result.error == SENSITIVE_REFUSED
        assert driver.mutations == []

    @pytest.mark.asyncio
    async def test_label_turned_sensitive_after_collection(self):
        driver = _stamped(FakeElement(name="field_3", label="Notes"))
        driver.elements[0].label = "Passport number"
        result = await FillApplicator(driver).apply("aff-t-1", "X123")
        assert result.error == SENSITIVE_REFUSED

    @pytest.mark.asyncio
    async def test_allowed_with_permission(self):
        driver = _stamped(FakeElement(type="password", name="pwd"))
        result = await FillApplicator(driver).apply("aff-t-1", "hunter2", allow_sensitive=True)
        assert result.ok is True


class TestSelect:

    @pytest.mark.asyncio
    async def test_case_insensitive_exact_match(self):
        driver = _stamped(FakeElement(tag="select", name="country",
                                      options=["Select...", "Canada", "Mexico"]))
        result = await FillApplicator(driver).apply("aff-t-1", "canada")

        assert result.ok is True
        assert driver.elements[0].selected_text == "Canada"
        assert driver.events == [("aff-t-1", "change")]

    @pytest.mark.asyncio
    async def test_matches_option_value(self):
        driver = _stamped(FakeElement(tag="select", name="country",
                                      options=[("Canada", "CA"), ("Mexico", "MX")]))
        await FillApplicator(driver).apply("aff-t-1", "mx")
        assert driver.elements[0].selected_text == "Mexico"

    @pytest.mark.asyncio
    async def test_no_match(self):
        driver = _stamped(FakeElement(tag="select", name="country", options=["Canada", "Mexico"]))
        result = await FillApplicator(driver).apply("aff-t-1", "Atlantis")

        assert result.error == NO_SELECT_MATCH
        assert driver.mutations == []

    def test_substring_fallback(self):
        options = [{"text": "United States of America", "value": "us"}, {"text": "Spain", "value": "es"}]
        assert match_select_option(options, "Spain (ES)") == 1
        assert match_select_option(options, "states") == 0

    def test_exact_beats_substring(self):
        options = [{"text": "Canada East", "value": "ce"}, {"text": "Canada", "value": "ca"}]
        assert match_select_option(options, "CANADA") == 1

    def test_empty_options_never_match_by_substring(self):
        options = [{"text": "", "value": ""}, {"text": "Mexico", "value": "mx"}]
        assert match_select_option(options, "mexico city") == 1


class TestCheckbox:

    @pytest.mark.parametrize("value, expected", [
        ("yes", True), ("TRUE", True), ("1", True), ("checked", True),
        ("no", False), ("false", False), ("0", False), ("Unchecked", False),
        ("maybe", None),
    ])
    def test_parse(self, value, expected):
        assert parse_checkbox_value(value) is expected

    @pytest.mark.asyncio
    async def test_yes_checks(self):
        driver = _stamped(FakeElement(type="checkbox", name="subscribe"))
        result = await FillApplicator(driver).apply("aff-t-1", "yes")

        assert result.ok is True
        assert driver.elements[0].checked is True

    @pytest.mark.asyncio
    async def test_maybe_rejected(self):
        driver = _stamped(FakeElement(type="checkbox", name="subscribe"))
        result = await FillApplicator(driver).apply("aff-t-1", "maybe")

        assert result.error == CHECKBOX_NOT_BOOLEAN
        assert driver.elements[0].checked is False
        assert driver.mutations == []


class TestRadio:

    def _group(self):
        return _stamped(
            FakeElement(type="radio", name="contact", value="email", wrapped_label="By email"),
            FakeElement(type="radio", name="contact", value="phone", wrapped_label="By phone call"),
            FakeElement(type="radio", name="contact", value="post", wrapped_label="By post"),
        )

    @pytest.mark.asyncio
    async def test_exact_label(self):
        driver = self._group()
        result = await FillApplicator(driver).apply("aff-t-1", "by post")

        assert result.ok is True
        assert [e.checked for e in driver.elements] == [False, False, True]

    @pytest.mark.asyncio
    async def test_exact_value(self):
        driver = self._group()
        await FillApplicator(driver).apply("aff-t-3", "PHONE")
        assert [e.checked for e in driver.elements] == [False, True, False]

    @pytest.mark.asyncio
    async def test_substring_label(self):
        driver = self._group()
        await FillApplicator(driver).apply("aff-t-1", "call")
        assert driver.elements[1].checked is True

    @pytest.mark.asyncio
    async def test_no_match(self):
        driver = self._group()
        result = await FillApplicator(driver).apply("aff-t-1", "carrier pigeon")
        assert result.error == NO_RADIO_MATCH
        assert driver.mutations == []

    @pytest.mark.asyncio
    async def test_no_name_group(self):
        driver = _stamped(FakeElement(type="radio", value="yes", wrapped_label="Yes"))
        result = await FillApplicator(driver).apply("aff-t-1", "yes")
        assert result.error == RADIO_NO_GROUP
