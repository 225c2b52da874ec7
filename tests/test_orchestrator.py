"""Tests for the bulk autofill engine."""

import pytest

from autofill_core.config import Credentials
from autofill_core.events import StatusReporter
from autofill_core.exceptions import AuthenticationError, RateLimitedError, ServiceUnavailableError
from autofill_core.orchestrator import (
    NO_FIELDS_MESSAGE,
    AutofillEngine,
    AutofillRun,
    BatchState,
    RunState,
    make_batches,
)
from autofill_core.page.session import PageSession
from mocks.fake_page import FakeDriver, FakeElement
from mocks.fake_retrieval import FakeRetrievalClient


def _engine(driver, client, recorded_sleep, **kwargs):
    reporter = StatusReporter()
    engine = AutofillEngine(PageSession(driver, token="r"), client, reporter, sleep=recorded_sleep, **kwargs)
    return engine, reporter


def _contact_form():
    return FakeDriver([
        FakeElement(name="fullName", label="Full name"),
        FakeElement(name="email", label="Email"),
        FakeElement(tag="select", name="country", label="Country", options=["Select...", "Canada", "Mexico"]),
        FakeElement(type="checkbox", name="newsletter", label="Newsletter"),
        FakeElement(type="password", name="pwd", label="Password"),
    ])


class TestHappyPath:

    @pytest.mark.asyncio
    async def test_fills_every_answered_field(self, credentials, recorded_sleep):
        driver = _contact_form()
        client = FakeRetrievalClient({
            "Full name": "Ada Lovelace",
            "Email": "ada@example.com",
            "Country": "canada",
            "Newsletter": "yes",
        })
        engine, reporter = _engine(driver, client, recorded_sleep)

        summary = await engine.run(credentials)

        assert summary.state == "completed"
        assert (summary.filled, summary.skipped) == (4, 0)
        assert driver.by_name("fullName").value == "Ada Lovelace"
        assert driver.by_name("country").selected_text == "Canada"
        assert driver.by_name("newsletter").checked is True
        assert driver.by_name("pwd").value == ""
        assert reporter.messages() == [
            "Found 4 field(s). Filling now...",
            "[1/4] Filled: Full name",
            "[2/4] Filled: Email",
            "[3/4] Filled: Country",
            "[4/4] Filled: Newsletter",
            "Completed. Filled 4, skipped 0.",
        ]

    @pytest.mark.asyncio
    async def test_sensitive_fields_never_sent(self, credentials, recorded_sleep):
        client = FakeRetrievalClient({"Password": "hunter2"})
        engine, _ = _engine(_contact_form(), client, recorded_sleep)
        await engine.run(credentials)

        sent = [label for call in client.calls for label in call]
        assert "Password" not in sent

    @pytest.mark.asyncio
    async def test_not_found_and_could_not_fill(self, credentials, recorded_sleep):
        client = FakeRetrievalClient({"Full name": "Ada", "Country": "Atlantis", "Newsletter": "maybe"})
        engine, reporter = _engine(_contact_form(), client, recorded_sleep)

        summary = await engine.run(credentials)

        assert (summary.filled, summary.skipped) == (1, 3)
        progress = reporter.messages("progress")
        assert progress[1] == "[2/4] Not found: Email"
        assert progress[2] == "[3/4] Could not fill: Country (No matching option found for select field.)"
        assert progress[3] == "[4/4] Could not fill: Newsletter (Checkbox value must resolve to true/false.)"
        assert reporter.messages()[-1] == "Completed. Filled 1, skipped 3."

    @pytest.mark.asyncio
    async def test_cloned_row_is_filled_separately(self, credentials, recorded_sleep):
        driver = FakeDriver([FakeElement(name="email", label="Email")])
        session = PageSession(driver, token="r")
        await session.list_fields()
        driver.add(FakeElement(name="email2", label="Work email", uid=driver.elements[0].uid))

        client = FakeRetrievalClient({"Email": "ada@example.com", "Work email": "ada@work.example"})
        reporter = StatusReporter()
        engine = AutofillEngine(session, client, reporter, sleep=recorded_sleep)
        summary = await engine.run(credentials)

        assert summary.filled == 2
        assert driver.by_name("email").value == "ada@example.com"
        assert driver.by_name("email2").value == "ada@work.example"
        assert len({e.uid for e in driver.elements}) == 2


class TestDeduplication:

    @pytest.mark.asyncio
    async def test_call_bound(self, credentials, recorded_sleep):
        driver = FakeDriver([FakeElement(name=f"field{i % 5}", label=f"Question {i % 5}") for i in range(12)])
        client = FakeRetrievalClient({f"Question {i}": f"answer {i}" for i in range(5)})
        engine, _ = _engine(driver, client, recorded_sleep, batch_size=2)

        summary = await engine.run(credentials)

        assert summary.total_fields == 12
        assert summary.unique_fields == 5
        assert summary.batches == 3
        assert len(client.calls) == 3
        assert summary.filled == 12

    @pytest.mark.asyncio
    async def test_fan_out_to_duplicates(self, credentials, recorded_sleep):
        driver = FakeDriver([
            FakeElement(name="email", label="Email"),
            FakeElement(name="city", label="City"),
            FakeElement(name="email", label="Email"),
        ])
        client = FakeRetrievalClient({"Email": "ada@example.com", "City": "London"})
        engine, _ = _engine(driver, client, recorded_sleep)

        await engine.run(credentials)

        assert client.calls == [["Email", "City"]]
        assert [e.value for e in driver.elements] == ["ada@example.com", "London", "ada@example.com"]

    @pytest.mark.asyncio
    async def test_shared_failure_reported_for_every_duplicate(self, credentials, recorded_sleep):
        driver = FakeDriver([
            FakeElement(name="email", label="Email"),
            FakeElement(name="city", label="City"),
            FakeElement(name="email", label="Email"),
        ])
        client = FakeRetrievalClient(
            {"City": "London"},
            fail_labels={"Email": AuthenticationError("Authentication failed. Check your API key.")},
        )
        engine, reporter = _engine(driver, client, recorded_sleep, batch_size=1)

        summary = await engine.run(credentials)

        assert (summary.filled, summary.skipped) == (1, 2)
        progress = reporter.messages("progress")
        assert progress == [
            "[1/3] Error: Email -> Authentication failed. Check your API key.",
            "[2/3] Filled: City",
            "[3/3] Error: Email -> Authentication failed. Check your API key.",
        ]
        assert len(client.calls) == 2
        assert summary.errors == ["batch 1: Authentication failed. Check your API key."]


class TestRetries:

    @pytest.mark.asyncio
    async def test_rate_limited_twice_then_success(self, credentials, recorded_sleep):
        answers = {"Full name": "Ada", "Email": "ada@example.com"}
        driver = FakeDriver([
            FakeElement(name="fullName", label="Full name"),
            FakeElement(name="email", label="Email"),
        ])
        flaky = FakeRetrievalClient(answers, failures=[RateLimitedError("429"), RateLimitedError("429")])
        engine, reporter = _engine(driver, flaky, recorded_sleep, jitter=0)

        summary = await engine.run(credentials)

        clean_driver = FakeDriver([
            FakeElement(name="fullName", label="Full name"),
            FakeElement(name="email", label="Email"),
        ])
        clean_engine, clean_reporter = _engine(clean_driver, FakeRetrievalClient(answers), recorded_sleep)
        clean_summary = await clean_engine.run(credentials)

        assert reporter.messages() == clean_reporter.messages()
        assert [e.value for e in driver.elements] == [e.value for e in clean_driver.elements]
        assert summary.retrieval_calls == 3
        assert clean_summary.retrieval_calls == 1
        assert recorded_sleep.delays == [0.4, 0.8]

    @pytest.mark.asyncio
    async def test_exhausted_retries_mark_batch_failed(self, credentials, recorded_sleep):
        driver = FakeDriver([FakeElement(name="city", label="City")])
        client = FakeRetrievalClient({"City": "London"}, failures=[ServiceUnavailableError("Service down")] * 3)
        engine, reporter = _engine(driver, client, recorded_sleep)

        summary = await engine.run(credentials)

        assert summary.retrieval_calls == 3
        assert reporter.messages("progress") == ["[1/1] Error: City -> Service down"]
        assert engine.last_run.batch_states == {0: BatchState.FAILED}

    @pytest.mark.asyncio
    async def test_fatal_error_not_retried(self, credentials, recorded_sleep):
        driver = FakeDriver([FakeElement(name="city", label="City")])
        client = FakeRetrievalClient(failures=[AuthenticationError("bad key")])
        engine, _ = _engine(driver, client, recorded_sleep)

        summary = await engine.run(credentials)

        assert summary.retrieval_calls == 1
        assert recorded_sleep.delays == []


class TestConcurrency:

    @pytest.mark.asyncio
    async def test_in_flight_never_exceeds_cap(self, credentials, recorded_sleep):
        driver = FakeDriver([FakeElement(name=f"q{i}", label=f"Question {i}") for i in range(10)])
        client = FakeRetrievalClient({f"Question {i}": "x" for i in range(10)}, delay=0.01)
        engine, _ = _engine(driver, client, recorded_sleep, batch_size=1, concurrency=3)

        summary = await engine.run(credentials)

        assert client.peak_in_flight == 3
        assert summary.filled == 10
        assert set(engine.last_run.batch_states.values()) == {BatchState.DONE}


class TestEarlyExits:

    @pytest.mark.asyncio
    async def test_no_fields_means_no_calls(self, credentials, recorded_sleep):
        driver = FakeDriver([FakeElement(type="hidden"), FakeElement(type="password", name="pwd")])
        client = FakeRetrievalClient()
        engine, reporter = _engine(driver, client, recorded_sleep)

        summary = await engine.run(credentials)

        assert client.calls == []
        assert summary.state == "completed"
        assert reporter.history[-1].message == NO_FIELDS_MESSAGE
        assert reporter.history[-1].error is False

    @pytest.mark.asyncio
    async def test_missing_credentials(self, recorded_sleep):
        client = FakeRetrievalClient()
        engine, reporter = _engine(_contact_form(), client, recorded_sleep)

        summary = await engine.run(Credentials(api_key="", document_store_id="vs_1"))

        assert summary.state == "abandoned"
        assert client.calls == []
        assert reporter.history[-1].error is True
        assert "API key is missing" in reporter.history[-1].message

    @pytest.mark.asyncio
    async def test_page_channel_failure(self, credentials, recorded_sleep):
        class BrokenDriver(FakeDriver):
            async def snapshot(self):
                raise RuntimeError("Target closed")

        client = FakeRetrievalClient()
        engine, reporter = _engine(BrokenDriver(), client, recorded_sleep)

        summary = await engine.run(credentials)

        assert summary.state == "abandoned"
        assert reporter.history[-1].message == "Unable to read form fields from page: Target closed"
        assert client.calls == []


class TestFillFailures:

    @pytest.mark.asyncio
    async def test_page_exception_counts_as_skipped(self, credentials, recorded_sleep):
        class FlakyDriver(FakeDriver):
            async def set_text(self, uid, value):
                if value == "boom":
                    raise RuntimeError("Execution context was destroyed")
                return await super().set_text(uid, value)

        driver = FlakyDriver([
            FakeElement(name="a", label="Alpha"),
            FakeElement(name="b", label="Beta"),
        ])
        client = FakeRetrievalClient({"Alpha": "boom", "Beta": "fine"})
        engine, reporter = _engine(driver, client, recorded_sleep)

        summary = await engine.run(credentials)

        assert (summary.filled, summary.skipped) == (1, 1)
        assert reporter.messages("progress")[0] == (
            "[1/2] Could not fill: Alpha (Execution context was destroyed)"
        )

    @pytest.mark.asyncio
    async def test_field_removed_before_apply(self, credentials, recorded_sleep):
        driver = FakeDriver([FakeElement(name="a", label="Alpha")])

        class VanishingClient(FakeRetrievalClient):
            async def answer_batch(self, creds, fields):
                driver.elements.clear()
                return {fields[0].uid: "value"}

        engine, reporter = _engine(driver, VanishingClient(), recorded_sleep)
        summary = await engine.run(credentials)

        assert summary.skipped == 1
        assert reporter.messages("progress") == [
            "[1/1] Could not fill: Alpha (Field not found in page context.)"
        ]


class TestRunState:

    @pytest.mark.asyncio
    async def test_forward_only_history(self, credentials, recorded_sleep):
        client = FakeRetrievalClient({"Full name": "Ada"})
        engine, _ = _engine(_contact_form(), client, recorded_sleep)
        await engine.run(credentials)

        assert engine.last_run.history == [
            RunState.COLLECTING,
            RunState.DEDUPLICATING,
            RunState.BATCHING,
            RunState.RETRIEVING,
            RunState.APPLYING,
            RunState.COMPLETED,
        ]

    def test_backward_transition_rejected(self):
        run = AutofillRun()
        run.advance(RunState.BATCHING)
        with pytest.raises(RuntimeError):
            run.advance(RunState.DEDUPLICATING)

    def test_terminal_state_is_final(self):
        run = AutofillRun()
        run.advance(RunState.ABANDONED)
        with pytest.raises(RuntimeError):
            run.advance(RunState.APPLYING)


def test_make_batches():
    assert make_batches(list("abcdefghij"), 4) == [list("abcd"), list("efgh"), list("ij")]
