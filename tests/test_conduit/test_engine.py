"""Tests for the Conduit — attempt loop, partial retention, degradation and deadlines."""

import asyncio

import pytest

from folio.browser.page import RenderedPage
from folio.conduit.engine import Conduit, ConduitError, backoff_delay_s, is_hollow
from folio.conduit.phases import AttemptPhase
from folio.config.settings import TimeoutConfig, ValidationConfig
from folio.pipeline.degraded import DEGRADED_DESCRIPTION
from folio.pipeline.fixer import PLACEHOLDER_COVER_URL
from folio.pipeline.record import AttemptOutcome, BookRecord
from folio.signals.types import SignalType
from folio.telemetry.errors import InvalidURLError, NavigationError, RendererUnavailableError

THALIA_URL = "https://www.thalia.de/shop/home/artikeldetails/A1062060419"
SLUG_URL = "https://www.thalia.de/artikeldetails/die-mitternachtsbibliothek"
AMAZON_URL = "https://www.amazon.de/Die-Mitternachtsbibliothek/dp/3426282569"

ISBN_ONLY_HTML = "<h2>Details</h2><h3>ISBN</h3><p>978-3-426-28256-4</p>"


def _signal_types(conduit):
    return [s.signal_type for s in conduit.signals.signals]


class TestBackoff:
    def test_linear_schedule(self):
        assert [backoff_delay_s(2000, n) for n in (1, 2, 3)] == [2.0, 4.0, 6.0]

    def test_zero_base(self):
        assert backoff_delay_s(0, 5) == 0.0

    @pytest.mark.asyncio
    async def test_waits_scale_with_attempt_index(
        self, fast_config, scripted_renderer, monkeypatch
    ):
        waits = []

        async def record_backoff(self, attempt):
            waits.append(attempt)

        monkeypatch.setattr(Conduit, "_backoff", record_backoff)
        renderer = scripted_renderer([NavigationError("down")])
        await Conduit(fast_config, renderer).scrape(SLUG_URL)
        assert waits == [1, 2]


class TestHollowRecord:
    def test_identity_fields(self):
        assert is_hollow(BookRecord(isbn="123"))
        assert not is_hollow(BookRecord(description="Eine Geschichte"))


class TestSuccessfulScrape:
    @pytest.mark.asyncio
    async def test_first_attempt_succeeds(self, fast_config, scripted_renderer, thalia_page):
        renderer = scripted_renderer([thalia_page])
        conduit = Conduit(fast_config, renderer)
        outcome = await conduit.scrape(THALIA_URL + "?utm_source=newsletter")

        assert renderer.calls == [THALIA_URL]
        assert conduit.phase == AttemptPhase.SUCCEEDED
        assert not outcome.degraded
        assert outcome.validation.is_valid
        assert [a.outcome for a in outcome.attempts] == [AttemptOutcome.SUCCEEDED]

        record = outcome.record
        assert record.title == "Die Mitternachtsbibliothek"
        assert record.subtitle == "Roman"
        assert record.author == "Matt Haig"
        assert record.price == "24,00 €"
        assert record.price_value == 24.0
        assert record.publication_date_iso == "2021-03-01"
        assert record.page_count_value == 320
        assert record.isbn_clean == "9783426282564"
        assert record.language_code == "de"
        assert record.series == "Ein Fall für Isabelle Bonnet"
        assert record.series_number == "7"
        assert record.validation_warning is None

    @pytest.mark.asyncio
    async def test_amazon_record_carries_asin(self, fast_config, scripted_renderer, amazon_page):
        outcome = await Conduit(fast_config, scripted_renderer([amazon_page])).scrape(AMAZON_URL)
        assert outcome.site == "amazon"
        assert outcome.record.asin == "3426282569"
        assert outcome.record.author == "Matt Haig, Sabine Hübner"
        assert outcome.record.publication_date_iso == "2021-03-01"
        assert outcome.record.ean_clean == "9783426282564"

    @pytest.mark.asyncio
    async def test_recovers_on_second_attempt(self, fast_config, scripted_renderer, thalia_page):
        renderer = scripted_renderer([NavigationError("reset"), thalia_page])
        conduit = Conduit(fast_config, renderer)
        outcome = await conduit.scrape(THALIA_URL)

        assert len(renderer.calls) == 2
        assert [a.outcome for a in outcome.attempts] == [
            AttemptOutcome.FAILED,
            AttemptOutcome.SUCCEEDED,
        ]
        assert outcome.record.title == "Die Mitternachtsbibliothek"
        assert SignalType.RETRY_SCHEDULED in _signal_types(conduit)

    @pytest.mark.asyncio
    async def test_partial_navigation_still_yields_record(
        self, fast_config, scripted_renderer, thalia_page
    ):
        page = RenderedPage(url=THALIA_URL, html=thalia_page.html, partial=True)
        conduit = Conduit(fast_config, scripted_renderer([page]))
        outcome = await conduit.scrape(THALIA_URL)
        assert outcome.record.title == "Die Mitternachtsbibliothek"
        assert SignalType.PARTIAL_PAGE in _signal_types(conduit)

    @pytest.mark.asyncio
    async def test_consent_dismissal_is_reported(self, fast_config, scripted_renderer, thalia_page):
        page = RenderedPage(url=THALIA_URL, html=thalia_page.html, consent_dismissed=True)
        conduit = Conduit(fast_config, scripted_renderer([page]))
        await conduit.scrape(THALIA_URL)
        assert SignalType.CONSENT_DISMISSED in _signal_types(conduit)

    @pytest.mark.asyncio
    async def test_author_recovered_from_description_sentence(
        self, fast_config, scripted_renderer
    ):
        html = (
            "<html><body><h1>Das stille Haus</h1>"
            "<h2>Beschreibung</h2>"
            "<p>Ein spannender Roman von Max Mustermann über das Leben am See.</p>"
            "</body></html>"
        )
        page = RenderedPage(url=THALIA_URL, html=html)
        outcome = await Conduit(fast_config, scripted_renderer([page])).scrape(THALIA_URL)

        assert not outcome.degraded
        assert outcome.validation.is_valid
        assert outcome.record.title == "Das stille Haus"
        assert outcome.record.author == "Max Mustermann"


class TestRecovery:
    @pytest.mark.asyncio
    async def test_most_recent_partial_record_is_used(self, fast_config, scripted_renderer):
        renderer = scripted_renderer(
            [
                NavigationError("attempt 1"),
                RenderedPage(url=THALIA_URL, html=ISBN_ONLY_HTML),
                NavigationError("attempt 3"),
            ]
        )
        conduit = Conduit(fast_config, renderer)
        outcome = await conduit.scrape(THALIA_URL)

        assert len(renderer.calls) == 3
        assert conduit.phase == AttemptPhase.EXHAUSTED
        assert [a.outcome for a in outcome.attempts] == [
            AttemptOutcome.FAILED,
            AttemptOutcome.PARTIAL,
            AttemptOutcome.FAILED,
        ]
        assert not outcome.degraded
        partial = outcome.attempts[1].partial_record
        assert outcome.record.model_copy(update={"validation_warning": None}) == partial
        assert outcome.record.isbn_clean == "9783426282564"

    @pytest.mark.asyncio
    async def test_degraded_record_when_nothing_was_obtained(
        self, fast_config, scripted_renderer
    ):
        renderer = scripted_renderer([NavigationError("down")])
        conduit = Conduit(fast_config, renderer)
        outcome = await conduit.scrape(SLUG_URL)

        assert len(renderer.calls) == 3
        assert outcome.degraded
        assert outcome.record.title == "Die Mitternachtsbibliothek"
        assert outcome.record.description == DEGRADED_DESCRIPTION
        assert outcome.record.cover_url == PLACEHOLDER_COVER_URL
        assert outcome.validation.missing_fields == ("author",)
        assert outcome.record.validation_warning == {"missingFields": ["author"]}
        assert SignalType.DEGRADED_RECORD in _signal_types(conduit)

    @pytest.mark.asyncio
    async def test_unparseable_page_becomes_empty_shell(self, fast_config, scripted_renderer):
        config = fast_config.model_copy(
            update={"retry": fast_config.retry.model_copy(update={"max_retries": 1})}
        )
        renderer = scripted_renderer([RenderedPage(url=THALIA_URL, html=None)])
        outcome = await Conduit(config, renderer).scrape(THALIA_URL)

        assert outcome.attempts[0].outcome == AttemptOutcome.PARTIAL
        assert not outcome.degraded
        assert outcome.record.title == ""
        assert outcome.record.cover_url == PLACEHOLDER_COVER_URL
        assert outcome.record.language == "Deutsch"

    @pytest.mark.asyncio
    async def test_unexpected_renderer_error_is_a_failed_attempt(
        self, fast_config, scripted_renderer
    ):
        renderer = scripted_renderer([RuntimeError("boom")])
        outcome = await Conduit(fast_config, renderer).scrape(SLUG_URL)
        assert outcome.degraded
        assert "boom" in outcome.attempts[0].error

    @pytest.mark.asyncio
    async def test_placeholder_substitution(self, fast_config, scripted_renderer):
        config = fast_config.model_copy(
            update={"validation": ValidationConfig(substitute_missing=True)}
        )
        outcome = await Conduit(config, scripted_renderer([NavigationError("x")])).scrape(SLUG_URL)
        assert outcome.record.author == "Unknown Author"
        assert outcome.record.title == "Die Mitternachtsbibliothek"


class TestDeadline:
    @pytest.mark.asyncio
    async def test_global_deadline_ends_the_run(self, fast_config):
        class HangingRenderer:
            def __init__(self):
                self.calls = 0

            async def render(self, url, config):
                self.calls += 1
                await asyncio.sleep(10)

        config = fast_config.model_copy(update={"timeouts": TimeoutConfig(global_timeout_s=0.05)})
        renderer = HangingRenderer()
        conduit = Conduit(config, renderer)
        outcome = await conduit.scrape(SLUG_URL)

        assert renderer.calls == 1
        assert conduit.phase == AttemptPhase.EXHAUSTED
        assert outcome.degraded
        assert outcome.attempts[0].error == "Global deadline exceeded"


class TestFatalErrors:
    @pytest.mark.asyncio
    async def test_invalid_url_never_renders(self, fast_config, scripted_renderer, thalia_page):
        renderer = scripted_renderer([thalia_page])
        with pytest.raises(InvalidURLError):
            await Conduit(fast_config, renderer).scrape("https://www.example.com/artikeldetails/1")
        assert renderer.calls == []

    @pytest.mark.asyncio
    async def test_renderer_unavailable_propagates(self, fast_config, scripted_renderer):
        renderer = scripted_renderer([RendererUnavailableError("no chromium")])
        conduit = Conduit(fast_config, renderer)
        with pytest.raises(RendererUnavailableError):
            await conduit.scrape(THALIA_URL)
        assert len(renderer.calls) == 1
        assert SignalType.RUN_FAILED in _signal_types(conduit)

    @pytest.mark.asyncio
    async def test_conduit_is_single_use(self, fast_config, scripted_renderer, thalia_page):
        conduit = Conduit(fast_config, scripted_renderer([thalia_page]))
        await conduit.scrape(THALIA_URL)
        with pytest.raises(ConduitError):
            await conduit.scrape(THALIA_URL)


class TestTelemetry:
    @pytest.mark.asyncio
    async def test_signal_sequence_for_a_clean_run(
        self, fast_config, scripted_renderer, thalia_page
    ):
        conduit = Conduit(fast_config, scripted_renderer([thalia_page]))
        await conduit.scrape(THALIA_URL)
        assert _signal_types(conduit) == [
            SignalType.PHASE_TRANSITION,
            SignalType.ATTEMPT_STARTED,
            SignalType.ATTEMPT_SUCCEEDED,
            SignalType.PHASE_TRANSITION,
            SignalType.RUN_COMPLETE,
        ]

    @pytest.mark.asyncio
    async def test_ledger_written(self, fast_config, scripted_renderer, thalia_page):
        conduit = Conduit(fast_config, scripted_renderer([thalia_page]))
        await conduit.scrape(THALIA_URL)
        ledger = fast_config.telemetry.ledger_dir / f"{conduit.run_id}.jsonl"
        assert ledger.exists()
        assert len(ledger.read_text().strip().splitlines()) == len(conduit.signals.signals)

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_affect_scrape(
        self, fast_config, scripted_renderer, thalia_page
    ):
        conduit = Conduit(fast_config, scripted_renderer([thalia_page]))

        def broken(_signal):
            raise RuntimeError("subscriber bug")

        conduit.signals.subscribe(broken)
        outcome = await conduit.scrape(THALIA_URL)
        assert outcome.record.title == "Die Mitternachtsbibliothek"
