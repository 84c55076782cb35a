"""Tests for the import pipeline coordinator."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from place_importer.core.geocoding.backends import GeocodeBackend
from place_importer.core.geocoding.resolver import GeocodeResolver
from place_importer.extraction.base import ExtractionResult
from place_importer.extraction.blocks import BlockParsingStrategy
from place_importer.extraction.engine import ExtractionEngine
from place_importer.models.address import Coordinate, ResolutionStatus
from place_importer.models.stage import (
    Completed,
    Failed,
    Geocoding,
    Idle,
    Reviewing,
    StageKind,
)
from place_importer.pipeline.coordinator import ImportPipeline
from place_importer.pipeline.fetch import SCRIPT_RENDERED_MESSAGE, FetchError
from place_importer.pipeline.sinks import InMemoryPlaceSink
from place_importer.pipeline.state import PipelineSnapshot, PipelineStateError
from place_importer.places.templates import TemplateLoader
from tests.fixtures.pipeline import FakeResolver, wait_until

OFFICES = """Birmingham Office
420 North 20th Street
Suite 2400
Birmingham, AL
35203-3289
United States
Denver Office
1801 California Street
Denver, CO 80202
Austin Office
100 Congress Ave
Austin, TX 78701
"""


def generated(count: int) -> list[dict]:
    return [
        {
            "name": f"Place {i}",
            "streetAddress1": f"{100 + i} Main St",
            "city": "Springfield",
            "state": "IL",
            "postalCode": "62704",
        }
        for i in range(count)
    ]


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def fetcher() -> MagicMock:
    mock = MagicMock()
    mock.fetch = AsyncMock(return_value=OFFICES)
    return mock


@pytest.fixture
def sink() -> InMemoryPlaceSink:
    return InMemoryPlaceSink()


@pytest.fixture
def pipeline(resolver, fetcher, sink, fake_sleep) -> ImportPipeline:
    return ImportPipeline(
        engine=ExtractionEngine(strategies=[BlockParsingStrategy()]),
        resolver=resolver,
        fetcher=fetcher,
        sink=sink,
        inter_item_delay=0.5,
        sleep=fake_sleep,
    )


def stage_kinds(snapshots: list[PipelineSnapshot]) -> list[StageKind]:
    kinds: list[StageKind] = []
    for snapshot in snapshots:
        if not kinds or kinds[-1] != snapshot.stage.kind:
            kinds.append(snapshot.stage.kind)
    return kinds


class TestTextAndUrlRuns:
    @pytest.mark.asyncio
    async def test_pasted_text_runs_to_review(self, pipeline, fetcher, sleeps):
        seen: list[PipelineSnapshot] = []
        pipeline.subscribe(seen.append)

        await pipeline.start(OFFICES)

        snapshot = pipeline.snapshot
        assert snapshot.stage == Reviewing()
        assert [c.label for c in snapshot.candidates] == [
            "Birmingham Office",
            "Denver Office",
            "Austin Office",
        ]
        assert all(c.status == ResolutionStatus.RESOLVED for c in snapshot.candidates)
        assert snapshot.used_fallback_compute is False
        assert stage_kinds(seen) == [
            StageKind.IDLE,
            StageKind.FETCHING,
            StageKind.EXTRACTING,
            StageKind.GEOCODING,
            StageKind.REVIEWING,
        ]
        fetcher.fetch.assert_not_called()
        assert sleeps == [0.5, 0.5]

    @pytest.mark.asyncio
    async def test_geocoding_reports_progress(self, pipeline):
        seen: list[PipelineSnapshot] = []
        pipeline.subscribe(seen.append)

        await pipeline.start_from_text(OFFICES)

        progress = []
        for snapshot in seen:
            stage = snapshot.stage
            if isinstance(stage, Geocoding) and (stage.done, stage.total) not in progress:
                progress.append((stage.done, stage.total))
        assert progress == [(0, 3), (1, 3), (2, 3), (3, 3)]

    @pytest.mark.asyncio
    async def test_url_is_fetched(self, pipeline, fetcher):
        await pipeline.start("https://example.org/offices")

        fetcher.fetch.assert_awaited_once_with("https://example.org/offices")
        assert len(pipeline.snapshot.candidates) == 3

    @pytest.mark.asyncio
    async def test_debug_logs_are_recorded(self, pipeline):
        await pipeline.start(OFFICES)

        snapshot = pipeline.snapshot
        first = snapshot.candidates[0]
        assert snapshot.debug_logs[first.id][-1] == "Resolved: 33.51700, -86.80800"


class TestFailures:
    @pytest.mark.asyncio
    async def test_fetch_error_fails_run(self, pipeline, fetcher):
        fetcher.fetch.side_effect = FetchError("Bad server response (HTTP 500)")

        await pipeline.start("https://example.org/offices")

        assert pipeline.snapshot.stage == Failed("Bad server response (HTTP 500)")

    @pytest.mark.asyncio
    async def test_script_rendered_page_fails_run(self, pipeline, fetcher):
        fetcher.fetch.return_value = '<div id="app"></div><script src="/app.js"></script>'

        await pipeline.start("https://example.org/spa")

        assert pipeline.snapshot.stage == Failed(SCRIPT_RENDERED_MESSAGE)

    @pytest.mark.asyncio
    async def test_blank_input_fails_run(self, pipeline):
        await pipeline.start("   ")

        assert pipeline.snapshot.stage == Failed("No input provided")

    @pytest.mark.asyncio
    async def test_extraction_crash_fails_run(self, resolver, fake_sleep):
        engine = MagicMock()
        engine.extract = AsyncMock(side_effect=RuntimeError("engine exploded"))
        pipeline = ImportPipeline(engine=engine, resolver=resolver, sleep=fake_sleep)

        await pipeline.start("some text")

        assert pipeline.snapshot.stage == Failed("engine exploded")

    @pytest.mark.asyncio
    async def test_nothing_found_reviews_empty_list(self, resolver, fake_sleep):
        engine = MagicMock()
        engine.extract = AsyncMock(
            return_value=ExtractionResult(candidates=[], used_fallback_compute=True)
        )
        pipeline = ImportPipeline(engine=engine, resolver=resolver, sleep=fake_sleep)

        await pipeline.start("nothing here")

        snapshot = pipeline.snapshot
        assert snapshot.stage == Reviewing()
        assert snapshot.candidates == ()
        assert snapshot.used_fallback_compute is True

    @pytest.mark.asyncio
    async def test_fallback_switch_reaches_engine(self, resolver, fake_sleep):
        engine = MagicMock()
        engine.extract = AsyncMock(return_value=ExtractionResult())
        pipeline = ImportPipeline(engine=engine, resolver=resolver, sleep=fake_sleep)

        await pipeline.start("text", allow_fallback_compute=False)

        engine.extract.assert_awaited_once_with("text", allow_fallback_compute=False)

    @pytest.mark.asyncio
    async def test_backend_crash_stays_with_one_candidate(self, fake_sleep):
        async def geocode_structured(components):
            if components["street"].startswith("100 "):
                raise RuntimeError("socket reset")
            return Coordinate(latitude=39.78, longitude=-89.65)

        backend = MagicMock(spec=GeocodeBackend)
        backend.name = "primary"
        backend.geocode_structured = AsyncMock(side_effect=geocode_structured)
        backend.geocode_query = AsyncMock()
        pipeline = ImportPipeline(
            engine=ExtractionEngine(strategies=[]),
            resolver=GeocodeResolver(backend, sleep=fake_sleep),
            sleep=fake_sleep,
        )

        await pipeline.start_from_generated_records(generated(2))

        snapshot = pipeline.snapshot
        assert snapshot.stage == Reviewing()
        broken, fine = snapshot.candidates
        assert broken.status == ResolutionStatus.FAILED
        assert snapshot.debug_logs[broken.id][-1] == "Failed: socket reset"
        assert fine.status == ResolutionStatus.RESOLVED
        assert pipeline.retry(broken.id) is not None
        await pipeline.join()

    @pytest.mark.asyncio
    async def test_failing_observer_does_not_break_run(self, pipeline):
        def broken(_snapshot: PipelineSnapshot) -> None:
            raise RuntimeError("ui went away")

        pipeline.subscribe(broken)
        await pipeline.start(OFFICES)

        assert pipeline.snapshot.stage == Reviewing()


class TestGeneratedRecords:
    @pytest.mark.asyncio
    async def test_invalid_records_never_reach_geocoding(self, pipeline, resolver):
        records = generated(10)
        records[3]["streetAddress1"] = ""

        await pipeline.start_from_generated_records(records, used_fallback_compute=True)

        snapshot = pipeline.snapshot
        assert len(snapshot.candidates) == 9
        assert len(resolver.calls) == 9
        assert "Place 3" not in resolver.calls
        assert snapshot.used_fallback_compute is True
        assert snapshot.stage == Reviewing()

    @pytest.mark.asyncio
    async def test_template_run(self, pipeline):
        await pipeline.start_from_template("state_capitols")

        snapshot = pipeline.snapshot
        assert snapshot.stage == Reviewing()
        assert "Texas State Capitol" in [c.label for c in snapshot.candidates]
        assert snapshot.used_fallback_compute is False

    @pytest.mark.asyncio
    async def test_unknown_template_fails(self, pipeline):
        await pipeline.start_from_template("nope")

        assert pipeline.snapshot.stage == Failed("Unknown template: nope")

    @pytest.mark.asyncio
    async def test_template_loader_is_injectable(self, resolver, fake_sleep, tmp_path):
        (tmp_path / "templates.json").write_text(
            '[{"id": "one", "displayName": "One", "fileName": "one"}]'
        )
        (tmp_path / "one.json").write_text(
            '[{"name": "HQ", "streetAddress1": "1 Main St", "city": "Austin", "state": "TX"}]'
        )
        pipeline = ImportPipeline(
            resolver=resolver,
            template_loader=TemplateLoader(tmp_path),
            engine=ExtractionEngine(strategies=[]),
            sleep=fake_sleep,
        )

        await pipeline.start_from_template("one")

        assert [c.label for c in pipeline.snapshot.candidates] == ["HQ"]


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_mid_geocode_returns_to_idle(self, pipeline, resolver):
        resolver.gate = asyncio.Event()
        task = pipeline.start(OFFICES)
        await wait_until(lambda: isinstance(pipeline.snapshot.stage, Geocoding))

        pipeline.cancel()
        resolver.gate.set()
        await asyncio.wait([task])

        assert task.cancelled()
        snapshot = pipeline.snapshot
        assert snapshot.stage == Idle()
        assert snapshot.candidates == ()
        assert snapshot.debug_logs == {}

    @pytest.mark.asyncio
    async def test_new_run_supersedes_old(self, pipeline, resolver):
        resolver.gate = asyncio.Event()
        first = pipeline.start(OFFICES)
        await wait_until(lambda: isinstance(pipeline.snapshot.stage, Geocoding))

        second = pipeline.start_from_generated_records(generated(2))
        resolver.gate.set()
        await asyncio.wait([first, second])

        snapshot = pipeline.snapshot
        assert [c.label for c in snapshot.candidates] == ["Place 0", "Place 1"]
        assert snapshot.stage == Reviewing()

    @pytest.mark.asyncio
    async def test_reset_after_completion(self, pipeline):
        await pipeline.start(OFFICES)
        ids = [c.id for c in pipeline.snapshot.candidates]
        await pipeline.confirm(ids)

        pipeline.reset()

        assert pipeline.snapshot.stage == Idle()
        assert pipeline.snapshot.candidates == ()


class TestRetry:
    @pytest.mark.asyncio
    async def test_retry_only_touches_one_candidate(self, pipeline, resolver):
        resolver.outcomes["Denver Office"] = None
        await pipeline.start(OFFICES)
        snapshot = pipeline.snapshot
        denver = next(c for c in snapshot.candidates if c.label == "Denver Office")
        assert denver.status == ResolutionStatus.FAILED

        resolver.outcomes["Denver Office"] = Coordinate(latitude=39.75, longitude=-104.99)
        task = pipeline.retry(denver.id)
        await task

        after = pipeline.snapshot
        assert after.stage == Reviewing()
        assert after.candidate(denver.id).status == ResolutionStatus.RESOLVED
        assert after.candidate(denver.id).coordinate == Coordinate(
            latitude=39.75, longitude=-104.99
        )
        others = [c for c in after.candidates if c.id != denver.id]
        assert others == [c for c in snapshot.candidates if c.id != denver.id]

    @pytest.mark.asyncio
    async def test_retry_rules(self, pipeline, resolver):
        assert pipeline.retry("anything") is None

        resolver.outcomes["Denver Office"] = None
        await pipeline.start(OFFICES)
        resolved = pipeline.snapshot.candidates[0]
        denver = next(c for c in pipeline.snapshot.candidates if c.label == "Denver Office")

        assert pipeline.retry(resolved.id) is None
        assert pipeline.retry("missing") is None

        resolver.gate = asyncio.Event()
        first = pipeline.retry(denver.id)
        assert first is not None
        await wait_until(
            lambda: pipeline.snapshot.candidate(denver.id).status
            == ResolutionStatus.RESOLVING
        )
        assert pipeline.retry(denver.id) is None
        resolver.gate.set()
        await first
        assert pipeline.snapshot.candidate(denver.id).status == ResolutionStatus.FAILED

    @pytest.mark.asyncio
    async def test_retry_is_dropped_by_cancel(self, pipeline, resolver):
        resolver.outcomes["Denver Office"] = None
        await pipeline.start(OFFICES)
        denver = next(c for c in pipeline.snapshot.candidates if c.label == "Denver Office")

        resolver.gate = asyncio.Event()
        task = pipeline.retry(denver.id)
        await asyncio.sleep(0)
        pipeline.cancel()
        resolver.gate.set()
        await asyncio.wait([task])

        assert pipeline.snapshot.stage == Idle()
        assert pipeline.snapshot.candidates == ()


class TestConfirm:
    @pytest.mark.asyncio
    async def test_confirm_hands_resolved_selection_to_sink(self, pipeline, resolver, sink):
        resolver.outcomes["Austin Office"] = None
        await pipeline.start(OFFICES)
        ids = [c.id for c in pipeline.snapshot.candidates]

        places = await pipeline.confirm(ids[1:])

        assert [p.name for p in places] == ["Denver Office"]
        assert sink.places == places
        assert places[0].latitude == pytest.approx(33.517)
        assert pipeline.snapshot.stage == Completed()

    @pytest.mark.asyncio
    async def test_confirm_fails_in_flight_retries(self, pipeline, resolver, sink):
        resolver.outcomes["Denver Office"] = None
        await pipeline.start(OFFICES)
        denver = next(c for c in pipeline.snapshot.candidates if c.label == "Denver Office")

        resolver.gate = asyncio.Event()
        task = pipeline.retry(denver.id)
        await wait_until(
            lambda: pipeline.snapshot.candidate(denver.id).status
            == ResolutionStatus.RESOLVING
        )

        places = await pipeline.confirm([c.id for c in pipeline.snapshot.candidates])
        resolver.gate.set()
        await asyncio.wait([task])

        snapshot = pipeline.snapshot
        assert snapshot.stage == Completed()
        assert snapshot.candidate(denver.id).status == ResolutionStatus.FAILED
        assert snapshot.debug_logs[denver.id][-1] == "Retry cancelled"
        assert [p.name for p in places] == ["Birmingham Office", "Austin Office"]

    @pytest.mark.asyncio
    async def test_confirm_outside_review(self, pipeline):
        with pytest.raises(PipelineStateError):
            await pipeline.confirm([])

    @pytest.mark.asyncio
    async def test_confirm_without_sink(self, resolver, fake_sleep):
        pipeline = ImportPipeline(
            engine=ExtractionEngine(strategies=[BlockParsingStrategy()]),
            resolver=resolver,
            sleep=fake_sleep,
        )
        await pipeline.start(OFFICES)

        with pytest.raises(PipelineStateError):
            await pipeline.confirm([])

    @pytest.mark.asyncio
    async def test_sink_failure_fails_run(self, pipeline, sink):
        sink.save_places = AsyncMock(side_effect=OSError("disk full"))
        await pipeline.start(OFFICES)

        places = await pipeline.confirm([c.id for c in pipeline.snapshot.candidates])

        assert places == []
        assert pipeline.snapshot.stage == Failed("Could not save places: disk full")


def test_default_construction(monkeypatch):
    from place_importer.core.config import settings

    monkeypatch.setattr(settings, "REDIS_URL", None)
    monkeypatch.setattr(settings, "OPENROUTER_API_KEY", None)
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)

    pipeline = ImportPipeline()

    assert pipeline.snapshot.stage == Idle()
    assert pipeline.resolver.primary.name == "nominatim"
    assert pipeline.inter_item_delay == settings.GEOCODING_INTER_ITEM_DELAY
