"""Import pipeline coordinator.

Sequences fetch, extraction (or validation of generated records),
geocoding and review for one run at a time::

    idle -> fetching -> extracting -> geocoding -> reviewing -> completed

Any stage before review can end in ``failed``. Starting a run supersedes
the previous one, and ``cancel`` returns to idle from any stage. Geocoding is
sequential with a fixed delay between candidates; single failed candidates
can be retried independently during geocoding or review.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from place_importer.core.config import settings
from place_importer.core.geocoding.resolver import GeocodeResolver
from place_importer.core.logging import get_run_logger
from place_importer.extraction.engine import ExtractionEngine
from place_importer.llm.providers import create_provider
from place_importer.models.address import (
    ConfirmedPlace,
    GeneratedPlaceRecord,
    ResolutionStatus,
)
from place_importer.models.stage import (
    Completed,
    Extracting,
    Failed,
    Fetching,
    Geocoding,
    PipelineStage,
    Reviewing,
)
from place_importer.pipeline.fetch import (
    SCRIPT_RENDERED_MESSAGE,
    FetchError,
    PageFetcher,
    is_http_url,
    looks_script_rendered,
)
from place_importer.pipeline.sinks import PlaceSink
from place_importer.pipeline.state import (
    Observer,
    PipelineSnapshot,
    PipelineState,
    PipelineStateError,
)
from place_importer.places.templates import MapTemplate, TemplateLoader, TemplateLoaderError
from place_importer.validator.place_records import PlaceRecordValidator

Sleep = Callable[[float], Awaitable[None]]


class ImportPipeline:
    """Coordinates one import run at a time."""

    def __init__(
        self,
        engine: ExtractionEngine | None = None,
        resolver: GeocodeResolver | None = None,
        validator: PlaceRecordValidator | None = None,
        fetcher: PageFetcher | None = None,
        sink: PlaceSink | None = None,
        template_loader: TemplateLoader | None = None,
        inter_item_delay: float | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.engine = engine or ExtractionEngine(provider=create_provider())
        self.resolver = resolver or GeocodeResolver.from_settings()
        self.validator = validator or PlaceRecordValidator()
        self.fetcher = fetcher or PageFetcher()
        self.sink = sink
        self.template_loader = template_loader or TemplateLoader()
        self.inter_item_delay = (
            inter_item_delay
            if inter_item_delay is not None
            else settings.GEOCODING_INTER_ITEM_DELAY
        )
        self.sleep = sleep

        self.state = PipelineState()
        self._task: asyncio.Task[None] | None = None
        self._retry_tasks: dict[str, asyncio.Task[None]] = {}

    # Observation

    @property
    def snapshot(self) -> PipelineSnapshot:
        return self.state.snapshot()

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Receive a snapshot after every state change."""
        return self.state.subscribe(observer)

    async def join(self) -> None:
        """Wait for the current run and any retries to finish."""
        tasks = [t for t in (self._task, *self._retry_tasks.values()) if t]
        if tasks:
            await asyncio.wait(tasks)

    # Runs

    def start(self, url_or_text: str, allow_fallback_compute: bool = True) -> asyncio.Task[None]:
        """Import from a URL or from pasted text.

        Inputs with an http(s) scheme are fetched; anything else is treated
        as page text.
        """
        token = self._begin()
        fetch = is_http_url(url_or_text)
        self._task = asyncio.create_task(
            self._run_source(token, url_or_text, fetch, allow_fallback_compute)
        )
        return self._task

    def start_from_text(
        self, text: str, allow_fallback_compute: bool = True
    ) -> asyncio.Task[None]:
        """Import from pasted text without fetching."""
        token = self._begin()
        self._task = asyncio.create_task(
            self._run_source(token, text, False, allow_fallback_compute)
        )
        return self._task

    def start_from_generated_records(
        self,
        records: list[GeneratedPlaceRecord | dict[str, Any]],
        used_fallback_compute: bool = False,
    ) -> asyncio.Task[None]:
        """Validate generated records and geocode the survivors."""
        token = self._begin()
        self._task = asyncio.create_task(
            self._run_records(token, records, used_fallback_compute)
        )
        return self._task

    def start_from_template(self, template: MapTemplate | str) -> asyncio.Task[None]:
        """Load a template's records and run them as generated records."""
        token = self._begin()
        self._task = asyncio.create_task(self._run_template(token, template))
        return self._task

    def cancel(self) -> None:
        """Abort in-flight work and return to idle with empty state."""
        self.state.reset()
        self._cancel_tasks()
        get_run_logger(self.state.generation).info("Import cancelled")

    def reset(self) -> None:
        """Leave a completed or failed run."""
        self.cancel()

    def retry(self, candidate_id: str) -> asyncio.Task[None] | None:
        """Geocode one failed candidate again.

        Only valid while geocoding or reviewing. The stage is not changed.

        Returns:
            The retry task, or None when the candidate cannot be retried
        """
        if not isinstance(self.state.stage, (Geocoding, Reviewing)):
            return None
        candidate = self.state.candidate(candidate_id)
        if candidate is None or candidate.status != ResolutionStatus.FAILED:
            return None
        if candidate_id in self._retry_tasks:
            return None

        token = self.state.generation
        task = asyncio.create_task(self._run_retry(token, candidate_id))
        self._retry_tasks[candidate_id] = task
        task.add_done_callback(lambda t: self._forget_retry(candidate_id, t))
        return task

    async def confirm(self, candidate_ids: Iterable[str]) -> list[ConfirmedPlace]:
        """Hand the selected, resolved candidates to the sink.

        Returns:
            The places handed over, or an empty list when saving failed

        Raises:
            PipelineStateError: If the run is not reviewing or no sink is set
        """
        if not isinstance(self.state.stage, Reviewing):
            raise PipelineStateError("Nothing to confirm outside of review")
        if self.sink is None:
            raise PipelineStateError("No place sink configured")

        token = self.state.generation
        log = get_run_logger(token)
        selected = set(candidate_ids)
        places = [
            ConfirmedPlace(
                name=candidate.label,
                latitude=candidate.coordinate.latitude,
                longitude=candidate.coordinate.longitude,
            )
            for candidate in self.state.candidates()
            if candidate.id in selected
            and candidate.status == ResolutionStatus.RESOLVED
            and candidate.coordinate is not None
        ]

        for candidate_id, task in list(self._retry_tasks.items()):
            task.cancel()
            self._fail_cancelled_retry(token, candidate_id)

        try:
            await self.sink.save_places(places)
        except Exception as e:
            log.error("Saving confirmed places failed", error=str(e))
            self.state.set_stage(token, Failed(f"Could not save places: {e}"))
            return []

        self.state.set_stage(token, Completed())
        log.info("Import completed", saved=len(places))
        return places

    # Internals

    def _begin(self) -> int:
        self._cancel_tasks()
        token = self.state.begin_run()
        get_run_logger(token).info("Import started")
        return token

    def _cancel_tasks(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        for task in list(self._retry_tasks.values()):
            task.cancel()
        self._retry_tasks.clear()

    def _forget_retry(self, candidate_id: str, task: asyncio.Task[None]) -> None:
        if self._retry_tasks.get(candidate_id) is task:
            del self._retry_tasks[candidate_id]

    def _check(self, token: int) -> None:
        if not self.state.is_current(token):
            raise asyncio.CancelledError()

    def _advance(self, token: int, stage: PipelineStage) -> None:
        if not self.state.set_stage(token, stage):
            raise asyncio.CancelledError()

    async def _run_source(
        self, token: int, source: str, fetch: bool, allow_fallback_compute: bool
    ) -> None:
        log = get_run_logger(token)
        try:
            self._advance(token, Fetching())
            if not source.strip():
                raise FetchError("No input provided")
            if fetch:
                content = await self.fetcher.fetch(source.strip())
                self._check(token)
            else:
                content = source
            if looks_script_rendered(content):
                raise FetchError(SCRIPT_RENDERED_MESSAGE)

            self._advance(token, Extracting(used_fallback_compute=False))
            result = await self.engine.extract(
                content, allow_fallback_compute=allow_fallback_compute
            )
            self._check(token)
            self.state.set_used_fallback_compute(token, result.used_fallback_compute)
            self._advance(
                token, Extracting(used_fallback_compute=result.used_fallback_compute)
            )
            self.state.set_candidates(token, result.candidates)
            log.info("Extracted candidates", count=len(result.candidates))

            await self._geocode_all(token)
            self._advance(token, Reviewing())
        except FetchError as e:
            log.warning("Import input rejected", error=str(e))
            self.state.set_stage(token, Failed(str(e)))
        except Exception as e:
            log.error("Import failed", error=str(e), exc_info=True)
            self.state.set_stage(token, Failed(str(e)))

    async def _run_records(
        self,
        token: int,
        records: list[GeneratedPlaceRecord | dict[str, Any]],
        used_fallback_compute: bool,
    ) -> None:
        log = get_run_logger(token)
        try:
            self.state.set_used_fallback_compute(token, used_fallback_compute)
            report = self.validator.validate_batch(records)
            self.state.set_candidates(token, report.candidates)
            log.info(
                "Accepted generated places",
                accepted=len(report.candidates),
                rejected=len(report.rejected),
            )
            await self._geocode_all(token)
            self._advance(token, Reviewing())
        except Exception as e:
            log.error("Import failed", error=str(e), exc_info=True)
            self.state.set_stage(token, Failed(str(e)))

    async def _run_template(self, token: int, template: MapTemplate | str) -> None:
        try:
            records = await asyncio.to_thread(self.template_loader.load_records, template)
        except TemplateLoaderError as e:
            get_run_logger(token).warning("Template could not be loaded", error=str(e))
            self.state.set_stage(token, Failed(str(e)))
            return
        self._check(token)
        await self._run_records(token, list(records), False)

    async def _geocode_all(self, token: int) -> None:
        ids = [candidate.id for candidate in self.state.candidates()]
        total = len(ids)
        self._advance(token, Geocoding(done=0, total=total))
        for index, candidate_id in enumerate(ids):
            self._check(token)
            await self._geocode_one(token, candidate_id)
            self._advance(token, Geocoding(done=index + 1, total=total))
            if index < total - 1:
                await self.sleep(self.inter_item_delay)
                self._check(token)

    async def _geocode_one(self, token: int, candidate_id: str) -> None:
        candidate = self.state.candidate(candidate_id)
        if candidate is None:
            return
        await self.resolver.resolve(
            candidate,
            log=lambda message: self.state.append_log(token, candidate_id, message),
            on_change=lambda changed: self.state.update_candidate(token, changed),
            is_cancelled=lambda: not self.state.is_current(token),
        )

    def _fail_cancelled_retry(self, token: int, candidate_id: str) -> None:
        """Leave a candidate whose retry was cancelled mid-flight as failed."""
        candidate = self.state.candidate(candidate_id)
        if candidate is None or candidate.status != ResolutionStatus.RESOLVING:
            return
        candidate.transition(ResolutionStatus.FAILED)
        self.state.update_candidate(token, candidate)
        self.state.append_log(token, candidate_id, "Retry cancelled")

    async def _run_retry(self, token: int, candidate_id: str) -> None:
        try:
            await self._geocode_one(token, candidate_id)
        except Exception as e:
            get_run_logger(token).error(
                "Retry failed", candidate_id=candidate_id, error=str(e)
            )
