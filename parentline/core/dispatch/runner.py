# parentline/core/dispatch/runner.py
"""
Dispatch job runner.

Drives one job from start to the ``[DONE]`` sentinel:

    start → fetch rows → (error | no data | count → per-item sends → summary) → done

Rules:
- Per-item problems (missing destination, failed send) become progress
  lines and the batch moves on. Nothing is retried.
- A dataset that can't be fetched produces one error line and no sends.
- If the sink stops accepting events, processing stops and a final
  ``[DONE]`` is attempted on a best-effort basis.
- ``[DONE]`` is emitted exactly once, always last, on every exit path.

All collaborators are injected; the runner keeps no state between runs,
so one instance can serve concurrent jobs with independent sinks.
"""
from __future__ import annotations

import uuid
from typing import Sequence

from parentline.core.dispatch import events
from parentline.core.dispatch.composer import aggregate, compose
from parentline.core.dispatch.datasets import DatasetRegistry
from parentline.core.dispatch.errors import UnknownDatasetError
from parentline.core.dispatch.domain import (
    DatasetSpec,
    DispatchOutcome,
    Failed,
    FailureKind,
    Invalid,
    JobKind,
    JobReport,
    ProgressEvent,
    RecipientRecord,
    Sent,
)
from parentline.core.dispatch.ports import EventSink, MessageChannel, RecipientSource
from parentline.infra.logging_config import LogContext, get_logger, mask_destination
from parentline.infra.metrics import DispatchMetrics

logger = get_logger(__name__)


class _SinkLost(Exception):
    """Internal: the sink rejected an event. Ends the job."""


class DispatchJobRunner:
    """Runs bulk dispatch jobs against injected source, channel and datasets."""

    def __init__(
        self,
        source: RecipientSource,
        channel: MessageChannel,
        datasets: DatasetRegistry,
    ):
        self._source = source
        self._channel = channel
        self._datasets = datasets

    async def run(self, dataset_name: str, sink: EventSink, *, job_id: str | None = None) -> JobReport:
        """
        Run one job and stream its progress into ``sink``.

        Never raises for per-item, job-level or sink-level failures; the
        returned ``JobReport`` says what happened.
        """
        job_id = job_id or uuid.uuid4().hex[:8]
        log = LogContext(logger, job_id=job_id, dataset=dataset_name)
        report = JobReport(dataset=dataset_name)

        DispatchMetrics.job_started(dataset_name)
        log.info(f"Dispatch job started: dataset={dataset_name}, channel={self._channel.name}")

        with DispatchMetrics.track_job_duration(dataset_name):
            try:
                await self._execute(dataset_name, sink, report, log)
            except _SinkLost as exc:
                report.sink_lost = True
                DispatchMetrics.sink_lost(dataset_name)
                log.warning(
                    f"Event sink lost, stopping job: {exc.__cause__!r} "
                    f"(sent={report.sent}, failed={report.failed}, skipped={report.skipped})"
                )
            except Exception as exc:
                # Anything unexpected is a job-level error: report it once, then finish.
                report.error = str(exc) or exc.__class__.__name__
                DispatchMetrics.job_failed(dataset_name)
                log.error(f"Dispatch job crashed: {exc.__class__.__name__}", exc_info=True)
                try:
                    await self._emit(sink, events.error(report.error))
                except _SinkLost:
                    report.sink_lost = True

            await self._terminate(sink, log)

        log.info(
            f"Dispatch job finished: total={report.total}, sent={report.sent}, "
            f"failed={report.failed}, skipped={report.skipped}, "
            f"error={report.error is not None}, sink_lost={report.sink_lost}"
        )
        return report

    # ------------------------------------------------------------------
    # Job body
    # ------------------------------------------------------------------

    async def _execute(self, dataset_name: str, sink: EventSink, report: JobReport, log: LogContext) -> None:
        try:
            dataset = self._datasets.get(dataset_name)
        except UnknownDatasetError as exc:
            report.error = exc.detail
            DispatchMetrics.job_failed(dataset_name)
            log.warning(report.error)
            await self._emit(sink, events.start_unresolved(dataset_name))
            await self._emit(sink, events.error(report.error))
            return

        await self._emit(sink, events.start(dataset))

        try:
            records = list(await self._source.fetch(dataset))
        except Exception as exc:
            report.error = str(exc) or exc.__class__.__name__
            DispatchMetrics.job_failed(dataset.name)
            log.error(f"Recipient fetch failed: {exc.__class__.__name__}: {exc}")
            await self._emit(sink, events.error(report.error))
            return

        if not records:
            log.info("Dataset is empty, nothing to send")
            await self._emit(sink, events.no_data(dataset))
            return

        if dataset.kind is JobKind.BROADCAST:
            finished = await self._run_broadcast(dataset, records, sink, report, log)
        else:
            finished = await self._run_per_recipient(dataset, records, sink, report, log)

        if finished:
            await self._emit(sink, events.summary(report))

    async def _run_per_recipient(
        self,
        dataset: DatasetSpec,
        records: Sequence[RecipientRecord],
        sink: EventSink,
        report: JobReport,
        log: LogContext,
    ) -> bool:
        report.total = len(records)
        await self._emit(sink, events.count(len(records)))

        for record in records:
            result = compose(record, dataset)
            if isinstance(result, Invalid):
                report.skipped += 1
                DispatchMetrics.recipient_skipped(dataset.name)
                log.info(f"Skipping record: label={result.label}, reason={result.reason}")
                await self._emit(sink, events.skip(result.label, result.reason))
                continue

            await self._deliver(dataset, result.destination, result.body, sink, report, log)

        return True

    async def _run_broadcast(
        self,
        dataset: DatasetSpec,
        records: Sequence[RecipientRecord],
        sink: EventSink,
        report: JobReport,
        log: LogContext,
    ) -> bool:
        plan = aggregate(records, dataset)
        if not plan.has_content:
            log.info("Broadcast dataset has no content lines, nothing to send")
            await self._emit(sink, events.no_data(dataset))
            return False

        report.total = len(plan.destinations)
        await self._emit(sink, events.count(len(records), len(plan.destinations)))
        log.info(f"Broadcast plan: lines={len(plan.lines)}, destinations={len(plan.destinations)}")

        for destination in plan.destinations:
            await self._deliver(dataset, destination, plan.body, sink, report, log, what=dataset.title)

        return True

    async def _deliver(
        self,
        dataset: DatasetSpec,
        destination: str,
        body: str,
        sink: EventSink,
        report: JobReport,
        log: LogContext,
        *,
        what: str = "message",
    ) -> None:
        await self._emit(sink, events.attempt(destination, what))

        outcome = await self._send(destination, body)

        if isinstance(outcome, Sent):
            report.sent += 1
            DispatchMetrics.message_sent(dataset.name)
            await self._emit(sink, events.success(destination))
        else:
            report.failed += 1
            DispatchMetrics.message_failed(dataset.name, outcome.kind.value)
            log.warning(
                f"Send failed: kind={outcome.kind.value}, reason={outcome.reason}",
                extra={"destination": destination},
            )
            await self._emit(sink, events.failure(destination, outcome.reason))

    async def _send(self, destination: str, body: str) -> DispatchOutcome:
        """Invoke the channel; an exception counts as a failed attempt."""
        try:
            return await self._channel.send(destination, body)
        except Exception as exc:
            logger.error(
                f"Channel raised instead of reporting failure: to={mask_destination(destination)}",
                exc_info=True,
            )
            return Failed(destination, str(exc) or exc.__class__.__name__, FailureKind.UNKNOWN)

    # ------------------------------------------------------------------
    # Sink helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _emit(sink: EventSink, event: ProgressEvent) -> None:
        try:
            await sink.append(event)
        except Exception as exc:
            raise _SinkLost(event.kind.value) from exc

    @staticmethod
    async def _terminate(sink: EventSink, log: LogContext) -> None:
        """Emit ``[DONE]`` and release the sink; failures here have no audience."""
        try:
            await sink.append(events.done())
        except Exception as exc:
            log.debug(f"Done sentinel not delivered: {exc!r}")
        try:
            await sink.close()
        except Exception as exc:
            log.debug(f"Sink close failed: {exc!r}")
