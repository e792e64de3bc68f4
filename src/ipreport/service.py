# orchestration and failure policy
# one _AddressPipeline per address walks validating -> probing -> looking_up -> assembling -> done;
# ReportAggregator fans addresses out over a bounded ThreadPoolExecutor and keeps input order

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Iterable, List, Optional, Tuple

from .classifier import validate
from .client import InfoLookupClient, WeatherLookupClient
from .config import Settings
from .exceptions import IPReportError, InvalidRequest, PipelineCancelled
from .logging_setup import get_logger, log_event
from .models import AddressFailure, AddressInfo, AddressReport, BatchResult
from .probes import HopProbe, LatencyProbe, SubprocessEcho, SubprocessTrace

log = get_logger("service")

Clock = Callable[[], datetime]


class Stage(str, Enum):
    VALIDATING = "validating"
    PROBING = "probing"
    LOOKING_UP = "looking_up"
    ASSEMBLING = "assembling"
    DONE = "done"
    ABORTED = "aborted"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def split_addresses(values: Iterable[str]) -> List[str]:
    # accepts single literals, comma-delimited lists, or lines from a stream
    out: List[str] = []
    for value in values:
        for part in value.split(","):
            part = part.strip()
            if part:
                out.append(part)
    return out


def format_local_time(now_utc: datetime, offset_seconds: int) -> str:
    return (now_utc + timedelta(seconds=offset_seconds)).strftime("%I:%M %p")


def assemble_report(
    address: str,
    hop_count: int,
    latency_ms: float,
    info: AddressInfo,
    weather: str,
    now_utc: datetime,
) -> AddressReport:
    return AddressReport(
        address=address,
        hop_count=hop_count,
        average_latency_ms=latency_ms,
        organization=info.organization,
        isp=info.isp,
        asn=info.asn,
        city=info.city,
        region=info.region,
        coordinates=(info.latitude, info.longitude),
        local_time=format_local_time(now_utc, info.utc_offset),
        local_weather=weather,
    )


class _AddressPipeline:
    """State machine for a single address; ``stage`` tells where it stopped."""

    def __init__(self, owner: "ReportAggregator", address: str):
        self.owner = owner
        self.address = address
        self.stage = Stage.VALIDATING

    def _enter(self, stage: Stage) -> None:
        if self.owner.cancelled:
            raise PipelineCancelled(self.address)
        self.stage = stage
        log_event(log, logging.DEBUG, "stage", f"{self.address}: {stage.value}",
                  address=self.address, stage=stage.value)

    def run(self) -> AddressReport:
        owner = self.owner
        self._enter(Stage.VALIDATING)
        address = validate(self.address)

        # two workers: the probe pair, then the lookup pair
        pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="ipreport-stage")
        try:
            self._enter(Stage.PROBING)
            latency_fut = pool.submit(owner.latency_probe.measure, address, owner.ping_count)
            hops_fut = pool.submit(owner.hop_probe.trace_hops, address)
            # hop failure aborts here, before any lookup is issued
            hop_count = hops_fut.result()
            latency_ms, _ = latency_fut.result()

            self._enter(Stage.LOOKING_UP)
            if owner.weather_key == "coordinates":
                info = owner.info_client.lookup(address)
                weather = owner.weather_client.lookup(f"{info.latitude},{info.longitude}")
            else:
                info_fut = pool.submit(owner.info_client.lookup, address)
                weather_fut = pool.submit(owner.weather_client.lookup, address)
                info = info_fut.result()
                weather = weather_fut.result()
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        self._enter(Stage.ASSEMBLING)
        report = assemble_report(address, hop_count, latency_ms, info, weather, owner.clock())
        self._enter(Stage.DONE)
        return report


class ReportAggregator:
    def __init__(
        self,
        latency_probe: LatencyProbe,
        hop_probe: HopProbe,
        info_client: InfoLookupClient,
        weather_client: WeatherLookupClient,
        *,
        max_workers: int = 4,
        ping_count: int = 10,
        weather_key: str = "address",
        clock: Clock = utc_now,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.latency_probe = latency_probe
        self.hop_probe = hop_probe
        self.info_client = info_client
        self.weather_client = weather_client
        self.max_workers = max_workers
        self.ping_count = ping_count
        self.weather_key = weather_key
        self.clock = clock
        self._cancel = cancel_event or threading.Event()

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReportAggregator":
        # one event shared with the subprocess collaborators so cancel() kills running tools
        cancel = threading.Event()
        http = dict(timeout=settings.http_timeout, max_retries=settings.http_retries)
        return cls(
            LatencyProbe(SubprocessEcho(timeout=settings.probe_timeout, cancel=cancel),
                         count=settings.ping_count),
            HopProbe(SubprocessTrace(timeout=settings.probe_timeout, max_hops=settings.max_hops,
                                     cancel=cancel)),
            InfoLookupClient(settings.info_url, **http),
            WeatherLookupClient(settings.weather_url, fmt=settings.weather_format, **http),
            max_workers=settings.max_workers,
            ping_count=settings.ping_count,
            weather_key=settings.weather_key,
            cancel_event=cancel,
        )

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        self._cancel.set()

    def process(self, address: str) -> AddressReport:
        """Run the full pipeline for one address; fatal errors propagate."""
        return _AddressPipeline(self, address).run()

    def _fail(self, pipeline: "_AddressPipeline", exc: BaseException) -> AddressFailure:
        failure = AddressFailure(
            address=pipeline.address,
            stage=pipeline.stage.value,
            kind=type(exc).__name__,
            message=str(exc),
        )
        log.log(
            logging.INFO if isinstance(exc, IPReportError) else logging.ERROR,
            str(exc) or failure.kind,
            extra={"event": "address_aborted",
                   "fields": {"address": failure.address, "stage": failure.stage, "kind": failure.kind}},
            exc_info=not isinstance(exc, IPReportError),
        )
        return failure

    def _process_one(self, address: str) -> Tuple[Optional[AddressReport], Optional[AddressFailure]]:
        pipeline = _AddressPipeline(self, address)
        try:
            return pipeline.run(), None
        except PipelineCancelled:
            raise
        except Exception as exc:
            # an address interrupted by cancellation is discarded, not reported
            if self.cancelled:
                raise PipelineCancelled(address) from exc
            return None, self._fail(pipeline, exc)

    def run(self, addresses: Iterable[str]) -> BatchResult:
        """
        Process every address and return the batch in input order.

        Aborted addresses are reported in ``failures`` and never block the
        rest of the batch. Raises InvalidRequest for an empty input list.
        """
        items = split_addresses(addresses)
        if not items:
            raise InvalidRequest("no addresses given")
        self._cancel.clear()

        # slots indexed by input position; completion order is irrelevant
        slots: List[Tuple[Optional[AddressReport], Optional[AddressFailure]]] = [(None, None)] * len(items)
        pool = ThreadPoolExecutor(max_workers=min(self.max_workers, len(items)),
                                  thread_name_prefix="ipreport")
        try:
            futures = {pool.submit(self._process_one, address): i for i, address in enumerate(items)}
            for fut in as_completed(futures):
                slots[futures[fut]] = fut.result()
        except BaseException:
            self._cancel.set()
            pool.shutdown(wait=False, cancel_futures=True)
            raise
        pool.shutdown()

        batch = BatchResult(
            reports=tuple(r for r, _ in slots if r is not None),
            failures=tuple(f for _, f in slots if f is not None),
        )
        log_event(log, logging.DEBUG, "batch_done", "batch finished",
                  reports=len(batch.reports), failures=len(batch.failures))
        return batch
