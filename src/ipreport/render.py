"""Pure renderers over a finished BatchResult."""

from __future__ import annotations

import json
from enum import Enum
from typing import List, Optional, Union

from .exceptions import InvalidRequest
from .models import AddressReport, BatchResult

_LABEL_WIDTH = 14


class OutputMode(str, Enum):
    TEXT = "text"
    JSON = "json"
    ARRAY = "array"


def select_mode(output: Optional[str] = None, as_json: bool = False, as_array: bool = False) -> OutputMode:
    """Resolve the requested mode with priority json > array > text."""
    if as_json:
        return OutputMode.JSON
    if as_array:
        return OutputMode.ARRAY
    if output is None:
        return OutputMode.TEXT
    try:
        return OutputMode(str(output).strip().lower())
    except ValueError:
        choices = ", ".join(m.value for m in OutputMode)
        raise InvalidRequest(f"unknown output mode {output!r} (choose from {choices})") from None


def _line(label: str, value: object) -> str:
    return f"{label + ':':<{_LABEL_WIDTH}} {value}"


def _format_block(report: AddressReport) -> str:
    hops = report.hop_count if report.hops_available else "unavailable"
    latency = f"{report.average_latency_ms:.2f} ms" if report.latency_available else "unavailable"
    place = ", ".join(p for p in (report.city, report.region) if p) or "unknown"
    lat, lon = report.coordinates
    return "\n".join([
        _line("IP Address", report.address),
        _line("Hops", hops),
        _line("Latency", latency),
        _line("ISP", report.isp),
        _line("Organization", report.organization),
        _line("ASN", report.asn),
        _line("Location", f"{place} ({lat:.4f}, {lon:.4f})"),
        _line("Local Time", report.local_time),
        _line("Weather", report.local_weather),
    ])


def render_text(batch: BatchResult) -> str:
    return "\n\n".join(_format_block(r) for r in batch.reports)


def render_array(batch: BatchResult) -> List[AddressReport]:
    return list(batch.reports)


def render_json(batch: BatchResult) -> str:
    return json.dumps([r.to_dict() for r in batch.reports], indent=2, ensure_ascii=False)


def render_failures(batch: BatchResult) -> str:
    return "\n".join(
        f"{f.address}: {f.kind} during {f.stage}: {f.message}" for f in batch.failures
    )


def render(batch: BatchResult, mode: OutputMode) -> Union[str, List[AddressReport]]:
    if mode is OutputMode.JSON:
        return render_json(batch)
    if mode is OutputMode.ARRAY:
        return render_array(batch)
    return render_text(batch)
