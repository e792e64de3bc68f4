"""ipreport: consolidated latency, hop, ownership, location and weather reports for public IPs."""

from .exceptions import (
    InvalidAddress,
    InvalidRequest,
    IPReportError,
    LookupFailed,
    MalformedResponse,
    NotRoutableAddress,
    PipelineCancelled,
    ProbeDegraded,
    TraceFailed,
)
from .models import AddressFailure, AddressInfo, AddressReport, BatchResult
from .service import ReportAggregator

__all__ = [
    "ReportAggregator",
    "AddressReport",
    "AddressInfo",
    "AddressFailure",
    "BatchResult",
    "IPReportError",
    "InvalidRequest",
    "InvalidAddress",
    "NotRoutableAddress",
    "ProbeDegraded",
    "TraceFailed",
    "LookupFailed",
    "MalformedResponse",
    "PipelineCancelled",
]
