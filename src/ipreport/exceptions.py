# error taxonomy for the enrichment pipeline
# everything derives from IPReportError so callers can catch one type at the batch boundary

from __future__ import annotations


class IPReportError(Exception):
    """Base exception for all ipreport errors."""


class InvalidRequest(IPReportError):
    """The invocation itself is unusable (empty input, unknown output mode, bad config)."""


class InvalidAddress(IPReportError):
    """The input literal is not an IP address."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"'{address}' is not a valid IP address")


class NotRoutableAddress(IPReportError):
    """The address falls in a private or loopback range."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"{address} is not routable (private or loopback range)")


class ProbeDegraded(IPReportError):
    # latency probe could not run; never fatal, the report carries the sentinel instead
    def __init__(self, address: str, reason: str):
        self.address = address
        self.reason = reason
        super().__init__(f"Latency probe degraded for {address}: {reason}")


class TraceFailed(IPReportError):
    def __init__(self, address: str, reason: str):
        self.address = address
        self.reason = reason
        super().__init__(f"Route trace failed for {address}: {reason}")


class LookupFailed(IPReportError):
    """An external lookup service was unreachable, timed out or returned an error."""

    def __init__(self, service: str, address: str, reason: str):
        self.service = service
        self.address = address
        self.reason = reason
        super().__init__(f"{service} lookup failed for {address!r}: {reason}")


class MalformedResponse(LookupFailed):
    """The service answered with a success status but an unusable payload."""


class PipelineCancelled(IPReportError):
    # raised between stages once the aggregator is cancelled; the address is discarded
    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Processing of {address} was cancelled")
