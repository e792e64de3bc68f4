# models and a tiny stats helper to keep data shapes explicit across probes, clients and renderers

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

# "measurement unavailable" markers, distinct from a legitimate 0 / 0.0
UNAVAILABLE_HOPS = -1
UNAVAILABLE_LATENCY = -1.0


@dataclass(frozen=True)
class AddressInfo:
    # parsed IP-intelligence payload
    utc_offset: int  # seconds east of UTC
    isp: str
    organization: str
    asn: str
    region: str
    city: str
    latitude: float
    longitude: float


@dataclass(frozen=True)
class AddressReport:
    """Fully populated enrichment result for one address."""

    address: str
    hop_count: int
    average_latency_ms: float
    organization: str
    isp: str
    asn: str
    city: str
    region: str
    coordinates: Tuple[float, float]  # (latitude, longitude)
    local_time: str
    local_weather: str

    @property
    def latency_available(self) -> bool:
        return self.average_latency_ms != UNAVAILABLE_LATENCY

    @property
    def hops_available(self) -> bool:
        return self.hop_count != UNAVAILABLE_HOPS

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON shape; sentinels become None."""
        return {
            "address": self.address,
            "hopCount": self.hop_count if self.hops_available else None,
            "averageLatencyMillis": (
                round(self.average_latency_ms, 3) if self.latency_available else None
            ),
            "organization": self.organization,
            "isp": self.isp,
            "asn": self.asn,
            "city": self.city,
            "region": self.region,
            "coordinates": [self.coordinates[0], self.coordinates[1]],
            "localTime": self.local_time,
            "localWeather": self.local_weather,
        }


@dataclass(frozen=True)
class AddressFailure:
    # an address that reached the aborted state; kept apart from the reports
    address: str
    stage: str
    kind: str
    message: str


@dataclass(frozen=True)
class BatchResult:
    reports: Tuple[AddressReport, ...] = ()
    failures: Tuple[AddressFailure, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.failures


def mean(values: List[float]) -> float:
    # arithmetic average, callers check for empty input first
    return sum(values) / len(values) if values else float("nan")
