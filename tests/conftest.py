"""Shared fakes: in-memory echo, trace and lookup collaborators, no network or subprocess."""

import json
import threading
import time
from datetime import datetime, timezone
from pathlib import Path

import pytest

from ipreport.client import parse_info
from ipreport.exceptions import LookupFailed, TraceFailed
from ipreport.probes import HopProbe, LatencyProbe
from ipreport.service import ReportAggregator

DATA = Path(__file__).parent / "data"

# 17:30 UTC; UTC-5 gives 12:30 PM
FIXED_NOW = datetime(2026, 1, 1, 17, 30, tzinfo=timezone.utc)


def load_json(name):
    return json.loads((DATA / name).read_text())


class FakeEcho:
    def __init__(self, results=None, per_address=None):
        self.results = results if results is not None else [12.5]
        self.per_address = per_address or {}
        self.calls = []

    def probe(self, address, count):
        self.calls.append((address, count))
        return list(self.per_address.get(address, self.results))


class FakeTrace:
    def __init__(self, hops=9, fail_for=(), delays=None):
        self.hops = hops
        self.fail_for = set(fail_for)
        self.delays = delays or {}
        self.calls = []

    def trace(self, address):
        self.calls.append(address)
        time.sleep(self.delays.get(address, 0))
        if address in self.fail_for:
            raise TraceFailed(address, "simulated trace failure")
        return [f"hop{i}" for i in range(self.hops)]


class FakeInfo:
    def __init__(self, payload=None, fail_for=()):
        self.payload = payload or load_json("ip_api_8888.json")
        self.fail_for = set(fail_for)
        self.calls = []
        self._lock = threading.Lock()

    def lookup(self, address):
        with self._lock:
            self.calls.append(address)
        if address in self.fail_for:
            raise LookupFailed("info", address, "simulated outage")
        return parse_info(address, self.payload)


class FakeWeather:
    def __init__(self, summary="Clear,20°C,5km/h", fail_for=()):
        self.summary = summary
        self.fail_for = set(fail_for)
        self.calls = []
        self._lock = threading.Lock()

    def lookup(self, location_key):
        with self._lock:
            self.calls.append(location_key)
        if location_key in self.fail_for:
            raise LookupFailed("weather", location_key, "simulated outage")
        return self.summary


@pytest.fixture()
def fakes():
    return {
        "echo": FakeEcho(),
        "trace": FakeTrace(),
        "info": FakeInfo(),
        "weather": FakeWeather(),
    }


@pytest.fixture()
def make_aggregator(fakes):
    def _make(**kwargs):
        kwargs.setdefault("clock", lambda: FIXED_NOW)
        return ReportAggregator(
            LatencyProbe(fakes["echo"], count=10),
            HopProbe(fakes["trace"]),
            fakes["info"],
            fakes["weather"],
            **kwargs,
        )

    return _make
