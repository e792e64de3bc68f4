"""Tests for ipreport.render."""

import json

import pytest

from ipreport.exceptions import InvalidRequest
from ipreport.models import (
    UNAVAILABLE_HOPS,
    UNAVAILABLE_LATENCY,
    AddressFailure,
    AddressReport,
    BatchResult,
)
from ipreport.render import (
    OutputMode,
    render,
    render_array,
    render_failures,
    render_json,
    render_text,
    select_mode,
)


def make_report(address="8.8.8.8", **overrides):
    fields = dict(
        address=address,
        hop_count=9,
        average_latency_ms=12.5,
        organization="Google LLC",
        isp="Google",
        asn="AS15169",
        city="Mountain View",
        region="California",
        coordinates=(37.4, -122.0),
        local_time="12:30 PM",
        local_weather="Clear,20°C,5km/h",
    )
    fields.update(overrides)
    return AddressReport(**fields)


@pytest.fixture()
def batch():
    return BatchResult(
        reports=(make_report("8.8.8.8"), make_report("8.8.4.4"), make_report("1.1.1.1")),
        failures=(AddressFailure("192.168.1.1", "validating", "NotRoutableAddress", "not routable"),),
    )


class TestSelectMode:
    def test_default_is_text(self):
        assert select_mode() is OutputMode.TEXT

    def test_json_beats_array(self):
        assert select_mode("text", as_json=True, as_array=True) is OutputMode.JSON

    def test_array_beats_output(self):
        assert select_mode("text", as_array=True) is OutputMode.ARRAY

    def test_named_mode(self):
        assert select_mode("JSON") is OutputMode.JSON

    def test_unknown_mode(self):
        with pytest.raises(InvalidRequest):
            select_mode("yaml")


def test_order_is_the_same_in_every_mode(batch):
    expected = ["8.8.8.8", "8.8.4.4", "1.1.1.1"]
    assert [r.address for r in render_array(batch)] == expected
    assert [d["address"] for d in json.loads(render_json(batch))] == expected
    text_order = [line.split()[-1] for line in render_text(batch).splitlines() if line.startswith("IP Address")]
    assert text_order == expected


def test_rendering_is_idempotent(batch):
    for mode in OutputMode:
        assert render(batch, mode) == render(batch, mode)
    assert render_text(batch) == render_text(batch)
    assert render_json(batch) == render_json(batch)


def test_text_block_labels(batch):
    block = render_text(batch).split("\n\n")[0]
    for label in ("IP Address:", "Hops:", "Latency:", "ISP:", "ASN:", "Location:", "Local Time:", "Weather:"):
        assert label in block
    assert "12.50 ms" in block
    assert "Mountain View, California (37.4000, -122.0000)" in block


def test_text_shows_unavailable():
    report = make_report(hop_count=UNAVAILABLE_HOPS, average_latency_ms=UNAVAILABLE_LATENCY)
    text = render_text(BatchResult(reports=(report,)))
    assert text.count("unavailable") == 2


def test_json_shape(batch):
    first = json.loads(render_json(batch))[0]
    assert set(first) == {
        "address", "hopCount", "averageLatencyMillis", "organization", "isp", "asn",
        "city", "region", "coordinates", "localTime", "localWeather",
    }
    assert first["coordinates"] == [37.4, -122.0]
    assert first["localWeather"] == "Clear,20°C,5km/h"


def test_json_sentinels_are_null():
    report = make_report(average_latency_ms=UNAVAILABLE_LATENCY)
    data = json.loads(render_json(BatchResult(reports=(report,))))[0]
    assert data["averageLatencyMillis"] is None
    assert data["hopCount"] == 9


def test_zero_latency_is_not_a_sentinel():
    data = make_report(average_latency_ms=0.0).to_dict()
    assert data["averageLatencyMillis"] == 0.0


def test_failures_excluded_from_renders(batch):
    assert "192.168.1.1" not in render_text(batch)
    assert "192.168.1.1" not in render_json(batch)
    assert render_failures(batch) == "192.168.1.1: NotRoutableAddress during validating: not routable"


def test_empty_batch():
    empty = BatchResult()
    assert render_text(empty) == ""
    assert render_json(empty) == "[]"
    assert render_array(empty) == []
