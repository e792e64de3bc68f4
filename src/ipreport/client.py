# OOP boundary for external http i/o
# urls, params, timeouts and session handling live here; service.py only sees parsed values
# one requests.Session per worker thread, created lazily

from __future__ import annotations

import threading
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .exceptions import LookupFailed, MalformedResponse
from .models import AddressInfo

USER_AGENT = "ipreport/0.1"
INFO_FIELDS = "status,message,offset,isp,org,as,lat,lon,regionName,city"


class _HTTPLookup:
    SERVICE = "http"
    BASE_URL = ""
    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = 0,
        user_agent: str = USER_AGENT,
    ):
        self.base_url = base_url or self.BASE_URL
        if not self.base_url.endswith("/"):
            self.base_url += "/"
        self.timeout = timeout
        self.user_agent = user_agent
        self._local = threading.local()

        # total=0 keeps retries off unless configured
        self._retry = Retry(
            total=max_retries,
            backoff_factor=0.5,
            status_forcelist=(429, 500, 502, 503, 504),
            allowed_methods=("GET",),
            raise_on_status=False,
        )

    def _build_session(self) -> requests.Session:
        s = requests.Session()
        s.headers.update({"User-Agent": self.user_agent})
        adapter = HTTPAdapter(max_retries=self._retry)
        s.mount("http://", adapter)
        s.mount("https://", adapter)
        return s

    def _session(self) -> requests.Session:
        sess = getattr(self._local, "session", None)
        if sess is None:
            sess = self._build_session()
            self._local.session = sess
        return sess

    def _get(self, key: str, params: Dict[str, Any]) -> requests.Response:
        url = self.base_url + quote(key, safe=",.:")
        try:
            resp = self._session().get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise LookupFailed(self.SERVICE, key, f"request error: {exc}") from exc

        if resp.status_code >= 400:
            snippet = (resp.text or "")[:200]
            raise LookupFailed(self.SERVICE, key, f"HTTP {resp.status_code}: {snippet}")
        return resp


def parse_info(key: str, data: Any) -> AddressInfo:
    """Turn an ip-api style payload into AddressInfo, checking the required keys."""
    if not isinstance(data, dict):
        raise MalformedResponse(InfoLookupClient.SERVICE, key, "payload is not a JSON object")
    try:
        offset = int(data["offset"])
        lat = float(data["lat"])
        lon = float(data["lon"])
    except (KeyError, TypeError, ValueError) as exc:
        raise MalformedResponse(
            InfoLookupClient.SERVICE, key, f"missing or invalid field {exc}"
        ) from exc

    def text(field: str) -> str:
        value = data.get(field)
        return "" if value is None else str(value)

    return AddressInfo(
        utc_offset=offset,
        isp=text("isp"),
        organization=text("org"),
        asn=text("as"),
        region=text("regionName"),
        city=text("city"),
        latitude=lat,
        longitude=lon,
    )


class InfoLookupClient(_HTTPLookup):
    SERVICE = "info"
    BASE_URL = "http://ip-api.com/json/"

    def lookup(self, address: str) -> AddressInfo:
        resp = self._get(address, {"fields": INFO_FIELDS})
        try:
            data = resp.json()
        except ValueError as exc:
            raise MalformedResponse(self.SERVICE, address, f"invalid JSON: {exc}") from exc

        # ip-api reports failures in-band with HTTP 200
        if isinstance(data, dict) and data.get("status", "success") != "success":
            raise LookupFailed(self.SERVICE, address, data.get("message") or "status fail")
        return parse_info(address, data)


class WeatherLookupClient(_HTTPLookup):
    SERVICE = "weather"
    BASE_URL = "https://wttr.in/"

    def __init__(self, *args: Any, fmt: str = "%C,%t,%w", **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.fmt = fmt

    def lookup(self, location_key: str) -> str:
        # the provider answers with a plain display string, not JSON
        resp = self._get(location_key, {"format": self.fmt})
        summary = (resp.text or "").strip()
        if not summary:
            raise MalformedResponse(self.SERVICE, location_key, "empty weather summary")
        return summary
