"""Active network probes: ping for latency, traceroute for hop count.

The subprocess collaborators only run the OS tools and parse their output;
LatencyProbe and HopProbe apply the failure policy on top of them. Any object
with the same ``probe`` / ``trace`` method can stand in for the subprocess
versions (tests use in-memory fakes).

Both subprocess collaborators accept an optional ``threading.Event``; once it
is set, a running ping or traceroute is killed and PipelineCancelled raised.
"""

from __future__ import annotations

import ipaddress
import logging
import platform
import re
import subprocess
import threading
import time
from typing import List, Optional, Protocol, Tuple

from .exceptions import InvalidRequest, PipelineCancelled, ProbeDegraded, TraceFailed
from .logging_setup import get_logger, log_event
from .models import UNAVAILABLE_LATENCY, mean

log = get_logger("probes")

DEFAULT_TIMEOUT = 30.0  # seconds for a whole ping / traceroute run
POLL_INTERVAL = 0.2  # seconds between cancellation checks

_RTT_RE = re.compile(r"time[=<]\s*([\d.]+)\s*ms", re.IGNORECASE)
_HOP_LINE_RE = re.compile(r"^\s*(\d+)\s+(.*)$")
_HOP_ADDR_RE = re.compile(r"(\d{1,3}(?:\.\d{1,3}){3}|[0-9a-fA-F]*:[0-9a-fA-F:]+)")


class EchoCollaborator(Protocol):
    def probe(self, address: str, count: int) -> List[Optional[float]]: ...


class TraceCollaborator(Protocol):
    def trace(self, address: str) -> List[str]: ...


def _is_windows() -> bool:
    return platform.system().lower() == "windows"


def _kill(proc: subprocess.Popen) -> None:
    proc.kill()
    proc.communicate()


def _run(
    cmd: List[str],
    address: str,
    timeout: float,
    cancel: Optional[threading.Event] = None,
) -> subprocess.CompletedProcess:
    # localized tool output may not be utf-8; undecodable bytes are replaced
    proc = subprocess.Popen(
        cmd,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        errors="replace",
    )
    deadline = time.monotonic() + timeout
    while True:
        try:
            out, _ = proc.communicate(timeout=POLL_INTERVAL)
        except subprocess.TimeoutExpired:
            if cancel is not None and cancel.is_set():
                _kill(proc)
                raise PipelineCancelled(address) from None
            if time.monotonic() >= deadline:
                _kill(proc)
                raise subprocess.TimeoutExpired(cmd, timeout) from None
            continue
        return subprocess.CompletedProcess(cmd, proc.returncode, stdout=out)


def _same_address(a: str, b: str) -> bool:
    try:
        return ipaddress.ip_address(a) == ipaddress.ip_address(b)
    except ValueError:
        return a == b


def parse_ping_output(output: str, count: int) -> List[Optional[float]]:
    """One entry per echo request: the RTT in ms, or None for a lost reply."""
    rtts: List[Optional[float]] = [float(m) for m in _RTT_RE.findall(output)][:count]
    return rtts + [None] * (count - len(rtts))


def parse_trace_output(output: str) -> List[str]:
    """Ordered hop identifiers; ``*`` marks a hop that never answered."""
    hops: List[str] = []
    for line in output.splitlines():
        m = _HOP_LINE_RE.match(line)
        if not m:
            continue
        addr = _HOP_ADDR_RE.search(m.group(2))
        hops.append(addr.group(1) if addr else "*")
    return hops


class SubprocessEcho:
    def __init__(self, timeout: float = DEFAULT_TIMEOUT, cancel: Optional[threading.Event] = None):
        self.timeout = timeout
        self.cancel = cancel

    def command(self, address: str, count: int) -> List[str]:
        if _is_windows():
            return ["ping", "-n", str(count), address]
        return ["ping", "-c", str(count), "-W", "1", address]

    def probe(self, address: str, count: int) -> List[Optional[float]]:
        try:
            out = _run(self.command(address, count), address, self.timeout, self.cancel)
        except subprocess.TimeoutExpired:
            raise ProbeDegraded(address, f"ping timed out after {self.timeout:g}s") from None
        except OSError as exc:
            raise ProbeDegraded(address, f"cannot run ping: {exc}") from exc
        # ping exits non-zero when any reply is lost, so parse regardless of returncode
        return parse_ping_output(out.stdout or "", count)


class SubprocessTrace:
    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        max_hops: int = 30,
        cancel: Optional[threading.Event] = None,
    ):
        self.timeout = timeout
        self.max_hops = max_hops
        self.cancel = cancel

    def command(self, address: str) -> List[str]:
        if _is_windows():
            return ["tracert", "-d", "-h", str(self.max_hops), address]
        return ["traceroute", "-n", "-q", "1", "-w", "2", "-m", str(self.max_hops), address]

    def trace(self, address: str) -> List[str]:
        try:
            out = _run(self.command(address), address, self.timeout, self.cancel)
        except subprocess.TimeoutExpired:
            raise TraceFailed(address, f"traceroute timed out after {self.timeout:g}s") from None
        except OSError as exc:
            raise TraceFailed(address, f"cannot run traceroute: {exc}") from exc
        if out.returncode != 0:
            snippet = (out.stdout or "").strip()[:200]
            raise TraceFailed(address, f"traceroute exited with {out.returncode}: {snippet}")
        return parse_trace_output(out.stdout or "")


class LatencyProbe:
    # non-fatal: any echo problem yields the sentinel, never an exception
    def __init__(self, echo: Optional[EchoCollaborator] = None, count: int = 10):
        if count < 1:
            raise InvalidRequest(f"echo count must be >= 1 (got {count})")
        self.echo = echo or SubprocessEcho()
        self.count = count

    def measure(self, address: str, count: Optional[int] = None) -> Tuple[float, bool]:
        n = self.count if count is None else count
        if n < 1:
            raise InvalidRequest(f"echo count must be >= 1 (got {n})")
        try:
            results = self.echo.probe(address, n)
        except PipelineCancelled:
            raise
        except Exception as exc:
            log_event(log, logging.INFO, "probe_degraded", str(exc), address=address,
                      kind=type(exc).__name__)
            return UNAVAILABLE_LATENCY, False
        successes = [r for r in results if r is not None]
        if not successes:
            log_event(log, logging.INFO, "probe_degraded", "no echo replies", address=address, sent=n)
            return UNAVAILABLE_LATENCY, False
        return mean(successes), True


class HopProbe:
    # fatal: any trace problem surfaces as TraceFailed
    def __init__(self, tracer: Optional[TraceCollaborator] = None):
        self.tracer = tracer or SubprocessTrace()

    def trace_hops(self, address: str) -> int:
        """
        Number of intermediate hops between here and *address*.

        The destination's own line is not counted when the trace reached it;
        hops that never answered (``*``) are.
        """
        try:
            hops = self.tracer.trace(address)
        except (TraceFailed, PipelineCancelled):
            raise
        except Exception as exc:
            raise TraceFailed(address, str(exc)) from exc
        if not hops:
            raise TraceFailed(address, "no hops recorded")
        if _same_address(hops[-1], address):
            return len(hops) - 1
        return len(hops)
