"""Bounded-time reachability checks against a gateway endpoint."""

import base64
import os
import time
from dataclasses import dataclass
from urllib.parse import urlsplit, urlunsplit

import httpx
from loguru import logger

DEFAULT_PROBE_TIMEOUT_MS = 1500
DEFAULT_POLL_INTERVAL_MS = 500


@dataclass(frozen=True)
class GatewayCredentials:
    token: str | None = None
    password: str | None = None


@dataclass(frozen=True)
class ProbeResult:
    reachable: bool
    detail: str | None = None


@dataclass(frozen=True)
class ControlUiLinks:
    http_url: str
    ws_url: str


def _http_url(url: str) -> str:
    parts = urlsplit(url.strip())
    scheme = {"ws": "http", "wss": "https"}.get(parts.scheme, parts.scheme)
    if scheme not in {"http", "https"}:
        raise ValueError(f"unsupported scheme '{parts.scheme}'")
    if not parts.netloc:
        raise ValueError("missing host")
    return urlunsplit((scheme, parts.netloc, parts.path or "/", parts.query, ""))


def _handshake_headers(credentials: GatewayCredentials | None) -> dict[str, str]:
    headers = {
        "Connection": "Upgrade",
        "Upgrade": "websocket",
        "Sec-WebSocket-Version": "13",
        "Sec-WebSocket-Key": base64.b64encode(os.urandom(16)).decode("ascii"),
    }
    if credentials and credentials.token:
        headers["Authorization"] = f"Bearer {credentials.token}"
    elif credentials and credentials.password:
        headers["X-Gateway-Password"] = credentials.password
    return headers


def _probe_timeout(deadline_ms: int) -> httpx.Timeout:
    # httpx bounds each phase separately; the shares sum to one deadline.
    budget = deadline_ms / 1000
    return httpx.Timeout(connect=budget * 0.4, read=budget * 0.4, write=budget * 0.1, pool=budget * 0.1)


def probe(
    url: str,
    credentials: GatewayCredentials | None = None,
    deadline_ms: int = DEFAULT_PROBE_TIMEOUT_MS,
    transport: httpx.BaseTransport | None = None,
) -> ProbeResult:
    """Make one handshake attempt. Never raises; failures come back as reachable=False.

    Only the status line and headers are read, so the attempt takes at most
    about deadline_ms.
    """
    if deadline_ms <= 0:
        return ProbeResult(reachable=False, detail="timeout")

    try:
        target = _http_url(url)
    except ValueError as e:
        return ProbeResult(reachable=False, detail=f"invalid url: {e}")

    timeout = _probe_timeout(deadline_ms)
    try:
        with httpx.Client(timeout=timeout, transport=transport, follow_redirects=False) as client:
            with client.stream("GET", target, headers=_handshake_headers(credentials)) as r:
                status_code = r.status_code
    except httpx.TimeoutException:
        return ProbeResult(reachable=False, detail="timeout")
    except httpx.HTTPError as e:
        return ProbeResult(reachable=False, detail=str(e) or e.__class__.__name__)
    except Exception as e:
        logger.debug(f"probe {url} failed unexpectedly: {e!r}")
        return ProbeResult(reachable=False, detail=str(e) or e.__class__.__name__)

    # A WebSocket endpoint answers a plain GET with 101 or 426.
    if status_code in {101, 426} or status_code < 400:
        return ProbeResult(reachable=True)
    if status_code in {401, 403}:
        return ProbeResult(reachable=False, detail="unauthorized")
    return ProbeResult(reachable=False, detail=f"HTTP {status_code}")


def wait_for_reachable(
    url: str,
    credentials: GatewayCredentials | None = None,
    deadline_ms: int = 15_000,
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
    probe_timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS,
) -> bool:
    """Poll until the gateway answers or the deadline passes.

    Used right after a restart, when the endpoint may be briefly down.
    """
    started = time.monotonic()
    deadline = started + max(deadline_ms, 0) / 1000
    attempts = 0
    while True:
        remaining_ms = int((deadline - time.monotonic()) * 1000)
        if remaining_ms <= 0:
            break
        attempts += 1
        result = probe(url, credentials, min(probe_timeout_ms, remaining_ms))
        if result.reachable:
            logger.debug(f"{url} reachable after {attempts} attempt(s)")
            return True
        sleep_s = min(poll_interval_ms / 1000, max(deadline - time.monotonic(), 0))
        if sleep_s > 0:
            time.sleep(sleep_s)
    logger.info(f"{url} not reachable within {deadline_ms}ms ({attempts} attempt(s))")
    return False


def resolve_control_ui_links(
    bind: str,
    port: int,
    custom_bind_host: str | None = None,
    base_path: str | None = None,
) -> ControlUiLinks:
    if bind == "custom" and custom_bind_host:
        host = custom_bind_host
    else:
        host = "127.0.0.1"
    path = ""
    if base_path:
        path = "/" + base_path.strip("/")
        if path == "/":
            path = ""
    return ControlUiLinks(
        http_url=f"http://{host}:{port}{path}/",
        ws_url=f"ws://{host}:{port}",
    )
