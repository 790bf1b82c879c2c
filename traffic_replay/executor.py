"""
Execution of a single replayed GET request.
"""

import asyncio
import errno
import socket
import ssl
import sys
from typing import Optional, Tuple

import aiohttp

from .models import InvalidURLError, RequestOutcome
from .pool import PoolHandle
from .utils import now_ns

CHUNK_SIZE = 64 * 1024

TIMEOUT = "TIMEOUT"
INVALID_URL = "INVALID_URL"
CONNECTION_ERROR = "CONNECTION_ERROR"
CERT_VERIFY_FAILED = "CERT_VERIFY_FAILED"
SSL_ERROR = "SSL_ERROR"
UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


def _errno_name(code: Optional[int]) -> str:
    if not code:
        return CONNECTION_ERROR
    return errno.errorcode.get(code, CONNECTION_ERROR)


def classify_error(err: BaseException) -> Tuple[str, str]:
    """Map a transport exception to (error_kind, detail)."""
    detail = str(err) or type(err).__name__
    # ssl errors carry OpenSSL codes in errno, not OS error numbers
    if isinstance(err, (aiohttp.ClientConnectorCertificateError, ssl.SSLCertVerificationError)):
        return CERT_VERIFY_FAILED, detail
    if isinstance(err, (aiohttp.ClientSSLError, ssl.SSLError)):
        return SSL_ERROR, detail
    if isinstance(err, aiohttp.ClientConnectorError):
        if isinstance(err.os_error, ssl.SSLCertVerificationError):
            return CERT_VERIFY_FAILED, detail
        if isinstance(err.os_error, ssl.SSLError):
            return SSL_ERROR, detail
        if isinstance(err.os_error, socket.gaierror):
            return "ENOTFOUND", detail
        return _errno_name(err.os_error.errno), detail
    if isinstance(err, aiohttp.ServerDisconnectedError):
        return "ECONNRESET", detail
    if isinstance(err, aiohttp.ClientPayloadError):
        return "PAYLOAD_ERROR", detail
    if isinstance(err, aiohttp.InvalidURL):
        return INVALID_URL, detail
    if isinstance(err, OSError):
        return _errno_name(err.errno), detail
    return CONNECTION_ERROR, detail


async def _fetch(session: aiohttp.ClientSession, url: str) -> int:
    async with session.get(url, allow_redirects=False) as resp:
        # Drain the whole body like a real client would, without keeping it
        async for _ in resp.content.iter_chunked(CHUNK_SIZE):
            pass
        return resp.status


async def _fetch_with_deadline(url: str, timeout_s: float,
                               handle: Optional[PoolHandle]) -> int:
    if handle is not None:
        return await asyncio.wait_for(_fetch(handle.session, url), timeout_s)
    async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=None)) as session:
        return await asyncio.wait_for(_fetch(session, url), timeout_s)


async def execute_request(
    url: str,
    timeout_ms: float,
    handle: Optional[PoolHandle] = None,
    report: bool = True,
) -> RequestOutcome:
    """
    Issue one GET request and return its outcome. Never raises for request
    failures: HTTP errors, timeouts and transport errors all end up in the
    returned RequestOutcome.

    Latency runs from just before the request is sent until the body has been
    read to the end (or the failure is known).
    """
    timeout_s = timeout_ms / 1000.0
    req_start_ns = now_ns()
    status: Optional[int] = None
    error_kind: Optional[str] = None
    error_detail: Optional[str] = None

    try:
        status = await _fetch_with_deadline(url, timeout_s, handle)
    except asyncio.TimeoutError:
        error_kind = TIMEOUT
        error_detail = f"no complete response within {timeout_ms:g}ms"
    except (aiohttp.ClientError, OSError) as e:
        error_kind, error_detail = classify_error(e)
    except Exception as e:
        error_kind = UNEXPECTED_ERROR
        error_detail = f"{type(e).__name__}: {e}"
    latency_ns = now_ns() - req_start_ns

    if status is not None:
        if 200 <= status < 300:
            outcome = RequestOutcome(url=url, success=True, latency_ns=latency_ns,
                                     status_code=status)
        else:
            outcome = RequestOutcome(url=url, success=False, latency_ns=latency_ns,
                                     status_code=status, error_kind=f"HTTP_{status}",
                                     error_detail=f"HTTP {status}")
    else:
        outcome = RequestOutcome(url=url, success=False, latency_ns=latency_ns,
                                 error_kind=error_kind, error_detail=error_detail)

    if report:
        report_outcome(outcome)
    return outcome


def failed_outcome(url: str, error_kind: str, error_detail: str, latency_ns: int = 0) -> RequestOutcome:
    return RequestOutcome(url=url, success=False, latency_ns=max(0, latency_ns),
                          error_kind=error_kind, error_detail=error_detail)


def invalid_url_outcome(err: InvalidURLError) -> RequestOutcome:
    """Failed outcome for a record whose URL could not be rewritten."""
    return failed_outcome(err.url, INVALID_URL, err.reason)


def format_outcome(outcome: RequestOutcome) -> str:
    if outcome.success:
        return f"✓ {outcome.url} - {outcome.status_code} ({outcome.latency_ms:.2f}ms)"
    return (f"✗ ERROR: {outcome.url} - {outcome.error_kind}: {outcome.error_detail} "
            f"({outcome.latency_ms:.2f}ms)")


def report_outcome(outcome: RequestOutcome) -> bool:
    """
    Print one line per finished request: stdout on success, stderr on failure.
    Returns False if the console could not be written (closed pipe, encoding);
    the outcome is still counted by the caller.
    """
    stream = sys.stdout if outcome.success else sys.stderr
    try:
        print(format_outcome(outcome), file=stream)
    except (OSError, ValueError):
        return False
    return True
