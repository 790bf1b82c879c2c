import asyncio
import errno
import io
import ssl
import sys
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import pytest
import trustme
from aiohttp import web
from aiohttp.test_utils import TestServer

from traffic_replay import scheduler
from traffic_replay.models import RequestOutcome


@asynccontextmanager
async def _serve(app: web.Application, ssl_context: Optional[ssl.SSLContext] = None):
    server = TestServer(app, host="127.0.0.1")
    if ssl_context is None:
        await server.start_server()
    else:
        await server.start_server(ssl=ssl_context)
    try:
        yield server
    finally:
        await server.close()


@pytest.fixture
def serve():
    """Async context manager running an aiohttp app on a free local port."""
    return _serve


@pytest.fixture(scope="session")
def server_tls():
    """Server-side SSL context with a certificate from a throwaway CA."""
    ca = trustme.CA()
    cert = ca.issue_cert("127.0.0.1")
    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    cert.configure_cert(context)
    return context


class BrokenStdout(io.StringIO):
    """stdout whose reader has gone away: success lines fail with EPIPE."""

    def write(self, text):
        if "✓" in text:
            raise BrokenPipeError(errno.EPIPE, "Broken pipe")
        return super().write(text)


@pytest.fixture
def broken_stdout(monkeypatch):
    stream = BrokenStdout()
    monkeypatch.setattr(sys, "stdout", stream)
    return stream


@pytest.fixture
def write_csv(tmp_path):
    def _write(content: str, name: str = "requests.csv") -> str:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return str(path)

    return _write


@dataclass
class FakeExecutor:
    delay: float = 0.0
    success: bool = True
    raises: Optional[BaseException] = None
    calls: List[Tuple[str, int]] = field(default_factory=list)
    finished: List[str] = field(default_factory=list)

    async def __call__(self, url, timeout_ms, handle=None, report=True):
        self.calls.append((url, time.perf_counter_ns()))
        if self.delay:
            await asyncio.sleep(self.delay)
        self.finished.append(url)
        if self.raises is not None:
            raise self.raises
        if self.success:
            return RequestOutcome(url=url, success=True, latency_ns=int(self.delay * 1e9),
                                  status_code=200)
        return RequestOutcome(url=url, success=False, latency_ns=int(self.delay * 1e9),
                              status_code=500, error_kind="HTTP_500", error_detail="HTTP 500")

    def gaps_ms(self) -> List[float]:
        times = [t for _, t in self.calls]
        return [(b - a) / 1e6 for a, b in zip(times, times[1:])]


@pytest.fixture
def fake_execute(monkeypatch):
    """Replace the request executor used by the scheduler with a recorder."""
    fake = FakeExecutor()
    monkeypatch.setattr(scheduler, "execute_request", fake)
    return fake
