"""Pytest fixtures for chainrpc_ws tests.

Provides an in-memory socket handle with the same surface as
``WebSocketHandle`` so provider behaviour can be driven frame by frame.
"""

import asyncio
import os
from typing import Any, Dict, List, Optional

import pytest

from chainrpc_ws.client.config import ENV_VAR_MAPPING
from chainrpc_ws.client.transport import ReadyState
from chainrpc_ws.errors import SendRejectedError


class FakeSocket:
    """Scriptable socket handle."""

    def __init__(
        self,
        url: str,
        protocol: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        options: Optional[Dict[str, Any]] = None,
    ):
        self.url = url
        self.protocol = protocol
        self.headers = dict(headers or {})
        self.options = dict(options or {})
        self.ready_state = ReadyState.CONNECTING
        self.sent: List[str] = []
        self.close_calls = 0
        self.fail_sends = False
        self.close_delay = 0.0

        self.on_open = None
        self.on_message = None
        self.on_close = None
        self.on_error = None

    # -- driven by tests ----------------------------------------------------

    def accept(self) -> None:
        self.ready_state = ReadyState.OPEN
        if self.on_open:
            self.on_open()

    def receive(self, text: str) -> None:
        if self.on_message:
            self.on_message(text)

    def drop(self, code: int = 1006, reason: str = "") -> None:
        self.ready_state = ReadyState.CLOSED
        if self.on_close:
            self.on_close(code, reason)

    def fail(self, exc: BaseException) -> None:
        if self.on_error:
            self.on_error(exc)
        self.drop()

    # -- handle surface -----------------------------------------------------

    async def send(self, text: str) -> None:
        if self.ready_state != ReadyState.OPEN:
            raise SendRejectedError("connection not open")
        if self.fail_sends:
            raise ConnectionResetError("peer went away")
        self.sent.append(text)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.close_calls += 1
        if self.close_delay:
            await asyncio.sleep(self.close_delay)
        if self.ready_state == ReadyState.CLOSED:
            return
        self.drop(code, reason)


class FakeSocketFactory:
    """Socket factory recording every handle it creates.

    With ``auto_open`` the handles start in OPEN state (no open event).
    """

    def __init__(self, auto_open: bool = True):
        self.auto_open = auto_open
        self.sockets: List[FakeSocket] = []

    def __call__(self, url, protocol, headers, options) -> FakeSocket:
        sock = FakeSocket(url, protocol, headers, options)
        if self.auto_open:
            sock.ready_state = ReadyState.OPEN
        self.sockets.append(sock)
        return sock

    @property
    def last(self) -> FakeSocket:
        return self.sockets[-1]


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep user config files and CHAINRPC_WS_* variables out of tests."""
    for env_var in ENV_VAR_MAPPING.values():
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.delenv("CHAINRPC_WS_TRACE_LOG", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    yield


@pytest.fixture
def socket_factory() -> FakeSocketFactory:
    return FakeSocketFactory()


class CallbackRecorder:
    """Collects ``(error, result)`` callback invocations."""

    def __init__(self):
        self.calls: List[tuple] = []

    def __call__(self, error, result) -> None:
        self.calls.append((error, result))

    @property
    def error(self):
        return self.calls[-1][0]

    @property
    def result(self):
        return self.calls[-1][1]


@pytest.fixture
def recorder() -> CallbackRecorder:
    return CallbackRecorder()


@pytest.fixture
def recorder_factory():
    return CallbackRecorder
