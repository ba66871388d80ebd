from __future__ import annotations

import json
import socket
import threading
from typing import Any, Callable, List, Optional, Union

import pytest
import requests

@pytest.fixture(autouse=True)
def _isolate_config_env(tmp_path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("POLYCOM_VVX_CONFIG", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    yield

Reply = Union[None, bytes, Callable[[bytes], Optional[bytes]]]

class SipResponder:
    """A loopback UDP peer that answers one datagram per canned reply, in order.
       A None reply receives the datagram and stays silent."""

    def __init__(self, *replies: Reply):
        self.replies = list(replies)
        self.received: List[bytes] = []
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.settimeout(5.0)
        self.port: int = self.sock.getsockname()[1]
        self.thread = threading.Thread(target=self._serve, daemon=True)
        self.thread.start()

    def _serve(self) -> None:
        for reply in self.replies:
            try:
                data, addr = self.sock.recvfrom(65535)
            except OSError:
                return
            self.received.append(data)
            if callable(reply):
                reply = reply(data)
            if reply is not None:
                self.sock.sendto(reply, addr)

    def close(self) -> None:
        self.thread.join(timeout=6.0)
        self.sock.close()

@pytest.fixture
def sip_responder():
    responders: List[SipResponder] = []

    def _make(*replies: Reply) -> SipResponder:
        responder = SipResponder(*replies)
        responders.append(responder)
        return responder

    yield _make
    for responder in responders:
        responder.close()

def make_response(status_code: int=200, json_body: Any=None, text: Optional[str]=None, url: str="http://phone/") -> requests.Response:
    resp = requests.Response()
    resp.status_code = status_code
    if json_body is not None:
        text = json.dumps(json_body)
    resp._content = (text or "").encode("utf-8")
    resp.encoding = "utf-8"
    resp.url = url
    return resp

class FakeSession:
    """Stands in for requests.Session; replays queued responses or exceptions in order.
       When the queue holds one item, it is repeated forever."""

    def __init__(self, *outcomes: Union[requests.Response, BaseException], on_request: Optional[Callable[..., None]]=None):
        self.outcomes = list(outcomes)
        self.requests: List[dict] = []
        self.on_request = on_request
        self.closed = False

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        self.requests.append(dict(method=method, url=url, **kwargs))
        if self.on_request is not None:
            self.on_request(method, url, **kwargs)
        outcome = self.outcomes[0] if len(self.outcomes) == 1 else self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def close(self) -> None:
        self.closed = True

@pytest.fixture
def ok_response():
    def _make(data: Any=None, status: Any=2000) -> requests.Response:
        return make_response(json_body={"Status": status, "data": data})
    return _make
