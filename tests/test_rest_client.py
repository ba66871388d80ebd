from __future__ import annotations

import json

import pytest
import requests

from polycom_vvx import (
    RestClient,
    Credential,
    VvxApiError,
    VvxUnknownStatusError,
    VvxInvalidResponseError,
    build_uri,
    wrap_body,
    classify_response,
)
from polycom_vvx.rest_client import RestCall, RestCallHistory, normalize_method

from conftest import FakeSession, make_response

def test_build_uri_defaults():
    assert build_uri("10.0.0.21", "mgmt/device/info") == "HTTP://10.0.0.21:80/api/v1/mgmt/device/info"

def test_build_uri_https_and_empty_base():
    assert build_uri("phone1", "mgmt/device/info", protocol="HTTPS", port=443) == "HTTPS://phone1:443/api/v1/mgmt/device/info"
    assert build_uri("phone1", "push", protocol="HTTP", port=80, base="") == "HTTP://phone1:80/push"

def test_wrap_body():
    assert wrap_body(None) is None
    assert wrap_body({}) == {"data": {}}
    assert wrap_body({"Dest": "1234"}) == {"data": {"Dest": "1234"}}
    assert wrap_body(["device.prov.serverName"]) == {"data": ["device.prov.serverName"]}
    assert wrap_body(("a", "b")) == {"data": ["a", "b"]}
    assert wrap_body("x") == {"data": ["x"]}

def test_normalize_method():
    assert normalize_method("POST") == "Post"
    assert normalize_method("get") == "Get"
    with pytest.raises(ValueError):
        normalize_method("TRACE")

def test_classify_success():
    assert classify_response({"Status": 2000, "data": {"Model": "VVX 500"}}) == {"Model": "VVX 500"}
    assert classify_response({"Status": "2000", "data": [1]}) == [1]
    assert classify_response({"Status": 2000}) is None

@pytest.mark.parametrize("code,message", [
    (4001, "Device busy"),
    (4002, "Line not registered"),
    (4003, "Operation not allowed"),
    (4004, "Operation not supported"),
    (4005, "Line does not exist"),
    (4006, "URLs not configured"),
    (4007, "Call does not exist"),
    (4008, "Configuration export failed"),
    (4009, "Input size limit exceeded"),
    (4010, "Default password not allowed"),
    (5000, "Failed to process request"),
])
def test_classify_known_error_status(code, message):
    with pytest.raises(VvxApiError) as excinfo:
        classify_response({"Status": code}, uri="HTTP://phone:80/api/v1/x")
    assert excinfo.value.status_code == code
    assert excinfo.value.description == message
    assert f"API call failed - {message}" in str(excinfo.value)

def test_classify_unknown_status():
    with pytest.raises(VvxUnknownStatusError) as excinfo:
        classify_response({"Status": 4999})
    assert excinfo.value.status_value == 4999
    with pytest.raises(VvxUnknownStatusError):
        classify_response({"Status": "busy"})

def test_classify_rejects_non_envelope():
    with pytest.raises(VvxInvalidResponseError):
        classify_response(["not", "an", "envelope"])
    with pytest.raises(VvxInvalidResponseError):
        classify_response({"data": {}})

def test_dispatch_device_info_over_https(ok_response):
    session = FakeSession(ok_response({"Model": "VVX 411", "Firmware": {"Application": "6.4.0"}}))
    client = RestClient(credential=Credential("Polycom", "456"), session=session)
    data = client.dispatch("10.0.0.21", "mgmt/device/info", protocol="HTTPS", port=443)
    assert data == {"Model": "VVX 411", "Firmware": {"Application": "6.4.0"}}
    request = session.requests[0]
    assert request["method"] == "GET"
    assert request["url"] == "HTTPS://10.0.0.21:443/api/v1/mgmt/device/info"
    assert request["data"] is None
    assert request["headers"] == {"Content-Type": "application/json"}
    assert isinstance(request["auth"], requests.auth.HTTPBasicAuth)
    assert request["auth"].username == "Polycom"
    assert request["timeout"] == pytest.approx(0.3)
    assert request["verify"] is True
    assert request["allow_redirects"] is False

def test_dispatch_empty_mapping_sends_empty_data(ok_response):
    session = FakeSession(ok_response())
    client = RestClient(session=session)
    client.dispatch("phone", "mgmt/factoryReset", method="Post", body={})
    assert session.requests[0]["method"] == "POST"
    assert session.requests[0]["data"] == b'{"data":{}}'
    assert client.last_call.request_body == '{"data":{}}'

def test_dispatch_serializes_body(ok_response):
    session = FakeSession(ok_response())
    client = RestClient(session=session)
    client.dispatch("phone", "callctrl/dial", method="POST", body={"Dest": "1234", "Line": "1", "Type": "SIP"})
    assert json.loads(session.requests[0]["data"]) == {"data": {"Dest": "1234", "Line": "1", "Type": "SIP"}}

def test_dispatch_raises_api_error_without_retry():
    session = FakeSession(make_response(json_body={"Status": 4007}))
    client = RestClient(session=session, retry_count=3)
    with pytest.raises(VvxApiError) as excinfo:
        client.dispatch("phone", "callctrl/endCall", method="Post", body={"Ref": "0x1"})
    assert excinfo.value.status_code == 4007
    assert len(session.requests) == 1

def test_retries_are_bounded():
    session = FakeSession(requests.ConnectionError("connection refused"))
    client = RestClient(session=session, retry_count=2)
    with pytest.raises(requests.ConnectionError):
        client.dispatch("phone", "mgmt/device/info")
    assert len(session.requests) == 3
    assert [c.attempt for c in client.history] == [1, 2, 3]
    assert client.last_call.error == "connection refused"

def test_zero_retries_makes_one_attempt():
    session = FakeSession(requests.Timeout("timed out"))
    client = RestClient(session=session, retry_count=0)
    with pytest.raises(requests.Timeout):
        client.dispatch("phone", "mgmt/device/info")
    assert len(session.requests) == 1

def test_retry_then_success(ok_response):
    session = FakeSession(requests.Timeout("timed out"), ok_response({"ok": True}))
    client = RestClient(session=session, retry_count=3)
    assert client.dispatch("phone", "mgmt/device/info") == {"ok": True}
    assert len(session.requests) == 2
    assert client.last_call.attempt == 2
    assert client.last_call.error is None
    assert client.last_call.http_status == 200

def test_http_error_status_is_retried(ok_response):
    session = FakeSession(make_response(500, text="boom"), ok_response())
    client = RestClient(session=session, retry_count=1)
    client.dispatch("phone", "mgmt/device/info")
    assert len(session.requests) == 2
    calls = list(client.history)
    assert calls[0].http_status == 500
    assert calls[0].error is not None

def test_http_error_status_raised_when_retries_exhausted():
    session = FakeSession(make_response(401, text="unauthorized"))
    client = RestClient(session=session, retry_count=1)
    with pytest.raises(requests.HTTPError):
        client.dispatch("phone", "mgmt/device/info")
    assert len(session.requests) == 2

def test_non_json_response_is_invalid():
    session = FakeSession(make_response(200, text="<html>login</html>"))
    client = RestClient(session=session)
    with pytest.raises(VvxInvalidResponseError):
        client.dispatch("phone", "mgmt/device/info")

def test_last_call_is_recorded_before_sending(ok_response):
    seen = []
    session = FakeSession(ok_response())
    client = RestClient(session=session)

    def on_request(method, url, **kwargs):
        seen.append(client.last_call)

    session.on_request = on_request
    client.dispatch("phone", "mgmt/device/info", credential=("admin", "secret"))
    assert seen[0] is not None
    assert seen[0].uri == "HTTP://phone:80/api/v1/mgmt/device/info"
    assert seen[0].method == "GET"
    assert seen[0].credential == "admin"
    assert seen[0].http_status is None

def test_calls_do_not_share_diagnostics(ok_response):
    session = FakeSession(ok_response(), ok_response())
    client = RestClient(session=session)
    client.dispatch("phone", "mgmt/factoryReset", method="Post", body={})
    first = client.last_call
    client.dispatch("phone", "mgmt/device/info")
    second = client.last_call
    assert first is not second
    assert first.request_body == '{"data":{}}'
    assert second.request_body is None
    assert len(client.history) == 2

def test_history_is_bounded():
    history = RestCallHistory(maxlen=2)
    for i in range(3):
        history.record(RestCall(f"HTTP://phone:80/{i}", "GET", None, None))
    assert [c.uri for c in history] == ["HTTP://phone:80/1", "HTTP://phone:80/2"]
    assert history.last.uri == "HTTP://phone:80/2"
    history.clear()
    assert history.last is None

def test_password_is_never_recorded(ok_response):
    session = FakeSession(ok_response())
    client = RestClient(credential=Credential("Polycom", "s3cret"), session=session)
    client.dispatch("phone", "mgmt/device/info")
    assert "s3cret" not in json.dumps(client.last_call.to_jsonable())
    assert "s3cret" not in str(client.credential)

def test_tls_policy_is_per_client(ok_response):
    lax = RestClient(ignore_tls_errors=True, session=FakeSession(ok_response()))
    strict = RestClient(session=FakeSession(ok_response()))
    lax.dispatch("phone", "mgmt/device/info", protocol="HTTPS", port=443)
    strict.dispatch("phone", "mgmt/device/info", protocol="HTTPS", port=443)
    assert lax.session.requests[0]["verify"] is False
    assert strict.session.requests[0]["verify"] is True

def test_tls_can_be_relaxed_per_call(ok_response):
    session = FakeSession(ok_response())
    client = RestClient(session=session)
    client.dispatch("phone", "mgmt/device/info", protocol="HTTPS", port=443, ignore_tls_errors=True)
    client.dispatch("phone", "mgmt/device/info", protocol="HTTPS", port=443)
    assert session.requests[0]["verify"] is False
    assert session.requests[1]["verify"] is True

def test_get_uri_uses_longer_timeout():
    session = FakeSession(make_response(json_body={"version": "1.0"}))
    client = RestClient(session=session)
    assert client.get_uri("http://phone/api/v1/mgmt/version") == {"version": "1.0"}
    assert session.requests[0]["timeout"] == pytest.approx(0.8)

def test_get_uri_returns_text_when_not_json():
    session = FakeSession(make_response(text="plain text"))
    client = RestClient(session=session)
    assert client.get_uri("http://phone/status.txt") == "plain text"

def test_invalid_method_is_rejected_before_sending():
    session = FakeSession(make_response(json_body={"Status": 2000}))
    client = RestClient(session=session)
    with pytest.raises(ValueError):
        client.dispatch("phone", "mgmt/device/info", method="Trace")
    assert session.requests == []

def test_context_manager_closes_session(ok_response):
    session = FakeSession(ok_response())
    with RestClient(session=session) as client:
        client.dispatch("phone", "mgmt/device/info")
    assert session.closed
