from __future__ import annotations

import json

import requests

from polycom_vvx import __version__
from polycom_vvx.__main__ import run

from conftest import make_response

IDLE_VVX_REPLY = (
    b"SIP/2.0 200 OK\r\n"
    b"Contact: <sip:VVX310@10.0.0.30:5060>;PolycomVVX\r\n"
    b"User-Agent: PolycomVVX-VVX_310-UA/5.9.7.3480\r\n"
    b"\r\n"
)

def read_json_objects(text: str):
    decoder = json.JSONDecoder()
    objects = []
    text = text.strip()
    while text:
        obj, end = decoder.raw_decode(text)
        objects.append(obj)
        text = text[end:].strip()
    return objects

def test_version(capsys):
    assert run(["version"]) == 0
    assert capsys.readouterr().out.strip() == __version__

def test_bare_command_fails(capsys):
    assert run([]) == 1
    assert "A command is required" in capsys.readouterr().err

def test_commands_lists_catalogue(capsys):
    assert run(["commands"]) == 0
    out = capsys.readouterr().out
    assert "factory-reset" in out
    assert "mgmt/factoryReset" in out

def test_discover(capsys, sip_responder):
    responder = sip_responder(IDLE_VVX_REPLY)
    rc = run([
        "discover", "127.0.0.1",
        "--sip-port", str(responder.port),
        "--local-ip", "127.0.0.1",
        "--local-port", "0",
        "--wait-time", "2000",
    ])
    assert rc == 0
    results = read_json_objects(capsys.readouterr().out)
    assert results[0]["status"] == "Online"
    assert results[0]["device_type"] == "VVX 310"

def test_command_reports_each_device(capsys, monkeypatch):
    def fake_request(self, method, url, **kwargs):
        if "//good:" in url:
            return make_response(json_body={"Status": 2000, "data": {"Model": "VVX 501"}})
        raise requests.ConnectionError("unreachable")

    monkeypatch.setattr(requests.Session, "request", fake_request)
    rc = run(["command", "device-info", "good", "bad", "--retry-count", "0", "-u", "Polycom", "-p", "456"])
    assert rc == 1
    results = read_json_objects(capsys.readouterr().out)
    assert results[0] == {"device": "good", "result": {"Model": "VVX 501"}}
    assert results[1]["device"] == "bad"
    assert "unreachable" in results[1]["error"]

def test_rest_with_body(capsys, monkeypatch):
    sent = []

    def fake_request(self, method, url, **kwargs):
        sent.append((method, url, kwargs["data"]))
        return make_response(json_body={"Status": 2000, "data": None})

    monkeypatch.setattr(requests.Session, "request", fake_request)
    rc = run(["rest", "phone", "--command", "mgmt/factoryReset", "-X", "post", "--body", "{}", "--protocol", "https", "--port", "443"])
    assert rc == 0
    assert sent == [("POST", "HTTPS://phone:443/api/v1/mgmt/factoryReset", b'{"data":{}}')]

def test_invalid_body_is_an_error(capsys):
    rc = run(["rest", "phone", "--command", "mgmt/config/set", "--body", "{not json"])
    assert rc == 1
    assert "polycom-vvx: error: --body is not valid JSON" in capsys.readouterr().err

def test_config_file_supplies_defaults(capsys, monkeypatch, tmp_path):
    config_file = tmp_path / "vvx.json"
    config_file.write_text('{"protocol": "HTTPS", "port": 8443}')
    sent = []

    def fake_request(self, method, url, **kwargs):
        sent.append(url)
        return make_response(json_body={"Status": 2000, "data": {}})

    monkeypatch.setattr(requests.Session, "request", fake_request)
    assert run(["-c", str(config_file), "command", "line-info", "phone"]) == 0
    assert sent == ["HTTPS://phone:8443/api/v1/mgmt/lineInfo"]

def test_timeout_option_overrides_command_timeout(capsys, monkeypatch):
    timeouts = []

    def fake_request(self, method, url, **kwargs):
        timeouts.append(kwargs["timeout"])
        return make_response(json_body={"Status": 2000, "data": None})

    monkeypatch.setattr(requests.Session, "request", fake_request)
    body = '{"Dest": "5551234", "Line": "1", "Type": "SIP"}'
    assert run(["command", "dial", "phone", "--body", body]) == 0
    assert run(["command", "dial", "phone", "--body", body, "--timeout", "1000"]) == 0
    assert timeouts == [5.0, 1.0]
