from __future__ import annotations

import netifaces
import pytest

from polycom_vvx import VvxError
from polycom_vvx import util

def fake_netifaces(monkeypatch, interfaces, default_ifname=None):
    gateways = {}
    if default_ifname is not None:
        gateways["default"] = {netifaces.AF_INET: ("10.0.0.1", default_ifname)}
    monkeypatch.setattr(util.netifaces, "interfaces", lambda: list(interfaces))
    monkeypatch.setattr(util.netifaces, "ifaddresses", lambda ifname: interfaces[ifname])
    monkeypatch.setattr(util.netifaces, "gateways", lambda: gateways)

def test_local_ip_prefers_default_gateway_interface(monkeypatch):
    fake_netifaces(monkeypatch, {
        "lo": {netifaces.AF_INET: [{"addr": "127.0.0.1"}]},
        "docker0": {netifaces.AF_INET: [{"addr": "172.17.0.1"}]},
        "eth0": {netifaces.AF_INET: [{"addr": "169.254.3.3"}, {"addr": "10.0.0.2"}]},
        "wlan0": {netifaces.AF_INET: [{"addr": "192.168.1.5"}]},
    }, default_ifname="eth0")
    assert util.get_local_ip_address() == "10.0.0.2"

def test_local_ip_without_gateway(monkeypatch):
    fake_netifaces(monkeypatch, {
        "lo": {netifaces.AF_INET: [{"addr": "127.0.0.1"}]},
        "docker0": {netifaces.AF_INET: [{"addr": "172.17.0.1"}]},
        "wlan0": {netifaces.AF_INET: [{"addr": "192.168.1.5"}]},
    })
    assert util.get_local_ip_address() == "192.168.1.5"

def test_local_ip_unavailable(monkeypatch):
    fake_netifaces(monkeypatch, {
        "lo": {netifaces.AF_INET: [{"addr": "127.0.0.1"}]},
        "eth0": {netifaces.AF_INET: [{"addr": "169.254.3.3"}]},
    })
    with pytest.raises(VvxError):
        util.get_local_ip_address()

def test_find_unused_local_port_in_range():
    port = util.find_unused_local_port("127.0.0.1", port_range=(50000, 50100))
    assert 50000 <= port <= 50100

def test_find_unused_local_port_gives_up(monkeypatch):
    monkeypatch.setattr(util, "is_port_in_use", lambda port, local_ip="": True)
    with pytest.raises(VvxError):
        util.find_unused_local_port(max_attempts=5)

def test_split_bytes_at_lf_or_crlf():
    assert util.split_bytes_at_lf_or_crlf(b"a\r\nb\nc") == [b"a", b"b", b"c"]
    assert util.split_bytes_at_lf_or_crlf(b"a\r\nb\r\nc", 1) == [b"a", b"b\r\nc"]

def test_local_ip_addresses_order(monkeypatch):
    fake_netifaces(monkeypatch, {
        "lo": {netifaces.AF_INET: [{"addr": "127.0.0.1"}]},
        "docker0": {netifaces.AF_INET: [{"addr": "172.17.0.1"}]},
        "wlan0": {netifaces.AF_INET: [{"addr": "192.168.1.5"}]},
        "eth0": {netifaces.AF_INET: [{"addr": "10.0.0.2"}]},
    }, default_ifname="eth0")
    assert util.get_local_ip_addresses() == ["10.0.0.2", "192.168.1.5", "172.17.0.1", "127.0.0.1"]
    assert "127.0.0.1" not in util.get_local_ip_addresses(include_loopback=False)
