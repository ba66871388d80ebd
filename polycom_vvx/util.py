#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Simple utility functions used by this package
"""

from __future__ import annotations

from typing_extensions import SupportsIndex

import netifaces
import random
import socket
from ipaddress import ip_address, IPv4Address, IPv6Address

from polycom_vvx.internal_types import *

from email.parser import BytesHeaderParser
from email.message import Message as EmailParserMessage
from requests.structures import CaseInsensitiveDict

from .constants import EPHEMERAL_PORT_RANGE
from .exceptions import VvxError
from .pkg_logging import logger

def split_bytes_at_lf_or_crlf(data: bytes, maxsplit: SupportsIndex = -1) -> List[bytes]:
    """Split a byte string at LF or CRLF.

    If maxsplit is given, at most maxsplit splits are done.

    Returns a List[bytes] representing the delimiteds lines with the delimiters removed.
    """
    parts = data.split(b'\n', maxsplit)
    if len(parts) > 1:
        for i, part in enumerate(parts[:-1]):
            if part.endswith(b'\r'):
                parts[i] = part[:-1]
    return parts

def split_headers_and_body(data: bytes) -> Tuple[bytes, bytes]:
    """Spits a byte string with SIP/HTTP headers and an optional body into the headers and the body.

    A relaxed interpretation of '\n' as a line delimiter is accepted even though '\r\n' is required
    by the standard.

    Returns a Tuple[headers: bytes, body: bytes]. If there is no body, b'' is returned for the body.
    """
    delims = [b'\n\r\n', b'\n\n']
    first_i = -1
    first_nb = 0

    for delim in delims:
        i = data.find(delim)
        if i != -1:
            if first_i == -1 or i < first_i:
                first_i = i
                first_nb = len(delim)
    if first_i == -1:
        headers, body = data, b''
    else:
        headers, body = data[:first_i], data[first_i + first_nb:]
        if headers.endswith(b'\r'):
            headers = headers[:-1]

    return (headers, body)

def parse_http_headers(data: bytes) -> Tuple[CaseInsensitiveDict[str], bytes]:
    """Parse SIP/HTTP-style headers out of a byte string. Also returns the body of the message, if any.

    A relaxed interpretation of '\n' as a line delimiter is accepted even though '\r\n' is required
    by the standard.  The final line of the headers does not need to be terminated by a newline. If
    there is a body, it is separated from the headers with '\r\n\r\n', '\n\n', '\r\n\n', or '\r\n\n'.

    It is assumed that any preceding statement line (e.g., "SIP/2.0 200 OK\r\n") has already been removed.

    No decoding of header values is performed--e.g., quoted strings are left quoted. If a header
    is repeated, the last value wins.

    Returns a tuple of (headers: CaseInsensitiveDict[str], body: bytes).
    """

    headers_data, body = split_headers_and_body(data)
    i = 0

    # Normalize the header line endings to '\r\n'
    while True:
        i = headers_data.find(b'\n', i)
        if i == -1:
            break
        if i == 0 or headers_data[i - 1] != ord('\r'):
            headers_data = headers_data[:i] + b'\r' + headers_data[i:]
            i += 2
        else:
            i += 1

    msg: EmailParserMessage = BytesHeaderParser().parsebytes(headers_data)
    headers: CaseInsensitiveDict[str] = CaseInsensitiveDict(msg.items())
    return (headers, body)

def get_local_ip_addresses_and_interfaces(
        address_family: Union[socket.AddressFamily, int]=socket.AF_INET,
        include_loopback: bool=True
    ) -> List[Tuple[str, str]]:
    """Returns a list of Tuple[ip_address: str, interface_name: str] for the IP addresses of the local host
       in a requested address family. The result is sorted in a way that attempts to place the "preferred"
       canonical IP address first in the list, according to the following scheme:
           1. Addresses on the default gateway interface precede all other addresses.
           2. Non-loopback addresses precede loopback addresses.
           3. IPV4 addresses that begin with 172. follow other IPV4 addresses. This is a hack to
              deprioritize local docker network addresses.
    """
    result_with_priority: List[Tuple[int, str, str]] = []
    assert int(address_family) in (int(socket.AF_INET), int(socket.AF_INET6))
    is_ipv6 = int(address_family) == int(socket.AF_INET6)
    _, default_gateway_ifname = get_default_ip_gateway(address_family)
    netiface_family = netifaces.AF_INET6 if is_ipv6 else netifaces.AF_INET
    for ifname in netifaces.interfaces():
        ifinfo = netifaces.ifaddresses(ifname)
        if netiface_family in ifinfo:
            for addrinfo in ifinfo[netiface_family]:
              ip_str = addrinfo['addr'].split('%', 1)[0]
              assert isinstance(ip_str, str)
              if ifname == default_gateway_ifname:
                  priority = 0
              elif is_ipv6 and IPv6Address(ip_str).is_loopback:
                  if not include_loopback:
                      continue
                  priority = 3
              elif not is_ipv6 and IPv4Address(ip_str).is_loopback:
                  if not include_loopback:
                      continue
                  priority = 3
              elif not is_ipv6 and ip_str.startswith('172.'):
                  priority = 2
              else:
                  priority = 1

              result_with_priority.append((priority, ip_str, ifname))
    return [ (ip, ifname) for _, ip, ifname in sorted(result_with_priority)]

def get_local_ip_addresses(address_family: Union[socket.AddressFamily, int]=socket.AF_INET, include_loopback: bool=True) -> List[str]:
    """Returns a List[ip_address: str] for the IP addresses of the local host
       in a requested address family, in the preference order of get_local_ip_addresses_and_interfaces()."""
    return [ ip for ip, _ in get_local_ip_addresses_and_interfaces(address_family, include_loopback=include_loopback)]

def get_default_ip_gateway(address_family: socket.AddressFamily | int=socket.AF_INET) -> Tuple[Optional[str], Optional[str]]:
    """Returns the (gateway_ip_address: str, gateway_interface_name: str) for the default IP gateway in the
       requested family, if any.
       returns (None, None) if there is no default gateway in the requested family."""
    assert int(address_family) in (int(socket.AF_INET), int(socket.AF_INET6))
    netiface_family = netifaces.AF_INET if int(address_family) == int(socket.AF_INET) else netifaces.AF_INET6
    gws = netifaces.gateways()
    if "default" in gws:
        default_gateway_infos = gws["default"]
        if netiface_family in default_gateway_infos:
            gw_ip, gw_interface_name = default_gateway_infos[netiface_family][:2]
            return (gw_ip, gw_interface_name)
    return (None, None)

def get_local_ip_address(address_family: Union[socket.AddressFamily, int]=socket.AF_INET) -> str:
    """Returns the local IP address that phones should send SIP replies to.

    This is the first unicast, non-link-local address on the default gateway interface.
    If there is no default gateway, the first non-loopback, non-link-local address in
    preference order is used.

    Raises VvxError if the host has no usable address.
    """
    candidates = get_local_ip_addresses_and_interfaces(address_family, include_loopback=False)
    _, default_gateway_ifname = get_default_ip_gateway(address_family)
    usable = [ (ip, ifname) for ip, ifname in candidates if _is_usable_unicast(ip) ]
    for ip, ifname in usable:
        if ifname == default_gateway_ifname:
            return ip
    if len(usable) > 0:
        logger.debug(f"No default gateway interface; using local address {usable[0][0]}")
        return usable[0][0]
    raise VvxError("Unable to determine a local IP address; no active network interface has a unicast address")

def _is_usable_unicast(ip_str: str) -> bool:
    addr = ip_address(ip_str)
    return not (addr.is_link_local or addr.is_multicast or addr.is_loopback or addr.is_unspecified)

def is_port_in_use(port: int, local_ip: str="") -> bool:
    """Returns True if the given local port cannot be bound for both UDP and TCP."""
    for sock_type in (socket.SOCK_DGRAM, socket.SOCK_STREAM):
        with socket.socket(socket.AF_INET, sock_type) as sock:
            try:
                sock.bind((local_ip, port))
            except OSError:
                return True
    return False

def find_unused_local_port(
        local_ip: str="",
        port_range: Tuple[int, int]=EPHEMERAL_PORT_RANGE,
        max_attempts: int=100
      ) -> int:
    """Pick a random local port in port_range (inclusive) that is not in use.

    Raises VvxError if no free port is found in max_attempts tries.
    """
    low, high = port_range
    for _ in range(max_attempts):
        port = random.randint(low, high)
        if not is_port_in_use(port, local_ip):
            return port
    raise VvxError(f"No unused local port found in range {low}-{high} after {max_attempts} attempts")
