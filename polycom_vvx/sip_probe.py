# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
SipProbe -- A one-shot SIP NOTIFY prober that can:

  1. Send a SIP NOTIFY request to a single phone over UDP (typically port 5060)
  2. Wait a bounded time for the phone's reply
  3. Classify the reply into a DiscoveryResult (is it there, what model, who is logged in)
     or a NotifyResult (was the event, e.g. "check-sync", accepted by a VVX phone)

Each probe owns exactly one UDP socket for the duration of the attempt. There is no
retry at this layer: one attempt, one result, per device. Connectivity problems are
reported in the result's status field and are never raised.
"""

from __future__ import annotations

import datetime
import re
import select
import socket
from dataclasses import dataclass, asdict
from enum import Enum

from .internal_types import *
from .pkg_logging import logger
from .constants import (
    SIP_PORT,
    DEFAULT_WAIT_TIME_MS,
    DEFAULT_NOTIFY_EVENT,
    DISCOVER_IDENTITY,
    CALL_ID_SUFFIX,
    DEVICE_TYPES,
    BARE_MODEL_CODES,
    GENERIC_SIP_DEVICE,
  )

from .sip_message import SipMessage, ContactInfo
from .exceptions import VvxError
from .util import get_local_ip_address, find_unused_local_port

class DiscoveryStatus(Enum):
    """The outcome of a discovery probe"""
    UNKNOWN = "Unknown"
    ONLINE = "Online"
    NO_RESPONSE = "NoResponse"
    NO_DATA_RECEIVED = "NoDataReceived"
    UNABLE_TO_CONNECT = "UnableToConnect"
    SOCKET_FAILURE = "SocketFailure"

class NotifyStatus(Enum):
    """The outcome of a notify probe"""
    UNKNOWN = "Unknown"
    ONLINE = "Online"
    NO_RESPONSE = "NoResponse"
    NO_DATA_RECEIVED = "NoDataReceived"
    UNABLE_TO_CONNECT = "UnableToConnect"
    SOCKET_FAILURE = "SocketFailure"
    ERROR = "Error"
    NON_VVX_DEVICE = "NonVVXDevice"

@dataclass(frozen=True)
class DiscoveryResult:
    """The result of probing one device for presence and model."""

    device: str
    """The address that was probed, as given"""

    port: int
    """The SIP port that was probed"""

    local_ip: str
    """The local address the probe was sent from"""

    local_port: int
    """The local UDP port the probe was sent from"""

    status: DiscoveryStatus = DiscoveryStatus.UNKNOWN

    device_type: Optional[str] = None
    """Model name resolved from DEVICE_TYPES, "SIP Device" if unrecognized, None without a 200 OK"""

    response: Optional[str] = None
    """The raw reply text, or the socket error detail for SocketFailure"""

    lync_server: Optional[str] = None
    """The registrar/proxy name from the Contact targetname attribute"""

    sip_user: Optional[str] = None
    """The SIP address of the registered user"""

    user_agent: Optional[str] = None

    def to_jsonable(self) -> JsonableDict:
        result: JsonableDict = asdict(self)
        result['status'] = self.status.value
        return result

@dataclass(frozen=True)
class NotifyResult:
    """The result of delivering one SIP NOTIFY event to a device."""

    device: str
    port: int
    local_ip: str
    local_port: int
    status: NotifyStatus = NotifyStatus.UNKNOWN
    device_type: Optional[str] = None
    response: Optional[str] = None
    lync_server: Optional[str] = None
    sip_user: Optional[str] = None

    client_app: Optional[str] = None
    """The phone's User-Agent (firmware/client application) string"""

    def to_jsonable(self) -> JsonableDict:
        result: JsonableDict = asdict(self)
        result['status'] = self.status.value
        return result

class ProbeExchange:
    """The raw outcome of a single UDP request/response round trip."""

    failure: Optional[DiscoveryStatus]
    """None if a non-empty reply was received, else the connectivity status that applies"""

    response: Optional[str]
    """The decoded reply, or the error detail for a socket failure"""

    local_addr: HostAndPort
    """The local address the probe was bound to"""

    def __init__(self, failure: Optional[DiscoveryStatus], response: Optional[str], local_addr: HostAndPort):
        self.failure = failure
        self.response = response
        self.local_addr = local_addr

    def __str__(self) -> str:
        return f"ProbeExchange(failure={self.failure}, local_addr={self.local_addr}, response={self.response!r})"

def generate_call_id() -> str:
    """Returns a Call-ID made from the digits of the current local timestamp and a fixed suffix."""
    return re.sub(r'[^0-9]', '', datetime.datetime.now().isoformat()) + CALL_ID_SUFFIX

def build_notify_message(
        device: str,
        port: int,
        local_ip: str,
        local_port: int,
        event: Optional[str]=None,
        call_id: Optional[str]=None
      ) -> SipMessage:
    """Build the SIP NOTIFY used for both discovery and event notification.

    If event is None, the message is a plain discovery probe. Otherwise an Event header
    and "Max-Forwards: 10" are added. The message never has a body.
    """
    if call_id is None:
        call_id = generate_call_id()
    identity = f"<sip:{DISCOVER_IDENTITY}@{local_ip}:{local_port}>"
    headers: List[Tuple[str, str]] = [
        ("Via", f"SIP/2.0/UDP {local_ip}:{local_port};rport"),
        ("From", f"{identity};tag={DISCOVER_IDENTITY}"),
        ("To", f"<sip:{device}:{port}>"),
        ("Call-ID", call_id),
        ("CSeq", "1 NOTIFY"),
        ("Contact", identity),
      ]
    if event is not None:
        headers.append(("Event", event))
        headers.append(("Max-Forwards", "10"))
    headers.append(("Content-Length", "0"))
    return SipMessage(f"NOTIFY sip:{device}:{port} SIP/2.0", headers=headers)

def lookup_device_type(text: str) -> Optional[str]:
    """Returns the label of the first DEVICE_TYPES pattern found in text, or None."""
    for pattern, label in DEVICE_TYPES:
        if pattern in text:
            return label
    return None

def _is_bare_model_code(contact: ContactInfo) -> bool:
    return any(contact.user.startswith(code) for code in BARE_MODEL_CODES)

class SipProbe:
    """
    Sends single SIP NOTIFY probes to phones and classifies the replies.

    A SipProbe holds only settings; each discover()/notify() call creates, binds,
    uses and closes its own UDP socket.
    """

    wait_time_ms: int
    """The time (in milliseconds) to wait for a reply before reporting NoResponse."""

    local_ip: Optional[str]
    """The local address to send from. If None, the address on the default gateway
       interface is used."""

    local_port: Optional[int]
    """The local UDP port to send from. If None, an unused high port is picked for each
       probe. 0 lets the operating system choose."""

    def __init__(
            self,
            wait_time_ms: int=DEFAULT_WAIT_TIME_MS,
            local_ip: Optional[str]=None,
            local_port: Optional[int]=None
          ) -> None:
        self.wait_time_ms = wait_time_ms
        self.local_ip = local_ip
        self.local_port = local_port

    def resolve_local_addr(self) -> HostAndPort:
        local_ip = get_local_ip_address() if self.local_ip is None else self.local_ip
        local_port = find_unused_local_port(local_ip) if self.local_port is None else self.local_port
        return (local_ip, local_port)

    def exchange(self, device: str, port: int, event: Optional[str]=None) -> ProbeExchange:
        """Send one NOTIFY to device:port and wait up to wait_time_ms for one reply.

        The socket is released on every path, including exceptions. An address that cannot
        be encoded, resolved or connected to is reported as UnableToConnect, never raised.
        """
        try:
            local_addr = self.resolve_local_addr()
        except VvxError as e:
            logger.debug(f"Unable to choose a local address for {(device, port)}: {e}")
            return ProbeExchange(DiscoveryStatus.SOCKET_FAILURE, str(e), (self.local_ip or '', self.local_port or 0))
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        except OSError as e:
            logger.debug(f"Unable to create UDP socket: {e}")
            return ProbeExchange(DiscoveryStatus.SOCKET_FAILURE, str(e), local_addr)
        with sock:
            try:
                sock.bind(local_addr)
                local_addr = sock.getsockname()[:2]
            except (OSError, OverflowError, ValueError) as e:
                logger.debug(f"Unable to bind UDP socket to {local_addr}: {e}")
                return ProbeExchange(DiscoveryStatus.SOCKET_FAILURE, str(e), local_addr)

            try:
                if not device:
                    raise OSError("No device address given")
                message = build_notify_message(device, port, local_addr[0], local_addr[1], event=event)
                sock.connect((device, port))
                logger.debug(f"Sending SIP NOTIFY from {local_addr} to {(device, port)}: {message}")
                sock.send(message.raw_data)
            except (OSError, OverflowError, ValueError) as e:
                logger.debug(f"Unable to send SIP NOTIFY to {(device, port)}: {e}")
                return ProbeExchange(DiscoveryStatus.UNABLE_TO_CONNECT, None, local_addr)

            try:
                readable, _, _ = select.select([sock], [], [], self.wait_time_ms / 1000.0)
                if len(readable) == 0:
                    logger.debug(f"No reply from {(device, port)} within {self.wait_time_ms} ms")
                    return ProbeExchange(DiscoveryStatus.NO_RESPONSE, None, local_addr)
                data = sock.recv(sock.getsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF))
            except OSError as e:
                logger.debug(f"Socket failure waiting for {(device, port)}: {e}")
                return ProbeExchange(DiscoveryStatus.SOCKET_FAILURE, str(e), local_addr)

        if len(data) == 0:
            return ProbeExchange(DiscoveryStatus.NO_DATA_RECEIVED, None, local_addr)
        text = data.decode('ascii', errors='replace')
        logger.debug(f"Received reply from {(device, port)}: {text!r}")
        return ProbeExchange(None, text, local_addr)

    def discover(self, device: str, port: int=SIP_PORT) -> DiscoveryResult:
        """Probe one device for presence and model.

        Any reply at all, even a non-200 one, reports the device as Online. Only a
        "SIP/2.0 200 OK" reply is mined for the device type, SIP user and user agent.
        """
        ex = self.exchange(device, port)
        local_ip, local_port = ex.local_addr
        if ex.failure is not None:
            return DiscoveryResult(device, port, local_ip, local_port, status=ex.failure, response=ex.response)
        assert ex.response is not None
        message = SipMessage.from_text(ex.response)
        if not message.is_ok:
            return DiscoveryResult(device, port, local_ip, local_port, status=DiscoveryStatus.ONLINE, response=ex.response)

        device_type = lookup_device_type(ex.response) or GENERIC_SIP_DEVICE
        sip_user: Optional[str] = None
        lync_server: Optional[str] = None
        contact = message.contact
        if contact is not None and contact.opaque:
            sip_user = contact.user
            lync_server = contact.target_name
        return DiscoveryResult(
            device,
            port,
            local_ip,
            local_port,
            status=DiscoveryStatus.ONLINE,
            device_type=device_type,
            response=ex.response,
            lync_server=lync_server,
            sip_user=sip_user,
            user_agent=message.hdr_user_agent,
          )

    def notify(self, device: str, port: int=SIP_PORT, event: str=DEFAULT_NOTIFY_EVENT) -> NotifyResult:
        """Deliver one SIP NOTIFY event (e.g. "check-sync") to a VVX phone.

        Unlike discover(), a reply other than "SIP/2.0 200 OK" is reported as Error, and
        a 200 OK from something that does not identify as a VVX is NonVVXDevice.
        """
        ex = self.exchange(device, port, event=event)
        local_ip, local_port = ex.local_addr
        if ex.failure is not None:
            return NotifyResult(device, port, local_ip, local_port, status=NotifyStatus[ex.failure.name], response=ex.response)
        assert ex.response is not None
        message = SipMessage.from_text(ex.response)
        if not message.is_ok:
            return NotifyResult(device, port, local_ip, local_port, status=NotifyStatus.ERROR, response=ex.response)

        contact_hdr = message.hdr_contact or ''
        contact = ContactInfo.parse(contact_hdr)
        if 'PolycomVVX' not in contact_hdr or contact is None:
            return NotifyResult(device, port, local_ip, local_port, status=NotifyStatus.NON_VVX_DEVICE, response=ex.response)

        device_type = lookup_device_type(ex.response)
        if _is_bare_model_code(contact):
            logger.info(f"{device} is a VVX device with no user logged in; {event} delivered")
            return NotifyResult(
                device,
                port,
                local_ip,
                local_port,
                status=NotifyStatus.ONLINE,
                device_type=device_type,
                response=ex.response,
                client_app=message.hdr_user_agent,
              )
        if contact.opaque:
            return NotifyResult(
                device,
                port,
                local_ip,
                local_port,
                status=NotifyStatus.ONLINE,
                device_type=device_type,
                response=ex.response,
                lync_server=contact.target_name,
                sip_user=contact.user,
                client_app=message.hdr_user_agent,
              )
        return NotifyResult(device, port, local_ip, local_port, status=NotifyStatus.NON_VVX_DEVICE, response=ex.response)

def discover_device(
        device: str,
        port: int=SIP_PORT,
        wait_time_ms: int=DEFAULT_WAIT_TIME_MS,
        local_ip: Optional[str]=None,
        local_port: Optional[int]=None
      ) -> DiscoveryResult:
    return SipProbe(wait_time_ms=wait_time_ms, local_ip=local_ip, local_port=local_port).discover(device, port)

def notify_device(
        device: str,
        port: int=SIP_PORT,
        event: str=DEFAULT_NOTIFY_EVENT,
        wait_time_ms: int=DEFAULT_WAIT_TIME_MS,
        local_ip: Optional[str]=None,
        local_port: Optional[int]=None
      ) -> NotifyResult:
    return SipProbe(wait_time_ms=wait_time_ms, local_ip=local_ip, local_port=local_port).notify(device, port, event)

def discover_devices(
        devices: Iterable[str],
        port: int=SIP_PORT,
        wait_time_ms: int=DEFAULT_WAIT_TIME_MS,
        local_ip: Optional[str]=None,
        local_port: Optional[int]=None
      ) -> List[DiscoveryResult]:
    """Probe each device in turn, in input order. Each probe completes before the next starts."""
    probe = SipProbe(wait_time_ms=wait_time_ms, local_ip=local_ip, local_port=local_port)
    return [ probe.discover(device, port) for device in devices ]

def notify_devices(
        devices: Iterable[str],
        port: int=SIP_PORT,
        event: str=DEFAULT_NOTIFY_EVENT,
        wait_time_ms: int=DEFAULT_WAIT_TIME_MS,
        local_ip: Optional[str]=None,
        local_port: Optional[int]=None
      ) -> List[NotifyResult]:
    """Notify each device in turn, in input order. Each probe completes before the next starts."""
    probe = SipProbe(wait_time_ms=wait_time_ms, local_ip=local_ip, local_port=local_port)
    return [ probe.notify(device, port, event) for device in devices ]
