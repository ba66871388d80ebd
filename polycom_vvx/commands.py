# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
The catalogue of named phone operations, each a fixed (command path, method, body) triple
dispatched through RestClient, and helpers to run them against one or many devices.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import requests

from .internal_types import *
from .pkg_logging import logger
from .constants import DEFAULT_PROTOCOL, DEFAULT_REST_PORT, DEFAULT_DIAL_TIMEOUT_MS
from .exceptions import VvxError
from .rest_client import RestClient

_T = TypeVar('_T')

@dataclass(frozen=True)
class CommandSpec:
    name: str
    path: str
    method: str = "Get"

    body: Any = None
    """The fixed body sent with the command. None sends no entity; {} sends {"data": {}}."""

    timeout_ms: Optional[int] = None
    """Per-command timeout override, in milliseconds. None uses the client default."""

    description: str = ""

    requires_body: bool = False
    """True if the caller must supply the body (e.g., the parameters to set)."""

COMMANDS: Tuple[CommandSpec, ...] = (
    CommandSpec("device-info", "mgmt/device/info", description="Model, firmware and hardware details"),
    CommandSpec("network-info", "mgmt/network/info", description="IP, VLAN, DNS and LLDP settings"),
    CommandSpec("line-info", "mgmt/lineInfo", description="Registration state of each line"),
    CommandSpec("running-config", "mgmt/device/runningConfig", description="Effective provisioning sources"),
    CommandSpec("device-stats", "mgmt/device/stats", description="Uptime, CPU and memory usage"),
    CommandSpec("network-stats", "mgmt/network/stats", description="Packet and error counters"),
    CommandSpec("session-stats", "mgmt/media/sessionStats", description="Media statistics of active calls"),
    CommandSpec("poll-status", "mgmt/pollForStatus", description="Phone state summary"),
    CommandSpec("call-status", "webCallControl/callStatus", description="State of the active call"),
    CommandSpec("call-logs", "mgmt/callLogs", description="Placed, received and missed calls"),
    CommandSpec("get-config", "mgmt/config/get", method="Post", requires_body=True,
                description="Read configuration parameters (body: list of parameter names)"),
    CommandSpec("set-config", "mgmt/config/set", method="Post", requires_body=True,
                description="Write configuration parameters (body: mapping of name to value)"),
    CommandSpec("safe-restart", "mgmt/safeRestart", method="Post", body={},
                description="Restart the phone application when idle"),
    CommandSpec("reboot", "mgmt/safeReboot", method="Post", body={},
                description="Reboot the phone when idle"),
    CommandSpec("factory-reset", "mgmt/factoryReset", method="Post", body={},
                description="Restore factory defaults"),
    CommandSpec("config-reset", "mgmt/configReset", method="Post", body={},
                description="Clear locally stored configuration"),
    CommandSpec("dial", "callctrl/dial", method="Post", timeout_ms=DEFAULT_DIAL_TIMEOUT_MS, requires_body=True,
                description="Place an outbound call (body: Dest, Line, Type)"),
    CommandSpec("end-call", "callctrl/endCall", method="Post", requires_body=True,
                description="End a call (body: Ref call handle)"),
    CommandSpec("mute", "callctrl/mute", method="Post", requires_body=True,
                description="Mute or unmute the microphone (body: state)"),
    CommandSpec("send-dtmf", "callctrl/sendDTMF", method="Post", requires_body=True,
                description="Send DTMF digits on the active call (body: digits)"),
  )

_COMMANDS_BY_NAME: Dict[str, CommandSpec] = { c.name: c for c in COMMANDS }

def get_command(name: str) -> CommandSpec:
    """Returns the named command. Raises KeyError if there is no such command."""
    try:
        return _COMMANDS_BY_NAME[name]
    except KeyError:
        raise KeyError(f"Unknown command '{name}'; valid commands: {', '.join(_COMMANDS_BY_NAME)}") from None

def list_commands() -> List[CommandSpec]:
    return list(COMMANDS)

def run_command(
        client: RestClient,
        device: str,
        name: str,
        body: Any=None,
        protocol: str=DEFAULT_PROTOCOL,
        port: int=DEFAULT_REST_PORT,
        **kwargs: Any
      ) -> Jsonable:
    """Dispatch a catalogue command to one device and return the response data.

    kwargs are passed through to RestClient.dispatch() (e.g. retry_count, credential).
    """
    spec = get_command(name)
    if body is None:
        if spec.requires_body:
            raise ValueError(f"Command '{name}' requires a body")
        body = spec.body
    if spec.timeout_ms is not None:
        kwargs.setdefault('request_timeout_ms', spec.timeout_ms)
    return client.dispatch(device, spec.path, protocol=protocol, port=port, method=spec.method, body=body, **kwargs)

class VvxDevice:
    """One phone, bound to a RestClient, with the catalogue as methods."""

    client: RestClient
    address: str
    protocol: str
    port: int

    def __init__(self, client: RestClient, address: str, protocol: str=DEFAULT_PROTOCOL, port: int=DEFAULT_REST_PORT):
        self.client = client
        self.address = address
        self.protocol = protocol
        self.port = port

    def __str__(self) -> str:
        return f"VvxDevice({self.protocol}://{self.address}:{self.port})"

    def __repr__(self) -> str:
        return str(self)

    def run(self, name: str, body: Any=None, **kwargs: Any) -> Jsonable:
        return run_command(self.client, self.address, name, body=body, protocol=self.protocol, port=self.port, **kwargs)

    def device_info(self) -> Jsonable:
        return self.run("device-info")

    def network_info(self) -> Jsonable:
        return self.run("network-info")

    def line_info(self) -> Jsonable:
        return self.run("line-info")

    def running_config(self) -> Jsonable:
        return self.run("running-config")

    def device_stats(self) -> Jsonable:
        return self.run("device-stats")

    def network_stats(self) -> Jsonable:
        return self.run("network-stats")

    def session_stats(self) -> Jsonable:
        return self.run("session-stats")

    def poll_status(self) -> Jsonable:
        return self.run("poll-status")

    def call_status(self) -> Jsonable:
        return self.run("call-status")

    def call_logs(self) -> Jsonable:
        return self.run("call-logs")

    def get_config(self, names: Iterable[str]) -> Jsonable:
        return self.run("get-config", body=list(names))

    def set_config(self, values: Mapping[str, Any]) -> Jsonable:
        return self.run("set-config", body={ k: str(v) for k, v in values.items() })

    def safe_restart(self) -> Jsonable:
        return self.run("safe-restart")

    def reboot(self) -> Jsonable:
        return self.run("reboot")

    def factory_reset(self) -> Jsonable:
        return self.run("factory-reset")

    def config_reset(self) -> Jsonable:
        return self.run("config-reset")

    def dial(self, destination: str, line: int=1, call_type: str="SIP") -> Jsonable:
        return self.run("dial", body={"Dest": destination, "Line": str(line), "Type": call_type})

    def end_call(self, call_handle: str) -> Jsonable:
        return self.run("end-call", body={"Ref": call_handle})

    def mute(self, state: bool=True) -> Jsonable:
        return self.run("mute", body={"state": "1" if state else "0"})

    def send_dtmf(self, digits: str) -> Jsonable:
        return self.run("send-dtmf", body={"digits": digits})

@dataclass
class DeviceOutcome(Generic[_T]):
    """The result of running an action against one device of a batch."""

    device: str
    result: Optional[_T] = None
    error: Optional[BaseException] = field(default=None, repr=False)

    @property
    def ok(self) -> bool:
        return self.error is None

def run_for_devices(devices: Iterable[str], action: Callable[[str], _T]) -> List[DeviceOutcome[_T]]:
    """Run action against each device in turn, in input order.

    A phone API error or transport failure on one device is logged as a warning and recorded
    in that device's outcome; the remaining devices are still processed.
    """
    outcomes: List[DeviceOutcome[_T]] = []
    for device in devices:
        try:
            outcomes.append(DeviceOutcome(device, result=action(device)))
        except (VvxError, requests.RequestException) as e:
            logger.warning(f"{device}: {e}")
            outcomes.append(DeviceOutcome(device, error=e))
    return outcomes
