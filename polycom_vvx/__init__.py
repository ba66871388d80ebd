# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Package polycom_vvx manages Polycom VVX desk phones over a local network.

VVX phones expose two interfaces that this package speaks:

  - A SIP endpoint (UDP port 5060). A single SIP NOTIFY, sent from a synthetic
    "discover" identity, is enough to tell whether a phone is present, which model
    it is, whether a user is logged in and which registrar it uses. The same
    NOTIFY with an Event header (e.g. "check-sync") asks the phone to act on the event.

  - A REST management API on the phone's web server (api/v1/...). Requests carry
    a {"data": ...} envelope and responses a {"Status": ..., "data": ...} envelope
    whose Status is an application-level code, 2000 meaning success.

Phones also accept XML push notifications that are rendered on screen.

Every operation addresses one device at a time; batch helpers process devices
sequentially and keep going past a failing device.
"""

from .version import __version__

from .internal_types import Jsonable, JsonableDict

from .exceptions import VvxError, VvxApiError, VvxUnknownStatusError, VvxInvalidResponseError

from .constants import (
    SIP_PORT,
    DEFAULT_WAIT_TIME_MS,
    DEFAULT_NOTIFY_EVENT,
    DEFAULT_REQUEST_TIMEOUT_MS,
    DEFAULT_URI_TIMEOUT_MS,
    DEFAULT_DIAL_TIMEOUT_MS,
    API_STATUS_SUCCESS,
    API_STATUS_MESSAGES,
    DEVICE_TYPES,
    HTTP_METHODS,
  )
from .sip_message import SipMessage, ContactInfo
from .sip_probe import (
    SipProbe,
    DiscoveryStatus,
    NotifyStatus,
    DiscoveryResult,
    NotifyResult,
    build_notify_message,
    lookup_device_type,
    discover_device,
    discover_devices,
    notify_device,
    notify_devices,
  )
from .credentials import Credential, credential_from_keyring
from .rest_client import (
    RestClient,
    RestCall,
    RestCallHistory,
    build_uri,
    wrap_body,
    classify_response,
  )
from .push import PushPriority, build_push_document, push_message
from .commands import (
    CommandSpec,
    VvxDevice,
    DeviceOutcome,
    get_command,
    list_commands,
    run_command,
    run_for_devices,
  )
from .config import ClientConfig
from .util import get_local_ip_address, find_unused_local_port

__all__ = [
    '__version__',
    'Jsonable', 'JsonableDict',
    'VvxError', 'VvxApiError', 'VvxUnknownStatusError', 'VvxInvalidResponseError',
    'SIP_PORT', 'DEFAULT_WAIT_TIME_MS', 'DEFAULT_NOTIFY_EVENT',
    'DEFAULT_REQUEST_TIMEOUT_MS', 'DEFAULT_URI_TIMEOUT_MS', 'DEFAULT_DIAL_TIMEOUT_MS',
    'API_STATUS_SUCCESS', 'API_STATUS_MESSAGES', 'DEVICE_TYPES', 'HTTP_METHODS',
    'SipMessage', 'ContactInfo',
    'SipProbe', 'DiscoveryStatus', 'NotifyStatus', 'DiscoveryResult', 'NotifyResult',
    'build_notify_message', 'lookup_device_type',
    'discover_device', 'discover_devices', 'notify_device', 'notify_devices',
    'Credential', 'credential_from_keyring',
    'RestClient', 'RestCall', 'RestCallHistory', 'build_uri', 'wrap_body', 'classify_response',
    'PushPriority', 'build_push_document', 'push_message',
    'CommandSpec', 'VvxDevice', 'DeviceOutcome', 'get_command', 'list_commands', 'run_command', 'run_for_devices',
    'ClientConfig',
    'get_local_ip_address', 'find_unused_local_port',
]
