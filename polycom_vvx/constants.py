# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Constants used by this package"""

from types import MappingProxyType

SIP_PORT = 5060
"""The UDP port on which VVX phones listen for SIP requests."""

DEFAULT_WAIT_TIME_MS = 350
"""The default time (in milliseconds) to wait for a reply to a SIP NOTIFY probe."""

DEFAULT_NOTIFY_EVENT = "check-sync"
"""The default SIP event name delivered by a notify probe."""

DISCOVER_IDENTITY = "discover"
"""The user part of the synthetic SIP identity used in From/Contact headers."""

CALL_ID_SUFFIX = "@polycom-vvx"
"""Fixed suffix appended to the timestamp digits of a generated SIP Call-ID."""

SIP_OK_STATEMENT = "SIP/2.0 200 OK"
"""The statement line of a successful SIP response."""

EPHEMERAL_PORT_RANGE = (49152, 65535)
"""The inclusive range searched for an unused local UDP port."""

DEFAULT_PROTOCOL = "HTTP"
DEFAULT_REST_PORT = 80
DEFAULT_API_BASE = "api/v1"
DEFAULT_METHOD = "Get"
DEFAULT_RETRY_COUNT = 3

DEFAULT_REQUEST_TIMEOUT_MS = 300
"""Default timeout (in milliseconds) of a REST command."""

DEFAULT_URI_TIMEOUT_MS = 800
"""Default timeout (in milliseconds) of a plain GET of a full URI."""

DEFAULT_DIAL_TIMEOUT_MS = 5000
"""Default timeout (in milliseconds) of an outbound call placement."""

DEFAULT_PUSH_BASE = "push"
"""The path of the phone's push notification endpoint."""

HTTP_METHODS = ("Head", "Get", "Put", "Patch", "Post", "Delete")
"""The HTTP methods accepted by the REST dispatcher, in the phone API's spelling."""

API_STATUS_SUCCESS = 2000
"""The application-level status code that denotes success."""

API_STATUS_MESSAGES = MappingProxyType({
    4001: "Device busy",
    4002: "Line not registered",
    4003: "Operation not allowed",
    4004: "Operation not supported",
    4005: "Line does not exist",
    4006: "URLs not configured",
    4007: "Call does not exist",
    4008: "Configuration export failed",
    4009: "Input size limit exceeded",
    4010: "Default password not allowed",
    5000: "Failed to process request",
})
"""Application-level status codes returned by the phone REST API, and their meaning."""

GENERIC_SIP_DEVICE = "SIP Device"
"""Device type reported for a SIP responder that matches no known model."""

_VVX_MODELS = (
    "1500", "101", "150", "201", "250", "300", "301", "310", "311",
    "350", "400", "401", "410", "411", "450", "500", "501", "600", "601",
  )

DEVICE_TYPES = (
    tuple((f"VVX{m}@", f"VVX {m}") for m in _VVX_MODELS) +
    tuple((f"PolycomVVX-VVX_{m}", f"VVX {m}") for m in _VVX_MODELS) +
    (
      ("PolycomRealPresenceTrio-Trio_8800", "Trio 8800"),
      ("PolycomRealPresenceTrio-Trio_8500", "Trio 8500"),
      ("PolycomRealPresenceTrio-Trio_Visual+", "Trio Visual+"),
      ("PolycomSoundStationIP-SSIP_7000", "SoundStation IP 7000"),
      ("PolycomSoundStationIP-SSIP_6000", "SoundStation IP 6000"),
      ("PolycomSoundPointIP-SPIP_670", "SoundPoint IP 670"),
      ("PolycomSoundPointIP-SPIP_650", "SoundPoint IP 650"),
      ("PolycomSoundPointIP-SPIP_550", "SoundPoint IP 550"),
      ("PolycomSoundPointIP-SPIP_450", "SoundPoint IP 450"),
      ("PolycomSoundPointIP-SPIP_335", "SoundPoint IP 335"),
    )
  )
"""Ordered (pattern, label) pairs used to recognize a device model from a SIP response.
   The first pattern found in the response wins, so a pattern that contains another
   pattern (e.g., "VVX_1500" contains "VVX_150") must be declared first."""

BARE_MODEL_CODES = tuple(pattern for pattern, _ in DEVICE_TYPES if pattern.endswith("@"))
"""Contact user parts that a VVX phone reports when no user is logged in."""
