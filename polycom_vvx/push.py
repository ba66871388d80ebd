# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Push notifications: XML documents POSTed to a phone's push endpoint and rendered on its screen.

The content is expected to be already-rendered HTML; it is placed in the document verbatim.
"""

from __future__ import annotations

from enum import Enum
from xml.sax.saxutils import quoteattr

from .internal_types import *
from .pkg_logging import logger
from .constants import DEFAULT_PROTOCOL, DEFAULT_REST_PORT, DEFAULT_PUSH_BASE
from .credentials import CredentialLike
from .rest_client import RestClient, build_uri

class PushPriority(Enum):
    NORMAL = "Normal"
    IMPORTANT = "Important"
    HIGH = "High"
    CRITICAL = "Critical"

def build_push_document(content: str, priority: Union[PushPriority, str]=PushPriority.NORMAL) -> str:
    """Returns the <PolycomIPPhone> document that delivers content with the given priority."""
    priority_value = PushPriority(priority).value if isinstance(priority, str) else priority.value
    return (
        '<PolycomIPPhone>'
        f'<Data priority={quoteattr(priority_value)}>{content}</Data>'
        '</PolycomIPPhone>'
      )

def push_message(
        client: RestClient,
        device: str,
        content: str,
        priority: Union[PushPriority, str]=PushPriority.NORMAL,
        protocol: str=DEFAULT_PROTOCOL,
        port: int=DEFAULT_REST_PORT,
        base: str=DEFAULT_PUSH_BASE,
        retry_count: Optional[int]=None,
        request_timeout_ms: Optional[int]=None,
        credential: Optional[CredentialLike]=None
      ) -> str:
    """POST a push notification to <protocol>://<device>:<port>/<base> and return the phone's reply text.

    Transport failures propagate as requests.RequestException after the client's retries.
    """
    uri = build_uri(device, base, protocol=protocol, port=port, base=None)
    document = build_push_document(content, priority)
    logger.debug(f"Pushing notification to {uri}")
    return client.post_xml(
        uri,
        document,
        retry_count=retry_count,
        request_timeout_ms=request_timeout_ms,
        credential=credential,
      )
