#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Abstraction of the textual SIP messages exchanged with a phone over UDP.
"""

from __future__ import annotations

import re

from polycom_vvx.internal_types import *

from .constants import SIP_OK_STATEMENT
from .util import (
    CaseInsensitiveDict,
    split_bytes_at_lf_or_crlf,
    parse_http_headers,
)

SIP_COMPACT_HEADERS: Dict[str, str] = {
    'i': 'Call-ID',
    'm': 'Contact',
    'e': 'Content-Encoding',
    'l': 'Content-Length',
    'c': 'Content-Type',
    'f': 'From',
    't': 'To',
    'v': 'Via',
    'o': 'Event',
  }
"""Single-letter compact header names defined by RFC 3261/3265, and their long form."""

_response_statement_re = re.compile(r'^SIP/(?P<version>[0-9]+\.[0-9]+) +(?P<status_code>[0-9]{3})(?: +(?P<reason>.*[^ ]))? *$', re.IGNORECASE)
_target_name_re = re.compile(r'targetname="(?P<name>[^"]*)"')

class ContactInfo:
    """The pieces of a SIP Contact header value that identify a phone and its user."""

    payload: str
    """The text following "<sip:" up to the end of the header line"""

    user: str
    """The part of the payload preceding the first ';'. For a registered line this is the
       SIP address of the logged-in user; for an idle VVX it is the bare model code and address."""

    opaque: bool
    """True if the contact carries an ";opaque" parameter, meaning the line is SIP-registered."""

    target_name: Optional[str]
    """The value of a targetname="..." attribute (the registrar/proxy name), if present."""

    def __init__(self, payload: str):
        self.payload = payload
        self.user = payload.split(';', 1)[0]
        self.opaque = ';opaque' in payload
        m = _target_name_re.search(payload)
        self.target_name = None if m is None else m.group('name')

    @classmethod
    def parse(cls, contact: Optional[str]) -> Optional[ContactInfo]:
        """Parse a Contact header value. Returns None if there is no "<sip:" URI in it."""
        if contact is None:
            return None
        i = contact.lower().find('<sip:')
        if i == -1:
            return None
        return cls(contact[i + 5:].split('\r', 1)[0].split('\n', 1)[0])

    def __str__(self) -> str:
        return f"ContactInfo(user='{self.user}', opaque={self.opaque}, target_name={self.target_name!r})"

    def __repr__(self) -> str:
        return str(self)

class SipMessage(MutableMapping[str, str]):
    """Wrapper for a raw SIP request or response carried in a single UDP datagram.

    This class provides parsing and formatting of the textual message, a dict-like
    interface to the headers, and a few convenient properties for the fields that
    phone discovery cares about.

    Headers are emitted in insertion order. Values are stored verbatim; no unquoting
    is performed.
    """

    _raw_data: bytes
    """The raw UDP datagram contents"""

    _statement_line: str
    """The first line of the message; e.g., "SIP/2.0 200 OK", "NOTIFY sip:10.0.0.5:5060 SIP/2.0"."""

    _headers: CaseInsensitiveDict[str]
    """The headers as a CaseInsensitiveDict[str]"""

    _body: bytes
    """The body of the message, if any. If there is no body, b'' is returned."""

    def __init__(
            self,
            statement: Optional[str]=None,
            headers: Optional[Union[Mapping[str, str], Iterable[Tuple[str, str]]]]=None,
            body: Optional[bytes]=None,
            raw_data: Optional[bytes]=None,
          ):
        self._headers = CaseInsensitiveDict()
        if raw_data is None:
            if statement is None:
                raise ValueError("Either statement or raw_data must be provided")
            assert isinstance(statement, str)
            self._statement_line = statement
            self._body = b'' if body is None else body
            if not headers is None:
                items = headers.items() if isinstance(headers, Mapping) else headers
                for k, v in items:
                    self._headers[k] = v
            self._rebuild_raw_data()
        else:
            assert isinstance(raw_data, bytes)
            if not (statement is None and headers is None and body is None):
                raise ValueError("If raw_data is provided, statement, headers, and body must be None")
            self.raw_data = raw_data
            # derived attributes are set by the setter for raw_data

    @classmethod
    def from_text(cls, text: str) -> SipMessage:
        """Parse a message from already-decoded text."""
        return cls(raw_data=text.encode('ascii', errors='replace'))

    def __str__(self) -> str:
        return f"SipMessage('{self._statement_line}', headers={self._headers}, body={self._body!r})"

    def __repr__(self) -> str:
        return str(self)

    @property
    def raw_data(self) -> bytes:
        """The raw UDP datagram contents"""
        return self._raw_data

    @raw_data.setter
    def raw_data(self, value: bytes) -> None:
        """Set the raw UDP datagram contents, and recompute the statement line, headers and body."""
        assert isinstance(value, bytes)
        self._raw_data = value
        statement_and_remainder = split_bytes_at_lf_or_crlf(value, 1)
        self._statement_line = statement_and_remainder[0].decode('ascii', errors='replace').strip()
        headers_and_body = b'' if len(statement_and_remainder) < 2 else statement_and_remainder[1]
        raw_headers, self._body = parse_http_headers(headers_and_body)
        self._headers = CaseInsensitiveDict()
        for k, v in raw_headers.items():
            self._headers[SIP_COMPACT_HEADERS.get(k.lower(), k) if len(k) == 1 else k] = v

    @property
    def statement_line(self) -> str:
        """The first line of the message"""
        return self._statement_line

    @property
    def body(self) -> bytes:
        """The body of the message, if any. If there is no body, b'' is returned."""
        return self._body

    @property
    def headers(self) -> CaseInsensitiveDict[str]:
        """The headers as a CaseInsensitiveDict[str]"""
        return self._headers

    @property
    def is_response(self) -> bool:
        """True if the statement line is a SIP status line"""
        return _response_statement_re.match(self._statement_line) is not None

    @property
    def sip_version(self) -> Optional[str]:
        """The SIP version of a response (e.g. "2.0"), or None for a request"""
        m = _response_statement_re.match(self._statement_line)
        return None if m is None else m.group('version')

    @property
    def status_code(self) -> Optional[int]:
        """The status code of a response (e.g. 200), or None for a request"""
        m = _response_statement_re.match(self._statement_line)
        return None if m is None else int(m.group('status_code'))

    @property
    def reason(self) -> Optional[str]:
        """The reason phrase of a response (e.g. "OK"), or None for a request"""
        m = _response_statement_re.match(self._statement_line)
        return None if m is None else m.group('reason')

    @property
    def is_ok(self) -> bool:
        """True if the statement line contains "SIP/2.0 200 OK", ignoring case"""
        return SIP_OK_STATEMENT.lower() in self._statement_line.lower()

    @property
    def hdr_contact(self) -> Optional[str]:
        """Returns the "Contact" header, or None if there is none."""
        return self._headers.get("Contact")

    @property
    def contact(self) -> Optional[ContactInfo]:
        """Returns the parsed "Contact" header, or None if there is no SIP contact."""
        return ContactInfo.parse(self.hdr_contact)

    @property
    def hdr_user_agent(self) -> Optional[str]:
        """Returns the "User-Agent" header, or None if there is none."""
        return self._headers.get("User-Agent")

    @property
    def hdr_call_id(self) -> Optional[str]:
        """Returns the "Call-ID" header, or None if there is none."""
        return self._headers.get("Call-ID")

    def __setitem__(self, key: str, value: str) -> None:
        assert isinstance(value, str)
        self._headers[key] = value
        self._rebuild_raw_data()

    def __getitem__(self, key: str) -> str:
        return self._headers[key]

    def __delitem__(self, key: str) -> None:
        del self._headers[key]
        self._rebuild_raw_data()

    def __iter__(self):
        return iter(self._headers)

    def __len__(self):
        return len(self._headers)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, SipMessage):
            return False
        return (self._statement_line == other._statement_line and
                self._headers == other._headers and
                self._body == other._body)

    def _rebuild_raw_data(self) -> None:
        """Rebuild the raw data from the statement line, headers, and body.
           The header block is always terminated by an empty line."""
        raw_data = self._statement_line.encode('ascii') + b'\r\n'
        for k, v in self._headers.items():
            raw_data += k.encode('ascii') + b': ' + v.encode('ascii') + b'\r\n'
        raw_data += b'\r\n'
        raw_data += self._body
        self._raw_data = raw_data
