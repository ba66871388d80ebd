# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
RestClient -- Dispatches calls to the REST management API of a VVX phone:

  1. Builds the request URI (<protocol>://<device>:<port>/<base>/<command>) or takes a full URI
  2. Wraps the body in the API's {"data": ...} request envelope
  3. Retries transport-level failures a bounded number of times
  4. Classifies the {"Status": ..., "data": ...} response envelope by its application-level
     status code, which is unrelated to the HTTP status

Every attempt is recorded in the client's RestCallHistory for diagnostics.
"""

from __future__ import annotations

import json
import threading
from collections import deque
from dataclasses import dataclass, asdict

import requests
import urllib3

from .internal_types import *
from .pkg_logging import logger
from .constants import (
    DEFAULT_PROTOCOL,
    DEFAULT_REST_PORT,
    DEFAULT_API_BASE,
    DEFAULT_METHOD,
    DEFAULT_RETRY_COUNT,
    DEFAULT_REQUEST_TIMEOUT_MS,
    DEFAULT_URI_TIMEOUT_MS,
    HTTP_METHODS,
    API_STATUS_SUCCESS,
    API_STATUS_MESSAGES,
  )
from .credentials import CredentialLike, as_requests_auth, credential_username
from .exceptions import VvxApiError, VvxUnknownStatusError, VvxInvalidResponseError

DEFAULT_HISTORY_SIZE = 32
"""The number of REST attempts remembered by a RestClient."""

JSON_CONTENT_TYPE = "application/json"
XML_CONTENT_TYPE = "text/xml"

@dataclass
class RestCall:
    """Diagnostic record of a single REST attempt. A new record is made for every attempt,
       so nothing carries over from an earlier call or retry."""

    uri: str
    method: str

    credential: Optional[str]
    """The user name the call was authenticated as. The password is never recorded."""

    request_body: Optional[str]
    """The serialized request entity, or None if no entity was sent"""

    attempt: int = 1
    """1 for the initial attempt, 2 for the first retry, etc."""

    http_status: Optional[int] = None

    response_body: Optional[str] = None
    """The raw response text, set when a response was received"""

    error: Optional[str] = None
    """The transport error that failed this attempt, if any"""

    def to_jsonable(self) -> JsonableDict:
        return asdict(self)

class RestCallHistory:
    """A bounded, thread-safe record of the most recent REST attempts, oldest first."""

    _calls: Deque[RestCall]
    _lock: threading.Lock

    def __init__(self, maxlen: int=DEFAULT_HISTORY_SIZE):
        self._calls = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def record(self, call: RestCall) -> None:
        with self._lock:
            self._calls.append(call)

    @property
    def last(self) -> Optional[RestCall]:
        """The most recent attempt, or None if nothing has been dispatched"""
        with self._lock:
            return self._calls[-1] if len(self._calls) > 0 else None

    def clear(self) -> None:
        with self._lock:
            self._calls.clear()

    def __iter__(self) -> Iterator[RestCall]:
        with self._lock:
            snapshot = list(self._calls)
        return iter(snapshot)

    def __len__(self) -> int:
        with self._lock:
            return len(self._calls)

def build_uri(
        device: str,
        command: str,
        protocol: str=DEFAULT_PROTOCOL,
        port: int=DEFAULT_REST_PORT,
        base: Optional[str]=DEFAULT_API_BASE
      ) -> str:
    """Returns <protocol>://<device>:<port>/<base>/<command>. The protocol is used as given.
       If base is empty or None, it is omitted."""
    path = command if not base else f"{base}/{command}"
    return f"{protocol}://{device}:{port}/{path}"

def wrap_body(body: Any) -> Optional[JsonableDict]:
    """Wrap a request body in the API's request envelope.

    None means no entity is sent. A mapping is sent as {"data": <mapping>}; an empty mapping
    still produces {"data": {}}. A list or tuple is sent as {"data": [<items>]}, and any other
    value as the singleton array {"data": [<value>]}.
    """
    if body is None:
        return None
    if isinstance(body, Mapping):
        return {"data": dict(body)}
    if isinstance(body, (list, tuple)):
        return {"data": list(body)}
    return {"data": [body]}

def normalize_method(method: str) -> str:
    """Returns the method in the API's spelling (e.g., "Get"). Raises ValueError if it is not supported."""
    result = method.capitalize()
    if result not in HTTP_METHODS:
        raise ValueError(f"Unsupported HTTP method '{method}'; expected one of {', '.join(HTTP_METHODS)}")
    return result

def classify_response(envelope: Any, uri: Optional[str]=None) -> Jsonable:
    """Return the data of a successful response envelope, or raise the matching VvxApiError.

    Only Status 2000 is success. The phone may send Status as a number or as a numeric string.
    """
    if not isinstance(envelope, Mapping) or 'Status' not in envelope:
        raise VvxInvalidResponseError(f"Response from {uri} is not a status envelope: {envelope!r}")
    status_value = envelope['Status']
    try:
        status_code = int(status_value)
    except (TypeError, ValueError):
        raise VvxUnknownStatusError(status_value, uri=uri)
    if status_code == API_STATUS_SUCCESS:
        return envelope.get('data')
    message = API_STATUS_MESSAGES.get(status_code)
    if message is None:
        raise VvxUnknownStatusError(status_code, uri=uri)
    raise VvxApiError(status_code, message, uri=uri)

class RestClient:
    """
    A client for the REST management API of VVX phones.

    Each client owns its own requests.Session and trust policy, so ignoring TLS errors on
    one client has no effect on any other. Per-call arguments override the client defaults.
    """

    session: requests.Session

    credential: Optional[CredentialLike]
    """The default credential for calls that do not pass one"""

    ignore_tls_errors: bool
    """If True, server certificates are not validated for any call made by this client"""

    retry_count: int
    """The default number of retries after a transport failure"""

    request_timeout_ms: int
    """The default per-attempt timeout of a REST command, in milliseconds"""

    history: RestCallHistory

    def __init__(
            self,
            credential: Optional[CredentialLike]=None,
            ignore_tls_errors: bool=False,
            retry_count: int=DEFAULT_RETRY_COUNT,
            request_timeout_ms: int=DEFAULT_REQUEST_TIMEOUT_MS,
            history_size: int=DEFAULT_HISTORY_SIZE,
            session: Optional[requests.Session]=None
          ) -> None:
        self.session = requests.Session() if session is None else session
        self.credential = credential
        self.ignore_tls_errors = ignore_tls_errors
        self.retry_count = retry_count
        self.request_timeout_ms = request_timeout_ms
        self.history = RestCallHistory(history_size)
        if ignore_tls_errors:
            self._warn_tls_disabled()

    def __enter__(self) -> RestClient:
        return self

    def __exit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
      ) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    @property
    def last_call(self) -> Optional[RestCall]:
        """The most recent REST attempt made by this client"""
        return self.history.last

    def _warn_tls_disabled(self) -> None:
        logger.warning("TLS certificate validation is disabled for phone REST calls")
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    def dispatch(
            self,
            device: str,
            command: str,
            protocol: str=DEFAULT_PROTOCOL,
            port: int=DEFAULT_REST_PORT,
            base: Optional[str]=DEFAULT_API_BASE,
            method: str=DEFAULT_METHOD,
            body: Any=None,
            retry_count: Optional[int]=None,
            request_timeout_ms: Optional[int]=None,
            ignore_tls_errors: Optional[bool]=None,
            credential: Optional[CredentialLike]=None
          ) -> Jsonable:
        """Call a REST command on a device and return the data of the response envelope.

        Parameters:
            device:             The phone's host name or IP address, used verbatim.
            command:            The command path below base; e.g., "mgmt/device/info".
            protocol:           "HTTP" or "HTTPS". Defaults to "HTTP".
            port:               Defaults to 80.
            base:               Defaults to "api/v1".
            method:             Head, Get, Put, Patch, Post or Delete. Defaults to Get.
            body:               None to send no entity; otherwise wrapped by wrap_body().
            retry_count:        Retries after a transport failure. Defaults to self.retry_count.
            request_timeout_ms: Per-attempt timeout. Defaults to self.request_timeout_ms.
            ignore_tls_errors:  If True, skip certificate validation for this call only.
            credential:         Defaults to self.credential.

        Raises:
            requests.RequestException: the last transport failure, once retries are exhausted.
            VvxApiError:               the phone rejected the call with a non-2000 status.
            VvxInvalidResponseError:   the response was not a JSON status envelope.
        """
        uri = build_uri(device, command, protocol=protocol, port=port, base=base)
        return self.dispatch_uri(
            uri,
            method=method,
            body=body,
            retry_count=retry_count,
            request_timeout_ms=request_timeout_ms,
            ignore_tls_errors=ignore_tls_errors,
            credential=credential,
          )

    def dispatch_uri(
            self,
            uri: str,
            method: str=DEFAULT_METHOD,
            body: Any=None,
            retry_count: Optional[int]=None,
            request_timeout_ms: Optional[int]=None,
            ignore_tls_errors: Optional[bool]=None,
            credential: Optional[CredentialLike]=None
          ) -> Jsonable:
        """Like dispatch(), but with a caller-supplied full URI."""
        envelope = wrap_body(body)
        request_body = None if envelope is None else json.dumps(envelope, separators=(',', ':'))
        response = self.send(
            uri,
            method=method,
            data=request_body,
            content_type=JSON_CONTENT_TYPE,
            retry_count=retry_count,
            request_timeout_ms=request_timeout_ms,
            ignore_tls_errors=ignore_tls_errors,
            credential=credential,
          )
        try:
            result = response.json()
        except ValueError as e:
            raise VvxInvalidResponseError(f"Response from {uri} is not JSON: {response.text[:200]!r}") from e
        return classify_response(result, uri=uri)

    def get_uri(
            self,
            uri: str,
            retry_count: Optional[int]=None,
            request_timeout_ms: int=DEFAULT_URI_TIMEOUT_MS,
            ignore_tls_errors: Optional[bool]=None,
            credential: Optional[CredentialLike]=None
          ) -> Jsonable:
        """GET a full URI and return its decoded JSON, or its text if it is not JSON.
           No status envelope is expected."""
        response = self.send(
            uri,
            method="Get",
            retry_count=retry_count,
            request_timeout_ms=request_timeout_ms,
            ignore_tls_errors=ignore_tls_errors,
            credential=credential,
          )
        try:
            return response.json()
        except ValueError:
            return response.text

    def post_xml(
            self,
            uri: str,
            xml: str,
            retry_count: Optional[int]=None,
            request_timeout_ms: Optional[int]=None,
            ignore_tls_errors: Optional[bool]=None,
            credential: Optional[CredentialLike]=None
          ) -> str:
        """POST an XML document and return the response text."""
        response = self.send(
            uri,
            method="Post",
            data=xml,
            content_type=XML_CONTENT_TYPE,
            retry_count=retry_count,
            request_timeout_ms=request_timeout_ms,
            ignore_tls_errors=ignore_tls_errors,
            credential=credential,
          )
        return response.text

    def send(
            self,
            uri: str,
            method: str=DEFAULT_METHOD,
            data: Optional[str]=None,
            content_type: str=JSON_CONTENT_TYPE,
            retry_count: Optional[int]=None,
            request_timeout_ms: Optional[int]=None,
            ignore_tls_errors: Optional[bool]=None,
            credential: Optional[CredentialLike]=None
          ) -> requests.Response:
        """Send one request, retrying transport failures, and return the 2xx response.

        A transport failure is any requests.RequestException, including a non-2xx HTTP status.
        Exactly retry_count + 1 attempts are made before the last failure is re-raised. The
        same URI, body and credential are reused for every attempt. Redirects are not followed.
        """
        method = normalize_method(method)
        if retry_count is None:
            retry_count = self.retry_count
        if request_timeout_ms is None:
            request_timeout_ms = self.request_timeout_ms
        if credential is None:
            credential = self.credential
        verify = not (self.ignore_tls_errors or bool(ignore_tls_errors))
        if ignore_tls_errors and not self.ignore_tls_errors:
            logger.debug(f"TLS certificate validation disabled for {uri}")
        auth = as_requests_auth(credential)
        username = credential_username(credential)
        headers = { "Content-Type": content_type }
        if data is not None:
            body_bytes: Optional[bytes] = data.encode('utf-8')
        else:
            body_bytes = None

        attempt = 0
        while True:
            attempt += 1
            call = RestCall(uri, method.upper(), username, data, attempt=attempt)
            self.history.record(call)
            logger.debug(f"REST {call.method} {uri} (attempt {attempt}/{retry_count + 1}) body={data}")
            try:
                response = self.session.request(
                    method.upper(),
                    uri,
                    data=body_bytes,
                    headers=headers,
                    auth=auth,
                    timeout=request_timeout_ms / 1000.0,
                    verify=verify,
                    allow_redirects=False,
                  )
                call.http_status = response.status_code
                call.response_body = response.text
                response.raise_for_status()
            except requests.RequestException as e:
                call.error = str(e)
                if attempt > retry_count:
                    logger.debug(f"REST {call.method} {uri} failed after {attempt} attempts: {e}")
                    raise
                logger.debug(f"REST {call.method} {uri} failed, retrying: {e}")
                continue
            logger.debug(f"REST {call.method} {uri} -> {response.status_code}: {call.response_body}")
            return response
