#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Exceptions defined by this package"""

from __future__ import annotations

from typing import Any, Optional

class VvxError(Exception):
  """Base class for all error exceptions defined by this package."""
  pass

class VvxApiError(VvxError):
  """The phone answered a REST call with a non-success application status code.

  The HTTP exchange itself succeeded; the status embedded in the JSON body
  rejected the request. These errors are never retried."""

  status_code: Optional[int]
  """The application-level status code from the response envelope"""

  description: str
  """The meaning of the status code"""

  uri: Optional[str]
  """The URI of the failed call, if known"""

  def __init__(self, status_code: Optional[int], description: str, uri: Optional[str]=None):
    super().__init__(f"API call failed - {description}")
    self.status_code = status_code
    self.description = description
    self.uri = uri

class VvxUnknownStatusError(VvxApiError):
  """The application-level status code is not in the known status table."""

  status_value: Any
  """The Status field exactly as it appeared in the envelope"""

  def __init__(self, status_value: Any, uri: Optional[str]=None):
    status_code = status_value if isinstance(status_value, int) else None
    super().__init__(status_code, f"unknown status code {status_value}", uri=uri)
    self.status_value = status_value

class VvxInvalidResponseError(VvxError):
  """A REST call returned a 2xx response that is not a JSON status envelope."""
  pass
