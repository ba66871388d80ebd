# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Credentials for the phone REST API and push endpoint.

Passwords may be supplied directly or looked up in the system keyring. Nothing
in this module prompts the user.
"""

from __future__ import annotations

from .internal_types import *

import keyring
from requests.auth import AuthBase, HTTPBasicAuth

DEFAULT_KEYRING_SERVICE = "polycom-vvx"
"""The keyring service name under which phone passwords are stored by default."""

class Credential:
  """A user name and password for a phone's web interface."""

  username: str
  password: str

  def __init__(self, username: str, password: str):
    self.username = username
    self.password = password

  def as_auth(self) -> AuthBase:
    return HTTPBasicAuth(self.username, self.password)

  def __eq__(self, other: Any) -> bool:
    if not isinstance(other, Credential):
      return False
    return self.username == other.username and self.password == other.password

  def __str__(self) -> str:
    return f"Credential(username='{self.username}', password=***)"

  def __repr__(self) -> str:
    return str(self)

CredentialLike = Union[Credential, Tuple[str, str], AuthBase]
"""Anything accepted where a credential is expected. An AuthBase is passed to requests unchanged,
   so a caller can choose e.g. HTTPDigestAuth."""

def as_requests_auth(credential: Optional[CredentialLike]) -> Optional[Union[AuthBase, Tuple[str, str]]]:
  if credential is None:
    return None
  if isinstance(credential, Credential):
    return credential.as_auth()
  return credential

def credential_username(credential: Optional[CredentialLike]) -> Optional[str]:
  """Returns the user name of a credential for diagnostics, never the secret."""
  if credential is None:
    return None
  if isinstance(credential, Credential):
    return credential.username
  if isinstance(credential, tuple):
    return credential[0]
  username = getattr(credential, 'username', None)
  return username if isinstance(username, str) else type(credential).__name__

def credential_from_keyring(username: str, service: str=DEFAULT_KEYRING_SERVICE) -> Credential:
  """Look up the password for username in the system keyring.

  Raises KeyError if the keyring has no password for the service/username pair.
  """
  password = keyring.get_password(service, username)
  if password is None:
    raise KeyError(f"Keyring service '{service}', user name '{username}' does not exist")
  return Credential(username, password)

def store_credential_in_keyring(credential: Credential, service: str=DEFAULT_KEYRING_SERVICE) -> None:
  keyring.set_password(service, credential.username, credential.password)

def delete_credential_from_keyring(username: str, service: str=DEFAULT_KEYRING_SERVICE) -> None:
  keyring.delete_password(service, username)
