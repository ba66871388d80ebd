# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Configuration support.

Defaults for the command-line tool can be kept in a JSON file. String values may refer to
environment variables as ${env:NAME}; e.g.:

    {
      "protocol": "HTTPS",
      "port": 443,
      "ignore_tls_errors": true,
      "username": "Polycom",
      "password": "${env:VVX_PASSWORD}"
    }
"""

from __future__ import annotations

import os
import json
from string import Template

from .internal_types import *
from .pkg_logging import logger
from .constants import (
    SIP_PORT,
    DEFAULT_PROTOCOL,
    DEFAULT_REST_PORT,
    DEFAULT_RETRY_COUNT,
    DEFAULT_REQUEST_TIMEOUT_MS,
    DEFAULT_WAIT_TIME_MS,
  )
from .credentials import Credential, DEFAULT_KEYRING_SERVICE, credential_from_keyring

CONFIG_ENV_VAR = "POLYCOM_VVX_CONFIG"
"""Environment variable naming the configuration file."""

DEFAULT_CONFIG_FILE = "~/.config/polycom-vvx/config.json"

class EnvTemplate(Template):
  """A string.Template whose braced placeholders may contain ':' (e.g., ${env:HOME})."""
  braceidpattern = r'(?a:[_a-z][_a-z0-9]*(?::[_a-z0-9]+)?)'

def env_context(os_environ: Optional[Mapping[str, str]]=None) -> Dict[str, str]:
  """Returns the substitution context: each environment variable NAME as "env:NAME"."""
  if os_environ is None:
    os_environ = os.environ
  return { f"env:{k}": v for k, v in os_environ.items() }

def render_template_str(template_str: str, context: Mapping[str, str]) -> str:
  return EnvTemplate(template_str).substitute(context)

_FIELD_TYPES: Dict[str, Tuple[type, ...]] = {
    'protocol': (str,),
    'port': (int,),
    'retry_count': (int,),
    'request_timeout_ms': (int,),
    'ignore_tls_errors': (bool,),
    'username': (str,),
    'password': (str,),
    'keyring_service': (str,),
    'wait_time_ms': (int,),
    'local_ip': (str,),
    'sip_port': (int,),
  }

class ClientConfig:
  protocol: str = DEFAULT_PROTOCOL
  port: int = DEFAULT_REST_PORT
  retry_count: int = DEFAULT_RETRY_COUNT
  request_timeout_ms: int = DEFAULT_REQUEST_TIMEOUT_MS
  ignore_tls_errors: bool = False
  username: Optional[str] = None
  password: Optional[str] = None
  keyring_service: str = DEFAULT_KEYRING_SERVICE
  wait_time_ms: int = DEFAULT_WAIT_TIME_MS
  local_ip: Optional[str] = None
  sip_port: int = SIP_PORT

  config_file: Optional[str] = None
  """The file this configuration was loaded from, if any"""

  def __init__(self, **kwargs: Any):
    self.update(kwargs)

  def update(self, values: Mapping[str, Any]) -> None:
    """Set configuration values. None values are ignored. Raises ValueError on unknown keys or wrong types."""
    for k, v in values.items():
      if not k in _FIELD_TYPES:
        raise ValueError(f"ClientConfig: unknown configuration key '{k}'")
      if v is None:
        continue
      expected = _FIELD_TYPES[k]
      if not isinstance(v, expected) or (isinstance(v, bool) and not bool in expected):
        raise ValueError(f"ClientConfig: expected {expected[0].__name__} for '{k}', got {type(v).__name__}")
      setattr(self, k, v)

  def as_dict(self) -> JsonableDict:
    return { k: getattr(self, k) for k in _FIELD_TYPES }

  def get_credential(self) -> Optional[Credential]:
    """Returns the configured credential, or None if no user name is configured.

    A configured password is used directly; otherwise the password is looked up in the
    keyring. Raises KeyError if the keyring has no entry for the user.
    """
    if self.username is None:
      return None
    if self.password is not None:
      return Credential(self.username, self.password)
    return credential_from_keyring(self.username, service=self.keyring_service)

  @classmethod
  def loads(cls, s: str, os_environ: Optional[Mapping[str, str]]=None) -> ClientConfig:
    data = json.loads(s)
    if not isinstance(data, dict):
      raise ValueError(f"ClientConfig: expected json dict, got {type(data).__name__}")
    context = env_context(os_environ)
    rendered = { k: render_template_str(v, context) if isinstance(v, str) else v for k, v in data.items() }
    return cls(**rendered)

  @classmethod
  def load_file(cls, config_file: str, os_environ: Optional[Mapping[str, str]]=None) -> ClientConfig:
    config_file = os.path.abspath(os.path.expanduser(config_file))
    with open(config_file) as f:
      cfg = cls.loads(f.read(), os_environ=os_environ)
    cfg.config_file = config_file
    logger.debug(f"Loaded configuration from {config_file}")
    return cfg

  @classmethod
  def load_default(cls, config_file: Optional[str]=None, os_environ: Optional[Mapping[str, str]]=None) -> ClientConfig:
    """Load the configuration file named by config_file, else by $POLYCOM_VVX_CONFIG, else the
       default file if it exists. With no file, built-in defaults are returned.
       An explicitly named file must exist."""
    environ = os.environ if os_environ is None else os_environ
    if config_file is None:
      config_file = environ.get(CONFIG_ENV_VAR)
    if config_file is None:
      default_file = os.path.expanduser(DEFAULT_CONFIG_FILE)
      if not os.path.exists(default_file):
        return cls()
      config_file = default_file
    return cls.load_file(config_file, os_environ=environ)
