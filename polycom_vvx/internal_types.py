#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Type hints used internally by this package.
"""

from __future__ import annotations

from typing import *
from types import TracebackType

Jsonable = Union[str, int, float, bool, None, Dict[str, Any], List[Any]]
"""A type hint for a simple JSON-serializable value; i.e., str, int, float, bool, None, Dict[str, Jsonable], List[Jsonable]"""

JsonableDict = Dict[str, Jsonable]
"""A type hint for a simple JSON-serializable dict; i.e., Dict[str, Jsonable]"""

JsonableList = List[Jsonable]
"""A type hint for a simple JSON-serializable list; i.e., List[Jsonable]"""

HostAndPort = Tuple[str, int]
"""A type hint for a (host, port) tuple as used by the socket module"""
