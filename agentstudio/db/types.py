"""Column types for JSON-encoded array and object columns.

Stored values are plain JSON text. Reads go through ``decode_json_column``
so a malformed cell comes back as the documented fallback instead of
raising out of the ORM.
"""

import copy
import json
from typing import Any

from sqlalchemy.types import Text, TypeDecorator


def decode_json_column(value: Any, fallback: list | dict) -> Any:
    """Decode a stored JSON array/object column.

    Args:
        value: The raw cell. May be a JSON string, an already-decoded
            list/dict, or None.
        fallback: The empty collection to return when ``value`` is missing,
            malformed, or of the wrong shape. A fresh copy is returned.

    Returns:
        A list or dict of the same type as ``fallback``.
    """
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="replace")
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return copy.copy(fallback)
    if isinstance(value, type(fallback)):
        return value
    return copy.copy(fallback)


class _LenientJSON(TypeDecorator):
    impl = Text
    cache_ok = True
    fallback: list | dict = []

    def process_bind_param(self, value, dialect):
        if value is None:
            value = self.fallback
        return json.dumps(value)

    def process_result_value(self, value, dialect):
        return decode_json_column(value, self.fallback)


class JSONArray(_LenientJSON):
    """JSON array column; malformed cells read back as ``[]``."""

    cache_ok = True
    fallback = []


class JSONObject(_LenientJSON):
    """JSON object column; malformed cells read back as ``{}``."""

    cache_ok = True
    fallback = {}
