"""Name conversion used to derive table and column names."""

from __future__ import annotations

import re

_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_WORD_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_SEPARATORS = re.compile(r"[\s\-.]+")


def to_snake_case(name: str) -> str:
    """Return ``name`` as lowercase words joined by underscores.

    ``EntitySample`` becomes ``entity_sample`` and ``HTTPRequestLog`` becomes
    ``http_request_log``. Names already in snake_case are returned unchanged.
    """

    if not name:
        return name
    value = _SEPARATORS.sub("_", name.strip())
    value = _ACRONYM_BOUNDARY.sub(r"\1_\2", value)
    value = _WORD_BOUNDARY.sub(r"\1_\2", value)
    return re.sub(r"_+", "_", value).lower()


__all__ = ["to_snake_case"]
