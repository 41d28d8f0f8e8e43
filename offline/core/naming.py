# offline/core/naming.py
from __future__ import annotations

import re

DELIMITER = "_"

_SEPARATORS = re.compile(r"[/\\\s]+")
_NEUTRAL = re.compile(r"[/\-]+")
_REPEATS = re.compile(r"_{2,}")


def sanitize(value: str) -> str:
    """
    Turn a capture name into a directory-safe identifier.

      api_/app/storage      -> api_app_storage
      proj-db-1_/var/lib/x  -> proj-db-1_var_lib_x

    Path separators and whitespace become "_", repeats collapse,
    leading/trailing delimiters are stripped.
    """
    out = _SEPARATORS.sub(DELIMITER, str(value))
    out = _REPEATS.sub(DELIMITER, out)
    return out.strip(DELIMITER)


def capture_identifier(service_name: str, destination: str) -> str:
    return sanitize(f"{service_name}{DELIMITER}{destination}")


def neutralize(value: str) -> str:
    """
    Replace "/" and "-" with the neutral delimiter so that naming
    conventions (dify-api, dify_api, dify/api) compare equal.
    """
    out = _NEUTRAL.sub(DELIMITER, str(value))
    return _REPEATS.sub(DELIMITER, out).strip(DELIMITER)
