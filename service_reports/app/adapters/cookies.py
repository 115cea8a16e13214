"""
Cookie directive extraction from ``Set-Cookie`` response headers.
"""

from __future__ import annotations

from typing import Dict, Iterable

# Attribute names defined for Set-Cookie; anything else is the cookie pair.
_COOKIE_ATTRIBUTES = frozenset({
    "path",
    "domain",
    "expires",
    "max-age",
    "secure",
    "httponly",
    "samesite",
    "priority",
    "partitioned",
})

_PLACEHOLDER_VALUES = frozenset({"", '""', "deleted", "null", "undefined"})


def extract_cookie_directives(header_values: Iterable[str]) -> Dict[str, str]:
    """
    Map cookie name to value for every usable directive in ``header_values``.

    Each header line is split on ``;``. The first segment that is not a known
    cookie attribute is taken as the ``name=value`` pair, so attribute order
    and trailing attributes do not matter. Empty and placeholder values
    (cookies being cleared) are skipped. Later lines win for repeated names.
    """
    cookies: Dict[str, str] = {}
    for line in header_values:
        for segment in line.split(";"):
            name, sep, value = segment.partition("=")
            name = name.strip()
            if not name or name.lower() in _COOKIE_ATTRIBUTES:
                continue
            if sep:
                value = value.strip()
                if value.lower() not in _PLACEHOLDER_VALUES:
                    cookies[name] = value
            break
    return cookies
