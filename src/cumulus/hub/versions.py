"""Total ordering over plugin version strings.

Versions are split on ``.``, ``-`` and ``+``. Numeric components compare
numerically and rank above alphanumeric ones at the same position, so
``1.0.1 > 1.0.rc1``. Alphanumeric components compare lexically. When
one version is a prefix of the other the shorter ranks lower
(``1.0 < 1.0.1``). Remaining ties fall back to the raw string, which
makes the order total and independent of directory listing order.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

_SEPARATORS = re.compile(r"[.\-+]")


def version_key(version: str) -> tuple:
    """Sort key implementing the version order."""
    parts = []
    for component in _SEPARATORS.split(version):
        if component.isdigit():
            parts.append((1, int(component), ""))
        else:
            parts.append((0, 0, component))
    return (tuple(parts), version)


def latest_version(versions: Iterable[str]) -> str | None:
    """Return the highest version, or None if there are none."""
    versions = list(versions)
    if not versions:
        return None
    return max(versions, key=version_key)


def match_version(versions: Iterable[str], requested: str) -> str | None:
    """Pick the version to use for a lookup.

    An empty request selects the latest version; anything else must
    match exactly.
    """
    versions = list(versions)
    if not requested:
        return latest_version(versions)
    if requested in versions:
        return requested
    return None
