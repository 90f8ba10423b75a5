# SPDX-FileCopyrightText: 2025-present Arseny Boykov (Bobronium) <hi@bobronium.me>
#
# SPDX-License-Identifier: MIT
"""
Identity tracking for a single deepcopy call.

The memo maps ``id(original)`` to the copy produced for it. Entries are
recorded before children are visited, so a cycle that leads back to a node
resolves to its (partially built) copy instead of copying it again.

Originals are also appended to a keepalive list stored under ``id(memo)``,
same as :mod:`copy` does. As long as the memo lives, no recorded original can
be collected and have its id reused by an unrelated object.
"""
from __future__ import annotations

from collections.abc import MutableMapping
from typing import Any

__all__ = ["MISSING", "Memo", "lookup", "record"]

MISSING: Any = object()


class Memo(dict):
    __slots__ = ()

    def __repr__(self) -> str:
        return f"memo({dict.__repr__(self)})"


def lookup(memo: MutableMapping[int, Any], original: Any) -> Any:
    """Return the copy recorded for ``original`` or :data:`MISSING`."""
    return memo.get(id(original), MISSING)


def record(memo: MutableMapping[int, Any], original: Any, copied: Any) -> None:
    memo[id(original)] = copied
    keepalive = memo.get(id(memo))
    if keepalive is None:
        memo[id(memo)] = [original]
    else:
        keepalive.append(original)
