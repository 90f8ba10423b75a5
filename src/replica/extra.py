# SPDX-FileCopyrightText: 2025-present Arseny Boykov (Bobronium) <hi@bobronium.me>
#
# SPDX-License-Identifier: MIT
"""Batch helpers on top of :func:`replica.deepcopy`."""
from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from replica._deepcopy import deepcopy

__all__ = ["repeatcall", "replicate"]

T = TypeVar("T")


def _check_count(n: int) -> None:
    if n < 0:
        raise ValueError(f"n must be non-negative, got {n}")


def replicate(x: T, n: int, /) -> list[T]:
    """
    Return ``n`` deep copies of ``x``.

    Every copy is made with its own memo, so copies share no state with each
    other or with ``x``.
    """
    _check_count(n)
    return [deepcopy(x) for _ in range(n)]


def repeatcall(function: Callable[[], T], n: int, /) -> list[T]:
    """Return the results of calling ``function`` ``n`` times."""
    _check_count(n)
    return [function() for _ in range(n)]
