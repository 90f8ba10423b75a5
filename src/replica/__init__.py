# SPDX-FileCopyrightText: 2025-present Arseny Boykov (Bobronium) <hi@bobronium.me>
#
# SPDX-License-Identifier: MIT
"""
Deep copies of arbitrary object graphs.

``replica.deepcopy`` is interchangeable with :func:`copy.deepcopy`: it takes
the same ``memo`` argument, honours ``__deepcopy__``, ``copyreg`` and the
reduce protocol, and raises :class:`copy.Error` subclasses. On top of that it
copies cells and buffer views, and passes non-duplicable handles (locks,
queues, sockets, raw ctypes pointers, ...) through instead of failing.
"""
from copy import Error

from replica import _config
from replica._deepcopy import deepcopy
from replica._kinds import Kind
from replica._kinds import UnsupportedKind
from replica._kinds import classify
from replica._kinds import opaque

__all__ = ["Error", "Kind", "UnsupportedKind", "classify", "deepcopy", "opaque"]

if _config.settings.patch_deepcopy:
    from replica import patch

    patch.enable()
