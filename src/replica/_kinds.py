# SPDX-FileCopyrightText: 2025-present Arseny Boykov (Bobronium) <hi@bobronium.me>
#
# SPDX-License-Identifier: MIT
"""
Structural classification of values.

Every object maps to exactly one :class:`Kind`. The engine dispatches on it to
pick a copy strategy.
"""
from __future__ import annotations

import _thread
import array
import collections
import ctypes
import enum
import io
import queue
import sys
import threading
import types
import weakref
from copy import Error
from typing import Any
from typing import TypeVar

__all__ = ["Kind", "UnsupportedKind", "classify", "opaque", "unsupported"]

T = TypeVar("T", bound=type)


class UnsupportedKind(Error, TypeError):
    """No safe copy strategy exists for a value's type."""


def unsupported(cls: type, reason: str | None = None) -> UnsupportedKind:
    """
    Build the error raised for ``cls``.

    :param reason: when given, chained as a ``TypeError`` ``__cause__``.
    """
    error = UnsupportedKind(f"un(deep)copyable object of type {cls}")
    if reason is not None:
        error.__cause__ = TypeError(reason)
    return error


class Kind(enum.Enum):
    SCALAR = "scalar"
    TEXT = "text"
    FIXED_AGGREGATE = "fixed_aggregate"
    DYNAMIC_AGGREGATE = "dynamic_aggregate"
    KEYED_AGGREGATE = "keyed_aggregate"
    RECORD = "record"
    REFERENCE = "reference"
    OPAQUE_HANDLE = "opaque_handle"
    UNREPRESENTABLE = "unrepresentable"


# leaves never recurse; of them only buffer views go through the memo
_LEAF_KINDS = frozenset({Kind.SCALAR, Kind.TEXT, Kind.OPAQUE_HANDLE, Kind.UNREPRESENTABLE})

# exact types only: subclasses may carry extra state and fall through to RECORD
_KIND_BY_TYPE: dict[type, Kind] = {
    type(None): Kind.SCALAR,
    bool: Kind.SCALAR,
    int: Kind.SCALAR,
    float: Kind.SCALAR,
    complex: Kind.SCALAR,
    range: Kind.SCALAR,
    types.EllipsisType: Kind.SCALAR,
    types.NotImplementedType: Kind.SCALAR,
    str: Kind.TEXT,
    bytes: Kind.TEXT,
    memoryview: Kind.TEXT,
    tuple: Kind.FIXED_AGGREGATE,
    list: Kind.DYNAMIC_AGGREGATE,
    bytearray: Kind.DYNAMIC_AGGREGATE,
    collections.deque: Kind.DYNAMIC_AGGREGATE,
    array.array: Kind.DYNAMIC_AGGREGATE,
    dict: Kind.KEYED_AGGREGATE,
    set: Kind.KEYED_AGGREGATE,
    frozenset: Kind.KEYED_AGGREGATE,
    types.CellType: Kind.REFERENCE,
    types.MethodType: Kind.RECORD,
    types.FunctionType: Kind.OPAQUE_HANDLE,
    types.CodeType: Kind.OPAQUE_HANDLE,
    types.ModuleType: Kind.OPAQUE_HANDLE,
    types.FrameType: Kind.OPAQUE_HANDLE,
    types.TracebackType: Kind.OPAQUE_HANDLE,
    types.GeneratorType: Kind.OPAQUE_HANDLE,
    types.CoroutineType: Kind.OPAQUE_HANDLE,
    types.AsyncGeneratorType: Kind.OPAQUE_HANDLE,
    property: Kind.OPAQUE_HANDLE,
    weakref.ProxyType: Kind.OPAQUE_HANDLE,
    weakref.CallableProxyType: Kind.OPAQUE_HANDLE,
    _thread.LockType: Kind.OPAQUE_HANDLE,
    type(threading.RLock()): Kind.OPAQUE_HANDLE,
}

_UNREPRESENTABLE_TYPES: tuple[type, ...] = (
    ctypes.c_void_p,
    ctypes.c_char_p,
    ctypes.c_wchar_p,
    ctypes._Pointer,
    ctypes._CFuncPtr,
)

# in-memory streams (io.BytesIO, io.StringIO) hold plain data and stay records
_opaque_types: tuple[type, ...] = (
    type,
    weakref.ref,
    threading.Thread,
    threading.Event,
    threading.Condition,
    threading.Semaphore,
    threading.Barrier,
    queue.Queue,
    queue.SimpleQueue,
    io.FileIO,
    io.BufferedReader,
    io.BufferedWriter,
    io.BufferedRandom,
    io.BufferedRWPair,
    io.TextIOWrapper,
)

# module -> handle types, registered once the module shows up in sys.modules;
# no instance can exist before that
_deferred_opaque: dict[str, tuple[str, ...]] = {
    "asyncio": ("Queue", "Future"),
    "concurrent.futures": ("Future", "Executor"),
    "socket": ("socket",),
}


def _resolve_deferred() -> None:
    global _opaque_types
    for name in list(_deferred_opaque):
        module = sys.modules.get(name)
        if module is None:
            continue
        resolved = [getattr(module, attr, None) for attr in _deferred_opaque.get(name, ())]
        if not all(isinstance(cls, type) for cls in resolved):
            # still being imported
            continue
        _opaque_types = (*_opaque_types, *(cls for cls in resolved if cls not in _opaque_types))
        _deferred_opaque.pop(name, None)


def opaque(cls: T) -> T:
    """
    Mark ``cls`` and its subclasses as non-duplicable.

    Instances are passed through by reference instead of being copied.
    Usable as a class decorator.

    :param cls: type to register.
    :return: ``cls`` unchanged.
    """
    global _opaque_types
    if not isinstance(cls, type):
        raise TypeError(f"opaque() argument must be a type, not {type(cls).__name__}")
    if cls not in _opaque_types:
        _opaque_types = (*_opaque_types, cls)
    return cls


def classify(x: Any) -> Kind:
    """Return the structural kind of ``x``. Never raises."""
    # type(x) rather than isinstance(): the instance's own __class__ is never consulted
    cls = type(x)
    if cls is types.BuiltinMethodType:
        return _classify_builtin(x)
    kind = _KIND_BY_TYPE.get(cls)
    if kind is not None:
        return kind
    if issubclass(cls, _UNREPRESENTABLE_TYPES):
        return Kind.UNREPRESENTABLE
    if _deferred_opaque:
        _resolve_deferred()
    if issubclass(cls, _opaque_types):
        return Kind.OPAQUE_HANDLE
    return Kind.RECORD


def _classify_builtin(x: Any) -> Kind:
    # builtin functions and class-level builtins are bound to a module or a type;
    # anything else is a method holding on to an instance, like [].append
    owner = x.__self__
    if owner is None or issubclass(type(owner), (types.ModuleType, type)):
        return Kind.OPAQUE_HANDLE
    return Kind.RECORD
