# SPDX-FileCopyrightText: 2025-present Arseny Boykov (Bobronium) <hi@bobronium.me>
#
# SPDX-License-Identifier: MIT
"""
Allocation and population of copied values.

Nothing here recurses. The traversal engine hands over children that are
already copied (or lazy iterables producing them) and these helpers put them
into a new value of the original's concrete type.
"""
from __future__ import annotations

import array
import collections
import copyreg
import ctypes
import types
from collections.abc import Iterable
from typing import Any

from replica._kinds import unsupported

__all__ = [
    "allocate",
    "assemble_frozenset",
    "assemble_tuple",
    "copy_view",
    "duplicate_flat",
    "fill_cell",
    "fill_mapping",
    "fill_sequence",
    "fill_set",
    "instantiate",
    "rebase_view",
    "rebind",
    "rebind_builtin",
    "set_state",
    "unpack_reduce",
    "view_base",
]


def copy_view(view: memoryview) -> memoryview:
    """
    Copy a buffer view into storage of its own.

    Two views over one buffer become two unrelated buffers. A read-only view is
    backed by ``bytes``, a writable one by ``bytearray``.
    """
    try:
        data = view.tobytes()
    except ValueError as error:
        raise unsupported(memoryview) from error
    copied = memoryview(data if view.readonly else bytearray(data))
    if view.format == "B" and view.ndim == 1:
        return copied
    try:
        return copied.cast(view.format, view.shape)
    except (TypeError, ValueError) as error:
        raise unsupported(memoryview) from error


def view_base(view: memoryview) -> bytearray | array.array | None:
    """
    Return the mutable flat buffer ``view`` writes into, if there is one.

    Read-only and released views, and views over any other exporter, give
    ``None``.
    """
    try:
        if view.readonly or not view.c_contiguous:
            return None
        base = view.obj
    except ValueError:
        # released
        return None
    if type(base) is bytearray or type(base) is array.array:
        return base
    return None


def rebase_view(
    view: memoryview, base: bytearray | array.array, copied_base: Any
) -> memoryview | None:
    """
    Return the window ``view`` has over ``base``, taken over ``copied_base``.

    ``None`` when the window cannot be located in the copy.
    """
    try:
        start = ctypes.addressof(ctypes.c_char.from_buffer(base))
        at = ctypes.addressof(ctypes.c_char.from_buffer(view))
        offset = at - start
        flat = memoryview(copied_base).cast("B")
        if offset < 0 or offset + view.nbytes > flat.nbytes:
            return None
        window = flat[offset : offset + view.nbytes]
        if view.format == "B" and view.ndim == 1:
            return window
        return window.cast(view.format, view.shape)
    except (TypeError, ValueError):
        # empty buffers, copies that are not buffers
        return None


def assemble_tuple(original: tuple, items: list[Any]) -> tuple:
    """Reuse ``original`` when no child changed identity."""
    for item, child in zip(items, original):
        if item is not child:
            return tuple(items)
    return original


def assemble_frozenset(items: list[Any]) -> frozenset:
    return frozenset(items)


def allocate(x: Any) -> Any:
    """Empty shell for a mutable container, ready to be recorded."""
    cls = type(x)
    if cls is list:
        return []
    if cls is dict:
        return {}
    if cls is set:
        return set()
    if cls is collections.deque:
        return collections.deque(maxlen=x.maxlen)
    raise unsupported(cls, f"no shell for {cls.__qualname__}")


def duplicate_flat(x: bytearray | array.array) -> bytearray | array.array:
    # elements are machine scalars, nothing to recurse into
    if type(x) is bytearray:
        return bytearray(x)
    return array.array(x.typecode, x)


def fill_sequence(shell: list | collections.deque, items: Iterable[Any]) -> None:
    append = shell.append
    for item in items:
        append(item)


def fill_set(shell: set, items: Iterable[Any]) -> None:
    add = shell.add
    for item in items:
        add(item)


def fill_mapping(shell: Any, pairs: Iterable[tuple[Any, Any]]) -> None:
    for key, value in pairs:
        shell[key] = value


def fill_cell(cell: types.CellType, value: Any) -> None:
    cell.cell_contents = value


def rebind(method: types.MethodType, instance: Any) -> types.MethodType:
    return type(method)(method.__func__, instance)


def rebind_builtin(method: types.BuiltinMethodType, instance: Any) -> Any:
    return getattr(instance, method.__name__)


def unpack_reduce(cls: type, rv: Any) -> tuple[Any, tuple, Any, Any, Any]:
    """
    Validate a reduce value and pad it to five items.

    :param cls: type of the reduced object, used in error messages.
    :param rv: non-string value returned by the reducer.
    :return: ``(func, args, state, listiter, dictiter)``.
    """
    name = cls.__qualname__
    if not isinstance(rv, tuple):
        raise unsupported(
            cls, f"{name}.__reduce__ must return a string or a tuple, not {type(rv).__name__}"
        )
    if not 2 <= len(rv) <= 5:
        raise unsupported(
            cls, f"tuple returned by {name}.__reduce__ must contain 2 through 5 elements"
        )
    func, args, state, listiter, dictiter = rv + (None,) * (5 - len(rv))
    if not callable(func):
        raise unsupported(
            cls,
            f"first element of the tuple returned by {name}.__reduce__"
            f" must be callable, not {type(func).__name__}",
        )
    if not isinstance(args, tuple):
        raise unsupported(
            cls,
            f"second element of the tuple returned by {name}.__reduce__"
            f" must be a tuple, not {type(args).__name__}",
        )
    if func is copyreg.__newobj_ex__ and len(args) == 3:
        _, newobj_args, newobj_kwargs = args
        if not isinstance(newobj_args, tuple):
            raise unsupported(
                cls,
                f"__newobj_ex__ args in {name}.__reduce__ result"
                f" must be a tuple, not {type(newobj_args).__name__}",
            )
        if not isinstance(newobj_kwargs, dict):
            raise unsupported(
                cls,
                f"__newobj_ex__ kwargs in {name}.__reduce__ result"
                f" must be a dict, not {type(newobj_kwargs).__name__}",
            )
    return func, args, state, listiter, dictiter


def instantiate(func: Any, args: tuple) -> Any:
    return func(*args)


def set_state(y: Any, state: Any, cls: type) -> None:
    """
    Apply reduce state to a freshly instantiated object.

    ``__setstate__`` wins when present. Otherwise ``state`` is either a
    ``__dict__`` mapping or a ``(dict_state, slot_state)`` pair.
    """
    setstate = getattr(y, "__setstate__", None)
    if setstate is not None:
        setstate(state)
        return

    if isinstance(state, tuple) and len(state) == 2:
        state, slotstate = state
    else:
        slotstate = None

    name = cls.__qualname__
    if state is not None:
        if not (isinstance(state, dict) or hasattr(state, "keys")):
            raise unsupported(
                cls,
                f"dict state from {name}.__reduce__"
                f" must be a dict or mapping, got {type(state).__name__}",
            )
        y.__dict__.update(state)
    if slotstate is not None:
        if not (isinstance(slotstate, dict) or hasattr(slotstate, "items")):
            raise unsupported(
                cls,
                f"slot state from {name}.__reduce__"
                f" must be a dict or have an items() method, got {type(slotstate).__name__}",
            )
        for key, value in slotstate.items():
            setattr(y, key, value)
