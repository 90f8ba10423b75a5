# SPDX-FileCopyrightText: 2025-present Arseny Boykov (Bobronium) <hi@bobronium.me>
#
# SPDX-License-Identifier: MIT
"""
The traversal engine.

Each value is classified. Leaves other than buffer views are returned as they
are, everything else goes through the memo: a hit is returned directly, a miss
is copied by the strategy for its kind. Mutable nodes are recorded before
their children are visited, immutable ones after, with a second memo check in
case a child produced them through a cycle.
"""
from __future__ import annotations

import array
import copyreg
import traceback
import types
import warnings
from collections.abc import Callable
from collections.abc import MutableMapping
from typing import Any
from typing import TypeVar

from replica import _build
from replica import _config
from replica._kinds import _LEAF_KINDS
from replica._kinds import Kind
from replica._kinds import UnsupportedKind
from replica._kinds import classify
from replica._kinds import unsupported
from replica._memo import MISSING
from replica._memo import Memo
from replica._memo import lookup
from replica._memo import record

__all__ = ["deepcopy"]

T = TypeVar("T")


class _MemoRejected(Exception):
    """A ``__deepcopy__`` hook refused an engine-created :class:`Memo`."""

    def __init__(self, hook_owner: type, error: TypeError) -> None:
        super().__init__(hook_owner, error)
        self.hook_owner = hook_owner
        self.error = error


def deepcopy(x: T, memo: MutableMapping[int, Any] | None = None) -> T:
    """
    Return a deep copy of obj.

    :param x: object to deepcopy
    :param memo: treat as opaque.
    :return: deep copy of the `x`.
    """
    if memo is not None:
        if not isinstance(memo, MutableMapping):
            raise TypeError(f"argument 'memo' must be dict, not {type(memo).__name__}")
        return _deepcopy(x, memo)

    if _config.settings.use_dict_memo:
        return _deepcopy(x, {})

    try:
        return _deepcopy(x, Memo())
    except _MemoRejected as rejected:
        _warn_memo_rejected(rejected)
    return _deepcopy(x, {})


def _warn_memo_rejected(rejected: _MemoRejected) -> None:
    error = rejected.error
    if _config.settings.silences(error):
        return
    hook = f"{rejected.hook_owner.__module__}.{rejected.hook_owner.__qualname__}.__deepcopy__"
    described = f"{type(error).__name__}: {error}"
    location = ""
    frames = traceback.extract_tb(error.__traceback__)
    if frames:
        frame = frames[-1]
        location = f'    File "{frame.filename}", line {frame.lineno}, in {frame.name}\n'
        if frame.line:
            location += f"        {frame.line}\n"
    warnings.warn(
        f"\n\nSeems like 'replica.memo' was rejected inside '{hook}':\n\n"
        f"{location}"
        f"    {described}\n\n"
        f"Per Python docs, '{hook}' should treat memo as an opaque object.\n"
        "The copy was restarted with a plain dict memo.\n\n"
        f"To silence this warning:\n"
        f"    export REPLICA_NO_MEMO_FALLBACK_WARNING='{described}'\n"
        "To raise the error instead:\n"
        "    export REPLICA_NO_MEMO_FALLBACK=1\n",
        UserWarning,
        stacklevel=3,
    )


def _deepcopy(x: Any, memo: MutableMapping[int, Any]) -> Any:
    kind = classify(x)
    if kind in _LEAF_KINDS and type(x) is not memoryview:
        return x
    y = lookup(memo, x)
    if y is not MISSING:
        return y
    return _COPIERS[kind](x, memo)


def _copy_view(x: memoryview, memo: MutableMapping[int, Any]) -> memoryview:
    y = None
    base = _build.view_base(x)
    if base is not None:
        copied_base = lookup(memo, base)
        if copied_base is not MISSING:
            # the buffer is part of the graph, keep writing through to its copy
            y = _build.rebase_view(x, base, copied_base)
    if y is None:
        y = _build.copy_view(x)
    record(memo, x, y)
    return y


def _copy_reference(x: types.CellType, memo: MutableMapping[int, Any]) -> types.CellType:
    y = types.CellType()
    record(memo, x, y)
    try:
        target = x.cell_contents
    except ValueError:
        # empty cell is a null reference
        return y
    _build.fill_cell(y, _deepcopy(target, memo))
    return y


def _copy_fixed(x: tuple, memo: MutableMapping[int, Any]) -> tuple:
    items = [_deepcopy(item, memo) for item in x]
    y = lookup(memo, x)
    if y is not MISSING:
        return y
    y = _build.assemble_tuple(x, items)
    if y is not x:
        record(memo, x, y)
    return y


def _copy_dynamic(x: Any, memo: MutableMapping[int, Any]) -> Any:
    if type(x) is bytearray or type(x) is array.array:
        y = _build.duplicate_flat(x)
        record(memo, x, y)
        return y
    y = _build.allocate(x)
    record(memo, x, y)
    _build.fill_sequence(y, (_deepcopy(item, memo) for item in x))
    return y


def _copy_keyed(x: Any, memo: MutableMapping[int, Any]) -> Any:
    if type(x) is frozenset:
        items = [_deepcopy(item, memo) for item in x]
        y = lookup(memo, x)
        if y is not MISSING:
            return y
        y = _build.assemble_frozenset(items)
        record(memo, x, y)
        return y

    y = _build.allocate(x)
    record(memo, x, y)
    if type(x) is dict:
        _build.fill_mapping(
            y, ((_deepcopy(key, memo), _deepcopy(value, memo)) for key, value in x.items())
        )
    else:
        _build.fill_set(y, (_deepcopy(item, memo) for item in x))
    return y


def _copy_record(x: Any, memo: MutableMapping[int, Any]) -> Any:
    cls = type(x)
    if cls is types.MethodType:
        y = _build.rebind(x, _deepcopy(x.__self__, memo))
        record(memo, x, y)
        return y
    if cls is types.BuiltinMethodType:
        y = _build.rebind_builtin(x, _deepcopy(x.__self__, memo))
        record(memo, x, y)
        return y

    hook = getattr(x, "__deepcopy__", None)
    if hook is not None:
        y = _call_hook(hook, cls, memo)
        if y is not x:
            record(memo, x, y)
        return y

    rv = _reduce(x, cls)
    if isinstance(rv, str):
        # reducer names a global, the object is its own copy
        return x
    return _reconstruct(x, cls, rv, memo)


def _call_hook(hook: Callable[[Any], Any], cls: type, memo: MutableMapping[int, Any]) -> Any:
    if type(memo) is not Memo or _config.settings.no_memo_fallback:
        return hook(memo)
    try:
        return hook(memo)
    except UnsupportedKind:
        raise
    except TypeError as error:
        raise _MemoRejected(cls, error) from error


def _reduce(x: Any, cls: type) -> Any:
    try:
        reductor = copyreg.dispatch_table.get(cls)
        if reductor is not None:
            return reductor(x)
        reductor = getattr(x, "__reduce_ex__", None)
        if reductor is not None:
            return reductor(4)
        reductor = getattr(x, "__reduce__", None)
        if reductor:
            return reductor()
    except UnsupportedKind:
        raise
    except TypeError as error:
        # "cannot pickle 'X' object" and friends
        raise unsupported(cls) from error
    raise unsupported(cls)


def _reconstruct(x: Any, cls: type, rv: tuple, memo: MutableMapping[int, Any]) -> Any:
    func, args, state, listiter, dictiter = _build.unpack_reduce(cls, rv)
    if args:
        args = _deepcopy(args, memo)
    y = _build.instantiate(func, args)
    record(memo, x, y)

    if state is not None:
        _build.set_state(y, _deepcopy(state, memo), cls)
    if listiter is not None:
        _build.fill_sequence(y, (_deepcopy(item, memo) for item in listiter))
    if dictiter is not None:
        _build.fill_mapping(
            y, ((_deepcopy(key, memo), _deepcopy(value, memo)) for key, value in dictiter)
        )
    return y


_COPIERS: dict[Kind, Callable[[Any, MutableMapping[int, Any]], Any]] = {
    Kind.TEXT: _copy_view,
    Kind.REFERENCE: _copy_reference,
    Kind.FIXED_AGGREGATE: _copy_fixed,
    Kind.DYNAMIC_AGGREGATE: _copy_dynamic,
    Kind.KEYED_AGGREGATE: _copy_keyed,
    Kind.RECORD: _copy_record,
}
