# SPDX-FileCopyrightText: 2025-present Arseny Boykov (Bobronium) <hi@bobronium.me>
#
# SPDX-License-Identifier: MIT
"""Environment-driven settings, read once at import time."""
from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

__all__ = ["Settings", "settings"]

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def _flag(value: str | None) -> bool:
    return value is not None and value.strip().lower() in _TRUTHY


@dataclass(frozen=True)
class Settings:
    patch_deepcopy: bool = False
    use_dict_memo: bool = False
    no_memo_fallback: bool = False
    # a truthy flag, or a specific "TypeError: message" to silence
    no_memo_fallback_warning: str | None = None

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> Settings:
        if environ is None:
            environ = os.environ
        return cls(
            patch_deepcopy=_flag(environ.get("REPLICA_PATCH_DEEPCOPY")),
            use_dict_memo=_flag(environ.get("REPLICA_USE_DICT_MEMO")),
            no_memo_fallback=_flag(environ.get("REPLICA_NO_MEMO_FALLBACK")),
            no_memo_fallback_warning=environ.get("REPLICA_NO_MEMO_FALLBACK_WARNING") or None,
        )

    def silences(self, error: BaseException) -> bool:
        """Whether the memo fallback warning for ``error`` is turned off."""
        value = self.no_memo_fallback_warning
        if value is None:
            return False
        return _flag(value) or value.strip() == f"{type(error).__name__}: {error}"


settings = Settings.from_environ()
