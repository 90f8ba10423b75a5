"""Simple Python-based patching of copy.deepcopy."""
import copy as _copy_module

from replica._deepcopy import deepcopy as _deepcopy

_original_deepcopy = None
_is_enabled = False


def enable():
    """
    Replace copy.deepcopy with replica.deepcopy.

    :return: True if replica was enabled, False if it was already enabled.
    """
    global _original_deepcopy, _is_enabled
    if _is_enabled:
        return False

    _original_deepcopy = _copy_module.deepcopy
    _copy_module.deepcopy = _deepcopy
    _is_enabled = True
    return True


def disable():
    """
    Restore original copy.deepcopy.

    :return: True if replica was disabled, False if it was already disabled.
    """
    global _original_deepcopy, _is_enabled
    if not _is_enabled or _original_deepcopy is None:
        return False

    _copy_module.deepcopy = _original_deepcopy
    _original_deepcopy = None
    _is_enabled = False
    return True


def enabled():
    """Check if patching is enabled."""
    return _is_enabled
