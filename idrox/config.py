# config.py

"""Global configuration for idrox warnings and debug behavior.

Usage:
- Toggle debug warnings (e.g., breakdown guards, densification):
    from idrox.config import set_debug
    set_debug(True)

- Or via environment variable:
    export IDROX_DEBUG=1
"""

from __future__ import annotations

import os
import warnings

_DEBUG: bool = os.getenv("IDROX_DEBUG", "0") not in {"0", "false", "False", ""}


def set_debug(value: bool) -> None:
    """Enable or disable debug mode (controls warnings)."""
    global _DEBUG
    _DEBUG = bool(value)


def is_debug() -> bool:
    """Return whether debug mode is enabled."""
    return _DEBUG


def warn(msg: str, *, prefix: str = "Warning") -> None:
    """Conditionally emit a warning message if debug is enabled.

    Args:
        msg: Message to emit.
        prefix: Optional prefix for the message, defaults to 'Warning'.
    """
    if _DEBUG:
        warnings.warn(f"{prefix}: {msg}", UserWarning, stacklevel=2)
