"""Optional dependency helpers."""

import importlib
from types import ModuleType


def import_optional(module: str, extra: str) -> ModuleType:
    """Import *module*, or raise ImportError naming the extra that provides it."""
    try:
        return importlib.import_module(module)
    except ImportError as exc:
        package = module.split(".", 1)[0]
        raise ImportError(
            f"'{package}' is required but not installed. "
            f"Install it with: pip install 'csrf-plus[{extra}]'"
        ) from exc
