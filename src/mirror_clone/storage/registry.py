"""Registry of storage backends with lazy loading.

Backend modules are imported only when a backend of that kind is built.

Usage:
    from mirror_clone.storage.registry import build_storage

    source = build_storage("pypi", simple_base="https://...", debug=True)
    target = build_storage("local", root="/srv/mirror/pypi")
"""

from __future__ import annotations

import importlib
from typing import Any

# Module cache for lazy loading
_module_cache: dict[str, Any] = {}

# name -> (module under mirror_clone.storage, class name, roles)
_STORAGE_LOADERS: dict[str, tuple[str, str, frozenset[str]]] = {
    "pypi": ("pypi", "Pypi", frozenset({"source"})),
    "rsync": ("rsync", "Rsync", frozenset({"source"})),
    "local": ("local", "LocalDirectory", frozenset({"target"})),
}


def _lazy_import(module_name: str) -> Any:
    if module_name not in _module_cache:
        full_name = f"mirror_clone.storage.{module_name}"
        _module_cache[module_name] = importlib.import_module(full_name)
    return _module_cache[module_name]


def list_storages(role: str | None = None) -> list[str]:
    """List backend names, optionally only those usable in ``role``."""
    return sorted(
        name for name, (_, _, roles) in _STORAGE_LOADERS.items() if role is None or role in roles
    )


def build_storage(name: str, **kwargs: Any) -> Any:
    """Instantiate backend ``name`` with ``kwargs``.

    Raises:
        ValueError: If the backend name is not recognized
    """
    if name not in _STORAGE_LOADERS:
        available = ", ".join(list_storages())
        raise ValueError(f"Unknown storage '{name}'. Available: {available}")
    module_name, class_name, _ = _STORAGE_LOADERS[name]
    cls = getattr(_lazy_import(module_name), class_name)
    return cls(**kwargs)


__all__ = ["build_storage", "list_storages"]
