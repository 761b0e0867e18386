"""Composable collectibles with a rotating-trait prize pool."""

from __future__ import annotations

import importlib
from types import ModuleType
from typing import TYPE_CHECKING

from .engine import CompositeCollection, DeploymentConfig, HostContext, preset_config

__all__ = [
    "CompositeCollection",
    "DeploymentConfig",
    "HostContext",
    "cli",
    "interfaces",
    "preset_config",
    "tools",
]

_LAZY_SUBMODULES = {"cli", "interfaces", "tools"}


def __getattr__(name: str) -> ModuleType:
    """Lazily import the outer surfaces to keep fastapi and numpy optional at import."""

    if name in _LAZY_SUBMODULES:
        module = importlib.import_module(f"{__name__}.{name}")
        globals()[name] = module
        return module
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


if TYPE_CHECKING:  # pragma: no cover - imported for static analyzers
    from . import cli, interfaces, tools  # noqa: F401
