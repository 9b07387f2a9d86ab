"""
SMM panel package root.

Provides the operation admission and health monitor shared by the panel's
request handlers, plus the HTTP surface that exposes it.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

from dotenv import load_dotenv

__all__ = ["__version__", "SmmPanelApplication", "ThreadingMonitor"]

__version__ = "0.1.0"

load_dotenv()


def __getattr__(name: str) -> Any:  # pragma: no cover
    if name == "SmmPanelApplication":
        return import_module("smmpanel.app").SmmPanelApplication
    if name == "ThreadingMonitor":
        return import_module("smmpanel.infra.monitoring").ThreadingMonitor
    raise AttributeError(name)
