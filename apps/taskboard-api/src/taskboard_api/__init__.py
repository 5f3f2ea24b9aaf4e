"""Taskboard API — thin FastAPI composition shell.

Wires ``taskboard-auth`` and the Linear issue client into a servable
application. Credential lifecycle logic lives in ``taskboard_auth``.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from taskboard_api.app import create_app
from taskboard_api.settings import Settings


def get_app() -> FastAPI:
    """Return the module-level app singleton (created on first call).

    Deferred so that import alone does not trigger settings validation.
    ``uvicorn taskboard_api:app`` still works because uvicorn resolves the
    attribute at runtime, which invokes ``__getattr__``.
    """
    global _app  # noqa: PLW0603
    if _app is None:
        _app = create_app()
    return _app


_app: FastAPI | None = None


def __getattr__(name: str) -> Any:
    """Module-level ``__getattr__`` so ``uvicorn taskboard_api:app`` works."""
    if name == "app":
        return get_app()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["Settings", "create_app", "get_app"]
