from __future__ import annotations

from typing import Any


def ok(**extra: Any) -> dict[str, Any]:
    return {"success": True, **extra}


def fail(error: str, **extra: Any) -> dict[str, Any]:
    return {"success": False, "error": error, **extra}
