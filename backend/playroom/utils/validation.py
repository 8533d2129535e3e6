from __future__ import annotations

from typing import Any

from ..core.stats import is_bot_id

MAX_NAME_LENGTH = 24
MAX_PLAYER_ID_LENGTH = 64
MAX_AVATAR_LENGTH = 512


def validate_name(name: str) -> bool:
    n = (name or "").strip()
    if not n:
        return False
    if len(n) > MAX_NAME_LENGTH:
        return False
    # Avoid obvious HTML/script injection.
    if "<" in n or ">" in n:
        return False
    # No control characters.
    for ch in n:
        if ord(ch) < 32:
            return False
    return True


def clean_player_id(raw: Any) -> str:
    pid = str(raw or "").strip()
    # Bot ids are minted by the rooms; clients may not claim one.
    if not pid or len(pid) > MAX_PLAYER_ID_LENGTH or is_bot_id(pid):
        return ""
    return pid


def clean_avatar(raw: Any) -> str | None:
    a = str(raw or "").strip()
    if not a or len(a) > MAX_AVATAR_LENGTH or "<" in a or ">" in a:
        return None
    return a
