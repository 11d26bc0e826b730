# logvault/auth/keys.py
import hashlib
import json
import re
import secrets
from typing import Iterable, List, Set

KEY_PREFIX = "vk_"

# admin implies every other scope
KEY_SCOPES = ["logs:write", "logs:read", "logs:delete", "admin"]
ADMIN_SUPER = {"admin"}


def hash_token(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def generate_key() -> str:
    return KEY_PREFIX + secrets.token_hex(16)


def validate_scopes(scopes: Iterable[str]) -> List[str]:
    out = []
    for scope in scopes:
        s = str(scope).strip().lower()
        if s not in KEY_SCOPES:
            raise ValueError(f"Invalid scope: {scope}")
        if s not in out:
            out.append(s)
    return out


def norm_scopes(val) -> Set[str]:
    """Normalize stored scopes: a list, a JSON array string or a comma list."""
    if not val:
        return set()
    if isinstance(val, str):
        val = val.strip()
        if val.startswith("["):
            try:
                parsed = json.loads(val)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, list):
                return {str(s).strip().lower() for s in parsed if s}
        return {p.lower() for p in re.split(r"[\s,]+", val) if p}
    return {str(s).strip().lower() for s in val if s}


def has_scope(granted: Iterable[str], *required: str) -> bool:
    granted = norm_scopes(granted)
    if granted & ADMIN_SUPER:
        return True
    return bool(granted & {r.lower() for r in required})
