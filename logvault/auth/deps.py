from fastapi import Depends, HTTPException, Request, status
import logging
from typing import Optional

from sqlalchemy.exc import OperationalError

from .keys import has_scope, norm_scopes

log = logging.getLogger("logvault.auth")


def _extract_token(req: Request) -> Optional[str]:
    # Authorization: Bearer <token>   OR   Authorization: <token>
    auth = req.headers.get("authorization")
    if auth:
        parts = auth.strip().split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1]
        if len(parts) == 1 and parts[0].lower() != "bearer":
            return parts[0]
    # X-API-Key: <token>
    x = req.headers.get("x-api-key")
    if x and x.strip():
        return x.strip()
    return None


def authenticate(request: Request):
    """Resolve the API key on the request and record its principal on ``request.state``."""
    token = _extract_token(request)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing API key")

    engine = request.app.state.engine
    try:
        principal = engine.catalog.authenticate_key(token)
    except OperationalError as e:
        log.error("AUTH: catalog unavailable: %s", e)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Auth backend unavailable")

    if principal is None:
        log.warning("AUTH: token not found or disabled")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")

    request.state.key_id = principal.key_id
    request.state.tenant_id = principal.tenant_id
    request.state.scopes = sorted(norm_scopes(principal.scopes))
    return principal


def require_scopes(*allowed: str):
    allowed_set = {s.lower() for s in allowed}

    def dep(request: Request, principal=Depends(authenticate)):
        if has_scope(principal.scopes, *allowed_set):
            return principal
        log.warning("AUTH: scope denied, need=%s token=%s", sorted(allowed_set), sorted(principal.scopes))
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden: missing scope")

    return dep


def require_admin():
    """Require admin scope specifically"""
    return require_scopes("admin")
