"""Bearer token authentication for the audit API."""

import os
import secrets

from fastapi import Header, HTTPException


def token_matches(authorization: str | None, token: str) -> bool:
    """True when ``authorization`` is ``Bearer <token>``. Constant-time compare."""
    if not authorization or not authorization.strip().lower().startswith("bearer "):
        return False
    return secrets.compare_digest(authorization.strip()[7:].strip(), token)


async def require_bearer_token(authorization: str | None = Header(default=None)) -> None:
    """
    Dependency: require Authorization: Bearer <token> matching API_AUTH_TOKEN.
    503 when the server has no token configured, 401 otherwise.
    """
    token = os.environ.get("API_AUTH_TOKEN")
    if not token:
        raise HTTPException(
            status_code=503,
            detail="Server configuration error: API_AUTH_TOKEN not set",
        )
    if not token_matches(authorization, token):
        raise HTTPException(status_code=401, detail="Unauthorized")
