"""Admin token check for privileged endpoints."""

import secrets

from fastapi import Header, HTTPException, Request


async def require_admin(
    request: Request,
    x_admin_token: str = Header(None),
) -> None:
    """Allow the request only if X-Admin-Token matches the configured token.

    With no token configured, privileged endpoints are disabled.
    """
    expected = getattr(request.app.state, "admin_token", None)
    if not expected:
        raise HTTPException(status_code=403, detail="Admin operations are disabled")
    if not x_admin_token or not secrets.compare_digest(x_admin_token, expected):
        raise HTTPException(status_code=403, detail="Only admins can clear all jobs")
