import hmac

from fastapi import HTTPException, Request

from app.core.config import settings


def require_admin(request: Request) -> None:
    """Gate for the admin API: a static shared secret.

    The token is read from the ``X-Admin-Token`` header, falling back to the
    ``token`` query parameter so the dashboard can open links directly.
    """
    admin_token = settings.ADMIN_TOKEN
    if not admin_token:
        raise HTTPException(status_code=500, detail="ADMIN_TOKEN not configured")

    token = request.headers.get("X-Admin-Token") or request.query_params.get("token") or ""
    if not hmac.compare_digest(token.encode("utf-8"), admin_token.encode("utf-8")):
        raise HTTPException(status_code=401, detail="Unauthorized")
