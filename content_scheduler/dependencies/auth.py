# content_scheduler/dependencies/auth.py
import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from content_scheduler.config import Settings
from content_scheduler.dependencies.services import get_app_settings


async def require_trigger_token(
    x_trigger_token: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_app_settings),
) -> None:
    """Shared-secret check for the cron trigger and CRUD callers. Open when no token is configured."""
    if not settings.trigger_token:
        return
    if not x_trigger_token or not secrets.compare_digest(x_trigger_token, settings.trigger_token):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid trigger token")
