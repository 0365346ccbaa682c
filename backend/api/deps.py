from typing import Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.config import Settings
from src.database.review_task_registry import ReviewTaskRegistry
from src.jobs.review_task_job import ReviewTaskRunner
from src.service.errors import ReviewError

bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> str:
    """Resolve `Authorization: Bearer <jwt>` to the user id in its `sub` claim."""
    if credentials is None or not credentials.credentials:
        raise ReviewError(401, "missing_token")

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.auth.jwt_secret,
            algorithms=[settings.auth.jwt_algorithm],
        )
    except jwt.PyJWTError:
        raise ReviewError(401, "invalid_token") from None

    user_id = payload.get("sub")
    if not user_id:
        raise ReviewError(401, "invalid_token")
    return str(user_id)


def get_review_registry(request: Request) -> ReviewTaskRegistry:
    """Return the task registry owned by this app instance."""
    return request.app.state.review_registry


def get_review_runner(request: Request) -> ReviewTaskRunner:
    return request.app.state.review_runner
