"""Request authentication.

Authentication happens upstream (the auth proxy in front of the API). The
proxy forwards the caller's stable user id in the ``X-User-Id`` header;
this module turns it into FastAPI dependencies for authenticated routes.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from core.logger import bind_contextvars
from core.wide_event import set_wide_event_fields

USER_ID_HEADER = "X-User-Id"
MAX_USER_ID_LENGTH = 255


def get_user_id_from_request(request: Request) -> str | None:
    """Return the forwarded user id, or None if absent or unusable."""
    user_id = request.headers.get(USER_ID_HEADER, "").strip()
    if not user_id or len(user_id) > MAX_USER_ID_LENGTH:
        return None
    return user_id


def require_auth(request: Request) -> str:
    """Raises 401 if not authenticated. Sets request.state.user_id."""
    user_id = get_user_id_from_request(request)
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")

    request.state.user_id = user_id
    bind_contextvars(user_id=user_id)
    set_wide_event_fields(user_id=user_id)
    return user_id


UserId = Annotated[str, Depends(require_auth)]
