from typing import Optional

from fastapi import Header, HTTPException, status

# Identity comes from the authentication layer in front of this service,
# which forwards the authenticated user id in this header.
ACTOR_HEADER = "X-User-Id"


def get_actor_id(x_user_id: Optional[str] = Header(default=None)) -> Optional[str]:
    return x_user_id


def require_actor_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user identity")
    return x_user_id
