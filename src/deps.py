import logging
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status

# Logger for this module
logger = logging.getLogger(__name__)


async def get_current_user_id(
    x_user_id: Annotated[Optional[str], Header(alias="X-User-Id")] = None,
) -> int:
    """
    Dependency returning the id of the already authenticated caller.

    Authentication happens upstream (gateway / auth service), which forwards
    the user id in the ``X-User-Id`` header.

    Raises:
        HTTPException 401: If the header is missing or not a positive integer

    Usage:
        @router.get("/transactions")
        async def list_transactions(user_id: CurrentUserId):
            ...
    """
    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing user identity",
        )

    try:
        user_id = int(x_user_id.strip())
    except ValueError:
        logger.debug(f"Rejected non-numeric X-User-Id header: {x_user_id!r}")
        user_id = 0

    if user_id <= 0:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user identity",
        )
    return user_id

# Type alias for easier use in route handlers
CurrentUserId = Annotated[int, Depends(get_current_user_id)]
