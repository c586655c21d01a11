import logging
from typing import Optional

from fastapi import Header

from .shared.validators import validate_email

logger = logging.getLogger(__name__)

UNKNOWN_ACTOR = "unknown"


async def get_current_actor(
    x_actor_email: Optional[str] = Header(default=None, alias="X-Actor-Email"),
) -> str:
    """
    Identify the principal acting on the request.

    Authentication happens upstream (API gateway / session layer); by the time a
    request reaches the scheduling API the caller's email is forwarded in the
    X-Actor-Email header. It is only used to attribute deletion audit records.
    """
    if not x_actor_email:
        logger.debug("No X-Actor-Email header, acting principal is unknown")
        return UNKNOWN_ACTOR

    try:
        return validate_email(x_actor_email)
    except ValueError:
        logger.warning(f"⚠️ Ignoring malformed X-Actor-Email header: {x_actor_email!r}")
        return UNKNOWN_ACTOR
