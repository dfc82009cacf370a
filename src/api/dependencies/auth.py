"""Bearer token authentication.

Access tokens are HS256 JWTs minted by the hosted auth provider. ``sub`` is
the user's UUID and ``email`` is copied onto the current user when present.
"""

import uuid
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from loguru import logger

from src.core.config import Settings, get_settings
from src.core.context import RequestContext
from src.core.exceptions import UnauthorizedError

_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    id: uuid.UUID
    email: str | None = None


def decode_access_token(token: str, settings: Settings) -> CurrentUser:
    """Verify a token and return the user it identifies.

    Raises:
        UnauthorizedError: Bad signature, expired, wrong audience, or no
            UUID in ``sub``.
    """
    auth = settings.auth_config
    try:
        claims = jwt.decode(
            token,
            auth.jwt_secret,
            algorithms=[auth.jwt_algorithm],
            audience=auth.jwt_audience,
            options={"verify_aud": auth.jwt_audience is not None},
        )
        user_id = uuid.UUID(str(claims["sub"]))
    except (JWTError, KeyError, ValueError) as e:
        logger.debug("Rejected access token: {}", type(e).__name__)
        raise UnauthorizedError("Unauthorized", cause=e) from e
    return CurrentUser(id=user_id, email=claims.get("email"))


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> CurrentUser:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError("Unauthorized")
    user = decode_access_token(credentials.credentials, settings)
    RequestContext.set_user_id(str(user.id))
    return user


AuthenticatedUser = Annotated[CurrentUser, Depends(get_current_user)]
