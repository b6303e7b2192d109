"""
Authentication dependencies for API routes.

Provides:
- UserContext: Dataclass describing the authenticated caller
- require_auth: FastAPI dependency that requires a valid bearer token
- create_access_token: Issue a signed token for a user GUID

Tokens are HS256 JWTs signed with settings.jwt_secret_key whose subject is
the user GUID (usr_xxx). Login and token issuance for end users happen
outside this backend; create_access_token exists for operators and tests.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from backend.src.config.settings import get_settings
from backend.src.db.database import get_db
from backend.src.services.exceptions import NotFoundError
from backend.src.services.user_service import UserService
from backend.src.utils.logging_config import get_logger


logger = get_logger("api")

TOKEN_ALGORITHM = "HS256"
TOKEN_TYPE = "access"
DEFAULT_TOKEN_TTL = timedelta(hours=12)


@dataclass
class UserContext:
    """
    Represents the authenticated caller of a request.

    Attributes:
        user_id: Internal user ID for database queries
        user_guid: User's external GUID (usr_xxx)
        name: Display name
        email: Email address

    Usage:
        @router.get("/series/mine")
        def list_series(ctx: UserContext = Depends(require_auth)):
            return service.list_for_user(ctx.user_id)
    """

    user_id: int
    user_guid: str
    name: str
    email: Optional[str] = None

    def __post_init__(self):
        """Validate required fields."""
        if not self.user_id or not self.user_guid:
            raise ValueError("user_id and user_guid are required")


def create_access_token(
    user_guid: str,
    expires_in: timedelta = DEFAULT_TOKEN_TTL,
    secret: Optional[str] = None,
) -> str:
    """
    Create a signed bearer token for a user.

    Args:
        user_guid: User GUID used as the token subject
        expires_in: Token lifetime
        secret: Signing key (defaults to settings.jwt_secret_key)

    Returns:
        Encoded JWT

    Raises:
        ValueError: If no signing key is configured
    """
    secret = secret or get_settings().jwt_secret_key
    if not secret:
        raise ValueError("VHUB_JWT_SECRET_KEY is not configured")

    now = datetime.utcnow()
    payload = {
        "sub": user_guid,
        "type": TOKEN_TYPE,
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(payload, secret, algorithm=TOKEN_ALGORITHM)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"}
    )


def require_auth(
    request: Request,
    db: Session = Depends(get_db)
) -> UserContext:
    """
    FastAPI dependency that requires a valid bearer token.

    Args:
        request: FastAPI Request object
        db: Database session

    Returns:
        UserContext for the token's user

    Raises:
        HTTPException 401: Missing, malformed, expired, or unknown token
        HTTPException 403: User is inactive
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise _unauthorized("Authentication required")

    settings = get_settings()
    if not settings.jwt_configured:
        logger.error("Bearer token received but VHUB_JWT_SECRET_KEY is not configured")
        raise _unauthorized("Authentication is not configured")

    try:
        payload = jwt.decode(
            auth_header[7:],
            settings.jwt_secret_key,
            algorithms=[TOKEN_ALGORITHM],
        )
    except JWTError as e:
        logger.warning(f"Token validation failed: JWT error - {e}")
        raise _unauthorized("Invalid or expired token")

    if payload.get("type") != TOKEN_TYPE or not payload.get("sub"):
        logger.warning("Token validation failed: unexpected token payload")
        raise _unauthorized("Invalid or expired token")

    try:
        user = UserService(db).get_by_guid(payload["sub"])
    except NotFoundError:
        logger.warning("Token validation failed: user not found")
        raise _unauthorized("Invalid or expired token")

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive"
        )

    return UserContext(
        user_id=user.id,
        user_guid=user.guid,
        name=user.name,
        email=user.email,
    )


__all__ = [
    "UserContext",
    "require_auth",
    "create_access_token",
]
