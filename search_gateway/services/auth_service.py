"""Caller identity from JWT bearer tokens.

Tokens are issued upstream; this service only verifies them and turns the
claims into a CallerContext.

Claims:
    sub: user id
    org: organization id
    sol: solution (tenant) id
    sol_owner: user id of the solution owner
    privileges: {"Entity" | "Entity_Type" | "*": ["read", ...]}
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import ValidationError

from ..config import settings
from ..schemas.context import CallerContext

# OAuth2 scheme for token-based authentication
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Dictionary of claims to encode in the token
        expires_delta: Optional custom expiration time delta

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.jwt_expiration_minutes
        )

    to_encode.update({"exp": expire})

    return jwt.encode(
        to_encode,
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> Optional[CallerContext]:
    """
    Decode and validate a JWT access token.

    Returns:
        CallerContext built from the claims, or None if the token is invalid,
        expired or lacks the user or solution claim.
    """
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None

    if not payload.get("sub") or not payload.get("sol"):
        return None

    try:
        return CallerContext(
            user_id=payload["sub"],
            solution_id=payload["sol"],
            organization_id=payload.get("org"),
            solution_owner_id=payload.get("sol_owner"),
            privileges=payload.get("privileges") or {},
        )
    except ValidationError:
        return None


async def get_caller_context(
    token: Optional[str] = Depends(oauth2_scheme),
) -> CallerContext:
    """
    FastAPI dependency resolving the caller from the Authorization header.

    Raises:
        HTTPException: 401 if the token is missing or invalid
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not token:
        raise credentials_exception

    context = decode_access_token(token)
    if context is None:
        raise credentials_exception
    return context
