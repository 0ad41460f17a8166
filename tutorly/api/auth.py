"""
Operator Authentication

Bearer token check for operator-only endpoints (scheduler control, status overrides).
"""
import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tutorly import config

logger = logging.getLogger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)


async def verify_operator_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> bool:
    """
    Verify the operator bearer token.

    Returns:
        True if valid, raises HTTPException otherwise
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "code": "AUTH_001",
                "message": "Authorization header missing",
                "details": "Please provide a valid bearer token",
            },
            headers={"WWW-Authenticate": "Bearer"},
        )

    if credentials.credentials != config.OPERATOR_TOKEN:
        logger.warning(f"Invalid operator token attempt: {credentials.credentials[:10]}...")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "code": "AUTH_002",
                "message": "Invalid or expired token",
                "details": "The provided token is not valid",
            },
            headers={"WWW-Authenticate": "Bearer"},
        )

    return True
