"""
API key authentication for the FastAPI API.
"""

from typing import Optional

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from api.config import config

logger = structlog.get_logger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)


async def verify_api_key(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[str]:
    """
    Verify the bearer API key against the configured keys.

    Returns:
        The API key, or None when no keys are configured

    Raises:
        HTTPException: If keys are configured and the request lacks a valid one
    """
    valid_api_keys = config.get_api_keys()
    if not valid_api_keys:
        return None

    api_key = credentials.credentials if credentials else None
    if api_key not in valid_api_keys:
        logger.warning(
            "Invalid API key attempted",
            api_key=(api_key[:10] + "...") if api_key else None
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return api_key
