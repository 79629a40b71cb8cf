"""
Authentication dependencies.

Clients log in through /auth/login and send the returned JWT in the
Authorization header. Cron runners send the shared CRON_SECRET instead.
"""
import logging
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, ExpiredSignatureError
from sqlalchemy.orm import Session

from property_crm.api.deps import get_db
from property_crm.core.config import settings
from property_crm.core.security import decode_access_token
from property_crm.models.user import User

logger = logging.getLogger(__name__)

# Security scheme for Bearer token
security = HTTPBearer()
cron_security = HTTPBearer(auto_error=False)


def verify_token(token: str) -> dict:
    """
    Decode a JWT issued by this service.

    Raises:
        HTTPException: 401 if the token is invalid or expired
    """
    try:
        return decode_access_token(token)
    except ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication credentials: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    FastAPI dependency returning the authenticated, active user.

    Usage in route:
        @router.get("/protected")
        def protected_route(current_user: User = Depends(get_current_user)):
            ...
    """
    payload = verify_token(credentials.credentials)

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate user",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.query(User).filter(User.id == int(user_id)).first()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate user",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_role(*roles: str):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/admin/users")
        def list_users(current_user: User = Depends(require_role("admin"))):
            ...
    """
    def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required role: {' or '.join(roles)}",
            )
        return current_user
    return role_checker


# Landlords own data; admins may act on their own portfolio too
get_landlord = require_role("landlord", "admin")


def require_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(cron_security),
) -> None:
    """Guard for scheduler-triggered endpoints."""
    token = credentials.credentials if credentials else ""
    if not token or not secrets.compare_digest(token, settings.CRON_SECRET):
        logger.warning("Rejected cron request with missing or invalid secret")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
