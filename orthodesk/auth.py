import hashlib
import logging
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session, joinedload

from .database import get_db
from .models import StaffUser

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def hash_token(token: str) -> str:
    """SHA-256 hex digest stored in StaffUser.api_token_hash"""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> StaffUser:
    """Resolve the staff member behind a bearer token; every query is scoped to their clinic"""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=401,
            detail={"code": "UNAUTHORIZED", "message": "Not authenticated"},
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = (
        db.query(StaffUser)
        .options(joinedload(StaffUser.clinic))
        .filter(StaffUser.api_token_hash == hash_token(credentials.credentials))
        .first()
    )

    if not user or not user.is_active or (user.clinic and not user.clinic.is_active):
        logger.warning("❌ Rejected bearer token: unknown or inactive staff user")
        raise HTTPException(
            status_code=401,
            detail={"code": "UNAUTHORIZED", "message": "Invalid or expired token"},
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user
