from fastapi import APIRouter, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
import logging

from core.exceptions import UnauthenticatedError
from database.connection import get_db
from schemas.user import Principal
from services.auth import verify_token, get_user_by_id

logger = logging.getLogger(__name__)

router = APIRouter()
security = HTTPBearer(auto_error=False)

# Dependency to get the calling principal
def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> Principal:
    """Resolve the caller's identity and role from the bearer token."""
    if not credentials or not credentials.credentials:
        raise UnauthenticatedError("Authentication credentials required")

    token_data = verify_token(credentials.credentials)
    if token_data is None:
        raise UnauthenticatedError("Could not validate credentials")

    user = get_user_by_id(db, token_data.user_id)
    if user is None:
        logger.warning(f"Token valid but user not found: {token_data.user_id}")
        raise UnauthenticatedError("User not found")

    # The stored role wins over the one in the token; roles can change after issue
    return Principal(id=user.id, role=user.role)

@router.get("/me", response_model=Principal)
def get_current_principal_info(principal: Principal = Depends(get_current_principal)):
    """Get the calling principal."""
    return principal
