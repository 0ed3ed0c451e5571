from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from sqlalchemy.orm import Session
from models.user import User, UserRole
from schemas.user import TokenData
from core.config import settings
import logging

logger = logging.getLogger(__name__)

# JWT settings
SECRET_KEY = settings.SECRET_KEY
ALGORITHM = settings.JWT_ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES
TOKEN_ISSUER = "order-dispatch"

def create_access_token(user_id: str, role: UserRole, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed bearer token for a user."""
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {
        "sub": user_id,
        "role": UserRole(role).value,
        "exp": expire,
        "iat": datetime.utcnow(),
        "iss": TOKEN_ISSUER,
        "type": "access"
    }
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    logger.info(f"Access token created for user: {user_id}")
    return encoded_jwt

def verify_token(token: str) -> Optional[TokenData]:
    """Decode a bearer token; returns None for anything that does not verify."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM], issuer=TOKEN_ISSUER)
    except JWTError as e:
        logger.warning(f"JWT verification failed: {str(e)}")
        return None

    user_id = payload.get("sub")
    if user_id is None or payload.get("type") != "access":
        logger.warning("Token missing required claims")
        return None

    try:
        role = UserRole(payload.get("role"))
    except ValueError:
        logger.warning(f"Token carries unknown role: {payload.get('role')}")
        return None

    return TokenData(user_id=user_id, role=role)

def get_user_by_id(db: Session, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()
