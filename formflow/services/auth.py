"""Password hashing and session token helpers."""

from datetime import datetime

from jose import JWTError, jwt
from passlib.context import CryptContext

from formflow.config import get_settings
from formflow.models.enums import UserRole

settings = get_settings()

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Malformed or unknown hash format
        return False


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def create_access_token(
    session_id: str, principal_id: str, role: UserRole, expires_at: datetime
) -> str:
    """Create a JWT access token bound to a stored session."""
    to_encode = {
        "sub": principal_id,
        "sid": session_id,
        "role": role.value,
        "exp": expires_at,
    }
    encoded_jwt = jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return encoded_jwt


def decode_access_token(token: str, verify_exp: bool = True) -> dict | None:
    """Decode and validate a JWT token.

    ``verify_exp=False`` still checks the signature but accepts an expired
    token, which is enough to identify the session it belongs to.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"verify_exp": verify_exp},
        )
        return payload
    except JWTError:
        return None
