from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
import secrets
import string
import jwt
from passlib.context import CryptContext
from clinic_admin.core.config import settings

# Password hashing
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

REMEMBER_TOKEN_ALPHABET = string.ascii_letters + string.digits
REMEMBER_TOKEN_LENGTH = 10


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash"""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Unrecognised or malformed hash
        return False


def get_password_hash(password: str) -> str:
    """Generate password hash"""
    return pwd_context.hash(password)


def generate_remember_token(length: int = REMEMBER_TOKEN_LENGTH) -> str:
    """Random opaque token used by "remember me" sessions"""
    return "".join(secrets.choice(REMEMBER_TOKEN_ALPHABET) for _ in range(length))


def create_access_token(subject: str, data: Optional[Dict[str, Any]] = None) -> str:
    """Create JWT access token"""
    to_encode = dict(data or {})
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({
        "exp": expire,
        "iat": now,
        "sub": subject,
        "token_type": "access"
    })
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode and validate JWT token"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return payload
    except jwt.PyJWTError:
        return None


def verify_token(token: str, token_type: str = "access") -> Optional[Dict[str, Any]]:
    """Verify token and check token type"""
    payload = decode_token(token)
    if not payload:
        return None

    if payload.get("token_type") != token_type:
        return None

    return payload
