from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from errors import TokenExpired, TokenMalformed
from schemas.shared import UserId

ALGORITHM = "HS256"

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def configure_password_hashing(rounds: int):
    """Re-tune the bcrypt cost factor (tests use the minimum)."""
    pwd_context.update(bcrypt__rounds=rounds)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


@dataclass(frozen=True)
class SessionIdentity:
    user_id: UserId
    email: str


@dataclass(frozen=True)
class TokenClaims:
    identity: SessionIdentity
    issued_at: datetime
    expires_at: datetime


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def encode_session_token(identity: SessionIdentity, expires_delta: timedelta, secret_key: str) -> str:
    issued_at = _now()
    to_encode = {
        "sub": str(identity.user_id),
        "email": identity.email,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + expires_delta).timestamp()),
    }
    return jwt.encode(to_encode, secret_key, algorithm=ALGORITHM)


def decode_session_token(token: str, secret_key: str) -> TokenClaims:
    """Verify the signature and expiry of ``token`` and return its claims."""
    try:
        payload = jwt.decode(token, secret_key, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        raise TokenExpired()
    except JWTError:
        raise TokenMalformed()

    try:
        identity = SessionIdentity(user_id=UserId(int(payload["sub"])), email=payload["email"])
        issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
        expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
    except (KeyError, TypeError, ValueError):
        raise TokenMalformed()

    # jose already rejects expired tokens; keep the check for a zero-length lifetime
    if expires_at <= _now():
        raise TokenExpired()
    return TokenClaims(identity=identity, issued_at=issued_at, expires_at=expires_at)
