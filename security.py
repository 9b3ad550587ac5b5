"""
Password hashing and identity tokens.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from config import Settings
from errors import InvalidToken


class PasswordHasher:
    """bcrypt via passlib; each hash carries its own random salt."""

    def __init__(self, rounds: int = 12):
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    @classmethod
    def from_settings(cls, settings: Settings) -> "PasswordHasher":
        return cls(rounds=settings.bcrypt_rounds)

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, hashed: Optional[str]) -> bool:
        if not hashed:
            return False
        try:
            return self._context.verify(password, hashed)
        except (ValueError, TypeError):
            # not a hash this context recognises
            return False

    def dummy_verify(self) -> bool:
        """Spend the cost of a verify when there is no hash to check against."""
        return self._context.dummy_verify()


class TokenService:
    def __init__(self, secret: str, algorithm: str = "HS256", expire_minutes: int = 60 * 24):
        self._secret = secret
        self._algorithm = algorithm
        self._expire_minutes = expire_minutes

    def __repr__(self):
        return f"TokenService(algorithm={self._algorithm!r}, expire_minutes={self._expire_minutes})"

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(settings.jwt_secret, settings.jwt_algorithm, settings.access_token_expire_minutes)

    def issue(self, user_id: str, expires_delta: Optional[timedelta] = None) -> str:
        now = datetime.now(timezone.utc)
        claims = {"sub": str(user_id), "iat": now}
        if expires_delta is None and self._expire_minutes > 0:
            expires_delta = timedelta(minutes=self._expire_minutes)
        if expires_delta is not None:
            claims["exp"] = now + expires_delta
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> str:
        """Return the user id bound to `token` or raise InvalidToken."""
        try:
            claims = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except JWTError as exc:
            raise InvalidToken(str(exc)) from exc
        user_id = claims.get("sub")
        if not user_id or not isinstance(user_id, str):
            raise InvalidToken("Token has no subject")
        return user_id
