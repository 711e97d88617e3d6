import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from redirector_app.errors import InvalidToken
from redirector_app.models.enums import UserRole


@dataclass(frozen=True)
class TokenClaims:
    user_id: uuid.UUID
    session_id: uuid.UUID
    role: UserRole


@dataclass(frozen=True)
class IssuedToken:
    access_token: str
    expires_in: int
    token_type: str = "Bearer"


class TokenCodec:
    """
    Signs and verifies bearer tokens (JWT).

    Claims:
    - sub: user id
    - jti: the user's session id at issue time
    - role: user role
    - iat / exp: issue and expiry time
    """

    def __init__(self, secret: str, algorithm: str = "HS256", ttl_seconds: int = 3600):
        self.secret = secret
        self.algorithm = algorithm
        self.ttl_seconds = ttl_seconds

    def issue(
        self,
        user_id: uuid.UUID,
        session_id: uuid.UUID,
        role: UserRole,
        now: datetime = None,
    ) -> IssuedToken:
        issued_at = now or datetime.now(timezone.utc)
        claims = {
            "sub": str(user_id),
            "jti": str(session_id),
            "role": UserRole(role).value,
            "iat": issued_at,
            "exp": issued_at + timedelta(seconds=self.ttl_seconds),
        }
        access_token = jwt.encode(claims, self.secret, algorithm=self.algorithm)
        return IssuedToken(access_token=access_token, expires_in=self.ttl_seconds)

    def verify(self, token: str) -> TokenClaims:
        """
        Decode a token.

        Raises:
            InvalidToken: bad signature, malformed payload or expired
        """
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError as e:
            raise InvalidToken(str(e)) from e

        try:
            return TokenClaims(
                user_id=uuid.UUID(payload["sub"]),
                session_id=uuid.UUID(payload["jti"]),
                role=UserRole(payload["role"]),
            )
        except (KeyError, ValueError, TypeError) as e:
            raise InvalidToken(f"Malformed token payload: {e}") from e
